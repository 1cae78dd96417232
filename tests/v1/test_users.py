# tests/v1/test_users.py
"""Tests for user endpoints."""

from fastapi import status


def test_read_current_user(client, test_user, auth_token) -> None:
    response = client.get("/api/v1/users/me", headers=auth_token)

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["id"] == test_user.id
    assert data["name"] == "Test User"
    assert data["department"] == "CSE"
    assert "password_hash" not in data


def test_read_current_user_requires_auth(client) -> None:
    response = client.get("/api/v1/users/me")

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.headers["WWW-Authenticate"] == "Bearer"
    assert response.json()["kind"] == "unauthenticated"
