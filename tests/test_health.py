# tests/test_health.py
from typing import Any


def test_health_responds(client: Any) -> None:
    """Verify that the health endpoint reports ok."""
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_root_describes_service(client: Any) -> None:
    """Verify that the root endpoint points at the API docs."""
    r = client.get("/")
    assert r.status_code == 200
    assert r.json()["docs"] == "/docs"
