# src/sust_bazaar/api/v1/endpoints/auth.py
"""Registration and login endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, status

from sust_bazaar.api.v1.dependencies import SessionDep
from sust_bazaar.core.errors import Forbidden, InvalidRequest, Unauthenticated
from sust_bazaar.core.security import hash_password, verify_password
from sust_bazaar.models import User
from sust_bazaar.schemas.user import AuthResponse, LoginRequest, RegisterRequest, UserOut
from sust_bazaar.services.identity import create_access_token

router = APIRouter(prefix="/auth", tags=["authentication"])
logger = logging.getLogger(__name__)


def _auth_response(user: User) -> AuthResponse:
    return AuthResponse(
        token=create_access_token(user.id, {"email": user.email}),
        user=UserOut.model_validate(user),
    )


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=AuthResponse)
async def register(payload: RegisterRequest, db: SessionDep) -> AuthResponse:
    """Create a student account and return an access token."""
    if db.query(User).filter(User.email == payload.email).first() is not None:
        raise InvalidRequest("User already exists with this email")

    user = User(
        name=payload.name,
        email=payload.email,
        password_hash=hash_password(payload.password),
        phone=payload.phone,
        department=payload.department,
        season=payload.season,
        address=payload.address.strip() if payload.address else None,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered user %s", user.id)
    return _auth_response(user)


@router.post("/login", response_model=AuthResponse)
async def login(payload: LoginRequest, db: SessionDep) -> AuthResponse:
    """Exchange email and password for an access token."""
    email = payload.email.strip().lower()
    user = db.query(User).filter(User.email == email).first()
    if user is None:
        raise Unauthenticated("Invalid credentials")
    if user.is_banned:
        raise Forbidden("Account has been banned")
    if not verify_password(payload.password, user.password_hash):
        raise Unauthenticated("Invalid credentials")
    return _auth_response(user)
