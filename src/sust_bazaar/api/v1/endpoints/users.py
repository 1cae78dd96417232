# src/sust_bazaar/api/v1/endpoints/users.py
"""Endpoints about the authenticated account."""

from __future__ import annotations

from fastapi import APIRouter

from sust_bazaar.api.v1.dependencies import CurrentUserDep
from sust_bazaar.schemas.user import UserOut

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserOut)
async def read_me(current_user: CurrentUserDep) -> UserOut:
    """Return the caller's profile."""
    return UserOut.model_validate(current_user)
