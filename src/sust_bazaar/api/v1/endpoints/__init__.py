# src/sust_bazaar/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .auth import router as auth_router
from .chats import router as chats_router
from .realtime import router as realtime_router
from .users import router as users_router

__all__ = [
    "auth_router",
    "chats_router",
    "realtime_router",
    "users_router",
]
