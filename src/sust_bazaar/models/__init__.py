# src/sust_bazaar/models/__init__.py
"""SQLAlchemy models for the SUSTBazaar chat service."""

from .chat import LISTING_ACCOMMODATION, LISTING_PRODUCT, Chat, Message
from .listing import Accommodation, Product
from .user import User

__all__ = [
    "Accommodation",
    "Chat",
    "LISTING_ACCOMMODATION",
    "LISTING_PRODUCT",
    "Message",
    "Product",
    "User",
]
