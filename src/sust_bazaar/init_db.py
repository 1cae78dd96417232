"""Create the database schema and seed the administrator account."""
from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from sust_bazaar.core.security import hash_password
from sust_bazaar.core.settings import settings
from sust_bazaar.db.session import SessionLocal, create_tables
from sust_bazaar.models import User
from sust_bazaar.models.user import ROLE_ADMIN

logger = logging.getLogger(__name__)


def ensure_admin(db: Session) -> User | None:
    """Create the configured admin account if it does not exist yet.

    Nothing is created when ``ADMIN_PASSWORD`` is unset.
    """
    existing = db.query(User).filter(User.email == settings.admin_email).first()
    if existing is not None:
        return existing
    if not settings.admin_password:
        logger.warning("ADMIN_PASSWORD not set; skipping admin account creation")
        return None

    admin = User(
        name="Admin User",
        email=settings.admin_email,
        password_hash=hash_password(settings.admin_password),
        phone="01712345678",
        department="CSE",
        season="Fall 2021",
        role=ROLE_ADMIN,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.info("Admin user created: %s", admin.email)
    return admin


def init_db() -> None:
    """Initialize the database by creating all tables and the admin user."""
    create_tables()
    with SessionLocal() as db:
        ensure_admin(db)


if __name__ == "__main__":
    logging.basicConfig(level=settings.log_level.upper())
    init_db()
    print("Database initialized.")
