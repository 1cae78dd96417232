"""Password hashing helpers built on passlib."""
from __future__ import annotations

from passlib.context import CryptContext

# pbkdf2 keeps hashing pure-python so no native bcrypt build is needed.
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    """Return a salted hash of the provided password."""
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Return True if ``password`` matches ``password_hash``."""
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        return False
