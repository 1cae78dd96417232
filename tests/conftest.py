# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from decimal import Decimal
from itertools import count

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from sust_bazaar.api.v1.dependencies import get_session_factory
from sust_bazaar.core.security import hash_password
from sust_bazaar.db.session import Base
from sust_bazaar.db.session import get_db as app_get_session
from sust_bazaar.main import app as fastapi_app
from sust_bazaar.models import Accommodation, Chat, Product, User
from sust_bazaar.services.chat_directory import ChatDirectory
from sust_bazaar.services.identity import create_access_token

TEST_DB_URL = "sqlite://"
TEST_PASSWORD = "password123"

_USER_COUNTER = count(1)
# Hashing is slow by design; hash the shared fixture password once.
_TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()

        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture(autouse=True)
def override_session_factory(app: FastAPI, engine: Engine) -> Iterator[sessionmaker[Session]]:
    """Point the realtime relay's per-event sessions at the test engine."""
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    app.dependency_overrides[get_session_factory] = lambda: factory
    try:
        yield factory
    finally:
        app.dependency_overrides.pop(get_session_factory, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    """Return a factory that persists users with unique emails."""

    def _make_user(name: str = "Student", *, is_banned: bool = False) -> User:
        n = next(_USER_COUNTER)
        user = User(
            name=name,
            email=f"student{n}@student.sust.edu",
            password_hash=_TEST_PASSWORD_HASH,
            phone="01712345678",
            department="CSE",
            season="Spring 2025",
            is_banned=is_banned,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def test_user(make_user: Callable[..., User]) -> User:
    """Primary test user (participant 1)."""
    return make_user("Test User")


@pytest.fixture()
def other_user(make_user: Callable[..., User]) -> User:
    """Secondary test user (participant 2)."""
    return make_user("Other User")


@pytest.fixture()
def outsider(make_user: Callable[..., User]) -> User:
    """User that takes part in no fixture chat."""
    return make_user("Outsider")


def bearer(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture()
def auth_token(test_user: User) -> dict[str, str]:
    """Return authorization headers for the primary test user."""
    return bearer(test_user)


@pytest.fixture()
def other_auth_token(other_user: User) -> dict[str, str]:
    """Return authorization headers for the secondary test user."""
    return bearer(other_user)


@pytest.fixture()
def outsider_auth_token(outsider: User) -> dict[str, str]:
    """Return authorization headers for the user outside every fixture chat."""
    return bearer(outsider)


@pytest.fixture()
def product(db_session: Session, other_user: User) -> Product:
    """Product listed by ``other_user``."""
    item = Product(
        title="Used calculator",
        description="Casio fx-991ES",
        price=Decimal("850.00"),
        category="Electronics",
        seller_id=other_user.id,
    )
    db_session.add(item)
    db_session.commit()
    db_session.refresh(item)
    return item


@pytest.fixture()
def accommodation(db_session: Session, other_user: User) -> Accommodation:
    """Seat offered by ``other_user``."""
    seat = Accommodation(
        type="Seat",
        title="Seat near campus gate",
        location="Kumargaon",
        price=Decimal("2500.00"),
        owner_id=other_user.id,
    )
    db_session.add(seat)
    db_session.commit()
    db_session.refresh(seat)
    return seat


@pytest.fixture()
def chat(db_session: Session, test_user: User, other_user: User) -> Chat:
    """Listing-less chat opened by ``test_user`` with ``other_user``."""
    return ChatDirectory(db_session).get_or_create(test_user.id, other_user.id)
