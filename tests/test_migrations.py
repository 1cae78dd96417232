# tests/test_migrations.py
"""Tests for the alembic migration environment."""

from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

MIGRATIONS_DIR = Path(__file__).resolve().parents[1] / "migrations"


def test_upgrade_and_downgrade(tmp_path, monkeypatch) -> None:
    """The chat schema revision applies and reverts on a fresh database."""
    monkeypatch.delenv("ALEMBIC_URL", raising=False)
    url = f"sqlite:///{tmp_path / 'migrated.db'}"
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    config.set_main_option("sqlalchemy.url", url)

    command.upgrade(config, "head")

    engine = create_engine(url)
    try:
        inspector = inspect(engine)
        assert {"users", "products", "accommodations", "chats", "messages"} <= set(
            inspector.get_table_names()
        )
        unique_names = {c["name"] for c in inspector.get_unique_constraints("chats")}
        assert "uq_chats_pair_listing" in unique_names

        command.downgrade(config, "base")
        assert set(inspect(engine).get_table_names()) <= {"alembic_version"}
    finally:
        engine.dispose()
