"""Pytest configuration and shared fixtures."""

import pytest

from grindset.core import db_client
from grindset.core.config import settings


@pytest.fixture
async def sqlite_db(tmp_path, monkeypatch):
    """Points the real aiosqlite client at a fresh database file."""
    db_path = str(tmp_path / "grindset_test.db")
    monkeypatch.setattr(settings, "sqlite_db_path", db_path)
    await db_client.init_db()
    yield db_path
    await db_client.close_connection()
