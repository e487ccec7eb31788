"""Pytest configuration and fixtures for unit tests."""

from datetime import UTC, datetime

import pytest

from grindset.services import problem_source, task_service, user_service
from tests.unit.mocks import TWO_SUM, VALID_PARENTHESES, CountingProblemSource, InMemoryDBClient


FROZEN_NOW = datetime(2024, 3, 10, 12, 0, tzinfo=UTC)


@pytest.fixture
def in_memory_db():
    """Provides a fresh InMemoryDBClient for each test."""
    return InMemoryDBClient()


@pytest.fixture
def patched_db(monkeypatch, in_memory_db):
    """Patches grindset.core.db_client functions to use InMemoryDBClient."""
    for name in (
        "create_record",
        "get_or_create_record",
        "get_record",
        "update_record",
        "update_records",
        "delete_record",
        "delete_records",
        "list_records",
        "get_full_list",
        "count_records",
        "get_first_record",
    ):
        monkeypatch.setattr(f"grindset.core.db_client.{name}", getattr(in_memory_db, name))

    return in_memory_db


@pytest.fixture
def frozen_now(monkeypatch):
    """Pins the engine clock to 2024-03-10 12:00 UTC."""
    monkeypatch.setattr("grindset.core.clock.utc_now", lambda: FROZEN_NOW)
    return FROZEN_NOW


@pytest.fixture
def fake_problem_source():
    """Installs a counting problem source serving Two Sum first."""
    source = CountingProblemSource(TWO_SUM, VALID_PARENTHESES)
    problem_source.set_default_problem_source(source)
    yield source
    problem_source.reset_default_problem_source()


@pytest.fixture(autouse=True)
def _fresh_assignment_locks():
    """Assignment locks are bound to the loop that first awaited them."""
    task_service._assignment_locks.clear()
    yield
    task_service._assignment_locks.clear()


@pytest.fixture
async def users(patched_db):
    """Three registered users keyed by first name."""
    return {
        "alice": await user_service.create_user(username="alice", email="alice@example.com"),
        "bob": await user_service.create_user(username="bob", email="bob@example.com"),
        "carol": await user_service.create_user(username="carol", email="carol@example.com"),
    }
