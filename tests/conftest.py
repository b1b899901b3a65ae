"""Shared fixtures: an engine over fresh in-memory repositories."""

import pytest

from number_pool_service.config.settings import Settings
from number_pool_service.models.schemas import UserRecord
from number_pool_service.repositories.memory_repository import (
    InMemoryInventoryRepository,
    InMemoryUserRepository,
)
from number_pool_service.services.engine import NumberPoolEngine


@pytest.fixture
def inventory():
    return InMemoryInventoryRepository()


@pytest.fixture
def users():
    return InMemoryUserRepository()


@pytest.fixture
def test_settings():
    return Settings(
        storage_backend="memory",
        ingest_batch_size=10000,
        bulk_assign_user_batch_size=50,
    )


@pytest.fixture
def engine(inventory, users, test_settings):
    return NumberPoolEngine(inventory, users, settings=test_settings)


def make_numbers(count, start=1000):
    """Distinct numbers like '+15550001000'."""
    return [f"+1555000{start + i:04d}" for i in range(count)]


async def seed_users(users, *user_ids, admin_id=None):
    """Create regular users (and optionally one admin) directly in the ledger."""
    for user_id in user_ids:
        await users.create(UserRecord(user_id=user_id, name=f"User {user_id}"))
    if admin_id:
        await users.create(UserRecord(user_id=admin_id, name="Admin", is_admin=True))
