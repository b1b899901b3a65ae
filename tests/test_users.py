"""Tests for user ledger administration."""

import pytest

from conftest import make_numbers, seed_users
from number_pool_service.exceptions import ConflictError, InvalidArgumentError, NotFoundError
from number_pool_service.models.schemas import UserImportRow


@pytest.mark.asyncio
async def test_create_user_and_read_profile(engine):
    created = await engine.create_user("123456", "  Alice  ")

    assert created.name == "Alice"
    profile = await engine.get_user_profile("123456")
    assert profile.assigned_count == 0
    assert profile.used_count == 0
    assert profile.remaining == 0
    assert not profile.is_admin


@pytest.mark.asyncio
@pytest.mark.parametrize("user_id, name, assigned_count", [
    ("12345", "Alice", 0),
    ("abcdef", "Alice", 0),
    ("1234567", "Alice", 0),
    ("123456", "   ", 0),
    ("123456", "Alice", -1),
])
async def test_create_user_rejects_malformed_input(engine, user_id, name, assigned_count):
    with pytest.raises(InvalidArgumentError):
        await engine.create_user(user_id, name, assigned_count)


@pytest.mark.asyncio
async def test_create_user_twice_conflicts(engine):
    await engine.create_user("123456", "Alice")

    with pytest.raises(ConflictError):
        await engine.create_user("123456", "Alice again")


@pytest.mark.asyncio
async def test_admin_bootstrap_only_once(engine, users):
    result = await engine.create_admin_user()

    assert result.user_id == "000000"
    admin = await users.get("000000")
    assert admin.is_admin
    assert admin.name == "Admin"
    with pytest.raises(ConflictError):
        await engine.create_admin_user()


@pytest.mark.asyncio
async def test_list_users_excludes_admins_and_is_sorted(engine, users):
    await seed_users(users, "300000", "100000", "200000", admin_id="000000")

    listed = await engine.list_users()

    assert [user.user_id for user in listed] == ["100000", "200000", "300000"]


@pytest.mark.asyncio
async def test_profile_of_unknown_user(engine):
    with pytest.raises(NotFoundError):
        await engine.get_user_profile("999999")


@pytest.mark.asyncio
async def test_bulk_create_users_counts_each_kind_of_skip(engine, users):
    await seed_users(users, "100001")
    rows = [
        {"user_id": "100001", "name": "Already here"},
        {"user_id": 100002, "name": "Numeric cell"},
        UserImportRow(user_id="100003", name="Carol"),
        {"user_id": "100003", "name": "Carol again"},
        {"user_id": "12", "name": "Short id"},
        {"user_id": "100004", "name": "  "},
        {"name": "No id"},
    ]

    result = await engine.bulk_create_users(rows)

    assert result.added == 2
    assert result.total_in_file == 7
    assert result.skipped_existing == 1
    assert result.skipped_duplicates == 1
    assert result.skipped_invalid == 3
    assert result.message == "Successfully added 2 users"
    assert await users.find_existing(["100002", "100003"]) == {"100002", "100003"}


@pytest.mark.asyncio
async def test_bulk_create_users_when_all_exist(engine, users):
    await seed_users(users, "100001")

    result = await engine.bulk_create_users([{"user_id": "100001", "name": "Alice"}])

    assert result.added == 0
    assert result.skipped_existing == 1
    assert result.message == "All users in the file already exist in the database"


@pytest.mark.asyncio
async def test_bulk_create_users_without_valid_rows(engine):
    with pytest.raises(InvalidArgumentError):
        await engine.bulk_create_users([{"user_id": "x", "name": ""}, {}])


@pytest.mark.asyncio
async def test_delete_user_releases_numbers_to_pool(engine, users):
    await seed_users(users, "100001")
    await engine.ingest(make_numbers(8))
    await engine.assign("100001", 5)

    result = await engine.delete_user("100001")

    assert result.deleted_count == 1
    assert result.numbers_released == 5
    assert await users.get("100001") is None
    stats = await engine.inventory_stats()
    assert stats.available == 8
    assert stats.assigned == 0


@pytest.mark.asyncio
async def test_admin_cannot_be_deleted(engine, users):
    await seed_users(users, "100001", admin_id="000000")

    with pytest.raises(InvalidArgumentError):
        await engine.delete_user("000000")
    with pytest.raises(InvalidArgumentError):
        await engine.delete_users(["100001", "000000"])

    assert await users.get("100001") is not None
    assert await users.get("000000") is not None


@pytest.mark.asyncio
async def test_delete_users_skips_unknown_ids(engine, users):
    await seed_users(users, "100001", "100002")
    await engine.ingest(make_numbers(4))
    await engine.assign("100001", 2)
    await engine.assign("100002", 2)

    result = await engine.delete_users(["100001", "100002", "999999", "100001"])

    assert result.deleted_count == 2
    assert result.deleted_user_ids == ["100001", "100002"]
    assert result.numbers_released == 4


@pytest.mark.asyncio
async def test_delete_users_errors(engine):
    with pytest.raises(InvalidArgumentError):
        await engine.delete_users([])
    with pytest.raises(NotFoundError):
        await engine.delete_users(["999999"])
    with pytest.raises(NotFoundError):
        await engine.delete_user("999999")
