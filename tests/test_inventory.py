"""Tests for inventory statistics, paging and export."""

import pytest

from conftest import make_numbers, seed_users
from number_pool_service.exceptions import InvalidArgumentError, NotFoundError


@pytest.mark.asyncio
async def test_stats_on_empty_pool(engine):
    stats = await engine.inventory_stats()

    assert stats.total == 0
    assert stats.available == 0
    assert stats.assigned == 0
    assert stats.used == 0
    assert stats.user_count == 0


@pytest.mark.asyncio
async def test_stats_keep_total_equal_available_plus_assigned(engine, users):
    await seed_users(users, "100001", "100002", admin_id="000000")
    await engine.ingest(make_numbers(25))
    await engine.assign("100001", 10)
    await engine.generate("100001", 4)

    stats = await engine.inventory_stats()

    assert stats.total == 21
    assert stats.assigned == 6
    assert stats.available == 15
    assert stats.used == 4
    assert stats.user_count == 2
    assert stats.total == stats.available + stats.assigned


@pytest.mark.asyncio
async def test_list_numbers_pages_through_inventory(engine, users):
    await seed_users(users, "100001")
    numbers = make_numbers(25)
    await engine.ingest(numbers)
    await engine.assign("100001", 3)

    first = await engine.list_numbers(page=1, limit=10)
    last = await engine.list_numbers(page=3, limit=10)

    assert first.total == 25
    assert first.total_pages == 3
    assert first.current_page == 1
    assert [record.number for record in first.numbers] == numbers[:10]
    assert len(last.numbers) == 5
    assigned = [record for record in first.numbers if record.is_assigned]
    assert len(assigned) == 3
    assert all(record.assigned_owner == "100001" for record in assigned)


@pytest.mark.asyncio
@pytest.mark.parametrize("page, limit", [(0, 10), (1, 0), (1, 1001)])
async def test_list_numbers_rejects_bad_paging(engine, page, limit):
    with pytest.raises(InvalidArgumentError):
        await engine.list_numbers(page=page, limit=limit)


@pytest.mark.asyncio
async def test_export_unused_numbers(engine, users):
    await seed_users(users, "100001")
    numbers = make_numbers(6)
    await engine.ingest(numbers)
    await engine.assign("100001", 2)

    result = await engine.export_unused_numbers()

    assert result.count == 4
    assert set(result.numbers) == set(numbers) - set(engine.inventory._by_owner["100001"])


@pytest.mark.asyncio
async def test_export_with_nothing_unused(engine):
    with pytest.raises(NotFoundError):
        await engine.export_unused_numbers()
