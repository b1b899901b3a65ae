"""Tests for structured logging of pool operations."""

import asyncio
import json
import logging

import pytest
from hypothesis import given, settings, strategies as st

from conftest import make_numbers, seed_users
from number_pool_service.config.logging import (
    LoggingService,
    StructuredFormatter,
    get_correlation_id,
    set_correlation_id,
)
from number_pool_service.exceptions import InsufficientInventoryError
from number_pool_service.repositories.memory_repository import (
    InMemoryInventoryRepository,
    InMemoryUserRepository,
)
from number_pool_service.services.engine import NumberPoolEngine


class LogCapture:
    """Helper class to capture records emitted under the package logger."""

    def __init__(self, logger_name="number_pool_service"):
        self.records = []
        self.handler = None
        self.logger = logging.getLogger(logger_name)
        self._previous_level = None

    def __enter__(self):
        self.handler = logging.Handler()
        self.handler.emit = lambda record: self.records.append(record)
        self._previous_level = self.logger.level
        self.logger.addHandler(self.handler)
        self.logger.setLevel(logging.DEBUG)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.logger.removeHandler(self.handler)
        self.logger.setLevel(self._previous_level)

    def for_operation(self, operation):
        return [record for record in self.records if getattr(record, "operation", None) == operation]


@pytest.mark.asyncio
async def test_successful_assignment_is_logged_with_counts(engine, users):
    await seed_users(users, "100001")
    await engine.ingest(make_numbers(5))

    with LogCapture() as capture:
        await engine.assign("100001", 3)

    records = capture.for_operation("assign")
    assert records
    record = records[-1]
    assert record.levelno == logging.INFO
    assert record.user_id == "100001"
    assert record.assigned == 3
    assert "completed successfully" in record.getMessage()


@pytest.mark.asyncio
async def test_capacity_shortfall_is_logged_as_warning(engine, users):
    await seed_users(users, "100001")
    await engine.ingest(make_numbers(2))

    with LogCapture() as capture:
        with pytest.raises(InsufficientInventoryError):
            await engine.assign("100001", 3)

    warnings = [record for record in capture.for_operation("assign") if record.levelno == logging.WARNING]
    assert warnings
    assert warnings[0].requested == 3
    assert warnings[0].available == 2


@pytest.mark.asyncio
async def test_lost_consume_race_is_logged_at_debug(engine, users):
    await seed_users(users, "100001")
    await engine.ingest(make_numbers(6))
    await engine.assign("100001", 6)

    with LogCapture() as capture:
        await asyncio.gather(*(engine.generate("100001", 2) for _ in range(3)))

    retries = [record for record in capture.for_operation("generate") if record.levelno == logging.DEBUG]
    assert retries
    assert retries[0].name == "number_pool_service.services.consumption_service"
    assert retries[0].user_id == "100001"
    assert retries[0].requested == 2


def test_log_error_carries_error_type():
    service = LoggingService("number_pool_service.tests")

    with LogCapture() as capture:
        service.log_error("Store call failed", RuntimeError("boom"), user_id="100001", operation="generate")

    record = capture.records[0]
    assert record.levelno == logging.ERROR
    assert record.error == "boom"
    assert record.error_type == "RuntimeError"
    assert record.operation == "generate"


def test_structured_formatter_emits_json_with_extras():
    set_correlation_id("corr-123")
    formatter = StructuredFormatter()
    record = logging.LogRecord(
        "number_pool_service.test", logging.INFO, __file__, 1, "Assigned %d numbers", (3,), None
    )
    record.user_id = "100001"
    record.operation = "assign"
    record.assigned = 3

    entry = json.loads(formatter.format(record))

    assert entry["message"] == "Assigned 3 numbers"
    assert entry["correlation_id"] == "corr-123"
    assert entry["user_id"] == "100001"
    assert entry["operation"] == "assign"
    assert entry["assigned"] == 3
    assert entry["level"] == "INFO"
    assert get_correlation_id() == "corr-123"


@given(
    st.lists(st.text(alphabet="0123456789", min_size=1, max_size=8), max_size=30),
    st.booleans()
)
@settings(max_examples=25, deadline=None)
def test_ingest_always_logs_its_outcome(numbers, twice):
    """Every ingestion emits an 'ingest' record, including no-op uploads."""

    async def scenario():
        engine = NumberPoolEngine(InMemoryInventoryRepository(), InMemoryUserRepository())
        await engine.ingest(numbers)
        if twice:
            await engine.ingest(numbers)

    with LogCapture() as capture:
        asyncio.run(scenario())

    records = capture.for_operation("ingest")
    assert len(records) == (2 if twice else 1)
    for record in records:
        assert record.levelno == logging.INFO
