"""Tests for the FastAPI adapter over the engine."""

from typing import Any, Dict

import pytest
from fastapi.testclient import TestClient
from hypothesis import given, settings, strategies as st

from conftest import make_numbers
from number_pool_service.api.app import create_app
from number_pool_service.repositories.memory_repository import (
    InMemoryInventoryRepository,
    InMemoryUserRepository,
)
from number_pool_service.services.engine import NumberPoolEngine

ADMIN = {"X-User-Id": "000000", "X-User-Admin": "true"}


def user_headers(user_id: str) -> Dict[str, str]:
    return {"X-User-Id": user_id}


def get_test_client():
    """Test client over a fresh in-memory engine; the lifespan is not run."""
    app = create_app()
    app.state.engine = NumberPoolEngine(InMemoryInventoryRepository(), InMemoryUserRepository())
    return TestClient(app)


def has_error_fields(body: Dict[str, Any]) -> bool:
    return {"error", "message", "details"} <= set(body)


@pytest.fixture
def client():
    return get_test_client()


def test_health_check(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["store_connected"] is True
    assert "X-Correlation-ID" in response.headers


def test_health_check_without_engine():
    client = TestClient(create_app())

    response = client.get("/health")

    assert response.status_code == 503


def test_correlation_id_is_echoed(client):
    response = client.get("/health", headers={"X-Correlation-ID": "abc-123"})

    assert response.headers["X-Correlation-ID"] == "abc-123"


def test_admin_routes_need_identity_and_role(client):
    assert client.post("/admin/numbers/upload", json={"numbers": ["1"]}).status_code == 401

    response = client.post(
        "/admin/numbers/upload", json={"numbers": ["1"]}, headers=user_headers("100001")
    )

    assert response.status_code == 403
    body = response.json()
    assert has_error_fields(body)
    assert body["error"] == "Forbidden"


def test_admin_bootstrap_is_not_served_over_http(client):
    assert client.post("/admin/setup").status_code == 404
    assert client.post("/admin/setup", headers=ADMIN).status_code == 404


def test_full_pool_flow(client):
    response = client.post(
        "/admin/users", json={"user_id": "100001", "name": "Alice"}, headers=ADMIN
    )
    assert response.status_code == 201
    assert response.json()["remaining"] == 0

    response = client.post(
        "/admin/numbers/upload", json={"numbers": ["111", "222", "111", 333]}, headers=ADMIN
    )
    assert response.status_code == 201
    assert response.json()["added"] == 3
    assert response.json()["duplicates_skipped"] == 1

    response = client.post(
        "/admin/numbers/assign", json={"user_id": "100001", "count": 2}, headers=ADMIN
    )
    assert response.status_code == 200
    assert response.json()["user"]["assigned_count"] == 2

    response = client.post("/users/me/generate", json={"count": 1}, headers=user_headers("100001"))
    assert response.status_code == 200
    assert response.json()["count"] == 1

    profile = client.get("/users/me", headers=user_headers("100001")).json()
    assert profile["used_count"] == 1
    assert profile["remaining"] == 1

    stats = client.get("/admin/numbers/stats", headers=ADMIN).json()
    assert stats == {"total": 2, "available": 1, "assigned": 1, "used": 1, "user_count": 1}


def test_capacity_error_body(client):
    client.post("/admin/users", json={"user_id": "100001", "name": "Alice"}, headers=ADMIN)
    client.post("/admin/numbers/upload", json={"numbers": make_numbers(2)}, headers=ADMIN)

    response = client.post(
        "/admin/numbers/assign", json={"user_id": "100001", "count": 5}, headers=ADMIN
    )

    assert response.status_code == 400
    body = response.json()
    assert has_error_fields(body)
    assert body["message"] == "Not enough phone numbers available. Only 2 available."
    assert body["details"] == {"requested": 5, "available": 2}


def test_generate_over_quota(client):
    client.post("/admin/users", json={"user_id": "100001", "name": "Alice"}, headers=ADMIN)

    response = client.post("/users/me/generate", json={"count": 1}, headers=user_headers("100001"))

    assert response.status_code == 400
    assert response.json()["details"]["remaining"] == 0


def test_unknown_user_is_404(client):
    response = client.post(
        "/admin/numbers/assign", json={"user_id": "999999", "count": 1}, headers=ADMIN
    )

    assert response.status_code == 404


def test_reconcile_reports_partial_with_207(client):
    client.post(
        "/admin/users", json={"user_id": "100001", "name": "Alice", "assigned_count": 3}, headers=ADMIN
    )
    client.post("/admin/numbers/upload", json={"numbers": make_numbers(1)}, headers=ADMIN)

    response = client.post("/admin/numbers/reconcile", headers=ADMIN)

    assert response.status_code == 207
    body = response.json()
    assert body["partial"] is True
    assert body["total_reconciled"] == 1
    assert len(body["issues"]) == 1


@pytest.mark.parametrize("path", [
    "/admin/numbers/clear-total",
    "/admin/numbers/clear-assigned",
    "/admin/numbers/clear-used",
    "/admin/numbers/clear-all-assignments",
    "/admin/numbers/unassign-all",
])
def test_reset_routes_on_empty_pool(client, path):
    response = client.post(path, headers=ADMIN)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["changed"] is False


def test_user_administration_routes(client):
    response = client.post("/admin/users/bulk", json={"rows": [
        {"user_id": "100001", "name": "Alice"},
        {"user_id": 100002, "name": "Bob"},
        {"user_id": "bad", "name": "Nobody"},
    ]}, headers=ADMIN)
    assert response.status_code == 201
    assert response.json()["added"] == 2
    assert response.json()["skipped_invalid"] == 1

    listed = client.get("/admin/users", headers=ADMIN).json()
    assert [user["user_id"] for user in listed] == ["100001", "100002"]

    response = client.delete("/admin/users/100001", headers=ADMIN)
    assert response.status_code == 200
    assert response.json()["deleted_user_ids"] == ["100001"]

    response = client.post("/admin/users/delete", json={"user_ids": ["100002"]}, headers=ADMIN)
    assert response.json()["deleted_count"] == 1


def test_number_listing_and_export(client):
    client.post("/admin/numbers/upload", json={"numbers": make_numbers(5)}, headers=ADMIN)

    page = client.get("/admin/numbers", params={"page": 2, "limit": 2}, headers=ADMIN).json()
    assert page["total_pages"] == 3
    assert page["current_page"] == 2
    assert len(page["numbers"]) == 2

    assert client.get("/admin/numbers", params={"limit": 5000}, headers=ADMIN).status_code == 400

    export = client.get("/admin/numbers/export", headers=ADMIN).json()
    assert export["count"] == 5


@given(st.integers(max_value=0))
@settings(max_examples=20, deadline=None)
def test_non_positive_counts_are_bad_requests(count):
    client = get_test_client()

    response = client.post(
        "/admin/numbers/assign", json={"user_id": "100001", "count": count}, headers=ADMIN
    )

    assert response.status_code == 400
    assert has_error_fields(response.json())
