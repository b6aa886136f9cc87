"""API tests for reconcile, sync ledger and duplicate review endpoints."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from fintrack.models import Transaction
from fintrack.security import create_access_token
from fintrack.services import sync_ledger
from fintrack.services.errors import LedgerWriteFailure

pytestmark = pytest.mark.asyncio


STOCK_BATCH = {
    "entity_kind": "stock",
    "source": "zerodha",
    "batch": [
        {"symbol": "RELIANCE", "quantity": "10", "source_identifier": "RELIANCE"},
        {"symbol": "reliance", "quantity": "11"},
        {"company_name": "No symbol"},
    ],
}


# =============================================================================
# Auth
# =============================================================================


async def test_reconcile_requires_auth(public_client):
    response = await public_client.post("/reconcile", json=STOCK_BATCH)

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


async def test_invalid_token_rejected(public_client):
    response = await public_client.get(
        "/sync/logs",
        headers={"Authorization": "Bearer not-a-jwt"},
    )

    assert response.status_code == 401


async def test_token_without_uuid_subject_rejected(public_client):
    token = create_access_token(data={"sub": "not-a-uuid"})

    response = await public_client.get("/sync/logs", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid user ID format in token"


async def test_expired_token_rejected(public_client):
    token = create_access_token(data={"sub": "00000000-0000-0000-0000-000000000001"}, expires_delta=timedelta(-1))

    response = await public_client.get("/sync/logs", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


# =============================================================================
# Reconcile
# =============================================================================


async def test_reconcile_batch(client):
    """GIVEN: a stock batch with a same-batch duplicate and an unusable item
    WHEN: posting it to /reconcile
    THEN: each item is classified and a sync run is logged"""
    response = await client.post("/reconcile", json=STOCK_BATCH)

    assert response.status_code == 200
    data = response.json()
    assert [item["index"] for item in data["created"]] == [0]
    assert [item["index"] for item in data["updated"]] == [1]
    assert data["updated"][0]["matched_record_id"] == data["created"][0]["record_id"]
    assert data["updated"][0]["score"] == 100
    assert data["failed"][0]["status"] == "failed"
    assert "symbol" in data["failed"][0]["reason"]
    assert data["sync_run_id"] is not None

    logs = await client.get("/sync/logs")
    assert logs.status_code == 200
    runs = logs.json()
    assert runs["total"] == 1
    run = runs["items"][0]
    assert run["id"] == data["sync_run_id"]
    assert run["status"] == "partial"
    assert (run["records_created"], run["records_updated"], run["records_failed"]) == (1, 1, 1)


async def test_reconcile_repeat_hits_ledger(client):
    await client.post("/reconcile", json=STOCK_BATCH)

    response = await client.post("/reconcile", json=STOCK_BATCH)

    data = response.json()
    assert [item["reason"] for item in data["skipped_duplicate"]] == ["ledger_hit"]
    assert [item["index"] for item in data["updated"]] == [1]


async def test_reconcile_force_refresh(client):
    await client.post("/reconcile", json=STOCK_BATCH)

    response = await client.post("/reconcile", json={**STOCK_BATCH, "force_refresh": True})

    data = response.json()
    assert data["skipped_duplicate"] == []
    assert [item["index"] for item in data["updated"]] == [0, 1]


async def test_reconcile_rejects_unknown_kind(client):
    response = await client.post("/reconcile", json={**STOCK_BATCH, "entity_kind": "crypto"})

    assert response.status_code == 422


async def test_reconcile_rejects_oversized_batch(client):
    batch = [{"symbol": f"S{i}"} for i in range(1001)]

    response = await client.post("/reconcile", json={**STOCK_BATCH, "batch": batch})

    assert response.status_code == 422


# =============================================================================
# Sync ledger
# =============================================================================


async def test_sync_log_then_check(client):
    log = await client.post(
        "/sync/log",
        json={
            "data_type": "mutual_funds",
            "source": "cams",
            "items": [
                {"source_identifier": "FOLIO-1", "last_known_date": "2024-03-31", "metadata": {"nav": "51.2"}},
                {"source_identifier": "FOLIO-2"},
            ],
        },
    )
    assert log.status_code == 200
    assert log.json() == {"logged_count": 2, "new_count": 2, "updated_count": 0}

    again = await client.post(
        "/sync/log",
        json={"data_type": "mutual_funds", "source": "cams", "items": [{"source_identifier": "FOLIO-1"}]},
    )
    assert again.json() == {"logged_count": 1, "new_count": 0, "updated_count": 1}

    check = await client.post(
        "/sync/check",
        json={"data_type": "mutual_funds", "source": "cams", "identifiers": ["FOLIO-3", "FOLIO-1"]},
    )
    assert check.status_code == 200
    assert check.json() == {"already_synced": ["FOLIO-1"], "not_synced": ["FOLIO-3"]}


async def test_sync_status(client):
    await client.post(
        "/sync/log",
        json={
            "data_type": "stocks",
            "source": "zerodha",
            "items": [{"source_identifier": "TCS", "metadata": {"qty": 3}}],
        },
    )

    response = await client.get("/sync/status", params={"data_type": "stocks", "source": "zerodha"})

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["data_type"] == "stocks"
    assert data["entries"][0]["source_identifier"] == "TCS"
    assert data["entries"][0]["metadata"] == {"qty": 3}
    assert data["last_sync"] is not None


async def test_sync_status_empty(client):
    response = await client.get("/sync/status", params={"data_type": "emis"})

    assert response.status_code == 200
    assert response.json()["total"] == 0
    assert response.json()["last_sync"] is None


async def test_sync_unknown_data_type_is_bad_request(client):
    status = await client.get("/sync/status", params={"data_type": "crypto"})
    check = await client.post(
        "/sync/check", json={"data_type": "crypto", "source": "x", "identifiers": ["a"]}
    )

    assert status.status_code == 400
    assert "Must be one of" in status.json()["detail"]
    assert check.status_code == 400


async def test_sync_check_requires_identifiers(client):
    response = await client.post("/sync/check", json={"data_type": "stocks", "source": "zerodha", "identifiers": []})

    assert response.status_code == 400


# =============================================================================
# Duplicates
# =============================================================================


async def test_duplicate_transactions(client, session_maker, user_id):
    base = datetime(2024, 3, 1, tzinfo=UTC)
    async with session_maker() as session:
        session.add_all(
            [
                Transaction(
                    user_id=user_id,
                    account_number="1234",
                    amount=Decimal("100"),
                    txn_time=base + timedelta(hours=index),
                    duplicate_score=score,
                )
                for index, score in enumerate([80, 60, 40, 5])
            ]
        )
        await session.commit()

    response = await client.get("/duplicates/transactions")
    with_low = await client.get("/duplicates/transactions", params={"min_score": 21})

    assert response.status_code == 200
    assert response.json()["summary"] == {
        "total": 2,
        "high_confidence": 1,
        "medium_confidence": 1,
        "low_confidence": 0,
    }
    assert response.json()["high_confidence"][0]["duplicate_score"] == 80
    assert with_low.json()["summary"]["low_confidence"] == 1


async def test_detect_duplicates(client):
    await client.post(
        "/reconcile",
        json={"entity_kind": "stock", "source": "zerodha", "batch": [{"symbol": "TCS"}]},
    )

    response = await client.post("/duplicates/detect", params={"types": "stocks,emis"})

    assert response.status_code == 200
    assert response.json() == {"duplicates": {}, "summary": {"total_duplicates": 0, "by_type": {}}}


async def test_detect_duplicates_rejects_unknown_type(client):
    response = await client.post("/duplicates/detect", params={"types": "stocks,crypto"})

    assert response.status_code == 400


# =============================================================================
# App
# =============================================================================


async def test_health(public_client):
    response = await public_client.get("/health", headers={"X-Request-ID": "req-123"})

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["checks"]["database"] is True
    assert response.headers["X-Request-ID"] == "req-123"


async def test_sync_log_ledger_failure_is_service_unavailable(client, monkeypatch):
    """GIVEN: the sync ledger rejects writes
    WHEN: a scraper posts to /sync/log
    THEN: the API answers 503 with the request id instead of a bare 500"""

    async def failing_record(*args, **kwargs):
        raise LedgerWriteFailure("database is locked")

    monkeypatch.setattr(sync_ledger, "record", failing_record)

    response = await client.post(
        "/sync/log",
        json={"data_type": "stocks", "source": "zerodha", "items": [{"source_identifier": "TCS"}]},
        headers={"X-Request-ID": "req-ledger"},
    )

    assert response.status_code == 503
    assert response.json() == {"detail": "Sync ledger is temporarily unavailable", "request_id": "req-ledger"}
