"""Sync ledger API router: what scrapers have already pushed."""

from fastapi import APIRouter, Query
from sqlalchemy import select

from fintrack.deps import CurrentUserId, DbSession
from fintrack.logger import get_logger
from fintrack.models import DataType, SyncRun
from fintrack.schemas import (
    SyncCheckRequest,
    SyncCheckResponse,
    SyncLedgerEntryResponse,
    SyncLogRequest,
    SyncLogResponse,
    SyncRunListResponse,
    SyncRunResponse,
    SyncStatusResponse,
)
from fintrack.services import sync_ledger
from fintrack.utils import parse_enum_param, raise_bad_request

router = APIRouter(prefix="/sync", tags=["sync"])
logger = get_logger(__name__)


def parse_data_type(value: str) -> DataType:
    return parse_enum_param(DataType, value, "data_type")


@router.get("/status", response_model=SyncStatusResponse)
async def get_sync_status(
    db: DbSession,
    user_id: CurrentUserId,
    data_type: str = Query(..., description="transactions, stocks, mutual_funds, ..."),
    source: str | None = Query(default=None),
) -> SyncStatusResponse:
    """Ledger entries, most recently synced first, plus the last sync time."""
    parsed = parse_data_type(data_type)
    ledger = await sync_ledger.status(db, user_id, parsed, source)
    return SyncStatusResponse(
        data_type=parsed,
        source=source,
        entries=[SyncLedgerEntryResponse.model_validate(entry) for entry in ledger.entries],
        total=len(ledger.entries),
        last_sync=ledger.last_sync,
    )


@router.post("/check", response_model=SyncCheckResponse)
async def check_sync(
    payload: SyncCheckRequest,
    db: DbSession,
    user_id: CurrentUserId,
) -> SyncCheckResponse:
    """Tell a scraper which identifiers it can skip."""
    data_type = parse_data_type(payload.data_type)
    if not payload.identifiers:
        raise_bad_request("identifiers must be a non-empty list")

    found = await sync_ledger.lookup(db, user_id, data_type, payload.source, payload.identifiers)
    return SyncCheckResponse(already_synced=found.already_synced, not_synced=found.not_synced)


@router.post("/log", response_model=SyncLogResponse)
async def log_sync(
    payload: SyncLogRequest,
    db: DbSession,
    user_id: CurrentUserId,
) -> SyncLogResponse:
    """Record items a scraper ingested outside the reconcile path."""
    data_type = parse_data_type(payload.data_type)
    items = [sync_ledger.LedgerItem(**item.model_dump()) for item in payload.items]
    outcome = await sync_ledger.record(db, user_id, data_type, payload.source, items)
    await db.commit()
    logger.info(
        "Scraper items logged",
        user_id=str(user_id),
        data_type=data_type.value,
        source=payload.source,
        new=outcome.new_count,
        updated=outcome.updated_count,
    )
    return SyncLogResponse(
        logged_count=outcome.logged_count,
        new_count=outcome.new_count,
        updated_count=outcome.updated_count,
    )


@router.get("/logs", response_model=SyncRunListResponse)
async def list_sync_runs(
    db: DbSession,
    user_id: CurrentUserId,
    limit: int = Query(default=20, ge=1, le=200),
) -> SyncRunListResponse:
    """Recent reconcile runs, newest first."""
    result = await db.execute(
        select(SyncRun).where(SyncRun.user_id == user_id).order_by(SyncRun.created_at.desc()).limit(limit)
    )
    runs = [SyncRunResponse.model_validate(run) for run in result.scalars()]
    return SyncRunListResponse(items=runs, total=len(runs))
