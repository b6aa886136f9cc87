"""Duplicate review API router."""

from fastapi import APIRouter, Query

from fintrack.config import parse_comma_list
from fintrack.deps import CurrentUserId, DbSession
from fintrack.models import DataType
from fintrack.schemas import (
    DuplicateGroupResponse,
    DuplicateScanResponse,
    DuplicateScanSummary,
    DuplicateSummary,
    DuplicateTransactionResponse,
    DuplicateTransactionsResponse,
)
from fintrack.services import duplicate_review
from fintrack.utils import parse_enum_param

router = APIRouter(prefix="/duplicates", tags=["duplicates"])


@router.get("/transactions", response_model=DuplicateTransactionsResponse)
async def list_duplicate_transactions(
    db: DbSession,
    user_id: CurrentUserId,
    min_score: int = Query(default=duplicate_review.DEFAULT_MIN_SCORE, ge=0, le=100),
    limit: int = Query(default=duplicate_review.DEFAULT_LIMIT, ge=1, le=500),
) -> DuplicateTransactionsResponse:
    """Transactions flagged as possible duplicates, bucketed by confidence."""
    buckets = await duplicate_review.get_duplicate_transactions(db, user_id, min_score=min_score, limit=limit)

    def _serialize(transactions: list) -> list[DuplicateTransactionResponse]:
        return [DuplicateTransactionResponse.model_validate(txn) for txn in transactions]

    return DuplicateTransactionsResponse(
        high_confidence=_serialize(buckets.high_confidence),
        medium_confidence=_serialize(buckets.medium_confidence),
        low_confidence=_serialize(buckets.low_confidence),
        summary=DuplicateSummary(
            total=buckets.total,
            high_confidence=len(buckets.high_confidence),
            medium_confidence=len(buckets.medium_confidence),
            low_confidence=len(buckets.low_confidence),
        ),
    )


@router.post("/detect", response_model=DuplicateScanResponse)
async def detect_duplicates(
    db: DbSession,
    user_id: CurrentUserId,
    types: str = Query(default="all", description="Comma-separated data types, or 'all'"),
) -> DuplicateScanResponse:
    """Scan stored records for duplicates that slipped in before reconciliation."""
    requested = parse_comma_list(types, [])
    if not requested or requested == ["all"]:
        data_types = list(DataType)
    else:
        data_types = [parse_enum_param(DataType, value, "type") for value in requested]

    scan = await duplicate_review.scan_stored_duplicates(db, user_id, data_types)
    return DuplicateScanResponse(
        duplicates={
            data_type.value: [
                DuplicateGroupResponse(
                    record_id=group.record_id,
                    duplicate_ids=group.duplicate_ids,
                    duplicate_count=len(group.duplicate_ids),
                )
                for group in groups
            ]
            for data_type, groups in scan.groups.items()
        },
        summary=DuplicateScanSummary(
            total_duplicates=scan.total_duplicates,
            by_type={data_type.value: count for data_type, count in scan.by_type.items()},
        ),
    )
