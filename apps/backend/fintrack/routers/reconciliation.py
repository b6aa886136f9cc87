"""Reconcile API router."""

from fastapi import APIRouter

from fintrack.deps import CurrentUserId, DbSession, Oracle
from fintrack.schemas import ReconcileRequest, ReconcileResponse
from fintrack.services.reconciliation import reconcile

router = APIRouter(tags=["reconciliation"])


@router.post("/reconcile", response_model=ReconcileResponse)
async def reconcile_batch(
    payload: ReconcileRequest,
    db: DbSession,
    user_id: CurrentUserId,
    oracle: Oracle,
) -> ReconcileResponse:
    """Classify an ingested batch as created / updated / skipped_duplicate / failed.

    Item failures are reported per item; the request itself succeeds.
    """
    result = await reconcile(
        db,
        user_id,
        payload.entity_kind,
        payload.source,
        payload.batch,
        force_refresh=payload.force_refresh,
        oracle=oracle,
    )
    return ReconcileResponse.model_validate(result)
