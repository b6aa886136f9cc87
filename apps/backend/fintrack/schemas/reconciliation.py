"""Pydantic schemas for the reconcile API."""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from fintrack.models import EntityKind
from fintrack.schemas.base import BaseResponse
from fintrack.services.reconciliation import ItemStatus

MAX_BATCH_SIZE = 1000


class ReconcileRequest(BaseModel):
    """A batch of raw records of one kind from one ingestion source."""

    entity_kind: EntityKind
    source: str = Field(min_length=1, max_length=50, description="sms, email, zerodha, cams, ...")
    batch: list[dict[str, Any]] = Field(max_length=MAX_BATCH_SIZE)
    force_refresh: bool = Field(
        default=False,
        description="Re-process items whose source_identifier is already in the sync ledger",
    )


class ItemOutcomeResponse(BaseResponse):
    index: int
    status: ItemStatus
    source_identifier: str | None = None
    record_id: UUID | None = None
    reason: str | None = None
    score: int | None = None
    matched_record_id: UUID | None = None


class ReconcileResponse(BaseResponse):
    created: list[ItemOutcomeResponse]
    updated: list[ItemOutcomeResponse]
    skipped_duplicate: list[ItemOutcomeResponse]
    failed: list[ItemOutcomeResponse]
    sync_run_id: UUID | None = None
