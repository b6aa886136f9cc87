"""Pydantic schemas for duplicate review APIs."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel

from fintrack.schemas.base import BaseResponse


class DuplicateTransactionResponse(BaseResponse):
    id: UUID
    account_number: str
    bank_name: str | None = None
    amount: Decimal
    txn_time: datetime
    merchant: str | None = None
    description: str | None = None
    source: str | None = None
    duplicate_score: int


class DuplicateSummary(BaseModel):
    total: int
    high_confidence: int
    medium_confidence: int
    low_confidence: int


class DuplicateTransactionsResponse(BaseModel):
    """Suspected duplicates grouped by tier: high >= 76, medium 51-75, low 21-50."""

    high_confidence: list[DuplicateTransactionResponse]
    medium_confidence: list[DuplicateTransactionResponse]
    low_confidence: list[DuplicateTransactionResponse]
    summary: DuplicateSummary


class DuplicateGroupResponse(BaseResponse):
    record_id: UUID
    duplicate_ids: list[UUID]
    duplicate_count: int


class DuplicateScanSummary(BaseModel):
    total_duplicates: int
    by_type: dict[str, int]


class DuplicateScanResponse(BaseModel):
    duplicates: dict[str, list[DuplicateGroupResponse]]
    summary: DuplicateScanSummary
