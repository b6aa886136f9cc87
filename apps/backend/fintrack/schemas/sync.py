"""Pydantic schemas for sync ledger and sync run APIs."""

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from fintrack.models import DataType, SyncRunStatus
from fintrack.schemas.base import BaseResponse, ListResponse


class SyncLedgerEntryResponse(BaseResponse):
    id: UUID
    data_type: DataType
    source: str
    source_identifier: str
    source_file_hash: str | None = None
    last_known_date: date | None = None
    metadata: dict[str, Any] | None = Field(default=None, validation_alias="item_metadata")
    synced_at: datetime


class SyncStatusResponse(BaseModel):
    data_type: DataType
    source: str | None = None
    entries: list[SyncLedgerEntryResponse]
    total: int
    last_sync: datetime | None = None


class SyncCheckRequest(BaseModel):
    # Plain strings so unknown data types get a 400 from the router
    data_type: str
    source: str = Field(min_length=1, max_length=50)
    identifiers: list[str]


class SyncCheckResponse(BaseModel):
    already_synced: list[str]
    not_synced: list[str]


class SyncLogItem(BaseModel):
    source_identifier: str = Field(min_length=1, max_length=255)
    source_file_hash: str | None = Field(default=None, max_length=64)
    last_known_date: date | None = None
    metadata: dict[str, Any] | None = None


class SyncLogRequest(BaseModel):
    data_type: str
    source: str = Field(min_length=1, max_length=50)
    items: list[SyncLogItem]


class SyncLogResponse(BaseModel):
    logged_count: int
    new_count: int
    updated_count: int


class SyncRunResponse(BaseResponse):
    id: UUID
    data_type: DataType
    source: str
    status: SyncRunStatus
    records_processed: int
    records_created: int
    records_updated: int
    records_skipped: int
    records_failed: int
    error_message: str | None = None
    created_at: datetime


SyncRunListResponse = ListResponse[SyncRunResponse]
