from fintrack.schemas.base import BaseResponse, ListResponse
from fintrack.schemas.duplicates import (
    DuplicateGroupResponse,
    DuplicateScanResponse,
    DuplicateScanSummary,
    DuplicateSummary,
    DuplicateTransactionResponse,
    DuplicateTransactionsResponse,
)
from fintrack.schemas.reconciliation import (
    ItemOutcomeResponse,
    ReconcileRequest,
    ReconcileResponse,
)
from fintrack.schemas.sync import (
    SyncCheckRequest,
    SyncCheckResponse,
    SyncLedgerEntryResponse,
    SyncLogItem,
    SyncLogRequest,
    SyncLogResponse,
    SyncRunListResponse,
    SyncRunResponse,
    SyncStatusResponse,
)

__all__ = [
    "BaseResponse",
    "DuplicateGroupResponse",
    "DuplicateScanResponse",
    "DuplicateScanSummary",
    "DuplicateSummary",
    "DuplicateTransactionResponse",
    "DuplicateTransactionsResponse",
    "ItemOutcomeResponse",
    "ListResponse",
    "ReconcileRequest",
    "ReconcileResponse",
    "SyncCheckRequest",
    "SyncCheckResponse",
    "SyncLedgerEntryResponse",
    "SyncLogItem",
    "SyncLogRequest",
    "SyncLogResponse",
    "SyncRunListResponse",
    "SyncRunResponse",
    "SyncStatusResponse",
]
