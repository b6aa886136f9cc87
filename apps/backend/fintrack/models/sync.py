"""Sync ledger and sync run history."""

from datetime import UTC, date, datetime
from enum import Enum
from typing import Any

from sqlalchemy import Date, DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from fintrack.database import Base
from fintrack.models.base import JSONType, UserOwnedMixin, UUIDMixin
from fintrack.models.kinds import DataType

_data_type_enum = SQLEnum(
    DataType,
    name="sync_data_type_enum",
    values_callable=lambda obj: [e.value for e in obj],
)


class SyncLedgerEntry(Base, UUIDMixin, UserOwnedMixin):
    """
    Identifier of an external item that has already been ingested.

    This is a cache: losing rows only causes re-processing. One row per
    (user_id, data_type, source, source_identifier); repeated sightings update
    the row in place and advance `synced_at`.
    """

    __tablename__ = "sync_ledger_entries"
    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "data_type",
            "source",
            "source_identifier",
            name="uq_sync_ledger_user_type_source_identifier",
        ),
    )

    data_type: Mapped[DataType] = mapped_column(_data_type_enum, nullable=False)
    source: Mapped[str] = mapped_column(String(50), nullable=False)
    source_identifier: Mapped[str] = mapped_column(String(255), nullable=False)
    source_file_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    last_known_date: Mapped[date | None] = mapped_column(
        Date, nullable=True, comment="Latest date the source portal reported for the item"
    )
    # "metadata" is reserved on declarative classes
    item_metadata: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSONType, nullable=True)
    synced_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    def __repr__(self) -> str:
        return f"<SyncLedgerEntry {self.data_type.value}/{self.source}/{self.source_identifier}>"


class SyncRunStatus(str, Enum):
    """Outcome of one reconcile call."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class SyncRun(Base, UUIDMixin, UserOwnedMixin):
    """Summary row written after every reconcile batch."""

    __tablename__ = "sync_runs"
    __table_args__ = (Index("ix_sync_runs_user_created_at", "user_id", "created_at"),)

    data_type: Mapped[DataType] = mapped_column(_data_type_enum, nullable=False)
    source: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[SyncRunStatus] = mapped_column(
        SQLEnum(
            SyncRunStatus,
            name="sync_run_status_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
    )
    records_processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    records_created: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    records_updated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    records_skipped: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    records_failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
