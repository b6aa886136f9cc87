"""Base model mixins for common patterns."""

from datetime import UTC, datetime
from uuid import UUID, uuid4

from sqlalchemy import JSON, DateTime, String, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class UUIDMixin:
    """Mixin for UUID primary key."""

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)


class UserOwnedMixin:
    """Mixin for user ownership tracking."""

    user_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)


class TimestampMixin:
    """Mixin for created_at/updated_at timestamps with UTC timezone."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )


class SourceTrackedMixin:
    """Mixin for records that arrive from an external ingestion source."""

    source: Mapped[str | None] = mapped_column(String(50), nullable=True, comment="sms, cams, zerodha, ...")
    source_identifier: Mapped[str | None] = mapped_column(
        String(255), nullable=True, comment="External natural key (ticker, folio, ...)"
    )
