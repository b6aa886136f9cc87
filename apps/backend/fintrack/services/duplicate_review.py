"""Duplicate review: scored transactions for the review UI and stored-duplicate scans."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fintrack.logger import get_logger
from fintrack.models import DataType, EntityKind, Transaction
from fintrack.services import entity_gateway
from fintrack.services.matching import MatchConfig, StoredRecord, is_same_record, load_match_config

logger = get_logger(__name__)

DEFAULT_MIN_SCORE = 51
DEFAULT_LIMIT = 100


class ConfidenceTier(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# Lower bounds, checked highest first
TIER_FLOORS: tuple[tuple[ConfidenceTier, int], ...] = (
    (ConfidenceTier.HIGH, 76),
    (ConfidenceTier.MEDIUM, 51),
    (ConfidenceTier.LOW, 21),
)


def confidence_tier(score: int | None) -> ConfidenceTier | None:
    """Tier of a duplicate score; scores of 20 and below have none."""
    if score is None:
        return None
    for tier, floor in TIER_FLOORS:
        if score >= floor:
            return tier
    return None


@dataclass
class DuplicateBuckets:
    high_confidence: list[Transaction] = field(default_factory=list)
    medium_confidence: list[Transaction] = field(default_factory=list)
    low_confidence: list[Transaction] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.high_confidence) + len(self.medium_confidence) + len(self.low_confidence)


def bucket_by_confidence(transactions: Iterable[Transaction]) -> DuplicateBuckets:
    """Group transactions into confidence tiers, keeping their order."""
    buckets = DuplicateBuckets()
    for txn in transactions:
        tier = confidence_tier(txn.duplicate_score)
        if tier is None:
            continue
        getattr(buckets, f"{tier.value}_confidence").append(txn)
    return buckets


async def get_duplicate_transactions(
    db: AsyncSession,
    user_id: UUID,
    min_score: int = DEFAULT_MIN_SCORE,
    limit: int = DEFAULT_LIMIT,
) -> DuplicateBuckets:
    """Highest-scored suspected duplicates first, bucketed by tier."""
    result = await db.execute(
        select(Transaction)
        .where(
            Transaction.user_id == user_id,
            Transaction.duplicate_score >= min_score,
        )
        .order_by(Transaction.duplicate_score.desc(), Transaction.txn_time.desc())
        .limit(limit)
    )
    return bucket_by_confidence(result.scalars())


# =============================================================================
# Stored-duplicate scan
# =============================================================================


@dataclass
class DuplicateGroup:
    """The earliest stored record and the later ones that duplicate it."""

    record_id: UUID
    duplicate_ids: list[UUID] = field(default_factory=list)


@dataclass
class DuplicateScan:
    groups: dict[DataType, list[DuplicateGroup]] = field(default_factory=dict)

    @property
    def by_type(self) -> dict[DataType, int]:
        return {data_type: len(groups) for data_type, groups in self.groups.items()}

    @property
    def total_duplicates(self) -> int:
        return sum(self.by_type.values())


def group_duplicates(records: Sequence[StoredRecord], config: MatchConfig) -> list[DuplicateGroup]:
    """Attach each record to the first earlier record it duplicates."""
    primaries: list[tuple[StoredRecord, DuplicateGroup]] = []
    for record in records:
        for primary, group in primaries:
            if is_same_record(primary.key, record.key, config):
                group.duplicate_ids.append(record.record_id)
                break
        else:
            primaries.append((record, DuplicateGroup(record_id=record.record_id)))
    return [group for _, group in primaries if group.duplicate_ids]


async def scan_stored_duplicates(
    db: AsyncSession,
    user_id: UUID,
    data_types: Iterable[DataType] | None = None,
    config: MatchConfig | None = None,
) -> DuplicateScan:
    """Find duplicates among already-stored records with the deterministic rules."""
    config = config or load_match_config()
    scan = DuplicateScan()
    for data_type in data_types or list(DataType):
        kind: EntityKind = data_type.entity_kind
        rows = await entity_gateway.find_candidates(db, kind, user_id)
        records = [
            record
            for record in (StoredRecord.build(kind, row.id, entity_gateway.row_to_record(row)) for row in rows)
            if record is not None
        ]
        groups = group_duplicates(records, config)
        if groups:
            scan.groups[data_type] = groups

    logger.info(
        "Stored duplicate scan completed",
        user_id=str(user_id),
        total_duplicates=scan.total_duplicates,
    )
    return scan
