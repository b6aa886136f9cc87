"""Reconciliation orchestrator.

Classifies each record of an ingested batch as created, updated,
skipped_duplicate or failed:

1. fingerprint the record (unusable records fail on their own);
2. a ``source_identifier`` already in the sync ledger is skipped unless a
   refresh is forced;
3. otherwise the record is matched against the user's stored records of that
   kind plus the records written earlier in the same batch, then inserted,
   merged into its confirmed duplicate, or held back for review;
4. after the entity writes commit, identifiers go back to the ledger.

Entity writes of one batch share a single transaction. Ledger and sync-run
writes happen afterwards and never undo it.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import ColumnElement, false, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fintrack.logger import get_logger, log_exception, log_timing
from fintrack.models import EntityKind, SyncRun, SyncRunStatus, Transaction
from fintrack.services import entity_gateway, sync_ledger
from fintrack.services.errors import LedgerWriteFailure, MissingRequiredField, StorageTransactionFailure
from fintrack.services.fingerprint import fingerprint
from fintrack.services.matching import MatchConfig, StoredRecord, VerdictKind, load_match_config, match
from fintrack.services.oracle import SimilarityOracle

logger = get_logger(__name__)

LEDGER_HIT = "ledger_hit"
POSSIBLE_DUPLICATE = "possible_duplicate"
MAX_ERROR_MESSAGE_LENGTH = 1000


class ItemStatus(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED_DUPLICATE = "skipped_duplicate"
    FAILED = "failed"


@dataclass
class ItemOutcome:
    """Classification of one batch item, by position in the batch."""

    index: int
    status: ItemStatus
    source_identifier: str | None = None
    record_id: UUID | None = None
    reason: str | None = None
    score: int | None = None
    matched_record_id: UUID | None = None


@dataclass
class ReconcileResult:
    created: list[ItemOutcome] = field(default_factory=list)
    updated: list[ItemOutcome] = field(default_factory=list)
    skipped_duplicate: list[ItemOutcome] = field(default_factory=list)
    failed: list[ItemOutcome] = field(default_factory=list)
    sync_run_id: UUID | None = None

    def add(self, outcome: ItemOutcome) -> None:
        getattr(self, outcome.status.value).append(outcome)

    @property
    def processed(self) -> int:
        return len(self.created) + len(self.updated) + len(self.skipped_duplicate) + len(self.failed)

    def outcomes(self) -> list[ItemOutcome]:
        """All outcomes in batch order."""
        return sorted(
            [*self.created, *self.updated, *self.skipped_duplicate, *self.failed],
            key=lambda outcome: outcome.index,
        )


def _source_identifier(item: Mapping[str, Any]) -> str | None:
    value = item.get("source_identifier")
    if value is None:
        return None
    value = str(value).strip()
    return value or None


async def _ledger_hits(
    db: AsyncSession,
    user_id: UUID,
    kind: EntityKind,
    source: str,
    batch: Sequence[Mapping[str, Any]],
) -> set[str]:
    identifiers = [_source_identifier(item) for item in batch]
    if not any(identifiers):
        return set()
    try:
        found = await sync_ledger.lookup(db, user_id, kind.data_type, source, identifiers)
    except SQLAlchemyError as exc:
        # Advisory cache: an unreadable ledger only means nothing is skipped
        await db.rollback()
        log_exception(logger, exc, "Sync ledger lookup failed", level="warning", include_traceback=False)
        return set()
    return set(found.already_synced)


def _candidate_conditions(
    kind: EntityKind,
    batch: Sequence[Mapping[str, Any]],
    config: MatchConfig,
) -> list[ColumnElement[bool]]:
    """Restrict stored transactions to those the batch can possibly match.

    That is every row within the match window of the batch's time span, plus
    rows sharing a bank reference with a batch item. Other kinds load in full.
    """
    if kind is not EntityKind.TRANSACTION:
        return []
    times = []
    references = set()
    for item in batch:
        try:
            key = fingerprint(kind, item)
        except MissingRequiredField:
            continue
        times.append(key["txn_time"])
        if key["reference_number"]:
            references.add(key["reference_number"])
    if not times:
        return [false()]

    window = timedelta(minutes=config.transaction_window_minutes)
    in_window = Transaction.txn_time.between(min(times) - window, max(times) + window)
    if references:
        return [or_(in_window, Transaction.reference_number.in_(sorted(references)))]
    return [in_window]


async def _load_stored(
    db: AsyncSession,
    kind: EntityKind,
    user_id: UUID,
    batch: Sequence[Mapping[str, Any]],
    config: MatchConfig,
) -> list[StoredRecord]:
    rows = await entity_gateway.find_candidates(
        db, kind, user_id, conditions=_candidate_conditions(kind, batch, config)
    )
    stored = []
    for row in rows:
        record = StoredRecord.build(kind, row.id, entity_gateway.row_to_record(row))
        if record is not None:
            stored.append(record)
    return stored


def _remember(stored: list[StoredRecord], kind: EntityKind, row: Any) -> None:
    """Make a row written in this batch visible to the following items."""
    record = StoredRecord.build(kind, row.id, entity_gateway.row_to_record(row))
    if record is None:
        return
    for position, existing in enumerate(stored):
        if existing.record_id == record.record_id:
            stored[position] = record
            return
    stored.append(record)


async def _reconcile_item(
    db: AsyncSession,
    user_id: UUID,
    kind: EntityKind,
    source: str,
    index: int,
    item: Mapping[str, Any],
    stored: list[StoredRecord],
    ledger_hits: set[str],
    oracle: SimilarityOracle | None,
    config: MatchConfig,
) -> ItemOutcome:
    identifier = _source_identifier(item)
    outcome = ItemOutcome(index=index, status=ItemStatus.FAILED, source_identifier=identifier)

    try:
        fingerprint(kind, item)
    except MissingRequiredField as exc:
        outcome.reason = str(exc)
        return outcome

    if identifier and identifier in ledger_hits:
        outcome.status = ItemStatus.SKIPPED_DUPLICATE
        outcome.reason = LEDGER_HIT
        return outcome

    verdict = await match(kind, item, stored, oracle=oracle, config=config)

    if verdict.kind is VerdictKind.POSSIBLE_DUPLICATE:
        outcome.status = ItemStatus.SKIPPED_DUPLICATE
        outcome.reason = POSSIBLE_DUPLICATE
        outcome.score = verdict.score
        outcome.matched_record_id = verdict.matched_record_id
        return outcome

    try:
        if verdict.kind is VerdictKind.CONFIRMED_DUPLICATE:
            row = await entity_gateway.insert_or_update(
                db, kind, user_id, item, record_id=verdict.matched_record_id, source=source
            )
            outcome.status = ItemStatus.UPDATED
            outcome.score = verdict.score
            outcome.matched_record_id = verdict.matched_record_id
        else:
            row = await entity_gateway.insert_or_update(db, kind, user_id, item, source=source)
            outcome.status = ItemStatus.CREATED
    except MissingRequiredField as exc:
        outcome.reason = str(exc)
        return outcome

    outcome.record_id = row.id
    _remember(stored, kind, row)
    return outcome


async def _write_back_ledger(
    db: AsyncSession,
    user_id: UUID,
    kind: EntityKind,
    source: str,
    batch: Sequence[Mapping[str, Any]],
    result: ReconcileResult,
) -> None:
    """Record every successfully handled identifier, ledger hits included."""
    # Possible duplicates stay out so they are re-evaluated on the next sighting
    sighted = [
        outcome
        for outcome in result.outcomes()
        if outcome.source_identifier
        and (
            outcome.status in (ItemStatus.CREATED, ItemStatus.UPDATED)
            or outcome.reason == LEDGER_HIT
        )
    ]
    if not sighted:
        return

    items = []
    for outcome in sighted:
        item = batch[outcome.index]
        try:
            items.append(sync_ledger.LedgerItem.from_mapping(item))
        except (ValueError, TypeError) as exc:
            # The entity is stored; remember its identifier without the bad date
            log_exception(
                logger,
                exc,
                "Unusable last_known_date - ledger entry written without it",
                level="warning",
                include_traceback=False,
                source_identifier=outcome.source_identifier,
            )
            items.append(sync_ledger.LedgerItem.from_mapping({**item, "last_known_date": None}))

    try:
        await sync_ledger.record(db, user_id, kind.data_type, source, items)
        await db.commit()
    except (LedgerWriteFailure, SQLAlchemyError) as exc:
        await db.rollback()
        log_exception(
            logger,
            exc,
            "Sync ledger write-back failed",
            level="warning",
            include_traceback=False,
            user_id=str(user_id),
            kind=kind.value,
            source=source,
        )


def _run_status(result: ReconcileResult) -> SyncRunStatus:
    if result.failed and len(result.failed) == result.processed:
        return SyncRunStatus.FAILED
    if result.failed:
        return SyncRunStatus.PARTIAL
    return SyncRunStatus.SUCCESS


async def _record_sync_run(
    db: AsyncSession,
    user_id: UUID,
    kind: EntityKind,
    source: str,
    result: ReconcileResult,
) -> UUID | None:
    reasons = sorted({outcome.reason for outcome in result.failed if outcome.reason})
    run = SyncRun(
        user_id=user_id,
        data_type=kind.data_type,
        source=source,
        status=_run_status(result),
        records_processed=result.processed,
        records_created=len(result.created),
        records_updated=len(result.updated),
        records_skipped=len(result.skipped_duplicate),
        records_failed=len(result.failed),
        error_message="; ".join(reasons)[:MAX_ERROR_MESSAGE_LENGTH] or None,
    )
    try:
        db.add(run)
        await db.flush()
        run_id = run.id
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        log_exception(logger, exc, "Sync run log write failed", level="warning", include_traceback=False)
        return None
    return run_id


async def reconcile(
    db: AsyncSession,
    user_id: UUID,
    kind: EntityKind,
    source: str,
    batch: Sequence[Mapping[str, Any]],
    *,
    force_refresh: bool = False,
    oracle: SimilarityOracle | None = None,
    config: MatchConfig | None = None,
) -> ReconcileResult:
    """Reconcile an ingested batch for one user and entity kind.

    Items are handled in batch order; one item's failure never aborts its
    siblings. A storage failure rolls back every entity write of the batch and
    reports all items as failed with the storage reason.
    """
    config = config or load_match_config()
    result = ReconcileResult()

    with log_timing("reconcile_batch", logger=logger, kind=kind.value, source=source, batch_size=len(batch)) as timing:
        ledger_hits = set() if force_refresh else await _ledger_hits(db, user_id, kind, source, batch)

        try:
            stored = await _load_stored(db, kind, user_id, batch, config)
            for index, item in enumerate(batch):
                result.add(
                    await _reconcile_item(
                        db, user_id, kind, source, index, item, stored, ledger_hits, oracle, config
                    )
                )
            await db.commit()
        except (StorageTransactionFailure, SQLAlchemyError) as exc:
            await db.rollback()
            log_exception(
                logger,
                exc,
                "Reconcile batch rolled back",
                user_id=str(user_id),
                kind=kind.value,
                source=source,
            )
            reason = f"storage failure: {exc}"
            result = ReconcileResult(
                failed=[
                    ItemOutcome(
                        index=index,
                        status=ItemStatus.FAILED,
                        source_identifier=_source_identifier(item),
                        reason=reason,
                    )
                    for index, item in enumerate(batch)
                ]
            )
        else:
            await _write_back_ledger(db, user_id, kind, source, batch, result)

        result.sync_run_id = await _record_sync_run(db, user_id, kind, source, result)

        timing["created"] = len(result.created)
        timing["updated"] = len(result.updated)
        timing["skipped_duplicate"] = len(result.skipped_duplicate)
        timing["failed"] = len(result.failed)

    return result
