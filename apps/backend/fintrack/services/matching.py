"""Match rules engine.

One deterministic rule per entity kind decides whether a candidate record
duplicates a stored one. Kinds configured for escalation additionally look
for near-misses and ask the semantic oracle about the closest one.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import timedelta
from decimal import Decimal
from difflib import SequenceMatcher
from enum import Enum
from pathlib import Path
from typing import Any
from uuid import UUID

import yaml

from fintrack.config import parse_comma_list, settings
from fintrack.logger import get_logger
from fintrack.models.kinds import EntityKind
from fintrack.services.errors import MissingRequiredField
from fintrack.services.fingerprint import FingerprintKey, accounts_match, fingerprint
from fintrack.services.oracle import SimilarityOracle, describe_record

logger = get_logger(__name__)


class VerdictKind(str, Enum):
    DISTINCT = "distinct"
    POSSIBLE_DUPLICATE = "possible_duplicate"
    CONFIRMED_DUPLICATE = "confirmed_duplicate"


@dataclass(frozen=True)
class MatchVerdict:
    """Outcome of comparing one candidate against stored records. Never persisted."""

    kind: VerdictKind
    score: int | None = None
    matched_record_id: UUID | None = None


DISTINCT = MatchVerdict(kind=VerdictKind.DISTINCT)


@dataclass(frozen=True)
class StoredRecord:
    """A persisted (or earlier same-batch) record with its fingerprint."""

    record_id: UUID
    record: Mapping[str, Any]
    key: FingerprintKey

    @classmethod
    def build(cls, kind: EntityKind, record_id: UUID, record: Mapping[str, Any]) -> StoredRecord | None:
        """Fingerprint a stored record; rows that cannot be fingerprinted are never matched."""
        try:
            key = fingerprint(kind, record)
        except MissingRequiredField as exc:
            logger.debug(
                "Stored record cannot be fingerprinted",
                kind=kind.value,
                record_id=str(record_id),
                field=exc.field,
            )
            return None
        return cls(record_id=record_id, record=record, key=key)


# =============================================================================
# Configuration
# =============================================================================


@dataclass(frozen=True)
class MatchConfig:
    """Runtime tuning for duplicate matching."""

    transaction_window_minutes: int
    near_miss_amount_tolerance: Decimal
    near_miss_date_days: int
    name_similarity_threshold: float
    confirm_threshold: int
    oracle_timeout_seconds: float
    escalating_kinds: frozenset[EntityKind]


DEFAULT_MATCH_CONFIG = MatchConfig(
    transaction_window_minutes=60,
    near_miss_amount_tolerance=Decimal("0.10"),
    near_miss_date_days=31,
    name_similarity_threshold=0.80,
    confirm_threshold=76,
    oracle_timeout_seconds=settings.oracle_timeout_seconds,
    escalating_kinds=frozenset({EntityKind.EMI}),
)

_config_cache: MatchConfig | None = None


def _parse_escalating_kinds(values: Iterable[str]) -> frozenset[EntityKind]:
    kinds: set[EntityKind] = set()
    for value in values:
        try:
            kind = EntityKind(value)
        except ValueError:
            logger.warning("Unknown entity kind in escalation config - ignored", kind=value)
            continue
        if kind not in NEAR_MISS_FIELDS:
            logger.warning("Entity kind has no near-miss scoring - ignored", kind=value)
            continue
        kinds.add(kind)
    return frozenset(kinds)


def load_match_config(force_reload: bool = False) -> MatchConfig:
    """Load match configuration from YAML if available, then apply DEDUP_* env overrides.

    Caches the result to avoid repeated disk I/O.
    """
    global _config_cache
    if _config_cache is not None and not force_reload:
        return _config_cache

    config = DEFAULT_MATCH_CONFIG
    config_path = Path(__file__).resolve().parents[2] / "config" / "matching.yaml"

    if config_path.exists():
        try:
            raw = yaml.safe_load(config_path.read_text()) or {}
            matching = raw.get("matching", {})
            near_miss = raw.get("near_miss", {})
            escalation = raw.get("escalation", {})

            config = MatchConfig(
                transaction_window_minutes=int(
                    matching.get("transaction_window_minutes", config.transaction_window_minutes)
                ),
                near_miss_amount_tolerance=Decimal(
                    str(near_miss.get("amount_tolerance", config.near_miss_amount_tolerance))
                ),
                near_miss_date_days=int(near_miss.get("date_days", config.near_miss_date_days)),
                name_similarity_threshold=float(
                    near_miss.get("name_similarity", config.name_similarity_threshold)
                ),
                confirm_threshold=int(matching.get("confirm_threshold", config.confirm_threshold)),
                oracle_timeout_seconds=float(
                    escalation.get("oracle_timeout_seconds", config.oracle_timeout_seconds)
                ),
                escalating_kinds=(
                    _parse_escalating_kinds(escalation["kinds"])
                    if "kinds" in escalation
                    else config.escalating_kinds
                ),
            )
        except Exception as e:
            logger.warning(
                "Failed to load match config - using defaults",
                config_path=str(config_path),
                error=str(e),
                error_type=type(e).__name__,
            )

    window_env = os.getenv("DEDUP_TRANSACTION_WINDOW_MINUTES")
    confirm_env = os.getenv("DEDUP_CONFIRM_THRESHOLD")
    kinds_env = os.getenv("DEDUP_ESCALATING_KINDS")
    if window_env:
        config = replace(config, transaction_window_minutes=int(window_env))
    if confirm_env:
        config = replace(config, confirm_threshold=int(confirm_env))
    if kinds_env is not None:
        config = replace(config, escalating_kinds=_parse_escalating_kinds(parse_comma_list(kinds_env, [])))

    _config_cache = config
    return config


# =============================================================================
# Deterministic rules
# =============================================================================

MatchRule = Callable[[FingerprintKey, FingerprintKey, MatchConfig], bool]


def _same_key(a: FingerprintKey, b: FingerprintKey, config: MatchConfig) -> bool:
    return a.fields == b.fields


def _same_transaction(a: FingerprintKey, b: FingerprintKey, config: MatchConfig) -> bool:
    # A shared bank reference identifies the transfer however late the statement posts it
    if a["reference_number"] and a["reference_number"] == b["reference_number"]:
        return True
    window = timedelta(minutes=config.transaction_window_minutes)
    return (
        a["amount"] == b["amount"]
        and accounts_match(a["account_number"], b["account_number"])
        and abs(a["txn_time"] - b["txn_time"]) <= window
    )


def _same_bank_account(a: FingerprintKey, b: FingerprintKey, config: MatchConfig) -> bool:
    return accounts_match(a["account_number"], b["account_number"])


# Every comparison is already scoped to one user by the caller.
MATCH_RULES: dict[EntityKind, MatchRule] = {
    EntityKind.TRANSACTION: _same_transaction,
    EntityKind.STOCK: _same_key,
    EntityKind.MUTUAL_FUND: _same_key,
    EntityKind.FIXED_DEPOSIT: _same_key,
    EntityKind.EMI: _same_key,
    EntityKind.BANK_ACCOUNT: _same_bank_account,
    EntityKind.LONG_TERM_FUND: _same_key,
}


def is_same_record(a: FingerprintKey, b: FingerprintKey, config: MatchConfig | None = None) -> bool:
    """Apply the deterministic rule for the pair's kind."""
    return MATCH_RULES[a.kind](a, b, config or load_match_config())


# =============================================================================
# Near-miss scoring
# =============================================================================


@dataclass(frozen=True)
class NearMissFields:
    """Fingerprint fields a near-miss is judged on."""

    name: str
    amount: str
    when: str


NEAR_MISS_FIELDS: dict[EntityKind, NearMissFields] = {
    EntityKind.EMI: NearMissFields(name="loan_name", amount="emi_amount", when="start_date"),
    EntityKind.FIXED_DEPOSIT: NearMissFields(name="bank_name", amount="principal_amount", when="maturity_date"),
}


@dataclass(frozen=True)
class NearMiss:
    stored: StoredRecord
    score: int


def name_similarity(a: str, b: str) -> float:
    """Similarity ratio (0-1) of two already-normalized names."""
    if not a or not b:
        return 0.0
    return SequenceMatcher(None, a, b).ratio()


def score_near_miss(a: FingerprintKey, b: FingerprintKey, config: MatchConfig) -> int | None:
    """Score (0-100) how close two records are, or None when they are not a near-miss.

    Near-miss: amount and date both close, or names similar and one of
    amount/date close.
    """
    fields = NEAR_MISS_FIELDS[a.kind]
    amount_a, amount_b = a[fields.amount], b[fields.amount]
    largest = max(abs(amount_a), abs(amount_b))
    relative_diff = abs(amount_a - amount_b) / largest if largest else Decimal("0")
    days_apart = abs((a[fields.when] - b[fields.when]).days)
    similarity = name_similarity(a[fields.name], b[fields.name])

    amount_close = relative_diff <= config.near_miss_amount_tolerance
    date_close = days_apart <= config.near_miss_date_days
    name_close = similarity >= config.name_similarity_threshold
    if not ((amount_close and date_close) or (name_close and (amount_close or date_close))):
        return None

    tolerance = config.near_miss_amount_tolerance
    amount_score = max(0.0, 1 - float(relative_diff / tolerance)) if tolerance else float(relative_diff == 0)
    max_days = config.near_miss_date_days
    date_score = max(0.0, 1 - days_apart / max_days) if max_days else float(days_apart == 0)
    return round(100 * (0.4 * amount_score + 0.3 * date_score + 0.3 * similarity))


def best_near_miss(
    key: FingerprintKey,
    existing: Sequence[StoredRecord],
    config: MatchConfig,
) -> NearMiss | None:
    """Highest-scoring near-miss; ties go to the earliest stored record."""
    best: NearMiss | None = None
    for stored in existing:
        score = score_near_miss(key, stored.key, config)
        if score is not None and (best is None or score > best.score):
            best = NearMiss(stored=stored, score=score)
    return best


# =============================================================================
# Engine
# =============================================================================


async def _ask_oracle(
    kind: EntityKind,
    candidate: Mapping[str, Any],
    near_miss: NearMiss,
    oracle: SimilarityOracle,
    config: MatchConfig,
) -> MatchVerdict:
    try:
        same = await asyncio.wait_for(
            oracle.is_duplicate(
                describe_record(kind, candidate),
                describe_record(kind, near_miss.stored.record),
            ),
            timeout=config.oracle_timeout_seconds,
        )
    except Exception as exc:
        # Whatever the oracle raises, the deterministic verdict stands
        logger.warning(
            "Oracle unavailable - falling back to deterministic verdict",
            kind=kind.value,
            near_miss_score=near_miss.score,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return DISTINCT

    if not same:
        return DISTINCT
    if near_miss.score >= config.confirm_threshold:
        return MatchVerdict(
            kind=VerdictKind.CONFIRMED_DUPLICATE,
            score=near_miss.score,
            matched_record_id=near_miss.stored.record_id,
        )
    return MatchVerdict(
        kind=VerdictKind.POSSIBLE_DUPLICATE,
        score=near_miss.score,
        matched_record_id=near_miss.stored.record_id,
    )


async def match(
    kind: EntityKind,
    candidate: Mapping[str, Any],
    existing: Sequence[StoredRecord],
    *,
    oracle: SimilarityOracle | None = None,
    config: MatchConfig | None = None,
) -> MatchVerdict:
    """Classify ``candidate`` against ``existing`` records of the same user and kind.

    Deterministic rules run first, in ``existing`` order, and the first hit
    wins. The oracle is consulted only for escalating kinds with a near-miss;
    when it is missing, slow or failing the verdict is ``distinct``.

    Raises:
        MissingRequiredField: the candidate cannot be fingerprinted.
    """
    config = config or load_match_config()
    key = fingerprint(kind, candidate)
    rule = MATCH_RULES[kind]

    for stored in existing:
        if rule(key, stored.key, config):
            return MatchVerdict(
                kind=VerdictKind.CONFIRMED_DUPLICATE,
                score=100,
                matched_record_id=stored.record_id,
            )

    if kind not in config.escalating_kinds or kind not in NEAR_MISS_FIELDS:
        return DISTINCT

    near_miss = best_near_miss(key, existing, config)
    if near_miss is None:
        return DISTINCT
    if oracle is None:
        logger.info(
            "Near-miss found but no oracle configured",
            kind=kind.value,
            near_miss_score=near_miss.score,
            matched_record_id=str(near_miss.stored.record_id),
        )
        return DISTINCT
    return await _ask_oracle(kind, candidate, near_miss, oracle, config)
