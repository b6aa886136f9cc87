"""Fingerprint builders.

A fingerprint is the normalized comparison key of a raw record. Building one
is pure: the same record always produces the same key, and cosmetic variants
(masked account numbers, letter case, stray whitespace) collapse together.
"""

from __future__ import annotations

import hashlib
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, date, datetime, time
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from fintrack.config import settings
from fintrack.models.kinds import EntityKind
from fintrack.services.errors import MissingRequiredField

_ACCOUNT_MASK_RE = re.compile(r"[*\s-]")
# X is a mask only in otherwise numeric numbers; "HDFCX01" keeps its X
_MASKED_DIGITS_RE = re.compile(r"[0-9Xx]*")
_WHITESPACE_RE = re.compile(r"\s+")

AUTO_ACCOUNT_PREFIX = "AUTO_"
MIN_ACCOUNT_SUFFIX_DIGITS = 4

TRANSACTION_TIME_FIELDS = ("txn_time", "transaction_date", "date")


@dataclass(frozen=True)
class FingerprintKey:
    """Normalized comparison key of one record."""

    kind: EntityKind
    fields: tuple[tuple[str, Any], ...]

    def __getitem__(self, name: str) -> Any:
        for key, value in self.fields:
            if key == name:
                return value
        raise KeyError(name)

    def as_dict(self) -> dict[str, Any]:
        return dict(self.fields)


# =============================================================================
# Normalizers
# =============================================================================


def normalize_account_number(raw: str | None, bank_name: str | None = None) -> str:
    """Strip mask characters from an account number.

    A fully masked value ("XXXX-XXXX") leaves nothing to compare, so a stable
    pseudo-identifier is derived from the bank name and the raw input instead.
    """
    raw = raw or ""
    cleaned = _ACCOUNT_MASK_RE.sub("", raw)
    if _MASKED_DIGITS_RE.fullmatch(cleaned):
        cleaned = cleaned.replace("X", "").replace("x", "")
    cleaned = cleaned.upper()
    if cleaned:
        return cleaned
    seed = f"{(bank_name or '').strip().lower()}|{raw}".encode("utf-8")
    return AUTO_ACCOUNT_PREFIX + hashlib.sha256(seed).hexdigest()[:10].upper()


def accounts_match(a: str, b: str) -> bool:
    """Compare two normalized account numbers.

    A masked last-4 ("1234") matches the full number it ends ("9876541234").
    """
    if a == b:
        return True
    if not (a.isdigit() and b.isdigit()):
        return False
    shorter, longer = sorted((a, b), key=len)
    return len(shorter) >= MIN_ACCOUNT_SUFFIX_DIGITS and longer.endswith(shorter)


def normalize_name(value: str | None) -> str:
    """Case-fold and collapse internal whitespace."""
    if value is None:
        return ""
    return _WHITESPACE_RE.sub(" ", str(value)).strip().casefold()


def normalize_code(value: str | None) -> str:
    """Uppercase an identifier code (symbol, folio) and drop all whitespace."""
    if value is None:
        return ""
    return _WHITESPACE_RE.sub("", str(value)).upper()


def to_money(value: Any, precision: int | None = None) -> Decimal:
    """Convert to a fixed-point Decimal at currency precision."""
    if precision is None:
        precision = settings.currency_precision
    if isinstance(value, float):
        # repr() round-trips; Decimal(float) would carry binary noise
        value = repr(value)
    amount = Decimal(str(value).replace(",", "").strip())
    return amount.quantize(Decimal(1).scaleb(-precision), rounding=ROUND_HALF_UP)


def parse_timestamp(value: Any) -> datetime:
    """Parse a timestamp to an aware UTC datetime. Naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    else:
        parsed = datetime.fromisoformat(str(value).strip())
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        return datetime.fromisoformat(text).date()


# =============================================================================
# Field access
# =============================================================================


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _require(kind: EntityKind, record: Mapping[str, Any], *names: str) -> Any:
    """Return the first non-blank value among ``names`` or raise."""
    for name in names:
        value = record.get(name)
        if not _is_blank(value):
            return value
    raise MissingRequiredField(kind.value, names[0])


def _convert(kind: EntityKind, field: str, value: Any, converter: Callable[[Any], Any]) -> Any:
    try:
        return converter(value)
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise MissingRequiredField(kind.value, field, detail=str(value)) from exc


def _money(kind: EntityKind, record: Mapping[str, Any], field: str) -> Decimal:
    return _convert(kind, field, _require(kind, record, field), to_money)


def _text(kind: EntityKind, record: Mapping[str, Any], field: str) -> str:
    value = normalize_name(_require(kind, record, field))
    if not value:
        raise MissingRequiredField(kind.value, field)
    return value


# =============================================================================
# Per-kind builders
# =============================================================================


def _transaction_key(record: Mapping[str, Any]) -> tuple[tuple[str, Any], ...]:
    kind = EntityKind.TRANSACTION
    raw_account = _require(kind, record, "account_number")
    when = _require(kind, record, *TRANSACTION_TIME_FIELDS)
    return (
        ("account_number", normalize_account_number(str(raw_account), record.get("bank_name"))),
        ("amount", abs(_money(kind, record, "amount"))),
        ("txn_time", _convert(kind, "txn_time", when, parse_timestamp)),
        # Optional bank reference (UPI/IMPS/NEFT id); "" when the source has none
        ("reference_number", normalize_code(record.get("reference_number"))),
    )


def _stock_key(record: Mapping[str, Any]) -> tuple[tuple[str, Any], ...]:
    return (("symbol", normalize_code(_require(EntityKind.STOCK, record, "symbol"))),)


def _mutual_fund_key(record: Mapping[str, Any]) -> tuple[tuple[str, Any], ...]:
    kind = EntityKind.MUTUAL_FUND
    return (
        ("fund_name", _text(kind, record, "fund_name")),
        ("folio_number", normalize_code(_require(kind, record, "folio_number"))),
    )


def _fixed_deposit_key(record: Mapping[str, Any]) -> tuple[tuple[str, Any], ...]:
    kind = EntityKind.FIXED_DEPOSIT
    return (
        ("bank_name", _text(kind, record, "bank_name")),
        ("principal_amount", _money(kind, record, "principal_amount")),
        ("maturity_date", _convert(kind, "maturity_date", _require(kind, record, "maturity_date"), parse_date)),
    )


def _emi_key(record: Mapping[str, Any]) -> tuple[tuple[str, Any], ...]:
    kind = EntityKind.EMI
    return (
        ("loan_name", _text(kind, record, "loan_name")),
        ("emi_amount", _money(kind, record, "emi_amount")),
        ("start_date", _convert(kind, "start_date", _require(kind, record, "start_date"), parse_date)),
    )


def _bank_account_key(record: Mapping[str, Any]) -> tuple[tuple[str, Any], ...]:
    raw_account = _require(EntityKind.BANK_ACCOUNT, record, "account_number")
    return (("account_number", normalize_account_number(str(raw_account), record.get("bank_name"))),)


def _long_term_fund_key(record: Mapping[str, Any]) -> tuple[tuple[str, Any], ...]:
    kind = EntityKind.LONG_TERM_FUND
    return (
        ("fund_type", normalize_name(_require(kind, record, "fund_type"))),
        ("account_number", normalize_account_number(str(_require(kind, record, "account_number")))),
    )


_BUILDERS: dict[EntityKind, Callable[[Mapping[str, Any]], tuple[tuple[str, Any], ...]]] = {
    EntityKind.TRANSACTION: _transaction_key,
    EntityKind.STOCK: _stock_key,
    EntityKind.MUTUAL_FUND: _mutual_fund_key,
    EntityKind.FIXED_DEPOSIT: _fixed_deposit_key,
    EntityKind.EMI: _emi_key,
    EntityKind.BANK_ACCOUNT: _bank_account_key,
    EntityKind.LONG_TERM_FUND: _long_term_fund_key,
}


# Columns a merge must not move: the stored row keeps them unless they are blank
KEY_COLUMNS: dict[EntityKind, frozenset[str]] = {
    EntityKind.TRANSACTION: frozenset({"account_number", "amount", "txn_time", "reference_number"}),
    EntityKind.STOCK: frozenset({"symbol"}),
    EntityKind.MUTUAL_FUND: frozenset({"fund_name", "folio_number"}),
    EntityKind.FIXED_DEPOSIT: frozenset({"bank_name", "principal_amount", "maturity_date"}),
    EntityKind.EMI: frozenset({"loan_name", "emi_amount", "start_date"}),
    EntityKind.BANK_ACCOUNT: frozenset({"account_number"}),
    EntityKind.LONG_TERM_FUND: frozenset({"fund_type", "account_number"}),
}


def fingerprint(kind: EntityKind, record: Mapping[str, Any]) -> FingerprintKey:
    """Build the comparison key for ``record``.

    Raises:
        MissingRequiredField: a field the key depends on is absent, blank or unparseable.
    """
    return FingerprintKey(kind=kind, fields=_BUILDERS[kind](record))
