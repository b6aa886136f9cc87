"""Entity upsert gateway: storage of reconciled records.

Raw record bags are coerced onto the model columns of their entity kind.
Keys a model does not know are ignored.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from sqlalchemy import ColumnElement, Date, DateTime, Integer, Numeric, String, inspect, select
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fintrack.database import Base
from fintrack.logger import get_logger
from fintrack.models import (
    BankAccount,
    Emi,
    EntityKind,
    FixedDeposit,
    LongTermFund,
    MutualFund,
    Stock,
    Transaction,
)
from fintrack.services.errors import MissingRequiredField, StorageTransactionFailure
from fintrack.services.fingerprint import (
    KEY_COLUMNS,
    TRANSACTION_TIME_FIELDS,
    accounts_match,
    normalize_account_number,
    normalize_code,
    parse_date,
    parse_timestamp,
)

logger = get_logger(__name__)

ENTITY_MODELS: dict[EntityKind, type[Base]] = {
    EntityKind.TRANSACTION: Transaction,
    EntityKind.STOCK: Stock,
    EntityKind.MUTUAL_FUND: MutualFund,
    EntityKind.FIXED_DEPOSIT: FixedDeposit,
    EntityKind.EMI: Emi,
    EntityKind.BANK_ACCOUNT: BankAccount,
    EntityKind.LONG_TERM_FUND: LongTermFund,
}

# Managed by the gateway or the mixins, never taken from a record
_PROTECTED_FIELDS = frozenset({"id", "user_id", "created_at", "updated_at"})

# PostgreSQL INTEGER
_INT_MIN, _INT_MAX = -(2**31), 2**31 - 1


def _coerce(column: Any, value: Any) -> Any:
    column_type = column.type
    if isinstance(column_type, SQLEnum) and column_type.enum_class is not None:
        return column_type.enum_class(str(value).lower())
    if isinstance(column_type, DateTime):
        return parse_timestamp(value)
    if isinstance(column_type, Date):
        return parse_date(value)
    if isinstance(column_type, Numeric):
        return Decimal(str(value).replace(",", "").strip())
    if isinstance(column_type, Integer):
        return int(value)
    return str(value).strip()


def _check_fits(column: Any, value: Any) -> None:
    """Reject values the column would refuse at flush time.

    A database-side error would abort the whole batch transaction, so an
    oversized SMS merchant or a runaway amount has to fail on its own item.
    """
    column_type = column.type
    if isinstance(value, str) and isinstance(column_type, String) and column_type.length is not None:
        if len(value) > column_type.length:
            raise ValueError(f"longer than {column_type.length} characters")
    elif isinstance(value, Decimal) and isinstance(column_type, Numeric) and column_type.precision is not None:
        if not value.is_finite():
            raise ValueError(f"not a finite number: {value}")
        integer_digits = column_type.precision - (column_type.scale or 0)
        if value != 0 and value.adjusted() >= integer_digits:
            raise ValueError(f"more than {integer_digits} integer digits")
    elif isinstance(value, int) and isinstance(column_type, Integer) and not _INT_MIN <= value <= _INT_MAX:
        raise ValueError("out of integer range")


def _normalize_record(kind: EntityKind, record: Mapping[str, Any]) -> dict[str, Any]:
    """Apply kind-specific aliases and cleaning before column coercion."""
    data = dict(record)
    if kind is EntityKind.TRANSACTION:
        for alias in TRANSACTION_TIME_FIELDS:
            if data.get(alias) not in (None, ""):
                data["txn_time"] = data[alias]
                break
        if data.get("amount") not in (None, ""):
            data["amount"] = abs(Decimal(str(data["amount"]).replace(",", "").strip()))
    if kind in (EntityKind.TRANSACTION, EntityKind.BANK_ACCOUNT) and data.get("account_number") is not None:
        data["account_number"] = normalize_account_number(str(data["account_number"]), data.get("bank_name"))
    if kind is EntityKind.TRANSACTION and data.get("reference_number") is not None:
        data["reference_number"] = normalize_code(data["reference_number"])
    if kind is EntityKind.STOCK and data.get("symbol") is not None:
        data["symbol"] = normalize_code(data["symbol"])
    return data


def _may_replace_key(name: str, new: Any, current: Any) -> bool:
    """Whether a merge may overwrite the stored key column ``name``.

    The stored row keeps its key so later sightings are still compared with the
    first one. Blank keys are filled in, and a stored masked account suffix
    gives way to the full number it ends.
    """
    if current is None or current == "":
        return True
    if name == "account_number":
        return len(new) > len(current) and accounts_match(new, current)
    return False


def build_values(kind: EntityKind, record: Mapping[str, Any]) -> dict[str, Any]:
    """Map a record bag onto the columns of ``kind``'s model.

    Blank values are left out so an update never erases stored data.

    Raises:
        MissingRequiredField: a value cannot be converted to its column type or
            does not fit the column.
    """
    mapper = inspect(ENTITY_MODELS[kind])
    try:
        data = _normalize_record(kind, record)
    except (InvalidOperation, ValueError) as exc:
        raise MissingRequiredField(kind.value, "amount", detail=str(record.get("amount"))) from exc

    values: dict[str, Any] = {}
    for attr in mapper.column_attrs:
        if attr.key in _PROTECTED_FIELDS or attr.key not in data:
            continue
        value = data[attr.key]
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        column = attr.columns[0]
        try:
            coerced = _coerce(column, value)
        except (InvalidOperation, ValueError, TypeError) as exc:
            raise MissingRequiredField(kind.value, attr.key, detail=str(value)) from exc
        try:
            _check_fits(column, coerced)
        except ValueError as exc:
            raise MissingRequiredField(kind.value, attr.key, detail=str(exc)) from exc
        values[attr.key] = coerced
    return values


def row_to_record(row: Base) -> dict[str, Any]:
    """Column values of a stored row as a record bag."""
    return {attr.key: getattr(row, attr.key) for attr in inspect(type(row)).column_attrs}


async def find_candidates(
    db: AsyncSession,
    kind: EntityKind,
    user_id: UUID,
    criteria: Mapping[str, Any] | None = None,
    *,
    conditions: Sequence[ColumnElement[bool]] = (),
) -> list[Base]:
    """Stored rows of one user and kind, oldest first.

    ``criteria`` filters by column equality; ``conditions`` are extra SQL
    clauses on the kind's model.
    """
    model = ENTITY_MODELS[kind]
    stmt = select(model).where(model.user_id == user_id, *conditions)
    for name, value in (criteria or {}).items():
        stmt = stmt.where(getattr(model, name) == value)
    stmt = stmt.order_by(model.created_at, model.id)
    result = await db.execute(stmt)
    return list(result.scalars())


async def insert_or_update(
    db: AsyncSession,
    kind: EntityKind,
    user_id: UUID,
    record: Mapping[str, Any],
    *,
    record_id: UUID | None = None,
    source: str | None = None,
) -> Base:
    """Insert a new row, or merge ``record`` into the row ``record_id``.

    A merge fills in and refreshes descriptive columns but keeps the stored
    row's key columns (see ``_may_replace_key``). Changes are flushed, not
    committed.

    Raises:
        MissingRequiredField: a value cannot be converted to its column type.
        StorageTransactionFailure: the database rejected the write.
    """
    model = ENTITY_MODELS[kind]
    values = build_values(kind, record)
    if source:
        values["source"] = source

    try:
        if record_id is None:
            row = model(user_id=user_id, **values)
            db.add(row)
        else:
            row = await db.get(model, record_id)
            if row is None or row.user_id != user_id:
                raise StorageTransactionFailure(f"{kind.value} {record_id} no longer exists")
            key_columns = KEY_COLUMNS[kind]
            for name, value in values.items():
                if name in key_columns and not _may_replace_key(name, value, getattr(row, name)):
                    continue
                setattr(row, name, value)
        await db.flush()
    except SQLAlchemyError as exc:
        logger.error(
            "Entity write failed",
            kind=kind.value,
            user_id=str(user_id),
            record_id=str(record_id) if record_id else None,
            error=str(exc),
        )
        raise StorageTransactionFailure(str(exc)) from exc

    return row
