"""Bank accounts and the transactions parsed from SMS / statements."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import DateTime, Index, Integer, Numeric, String, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from fintrack.database import Base
from fintrack.models.base import SourceTrackedMixin, TimestampMixin, UserOwnedMixin, UUIDMixin


class TransactionType(str, Enum):
    """Money flow direction as reported by the bank."""

    DEBIT = "debit"
    CREDIT = "credit"


class BankAccount(Base, UUIDMixin, UserOwnedMixin, TimestampMixin, SourceTrackedMixin):
    """A savings/current account. `account_number` is stored unmasked-cleaned."""

    __tablename__ = "bank_accounts"

    bank_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    account_number: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    account_type: Mapped[str | None] = mapped_column(String(30), nullable=True)
    account_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    balance: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)

    def __repr__(self) -> str:
        return f"<BankAccount {self.bank_name} {self.account_number}>"


class Transaction(Base, UUIDMixin, UserOwnedMixin, TimestampMixin, SourceTrackedMixin):
    """
    A single bank transaction.

    `duplicate_score` (0-100) is written by upstream review passes and read back
    through the duplicate review endpoint, bucketed into confidence tiers.
    """

    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_user_duplicate_score", "user_id", "duplicate_score"),
        Index("ix_transactions_user_txn_time", "user_id", "txn_time"),
        Index("ix_transactions_user_reference_number", "user_id", "reference_number"),
    )

    account_number: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    bank_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, comment="Absolute value")
    txn_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    transaction_type: Mapped[TransactionType | None] = mapped_column(
        SQLEnum(
            TransactionType,
            name="transaction_type_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=True,
    )
    merchant: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    duplicate_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<Transaction {self.txn_time} {self.account_number} {self.amount}>"
