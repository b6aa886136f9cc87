"""SQLAlchemy models package."""

from fintrack.models.banking import BankAccount, Transaction, TransactionType
from fintrack.models.investments import FixedDeposit, LongTermFund, MutualFund, Stock
from fintrack.models.kinds import DataType, EntityKind
from fintrack.models.loans import Emi
from fintrack.models.sync import SyncLedgerEntry, SyncRun, SyncRunStatus

__all__ = [
    "BankAccount",
    "DataType",
    "Emi",
    "EntityKind",
    "FixedDeposit",
    "LongTermFund",
    "MutualFund",
    "Stock",
    "SyncLedgerEntry",
    "SyncRun",
    "SyncRunStatus",
    "Transaction",
    "TransactionType",
]
