"""Entity kinds handled by reconciliation and their sync-ledger data types."""

from enum import Enum


class EntityKind(str, Enum):
    """Kind of financial record a batch carries."""

    TRANSACTION = "transaction"
    STOCK = "stock"
    MUTUAL_FUND = "mutual_fund"
    FIXED_DEPOSIT = "fixed_deposit"
    EMI = "emi"
    BANK_ACCOUNT = "bank_account"
    LONG_TERM_FUND = "long_term_fund"

    @property
    def data_type(self) -> "DataType":
        return _KIND_TO_DATA_TYPE[self]


class DataType(str, Enum):
    """Sync-ledger data type names used by scrapers and ingestion jobs."""

    TRANSACTIONS = "transactions"
    STOCKS = "stocks"
    MUTUAL_FUNDS = "mutual_funds"
    FIXED_DEPOSITS = "fixed_deposits"
    EMIS = "emis"
    BANK_ACCOUNTS = "bank_accounts"
    LONG_TERM = "long_term"

    @property
    def entity_kind(self) -> EntityKind:
        return _DATA_TYPE_TO_KIND[self]


_KIND_TO_DATA_TYPE = {
    EntityKind.TRANSACTION: DataType.TRANSACTIONS,
    EntityKind.STOCK: DataType.STOCKS,
    EntityKind.MUTUAL_FUND: DataType.MUTUAL_FUNDS,
    EntityKind.FIXED_DEPOSIT: DataType.FIXED_DEPOSITS,
    EntityKind.EMI: DataType.EMIS,
    EntityKind.BANK_ACCOUNT: DataType.BANK_ACCOUNTS,
    EntityKind.LONG_TERM_FUND: DataType.LONG_TERM,
}
_DATA_TYPE_TO_KIND = {data_type: kind for kind, data_type in _KIND_TO_DATA_TYPE.items()}
