"""Reconciliation error taxonomy."""


class ReconciliationError(Exception):
    """Base class for reconciliation failures."""


class MissingRequiredField(ReconciliationError):
    """A record lacks a field its fingerprint needs."""

    def __init__(self, kind: str, field: str, detail: str | None = None):
        self.kind = kind
        self.field = field
        message = f"{kind} record is missing required field '{field}'"
        if detail:
            message = f"{kind} record has unusable field '{field}': {detail}"
        super().__init__(message)


class OracleUnavailable(ReconciliationError):
    """The semantic similarity oracle could not produce an answer."""


class OracleTimeout(OracleUnavailable):
    """The oracle did not answer within the configured timeout."""


class LedgerWriteFailure(ReconciliationError):
    """Writing to the sync ledger failed. Never fatal to a batch."""


class StorageTransactionFailure(ReconciliationError):
    """The entity store rejected the batch transaction."""
