"""Masking of account-like identifiers before they leave the service (logs, AI APIs)."""

# Record/log keys whose values identify a real account
SENSITIVE_KEYS = frozenset({"account_number", "fd_number", "folio_number"})


def mask_account_number(account_number: str, visible_digits: int = 4) -> str:
    if len(account_number) <= visible_digits:
        return account_number
    masked_len = len(account_number) - visible_digits
    return "*" * masked_len + account_number[-visible_digits:]
