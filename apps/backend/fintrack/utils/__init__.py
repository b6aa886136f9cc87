"""Router helpers and log/prompt masking."""

from .exceptions import parse_enum_param, raise_bad_request, raise_unauthorized
from .masking import SENSITIVE_KEYS, mask_account_number

__all__ = [
    "SENSITIVE_KEYS",
    "mask_account_number",
    "parse_enum_param",
    "raise_bad_request",
    "raise_unauthorized",
]
