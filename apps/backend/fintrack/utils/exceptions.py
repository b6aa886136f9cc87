"""HTTP error shortcuts shared by the routers."""

from enum import Enum
from typing import NoReturn, TypeVar

from fastapi import HTTPException, status

E = TypeVar("E", bound=Enum)


def raise_bad_request(detail: str, *, cause: Exception | None = None) -> NoReturn:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail) from cause


def raise_unauthorized(detail: str, *, cause: Exception | None = None) -> NoReturn:
    """401 with the bearer challenge clients expect."""
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    ) from cause


def parse_enum_param(enum_cls: type[E], value: str, param: str) -> E:
    """Coerce a free-text query/body value into ``enum_cls`` or answer 400 listing the valid values."""
    try:
        return enum_cls(value.strip())
    except ValueError as exc:
        valid = ", ".join(str(member.value) for member in enum_cls)
        raise_bad_request(f"Invalid {param} '{value}'. Must be one of: {valid}", cause=exc)
