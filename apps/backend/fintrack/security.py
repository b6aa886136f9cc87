"""Bearer token verification.

The account service signs HS256 tokens whose ``sub`` is the user's UUID. This
backend shares the secret and only checks signatures and expiry; the minting
helper is kept for local tooling and tests.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from fintrack.config import settings
from fintrack.logger import get_logger

logger = get_logger(__name__)


def create_access_token(data: dict[str, Any], expires_delta: timedelta | None = None) -> str:
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    claims = {**data, "exp": datetime.now(UTC) + lifetime}
    return jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Return the verified claims, or None for expired, tampered or garbage tokens."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        logger.debug("Rejected expired token")
    except jwt.PyJWTError as exc:
        logger.warning("Rejected invalid token", error=str(exc), error_type=type(exc).__name__)
    return None
