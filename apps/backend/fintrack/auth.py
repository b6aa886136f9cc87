"""Request-scoped user identity.

Every record, ledger entry and run is owned by the user named in the bearer
token; there is no user table here, so the subject is trusted once verified.
"""

from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from fintrack.security import decode_access_token
from fintrack.utils import raise_unauthorized

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> UUID:
    if credentials is None:
        raise_unauthorized("Not authenticated")

    claims = decode_access_token(credentials.credentials)
    if not claims:
        raise_unauthorized("Could not validate credentials")

    subject = claims.get("sub")
    if not subject:
        raise_unauthorized("Token missing subject")

    try:
        return UUID(str(subject))
    except ValueError as exc:
        raise_unauthorized("Invalid user ID format in token", cause=exc)
