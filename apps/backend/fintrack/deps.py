"""Annotated dependency aliases used by every router.

    async def reconcile_batch(payload: ReconcileRequest, db: DbSession, user_id: CurrentUserId, oracle: Oracle):
        ...

``Oracle`` resolves to None when no OpenRouter key is configured; tests
override ``get_similarity_oracle`` to inject a stub.
"""

from typing import Annotated
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fintrack.auth import get_current_user_id
from fintrack.database import get_db
from fintrack.services.oracle import SimilarityOracle, get_similarity_oracle

DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUserId = Annotated[UUID, Depends(get_current_user_id)]
Oracle = Annotated[SimilarityOracle | None, Depends(get_similarity_oracle)]

__all__ = ["CurrentUserId", "DbSession", "Oracle"]
