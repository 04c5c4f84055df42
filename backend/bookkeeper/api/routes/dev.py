"""Developer utilities."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bookkeeper.api.dependencies import get_current_user_id, get_db_session
from bookkeeper.models.schemas import PurgeResponse
from bookkeeper.services.purge_service import PurgeService

router = APIRouter(prefix="/dev", tags=["dev"])


@router.post("/purge-my-data", response_model=PurgeResponse)
async def purge_my_data(
    db: AsyncSession = Depends(get_db_session),
    user_id: int = Depends(get_current_user_id),
):
    """Wipe everything the caller owns; the login itself survives.

    Failures roll back and surface through the generic 500 handler.
    """
    await PurgeService().purge_user_data(db, user_id)
    return PurgeResponse(ok=True)
