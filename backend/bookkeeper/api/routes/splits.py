"""API routes for group expense splits."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from bookkeeper.api.dependencies import get_current_user_id, get_db_session
from bookkeeper.models.schemas import MarkPaidResponse, MessageResponse, SplitCreate, SplitRead, SplitStats
from bookkeeper.services.split_service import SplitService

router = APIRouter(prefix="/splits", tags=["splits"])


@router.post("", response_model=SplitRead, status_code=status.HTTP_201_CREATED)
async def create_split(
    payload: SplitCreate,
    db: AsyncSession = Depends(get_db_session),
    user_id: int = Depends(get_current_user_id),
):
    split = await SplitService().create_split(db, user_id, payload)
    return SplitRead.model_validate(split)


@router.get("", response_model=List[SplitRead])
async def list_splits(
    group: int = Query(..., description="Group id"),
    db: AsyncSession = Depends(get_db_session),
    user_id: int = Depends(get_current_user_id),
):
    splits = await SplitService().list_splits(db, user_id, group)
    return [SplitRead.model_validate(s) for s in splits]


@router.get("/stats", response_model=SplitStats)
async def split_stats(
    group: Optional[int] = None,
    db: AsyncSession = Depends(get_db_session),
    user_id: int = Depends(get_current_user_id),
):
    return await SplitService().stats(db, user_id, group)


@router.patch("/{split_id}/settle", response_model=MessageResponse)
async def settle_split(
    split_id: int,
    db: AsyncSession = Depends(get_db_session),
    user_id: int = Depends(get_current_user_id),
):
    """Close a fully paid split (payer only)."""
    await SplitService().settle_split(db, user_id, split_id)
    return MessageResponse(message="Split settled")


@router.patch("/{split_id}/participants/{participant_id}/pay", response_model=MarkPaidResponse)
async def mark_participant_paid(
    split_id: int,
    participant_id: int,
    db: AsyncSession = Depends(get_db_session),
    user_id: int = Depends(get_current_user_id),
):
    """Mark the caller's own share paid; ``participant_id`` is the participant's user id."""
    all_paid = await SplitService().mark_participant_paid(db, user_id, split_id, participant_id)
    return MarkPaidResponse(message="Payment status updated", allPaid=all_paid, autoSettled=all_paid)
