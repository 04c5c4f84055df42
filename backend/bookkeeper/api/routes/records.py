"""API routes for ledger records."""

from __future__ import annotations

import datetime as dt
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from bookkeeper.api.dependencies import get_current_user_id, get_db_session
from bookkeeper.models.schemas import RecordCreate, RecordListResponse, RecordRead
from bookkeeper.services.record_service import RecordService

router = APIRouter(prefix="/records", tags=["records"])


@router.post("", response_model=RecordRead, status_code=status.HTTP_201_CREATED)
async def create_record(
    payload: RecordCreate,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
    user_id: int = Depends(get_current_user_id),
):
    record, source = await RecordService().create_record(db, user_id, payload)
    response.headers["X-Category-Source"] = source
    return RecordRead.model_validate(record)


@router.get("", response_model=RecordListResponse)
async def list_records(
    account_id: Optional[int] = None,
    group_id: Optional[int] = None,
    start: Optional[dt.datetime] = None,
    end: Optional[dt.datetime] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db_session),
    user_id: int = Depends(get_current_user_id),
):
    """List records newest first, optionally filtered by account, group or date range."""
    rows, total = await RecordService().list_records(
        db,
        user_id,
        account_id=account_id,
        group_id=group_id,
        start=start,
        end=end,
        limit=limit,
        offset=offset,
    )
    return RecordListResponse(records=[RecordRead.model_validate(r) for r in rows], total=total)


@router.get("/{record_id}", response_model=RecordRead)
async def get_record(
    record_id: int,
    db: AsyncSession = Depends(get_db_session),
    user_id: int = Depends(get_current_user_id),
):
    return RecordRead.model_validate(await RecordService().get_record(db, user_id, record_id))


@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_record(
    record_id: int,
    db: AsyncSession = Depends(get_db_session),
    user_id: int = Depends(get_current_user_id),
):
    """Delete a record and undo its effect on the account."""
    await RecordService().delete_record(db, user_id, record_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
