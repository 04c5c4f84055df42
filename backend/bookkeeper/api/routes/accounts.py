"""API routes for cash, bank and credit-card accounts."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from bookkeeper.api.dependencies import get_current_user_id, get_db_session
from bookkeeper.models.enums import AccountKind
from bookkeeper.models.schemas import (
    AccountCreate,
    AccountRead,
    AccountUpdate,
    RecordRead,
    RepayRequest,
    RepayResponse,
    account_read,
)
from bookkeeper.services.ledger_service import LedgerService

router = APIRouter(prefix="/accounts", tags=["accounts"])


@router.get("", response_model=List[AccountRead])
async def list_accounts(
    kind: Optional[AccountKind] = None,
    db: AsyncSession = Depends(get_db_session),
    user_id: int = Depends(get_current_user_id),
):
    """List the caller's accounts, creating a default cash account for new users."""
    accounts = await LedgerService().list_accounts(db, user_id, kind)
    return [account_read(a) for a in accounts]


@router.post("", response_model=AccountRead, status_code=status.HTTP_201_CREATED)
async def create_account(
    payload: AccountCreate,
    db: AsyncSession = Depends(get_db_session),
    user_id: int = Depends(get_current_user_id),
):
    account = await LedgerService().create_account(db, user_id, payload)
    return account_read(account)


@router.api_route("/{account_id}", methods=["PUT", "PATCH"], response_model=AccountRead)
async def update_account(
    account_id: int,
    payload: AccountUpdate,
    db: AsyncSession = Depends(get_db_session),
    user_id: int = Depends(get_current_user_id),
):
    account = await LedgerService().update_account(db, user_id, account_id, payload)
    return account_read(account)


@router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_account(
    account_id: int,
    db: AsyncSession = Depends(get_db_session),
    user_id: int = Depends(get_current_user_id),
):
    await LedgerService().delete_account(db, user_id, account_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{account_id}/repay", response_model=RepayResponse)
async def repay_credit_card(
    account_id: int,
    payload: RepayRequest,
    db: AsyncSession = Depends(get_db_session),
    user_id: int = Depends(get_current_user_id),
):
    """Pay down a credit card from a cash or bank account."""
    card, source, record = await LedgerService().repay_credit_card(
        db,
        user_id,
        account_id,
        from_account_id=payload.from_account_id,
        amount=payload.amount,
        when=payload.date,
        note=payload.note,
    )
    if record is None:
        return RepayResponse(message="Nothing to repay", account=account_read(card))
    return RepayResponse(
        message="Repayment recorded",
        record=RecordRead.model_validate(record),
        fromAccount=account_read(source),
        account=account_read(card),
    )
