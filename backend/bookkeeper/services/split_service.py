"""Shared expenses within a group.

A split records one payer and the share every participant owes.  The payer
is always a participant and their share starts out paid.  A split is
settled once every share is paid, either explicitly by the payer or
automatically when the last participant marks their share.
"""

from __future__ import annotations

import logging
from typing import Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bookkeeper.core.errors import BadRequest, Conflict, Forbidden, NotFound
from bookkeeper.models.enums import DueType, NotificationType
from bookkeeper.models.schemas import SplitCreate, SplitStats
from bookkeeper.models.tables import GroupMember, Split, SplitParticipant
from bookkeeper.services.group_service import require_membership
from bookkeeper.services.notification_service import notify
from bookkeeper.utils.helpers import month_key, to_naive_utc

logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE = 0.01


def _label(split: Split) -> str:
    return split.description or "分帳"


class SplitService:
    async def _load(self, db: AsyncSession, split_id: int) -> Split:
        result = await db.execute(
            select(Split).where(Split.id == split_id).execution_options(populate_existing=True)
        )
        split = result.scalar_one_or_none()
        if split is None:
            raise NotFound("Split not found")
        return split

    async def create_split(self, db: AsyncSession, user_id: int, payload: SplitCreate) -> Split:
        await require_membership(db, user_id, payload.group_id)

        actual = sum(float(p.amount) for p in payload.participants)
        if abs(actual - float(payload.amount)) > AMOUNT_TOLERANCE:
            raise BadRequest(
                "Participant amounts do not add up to the split amount",
                expected=float(payload.amount),
                actual=actual,
            )
        participant_ids = [p.user_id for p in payload.participants]
        if len(set(participant_ids)) != len(participant_ids):
            raise BadRequest("Each participant may appear only once")
        if payload.paid_by_id not in participant_ids:
            raise BadRequest("The payer must be one of the participants")

        result = await db.execute(
            select(GroupMember.user_id).where(
                GroupMember.group_id == payload.group_id, GroupMember.user_id.in_(participant_ids)
            )
        )
        members = {row[0] for row in result.all()}
        outsiders = sorted(set(participant_ids) - members)
        if outsiders:
            raise BadRequest("Participants must be members of the group", userIds=outsiders)

        split = Split(
            group_id=payload.group_id,
            paid_by_id=payload.paid_by_id,
            amount=float(payload.amount),
            description=payload.description,
            due_type=payload.due_type.value if payload.due_type else None,
            due_date=to_naive_utc(payload.due_date) if payload.due_date else None,
        )
        if payload.due_type == DueType.MONTHLY:
            split.month_key = month_key()
        db.add(split)
        await db.flush()
        for p in payload.participants:
            db.add(
                SplitParticipant(
                    split_id=split.id,
                    user_id=p.user_id,
                    amount=float(p.amount),
                    is_paid=p.user_id == payload.paid_by_id,
                )
            )
        await db.commit()
        logger.info("User %s created split %s in group %s", user_id, split.id, payload.group_id)
        return await self._load(db, split.id)

    async def list_splits(self, db: AsyncSession, user_id: int, group_id: int) -> Sequence[Split]:
        await require_membership(db, user_id, group_id)
        result = await db.execute(
            select(Split).where(Split.group_id == group_id).order_by(Split.created_at.desc(), Split.id.desc())
        )
        return result.scalars().all()

    async def settle_split(self, db: AsyncSession, user_id: int, split_id: int) -> None:
        split = await self._load(db, split_id)
        if split.paid_by_id != user_id:
            raise Forbidden("Only the payer can settle this split")
        if split.is_settled:
            raise Conflict("Split is already settled")
        unpaid = [p for p in split.participants if not p.is_paid]
        if unpaid:
            raise BadRequest(
                "Some participants have not paid yet",
                unpaidParticipants=[{"userId": p.user_id, "amount": p.amount} for p in unpaid],
            )
        split.is_settled = True
        notify(
            db,
            [split.paid_by_id, *(p.user_id for p in split.participants)],
            NotificationType.REPAYMENT,
            f"「{_label(split)}」已完成還款",
        )
        await db.commit()

    async def mark_participant_paid(
        self, db: AsyncSession, user_id: int, split_id: int, participant_user_id: int
    ) -> bool:
        """Mark the caller's own share paid; returns True when that settled the split."""
        if user_id != participant_user_id:
            raise Forbidden("You can only update your own payment status")
        result = await db.execute(
            select(SplitParticipant).where(
                SplitParticipant.split_id == split_id, SplitParticipant.user_id == participant_user_id
            )
        )
        participant = result.scalar_one_or_none()
        if participant is None:
            raise NotFound("Participant not found")
        participant.is_paid = True
        await db.flush()

        remaining = await db.execute(
            select(func.count(SplitParticipant.id)).where(
                SplitParticipant.split_id == split_id, SplitParticipant.is_paid.is_(False)
            )
        )
        all_paid = int(remaining.scalar() or 0) == 0
        if all_paid:
            await db.execute(update(Split).where(Split.id == split_id).values(is_settled=True))
            split = await self._load(db, split_id)
            notify(
                db,
                [split.paid_by_id, *(p.user_id for p in split.participants)],
                NotificationType.REPAYMENT,
                f"「{_label(split)}」所有參與者已付款，自動結算完成",
            )
            logger.info("Split %s auto-settled", split_id)
        await db.commit()
        return all_paid

    async def stats(self, db: AsyncSession, user_id: int, group_id: int | None = None) -> SplitStats:
        """Totals over the unsettled splits the user takes part in.

        ``paidByMe`` sums splits the user paid for, ``myDebts`` the user's
        unpaid shares of other people's splits and ``owedToMe`` the unpaid
        shares others still owe on the user's splits.
        """
        q = (
            select(Split)
            .join(SplitParticipant, SplitParticipant.split_id == Split.id)
            .where(Split.is_settled.is_(False), SplitParticipant.user_id == user_id)
        )
        if group_id:
            q = q.where(Split.group_id == group_id)
        splits = (await db.execute(q)).scalars().unique().all()

        out = SplitStats(totalUnsettled=len(splits))
        for split in splits:
            mine = next(p for p in split.participants if p.user_id == user_id)
            if split.paid_by_id == user_id:
                out.paidByMe += split.amount
                out.totalAmount += split.amount
                out.owedToMe += sum(p.amount for p in split.participants if not p.is_paid)
            else:
                out.totalAmount += mine.amount
                if not mine.is_paid:
                    out.myDebts += mine.amount
        return out
