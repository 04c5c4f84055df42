"""Expense-sharing groups.

A group exists only while it has members.  Whenever memberships are
removed (a member leaving, or a user's data being purged) the caller runs
``delete_orphaned_groups`` in the same transaction, which removes every
group left with zero members together with its splits.
"""

from __future__ import annotations

import logging
import re
import secrets
import string
from typing import List, Sequence, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bookkeeper.core.errors import BadRequest, Conflict, Forbidden, NotFound
from bookkeeper.models.enums import GroupRole
from bookkeeper.models.tables import Group, GroupMember, Record, Split, SplitParticipant

logger = logging.getLogger(__name__)

JOIN_CODE_LENGTH = 6
JOIN_CODE_ALPHABET = string.ascii_uppercase + string.digits
JOIN_CODE_PATTERN = re.compile(r"^[A-Z0-9]{6}$")
JOIN_CODE_ATTEMPTS = 5


# -----------------------------------------------------------------------------
# Orphan handling shared with the purge flow


async def find_orphaned_group_ids(db: AsyncSession) -> List[int]:
    """Ids of groups with no remaining member rows."""
    has_members = select(GroupMember.id).where(GroupMember.group_id == Group.id).exists()
    result = await db.execute(select(Group.id).where(~has_members))
    return [row[0] for row in result.all()]


async def delete_groups(db: AsyncSession, group_ids: Sequence[int]) -> None:
    """Remove groups and everything hanging off them, in foreign-key order.

    Records tagged with a group lose the tag but survive (they belong to a
    user, not to the group).  Split participants go before their splits,
    splits and memberships before their group.  Does not commit.
    """
    if not group_ids:
        return
    ids = list(group_ids)
    split_ids = select(Split.id).where(Split.group_id.in_(ids))
    await db.execute(update(Record).where(Record.group_id.in_(ids)).values(group_id=None))
    await db.execute(delete(SplitParticipant).where(SplitParticipant.split_id.in_(split_ids)))
    await db.execute(delete(Split).where(Split.group_id.in_(ids)))
    await db.execute(delete(GroupMember).where(GroupMember.group_id.in_(ids)))
    await db.execute(delete(Group).where(Group.id.in_(ids)))


async def delete_orphaned_groups(db: AsyncSession) -> List[int]:
    """Find and delete member-less groups; returns the deleted ids."""
    orphan_ids = await find_orphaned_group_ids(db)
    await delete_groups(db, orphan_ids)
    return orphan_ids


async def require_membership(db: AsyncSession, user_id: int, group_id: int) -> GroupMember:
    result = await db.execute(
        select(GroupMember).where(GroupMember.group_id == group_id, GroupMember.user_id == user_id)
    )
    member = result.scalar_one_or_none()
    if member is None:
        raise Forbidden("Not a member of this group")
    return member


def generate_join_code() -> str:
    return "".join(secrets.choice(JOIN_CODE_ALPHABET) for _ in range(JOIN_CODE_LENGTH))


class GroupService:
    async def _unused_join_code(self, db: AsyncSession) -> str:
        for _ in range(JOIN_CODE_ATTEMPTS):
            code = generate_join_code()
            taken = await db.execute(select(Group.id).where(Group.join_code == code))
            if taken.scalar_one_or_none() is None:
                return code
        raise Conflict("Failed to generate a unique join code")

    async def member_count(self, db: AsyncSession, group_id: int) -> int:
        result = await db.execute(select(func.count(GroupMember.id)).where(GroupMember.group_id == group_id))
        return int(result.scalar() or 0)

    async def create_group(self, db: AsyncSession, user_id: int, name: str) -> Group:
        code = await self._unused_join_code(db)
        group = Group(name=name, join_code=code)
        db.add(group)
        await db.flush()
        db.add(GroupMember(group_id=group.id, user_id=user_id, role=GroupRole.ADMIN))
        await db.commit()
        await db.refresh(group)
        logger.info("User %s created group %s", user_id, group.id)
        return group

    async def list_my_groups(self, db: AsyncSession, user_id: int) -> List[Tuple[Group, int]]:
        counts = (
            select(GroupMember.group_id, func.count(GroupMember.id).label("member_count"))
            .group_by(GroupMember.group_id)
            .subquery()
        )
        mine = select(GroupMember.group_id).where(GroupMember.user_id == user_id)
        result = await db.execute(
            select(Group, counts.c.member_count)
            .join(counts, counts.c.group_id == Group.id)
            .where(Group.id.in_(mine))
            .order_by(Group.id.desc())
        )
        return [(group, int(count)) for group, count in result.all()]

    async def get_group_detail(self, db: AsyncSession, user_id: int, group_id: int) -> Tuple[Group, int, GroupRole]:
        me = await require_membership(db, user_id, group_id)
        group = await db.get(Group, group_id)
        if group is None:
            raise NotFound("Group not found")
        return group, await self.member_count(db, group_id), GroupRole(me.role)

    async def list_members(self, db: AsyncSession, user_id: int, group_id: int) -> Sequence[GroupMember]:
        await require_membership(db, user_id, group_id)
        result = await db.execute(
            select(GroupMember).where(GroupMember.group_id == group_id).order_by(GroupMember.id.asc())
        )
        members = result.scalars().unique().all()
        # admins first, then join order
        return sorted(members, key=lambda m: (GroupRole(m.role) != GroupRole.ADMIN, m.id))

    async def join_by_code(self, db: AsyncSession, user_id: int, raw_code: str) -> Tuple[int, int, bool]:
        """Join the group owning ``raw_code``.

        Returns ``(group_id, member_count, joined)``; ``joined`` is False
        when the caller was already a member.
        """
        code = (raw_code or "").strip().upper()
        if not JOIN_CODE_PATTERN.match(code):
            raise BadRequest("Join code format is invalid")
        result = await db.execute(select(Group).where(Group.join_code == code))
        group = result.scalar_one_or_none()
        if group is None:
            raise NotFound("Join code does not exist or has expired")
        existing = await db.execute(
            select(GroupMember.id).where(GroupMember.group_id == group.id, GroupMember.user_id == user_id)
        )
        if existing.scalar_one_or_none() is not None:
            return group.id, await self.member_count(db, group.id), False
        db.add(GroupMember(group_id=group.id, user_id=user_id, role=GroupRole.MEMBER))
        await db.commit()
        return group.id, await self.member_count(db, group.id), True

    async def regenerate_join_code(self, db: AsyncSession, user_id: int, group_id: int) -> Group:
        me = await require_membership(db, user_id, group_id)
        if GroupRole(me.role) != GroupRole.ADMIN:
            raise Forbidden("Only admins can regenerate the join code")
        group = await db.get(Group, group_id)
        if group is None:
            raise NotFound("Group not found")
        group.join_code = await self._unused_join_code(db)
        await db.commit()
        await db.refresh(group)
        return group

    async def delete_or_leave(self, db: AsyncSession, user_id: int, group_id: int) -> bool:
        """Admins delete the whole group; members leave it.

        A member leaving as the last one left also removes the group.
        Returns True when the group no longer exists afterwards.
        """
        me = await require_membership(db, user_id, group_id)
        if GroupRole(me.role) == GroupRole.ADMIN:
            await delete_groups(db, [group_id])
            await db.commit()
            logger.info("Admin %s deleted group %s", user_id, group_id)
            return True
        await db.execute(
            delete(GroupMember).where(GroupMember.group_id == group_id, GroupMember.user_id == user_id)
        )
        removed = await delete_orphaned_groups(db)
        await db.commit()
        return group_id in removed