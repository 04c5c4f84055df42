"""API routes for expense-sharing groups."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from bookkeeper.api.dependencies import get_current_user_id, get_db_session
from bookkeeper.models.enums import GroupRole
from bookkeeper.models.schemas import (
    GroupCreate,
    GroupLeaveResponse,
    GroupMemberRead,
    GroupMembersResponse,
    GroupRead,
    JoinGroupRequest,
    JoinGroupResponse,
)
from bookkeeper.models.tables import Group
from bookkeeper.services.group_service import GroupService

router = APIRouter(prefix="/groups", tags=["groups"])


def _group_read(group: Group, member_count: int, role: GroupRole | None = None) -> GroupRead:
    return GroupRead(
        id=group.id,
        name=group.name,
        joinCode=group.join_code,
        createdAt=group.created_at,
        updatedAt=group.updated_at,
        memberCount=member_count,
        myRole=role,
    )


@router.post("", response_model=GroupRead, status_code=status.HTTP_201_CREATED)
async def create_group(
    payload: GroupCreate,
    db: AsyncSession = Depends(get_db_session),
    user_id: int = Depends(get_current_user_id),
):
    """Create a group with the caller as its admin."""
    group = await GroupService().create_group(db, user_id, payload.name)
    return _group_read(group, 1, GroupRole.ADMIN)


@router.get("", response_model=List[GroupRead])
async def list_groups(
    db: AsyncSession = Depends(get_db_session),
    user_id: int = Depends(get_current_user_id),
):
    rows = await GroupService().list_my_groups(db, user_id)
    return [_group_read(group, count) for group, count in rows]


@router.post("/join", response_model=JoinGroupResponse)
async def join_group(
    payload: JoinGroupRequest,
    db: AsyncSession = Depends(get_db_session),
    user_id: int = Depends(get_current_user_id),
):
    group_id, count, joined = await GroupService().join_by_code(db, user_id, payload.joinCode)
    message = "Joined group" if joined else "Already a member of this group"
    return JoinGroupResponse(message=message, groupId=group_id, memberCount=count)


@router.get("/{group_id}", response_model=GroupRead)
async def get_group(
    group_id: int,
    db: AsyncSession = Depends(get_db_session),
    user_id: int = Depends(get_current_user_id),
):
    group, count, role = await GroupService().get_group_detail(db, user_id, group_id)
    return _group_read(group, count, role)


@router.get("/{group_id}/members", response_model=GroupMembersResponse)
async def list_members(
    group_id: int,
    db: AsyncSession = Depends(get_db_session),
    user_id: int = Depends(get_current_user_id),
):
    members = await GroupService().list_members(db, user_id, group_id)
    return GroupMembersResponse(
        memberCount=len(members),
        members=[
            GroupMemberRead(id=m.id, userId=m.user_id, role=m.role, name=m.user.name, email=m.user.email)
            for m in members
        ],
    )


@router.post("/{group_id}/regenerate-code", response_model=GroupRead)
async def regenerate_code(
    group_id: int,
    db: AsyncSession = Depends(get_db_session),
    user_id: int = Depends(get_current_user_id),
):
    """Issue a new join code (admin only); the old one stops working."""
    service = GroupService()
    group = await service.regenerate_join_code(db, user_id, group_id)
    return _group_read(group, await service.member_count(db, group_id), GroupRole.ADMIN)


@router.delete("/{group_id}", response_model=GroupLeaveResponse)
async def delete_or_leave_group(
    group_id: int,
    db: AsyncSession = Depends(get_db_session),
    user_id: int = Depends(get_current_user_id),
):
    """Admins delete the group, members leave it."""
    deleted = await GroupService().delete_or_leave(db, user_id, group_id)
    return GroupLeaveResponse(
        message="Group deleted" if deleted else "Left group",
        groupId=group_id,
        groupDeleted=deleted,
    )
