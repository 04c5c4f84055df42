"""Delete everything a user owns, in one transaction.

Steps run in a fixed order so foreign keys are satisfied at every point:

1. rows keyed by ``user_id`` (notifications, unclassified notes, lexicon,
   split participations, records, accounts)
2. the user's group memberships
3. groups left without members, together with their splits

Any failure rolls the whole purge back.  The ``users`` row is kept so the
caller stays able to log in to an empty workspace.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from bookkeeper.core.observability import sentry_breadcrumb
from bookkeeper.models.tables import (
    Account,
    GroupMember,
    Notification,
    Record,
    SplitParticipant,
    UnclassifiedNote,
    UserLexicon,
)
from bookkeeper.services.group_service import delete_orphaned_groups

logger = logging.getLogger(__name__)

# Deletion order matters: participations and records reference accounts
# and splits, accounts go last.
OWNED_MODELS = (
    Notification,
    UnclassifiedNote,
    UserLexicon,
    SplitParticipant,
    Record,
    Account,
)


@dataclass
class PurgeReport:
    user_id: int
    deleted: Dict[str, int] = field(default_factory=dict)
    orphaned_groups: List[int] = field(default_factory=list)


class PurgeService:
    async def _delete_owned_rows(self, db: AsyncSession, model, user_id: int) -> int:
        result = await db.execute(delete(model).where(model.user_id == user_id))
        return result.rowcount or 0

    async def purge_user_data(self, db: AsyncSession, user_id: int) -> PurgeReport:
        report = PurgeReport(user_id=user_id)
        sentry_breadcrumb("purge", "purge started", data={"user_id": user_id})
        try:
            for model in OWNED_MODELS:
                report.deleted[model.__tablename__] = await self._delete_owned_rows(db, model, user_id)
            report.deleted[GroupMember.__tablename__] = await self._delete_owned_rows(db, GroupMember, user_id)
            report.orphaned_groups = await delete_orphaned_groups(db)
            await db.commit()
        except Exception:
            await db.rollback()
            logger.exception("Purge failed for user %s; rolled back", user_id)
            sentry_breadcrumb("purge", "purge rolled back", level="error", data={"user_id": user_id})
            raise
        logger.info(
            "Purged data for user %s: %s, orphaned groups removed: %s",
            user_id,
            report.deleted,
            report.orphaned_groups,
        )
        sentry_breadcrumb("purge", "purge committed", data={"user_id": user_id})
        return report
