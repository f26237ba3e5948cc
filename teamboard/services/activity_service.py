from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from teamboard.core.context import RequestContext
from teamboard.models.activity_log import ActivityLog, ActivityType


class ActivityService:
    """Audit trail of team actions"""

    @staticmethod
    async def log(
        db: AsyncSession,
        team_id: int,
        ctx: Optional[RequestContext],
        action: ActivityType,
        commit: bool = True
    ) -> ActivityLog:
        """Record an action performed in a team"""
        entry = ActivityLog(
            team_id=team_id,
            user_id=ctx.user_id if ctx else None,
            action=ActivityType(action).value,
            ip_address=ctx.ip_address if ctx else None,
        )
        db.add(entry)
        if commit:
            await db.commit()
        else:
            await db.flush()
        return entry

    @staticmethod
    async def get_team_activity(
        db: AsyncSession,
        team_id: int,
        limit: int = 15
    ) -> List[ActivityLog]:
        """Latest actions of a team, newest first"""
        query = (
            select(ActivityLog)
            .where(ActivityLog.team_id == team_id)
            .order_by(ActivityLog.timestamp.desc(), ActivityLog.id.desc())
            .limit(limit)
        )
        result = await db.execute(query)
        return list(result.scalars().all())
