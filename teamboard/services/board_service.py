from collections import defaultdict
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from teamboard.models.task import Task
from teamboard.schemas.board import BoardColumn, BoardTask
from teamboard.services.column_service import ColumnService


class BoardService:
    """Read-only projection of a team board"""

    @staticmethod
    async def get_board(
        db: AsyncSession,
        team_id: int
    ) -> List[BoardColumn]:
        """Get the team's columns with their live tasks, in display order.

        Columns are sorted by (order, id) and tasks within a column by
        (order, id). Soft-deleted tasks are left out. Nothing is cached, so
        the result always reflects the latest committed state.
        """
        columns = await ColumnService.get_by_team_id(db, team_id)

        query = (
            select(Task)
            .where(Task.team_id == team_id, Task.deleted_at.is_(None))
            .options(selectinload(Task.assignee))
            .order_by(Task.order, Task.id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)

        tasks_by_column = defaultdict(list)
        for task in result.scalars().all():
            tasks_by_column[task.column_id].append(BoardTask.model_validate(task))

        return [
            BoardColumn(
                id=column.id,
                team_id=column.team_id,
                name=column.name,
                order=column.order,
                created_at=column.created_at,
                updated_at=column.updated_at,
                tasks=tasks_by_column.get(column.id, []),
            )
            for column in columns
        ]
