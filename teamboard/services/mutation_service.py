"""Authorized entry points for every board mutation.

Each operation has the same shape: the caller's identity arrives in an
explicit RequestContext, the required permission is checked for the team,
the request is checked against the team's rows, and the store does the
write. The permission check and the write are not one transaction; a
permission revoked in between is not caught.
"""
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from teamboard.core.context import RequestContext
from teamboard.core.exceptions import (
    AuthenticationMissingError,
    AuthorizationDeniedError,
    NotFoundError,
    ValidationFailedError,
)
from teamboard.core.ordering import MovePlan, plan_move
from teamboard.logs import debug_logger, log_function
from teamboard.models.activity_log import ActivityType
from teamboard.models.column import KanbanColumn
from teamboard.models.permission import Perm
from teamboard.models.task import Task
from teamboard.schemas.board import BoardColumn
from teamboard.services.activity_service import ActivityService
from teamboard.services.board_service import BoardService
from teamboard.services.column_service import FALLBACK_COLUMN_ORDER, ColumnService
from teamboard.services.permission_service import PermissionService
from teamboard.services.task_service import TaskService

# Column changes are gated like task updates
COLUMN_PERMISSION = Perm.UPDATE_TASK

DENIED_MESSAGES = {
    Perm.CREATE_TASK: "You don't have permission to create tasks",
    Perm.READ_TASK: "You don't have permission to read tasks",
    Perm.UPDATE_TASK: "You don't have permission to update tasks",
    Perm.DELETE_TASK: "You don't have permission to delete tasks",
}


class MutationService:
    """Permission-checked task and column operations"""

    @staticmethod
    async def authorize(
        db: AsyncSession,
        ctx: RequestContext,
        team_id: int,
        permission: Perm
    ) -> None:
        """Raise unless an identified caller holds the permission in the team"""
        if ctx is None or ctx.user_id is None:
            raise AuthenticationMissingError()
        if not await PermissionService.is_authorized(db, ctx.user_id, team_id, permission):
            debug_logger.warning(
                f"User {ctx.user_id} denied {permission.value} in team {team_id}"
            )
            raise AuthorizationDeniedError(
                DENIED_MESSAGES.get(permission, "You do not have permission to perform this action")
            )

    @staticmethod
    async def _team_task(db: AsyncSession, team_id: int, task_id: int) -> Task:
        """Live task of the team; foreign and soft-deleted tasks are not found"""
        task = await TaskService.get_by_id(db, task_id, include_deleted=False)
        if task is None or task.team_id != team_id:
            raise NotFoundError("Task", task_id)
        return task

    @staticmethod
    async def _team_column(db: AsyncSession, team_id: int, column_id: int) -> KanbanColumn:
        column = await ColumnService.get_by_id(db, column_id)
        if column is None or column.team_id != team_id:
            raise NotFoundError("Column", column_id)
        return column

    # Tasks

    @staticmethod
    @log_function()
    async def create_task(
        db: AsyncSession,
        ctx: RequestContext,
        team_id: int,
        title: str,
        **fields: Any
    ) -> Task:
        await MutationService.authorize(db, ctx, team_id, Perm.CREATE_TASK)
        if not title or not title.strip():
            raise ValidationFailedError("Title and team ID are required")

        task = await TaskService.create(db, team_id=team_id, title=title, **fields)
        await ActivityService.log(db, team_id, ctx, ActivityType.CREATE_TASK)
        return task

    @staticmethod
    async def list_tasks(
        db: AsyncSession,
        ctx: RequestContext,
        team_id: int
    ) -> List[Task]:
        await MutationService.authorize(db, ctx, team_id, Perm.READ_TASK)
        return await TaskService.list_by_team(db, team_id)

    @staticmethod
    async def get_board(
        db: AsyncSession,
        ctx: RequestContext,
        team_id: int
    ) -> List[BoardColumn]:
        await MutationService.authorize(db, ctx, team_id, Perm.READ_TASK)
        return await BoardService.get_board(db, team_id)

    @staticmethod
    @log_function()
    async def update_task(
        db: AsyncSession,
        ctx: RequestContext,
        team_id: int,
        task_id: int,
        changes: Dict[str, Any]
    ) -> Task:
        await MutationService.authorize(db, ctx, team_id, Perm.UPDATE_TASK)
        await MutationService._team_task(db, team_id, task_id)

        task = await TaskService.update(db, task_id, changes)
        await ActivityService.log(db, team_id, ctx, ActivityType.UPDATE_TASK)
        return task

    @staticmethod
    @log_function()
    async def move_task(
        db: AsyncSession,
        ctx: RequestContext,
        team_id: int,
        task_id: int,
        order: int,
        column_id: Optional[int] = None
    ) -> Task:
        """Drag-move primitive: new position, optionally in another column.

        Only the moved task's order is written; the other tasks keep theirs.
        """
        await MutationService.authorize(db, ctx, team_id, Perm.UPDATE_TASK)
        task = await MutationService._team_task(db, team_id, task_id)

        if column_id is None:
            column_id = task.column_id
        else:
            await MutationService._team_column(db, team_id, column_id)

        task = await TaskService.update_task_column(db, task_id, column_id, order)
        await ActivityService.log(db, team_id, ctx, ActivityType.MOVE_TASK)
        return task

    @staticmethod
    @log_function()
    async def drop_task(
        db: AsyncSession,
        ctx: RequestContext,
        team_id: int,
        active_task_id: int,
        over_task_id: int
    ) -> Tuple[Optional[MovePlan], Optional[Task]]:
        """Apply a drop of one task onto another against the current board.

        Returns ``(None, None)`` when the drop cannot be resolved; nothing is
        written in that case.
        """
        await MutationService.authorize(db, ctx, team_id, Perm.UPDATE_TASK)

        board = await BoardService.get_board(db, team_id)
        plan = plan_move(board, active_task_id, over_task_id)
        if plan is None:
            debug_logger.debug(
                f"Drop of task {active_task_id} onto {over_task_id} in team {team_id} is a no-op"
            )
            return None, None

        task = await TaskService.update_task_column(
            db, plan.task_id, plan.target_column_id, plan.order
        )
        await ActivityService.log(db, team_id, ctx, ActivityType.MOVE_TASK)
        return plan, task

    @staticmethod
    @log_function()
    async def delete_task(
        db: AsyncSession,
        ctx: RequestContext,
        team_id: int,
        task_id: int
    ) -> Task:
        """Soft delete; the row is kept for history"""
        await MutationService.authorize(db, ctx, team_id, Perm.DELETE_TASK)
        await MutationService._team_task(db, team_id, task_id)

        task = await TaskService.soft_delete(db, task_id)
        await ActivityService.log(db, team_id, ctx, ActivityType.DELETE_TASK)
        return task

    # Columns

    @staticmethod
    @log_function()
    async def create_column(
        db: AsyncSession,
        ctx: RequestContext,
        team_id: int,
        name: str
    ) -> KanbanColumn:
        await MutationService.authorize(db, ctx, team_id, COLUMN_PERMISSION)

        column = await ColumnService.create(db, team_id, name)
        await ActivityService.log(db, team_id, ctx, ActivityType.CREATE_COLUMN)
        return column

    @staticmethod
    async def _column_team(db: AsyncSession, column_id: int) -> KanbanColumn:
        column = await ColumnService.get_by_id(db, column_id)
        if column is None:
            raise NotFoundError("Column", column_id)
        return column

    @staticmethod
    @log_function()
    async def update_column(
        db: AsyncSession,
        ctx: RequestContext,
        column_id: int,
        name: Optional[str] = None,
        order: Optional[int] = None
    ) -> KanbanColumn:
        column = await MutationService._column_team(db, column_id)
        await MutationService.authorize(db, ctx, column.team_id, COLUMN_PERMISSION)

        column = await ColumnService.update(db, column_id, name=name, order=order)
        await ActivityService.log(db, column.team_id, ctx, ActivityType.UPDATE_COLUMN)
        return column

    @staticmethod
    @log_function()
    async def delete_column(
        db: AsyncSession,
        ctx: RequestContext,
        column_id: int
    ) -> None:
        """Delete a column, moving its tasks to the team's fallback column.

        The fallback column itself and the team's last column cannot be
        deleted, and nothing is deleted while no column holds the fallback
        order.
        """
        column = await MutationService._column_team(db, column_id)
        team_id = column.team_id
        await MutationService.authorize(db, ctx, team_id, COLUMN_PERMISSION)

        columns = await ColumnService.get_by_team_id(db, team_id)
        if len(columns) <= 1:
            raise ValidationFailedError("Cannot delete the last column of a board")

        fallback = await ColumnService.get_fallback_column(db, team_id)
        if fallback is None:
            raise ValidationFailedError(
                f"Board has no column at order {FALLBACK_COLUMN_ORDER} to receive the tasks; "
                "reorder or renormalize the columns first"
            )
        if fallback.id == column.id:
            raise ValidationFailedError(
                f"Cannot delete the fallback column (order {FALLBACK_COLUMN_ORDER}); "
                "reorder another column into its place first"
            )

        await ColumnService.delete(db, column_id)
        await ActivityService.log(db, team_id, ctx, ActivityType.DELETE_COLUMN)

    @staticmethod
    @log_function()
    async def reorder_columns(
        db: AsyncSession,
        ctx: RequestContext,
        team_id: int,
        updates: Iterable[Tuple[int, int]]
    ) -> List[KanbanColumn]:
        await MutationService.authorize(db, ctx, team_id, COLUMN_PERMISSION)

        columns = await ColumnService.reorder_columns(db, team_id, updates)
        await ActivityService.log(db, team_id, ctx, ActivityType.REORDER_COLUMNS)
        return columns

    @staticmethod
    @log_function()
    async def renormalize_board(
        db: AsyncSession,
        ctx: RequestContext,
        team_id: int
    ) -> List[BoardColumn]:
        """Rewrite column orders to 1..n and task orders to 0..n-1"""
        await MutationService.authorize(db, ctx, team_id, COLUMN_PERMISSION)

        columns = await ColumnService.renormalize(db, team_id)
        for column in columns:
            await TaskService.renormalize_column(db, column.id)
        await ActivityService.log(db, team_id, ctx, ActivityType.NORMALIZE_BOARD)
        return await BoardService.get_board(db, team_id)
