from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func

from teamboard.core.exceptions import NotFoundError, ValidationFailedError
from teamboard.db.base import utcnow
from teamboard.logs import debug_logger, log_function
from teamboard.models.column import KanbanColumn
from teamboard.models.task import Task, TaskStatus, TaskType
from teamboard.models.team import TeamMember
from teamboard.services.column_service import ColumnService

# Never writable through update()
PROTECTED_FIELDS = frozenset({"id", "team_id", "created_at", "updated_at", "deleted_at"})

# Columns that reject NULL; a None for these in a partial update is ignored
NON_NULLABLE_FIELDS = frozenset({"title", "status", "type", "column_id", "order"})

UPDATABLE_FIELDS = frozenset({
    "title",
    "description",
    "status",
    "type",
    "column_id",
    "order",
    "parent_task_id",
    "assignee_id",
    "due_date",
})


class TaskService:
    """Store primitives for Task model.

    Authorization is layered above; these methods only enforce data
    invariants: tasks reference a column, parent and assignee of their own
    team, and soft-deleted tasks stay out of listings.
    """

    @staticmethod
    async def _require_column(db: AsyncSession, team_id: int, column_id: int) -> KanbanColumn:
        column = await ColumnService.get_by_id(db, column_id)
        if column is None or column.team_id != team_id:
            raise NotFoundError("Column", column_id)
        return column

    @staticmethod
    async def _require_parent(db: AsyncSession, team_id: int, parent_task_id: int) -> Task:
        parent = await TaskService.get_by_id(db, parent_task_id, include_deleted=False)
        if parent is None or parent.team_id != team_id:
            raise NotFoundError("Parent task", parent_task_id)
        return parent

    @staticmethod
    async def _require_assignee(db: AsyncSession, team_id: int, user_id: int) -> None:
        query = select(TeamMember.id).where(
            TeamMember.team_id == team_id,
            TeamMember.user_id == user_id,
        )
        result = await db.execute(query)
        if result.first() is None:
            raise NotFoundError("Team member", user_id)

    @staticmethod
    async def count_live_tasks(db: AsyncSession, column_id: int) -> int:
        query = select(func.count(Task.id)).where(
            Task.column_id == column_id,
            Task.deleted_at.is_(None),
        )
        result = await db.execute(query)
        return result.scalar_one()

    @staticmethod
    @log_function()
    async def create(
        db: AsyncSession,
        team_id: int,
        title: str,
        description: Optional[str] = None,
        type: TaskType = TaskType.TASK,
        status: Optional[TaskStatus] = None,
        due_date: Optional[datetime] = None,
        column_id: Optional[int] = None,
        parent_task_id: Optional[int] = None,
        assignee_id: Optional[int] = None,
        order: Optional[int] = None
    ) -> Task:
        """Create a task.

        Without a column the task lands in the team's fallback column; without
        an order it is appended after the column's live tasks.
        """
        if column_id is None:
            column = await ColumnService.get_fallback_column(db, team_id)
            if column is None:
                columns = await ColumnService.get_by_team_id(db, team_id)
                column = columns[0] if columns else None
            if column is None:
                raise ValidationFailedError("Team has no columns to place the task in")
        else:
            column = await TaskService._require_column(db, team_id, column_id)

        if parent_task_id is not None:
            await TaskService._require_parent(db, team_id, parent_task_id)
        if assignee_id is not None:
            await TaskService._require_assignee(db, team_id, assignee_id)

        if order is None:
            order = await TaskService.count_live_tasks(db, column.id)

        now = utcnow()
        task = Task(
            team_id=team_id,
            column_id=column.id,
            title=title,
            description=description,
            type=type or TaskType.TASK,
            status=status or TaskStatus.TODO,
            due_date=due_date,
            parent_task_id=parent_task_id,
            assignee_id=assignee_id,
            order=order,
            created_at=now,
            updated_at=now,
        )

        db.add(task)
        await db.commit()
        await db.refresh(task)
        return task

    @staticmethod
    async def get_by_id(
        db: AsyncSession,
        task_id: int,
        include_deleted: bool = True
    ) -> Optional[Task]:
        """Get task by id; soft-deleted rows stay retrievable by default"""
        task = await db.get(Task, task_id)
        if task is not None and not include_deleted and task.deleted_at is not None:
            return None
        return task

    @staticmethod
    async def list_by_team(
        db: AsyncSession,
        team_id: int
    ) -> List[Task]:
        """All non-deleted tasks of a team, by column then position"""
        query = (
            select(Task)
            .join(KanbanColumn, KanbanColumn.id == Task.column_id)
            .where(Task.team_id == team_id, Task.deleted_at.is_(None))
            .order_by(KanbanColumn.order, KanbanColumn.id, Task.order, Task.id)
        )
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def list_children(
        db: AsyncSession,
        parent_task_id: int
    ) -> List[Task]:
        """Non-deleted sub-tasks of a task"""
        query = (
            select(Task)
            .where(Task.parent_task_id == parent_task_id, Task.deleted_at.is_(None))
            .order_by(Task.order, Task.id)
        )
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    @log_function()
    async def update(
        db: AsyncSession,
        task_id: int,
        data: Dict[str, Any]
    ) -> Task:
        """Merge a partial update into a task and stamp updated_at.

        ``id``, ``team_id`` and the timestamps are ignored if present.
        """
        task = await TaskService.get_by_id(db, task_id)
        if task is None:
            raise NotFoundError("Task", task_id)

        changes = {}
        for key, value in data.items():
            if key in PROTECTED_FIELDS:
                debug_logger.warning(f"Ignoring protected field '{key}' in update of task {task_id}")
                continue
            if key not in UPDATABLE_FIELDS:
                raise ValidationFailedError(f"Unknown task field '{key}'")
            if value is None and key in NON_NULLABLE_FIELDS:
                continue
            changes[key] = value

        if changes.get("column_id") is not None and changes["column_id"] != task.column_id:
            await TaskService._require_column(db, task.team_id, changes["column_id"])
        if changes.get("parent_task_id") is not None:
            if changes["parent_task_id"] == task.id:
                raise ValidationFailedError("A task cannot be its own parent")
            await TaskService._require_parent(db, task.team_id, changes["parent_task_id"])
        if changes.get("assignee_id") is not None:
            await TaskService._require_assignee(db, task.team_id, changes["assignee_id"])

        for key, value in changes.items():
            setattr(task, key, value)
        task.updated_at = utcnow()

        await db.commit()
        await db.refresh(task)
        return task

    @staticmethod
    @log_function()
    async def update_task_column(
        db: AsyncSession,
        task_id: int,
        column_id: int,
        order: int
    ) -> Task:
        """Set column membership and position of a task in one write"""
        task = await TaskService.get_by_id(db, task_id)
        if task is None:
            raise NotFoundError("Task", task_id)

        if column_id != task.column_id:
            await TaskService._require_column(db, task.team_id, column_id)

        task.column_id = column_id
        task.order = order
        task.updated_at = utcnow()

        await db.commit()
        await db.refresh(task)
        return task

    @staticmethod
    @log_function()
    async def soft_delete(
        db: AsyncSession,
        task_id: int
    ) -> Task:
        """Stamp deleted_at; the row stays retrievable by id"""
        task = await TaskService.get_by_id(db, task_id)
        if task is None:
            raise NotFoundError("Task", task_id)

        now = utcnow()
        task.deleted_at = now
        task.updated_at = now

        await db.commit()
        await db.refresh(task)
        return task

    @staticmethod
    @log_function()
    async def hard_delete(
        db: AsyncSession,
        task_id: int
    ) -> bool:
        """Physically remove a task row. Irrecoverable cleanup only."""
        task = await TaskService.get_by_id(db, task_id)
        if task is None:
            return False
        # Sub-tasks keep living without a parent
        await db.execute(
            update(Task).where(Task.parent_task_id == task.id).values(parent_task_id=None)
        )
        await db.delete(task)
        await db.commit()
        return True

    @staticmethod
    @log_function()
    async def renormalize_column(
        db: AsyncSession,
        column_id: int
    ) -> List[Task]:
        """Rewrite live task orders of a column to 0..n-1, keeping display order"""
        query = (
            select(Task)
            .where(Task.column_id == column_id, Task.deleted_at.is_(None))
            .order_by(Task.order, Task.id)
        )
        result = await db.execute(query)
        tasks = list(result.scalars().all())

        now = utcnow()
        for position, task in enumerate(tasks):
            if task.order != position:
                task.order = position
                task.updated_at = now
        await db.commit()
        return tasks
