from typing import Iterable, List, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import SQLAlchemyError

from teamboard.core.exceptions import InconsistentStateError, NotFoundError, TransientStoreError
from teamboard.db.base import utcnow
from teamboard.logs import debug_logger, log_function
from teamboard.models.column import KanbanColumn
from teamboard.models.task import Task

# Order of the column that receives tasks of deleted columns
FALLBACK_COLUMN_ORDER = 1


class ColumnService:
    """CRUD operations service for KanbanColumn model.

    No authorization happens here; callers gate access through the
    mutation service.
    """

    @staticmethod
    @log_function()
    async def create(
        db: AsyncSession,
        team_id: int,
        name: str,
        commit: bool = True
    ) -> KanbanColumn:
        """Create a new column at the end of the team's board"""
        query = select(func.max(KanbanColumn.order)).where(KanbanColumn.team_id == team_id)
        result = await db.execute(query)
        max_order = result.scalar()

        column = KanbanColumn(
            team_id=team_id,
            name=name,
            order=(max_order or 0) + 1,
        )

        db.add(column)
        if commit:
            await db.commit()
            await db.refresh(column)
        else:
            await db.flush()
        return column

    @staticmethod
    async def get_by_id(
        db: AsyncSession,
        column_id: int
    ) -> Optional[KanbanColumn]:
        """Get column by id"""
        return await db.get(KanbanColumn, column_id)

    @staticmethod
    async def get_by_team_id(
        db: AsyncSession,
        team_id: int
    ) -> List[KanbanColumn]:
        """Get all columns for a team in display order"""
        query = (
            select(KanbanColumn)
            .where(KanbanColumn.team_id == team_id)
            .order_by(KanbanColumn.order, KanbanColumn.id)
        )
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def get_fallback_column(
        db: AsyncSession,
        team_id: int
    ) -> Optional[KanbanColumn]:
        """The team's order == 1 column; the lowest id wins on duplicates"""
        query = (
            select(KanbanColumn)
            .where(
                KanbanColumn.team_id == team_id,
                KanbanColumn.order == FALLBACK_COLUMN_ORDER,
            )
            .order_by(KanbanColumn.id)
            .limit(1)
        )
        result = await db.execute(query)
        return result.scalars().first()

    @staticmethod
    @log_function()
    async def update(
        db: AsyncSession,
        column_id: int,
        name: Optional[str] = None,
        order: Optional[int] = None
    ) -> KanbanColumn:
        """Update a column's name and/or order"""
        column = await ColumnService.get_by_id(db, column_id)
        if not column:
            raise NotFoundError("Column", column_id)

        if name is None and order is None:
            return column

        if name is not None:
            column.name = name
        if order is not None:
            column.order = order
        column.updated_at = utcnow()

        await db.commit()
        await db.refresh(column)
        return column

    @staticmethod
    @log_function()
    async def delete(
        db: AsyncSession,
        column_id: int
    ) -> bool:
        """Delete a column after moving all of its tasks to the fallback column.

        Soft-deleted tasks are moved too, so no row keeps referencing the
        deleted column. Both writes are committed together.
        """
        column = await ColumnService.get_by_id(db, column_id)
        if not column:
            raise NotFoundError("Column", column_id)

        fallback = await ColumnService.get_fallback_column(db, column.team_id)
        if fallback is None or fallback.id == column.id:
            debug_logger.error(
                f"Team {column.team_id} has no fallback column to receive tasks of column {column_id}"
            )
            raise InconsistentStateError(
                f"No fallback column available for team {column.team_id}"
            )

        try:
            await db.execute(
                update(Task)
                .where(Task.column_id == column.id)
                .values(column_id=fallback.id, updated_at=utcnow())
            )
            result = await db.execute(delete(KanbanColumn).where(KanbanColumn.id == column.id))
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            raise TransientStoreError("Failed to delete column") from exc

        debug_logger.debug(f"Column {column_id} deleted, tasks moved to column {fallback.id}")
        return result.rowcount > 0

    @staticmethod
    @log_function()
    async def reorder_columns(
        db: AsyncSession,
        team_id: int,
        updates: Iterable[Tuple[int, int]]
    ) -> List[KanbanColumn]:
        """Apply new order values to a set of columns.

        Args:
            db: Database session
            team_id: ID of the team owning every column
            updates: (column_id, order) pairs, independent of each other

        Returns:
            The team's columns in their new display order

        Either every update is applied or none is.
        """
        updates = list(updates)
        columns = {column.id: column for column in await ColumnService.get_by_team_id(db, team_id)}

        missing = [column_id for column_id, _ in updates if column_id not in columns]
        if missing:
            raise NotFoundError("Column", missing[0])

        current_time = utcnow()
        try:
            for column_id, new_order in updates:
                column = columns[column_id]
                column.order = new_order
                column.updated_at = current_time
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            raise TransientStoreError("Failed to reorder columns") from exc

        return await ColumnService.get_by_team_id(db, team_id)

    @staticmethod
    @log_function()
    async def renormalize(
        db: AsyncSession,
        team_id: int
    ) -> List[KanbanColumn]:
        """Rewrite the team's column orders to 1..n, keeping display order"""
        columns = await ColumnService.get_by_team_id(db, team_id)
        current_time = utcnow()
        for position, column in enumerate(columns, start=1):
            if column.order != position:
                column.order = position
                column.updated_at = current_time
        await db.commit()
        return columns
