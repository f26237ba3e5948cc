from typing import List
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from teamboard.db.database import get_async_session
from teamboard.api.dependencies.auth import get_request_context
from teamboard.core.context import RequestContext
from teamboard.services.mutation_service import MutationService
from teamboard.schemas.task import (
    TaskCreate,
    TaskDrop,
    TaskDropResponse,
    TaskMove,
    TaskResponse,
    TaskUpdate,
)
from teamboard.logs import debug_logger

router = APIRouter(
    prefix="/task",
    tags=["tasks"],
)


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_create: TaskCreate,
    db: AsyncSession = Depends(get_async_session),
    ctx: RequestContext = Depends(get_request_context),
):
    """Create a task; without a column it lands in the board's first column"""
    fields = task_create.model_dump(exclude={"team_id", "title"})
    return await MutationService.create_task(
        db, ctx,
        team_id=task_create.team_id,
        title=task_create.title,
        **fields
    )


@router.get("", response_model=List[TaskResponse])
async def list_tasks(
    team_id: int = Query(..., alias="teamId"),
    db: AsyncSession = Depends(get_async_session),
    ctx: RequestContext = Depends(get_request_context),
):
    """All non-deleted tasks of a team"""
    return await MutationService.list_tasks(db, ctx, team_id)


@router.put("", response_model=TaskResponse)
async def update_task(
    task_update: TaskUpdate,
    db: AsyncSession = Depends(get_async_session),
    ctx: RequestContext = Depends(get_request_context),
):
    """Partial update of a task's fields"""
    return await MutationService.update_task(
        db, ctx,
        team_id=task_update.team_id,
        task_id=task_update.id,
        changes=task_update.changes()
    )


@router.patch("", response_model=TaskResponse)
async def move_task(
    task_move: TaskMove,
    db: AsyncSession = Depends(get_async_session),
    ctx: RequestContext = Depends(get_request_context),
):
    """Drag-move: new position, optionally in another column"""
    return await MutationService.move_task(
        db, ctx,
        team_id=task_move.team_id,
        task_id=task_move.id,
        order=task_move.order,
        column_id=task_move.column_id
    )


@router.post("/drop", response_model=TaskDropResponse)
async def drop_task(
    task_drop: TaskDrop,
    db: AsyncSession = Depends(get_async_session),
    ctx: RequestContext = Depends(get_request_context),
):
    """Drop one task onto another and persist the resulting position"""
    plan, task = await MutationService.drop_task(
        db, ctx,
        team_id=task_drop.team_id,
        active_task_id=task_drop.active_id,
        over_task_id=task_drop.over_id
    )
    if plan is None:
        return TaskDropResponse(moved=False)

    debug_logger.debug(
        f"Task {plan.task_id} dropped into column {plan.target_column_id} at order {plan.order}"
    )
    return TaskDropResponse(moved=True, task=TaskResponse.model_validate(task))


@router.delete("")
async def delete_task(
    task_id: int = Query(..., alias="id"),
    team_id: int = Query(..., alias="teamId"),
    db: AsyncSession = Depends(get_async_session),
    ctx: RequestContext = Depends(get_request_context),
):
    """Soft-delete a task"""
    await MutationService.delete_task(db, ctx, team_id=team_id, task_id=task_id)
    return {"success": True}
