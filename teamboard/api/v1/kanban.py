from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from teamboard.db.database import get_async_session
from teamboard.api.dependencies.auth import get_request_context
from teamboard.core.context import RequestContext
from teamboard.core.exceptions import NotFoundError
from teamboard.services.mutation_service import MutationService
from teamboard.services.team_service import TeamService
from teamboard.schemas.board import BoardColumn
from teamboard.schemas.column import (
    BoardNormalize,
    ColumnCreate,
    ColumnReorder,
    ColumnResponse,
    ColumnUpdate,
)

router = APIRouter(
    prefix="/kanban",
    tags=["kanban"],
)


@router.get("", response_model=List[BoardColumn])
async def get_board(
    team_id: Optional[int] = Query(None, alias="teamId"),
    db: AsyncSession = Depends(get_async_session),
    ctx: RequestContext = Depends(get_request_context),
):
    """Board of a team: columns in order, each with its live tasks.

    Without ``teamId`` the caller's first team is used.
    """
    if team_id is None:
        team = await TeamService.get_default_team_for_user(db, ctx.user_id)
        if team is None:
            raise NotFoundError("Team")
        team_id = team.id

    return await MutationService.get_board(db, ctx, team_id)


@router.post("/column", response_model=ColumnResponse, status_code=status.HTTP_201_CREATED)
async def create_column(
    column_create: ColumnCreate,
    db: AsyncSession = Depends(get_async_session),
    ctx: RequestContext = Depends(get_request_context),
):
    """Create a new column at the end of the board"""
    return await MutationService.create_column(
        db, ctx,
        team_id=column_create.team_id,
        name=column_create.name
    )


@router.put("/column/reorder", response_model=List[ColumnResponse])
async def reorder_columns(
    column_order: ColumnReorder,
    db: AsyncSession = Depends(get_async_session),
    ctx: RequestContext = Depends(get_request_context),
):
    """Apply new order values to several columns at once"""
    return await MutationService.reorder_columns(
        db, ctx,
        team_id=column_order.team_id,
        updates=[(column.id, column.order) for column in column_order.columns]
    )


@router.patch("/column/{column_id}", response_model=ColumnResponse)
async def update_column(
    column_id: int,
    column_update: ColumnUpdate,
    db: AsyncSession = Depends(get_async_session),
    ctx: RequestContext = Depends(get_request_context),
):
    """Rename and/or reposition a column"""
    return await MutationService.update_column(
        db, ctx,
        column_id=column_id,
        name=column_update.name,
        order=column_update.order
    )


@router.delete("/column/{column_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_column(
    column_id: int,
    db: AsyncSession = Depends(get_async_session),
    ctx: RequestContext = Depends(get_request_context),
):
    """Delete a column; its tasks move to the board's first column"""
    await MutationService.delete_column(db, ctx, column_id=column_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/normalize", response_model=List[BoardColumn])
async def normalize_board(
    body: BoardNormalize,
    db: AsyncSession = Depends(get_async_session),
    ctx: RequestContext = Depends(get_request_context),
):
    """Rewrite column and task orders to dense sequences"""
    return await MutationService.renormalize_board(db, ctx, team_id=body.team_id)
