from typing import List
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from teamboard.db.database import get_async_session
from teamboard.api.dependencies.auth import get_request_context
from teamboard.core.context import RequestContext
from teamboard.models.team import TeamMember
from teamboard.services.team_service import TeamService
from teamboard.schemas.auth import UserBrief
from teamboard.schemas.team import (
    ActivityResponse,
    AddMemberRequest,
    ChangeRoleRequest,
    MemberResponse,
    TeamCreate,
    TeamResponse,
)

router = APIRouter(
    prefix="/teams",
    tags=["teams"],
)


def prepare_member_for_response(member: TeamMember) -> MemberResponse:
    """Flatten a membership row with its loaded user and role"""
    return MemberResponse(
        user=UserBrief.model_validate(member.user),
        role=member.role.name,
        joined_at=member.joined_at,
    )


@router.post("", response_model=TeamResponse, status_code=status.HTTP_201_CREATED)
async def create_team(
    team_create: TeamCreate,
    db: AsyncSession = Depends(get_async_session),
    ctx: RequestContext = Depends(get_request_context),
):
    """Create a team owned by the caller, with the default board columns"""
    return await TeamService.create_team(db, ctx, name=team_create.name)


@router.get("/{team_id}/members", response_model=List[MemberResponse])
async def list_members(
    team_id: int,
    db: AsyncSession = Depends(get_async_session),
    ctx: RequestContext = Depends(get_request_context),
):
    """Members of the team (any member)"""
    members = await TeamService.list_members(db, ctx, team_id)
    return [prepare_member_for_response(member) for member in members]


@router.post("/{team_id}/members", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
async def add_member(
    team_id: int,
    request: AddMemberRequest,
    db: AsyncSession = Depends(get_async_session),
    ctx: RequestContext = Depends(get_request_context),
):
    """Add an existing user to the team"""
    member = await TeamService.add_member(
        db, ctx,
        team_id=team_id,
        email=request.email,
        role=request.role
    )
    return prepare_member_for_response(member)


@router.patch("/{team_id}/members/{user_id}", response_model=MemberResponse)
async def change_role(
    team_id: int,
    user_id: int,
    request: ChangeRoleRequest,
    db: AsyncSession = Depends(get_async_session),
    ctx: RequestContext = Depends(get_request_context),
):
    """Change a member's role"""
    member = await TeamService.change_role(
        db, ctx,
        team_id=team_id,
        user_id=user_id,
        role=request.role
    )
    return prepare_member_for_response(member)


@router.delete("/{team_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    team_id: int,
    user_id: int,
    db: AsyncSession = Depends(get_async_session),
    ctx: RequestContext = Depends(get_request_context),
):
    """Remove a member from the team"""
    await TeamService.remove_member(db, ctx, team_id=team_id, user_id=user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{team_id}/activity", response_model=List[ActivityResponse])
async def get_activity(
    team_id: int,
    db: AsyncSession = Depends(get_async_session),
    ctx: RequestContext = Depends(get_request_context),
):
    """Latest actions in the team, newest first"""
    return await TeamService.get_activity(db, ctx, team_id)
