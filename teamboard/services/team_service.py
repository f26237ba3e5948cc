from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from teamboard.core import get_settings
from teamboard.core.context import RequestContext
from teamboard.core.exceptions import (
    AuthorizationDeniedError,
    InconsistentStateError,
    NotFoundError,
    ValidationFailedError,
)
from teamboard.logs import debug_logger, log_function
from teamboard.models.activity_log import ActivityType
from teamboard.models.permission import Perm, Role, RoleName
from teamboard.models.team import Team, TeamMember
from teamboard.services.activity_service import ActivityService
from teamboard.services.column_service import ColumnService
from teamboard.services.permission_service import PermissionService
from teamboard.services.security_service import SecurityService

settings = get_settings()


class TeamService:
    """Teams and their memberships"""

    @staticmethod
    async def _require(db: AsyncSession, ctx: RequestContext, team_id: int, permission: Perm) -> None:
        if not await PermissionService.is_authorized(db, ctx.user_id, team_id, permission):
            raise AuthorizationDeniedError(
                f"You don't have permission to {permission.value.replace('_', ' ')}"
            )

    @staticmethod
    async def _role(db: AsyncSession, name: RoleName) -> Role:
        role = await PermissionService.get_role_by_name(db, name)
        if role is None:
            raise InconsistentStateError(f"Role '{RoleName(name).value}' is missing from the catalog")
        return role

    @staticmethod
    async def get_by_id(db: AsyncSession, team_id: int) -> Optional[Team]:
        return await db.get(Team, team_id)

    @staticmethod
    async def get_default_team_for_user(db: AsyncSession, user_id: int) -> Optional[Team]:
        """The team the user joined first"""
        query = (
            select(Team)
            .join(TeamMember, TeamMember.team_id == Team.id)
            .where(TeamMember.user_id == user_id)
            .order_by(TeamMember.joined_at, TeamMember.id)
            .limit(1)
        )
        result = await db.execute(query)
        return result.scalars().first()

    @staticmethod
    async def get_membership(db: AsyncSession, user_id: int, team_id: int) -> Optional[TeamMember]:
        query = select(TeamMember).where(
            TeamMember.user_id == user_id,
            TeamMember.team_id == team_id,
        )
        result = await db.execute(query)
        return result.scalars().first()

    @staticmethod
    @log_function()
    async def create_team(
        db: AsyncSession,
        ctx: RequestContext,
        name: str,
        column_names: Optional[List[str]] = None
    ) -> Team:
        """Create a team owned by the caller, with its initial board columns"""
        if column_names is None:
            column_names = settings.DEFAULT_COLUMNS
        if not column_names:
            raise ValidationFailedError("A team board needs at least one column")

        owner_role = await TeamService._role(db, RoleName.OWNER)

        team = Team(name=name)
        db.add(team)
        await db.flush()

        db.add(TeamMember(user_id=ctx.user_id, team_id=team.id, role_id=owner_role.id))
        for column_name in column_names:
            await ColumnService.create(db, team.id, column_name, commit=False)
        await ActivityService.log(db, team.id, ctx, ActivityType.CREATE_TEAM, commit=False)

        await db.commit()
        await db.refresh(team)
        await PermissionService.invalidate(user_id=ctx.user_id, team_id=team.id)
        debug_logger.info(f"User {ctx.user_id} created team {team.id}")
        return team

    @staticmethod
    async def list_members(
        db: AsyncSession,
        ctx: RequestContext,
        team_id: int
    ) -> List[TeamMember]:
        """Members of a team with user and role loaded; callers must be members"""
        if await TeamService.get_membership(db, ctx.user_id, team_id) is None:
            raise AuthorizationDeniedError("You are not a member of this team")

        query = (
            select(TeamMember)
            .where(TeamMember.team_id == team_id)
            .options(selectinload(TeamMember.user), selectinload(TeamMember.role))
            .order_by(TeamMember.joined_at, TeamMember.id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def _count_owners(db: AsyncSession, team_id: int) -> int:
        query = (
            select(func.count(TeamMember.id))
            .join(Role, Role.id == TeamMember.role_id)
            .where(TeamMember.team_id == team_id, Role.name == RoleName.OWNER)
        )
        result = await db.execute(query)
        return result.scalar_one()

    @staticmethod
    @log_function()
    async def add_member(
        db: AsyncSession,
        ctx: RequestContext,
        team_id: int,
        email: str,
        role: RoleName = RoleName.MEMBER
    ) -> TeamMember:
        """Add an existing user to the team (INVITE_USER).

        Inviting with any role above member also needs SET_USER_PERMISSIONS,
        the same permission change_role asks for.
        """
        await TeamService._require(db, ctx, team_id, Perm.INVITE_USER)
        if RoleName(role) != RoleName.MEMBER:
            await TeamService._require(db, ctx, team_id, Perm.SET_USER_PERMISSIONS)

        user = await SecurityService.get_user_by_email(db, email)
        if user is None:
            raise NotFoundError("User", email)

        if await TeamService.get_membership(db, user.id, team_id) is not None:
            raise ValidationFailedError("User is already a member of this team")

        role_row = await TeamService._role(db, role)
        member = TeamMember(user_id=user.id, team_id=team_id, role_id=role_row.id)
        db.add(member)
        await ActivityService.log(db, team_id, ctx, ActivityType.INVITE_TEAM_MEMBER, commit=False)
        await db.commit()

        await PermissionService.invalidate(user_id=user.id, team_id=team_id)
        return await TeamService._load_member(db, member.id)

    @staticmethod
    async def _load_member(db: AsyncSession, member_id: int) -> TeamMember:
        query = (
            select(TeamMember)
            .where(TeamMember.id == member_id)
            .options(selectinload(TeamMember.user), selectinload(TeamMember.role))
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        return result.scalars().one()

    @staticmethod
    @log_function()
    async def change_role(
        db: AsyncSession,
        ctx: RequestContext,
        team_id: int,
        user_id: int,
        role: RoleName
    ) -> TeamMember:
        """Change a member's role (SET_USER_PERMISSIONS); the last owner cannot be demoted"""
        await TeamService._require(db, ctx, team_id, Perm.SET_USER_PERMISSIONS)

        member = await TeamService.get_membership(db, user_id, team_id)
        if member is None:
            raise NotFoundError("Team member", user_id)

        current = await PermissionService.get_role(db, user_id, team_id)
        if (
            current == RoleName.OWNER
            and RoleName(role) != RoleName.OWNER
            and await TeamService._count_owners(db, team_id) <= 1
        ):
            raise ValidationFailedError("The last owner of a team cannot be demoted")

        role_row = await TeamService._role(db, role)
        member.role_id = role_row.id
        await ActivityService.log(db, team_id, ctx, ActivityType.ROLE_UPDATE, commit=False)
        await db.commit()

        await PermissionService.invalidate(user_id=user_id, team_id=team_id)
        return await TeamService._load_member(db, member.id)

    @staticmethod
    @log_function()
    async def remove_member(
        db: AsyncSession,
        ctx: RequestContext,
        team_id: int,
        user_id: int
    ) -> None:
        """Remove a member (REMOVE_USER); the last owner cannot be removed"""
        await TeamService._require(db, ctx, team_id, Perm.REMOVE_USER)

        member = await TeamService.get_membership(db, user_id, team_id)
        if member is None:
            raise NotFoundError("Team member", user_id)

        current = await PermissionService.get_role(db, user_id, team_id)
        if current == RoleName.OWNER and await TeamService._count_owners(db, team_id) <= 1:
            raise ValidationFailedError("The last owner of a team cannot be removed")

        await db.delete(member)
        await ActivityService.log(db, team_id, ctx, ActivityType.REMOVE_TEAM_MEMBER, commit=False)
        await db.commit()
        await PermissionService.invalidate(user_id=user_id, team_id=team_id)

    @staticmethod
    async def get_activity(
        db: AsyncSession,
        ctx: RequestContext,
        team_id: int,
        limit: int = 15
    ):
        await TeamService._require(db, ctx, team_id, Perm.READ_TASK)
        return await ActivityService.get_team_activity(db, team_id, limit=limit)
