import time
from collections import OrderedDict
from typing import Optional, Tuple

from redis import asyncio as aioredis
from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from teamboard.core import get_settings
from teamboard.logs import debug_logger
from teamboard.models.permission import (
    DEFAULT_GRANTS,
    Perm,
    Permission,
    Role,
    RoleName,
    RolePermission,
)
from teamboard.models.team import TeamMember

settings = get_settings()


class PermissionResolver:
    """Answers "may this user do this in this team?".

    Implementations must fail closed: a missing membership, role or grant is
    a denial, never an implicit allow.
    """

    async def is_authorized(
        self,
        db: AsyncSession,
        user_id: int,
        team_id: int,
        permission: Perm
    ) -> bool:
        raise NotImplementedError

    async def invalidate(self, user_id: Optional[int] = None, team_id: Optional[int] = None) -> None:
        """Drop cached answers; no-op for uncached resolvers"""

    async def close(self) -> None:
        """Release connections held by the resolver"""


class DatabasePermissionResolver(PermissionResolver):
    """Resolves membership → role → grants with one join query"""

    async def is_authorized(
        self,
        db: AsyncSession,
        user_id: int,
        team_id: int,
        permission: Perm
    ) -> bool:
        query = (
            select(TeamMember.id)
            .join(RolePermission, RolePermission.role_id == TeamMember.role_id)
            .join(Permission, Permission.id == RolePermission.permission_id)
            .where(
                TeamMember.user_id == user_id,
                TeamMember.team_id == team_id,
                Permission.name == Perm(permission),
            )
            .limit(1)
        )
        result = await db.execute(query)
        return result.first() is not None


def _matches(key: Tuple[int, int, Perm], user_id: Optional[int], team_id: Optional[int]) -> bool:
    return (user_id is None or key[0] == user_id) and (team_id is None or key[1] == team_id)


class CachedPermissionResolver(PermissionResolver):
    """Bounded in-process TTL cache in front of another resolver.

    Entries are local to one worker; invalidate only reaches this process,
    so a role change seen by another worker takes up to ``ttl_seconds`` to
    show here. Use RedisPermissionResolver when running several workers.
    """

    def __init__(self, inner: PermissionResolver, ttl_seconds: float, max_entries: int = 10000):
        self.inner = inner
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        # (user_id, team_id, permission) -> (expires_at, allowed), least recently used first
        self._entries: "OrderedDict[Tuple[int, int, Perm], Tuple[float, bool]]" = OrderedDict()

    async def is_authorized(
        self,
        db: AsyncSession,
        user_id: int,
        team_id: int,
        permission: Perm
    ) -> bool:
        key = (user_id, team_id, Perm(permission))
        now = time.monotonic()
        cached = self._entries.get(key)
        if cached is not None:
            if cached[0] > now:
                self._entries.move_to_end(key)
                return cached[1]
            del self._entries[key]

        allowed = await self.inner.is_authorized(db, user_id, team_id, permission)
        self._store(key, allowed, now)
        return allowed

    def _store(self, key: Tuple[int, int, Perm], allowed: bool, now: float) -> None:
        if len(self._entries) >= self.max_entries:
            self.purge_expired(now)
        while len(self._entries) >= self.max_entries:
            self._entries.popitem(last=False)
        self._entries[key] = (now + self.ttl_seconds, allowed)

    def purge_expired(self, now: Optional[float] = None) -> int:
        """Drop expired entries, returning how many were removed"""
        if now is None:
            now = time.monotonic()
        expired = [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    async def invalidate(self, user_id: Optional[int] = None, team_id: Optional[int] = None) -> None:
        if user_id is None and team_id is None:
            self._entries.clear()
            return
        for key in [key for key in self._entries if _matches(key, user_id, team_id)]:
            del self._entries[key]


class RedisPermissionResolver(PermissionResolver):
    """TTL cache in Redis in front of another resolver.

    All workers share the entries, so an invalidation in one process is seen
    by every other. When Redis is unreachable the inner resolver answers and
    the error is logged.
    """

    KEY_PREFIX = "teamboard:perm"

    def __init__(self, inner: PermissionResolver, redis_url: str, ttl_seconds: int):
        self.inner = inner
        self.ttl_seconds = int(ttl_seconds)
        self._redis = aioredis.from_url(redis_url, encoding="utf-8", decode_responses=True)

    def _key(self, user_id, team_id, permission) -> str:
        return f"{self.KEY_PREFIX}:{user_id}:{team_id}:{Perm(permission).value}"

    async def is_authorized(
        self,
        db: AsyncSession,
        user_id: int,
        team_id: int,
        permission: Perm
    ) -> bool:
        key = self._key(user_id, team_id, permission)
        try:
            cached = await self._redis.get(key)
        except RedisError as exc:
            debug_logger.warning(f"Permission cache GET failed for {key}: {exc}")
            cached = None
        if cached is not None:
            return cached == "1"

        allowed = await self.inner.is_authorized(db, user_id, team_id, permission)
        try:
            await self._redis.setex(key, self.ttl_seconds, "1" if allowed else "0")
        except RedisError as exc:
            debug_logger.warning(f"Permission cache SET failed for {key}: {exc}")
        return allowed

    async def invalidate(self, user_id: Optional[int] = None, team_id: Optional[int] = None) -> None:
        user_part = "*" if user_id is None else user_id
        team_part = "*" if team_id is None else team_id
        pattern = f"{self.KEY_PREFIX}:{user_part}:{team_part}:*"
        try:
            keys = [key async for key in self._redis.scan_iter(match=pattern, count=100)]
            if keys:
                await self._redis.delete(*keys)
                debug_logger.debug(f"Dropped {len(keys)} cached permissions matching {pattern}")
        except RedisError as exc:
            debug_logger.warning(f"Permission cache invalidation failed for {pattern}: {exc}")

    async def close(self) -> None:
        await self._redis.aclose()


def build_resolver(
    ttl_seconds: Optional[float] = None,
    redis_url: Optional[str] = None
) -> PermissionResolver:
    """Resolver for the configured cache TTL and backend"""
    if ttl_seconds is None:
        ttl_seconds = settings.PERMISSION_CACHE_TTL
    if redis_url is None:
        redis_url = settings.REDIS_URL
    resolver = DatabasePermissionResolver()
    if not ttl_seconds or ttl_seconds <= 0:
        return resolver
    if redis_url:
        return RedisPermissionResolver(resolver, redis_url, ttl_seconds)
    return CachedPermissionResolver(resolver, ttl_seconds, max_entries=settings.PERMISSION_CACHE_SIZE)


class PermissionService:
    """Role and permission queries for team members"""

    resolver: PermissionResolver = build_resolver()

    @classmethod
    def use_resolver(cls, resolver: PermissionResolver) -> None:
        """Swap the resolver behind is_authorized"""
        cls.resolver = resolver

    @classmethod
    async def is_authorized(
        cls,
        db: AsyncSession,
        user_id: int,
        team_id: int,
        permission: Perm
    ) -> bool:
        """Check if the user holds the permission within the team"""
        allowed = await cls.resolver.is_authorized(db, user_id, team_id, permission)
        debug_logger.debug(
            f"User {user_id} team {team_id} permission {Perm(permission).value}: "
            f"{'granted' if allowed else 'denied'}"
        )
        return allowed

    @classmethod
    async def invalidate(cls, user_id: Optional[int] = None, team_id: Optional[int] = None) -> None:
        await cls.resolver.invalidate(user_id=user_id, team_id=team_id)

    @classmethod
    async def close(cls) -> None:
        await cls.resolver.close()

    @staticmethod
    async def get_role(
        db: AsyncSession,
        user_id: int,
        team_id: int
    ) -> Optional[RoleName]:
        """Get a user's role in a team, None when not a member"""
        query = (
            select(Role.name)
            .join(TeamMember, TeamMember.role_id == Role.id)
            .where(TeamMember.user_id == user_id, TeamMember.team_id == team_id)
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_role_by_name(db: AsyncSession, name: RoleName) -> Optional[Role]:
        result = await db.execute(select(Role).where(Role.name == RoleName(name)))
        return result.scalars().first()

    @staticmethod
    async def get_granted_permissions(db: AsyncSession, name: RoleName) -> set:
        """Effective permission set of a role: the union of its grants"""
        query = (
            select(Permission.name)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .join(Role, Role.id == RolePermission.role_id)
            .where(Role.name == RoleName(name))
        )
        result = await db.execute(query)
        return set(result.scalars().all())

    @staticmethod
    async def seed_catalog(db: AsyncSession, grants=None) -> None:
        """Insert missing roles, permissions and role grants.

        Safe to run on every startup; existing rows are left untouched.
        """
        if grants is None:
            grants = DEFAULT_GRANTS

        roles = {role.name: role for role in (await db.execute(select(Role))).scalars().all()}
        for name in RoleName:
            if name not in roles:
                roles[name] = Role(name=name)
                db.add(roles[name])

        permissions = {
            perm.name: perm for perm in (await db.execute(select(Permission))).scalars().all()
        }
        for name in Perm:
            if name not in permissions:
                permissions[name] = Permission(name=name)
                db.add(permissions[name])

        await db.flush()

        rows = await db.execute(select(RolePermission.role_id, RolePermission.permission_id))
        existing = {(role_id, permission_id) for role_id, permission_id in rows.all()}
        for role_name, perms in grants.items():
            role = roles[RoleName(role_name)]
            for perm in perms:
                permission = permissions[Perm(perm)]
                if (role.id, permission.id) not in existing:
                    db.add(RolePermission(role_id=role.id, permission_id=permission.id))
                    existing.add((role.id, permission.id))

        await db.commit()
        debug_logger.info("Role and permission catalog is up to date")
