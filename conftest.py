"""Shared fixtures: an in-memory SQLite board with seeded roles and one team.

The application engine is created at import time, so the database settings
are pinned before anything from ``teamboard`` is imported.
"""
import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["RUN_MIGRATIONS"] = "False"
os.environ["PERMISSION_CACHE_TTL"] = "0"
os.environ["REDIS_URL"] = ""
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from teamboard.core.context import RequestContext
from teamboard.db.database import engine_options
from teamboard.db.models import Base
from teamboard.models.permission import RoleName
from teamboard.models.user import User
from teamboard.services.permission_service import DatabasePermissionResolver, PermissionService
from teamboard.services.security_service import SecurityService
from teamboard.services.team_service import TeamService

TEST_PASSWORD = "password123"
# Hashed once for the whole session
TEST_PASSWORD_HASH = SecurityService.create_password_hash(TEST_PASSWORD)


@pytest.fixture(autouse=True)
def reset_permission_resolver():
    """Every test starts and ends with the uncached resolver"""
    PermissionService.use_resolver(DatabasePermissionResolver())
    yield
    PermissionService.use_resolver(DatabasePermissionResolver())


@pytest.fixture
async def engine():
    database_url = "sqlite+aiosqlite:///:memory:"
    engine = create_async_engine(database_url, **engine_options(database_url))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db(engine):
    session_factory = async_sessionmaker(
        engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        await PermissionService.seed_catalog(session)
        yield session


async def make_user(db, email: str, name: str = None) -> User:
    user = User(
        email=email,
        name=name,
        hashed_password=TEST_PASSWORD_HASH,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest.fixture
async def owner(db):
    return await make_user(db, "owner@example.com", "Olivia Owner")


@pytest.fixture
async def admin(db):
    return await make_user(db, "admin@example.com", "Adam Admin")


@pytest.fixture
async def member(db):
    return await make_user(db, "member@example.com", "Mia Member")


@pytest.fixture
async def outsider(db):
    return await make_user(db, "outsider@example.com", "Otto Outsider")


@pytest.fixture
def owner_ctx(owner):
    return RequestContext(user_id=owner.id, ip_address="127.0.0.1")


@pytest.fixture
def admin_ctx(admin):
    return RequestContext(user_id=admin.id, ip_address="127.0.0.1")


@pytest.fixture
def member_ctx(member):
    return RequestContext(user_id=member.id, ip_address="127.0.0.1")


@pytest.fixture
def outsider_ctx(outsider):
    return RequestContext(user_id=outsider.id)


@pytest.fixture
async def team(db, owner_ctx, admin, member):
    """Team 'Core' with columns To Do / In Progress / Done and three members"""
    team = await TeamService.create_team(db, owner_ctx, "Core")
    await TeamService.add_member(db, owner_ctx, team.id, admin.email, RoleName.ADMIN)
    await TeamService.add_member(db, owner_ctx, team.id, member.email, RoleName.MEMBER)
    return team


@pytest.fixture
async def other_team(db, outsider):
    """Team owned by the outsider, unrelated to ``team``"""
    return await TeamService.create_team(db, RequestContext(user_id=outsider.id), "Elsewhere")
