# Import all models here for Alembic to discover them
from teamboard.db.base import Base
from teamboard.models.user import User
from teamboard.models.team import Team, TeamMember
from teamboard.models.permission import Role, Permission, RolePermission
from teamboard.models.column import KanbanColumn
from teamboard.models.task import Task
from teamboard.models.activity_log import ActivityLog
