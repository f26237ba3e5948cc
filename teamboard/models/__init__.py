from teamboard.models.user import User
from teamboard.models.team import Team, TeamMember
from teamboard.models.permission import Role, Permission, RolePermission, RoleName, Perm
from teamboard.models.column import KanbanColumn
from teamboard.models.task import Task, TaskStatus, TaskType
from teamboard.models.activity_log import ActivityLog, ActivityType
