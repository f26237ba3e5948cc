from sqlalchemy import Column, Integer, ForeignKey, Enum, UniqueConstraint
import enum

from teamboard.db.base import Base


class RoleName(str, enum.Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class Perm(str, enum.Enum):
    CREATE_TASK = "create_task"
    READ_TASK = "read_task"
    UPDATE_TASK = "update_task"
    DELETE_TASK = "delete_task"

    CREATE_FILE = "create_file"
    READ_FILE = "read_file"
    UPDATE_FILE = "update_file"
    DELETE_FILE = "delete_file"

    INVITE_USER = "invite_user"
    REMOVE_USER = "remove_user"
    SET_USER_PERMISSIONS = "set_user_permissions"


MEMBER_PERMISSIONS = frozenset({
    Perm.CREATE_TASK,
    Perm.READ_TASK,
    Perm.CREATE_FILE,
    Perm.READ_FILE,
})

# Grants seeded into role_permissions
DEFAULT_GRANTS = {
    RoleName.OWNER: frozenset(Perm),
    RoleName.ADMIN: frozenset(p for p in Perm if p is not Perm.SET_USER_PERMISSIONS),
    RoleName.MEMBER: MEMBER_PERMISSIONS,
}


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Role(Base):
    """Named authorization tier, assigned once per (user, team)"""

    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(
        Enum(RoleName, name="role_name", values_callable=_enum_values),
        unique=True,
        nullable=False,
    )


class Permission(Base):
    """Atomic capability from the fixed catalog"""

    __tablename__ = "permissions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(
        Enum(Perm, name="permission_name", values_callable=_enum_values),
        unique=True,
        nullable=False,
    )


class RolePermission(Base):
    """Grants a permission to a role"""

    __tablename__ = "role_permissions"
    __table_args__ = (
        UniqueConstraint("role_id", "permission_id", name="uq_role_permissions_role_permission"),
    )

    id = Column(Integer, primary_key=True, index=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)
    permission_id = Column(Integer, ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False, index=True)
