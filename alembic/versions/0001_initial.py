"""
Initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 10:00:00
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None

role_name = sa.Enum('owner', 'admin', 'member', name='role_name')
permission_name = sa.Enum(
    'create_task', 'read_task', 'update_task', 'delete_task',
    'create_file', 'read_file', 'update_file', 'delete_file',
    'invite_user', 'remove_user', 'set_user_permissions',
    name='permission_name',
)
task_status = sa.Enum('created', 'todo', 'in_progress', 'done', name='task_status')
task_type = sa.Enum('task', 'project', 'idea', name='task_type')


def upgrade() -> None:
    # users
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=True),
        sa.Column('hashed_password', sa.Text(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # teams
    op.create_table(
        'teams',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_teams_id', 'teams', ['id'])

    # roles / permissions catalog
    op.create_table(
        'roles',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('name', role_name, nullable=False, unique=True),
    )
    op.create_index('ix_roles_id', 'roles', ['id'])

    op.create_table(
        'permissions',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('name', permission_name, nullable=False, unique=True),
    )
    op.create_index('ix_permissions_id', 'permissions', ['id'])

    op.create_table(
        'role_permissions',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('role_id', sa.Integer(), sa.ForeignKey('roles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('permission_id', sa.Integer(), sa.ForeignKey('permissions.id', ondelete='CASCADE'), nullable=False),
        sa.UniqueConstraint('role_id', 'permission_id', name='uq_role_permissions_role_permission'),
    )
    op.create_index('ix_role_permissions_id', 'role_permissions', ['id'])
    op.create_index('ix_role_permissions_role_id', 'role_permissions', ['role_id'])
    op.create_index('ix_role_permissions_permission_id', 'role_permissions', ['permission_id'])

    # team_members
    op.create_table(
        'team_members',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('team_id', sa.Integer(), sa.ForeignKey('teams.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role_id', sa.Integer(), sa.ForeignKey('roles.id'), nullable=False),
        sa.Column('joined_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('user_id', 'team_id', name='uq_team_members_user_team'),
    )
    op.create_index('ix_team_members_id', 'team_members', ['id'])
    op.create_index('ix_team_members_user_id', 'team_members', ['user_id'])
    op.create_index('ix_team_members_team_id', 'team_members', ['team_id'])
    op.create_index('ix_team_members_role_id', 'team_members', ['role_id'])

    # kanban_columns
    op.create_table(
        'kanban_columns',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('team_id', sa.Integer(), sa.ForeignKey('teams.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('order', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_kanban_columns_id', 'kanban_columns', ['id'])
    op.create_index('ix_kanban_columns_team_id', 'kanban_columns', ['team_id'])

    # tasks
    op.create_table(
        'tasks',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('team_id', sa.Integer(), sa.ForeignKey('teams.id'), nullable=False),
        sa.Column('parent_task_id', sa.Integer(), sa.ForeignKey('tasks.id'), nullable=True),
        sa.Column('column_id', sa.Integer(), sa.ForeignKey('kanban_columns.id'), nullable=False),
        sa.Column('title', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', task_status, nullable=False),
        sa.Column('type', task_type, nullable=False),
        sa.Column('order', sa.Integer(), nullable=False),
        sa.Column('assignee_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('due_date', sa.DateTime(), nullable=True),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_tasks_id', 'tasks', ['id'])
    op.create_index('ix_tasks_team_id', 'tasks', ['team_id'])
    op.create_index('ix_tasks_parent_task_id', 'tasks', ['parent_task_id'])
    op.create_index('ix_tasks_column_id', 'tasks', ['column_id'])

    # activity_logs
    op.create_table(
        'activity_logs',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('team_id', sa.Integer(), sa.ForeignKey('teams.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('action', sa.Text(), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
    )
    op.create_index('ix_activity_logs_id', 'activity_logs', ['id'])
    op.create_index('ix_activity_logs_team_id', 'activity_logs', ['team_id'])
    op.create_index('ix_activity_logs_user_id', 'activity_logs', ['user_id'])


def downgrade() -> None:
    op.drop_table('activity_logs')
    op.drop_table('tasks')
    op.drop_table('kanban_columns')
    op.drop_table('team_members')
    op.drop_table('role_permissions')
    op.drop_table('permissions')
    op.drop_table('roles')
    op.drop_table('teams')
    op.drop_table('users')

    bind = op.get_bind()
    for enum_type in (task_type, task_status, permission_name, role_name):
        enum_type.drop(bind, checkfirst=True)
