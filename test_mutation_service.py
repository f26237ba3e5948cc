import pytest
from sqlalchemy import func, select

from teamboard.core.context import RequestContext
from teamboard.core.exceptions import (
    AuthenticationMissingError,
    AuthorizationDeniedError,
    NotFoundError,
    ValidationFailedError,
)
from teamboard.models.activity_log import ActivityLog, ActivityType
from teamboard.models.task import TaskStatus
from teamboard.services.column_service import ColumnService
from teamboard.services.mutation_service import MutationService
from teamboard.services.task_service import TaskService


@pytest.fixture
async def columns(db, team):
    return await ColumnService.get_by_team_id(db, team.id)


@pytest.fixture
async def abcd(db, team, owner_ctx, columns):
    """Tasks A, B, C, D in the first column with orders 0..3"""
    return [
        await MutationService.create_task(db, owner_ctx, team.id, title)
        for title in ("A", "B", "C", "D")
    ]


async def column_titles(db, ctx, team_id):
    board = await MutationService.get_board(db, ctx, team_id)
    return [[task.title for task in column.tasks] for column in board]


async def activity_actions(db, team_id):
    result = await db.execute(
        select(ActivityLog.action).where(ActivityLog.team_id == team_id).order_by(ActivityLog.id)
    )
    return list(result.scalars().all())


class TestTaskAuthorization:
    """Permission checks in front of task operations"""

    @pytest.mark.asyncio
    async def test_member_can_create_and_read(self, db, team, member_ctx):
        task = await MutationService.create_task(db, member_ctx, team.id, "From member")

        tasks = await MutationService.list_tasks(db, member_ctx, team.id)
        assert [t.id for t in tasks] == [task.id]

    @pytest.mark.asyncio
    async def test_missing_identity(self, db, team):
        with pytest.raises(AuthenticationMissingError):
            await MutationService.create_task(db, None, team.id, "Anonymous")
        with pytest.raises(AuthenticationMissingError):
            await MutationService.get_board(db, RequestContext(user_id=None), team.id)

        assert await TaskService.list_by_team(db, team.id) == []

    @pytest.mark.asyncio
    async def test_member_delete_is_denied_without_mutation(self, db, team, member_ctx, abcd):
        target = abcd[0]

        with pytest.raises(AuthorizationDeniedError):
            await MutationService.delete_task(db, member_ctx, team.id, target.id)

        stored = await TaskService.get_by_id(db, target.id)
        assert stored.deleted_at is None
        assert ActivityType.DELETE_TASK.value not in await activity_actions(db, team.id)

    @pytest.mark.asyncio
    async def test_member_cannot_update_or_move(self, db, team, member_ctx, abcd, columns):
        with pytest.raises(AuthorizationDeniedError):
            await MutationService.update_task(db, member_ctx, team.id, abcd[0].id, {"title": "Hijacked"})
        with pytest.raises(AuthorizationDeniedError):
            await MutationService.move_task(db, member_ctx, team.id, abcd[0].id, 5, columns[2].id)
        with pytest.raises(AuthorizationDeniedError):
            await MutationService.drop_task(db, member_ctx, team.id, abcd[0].id, abcd[2].id)

        stored = await TaskService.get_by_id(db, abcd[0].id)
        assert (stored.title, stored.column_id, stored.order) == ("A", columns[0].id, 0)

    @pytest.mark.asyncio
    async def test_outsider_cannot_read(self, db, team, outsider_ctx):
        with pytest.raises(AuthorizationDeniedError):
            await MutationService.get_board(db, outsider_ctx, team.id)
        with pytest.raises(AuthorizationDeniedError):
            await MutationService.create_task(db, outsider_ctx, team.id, "Intruder")

    @pytest.mark.asyncio
    async def test_admin_can_delete(self, db, team, admin_ctx, abcd):
        deleted = await MutationService.delete_task(db, admin_ctx, team.id, abcd[1].id)
        assert deleted.deleted_at is not None

    @pytest.mark.asyncio
    async def test_blank_title_is_rejected(self, db, team, owner_ctx):
        with pytest.raises(ValidationFailedError):
            await MutationService.create_task(db, owner_ctx, team.id, "   ")


class TestTaskScoping:
    """Requests only reach rows of their own team"""

    @pytest.mark.asyncio
    async def test_foreign_task_is_not_found(self, db, team, other_team, owner_ctx, outsider_ctx):
        foreign = await MutationService.create_task(db, outsider_ctx, other_team.id, "Theirs")

        with pytest.raises(NotFoundError):
            await MutationService.update_task(db, owner_ctx, team.id, foreign.id, {"title": "Mine now"})
        with pytest.raises(NotFoundError):
            await MutationService.delete_task(db, owner_ctx, team.id, foreign.id)

        assert (await TaskService.get_by_id(db, foreign.id)).title == "Theirs"

    @pytest.mark.asyncio
    async def test_foreign_column_is_not_found(self, db, team, other_team, owner_ctx, abcd):
        foreign_column = (await ColumnService.get_by_team_id(db, other_team.id))[0]

        with pytest.raises(NotFoundError):
            await MutationService.move_task(db, owner_ctx, team.id, abcd[0].id, 0, foreign_column.id)

    @pytest.mark.asyncio
    async def test_deleted_task_is_not_found(self, db, team, owner_ctx, abcd):
        await MutationService.delete_task(db, owner_ctx, team.id, abcd[0].id)

        with pytest.raises(NotFoundError):
            await MutationService.update_task(db, owner_ctx, team.id, abcd[0].id, {"title": "Zombie"})


class TestTaskMutations:
    """Create, update, move and delete through the service"""

    @pytest.mark.asyncio
    async def test_create_defaults_and_activity(self, db, team, owner_ctx, columns):
        task = await MutationService.create_task(db, owner_ctx, team.id, "Plan", description="Q3")

        assert task.status == TaskStatus.TODO
        assert task.column_id == columns[0].id
        assert await activity_actions(db, team.id) == [
            ActivityType.CREATE_TEAM.value,
            ActivityType.INVITE_TEAM_MEMBER.value,
            ActivityType.INVITE_TEAM_MEMBER.value,
            ActivityType.CREATE_TASK.value,
        ]

    @pytest.mark.asyncio
    async def test_update(self, db, team, owner_ctx, abcd):
        task = await MutationService.update_task(
            db, owner_ctx, team.id, abcd[0].id, {"title": "A+", "status": TaskStatus.DONE}
        )
        assert (task.title, task.status) == ("A+", TaskStatus.DONE)

    @pytest.mark.asyncio
    async def test_move_within_column_writes_only_moved_task(self, db, team, owner_ctx, abcd):
        await MutationService.move_task(db, owner_ctx, team.id, abcd[0].id, 2)

        orders = {t.title: t.order for t in await TaskService.list_by_team(db, team.id)}
        assert orders == {"A": 2, "B": 1, "C": 2, "D": 3}

    @pytest.mark.asyncio
    async def test_move_across_columns(self, db, team, owner_ctx, abcd, columns):
        moved = await MutationService.move_task(db, owner_ctx, team.id, abcd[1].id, 0, columns[1].id)

        assert (moved.column_id, moved.order) == (columns[1].id, 0)
        assert await column_titles(db, owner_ctx, team.id) == [["A", "C", "D"], ["B"], []]

    @pytest.mark.asyncio
    async def test_delete_is_soft(self, db, team, owner_ctx, abcd):
        await MutationService.delete_task(db, owner_ctx, team.id, abcd[2].id)

        assert await column_titles(db, owner_ctx, team.id) == [["A", "B", "D"], [], []]
        stored = await TaskService.get_by_id(db, abcd[2].id)
        assert stored.deleted_at is not None


class TestDropTask:
    """Server-side drop of one task onto another"""

    @pytest.mark.asyncio
    async def test_same_column_drop(self, db, team, owner_ctx, abcd):
        a, b, c, d = abcd

        plan, task = await MutationService.drop_task(db, owner_ctx, team.id, a.id, c.id)

        assert plan.order == 2
        assert plan.cross_column is False
        assert task.order == 2
        orders = {t.title: t.order for t in await TaskService.list_by_team(db, team.id)}
        assert orders["A"] == 2

    @pytest.mark.asyncio
    async def test_cross_column_drop_appends(self, db, team, owner_ctx, abcd, columns):
        doing = columns[1]
        e = await MutationService.create_task(db, owner_ctx, team.id, "E", column_id=doing.id)
        await MutationService.create_task(db, owner_ctx, team.id, "F", column_id=doing.id)

        plan, task = await MutationService.drop_task(db, owner_ctx, team.id, abcd[0].id, e.id)

        assert plan.cross_column is True
        assert (task.column_id, task.order) == (doing.id, 2)
        assert await column_titles(db, owner_ctx, team.id) == [["B", "C", "D"], ["E", "F", "A"], []]

    @pytest.mark.asyncio
    async def test_unresolvable_drop_is_noop(self, db, team, owner_ctx, abcd):
        before = await activity_actions(db, team.id)

        assert await MutationService.drop_task(db, owner_ctx, team.id, abcd[0].id, 999) == (None, None)
        assert await MutationService.drop_task(db, owner_ctx, team.id, 999, abcd[0].id) == (None, None)

        assert await activity_actions(db, team.id) == before
        assert await column_titles(db, owner_ctx, team.id) == [["A", "B", "C", "D"], [], []]


class TestColumnMutations:
    """Column operations and the deletion policy"""

    @pytest.mark.asyncio
    async def test_member_cannot_change_columns(self, db, team, member_ctx, columns):
        with pytest.raises(AuthorizationDeniedError):
            await MutationService.create_column(db, member_ctx, team.id, "Mine")
        with pytest.raises(AuthorizationDeniedError):
            await MutationService.update_column(db, member_ctx, columns[1].id, name="Renamed")
        with pytest.raises(AuthorizationDeniedError):
            await MutationService.delete_column(db, member_ctx, columns[1].id)

        assert len(await ColumnService.get_by_team_id(db, team.id)) == 3

    @pytest.mark.asyncio
    async def test_create_column_after_max(self, db, team, owner_ctx):
        column = await MutationService.create_column(db, owner_ctx, team.id, "Review")
        assert column.order == 4

    @pytest.mark.asyncio
    async def test_delete_column_moves_tasks(self, db, team, owner_ctx, columns):
        doing = columns[1]
        task = await MutationService.create_task(db, owner_ctx, team.id, "Orphan", column_id=doing.id)

        await MutationService.delete_column(db, owner_ctx, doing.id)

        assert (await TaskService.get_by_id(db, task.id)).column_id == columns[0].id
        assert await column_titles(db, owner_ctx, team.id) == [["Orphan"], []]

    @pytest.mark.asyncio
    async def test_fallback_column_is_protected(self, db, team, owner_ctx, columns):
        with pytest.raises(ValidationFailedError):
            await MutationService.delete_column(db, owner_ctx, columns[0].id)
        assert len(await ColumnService.get_by_team_id(db, team.id)) == 3

    @pytest.mark.asyncio
    async def test_delete_without_fallback_column_is_rejected(self, db, team, owner_ctx, abcd, columns):
        todo, doing = columns[0], columns[1]
        await MutationService.create_task(db, owner_ctx, team.id, "E", column_id=doing.id)
        await MutationService.update_column(db, owner_ctx, todo.id, order=10)
        actions_before = await activity_actions(db, team.id)

        with pytest.raises(ValidationFailedError):
            await MutationService.delete_column(db, owner_ctx, doing.id)

        assert len(await ColumnService.get_by_team_id(db, team.id)) == 3
        assert await column_titles(db, owner_ctx, team.id) == [["E"], [], ["A", "B", "C", "D"]]
        assert await activity_actions(db, team.id) == actions_before

    @pytest.mark.asyncio
    async def test_delete_after_renormalize_uses_new_fallback(self, db, team, owner_ctx, abcd, columns):
        todo, doing = columns[0], columns[1]
        await MutationService.update_column(db, owner_ctx, todo.id, order=10)
        await MutationService.renormalize_board(db, owner_ctx, team.id)

        await MutationService.delete_column(db, owner_ctx, columns[2].id)

        assert [column.id for column in await ColumnService.get_by_team_id(db, team.id)] == [doing.id, todo.id]

    @pytest.mark.asyncio
    async def test_last_column_is_protected(self, db, team, owner_ctx, columns):
        await ColumnService.update(db, columns[0].id, order=9)
        for column in columns[1:]:
            await db.delete(column)
        await db.commit()

        with pytest.raises(ValidationFailedError):
            await MutationService.delete_column(db, owner_ctx, columns[0].id)
        assert len(await ColumnService.get_by_team_id(db, team.id)) == 1

    @pytest.mark.asyncio
    async def test_foreign_column_in_reorder(self, db, team, other_team, owner_ctx, columns):
        foreign = (await ColumnService.get_by_team_id(db, other_team.id))[0]
        with pytest.raises(NotFoundError):
            await MutationService.reorder_columns(db, owner_ctx, team.id, [(foreign.id, 2)])

    @pytest.mark.asyncio
    async def test_missing_column(self, db, owner_ctx):
        with pytest.raises(NotFoundError):
            await MutationService.update_column(db, owner_ctx, 999, name="Ghost")


class TestRenormalizeBoard:
    """Explicit re-normalization of the whole board"""

    @pytest.mark.asyncio
    async def test_dense_orders(self, db, team, owner_ctx, abcd, columns):
        await MutationService.reorder_columns(db, owner_ctx, team.id, [(columns[0].id, 10), (columns[2].id, 30)])
        await MutationService.move_task(db, owner_ctx, team.id, abcd[0].id, 2)
        await MutationService.move_task(db, owner_ctx, team.id, abcd[3].id, 7)

        board = await MutationService.renormalize_board(db, owner_ctx, team.id)

        assert [column.order for column in board] == [1, 2, 3]
        assert [column.id for column in board] == [columns[1].id, columns[0].id, columns[2].id]
        first = board[1]
        # A and C both held order 2; the lower id keeps A first
        assert [t.title for t in first.tasks] == ["B", "A", "C", "D"]
        assert [t.order for t in first.tasks] == [0, 1, 2, 3]

    @pytest.mark.asyncio
    async def test_requires_update_permission(self, db, team, member_ctx):
        with pytest.raises(AuthorizationDeniedError):
            await MutationService.renormalize_board(db, member_ctx, team.id)

        count = (await db.execute(
            select(func.count(ActivityLog.id)).where(ActivityLog.action == ActivityType.NORMALIZE_BOARD.value)
        )).scalar_one()
        assert count == 0
