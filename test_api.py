"""HTTP tests: real routers, services and SQLite, one shared session per test."""
import pytest
from httpx import ASGITransport, AsyncClient

from teamboard.db.database import get_async_session
from teamboard.main import app
from teamboard.services.column_service import ColumnService
from teamboard.services.security_service import SecurityService
from teamboard.services.task_service import TaskService

from conftest import TEST_PASSWORD


def auth(user) -> dict:
    token = SecurityService.create_token_for_user(user.id)["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def client(db):
    async def override_session():
        yield db

    app.dependency_overrides[get_async_session] = override_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
async def columns(db, team):
    return await ColumnService.get_by_team_id(db, team.id)


class TestAuthApi:
    """Tests for /auth endpoints"""

    @pytest.mark.asyncio
    async def test_register_login_me(self, client):
        response = await client.post("/auth/register", json={
            "email": "new@example.com",
            "name": "Newcomer",
            "password": "longenough",
        })
        assert response.status_code == 201
        assert response.json()["email"] == "new@example.com"
        assert "hashedPassword" not in response.json()

        response = await client.post("/auth/login", json={"email": "new@example.com", "password": "longenough"})
        assert response.status_code == 200
        token = response.json()["accessToken"]
        assert response.json()["tokenType"] == "bearer"

        response = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json()["name"] == "Newcomer"

    @pytest.mark.asyncio
    async def test_duplicate_email(self, client, owner):
        response = await client.post("/auth/register", json={
            "email": owner.email,
            "password": TEST_PASSWORD,
        })
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_wrong_password(self, client, owner):
        response = await client.post("/auth/login", json={"email": owner.email, "password": "wrong-password"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_short_password_is_bad_request(self, client):
        response = await client.post("/auth/register", json={"email": "short@example.com", "password": "123"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_missing_token(self, client, team):
        response = await client.get(f"/kanban?teamId={team.id}")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_token(self, client, team):
        response = await client.get(
            f"/kanban?teamId={team.id}",
            headers={"Authorization": "Bearer not-a-token"},
        )
        assert response.status_code == 401


class TestKanbanApi:
    """Tests for /kanban endpoints"""

    @pytest.mark.asyncio
    async def test_get_board(self, client, db, team, owner, member):
        await TaskService.create(db, team.id, "Visible", assignee_id=member.id)
        hidden = await TaskService.create(db, team.id, "Hidden")
        await TaskService.soft_delete(db, hidden.id)

        response = await client.get(f"/kanban?teamId={team.id}", headers=auth(owner))

        assert response.status_code == 200
        board = response.json()
        assert [column["name"] for column in board] == ["To Do", "In Progress", "Done"]
        assert [task["title"] for task in board[0]["tasks"]] == ["Visible"]
        assert board[0]["tasks"][0]["assignee"] == {
            "id": member.id,
            "name": "Mia Member",
            "email": "member@example.com",
        }

    @pytest.mark.asyncio
    async def test_board_defaults_to_first_team(self, client, team, member):
        response = await client.get("/kanban", headers=auth(member))
        assert response.status_code == 200
        assert response.json()[0]["teamId"] == team.id

    @pytest.mark.asyncio
    async def test_user_without_team(self, client, outsider):
        response = await client.get("/kanban", headers=auth(outsider))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_outsider_is_forbidden(self, client, team, outsider):
        response = await client.get(f"/kanban?teamId={team.id}", headers=auth(outsider))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_column_lifecycle(self, client, db, team, owner, columns):
        response = await client.post("/kanban/column", json={"name": "Review", "teamId": team.id}, headers=auth(owner))
        assert response.status_code == 201
        created = response.json()
        assert created["order"] == 4

        response = await client.patch(
            f"/kanban/column/{created['id']}", json={"name": "QA"}, headers=auth(owner)
        )
        assert response.status_code == 200
        assert response.json()["name"] == "QA"

        task = await TaskService.create(db, team.id, "Check", column_id=created["id"])
        response = await client.delete(f"/kanban/column/{created['id']}", headers=auth(owner))
        assert response.status_code == 204

        assert (await TaskService.get_by_id(db, task.id)).column_id == columns[0].id

    @pytest.mark.asyncio
    async def test_fallback_column_delete_is_rejected(self, client, team, owner, columns):
        response = await client.delete(f"/kanban/column/{columns[0].id}", headers=auth(owner))
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_delete_without_fallback_column_is_rejected(self, client, db, team, owner, columns):
        todo, doing, done = columns
        task = await TaskService.create(db, team.id, "Stays", column_id=doing.id)

        response = await client.patch(f"/kanban/column/{todo.id}", json={"order": 10}, headers=auth(owner))
        assert response.status_code == 200

        response = await client.delete(f"/kanban/column/{doing.id}", headers=auth(owner))
        assert response.status_code == 400
        assert "no column at order 1" in response.json()["detail"]

        response = await client.get(f"/kanban?teamId={team.id}", headers=auth(owner))
        assert [column["id"] for column in response.json()] == [doing.id, done.id, todo.id]
        assert (await TaskService.get_by_id(db, task.id)).column_id == doing.id

    @pytest.mark.asyncio
    async def test_member_cannot_create_column(self, client, team, member):
        response = await client.post("/kanban/column", json={"name": "Mine", "teamId": team.id}, headers=auth(member))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_reorder_columns(self, client, team, owner, columns):
        todo, doing, done = columns
        response = await client.put("/kanban/column/reorder", json={
            "teamId": team.id,
            "columns": [{"id": done.id, "order": 0}],
        }, headers=auth(owner))

        assert response.status_code == 200
        assert [column["id"] for column in response.json()] == [done.id, todo.id, doing.id]

    @pytest.mark.asyncio
    async def test_normalize(self, client, db, team, owner, columns):
        await TaskService.create(db, team.id, "Sparse", order=40)

        response = await client.post("/kanban/normalize", json={"teamId": team.id}, headers=auth(owner))

        assert response.status_code == 200
        board = response.json()
        assert [column["order"] for column in board] == [1, 2, 3]
        assert board[0]["tasks"][0]["order"] == 0


class TestTaskApi:
    """Tests for /task endpoints"""

    @pytest.mark.asyncio
    async def test_create_and_list(self, client, team, member, columns):
        response = await client.post("/task", json={
            "teamId": team.id,
            "title": "From the form",
            "dueDate": "2030-05-01T10:00:00Z",
        }, headers=auth(member))

        assert response.status_code == 201
        task = response.json()
        assert task["status"] == "todo"
        assert task["type"] == "task"
        assert task["columnId"] == columns[0].id
        assert task["dueDate"].startswith("2030-05-01T10:00:00")

        response = await client.get(f"/task?teamId={team.id}", headers=auth(member))
        assert [t["id"] for t in response.json()] == [task["id"]]

    @pytest.mark.asyncio
    async def test_missing_title_is_bad_request(self, client, team, owner):
        response = await client.post("/task", json={"teamId": team.id}, headers=auth(owner))
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_update(self, client, db, team, owner):
        task = await TaskService.create(db, team.id, "Rough")

        response = await client.put("/task", json={
            "id": task.id,
            "teamId": team.id,
            "title": "Polished",
            "status": "in_progress",
        }, headers=auth(owner))

        assert response.status_code == 200
        assert response.json()["title"] == "Polished"
        assert response.json()["status"] == "in_progress"

    @pytest.mark.asyncio
    async def test_patch_moves_task(self, client, db, team, owner, columns):
        task = await TaskService.create(db, team.id, "Go")

        response = await client.patch("/task", json={
            "id": task.id,
            "teamId": team.id,
            "columnId": columns[2].id,
            "order": 0,
        }, headers=auth(owner))

        assert response.status_code == 200
        assert response.json()["columnId"] == columns[2].id

    @pytest.mark.asyncio
    async def test_drop(self, client, db, team, owner):
        a, b, c, d = [await TaskService.create(db, team.id, title) for title in "ABCD"]

        response = await client.post("/task/drop", json={
            "teamId": team.id,
            "activeId": a.id,
            "overId": c.id,
        }, headers=auth(owner))

        assert response.status_code == 200
        assert response.json()["moved"] is True
        assert response.json()["task"]["order"] == 2

        response = await client.post("/task/drop", json={
            "teamId": team.id,
            "activeId": a.id,
            "overId": 999,
        }, headers=auth(owner))
        assert response.json() == {"moved": False, "task": None}

    @pytest.mark.asyncio
    async def test_member_delete_is_forbidden(self, client, db, team, member):
        task = await TaskService.create(db, team.id, "Precious")

        response = await client.delete(f"/task?id={task.id}&teamId={team.id}", headers=auth(member))

        assert response.status_code == 403
        assert (await TaskService.get_by_id(db, task.id)).deleted_at is None

    @pytest.mark.asyncio
    async def test_owner_delete(self, client, db, team, owner):
        task = await TaskService.create(db, team.id, "Obsolete")

        response = await client.delete(f"/task?id={task.id}&teamId={team.id}", headers=auth(owner))

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert (await TaskService.get_by_id(db, task.id)).deleted_at is not None

    @pytest.mark.asyncio
    async def test_foreign_task_is_not_found(self, client, db, team, other_team, owner):
        foreign = await TaskService.create(db, other_team.id, "Theirs")

        response = await client.delete(f"/task?id={foreign.id}&teamId={team.id}", headers=auth(owner))

        assert response.status_code == 404


class TestTeamsApi:
    """Tests for /teams endpoints"""

    @pytest.mark.asyncio
    async def test_create_team(self, client, outsider):
        response = await client.post("/teams", json={"name": "Fresh"}, headers=auth(outsider))

        assert response.status_code == 201
        team_id = response.json()["id"]

        response = await client.get(f"/kanban?teamId={team_id}", headers=auth(outsider))
        assert [column["name"] for column in response.json()] == ["To Do", "In Progress", "Done"]

    @pytest.mark.asyncio
    async def test_member_management(self, client, team, owner, outsider):
        response = await client.post(
            f"/teams/{team.id}/members", json={"email": outsider.email}, headers=auth(owner)
        )
        assert response.status_code == 201
        assert response.json()["role"] == "member"

        response = await client.patch(
            f"/teams/{team.id}/members/{outsider.id}", json={"role": "admin"}, headers=auth(owner)
        )
        assert response.status_code == 200
        assert response.json()["role"] == "admin"

        response = await client.get(f"/teams/{team.id}/members", headers=auth(outsider))
        assert outsider.email in [m["user"]["email"] for m in response.json()]

        response = await client.delete(f"/teams/{team.id}/members/{outsider.id}", headers=auth(owner))
        assert response.status_code == 204

    @pytest.mark.asyncio
    async def test_activity(self, client, team, owner):
        response = await client.get(f"/teams/{team.id}/activity", headers=auth(owner))

        assert response.status_code == 200
        assert response.json()[0]["action"] == "INVITE_TEAM_MEMBER"


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/")
    assert response.status_code == 200
    assert "is running" in response.json()["message"]
    assert response.headers["X-Request-ID"]
    assert "X-Process-Time" in response.headers


@pytest.mark.asyncio
async def test_request_id_is_echoed(client):
    response = await client.get("/", headers={"X-Request-ID": "abc123"})
    assert response.headers["X-Request-ID"] == "abc123"
