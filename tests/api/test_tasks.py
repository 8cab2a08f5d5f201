"""Tests for task endpoints."""

from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient

from tests.conftest import Users, auth


async def _create_task(
    api_client: AsyncClient, users: Users, owner=None, **payload: object
) -> dict:
    body = {"description": "Draft homepage copy", **payload}
    response = await api_client.post(
        "/api/tasks", json=body, headers=auth(owner or users.alice)
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_create_task_defaults(api_client: AsyncClient, users: Users) -> None:
    task = await _create_task(api_client, users)

    assert task["status"] == "pending"
    assert task["priority"] == "medium"
    assert task["created_by_id"] == users.alice.id
    assert task["progress_notes"] == []


@pytest.mark.asyncio
async def test_high_priority_assignment_emails_and_texts(
    api_client: AsyncClient,
    users: Users,
    email_provider: AsyncMock,
    sms_provider: AsyncMock,
) -> None:
    await _create_task(
        api_client,
        users,
        owner=users.admin,
        priority="high",
        assignedToId=users.alice.id,
    )

    message = email_provider.send.await_args.args[0]
    assert message.to == ["alice@example.com"]
    assert message.subject == "You've Received a High Priority Task"
    to_phone, body = sms_provider.send.await_args.args
    assert to_phone == "+15550001111"
    assert "Draft homepage copy" in body


@pytest.mark.asyncio
async def test_opted_out_assignee_gets_nothing(
    api_client: AsyncClient,
    users: Users,
    email_provider: AsyncMock,
    sms_provider: AsyncMock,
) -> None:
    await _create_task(
        api_client, users, priority="high", assignedToId=users.bob.id
    )

    email_provider.send.assert_not_awaited()
    sms_provider.send.assert_not_awaited()


@pytest.mark.asyncio
async def test_raising_priority_notifies(
    api_client: AsyncClient, users: Users, email_provider: AsyncMock
) -> None:
    task = await _create_task(api_client, users, assignedToId=users.alice.id)
    email_provider.send.assert_not_awaited()

    response = await api_client.patch(
        f"/api/tasks/{task['id']}", json={"priority": "high"}, headers=auth(users.alice)
    )

    assert response.status_code == 200
    email_provider.send.assert_awaited_once()


@pytest.mark.asyncio
async def test_notification_failure_keeps_task(
    api_client: AsyncClient, users: Users, email_provider: AsyncMock
) -> None:
    email_provider.send.side_effect = RuntimeError("smtp down")

    task = await _create_task(
        api_client, users, priority="high", assignedToId=users.alice.id
    )

    fetched = await api_client.get(f"/api/tasks/{task['id']}", headers=auth(users.alice))
    assert fetched.status_code == 200


@pytest.mark.asyncio
async def test_unknown_assignee_is_404(api_client: AsyncClient, users: Users) -> None:
    response = await api_client.post(
        "/api/tasks",
        json={"description": "Orphan", "assignedToId": 999},
        headers=auth(users.alice),
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_visibility_and_edit_permissions(api_client: AsyncClient, users: Users) -> None:
    task = await _create_task(api_client, users, owner=users.admin, assignedToId=users.alice.id)
    path = f"/api/tasks/{task['id']}"

    assert (await api_client.get(path, headers=auth(users.alice))).status_code == 200
    assert (await api_client.get(path, headers=auth(users.bob))).status_code == 403

    by_assignee = await api_client.patch(
        path, json={"status": "in_progress"}, headers=auth(users.alice)
    )
    by_stranger = await api_client.patch(
        path, json={"status": "complete"}, headers=auth(users.bob)
    )
    assert by_assignee.status_code == 200
    assert by_assignee.json()["status"] == "in_progress"
    assert by_stranger.status_code == 403


@pytest.mark.asyncio
async def test_list_shows_only_related_tasks(api_client: AsyncClient, users: Users) -> None:
    await _create_task(api_client, users, description="Mine")
    await _create_task(api_client, users, owner=users.bob, description="Bob's")
    await _create_task(
        api_client, users, owner=users.bob, description="Assigned", assignedToId=users.alice.id
    )

    alice = await api_client.get("/api/tasks", headers=auth(users.alice))
    admin = await api_client.get("/api/tasks", headers=auth(users.admin))

    assert sorted(t["description"] for t in alice.json()["items"]) == ["Assigned", "Mine"]
    assert admin.json()["total"] == 3


@pytest.mark.asyncio
async def test_progress_notes_append(api_client: AsyncClient, users: Users) -> None:
    task = await _create_task(api_client, users)
    path = f"/api/tasks/{task['id']}/progress"

    await api_client.post(
        path, json={"date": "2026-03-01", "comment": "Outline done"}, headers=auth(users.alice)
    )
    response = await api_client.post(
        path, json={"date": "2026-03-02", "comment": "First draft"}, headers=auth(users.alice)
    )

    notes = response.json()["progress_notes"]
    assert [n["comment"] for n in notes] == ["Outline done", "First draft"]
    assert notes[0]["date"] == "2026-03-01"
    assert notes[0]["id"] != notes[1]["id"]


@pytest.mark.asyncio
async def test_progress_note_requires_comment(api_client: AsyncClient, users: Users) -> None:
    task = await _create_task(api_client, users)

    response = await api_client.post(
        f"/api/tasks/{task['id']}/progress",
        json={"date": "2026-03-01", "comment": "   "},
        headers=auth(users.alice),
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_subtasks(api_client: AsyncClient, users: Users) -> None:
    parent = await _create_task(api_client, users, description="Launch")
    await _create_task(api_client, users, description="Copy", parentTaskId=parent["id"])
    await _create_task(api_client, users, description="Images", parentTaskId=parent["id"])

    response = await api_client.get(
        f"/api/tasks/{parent['id']}/subtasks", headers=auth(users.alice)
    )

    assert [t["description"] for t in response.json()] == ["Copy", "Images"]


@pytest.mark.asyncio
async def test_dependencies_reject_cycles(api_client: AsyncClient, users: Users) -> None:
    first = await _create_task(api_client, users, description="Design")
    second = await _create_task(api_client, users, description="Build")
    third = await _create_task(api_client, users, description="Ship")

    async def link(task: dict, depends_on: dict) -> int:
        response = await api_client.post(
            "/api/task-dependencies",
            json={"taskId": task["id"], "dependsOnTaskId": depends_on["id"]},
            headers=auth(users.alice),
        )
        return response.status_code

    assert await link(second, first) == 201
    assert await link(third, second) == 201
    assert await link(first, third) == 400
    assert await link(first, first) == 400
    assert await link(second, first) == 409

    deps = await api_client.get(
        f"/api/tasks/{second['id']}/dependencies", headers=auth(users.alice)
    )
    assert [d["depends_on_task_id"] for d in deps.json()] == [first["id"]]


@pytest.mark.asyncio
async def test_remove_dependency(api_client: AsyncClient, users: Users) -> None:
    first = await _create_task(api_client, users, description="Design")
    second = await _create_task(api_client, users, description="Build")
    created = await api_client.post(
        "/api/task-dependencies",
        json={"taskId": second["id"], "dependsOnTaskId": first["id"]},
        headers=auth(users.alice),
    )

    removed = await api_client.delete(
        f"/api/task-dependencies/{created.json()['id']}", headers=auth(users.alice)
    )
    missing = await api_client.delete(
        f"/api/task-dependencies/{created.json()['id']}", headers=auth(users.alice)
    )

    assert removed.status_code == 204
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_delete_requires_admin(api_client: AsyncClient, users: Users) -> None:
    first = await _create_task(api_client, users)
    second = await _create_task(api_client, users)
    await api_client.post(
        "/api/task-dependencies",
        json={"taskId": second["id"], "dependsOnTaskId": first["id"]},
        headers=auth(users.alice),
    )

    as_user = await api_client.delete(f"/api/tasks/{first['id']}", headers=auth(users.alice))
    as_admin = await api_client.delete(f"/api/tasks/{first['id']}", headers=auth(users.admin))

    assert as_user.status_code == 403
    assert as_admin.status_code == 204
    deps = await api_client.get(
        f"/api/tasks/{second['id']}/dependencies", headers=auth(users.alice)
    )
    assert deps.json() == []
