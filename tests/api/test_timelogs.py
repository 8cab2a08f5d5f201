"""Tests for the start/stop timer endpoints."""

import pytest
from httpx import AsyncClient

from tests.conftest import Users, auth


@pytest.mark.asyncio
async def test_start_and_stop_timer(api_client: AsyncClient, users: Users) -> None:
    started = await api_client.post(
        "/api/timelogs/start",
        json={"description": "Wireframes"},
        headers=auth(users.alice),
    )
    assert started.status_code == 201
    assert started.json()["is_active"] is True

    active = await api_client.get("/api/timelogs/active", headers=auth(users.alice))
    assert active.json()["id"] == started.json()["id"]

    stopped = await api_client.post("/api/timelogs/stop", headers=auth(users.alice))
    assert stopped.status_code == 200
    body = stopped.json()
    assert body["is_active"] is False
    assert body["end_time"] is not None
    assert body["duration_seconds"] >= 0

    idle = await api_client.get("/api/timelogs/active", headers=auth(users.alice))
    assert idle.json() is None


@pytest.mark.asyncio
async def test_starting_new_timer_stops_previous(api_client: AsyncClient, users: Users) -> None:
    first = await api_client.post(
        "/api/timelogs/start", json={"description": "Research"}, headers=auth(users.alice)
    )
    second = await api_client.post(
        "/api/timelogs/start", json={"description": "Writing"}, headers=auth(users.alice)
    )

    logs = await api_client.get("/api/timelogs", headers=auth(users.alice))

    by_id = {log["id"]: log for log in logs.json()["items"]}
    assert by_id[first.json()["id"]]["is_active"] is False
    assert by_id[second.json()["id"]]["is_active"] is True
    assert logs.json()["total"] == 2


@pytest.mark.asyncio
async def test_stop_without_active_timer_is_404(api_client: AsyncClient, users: Users) -> None:
    response = await api_client.post("/api/timelogs/stop", headers=auth(users.alice))

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_timers_are_per_user(api_client: AsyncClient, users: Users) -> None:
    await api_client.post(
        "/api/timelogs/start", json={"description": "Alice work"}, headers=auth(users.alice)
    )

    bob_active = await api_client.get("/api/timelogs/active", headers=auth(users.bob))
    bob_logs = await api_client.get("/api/timelogs", headers=auth(users.bob))

    assert bob_active.json() is None
    assert bob_logs.json()["total"] == 0


@pytest.mark.asyncio
async def test_timer_for_unknown_task_is_404(api_client: AsyncClient, users: Users) -> None:
    response = await api_client.post(
        "/api/timelogs/start",
        json={"description": "Ghost", "taskId": 404},
        headers=auth(users.alice),
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_manual_edit_recomputes_duration_and_keeps_history(
    api_client: AsyncClient, users: Users
) -> None:
    started = await api_client.post(
        "/api/timelogs/start", json={"description": "Call"}, headers=auth(users.alice)
    )
    log_id = started.json()["id"]

    edited = await api_client.put(
        f"/api/timelogs/{log_id}",
        json={
            "description": "Kickoff call",
            "startTime": "2026-03-02T09:00:00",
            "endTime": "2026-03-02T10:30:00",
        },
        headers=auth(users.alice),
    )

    assert edited.status_code == 200
    body = edited.json()
    assert body["description"] == "Kickoff call"
    assert body["duration_seconds"] == 5400
    assert body["is_active"] is False
    assert body["is_manual_entry"] is True
    assert len(body["edit_history"]) == 1
    entry = body["edit_history"][0]
    assert entry["edited_by"] == users.alice.id
    assert entry["previous_values"]["description"] == "Call"
    assert entry["previous_values"]["end_time"] is None

    idle = await api_client.get("/api/timelogs/active", headers=auth(users.alice))
    assert idle.json() is None


@pytest.mark.asyncio
async def test_edit_rejects_end_before_start(api_client: AsyncClient, users: Users) -> None:
    started = await api_client.post(
        "/api/timelogs/start", json={"description": "Call"}, headers=auth(users.alice)
    )

    response = await api_client.put(
        f"/api/timelogs/{started.json()['id']}",
        json={"startTime": "2026-03-02T10:00:00", "endTime": "2026-03-02T09:00:00"},
        headers=auth(users.alice),
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_only_owner_or_admin_may_edit_or_delete(
    api_client: AsyncClient, users: Users
) -> None:
    started = await api_client.post(
        "/api/timelogs/start", json={"description": "Audit"}, headers=auth(users.alice)
    )
    log_id = started.json()["id"]

    edit = await api_client.put(
        f"/api/timelogs/{log_id}", json={"description": "Mine now"}, headers=auth(users.bob)
    )
    delete = await api_client.delete(f"/api/timelogs/{log_id}", headers=auth(users.bob))
    assert edit.status_code == 403
    assert delete.status_code == 403

    admin_delete = await api_client.delete(
        f"/api/timelogs/{log_id}", headers=auth(users.admin)
    )
    assert admin_delete.status_code == 204

    listed = await api_client.get("/api/timelogs", headers=auth(users.alice))
    assert listed.json()["total"] == 0


@pytest.mark.asyncio
async def test_edit_unknown_time_log_is_404(api_client: AsyncClient, users: Users) -> None:
    response = await api_client.put(
        "/api/timelogs/999", json={"description": "Ghost"}, headers=auth(users.alice)
    )

    assert response.status_code == 404
