"""Tests for client and project endpoints."""

import pytest
from httpx import AsyncClient

from gigster.models.client import Client
from tests.conftest import Users, auth


@pytest.mark.asyncio
async def test_create_and_search_clients(api_client: AsyncClient, users: Users) -> None:
    for name, email in (("Acme Corp", "ops@acme.example.com"), ("Globex", None)):
        response = await api_client.post(
            "/api/clients",
            json={"name": name, "email": email},
            headers=auth(users.alice),
        )
        assert response.status_code == 201
        assert response.json()["status"] == "prospect"

    found = await api_client.get(
        "/api/clients", params={"search": "ACME"}, headers=auth(users.alice)
    )

    assert found.json()["total"] == 1
    assert found.json()["items"][0]["name"] == "Acme Corp"


@pytest.mark.asyncio
async def test_update_client(
    api_client: AsyncClient, users: Users, client_record: Client
) -> None:
    response = await api_client.patch(
        f"/api/clients/{client_record.id}",
        json={"status": "active", "company": "Acme Holdings"},
        headers=auth(users.alice),
    )

    assert response.status_code == 200
    assert response.json()["status"] == "active"
    assert response.json()["company"] == "Acme Holdings"
    assert response.json()["name"] == "Acme Corp"


@pytest.mark.asyncio
async def test_client_documents_and_delete_guard(
    api_client: AsyncClient, users: Users, client_record: Client
) -> None:
    await api_client.post(
        "/api/invoices",
        json={"clientId": client_record.id, "lineItems": [{"quantity": 1, "rate": 25}]},
        headers=auth(users.alice),
    )

    documents = await api_client.get(
        f"/api/clients/{client_record.id}/documents", headers=auth(users.alice)
    )
    refused = await api_client.delete(
        f"/api/clients/{client_record.id}", headers=auth(users.admin)
    )

    assert [d["kind"] for d in documents.json()["invoices"]] == ["invoice"]
    assert documents.json()["proposals"] == []
    assert refused.status_code == 409


@pytest.mark.asyncio
async def test_delete_client_requires_admin(
    api_client: AsyncClient, users: Users, client_record: Client
) -> None:
    as_user = await api_client.delete(
        f"/api/clients/{client_record.id}", headers=auth(users.alice)
    )
    as_admin = await api_client.delete(
        f"/api/clients/{client_record.id}", headers=auth(users.admin)
    )

    assert as_user.status_code == 403
    assert as_admin.status_code == 204


@pytest.mark.asyncio
async def test_project_lifecycle(
    api_client: AsyncClient, users: Users, client_record: Client
) -> None:
    created = await api_client.post(
        "/api/projects",
        json={"name": "Website", "clientId": client_record.id},
        headers=auth(users.alice),
    )
    assert created.status_code == 201
    project_id = created.json()["id"]

    await api_client.post(
        "/api/tasks",
        json={"description": "Sitemap", "projectId": project_id},
        headers=auth(users.alice),
    )
    listed = await api_client.get(
        "/api/projects", params={"client_id": client_record.id}, headers=auth(users.alice)
    )
    refused = await api_client.delete(f"/api/projects/{project_id}", headers=auth(users.admin))

    assert listed.json()["total"] == 1
    assert refused.status_code == 409


@pytest.mark.asyncio
async def test_project_for_unknown_client_is_404(api_client: AsyncClient, users: Users) -> None:
    response = await api_client.post(
        "/api/projects",
        json={"name": "Nowhere", "clientId": 999},
        headers=auth(users.alice),
    )

    assert response.status_code == 404
