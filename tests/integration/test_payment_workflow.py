"""End-to-end payment workflow over the HTTP API.

Sign-up, project creation, client payment, admin approval and the
resulting balance and notification changes.
"""

from decimal import Decimal

import pytest
from fastapi import status


@pytest.mark.asyncio
async def test_sign_up_then_sign_in(client):
    response = await client.post(
        "/api/v1/auth/sign-up",
        json={"email": "dana@example.com", "password": "dana-password", "full_name": "Dana Client"},
    )
    assert response.status_code == status.HTTP_201_CREATED

    duplicate = await client.post(
        "/api/v1/auth/sign-up",
        json={"email": "dana@example.com", "password": "dana-password", "full_name": "Dana Again"},
    )
    assert duplicate.status_code == status.HTTP_401_UNAUTHORIZED

    sign_in = await client.post(
        "/api/v1/auth/sign-in", json={"email": "dana@example.com", "password": "dana-password"}
    )
    assert sign_in.status_code == status.HTTP_200_OK
    token = sign_in.json()["access_token"]

    session = await client.get("/api/v1/auth/session", headers={"Authorization": f"Bearer {token}"})
    assert session.json()["role"] == "client"
    assert session.json()["user_id"] == response.json()["user_id"]


@pytest.mark.asyncio
async def test_wrong_password_is_rejected(client):
    await client.post(
        "/api/v1/auth/sign-up",
        json={"email": "erin@example.com", "password": "erin-password", "full_name": "Erin Client"},
    )

    response = await client.post(
        "/api/v1/auth/sign-in", json={"email": "erin@example.com", "password": "not-erins-password"}
    )

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["code"] == "AUTH_ERROR"


@pytest.mark.asyncio
async def test_client_payment_counts_after_admin_approval(client, auth_headers, admin, client_a):
    admin_headers = auth_headers(admin)
    client_headers = auth_headers(client_a)

    project = await client.post(
        "/api/v1/projects",
        headers=admin_headers,
        json={"client_id": str(client_a.id), "name": "Mobile app", "total_amount": "2000.00"},
    )
    assert project.status_code == status.HTTP_201_CREATED
    project_id = project.json()["id"]

    payment = await client.post(
        "/api/v1/payments",
        headers=client_headers,
        json={"project_id": project_id, "amount": "500.00", "reference_number": "WIRE-42"},
    )
    assert payment.status_code == status.HTTP_201_CREATED
    payment_id = payment.json()["id"]
    assert payment.json()["approval_status"] == "PENDING"

    balance = await client.get(f"/api/v1/projects/{project_id}/balance", headers=client_headers)
    assert Decimal(balance.json()["paid_amount"]) == Decimal("0")

    settled = await client.put(
        f"/api/v1/payments/{payment_id}/settlement", headers=admin_headers, json={"status": "COMPLETED"}
    )
    assert settled.status_code == status.HTTP_200_OK
    approved = await client.post(f"/api/v1/payments/{payment_id}/approve", headers=admin_headers)
    assert approved.status_code == status.HTTP_200_OK

    balance = await client.get(f"/api/v1/projects/{project_id}/balance", headers=client_headers)
    assert Decimal(balance.json()["paid_amount"]) == Decimal("500.00")
    assert Decimal(balance.json()["remaining_balance"]) == Decimal("1500.00")
    assert balance.json()["completion_percentage"] == 25.0

    again = await client.post(f"/api/v1/payments/{payment_id}/approve", headers=admin_headers)
    assert again.status_code == status.HTTP_409_CONFLICT


@pytest.mark.asyncio
async def test_notifications_read_all(client, auth_headers, admin, client_a):
    admin_headers = auth_headers(admin)
    client_headers = auth_headers(client_a)
    for name in ("First project", "Second project"):
        await client.post(
            "/api/v1/projects",
            headers=admin_headers,
            json={"client_id": str(client_a.id), "name": name, "total_amount": "100.00"},
        )

    unread = await client.get("/api/v1/notifications/unread-count", headers=client_headers)
    assert unread.json() == {"unread": 2}

    feed = await client.get("/api/v1/notifications", headers=client_headers)
    first_id = feed.json()[0]["id"]
    marked = await client.post(f"/api/v1/notifications/{first_id}/read", headers=client_headers)
    assert marked.json()["read"] is True

    response = await client.post("/api/v1/notifications/read-all", headers=client_headers)
    assert response.json() == {"updated": 1}

    unread = await client.get("/api/v1/notifications/unread-count", headers=client_headers)
    assert unread.json() == {"unread": 0}

    admin_feed = await client.get("/api/v1/notifications", headers=admin_headers)
    assert admin_feed.json() == []


@pytest.mark.asyncio
async def test_admin_creates_client_account(client, auth_headers, admin):
    response = await client.post(
        "/api/v1/clients",
        headers=auth_headers(admin),
        json={
            "email": "frank@example.com",
            "password": "frank-password",
            "full_name": "Frank Client",
            "phone": "+1 555 0199",
        },
    )

    assert response.status_code == status.HTTP_201_CREATED
    body = response.json()
    assert body["account_created"] is True
    assert body["profile_updated"] is True
    assert body["profile"]["phone"] == "+1 555 0199"

    clients = await client.get("/api/v1/clients", headers=auth_headers(admin))
    assert [c["email"] for c in clients.json()] == ["frank@example.com"]
