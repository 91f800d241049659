"""
Integration tests for the notification inbox.
"""

import pytest

from arsenal.models.notification import NotificationType
from arsenal.services.notification_service import NotificationService

from tests.factories import auth_headers


@pytest.fixture
def notify(db_session):
    async def _notify(user, subject="[HIGH] Generator fuel low", type=NotificationType.ALERT):
        [notification] = await NotificationService(db_session).notify(
            type, subject, "Refuel within 6 hours", user_ids=[user.id]
        )
        await db_session.commit()
        return notification

    return _notify


class TestListNotifications:
    @pytest.mark.asyncio
    async def test_only_own_notifications(self, client, notify, ops_user, manager_user):
        await notify(ops_user)
        await notify(manager_user, subject="[CRITICAL] Site down")

        response = await client.get("/api/notifications", headers=auth_headers(ops_user))

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["title"] == "[HIGH] Generator fuel low"
        assert data["items"][0]["channel"] == "IN_APP"

    @pytest.mark.asyncio
    async def test_filter_by_type(self, client, notify, ops_user):
        await notify(ops_user)
        await notify(ops_user, subject="Ticket SLA breached", type=NotificationType.SLA_BREACHED)

        response = await client.get(
            "/api/notifications", params={"type": "SLA_BREACHED"}, headers=auth_headers(ops_user)
        )

        assert [n["title"] for n in response.json()["items"]] == ["Ticket SLA breached"]

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client):
        assert (await client.get("/api/notifications")).status_code == 401


class TestMarkRead:
    @pytest.mark.asyncio
    async def test_mark_read(self, client, notify, ops_user):
        notification = await notify(ops_user)

        response = await client.patch(
            f"/api/notifications/{notification.id}/read", headers=auth_headers(ops_user)
        )

        assert response.status_code == 200
        assert response.json()["status"] == "READ"
        assert response.json()["read_at"] is not None

    @pytest.mark.asyncio
    async def test_other_users_notification(self, client, notify, ops_user, manager_user):
        notification = await notify(ops_user)

        response = await client.patch(
            f"/api/notifications/{notification.id}/read", headers=auth_headers(manager_user)
        )

        assert response.status_code == 404
