"""Integration tests for the system and user settings endpoints."""

import pytest

from api.schemas.settings import MASKED_SECRET

pytestmark = pytest.mark.integration

SYSTEM = "/api/v1/settings/system"
USER = "/api/v1/settings/user"


class TestSystemSettingsApi:

    @pytest.mark.asyncio
    async def test_admin_only(self, client, user_headers):
        assert (await client.get(SYSTEM)).status_code == 401
        assert (await client.get(SYSTEM, headers=user_headers)).status_code == 403
        assert (
            await client.put(SYSTEM, json={"smtpHost": "x"}, headers=user_headers)
        ).status_code == 403

    @pytest.mark.asyncio
    async def test_update_masks_password(self, client, admin_headers):
        response = await client.put(
            SYSTEM,
            json={
                "smtpUser": "mailer@compass.io",
                "smtpPass": "app-password",
                "adminEmail": "desk@compass.io",
                "smtpPort": 465,
            },
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Settings updated successfully"
        data = response.json()["data"]
        assert data["smtpPass"] == MASKED_SECRET
        assert data["smtpPort"] == 465
        assert data["isConfigured"] is True

        fetched = (await client.get(SYSTEM, headers=admin_headers)).json()["data"]
        assert fetched["smtpPass"] == MASKED_SECRET
        assert "app-password" not in str(fetched)

    @pytest.mark.asyncio
    async def test_invalid_port_rejected(self, client, admin_headers):
        response = await client.put(SYSTEM, json={"smtpPort": 70000}, headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["details"][0]["field"] == "smtpPort"

    @pytest.mark.asyncio
    async def test_send_test_email(self, client, admin_headers, recording_dispatcher):
        response = await client.post(
            f"{SYSTEM}/test-email", json={"recipient": "me@compass.io"}, headers=admin_headers
        )

        assert response.status_code == 200
        assert response.json()["data"]["success"] is True
        assert recording_dispatcher.test_emails == ["me@compass.io"]


class TestUserSettingsApi:

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client):
        assert (await client.get(USER)).status_code == 401

    @pytest.mark.asyncio
    async def test_read_and_update_own_preferences(self, client, user_headers):
        initial = (await client.get(USER, headers=user_headers)).json()["data"]
        assert initial["receiveNewComplaints"] is True

        response = await client.put(
            USER,
            json={"receiveNewComplaints": False, "theme": "dark", "itemsPerPage": 25},
            headers=user_headers,
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["receiveNewComplaints"] is False
        assert data["receiveStatusUpdates"] is True
        assert data["theme"] == "dark"
        assert data["itemsPerPage"] == 25

    @pytest.mark.asyncio
    async def test_out_of_range_page_size(self, client, user_headers):
        response = await client.put(USER, json={"itemsPerPage": 500}, headers=user_headers)

        assert response.status_code == 400
