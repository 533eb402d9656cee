"""
Integration tests for the complaint endpoints.

Runs the full application over an in-process ASGI transport against the
per-test SQLite database. Notifications are captured by the recording
dispatcher; the submission limiter runs on a fake clock.
"""

from datetime import timedelta
from uuid import uuid4

import pytest

from db.enums import ComplaintStatus, NotificationKind
from tests.factories import ComplaintFactory

pytestmark = pytest.mark.integration

COMPLAINTS = "/api/v1/complaints"

VALID_FORM = {
    "title": "Wi-Fi down",
    "description": "No internet for 2 days in room 4",
    "category": "Service",
    "priority": "High",
}


async def seed(db_session, *complaints):
    for complaint in complaints:
        db_session.add(complaint)
    await db_session.commit()
    return complaints


class TestSubmit:

    @pytest.mark.asyncio
    async def test_submission_round_trip(self, client, recording_dispatcher):
        response = await client.post(COMPLAINTS, json=VALID_FORM)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Complaint submitted successfully"
        created = body["data"]
        assert created["status"] == "Pending"
        assert created["userEmail"] == "anonymous@example.com"
        assert created["dateSubmitted"].endswith("Z")

        fetched = await client.get(f"{COMPLAINTS}/{created['id']}")
        assert fetched.status_code == 200
        data = fetched.json()["data"]
        for field in ("title", "description", "category", "priority"):
            assert data[field] == VALID_FORM[field]

        assert [e.kind for e in recording_dispatcher.events] == [NotificationKind.NEW_COMPLAINT]

    @pytest.mark.asyncio
    async def test_authenticated_submitter_is_recorded(self, client, user_headers, regular_user):
        response = await client.post(COMPLAINTS, json=VALID_FORM, headers=user_headers)

        data = response.json()["data"]
        assert data["userId"] == str(regular_user.id)
        assert data["userEmail"] == regular_user.email

    @pytest.mark.asyncio
    async def test_invalid_fields_are_listed(self, client, recording_dispatcher):
        response = await client.post(
            COMPLAINTS, json={"title": "", "description": "ok", "category": "Hardware"}
        )

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Validation failed"
        assert {d["field"] for d in body["details"]} == {"title", "category", "priority"}
        assert recording_dispatcher.events == []

    @pytest.mark.asyncio
    async def test_sixth_submission_in_window_is_throttled(self, client, fake_clock):
        for _ in range(5):
            response = await client.post(COMPLAINTS, json=VALID_FORM)
            assert response.status_code == 201

        throttled = await client.post(COMPLAINTS, json=VALID_FORM)

        assert throttled.status_code == 429
        assert throttled.json()["success"] is False
        assert int(throttled.headers["Retry-After"]) > 0
        assert throttled.headers["X-RateLimit-Remaining"] == "0"

        fake_clock.advance(900)
        assert (await client.post(COMPLAINTS, json=VALID_FORM)).status_code == 201

    @pytest.mark.asyncio
    async def test_throttle_is_per_client(self, client):
        for _ in range(5):
            await client.post(COMPLAINTS, json=VALID_FORM, headers={"X-Forwarded-For": "10.0.0.1"})

        other = await client.post(
            COMPLAINTS, json=VALID_FORM, headers={"X-Forwarded-For": "10.0.0.2"}
        )

        assert other.status_code == 201
        assert other.headers["X-RateLimit-Remaining"] == "4"

    @pytest.mark.asyncio
    async def test_markup_is_stored_as_plain_text(self, client):
        response = await client.post(
            COMPLAINTS,
            json={**VALID_FORM, "description": "Screen <b>flickers</b><script>x()</script>"},
        )

        assert response.json()["data"]["description"] == "Screen flickers"


class TestRead:

    @pytest.mark.asyncio
    async def test_list_filters_and_paginates(self, client, db_session):
        await seed(
            db_session,
            *[
                ComplaintFactory.create(
                    status=ComplaintStatus.RESOLVED, submitted_ago=timedelta(minutes=i)
                )
                for i in range(3)
            ],
            ComplaintFactory.create(),
        )

        response = await client.get(COMPLAINTS, params={"status": "Resolved", "limit": 2})

        assert response.status_code == 200
        data = response.json()["data"]
        assert len(data["complaints"]) == 2
        assert all(c["status"] == "Resolved" for c in data["complaints"])
        assert data["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}

    @pytest.mark.asyncio
    async def test_list_rejects_unknown_filter_value(self, client):
        response = await client.get(COMPLAINTS, params={"priority": "Urgent"})

        assert response.status_code == 400
        assert response.json()["details"][0]["field"] == "priority"

    @pytest.mark.asyncio
    async def test_unknown_and_malformed_ids(self, client):
        missing = await client.get(f"{COMPLAINTS}/{uuid4()}")
        malformed = await client.get(f"{COMPLAINTS}/not-a-uuid")

        assert missing.status_code == 404
        assert missing.json() == {"success": False, "error": "Complaint not found"}
        assert malformed.status_code == 400
        assert malformed.json()["error"] == "Invalid complaint ID format"

    @pytest.mark.asyncio
    async def test_stats_requires_admin(self, client, user_headers, admin_headers, db_session):
        await seed(db_session, ComplaintFactory.create())

        assert (await client.get(f"{COMPLAINTS}/stats")).status_code == 401
        assert (await client.get(f"{COMPLAINTS}/stats", headers=user_headers)).status_code == 403

        response = await client.get(f"{COMPLAINTS}/stats", headers=admin_headers)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total"] == 1
        assert data["byStatus"] == {"Pending": 1, "In Progress": 0, "Resolved": 0}
        assert data["recentComplaints"] == 1


class TestUpdateStatus:

    @pytest.mark.asyncio
    async def test_admin_changes_status(
        self, client, db_session, admin_headers, recording_dispatcher
    ):
        (complaint,) = await seed(db_session, ComplaintFactory.create())

        response = await client.patch(
            f"{COMPLAINTS}/{complaint.id}", json={"status": "Resolved"}, headers=admin_headers
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Complaint updated successfully"
        assert response.json()["data"]["status"] == "Resolved"
        (event,) = recording_dispatcher.events
        assert event.kind == NotificationKind.STATUS_CHANGED
        assert event.previous_status == "Pending"

    @pytest.mark.asyncio
    async def test_anonymous_and_non_admin_are_rejected(
        self, client, db_session, user_headers
    ):
        (complaint,) = await seed(db_session, ComplaintFactory.create())
        url = f"{COMPLAINTS}/{complaint.id}"

        anonymous = await client.patch(url, json={"status": "Resolved"})
        user = await client.patch(url, json={"status": "Resolved"}, headers=user_headers)

        assert anonymous.status_code == 401
        assert user.status_code == 403
        assert user.json()["error"] == "Admin access required"
        assert (await client.get(url)).json()["data"]["status"] == "Pending"

    @pytest.mark.asyncio
    async def test_invalid_status(self, client, db_session, admin_headers):
        (complaint,) = await seed(db_session, ComplaintFactory.create())

        response = await client.patch(
            f"{COMPLAINTS}/{complaint.id}", json={"status": "Closed"}, headers=admin_headers
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid status"

    @pytest.mark.asyncio
    async def test_unknown_complaint(self, client, admin_headers):
        response = await client.patch(
            f"{COMPLAINTS}/{uuid4()}", json={"status": "Resolved"}, headers=admin_headers
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_garbage_token_is_anonymous(self, client, db_session):
        (complaint,) = await seed(db_session, ComplaintFactory.create())

        response = await client.patch(
            f"{COMPLAINTS}/{complaint.id}",
            json={"status": "Resolved"},
            headers={"Authorization": "Bearer not.a.jwt"},
        )

        assert response.status_code == 401


class TestDelete:

    @pytest.mark.asyncio
    async def test_admin_deletes(self, client, db_session, admin_headers, recording_dispatcher):
        (complaint,) = await seed(db_session, ComplaintFactory.create())

        response = await client.delete(f"{COMPLAINTS}/{complaint.id}", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["data"] == {"deletedId": str(complaint.id)}
        assert (await client.get(f"{COMPLAINTS}/{complaint.id}")).status_code == 404
        assert recording_dispatcher.events == []

    @pytest.mark.asyncio
    async def test_user_cannot_delete(self, client, db_session, user_headers):
        (complaint,) = await seed(db_session, ComplaintFactory.create())

        response = await client.delete(f"{COMPLAINTS}/{complaint.id}", headers=user_headers)

        assert response.status_code == 403
        assert (await client.get(f"{COMPLAINTS}/{complaint.id}")).status_code == 200
