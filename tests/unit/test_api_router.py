"""Tests for the HTTP API router and its error mapping."""

from datetime import timedelta

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from grindset.core.errors import ProblemSourceUnavailableError
from grindset.interface import auth
from grindset.interface.api_router import register_exception_handlers, router
from grindset.interface.auth import SignedTokenAuthProvider
from grindset.services import grind_service, problem_source
from tests.unit.mocks import CountingProblemSource


@pytest.fixture
def token_provider():
    """Installs a signed-token provider with a fixed test secret."""
    provider = SignedTokenAuthProvider("test-secret")
    auth.set_auth_provider(provider)
    yield provider
    auth.set_auth_provider(None)


@pytest.fixture
def app(token_provider) -> FastAPI:
    test_app = FastAPI()
    register_exception_handlers(test_app)
    test_app.include_router(router)
    return test_app


@pytest.fixture
async def client(app, patched_db, frozen_now):
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def headers(token_provider, users):
    """Authorization headers keyed by first name."""
    return {name: {"Authorization": f"Bearer {token_provider.issue(user.id)}"} for name, user in users.items()}


@pytest.fixture
async def grind(users, frozen_now):
    """A 3-day grind alice and bob joined yesterday."""
    return await grind_service.create_grind(
        duration=3,
        budget=90,
        participants=[users["alice"].id, users["bob"].id],
        start_date=frozen_now - timedelta(days=1),
    )


@pytest.mark.unit
class TestAuthentication:
    """Requests without a valid token are rejected."""

    async def test_missing_token(self, client):
        response = await client.get("/v1/grinds")

        assert response.status_code == 401
        assert response.json()["errorCode"] == "ERR_UNAUTHORIZED"

    async def test_forged_token(self, client, users):
        forged = SignedTokenAuthProvider("wrong-secret").issue(users["alice"].id)

        response = await client.get("/v1/grinds", headers={"Authorization": f"Bearer {forged}"})

        assert response.status_code == 401


@pytest.mark.unit
class TestGrindRoutes:
    """Tests for /v1/grinds routes."""

    async def test_create_invites_other_participants(self, client, headers, frozen_now):
        response = await client.post(
            "/v1/grinds",
            json={
                "duration": 3,
                "budget": 90,
                "participants": ["alice@example.com", "bob@example.com"],
                "startDate": frozen_now.isoformat(),
            },
            headers=headers["alice"],
        )

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Grind created successfully"
        assert [p["username"] for p in body["grind"]["participants"]] == ["alice"]

        inbox = (await client.get("/v1/messages/received", headers=headers["bob"])).json()["messages"]
        assert len(inbox) == 1
        assert inbox[0]["type"] == "invitation"
        assert inbox[0]["invitation_grind_id"] == body["grind"]["id"]

    async def test_create_with_unknown_participant(self, client, headers, frozen_now):
        response = await client.post(
            "/v1/grinds",
            json={
                "duration": 3,
                "budget": 90,
                "participants": ["ghost@example.com"],
                "startDate": frozen_now.isoformat(),
            },
            headers=headers["alice"],
        )

        assert response.status_code == 404
        assert response.json()["errorCode"] == "ERR_PARTICIPANT_NOT_FOUND"
        assert (await client.get("/v1/grinds", headers=headers["alice"])).json()["grinds"] == []

    async def test_invalid_payload(self, client, headers, frozen_now):
        response = await client.post(
            "/v1/grinds",
            json={"duration": 0, "budget": 90, "participants": ["bob@example.com"], "startDate": frozen_now.isoformat()},
            headers=headers["alice"],
        )

        assert response.status_code == 422
        assert response.json() == {"message": "The request is invalid.", "errorCode": "ERR_VALIDATION"}

    async def test_unknown_grind(self, client, headers):
        response = await client.get("/v1/grinds/999", headers=headers["alice"])

        assert response.status_code == 404
        assert response.json()["errorCode"] == "ERR_GRIND_NOT_FOUND"

    async def test_current_grind(self, client, headers, grind):
        response = await client.get("/v1/grinds/current", headers=headers["bob"])

        assert response.status_code == 200
        assert response.json()["grind"]["id"] == grind.id
        assert response.json()["grind"]["end_date"].startswith("2024-03-12")

    async def test_no_current_grind(self, client, headers):
        response = await client.get("/v1/grinds/current", headers=headers["carol"])

        assert response.status_code == 404

    async def test_quit_twice_conflicts(self, client, headers, grind):
        first = await client.post(f"/v1/grinds/{grind.id}/quit", headers=headers["bob"])
        second = await client.post(f"/v1/grinds/{grind.id}/quit", headers=headers["bob"])

        assert first.status_code == 200
        assert first.json()["record"]["total_penalty"] == 90
        assert second.status_code == 409
        assert second.json()["errorCode"] == "ERR_ALREADY_QUITTED"

    async def test_only_participants_modify(self, client, headers, grind):
        patched = await client.patch(f"/v1/grinds/{grind.id}", json={"budget": 10}, headers=headers["carol"])
        deleted = await client.delete(f"/v1/grinds/{grind.id}", headers=headers["carol"])

        assert patched.status_code == 403
        assert deleted.status_code == 403

    async def test_participant_deletes(self, client, headers, grind):
        response = await client.delete(f"/v1/grinds/{grind.id}", headers=headers["alice"])

        assert response.status_code == 200
        assert (await client.get(f"/v1/grinds/{grind.id}", headers=headers["alice"])).status_code == 404


@pytest.mark.unit
class TestTaskRoutes:
    """Tests for /v1/tasks routes."""

    async def test_today_and_finish(self, client, headers, grind, fake_problem_source):
        today = await client.get("/v1/tasks/today", params={"grindID": grind.id}, headers=headers["alice"])

        assert today.status_code == 200
        assert today.json()["task"]["problem_title"] == "Two Sum"

        finished = await client.post(
            "/v1/tasks/finish", json={"code": "return []", "language": "python"}, headers=headers["alice"]
        )

        assert finished.status_code == 200
        assert finished.json()["task"]["completed"] is True

        progress = (await client.get(f"/v1/grinds/{grind.id}/progress", headers=headers["alice"])).json()
        assert [entry["status"] for entry in progress["progress"]] == ["missed", "completed", "pending"]

    async def test_problem_source_down(self, client, headers, grind):
        problem_source.set_default_problem_source(CountingProblemSource(error=ProblemSourceUnavailableError()))
        try:
            response = await client.get("/v1/tasks/today", params={"grindID": grind.id}, headers=headers["bob"])
        finally:
            problem_source.reset_default_problem_source()

        assert response.status_code == 503
        assert response.json()["errorCode"] == "ERR_PROBLEM_SOURCE_UNAVAILABLE"

    async def test_task_of_another_participant(self, client, headers, grind, fake_problem_source):
        today = (await client.get("/v1/tasks/today", params={"grindID": grind.id}, headers=headers["alice"])).json()

        response = await client.get(f"/v1/tasks/{today['task']['id']}", headers=headers["bob"])

        assert response.status_code == 403


@pytest.mark.unit
class TestInvitationRoutes:
    """Tests for /v1/invitations routes."""

    async def test_invite_and_accept(self, client, headers, grind):
        sent = await client.post(
            "/v1/invitations",
            json={"grindID": grind.id, "participantEmail": "carol@example.com"},
            headers=headers["alice"],
        )
        assert sent.status_code == 201
        invitation_id = sent.json()["invitation"]["id"]

        accepted = await client.post(f"/v1/invitations/{invitation_id}/accept", headers=headers["carol"])
        again = await client.post(f"/v1/invitations/{invitation_id}/reject", headers=headers["carol"])

        assert accepted.status_code == 200
        assert accepted.json()["notification"]["type"] == "invitation_accepted"
        assert again.status_code == 409

        grind_body = (await client.get(f"/v1/grinds/{grind.id}", headers=headers["carol"])).json()
        assert sorted(p["username"] for p in grind_body["grind"]["participants"]) == ["alice", "bob", "carol"]

    async def test_sender_cannot_accept(self, client, headers, grind):
        sent = await client.post(
            "/v1/invitations",
            json={"grindID": grind.id, "participantEmail": "carol@example.com"},
            headers=headers["alice"],
        )

        response = await client.post(f"/v1/invitations/{sent.json()['invitation']['id']}/accept", headers=headers["alice"])

        assert response.status_code == 403

    async def test_mark_read(self, client, headers, grind):
        sent = await client.post(
            "/v1/invitations",
            json={"grindID": grind.id, "participantEmail": "carol@example.com"},
            headers=headers["alice"],
        )

        response = await client.post(f"/v1/messages/{sent.json()['invitation']['id']}/read", headers=headers["carol"])

        assert response.status_code == 200
        assert response.json()["data"]["read"] is True


def test_health_endpoint() -> None:
    """Health check responds without touching the database."""
    from grindset.main import app

    response = TestClient(app).get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}
