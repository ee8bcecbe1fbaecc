try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import httpx
import pytest

from sonny.clients.gmail import GmailClient
from sonny.clients.google_auth import GoogleOAuthClient
from sonny.core.config import OAuthSettings, get_settings
from sonny.main import app
from sonny.models.oauth import CredentialRecord
from sonny.services.actions import ActionDispatcher
from sonny.services.credential_store import InMemoryCredentialStore
from sonny.services.profile import ProfileService


class ProviderAPI:
    """Fake Gmail send and userinfo endpoints."""

    def __init__(self) -> None:
        self.send_status = 200
        self.send_payload: dict = {"id": "msg123", "threadId": "t1"}
        self.profile_status = 200
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path.endswith("/messages/send"):
            return httpx.Response(self.send_status, json=self.send_payload)
        if request.url.path.endswith("/userinfo"):
            if self.profile_status != 200:
                return httpx.Response(
                    self.profile_status,
                    json={"error": {"message": "Invalid Credentials", "status": "UNAUTHENTICATED"}},
                )
            return httpx.Response(200, json={"email": "u1@example.com", "name": "User One"})
        return httpx.Response(404)


@pytest.fixture()
def provider_overrides(google_settings):
    from sonny import dependencies

    api = ProviderAPI()
    store = InMemoryCredentialStore()
    transport = httpx.MockTransport(api)

    app.dependency_overrides[dependencies.get_action_dispatcher] = lambda: ActionDispatcher(
        store=store,
        gmail_client=GmailClient(transport=transport),
        start_path="/oauth/provider/start",
    )
    app.dependency_overrides[dependencies.get_profile_service] = lambda: ProfileService(
        store=store,
        oauth_client=GoogleOAuthClient(google_settings, OAuthSettings(), transport=transport),
        start_path="/oauth/provider/start",
    )

    yield api, store

    app.dependency_overrides.clear()


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    )


@pytest.mark.anyio
async def test_health_needs_no_auth():
    async with _client() as client:
        response = await client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["service"] == "Sonny Core"
    assert isinstance(body["ts"], int)


@pytest.mark.anyio
@pytest.mark.parametrize(
    "method, path",
    [("post", "/voice/ingest"), ("post", "/actions/create"), ("get", "/provider/profile")],
)
@pytest.mark.parametrize(
    "headers",
    [{}, {"Authorization": "Bearer wrong"}, {"Authorization": "Basic dGVzdC1hcGkta2V5"}],
)
async def test_privileged_endpoints_reject_bad_bearer(method, path, headers):
    async with _client() as client:
        response = await client.request(method, path, headers=headers, json={})

    assert response.status_code == 401
    assert response.json() == {"ok": False, "error": "unauthorized"}


@pytest.mark.anyio
async def test_gate_fails_closed_without_configured_key(auth_headers):
    from sonny import dependencies

    unkeyed = get_settings().model_copy(deep=True)
    unkeyed.security.api_key = None
    app.dependency_overrides[dependencies.get_app_settings] = lambda: unkeyed
    try:
        async with _client() as client:
            response = await client.post("/voice/ingest", headers=auth_headers, json={})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 401


@pytest.mark.anyio
async def test_note_action_is_queued(provider_overrides, auth_headers):
    api, _ = provider_overrides

    async with _client() as client:
        response = await client.post(
            "/actions/create",
            headers=auth_headers,
            json={"userId": "u1", "type": "note", "topic": "shopping", "details": "milk"},
        )

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["status"] == "queued"
    assert body["type"] == "note"
    assert body["id"].startswith("act_")
    assert api.requests == []


@pytest.mark.anyio
async def test_action_with_empty_body_defaults_to_note(provider_overrides, auth_headers):
    async with _client() as client:
        response = await client.post("/actions/create", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["status"] == "queued"


@pytest.mark.anyio
async def test_email_action_for_unlinked_user_is_401(provider_overrides, auth_headers):
    api, _ = provider_overrides

    async with _client() as client:
        response = await client.post(
            "/actions/create",
            headers=auth_headers,
            json={"userId": "u2", "type": "email", "to": "a@b.com", "subject": "hi", "body": "hi"},
        )

    assert response.status_code == 401
    body = response.json()
    assert body["ok"] is False
    assert body["error"] == "not_linked"
    assert "/oauth/provider/start?userId=u2" in body["hint"]
    assert api.requests == []


@pytest.mark.anyio
async def test_email_action_sends_through_provider(provider_overrides, auth_headers):
    api, store = provider_overrides
    store.put("u1", CredentialRecord(access_token="ya29.valid"))

    async with _client() as client:
        response = await client.post(
            "/actions/create",
            headers=auth_headers,
            json={"userId": "u1", "type": "email", "to": "a@b.com", "subject": "hi", "body": "hi"},
        )

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["id"] == "msg123"
    assert body["status"] == "sent"
    assert api.requests[0].headers["authorization"] == "Bearer ya29.valid"


@pytest.mark.anyio
async def test_email_provider_failure_is_500_with_detail(provider_overrides, auth_headers):
    api, store = provider_overrides
    api.send_status = 400
    api.send_payload = {"error": {"message": "Invalid To header", "status": "INVALID_ARGUMENT"}}
    store.put("u1", CredentialRecord(access_token="ya29.valid"))

    async with _client() as client:
        response = await client.post(
            "/actions/create",
            headers=auth_headers,
            json={"userId": "u1", "type": "email", "to": "nobody", "subject": "hi"},
        )

    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "provider_send_failed"
    assert body["detail"]["message"] == "Invalid To header"
    assert len(api.requests) == 1


@pytest.mark.anyio
async def test_profile_for_linked_user(provider_overrides, auth_headers):
    _, store = provider_overrides
    store.put("u1", CredentialRecord(access_token="ya29.valid"))

    async with _client() as client:
        response = await client.get(
            "/provider/profile", params={"userId": "u1"}, headers=auth_headers
        )

    assert response.status_code == 200
    assert response.json() == {
        "ok": True,
        "profile": {"email": "u1@example.com", "name": "User One"},
    }


@pytest.mark.anyio
async def test_profile_for_unlinked_user_is_401(provider_overrides, auth_headers):
    async with _client() as client:
        response = await client.get(
            "/provider/profile", params={"userId": "ghost"}, headers=auth_headers
        )

    assert response.status_code == 401
    body = response.json()
    assert body["ok"] is False
    assert body["error"] == "not_linked"


@pytest.mark.anyio
async def test_profile_provider_failure_is_500(provider_overrides, auth_headers):
    api, store = provider_overrides
    api.profile_status = 401
    store.put("u1", CredentialRecord(access_token="ya29.revoked"))

    async with _client() as client:
        response = await client.get(
            "/provider/profile", params={"userId": "u1"}, headers=auth_headers
        )

    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "provider_call_failed"
    assert body["detail"]["status"] == 401
