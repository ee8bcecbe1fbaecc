try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import re

import httpx
import pytest

from sonny.clients.gemini import GeminiModelError
from sonny.main import app
from sonny.services.voice import (
    FALLBACK_SSML,
    GREETING_SSML,
    VoiceReplyService,
    escape_for_ssml,
)


class StubMind:
    def __init__(self, reply: str = "Sure, I can help with that.", error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.prompts: list[str] = []

    async def generate_text(self, prompt: str) -> tuple[str, str]:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply, "gemini-1.5-flash"


class ExplodingService:
    async def reply(self, text: str):
        raise RuntimeError("boom")


@pytest.fixture()
def voice_override():
    from sonny import dependencies

    def install(service) -> None:
        app.dependency_overrides[dependencies.get_voice_reply_service] = lambda: service

    yield install

    app.dependency_overrides.clear()


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    )


def _emphasis(ssml: str) -> str:
    match = re.search(r"<emphasis[^>]*>(.*?)</emphasis>", ssml, re.S)
    assert match, ssml
    return match.group(1)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Tom & Jerry", "Tom and Jerry"),
        ("<script>", "script"),
        ('say "hi" it\'s me', "say hi its me"),
        ("plain words", "plain words"),
    ],
)
def test_escape_for_ssml(raw: str, expected: str) -> None:
    assert escape_for_ssml(raw) == expected


@pytest.mark.anyio
async def test_script_text_is_echoed_escaped_without_mind_service(voice_override, auth_headers):
    voice_override(VoiceReplyService(None))

    async with _client() as client:
        response = await client.post(
            "/voice/ingest",
            headers=auth_headers,
            json={"text": "<script>", "sessionId": "s1", "userId": "u1"},
        )

    assert response.status_code == 200
    body = response.json()
    echoed = _emphasis(body["ssml"])
    assert echoed == "script"
    assert not set("<>\"'") & set(echoed)
    assert body["ok"] is True
    assert body["model"] is None
    assert body["session"] == {"sessionId": "s1", "userId": "u1"}


@pytest.mark.anyio
async def test_empty_text_gets_greeting(voice_override, auth_headers):
    voice_override(VoiceReplyService(None))

    async with _client() as client:
        response = await client.post("/voice/ingest", headers=auth_headers, json={})

    assert response.json()["ssml"] == GREETING_SSML


@pytest.mark.anyio
async def test_default_wiring_echoes_without_gemini_key(auth_headers):
    async with _client() as client:
        response = await client.post(
            "/voice/ingest", headers=auth_headers, json={"text": "  Turn ON the Lights  "}
        )

    assert _emphasis(response.json()["ssml"]) == "turn on the lights"


@pytest.mark.anyio
async def test_mind_service_reply_is_escaped_and_reports_model(voice_override, auth_headers):
    mind = StubMind(reply='Rock & roll <b>"now"</b>')
    voice_override(VoiceReplyService(mind))

    async with _client() as client:
        response = await client.post(
            "/voice/ingest", headers=auth_headers, json={"text": "play music"}
        )

    body = response.json()
    assert body["ssml"] == "<speak><p>Rock and roll bnow/b</p></speak>"
    assert body["model"] == "gemini-1.5-flash"
    assert "play music" in mind.prompts[0]


@pytest.mark.anyio
async def test_mind_service_failure_falls_back_to_echo(voice_override, auth_headers):
    voice_override(VoiceReplyService(StubMind(error=GeminiModelError("quota"))))

    async with _client() as client:
        response = await client.post(
            "/voice/ingest", headers=auth_headers, json={"text": "hello"}
        )

    body = response.json()
    assert body["ok"] is True
    assert _emphasis(body["ssml"]) == "hello"
    assert body["model"] is None


@pytest.mark.anyio
async def test_blank_mind_reply_falls_back_to_echo():
    reply = await VoiceReplyService(StubMind(reply="<>")).reply("hello")

    assert _emphasis(reply.ssml) == "hello"
    assert reply.model is None


@pytest.mark.anyio
async def test_unexpected_failure_still_returns_speakable_document(voice_override, auth_headers):
    voice_override(ExplodingService())

    async with _client() as client:
        response = await client.post(
            "/voice/ingest", headers=auth_headers, json={"text": "hello", "sessionId": "s9"}
        )

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is False
    assert body["ssml"] == FALLBACK_SSML
    assert body["session"]["sessionId"] == "s9"


@pytest.mark.anyio
@pytest.mark.parametrize(
    "text, echoed",
    [(["hi"], "[hi]"), ({"a": 1}, "{a: 1}"), (42, "42"), (None, None)],
)
async def test_non_string_text_is_stringified(voice_override, auth_headers, text, echoed):
    voice_override(VoiceReplyService(None))

    async with _client() as client:
        response = await client.post(
            "/voice/ingest", headers=auth_headers, json={"text": text, "sessionId": 7}
        )

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["session"]["sessionId"] == "7"
    if echoed is None:
        assert body["ssml"] == GREETING_SSML
    else:
        assert _emphasis(body["ssml"]) == echoed


@pytest.mark.anyio
@pytest.mark.parametrize("content", [b"notjson", b"[1, 2]", b"\xff\xfe"])
async def test_unusable_body_still_gets_speakable_fallback(voice_override, auth_headers, content):
    voice_override(VoiceReplyService(None))

    async with _client() as client:
        response = await client.post(
            "/voice/ingest",
            headers={**auth_headers, "Content-Type": "application/json"},
            content=content,
        )

    assert response.status_code == 200
    body = response.json()
    assert body == {
        "ok": False,
        "ssml": FALLBACK_SSML,
        "session": {"sessionId": "", "userId": ""},
        "model": None,
        "error": "invalid_request",
    }
