from __future__ import annotations

import asyncio
import json
from typing import Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from tutor.gemini_client import GeminiClient, RELAXED_SAFETY_SETTINGS
from tutor.llm import CamelModel, extract_json_object, parse_output
from tutor.main import app
from tutor.routers.auth import User, get_current_user
from tutor.settings import settings


class Sample(CamelModel):
    has_errors: bool
    corrected_sentence: Optional[str] = None


@pytest.mark.parametrize(
    "text",
    [
        '{"hasErrors": true}',
        'Here you go:\n```json\n{"hasErrors": true}\n```',
        'Sure! {"hasErrors": true} Hope that helps.',
    ],
)
def test_extract_json_object_variants(text) -> None:
    assert extract_json_object(text) == {"hasErrors": True}


def test_extract_json_object_raises_without_json() -> None:
    with pytest.raises(ValueError):
        extract_json_object("no structured content")


def test_parse_output_accepts_both_spellings() -> None:
    assert parse_output('{"hasErrors": false}', Sample, flow="t").has_errors is False
    assert parse_output('{"has_errors": true, "corrected_sentence": "x"}', Sample, flow="t").corrected_sentence == "x"
    assert parse_output('{"corrected": 1}', Sample, flow="t") is None


def _gemini_reply(text: str) -> httpx.Response:
    return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": text}]}}]})


def _client_with(handler) -> GeminiClient:
    client = GeminiClient(api_key="k", model="gemini-test")
    client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return client


def test_generate_sends_json_mode_and_safety_settings() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        seen["key"] = request.url.params.get("key")
        seen["path"] = request.url.path
        return _gemini_reply('{"ok": true}')

    client = _client_with(handler)
    out = asyncio.run(client.generate("hi", json_mode=True, safety_settings=RELAXED_SAFETY_SETTINGS))
    assert out == '{"ok": true}'
    assert seen["key"] == "k"
    assert seen["path"].endswith("/models/gemini-test:generateContent")
    assert seen["body"]["generationConfig"] == {"responseMimeType": "application/json"}
    assert seen["body"]["safetySettings"] == RELAXED_SAFETY_SETTINGS
    assert seen["body"]["contents"][0]["parts"][0]["text"] == "hi"


def test_generate_retries_without_thinking_config() -> None:
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        bodies.append(body)
        if "thinkingConfig" in body.get("generationConfig", {}):
            return httpx.Response(400, json={"error": "thinking not supported"})
        return _gemini_reply("plain")

    client = _client_with(handler)
    assert asyncio.run(client.generate("hi", thinking_budget=0, json_mode=True)) == "plain"
    assert len(bodies) == 2
    assert bodies[1]["generationConfig"] == {"responseMimeType": "application/json"}


def test_generate_raises_without_fallback() -> None:
    client = _client_with(lambda request: httpx.Response(500, json={"error": "boom"}))
    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(client.generate("hi"))


def test_missing_api_key(monkeypatch) -> None:
    monkeypatch.setattr(settings, "gemini_api_key", None)
    with pytest.raises(ValueError):
        GeminiClient()


def test_openrouter_answers_when_gemini_fails(monkeypatch) -> None:
    monkeypatch.setattr(settings, "openrouter_api_key", "or-key")
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "openrouter.ai":
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"choices": [{"message": {"content": '{"hasErrors": false}'}}]})
        return httpx.Response(500, json={"error": "overloaded"})

    client = _client_with(handler)
    client._fallback_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    assert asyncio.run(client.generate("check this")) == '{"hasErrors": false}'
    assert seen["auth"] == "Bearer or-key"
    assert seen["body"]["messages"] == [{"role": "user", "content": "check this"}]


def test_inline_parts_never_fall_back(monkeypatch) -> None:
    monkeypatch.setattr(settings, "openrouter_api_key", "or-key")

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.host != "openrouter.ai"
        return httpx.Response(500, json={"error": "overloaded"})

    client = _client_with(handler)
    client._fallback_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(client.generate_multimodal([{"text": "read this"}], json_mode=True))


def test_missing_api_key_is_service_unavailable(monkeypatch) -> None:
    monkeypatch.setattr(settings, "gemini_api_key", None)
    app.dependency_overrides[get_current_user] = lambda: User(username="tester")
    try:
        r = TestClient(app).post("/conversation/grammar", json={"userText": "She go to school."})
    finally:
        app.dependency_overrides.clear()
    assert r.status_code == 503
    assert "GEMINI_API_KEY" in r.json()["detail"]
