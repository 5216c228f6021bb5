"""Completion client error mapping."""
from __future__ import annotations

import pytest
import requests

from chatmeter.core.errors import UpstreamError
from chatmeter.core.settings import Settings
from chatmeter.services import upstream as upstream_module
from chatmeter.services.upstream import CompletionClient


class FakeResponse:
    def __init__(self, status_code: int, text: str, payload=None) -> None:
        self.status_code = status_code
        self.text = text
        self._payload = payload

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("not json")
        return self._payload


@pytest.fixture
def client(tmp_path) -> CompletionClient:
    return CompletionClient(Settings(data_dir=tmp_path, openai_api_key="sk-test"))


def test_complete_posts_chat_request(client, monkeypatch):
    captured = {}

    def fake_post(url, json, headers, timeout):
        captured.update(url=url, json=json, headers=headers)
        return FakeResponse(200, "{}", {"choices": [{"message": {"content": "R$ 10,00"}}]})

    monkeypatch.setattr(upstream_module.requests, "post", fake_post)
    assert client.complete("quanto custa?") == "R$ 10,00"
    assert captured["url"] == "https://api.openai.com/v1/chat/completions"
    assert captured["headers"]["Authorization"] == "Bearer sk-test"
    assert captured["json"]["model"] == "gpt-4o-mini"
    assert captured["json"]["messages"][-1] == {"role": "user", "content": "quanto custa?"}


def test_missing_api_key(tmp_path):
    client = CompletionClient(Settings(data_dir=tmp_path, openai_api_key=None))
    with pytest.raises(UpstreamError, match="OPENAI_API_KEY"):
        client.complete("hi")


def test_http_error_is_truncated(client, monkeypatch):
    monkeypatch.setattr(
        upstream_module.requests, "post", lambda *a, **kw: FakeResponse(500, "x" * 2000)
    )
    with pytest.raises(UpstreamError) as excinfo:
        client.complete("hi")
    assert excinfo.value.status_code == 502
    assert len(excinfo.value.extra["details"]) <= 501


def test_network_error(client, monkeypatch):
    def boom(*args, **kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(upstream_module.requests, "post", boom)
    with pytest.raises(UpstreamError):
        client.complete("hi")


def test_invalid_json(client, monkeypatch):
    monkeypatch.setattr(upstream_module.requests, "post", lambda *a, **kw: FakeResponse(200, "<html>"))
    with pytest.raises(UpstreamError, match="Invalid upstream response"):
        client.complete("hi")


def test_missing_content_uses_fallback(client, monkeypatch):
    monkeypatch.setattr(
        upstream_module.requests, "post", lambda *a, **kw: FakeResponse(200, "{}", {"choices": []})
    )
    assert client.complete("hi") == client.settings.fallback_reply
