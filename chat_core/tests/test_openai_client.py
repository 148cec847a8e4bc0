import dataclasses

import httpx
import pytest

from chat_core.domain.exceptions import ConfigurationError, NetworkError, ProviderError
from chat_core.domain.models import Turn
from chat_core.providers.openai_client import OpenAIClient
from chat_core.providers.registry import OPENAI_DESCRIPTOR


DESCRIPTOR = OPENAI_DESCRIPTOR.with_api_key("sk-test-key")


def make_client_class(status_code=200, body=None, reason="OK", captured=None):
    class Resp:
        def __init__(self):
            self.status_code = status_code
            self.reason_phrase = reason

        def json(self):
            if isinstance(body, Exception):
                raise body
            return body

    class Client:
        def __init__(self, *a, **kw):
            if captured is not None:
                captured["client_kwargs"] = kw

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, url, json=None, headers=None, **kw):
            if captured is not None:
                captured["url"] = url
                captured["payload"] = json
                captured["headers"] = headers
                captured["kwargs"] = kw
            return Resp()

    return Client


def test_openai_send_chat_payload_and_reply(monkeypatch):
    captured = {}
    body = {"choices": [{"message": {"role": "assistant", "content": "ok"}}]}
    monkeypatch.setattr("httpx.Client", make_client_class(body=body, captured=captured))
    client = OpenAIClient(DESCRIPTOR)
    reply = client.send_chat([Turn("user", "hi"), Turn("assistant", "hello"), Turn("user", "again")])
    assert reply == "ok"
    payload = captured["payload"]
    assert captured["url"] == DESCRIPTOR.endpoint
    assert captured["headers"]["Authorization"] == "Bearer sk-test-key"
    assert payload["model"] == "gpt-3.5-turbo"
    assert payload["stream"] is False
    assert payload["max_tokens"] == 1000
    assert payload["temperature"] == 0.7
    assert payload["messages"][0]["role"] == "system"
    assert [m["role"] for m in payload["messages"][1:]] == ["user", "assistant", "user"]
    assert payload["messages"][-1]["content"] == "again"
    assert captured["client_kwargs"]["timeout"] is None


def test_openai_error_uses_provider_message(monkeypatch):
    body = {"error": {"message": "Incorrect API key provided"}}
    monkeypatch.setattr("httpx.Client", make_client_class(status_code=401, body=body, reason="Unauthorized"))
    with pytest.raises(ProviderError) as exc_info:
        OpenAIClient(DESCRIPTOR).send_chat([Turn("user", "hi")])
    assert exc_info.value.status == 401
    assert exc_info.value.message == "OpenAI API error: 401 - Incorrect API key provided"


def test_openai_error_falls_back_to_status_text(monkeypatch):
    monkeypatch.setattr(
        "httpx.Client",
        make_client_class(status_code=503, body=ValueError("not json"), reason="Service Unavailable"),
    )
    with pytest.raises(ProviderError) as exc_info:
        OpenAIClient(DESCRIPTOR).send_chat([Turn("user", "hi")])
    assert exc_info.value.message == "OpenAI API error: 503 - Service Unavailable"


def test_openai_missing_reply_returns_sentinel(monkeypatch):
    monkeypatch.setattr("httpx.Client", make_client_class(body={"choices": []}))
    assert OpenAIClient(DESCRIPTOR).send_chat([Turn("user", "hi")]) == "No response from OpenAI"


def test_openai_invalid_json_success_body_raises(monkeypatch):
    monkeypatch.setattr("httpx.Client", make_client_class(body=ValueError("garbage")))
    with pytest.raises(ProviderError):
        OpenAIClient(DESCRIPTOR).send_chat([Turn("user", "hi")])


def test_openai_missing_key_never_calls_network(monkeypatch):
    class Client:
        def __init__(self, *a, **kw):
            raise AssertionError("network must not be used without an API key")

    monkeypatch.setattr("httpx.Client", Client)
    client = OpenAIClient(OPENAI_DESCRIPTOR.with_api_key("   "))
    with pytest.raises(ConfigurationError):
        client.send_chat([Turn("user", "hi")])


def test_openai_network_error(monkeypatch):
    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, *a, **kw):
            raise httpx.ConnectError("connection refused")

    monkeypatch.setattr("httpx.Client", Client)
    with pytest.raises(NetworkError) as exc_info:
        OpenAIClient(DESCRIPTOR).send_chat([Turn("user", "hi")])
    assert exc_info.value.status is None
    assert isinstance(exc_info.value, ProviderError)


def test_openai_translate_is_stateless_and_clamped(monkeypatch):
    captured = {}
    body = {"choices": [{"message": {"content": "  Bonjour  "}}]}
    monkeypatch.setattr("httpx.Client", make_client_class(body=body, captured=captured))
    client = OpenAIClient(dataclasses.replace(DESCRIPTOR, max_tokens=4000))
    result = client.send_translate("Hello", "English", "French")
    assert result == "Bonjour"
    payload = captured["payload"]
    assert payload["max_tokens"] == 1000
    assert payload["temperature"] == 0.2
    assert len(payload["messages"]) == 2
    assert "French" in payload["messages"][0]["content"]
    assert "English" in payload["messages"][0]["content"]
    assert payload["messages"][1] == {"role": "user", "content": "Hello"}


def test_openai_translate_without_reply_returns_empty(monkeypatch):
    monkeypatch.setattr("httpx.Client", make_client_class(body={}))
    assert OpenAIClient(DESCRIPTOR).send_translate("Hello") == ""
