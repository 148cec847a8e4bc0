import pytest

from chat_core.domain.exceptions import ConfigurationError
from chat_core.providers import PROVIDER_CLASSES, create_provider, create_providers
from chat_core.providers.gemini_client import GeminiClient
from chat_core.providers.mistral_client import MistralClient
from chat_core.providers.openai_client import OpenAIClient
from chat_core.providers.registry import (
    DEFAULT_DESCRIPTORS,
    MISTRAL_DESCRIPTOR,
    PROVIDER_IDS,
    ProviderDescriptor,
    descriptors_from_settings,
    get_provider_descriptor,
    looks_like_api_key,
)
from chat_core.domain.models import Turn


def test_create_provider_by_descriptor():
    clients = create_providers(DEFAULT_DESCRIPTORS)
    assert isinstance(clients["openai"], OpenAIClient)
    assert isinstance(clients["mistral"], MistralClient)
    assert isinstance(clients["gemini"], GeminiClient)
    assert clients["mistral"].descriptor is MISTRAL_DESCRIPTOR


def test_descriptors_from_settings():
    class DummySettings:
        openai_api_key = "sk-abc"
        openai_endpoint = "https://proxy.local/v1/chat/completions"
        openai_model = "gpt-4o-mini"
        openai_max_tokens = 2048
        openai_temperature = 0.3
        mistral_api_key = None
        gemini_api_key = " "

    table = descriptors_from_settings(DummySettings())
    assert set(table) == {"openai", "mistral", "gemini"}
    assert table["openai"].endpoint == "https://proxy.local/v1/chat/completions"
    assert table["openai"].max_tokens == 2048
    assert table["openai"].has_credential
    assert table["mistral"].model == "mistral-small-latest"
    assert not table["mistral"].has_credential
    assert not table["gemini"].has_credential


@pytest.mark.parametrize(
    "overrides",
    [{"max_tokens": 0}, {"temperature": 2.5}, {"temperature": -0.1}, {"id": "claude"}],
)
def test_descriptor_validation(overrides):
    fields = dict(
        id="openai",
        endpoint="https://api.openai.com/v1/chat/completions",
        model="gpt-3.5-turbo",
        max_tokens=1000,
        temperature=0.7,
    )
    fields.update(overrides)
    with pytest.raises(ConfigurationError):
        ProviderDescriptor(**fields)


def test_get_provider_descriptor_is_case_insensitive():
    assert get_provider_descriptor(DEFAULT_DESCRIPTORS, "Gemini").id == "gemini"
    with pytest.raises(KeyError):
        get_provider_descriptor(DEFAULT_DESCRIPTORS, "unknown")


def test_looks_like_api_key():
    assert looks_like_api_key("openai", "sk-" + "a" * 30)
    assert not looks_like_api_key("openai", "a" * 30)
    assert looks_like_api_key("mistral", "mistral-" + "b" * 20)
    assert looks_like_api_key("gemini", "c" * 21)
    assert not looks_like_api_key("gemini", "")


def test_mistral_client_uses_openai_envelope(monkeypatch):
    captured = {}

    class Resp:
        status_code = 200
        reason_phrase = "OK"

        def json(self):
            return {"choices": [{"message": {"content": ""}}]}

    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, url, json=None, headers=None, **kw):
            captured["url"] = url
            captured["payload"] = json
            captured["headers"] = headers
            return Resp()

    monkeypatch.setattr("httpx.Client", Client)
    client = create_provider(MISTRAL_DESCRIPTOR.with_api_key("mistral-key"))
    assert client.send_chat([Turn("user", "hi")]) == "No response from Mistral"
    assert captured["url"] == "https://api.mistral.ai/v1/chat/completions"
    assert captured["headers"]["Authorization"] == "Bearer mistral-key"
    assert captured["payload"]["model"] == "mistral-small-latest"


def test_provider_names_cover_every_client_class():
    assert PROVIDER_IDS == ("openai", "mistral", "gemini")
    assert set(PROVIDER_CLASSES) == set(PROVIDER_IDS)
    assert set(DEFAULT_DESCRIPTORS) == set(PROVIDER_IDS)
