import pytest

from chat_core.domain.exceptions import MissingCredentialError, ValidationError
from chat_core.domain.models import ProviderSelector
from chat_core.providers import create_provider, settings_credential_lookup
from chat_core.providers.anthropic_client import AnthropicClient
from chat_core.providers.local_client import LocalBotClient
from chat_core.providers.openai_client import OpenAIClient


class DummySettings:
    default_provider = "openai"
    openai_api_key = None
    anthropic_api_key = None
    openai_base_url = "https://api.openai.com/v1"
    anthropic_base_url = "https://api.anthropic.com/v1"
    anthropic_version = "2023-06-01"
    http_timeout = 1.0
    local_chunk_delay = 0.0


class NoNetworkTransport:
    def send(self, request):
        raise AssertionError("network must not be touched")

    def stream(self, request, parser, cancel_event=None):
        raise AssertionError("network must not be touched")


def test_create_openai_with_lookup():
    seen = []

    def lookup(key):
        seen.append(key)
        return "sk-openai"

    provider = create_provider(ProviderSelector.OPENAI, lookup, cfg=DummySettings())
    assert isinstance(provider, OpenAIClient)
    assert seen == ["openai.api.key"]


def test_create_anthropic_by_name():
    provider = create_provider("Anthropic", lambda key: {"anthropic.api.key": "ak"}.get(key), cfg=DummySettings())
    assert isinstance(provider, AnthropicClient)


@pytest.mark.parametrize("value", [None, "", "   "])
def test_missing_credential_fails_before_network(value):
    with pytest.raises(MissingCredentialError) as exc:
        create_provider("openai", lambda key: value, transport=NoNetworkTransport(), cfg=DummySettings())
    assert exc.value.code == "MISSING_API_KEY"
    assert exc.value.extra["provider"] == "openai"


def test_missing_credential_is_per_namespace():
    lookup = {"openai.api.key": "sk"}.get
    with pytest.raises(MissingCredentialError):
        create_provider("anthropic", lookup, cfg=DummySettings())


def test_local_provider_needs_no_credential():
    def lookup(key):
        raise AssertionError("local provider must not look up credentials")

    assert isinstance(create_provider("local", lookup, cfg=DummySettings()), LocalBotClient)


def test_unknown_provider():
    with pytest.raises(ValidationError):
        create_provider("mistral", lambda key: "k", cfg=DummySettings())


def test_create_provider_default_from_settings(monkeypatch):
    class Configured(DummySettings):
        default_provider = "anthropic"
        anthropic_api_key = "ak-from-settings"

    monkeypatch.setattr("chat_core.providers.settings", Configured())
    assert isinstance(create_provider(), AnthropicClient)


def test_settings_credential_lookup():
    class Configured(DummySettings):
        openai_api_key = "sk-configured"

    lookup = settings_credential_lookup(Configured())
    assert lookup("openai.api.key") == "sk-configured"
    assert lookup("anthropic.api.key") is None
    assert lookup("unknown.key") is None
