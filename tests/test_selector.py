"""
Tests for ProviderSelector, get_provider() and the auto fallback chain.

Run with:
    pytest tests/test_selector.py -v
"""

import logging

import pytest

from aicommit.config import ProviderConfig
from aicommit.errors import ErrorKind, ProviderError
from aicommit.prompts import GenerateOptions
from aicommit.providers import (
    ClaudeProvider, OllamaProvider, ProviderChain, ProviderName, ProviderSelector, HARD_DEFAULT_PROVIDER,
    get_provider,
)


class DictSource:
    """Config source backed by plain dicts."""

    def __init__(self, values=None, providers=None):
        self.values = values or {}
        self.providers = providers or {}

    def get(self, key, default=None):
        return self.values.get(key, default)

    def get_provider_config(self, name):
        return ProviderConfig(**self.providers.get(name, {}))


class BrokenSource:
    def get(self, key, default=None):
        raise OSError("config unreadable")

    def get_provider_config(self, name):
        raise OSError("config unreadable")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.delenv("OLLAMA_HOST", raising=False)


class TestCreate:

    @pytest.mark.parametrize("name, cls", [
        ("claude", ClaudeProvider),
        ("CLAUDE", ClaudeProvider),
        (" Ollama ", OllamaProvider),
        (ProviderName.OLLAMA, OllamaProvider),
    ])
    def test_case_insensitive_lookup(self, name, cls):
        assert isinstance(ProviderSelector(DictSource()).create(name), cls)

    @pytest.mark.parametrize("name", ["gpt4", "", None, "   "])
    def test_invalid_names_rejected(self, name):
        with pytest.raises(ProviderError) as exc_info:
            ProviderSelector(DictSource()).create(name)

        assert exc_info.value.kind == ErrorKind.CONFIGURATION
        assert "claude, ollama" in str(exc_info.value)

    def test_unknown_name_is_named_in_error(self):
        with pytest.raises(ProviderError, match="'gpt4'"):
            ProviderSelector(DictSource()).create("gpt4")

    def test_provider_config_applied(self):
        source = DictSource(providers={"ollama": {"model": "llama3.2:3b", "timeout": 90}})
        provider = ProviderSelector(source).create("ollama")

        assert provider.model == "llama3.2:3b"
        assert provider.config.timeout == 90

    def test_explicit_config_wins(self):
        provider = ProviderSelector(DictSource()).create("claude", ProviderConfig(api_key="sk-ant-x", retries=1))
        assert provider.config.api_key == "sk-ant-x"
        assert provider.retry.max_attempts == 1

    def test_breaker_settings_from_config(self):
        source = DictSource(providers={"ollama": {"failure_threshold": 2, "circuit_timeout": 5}})
        provider = ProviderSelector(source).create("ollama")
        stats = provider.breaker.get_stats()

        assert stats.failure_threshold == 2
        assert stats.timeout == 5


class TestDefault:

    def test_configured_provider(self):
        assert ProviderSelector(DictSource({"provider": "Claude"})).get_default() == ProviderName.CLAUDE

    def test_absent_provider_uses_hard_default(self):
        assert ProviderSelector(DictSource()).get_default() == HARD_DEFAULT_PROVIDER == ProviderName.OLLAMA

    def test_invalid_provider_uses_hard_default(self, caplog):
        with caplog.at_level(logging.WARNING, logger="aicommit.providers"):
            assert ProviderSelector(DictSource({"provider": "gpt4"})).get_default() == ProviderName.OLLAMA
        assert "gpt4" in caplog.text

    def test_unreadable_config_logs_and_falls_back(self, caplog):
        selector = ProviderSelector(BrokenSource())
        with caplog.at_level(logging.WARNING, logger="aicommit.providers"):
            assert selector.get_default() == ProviderName.OLLAMA
        assert "config unreadable" in caplog.text

    def test_unreadable_provider_settings_use_defaults(self):
        selector = ProviderSelector(BrokenSource())
        assert selector.get_provider_config("ollama") == ProviderConfig()
        assert isinstance(selector.create_default(), OllamaProvider)

    def test_available_providers(self):
        entries = ProviderSelector(DictSource()).available_providers()
        by_name = {e["name"]: e for e in entries}

        assert set(by_name) == {"claude", "ollama"}
        assert by_name["claude"]["requires_api_key"] is True
        assert by_name["ollama"]["default"] is True


class TestGetProvider:

    def test_model_override(self):
        provider = get_provider("ollama", model="gemma3:4b", config_source=DictSource())
        assert isinstance(provider, OllamaProvider)
        assert provider.model == "gemma3:4b"

    def test_default_from_source(self):
        source = DictSource({"provider": "claude"}, {"claude": {"api_key": "sk-ant-y"}})
        provider = get_provider(config_source=source)
        assert isinstance(provider, ClaudeProvider)
        assert provider.config.api_key == "sk-ant-y"

    def test_bad_name(self):
        with pytest.raises(ProviderError):
            get_provider("mistral-cloud", config_source=DictSource())


class TestCreateChain:

    def test_named_provider_is_a_single_link(self):
        chain = ProviderSelector(DictSource()).create_chain("ollama", model="gemma3:4b")

        assert not chain.has_fallback
        assert isinstance(chain.primary, OllamaProvider)
        assert chain.primary.model == "gemma3:4b"
        assert repr(chain) == "Ollama (gemma3:4b)"

    def test_no_name_uses_configured_default(self):
        source = DictSource({"provider": "claude"}, {"claude": {"api_key": "sk-ant-y"}})
        chain = ProviderSelector(source).create_chain()

        assert [type(p) for p in chain.providers] == [ClaudeProvider]

    def test_auto_tries_ollama_then_claude(self):
        source = DictSource(providers={"claude": {"api_key": "sk-ant-y"}})
        chain = ProviderSelector(source).create_chain("auto", model="gemma3:4b")

        assert [type(p) for p in chain.providers] == [OllamaProvider, ClaudeProvider]
        assert chain.providers[0].model == "gemma3:4b"
        assert chain.providers[1].model == ClaudeProvider.DEFAULT_MODEL
        assert "falling back to Claude" in repr(chain)

    def test_auto_from_config(self):
        source = DictSource({"provider": "auto"}, {"claude": {"api_key": "sk-ant-y"}})
        selector = ProviderSelector(source)

        assert selector.uses_fallback()
        assert selector.create_chain().has_fallback

    def test_auto_skips_claude_without_key(self):
        chain = ProviderSelector(DictSource()).create_chain("auto")
        assert [type(p) for p in chain.providers] == [OllamaProvider]

    def test_auto_raises_last_error_when_nothing_is_usable(self):
        source = DictSource(providers={"ollama": {"base_url": "ftp://ollama.local"}})
        with pytest.raises(ProviderError) as exc_info:
            ProviderSelector(source).create_chain("auto")
        assert exc_info.value.kind == ErrorKind.AUTHENTICATION

    def test_auto_in_config_is_not_an_invalid_provider(self, caplog):
        with caplog.at_level(logging.WARNING, logger="aicommit.providers"):
            assert ProviderSelector(DictSource({"provider": "AUTO"})).get_default() == HARD_DEFAULT_PROVIDER
        assert caplog.text == ""


class StubBackend:
    """Stands in for an adapter: replies from a list, raising any exception in it."""

    def __init__(self, name, *replies):
        self.display_name = name
        self.replies = list(replies)
        self.calls = 0
        self.closed = False

    def __repr__(self):
        return f"{self.display_name} (stub)"

    async def generate_commit_messages(self, diff, options=None):
        self.calls += 1
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply

    async def aclose(self):
        self.closed = True


class TestProviderChain:

    @pytest.mark.asyncio
    async def test_falls_back_after_connectivity_error(self, caplog):
        local = StubBackend("Ollama", ProviderError(ErrorKind.CONNECTIVITY, provider="Ollama"))
        hosted = StubBackend("Claude", ["feat(api): add retry budget"])
        chain = ProviderChain([local, hosted])

        with caplog.at_level(logging.WARNING, logger="aicommit.providers.fallback"):
            messages = await chain.generate_commit_messages("+x = 1", GenerateOptions())

        assert messages == ["feat(api): add retry budget"]
        assert (local.calls, hosted.calls) == (1, 1)
        assert chain.active is hosted
        assert "trying next provider" in caplog.text

    @pytest.mark.asyncio
    async def test_first_success_stops_the_chain(self):
        local = StubBackend("Ollama", ["fix(db): close idle connections"])
        hosted = StubBackend("Claude", ["unused"])
        chain = ProviderChain([local, hosted])

        assert await chain.generate_commit_messages("+x = 1") == ["fix(db): close idle connections"]
        assert hosted.calls == 0
        assert chain.active is local

    @pytest.mark.asyncio
    async def test_last_error_raised_when_all_fail(self):
        chain = ProviderChain([
            StubBackend("Ollama", ProviderError(ErrorKind.CONNECTIVITY, provider="Ollama")),
            StubBackend("Claude", ProviderError(ErrorKind.RATE_LIMIT, provider="Claude")),
        ])

        with pytest.raises(ProviderError) as exc_info:
            await chain.generate_commit_messages("+x = 1")
        assert exc_info.value.kind == ErrorKind.RATE_LIMIT
        assert chain.active.display_name == "Claude"

    @pytest.mark.asyncio
    async def test_non_provider_errors_propagate(self):
        hosted = StubBackend("Claude", ["unused"])
        chain = ProviderChain([StubBackend("Ollama", ValueError("No diff provided")), hosted])

        with pytest.raises(ValueError):
            await chain.generate_commit_messages("")
        assert hosted.calls == 0

    @pytest.mark.asyncio
    async def test_aclose_closes_every_provider(self):
        providers = [StubBackend("Ollama"), StubBackend("Claude")]
        await ProviderChain(providers).aclose()
        assert all(p.closed for p in providers)

    def test_empty_chain_rejected(self):
        with pytest.raises(ValueError):
            ProviderChain([])
