"""LLM Provider Package"""

import logging
from typing import Any, Protocol

from aicommit.config import AUTO_PROVIDER, ProviderConfig, get_manager
from aicommit.errors import ErrorKind, ProviderError
from aicommit.providers.base import ModelDescriptor, ProviderAdapter, ProviderName, ProviderTestResult
from aicommit.providers.candidates import validate_commit_message
from aicommit.providers.claude import ClaudeProvider
from aicommit.providers.fallback import ProviderChain
from aicommit.providers.ollama import OllamaProvider

logger = logging.getLogger(__name__)

PROVIDERS: dict[ProviderName, type[ProviderAdapter]] = {
    ProviderName.CLAUDE: ClaudeProvider,
    ProviderName.OLLAMA: OllamaProvider,
}

# Free and local, so it is what a fresh install tries first
HARD_DEFAULT_PROVIDER = ProviderName.OLLAMA

# Order tried by "auto": local first, then hosted
AUTO_ORDER = (ProviderName.OLLAMA, ProviderName.CLAUDE)

PROVIDER_DESCRIPTIONS = {
    ProviderName.CLAUDE: "Anthropic Claude API (requires ANTHROPIC_API_KEY)",
    ProviderName.OLLAMA: "Local models via Ollama (free, requires 'ollama serve')",
}


class ConfigSource(Protocol):
    def get(self, key: str, default: Any = None) -> Any: ...

    def get_provider_config(self, name: str) -> ProviderConfig: ...


def _is_auto(name: Any) -> bool:
    return isinstance(name, str) and name.strip().lower() == AUTO_PROVIDER


class ProviderSelector:
    """Resolves provider names into configured adapters."""

    def __init__(self, config_source: ConfigSource | None = None):
        self.config_source = config_source or get_manager()

    @staticmethod
    def parse_name(name: str | ProviderName | None) -> ProviderName:
        valid = ", ".join(p.value for p in ProviderName)
        raw = name.value if isinstance(name, ProviderName) else name
        if not raw or not str(raw).strip():
            raise ProviderError(ErrorKind.CONFIGURATION,
                                f"No provider specified. Valid providers: {valid}",
                                provider="aicommit")
        try:
            return ProviderName(str(raw).strip().lower())
        except ValueError:
            raise ProviderError(ErrorKind.CONFIGURATION,
                                f"Unknown provider: '{raw}'. Valid providers: {valid}",
                                provider="aicommit") from None

    def create(self, name: str | ProviderName | None, config: ProviderConfig | None = None) -> ProviderAdapter:
        provider_name = self.parse_name(name)
        if config is None:
            config = self.get_provider_config(provider_name)
        return PROVIDERS[provider_name](config)

    def _configured(self) -> Any:
        try:
            return self.config_source.get("provider")
        except Exception as e:
            logger.warning("Could not read provider from config (%s), using %s",
                           e, HARD_DEFAULT_PROVIDER.value)
            return None

    def get_default(self) -> ProviderName:
        configured = self._configured()
        if not configured or _is_auto(configured):
            return HARD_DEFAULT_PROVIDER
        try:
            return self.parse_name(configured)
        except ProviderError:
            logger.warning("Invalid provider '%s' in config, using %s",
                           configured, HARD_DEFAULT_PROVIDER.value)
            return HARD_DEFAULT_PROVIDER

    def uses_fallback(self, name: str | ProviderName | None = None) -> bool:
        """True for "auto", given directly or read from config when name is None."""
        return _is_auto(self._configured() if name is None else name)

    def create_default(self) -> ProviderAdapter:
        return self.create(self.get_default())

    def create_chain(self, name: str | ProviderName | None = None, model: str | None = None) -> ProviderChain:
        """Adapters to generate with: one provider, or every usable one for "auto".

        In auto mode a backend whose validate() fails (e.g. no API key) is
        skipped. A model override applies to the first adapter only.
        """
        if not self.uses_fallback(name):
            provider_name = self.parse_name(name) if name else self.get_default()
            return ProviderChain([self._create_with_model(provider_name, model)])

        providers: list[ProviderAdapter] = []
        last_error: ProviderError | None = None
        for provider_name in AUTO_ORDER:
            provider = self._create_with_model(provider_name, None if providers else model)
            try:
                provider.validate()
            except ProviderError as e:
                logger.info("Skipping %s: %s", provider_name.value, e)
                last_error = e
                continue
            providers.append(provider)

        if not providers:
            raise last_error
        return ProviderChain(providers)

    def _create_with_model(self, provider_name: ProviderName, model: str | None) -> ProviderAdapter:
        config = self.get_provider_config(provider_name)
        if model:
            config.model = model
        return self.create(provider_name, config)

    def get_provider_config(self, name: str | ProviderName) -> ProviderConfig:
        provider_name = self.parse_name(name)
        try:
            return self.config_source.get_provider_config(provider_name.value)
        except Exception as e:
            logger.warning("Could not read %s settings (%s), using defaults", provider_name.value, e)
            return ProviderConfig()

    def available_providers(self) -> list[dict]:
        return [
            {
                "name": name.value,
                "display_name": cls.display_name,
                "description": PROVIDER_DESCRIPTIONS[name],
                "default_model": cls.DEFAULT_MODEL,
                "requires_api_key": cls.REQUIRES_API_KEY,
                "default": name == HARD_DEFAULT_PROVIDER,
            }
            for name, cls in PROVIDERS.items()
        ]


def get_provider(name: str | None = None, model: str | None = None,
                 config_source: ConfigSource | None = None) -> ProviderAdapter:
    """Get a provider adapter. No name means the configured default."""
    selector = ProviderSelector(config_source)
    provider_name = selector.parse_name(name) if name else selector.get_default()
    return selector._create_with_model(provider_name, model)


__all__ = [
    "ProviderAdapter",
    "ProviderSelector",
    "ProviderChain",
    "ProviderName",
    "ProviderTestResult",
    "ModelDescriptor",
    "ClaudeProvider",
    "OllamaProvider",
    "ConfigSource",
    "get_provider",
    "PROVIDERS",
    "AUTO_ORDER",
    "AUTO_PROVIDER",
    "HARD_DEFAULT_PROVIDER",
    "validate_commit_message",
]
