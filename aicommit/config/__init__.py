"""Configuration Management Package

Looks for config in multiple places (in order):

1. .aicommitrc in current directory (project-specific)
2. .aicommitrc in home directory (global default)
3. Built-in defaults

Config format (JSON):
{
    "provider": "ollama",
    "count": 3,
    "cache": true,
    "providers": {
        "ollama": {"model": "llama3.2:3b", "timeout": 120},
        "claude": {"model": "claude-sonnet-4-20250514"}
    }
}
"""

import json
import logging
import os
from dataclasses import dataclass, asdict, field, fields
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

# Not a backend: tries each usable provider in turn
AUTO_PROVIDER = "auto"
VALID_PROVIDERS = {"claude", "ollama", AUTO_PROVIDER}

# Provider settings that may come from the environment instead of the file
ENV_API_KEYS = {"claude": "ANTHROPIC_API_KEY"}
ENV_BASE_URLS = {"ollama": "OLLAMA_HOST"}


@dataclass
class ProviderConfig:
    """Per-backend settings. Read-only once handed to a provider."""
    api_key: Optional[str] = None
    model: Optional[str] = None
    base_url: Optional[str] = None
    temperature: float = 0.4
    max_tokens: int = 300
    timeout: float = 30.0  # seconds per network call
    retries: int = 3
    retry_delay: float = 1.0
    max_prompt_tokens: Optional[int] = None  # None = provider default
    failure_threshold: int = 5
    circuit_timeout: float = 60.0

    @classmethod
    def from_dict(cls, data: dict) -> 'ProviderConfig':
        valid_keys = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in valid_keys})

    def redacted(self) -> dict:
        data = asdict(self)
        if data.get("api_key"):
            data["api_key"] = data["api_key"][:7] + "..."
        return data


@dataclass
class Config:
    """User configuration with sensible defaults."""
    provider: Optional[str] = None
    model: Optional[str] = None
    count: int = 3
    conventional: bool = True
    language: str = "en"
    max_subject_length: int = 72
    max_file_display: int = 8  # Max files shown before collapsing list
    ticket_prefix: str = "Refs"
    log_file: Optional[str] = None
    cache: bool = True
    cache_dir: Optional[str] = None  # None = ~/.aicommit/cache
    cache_ttl: int = 86400  # seconds
    providers: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}

    def validate(self) -> list[str]:
        """Validate config values and return list of warnings.

        Invalid values are replaced with defaults after warning.
        """
        warnings = []
        defaults = Config()

        if self.provider is not None and str(self.provider).lower() not in VALID_PROVIDERS:
            warnings.append(f"Invalid provider '{self.provider}', using the default provider")
            self.provider = defaults.provider

        if not isinstance(self.count, int) or not 1 <= self.count <= 10:
            warnings.append(f"Invalid count '{self.count}', using {defaults.count}")
            self.count = defaults.count

        if not isinstance(self.max_subject_length, int) or self.max_subject_length <= 0:
            warnings.append(f"Invalid max_subject_length '{self.max_subject_length}', using {defaults.max_subject_length}")
            self.max_subject_length = defaults.max_subject_length

        if not isinstance(self.max_file_display, int) or self.max_file_display <= 0:
            warnings.append(f"Invalid max_file_display '{self.max_file_display}', using {defaults.max_file_display}")
            self.max_file_display = defaults.max_file_display

        if not isinstance(self.cache_ttl, int) or self.cache_ttl < 0:
            warnings.append(f"Invalid cache_ttl '{self.cache_ttl}', using {defaults.cache_ttl}")
            self.cache_ttl = defaults.cache_ttl

        if not isinstance(self.providers, dict):
            warnings.append("Invalid providers section, ignoring it")
            self.providers = {}

        return warnings

    @classmethod
    def from_dict(cls, data: dict) -> 'Config':
        valid_keys = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        config = cls(**filtered)
        for warning in config.validate():
            logger.warning("Config warning: %s", warning)
        return config


class ConfigManager:
    """Manages loading and saving configuration.

    Also the read contract used by the provider layer: get(key) and
    get_provider_config(name).
    """

    CONFIG_FILENAME = ".aicommitrc"

    def __init__(self):
        self._config: Optional[Config] = None
        self._config_path: Optional[Path] = None

    def load(self) -> Config:
        if self._config is not None:
            return self._config

        local_path = Path.cwd() / self.CONFIG_FILENAME
        if local_path.exists():
            self._config = self._load_from_file(local_path)
            self._config_path = local_path
            return self._config

        home_path = Path.home() / self.CONFIG_FILENAME
        if home_path.exists():
            self._config = self._load_from_file(home_path)
            self._config_path = home_path
            return self._config

        self._config = Config()
        return self._config

    def _load_from_file(self, path: Path) -> Config:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("top-level value must be an object")
            return Config.from_dict(data)
        except (json.JSONDecodeError, ValueError, OSError) as e:
            logger.warning("Could not load %s: %s", path, e)
            return Config()

    def save(self, config: Config, global_config: bool = True) -> Path:
        path = Path.home() / self.CONFIG_FILENAME if global_config else Path.cwd() / self.CONFIG_FILENAME
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(config.to_dict(), f, indent=2)
        return path

    def get_config_path(self) -> Optional[Path]:
        return self._config_path

    def get(self, key: str, default: Any = None) -> Any:
        """Read one top-level setting. Environment wins over the file."""
        env_value = os.environ.get(f"AIC_{key.upper()}")
        if env_value:
            return env_value
        value = getattr(self.load(), key, None)
        return default if value is None else value

    def get_provider_config(self, name: str) -> ProviderConfig:
        """Merge file settings, top-level model and env vars for one provider."""
        config = self.load()
        name = name.lower()
        section = config.providers.get(name) or {}
        if not isinstance(section, dict):
            logger.warning("Ignoring non-object settings for provider '%s'", name)
            section = {}

        provider_config = ProviderConfig.from_dict(section)

        if provider_config.model is None:
            provider_config.model = os.environ.get("AIC_MODEL") or config.model

        env_key = ENV_API_KEYS.get(name)
        if env_key and not provider_config.api_key:
            provider_config.api_key = os.environ.get(env_key)

        env_url = ENV_BASE_URLS.get(name)
        if env_url and not provider_config.base_url:
            provider_config.base_url = os.environ.get(env_url)

        env_timeout = os.environ.get("AIC_TIMEOUT")
        if env_timeout:
            try:
                provider_config.timeout = float(env_timeout)
            except ValueError:
                logger.warning("Ignoring invalid AIC_TIMEOUT=%r", env_timeout)

        return provider_config


_manager = ConfigManager()


def get_manager() -> ConfigManager:
    return _manager


def load_config() -> Config:
    return _manager.load()


def save_config(config: Config, global_config: bool = True) -> Path:
    return _manager.save(config, global_config)


def get_config_path() -> Optional[Path]:
    return _manager.get_config_path()


__all__ = [
    "Config",
    "ConfigManager",
    "ProviderConfig",
    "get_manager",
    "load_config",
    "save_config",
    "get_config_path",
    "VALID_PROVIDERS",
    "AUTO_PROVIDER",
    "ENV_API_KEYS",
]
