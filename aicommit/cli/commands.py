"""CLI Commands"""

import os
import sys
import time

from aicommit.cache import ResponseCache
from aicommit.config import AUTO_PROVIDER, Config, ENV_API_KEYS, get_config_path, get_manager, load_config
from aicommit.errors import ProviderError
from aicommit.providers import AUTO_ORDER, OllamaProvider, ProviderAdapter, ProviderSelector
from aicommit.output import (
    bold, dim, info, print_error, print_success, print_warning, colorize_circuit_state,
)

ENV_OVERRIDES = ("AIC_PROVIDER", "AIC_MODEL", "AIC_TIMEOUT", "OLLAMA_HOST")


def display_config() -> int:
    """Display current configuration, with secrets redacted."""
    config = load_config()
    config_path = get_config_path()
    selector = ProviderSelector(get_manager())

    print(f"\n{bold('Current Configuration')}\n")

    if config_path:
        print(f"  {dim('Loaded from:')} {config_path}")
    else:
        print(f"  {dim('Loaded from:')} defaults (no .aicommitrc found)")

    overrides = [(name, os.environ[name]) for name in ENV_OVERRIDES if os.environ.get(name)]
    overrides += [(name, "set") for name in ENV_API_KEYS.values() if os.environ.get(name)]
    if overrides:
        print(f"  {dim('Environment overrides:')}")
        for name, value in overrides:
            print(f"    {name}={value}")

    default = selector.get_default()
    provider_label = default.value
    if selector.uses_fallback():
        provider_label = f"{AUTO_PROVIDER} (" + " then ".join(p.value for p in AUTO_ORDER) + ")"
    print()
    print(f"  {bold('Settings:')}")
    print(f"    provider:           {info(provider_label)}")
    print(f"    model:              {info(config.model or 'provider default')}")
    print(f"    count:              {info(str(config.count))}")
    print(f"    conventional:       {info(str(config.conventional).lower())}")
    print(f"    language:           {info(config.language)}")
    print(f"    max_subject_length: {info(str(config.max_subject_length))}")
    cache_label = f"on, {config.cache_ttl}s ({config.cache_dir or '~/.aicommit/cache'})" if config.cache else "off"
    print(f"    cache:              {info(cache_label)}")

    print(f"\n  {bold('Providers:')}")
    for entry in selector.available_providers():
        marker = info(" (default)") if entry["name"] == default.value else ""
        print(f"    {bold(entry['name'])}{marker} {dim(entry['description'])}")
        settings = selector.get_provider_config(entry["name"]).redacted()
        for key in ("model", "base_url", "api_key", "timeout", "retries"):
            if settings.get(key) is not None:
                print(f"      {key}: {settings[key]}")

    print(f"\n  {dim('Config locations:')}")
    print("    Local:  .aicommitrc (in current directory)")
    print("    Global: ~/.aicommitrc\n")

    return 0


def run_install_completion() -> int:
    """Print the shell line that enables tab completion."""
    shell = os.environ.get('SHELL', '')
    line = 'eval "$(register-python-argcomplete aic)"'

    print(f"\n{bold('Tab Completion Setup')}\n")

    if 'zsh' in shell or 'bash' in shell:
        rc_file = os.path.expanduser('~/.zshrc' if 'zsh' in shell else '~/.bashrc')
        print(f"Add this line to {dim(rc_file)}:\n")
        print(f"  {line}\n")
        print(f"Then run: {dim(f'source {rc_file}')}")
    elif sys.platform == 'win32':
        print("For PowerShell, add to your $PROFILE:\n")
        print("  register-python-argcomplete --shell powershell aic | Out-String | Invoke-Expression")
    else:
        print("Run one of these based on your shell:\n")
        print(f"  {dim('# Bash/Zsh')}")
        print(f"  {line}\n")
        print(f"  {dim('# Fish')}")
        print("  register-python-argcomplete --shell fish aic | source")

    print(f"\n{dim('After setup, press TAB to autocomplete flags.')}")
    return 0


async def run_warmup(provider: ProviderAdapter) -> int:
    """Pre-load the Ollama model into memory."""
    if not isinstance(provider, OllamaProvider):
        print_error("--warmup only works with Ollama (local models)")
        return 1

    if await provider.is_model_loaded():
        print_success(f"Model {bold(provider.model)} is already loaded")
        return 0

    print(f"Loading {bold(provider.model)}... ", end='', flush=True)
    start = time.monotonic()
    loaded = await provider.warmup()
    elapsed = time.monotonic() - start

    if loaded and await provider.is_model_loaded():
        print_success(f"ready! ({elapsed:.1f}s)")
        print(dim(f"Model will stay loaded for ~{OllamaProvider.KEEP_ALIVE}"))
        return 0
    print()
    print_error("failed to load model. Is 'ollama serve' running?")
    return 1


async def run_list_models(provider: ProviderAdapter) -> int:
    models = await provider.get_available_models()
    print(f"\n{bold(f'{provider.display_name} models')}\n")
    if not models:
        print_warning("No models available")
        return 1
    for model in models:
        marker = info(" *") if model.id == provider.model else ""
        star = " (recommended)" if model.recommended else ""
        detail = f" {dim(model.description)}" if model.description else ""
        print(f"  {model.id}{marker}{dim(star)}{detail}")
    print(f"\n{dim('* current model')}")
    return 0


async def run_test_provider(provider: ProviderAdapter) -> int:
    print(f"Testing {bold(provider.display_name)} ({provider.model})... ", end='', flush=True)
    result = await provider.test()
    print()
    if not result.success:
        print_error(result.message)
        return 1

    print_success(result.message)
    print(f"  {dim('model:')}    {result.model}")
    print(f"  {dim('response:')} {result.response}")
    if result.available_models:
        print(f"  {dim('models:')}   {', '.join(result.available_models)}")
    print(f"  {dim('circuit:')}  {colorize_circuit_state(provider.breaker.get_state().value)}")
    return 0


def report_provider_error(error: ProviderError, provider: ProviderAdapter | None = None) -> None:
    print_error(str(error))
    if provider is not None and provider.breaker.get_state().value != "CLOSED":
        status = provider.breaker.get_status()
        print(dim(f"  circuit {status['state']}: {status['failure_count']} recent failures"),
              file=sys.stderr)


def run_clear_cache(config: Config) -> int:
    removed = ResponseCache(config.cache_dir, config.cache_ttl).clear()
    print_success(f"Removed {removed} cached {'entry' if removed == 1 else 'entries'}")
    return 0
