"""Claude (Anthropic) Provider"""

import logging
import os
from dataclasses import replace

import anthropic

from aicommit.config import ProviderConfig
from aicommit.diff import STRICT_CHARS_PER_TOKEN
from aicommit.errors import ErrorKind, ProviderError
from aicommit.providers.base import ModelDescriptor, ProviderAdapter, ProviderName

logger = logging.getLogger(__name__)

TEST_PROMPT = 'Say "test successful" if you can read this.'


class ClaudeProvider(ProviderAdapter):
    """Claude API via the async Anthropic SDK. Requires ANTHROPIC_API_KEY."""

    name = ProviderName.CLAUDE
    display_name = "Claude"
    DEFAULT_MODEL = "claude-sonnet-4-20250514"
    REQUIRES_API_KEY = True
    CHARS_PER_TOKEN = STRICT_CHARS_PER_TOKEN
    MAX_PROMPT_TOKENS = 100_000
    FALLBACK_MODELS = (
        ModelDescriptor("claude-sonnet-4-20250514", "Claude Sonnet 4",
                        "Balanced speed and quality", recommended=True, context_length=200_000),
        ModelDescriptor("claude-3-5-haiku-20241022", "Claude 3.5 Haiku",
                        "Fastest and cheapest", context_length=200_000),
        ModelDescriptor("claude-opus-4-20250514", "Claude Opus 4",
                        "Most capable, slowest", context_length=200_000),
    )

    def __init__(self, config: ProviderConfig | None = None, *, client=None, **kwargs):
        super().__init__(config, **kwargs)
        if not self.config.api_key and os.environ.get("ANTHROPIC_API_KEY"):
            self.config = replace(self.config, api_key=os.environ["ANTHROPIC_API_KEY"])
        self._client = client
        self._owns_client = client is None

    def _make_client(self, config: ProviderConfig) -> anthropic.AsyncAnthropic:
        # Retries are handled by RetryPolicy, not the SDK
        return anthropic.AsyncAnthropic(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=config.timeout,
            max_retries=0,
        )

    def _get_client(self):
        if self._client is None:
            self._client = self._make_client(self.config)
        return self._client

    def validate(self, config: ProviderConfig | None = None) -> bool:
        config = config or self.config
        if not config.api_key or not config.api_key.strip():
            raise ProviderError(
                ErrorKind.AUTHENTICATION,
                "No API key found. Set ANTHROPIC_API_KEY environment variable:\n"
                "  export ANTHROPIC_API_KEY='your-key-here'",
                provider=self.display_name,
            )
        if not config.api_key.startswith("sk-ant-"):
            logger.warning("Anthropic API key does not start with 'sk-ant-'")
        return True

    async def _complete(self, prompt: str, *, model: str, temperature: float,
                        max_tokens: int, system: str) -> str:
        response = await self._get_client().messages.create(
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system,
            messages=[{"role": "user", "content": prompt}],
        )
        return self._extract_text(response)

    def _extract_text(self, response) -> str:
        blocks = getattr(response, "content", None)
        if not isinstance(blocks, list):
            raise ProviderError(ErrorKind.MALFORMED_RESPONSE, provider=self.display_name)
        for block in blocks:
            if getattr(block, "type", None) == "text":
                return block.text.strip()
        return ""

    async def _list_models(self) -> list[ModelDescriptor]:
        models = []
        async for model in self._get_client().models.list(limit=50):
            models.append(ModelDescriptor(
                id=model.id,
                name=getattr(model, "display_name", None) or model.id,
                recommended=model.id == self.DEFAULT_MODEL,
            ))
        return models

    async def _probe(self, config: ProviderConfig) -> tuple[str, str, list[str]]:
        model = config.model or self.DEFAULT_MODEL
        owned = (config.api_key, config.base_url) != (self.config.api_key, self.config.base_url)
        client = self._make_client(config) if owned else self._get_client()
        try:
            response = await client.messages.create(
                model=model,
                max_tokens=10,
                temperature=0,
                messages=[{"role": "user", "content": TEST_PROMPT}],
            )
        finally:
            if owned:
                await client.close()

        text = self._extract_text(response)
        if not text:
            raise ProviderError(ErrorKind.MALFORMED_RESPONSE, "No response from Claude",
                                provider=self.display_name)
        return model, text, []

    def map_error(self, error: BaseException) -> ProviderError:
        if isinstance(error, anthropic.APITimeoutError):
            return ProviderError(ErrorKind.TIMEOUT, provider=self.display_name)
        if isinstance(error, anthropic.APIConnectionError):
            return ProviderError(ErrorKind.CONNECTIVITY, provider=self.display_name)
        if isinstance(error, anthropic.APIStatusError):
            detail = getattr(error, "message", "") or str(error)
            if error.status_code == 400 and "too long" in detail.lower():
                return ProviderError(ErrorKind.PROMPT_TOO_LARGE, provider=self.display_name,
                                     status=error.status_code)
            return ProviderError.from_status(error.status_code, self.display_name, detail)
        return super().map_error(error)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.close()
        self._client = None
