"""Provider fallback - try backends in order until one answers."""

import logging

from aicommit.errors import ProviderError
from aicommit.prompts import GenerateOptions
from aicommit.providers.base import ProviderAdapter

logger = logging.getLogger(__name__)


class ProviderChain:
    """Ordered adapters sharing one generation call.

    A ProviderError from one backend moves on to the next. The last error is
    raised when every backend has failed. Other exceptions (cancellation, an
    empty diff) propagate immediately.
    """

    def __init__(self, providers: list[ProviderAdapter]):
        if not providers:
            raise ValueError("ProviderChain needs at least one provider")
        self.providers = list(providers)
        self.active = self.providers[0]

    @property
    def primary(self) -> ProviderAdapter:
        return self.providers[0]

    @property
    def has_fallback(self) -> bool:
        return len(self.providers) > 1

    def __repr__(self) -> str:
        if not self.has_fallback:
            return repr(self.primary)
        return f"{self.primary!r}, falling back to " + ", ".join(repr(p) for p in self.providers[1:])

    async def generate_commit_messages(self, diff: str, options: GenerateOptions | None = None) -> list[str]:
        last_error: ProviderError | None = None
        for provider in self.providers:
            self.active = provider
            try:
                return await provider.generate_commit_messages(diff, options)
            except ProviderError as e:
                last_error = e
                if provider is not self.providers[-1]:
                    logger.warning("%s failed (%s), trying next provider", provider.display_name, e)
        raise last_error

    async def aclose(self) -> None:
        for provider in self.providers:
            await provider.aclose()
