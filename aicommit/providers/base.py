"""Provider Base Classes and Shared Generation Flow"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Awaitable, Callable, TypeVar

from aicommit.config import ProviderConfig
from aicommit.diff import DiffChunker, TokenEstimator, DEFAULT_CHARS_PER_TOKEN
from aicommit.errors import ErrorKind, ProviderError, error_status
from aicommit.prompts import GenerateOptions, PromptBuilder, SYSTEM_PROMPT, RESPONSE_SYSTEM_PROMPT
from aicommit.providers.candidates import extract_candidates, select_best
from aicommit.resilience import CircuitBreaker, RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar('T')


class ProviderName(str, Enum):
    CLAUDE = "claude"
    OLLAMA = "ollama"


@dataclass(frozen=True)
class ModelDescriptor:
    id: str
    name: str
    description: str = ""
    recommended: bool = False
    context_length: int | None = None


@dataclass
class ProviderTestResult:
    """Outcome of a connectivity check. Failures are reported, not raised."""
    success: bool
    message: str
    model: str | None = None
    response: str | None = None
    available_models: list[str] = field(default_factory=list)
    error: str | None = None


class ProviderAdapter(ABC):
    """Common contract for every LLM backend.

    Subclasses supply the raw network calls (_complete, _list_models, _probe),
    credential checks (validate) and error translation (map_error). This base
    class owns prompt sizing, chunking, and the circuit breaker + retry
    wrapping around every call.
    """

    name: ProviderName
    display_name = "Provider"
    DEFAULT_MODEL = ""
    REQUIRES_API_KEY = False
    CHARS_PER_TOKEN = DEFAULT_CHARS_PER_TOKEN
    MAX_PROMPT_TOKENS = 4000
    MIN_RECHUNK_TOKENS = 100
    FALLBACK_MODELS: tuple[ModelDescriptor, ...] = ()

    def __init__(
        self,
        config: ProviderConfig | None = None,
        *,
        breaker: CircuitBreaker | None = None,
        retry: RetryPolicy | None = None,
    ):
        self.config = config or ProviderConfig()
        self.estimator = TokenEstimator(self.CHARS_PER_TOKEN)
        self.chunker = DiffChunker(self.estimator)
        self.prompts = PromptBuilder()
        self.breaker = breaker or CircuitBreaker(
            failure_threshold=self.config.failure_threshold,
            timeout=self.config.circuit_timeout,
            name=self.display_name,
        )
        self.retry = retry or RetryPolicy(
            max_attempts=max(1, self.config.retries),
            base_delay=self.config.retry_delay,
        )

    @property
    def model(self) -> str:
        return self.config.model or self.DEFAULT_MODEL

    @property
    def max_prompt_tokens(self) -> int:
        return self.config.max_prompt_tokens or self.MAX_PROMPT_TOKENS

    def __repr__(self) -> str:
        return f"{self.display_name} ({self.model})"

    # -- backend specifics -------------------------------------------------

    @abstractmethod
    async def _complete(self, prompt: str, *, model: str, temperature: float,
                        max_tokens: int, system: str) -> str:
        """One raw completion call. Returns the response text ("" if empty)."""

    @abstractmethod
    async def _list_models(self) -> list[ModelDescriptor]:
        pass

    @abstractmethod
    async def _probe(self, config: ProviderConfig) -> tuple[str, str, list[str]]:
        """Minimal round trip. Returns (model, response text, available models)."""

    @abstractmethod
    def validate(self, config: ProviderConfig | None = None) -> bool:
        """Structural config check, no network. Raises ProviderError."""

    def map_error(self, error: BaseException) -> ProviderError:
        """Translate an arbitrary exception into the common taxonomy."""
        if isinstance(error, ProviderError):
            return error
        if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
            return ProviderError(ErrorKind.TIMEOUT, provider=self.display_name)
        if isinstance(error, ConnectionError):
            return ProviderError(ErrorKind.CONNECTIVITY, provider=self.display_name)

        status = error_status(error)
        if status is not None:
            return ProviderError.from_status(status, self.display_name, str(error))

        detail = str(error) or type(error).__name__
        return ProviderError(ErrorKind.UNKNOWN, f"{self.display_name} error: {detail}",
                             provider=self.display_name)

    async def aclose(self) -> None:
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    # -- resilient invocation ----------------------------------------------

    async def _invoke(self, operation: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """Run one backend call inside breaker(retry(timeout(call)))."""
        timeout = self.config.timeout or None

        async def attempt() -> T:
            try:
                return await asyncio.wait_for(operation(*args, **kwargs), timeout=timeout)
            except ProviderError:
                raise
            except Exception as e:
                raise self.map_error(e) from e

        return await self.breaker.execute(self.retry.run, attempt)

    # -- public contract ---------------------------------------------------

    async def generate_commit_messages(self, diff: str, options: GenerateOptions | None = None) -> list[str]:
        """Candidate commit messages for a diff, chunking it when too large."""
        if not diff or not diff.strip():
            raise ValueError("No diff provided")
        options = options or GenerateOptions()
        self.validate()

        messages = await self._generate_chunked(diff, options, self._diff_budget(options))
        if not messages:
            raise ProviderError(ErrorKind.MALFORMED_RESPONSE,
                                "No valid commit messages found in AI response",
                                provider=self.display_name)
        return messages

    async def generate_response(self, prompt: str, options: GenerateOptions | None = None) -> str:
        """Single free-form completion. No chunking."""
        if not prompt or not prompt.strip():
            raise ValueError("No prompt provided")
        options = options or GenerateOptions()
        self.validate()

        content = await self._invoke(
            self._complete,
            prompt,
            model=options.model or self.model,
            temperature=0.3 if options.temperature is None else options.temperature,
            max_tokens=options.max_tokens or 2000,
            system=RESPONSE_SYSTEM_PROMPT,
        )
        if not content or not content.strip():
            raise ProviderError(ErrorKind.MALFORMED_RESPONSE,
                                f"No response content from {self.display_name}",
                                provider=self.display_name)
        return content.strip()

    async def test(self, config: ProviderConfig | None = None) -> ProviderTestResult:
        config = config or self.config
        try:
            self.validate(config)
            model, response, available = await asyncio.wait_for(
                self._probe(config), timeout=config.timeout or None)
        except Exception as e:
            error = self.map_error(e)
            return ProviderTestResult(
                success=False,
                message=f"{self.display_name} connection failed: {error}",
                error=str(error),
            )

        return ProviderTestResult(
            success=True,
            message=f"{self.display_name} connection successful",
            model=model,
            response=response,
            available_models=available,
        )

    async def get_available_models(self) -> list[ModelDescriptor]:
        """Live model listing, or the static fallback list if that fails."""
        try:
            models = await self._list_models()
        except Exception as e:
            logger.warning("Failed to fetch %s models: %s", self.display_name, e)
            return list(self.FALLBACK_MODELS)
        return models or list(self.FALLBACK_MODELS)

    # -- chunking ----------------------------------------------------------

    def _diff_budget(self, options: GenerateOptions) -> int:
        """Tokens left for the diff once the prompt scaffolding is counted."""
        scaffold = self.prompts.build("", replace(options, chunk_index=0, total_chunks=2))
        budget = self.max_prompt_tokens - self.estimator.estimate(scaffold)
        return max(budget, self.MIN_RECHUNK_TOKENS)

    async def _generate_chunked(self, diff: str, options: GenerateOptions, budget: int) -> list[str]:
        """Generate chunk by chunk, in order.

        A rate-limit or prompt-too-large failure re-splits only the chunks not
        yet answered, at half the budget. Candidates from finished chunks are
        kept. Gives up once the halved budget drops below MIN_RECHUNK_TOKENS.
        """
        if self.estimator.estimate(diff) <= budget:
            chunks = [diff]
        else:
            chunks = self.chunker.chunk(diff, budget)
            logger.info("Diff exceeds %d tokens, splitting into %d chunks", budget, len(chunks))

        merged: list[str] = []
        index = 0
        while index < len(chunks):
            chunk_options = options if len(chunks) == 1 else replace(
                options, chunk_index=index, total_chunks=len(chunks))
            try:
                merged.extend(await self._generate_single(chunks[index], chunk_options))
            except ProviderError as e:
                if not e.kind.triggers_rechunk:
                    raise
                remaining = "\n".join(chunks[index:])
                smaller = min(budget, self.estimator.estimate(remaining)) // 2
                if smaller < self.MIN_RECHUNK_TOKENS:
                    raise
                budget = smaller
                chunks = chunks[:index] + self.chunker.chunk(remaining, budget)
                logger.warning("%s Retrying the remaining diff with %d-token chunks (%d total).",
                               e, budget, len(chunks))
                continue
            index += 1

        if len(chunks) == 1:
            return merged
        return select_best(merged, options.count)

    async def _generate_single(self, diff: str, options: GenerateOptions) -> list[str]:
        prompt = self.prompts.build(diff, options)
        content = await self._invoke(
            self._complete,
            prompt,
            model=options.model or self.model,
            temperature=self.config.temperature if options.temperature is None else options.temperature,
            max_tokens=options.max_tokens or self.config.max_tokens,
            system=SYSTEM_PROMPT,
        )
        return extract_candidates(content, options.conventional, options.count,
                                  self.display_name, max_length=options.max_length)
