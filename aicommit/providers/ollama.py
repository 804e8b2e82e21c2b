"""Ollama Provider for Local Models"""

import logging
import os

import httpx

from aicommit.config import ProviderConfig
from aicommit.errors import ErrorKind, ProviderError
from aicommit.providers.base import ModelDescriptor, ProviderAdapter, ProviderName

logger = logging.getLogger(__name__)

TEST_PROMPT = 'Say "test successful" if you can read this.'


class OllamaProvider(ProviderAdapter):
    """Ollama HTTP API for local models. Requires: ollama serve"""

    name = ProviderName.OLLAMA
    display_name = "Ollama"
    DEFAULT_MODEL = "mistral:7b"
    DEFAULT_HOST = "http://localhost:11434"
    KEEP_ALIVE = "10m"
    # Local models default to small context windows
    MAX_PROMPT_TOKENS = 3000
    FALLBACK_MODELS = (
        ModelDescriptor("mistral:7b", "Mistral 7B", "Good general default", recommended=True),
        ModelDescriptor("llama3.2:3b", "Llama 3.2 3B", "Small and fast on CPU"),
        ModelDescriptor("gemma3:4b", "Gemma 3 4B", "Compact instruction-tuned model"),
        ModelDescriptor("qwen2.5-coder:latest", "Qwen2.5 Coder", "Code-specialized model"),
    )

    def __init__(self, config: ProviderConfig | None = None, *,
                 transport: httpx.AsyncBaseTransport | None = None, **kwargs):
        super().__init__(config, **kwargs)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def host(self) -> str:
        return self._host_for(self.config)

    def _host_for(self, config: ProviderConfig) -> str:
        return (config.base_url or os.environ.get("OLLAMA_HOST") or self.DEFAULT_HOST).rstrip("/")

    def _make_client(self, config: ProviderConfig) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._host_for(config),
            timeout=config.timeout or None,
            transport=self._transport,
        )

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = self._make_client(self.config)
        return self._client

    def validate(self, config: ProviderConfig | None = None) -> bool:
        config = config or self.config
        host = self._host_for(config)
        try:
            url = httpx.URL(host)
        except httpx.InvalidURL as e:
            raise ProviderError(ErrorKind.CONFIGURATION, f"Invalid Ollama host '{host}': {e}",
                                provider=self.display_name) from e
        if url.scheme not in ("http", "https") or not url.host:
            raise ProviderError(ErrorKind.CONFIGURATION,
                                f"Invalid Ollama host '{host}'. Expected e.g. {self.DEFAULT_HOST}",
                                provider=self.display_name)
        return True

    def _parse_json(self, response: httpx.Response) -> dict:
        try:
            data = response.json()
        except ValueError:
            raise ProviderError(ErrorKind.MALFORMED_RESPONSE,
                                "Invalid response from Ollama. Try a different model or simpler change.",
                                provider=self.display_name)
        if not isinstance(data, dict):
            raise ProviderError(ErrorKind.MALFORMED_RESPONSE, provider=self.display_name)
        return data

    async def _generate(self, client: httpx.AsyncClient, payload: dict) -> str:
        response = await client.post("/api/generate", json=payload)
        response.raise_for_status()
        data = self._parse_json(response)

        if data.get("error"):
            raise ProviderError(ErrorKind.CLIENT, f"Ollama error: {data['error']}",
                                provider=self.display_name)
        content = data.get("response", "")
        if not isinstance(content, str):
            raise ProviderError(ErrorKind.MALFORMED_RESPONSE, provider=self.display_name)
        return content.strip()

    async def _complete(self, prompt: str, *, model: str, temperature: float,
                        max_tokens: int, system: str) -> str:
        payload = {
            "model": model,
            "prompt": prompt,
            "system": system,
            "stream": False,
            "keep_alive": self.KEEP_ALIVE,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens,
            },
        }
        return await self._generate(self._get_client(), payload)

    async def _fetch_tags(self, client: httpx.AsyncClient) -> list[dict]:
        response = await client.get("/api/tags")
        response.raise_for_status()
        models = self._parse_json(response).get("models") or []
        return [m for m in models if isinstance(m, dict) and m.get("name")]

    async def _list_models(self) -> list[ModelDescriptor]:
        tags = await self._fetch_tags(self._get_client())
        return [
            ModelDescriptor(
                id=m["name"],
                name=m["name"],
                description=_format_size(m.get("size")),
                recommended=m["name"] == self.model,
            )
            for m in tags
        ]

    async def _probe(self, config: ProviderConfig) -> tuple[str, str, list[str]]:
        model = config.model or self.DEFAULT_MODEL
        owned = self._host_for(config) != self.host
        client = self._make_client(config) if owned else self._get_client()
        try:
            available = [m["name"] for m in await self._fetch_tags(client)]
            if not any(_same_model(model, name) for name in available):
                raise ProviderError(
                    ErrorKind.CLIENT,
                    f'Model "{model}" not found. Available models: {", ".join(available) or "none"}',
                    provider=self.display_name,
                )
            text = await self._generate(client, {
                "model": model,
                "prompt": TEST_PROMPT,
                "stream": False,
                "options": {"num_predict": 10},
            })
        finally:
            if owned:
                await client.aclose()

        if not text:
            raise ProviderError(ErrorKind.MALFORMED_RESPONSE, "No response from Ollama",
                                provider=self.display_name)
        return model, text, available

    async def is_model_loaded(self) -> bool:
        """Check if the model is currently loaded in memory."""
        try:
            response = await self._get_client().get("/api/ps", timeout=5)
            response.raise_for_status()
            loaded = [m.get("name", "") for m in self._parse_json(response).get("models", [])]
        except (httpx.HTTPError, ProviderError):
            return False
        return any(_same_model(self.model, name) for name in loaded)

    async def warmup(self) -> bool:
        """Pre-load the model with a tiny request. Returns True when loaded."""
        if await self.is_model_loaded():
            return True

        payload = {
            "model": self.model,
            "prompt": "hi",
            "stream": False,
            "options": {"num_predict": 1},
            "keep_alive": self.KEEP_ALIVE,
        }
        try:
            response = await self._get_client().post("/api/generate", json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Ollama warmup failed: %s", e)
            return False
        return True

    def map_error(self, error: BaseException) -> ProviderError:
        if isinstance(error, httpx.TimeoutException):
            return ProviderError(
                ErrorKind.TIMEOUT,
                f"Request timed out after {self.config.timeout}s. Try:\n"
                "  - Pre-load model: aic --warmup\n"
                "  - Increase timeout: set AIC_TIMEOUT=600",
                provider=self.display_name,
            )
        if isinstance(error, httpx.ConnectError):
            return ProviderError(ErrorKind.CONNECTIVITY, "Ollama not running. Start with: ollama serve",
                                 provider=self.display_name)
        if isinstance(error, httpx.HTTPStatusError):
            status = error.response.status_code
            if status == 404:
                return ProviderError(ErrorKind.CLIENT,
                                     f"Model '{self.model}' not found. Run: ollama pull {self.model}",
                                     provider=self.display_name, status=status)
            return ProviderError.from_status(status, self.display_name, _error_detail(error.response))
        if isinstance(error, httpx.TransportError):
            return ProviderError(ErrorKind.CONNECTIVITY,
                                 f"Connection to Ollama lost: {error}. Check that 'ollama serve' is still running.",
                                 provider=self.display_name)
        return super().map_error(error)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def _same_model(wanted: str, name: str) -> bool:
    # "mistral" matches "mistral:latest"; "mistral:7b" matches "mistral:7b"
    return name == wanted or name.split(":")[0] == wanted or wanted.split(":")[0] == name


def _error_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return response.reason_phrase


def _format_size(size) -> str:
    if not isinstance(size, (int, float)) or size <= 0:
        return ""
    units = ["B", "KB", "MB", "GB", "TB"]
    value = float(size)
    for unit in units:
        if value < 1024 or unit == units[-1]:
            return f"{value:.1f} {unit}"
        value /= 1024
    return ""
