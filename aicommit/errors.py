"""Error taxonomy shared by the provider and resilience layers."""

from enum import Enum


class ErrorKind(Enum):
    """Common failure categories every provider maps its errors into.

    Value is (message template, retryable). Templates take {provider}.
    """
    CONNECTIVITY = ("Cannot connect to {provider}. Please check your connection.", True)
    TIMEOUT = ("Request to {provider} timed out. Please try again.", True)
    AUTHENTICATION = ("Authentication failed for {provider}. Please check your API key.", False)
    AUTHORIZATION = ("Access forbidden for {provider}. Please check your permissions.", False)
    RATE_LIMIT = ("Rate limit exceeded for {provider}. Please try again later.", True)
    PROMPT_TOO_LARGE = ("Request too large for {provider}. The diff will be split into smaller chunks.", False)
    CLIENT = ("{provider} rejected the request.", False)
    SERVER = ("{provider} service is temporarily unavailable. Please try again later.", True)
    MALFORMED_RESPONSE = ("Invalid response format from {provider}.", False)
    CIRCUIT_OPEN = ("Circuit breaker is OPEN for {provider}.", False)
    CONFIGURATION = ("{provider} is not configured correctly.", False)
    UNKNOWN = ("{provider} error.", True)

    def __init__(self, template: str, retryable: bool):
        self.template = template
        self.retryable = retryable

    @property
    def triggers_rechunk(self) -> bool:
        return self in (ErrorKind.RATE_LIMIT, ErrorKind.PROMPT_TOO_LARGE)


class ProviderError(Exception):
    """Raised when a provider operation fails. Carries a normalized kind."""

    def __init__(self, kind: ErrorKind, message: str | None = None, *,
                 provider: str = "provider", status: int | None = None):
        self.kind = kind
        self.provider = provider
        self.status = status
        super().__init__(message or kind.template.format(provider=provider))

    @property
    def retryable(self) -> bool:
        return self.kind.retryable

    @classmethod
    def from_status(cls, status: int, provider: str, detail: str = "") -> 'ProviderError':
        """Map an HTTP status code onto the taxonomy."""
        if status == 401:
            kind = ErrorKind.AUTHENTICATION
        elif status == 403:
            kind = ErrorKind.AUTHORIZATION
        elif status == 429:
            kind = ErrorKind.RATE_LIMIT
        elif status == 413:
            kind = ErrorKind.PROMPT_TOO_LARGE
        elif status >= 500:
            kind = ErrorKind.SERVER
        elif 400 <= status < 500:
            kind = ErrorKind.CLIENT
        else:
            kind = ErrorKind.UNKNOWN

        message = None
        if kind in (ErrorKind.CLIENT, ErrorKind.UNKNOWN):
            message = f"{provider} API error ({status}): {detail or 'no details'}"
        return cls(kind, message, provider=provider, status=status)


class CircuitOpenError(ProviderError):
    """Raised by the circuit breaker instead of calling a failing backend."""

    def __init__(self, retry_in: float, provider: str = "provider"):
        self.retry_in = retry_in
        super().__init__(
            ErrorKind.CIRCUIT_OPEN,
            f"Circuit breaker is OPEN. Retry in {max(0, round(retry_in))}s",
            provider=provider,
        )


def error_status(error: BaseException) -> int | None:
    """Best-effort HTTP status lookup across SDK and HTTP client errors."""
    status = getattr(error, 'status', None)
    if status is None:
        status = getattr(error, 'status_code', None)
    if status is None:
        response = getattr(error, 'response', None)
        status = getattr(response, 'status_code', None)
    return status if isinstance(status, int) else None


def is_retryable(error: BaseException) -> bool:
    """Client errors (4xx other than 429) and non-retryable kinds abort retries."""
    if isinstance(error, ProviderError):
        if not error.retryable:
            return False
    status = error_status(error)
    if status is not None and 400 <= status < 500 and status != 429:
        return False
    return True
