"""Structured provider errors.

The kind is decided once, where the HTTP outcome is classified, and
travels with the exception. Nothing downstream inspects message text.
"""

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_CREDENTIAL = "invalid_credential"
    RATE_LIMITED = "rate_limited"
    SERVER_OVERLOADED = "server_overloaded"
    NETWORK = "network"
    MODEL_UNAVAILABLE = "model_unavailable"
    REQUEST_REJECTED = "request_rejected"
    MALFORMED_RESPONSE = "malformed_response"
    NO_PROVIDER_AVAILABLE = "no_provider_available"


RETRYABLE_KINDS = frozenset({
    ErrorKind.RATE_LIMITED,
    ErrorKind.SERVER_OVERLOADED,
    ErrorKind.NETWORK,
})

NO_PROVIDER_MESSAGE = (
    "No active AI provider available. Add a Mistral or Groq API key "
    "in Settings to process designs."
)
ANALYSIS_FAILED_MESSAGE = "Image analysis failed: the provider returned an unreadable response"


class ProviderError(Exception):
    """A classified failure from a provider attempt or the orchestrator."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        provider: str = "",
        model: str = "",
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.provider = provider
        self.model = model
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    def __repr__(self) -> str:
        return (
            f"ProviderError(kind={self.kind.value!r}, provider={self.provider!r}, "
            f"model={self.model!r}, status_code={self.status_code!r})"
        )


class InvalidImageError(ValueError):
    """Image payload is empty or has an unsupported mime type."""


def classify_status(status_code: int) -> ErrorKind:
    """Map a non-2xx HTTP status to an error kind."""
    if status_code in (401, 403):
        return ErrorKind.INVALID_CREDENTIAL
    if status_code == 429:
        return ErrorKind.RATE_LIMITED
    if status_code == 404:
        return ErrorKind.MODEL_UNAVAILABLE
    if status_code >= 500:
        return ErrorKind.SERVER_OVERLOADED
    return ErrorKind.REQUEST_REJECTED
