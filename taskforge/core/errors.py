"""Exception taxonomy for the generation pipeline.

Provider and configuration errors reach the caller. Extraction and
validation errors are absorbed by the pipeline's retry/fallback loop.
"""

from enum import Enum


class TaskForgeError(Exception):
    """Base exception for TaskForge errors."""

    pass


class ConfigurationError(TaskForgeError):
    """A required setting or credential is missing."""

    pass


# =============================================================================
# PROVIDER ERRORS
# =============================================================================


class ProviderErrorKind(str, Enum):
    """Classification of a failed provider round-trip."""

    QUOTA_EXHAUSTED = "quota_exhausted"
    PERMISSION_DENIED = "permission_denied"
    MALFORMED_REQUEST = "malformed_request"
    TIMEOUT = "timeout"
    NETWORK = "network"
    UNKNOWN = "unknown"


RETRYABLE_KINDS = frozenset({
    ProviderErrorKind.QUOTA_EXHAUSTED,
    ProviderErrorKind.TIMEOUT,
    ProviderErrorKind.NETWORK,
})


USER_MESSAGES: dict[ProviderErrorKind, str] = {
    ProviderErrorKind.QUOTA_EXHAUSTED: (
        "{provider} quota has been exhausted. Please check your API quota and try again later."
    ),
    ProviderErrorKind.PERMISSION_DENIED: (
        "Permission denied accessing {provider} API. Please check your API key and permissions."
    ),
    ProviderErrorKind.MALFORMED_REQUEST: (
        "There was an issue with the request format. If this persists, please report it as a bug."
    ),
    ProviderErrorKind.TIMEOUT: "The request to {provider} timed out. Please try again.",
    ProviderErrorKind.NETWORK: (
        "There was a network error connecting to {provider}. "
        "Please check your internet connection and try again."
    ),
    ProviderErrorKind.UNKNOWN: "Error communicating with {provider}: {detail}",
}


class ProviderError(TaskForgeError):
    """A provider call failed.

    Attributes:
        kind: Classified failure kind.
        provider: Provider name used in the user-facing message.
        detail: Raw message of the underlying SDK error.
    """

    def __init__(
        self,
        kind: ProviderErrorKind,
        provider: str = "provider",
        detail: str = "",
    ) -> None:
        self.kind = kind
        self.provider = provider
        self.detail = detail
        super().__init__(USER_MESSAGES[kind].format(provider=provider, detail=detail))

    @property
    def retryable(self) -> bool:
        """Whether the pipeline may retry after this failure."""
        return self.kind in RETRYABLE_KINDS

    @property
    def user_message(self) -> str:
        return str(self)


# =============================================================================
# RESPONSE ERRORS
# =============================================================================


class ResponseError(TaskForgeError):
    """The provider answered, but the reply could not be used."""

    pass


class ExtractionError(ResponseError):
    """No parseable JSON structure was found in the reply text."""

    pass


class ValidationError(ResponseError):
    """Structure was found but does not match the expected schema.

    Attributes:
        reasons: Individual schema violations.
    """

    def __init__(self, message: str, reasons: list[str] | None = None) -> None:
        self.reasons = reasons or [message]
        super().__init__(message)


class CountMismatch(Warning):
    """Advisory: the reply held a different number of items than requested."""

    def __init__(self, expected: int, received: int, item: str = "items") -> None:
        self.expected = expected
        self.received = received
        self.item = item
        super().__init__(f"Expected {expected} {item}, but received {received}")
