"""Provider gateway - uniform "send prompt, get text" over the AI SDKs.

The primary provider (Anthropic) generates tasks and subtasks. The research
provider (Perplexity through its OpenAI-compatible API) is optional and is
only constructed when a research call is made. Every SDK failure is
classified into a ``ProviderError`` here so the pipeline's retry policy
never looks at SDK types.
"""

from typing import Any

import anthropic
import openai
from loguru import logger
from rich.console import Console

from taskforge.core.config import Settings, get_settings
from taskforge.core.errors import ConfigurationError, ProviderError, ProviderErrorKind
from taskforge.prompts.builder import PromptPair
from taskforge.providers.progress import ProgressCallback, track_progress

PRIMARY_PROVIDER = "Anthropic"
RESEARCH_PROVIDER = "Perplexity"
RESEARCH_TEMPERATURE = 0.1

# =============================================================================
# ERROR CLASSIFICATION
# =============================================================================

# Order matters: the SDK timeout errors subclass their connection errors.
_CLASSIFICATION: list[tuple[tuple[type[BaseException], ...], ProviderErrorKind]] = [
    (
        (anthropic.APITimeoutError, openai.APITimeoutError, TimeoutError),
        ProviderErrorKind.TIMEOUT,
    ),
    (
        (anthropic.APIConnectionError, openai.APIConnectionError, ConnectionError),
        ProviderErrorKind.NETWORK,
    ),
    (
        (anthropic.RateLimitError, openai.RateLimitError),
        ProviderErrorKind.QUOTA_EXHAUSTED,
    ),
    (
        (
            anthropic.AuthenticationError,
            anthropic.PermissionDeniedError,
            openai.AuthenticationError,
            openai.PermissionDeniedError,
        ),
        ProviderErrorKind.PERMISSION_DENIED,
    ),
    (
        (
            anthropic.BadRequestError,
            anthropic.NotFoundError,
            anthropic.UnprocessableEntityError,
            openai.BadRequestError,
            openai.NotFoundError,
            openai.UnprocessableEntityError,
        ),
        ProviderErrorKind.MALFORMED_REQUEST,
    ),
]

# Transient server-side statuses (overloaded, gateway errors) behave like
# network failures for retry purposes.
_TRANSIENT_STATUS = frozenset({500, 502, 503, 504, 529})

_MESSAGE_HINTS: list[tuple[tuple[str, ...], ProviderErrorKind]] = [
    (("resource_exhausted", "quota"), ProviderErrorKind.QUOTA_EXHAUSTED),
    (("permission_denied", "permission denied"), ProviderErrorKind.PERMISSION_DENIED),
    (("invalid_argument",), ProviderErrorKind.MALFORMED_REQUEST),
    (("timeout", "timed out"), ProviderErrorKind.TIMEOUT),
    (("network",), ProviderErrorKind.NETWORK),
]


def classify_provider_error(error: BaseException, provider: str = PRIMARY_PROVIDER) -> ProviderError:
    """
    Map an SDK or transport exception to a ``ProviderError``.

    Args:
        error: Exception raised by the provider call.
        provider: Provider name for the user-facing message.

    Returns:
        Classified ProviderError (the input itself if already classified).
    """
    if isinstance(error, ProviderError):
        return error

    detail = str(error)
    for types, kind in _CLASSIFICATION:
        if isinstance(error, types):
            return ProviderError(kind, provider, detail)

    status = getattr(error, "status_code", None)
    if status in _TRANSIENT_STATUS:
        return ProviderError(ProviderErrorKind.NETWORK, provider, detail)

    lowered = detail.lower()
    for hints, kind in _MESSAGE_HINTS:
        if any(hint in lowered for hint in hints):
            return ProviderError(kind, provider, detail)

    return ProviderError(ProviderErrorKind.UNKNOWN, provider, detail)


# =============================================================================
# GATEWAY
# =============================================================================


class ProviderGateway:
    """
    Send prompts to the primary and research providers.

    Created once per process and passed into the pipeline. Clients are
    built on first use; pass them in to avoid network access in tests.

    Example:
        >>> gateway = ProviderGateway()
        >>> text = await gateway.send_primary(prompt_pair)
    """

    def __init__(
        self,
        settings: Settings | None = None,
        primary_client: Any | None = None,
        research_client: Any | None = None,
        console: Console | None = None,
    ) -> None:
        """
        Initialize the gateway.

        Args:
            settings: Settings override. Uses the cached settings if omitted.
            primary_client: Pre-built ``AsyncAnthropic``-compatible client.
            research_client: Pre-built ``AsyncOpenAI``-compatible client.
            console: Console for the status animation; none when omitted.
        """
        self.settings = settings or get_settings()
        self.console = console
        self._primary_client = primary_client
        self._research_client = research_client
        self._callbacks: list[ProgressCallback] = []

    def add_callback(self, callback: ProgressCallback) -> None:
        """Add a listener for progress events."""
        self._callbacks.append(callback)

    def remove_callback(self, callback: ProgressCallback) -> None:
        """Remove a listener."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    # -------------------------------------------------------------------------
    # CLIENTS
    # -------------------------------------------------------------------------

    def _get_primary_client(self) -> Any:
        """Get or create the Anthropic client."""
        if self._primary_client is None:
            key = self.settings.anthropic_api_key
            if key is None or not key.get_secret_value():
                raise ConfigurationError(
                    "ANTHROPIC_API_KEY environment variable is missing. "
                    "Set it to generate tasks."
                )
            self._primary_client = anthropic.AsyncAnthropic(api_key=key.get_secret_value())
            logger.debug(f"Initialized {PRIMARY_PROVIDER} client ({self.settings.taskforge_model})")
        return self._primary_client

    def _get_research_client(self) -> Any:
        """Get or create the Perplexity client.

        Raises:
            ConfigurationError: If PERPLEXITY_API_KEY is not set.
        """
        if self._research_client is None:
            key = self.settings.perplexity_api_key
            if key is None or not key.get_secret_value():
                raise ConfigurationError(
                    "PERPLEXITY_API_KEY environment variable is missing. "
                    "Set it to use research-backed features."
                )
            self._research_client = openai.AsyncOpenAI(
                api_key=key.get_secret_value(),
                base_url=self.settings.perplexity_base_url,
            )
            logger.debug(f"Initialized {RESEARCH_PROVIDER} client ({self.settings.perplexity_model})")
        return self._research_client

    # -------------------------------------------------------------------------
    # CALLS
    # -------------------------------------------------------------------------

    async def send_primary(
        self,
        prompt: PromptPair,
        stage: str = "generate",
        message: str | None = None,
    ) -> str:
        """
        Send a prompt to the primary provider.

        Args:
            prompt: System and user prompt.
            stage: Stage name for progress events.
            message: Status line text.

        Returns:
            Reply text (text blocks concatenated).

        Raises:
            ConfigurationError: If the primary credential is missing.
            ProviderError: If the call fails.
        """
        client = self._get_primary_client()
        message = message or f"Waiting for response from {PRIMARY_PROVIDER}..."

        logger.info(f"Sending request to {PRIMARY_PROVIDER} ({stage})")
        async with track_progress(stage, message, self._callbacks, self.console):
            try:
                response = await client.messages.create(
                    model=self.settings.taskforge_model,
                    max_tokens=self.settings.taskforge_max_tokens,
                    temperature=self.settings.taskforge_temperature,
                    system=prompt.system,
                    messages=[{"role": "user", "content": prompt.user}],
                )
            except Exception as e:
                raise _classified(e, PRIMARY_PROVIDER) from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "text") == "text"
        )
        logger.info(f"Completed response from {PRIMARY_PROVIDER} ({len(text)} chars)")
        if getattr(response, "stop_reason", None) == "max_tokens":
            logger.warning("Response hit the max_tokens limit and may be truncated")
        return text

    async def send_research(
        self,
        query: str,
        stage: str = "research",
        message: str | None = None,
    ) -> str:
        """
        Send a query to the research provider.

        Raises:
            ConfigurationError: If the research credential is missing.
            ProviderError: If the call fails.
        """
        client = self._get_research_client()
        message = message or f"Researching best practices with {RESEARCH_PROVIDER}..."

        logger.info(f"Sending research query to {RESEARCH_PROVIDER}")
        async with track_progress(stage, message, self._callbacks, self.console):
            try:
                response = await client.chat.completions.create(
                    model=self.settings.perplexity_model,
                    messages=[{"role": "user", "content": query}],
                    temperature=RESEARCH_TEMPERATURE,
                )
            except Exception as e:
                raise _classified(e, RESEARCH_PROVIDER) from e

        if not response.choices:
            raise ProviderError(
                ProviderErrorKind.UNKNOWN,
                RESEARCH_PROVIDER,
                "research response had no choices",
            )
        text = response.choices[0].message.content or ""
        logger.info(f"Research completed ({len(text)} chars)")
        return text


def _classified(error: Exception, provider: str) -> ProviderError:
    classified = classify_provider_error(error, provider)
    if classified is error:
        # A fresh instance, so the error is never chained to itself.
        return ProviderError(classified.kind, classified.provider, classified.detail)
    return classified
