"""Reasoning-service abstraction with shared retry, backoff and error normalization."""

from __future__ import annotations

import asyncio
import hashlib
import json
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from flowsense_agent.config import LLMConfig
from flowsense_agent.core.cache import BoundedCache, create_cache_key
from flowsense_agent.core.errors import ConfigurationError, LLMError
from flowsense_agent.core.models import CompletionResponse, Message, ResponseChunk, ToolDefinition
from flowsense_agent.core.types import ProviderErrorKind, Role
from flowsense_agent.log import get_logger

logger = get_logger(__name__)

_KIND_MESSAGES = {
    ProviderErrorKind.INVALID_CREDENTIAL: "Invalid API key",
    ProviderErrorKind.RATE_LIMITED: "Rate limit exceeded",
    ProviderErrorKind.SERVICE_UNAVAILABLE: "LLM service unavailable",
    ProviderErrorKind.TIMEOUT: "Request timed out",
}


def kind_for_status(status: int) -> ProviderErrorKind:
    """Map an HTTP status code onto the provider error taxonomy."""
    if status in (401, 403):
        return ProviderErrorKind.INVALID_CREDENTIAL
    if status == 429:
        return ProviderErrorKind.RATE_LIMITED
    if status == 408:
        return ProviderErrorKind.TIMEOUT
    if status in (400, 404, 413, 422):
        return ProviderErrorKind.MALFORMED_REQUEST
    if status >= 500:
        return ProviderErrorKind.SERVICE_UNAVAILABLE
    return ProviderErrorKind.UNKNOWN


class LLMProvider(ABC):
    """Base class for reasoning-service backends.

    Subclasses implement ``_request`` for a single round trip; everything else
    (configuration checks, retries with exponential backoff, error
    classification, the optional response cache) lives here so every backend
    behaves the same towards the agent.
    """

    name: str = "base"
    key_prefix: str = ""

    def __init__(
        self,
        config: LLMConfig,
        response_cache: Optional[BoundedCache[CompletionResponse]] = None,
        cache_ttl: float | None = None,
    ):
        self._validate_config(config)
        if self.key_prefix:
            self._validate_api_key(config.api_key, self.key_prefix)
        self.config = config
        self._response_cache = response_cache
        self._cache_ttl = cache_ttl

    @property
    def model(self) -> str:
        return self.config.model

    # -- public operations ------------------------------------------------

    async def complete(self, messages: list[Message], system_prompt: str) -> CompletionResponse:
        """Plain completion, served from the response cache when possible."""
        cache_key = None
        if self._response_cache is not None:
            cache_key = self._cache_key(messages, system_prompt)
            cached = self._response_cache.get(cache_key)
            if cached is not None:
                logger.debug("llm_cache_hit", provider=self.name, model=self.model)
                return cached

        history = self._prepare_history(messages)
        response = await self._retry(lambda: self._request(history, system_prompt, None))

        if cache_key is not None and response.finished:
            self._response_cache.set(cache_key, response, ttl=self._cache_ttl)
        return response

    async def complete_with_tools(
        self, messages: list[Message], system_prompt: str, tools: list[ToolDefinition]
    ) -> CompletionResponse:
        history = self._prepare_history(messages)
        return await self._retry(lambda: self._request(history, system_prompt, tools or None))

    async def stream_completion(
        self, messages: list[Message], system_prompt: str
    ) -> AsyncIterator[ResponseChunk]:
        """Single-chunk stream over ``complete``; backends may override."""
        response = await self.complete(messages, system_prompt)
        yield ResponseChunk(type="content", content=response.content, final=True)

    # -- backend hook -----------------------------------------------------

    @abstractmethod
    async def _request(
        self,
        messages: list[Message],
        system_prompt: str,
        tools: list[ToolDefinition] | None,
    ) -> CompletionResponse:
        """Perform exactly one request against the reasoning service."""
        ...

    # -- error handling ---------------------------------------------------

    def classify_error(self, exc: BaseException) -> ProviderErrorKind:
        """Place ``exc`` in the taxonomy. Backends refine this for SDK exceptions."""
        if isinstance(exc, LLMError):
            return exc.kind
        if isinstance(exc, TimeoutError):
            return ProviderErrorKind.TIMEOUT

        status = getattr(exc, "status_code", None)
        if isinstance(status, int):
            return kind_for_status(status)

        text = str(exc).lower()
        if "timeout" in text or "timed out" in text:
            return ProviderErrorKind.TIMEOUT
        if "401" in text or "unauthorized" in text:
            return ProviderErrorKind.INVALID_CREDENTIAL
        if "429" in text or "rate limit" in text:
            return ProviderErrorKind.RATE_LIMITED
        if "500" in text or "503" in text or "unavailable" in text:
            return ProviderErrorKind.SERVICE_UNAVAILABLE
        return ProviderErrorKind.UNKNOWN

    def normalize_error(self, exc: BaseException) -> LLMError:
        if isinstance(exc, LLMError):
            return exc
        kind = self.classify_error(exc)
        if kind == ProviderErrorKind.MALFORMED_REQUEST:
            message = f"Invalid request to {self.name}: {exc}"
        else:
            message = _KIND_MESSAGES.get(kind) or str(exc) or "Unknown error occurred"
        error = LLMError(
            message,
            kind=kind,
            details={"provider": self.name, "error_type": type(exc).__name__, "original": str(exc)},
        )
        error.__cause__ = exc
        return error

    async def _retry(self, fn: Callable[[], Awaitable[Any]]) -> Any:
        """Run ``fn`` up to ``max_retries`` times.

        Attempt n (0-based) that fails retryably is followed by a pause of
        ``retry_base_delay * 2**n`` seconds. Invalid credentials and rate limits
        are raised immediately.
        """
        attempts = self.config.max_retries

        for attempt in range(attempts):
            try:
                return await fn()
            except Exception as e:
                error = self.normalize_error(e)
                if not error.retryable:
                    logger.warning(
                        "llm_request_rejected", provider=self.name, kind=str(error.kind), error=error.message
                    )
                    raise error
                if attempt == attempts - 1:
                    logger.error(
                        "llm_retries_exhausted", provider=self.name, attempts=attempts, kind=str(error.kind)
                    )
                    raise error
                delay = self.config.retry_base_delay * 2**attempt
                logger.warning(
                    "llm_retry",
                    provider=self.name,
                    attempt=attempt + 1,
                    delay=delay,
                    kind=str(error.kind),
                )
                await self._backoff(delay)

        raise ConfigurationError("max_retries must be at least 1")

    async def _backoff(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    # -- helpers ----------------------------------------------------------

    @staticmethod
    def _validate_config(config: LLMConfig) -> None:
        if not config.api_key or not config.api_key.strip():
            raise ConfigurationError("API key is required")
        if not config.model or not config.model.strip():
            raise ConfigurationError("Model name is required")
        if not 0 <= config.temperature <= 1:
            raise ConfigurationError("Temperature must be between 0 and 1")
        if config.max_tokens <= 0:
            raise ConfigurationError("Max tokens must be positive")
        if config.timeout <= 0:
            raise ConfigurationError("Timeout must be positive")
        if config.max_retries < 1:
            raise ConfigurationError("max_retries must be at least 1")

    @staticmethod
    def _validate_api_key(api_key: str, prefix: str) -> None:
        if not api_key.startswith(prefix):
            raise ConfigurationError(f"Invalid API key format. Expected key starting with '{prefix}'")

    @staticmethod
    def _prepare_history(messages: list[Message]) -> list[Message]:
        """Drop tool messages whose assistant turn was trimmed away."""
        announced: set[str] = set()
        history: list[Message] = []
        for message in messages:
            if message.role == Role.TOOL and message.tool_call_id not in announced:
                continue
            if message.role == Role.ASSISTANT and message.tool_calls:
                announced.update(call.id for call in message.tool_calls)
            history.append(message)
        return history

    def _cache_key(self, messages: list[Message], system_prompt: str) -> str:
        payload = json.dumps(
            [system_prompt, self.config.temperature, [(str(m.role), m.content) for m in messages]],
            ensure_ascii=False,
        )
        digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()
        return create_cache_key("llm", self.name, self.model, digest)


def parse_tool_arguments(arguments: str) -> dict[str, Any]:
    """Decode a JSON tool-argument string, tolerating empty or invalid text."""
    if not arguments:
        return {}
    try:
        value = json.loads(arguments)
    except json.JSONDecodeError:
        return {}
    return value if isinstance(value, dict) else {}
