"""
LLM Service.

Provides BYOK (Bring Your Own Key) LLM integration via OpenRouter or any
other OpenAI-compatible endpoint (OpenAI, Ollama, ...).

The language model is an unreliable collaborator: every call goes through
LLMService, which bounds it with a timeout, retries a limited number of
times with exponential backoff, and reports the outcome as an LLMResult
instead of raising.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Protocol

from openai import AsyncOpenAI
from pydantic import BaseModel, Field

from src.engine.errors import ServiceUnavailable

logger = logging.getLogger(__name__)


class LLMProvider(Protocol):
    """
    Interface for LLM providers.

    Supports any OpenAI-compatible API (OpenRouter, OpenAI, Ollama, etc.)
    """

    async def complete(
        self,
        messages: list[dict[str, str]],
        max_tokens: int = 256,
        temperature: float = 0.7,
    ) -> str:
        """
        Generate a completion from messages.

        Args:
            messages: List of {"role": "user"|"assistant"|"system", "content": str}
            max_tokens: Maximum tokens in response
            temperature: Randomness (0.0 = deterministic, 1.0 = creative)

        Returns:
            Generated text response
        """
        ...

    def stream(
        self,
        messages: list[dict[str, str]],
        max_tokens: int = 256,
        temperature: float = 0.7,
    ) -> AsyncIterator[str]:
        """Generate a completion as a stream of text chunks."""
        ...

    @property
    def model_name(self) -> str:
        """The model being used."""
        ...

    @property
    def is_available(self) -> bool:
        """Whether the provider is configured and ready."""
        ...


@dataclass
class OpenRouterProvider:
    """
    OpenRouter LLM provider using OpenAI-compatible API.

    Makes exactly one request per call; retries and timeouts are the
    service's job.

    Configuration via environment variables:
        OPENROUTER_API_KEY: Your OpenRouter API key (required)
        OPENROUTER_MODEL: Model to use (default: anthropic/claude-3-haiku)
        LLM_BASE_URL: Custom base URL (default: OpenRouter)
        OPENROUTER_SITE_URL: Your site URL for rankings (optional)
        OPENROUTER_SITE_NAME: Your site name (optional)
    """

    api_key: str | None = None
    model: str = "anthropic/claude-3-haiku"
    base_url: str = "https://openrouter.ai/api/v1"
    site_url: str | None = None
    site_name: str = "RPG Turn Engine"

    _client: AsyncOpenAI | None = field(init=False, default=None)

    def __post_init__(self) -> None:
        """Initialize from environment if not provided."""
        if self.api_key is None:
            self.api_key = os.getenv("OPENROUTER_API_KEY")

        if os.getenv("OPENROUTER_MODEL"):
            self.model = os.getenv("OPENROUTER_MODEL", self.model)

        if os.getenv("LLM_BASE_URL"):
            self.base_url = os.getenv("LLM_BASE_URL", self.base_url)

        if os.getenv("OPENROUTER_SITE_URL"):
            self.site_url = os.getenv("OPENROUTER_SITE_URL")

        if os.getenv("OPENROUTER_SITE_NAME"):
            self.site_name = os.getenv("OPENROUTER_SITE_NAME", self.site_name)

        if self.api_key:
            headers = {"X-Title": self.site_name}
            if self.site_url:
                headers["HTTP-Referer"] = self.site_url

            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                default_headers=headers,
            )

    @property
    def model_name(self) -> str:
        """The model being used."""
        return self.model

    @property
    def is_available(self) -> bool:
        """Whether the provider is configured and ready."""
        return self._client is not None

    def _require_client(self) -> AsyncOpenAI:
        if self._client is None:
            raise ServiceUnavailable(
                "OpenRouter provider not configured. Set OPENROUTER_API_KEY environment variable."
            )
        return self._client

    async def complete(
        self,
        messages: list[dict[str, str]],
        max_tokens: int = 256,
        temperature: float = 0.7,
    ) -> str:
        """
        Generate a completion from messages.

        Raises:
            ServiceUnavailable: If provider is not configured (no API key)
        """
        client = self._require_client()
        response = await client.chat.completions.create(
            model=self.model,
            messages=messages,  # type: ignore[arg-type]
            max_tokens=max_tokens,
            temperature=temperature,
        )
        return response.choices[0].message.content or ""

    async def stream(
        self,
        messages: list[dict[str, str]],
        max_tokens: int = 256,
        temperature: float = 0.7,
    ) -> AsyncIterator[str]:
        """Yield response text as the model produces it."""
        client = self._require_client()
        response = await client.chat.completions.create(
            model=self.model,
            messages=messages,  # type: ignore[arg-type]
            max_tokens=max_tokens,
            temperature=temperature,
            stream=True,
        )
        async for chunk in response:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content
            if delta:
                yield delta


@dataclass
class MockLLMProvider:
    """
    Mock LLM provider for testing and offline play.

    Returns canned responses without making API calls, and can simulate
    failures and slow responses.
    """

    model: str = "mock"
    responses: dict[str, str] = field(default_factory=dict)
    default_response: str = "[Mock LLM response]"

    fail_times: int = 0
    """Number of upcoming calls that raise before responses resume."""

    delay_seconds: float = 0.0
    chunk_size: int = 8

    call_count: int = field(init=False, default=0)
    last_messages: list[dict[str, str]] = field(init=False, default_factory=list)

    @property
    def model_name(self) -> str:
        """The model being used."""
        return self.model

    @property
    def is_available(self) -> bool:
        """Mock provider is always available."""
        return True

    async def _respond(self, messages: list[dict[str, str]]) -> str:
        self.call_count += 1
        self.last_messages = messages

        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)

        if self.fail_times > 0:
            self.fail_times -= 1
            raise ConnectionError("Simulated LLM failure")

        # Check for custom response based on last user message
        last_user_msg = next(
            (m["content"] for m in reversed(messages) if m["role"] == "user"),
            "",
        )
        if last_user_msg in self.responses:
            return self.responses[last_user_msg]
        for trigger, response in self.responses.items():
            if trigger and trigger in last_user_msg:
                return response

        return self.default_response

    async def complete(
        self,
        messages: list[dict[str, str]],
        max_tokens: int = 256,
        temperature: float = 0.7,
    ) -> str:
        """Return a mock response."""
        return await self._respond(messages)

    async def stream(
        self,
        messages: list[dict[str, str]],
        max_tokens: int = 256,
        temperature: float = 0.7,
    ) -> AsyncIterator[str]:
        """Yield the mock response in fixed-size chunks."""
        text = await self._respond(messages)
        for start in range(0, len(text), self.chunk_size):
            await asyncio.sleep(0)
            yield text[start : start + self.chunk_size]

    def set_response(self, trigger: str, response: str) -> None:
        """Set a custom response for a specific input."""
        self.responses[trigger] = response


class LLMResult(BaseModel):
    """Outcome of a bounded LLM call."""

    ok: bool
    content: str = ""
    error: str | None = None
    attempts: int = Field(default=0, ge=0)


@dataclass
class LLMService:
    """
    Bounded access to an LLM provider.

    Every attempt is limited by timeout_seconds; failed or empty attempts
    are retried up to max_retries times with exponential backoff.
    """

    provider: LLMProvider
    timeout_seconds: float = 15.0
    max_retries: int = 2
    backoff_seconds: float = 0.5

    @property
    def is_available(self) -> bool:
        """Whether LLM features are available."""
        return self.provider.is_available

    async def complete(
        self,
        messages: list[dict[str, str]],
        max_tokens: int = 256,
        temperature: float = 0.7,
    ) -> LLMResult:
        """
        Request a completion.

        Never raises for provider problems; check LLMResult.ok.
        """
        if not self.provider.is_available:
            return LLMResult(ok=False, error="LLM provider not configured", attempts=0)

        error = "no attempts made"
        attempts = 0
        for attempt in range(self.max_retries + 1):
            attempts = attempt + 1
            try:
                content = await asyncio.wait_for(
                    self.provider.complete(
                        messages=messages,
                        max_tokens=max_tokens,
                        temperature=temperature,
                    ),
                    timeout=self.timeout_seconds,
                )
                if content.strip():
                    return LLMResult(ok=True, content=content, attempts=attempts)
                error = "empty response"
            except TimeoutError:
                error = f"timed out after {self.timeout_seconds}s"
            except ServiceUnavailable as e:
                # Not configured; retrying cannot help
                return LLMResult(ok=False, error=str(e), attempts=attempts)
            except Exception as e:
                # Rate limits (429), connection resets, etc.
                error = f"{type(e).__name__}: {e}"

            logger.warning(
                "LLM attempt %d/%d failed: %s", attempts, self.max_retries + 1, error
            )
            if attempt < self.max_retries and self.backoff_seconds:
                await asyncio.sleep(self.backoff_seconds * 2**attempt)

        return LLMResult(ok=False, error=error, attempts=attempts)

    async def stream(
        self,
        messages: list[dict[str, str]],
        cancel: asyncio.Event | None = None,
        max_tokens: int = 256,
        temperature: float = 0.7,
    ) -> AsyncIterator[str]:
        """
        Stream a completion chunk by chunk.

        Stops quietly once cancel is set. Each chunk must arrive within
        timeout_seconds.

        Raises:
            ServiceUnavailable: On timeout or provider error
        """
        if not self.provider.is_available:
            raise ServiceUnavailable("LLM provider not configured")

        iterator = self.provider.stream(
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
        ).__aiter__()
        try:
            while cancel is None or not cancel.is_set():
                try:
                    chunk = await asyncio.wait_for(
                        iterator.__anext__(), timeout=self.timeout_seconds
                    )
                except StopAsyncIteration:
                    return
                except TimeoutError as e:
                    raise ServiceUnavailable(
                        f"LLM stream timed out after {self.timeout_seconds}s"
                    ) from e
                except ServiceUnavailable:
                    raise
                except Exception as e:
                    raise ServiceUnavailable(f"LLM stream failed: {e}") from e

                if cancel is not None and cancel.is_set():
                    return
                yield chunk
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()


def create_llm_service(
    provider_type: str = "openrouter",
    timeout_seconds: float | None = None,
    max_retries: int | None = None,
    backoff_seconds: float = 0.5,
    **kwargs,
) -> LLMService:
    """
    Factory function to create an LLM service.

    Args:
        provider_type: Type of provider ("openrouter", "mock")
        timeout_seconds: Per-attempt timeout (env LLM_TIMEOUT_SECONDS, default 15)
        max_retries: Retries after the first attempt (env LLM_MAX_RETRIES, default 2)
        backoff_seconds: Initial backoff between retries
        **kwargs: Provider-specific configuration

    Returns:
        Configured LLMService

    Example:
        # Auto-configure from environment
        service = create_llm_service()

        # Mock for testing
        service = create_llm_service(provider_type="mock", backoff_seconds=0)
    """
    if provider_type == "mock":
        provider: LLMProvider = MockLLMProvider(**kwargs)
    elif provider_type == "openrouter":
        provider = OpenRouterProvider(**kwargs)
    else:
        raise ValueError(f"Unknown provider type: {provider_type}")

    if timeout_seconds is None:
        timeout_seconds = float(os.getenv("LLM_TIMEOUT_SECONDS", "15"))
    if max_retries is None:
        max_retries = int(os.getenv("LLM_MAX_RETRIES", "2"))

    return LLMService(
        provider=provider,
        timeout_seconds=timeout_seconds,
        max_retries=max_retries,
        backoff_seconds=backoff_seconds,
    )
