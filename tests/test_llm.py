"""
Tests for the bounded LLM service and its providers.
"""

from __future__ import annotations

import asyncio
import os
from unittest.mock import patch

import pytest

from src.engine.errors import ServiceUnavailable
from src.services.llm import (
    LLMService,
    MockLLMProvider,
    OpenRouterProvider,
    create_llm_service,
)

MESSAGES = [{"role": "user", "content": "Hello"}]


# =============================================================================
# Mock Provider Tests
# =============================================================================


class TestMockLLMProvider:
    """Tests for MockLLMProvider."""

    @pytest.mark.asyncio
    async def test_complete_basic(self) -> None:
        """Test basic completion returns mock response."""
        provider = MockLLMProvider()
        response = await provider.complete(MESSAGES)
        assert response == "[Mock LLM response]"
        assert provider.call_count == 1
        assert provider.last_messages == MESSAGES

    @pytest.mark.asyncio
    async def test_complete_with_custom_response(self) -> None:
        """Test custom response for specific input."""
        provider = MockLLMProvider()
        provider.set_response("Hello", "Hi there!")
        assert await provider.complete(MESSAGES) == "Hi there!"

    @pytest.mark.asyncio
    async def test_trigger_substring(self) -> None:
        """Triggers also match inside a longer user message."""
        provider = MockLLMProvider(responses={"north": "[]"})
        messages = [{"role": "user", "content": "Player command: go north"}]
        assert await provider.complete(messages) == "[]"

    @pytest.mark.asyncio
    async def test_simulated_failures(self) -> None:
        """Test fail_times raises before responses resume."""
        provider = MockLLMProvider(fail_times=1)
        with pytest.raises(ConnectionError):
            await provider.complete(MESSAGES)
        assert await provider.complete(MESSAGES) == "[Mock LLM response]"

    @pytest.mark.asyncio
    async def test_stream_chunks(self) -> None:
        provider = MockLLMProvider(default_response="abcdefghij", chunk_size=4)
        chunks = [chunk async for chunk in provider.stream(MESSAGES)]
        assert chunks == ["abcd", "efgh", "ij"]

    def test_is_available(self) -> None:
        """Test mock provider is always available."""
        assert MockLLMProvider().is_available is True


# =============================================================================
# OpenRouter Provider Tests
# =============================================================================


class TestOpenRouterProvider:
    """Tests for OpenRouterProvider."""

    @patch.dict(os.environ, {}, clear=True)
    def test_missing_api_key(self) -> None:
        """Test provider is not available without API key."""
        provider = OpenRouterProvider()
        assert provider.is_available is False

    @patch.dict(os.environ, {}, clear=True)
    def test_with_api_key(self) -> None:
        provider = OpenRouterProvider(api_key="test-key")
        assert provider.is_available is True
        assert provider.model_name == "anthropic/claude-3-haiku"

    @patch.dict(os.environ, {"OPENROUTER_MODEL": "some/model"}, clear=True)
    def test_model_from_environment(self) -> None:
        provider = OpenRouterProvider(api_key="test-key")
        assert provider.model_name == "some/model"

    @pytest.mark.asyncio
    @patch.dict(os.environ, {}, clear=True)
    async def test_complete_without_client_raises(self) -> None:
        """Test complete raises when not configured."""
        provider = OpenRouterProvider()
        with pytest.raises(ServiceUnavailable, match="OPENROUTER_API_KEY"):
            await provider.complete(MESSAGES)


# =============================================================================
# LLMService Tests
# =============================================================================


class TestLLMService:
    """Tests for timeouts, retries and result reporting."""

    @pytest.mark.asyncio
    async def test_success_first_attempt(self) -> None:
        service = LLMService(provider=MockLLMProvider(default_response="ok"), backoff_seconds=0)
        result = await service.complete(MESSAGES)
        assert result.ok
        assert result.content == "ok"
        assert result.attempts == 1

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self) -> None:
        """Test transient errors are retried."""
        provider = MockLLMProvider(default_response="ok", fail_times=2)
        service = LLMService(provider=provider, max_retries=2, backoff_seconds=0)

        result = await service.complete(MESSAGES)

        assert result.ok
        assert result.attempts == 3
        assert provider.call_count == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_retries(self) -> None:
        provider = MockLLMProvider(fail_times=10)
        service = LLMService(provider=provider, max_retries=2, backoff_seconds=0)

        result = await service.complete(MESSAGES)

        assert not result.ok
        assert result.attempts == 3
        assert "ConnectionError" in result.error

    @pytest.mark.asyncio
    async def test_empty_response_is_failure(self) -> None:
        provider = MockLLMProvider(default_response="   ")
        service = LLMService(provider=provider, max_retries=1, backoff_seconds=0)

        result = await service.complete(MESSAGES)

        assert not result.ok
        assert result.error == "empty response"
        assert provider.call_count == 2

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        """Test slow providers are cut off."""
        provider = MockLLMProvider(delay_seconds=1.0)
        service = LLMService(provider=provider, timeout_seconds=0.05, max_retries=0)

        result = await service.complete(MESSAGES)

        assert not result.ok
        assert "timed out" in result.error

    @pytest.mark.asyncio
    @patch.dict(os.environ, {}, clear=True)
    async def test_unconfigured_provider_not_called(self) -> None:
        service = LLMService(provider=OpenRouterProvider())
        result = await service.complete(MESSAGES)
        assert not result.ok
        assert result.attempts == 0

    @pytest.mark.asyncio
    async def test_backoff_doubles(self) -> None:
        provider = MockLLMProvider(fail_times=10)
        service = LLMService(provider=provider, max_retries=2, backoff_seconds=0.5)

        with patch("src.services.llm.asyncio.sleep") as sleep:
            await service.complete(MESSAGES)

        assert [call.args[0] for call in sleep.call_args_list] == [0.5, 1.0]


class TestLLMServiceStream:
    """Tests for streaming with cancellation."""

    @pytest.mark.asyncio
    async def test_stream_all_chunks(self) -> None:
        provider = MockLLMProvider(default_response="Well met, traveler.", chunk_size=5)
        service = LLMService(provider=provider)

        chunks = [chunk async for chunk in service.stream(MESSAGES)]

        assert "".join(chunks) == "Well met, traveler."

    @pytest.mark.asyncio
    async def test_stream_stops_on_cancel(self) -> None:
        provider = MockLLMProvider(default_response="x" * 40, chunk_size=4)
        service = LLMService(provider=provider)
        cancel = asyncio.Event()

        chunks = []
        async for chunk in service.stream(MESSAGES, cancel=cancel):
            chunks.append(chunk)
            if len(chunks) == 2:
                cancel.set()

        assert len(chunks) == 2

    @pytest.mark.asyncio
    async def test_stream_failure_raises(self) -> None:
        provider = MockLLMProvider(fail_times=1)
        service = LLMService(provider=provider)

        with pytest.raises(ServiceUnavailable):
            async for _ in service.stream(MESSAGES):
                pass

    @pytest.mark.asyncio
    async def test_stream_timeout_raises(self) -> None:
        provider = MockLLMProvider(delay_seconds=1.0)
        service = LLMService(provider=provider, timeout_seconds=0.05)

        with pytest.raises(ServiceUnavailable, match="timed out"):
            async for _ in service.stream(MESSAGES):
                pass


# =============================================================================
# Factory Tests
# =============================================================================


class TestCreateLLMService:
    """Tests for create_llm_service factory."""

    def test_create_mock_service(self) -> None:
        service = create_llm_service(provider_type="mock")
        assert isinstance(service.provider, MockLLMProvider)
        assert service.is_available

    @patch.dict(os.environ, {}, clear=True)
    def test_defaults(self) -> None:
        service = create_llm_service(provider_type="mock")
        assert service.timeout_seconds == 15.0
        assert service.max_retries == 2

    @patch.dict(os.environ, {"LLM_TIMEOUT_SECONDS": "3", "LLM_MAX_RETRIES": "0"}, clear=True)
    def test_environment_overrides(self) -> None:
        service = create_llm_service(provider_type="mock")
        assert service.timeout_seconds == 3.0
        assert service.max_retries == 0

    @patch.dict(os.environ, {}, clear=True)
    def test_create_openrouter_without_key(self) -> None:
        service = create_llm_service(provider_type="openrouter")
        assert not service.is_available

    def test_unknown_provider_raises(self) -> None:
        with pytest.raises(ValueError, match="Unknown provider"):
            create_llm_service(provider_type="invalid")
