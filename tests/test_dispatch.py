"""Tests for roundtable/providers/dispatch.py -- failures come back as values."""

import asyncio
import time
from unittest.mock import AsyncMock, patch

import pytest

from roundtable.models import CallResult, ContextTurn, Participant
from roundtable.providers.base import AIProvider, ProviderError
from roundtable.providers.dispatch import PROVIDER_CLASSES, build_provider, call_provider
from tests.conftest import make_participant

TURNS = [ContextTurn(role="user", content="Please begin.")]


class StubProvider(AIProvider):
    """Provider double whose generate is replaced per test."""

    async def generate(self, system_prompt, turns):  # type: ignore[override]
        return CallResult(content="stub reply")


def _patched(provider: AIProvider):
    return patch("roundtable.providers.dispatch.build_provider", return_value=provider)


def test_registry_covers_three_service_families():
    assert set(PROVIDER_CLASSES) == {"openai", "anthropic", "gemini"}


async def test_missing_credential_is_error_result():
    result = await call_provider(make_participant("openai", api_key="  "), "sys", TURNS)
    assert result.stop_reason == "error"
    assert "API key" in result.content


async def test_unknown_provider_is_error_result():
    result = await call_provider(Participant("mistral", "key", "m"), "sys", TURNS)
    assert result.failed
    assert "Unknown provider" in result.content


def test_build_provider_unknown_raises():
    with pytest.raises(ProviderError):
        build_provider(Participant("mistral", "key", "m"))


async def test_success_passes_through():
    provider = StubProvider(make_participant("openai"))
    with _patched(provider):
        result = await call_provider(make_participant("openai"), "sys", TURNS)
    assert result == CallResult(content="stub reply")
    assert not result.failed


async def test_provider_error_becomes_error_result():
    provider = StubProvider(make_participant("gemini"))
    provider.generate = AsyncMock(side_effect=ProviderError("gemini", "Empty response text"))  # type: ignore[method-assign]
    with _patched(provider):
        result = await call_provider(make_participant("gemini"), "sys", TURNS)
    assert result.stop_reason == "error"
    assert result.content == "Empty response text"


async def test_unexpected_exception_becomes_error_result():
    provider = StubProvider(make_participant("openai"))
    provider.generate = AsyncMock(side_effect=KeyError("choices"))  # type: ignore[method-assign]
    with _patched(provider):
        result = await call_provider(make_participant("openai"), "sys", TURNS)
    assert result.failed
    assert "Unexpected error" in result.content


async def test_client_construction_failure_becomes_error_result():
    with patch("roundtable.providers.dispatch.build_provider", side_effect=ValueError("bad base url")):
        result = await call_provider(make_participant("openai"), "sys", TURNS)
    assert result.failed
    assert "bad base url" in result.content


async def test_already_cancelled_returns_without_calling():
    cancel = asyncio.Event()
    cancel.set()
    with patch("roundtable.providers.dispatch.build_provider") as build:
        result = await call_provider(make_participant("openai"), "sys", TURNS, cancel)
    assert result.stop_reason == "canceled"
    build.assert_not_called()


async def test_cancel_aborts_in_flight_request_promptly():
    started = asyncio.Event()
    finished = False

    async def hang(system_prompt, turns):
        nonlocal finished
        started.set()
        await asyncio.sleep(60)
        finished = True

    provider = StubProvider(make_participant("anthropic"))
    provider.generate = hang  # type: ignore[method-assign]
    cancel = asyncio.Event()

    with _patched(provider):
        call = asyncio.create_task(call_provider(make_participant("anthropic"), "sys", TURNS, cancel))
        await asyncio.wait_for(started.wait(), timeout=1)
        begin = time.monotonic()
        cancel.set()
        result = await asyncio.wait_for(call, timeout=1)

    assert result.stop_reason == "canceled"
    assert result.failed
    assert time.monotonic() - begin < 0.5
    assert finished is False


async def test_caller_cancellation_propagates_and_stops_request():
    request_cancelled = asyncio.Event()

    async def hang(system_prompt, turns):
        try:
            await asyncio.sleep(60)
        except asyncio.CancelledError:
            request_cancelled.set()
            raise

    provider = StubProvider(make_participant("openai"))
    provider.generate = hang  # type: ignore[method-assign]

    with _patched(provider):
        call = asyncio.create_task(call_provider(make_participant("openai"), "sys", TURNS, asyncio.Event()))
        await asyncio.sleep(0.01)
        call.cancel()
        with pytest.raises(asyncio.CancelledError):
            await call

    await asyncio.wait_for(request_cancelled.wait(), timeout=1)
