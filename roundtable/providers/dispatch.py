"""Uniform call contract over every provider: failures become values."""

import asyncio
import logging

from roundtable.models import CallResult, ContextTurn, Participant
from roundtable.providers.anthropic import AnthropicProvider
from roundtable.providers.base import AIProvider, ProviderError
from roundtable.providers.gemini import GeminiProvider
from roundtable.providers.openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "gemini": GeminiProvider,
}

CANCELED_TEXT = "The request was canceled."


def _failure(message: str) -> CallResult:
    return CallResult(content=message, stop_reason="error")


def build_provider(participant: Participant) -> AIProvider:
    """Instantiate the provider class for a participant.

    Raises:
        ProviderError: Unknown provider or missing credential.
    """
    provider_cls = PROVIDER_CLASSES.get(participant.provider)
    if provider_cls is None:
        raise ProviderError(participant.provider, f"Unknown provider: {participant.provider}")
    return provider_cls(participant)


async def call_provider(
    participant: Participant,
    system_prompt: str,
    turns: list[ContextTurn],
    cancel_event: asyncio.Event | None = None,
) -> CallResult:
    """Call a single provider and return a CallResult.

    Never raises: missing credentials, transport errors, timeouts and empty
    replies come back with stop_reason "error". When cancel_event fires the
    in-flight request is cancelled and stop_reason is "canceled".
    """
    if not participant.api_key.strip():
        return _failure("API key is not configured.")
    if cancel_event is not None and cancel_event.is_set():
        return CallResult(content=CANCELED_TEXT, stop_reason="canceled")

    try:
        provider = build_provider(participant)
    except ProviderError as exc:
        logger.warning("Provider %s unavailable: %s", participant.provider, exc.message)
        return _failure(exc.message)
    except Exception as exc:
        logger.warning("Failed to instantiate provider %s: %s", participant.provider, exc)
        return _failure(f"Could not create client: {exc}")

    request = asyncio.ensure_future(provider.generate(system_prompt, turns))
    waiters: set[asyncio.Future] = {request}
    canceller: asyncio.Future | None = None
    if cancel_event is not None:
        canceller = asyncio.ensure_future(cancel_event.wait())
        waiters.add(canceller)

    try:
        await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for waiter in waiters:
            if not waiter.done():
                waiter.cancel()

    if not request.done() or request.cancelled():
        await asyncio.gather(request, return_exceptions=True)
        logger.info("Request to %s canceled", participant.provider)
        return CallResult(content=CANCELED_TEXT, stop_reason="canceled")

    try:
        return request.result()
    except ProviderError as exc:
        logger.warning("Provider %s failed: %s", participant.provider, exc.message)
        return _failure(exc.message)
    except Exception as exc:
        logger.warning("Provider %s unexpected failure: %s", participant.provider, exc)
        return _failure(f"Unexpected error: {exc}")
