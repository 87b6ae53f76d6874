"""Provider health checks -- ping each service before starting a discussion."""

import asyncio
import logging

from roundtable.models import ContextTurn, Participant
from roundtable.providers.dispatch import call_provider

logger = logging.getLogger(__name__)

_PING_SYSTEM = "You are a connectivity check."
_PING_PROMPT = "Reply with the word OK only."
_TIMEOUT_SEC = 15.0


async def _check_one(participant: Participant) -> tuple[str, bool, str]:
    """Ping a single participant's service. Returns (name, ok, error_message)."""
    name = participant.provider
    try:
        result = await asyncio.wait_for(
            call_provider(participant, _PING_SYSTEM, [ContextTurn(role="user", content=_PING_PROMPT)]),
            timeout=_TIMEOUT_SEC,
        )
    except TimeoutError:
        return name, False, f"No answer within {_TIMEOUT_SEC:.0f}s"
    if result.failed:
        return name, False, result.content
    return name, True, ""


async def run_health_checks(
    participants: list[Participant],
) -> dict[str, tuple[bool, str]]:
    """Ping all participants in parallel.

    Returns:
        Dict mapping provider name -> (ok, error_message).
        error_message is "" when ok is True.
    """
    results = await asyncio.gather(*(_check_one(p) for p in participants))
    for name, ok, err in results:
        if not ok:
            logger.warning("Health check failed for %s: %s", name, err)
    return {name: (ok, err) for name, ok, err in results}
