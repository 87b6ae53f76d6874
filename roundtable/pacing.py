"""Pause holding and the delay or manual gate between turns."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from roundtable.models import PacingConfig

logger = logging.getLogger(__name__)

POLL_INTERVAL_SEC = 0.5
AWAITING_ADVANCE = -1


async def cancelled_within(cancel_event: asyncio.Event, seconds: float) -> bool:
    """Sleep up to `seconds`; return True as soon as cancellation fires."""
    if cancel_event.is_set():
        return True
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=seconds)
    except TimeoutError:
        return False
    return True


async def hold_while_paused(
    get_status: Callable[[], str],
    cancel_event: asyncio.Event,
    poll_interval: float = POLL_INTERVAL_SEC,
) -> bool:
    """Block while the session is paused.

    Returns True when the run may continue (status is "running" and no
    cancellation), False when it must unwind.
    """
    while get_status() == "paused":
        if await cancelled_within(cancel_event, poll_interval):
            return False
    return not cancel_event.is_set() and get_status() == "running"


class PacingController:
    """Enforces the automatic countdown or the manual gate between turns."""

    def __init__(
        self,
        pacing: PacingConfig,
        on_countdown_tick: Callable[[int], None],
        wait_for_manual_advance: Callable[[], Awaitable[None]],
        get_status: Callable[[], str],
        cancel_event: asyncio.Event,
        poll_interval: float = POLL_INTERVAL_SEC,
        tick_interval: float = 1.0,
    ) -> None:
        self._pacing = pacing
        self._on_tick = on_countdown_tick
        self._wait_for_advance = wait_for_manual_advance
        self._get_status = get_status
        self._cancel = cancel_event
        self._poll_interval = poll_interval
        self._tick_interval = tick_interval

    async def wait_between_turns(self) -> bool:
        """Run one pacing step. Returns False when the run must stop."""
        if self._cancel.is_set():
            return False
        if self._pacing.mode == "manual":
            return await self._manual_gate()
        return await self._countdown(max(0, int(self._pacing.auto_delay_seconds)))

    async def _countdown(self, total_seconds: int) -> bool:
        for remaining in range(total_seconds, 0, -1):
            if not await hold_while_paused(self._get_status, self._cancel, self._poll_interval):
                return False
            self._on_tick(remaining)
            if await cancelled_within(self._cancel, self._tick_interval):
                return False
        if not await hold_while_paused(self._get_status, self._cancel, self._poll_interval):
            return False
        self._on_tick(0)
        return True

    async def _manual_gate(self) -> bool:
        self._on_tick(AWAITING_ADVANCE)
        advance = asyncio.ensure_future(self._wait_for_advance())
        cancelled = asyncio.ensure_future(self._cancel.wait())
        try:
            while not advance.done():
                await asyncio.wait(
                    {advance, cancelled},
                    timeout=self._poll_interval,
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if self._cancel.is_set():
                    return False
                if self._get_status() not in ("running", "paused"):
                    return False
        finally:
            for waiter in (advance, cancelled):
                if not waiter.done():
                    waiter.cancel()
        if not await hold_while_paused(self._get_status, self._cancel, self._poll_interval):
            return False
        self._on_tick(0)
        return True
