"""Host-side session: owns the observable state and the control signals."""

import asyncio
import logging
import time
import uuid
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import Any

from config.config_loader import PromptsConfig
from roundtable.models import USER_SPEAKER, Attachment, DiscussionConfig, Message, SessionState, SessionStatus
from roundtable.pacing import AWAITING_ADVANCE, POLL_INTERVAL_SEC
from roundtable.providers.dispatch import call_provider
from roundtable.scheduler import Dispatch, TurnScheduler, validate_config

logger = logging.getLogger(__name__)

FinishedHook = Callable[[DiscussionConfig, list[Message], str], None]


@dataclass
class SessionEvent:
    kind: str       # "message", "status", "round", "loading", "countdown"
    payload: Any


class DebateSession:
    """Implements the scheduler callbacks and the host controls.

    External controls never touch the scheduler; they only change the
    status, post an advance signal, append an observer message or raise
    the cancellation event. Starting a new discussion cancels the previous
    one.
    """

    def __init__(
        self,
        prompts: PromptsConfig | None = None,
        dispatch: Dispatch = call_provider,
        poll_interval: float = POLL_INTERVAL_SEC,
        tick_interval: float = 1.0,
        on_finished: FinishedHook | None = None,
    ) -> None:
        self._prompts = prompts
        self._dispatch = dispatch
        self._poll_interval = poll_interval
        self._tick_interval = tick_interval
        self._on_finished = on_finished

        self.state = SessionState()
        self.config: DiscussionConfig | None = None
        self._messages: list[Message] = []
        self._cancel = asyncio.Event()
        self._advance: asyncio.Event | None = None
        self._task: asyncio.Task | None = None
        self._events: asyncio.Queue[SessionEvent] = asyncio.Queue()
        self._finished = False

    # -- snapshots ---------------------------------------------------------

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    @property
    def task(self) -> asyncio.Task | None:
        return self._task

    def get_status(self) -> SessionStatus:
        return self.state.status

    def get_messages(self) -> list[Message]:
        return list(self._messages)

    # -- scheduler callbacks -----------------------------------------------

    def on_message(self, message: Message) -> None:
        self._messages.append(message)
        self._publish("message", message)

    def on_status_change(self, status: SessionStatus) -> None:
        self.state.status = status
        self._publish("status", status)
        if status == "completed":
            self._finish("completed")

    def on_round_change(self, round_number: int, turn_index: int) -> None:
        self.state.current_round = round_number
        self.state.current_turn_index = turn_index
        self._publish("round", (round_number, turn_index))

    def on_loading_change(self, provider: str | None) -> None:
        self.state.loading = provider
        self._publish("loading", provider)

    def on_countdown_tick(self, seconds: int) -> None:
        self.state.countdown = seconds
        self.state.waiting_for_next = seconds == AWAITING_ADVANCE
        if seconds == AWAITING_ADVANCE and self._advance is None:
            # Armed before the gate awaits, so an early next_turn() is not lost
            self._advance = asyncio.Event()
        self._publish("countdown", seconds)

    async def wait_for_manual_advance(self) -> None:
        if self._advance is None:
            self._advance = asyncio.Event()
        self.state.waiting_for_next = True
        await self._advance.wait()

    # -- host controls -----------------------------------------------------

    def start(self, config: DiscussionConfig) -> asyncio.Task:
        """Start a discussion in the running event loop.

        Raises:
            ConfigError: The configuration cannot be run.
        """
        validate_config(config)
        if self._task is not None and not self._task.done():
            logger.info("Cancelling previous discussion")
            self._cancel.set()
            self._release_advance()

        self._cancel = asyncio.Event()
        self.config = config
        self._messages = []
        self._finished = False
        self.state = SessionState(status="running", current_round=1)
        scheduler = TurnScheduler(
            config,
            self,
            self._cancel,
            prompts=self._prompts,
            dispatch=self._dispatch,
            poll_interval=self._poll_interval,
            tick_interval=self._tick_interval,
        )
        self._task = asyncio.create_task(self._run(scheduler, self._cancel))
        return self._task

    async def _run(self, scheduler: TurnScheduler, cancel_event: asyncio.Event) -> None:
        try:
            await scheduler.run()
        except Exception:
            logger.exception("Discussion failed")
            if not cancel_event.is_set():
                self.state.loading = None
                self.on_status_change("error")

    def pause(self) -> None:
        if self.state.status == "running":
            self.on_status_change("paused")

    def resume(self) -> None:
        if self.state.status == "paused":
            self.on_status_change("running")

    def stop(self) -> None:
        """Cancel the run and mark the discussion completed."""
        if self.config is not None and self._messages:
            self._finish("stopped")
        self._release_advance()
        self._cancel.set()
        self.state.loading = None
        self.state.countdown = 0
        self.state.waiting_for_next = False
        self.state.status = "completed"
        self._publish("status", "completed")

    def next_turn(self) -> None:
        if self._advance is not None and not self._advance.is_set():
            self._release_advance()
            self.state.countdown = 0

    def intervene(self, content: str, attachments: tuple[Attachment, ...] = ()) -> Message | None:
        """Append an observer message; only while running or paused."""
        if self.state.status not in ("running", "paused"):
            logger.debug("Ignoring intervention while %s", self.state.status)
            return None
        message = Message(
            id=uuid.uuid4().hex,
            speaker=USER_SPEAKER,
            content=content,
            round=self.state.current_round,
            created_at=time.time(),
            attachments=tuple(attachments),
        )
        self.on_message(message)
        return message

    def reset(self) -> None:
        self._release_advance()
        self._cancel.set()
        self.config = None
        self._messages = []
        self._task = None
        self.state = SessionState()
        self._publish("status", "idle")

    # -- event channel -----------------------------------------------------

    async def events(self) -> AsyncIterator[SessionEvent]:
        """Yield events until the session reaches a terminal or idle status."""
        while True:
            event = await self._events.get()
            yield event
            if event.kind == "status" and event.payload in ("completed", "error", "idle"):
                return

    def _publish(self, kind: str, payload: Any) -> None:
        self._events.put_nowait(SessionEvent(kind, payload))

    def _release_advance(self) -> None:
        if self._advance is not None:
            self._advance.set()
        self._advance = None
        self.state.waiting_for_next = False

    def _finish(self, outcome: str) -> None:
        if self._finished or self.config is None:
            return
        self._finished = True
        if self._on_finished is not None and self._messages:
            self._on_finished(self.config, list(self._messages), outcome)
