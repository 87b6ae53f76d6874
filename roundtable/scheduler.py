"""Turn scheduler: drives rounds and turns through the host callback boundary."""

import asyncio
import logging
import time
import uuid
from collections.abc import Awaitable, Callable
from typing import Protocol, get_args

from config.config_loader import PromptsConfig
from roundtable.context import WINDOW_SIZE, build_context, build_judge_context, speaker_label
from roundtable.models import (
    CallResult,
    ContextTurn,
    DiscussionConfig,
    DiscussionMode,
    Message,
    PacingMode,
    Participant,
    SessionStatus,
)
from roundtable.pacing import POLL_INTERVAL_SEC, PacingController, hold_while_paused
from roundtable.prompts import DEFAULT_PERSONA_KEY, build_system_prompt, resolve_persona
from roundtable.providers.dispatch import call_provider

logger = logging.getLogger(__name__)

# Consecutive failed calls (any participants) before the session pauses itself
MAX_CONSECUTIVE_ERRORS = 2

DISCUSSION_MODES: tuple[str, ...] = get_args(DiscussionMode)
PACING_MODES: tuple[str, ...] = get_args(PacingMode)

Dispatch = Callable[[Participant, str, list[ContextTurn], asyncio.Event | None], Awaitable[CallResult]]


class ConfigError(ValueError):
    """Raised when a DiscussionConfig cannot be run."""


class DebateCallbacks(Protocol):
    """What the scheduler needs from its host."""

    def on_message(self, message: Message) -> None: ...

    def on_status_change(self, status: SessionStatus) -> None: ...

    def on_round_change(self, round_number: int, turn_index: int) -> None: ...

    def on_loading_change(self, provider: str | None) -> None: ...

    def on_countdown_tick(self, seconds: int) -> None: ...

    async def wait_for_manual_advance(self) -> None: ...

    def get_status(self) -> SessionStatus: ...

    def get_messages(self) -> list[Message]: ...


def validate_config(config: DiscussionConfig) -> None:
    """Raise ConfigError when the discussion cannot be run as configured."""
    if config.mode not in DISCUSSION_MODES:
        raise ConfigError(f"Unknown discussion mode: {config.mode}")
    if not config.participants:
        raise ConfigError("At least one participant is required")
    if config.max_rounds < 1:
        raise ConfigError("max_rounds must be at least 1")
    if config.pacing.mode not in PACING_MODES:
        raise ConfigError(f"Unknown pacing mode: {config.pacing.mode}")
    if config.pacing.auto_delay_seconds < 0:
        raise ConfigError("auto_delay_seconds cannot be negative")

    names = [p.provider for p in config.participants]
    if len(set(names)) != len(names):
        raise ConfigError("Each provider can take part only once")

    if config.mode == "judged_debate":
        if config.judge is None:
            raise ConfigError("judged_debate mode requires a judge")
        if config.judge not in names:
            raise ConfigError(f"Judge {config.judge} must be one of the participants")
        if len(names) < 2:
            raise ConfigError("judged_debate mode needs at least one debater besides the judge")
    elif config.judge is not None:
        raise ConfigError("A judge can only be set in judged_debate mode")


def speaking_order(config: DiscussionConfig) -> list[tuple[Participant, bool]]:
    """Turn order of one round as (participant, is_judge) pairs.

    The judge never joins the regular rotation; in judged_debate mode it
    speaks once, after every debater.
    """
    judge = config.judge if config.mode == "judged_debate" else None
    order = [(p, False) for p in config.participants if p.provider != judge]
    if judge is not None:
        order.extend((p, True) for p in config.participants if p.provider == judge)
    return order


def has_credential(participant: Participant) -> bool:
    return participant.enabled and bool(participant.api_key.strip())


class TurnScheduler:
    """Runs one discussion session from the first round to completion.

    All session state changes go out through the callbacks; the scheduler
    only reads status and messages back through them.
    """

    def __init__(
        self,
        config: DiscussionConfig,
        callbacks: DebateCallbacks,
        cancel_event: asyncio.Event,
        prompts: PromptsConfig | None = None,
        dispatch: Dispatch = call_provider,
        poll_interval: float = POLL_INTERVAL_SEC,
        tick_interval: float = 1.0,
        window_size: int = WINDOW_SIZE,
    ) -> None:
        validate_config(config)
        self._config = config
        self._callbacks = callbacks
        self._cancel = cancel_event
        self._prompts = prompts or PromptsConfig()
        self._dispatch = dispatch
        self._poll_interval = poll_interval
        self._window_size = window_size
        self._pacing = PacingController(
            config.pacing,
            on_countdown_tick=callbacks.on_countdown_tick,
            wait_for_manual_advance=callbacks.wait_for_manual_advance,
            get_status=callbacks.get_status,
            cancel_event=cancel_event,
            poll_interval=poll_interval,
            tick_interval=tick_interval,
        )
        self._first_call_done: set[str] = set()
        self._consecutive_errors = 0

    @property
    def consecutive_errors(self) -> int:
        return self._consecutive_errors

    async def run(self) -> None:
        """Drive every round. Returns early on cancellation or an external stop."""
        cb = self._callbacks
        cb.on_status_change("running")
        order = speaking_order(self._config)

        for round_number in range(1, self._config.max_rounds + 1):
            logger.info("Starting round %d of %d", round_number, self._config.max_rounds)
            for turn_index, (participant, is_judge) in enumerate(order):
                if not await hold_while_paused(cb.get_status, self._cancel, self._poll_interval):
                    return
                if not has_credential(participant):
                    logger.info("Skipping %s: not enabled or no API key", participant.provider)
                    continue
                if not await self._take_turn(participant, is_judge, round_number, turn_index):
                    return

        cb.on_loading_change(None)
        cb.on_status_change("completed")
        logger.info("Discussion completed after %d rounds", self._config.max_rounds)

    async def _take_turn(
        self,
        participant: Participant,
        is_judge: bool,
        round_number: int,
        turn_index: int,
    ) -> bool:
        cb = self._callbacks
        speaker = participant.provider
        cb.on_round_change(round_number, turn_index)
        cb.on_loading_change(speaker)
        logger.info("Round %d: %s speaking", round_number, speaker_label(speaker))

        system_prompt = build_system_prompt(self._config, speaker, round_number, self._prompts)
        turns = self._build_turns(speaker, is_judge, round_number)
        result = await self._dispatch(participant, system_prompt, turns, self._cancel)

        if self._cancel.is_set() or result.stop_reason == "canceled":
            logger.info("Turn of %s canceled", speaker)
            return False

        cb.on_loading_change(None)
        cb.on_message(self._make_message(speaker, is_judge, round_number, result))

        if not result.failed:
            self._first_call_done.add(speaker)
            self._consecutive_errors = 0
        else:
            self._consecutive_errors += 1
            logger.warning("%s failed (%d in a row): %s", speaker, self._consecutive_errors, result.content)
            if self._consecutive_errors >= MAX_CONSECUTIVE_ERRORS:
                logger.warning("Pausing after %d consecutive failures; resume to continue", self._consecutive_errors)
                cb.on_status_change("paused")
                if not await hold_while_paused(cb.get_status, self._cancel, self._poll_interval):
                    return False
                self._consecutive_errors = 0

        return await self._pacing.wait_between_turns()

    def _build_turns(self, speaker: str, is_judge: bool, round_number: int) -> list[ContextTurn]:
        messages = self._callbacks.get_messages()
        is_first_call = speaker not in self._first_call_done
        if is_judge:
            return build_judge_context(
                messages,
                speaker,
                round_number,
                is_final_round=round_number >= self._config.max_rounds,
                reference_files=self._config.reference_files,
                is_first_call=is_first_call,
                window_size=self._window_size,
            )
        return build_context(
            messages,
            speaker,
            reference_files=self._config.reference_files,
            is_first_call=is_first_call,
            window_size=self._window_size,
        )

    def _persona_label(self, speaker: str, is_judge: bool) -> str | None:
        mode = self._config.mode
        if is_judge or mode not in ("role_assignment", "judged_debate"):
            return None
        default_key = DEFAULT_PERSONA_KEY if mode == "role_assignment" else None
        persona = resolve_persona(self._config, speaker, self._prompts, default_key)
        return persona.label if persona else None

    def _make_message(self, speaker: str, is_judge: bool, round_number: int, result: CallResult) -> Message:
        return Message(
            id=uuid.uuid4().hex,
            speaker=speaker,
            content=result.content,
            round=round_number,
            created_at=time.time(),
            error=result.content if result.failed else None,
            kind="judge_evaluation" if is_judge else "ordinary",
            persona=self._persona_label(speaker, is_judge),
        )
