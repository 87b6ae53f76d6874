"""Shared pytest fixtures."""

import asyncio
import time
from pathlib import Path

import pytest

from config.config_loader import AppConfig, DefaultsConfig, ModelConfig, PromptsConfig
from roundtable.models import (
    CallResult,
    ContextTurn,
    DiscussionConfig,
    Message,
    PacingConfig,
    Participant,
    Persona,
)


def make_participant(provider: str, api_key: str = "test-key", model: str = "test-model") -> Participant:
    return Participant(provider=provider, api_key=api_key, model=model)


def make_message(
    speaker: str,
    content: str,
    round_number: int = 1,
    kind: str = "ordinary",
    error: str | None = None,
    attachments: tuple = (),
) -> Message:
    return Message(
        id=f"{speaker}-{content}",
        speaker=speaker,
        content=content,
        round=round_number,
        created_at=time.time(),
        error=error,
        kind=kind,
        attachments=attachments,
    )


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Poll until predicate() is true or fail the test."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


class RecordingHost:
    """Test double for the scheduler callback boundary."""

    def __init__(self) -> None:
        self.status = "idle"
        self.messages: list[Message] = []
        self.statuses: list[str] = []
        self.rounds: list[tuple[int, int]] = []
        self.loading: list[str | None] = []
        self.ticks: list[int] = []
        self.advance = asyncio.Event()

    def on_message(self, message: Message) -> None:
        self.messages.append(message)

    def on_status_change(self, status: str) -> None:
        self.status = status
        self.statuses.append(status)

    def on_round_change(self, round_number: int, turn_index: int) -> None:
        self.rounds.append((round_number, turn_index))

    def on_loading_change(self, provider: str | None) -> None:
        self.loading.append(provider)

    def on_countdown_tick(self, seconds: int) -> None:
        self.ticks.append(seconds)

    async def wait_for_manual_advance(self) -> None:
        await self.advance.wait()
        self.advance.clear()

    def get_status(self) -> str:
        return self.status

    def get_messages(self) -> list[Message]:
        return list(self.messages)


class ScriptedDispatch:
    """Dispatch double: returns queued CallResults, then a default success."""

    def __init__(self, results: list[CallResult] | None = None) -> None:
        self.results = list(results or [])
        self.calls: list[tuple[str, str, list[ContextTurn]]] = []

    async def __call__(
        self,
        participant: Participant,
        system_prompt: str,
        turns: list[ContextTurn],
        cancel_event: asyncio.Event | None = None,
    ) -> CallResult:
        self.calls.append((participant.provider, system_prompt, turns))
        if self.results:
            return self.results.pop(0)
        return CallResult(content=f"{participant.provider} reply {len(self.calls)}")

    @property
    def speakers(self) -> list[str]:
        return [c[0] for c in self.calls]


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        personas={
            "pro": Persona("pro", "Proponent", "You argue in favour."),
            "con": Persona("con", "Opponent", "You argue against."),
            "neutral": Persona("neutral", "Neutral analyst", "You weigh both sides."),
        }
    )


@pytest.fixture
def two_participants() -> list[Participant]:
    return [make_participant("openai"), make_participant("anthropic")]


@pytest.fixture
def three_participants() -> list[Participant]:
    return [make_participant("openai"), make_participant("anthropic"), make_participant("gemini")]


@pytest.fixture
def round_robin_config(two_participants) -> DiscussionConfig:
    return DiscussionConfig(
        topic="Should cities ban cars from downtown?",
        mode="round_robin",
        participants=two_participants,
        max_rounds=2,
        pacing=PacingConfig(mode="auto", auto_delay_seconds=0),
    )


@pytest.fixture
def judged_config(three_participants) -> DiscussionConfig:
    return DiscussionConfig(
        topic="Should cities ban cars from downtown?",
        mode="judged_debate",
        participants=three_participants,
        judge="anthropic",
        roles={"openai": "pro", "gemini": "con"},
        max_rounds=2,
        pacing=PacingConfig(mode="auto", auto_delay_seconds=0),
    )


@pytest.fixture
def host() -> RecordingHost:
    return RecordingHost()


@pytest.fixture
def sample_app_config(sample_prompts_config: PromptsConfig, tmp_path: Path) -> AppConfig:
    models = {
        name: ModelConfig(
            name=name,
            model=f"{name}-model",
            api_key_env=f"TEST_{name.upper()}_KEY",
            timeout_sec=60,
            max_tokens=1024,
        )
        for name in ("openai", "anthropic", "gemini")
    }
    return AppConfig(
        defaults=DefaultsConfig(
            mode="round_robin",
            rounds=2,
            max_rounds=5,
            language="English",
            participants=["openai", "anthropic"],
            pacing=PacingConfig(mode="auto", auto_delay_seconds=3),
        ),
        models=models,
        prompts=sample_prompts_config,
        available_providers={"openai", "anthropic"},
    )
