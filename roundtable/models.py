"""Dataclasses for the Roundtable discussion engine. No I/O, no deps."""

from dataclasses import dataclass, field
from typing import Literal

ProviderName = Literal["openai", "anthropic", "gemini"]
DiscussionMode = Literal["round_robin", "free_discussion", "role_assignment", "judged_debate"]
SessionStatus = Literal["idle", "running", "paused", "completed", "error"]
PacingMode = Literal["auto", "manual"]
BlockKind = Literal["text", "image", "document"]
MessageKind = Literal["ordinary", "judge_evaluation"]
StopReason = Literal["end", "error", "canceled"]

USER_SPEAKER = "user"

PROVIDER_LABELS: dict[str, str] = {
    "openai": "GPT",
    "anthropic": "Claude",
    "gemini": "Gemini",
}


@dataclass(frozen=True)
class Participant:
    provider: ProviderName
    api_key: str
    model: str
    enabled: bool = True
    max_tokens: int = 2048
    timeout_sec: int = 120


@dataclass(frozen=True)
class Persona:
    key: str
    label: str
    description: str = ""


@dataclass(frozen=True)
class Attachment:
    kind: BlockKind
    mime_type: str
    data: bytes
    filename: str = ""


@dataclass
class PacingConfig:
    mode: PacingMode = "auto"
    auto_delay_seconds: int = 5


@dataclass
class DiscussionConfig:
    topic: str
    mode: DiscussionMode
    participants: list[Participant]
    max_rounds: int = 3
    roles: dict[str, str] = field(default_factory=dict)   # provider -> persona key
    judge: str | None = None                    # provider name of the judge
    pacing: PacingConfig = field(default_factory=PacingConfig)
    reference_text: str = ""
    use_reference: bool = False
    reference_files: list[Attachment] = field(default_factory=list)
    language: str = "English"


@dataclass(frozen=True)
class Message:
    id: str
    speaker: str           # provider name or "user"
    content: str
    round: int
    created_at: float
    error: str | None = None
    kind: MessageKind = "ordinary"
    persona: str | None = None
    attachments: tuple[Attachment, ...] = ()


@dataclass
class ContextTurn:
    role: str              # "user" or "assistant"
    content: str | list[Attachment]


@dataclass
class CallResult:
    content: str
    stop_reason: StopReason = "end"
    latency_sec: float | None = None
    token_count: int | None = None

    @property
    def failed(self) -> bool:
        return self.stop_reason != "end"


@dataclass
class SessionState:
    status: SessionStatus = "idle"
    current_round: int = 0
    current_turn_index: int = 0
    loading: str | None = None
    countdown: int = 0     # >0 auto countdown, -1 awaiting manual advance, 0 none
    waiting_for_next: bool = False
