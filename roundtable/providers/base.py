"""Abstract base for all generation service providers."""

import base64
from abc import ABC, abstractmethod

from roundtable.models import Attachment, CallResult, ContextTurn, Participant

DOCUMENT_FALLBACK_TEXT = (
    "[A PDF document was attached. This participant cannot read documents "
    "directly; rely on the text reference material instead.]"
)


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        self.message = message
        super().__init__(f"[{provider_name}] {message}")


def encode_block(block: Attachment) -> str:
    """Return the base64 text form of an attachment payload."""
    return base64.b64encode(block.data).decode("ascii")


def block_text(block: Attachment) -> str:
    return block.data.decode("utf-8", errors="replace")


class AIProvider(ABC):
    """Abstract base for all generation service providers."""

    def __init__(self, participant: Participant) -> None:
        if not participant.api_key.strip():
            raise ProviderError(participant.provider, "API key is not configured")
        self._participant = participant

    def name(self) -> str:
        """Return the short provider name (e.g. 'gemini', 'anthropic')."""
        return self._participant.provider

    def model_string(self) -> str:
        """Return the actual model identifier string."""
        return self._participant.model

    @abstractmethod
    async def generate(self, system_prompt: str, turns: list[ContextTurn]) -> CallResult:
        """Generate the next turn of the conversation.

        Args:
            system_prompt: Instruction text governing the participant.
            turns: Windowed, participant-relative conversation context.

        Returns:
            CallResult with stop_reason "end".

        Raises:
            ProviderError: On API failure, timeout, or an empty reply.
        """
        ...
