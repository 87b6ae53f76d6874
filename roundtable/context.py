"""Bounded, participant-relative conversation context for the next call."""

import logging

from roundtable.models import (
    PROVIDER_LABELS,
    USER_SPEAKER,
    Attachment,
    ContextTurn,
    Message,
)

logger = logging.getLogger(__name__)

WINDOW_SIZE = 15

KICKOFF_TEXT = "Please begin the discussion. Start by stating your own view on the topic."
JUDGE_ROUND_REQUEST = "Please evaluate round {round} of the debate using the required format."
JUDGE_FINAL_REQUEST = (
    "Please evaluate round {round}, the final round, using the required format, "
    "then declare the overall winner and summarize the debate."
)


def speaker_label(speaker: str) -> str:
    """Display label for a speaker ("User" for the observer)."""
    if speaker == USER_SPEAKER:
        return "User"
    return PROVIDER_LABELS.get(speaker, speaker)


def _prefix(message: Message) -> str:
    label = speaker_label(message.speaker)
    if message.kind == "judge_evaluation":
        label = f"{label} (Judge)"
    return f"[{label}]"


def text_block(text: str) -> Attachment:
    return Attachment(kind="text", mime_type="text/plain", data=text.encode("utf-8"))


def reference_blocks(files: list[Attachment]) -> list[Attachment]:
    """Reference files that can be sent as content blocks."""
    blocks: list[Attachment] = []
    for f in files:
        if f.kind in ("image", "document", "text"):
            blocks.append(f)
        else:
            logger.debug("Ignoring reference file %s of kind %s", f.filename, f.kind)
    return blocks


def _with_blocks(text: str, blocks: list[Attachment]) -> str | list[Attachment]:
    if not blocks:
        return text
    return [text_block(text), *blocks]


def _window(messages: list[Message], window_size: int) -> list[Message]:
    # Failed turns stay in the window; they are part of the thread
    if window_size <= 0:
        return []
    return messages[-window_size:]


def _to_turns(
    recent: list[Message],
    speaker: str,
    extra_blocks: list[Attachment],
) -> list[ContextTurn]:
    turns: list[ContextTurn] = []
    pending = list(extra_blocks)
    for message in recent:
        if message.speaker == speaker:
            turns.append(ContextTurn(role="assistant", content=message.content))
            continue
        blocks = [*message.attachments, *pending]
        pending = []
        turns.append(
            ContextTurn(role="user", content=_with_blocks(f"{_prefix(message)}: {message.content}", blocks))
        )
    if pending:
        # Only the speaker's own turns were retained; carry the files on a user turn.
        turns.insert(0, ContextTurn(role="user", content=_with_blocks(KICKOFF_TEXT, pending)))
    return turns


def build_context(
    messages: list[Message],
    speaker: str,
    reference_files: list[Attachment] | None = None,
    is_first_call: bool = False,
    window_size: int = WINDOW_SIZE,
) -> list[ContextTurn]:
    """Build the context turns for the participant about to speak.

    Args:
        messages: Full conversation history, in insertion order.
        speaker: Provider name of the participant about to speak.
        reference_files: Session-level reference attachments.
        is_first_call: True until the participant has had a successful call;
            reference attachments are only sent then.
        window_size: Number of trailing messages to keep.

    Returns:
        Turns with the speaker's own messages as assistant turns and
        everyone else's as labelled user turns. Never empty.
    """
    blocks = reference_blocks(reference_files or []) if is_first_call else []
    recent = _window(messages, window_size)
    if not recent:
        return [ContextTurn(role="user", content=_with_blocks(KICKOFF_TEXT, blocks))]
    return _to_turns(recent, speaker, blocks)


def build_judge_context(
    messages: list[Message],
    judge: str,
    round_number: int,
    is_final_round: bool = False,
    reference_files: list[Attachment] | None = None,
    is_first_call: bool = False,
    window_size: int = WINDOW_SIZE,
) -> list[ContextTurn]:
    """Build the judge's context: debater turns plus its own evaluations.

    Observer interjections are left out so the verdict rests on the
    debaters' arguments alone. An explicit evaluation request closes the
    context.
    """
    relevant = [
        m for m in messages
        if m.speaker != USER_SPEAKER
        and (m.speaker != judge or m.kind == "judge_evaluation")
    ]
    blocks = reference_blocks(reference_files or []) if is_first_call else []
    recent = _window(relevant, window_size)
    turns = _to_turns(recent, judge, blocks) if recent else []
    template = JUDGE_FINAL_REQUEST if is_final_round else JUDGE_ROUND_REQUEST
    request = template.format(round=round_number)
    if not recent and blocks:
        turns.append(ContextTurn(role="user", content=_with_blocks(request, blocks)))
    else:
        turns.append(ContextTurn(role="user", content=request))
    return turns
