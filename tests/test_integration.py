"""Integration tests -- real API calls, no mocks. Requires .env with 2+ API keys."""

import os

import pytest
from dotenv import load_dotenv

load_dotenv()

# Skip entire module if fewer than 2 API keys are set
_AVAILABLE_KEYS = [
    k for k in ["OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GEMINI_API_KEY"]
    if os.environ.get(k, "").strip()
]
pytestmark = pytest.mark.integration

if len(_AVAILABLE_KEYS) < 2:
    pytestmark = pytest.mark.skip(reason=f"Need 2+ API keys, found {len(_AVAILABLE_KEYS)}")


async def test_one_round_discussion():
    """Run a real 1-round discussion with available providers, verify no crash."""
    from config.config_loader import build_participant, load_config
    from roundtable.models import DiscussionConfig, PacingConfig
    from roundtable.session import DebateSession

    config = load_config()
    participants = [build_participant(config.models[n]) for n in sorted(config.available_providers)]
    assert len(participants) >= 2, f"Need 2+ participants, got {len(participants)}"

    discussion = DiscussionConfig(
        topic="Should a small team use a monorepo or separate repos for Python microservices?",
        mode="round_robin",
        participants=participants,
        max_rounds=1,
        pacing=PacingConfig(mode="auto", auto_delay_seconds=0),
    )
    session = DebateSession(prompts=config.prompts)
    await session.start(discussion)

    assert session.state.status == "completed"
    assert [m.speaker for m in session.messages] == [p.provider for p in participants]
    for message in session.messages:
        assert message.error is None, f"{message.speaker} failed: {message.error}"
        assert message.content
