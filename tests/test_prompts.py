"""Tests for roundtable/prompts.py."""

import pytest

from config.config_loader import PromptsConfig
from roundtable.models import Attachment, DiscussionConfig
from roundtable.prompts import PROMPT_STRATEGIES, PromptStrategy, build_system_prompt, resolve_persona


@pytest.fixture
def free_config(three_participants) -> DiscussionConfig:
    return DiscussionConfig(
        topic="Is nuclear power green?",
        mode="free_discussion",
        participants=three_participants,
        language="Korean",
    )


def test_base_rules_always_present(free_config):
    prompt = build_system_prompt(free_config, "gemini")
    assert 'You are "Gemini"' in prompt
    assert "Is nuclear power green?" in prompt
    assert "Participants: GPT, Claude, Gemini" in prompt
    assert "Respond in Korean." in prompt
    assert "concise" in prompt
    assert "Attribute factual claims" in prompt
    assert "not sure" in prompt


def test_every_mode_has_a_strategy():
    assert set(PROMPT_STRATEGIES) == {"round_robin", "free_discussion", "role_assignment", "judged_debate"}


def test_round_robin_answers_previous_speaker(free_config):
    free_config.mode = "round_robin"
    assert "previous speaker" in build_system_prompt(free_config, "openai")


def test_free_discussion_allows_new_angles(free_config):
    assert "new angle" in build_system_prompt(free_config, "openai")


def test_role_assignment_injects_persona(free_config, sample_prompts_config):
    free_config.mode = "role_assignment"
    free_config.roles = {"openai": "con"}
    prompt = build_system_prompt(free_config, "openai", prompts=sample_prompts_config)
    assert "**Opponent**" in prompt
    assert "You argue against." in prompt
    assert "consistently" in prompt


def test_role_assignment_defaults_to_neutral(free_config, sample_prompts_config):
    free_config.mode = "role_assignment"
    prompt = build_system_prompt(free_config, "gemini", prompts=sample_prompts_config)
    assert "**Neutral analyst**" in prompt


def test_unknown_persona_key_used_as_label(free_config, sample_prompts_config):
    free_config.roles = {"openai": "Skeptical economist"}
    persona = resolve_persona(free_config, "openai", sample_prompts_config)
    assert persona is not None
    assert persona.label == "Skeptical economist"
    assert persona.description == ""


def test_judge_prompt_has_rubric_and_round_template(judged_config, sample_prompts_config):
    prompt = build_system_prompt(judged_config, "anthropic", round_number=1, prompts=sample_prompts_config)
    assert "You are the judge" in prompt
    assert "Debaters: GPT, Gemini" in prompt
    for criterion in ("Logic and reasoning (weight 35%)", "Evidence (weight 25%)",
                      "Rebuttal (weight 25%)", "Clarity (weight 15%)"):
        assert criterion in prompt
    assert "### Round 1 evaluation" in prompt
    assert "**Round 1 winner:**" in prompt
    assert "Overall winner" not in prompt


def test_judge_prompt_final_round_adds_verdict(judged_config):
    prompt = build_system_prompt(judged_config, "anthropic", round_number=2)
    assert "### Round 2 evaluation" in prompt
    assert "**Overall winner:**" in prompt
    assert "**Summary:**" in prompt


def test_debater_prompt_names_opponents_judge_and_persona(judged_config, sample_prompts_config):
    prompt = build_system_prompt(judged_config, "openai", prompts=sample_prompts_config)
    assert "Your opponents: Gemini" in prompt
    assert "The judge, Claude" in prompt
    assert "highest score" in prompt
    assert "**Proponent**" in prompt
    assert "You are the judge" not in prompt


def test_debater_without_persona_has_no_voice_line(judged_config):
    judged_config.roles = {}
    prompt = build_system_prompt(judged_config, "gemini")
    assert "Argue in the voice of" not in prompt


def test_reference_text_only_when_enabled(free_config):
    free_config.reference_text = "Lifecycle emissions: 12 gCO2/kWh"
    assert "Reference material" not in build_system_prompt(free_config, "openai")

    free_config.use_reference = True
    prompt = build_system_prompt(free_config, "openai")
    assert "Lifecycle emissions: 12 gCO2/kWh" in prompt
    assert "Ground the discussion" in prompt


def test_reference_files_hint(free_config):
    free_config.reference_files = [Attachment("document", "application/pdf", b"%PDF")]
    assert "files are attached" in build_system_prompt(free_config, "openai")


def test_template_override(free_config):
    prompts = PromptsConfig(free_discussion="Anything goes.")
    prompt = build_system_prompt(free_config, "openai", prompts=prompts)
    assert prompt.endswith("Anything goes.")


def test_strategy_base_cannot_be_instantiated():
    with pytest.raises(TypeError):
        PromptStrategy()


def test_every_strategy_implements_render():
    assert all(isinstance(strategy, PromptStrategy) for strategy in PROMPT_STRATEGIES.values())
