"""System prompt construction: one strategy per discussion mode."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from config.config_loader import PromptsConfig
from roundtable.context import speaker_label
from roundtable.models import DiscussionConfig, Persona

DEFAULT_PERSONA_KEY = "neutral"


@dataclass
class PromptContext:
    """Everything a strategy needs to render one participant's instructions."""

    config: DiscussionConfig
    speaker: str
    round_number: int
    prompts: PromptsConfig

    @property
    def is_judge(self) -> bool:
        return self.config.judge is not None and self.speaker == self.config.judge

    @property
    def is_final_round(self) -> bool:
        return self.round_number >= self.config.max_rounds

    def persona(self, default_key: str | None = None) -> Persona | None:
        return resolve_persona(self.config, self.speaker, self.prompts, default_key)


def resolve_persona(
    config: DiscussionConfig,
    speaker: str,
    prompts: PromptsConfig,
    default_key: str | None = None,
) -> Persona | None:
    """Look up the persona assigned to a speaker.

    Unknown keys are used verbatim as the label so ad-hoc roles still work.
    """
    key = config.roles.get(speaker) or default_key
    if not key:
        return None
    return prompts.personas.get(key) or Persona(key=key, label=key)


class PromptStrategy(ABC):
    """Mode-specific section appended after the shared ground rules."""

    @abstractmethod
    def render(self, ctx: PromptContext) -> str:
        ...


class RoundRobinStrategy(PromptStrategy):
    def render(self, ctx: PromptContext) -> str:
        return ctx.prompts.round_robin


class FreeDiscussionStrategy(PromptStrategy):
    def render(self, ctx: PromptContext) -> str:
        return ctx.prompts.free_discussion


class RoleAssignmentStrategy(PromptStrategy):
    def render(self, ctx: PromptContext) -> str:
        persona = ctx.persona(DEFAULT_PERSONA_KEY) or Persona(DEFAULT_PERSONA_KEY, DEFAULT_PERSONA_KEY)
        return ctx.prompts.role_assignment.format(
            persona_label=persona.label,
            persona_description=persona.description,
        ).rstrip()


class JudgedDebateStrategy(PromptStrategy):
    """Judge gets the scoring rubric; debaters get opponents, judge and goal."""

    def render(self, ctx: PromptContext) -> str:
        if ctx.is_judge:
            return self._judge(ctx)
        return self._debater(ctx)

    def _judge(self, ctx: PromptContext) -> str:
        debaters = [p.provider for p in ctx.config.participants if p.provider != ctx.config.judge]
        output_template = ctx.prompts.judge_final_format if ctx.is_final_round else ctx.prompts.judge_round_format
        return ctx.prompts.judge.format(
            debaters=", ".join(speaker_label(d) for d in debaters),
            round=ctx.round_number,
            max_rounds=ctx.config.max_rounds,
            output_format=output_template.format(round=ctx.round_number),
        )

    def _debater(self, ctx: PromptContext) -> str:
        opponents = [
            p.provider for p in ctx.config.participants
            if p.provider not in (ctx.speaker, ctx.config.judge)
        ]
        text = ctx.prompts.debater.format(
            opponents=", ".join(speaker_label(o) for o in opponents) or "none",
            judge=speaker_label(ctx.config.judge or ""),
        )
        persona = ctx.persona()
        if persona is not None:
            voice = ctx.prompts.debater_persona.format(
                persona_label=persona.label,
                persona_description=persona.description,
            ).rstrip()
            text = f"{text}\n{voice}"
        return text


PROMPT_STRATEGIES: dict[str, PromptStrategy] = {
    "round_robin": RoundRobinStrategy(),
    "free_discussion": FreeDiscussionStrategy(),
    "role_assignment": RoleAssignmentStrategy(),
    "judged_debate": JudgedDebateStrategy(),
}


def build_system_prompt(
    config: DiscussionConfig,
    speaker: str,
    round_number: int = 1,
    prompts: PromptsConfig | None = None,
) -> str:
    """Render the system instructions for `speaker` in the current round."""
    prompts = prompts or PromptsConfig()
    ctx = PromptContext(config=config, speaker=speaker, round_number=round_number, prompts=prompts)

    sections = [
        prompts.base.format(
            label=speaker_label(speaker),
            topic=config.topic,
            participants=", ".join(speaker_label(p.provider) for p in config.participants),
            language=config.language,
        )
    ]

    strategy = PROMPT_STRATEGIES.get(config.mode)
    if strategy is not None:
        sections.append(strategy.render(ctx))

    if config.use_reference and config.reference_text.strip():
        sections.append(prompts.reference_text.format(reference_text=config.reference_text.strip()))

    if config.reference_files:
        sections.append(prompts.reference_files)

    return "\n\n".join(sections)
