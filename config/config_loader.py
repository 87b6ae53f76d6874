"""Load settings.yaml into typed dataclasses. Checks API keys at startup."""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml

from config import prompt_templates
from roundtable.models import PacingConfig, Participant, Persona

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class ModelConfig:
    name: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int


@dataclass
class PromptsConfig:
    base: str = prompt_templates.BASE
    round_robin: str = prompt_templates.ROUND_ROBIN
    free_discussion: str = prompt_templates.FREE_DISCUSSION
    role_assignment: str = prompt_templates.ROLE_ASSIGNMENT
    judge: str = prompt_templates.JUDGE
    judge_round_format: str = prompt_templates.JUDGE_ROUND_FORMAT
    judge_final_format: str = prompt_templates.JUDGE_FINAL_FORMAT
    debater: str = prompt_templates.DEBATER
    debater_persona: str = prompt_templates.DEBATER_PERSONA
    reference_text: str = prompt_templates.REFERENCE_TEXT
    reference_files: str = prompt_templates.REFERENCE_FILES
    personas: dict[str, Persona] = field(default_factory=dict)


@dataclass
class DefaultsConfig:
    mode: str = "round_robin"
    rounds: int = 3
    max_rounds: int = 10
    language: str = "English"
    participants: list[str] = field(default_factory=list)
    pacing: PacingConfig = field(default_factory=PacingConfig)


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    models: dict[str, ModelConfig]
    prompts: PromptsConfig
    available_providers: set[str] = field(default_factory=set)


def _load_personas(raw: dict) -> dict[str, Persona]:
    personas: dict[str, Persona] = {}
    for key, value in raw.items():
        if isinstance(value, dict):
            personas[key] = Persona(
                key=key,
                label=str(value.get("label", key)),
                description=str(value.get("description", "")),
            )
        else:
            personas[key] = Persona(key=key, label=key, description=str(value))
    return personas


def _load_prompts(raw: dict | None, personas: dict[str, Persona]) -> PromptsConfig:
    raw = raw or {}
    known = {f.name for f in fields(PromptsConfig)} - {"personas"}
    unknown = set(raw) - known
    if unknown:
        logger.warning("Ignoring unknown prompt templates: %s", ", ".join(sorted(unknown)))
    overrides = {k: str(v) for k, v in raw.items() if k in known}
    return PromptsConfig(**overrides, personas=personas)


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing.
    Logs missing API keys but does not raise; callers check
    available_providers.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    defaults_raw = raw.get("defaults", {})
    pacing_raw = defaults_raw.get("pacing", {})
    defaults = DefaultsConfig(
        mode=str(defaults_raw.get("mode", "round_robin")),
        rounds=int(defaults_raw.get("rounds", 3)),
        max_rounds=int(defaults_raw.get("max_rounds", 10)),
        language=str(defaults_raw.get("language", "English")),
        participants=list(defaults_raw.get("participants", [])),
        pacing=PacingConfig(
            mode=str(pacing_raw.get("mode", "auto")),
            auto_delay_seconds=int(pacing_raw.get("auto_delay_seconds", 5)),
        ),
    )

    personas = _load_personas(raw.get("personas") or {})
    prompts = _load_prompts(raw.get("prompts"), personas)

    models: dict[str, ModelConfig] = {}
    available_providers: set[str] = set()

    for provider_name, model_raw in (raw.get("models") or {}).items():
        model_cfg = ModelConfig(
            name=provider_name,
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw.get("timeout_sec", 120)),
            max_tokens=int(model_raw.get("max_tokens", 2048)),
        )
        models[provider_name] = model_cfg

        api_key = os.environ.get(model_cfg.api_key_env, "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider skipped (no API key): %s -- set %s in .env",
                provider_name,
                model_cfg.api_key_env,
            )

    return AppConfig(
        defaults=defaults,
        models=models,
        prompts=prompts,
        available_providers=available_providers,
    )


def build_participant(model_cfg: ModelConfig) -> Participant:
    """Build a Participant carrying the credential found in the environment.

    A missing key yields an empty credential; the scheduler skips such turns.
    """
    return Participant(
        provider=model_cfg.name,
        api_key=os.environ.get(model_cfg.api_key_env, "").strip(),
        model=model_cfg.model,
        max_tokens=model_cfg.max_tokens,
        timeout_sec=model_cfg.timeout_sec,
    )
