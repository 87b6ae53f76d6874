"""OpenAI provider using openai SDK with native async."""

import asyncio
import logging
import time
from typing import Any

from openai import AsyncOpenAI

from roundtable.models import Attachment, CallResult, ContextTurn, Participant
from roundtable.providers.base import (
    DOCUMENT_FALLBACK_TEXT,
    AIProvider,
    ProviderError,
    block_text,
    encode_block,
)

logger = logging.getLogger(__name__)


def to_openai_content(content: str | list[Attachment]) -> str | list[dict[str, Any]]:
    """Convert turn content into chat-completions content.

    Plain strings pass through. Documents become a text placeholder because
    chat completions has no native document input.
    """
    if isinstance(content, str):
        return content
    parts: list[dict[str, Any]] = []
    for block in content:
        if block.kind == "text":
            parts.append({"type": "text", "text": block_text(block)})
        elif block.kind == "image":
            parts.append({
                "type": "image_url",
                "image_url": {"url": f"data:{block.mime_type};base64,{encode_block(block)}"},
            })
        elif block.kind == "document":
            parts.append({"type": "text", "text": DOCUMENT_FALLBACK_TEXT})
    return parts


def build_openai_messages(system_prompt: str, turns: list[ContextTurn]) -> list[dict[str, Any]]:
    messages: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]
    messages.extend({"role": t.role, "content": to_openai_content(t.content)} for t in turns)
    return messages


def parse_openai_reply(response: Any, provider_name: str = "openai") -> str:
    choice = response.choices[0] if response.choices else None
    if not choice or not choice.message.content:
        raise ProviderError(provider_name, "Empty response content")
    return choice.message.content


class OpenAIProvider(AIProvider):
    """OpenAI provider via openai SDK."""

    def __init__(self, participant: Participant) -> None:
        super().__init__(participant)
        self._client = AsyncOpenAI(api_key=participant.api_key.strip())

    async def generate(self, system_prompt: str, turns: list[ContextTurn]) -> CallResult:
        p = self._participant
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=p.model,
                    messages=build_openai_messages(system_prompt, turns),
                    max_tokens=p.max_tokens,
                ),
                timeout=p.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(p.provider, f"Request timed out after {p.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(p.provider, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start
        content = parse_openai_reply(response, p.provider)

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.total_tokens

        logger.info("OpenAI %s: %.2fs, %s tokens", p.model, latency, token_count)

        return CallResult(content=content, latency_sec=latency, token_count=token_count)
