"""Anthropic Claude provider using anthropic SDK with native async."""

import asyncio
import logging
import time
from typing import Any

import anthropic as anthropic_sdk

from roundtable.models import Attachment, CallResult, ContextTurn, Participant
from roundtable.providers.base import AIProvider, ProviderError, block_text, encode_block

logger = logging.getLogger(__name__)


def to_anthropic_content(content: str | list[Attachment]) -> str | list[dict[str, Any]]:
    if isinstance(content, str):
        return content
    parts: list[dict[str, Any]] = []
    for block in content:
        if block.kind == "text":
            parts.append({"type": "text", "text": block_text(block)})
        elif block.kind in ("image", "document"):
            parts.append({
                "type": block.kind,
                "source": {"type": "base64", "media_type": block.mime_type, "data": encode_block(block)},
            })
    return parts


def build_anthropic_messages(turns: list[ContextTurn]) -> list[dict[str, Any]]:
    """Convert turns to Messages API entries.

    Blank text-only turns are dropped; the API rejects empty content.
    """
    return [
        {"role": t.role, "content": to_anthropic_content(t.content)}
        for t in turns
        if not isinstance(t.content, str) or t.content.strip()
    ]


def parse_anthropic_reply(response: Any, provider_name: str = "anthropic") -> str:
    if not response.content:
        raise ProviderError(provider_name, "Empty response content")
    text_blocks = [b.text for b in response.content if b.type == "text" and b.text]
    if not text_blocks:
        raise ProviderError(provider_name, "No text blocks in response")
    return "\n".join(text_blocks)


class AnthropicProvider(AIProvider):
    """Anthropic Claude provider via anthropic SDK."""

    def __init__(self, participant: Participant) -> None:
        super().__init__(participant)
        self._client = anthropic_sdk.AsyncAnthropic(api_key=participant.api_key.strip())

    async def generate(self, system_prompt: str, turns: list[ContextTurn]) -> CallResult:
        p = self._participant
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.messages.create(
                    model=p.model,
                    max_tokens=p.max_tokens,
                    system=system_prompt,
                    messages=build_anthropic_messages(turns),
                ),
                timeout=p.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(p.provider, f"Request timed out after {p.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(p.provider, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start
        content = parse_anthropic_reply(response, p.provider)

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.input_tokens + response.usage.output_tokens

        logger.info("Anthropic %s: %.2fs, %s tokens", p.model, latency, token_count)

        return CallResult(content=content, latency_sec=latency, token_count=token_count)
