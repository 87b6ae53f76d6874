"""Gemini provider using google-genai SDK with native async."""

import asyncio
import logging
import time
from typing import Any

from google import genai
from google.genai import types as genai_types

from roundtable.models import Attachment, CallResult, ContextTurn, Participant
from roundtable.providers.base import AIProvider, ProviderError, block_text

logger = logging.getLogger(__name__)

OPENING_TURN_TEXT = "Please begin the discussion."


def to_gemini_parts(content: str | list[Attachment]) -> list[dict[str, Any]]:
    if isinstance(content, str):
        return [{"text": content}]
    parts: list[dict[str, Any]] = []
    for block in content:
        if block.kind == "text":
            parts.append({"text": block_text(block)})
        elif block.kind in ("image", "document"):
            # The SDK base64-encodes raw bytes on the wire.
            parts.append({"inlineData": {"mimeType": block.mime_type, "data": block.data}})
    return parts


def to_gemini_turns(turns: list[ContextTurn]) -> list[dict[str, Any]]:
    return [
        {"role": "model" if t.role == "assistant" else "user", "parts": to_gemini_parts(t.content)}
        for t in turns
    ]


def merge_consecutive_roles(contents: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Merge neighbouring entries with the same role; Gemini requires alternation."""
    merged: list[dict[str, Any]] = []
    for entry in contents:
        if merged and merged[-1]["role"] == entry["role"]:
            merged[-1]["parts"] = [*merged[-1]["parts"], *entry["parts"]]
        else:
            merged.append({"role": entry["role"], "parts": list(entry["parts"])})
    return merged


def ensure_user_first(contents: list[dict[str, Any]]) -> list[dict[str, Any]]:
    if contents and contents[0]["role"] == "model":
        return [{"role": "user", "parts": [{"text": OPENING_TURN_TEXT}]}, *contents]
    return contents


def build_gemini_contents(turns: list[ContextTurn]) -> list[dict[str, Any]]:
    """Map turns to Gemini contents with strict user/model alternation."""
    return ensure_user_first(merge_consecutive_roles(to_gemini_turns(turns)))


def parse_gemini_reply(response: Any, provider_name: str = "gemini") -> str:
    candidates = getattr(response, "candidates", None) or []
    content = getattr(candidates[0], "content", None) if candidates else None
    parts = getattr(content, "parts", None) or []
    texts = [part.text for part in parts if getattr(part, "text", None)]
    if not texts:
        raise ProviderError(provider_name, "Empty response text")
    return "\n".join(texts)


class GeminiProvider(AIProvider):
    """Google Gemini provider via google-genai SDK."""

    def __init__(self, participant: Participant) -> None:
        super().__init__(participant)
        self._client = genai.Client(api_key=participant.api_key.strip())

    async def generate(self, system_prompt: str, turns: list[ContextTurn]) -> CallResult:
        p = self._participant
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=p.model,
                    contents=build_gemini_contents(turns),
                    config=genai_types.GenerateContentConfig(
                        system_instruction=system_prompt,
                        max_output_tokens=p.max_tokens,
                    ),
                ),
                timeout=p.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(p.provider, f"Request timed out after {p.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(p.provider, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start
        content = parse_gemini_reply(response, p.provider)

        token_count: int | None = None
        if response.usage_metadata:
            token_count = response.usage_metadata.total_token_count

        logger.info("Gemini %s: %.2fs, %s tokens", p.model, latency, token_count)

        return CallResult(content=content, latency_sec=latency, token_count=token_count)
