"""Flatten heterogeneous provider payloads into a single ``RouteResult``."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from flowsprint.core.providers.base import ChatShape, PlainTextShape, PreExtractedShape

# Keys probed, in order, when a raw dict carries no recognised shape.
_TEXT_KEYS = ("content", "code", "prd", "generated_text", "text", "data")


@dataclass(slots=True)
class RouteResult:
    content: str
    provider: str
    model: str
    response_time_ms: int
    fallback_used: bool
    attempted_providers: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "provider": self.provider,
            "model": self.model,
            "responseTime": self.response_time_ms,
            "fallbackUsed": self.fallback_used,
            "attemptedProviders": list(self.attempted_providers),
        }


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def extract_chat_text(body: Any) -> str:
    if not isinstance(body, dict):
        return ""
    choices = body.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    first = choices[0]
    message = first.get("message")
    if isinstance(message, dict) and message.get("content") is not None:
        return _as_text(message["content"])
    return _as_text(first.get("text"))


def _extract_from_dict(raw: dict[str, Any]) -> str:
    if "choices" in raw:
        text = extract_chat_text(raw)
        if text:
            return text
    for key in _TEXT_KEYS:
        value = raw.get(key)
        if value is not None and value != "":
            return _as_text(value)
    return ""


def extract_content(raw: Any) -> str:
    if isinstance(raw, PlainTextShape):
        return raw.text or ""
    if isinstance(raw, PreExtractedShape):
        text = _as_text(raw.value)
        return text or _extract_from_dict(raw.raw)
    if isinstance(raw, ChatShape):
        return extract_chat_text(raw.body)
    if isinstance(raw, str):
        return raw
    if isinstance(raw, dict):
        return _extract_from_dict(raw)
    return ""


def normalize(
    raw: Any,
    provider: str,
    model: str,
    elapsed_ms: float,
    fallback_used: bool,
    attempted: list[str] | None = None,
) -> RouteResult:
    return RouteResult(
        content=extract_content(raw),
        provider=provider,
        model=model or "unknown",
        response_time_ms=max(0, int(round(elapsed_ms))),
        fallback_used=bool(fallback_used),
        attempted_providers=list(attempted or [provider]),
    )
