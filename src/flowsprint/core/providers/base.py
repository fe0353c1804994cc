from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field

from flowsprint.core.runtime.errors import AdapterCallError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class GenerationRequest:
    kind: str
    prompt: str
    system_prompt: str | None = None
    model: str | None = None
    temperature: float = 0.7
    max_output_tokens: int = 2000
    options: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class ChatShape:
    """Chat-completion body: ``{"choices": [{"message": {"content": ...}}], ...}``."""

    body: dict[str, Any]


@dataclass(slots=True, frozen=True)
class PlainTextShape:
    text: str


@dataclass(slots=True, frozen=True)
class PreExtractedShape:
    """A provider already pulled the text out under ``key`` (``code``, ``prd``, ``generated_text``...)."""

    key: str
    value: Any
    raw: dict[str, Any] = field(default_factory=dict)


ProviderPayload = ChatShape | PlainTextShape | PreExtractedShape


@dataclass(slots=True)
class ProviderResponse:
    provider: str
    model: str
    payload: ProviderPayload


class HealthStatus(BaseModel):
    status: Literal["healthy", "unhealthy"]
    response_time_ms: int | None = None
    error: str | None = None
    detail: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=_utcnow)

    @property
    def healthy(self) -> bool:
        return self.status == "healthy"


class ProviderAdapter(ABC):
    name: str

    @abstractmethod
    def generate(self, request: GenerationRequest) -> ProviderResponse:
        raise NotImplementedError

    @abstractmethod
    def health_check(self) -> HealthStatus:
        raise NotImplementedError

    def stream(self, request: GenerationRequest) -> Iterator[str]:
        """Yield text chunks as the provider produces them."""
        raise AdapterCallError(self.name, "streaming is not supported")

    def describe(self) -> dict[str, Any]:
        return {"name": self.name}
