from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class GenerationOptions(BaseModel):
    """Per-call overrides; extra keys are passed to the adapter untouched."""

    model_config = ConfigDict(extra="allow")

    temperature: float | None = Field(default=None, ge=0, le=2)
    max_tokens: int | None = Field(default=None, ge=1)
    model: str | None = None


class StreamRequest(BaseModel):
    prompt: str | None = None
    provider: str | None = None
    maxTokens: int = Field(default=1500, ge=1)


class GenerateRequest(BaseModel):
    """Body for ``POST /generate/{kind}``; unknown fields pass through to the prompt builder."""

    model_config = ConfigDict(extra="allow")

    prompt: str | None = None
    projectDescription: str | None = None
    requirements: str | None = None
    projectIdea: str | None = None
    nodeTitle: str | None = None
    nodeDescription: str | None = None
    priority: Literal["speed", "quality"] | None = None
    complexity: str | None = None
    language: str | None = None
    options: GenerationOptions = Field(default_factory=GenerationOptions)


class ProjectCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1, max_length=500)
    type: str = "web-app"
    industry: str = "tech"
    complexity: Literal["low", "medium", "high"] = "medium"
    features: dict[str, Any] = Field(default_factory=dict)
    techStack: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class ProjectUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, min_length=1, max_length=500)
    type: str | None = None
    industry: str | None = None
    complexity: Literal["low", "medium", "high"] | None = None
    status: Literal["planning", "in-development", "testing", "deployed", "archived"] | None = None
    features: dict[str, Any] | None = None
    techStack: list[str] | None = None
    tags: list[str] | None = None


class MindmapGenerateRequest(BaseModel):
    complexity: Literal["low", "medium", "high"] | None = None
    priority: Literal["speed", "quality"] = "speed"


class PrdGenerateRequest(BaseModel):
    sections: str = "all"
    targetAudience: str = "general"
    complexity: Literal["standard", "comprehensive"] = "standard"


class CodeGenerateRequest(BaseModel):
    language: str = "javascript"
    framework: str = ""
    features: list[str] = Field(default_factory=list)
    complexity: Literal["low", "medium", "high"] = "medium"
