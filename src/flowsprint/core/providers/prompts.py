"""Prompt construction for each request kind.

Payloads arrive as plain dicts from the HTTP layer or the project service. Each
kind accepts a couple of aliases for its subject text so callers can pass either
the field name the endpoint documents or a pre-built ``prompt``.
"""

from __future__ import annotations

import json
from typing import Any

from flowsprint.core.providers.base import GenerationRequest
from flowsprint.core.runtime.errors import InvalidRequestOptionsError

SUBJECT_FIELDS: dict[str, tuple[str, ...]] = {
    "mindmap": ("prompt", "projectDescription"),
    "code": ("prompt", "requirements"),
    "node-code": ("prompt", "nodeTitle"),
    "prd": ("prompt", "projectIdea"),
}

_MINDMAP_SYSTEM = (
    "You are an expert software architect who structures projects as mindmaps. "
    "Respond with valid JSON of the form {\"mindmap\": {\"id\": \"root\", \"text\": ..., \"children\": [...]}} "
    "where every node has an id, a descriptive text and a description that adds information."
)

_PRD_SYSTEM = (
    "You are a senior product manager. Write a Product Requirements Document with the sections "
    "Overview, Objectives, User Stories, Technical Requirements, Success Metrics and Timeline."
)


def subject_for(kind: str, payload: dict[str, Any]) -> str:
    for key in SUBJECT_FIELDS.get(kind, ("prompt",)):
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def _mindmap_request(payload: dict[str, Any]) -> GenerationRequest:
    fast = payload.get("priority", "speed") == "speed"
    return GenerationRequest(
        kind="mindmap",
        prompt=f"Create a detailed development mindmap for this project:\n\n{subject_for('mindmap', payload)}",
        system_prompt=_MINDMAP_SYSTEM,
        temperature=0.6 if fast else 0.7,
        max_output_tokens=1200 if fast else 4000,
    )


def _code_request(payload: dict[str, Any]) -> GenerationRequest:
    language = payload.get("language") or "javascript"
    complexity = payload.get("complexity") or "medium"
    lines = [f"Generate {language} code for: {subject_for('code', payload)}"]
    if payload.get("framework"):
        lines.append(f"Framework: {payload['framework']}")
    if payload.get("includeTests"):
        lines.append("Include unit tests.")
    if payload.get("includeComments", True):
        lines.append("Comment non-obvious logic.")
    return GenerationRequest(
        kind="code",
        prompt="\n".join(lines),
        system_prompt=(
            f"You are an expert {language} developer. Generate clean, production-ready code "
            "with proper error handling."
        ),
        temperature=0.3,
        max_output_tokens=4000 if complexity == "high" else 3000,
    )


def _node_code_request(payload: dict[str, Any]) -> GenerationRequest:
    options = payload.get("codeOptions") or {}
    context = payload.get("projectContext") or {}
    title = payload.get("nodeTitle") or ""
    base = payload.get("prompt") or f"Generate PRD documentation and production-ready code for: {title}"
    prompt = "\n".join(
        [
            base,
            "",
            f"Description: {payload.get('nodeDescription', '')}",
            f"Node Type: {payload.get('nodeType', 'component')}",
            f"Project: {context.get('name', 'Web Application')}",
            f"Tech Stack: {json.dumps(context.get('techStack') or ['React', 'TypeScript', 'Tailwind CSS'])}",
            f"Framework: {options.get('framework', 'nextjs')}",
            f"Language: {options.get('language', 'typescript')}",
            f"Styling: {options.get('styling', 'tailwind')}",
            "",
            "Return both the PRD (purpose, requirements, user stories, acceptance criteria) and complete code.",
        ]
    )
    return GenerationRequest(
        kind="node-code",
        prompt=prompt,
        system_prompt="You are a senior engineer producing PRD documentation together with working code.",
        temperature=0.3,
        max_output_tokens=4000,
    )


def _prd_request(payload: dict[str, Any]) -> GenerationRequest:
    comprehensive = payload.get("complexity") == "comprehensive"
    details = [f"Create a detailed PRD for: {subject_for('prd', payload)}"]
    for label, key in (("Industry", "industry"), ("Target audience", "targetAudience"), ("Timeline", "timeline")):
        if payload.get(key):
            details.append(f"{label}: {payload[key]}")
    return GenerationRequest(
        kind="prd",
        prompt="\n".join(details),
        system_prompt=_PRD_SYSTEM,
        temperature=0.7,
        max_output_tokens=5000 if comprehensive else 4000,
    )


_BUILDERS = {
    "mindmap": _mindmap_request,
    "code": _code_request,
    "node-code": _node_code_request,
    "prd": _prd_request,
}


def _pop_option(opts: dict[str, Any], key: str, cast):
    value = opts.pop(key, None)
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidRequestOptionsError(key, value)
    try:
        return cast(value)
    except (TypeError, ValueError) as exc:
        raise InvalidRequestOptionsError(key, value) from exc


def build_request(kind: str, payload: dict[str, Any], options: dict[str, Any] | None = None) -> GenerationRequest:
    """Build the adapter request for ``kind``; bad ``options`` raise ``InvalidRequestOptionsError``."""
    request = _BUILDERS[kind](payload)
    opts = dict(options or {})
    temperature = _pop_option(opts, "temperature", float)
    if temperature is not None:
        request.temperature = temperature
    max_tokens = _pop_option(opts, "max_tokens", int)
    if max_tokens is not None:
        if max_tokens < 1:
            raise InvalidRequestOptionsError("max_tokens", max_tokens)
        request.max_output_tokens = max_tokens
    model = _pop_option(opts, "model", str)
    if model:
        request.model = model
    request.options = opts
    return request
