"""Turn model output into a mindmap tree.

Models are asked for JSON but regularly answer with markdown or loose prose;
anything that does not parse as a JSON object is converted line by line.
"""

from __future__ import annotations

import json
import re
from typing import Any

_META_PHRASES = ("here is a", "this mindmap", "detailed technical development", "comprehensive roadmap")
_SECTION_RE = re.compile(r"^[A-Z\s]+:")
_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)

ROOT_TITLE = "Project Development Roadmap"


def clean_node_title(text: str) -> str:
    text = re.sub(r"^\*\*|\*\*$", "", text)
    text = re.sub(r"^[-*•]\s*", "", text)
    text = re.sub(r"^\d+\.\s*", "", text)
    text = re.sub(r"^#+\s*", "", text)
    text = re.sub(r"^[A-Z\s]+:\s*", "", text)
    text = re.sub(r"[*_]{1,2}", "", text)
    return text.strip()


def task_type(title: str) -> str:
    lowered = title.lower()
    if any(k in lowered for k in ("deploy", "launch", "production")):
        return "end"
    if any(k in lowered for k in ("milestone", "phase", "mvp")):
        return "milestone"
    if any(k in lowered for k in ("component", "ui", "frontend")):
        return "component"
    return "task"


def describe(title: str) -> str:
    lowered = title.lower()
    if "setup" in lowered or "initialize" in lowered:
        return f"Configure and set up {lowered}, including dependencies, environment variables and initial configuration"
    if any(k in lowered for k in ("implement", "develop", "create")):
        return f"Build and implement {lowered}, including core functionality, error handling, validation and integration"
    if "test" in lowered:
        return f"Write tests for {lowered}, including unit tests, integration tests and validation scenarios"
    if "deploy" in lowered:
        return f"Deploy and configure {lowered} in production with monitoring and logging"
    if "database" in lowered or "schema" in lowered:
        return f"Design and implement {lowered}, including data models, relationships, indexes and migrations"
    if "api" in lowered or "endpoint" in lowered:
        return f"Develop {lowered} with routing, validation, authentication and error responses"
    if "component" in lowered or "ui" in lowered:
        return f"Build {lowered} with responsive design, state management and accessibility"
    return f"Complete the technical implementation of {lowered} with integration, testing and documentation"


def _node(node_id: str, title: str, node_type: str) -> dict[str, Any]:
    return {"id": node_id, "text": title, "title": title, "description": describe(title), "type": node_type}


def text_to_mindmap(content: str) -> dict[str, Any]:
    children: list[dict[str, Any]] = []
    sections: list[dict[str, Any]] = []
    current: dict[str, Any] | None = None
    node_id = 1

    for line in content.split("\n"):
        trimmed = line.strip()
        if len(trimmed) < 5:
            continue
        if any(p in trimmed.lower() for p in _META_PHRASES):
            continue
        title = clean_node_title(trimmed)
        if len(title) < 3:
            continue

        if _SECTION_RE.match(trimmed) or any(k in trimmed for k in ("PHASE", "SETUP", "DEVELOPMENT")):
            if current:
                sections.append(current)
            current = {**_node(f"section_{len(sections) + 1}", title, "milestone"), "children": []}
        elif current is not None:
            current["children"].append(_node(f"node_{node_id}", title, task_type(title)))
            node_id += 1
        else:
            kind = "start" if node_id < 3 else task_type(title)
            children.append(_node(f"node_{node_id}", title, kind))
            node_id += 1

    if current:
        sections.append(current)
    children.extend(sections)

    if not children:
        children = [
            {
                "id": "node_1",
                "text": "Development tasks generated from AI",
                "title": "Development tasks generated from AI",
                "description": "AI-generated development tasks and technical implementation details",
                "type": "task",
            }
        ]
    return {
        "id": "root",
        "text": ROOT_TITLE,
        "title": ROOT_TITLE,
        "description": "Technical development roadmap with implementation tasks and milestones",
        "type": "start",
        "children": children,
    }


def _try_json(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return None


def parse_mindmap(content: Any) -> dict[str, Any]:
    if isinstance(content, dict):
        data = content
    else:
        text = str(content or "").strip()
        data = _try_json(text)
        if data is None:
            fenced = _FENCE_RE.search(text)
            if fenced:
                data = _try_json(fenced.group(1).strip())
        if not isinstance(data, dict):
            return text_to_mindmap(text)

    inner = data.get("mindmap")
    if isinstance(inner, dict):
        return inner
    return data
