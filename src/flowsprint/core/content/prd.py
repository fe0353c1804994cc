from __future__ import annotations

import re
from typing import Any

_HEADER_RE = re.compile(r"^\s*(?:\d+\.?\s*)?([A-Z][^:\n]+):?\s*$")


def _strip_markdown_header(line: str) -> str:
    return re.sub(r"^\s*#+\s*", "", line)


def structure_prd(content: Any) -> dict[str, Any]:
    """Split PRD text into titled sections."""
    if not isinstance(content, str):
        content = str(content or "")

    sections: list[dict[str, Any]] = []
    current: dict[str, Any] | None = None
    for raw in content.split("\n"):
        line = _strip_markdown_header(raw).replace("**", "")
        if _HEADER_RE.match(line):
            if current:
                sections.append(current)
            title = re.sub(r"^\s*\d+\.?\s*", "", line).strip().rstrip(":").strip()
            current = {"title": title, "content": []}
        elif current is not None and line.strip():
            current["content"].append(line.strip())
    if current:
        sections.append(current)

    summary = next((" ".join(s["content"]) for s in sections if "summary" in s["title"].lower()), "")
    return {
        "sections": sections,
        "rawContent": content,
        "summary": summary,
        "totalSections": len(sections),
    }


def default_node_prd(node_title: str, node_type: str, file_name: str) -> str:
    return "\n".join(
        [
            "# Product Requirements Document (PRD)",
            "",
            f"## File: {file_name}",
            f"**Purpose**: This {node_type} implements {node_title} functionality within the application.",
            "",
            "## Requirements",
            f"- Display {node_title} information clearly",
            "- Accept configurable props for customization",
            "- Maintain responsive design across devices",
            "- Handle empty states gracefully",
            "",
            "## Acceptance Criteria",
            "- Component renders without errors",
            "- Props are typed and documented",
            "- Follows accessibility best practices",
        ]
    )
