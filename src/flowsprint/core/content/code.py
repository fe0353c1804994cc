from __future__ import annotations

import re

_FENCE_RE = re.compile(r"```[\w+-]*\n?(.*?)```", re.DOTALL)
_FENCE_MARK_RE = re.compile(r"```[\w+-]*\n?")
_CODE_START_RE = re.compile(
    r"^[ \t]*(?:(?:import|from|export|const|let|var|function|class|def|package|public)\b|#include|#!|<|\{|//|/\*)",
    re.MULTILINE,
)

_UI_EXTENSIONS = {
    "typescript": "tsx",
    "javascript": "jsx",
    "python": "py",
    "java": "java",
    "html": "html",
    "css": "css",
    "json": "json",
    "markdown": "md",
}

_SOURCE_EXTENSIONS = {
    "javascript": "js",
    "typescript": "ts",
    "python": "py",
    "java": "java",
    "cpp": "cpp",
    "c": "c",
    "html": "html",
    "css": "css",
    "php": "php",
    "ruby": "rb",
    "go": "go",
    "rust": "rs",
    "swift": "swift",
    "kotlin": "kt",
}


def extract_code_block(text: str) -> str:
    """Return the first fenced block, or the text itself when there is none."""
    if not text:
        return ""
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def clean_code(code: str | None) -> str:
    if not code:
        return ""
    code = _FENCE_MARK_RE.sub("", code).replace("```", "")

    # Drop explanation text before the first line that looks like code.
    match = _CODE_START_RE.search(code)
    if match and match.start() > 0:
        code = code[match.start() :]
    return code.strip()


def file_extension(language: str, *, component: bool = False) -> str:
    table = _UI_EXTENSIONS if component else _SOURCE_EXTENSIONS
    return table.get((language or "").lower(), "txt")


def file_name_for(title: str, language: str, index: int = 0) -> str:
    cleaned = re.sub(r"[^a-zA-Z0-9\s]", "", title or "")
    stem = "".join(word[:1].upper() + word[1:].lower() for word in cleaned.split(" ") if word)
    suffix = str(index + 1) if index > 0 else ""
    return f"{stem or 'Component'}{suffix}.{file_extension(language, component=True)}"


def slug_file_name(project_name: str, language: str) -> str:
    stem = re.sub(r"\s+", "-", (project_name or "project").strip().lower())
    return f"{stem}.{file_extension(language)}"
