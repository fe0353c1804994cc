from __future__ import annotations

from flowsprint.core.content.code import clean_code, extract_code_block, file_extension, file_name_for, slug_file_name
from flowsprint.core.content.mindmap import ROOT_TITLE, clean_node_title, parse_mindmap, task_type
from flowsprint.core.content.prd import default_node_prd, structure_prd


def test_parse_mindmap_accepts_json_and_unwraps_key():
    tree = parse_mindmap('{"mindmap": {"id": "root", "text": "Shop", "children": []}}')
    assert tree == {"id": "root", "text": "Shop", "children": []}


def test_parse_mindmap_reads_fenced_json():
    tree = parse_mindmap('Here you go:\n```json\n{"id": "root", "text": "Blog"}\n```')
    assert tree["text"] == "Blog"


def test_parse_mindmap_converts_prose_to_tree():
    content = "\n".join(
        [
            "Here is a mindmap for your project",
            "PHASE ONE: SETUP",
            "- Initialize repository and tooling",
            "- Build login UI component",
            "PHASE TWO: DEVELOPMENT",
            "1. Implement REST API endpoints",
            "2. Deploy to production",
        ]
    )
    tree = parse_mindmap(content)
    assert tree["id"] == "root"
    assert tree["text"] == ROOT_TITLE
    sections = [c for c in tree["children"] if c["type"] == "milestone"]
    assert [s["text"] for s in sections] == ["SETUP", "DEVELOPMENT"]
    assert [c["type"] for c in sections[0]["children"]] == ["task", "component"]
    assert sections[1]["children"][1]["type"] == "end"


def test_parse_mindmap_empty_text_has_placeholder_child():
    tree = parse_mindmap("")
    assert len(tree["children"]) == 1
    assert tree["children"][0]["id"] == "node_1"


def test_title_cleanup_and_task_type():
    assert clean_node_title("**Set up CI**") == "Set up CI"
    assert clean_node_title("## Build things") == "Build things"
    assert clean_node_title("- 2. Ship it") == "Ship it"
    assert task_type("Launch marketing site") == "end"
    assert task_type("MVP scope") == "milestone"
    assert task_type("Write docs") == "task"


def test_code_cleanup():
    assert extract_code_block("intro\n```python\nprint(1)\n```\noutro") == "print(1)"
    assert extract_code_block("no fences") == "no fences"
    assert clean_code("Sure! Here it is:\n```js\nconst a = 1;\n```") == "const a = 1;"
    assert clean_code(None) == ""
    component = clean_code("Sure, here is the component:\n\nimport React from 'react';\nexport default function Card() { return null; }")
    assert component.startswith("import React")
    assert component.endswith("return null; }")


def test_file_names():
    assert file_extension("TypeScript") == "ts"
    assert file_extension("typescript", component=True) == "tsx"
    assert file_extension("cobol") == "txt"
    assert file_name_for("user profile card!", "typescript") == "UserProfileCard.tsx"
    assert file_name_for("nav", "javascript", 2) == "Nav3.jsx"
    assert file_name_for("", "python") == "Component.py"
    assert slug_file_name("My Cool App", "python") == "my-cool-app.py"


def test_structure_prd_sections_and_summary():
    content = "\n".join(
        [
            "# Executive Summary",
            "a marketplace for pet sitters.",
            "",
            "## Objectives:",
            "- Grow supply",
            "- Grow demand",
            "",
            "3. Timeline",
            "launch in q1",
        ]
    )
    prd = structure_prd(content)
    assert [s["title"] for s in prd["sections"]] == ["Executive Summary", "Objectives", "Timeline"]
    assert prd["sections"][1]["content"] == ["- Grow supply", "- Grow demand"]
    assert prd["summary"] == "a marketplace for pet sitters."
    assert prd["totalSections"] == 3
    assert prd["rawContent"] == content


def test_default_node_prd_mentions_file():
    text = default_node_prd("Checkout", "component", "Checkout.tsx")
    assert "## File: Checkout.tsx" in text
    assert "Checkout" in text
