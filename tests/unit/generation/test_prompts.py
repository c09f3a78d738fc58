"""
Prompt templates: front matter parsing and placeholder rendering.
"""

from __future__ import annotations

import pytest

from agile_planner.generation.prompts import load_prompt, parse_frontmatter, render_prompt


@pytest.mark.unit
def test_backlog_prompt_renders_arguments_and_schema() -> None:
    template = load_prompt("backlog_generation")

    messages = template.messages(
        {
            "PROJECT_NAME": "Shop",
            "PROJECT_DESCRIPTION": "Online bakery shop",
            "SCHEMA": {"type": "object"},
        }
    )

    assert template.meta["kind"] == "backlog"
    assert [message["role"] for message in messages] == ["system", "user"]
    user = messages[1]["content"]
    assert "Project name: Shop" in user
    assert '"type": "object"' in user
    assert "{{" not in user


@pytest.mark.unit
def test_frontmatter_is_optional() -> None:
    assert parse_frontmatter("plain body") == ({}, "plain body")
    assert parse_frontmatter("---\nkind: x\n---\nbody") == ({"kind": "x"}, "body")
    assert parse_frontmatter("---\n- a list\n---\nbody") == ({}, "body")


@pytest.mark.unit
def test_unknown_placeholders_are_left_alone() -> None:
    assert render_prompt("{{A}} and {{B}}", {"A": "one"}) == "one and {{B}}"


@pytest.mark.unit
def test_substituted_values_are_not_expanded_again() -> None:
    rendered = render_prompt(
        "Name: {{PROJECT_NAME}}\nSchema: {{SCHEMA}}",
        {"PROJECT_NAME": "Use {{SCHEMA}} here", "SCHEMA": {"type": "object"}},
    )

    assert rendered.startswith("Name: Use {{SCHEMA}} here\n")
    assert rendered.count('"type": "object"') == 1
