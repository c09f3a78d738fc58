"""
Offline client scenarios. The default scenario must always satisfy the
entity validators so mock runs exercise the success path end to end.
"""

from __future__ import annotations

import json

import pytest

from agile_planner.adapters.mock_adapter import MockAdapter
from agile_planner.validators.factory import ValidatorFactory


def _prompt(*lines: str) -> list:
    return [{"role": "system", "content": "json only"}, {"role": "user", "content": "\n".join(lines)}]


@pytest.mark.unit
def test_default_backlog_is_valid_and_uses_project_name() -> None:
    payload = MockAdapter().complete(
        _prompt("Project name: Bakery", "Project description: Sell bread online"), "backlog"
    )

    assert payload["projectName"] == "Bakery"
    assert ValidatorFactory().validate(payload, "backlog").valid


@pytest.mark.unit
def test_default_feature_honours_story_count() -> None:
    payload = MockAdapter().complete(
        _prompt("Feature description: Checkout flow. Pay by card.", "Number of user stories: 4"),
        "feature",
    )

    assert payload["title"] == "Checkout flow"
    assert len(payload["stories"]) == 4
    assert ValidatorFactory().validate(payload, "feature").valid


@pytest.mark.unit
def test_invalid_scenario_breaks_story_ids() -> None:
    payload = MockAdapter(scenario="invalid").complete(_prompt("Project name: Bakery"), "backlog")

    result = ValidatorFactory().validate(payload, "backlog")
    assert not result.valid
    assert all(error.startswith("id is required") for error in result.errors)


@pytest.mark.unit
def test_empty_scenario_returns_nothing() -> None:
    adapter = MockAdapter(scenario="empty")

    assert adapter.complete(_prompt("Project name: Bakery"), "backlog") is None
    assert adapter.generate(_prompt("Project name: Bakery")) == ""
    assert len(adapter.calls) == 2


@pytest.mark.unit
def test_generate_returns_json_text_for_the_prompted_kind() -> None:
    text = MockAdapter().generate(_prompt("Feature description: Search", "Schema kind: feature"))

    assert json.loads(text)["title"] == "Search"
