"""
Tool handlers: argument validation against the published input schemas and
the end-to-end feature tool against the offline client.
"""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict

import pytest

from agile_planner.context import ServerContext
from agile_planner.errors import InternalError, ProviderError, ValidationError
from agile_planner.generation.retry_loop import GenerationOutcome
from agile_planner.protocol.catalog import find_tool
from agile_planner.tools.handlers import FeatureTool, raise_for_outcome, validate_arguments


@dataclass
class ScriptedClient:
    payload: Dict
    name: str = "scripted"

    def generate(self, messages):
        raise NotImplementedError

    def complete(self, messages, schema):
        return copy.deepcopy(self.payload)


@pytest.mark.unit
def test_valid_arguments_pass_through() -> None:
    arguments = {"featureDescription": "Checkout", "storyCount": 5, "iterationName": "next"}

    assert validate_arguments(find_tool("generateFeature"), arguments) is arguments


@pytest.mark.unit
def test_wrong_argument_type_is_reported_with_path() -> None:
    with pytest.raises(ValidationError) as exc_info:
        validate_arguments(find_tool("generateBacklog"), {"projectName": 3, "projectDescription": "x"})

    assert exc_info.value.details["errors"] == ["projectName must be of type string at /projectName"]
    assert exc_info.value.details["missing"] == []


@pytest.mark.unit
def test_non_integer_story_count_is_rejected() -> None:
    with pytest.raises(ValidationError) as exc_info:
        validate_arguments(find_tool("generateFeature"), {"featureDescription": "x", "storyCount": 3.5})

    assert exc_info.value.details["errors"][0].endswith("at /storyCount")


@pytest.mark.unit
def test_feature_tool_writes_into_the_requested_output_path(tmp_path: Path) -> None:
    context = ServerContext(mode="mock", output_root=tmp_path / "default")
    target = tmp_path / "custom"

    result = FeatureTool(context).run(
        {
            "featureDescription": "Wishlist. Save products for later.",
            "businessValue": "Higher conversion",
            "storyCount": 3,
            "outputPath": str(target),
        }
    )

    summary = result["structuredContent"]
    assert summary["featureName"] == "Wishlist"
    assert summary["storyCount"] == 3
    assert summary["outputPath"] == str(target.resolve())
    saved = json.loads((target / ".agile-planner-backlog" / "backlog.json").read_text(encoding="utf-8"))
    assert saved["features"][0]["iteration"] == "next"
    assert saved["features"][0]["businessValue"] == "Higher conversion"
    assert not (tmp_path / "default").exists()


@pytest.mark.unit
def test_raise_for_outcome_maps_failure_codes() -> None:
    provider_failure = GenerationOutcome(
        success=False, error={"message": "nothing", "code": "PROVIDER_ERROR", "details": {"attempt": 1}}
    )
    validation_failure = GenerationOutcome(
        success=False, error={"message": "bad", "code": "VALIDATION_ERROR", "details": {"errors": ["e"]}}
    )

    with pytest.raises(ProviderError) as provider_info:
        raise_for_outcome(provider_failure, "generateFeature")
    with pytest.raises(ValidationError) as validation_info:
        raise_for_outcome(validation_failure, "generateFeature")

    assert provider_info.value.details == {"attempt": 1, "tool": "generateFeature"}
    assert validation_info.value.details["errors"] == ["e"]
    assert raise_for_outcome(GenerationOutcome(success=True, result={"id": "F"}), "x") == {"id": "F"}


def _feature_payload(**extra) -> dict:
    stories = [{"id": f"US00{number}", "title": f"Story {number}"} for number in range(1, 4)]
    return {"id": "FEAT001", "title": "Login", "stories": stories, **extra}


@pytest.mark.unit
def test_feature_with_stray_epics_key_is_still_written_as_a_feature(tmp_path: Path) -> None:
    payload = _feature_payload(epics="n/a")
    context = ServerContext(output_root=tmp_path, client_factory=lambda: ScriptedClient(payload))

    result = FeatureTool(context).run({"featureDescription": "Login with email"})

    assert result["structuredContent"]["featureName"] == "Login"
    root = tmp_path / ".agile-planner-backlog"
    assert (root / "features" / "feat001" / "feature.md").is_file()
    assert not (root / "epics").exists()


@pytest.mark.unit
def test_unreadable_backlog_json_is_a_wrapped_internal_error(tmp_path: Path) -> None:
    root = tmp_path / ".agile-planner-backlog"
    root.mkdir()
    (root / "backlog.json").write_text("{not json", encoding="utf-8")
    context = ServerContext(output_root=tmp_path, client_factory=lambda: ScriptedClient(_feature_payload()))

    with pytest.raises(InternalError) as exc_info:
        FeatureTool(context).run({"featureDescription": "Login with email"})

    assert "could not be written" in exc_info.value.message
    assert exc_info.value.details["cause"]["type"] == "JSONDecodeError"
