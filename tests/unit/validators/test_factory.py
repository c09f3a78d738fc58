"""
Validator factory: kind lookup and caching, response-envelope unwrapping.
"""

from __future__ import annotations

import pytest

from agile_planner.errors import ConfigurationError
from agile_planner.validators.factory import ValidatorFactory, unwrap_response


def _valid_story() -> dict:
    return {"id": "US001", "title": "Sign in", "priority": "HIGH"}


@pytest.mark.unit
def test_validator_is_built_once_per_kind() -> None:
    factory = ValidatorFactory()

    assert factory.get("feature") is factory.get("feature")
    assert factory.get("user_story") is factory.get("userStory")


@pytest.mark.unit
def test_unknown_kind_is_a_configuration_error() -> None:
    factory = ValidatorFactory()

    with pytest.raises(ConfigurationError, match="Unsupported validator kind"):
        factory.get("sprint")
    with pytest.raises(LookupError):
        factory.validate({}, "sprint")


@pytest.mark.unit
def test_success_envelope_is_unwrapped_before_validation() -> None:
    factory = ValidatorFactory()

    assert factory.validate({"success": True, "result": _valid_story()}, "userStory").valid
    invalid = factory.validate({"success": True, "result": {"title": "x"}}, "userStory")
    assert invalid.errors == ("id is required at /",)


@pytest.mark.unit
def test_unwrap_leaves_other_payloads_untouched() -> None:
    failed = {"success": False, "result": {"id": "x"}}

    assert unwrap_response(failed) is failed
    assert unwrap_response([1, 2]) == [1, 2]
    assert unwrap_response({"success": True, "result": None}) is None


@pytest.mark.unit
def test_known_kinds() -> None:
    assert ValidatorFactory().kinds == ["backlog", "epic", "feature", "iteration", "userStory"]
