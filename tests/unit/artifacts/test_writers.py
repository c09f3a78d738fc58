"""
Backlog writer: on-disk layout for full backlogs and incremental features.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from agile_planner.adapters.mock_adapter import MockAdapter
from agile_planner.artifacts.writers import BacklogFileWriter, slugify, story_markdown


def _backlog() -> dict:
    return MockAdapter().complete([{"role": "user", "content": "Project name: Bakery"}], "backlog")


def _feature(count: int = 3) -> dict:
    prompt = f"Feature description: Checkout\nNumber of user stories: {count}"
    return MockAdapter().complete([{"role": "user", "content": prompt}], "feature")


@pytest.mark.unit
def test_backlog_layout(tmp_path: Path) -> None:
    manifest = BacklogFileWriter().write(_backlog(), tmp_path)

    root = tmp_path / ".agile-planner-backlog"
    assert manifest["root"] == str(root)
    assert "backlog.json" in manifest["files"]
    assert (root / "epics" / "epic001" / "epic.md").is_file()
    assert (root / "epics" / "epic001" / "features" / "feat001" / "user-stories" / "us002.md").is_file()
    assert (root / "planning" / "mvp.md").is_file()
    assert (root / "planning" / "iterations" / "iteration-1.md").is_file()

    saved = json.loads((root / "backlog.json").read_text(encoding="utf-8"))
    assert saved["projectName"] == "Bakery"
    assert "generatedAt" in saved


@pytest.mark.unit
def test_features_accumulate_in_backlog_json(tmp_path: Path) -> None:
    writer = BacklogFileWriter()

    writer.write(_feature(3), tmp_path, kind="feature", iteration_name="Sprint 4")
    manifest = writer.write(_feature(4), tmp_path, kind="feature", iteration_name="Sprint 4")

    root = tmp_path / ".agile-planner-backlog"
    saved = json.loads((root / "backlog.json").read_text(encoding="utf-8"))
    assert [feature["iteration"] for feature in saved["features"]] == ["Sprint 4", "Sprint 4"]
    plan = (root / "planning" / "iterations" / "sprint-4.md").read_text(encoding="utf-8")
    assert plan.count("- [ ] US001") == 2
    assert "features/feat001/feature.md" in [Path(name).as_posix() for name in manifest["files"]]


@pytest.mark.unit
def test_story_markdown_sections() -> None:
    text = story_markdown(
        {
            "id": "US001",
            "title": "Sign in",
            "acceptance_criteria": ["Given a user, when they sign in, then they see the dashboard"],
            "tasks": ["Build form"],
        }
    )

    assert text.startswith("# US001: Sign in")
    assert "## Acceptance criteria\n- Given a user" in text
    assert "- [ ] Build form" in text


@pytest.mark.unit
@pytest.mark.parametrize(
    ("text", "slug"),
    [("Iteration 1", "iteration-1"), ("  MVP / Phase 2!", "mvp-phase-2"), ("***", "item")],
)
def test_slugify(text: str, slug: str) -> None:
    assert slugify(text) == slug


@pytest.mark.unit
def test_layout_follows_the_kind_not_the_payload_keys(tmp_path: Path) -> None:
    feature = {**_feature(3), "epics": "n/a"}

    BacklogFileWriter().write(feature, tmp_path, kind="feature")

    root = tmp_path / ".agile-planner-backlog"
    assert (root / "features" / "feat001" / "feature.md").is_file()
    assert not (root / "epics").exists()


@pytest.mark.unit
@pytest.mark.parametrize("existing", [{"features": None}, {"features": "none"}, ["stale"]])
def test_feature_merge_tolerates_unexpected_backlog_json(tmp_path: Path, existing) -> None:
    root = tmp_path / ".agile-planner-backlog"
    root.mkdir()
    (root / "backlog.json").write_text(json.dumps(existing), encoding="utf-8")

    BacklogFileWriter().write(_feature(3), tmp_path, kind="feature", iteration_name="next")

    saved = json.loads((root / "backlog.json").read_text(encoding="utf-8"))
    assert [feature["id"] for feature in saved["features"]] == ["FEAT001"]
