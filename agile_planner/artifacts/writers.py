"""Writes generated backlogs and features to disk as JSON plus markdown.

Layout under the output directory::

    .agile-planner-backlog/
        backlog.json
        epics/<epic>/epic.md
        epics/<epic>/features/<feature>/feature.md
        epics/<epic>/features/<feature>/user-stories/<story>.md
        features/<feature>/feature.md                 (generateFeature)
        features/<feature>/user-stories/<story>.md    (generateFeature)
        orphan-stories/<story>.md
        planning/mvp.md
        planning/iterations/<iteration>.md
"""

from __future__ import annotations

import re
import sys
from pathlib import Path
from typing import Dict, List, Optional

from agile_planner.utils.io import read_json, write_json, write_text
from agile_planner.utils.time import utc_isoformat

BACKLOG_DIR_NAME = ".agile-planner-backlog"


def slugify(text: str) -> str:
    slug = str(text).lower()
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"[^\w-]+", "", slug)
    slug = re.sub(r"--+", "-", slug)
    return slug.strip("-_") or "item"


def _entity_slug(entity: Dict) -> str:
    return slugify(entity.get("id") or entity.get("name") or entity.get("title") or "item")


def _bullets(items: Optional[List]) -> List[str]:
    return [f"- {item}" for item in items or []]


def story_markdown(story: Dict) -> str:
    lines: List[str] = [f"# {story['id']}: {story['title']}", ""]
    if story.get("priority"):
        lines.extend([f"Priority: {story['priority']}", ""])
    if story.get("description"):
        lines.extend(["## Description", story["description"], ""])
    if story.get("businessValue"):
        lines.extend(["## Business value", story["businessValue"], ""])
    if story.get("acceptance_criteria"):
        lines.extend(["## Acceptance criteria", *_bullets(story["acceptance_criteria"]), ""])
    if story.get("tasks"):
        lines.extend(["## Tasks", *[f"- [ ] {task}" for task in story["tasks"]], ""])
    return "\n".join(lines).rstrip() + "\n"


def feature_markdown(feature: Dict) -> str:
    lines: List[str] = [f"# {feature['id']}: {feature['title']}", ""]
    if feature.get("description"):
        lines.extend([feature["description"], ""])
    if feature.get("businessValue"):
        lines.extend(["## Business value", feature["businessValue"], ""])
    lines.append("## User stories")
    lines.extend(f"- {story['id']}: {story['title']}" for story in feature.get("stories") or [])
    return "\n".join(lines).rstrip() + "\n"


def epic_markdown(epic: Dict) -> str:
    lines: List[str] = [f"# {epic['id']}: {epic['title']}", ""]
    if epic.get("description"):
        lines.extend([epic["description"], ""])
    lines.append("## Features")
    lines.extend(f"- {feature['id']}: {feature['title']}" for feature in epic.get("features") or [])
    return "\n".join(lines).rstrip() + "\n"


def story_list_markdown(title: str, stories: List[Dict], description: str = "") -> str:
    lines: List[str] = [f"# {title}", ""]
    if description:
        lines.extend([description, ""])
    lines.extend(f"- [ ] {story['id']}: {story['title']}" for story in stories)
    return "\n".join(lines).rstrip() + "\n"


class BacklogFileWriter:
    def __init__(self, dir_name: str = BACKLOG_DIR_NAME) -> None:
        self.dir_name = dir_name

    def write(
        self,
        result: Dict,
        output_path: Path,
        kind: str = "backlog",
        iteration_name: Optional[str] = None,
    ) -> Dict:
        root = Path(output_path) / self.dir_name
        root.mkdir(parents=True, exist_ok=True)
        if kind == "feature":
            files = self._write_feature(root, result, iteration_name or "next")
        else:
            files = self._write_backlog(root, result)
        manifest = {
            "root": str(root),
            "json": str(root / "backlog.json"),
            "files": [str(path.relative_to(root)) for path in files],
        }
        print(f"[writer] root={root} files={len(files)}", file=sys.stderr)
        return manifest

    def _write_backlog(self, root: Path, backlog: Dict) -> List[Path]:
        files: List[Path] = []
        json_path = root / "backlog.json"
        write_json(json_path, {**backlog, "generatedAt": utc_isoformat()})
        files.append(json_path)

        for epic in backlog.get("epics") or []:
            epic_dir = root / "epics" / _entity_slug(epic)
            files.append(self._emit(epic_dir / "epic.md", epic_markdown(epic)))
            for feature in epic.get("features") or []:
                files.extend(self._write_feature_tree(epic_dir / "features" / _entity_slug(feature), feature))

        for story in backlog.get("orphan_stories") or []:
            files.append(self._emit(root / "orphan-stories" / f"{_entity_slug(story)}.md", story_markdown(story)))

        if backlog.get("mvp"):
            files.append(
                self._emit(root / "planning" / "mvp.md", story_list_markdown("MVP", backlog["mvp"]))
            )
        for iteration in backlog.get("iterations") or []:
            files.append(
                self._emit(
                    root / "planning" / "iterations" / f"{_entity_slug(iteration)}.md",
                    story_list_markdown(
                        iteration["name"], iteration.get("stories") or [], iteration.get("description", "")
                    ),
                )
            )
        return files

    def _write_feature(self, root: Path, feature: Dict, iteration_name: str) -> List[Path]:
        json_path = root / "backlog.json"
        backlog = read_json(json_path) if json_path.exists() else {}
        if not isinstance(backlog, dict):
            print(f"[writer] {json_path} is not a JSON object, starting a new one", file=sys.stderr)
            backlog = {}
        if not isinstance(backlog.get("features"), list):
            backlog["features"] = []
        backlog["features"].append({**feature, "iteration": iteration_name})
        write_json(json_path, backlog)

        files: List[Path] = [json_path]
        files.extend(self._write_feature_tree(root / "features" / _entity_slug(feature), feature))
        plan_path = root / "planning" / "iterations" / f"{slugify(iteration_name)}.md"
        planned: List[Dict] = []
        for entry in backlog["features"]:
            if isinstance(entry, dict) and entry.get("iteration") == iteration_name:
                planned.extend(entry.get("stories") or [])
        files.append(self._emit(plan_path, story_list_markdown(iteration_name, planned)))
        return files

    def _write_feature_tree(self, feature_dir: Path, feature: Dict) -> List[Path]:
        files = [self._emit(feature_dir / "feature.md", feature_markdown(feature))]
        for story in feature.get("stories") or []:
            files.append(
                self._emit(feature_dir / "user-stories" / f"{_entity_slug(story)}.md", story_markdown(story))
            )
        return files

    def _emit(self, path: Path, content: str) -> Path:
        write_text(path, content)
        return path
