from __future__ import annotations

import json
import re
import sys
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from agile_planner.adapters.llm_base import GenerationClient, Message


def _find(messages: List[Message], label: str, default: str) -> str:
    pattern = re.compile(rf"^{re.escape(label)}:\s*(.+)$", flags=re.MULTILINE)
    for message in reversed(messages):
        match = pattern.search(message.get("content", ""))
        if match:
            return match.group(1).strip()
    return default


@dataclass
class MockAdapter(GenerationClient):
    """Deterministic offline client.

    ``default`` answers with valid payloads, ``invalid`` always drops the
    story ids, ``empty`` never answers.
    """

    scenario: str = "default"
    name: str = "mock"
    calls: List[List[Message]] = field(default_factory=list)

    def generate(self, messages: List[Message]) -> str:
        payload = self.complete(messages, _find(messages, "Schema kind", "backlog"))
        return json.dumps(payload) if payload is not None else ""

    def complete(self, messages: List[Message], schema: str) -> Optional[Dict]:
        self.calls.append(list(messages))
        print(f"[mock] scenario={self.scenario} schema={schema} call={len(self.calls)}", file=sys.stderr)
        if self.scenario == "empty":
            return None
        if schema == "feature":
            payload = self._feature_payload(messages)
        else:
            payload = self._backlog_payload(messages)
        if self.scenario == "invalid":
            self._drop_story_ids(payload)
        return payload

    def _story(self, number: int, subject: str) -> Dict:
        return {
            "id": f"US{number:03d}",
            "title": f"{subject} - story {number}",
            "description": f"As a user, I want {subject.lower()} step {number} so that I get value",
            "acceptance_criteria": [
                f"Given the {subject.lower()} is available, when I use step {number}, then it succeeds"
            ],
            "tasks": [f"Implement step {number}", f"Test step {number}"],
            "priority": "HIGH" if number == 1 else "MEDIUM",
        }

    def _backlog_payload(self, messages: List[Message]) -> Dict:
        project_name = _find(messages, "Project name", "Mock Project")
        description = _find(messages, "Project description", "Mock project description")
        stories = [self._story(1, "Account setup"), self._story(2, "Dashboard")]
        return {
            "projectName": project_name,
            "description": description,
            "epics": [
                {
                    "id": "EPIC001",
                    "title": "Core experience",
                    "description": f"Foundations of {project_name}",
                    "features": [
                        {
                            "id": "FEAT001",
                            "title": "Onboarding",
                            "description": "Let new users get started",
                            "stories": stories,
                        }
                    ],
                }
            ],
            "mvp": [{"id": story["id"], "title": story["title"]} for story in stories],
            "iterations": [
                {
                    "name": "Iteration 1",
                    "description": "Deliver the MVP",
                    "stories": [{"id": stories[0]["id"], "title": stories[0]["title"]}],
                }
            ],
            "orphan_stories": [],
        }

    def _feature_payload(self, messages: List[Message]) -> Dict:
        description = _find(messages, "Feature description", "Mock feature")
        business_value = _find(messages, "Business value", "")
        count = int(_find(messages, "Number of user stories", "3"))
        subject = description.split(".")[0][:60] or "Feature"
        return {
            "id": "FEAT001",
            "title": subject,
            "description": description,
            "businessValue": business_value,
            "stories": [self._story(number, subject) for number in range(1, count + 1)],
        }

    def _drop_story_ids(self, payload: Dict) -> None:
        features = [payload] if "stories" in payload else [
            feature for epic in payload.get("epics", []) for feature in epic.get("features", [])
        ]
        for feature in features:
            for story in feature.get("stories", []):
                story.pop("id", None)
