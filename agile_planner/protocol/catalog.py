from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional

from agile_planner.utils.io import read_text

SCHEMAS_DIR = Path(__file__).resolve().parents[1] / "schemas"


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    input_schema: Dict

    @property
    def argument_names(self) -> FrozenSet[str]:
        return frozenset(self.input_schema.get("properties", {}))

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


def _load_schema(name: str) -> Dict:
    return json.loads(read_text(SCHEMAS_DIR / name))


def load_catalog() -> List[ToolSpec]:
    return [
        ToolSpec(
            name="generateBacklog",
            description="Generates a complete agile backlog (epics, features, user stories) from a project description",
            input_schema=_load_schema("generate_backlog.schema.json"),
        ),
        ToolSpec(
            name="generateFeature",
            description="Generates one feature with its user stories from a feature description",
            input_schema=_load_schema("generate_feature.schema.json"),
        ),
    ]


TOOL_CATALOG: List[ToolSpec] = load_catalog()


def find_tool(name: Optional[str]) -> Optional[ToolSpec]:
    for tool in TOOL_CATALOG:
        if tool.name == name:
            return tool
    return None


def expected_arguments() -> Dict[str, FrozenSet[str]]:
    return {tool.name: tool.argument_names for tool in TOOL_CATALOG}
