from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Tuple

import yaml

from agile_planner.adapters.llm_base import Message
from agile_planner.utils.io import read_text

PROMPTS_DIR = Path(__file__).resolve().parents[1] / "configs" / "prompts"

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")


@dataclass(frozen=True)
class PromptTemplate:
    name: str
    meta: Dict
    body: str

    @property
    def system(self) -> str:
        return str(self.meta.get("system") or "").strip()

    def render(self, values: Mapping[str, object]) -> str:
        return render_prompt(self.body, values)

    def messages(self, values: Mapping[str, object]) -> List[Message]:
        messages: List[Message] = []
        if self.system:
            messages.append({"role": "system", "content": render_prompt(self.system, values)})
        messages.append({"role": "user", "content": self.render(values)})
        return messages


def parse_frontmatter(content: str) -> Tuple[Dict, str]:
    if not content.startswith("---"):
        return {}, content
    parts = content.split("---", 2)
    if len(parts) < 3:
        return {}, content
    meta_raw = parts[1].strip()
    body = parts[2].lstrip("\n")
    try:
        meta = yaml.safe_load(meta_raw) or {}
    except yaml.YAMLError:
        meta = {}
    if not isinstance(meta, dict):
        meta = {}
    return meta, body


def render_prompt(template: str, values: Mapping[str, object]) -> str:
    # Single pass: substituted values are never scanned for placeholders again.
    def substitute(match: re.Match) -> str:
        key = match.group(1)
        if key not in values:
            return match.group(0)
        value = values[key]
        if not isinstance(value, str):
            value = json.dumps(value, indent=2, ensure_ascii=False)
        return value

    return _PLACEHOLDER.sub(substitute, template)


def load_prompt(name: str, prompts_dir: Path = PROMPTS_DIR) -> PromptTemplate:
    meta, body = parse_frontmatter(read_text(prompts_dir / f"{name}.md"))
    return PromptTemplate(name=name, meta=meta, body=body)
