from __future__ import annotations

import sys
from typing import Dict, List, Optional, Protocol

from agile_planner.adapters.parsers import extract_json_or_none

Message = Dict[str, str]


class GenerationClient(Protocol):
    """Produces structured content from a chat-style message history.

    ``generate`` returns the raw model text. ``complete`` returns the JSON
    object found in that text, or ``None`` when the model produced nothing
    usable. ``schema`` is the entity kind the caller will validate against.
    """

    name: str

    def generate(self, messages: List[Message]) -> str:
        raise NotImplementedError

    def complete(self, messages: List[Message], schema: str) -> Optional[Dict]:
        raw_text = self.generate(messages)
        payload = extract_json_or_none(raw_text)
        if payload is None:
            print(
                f"[{self.name}] no JSON object in response schema={schema} chars={len(raw_text or '')}",
                file=sys.stderr,
            )
        return payload


def flatten_messages(messages: List[Message]) -> str:
    sections = []
    for message in messages:
        role = message.get("role", "user").upper()
        sections.append(f"{role}:\n{message.get('content', '')}")
    return "\n\n".join(sections)
