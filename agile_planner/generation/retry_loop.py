"""Bounded generate-validate-correct loop.

Each attempt sends the accumulated history to the client. A payload that
fails validation is appended to the history together with a corrective
message listing the validator errors, and the next attempt starts from
there. No payload at all is a provider failure and ends the loop at once.
"""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from agile_planner.adapters.llm_base import GenerationClient, Message
from agile_planner.errors import ErrorCode
from agile_planner.generation.prompts import load_prompt
from agile_planner.validators.factory import ValidatorFactory, unwrap_response, validators as default_validators

MAX_ATTEMPTS = 3


@dataclass
class GenerationOutcome:
    success: bool
    result: Optional[Dict] = None
    error: Optional[Dict] = None
    attempts: int = 0
    history: List[Message] = field(default_factory=list, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {"success": True, "result": self.result}
        return {"success": False, "error": self.error}


def corrective_message(errors: Sequence[str]) -> Message:
    template = load_prompt("validation_retry")
    listing = "\n".join(f"- {error}" for error in errors)
    return {"role": "user", "content": template.render({"ERRORS": listing})}


def generate(
    client: GenerationClient,
    prompt_context: Sequence[Message],
    schema: str,
    validators: Optional[ValidatorFactory] = None,
    max_attempts: int = MAX_ATTEMPTS,
) -> GenerationOutcome:
    validators = validators or default_validators
    # Fails before any model call when the kind is unknown.
    validators.get(schema)

    history: List[Message] = list(prompt_context)
    last_errors: List[str] = []

    for attempt in range(1, max_attempts + 1):
        print(f"[retry] schema={schema} attempt={attempt}/{max_attempts}", file=sys.stderr)
        payload = client.complete(list(history), schema)
        if payload is None:
            print(f"[retry] schema={schema} attempt={attempt} no payload, giving up", file=sys.stderr)
            return GenerationOutcome(
                success=False,
                error={
                    "message": "The generation client returned no structured content.",
                    "code": ErrorCode.PROVIDER.value,
                    "details": {"attempt": attempt, "schema": schema},
                },
                attempts=attempt,
                history=history,
            )

        result = validators.validate(payload, schema)
        if result.valid:
            print(f"[retry] schema={schema} attempt={attempt} valid", file=sys.stderr)
            return GenerationOutcome(
                success=True, result=unwrap_response(payload), attempts=attempt, history=history
            )

        last_errors = list(result.errors)
        print(
            f"[retry] schema={schema} attempt={attempt} invalid errors={len(last_errors)}",
            file=sys.stderr,
        )
        history.append({"role": "assistant", "content": json.dumps(payload, ensure_ascii=False)})
        history.append(corrective_message(last_errors))

    return GenerationOutcome(
        success=False,
        error={
            "message": f"Generated content failed validation after {max_attempts} attempts.",
            "code": ErrorCode.VALIDATION.value,
            "details": {"errors": last_errors, "attempts": max_attempts, "schema": schema},
        },
        attempts=max_attempts,
        history=history,
    )
