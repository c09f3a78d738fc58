"""Turns whatever a caller sent into one canonical request envelope.

Three caller shapes are seen in practice:

* nested: ``params = {"name": ..., "arguments": {...}}`` (sometimes with a
  second ``arguments`` layer, or a legacy ``params`` layer instead);
* flat: ``params = {"name": ..., "projectName": ..., ...}``;
* string-encoded: the whole message, ``params`` or ``arguments`` is a JSON
  string.

All of them resolve to ``Envelope(params={"name": ..., "arguments": {...}})``
for tool calls. Nothing downstream of this module inspects request shape.
Normalizing an already normalized envelope returns an equal envelope.
"""

from __future__ import annotations

import json
import re
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple

from agile_planner.errors import INVALID_REQUEST_RPC_CODE, ParseError
from agile_planner.protocol.catalog import expected_arguments

JSONRPC_VERSION = "2.0"

METHOD_INITIALIZE = "initialize"
METHOD_LIST_TOOLS = "list-tools"
METHOD_CALL_TOOL = "call-tool"

METHOD_ALIASES = {
    "tools/list": METHOD_LIST_TOOLS,
    "tools/call": METHOD_CALL_TOOL,
    "tools/invoke": METHOD_CALL_TOOL,
    "list_tools": METHOD_LIST_TOOLS,
    "call_tool": METHOD_CALL_TOOL,
}

TOOL_NAME_KEYS = ("name", "toolName", "tool")
NESTED_ARGUMENT_KEYS = ("arguments", "params")

_ID_PATTERN = re.compile(r'"id"\s*:\s*("(?:[^"\\]|\\.)*"|-?\d+(?:\.\d+)?)')


class ArgumentShape(str, Enum):
    FLAT = "flat"
    NESTED = "nested"
    STRING_ENCODED = "string-encoded"
    PASSTHROUGH = "passthrough"


@dataclass(frozen=True)
class Envelope:
    jsonrpc: str
    id: Any
    method: Optional[str]
    params: Dict[str, Any] = field(default_factory=dict)

    @property
    def tool_name(self) -> Optional[str]:
        return self.params.get("name")

    @property
    def arguments(self) -> Dict[str, Any]:
        return self.params.get("arguments") or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jsonrpc": self.jsonrpc,
            "id": self.id,
            "method": self.method,
            "params": self.params,
        }


class RequestIdAllocator:
    """Synthesizes ids for requests that arrive without one.

    The same message always gets the same id; two different messages never
    share one within a process run.
    """

    def __init__(self, prefix: str = "req") -> None:
        self.prefix = prefix
        self._assigned: Dict[str, str] = {}

    def allocate(self, message: Mapping) -> str:
        fingerprint = json.dumps(message, sort_keys=True, default=str)
        request_id = self._assigned.get(fingerprint)
        if request_id is None:
            request_id = f"{self.prefix}-{len(self._assigned) + 1}"
            self._assigned[fingerprint] = request_id
        return request_id


default_ids = RequestIdAllocator()


def recover_id(raw: str) -> Any:
    """Best-effort id from a message that failed to parse.

    Only an ``"id"`` key sitting directly in the outermost object counts;
    ids of nested entities (stories, features) are skipped.
    """
    depth = 0
    in_string = False
    escaped = False
    position = 0
    for match in _ID_PATTERN.finditer(raw):
        for char in raw[position:match.start()]:
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
            elif char == '"':
                in_string = True
            elif char in "{[":
                depth += 1
            elif char in "}]":
                depth -= 1
        position = match.start()
        if in_string or depth != 1:
            continue
        try:
            return json.loads(match.group(1))
        except json.JSONDecodeError:
            return None
    return None


def _parse_message(raw: Any) -> Dict[str, Any]:
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            raise ParseError("Empty request message.")
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ParseError(
                f"Parse error: {exc.msg}",
                {"line": exc.lineno, "column": exc.colno},
                request_id=recover_id(text),
            ) from exc
    if not isinstance(raw, Mapping):
        raise ParseError(
            "Invalid request: the message must be a JSON object.",
            {"received": type(raw).__name__},
            rpc_code=INVALID_REQUEST_RPC_CODE,
        )
    return dict(raw)


def _decode_object(value: Any, what: str, request_id: Any) -> Dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, str):
        if not value.strip():
            return {}
        try:
            value = json.loads(value)
        except json.JSONDecodeError as exc:
            raise ParseError(
                f"Parse error: {what} is not valid JSON ({exc.msg}).",
                {"field": what},
                request_id=request_id,
            ) from exc
    if not isinstance(value, Mapping):
        raise ParseError(
            f"Invalid request: {what} must be an object.",
            {"field": what, "received": type(value).__name__},
            request_id=request_id,
            rpc_code=INVALID_REQUEST_RPC_CODE,
        )
    return dict(value)


def canonical_method(method: Any) -> Optional[str]:
    if not isinstance(method, str):
        return None
    method = method.strip()
    return METHOD_ALIASES.get(method, method)


def resolve_tool_call(
    params: Mapping[str, Any],
    expected: Optional[Mapping[str, FrozenSet[str]]] = None,
    request_id: Any = None,
) -> Tuple[Optional[str], Dict[str, Any], ArgumentShape]:
    expected = expected if expected is not None else expected_arguments()
    name = next((params[key] for key in TOOL_NAME_KEYS if params.get(key)), None)
    candidate = {key: value for key, value in params.items() if key not in TOOL_NAME_KEYS}
    argument_names = expected.get(name, frozenset()) if isinstance(name, str) else frozenset()

    if argument_names & set(candidate):
        return name, candidate, ArgumentShape.FLAT

    nested_key = next((key for key in NESTED_ARGUMENT_KEYS if key in candidate), None)
    if nested_key is not None:
        inner = candidate[nested_key]
        shape = ArgumentShape.STRING_ENCODED if isinstance(inner, str) else ArgumentShape.NESTED
        arguments = _decode_object(inner, nested_key, request_id)
        if set(arguments) == {"arguments"} and "arguments" not in argument_names:
            arguments = _decode_object(arguments["arguments"], "arguments", request_id)
            # At most one extra layer is unwrapped.
            if set(arguments) == {"arguments"}:
                raise ParseError(
                    "Invalid request: arguments are nested more than one level deep.",
                    {"field": "arguments", "tool": name},
                    request_id=request_id,
                    rpc_code=INVALID_REQUEST_RPC_CODE,
                )
        return name, arguments, shape

    # Unrecognized layout: the object itself is taken as the argument set.
    return name, candidate, ArgumentShape.PASSTHROUGH


def normalize(
    raw: Any,
    ids: Optional[RequestIdAllocator] = None,
    expected: Optional[Mapping[str, FrozenSet[str]]] = None,
) -> Envelope:
    if isinstance(raw, Envelope):
        raw = raw.to_dict()
    message = _parse_message(raw)
    ids = ids or default_ids

    request_id = message.get("id")
    if request_id is None:
        request_id = ids.allocate(message)

    jsonrpc = message.get("jsonrpc") or JSONRPC_VERSION
    method = canonical_method(message.get("method"))
    params = _decode_object(message.get("params"), "params", request_id)

    if method == METHOD_CALL_TOOL:
        name, arguments, shape = resolve_tool_call(params, expected, request_id)
        print(f"[normalize] id={request_id} tool={name} shape={shape.value}", file=sys.stderr)
        params = {"name": name, "arguments": arguments}

    return Envelope(jsonrpc=str(jsonrpc), id=request_id, method=method, params=params)
