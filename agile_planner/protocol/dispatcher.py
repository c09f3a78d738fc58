"""Routes normalized requests to their handler and builds the reply envelope.

Every path out of ``dispatch`` is a reply dictionary: a result, a domain
error rendered through the taxonomy, or an unexpected exception rendered as
an internal error. Nothing raised by a handler escapes.
"""

from __future__ import annotations

import sys
from typing import Any, Callable, Dict, List, Optional

from agile_planner.context import ServerContext
from agile_planner.errors import AgilePlannerError, InternalError, ParseError, RoutingError
from agile_planner.protocol.catalog import TOOL_CATALOG
from agile_planner.protocol.normalizer import (
    JSONRPC_VERSION,
    METHOD_CALL_TOOL,
    METHOD_INITIALIZE,
    METHOD_LIST_TOOLS,
    Envelope,
    normalize,
)
from agile_planner.tools.handlers import TOOL_HANDLERS, known_tools

SERVER_NAME = "agile-planner-mcp-server"
SERVER_VERSION = "0.1.0"
SERVER_VENDOR = "Agile Planner"
DEFAULT_PROTOCOL_VERSION = "2025-03-26"


def success_reply(request_id: Any, result: Any, jsonrpc: str = JSONRPC_VERSION) -> Dict[str, Any]:
    return {"jsonrpc": jsonrpc, "id": request_id, "result": result}


def error_reply(request_id: Any, error: AgilePlannerError, jsonrpc: str = JSONRPC_VERSION) -> Dict[str, Any]:
    return {"jsonrpc": jsonrpc, "id": request_id, "error": error.to_rpc_error()}


class Dispatcher:
    def __init__(self, context: Optional[ServerContext] = None) -> None:
        self.context = context or ServerContext()
        self._handlers: Dict[str, Callable[[Envelope], Any]] = {
            METHOD_INITIALIZE: self.handle_initialize,
            METHOD_LIST_TOOLS: self.handle_list_tools,
            METHOD_CALL_TOOL: self.handle_call_tool,
        }

    @property
    def known_methods(self) -> List[str]:
        return list(self._handlers)

    def dispatch(self, raw: Any) -> Dict[str, Any]:
        try:
            envelope = normalize(raw, ids=self.context.ids)
        except ParseError as exc:
            print(f"[dispatch] parse error: {exc.message}", file=sys.stderr)
            return error_reply(exc.request_id, exc)
        except Exception as exc:
            print(f"[dispatch] unexpected error while reading request: {exc!r}", file=sys.stderr)
            return error_reply(None, InternalError.from_exception(exc))

        print(f"[dispatch] id={envelope.id} method={envelope.method}", file=sys.stderr)
        try:
            handler = self._handlers.get(envelope.method)
            if handler is None:
                raise RoutingError(
                    f"Method '{envelope.method}' not found.",
                    {"method": envelope.method, "knownMethods": self.known_methods},
                )
            result = handler(envelope)
        except AgilePlannerError as exc:
            print(f"[dispatch] id={envelope.id} {exc.code.value}: {exc.message}", file=sys.stderr)
            return error_reply(envelope.id, exc, envelope.jsonrpc)
        except Exception as exc:
            print(f"[dispatch] id={envelope.id} unexpected error: {exc!r}", file=sys.stderr)
            return error_reply(envelope.id, InternalError.from_exception(exc), envelope.jsonrpc)
        return success_reply(envelope.id, result, envelope.jsonrpc)

    def handle_initialize(self, envelope: Envelope) -> Dict[str, Any]:
        protocol_version = envelope.params.get("protocolVersion") or DEFAULT_PROTOCOL_VERSION
        capabilities: Dict[str, Any] = {"tools": {"listChanged": False}}
        if protocol_version == "2024-11-05":
            capabilities["toolsSupport"] = True
        return {
            "protocolVersion": protocol_version,
            "capabilities": capabilities,
            "serverInfo": {
                "name": SERVER_NAME,
                "version": SERVER_VERSION,
                "vendor": SERVER_VENDOR,
            },
        }

    def handle_list_tools(self, envelope: Envelope) -> Dict[str, Any]:
        return {"tools": [tool.to_dict() for tool in TOOL_CATALOG]}

    def handle_call_tool(self, envelope: Envelope) -> Dict[str, Any]:
        name = envelope.tool_name
        factory = TOOL_HANDLERS.get(name) if isinstance(name, str) else None
        if factory is None:
            message = f"Tool '{name}' not found." if name else "Missing tool name."
            raise RoutingError(message, {"tool": name, "knownTools": known_tools()})
        return factory(self.context).run(envelope.arguments)
