"""Error taxonomy shared by the protocol layer, the tools and the adapters.

Every failure that can reach a caller is one of five kinds. Each kind knows
its JSON-RPC error code and how to render itself as the ``error`` member of a
reply. Conversion to the wire shape only happens at the dispatcher.
"""

from __future__ import annotations

import json
import traceback
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    VALIDATION = "VALIDATION_ERROR"
    ROUTING = "ROUTING_ERROR"
    PARSE = "PARSE_ERROR"
    PROVIDER = "PROVIDER_ERROR"
    INTERNAL = "INTERNAL_ERROR"


RPC_ERROR_CODES: Dict[ErrorCode, int] = {
    ErrorCode.VALIDATION: -32602,
    ErrorCode.ROUTING: -32601,
    ErrorCode.PARSE: -32700,
    ErrorCode.PROVIDER: -32000,
    ErrorCode.INTERNAL: -32603,
}

INVALID_REQUEST_RPC_CODE = -32600


def describe_exception(exc: BaseException, include_stack: bool = False) -> Dict[str, Any]:
    described: Dict[str, Any] = {
        "type": type(exc).__name__,
        "message": str(exc) or type(exc).__name__,
    }
    if isinstance(exc, AgilePlannerError):
        described["code"] = exc.code.value
        if exc.details is not None:
            described["details"] = _json_safe(exc.details)
    if include_stack:
        described["stack"] = "".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        )
    return described


def _json_safe(value: Any) -> Any:
    if isinstance(value, BaseException):
        return describe_exception(value)
    try:
        return json.loads(json.dumps(value, default=str))
    except (TypeError, ValueError):
        return str(value)


class AgilePlannerError(Exception):
    code: ErrorCode = ErrorCode.INTERNAL

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    @property
    def rpc_code(self) -> int:
        return RPC_ERROR_CODES[self.code]

    @classmethod
    def wrap(cls, message: str, exc: BaseException, **extra: Any) -> "AgilePlannerError":
        details: Dict[str, Any] = dict(extra)
        details["cause"] = describe_exception(exc)
        return cls(message, details)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code.value,
            "details": _json_safe(self.details),
        }

    def to_rpc_error(self) -> Dict[str, Any]:
        return {
            "code": self.rpc_code,
            "message": self.message or "Server error",
            "data": self._rpc_data(),
        }

    def _rpc_data(self) -> Dict[str, Any]:
        details = _json_safe(self.details)
        if details is None:
            data: Dict[str, Any] = {}
        elif isinstance(details, dict):
            data = dict(details)
        elif isinstance(details, str):
            data = {"message": details}
        else:
            data = {"value": details}
        data["code"] = self.code.value
        return data


class ValidationError(AgilePlannerError):
    """Caller- or model-supplied structure does not satisfy its schema."""

    code = ErrorCode.VALIDATION


class RoutingError(AgilePlannerError):
    """Unknown method or tool. ``details`` names the valid alternatives."""

    code = ErrorCode.ROUTING


class ParseError(AgilePlannerError):
    code = ErrorCode.PARSE

    def __init__(
        self,
        message: str,
        details: Any = None,
        request_id: Any = None,
        rpc_code: Optional[int] = None,
    ) -> None:
        super().__init__(message, details)
        self.request_id = request_id
        self._rpc_code = rpc_code

    @property
    def rpc_code(self) -> int:
        if self._rpc_code is not None:
            return self._rpc_code
        return RPC_ERROR_CODES[self.code]


class ProviderError(AgilePlannerError):
    """The generation client failed or returned nothing usable."""

    code = ErrorCode.PROVIDER


class InternalError(AgilePlannerError):
    code = ErrorCode.INTERNAL

    @classmethod
    def from_exception(cls, exc: BaseException) -> "InternalError":
        return cls(
            str(exc) or "Internal server error",
            describe_exception(exc, include_stack=True),
        )


class ConfigurationError(LookupError):
    """Programmer error: a component was asked for something it was never built with."""
