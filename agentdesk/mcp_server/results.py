"""Tool result envelope returned by every tool as JSON text."""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    ACCESS_DENIED = "access_denied"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    DATABASE = "database"
    INTERNAL = "internal"


class ToolError(Exception):
    """Raised by tool handlers; becomes a ``success: false`` result."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.INTERNAL) -> None:
        self.message = message
        self.code = code
        super().__init__(message)


class AccessDeniedError(ToolError):
    def __init__(self, message: str = "Access denied to workspace") -> None:
        super().__init__(message, ErrorCode.ACCESS_DENIED)


class NotFoundError(ToolError):
    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorCode.NOT_FOUND)


class ValidationError(ToolError):
    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorCode.VALIDATION)


@dataclass
class ToolResult:
    success: bool
    data: Any = None
    error: str | None = None
    code: ErrorCode | None = None

    @classmethod
    def ok(cls, data: Any) -> "ToolResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, message: str, code: ErrorCode = ErrorCode.INTERNAL) -> "ToolResult":
        return cls(success=False, error=message, code=code)

    def to_dict(self) -> dict[str, Any]:
        if self.success:
            return {"success": True, "data": self.data}
        return {"success": False, "error": self.error, "code": self.code.value}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)
