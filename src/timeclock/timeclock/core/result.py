from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class OperationResult:
    """Outcome of an engine/service call, rendered inline by callers instead of raised."""

    success: bool
    error: Optional[str] = None
    code: Optional[str] = None
    data: Any = None

    @classmethod
    def ok(cls, data: Any = None) -> "OperationResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, *, code: Optional[str] = None) -> "OperationResult":
        return cls(success=False, error=error, code=code)

    @classmethod
    def from_exception(cls, exc: BaseException) -> "OperationResult":
        return cls.fail(str(exc) or exc.__class__.__name__, code=exc.__class__.__name__)

    def to_dict(self) -> dict:
        if self.success:
            return {"success": True}
        return {"success": False, "error": self.error, "code": self.code}
