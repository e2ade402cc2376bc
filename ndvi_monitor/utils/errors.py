from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional, List


class NdviMonitorError(RuntimeError):
    def __init__(self, code: str, msg: str, hints: Optional[str] = None, ctx: Optional[Dict[str, Any]] = None):
        super().__init__(msg)
        self.code = code
        self.message = msg
        self.hints = hints
        self.ctx = ctx or {}

    def payload(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.hints:
            body["hints"] = self.hints
        return body


class UserInputError(NdviMonitorError, ValueError):
    """Raised for requests the user can fix: missing AOI, bad year, bad geometry."""


class ExportTooLargeError(UserInputError):
    """Raised when an AOI exceeds the direct download size guard."""


class SessionNotFoundError(NdviMonitorError, KeyError):
    def __str__(self) -> str:
        return self.message


class BackendQueryError(NdviMonitorError):
    """Raised when the imagery backend cannot answer a query."""


class EmptyResultWarning(UserWarning):
    """A calendar month without contributing images; the composite is fully masked."""


@dataclass
class StageMetric:
    name: str
    details: Dict[str, Any]


class RunDiagnostics:
    def __init__(self):
        self._stages: Dict[str, StageMetric] = {}
        self._warnings: List[str] = []

    def record(self, stage: str, **kv):
        self._stages[stage] = StageMetric(stage, kv)

    def warn(self, msg: str):
        self._warnings.append(msg)

    @property
    def warnings(self) -> List[str]:
        return list(self._warnings)

    def require(self, cond: bool, code: str, msg: str, hints: Optional[str] = None, **ctx):
        if not cond:
            raise UserInputError(code=code, msg=msg, hints=hints, ctx=ctx)

    def diagnostics_payload(self) -> Dict[str, Any]:
        return {
            "stages": {k: v.details for k, v in self._stages.items()},
            "warnings": list(self._warnings),
        }
