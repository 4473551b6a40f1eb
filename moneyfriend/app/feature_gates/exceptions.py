"""Errors raised by opt-in enforcement helpers."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from fastapi import HTTPException, status


@dataclass
class FeatureGateError(Exception):
    """A gated feature was refused to the caller.

    The gate and resolver only return decisions; API layers that want an HTTP
    error call :func:`require_pro_access` or ``GateDecision.raise_for_quota``.
    """

    code: str
    message: str
    feature: Optional[str] = None
    status_code: int = status.HTTP_403_FORBIDDEN
    detail: Optional[Mapping[str, Any]] = None
    _payload: Dict[str, Any] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        payload: Dict[str, Any] = {"error": self.code, "message": self.message}
        if self.feature:
            payload["feature"] = self.feature
        payload.update(self.detail or {})
        self._payload = payload
        super().__init__(self.message)

    @property
    def payload(self) -> Mapping[str, Any]:
        return self._payload

    @property
    def is_quota_error(self) -> bool:
        return self.status_code == status.HTTP_429_TOO_MANY_REQUESTS

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=dict(self._payload))
