from __future__ import annotations

from typing import Any, Optional


class RequestError(Exception):
    """A failure that maps straight onto an HTTP status and a JSON error body.

    The body is ``{"error": message, **extra}``.
    """

    def __init__(self, status_code: int, message: str, extra: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.extra = extra or {}

    def to_body(self) -> dict[str, Any]:
        return {"error": self.message, **self.extra}
