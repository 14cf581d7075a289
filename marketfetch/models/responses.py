"""Response envelope for the monitoring API.

Every monitoring endpoint answers with
{ success: bool, data: T | None, error: str | None, meta: dict | None },
the same shape the error handlers emit for failures.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """JSON envelope for monitoring responses."""

    success: bool
    data: T | None = None
    error: str | None = None
    meta: dict | None = None

    @classmethod
    def snapshot(cls, data: Any, **meta: Any) -> dict:
        """Successful envelope stamped with ``meta.generated_at``, as a plain dict."""
        meta["generated_at"] = datetime.now(timezone.utc).isoformat()
        return cls(success=True, data=data, meta=meta).model_dump()
