"""Tagged success/failure results for store-backed reads and writes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class QueryResult:
    """Outcome of a store call.

    ``data`` is always usable (an empty container on failure) so callers that
    only render can ignore ``ok``; callers that must tell "nothing found" from
    "query failed" check ``ok`` and ``error``.
    """

    ok: bool
    data: Any = field(default_factory=list)
    error: str | None = None

    @classmethod
    def success(cls, data: Any) -> "QueryResult":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, error: str, empty: Any = None) -> "QueryResult":
        return cls(ok=False, data=[] if empty is None else empty, error=error)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.ok, "data": self.data}
        if self.error:
            payload["errors"] = [self.error]
        return payload
