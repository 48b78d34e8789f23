"""
The uniform response envelope returned by every AI services endpoint.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping


@dataclass(frozen=True)
class ServiceResponse:
    """
    Normalised ``{success, data, error, code, timestamp, cached, source}`` envelope.
    """

    success: bool
    data: Any = None
    error: str | None = None
    code: str | None = None
    timestamp: str = ""
    cached: bool | None = None
    source: str | None = None
    status_code: int | None = None

    @property
    def has_data(self) -> bool:
        if self.data is None:
            return False
        if isinstance(self.data, str):
            return bool(self.data)
        return True

    @classmethod
    def from_mapping(
        cls,
        payload: Mapping[str, Any],
        *,
        status_code: int | None = None,
    ) -> "ServiceResponse":
        if not isinstance(payload, Mapping):
            raise TypeError("Response envelope must be a JSON object.")

        error = payload.get("error")
        code = payload.get("code")
        cached = payload.get("cached")
        source = payload.get("source")
        return cls(
            success=bool(payload.get("success", False)),
            data=payload.get("data"),
            error=str(error) if error else None,
            code=str(code) if code else None,
            timestamp=str(payload.get("timestamp") or ""),
            cached=bool(cached) if cached is not None else None,
            source=str(source) if source else None,
            status_code=status_code,
        )

    def as_dict(self) -> dict[str, Any]:
        envelope: dict[str, Any] = {
            "success": self.success,
            "timestamp": self.timestamp,
        }
        if self.data is not None:
            envelope["data"] = self.data
        if self.error is not None:
            envelope["error"] = self.error
        if self.code is not None:
            envelope["code"] = self.code
        if self.cached is not None:
            envelope["cached"] = self.cached
        if self.source is not None:
            envelope["source"] = self.source
        return envelope
