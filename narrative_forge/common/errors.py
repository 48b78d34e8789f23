"""
Error taxonomy shared by the AI services transport, operations, and orchestrator.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence


class ErrorCode:
    """Machine-readable codes attached to :class:`ServiceError`."""

    INVALID_INPUT = "INVALID_INPUT"
    INVALID_PROMPT = "INVALID_PROMPT"
    INVALID_TEXT = "INVALID_TEXT"
    NETWORK_ERROR = "NETWORK_ERROR"
    SERVICE_UNHEALTHY = "SERVICE_UNHEALTHY"
    NO_DATA = "NO_DATA"
    PARSE_ERROR = "PARSE_ERROR"
    INVALID_AUDIO_FORMAT = "INVALID_AUDIO_FORMAT"
    GENERATION_FAILED = "GENERATION_FAILED"


VALIDATION_CODES = frozenset(
    {ErrorCode.INVALID_INPUT, ErrorCode.INVALID_PROMPT, ErrorCode.INVALID_TEXT}
)


class ServiceError(Exception):
    """
    Structured failure raised by the AI services client layer.

    Parameters
    ----------
    message:
        Human-readable description of the failure.
    code:
        Optional machine-readable code (see :class:`ErrorCode`), or the code
        reported by the backend envelope.
    status_code:
        HTTP status of the response that triggered the failure, when one was received.
    cause:
        The underlying exception, if the failure wraps one.
    """

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    @property
    def is_validation_error(self) -> bool:
        return self.code in VALIDATION_CODES

    def as_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "statusCode": self.status_code,
        }

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self.message!r}, code={self.code!r}, "
            f"status_code={self.status_code!r})"
        )


@dataclass(frozen=True)
class TierFailure:
    """Record of one orchestrator tier that was attempted and failed."""

    tier: str
    message: str
    error: BaseException | None = None

    def describe(self) -> str:
        return f"{self.tier}: {self.message}"


class GenerationFailedError(ServiceError):
    """
    Raised by the orchestrator once every generation tier has been exhausted.

    ``attempts`` keeps the ordered chain of tiers that were tried.
    """

    def __init__(
        self,
        message: str,
        *,
        attempts: Sequence[TierFailure] = (),
        cause: BaseException | None = None,
    ) -> None:
        status_code = cause.status_code if isinstance(cause, ServiceError) else None
        super().__init__(
            message,
            code=ErrorCode.GENERATION_FAILED,
            status_code=status_code,
            cause=cause,
        )
        self.attempts: tuple[TierFailure, ...] = tuple(attempts)

    def describe_attempts(self) -> str:
        if not self.attempts:
            return "no tiers attempted"
        return "; ".join(attempt.describe() for attempt in self.attempts)


def require_text(value: Any, *, field: str, code: str = ErrorCode.INVALID_INPUT) -> str:
    """
    Return ``value`` stripped, raising a validation :class:`ServiceError` when it is blank.
    """
    if value is None or not isinstance(value, str) or not value.strip():
        label = field[:1].upper() + field[1:]
        raise ServiceError(f"{label} cannot be empty", code=code, status_code=400)
    return value.strip()


def require_choice(value: Any, *, field: str, choices: Sequence[str]) -> str:
    """
    Validate that ``value`` is one of ``choices``.
    """
    text = require_text(value, field=field)
    if text not in choices:
        allowed = ", ".join(choices)
        raise ServiceError(
            f"Invalid {field} {text!r}. Expected one of: {allowed}.",
            code=ErrorCode.INVALID_INPUT,
            status_code=400,
        )
    return text


def optional_choice(value: Any, *, field: str, choices: Sequence[str]) -> str | None:
    if value is None or value == "":
        return None
    return require_choice(value, field=field, choices=choices)
