"""
Common utilities shared across Narrative Forge modules.
"""

from .config import ServicesConfig
from .errors import (
    ErrorCode,
    GenerationFailedError,
    ServiceError,
    TierFailure,
)
from .llm import ChatResult, CompletionCallable, call_chat_completion

__all__ = [
    "ChatResult",
    "CompletionCallable",
    "call_chat_completion",
    "ErrorCode",
    "GenerationFailedError",
    "ServiceError",
    "ServicesConfig",
    "TierFailure",
]
