"""
Deployment configuration for the AI services client and generation tiers.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml

DEFAULT_AI_SERVICES_URL = "https://us-central1-gen-lang-client-0780430254.cloudfunctions.net"
DEFAULT_LOCAL_MODEL = "gemini/gemini-1.5-pro"
DEFAULT_TIMEOUT_SECONDS = 120.0

RouteMode = Literal["dedicated", "generic"]
ExecutionContext = Literal["server", "browser"]

_ROUTE_MODES = ("dedicated", "generic")
_EXECUTION_CONTEXTS = ("server", "browser")


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be numeric, got {value!r}") from exc


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer, got {value!r}") from exc


def resolve_narrative_function_url() -> str | None:
    """
    Locate the Cloud Function URL used for the remote narrative tier.
    """
    explicit = os.getenv("NARRATIVE_FORGE_NARRATIVE_URL") or os.getenv(
        "CLOUD_NARRATIVE_GENERATION_FULLURL"
    )
    if explicit:
        return explicit.strip()

    character_url = os.getenv("CLOUD_CHARACTER_CREATION_FULLURL")
    if character_url:
        return character_url.strip().replace("character-creator", "narrative-generator")

    return None


@dataclass(frozen=True)
class ServicesConfig:
    """
    Settings shared by the transport, the capability client, and the orchestrator.

    Attributes
    ----------
    base_url:
        Base URL of the AI services Cloud Functions used for capability calls.
    narrative_function_url:
        Base URL of the remote narrative tier. ``None`` disables the remote tier.
    route_mode:
        ``"dedicated"`` sends each capability to its own path; ``"generic"`` routes
        everything through the multiplexed ``/aiServices`` endpoint.
    execution_context:
        ``"server"`` allows the in-process local tier; ``"browser"`` never does.
    local_model:
        LiteLLM model identifier used by the local tier.
    local_enabled:
        Whether a local generator should be constructed at all.
    timeout:
        Per-request timeout in seconds.
    max_retries:
        Extra attempts for transient transport failures.
    backoff_base / backoff_cap:
        Exponential backoff parameters in seconds.
    cache_ttl / cache_maxsize:
        Settings for the default in-process cache store.
    """

    base_url: str = DEFAULT_AI_SERVICES_URL
    narrative_function_url: str | None = None
    route_mode: RouteMode = "dedicated"
    execution_context: ExecutionContext = "server"
    local_model: str = DEFAULT_LOCAL_MODEL
    local_api_key: str | None = None
    local_enabled: bool = True
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    max_retries: int = 0
    backoff_base: float = 0.5
    backoff_cap: float = 8.0
    cache_ttl: float = 3600.0
    cache_maxsize: int = 512

    def __post_init__(self) -> None:
        if self.route_mode not in _ROUTE_MODES:
            raise ValueError(f"route_mode must be one of {_ROUTE_MODES}, got {self.route_mode!r}")
        if self.execution_context not in _EXECUTION_CONTEXTS:
            raise ValueError(
                f"execution_context must be one of {_EXECUTION_CONTEXTS}, "
                f"got {self.execution_context!r}"
            )
        if self.max_retries < 0:
            raise ValueError("max_retries cannot be negative.")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive.")

    @property
    def is_server_side(self) -> bool:
        return self.execution_context == "server"

    @property
    def remote_enabled(self) -> bool:
        return bool(self.narrative_function_url)

    @classmethod
    def from_env(cls) -> "ServicesConfig":
        """
        Build the configuration from environment variables.
        """
        return cls(
            base_url=(
                os.getenv("NARRATIVE_FORGE_AI_SERVICES_URL")
                or os.getenv("AI_SERVICES_BASE_URL")
                or DEFAULT_AI_SERVICES_URL
            ),
            narrative_function_url=resolve_narrative_function_url(),
            route_mode=os.getenv("NARRATIVE_FORGE_ROUTE_MODE", "dedicated"),  # type: ignore[arg-type]
            execution_context=os.getenv(  # type: ignore[arg-type]
                "NARRATIVE_FORGE_EXECUTION_CONTEXT", "server"
            ),
            local_model=(
                os.getenv("NARRATIVE_FORGE_LOCAL_MODEL")
                or os.getenv("NARRATIVE_AI_MODEL")
                or os.getenv("LITELLM_MODEL")
                or DEFAULT_LOCAL_MODEL
            ),
            local_api_key=(
                os.getenv("NARRATIVE_FORGE_LOCAL_API_KEY")
                or os.getenv("GEMINI_API_KEY")
                or os.getenv("LITELLM_API_KEY")
            ),
            local_enabled=_env_flag("NARRATIVE_FORGE_LOCAL_ENABLED", True),
            timeout=_env_float("NARRATIVE_FORGE_TIMEOUT", DEFAULT_TIMEOUT_SECONDS),
            max_retries=_env_int("NARRATIVE_FORGE_MAX_RETRIES", 0),
            cache_ttl=_env_float("NARRATIVE_FORGE_CACHE_TTL", 3600.0),
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ServicesConfig":
        """
        Build the configuration from a parsed YAML/JSON mapping, rejecting unknown keys.
        """
        known = {item.name for item in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")
        return cls(**dict(data))

    @classmethod
    def from_file(cls, path: str | Path) -> "ServicesConfig":
        """
        Load configuration from a YAML or JSON file.
        """
        path = Path(path)
        text = path.read_text(encoding="utf-8")
        if path.suffix.lower() in {".yaml", ".yml"}:
            data = yaml.safe_load(text) or {}
        elif path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            raise ValueError("Unsupported configuration file format. Use YAML or JSON.")

        if not isinstance(data, Mapping):
            raise ValueError("Configuration file must deserialize to a mapping.")
        return cls.from_mapping(data)

    def with_overrides(self, **overrides: Any) -> "ServicesConfig":
        return replace(self, **overrides)
