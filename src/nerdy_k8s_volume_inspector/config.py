from __future__ import annotations

from dataclasses import dataclass, field
import os

DEFAULT_OPENEBS_NAMESPACE = "openebs"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as error:
        raise ValueError(f"{name} must be an integer, got '{raw}'") from error


@dataclass(frozen=True)
class AppConfig:
    kubeconfig_path: str | None = field(default_factory=lambda: os.getenv("NKVI_KUBECONFIG") or None)
    context: str | None = field(default_factory=lambda: os.getenv("NKVI_CONTEXT") or None)
    in_cluster: bool = field(default_factory=lambda: _env_flag("NKVI_IN_CLUSTER"))
    openebs_namespace: str = field(
        default_factory=lambda: os.getenv("NKVI_OPENEBS_NAMESPACE", DEFAULT_OPENEBS_NAMESPACE)
    )
    request_timeout_seconds: int = field(default_factory=lambda: _env_int("NKVI_REQUEST_TIMEOUT_SECONDS", 20))
    log_level: str = field(default_factory=lambda: os.getenv("NKVI_LOG_LEVEL", "WARNING"))

    def __post_init__(self) -> None:
        if self.request_timeout_seconds <= 0:
            raise ValueError("request timeout seconds must be positive")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"log level must be one of {', '.join(LOG_LEVELS)}, got '{self.log_level}'")
