"""
Runtime settings decoded from environment variables.

Each command reads its own options class. Decoding fails with ConfigError
before any call to the cluster is made.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional

from .template import DEFAULT_NAMESPACE

DEFAULT_RETENTION_LIMIT = 20
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_DELAY = 0.5

TRUE_VALUES = {"1", "t", "true", "y", "yes", "on"}
FALSE_VALUES = {"0", "f", "false", "n", "no", "off"}


class ConfigError(ValueError):
    """Raised when a required setting is missing or malformed."""
    pass


def _get_str(env: Mapping[str, str], key: str, required: bool = False, default: str = "") -> str:
    value = env.get(key, "").strip()
    if not value:
        if required:
            raise ConfigError(f"{key} must be set")
        return default
    return value


def _get_bool(env: Mapping[str, str], key: str, default: bool = False) -> bool:
    value = env.get(key, "").strip().lower()
    if not value:
        return default
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    raise ConfigError(f"{key} must be a boolean, got {env[key]!r}")


def _get_int(env: Mapping[str, str], key: str, default: int, minimum: int = 1) -> int:
    value = env.get(key, "").strip()
    if not value:
        return default
    try:
        parsed = int(value)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {value!r}") from None
    if parsed < minimum:
        raise ConfigError(f"{key} must be at least {minimum}, got {parsed}")
    return parsed


def _get_float(env: Mapping[str, str], key: str, default: float) -> float:
    value = env.get(key, "").strip()
    if not value:
        return default
    try:
        parsed = float(value)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {value!r}") from None
    if parsed < 0:
        raise ConfigError(f"{key} must not be negative, got {parsed}")
    return parsed


def _get_list(env: Mapping[str, str], key: str) -> List[str]:
    """Comma-separated values, order kept, blanks dropped."""
    return [item.strip() for item in env.get(key, "").split(",") if item.strip()]


@dataclass
class RetrySettings:
    max_attempts: int = DEFAULT_RETRY_ATTEMPTS
    base_delay: float = DEFAULT_RETRY_DELAY

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "RetrySettings":
        return cls(
            max_attempts=_get_int(env, "LIST_RETRY_ATTEMPTS", DEFAULT_RETRY_ATTEMPTS),
            base_delay=_get_float(env, "LIST_RETRY_DELAY", DEFAULT_RETRY_DELAY),
        )


@dataclass
class CleanupOpts:
    retention_limit: int = DEFAULT_RETENTION_LIMIT
    dry_run: bool = False
    retry: RetrySettings = field(default_factory=RetrySettings)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "CleanupOpts":
        env = os.environ if env is None else env
        return cls(
            retention_limit=_get_int(env, "JOB_RETENTION_LIMIT", DEFAULT_RETENTION_LIMIT),
            dry_run=_get_bool(env, "CLEANUP_DRY_RUN"),
            retry=RetrySettings.from_env(env),
        )


@dataclass
class CreateOpts:
    template_path: Path
    image_pull_secrets: List[str] = field(default_factory=list)
    label_selector: str = ""
    allow_concurrency: bool = False
    retry: RetrySettings = field(default_factory=RetrySettings)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "CreateOpts":
        env = os.environ if env is None else env
        return cls(
            template_path=Path(_get_str(env, "JOB_TEMPLATE_PATH", required=True)),
            image_pull_secrets=_get_list(env, "IMAGE_PULL_SECRETS"),
            label_selector=_get_str(env, "LABEL_SELECTOR"),
            allow_concurrency=_get_bool(env, "ALLOW_CONCURRENCY"),
            retry=RetrySettings.from_env(env),
        )


@dataclass
class RemoveAllOpts:
    label_selector: str
    namespace: str = DEFAULT_NAMESPACE
    retry: RetrySettings = field(default_factory=RetrySettings)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "RemoveAllOpts":
        env = os.environ if env is None else env
        return cls(
            # An empty selector would match every job in the namespace
            label_selector=_get_str(env, "LABEL_SELECTOR", required=True),
            namespace=_get_str(env, "JOB_NAMESPACE", default=DEFAULT_NAMESPACE),
            retry=RetrySettings.from_env(env),
        )


@dataclass
class LogSettings:
    level: str = "INFO"
    log_dir: Optional[Path] = None

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "LogSettings":
        env = os.environ if env is None else env
        level = _get_str(env, "LOG_LEVEL", default="INFO").upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ConfigError(f"LOG_LEVEL must be a logging level name, got {level!r}")
        log_dir = _get_str(env, "LOG_DIR")
        return cls(level=level, log_dir=Path(log_dir) if log_dir else None)
