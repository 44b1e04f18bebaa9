"""Runtime configuration and environment loading."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

_SETTINGS: "Settings | None" = None

DEFAULT_OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_OPENROUTER_MODEL = "mistralai/mistral-nemo"
DEFAULT_OPENROUTER_TIMEOUT = 60.0
EXPORT_MODES = {"rich", "plain"}


def reset_settings() -> None:
    """Reset cached settings. Call after changing environment variables."""
    global _SETTINGS
    _SETTINGS = None


@dataclass(frozen=True)
class Settings:
    openrouter_api_key: str
    openrouter_base_url: str = DEFAULT_OPENROUTER_BASE_URL
    openrouter_model: str = DEFAULT_OPENROUTER_MODEL
    openrouter_timeout: float = DEFAULT_OPENROUTER_TIMEOUT
    export_mode: str = "rich"


def load_env_file(path: str, *, override: bool = False) -> None:
    """Load key=value pairs from a .env-style file into os.environ.

    Keeps existing env values unless override=True.
    """
    env_path = Path(path)
    if not env_path.exists():
        return

    for raw_line in env_path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip("'").strip('"')
        if not override and key in os.environ:
            continue
        os.environ[key] = value


def _required_env(name: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise ValueError(f"Missing required environment variable: {name}")
    return value


def _optional_env(name: str, default: str) -> str:
    return os.getenv(name, default).strip() or default


def _timeout_env(name: str) -> float:
    raw = _optional_env(name, str(DEFAULT_OPENROUTER_TIMEOUT))
    try:
        timeout = float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number of seconds, got '{raw}'.") from exc
    if timeout <= 0:
        raise ValueError(f"{name} must be positive, got '{raw}'.")
    return timeout


def _export_mode_env(name: str) -> str:
    mode = _optional_env(name, "rich").lower()
    if mode not in EXPORT_MODES:
        valid = ", ".join(sorted(EXPORT_MODES))
        raise ValueError(f"Invalid {name} '{mode}'. Must be one of: {valid}")
    return mode


def get_settings() -> Settings:
    """Load settings from policy.env and environment variables."""
    global _SETTINGS
    if _SETTINGS is not None:
        return _SETTINGS

    env_file = os.getenv("POLICY_ENV_FILE", "policy.env")
    load_env_file(env_file)

    _SETTINGS = Settings(
        openrouter_api_key=_required_env("OPENROUTER_API_KEY"),
        openrouter_base_url=_optional_env("OPENROUTER_BASE_URL", DEFAULT_OPENROUTER_BASE_URL),
        openrouter_model=_optional_env("OPENROUTER_MODEL", DEFAULT_OPENROUTER_MODEL),
        openrouter_timeout=_timeout_env("OPENROUTER_TIMEOUT"),
        export_mode=_export_mode_env("EXPORT_MODE"),
    )
    return _SETTINGS
