from __future__ import annotations
import os
from dataclasses import dataclass

from recomposer.app.errors import ConfigError

_TRUTHY = {"1", "true", "yes", "y", "on"}


def _get_env(name: str, default: str | None = None) -> str:
    v = os.getenv(name, default)
    if v is None or v == "":
        raise ConfigError(f"Missing required env var: {name}")
    return v

def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigError(f"Env var {name} must be a number, got {raw!r}") from e

def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"Env var {name} must be an integer, got {raw!r}") from e

def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.lower().strip() in _TRUTHY

@dataclass(frozen=True)
class Settings:
    # Gemini
    gemini_api_key: str | None = None
    strategy_model: str = "gemini-3-flash-preview"
    preview_model: str = "gemini-2.5-flash-image"
    thinking_budget: int = 4096

    # Pipeline
    generator_timeout_s: float = 60.0
    preview_debounce_s: float = 0.5
    strict_runs: bool = True
    max_chat_messages: int = 50

    # Audit render
    audit_background: str = "#0f172a"
    audit_jpeg_quality: int = 90

    log_level: str = "INFO"

def load_settings() -> Settings:
    return Settings(
        gemini_api_key=os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY"),
        strategy_model=os.getenv("STRATEGY_MODEL", "gemini-3-flash-preview"),
        preview_model=os.getenv("PREVIEW_MODEL", "gemini-2.5-flash-image"),
        thinking_budget=_get_int("THINKING_BUDGET", 4096),
        generator_timeout_s=_get_float("GENERATOR_TIMEOUT_S", 60.0),
        preview_debounce_s=_get_float("PREVIEW_DEBOUNCE_S", 0.5),
        strict_runs=_get_bool("STRICT_RUNS", True),
        max_chat_messages=_get_int("MAX_CHAT_MESSAGES", 50),
        audit_background=os.getenv("AUDIT_BACKGROUND", "#0f172a"),
        audit_jpeg_quality=_get_int("AUDIT_JPEG_QUALITY", 90),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )

def require_api_key(settings: Settings) -> str:
    """Return the Gemini key or raise; only the live generators need it."""
    if not settings.gemini_api_key:
        return _get_env("GEMINI_API_KEY")
    return settings.gemini_api_key
