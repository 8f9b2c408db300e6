"""
Environment configuration for the CuraGo triage service.

Values come from the process environment, optionally seeded from a .env file.
A missing Gemini key is not an error: the gateway runs in fallback-only mode.
"""
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_MODEL = "gemini-2.5-flash"
FALLBACK_MODEL = "gemini-2.5-pro"
DEFAULT_TIMEOUT_MS = 30000
DEFAULT_RETRY_DELAY_MS = 5000
DEFAULT_PORT = 4001


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    gemini_api_key: Optional[str] = None
    default_model: str = DEFAULT_MODEL
    fallback_model: str = FALLBACK_MODEL
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    retry_delay_ms: int = DEFAULT_RETRY_DELAY_MS
    port: int = DEFAULT_PORT
    environment: str = "development"
    log_json: bool = True
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    @property
    def model_priority(self) -> list[str]:
        """Models in the order the gateway should try them (no duplicates)."""
        models = []
        for name in (self.default_model, self.fallback_model):
            if name and name not in models:
                models.append(name)
        return models

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0

    @property
    def retry_delay_seconds(self) -> float:
        return self.retry_delay_ms / 1000.0


def load_settings() -> Settings:
    """Build settings from the current environment."""
    origins = os.getenv("CORS_ORIGINS", "*")
    return Settings(
        gemini_api_key=os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY") or None,
        default_model=os.getenv("GEMINI_DEFAULT_MODEL", DEFAULT_MODEL),
        fallback_model=os.getenv("GEMINI_FALLBACK_MODEL", FALLBACK_MODEL),
        timeout_ms=max(1, _int_env("GEMINI_API_TIMEOUT", DEFAULT_TIMEOUT_MS)),
        retry_delay_ms=max(0, _int_env("GEMINI_RETRY_DELAY", DEFAULT_RETRY_DELAY_MS)),
        port=_int_env("PORT", DEFAULT_PORT),
        environment=os.getenv("NODE_ENV", "development"),
        log_json=_bool_env("LOG_JSON", True),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()] or ["*"],
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
