"""Runtime settings for fetching, probing, and caching manifests."""

from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic import BaseModel

ENV_PREFIX = "MANIFEST_ENGINE_"

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/130.0.0.0 Safari/537.36"
)


class EngineSettings(BaseModel):
    """Timeouts, retry budgets, and cache lifetimes used by the engine."""

    fetch_timeout_ms: int = 10_000
    fetch_max_retries: int = 2
    retry_delay_ms: int = 500
    probe_timeout_ms: int = 10_000
    probe_max_retries: int = 2
    max_probe_candidates: int = 3
    light_timeout_ms: int = 5_000
    light_range_bytes: int = 4_096
    content_cache_ttl: float = 60.0
    user_agent: str = DEFAULT_USER_AGENT


def _env_str(name: str) -> str | None:
    value = os.getenv(ENV_PREFIX + name)
    if value is None or value == "":
        return None
    return value


def _env_int(name: str) -> int | None:
    value = _env_str(name)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _env_bool(name: str) -> bool:
    value = _env_str(name)
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str) -> float | None:
    value = _env_str(name)
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def load_settings() -> EngineSettings:
    """Builds settings from ``MANIFEST_ENGINE_*`` variables (and ``.env``)."""

    load_dotenv()
    overrides = {}
    for field_name, field in EngineSettings.model_fields.items():
        env_name = field_name.upper()
        if field.annotation is int:
            value = _env_int(env_name)
        elif field.annotation is float:
            value = _env_float(env_name)
        else:
            value = _env_str(env_name)
        if value is not None:
            overrides[field_name] = value
    return EngineSettings(**overrides)
