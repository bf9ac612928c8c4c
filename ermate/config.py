"""
Runtime configuration.

Defaults can be overridden through environment variables:
- ERMATE_HOST: interface the HTTP API binds to
- ERMATE_PORT: port of the HTTP API
- ERMATE_MAX_HISTORY: number of undo steps kept by the store
- ERMATE_CORS_ORIGINS: comma-separated list of allowed frontend origins
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8765
DEFAULT_MAX_HISTORY = 100
DEFAULT_CORS_ORIGINS = (
    "http://localhost:5173",
    "http://localhost:3000",
    "http://127.0.0.1:5173",
)


@dataclass(frozen=True)
class Settings:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    max_history: int = DEFAULT_MAX_HISTORY
    cors_origins: tuple[str, ...] = DEFAULT_CORS_ORIGINS


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Read settings from the environment (os.environ by default)."""
    env = os.environ if environ is None else environ

    origins = env.get("ERMATE_CORS_ORIGINS")
    if origins:
        cors_origins = tuple(o.strip() for o in origins.split(",") if o.strip())
    else:
        cors_origins = DEFAULT_CORS_ORIGINS

    return Settings(
        host=env.get("ERMATE_HOST") or DEFAULT_HOST,
        port=_env_int(env, "ERMATE_PORT", DEFAULT_PORT),
        max_history=_env_int(env, "ERMATE_MAX_HISTORY", DEFAULT_MAX_HISTORY),
        cors_origins=cors_origins,
    )
