"""Environment-driven settings for the service.

Values are read once at startup (after `load_dotenv()` in `main.py`) and
kept in an immutable `Settings` instance on `app.state`. Nothing re-reads
the environment per request, so the session backend chosen at startup is
the one used for the lifetime of the process.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

DEFAULT_SESSION_TTL_SECONDS = 60 * 60
DEFAULT_CLEANUP_INTERVAL_SECONDS = 10 * 60
DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024
DEFAULT_FRONTEND_URL = "http://localhost:3000"
DEFAULT_OPENAI_MODEL = "gpt-5"


@dataclass(frozen=True)
class Settings:
    """Runtime configuration.

    Attributes:
        openai_api_key: Key for the OpenAI client; None disables AI calls.
        openai_model: Responses API model name.
        session_database_dir: Directory holding `sessions.db`. When set the
            persistent session backend is used; otherwise sessions live in memory.
        session_ttl_seconds: Sliding expiry window for sessions.
        cleanup_interval_seconds: Delay between background expiry sweeps.
        max_upload_bytes: Largest accepted image upload.
        frontend_url: Origin allowed by CORS.
    """

    openai_api_key: Optional[str] = None
    openai_model: str = DEFAULT_OPENAI_MODEL
    session_database_dir: Optional[Path] = None
    session_ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS
    cleanup_interval_seconds: int = DEFAULT_CLEANUP_INTERVAL_SECONDS
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    frontend_url: str = DEFAULT_FRONTEND_URL

    @property
    def persistent_sessions(self) -> bool:
        return self.session_database_dir is not None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables.

        Raises:
            RuntimeError: If a numeric variable is not a positive integer.
        """
        env = os.environ if environ is None else environ

        db_dir = (env.get("SESSION_DATABASE_DIR") or "").strip()
        return cls(
            openai_api_key=(env.get("OPENAI_API_KEY") or "").strip() or None,
            openai_model=(env.get("OPENAI_MODEL") or "").strip() or DEFAULT_OPENAI_MODEL,
            session_database_dir=Path(db_dir).expanduser() if db_dir else None,
            session_ttl_seconds=_positive_int(env, "SESSION_TTL_SECONDS", DEFAULT_SESSION_TTL_SECONDS),
            cleanup_interval_seconds=_positive_int(
                env, "SESSION_CLEANUP_INTERVAL_SECONDS", DEFAULT_CLEANUP_INTERVAL_SECONDS
            ),
            max_upload_bytes=_positive_int(env, "MAX_UPLOAD_BYTES", DEFAULT_MAX_UPLOAD_BYTES),
            frontend_url=(env.get("FRONTEND_URL") or "").strip() or DEFAULT_FRONTEND_URL,
        )


def _positive_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name}={raw!r} is not an integer.") from exc
    if value <= 0:
        raise RuntimeError(f"{name} must be positive, got {value}.")
    return value
