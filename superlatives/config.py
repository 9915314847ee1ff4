"""Runtime configuration: constants overridden by environment variables."""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from superlatives.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from superlatives.constants.session_constants import DEFAULT_QUESTIONS_FILE


@dataclass(slots=True)
class AppConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    questions_file: Path = Path(DEFAULT_QUESTIONS_FILE)
    join_url: str | None = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> AppConfig:
        env = os.environ if environ is None else environ
        return cls(
            host=env.get("SUPERLATIVES_HOST", DEFAULT_HOST),
            port=int(env.get("SUPERLATIVES_PORT", str(DEFAULT_PORT))),
            questions_file=Path(env.get("SUPERLATIVES_QUESTIONS_FILE", DEFAULT_QUESTIONS_FILE)),
            join_url=env.get("SUPERLATIVES_JOIN_URL") or None,
            log_level=env.get("SUPERLATIVES_LOG_LEVEL", "INFO"),
        )
