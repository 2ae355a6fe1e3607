"""Application-wide configuration loaded from environment variables."""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()


def _parse_api_keys(raw: str) -> tuple[str, ...]:
    """Split a comma-separated key list, dropping blanks."""
    return tuple(k.strip() for k in raw.split(",") if k.strip())


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in ("1", "true", "yes", "on")


# Redis
REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379")

# Game used for the per-game scope when a run carries no game_id
DEFAULT_GAME_ID: str = os.getenv("GAME_ID", "echorun")

# Comma-separated; empty disables the X-API-Key check
API_KEYS: tuple[str, ...] = _parse_api_keys(os.getenv("API_KEYS", ""))

# Persist the raw run next to the persona update
STORE_RUNS: bool = _parse_bool(os.getenv("STORE_RUNS", "false"))

PERSONA_LIST_LIMIT: int = int(os.getenv("PERSONA_LIST_LIMIT", "10"))

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# ── Server Configuration ─────────────────────────────────────────────────

SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int = int(os.getenv("SERVER_PORT", "7769"))


@dataclass(frozen=True)
class Settings:
    """Explicit configuration handed to the coordinator, stores and app.

    Nothing below the HTTP layer reads the environment; build one of these
    with ``Settings.from_env()`` (or by hand in tests) and pass it in.
    """

    redis_url: str = "redis://localhost:6379"
    default_game_id: str = "echorun"
    api_keys: tuple[str, ...] = field(default_factory=tuple)
    store_runs: bool = False
    persona_list_limit: int = 10

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            redis_url=REDIS_URL,
            default_game_id=DEFAULT_GAME_ID,
            api_keys=API_KEYS,
            store_runs=STORE_RUNS,
            persona_list_limit=PERSONA_LIST_LIMIT,
        )
