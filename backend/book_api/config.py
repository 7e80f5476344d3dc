import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

MEMORY_DB_PATH = ":memory:"
DEFAULT_DB_PATH = Path("books.db")
DEFAULT_DB_BUSY_TIMEOUT_MS = 5000
DEFAULT_DB_QUERY_TIMEOUT_SECONDS = 3.0
DEFAULT_SEED_DEMO_BOOKS = True
DEFAULT_API_HOST = "0.0.0.0"
DEFAULT_API_PORT = 8080
DEFAULT_API_RELOAD = False
DEFAULT_LOG_LEVEL = "INFO"
TRUE_ENV_VALUES = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True)
class Settings:
    """Application settings resolved from environment variables and defaults."""

    db_path: Path
    busy_timeout_ms: int
    query_timeout_seconds: float
    seed_demo_books: bool
    api_host: str
    api_port: int
    api_reload: bool
    log_level: str

    @property
    def is_memory_database(self) -> bool:
        """True when the store lives only in memory."""
        return str(self.db_path) == MEMORY_DB_PATH


def resolve_db_path(env_value: Optional[str]) -> Path:
    """Resolve DB_PATH, returning the default file in the working directory when unset."""
    if not env_value:
        return DEFAULT_DB_PATH

    if env_value == MEMORY_DB_PATH:
        return Path(MEMORY_DB_PATH)

    return Path(env_value).expanduser()


def _read_bool_env(env_value: Optional[str], default_value: bool) -> bool:
    """Read a switch such as SEED_DEMO_BOOKS; blank or unset keeps the default."""
    normalized = (env_value or "").strip().lower()
    if normalized == "":
        return default_value

    return normalized in TRUE_ENV_VALUES


def _read_int_env(env_value: Optional[str], default_value: int) -> int:
    """Read a whole number such as API_PORT; blank, unset or unparseable keeps the default."""
    normalized = (env_value or "").strip()
    if normalized == "":
        return default_value

    try:
        return int(normalized)
    except ValueError:
        return default_value


def _read_positive_float_env(env_value: Optional[str], default_value: float) -> float:
    """Interpret a positive float environment string, falling back on invalid values."""
    if env_value is None:
        return default_value

    try:
        parsed = float(env_value)
    except ValueError:
        return default_value

    if parsed <= 0:
        return default_value

    return parsed


def _resolve_log_level(env_value: Optional[str]) -> str:
    """Normalize LOG_LEVEL to an upper-case level name."""
    if env_value is None or env_value.strip() == "":
        return DEFAULT_LOG_LEVEL

    return env_value.strip().upper()


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Load settings, preferring environment values and filling the rest with defaults."""
    source = env if env is not None else os.environ

    return Settings(
        db_path=resolve_db_path(source.get("DB_PATH")),
        busy_timeout_ms=_read_int_env(
            source.get("DB_BUSY_TIMEOUT_MS"), DEFAULT_DB_BUSY_TIMEOUT_MS
        ),
        query_timeout_seconds=_read_positive_float_env(
            source.get("DB_QUERY_TIMEOUT_SECONDS"), DEFAULT_DB_QUERY_TIMEOUT_SECONDS
        ),
        seed_demo_books=_read_bool_env(source.get("SEED_DEMO_BOOKS"), DEFAULT_SEED_DEMO_BOOKS),
        api_host=source.get("API_HOST", DEFAULT_API_HOST),
        api_port=_read_int_env(source.get("API_PORT"), DEFAULT_API_PORT),
        api_reload=_read_bool_env(source.get("API_RELOAD"), DEFAULT_API_RELOAD),
        log_level=_resolve_log_level(source.get("LOG_LEVEL")),
    )
