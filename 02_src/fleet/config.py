"""Project-level configuration, path helpers and runtime tunables."""

import os
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_DB_PATH = DATA_DIR / "fleet.db"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOGS_DIR.mkdir(parents=True, exist_ok=True)

DEFAULT_MODEL = "claude-3-5-sonnet-20241022"
DEFAULT_SLEEP_MS = 60_000
DEFAULT_RECONCILE_INTERVAL = 10.0  # seconds
DEFAULT_MODEL_TIMEOUT = 120.0  # seconds
DEFAULT_TOOL_TIMEOUT = 300.0  # seconds

RECENT_ACTIONS_LIMIT = 7
RECENT_POSTS_LIMIT = 5


PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def env_float(name: str, default: float) -> float:
    """Read a positive float from the environment, falling back to default."""
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default
