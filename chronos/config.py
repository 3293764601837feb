import os
from pathlib import Path

import yaml

CHRONOS_DIR = Path(os.environ.get("CHRONOS_DIR") or Path.home() / ".chronos")
DB_PATH = CHRONOS_DIR / "chronos.db"
CONFIG_PATH = CHRONOS_DIR / "config.yaml"

DEFAULT_POINTS_PER_LEVEL = 100
DEFAULT_COMPLETION_POINTS = 10
DEFAULT_KEYRING_SERVICE = "chronos"
STORE_BACKENDS = ("sqlite", "keyring", "memory")


class Config:
    """Single-instance config manager. Load once, cache in memory."""

    _instance: "Config | None" = None
    _data: dict[str, object]

    def __new__(cls) -> "Config":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._data = {}
            cls._instance._load()
        return cls._instance

    def _load(self) -> None:
        """Load config from disk."""
        if not CONFIG_PATH.exists():
            self._data = {}
            return
        try:
            with CONFIG_PATH.open() as f:
                loaded = yaml.safe_load(f)
        except (OSError, yaml.YAMLError):
            loaded = None
        self._data = loaded if isinstance(loaded, dict) else {}

    def _save(self) -> None:
        """Persist config to disk."""
        CHRONOS_DIR.mkdir(parents=True, exist_ok=True)
        with CONFIG_PATH.open("w") as f:
            yaml.dump(self._data, f, default_flow_style=False, allow_unicode=True)

    def reload(self) -> None:
        self._load()

    def get(self, key: str, default: object = None) -> object:
        """Get config value."""
        return self._data.get(key, default)

    def set(self, key: str, value: object) -> None:
        """Set config value and persist."""
        self._data[key] = value
        self._save()


def _positive_int(key: str, default: int) -> int:
    val = Config().get(key)
    if isinstance(val, bool) or not isinstance(val, int) or val <= 0:
        return default
    return val


def get_points_per_level() -> int:
    return _positive_int("points_per_level", DEFAULT_POINTS_PER_LEVEL)


def get_completion_points() -> int:
    return _positive_int("completion_points", DEFAULT_COMPLETION_POINTS)


def get_store_backend() -> str:
    """Storage backend for the aggregate: sqlite (default), keyring or memory."""
    val = str(Config().get("store", "")).strip().lower()
    return val if val in STORE_BACKENDS else "sqlite"


def get_keyring_service() -> str:
    val = Config().get("keyring_service")
    return str(val).strip() if val else DEFAULT_KEYRING_SERVICE
