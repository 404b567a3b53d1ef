"""Typed application runtime state container."""
from dataclasses import dataclass
from collections.abc import Iterator, MutableMapping
from typing import Any


@dataclass
class BackupState:
    """Periodic backup bookkeeping written by the watcher and read by the status report."""
    lock: Any
    periodic_runs: int
    last_run_at: Any
    last_kind: str
    last_skip_reason: str


_STATE_CORE_KEYS = (
    "BACKUP_COMPRESSION",
    "BACKUP_DIR",
    "BACKUP_INTERVAL_SECONDS",
    "BROADCAST_COMMAND",
    "DATA_DIR",
    "DISPLAY_TZ",
    "EXIT_COMMAND",
    "LOG_DIR",
    "MAX_BACKUP_COUNT",
    "RCON_HOST",
    "RCON_LEGACY_DIALECT",
    "RCON_PORT",
    "RCON_TIMEOUT_SECONDS",
    "SAVE_ATTEMPTS",
    "SAVE_COMMAND",
    "SAVE_RETRY_DELAY_SECONDS",
    "SCRIPT_RUNNER",
    "SCRIPT_TIMEOUT_SECONDS",
    "START_SERVER_SCRIPT",
    "STATUS_COMMAND",
    "TUNNEL_CHECK_SCRIPT",
    "TUNNEL_RESTART_SCRIPT",
    "WEB_HOST",
    "WEB_PORT",
    "backup_state",
)

_STATE_BINDING_KEYS = (
    "backup_exclude",
    "console",
    "lifecycle_lock",
    "log_arkctl_action",
    "log_arkctl_exception",
    "log_arkctl_log",
)

REQUIRED_STATE_KEYS = _STATE_CORE_KEYS + _STATE_BINDING_KEYS
REQUIRED_STATE_KEY_SET = frozenset(REQUIRED_STATE_KEYS)


class AppState(MutableMapping[str, Any]):
    """Fixed-key runtime state readable as items or attributes.

    The key set is closed: unknown names raise, and members cannot be deleted.
    """

    __slots__ = ("_data",)

    def __init__(self, data: dict[str, Any]):
        missing = REQUIRED_STATE_KEY_SET.difference(data)
        if missing:
            raise KeyError(f"Missing state members: {', '.join(sorted(missing))}")
        object.__setattr__(self, "_data", {key: data[key] for key in REQUIRED_STATE_KEYS})

    @classmethod
    def from_namespace(cls, namespace: dict[str, Any]) -> "AppState":
        """Pick the state members out of a wiring namespace such as ``locals()``."""
        return cls({key: namespace[key] for key in REQUIRED_STATE_KEYS if key in namespace})

    @staticmethod
    def _member(key: str) -> str:
        if key not in REQUIRED_STATE_KEY_SET:
            raise KeyError(key)
        return key

    def __getitem__(self, key: str) -> Any:
        return self._data[self._member(key)]

    def __setitem__(self, key: str, value: Any) -> None:
        self._data[self._member(key)] = value

    def __delitem__(self, key: str) -> None:
        raise TypeError("AppState members cannot be deleted")

    def __iter__(self) -> Iterator[str]:
        return iter(REQUIRED_STATE_KEYS)

    def __len__(self) -> int:
        return len(REQUIRED_STATE_KEYS)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name) from None

    def __setattr__(self, name: str, value: Any) -> None:
        try:
            self[name] = value
        except KeyError:
            raise AttributeError(name) from None
