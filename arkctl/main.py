"""Runtime wiring: configuration, loggers, console client, and shared state.

One ``AppState`` holds every setting and collaborator the services read
through ``ctx``. It is built once per process by ``build_runtime``.
"""

import os
from pathlib import Path
import threading

from arkctl.core.config import (
    default_script_runner,
    make_secret_reader,
    resolve_display_tz,
)
from arkctl.core.logging_setup import build_loggers
from arkctl.core.web_config import WebConfig
from arkctl.services.backup_manager import COMPRESSION_METHODS, DEFAULT_MAX_BACKUP_COUNT, build_exclusion_rule
from arkctl.services.console_client import ConsoleClient
from arkctl.state import AppState, BackupState

CONFIG_ENV_VAR = "ARKCTL_CONFIG"
DEFAULT_CONFIG_NAME = "arkctl.env"


def resolve_config_path(config_path=None):
    """Return the config file path: explicit, ``$ARKCTL_CONFIG``, or ``./arkctl.env``."""
    if config_path:
        return Path(config_path).resolve()
    from_env = (os.environ.get(CONFIG_ENV_VAR) or "").strip()
    if from_env:
        return Path(from_env).resolve()
    return (Path.cwd() / DEFAULT_CONFIG_NAME).resolve()


def build_runtime(config_path=None):
    """Load configuration and return the populated runtime state."""
    web_conf_path = resolve_config_path(config_path)
    base_dir = web_conf_path.parent
    cfg = WebConfig(web_conf_path, base_dir)
    _cfg_str = cfg.get_str
    _cfg_int = cfg.get_int
    _cfg_float = cfg.get_float
    _cfg_path = cfg.get_path

    DISPLAY_TZ = resolve_display_tz(_cfg_str("DISPLAY_TZ", ""))
    LOG_DIR = _cfg_path("LOG_DIR", base_dir / "logs")
    log_arkctl_action, log_arkctl_log, log_arkctl_exception = build_loggers(DISPLAY_TZ, LOG_DIR)

    # Server data and archive locations.
    DATA_DIR = _cfg_path("DATA_DIR", base_dir / "ShooterGame" / "Saved" / "SavedArks")
    BACKUP_DIR = _cfg_path("BACKUP_DIR", base_dir / "backups")
    MAX_BACKUP_COUNT = _cfg_int("MAX_BACKUP_COUNT", DEFAULT_MAX_BACKUP_COUNT, minimum=1)
    BACKUP_INTERVAL_SECONDS = max(60, int(_cfg_float("BACKUP_INTERVAL_MINUTES", 60.0, minimum=1.0) * 60))
    BACKUP_COMPRESSION = _cfg_str("BACKUP_COMPRESSION", "deflate").lower()
    if BACKUP_COMPRESSION not in COMPRESSION_METHODS:
        log_arkctl_log(
            "config",
            command="BACKUP_COMPRESSION",
            rejection_message=f"Unknown compression {BACKUP_COMPRESSION!r}; using deflate.",
        )
        BACKUP_COMPRESSION = "deflate"
    backup_exclude = build_exclusion_rule(
        cfg.get_list("BACKUP_EXCLUDE_SUFFIXES", ("bak",)),
        cfg.get_list("BACKUP_CANONICAL_FILES", ()),
    )

    # Remote console endpoint and command vocabulary.
    RCON_HOST = _cfg_str("RCON_HOST", "127.0.0.1")
    RCON_PORT = _cfg_int("RCON_PORT", 32330, minimum=1)
    RCON_LEGACY_DIALECT = cfg.get_bool("RCON_LEGACY_DIALECT", True)
    RCON_TIMEOUT_SECONDS = _cfg_float("RCON_TIMEOUT_SECONDS", 5.0, minimum=0.1)
    rcon_password_file = _cfg_path("RCON_PASSWORD_FILE", base_dir / "rcon_password")
    STATUS_COMMAND = _cfg_str("STATUS_COMMAND", "ListPlayers")
    SAVE_COMMAND = _cfg_str("SAVE_COMMAND", "SaveWorld")
    EXIT_COMMAND = _cfg_str("EXIT_COMMAND", "DoExit")
    BROADCAST_COMMAND = _cfg_str("BROADCAST_COMMAND", "Broadcast")
    SAVE_ATTEMPTS = _cfg_int("SAVE_ATTEMPTS", 3, minimum=1)
    SAVE_RETRY_DELAY_SECONDS = _cfg_float("SAVE_RETRY_DELAY_SECONDS", 1.0, minimum=0.0)
    console = ConsoleClient(
        RCON_HOST,
        RCON_PORT,
        make_secret_reader(rcon_password_file),
        legacy_dialect=RCON_LEGACY_DIALECT,
        timeout=RCON_TIMEOUT_SECONDS,
    )

    # Administrative scripts.
    SCRIPT_RUNNER = _cfg_str("SCRIPT_RUNNER", default_script_runner())
    SCRIPT_TIMEOUT_SECONDS = _cfg_float("SCRIPT_TIMEOUT_SECONDS", 120.0, minimum=1.0)
    scripts_dir = base_dir / "scripts"
    script_ext = ".ps1" if os.name == "nt" else ".sh"
    START_SERVER_SCRIPT = _cfg_path("START_SERVER_SCRIPT", scripts_dir / f"start_server{script_ext}")
    TUNNEL_CHECK_SCRIPT = _cfg_path("TUNNEL_CHECK_SCRIPT", scripts_dir / f"check_connection{script_ext}")
    TUNNEL_RESTART_SCRIPT = _cfg_path("TUNNEL_RESTART_SCRIPT", scripts_dir / f"reload_connection{script_ext}")

    WEB_HOST = _cfg_str("WEB_HOST", "127.0.0.1")
    WEB_PORT = _cfg_int("WEB_PORT", 8080, minimum=1)

    # Serializes save+backup and every save/exit/start sequence.
    lifecycle_lock = threading.RLock()
    backup_state = BackupState(
        lock=threading.Lock(),
        periodic_runs=0,
        last_run_at=None,
        last_kind="",
        last_skip_reason="",
    )

    return AppState.from_namespace(locals())
