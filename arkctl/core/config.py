"""Runtime configuration helpers for arkctl."""

import os
import shlex
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

WINDOWS_SCRIPT_RUNNER = "powershell -NonInteractive -File"


def apply_default_flask_config(app):
    """Keep outcome payload keys in insertion order (ok, kind, message first)."""
    app.json.sort_keys = False


def resolve_display_tz(name):
    """Return the configured display timezone, or the host's local zone."""
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            pass
    return datetime.now().astimezone().tzinfo


def trim_line_terminator(text):
    """Drop one trailing ``\\n`` or ``\\r\\n`` from ``text``."""
    value = text or ""
    if value.endswith("\n"):
        value = value[:-1]
        if value.endswith("\r"):
            value = value[:-1]
    return value


def make_secret_reader(secret_file, env_name="ARKCTL_RCON_PASSWORD"):
    """Build a callable returning the RCON secret, re-read on every call."""

    def read_secret():
        """Return the secret from env or file; ``None`` when unavailable."""
        from_env = os.environ.get(env_name)
        if from_env:
            return trim_line_terminator(from_env)
        try:
            raw = secret_file.read_text(encoding="utf-8")
        except OSError:
            return None
        value = trim_line_terminator(raw)
        return value or None

    return read_secret


def default_script_runner():
    """Return the platform default interpreter prefix for admin scripts."""
    if os.name == "nt":
        return WINDOWS_SCRIPT_RUNNER
    return ""


def split_runner(runner):
    """Split a configured script runner into argv tokens."""
    if not runner:
        return []
    return shlex.split(runner, posix=os.name != "nt")
