"""Append-only action and system logs.

Each event is one sanitized line::

    Oct 19 14:02:11 <10.0.0.4> [arkctl/restart] force rejected: Players are online.

Inside a Flask request the caller is the HTTP client address; CLI runs and
background watchers log as ``arkctl``.
"""

from datetime import datetime
import os
import traceback

from flask import has_request_context, request

LOG_ROTATE_MAX_BYTES = 5 * 1024 * 1024
LOG_ROTATE_BACKUP_COUNT = 5
DEFAULT_CALLER = "arkctl"
TIMESTAMP_FORMAT = "%b %d %H:%M:%S"
TRACEBACK_LIMIT = 700
_FORWARDING_HEADERS = ("X-Forwarded-For", "X-Real-IP")


def sanitize_log_fragment(text):
    """Collapse all whitespace so an event always stays on one line."""
    if text is None:
        return ""
    return " ".join(str(text).split())


def get_caller_id():
    if not has_request_context():
        return DEFAULT_CALLER
    for header in _FORWARDING_HEADERS:
        # Proxies append hops; the left-most entry is the client.
        value = (request.headers.get(header) or "").split(",")[0].strip()
        if value:
            return value
    return (request.remote_addr or "").strip() or DEFAULT_CALLER


def _rotated(path, index):
    return path.with_name(f"{path.name}.{index}")


def rotate_log_file(path, max_bytes=LOG_ROTATE_MAX_BYTES, backup_count=LOG_ROTATE_BACKUP_COUNT):
    """Shift ``path`` to ``path.1`` (older copies up by one) once it reaches ``max_bytes``."""
    if max_bytes <= 0 or backup_count <= 0:
        return
    try:
        if not path.exists() or path.stat().st_size < max_bytes:
            return
        for index in range(backup_count - 1, 0, -1):
            if _rotated(path, index).exists():
                os.replace(_rotated(path, index), _rotated(path, index + 1))
        os.replace(path, _rotated(path, 1))
    except OSError:
        # A failed rotation keeps appending to the current file.
        pass


def format_log_line(display_tz, action, command=None, rejection_message=None):
    timestamp = datetime.now(tz=display_tz).strftime(TIMESTAMP_FORMAT)
    caller = sanitize_log_fragment(get_caller_id()) or "unknown"
    parts = [f"{timestamp} <{caller}> [arkctl/{sanitize_log_fragment(action) or 'unknown'}]"]
    command_text = sanitize_log_fragment(command)
    if command_text:
        parts.append(command_text)
    rejection_text = sanitize_log_fragment(rejection_message)
    if rejection_text:
        parts.append(f"rejected: {rejection_text}")
    return " ".join(parts)


def append_log_line(log_file, line):
    """Append one line, creating the log directory on first use."""
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        rotate_log_file(log_file)
        with log_file.open("a", encoding="utf-8") as f:
            f.write(line + "\n")
    except OSError:
        # Logging must not break control operations.
        pass


def make_log_action(display_tz, log_file):
    """Return ``log_action(action, command=None, rejection_message=None)`` writing to ``log_file``."""

    def log_action(action, command=None, rejection_message=None):
        append_log_line(log_file, format_log_line(display_tz, action, command, rejection_message))

    return log_action


def describe_exception(context, exc):
    """Summarize ``exc`` as ``context: Type: text | traceback: ...``."""
    message = f"{context}: {type(exc).__name__}"
    text = sanitize_log_fragment(exc)
    if text:
        message += f": {text}"
    tb = sanitize_log_fragment(" | ".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    if tb:
        message += f" | traceback: {tb[:TRACEBACK_LIMIT]}"
    return message


def make_log_exception(log_action):
    """Return ``log_exception(context, exc)`` that records an ``error`` event through ``log_action``."""

    def log_exception(context, exc):
        log_action("error", rejection_message=describe_exception(context, exc))

    return log_exception
