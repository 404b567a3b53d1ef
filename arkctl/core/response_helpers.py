"""Shared Flask response helpers for outcome payloads."""

from flask import jsonify

_CONFLICT_KINDS = frozenset({
    "already_running",
    "blocked_players",
    "blocked_running",
    "blocked_unknown",
    "blocked_unresponsive",
    "busy",
    "confirmation_required",
})
_BAD_REQUEST_KINDS = frozenset({
    "archive_required",
    "argument_invalid",
    "argument_required",
})
_NOT_FOUND_KINDS = frozenset({
    "archive_not_found",
    "unknown_command",
})
_UPSTREAM_KINDS = frozenset({
    "exit_unconfirmed",
    "players_unavailable",
    "save_failed",
    "script_error",
})


def status_code_for(outcome):
    """Map an outcome payload's kind to an HTTP status code."""
    if outcome.get("ok"):
        return 200
    kind = str(outcome.get("kind") or "")
    if kind in _CONFLICT_KINDS:
        return 409
    if kind in _BAD_REQUEST_KINDS:
        return 400
    if kind in _NOT_FOUND_KINDS:
        return 404
    if kind in _UPSTREAM_KINDS or kind.startswith("console_"):
        return 502
    return 500


def outcome_response(outcome):
    """Return the outcome as JSON with its derived status code."""
    return jsonify(outcome), status_code_for(outcome)


def internal_error_response():
    """Return generic internal-error response payload."""
    return jsonify({"ok": False, "kind": "internal_error", "message": "Internal server error."}), 500
