"""Command-name lookup table over the lifecycle, backup, and tunnel operations."""

from dataclasses import dataclass, field
import re
from typing import Callable

from arkctl.core.errors import ArkctlError, RestorePartial, RestorePathEscape
from arkctl.services import lifecycle

FORCE_TOKEN = "force"
_ARG_SPLIT_RE = re.compile(r"[\s,]+")


def split_args(arg_text):
    """Split free-form argument text on whitespace and commas."""
    return [token for token in _ARG_SPLIT_RE.split((arg_text or "").strip()) if token]


def parse_force(arg_text):
    """Return ``(remaining_tokens, force)``.

    ``force`` is set only when the last token is exactly ``force``;
    ``forceful`` or ``force!`` are ordinary arguments.
    """
    tokens = split_args(arg_text)
    if tokens and tokens[-1] == FORCE_TOKEN:
        return tokens[:-1], True
    return tokens, False


@dataclass(frozen=True)
class Command:
    name: str
    handler: Callable
    description: str
    aliases: tuple = field(default_factory=tuple)
    usage: str = ""

    def to_dict(self):
        return {
            "name": self.name,
            "aliases": list(self.aliases),
            "description": self.description,
            "usage": self.usage or self.name,
        }


def _status(ctx, arg_text):
    return lifecycle.status_report(ctx)


def _save(ctx, arg_text):
    _, force = parse_force(arg_text)
    return lifecycle.save(ctx, force=force)


def _start(ctx, arg_text):
    return lifecycle.start(ctx)


def _restart(ctx, arg_text):
    _, force = parse_force(arg_text)
    return lifecycle.restart(ctx, force=force)


def _shutdown(ctx, arg_text):
    _, force = parse_force(arg_text)
    return lifecycle.shutdown(ctx, force=force)


def _list_backups(ctx, arg_text):
    return lifecycle.list_backups(ctx)


def _rollback(ctx, arg_text):
    tokens, force = parse_force(arg_text)
    if len(tokens) > 1:
        return {
            "ok": False,
            "kind": "argument_invalid",
            "message": "Specify exactly one backup: rollback <backup> force",
        }
    archive_id = tokens[0] if tokens else ""
    return lifecycle.rollback(ctx, archive_id, confirmed=force)


def _players(ctx, arg_text):
    return lifecycle.list_players(ctx)


def _broadcast(ctx, arg_text):
    return lifecycle.broadcast(ctx, arg_text)


def _reload_tunnel(ctx, arg_text):
    _, force = parse_force(arg_text)
    return lifecycle.reload_tunnel(ctx, force=force)


def _check_tunnel(ctx, arg_text):
    return lifecycle.check_tunnel(ctx)


COMMANDS = (
    Command("status", _status, "Report whether the server is running and how many players are online.", ("check_server",)),
    Command("save", _save, "Save the world and create a backup archive.", usage="save [force]"),
    Command("start", _start, "Start the server if it is stopped.", ("start_server",)),
    Command(
        "restart",
        _restart,
        "Save, stop, and start the server; refused while players are online.",
        ("restart_server",),
        usage="restart [force]",
    ),
    Command(
        "shutdown",
        _shutdown,
        "Save and stop the server; refused while players are online.",
        ("shutdown_server",),
        usage="shutdown [force]",
    ),
    Command("backups", _list_backups, "List the backups available for rollback.", ("listbackups",)),
    Command(
        "rollback",
        _rollback,
        "Restore a backup over the data directory while the server is stopped.",
        usage="rollback <backup> force",
    ),
    Command("players", _players, "List connected players.", ("listplayers",)),
    Command("broadcast", _broadcast, "Send a message to every player in game.", usage="broadcast <message>"),
    Command(
        "reload_tunnel",
        _reload_tunnel,
        "Restart the port-forwarding tunnel helper; refused while players are online.",
        ("reload_connection",),
        usage="reload_tunnel [force]",
    ),
    Command("check_tunnel", _check_tunnel, "Report whether the tunnel helper is running.", ("check_connection",)),
)

def _build_index(commands):
    index = {}
    for command in commands:
        for key in (command.name,) + tuple(command.aliases):
            index[key] = command
    return index


_COMMAND_INDEX = _build_index(COMMANDS)


def resolve_command(name):
    """Return the command registered under ``name`` or one of its aliases."""
    return _COMMAND_INDEX.get((name or "").strip().lower())


def list_commands():
    return [command.to_dict() for command in COMMANDS]


def error_outcome(exc):
    """Convert an arkctl exception into an outcome payload."""
    payload = {"ok": False, "kind": exc.kind, "message": str(exc)}
    if isinstance(exc, RestorePartial):
        payload["applied"] = exc.applied_count
    if isinstance(exc, RestorePathEscape):
        payload["entry"] = exc.entry_name
    return payload


def dispatch(ctx, name, arg_text=""):
    """Run one command by name and return its outcome payload."""
    command = resolve_command(name)
    if command is None:
        return {"ok": False, "kind": "unknown_command", "message": f"Unknown command: {name}"}
    try:
        outcome = command.handler(ctx, arg_text or "")
    except ArkctlError as exc:
        ctx.log_arkctl_action(command.name, command=arg_text, rejection_message=f"{exc.kind}: {exc}")
        outcome = error_outcome(exc)
    outcome.setdefault("command", command.name)
    return outcome
