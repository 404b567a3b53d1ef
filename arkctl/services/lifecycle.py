"""Player-gated server lifecycle: status, save+backup, restart, shutdown, start."""

from datetime import datetime
import time

from arkctl.core.errors import BackupError, ConsoleError, ConsoleUnreachable, ScriptError
from arkctl.core.filesystem_utils import format_file_size
from arkctl.core.models import ServerStatus
from arkctl.services import admin_scripts
from arkctl.services import backup_manager
from arkctl.services import rollback as rollback_engine

MODE_RESTART = "restart"
MODE_SHUTDOWN = "shutdown"


def _outcome(ok, kind, message, **extra):
    """Return a normalized outcome payload."""
    payload = {"ok": bool(ok), "kind": kind, "message": message}
    payload.update(extra)
    return payload


def _player_lines(response):
    return [line for line in (response or "").splitlines() if "," in line]


def parse_player_count(response):
    """Count connected players: one comma-delimited entry per line."""
    return len(_player_lines(response))


def parse_player_names(response):
    """Return the first comma-separated field of each player entry."""
    return [line.split(",", 1)[0].strip() for line in _player_lines(response)]


def query_status(ctx):
    """Query the server once and derive its current state.

    An empty reply or a refused connection reads as stopped. Auth, framing,
    and timeout failures read as unknown so destructive gates stay closed.
    """
    try:
        response = ctx.console.execute(ctx.STATUS_COMMAND)
    except ConsoleUnreachable as exc:
        return ServerStatus.stopped(str(exc))
    except ConsoleError as exc:
        return ServerStatus.unknown(f"{exc.kind}: {exc}")
    if not response.strip():
        return ServerStatus.stopped("empty status response")
    return ServerStatus.running(parse_player_count(response))


def periodic_backup_summary(ctx):
    """Describe the periodic backup watcher's last pass."""
    with ctx.backup_state.lock:
        runs = ctx.backup_state.periodic_runs
        last_run_at = ctx.backup_state.last_run_at
        last_kind = ctx.backup_state.last_kind
        skip_reason = ctx.backup_state.last_skip_reason
    if last_run_at is not None:
        last_run_at = datetime.fromtimestamp(last_run_at, tz=ctx.DISPLAY_TZ).isoformat(timespec="seconds")
    return {
        "interval_seconds": ctx.BACKUP_INTERVAL_SECONDS,
        "completed_runs": runs,
        "last_run_at": last_run_at,
        "last_kind": last_kind or None,
        "last_skip_reason": skip_reason or None,
    }


def status_report(ctx):
    """Return the current status, plus the periodic backup summary, as an outcome payload."""
    status = query_status(ctx)
    if status.is_running:
        message = f"Server is running with {status.player_count} player(s) online."
    elif status.is_stopped:
        message = "Server is stopped."
    else:
        message = f"Server state is unknown ({status.detail})."
    periodic = periodic_backup_summary(ctx)
    if periodic["last_run_at"]:
        message += f" Last periodic backup pass at {periodic['last_run_at']}: {periodic['last_kind']}."
    if periodic["last_skip_reason"]:
        message += f" Last periodic pass skipped ({periodic['last_skip_reason']})."
    return _outcome(True, status.state, message, status=status.to_dict(), periodic_backup=periodic)


def create_backup(ctx, now=None):
    """Snapshot the data directory with the configured backup policy."""
    return backup_manager.create_backup(
        ctx.DATA_DIR,
        ctx.BACKUP_DIR,
        exclude=ctx.backup_exclude,
        max_backups=ctx.MAX_BACKUP_COUNT,
        compression=ctx.BACKUP_COMPRESSION,
        now=now,
        log_action=ctx.log_arkctl_action,
    )


def _save_locked(ctx, trigger):
    """Issue the save command with bounded retries, then back up on success."""
    attempts = []
    max_attempts = max(1, int(ctx.SAVE_ATTEMPTS))
    for attempt in range(1, max_attempts + 1):
        if attempt > 1:
            time.sleep(ctx.SAVE_RETRY_DELAY_SECONDS)
        try:
            response = ctx.console.execute(ctx.SAVE_COMMAND)
            detail = response.strip()
        except ConsoleError as exc:
            response = ""
            detail = f"{exc.kind}: {exc}"
        ok = bool(response.strip())
        attempts.append({"attempt": attempt, "ok": ok, "detail": detail})
        if ok:
            break

    if not attempts[-1]["ok"]:
        message = f"World save failed after {len(attempts)} attempt(s)."
        ctx.log_arkctl_action("save", command=f"trigger={trigger}", rejection_message=message)
        return _outcome(False, "save_failed", message, attempts=attempts)
    try:
        record = create_backup(ctx)
    except BackupError as exc:
        message = f"World saved but backup failed: {exc}"
        ctx.log_arkctl_action("save", command=f"trigger={trigger}", rejection_message=message)
        return _outcome(False, "backup_failed", message, attempts=attempts, error_kind=exc.kind)

    ctx.log_arkctl_action("save", command=f"trigger={trigger} backup={record.identifier}")
    return _outcome(
        True,
        "saved",
        f"World saved; backup {record.identifier} created.",
        attempts=attempts,
        backup=record.to_dict(),
    )


def save(ctx, force=False, trigger="manual"):
    """Save the world and create a backup.

    Without ``force`` the call is single-flight and returns ``busy`` when
    another save, backup, or lifecycle sequence holds the lock; with
    ``force`` it waits for the lock.
    """
    lock = ctx.lifecycle_lock
    if not lock.acquire(blocking=bool(force)):
        return _outcome(False, "busy", "Another save or backup is already running.")
    try:
        return _save_locked(ctx, trigger)
    finally:
        lock.release()


def _blocked_by_status(status):
    if status.is_running:
        return _outcome(
            False,
            "blocked_players",
            f"{status.player_count} player(s) online. Add 'force' to proceed anyway.",
            status=status.to_dict(),
        )
    return _outcome(
        False,
        "blocked_unknown",
        f"Cannot confirm the server state ({status.detail}). Add 'force' to proceed anyway.",
        status=status.to_dict(),
    )


def restart_or_shutdown(ctx, mode, force=False):
    """Save, exit, and (for restart) start the server again, gated on players."""
    if mode not in (MODE_RESTART, MODE_SHUTDOWN):
        raise ValueError(f"unknown lifecycle mode: {mode!r}")
    with ctx.lifecycle_lock:
        status = query_status(ctx)
        if not (force or status.players_absent):
            ctx.log_arkctl_action(mode, rejection_message=f"Blocked: {status.state} players={status.player_count}")
            return _blocked_by_status(status)

        saved = _save_locked(ctx, mode)
        if saved["kind"] == "save_failed":
            return _outcome(
                False,
                "blocked_unresponsive",
                "Server unresponsive: the world could not be saved, so it was left running.",
                attempts=saved["attempts"],
            )
        if not saved["ok"]:
            return saved
        error_kind = None
        try:
            response = ctx.console.execute(ctx.EXIT_COMMAND)
        except ConsoleError as exc:
            response = ""
            error_kind = exc.kind
        if not response.strip():
            message = "Exit command was not confirmed; check the server status manually."
            ctx.log_arkctl_action(mode, rejection_message=message)
            return _outcome(
                False,
                "exit_unconfirmed",
                message,
                attempts=saved["attempts"],
                backup=saved.get("backup"),
                error_kind=error_kind,
            )

        if mode == MODE_SHUTDOWN:
            ctx.log_arkctl_action(mode, command=response.strip())
            return _outcome(
                True,
                "shutdown",
                f"Server shut down. {response.strip()}",
                attempts=saved["attempts"],
                backup=saved.get("backup"),
            )
        try:
            started = admin_scripts.start_server(ctx)
        except ScriptError as exc:
            message = f"Server exited but the start script failed: {exc}"
            ctx.log_arkctl_action(mode, rejection_message=message)
            return _outcome(False, exc.kind, message, attempts=saved["attempts"], backup=saved.get("backup"))
        ctx.log_arkctl_action(mode, command=started["message"])
        return _outcome(
            True,
            "restarted",
            f"Server restarted. {started['message']}",
            attempts=saved["attempts"],
            backup=saved.get("backup"),
            start_output=started["output"],
        )


def restart(ctx, force=False):
    return restart_or_shutdown(ctx, MODE_RESTART, force=force)


def shutdown(ctx, force=False):
    return restart_or_shutdown(ctx, MODE_SHUTDOWN, force=force)


def start(ctx):
    """Run the start script when the server is confirmed stopped."""
    with ctx.lifecycle_lock:
        status = query_status(ctx)
        if status.is_running:
            return _outcome(False, "already_running", "Server is already running.", status=status.to_dict())
        if not status.is_stopped:
            return _blocked_by_status(status)
        outcome = admin_scripts.start_server(ctx)
        ctx.log_arkctl_action("start", command=outcome["message"])
        return outcome


def list_players(ctx):
    """Return connected player names."""
    response = ctx.console.execute(ctx.STATUS_COMMAND)
    if not response.strip():
        return _outcome(False, "players_unavailable", "Failed to get the player list.")
    names = parse_player_names(response)
    message = "\n".join(names) if names else "No players connected."
    return _outcome(True, "players", message, players=names, player_count=len(names))


def broadcast(ctx, text):
    """Send an in-game broadcast message."""
    text = (text or "").strip()
    if not text:
        return _outcome(False, "argument_required", "A message to broadcast is required.")
    response = ctx.console.execute(f"{ctx.BROADCAST_COMMAND} {text}")
    ctx.log_arkctl_action("broadcast", command=text)
    return _outcome(True, "broadcast", response.strip() or "Message sent.")


def reload_tunnel(ctx, force=False):
    """Restart the tunnel helper unless players are online."""
    status = query_status(ctx)
    if not force and status.is_running and status.player_count > 0:
        ctx.log_arkctl_action("reload-tunnel", rejection_message=f"Blocked: players={status.player_count}")
        return _blocked_by_status(status)
    outcome = admin_scripts.restart_tunnel(ctx)
    ctx.log_arkctl_action("reload-tunnel", command=outcome["message"])
    return outcome


def check_tunnel(ctx):
    return admin_scripts.check_tunnel(ctx)


def list_backups(ctx):
    """Return available archives, oldest first."""
    records = rollback_engine.list_backups(ctx.BACKUP_DIR, display_tz=ctx.DISPLAY_TZ)
    if not records:
        return _outcome(True, "backups", "No backups available.", backups=[])
    message = "\n".join(
        f"{index}: {record.path.name} ({format_file_size(record.size_bytes)})" for index, record in enumerate(records)
    )
    return _outcome(True, "backups", message, backups=[record.to_dict() for record in records])


def rollback(ctx, archive_id, confirmed=False):
    """Restore one archive over the data directory while the server is stopped."""
    if not archive_id:
        return _outcome(False, "archive_required", "Specify a backup to restore; list them with listbackups.")
    if not confirmed:
        return _outcome(
            False,
            "confirmation_required",
            f"Rollback discards the current data. Run 'rollback {archive_id} force' to confirm.",
        )
    with ctx.lifecycle_lock:
        status = query_status(ctx)
        if not status.is_stopped:
            message = "Stop the server before rolling back."
            if not status.is_running:
                message = f"Cannot confirm the server is stopped ({status.detail})."
            ctx.log_arkctl_action("rollback", command=archive_id, rejection_message=message)
            return _outcome(False, "blocked_running", message, status=status.to_dict())
        applied = rollback_engine.restore(ctx.BACKUP_DIR, archive_id, ctx.DATA_DIR, log_action=ctx.log_arkctl_action)
    return _outcome(True, "restored", f"Rolled back to {archive_id} ({applied} entries).", applied=applied)
