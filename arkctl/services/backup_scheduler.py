"""Periodic save+backup watcher."""

import threading
import time

from arkctl.services import lifecycle

_backup_watcher_start_lock = threading.Lock()
_backup_watcher_started = False


def backup_tick(ctx):
    """Run one periodic pass; return the save outcome, or ``None`` when skipped."""
    status = lifecycle.query_status(ctx)
    if status.is_stopped:
        with ctx.backup_state.lock:
            ctx.backup_state.last_skip_reason = "stopped"
        return None

    outcome = lifecycle.save(ctx, force=False, trigger="auto")
    with ctx.backup_state.lock:
        ctx.backup_state.last_run_at = time.time()
        ctx.backup_state.last_kind = outcome["kind"]
        ctx.backup_state.last_skip_reason = "busy" if outcome["kind"] == "busy" else ""
        if outcome["ok"]:
            ctx.backup_state.periodic_runs += 1
    if not outcome["ok"]:
        ctx.log_arkctl_log("backup-auto", command=outcome["kind"], rejection_message=outcome["message"])
    return outcome


def backup_watcher(ctx):
    """Background loop that saves and backs up every configured interval."""
    while True:
        time.sleep(ctx.BACKUP_INTERVAL_SECONDS)
        try:
            backup_tick(ctx)
        except Exception as exc:
            ctx.log_arkctl_exception("backup_watcher", exc)


def start_backup_watcher(ctx):
    """Start the backup watcher daemon thread once per process."""
    global _backup_watcher_started
    with _backup_watcher_start_lock:
        if _backup_watcher_started:
            return False
        watcher = threading.Thread(target=backup_watcher, args=(ctx,), daemon=True, name="arkctl-backup-watcher")
        watcher.start()
        _backup_watcher_started = True
        return True
