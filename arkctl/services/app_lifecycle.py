"""Flask lifecycle hook and startup runner composition helpers."""
from flask import has_request_context, request
from werkzeug.exceptions import HTTPException

from arkctl.core.response_helpers import internal_error_response
from arkctl.services import backup_scheduler
from arkctl.services import bootstrap as bootstrap_service


def install_flask_hooks(app, *, log_arkctl_exception):
    """Install the unhandled-exception hook that logs and returns JSON."""

    @app.errorhandler(Exception)
    def _unhandled_exception_handler(exc):
        if isinstance(exc, HTTPException):
            return exc
        path = request.path if has_request_context() else "unknown-path"
        log_arkctl_exception(f"unhandled_exception path={path}", exc)
        return internal_error_response()


def build_run_server(app, state):
    """Return the startup runner: boot steps, then the HTTP server."""

    def run_server():
        boot_steps = [
            ("log_boot_diagnostics", lambda: bootstrap_service.log_boot_diagnostics(state)),
            ("start_backup_watcher", lambda: backup_scheduler.start_backup_watcher(state)),
        ]
        bootstrap_service.run_server(
            app,
            state["WEB_HOST"],
            state["WEB_PORT"],
            state["log_arkctl_log"],
            state["log_arkctl_exception"],
            boot_steps,
        )

    return run_server
