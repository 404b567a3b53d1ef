"""Application bootstrap/run helpers."""


def run_server(app, host, port, log_arkctl_log, log_arkctl_exception, boot_steps):
    """Run startup steps, then start Flask server."""
    log_arkctl_log("boot-start", command=f"host={host} port={port}")

    for step_name, step_func in boot_steps:
        try:
            step_func()
        except Exception as exc:
            log_arkctl_exception(f"boot_step/{step_name}", exc)
            log_arkctl_log("boot-failed", command=step_name, rejection_message=str(exc)[:500] or "startup step failed")
            raise

    log_arkctl_log("boot-ready", command=f"host={host} port={port}")
    try:
        app.run(host=host, port=port)
    except Exception as exc:
        log_arkctl_exception("boot_step/app.run", exc)
        log_arkctl_log("boot-failed", command="app.run", rejection_message=str(exc)[:500] or "web server startup failed")
        raise


def log_boot_diagnostics(state):
    """Record the effective paths and console endpoint in the system log."""
    state["log_arkctl_log"](
        "boot-config",
        command=(
            f"data={state['DATA_DIR']} backups={state['BACKUP_DIR']} max={state['MAX_BACKUP_COUNT']} "
            f"compression={state['BACKUP_COMPRESSION']} interval={state['BACKUP_INTERVAL_SECONDS']}s "
            f"rcon={state['RCON_HOST']}:{state['RCON_PORT']} legacy={state['RCON_LEGACY_DIALECT']}"
        ),
    )
    if not state["DATA_DIR"].is_dir():
        state["log_arkctl_log"]("boot-config", rejection_message=f"Data directory not found: {state['DATA_DIR']}")
