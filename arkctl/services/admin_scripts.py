"""Administrative script invocation (server start, network tunnel helper)."""

from pathlib import Path
import subprocess

from arkctl.core.config import split_runner
from arkctl.core.errors import ScriptError

NO_OUTPUT_MESSAGE = "Succeeded"
TUNNEL_NOT_RUNNING_MARKER = "0"


def run_script(ctx, script_path, *args):
    """Run one admin script and return its captured stdout text."""
    if not script_path:
        raise ScriptError("Script path is not configured.")
    if not Path(script_path).is_file():
        raise ScriptError(f"Script not found: {script_path}")
    argv = split_runner(ctx.SCRIPT_RUNNER) + [str(script_path)] + [str(arg) for arg in args]
    timeout = ctx.SCRIPT_TIMEOUT_SECONDS
    try:
        result = subprocess.run(
            argv,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as exc:
        ctx.log_arkctl_log("script-timeout", command=str(script_path), rejection_message=f"Timed out after {timeout}s.")
        raise ScriptError(f"{script_path} timed out after {timeout}s.") from exc
    except OSError as exc:
        ctx.log_arkctl_exception(f"run_script/{script_path}", exc)
        raise ScriptError(f"Failed to launch {script_path}: {exc}") from exc

    if result.returncode != 0:
        detail = ((result.stderr or "") + "\n" + (result.stdout or "")).strip()
        message = f"{script_path} exited with status {result.returncode}."
        if detail:
            message = f"{message} {detail[:400]}"
        raise ScriptError(message)
    return result.stdout or ""


def script_outcome(output, kind="script_ok"):
    """Map script stdout to an outcome payload; empty output is still success."""
    text = (output or "").strip()
    if not text:
        return {"ok": True, "kind": "no_output", "message": NO_OUTPUT_MESSAGE, "output": ""}
    return {"ok": True, "kind": kind, "message": text, "output": text}


def start_server(ctx):
    """Invoke the server start script and relay its output."""
    return script_outcome(run_script(ctx, ctx.START_SERVER_SCRIPT), kind="started")


def restart_tunnel(ctx):
    """Invoke the tunnel helper restart script."""
    return script_outcome(run_script(ctx, ctx.TUNNEL_RESTART_SCRIPT), kind="tunnel_reloaded")


def check_tunnel(ctx):
    """Return whether the tunnel helper process is running."""
    output = run_script(ctx, ctx.TUNNEL_CHECK_SCRIPT).strip()
    if output == TUNNEL_NOT_RUNNING_MARKER:
        return {
            "ok": True,
            "kind": "tunnel_down",
            "running": False,
            "message": "The tunnel helper is not running. Run reload_tunnel to start it.",
        }
    return {
        "ok": True,
        "kind": "tunnel_up",
        "running": True,
        "message": "The tunnel helper is running. Run reload_tunnel if the connection misbehaves.",
    }
