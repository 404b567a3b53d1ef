"""Control route registration for the arkctl HTTP surface."""

from flask import jsonify, request

from arkctl.core.response_helpers import outcome_response
from arkctl.services import command_surface


def _request_args():
    """Read the free-form argument text from a JSON body or form field."""
    payload = request.get_json(silent=True)
    if isinstance(payload, dict):
        value = payload.get("args", "")
        if isinstance(value, (list, tuple)):
            return " ".join(str(item) for item in value)
        return str(value or "")
    return request.form.get("args", "")


def register_control_routes(app, state):
    """Register status, listing, and command dispatch routes."""

    # Route: /status
    @app.route("/status", methods=["GET"])
    def status():
        return outcome_response(command_surface.dispatch(state, "status"))

    # Route: /backups
    @app.route("/backups", methods=["GET"])
    def backups():
        return outcome_response(command_surface.dispatch(state, "backups"))

    # Route: /players
    @app.route("/players", methods=["GET"])
    def players():
        return outcome_response(command_surface.dispatch(state, "players"))

    # Route: /commands
    @app.route("/commands", methods=["GET"])
    def commands():
        """List the command table, including aliases and usage."""
        return jsonify({"ok": True, "commands": command_surface.list_commands()})

    # Route: /commands/<name>
    @app.route("/commands/<name>", methods=["POST"])
    def run_command(name):
        """Dispatch one command; ``args`` carries its free-form arguments."""
        args = _request_args()
        outcome = command_surface.dispatch(state, name, args)
        if outcome.get("kind") == "unknown_command":
            state["log_arkctl_action"]("reject", command=name, rejection_message=outcome["message"])
        return outcome_response(outcome)
