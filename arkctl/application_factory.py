"""App factory and runtime wiring entrypoint."""

from flask import Flask

from arkctl.core.config import apply_default_flask_config
from arkctl.routes.control_routes import register_control_routes
from arkctl.services.app_lifecycle import install_flask_hooks


def create_app(state=None, config_path=None):
    """Return the Flask app bound to ``state`` (built from config when omitted)."""
    if state is None:
        from arkctl.main import build_runtime

        state = build_runtime(config_path)

    app = Flask(__name__)
    apply_default_flask_config(app)
    install_flask_hooks(app, log_arkctl_exception=state["log_arkctl_exception"])
    register_control_routes(app, state)
    return app
