"""Logging setup helpers."""

from arkctl.core.action_logging import make_log_action, make_log_exception

ACTION_LOG_NAME = "arkctl-actions.log"
SYSTEM_LOG_NAME = "arkctl.log"


def build_loggers(display_tz, log_dir):
    """Create arkctl action/system log writers and the exception logger."""
    log_arkctl_action = make_log_action(display_tz, log_dir / ACTION_LOG_NAME)
    log_arkctl_log = make_log_action(display_tz, log_dir / SYSTEM_LOG_NAME)
    log_arkctl_exception = make_log_exception(log_arkctl_log)
    return log_arkctl_action, log_arkctl_log, log_arkctl_exception
