"""Exception taxonomy for console, backup, restore, and script failures.

Every class carries a stable ``kind`` string; outcome payloads and HTTP
responses use it so callers can tell failures apart without parsing text.
"""


class ArkctlError(Exception):
    """Base class for all arkctl failures."""

    kind = "error"


class ConsoleError(ArkctlError):
    """Remote console round trip failed."""

    kind = "console_error"


class ConsoleAuthFailed(ConsoleError):
    kind = "console_auth_failed"


class ConsoleUnreachable(ConsoleError):
    kind = "console_unreachable"


class ConsoleProtocolError(ConsoleError):
    kind = "console_protocol_error"


class ConsoleTimeout(ConsoleError):
    kind = "console_timeout"


class BackupError(ArkctlError):
    """Snapshot of the data directory could not be materialized."""

    kind = "backup_error"


class BackupSourceUnreadable(BackupError):
    kind = "backup_source_unreadable"


class BackupDestUnwritable(BackupError):
    kind = "backup_dest_unwritable"


class BackupArchiveWriteFailed(BackupError):
    kind = "backup_archive_write_failed"


class RestoreError(ArkctlError):
    """Archive could not be restored into the data directory."""

    kind = "restore_error"


class RestoreArchiveNotFound(RestoreError):
    kind = "archive_not_found"


class RestoreArchiveUnreadable(RestoreError):
    kind = "archive_unreadable"


class RestorePathEscape(RestoreError):
    """An archive entry would land outside the restore root."""

    kind = "path_escape"

    def __init__(self, entry_name):
        super().__init__(f"Archive entry escapes the restore root: {entry_name!r}")
        self.entry_name = entry_name


class RestoreWriteFailed(RestoreError):
    kind = "restore_write_failed"


class RestorePartial(RestoreError):
    """Restore stopped mid-archive; ``applied_count`` entries were written."""

    kind = "restore_partial"

    def __init__(self, applied_count, cause):
        super().__init__(f"Restore stopped after {applied_count} entries: {cause}")
        self.applied_count = applied_count
        self.cause = cause


class ScriptError(ArkctlError):
    """Administrative script failed to launch or reported failure."""

    kind = "script_error"
