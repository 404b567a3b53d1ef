"""Value types shared by the lifecycle, backup, and rollback services."""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path, PurePosixPath

STATUS_UNKNOWN = "unknown"
STATUS_STOPPED = "stopped"
STATUS_RUNNING = "running"


@dataclass(frozen=True)
class ServerStatus:
    """Server state derived from one status query; never cached."""

    state: str
    player_count: int = 0
    detail: str = ""

    @classmethod
    def unknown(cls, detail=""):
        return cls(STATUS_UNKNOWN, 0, detail)

    @classmethod
    def stopped(cls, detail=""):
        return cls(STATUS_STOPPED, 0, detail)

    @classmethod
    def running(cls, player_count):
        return cls(STATUS_RUNNING, max(0, int(player_count)))

    @property
    def is_stopped(self):
        return self.state == STATUS_STOPPED

    @property
    def is_running(self):
        return self.state == STATUS_RUNNING

    @property
    def players_absent(self):
        """True when stopped, or running with nobody connected."""
        return self.is_stopped or (self.is_running and self.player_count == 0)

    def to_dict(self):
        return {"state": self.state, "player_count": self.player_count, "detail": self.detail}


@dataclass(frozen=True)
class BackupRecord:
    """Read-through projection of one archive file in the backup directory."""

    identifier: str
    path: Path
    created_at: datetime
    size_bytes: int = 0

    def to_dict(self):
        return {
            "identifier": self.identifier,
            "filename": self.path.name,
            "created_at": self.created_at.isoformat(timespec="seconds"),
            "size_bytes": self.size_bytes,
        }


@dataclass(frozen=True)
class ArchiveEntry:
    """One member of an archive, as seen while enumerating for restore."""

    relative_path: PurePosixPath
    is_dir: bool
    size_bytes: int = 0
