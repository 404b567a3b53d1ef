"""Archive listing and restore into the server data directory."""

from datetime import datetime
from pathlib import Path, PurePosixPath
import shutil
import zipfile
import zlib

from arkctl.core.errors import (
    RestoreArchiveNotFound,
    RestoreArchiveUnreadable,
    RestorePartial,
    RestorePathEscape,
    RestoreWriteFailed,
)
from arkctl.core.filesystem_utils import creation_time_ns, resolve_within_root, safe_filename_in_dir
from arkctl.core.models import ArchiveEntry, BackupRecord
from arkctl.services.backup_manager import ARCHIVE_SUFFIX, COPY_CHUNK_BYTES, list_archive_paths

ZIP_ENCRYPTED_FLAG = 0x1
SUPPORTED_COMPRESSION = frozenset(
    {zipfile.ZIP_STORED, zipfile.ZIP_DEFLATED, zipfile.ZIP_BZIP2, zipfile.ZIP_LZMA}
)
# Raised while decompressing a damaged or unextractable member.
EXTRACT_ERRORS = (OSError, EOFError, RuntimeError, NotImplementedError, zipfile.BadZipFile, zlib.error)


def list_backups(backup_dir, display_tz=None):
    """Return one ``BackupRecord`` per archive, ordered by name ascending."""
    records = []
    for path in list_archive_paths(Path(backup_dir)):
        try:
            st = path.stat()
        except OSError:
            continue
        created = datetime.fromtimestamp(creation_time_ns(st) / 1_000_000_000, tz=display_tz)
        records.append(
            BackupRecord(identifier=path.stem, path=path, created_at=created, size_bytes=st.st_size)
        )
    records.sort(key=lambda record: record.path.name)
    return records


def resolve_archive(backup_dir, archive_id):
    """Map an identifier (stem or file name) to an archive path in ``backup_dir``."""
    name = (archive_id or "").strip()
    if name and not name.lower().endswith(ARCHIVE_SUFFIX):
        name = f"{name}{ARCHIVE_SUFFIX}"
    backup_dir = Path(backup_dir)
    safe_name = safe_filename_in_dir(backup_dir, name)
    if safe_name is None:
        raise RestoreArchiveNotFound(f"Backup not found: {archive_id}")
    return backup_dir / safe_name


def check_readable(info):
    """Raise ``RestoreArchiveUnreadable`` for members ``zipfile`` cannot extract."""
    if info.flag_bits & ZIP_ENCRYPTED_FLAG:
        raise RestoreArchiveUnreadable(f"Archive entry is encrypted: {info.filename!r}")
    if info.compress_type not in SUPPORTED_COMPRESSION:
        raise RestoreArchiveUnreadable(
            f"Archive entry {info.filename!r} uses unsupported compression method {info.compress_type}"
        )


def plan_entries(zf, root):
    """Resolve every archive member against ``root`` before anything is written.

    Returns ``(ArchiveEntry, ZipInfo, target)`` tuples. The first member that
    would land outside ``root`` raises ``RestorePathEscape``; an encrypted or
    unsupported member raises ``RestoreArchiveUnreadable``.
    """
    plan = []
    for info in zf.infolist():
        check_readable(info)
        # Archives built on Windows may use backslash separators.
        normalized = info.filename.replace("\\", "/")
        target = resolve_within_root(root, normalized)
        if target is None:
            raise RestorePathEscape(info.filename)
        is_dir = info.is_dir()
        if target == root:
            if is_dir:
                continue
            raise RestorePathEscape(info.filename)
        entry = ArchiveEntry(PurePosixPath(normalized), is_dir, info.file_size)
        plan.append((entry, info, target))
    return plan


def _apply_entry(zf, info, target, is_dir):
    if is_dir:
        target.mkdir(parents=True, exist_ok=True)
        return
    target.parent.mkdir(parents=True, exist_ok=True)
    with zf.open(info, "r") as src, target.open("wb") as dst:
        shutil.copyfileobj(src, dst, COPY_CHUNK_BYTES)


def restore(backup_dir, archive_id, dest_root, log_action=None):
    """Extract one archive over ``dest_root`` and return the applied entry count.

    The caller is responsible for confirming the server is stopped. Existing
    files are overwritten. A failure after the first write leaves the
    already-applied entries in place and raises ``RestorePartial``.
    """
    archive_path = resolve_archive(backup_dir, archive_id)
    dest_root = Path(dest_root)
    try:
        dest_root.mkdir(parents=True, exist_ok=True)
        root = dest_root.resolve()
    except OSError as exc:
        raise RestoreWriteFailed(f"Cannot prepare {dest_root}: {exc}") from exc

    try:
        zf = zipfile.ZipFile(archive_path, "r")
    except (OSError, zipfile.BadZipFile) as exc:
        raise RestoreArchiveUnreadable(f"Cannot read {archive_path.name}: {exc}") from exc

    with zf:
        try:
            plan = plan_entries(zf, root)
        except (RestorePathEscape, RestoreArchiveUnreadable) as exc:
            if log_action:
                log_action("rollback", command=archive_path.name, rejection_message=str(exc))
            raise

        applied = 0
        for entry, info, target in plan:
            try:
                _apply_entry(zf, info, target, entry.is_dir)
            except EXTRACT_ERRORS as exc:
                if log_action:
                    log_action(
                        "rollback",
                        command=archive_path.name,
                        rejection_message=f"Stopped at {entry.relative_path} after {applied} entries: {exc}",
                    )
                raise RestorePartial(applied, exc) from exc
            applied += 1

    if log_action:
        log_action("rollback", command=f"{archive_path.name} entries={applied}")
    return applied
