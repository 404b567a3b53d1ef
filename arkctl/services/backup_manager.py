"""Rotating, capacity-bounded ZIP snapshots of the server data directory."""

from datetime import datetime
import os
from pathlib import Path, PurePosixPath
import shutil
import zipfile

from arkctl.core.errors import (
    BackupArchiveWriteFailed,
    BackupDestUnwritable,
    BackupError,
    BackupSourceUnreadable,
)
from arkctl.core.filesystem_utils import creation_time_ns
from arkctl.core.models import BackupRecord

ARCHIVE_SUFFIX = ".zip"
PARTIAL_SUFFIX = ".partial"
ARCHIVE_NAME_FORMAT = "%Y-%m-%d_(%H-%M-%S)"
COPY_CHUNK_BYTES = 1024 * 1024
DEFAULT_MAX_BACKUP_COUNT = 10

COMPRESSION_METHODS = {
    "deflate": zipfile.ZIP_DEFLATED,
    "bzip2": zipfile.ZIP_BZIP2,
    "lzma": zipfile.ZIP_LZMA,
    "store": zipfile.ZIP_STORED,
}


def exclude_suffixes(*tokens):
    """Exclude files whose extension contains any token (``bak`` hits ``.bak2``)."""
    lowered = tuple(token.lower().lstrip(".") for token in tokens if token)

    def rule(relative_path):
        suffix = relative_path.suffix.lower().lstrip(".")
        return bool(suffix) and any(token in suffix for token in lowered)

    return rule


def keep_canonical_variant(canonical_name):
    """Keep only ``canonical_name`` among same-stem alternates with its extension.

    ``keep_canonical_variant("Fjordur.ark")`` keeps ``Fjordur.ark`` and skips
    ``Fjordur_Antiquity.ark`` or ``Fjordur_1.ark``; other extensions pass.
    """
    canonical = PurePosixPath(canonical_name)
    stem = canonical.stem
    suffix = canonical.suffix.lower()

    def rule(relative_path):
        name = relative_path.name
        return relative_path.suffix.lower() == suffix and stem in name and name != canonical.name

    return rule


def combine_rules(*rules):
    """Exclude a file when any of ``rules`` excludes it."""
    active = [rule for rule in rules if rule is not None]

    def rule(relative_path):
        return any(item(relative_path) for item in active)

    return rule


def build_exclusion_rule(suffix_tokens=(), canonical_files=()):
    """Build the configured exclusion predicate over relative POSIX paths."""
    rules = []
    if suffix_tokens:
        rules.append(exclude_suffixes(*suffix_tokens))
    for name in canonical_files:
        rules.append(keep_canonical_variant(name))
    return combine_rules(*rules)


def archive_stem(now):
    """Format the archive identifier for ``now`` (second precision)."""
    return now.strftime(ARCHIVE_NAME_FORMAT)


def _unique_archive_path(dest_root, stem):
    """Return a free archive path, suffixing ``_NN`` on same-second collisions."""
    candidate = dest_root / f"{stem}{ARCHIVE_SUFFIX}"
    suffix = 1
    while candidate.exists() or candidate.with_name(candidate.name + PARTIAL_SUFFIX).exists():
        candidate = dest_root / f"{stem}_{suffix:02d}{ARCHIVE_SUFFIX}"
        suffix += 1
    return candidate


def _raise_source_error(exc):
    raise BackupSourceUnreadable(f"Cannot read {exc.filename}: {exc.strerror or exc}") from exc


def iter_source_entries(source_root, exclude=None):
    """Yield ``(path, arcname, is_dir)`` for the tree under ``source_root``.

    Directories always yield (as empty entries); files yield unless
    ``exclude`` matches their relative path. Order is deterministic.
    """
    for dirpath, dirnames, filenames in os.walk(source_root, onerror=_raise_source_error):
        dirnames.sort()
        current = Path(dirpath)
        rel_dir = PurePosixPath(current.relative_to(source_root).as_posix())
        if str(rel_dir) != ".":
            yield current, f"{rel_dir}/", True
        for filename in sorted(filenames):
            rel = PurePosixPath(filename) if str(rel_dir) == "." else rel_dir / filename
            if exclude is not None and exclude(rel):
                continue
            yield current / filename, str(rel), False


def _write_file_entry(zf, path, arcname, compress_type):
    """Stream one file into the archive in fixed-size chunks."""
    try:
        zinfo = zipfile.ZipInfo.from_file(path, arcname)
        src = path.open("rb")
    except OSError as exc:
        raise BackupSourceUnreadable(f"Cannot read {path}: {exc}") from exc
    zinfo.compress_type = compress_type
    with src:
        try:
            with zf.open(zinfo, "w", force_zip64=True) as dst:
                shutil.copyfileobj(src, dst, COPY_CHUNK_BYTES)
        except OSError as exc:
            raise BackupArchiveWriteFailed(f"Failed to write {arcname}: {exc}") from exc


def _write_archive(archive_path, source_root, exclude, compress_type, log_action):
    """Write every included entry of ``source_root`` to ``archive_path``."""
    try:
        zf = zipfile.ZipFile(archive_path, "w", compression=compress_type)
    except OSError as exc:
        raise BackupDestUnwritable(f"Cannot create {archive_path}: {exc}") from exc
    count = 0
    with zf:
        for path, arcname, is_dir in iter_source_entries(source_root, exclude):
            if is_dir:
                try:
                    zf.write(path, arcname)
                except OSError as exc:
                    raise BackupArchiveWriteFailed(f"Failed to write {arcname}: {exc}") from exc
            else:
                _write_file_entry(zf, path, arcname, compress_type)
            count += 1
    if log_action:
        log_action("backup-entries", command=f"{archive_path.name} entries={count}")
    return count


def list_archive_paths(dest_root):
    """Return ``*.zip`` archives in ``dest_root`` (partial writes excluded)."""
    if not dest_root.exists() or not dest_root.is_dir():
        return []
    return [path for path in dest_root.glob(f"*{ARCHIVE_SUFFIX}") if path.is_file()]


def select_eviction(archive_paths):
    """Return the archive with the oldest creation time; ties go to name order."""
    keyed = []
    for path in archive_paths:
        try:
            created = creation_time_ns(path.stat())
        except OSError:
            continue
        keyed.append((created, path.name, path))
    if not keyed:
        return None
    keyed.sort(key=lambda item: (item[0], item[1]))
    return keyed[0][2]


def enforce_retention(dest_root, max_backups=DEFAULT_MAX_BACKUP_COUNT, log_action=None):
    """Evict at most one archive when more than ``max_backups`` exist."""
    archives = list_archive_paths(dest_root)
    if len(archives) <= max_backups:
        return None
    oldest = select_eviction(archives)
    if oldest is None:
        return None
    try:
        oldest.unlink()
    except OSError as exc:
        if log_action:
            log_action("backup-evict", command=oldest.name, rejection_message=f"Eviction failed: {exc}")
        return None
    if log_action:
        log_action("backup-evict", command=oldest.name)
    return oldest


def create_backup(
    source_root,
    dest_root,
    *,
    exclude=None,
    max_backups=DEFAULT_MAX_BACKUP_COUNT,
    compression="deflate",
    now=None,
    log_action=None,
):
    """Snapshot ``source_root`` into a new archive in ``dest_root``.

    The archive is written under a ``.partial`` name and renamed once
    complete, so a failed run never leaves a truncated ``.zip`` behind.
    Retention runs only after a successful rename.
    """
    source_root = Path(source_root)
    dest_root = Path(dest_root)
    compress_type = COMPRESSION_METHODS.get((compression or "deflate").lower(), zipfile.ZIP_DEFLATED)
    if now is None:
        now = datetime.now()

    if not source_root.is_dir():
        raise BackupSourceUnreadable(f"Data directory not found: {source_root}")
    try:
        dest_root.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise BackupDestUnwritable(f"Cannot create backup directory {dest_root}: {exc}") from exc

    final_path = _unique_archive_path(dest_root, archive_stem(now))
    partial_path = final_path.with_name(final_path.name + PARTIAL_SUFFIX)
    try:
        _write_archive(partial_path, source_root, exclude, compress_type, log_action)
        os.replace(partial_path, final_path)
    except BackupError:
        partial_path.unlink(missing_ok=True)
        raise
    except (OSError, zipfile.LargeZipFile) as exc:
        partial_path.unlink(missing_ok=True)
        raise BackupArchiveWriteFailed(f"Failed to finalize {final_path.name}: {exc}") from exc

    if log_action:
        log_action("backup-created", command=final_path.name)
    enforce_retention(dest_root, max_backups, log_action=log_action)

    try:
        size = final_path.stat().st_size
    except OSError:
        size = 0
    return BackupRecord(identifier=final_path.stem, path=final_path, created_at=now, size_bytes=size)
