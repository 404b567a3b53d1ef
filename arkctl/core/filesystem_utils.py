"""Filesystem helpers for archive listings, safe paths, and file timestamps."""

from pathlib import Path

_SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_file_size(num_bytes):
    """Human-readable size in 1024 steps, e.g. ``512 B`` or ``1.5 MB``."""
    value = max(0, num_bytes or 0)
    if value < 1024:
        return f"{int(value)} B"
    value = float(value)
    for unit in _SIZE_UNITS[1:]:
        value /= 1024
        if value < 1024 or unit == _SIZE_UNITS[-1]:
            return f"{value:.1f} {unit}"


def creation_time_ns(stat_result):
    """Return the best available creation timestamp in nanoseconds.

    Platforms that expose a birth time use it; elsewhere the inode change
    time stands in, which for archives written once equals their creation.
    """
    birth_ns = getattr(stat_result, "st_birthtime_ns", None)
    if birth_ns is not None:
        return birth_ns
    birth = getattr(stat_result, "st_birthtime", None)
    if birth is not None:
        return int(birth * 1_000_000_000)
    return stat_result.st_ctime_ns


def safe_filename_in_dir(base_dir, filename):
    """Return ``filename`` if it names an existing file directly inside ``base_dir``."""
    if not filename or Path(filename).name != filename:
        return None
    try:
        root = base_dir.resolve()
    except OSError:
        return None
    target = resolve_within_root(root, filename)
    if target is None or target.parent != root or not target.is_file():
        return None
    return filename


def resolve_within_root(root, relative_name):
    """Join ``relative_name`` onto ``root``; ``None`` if it resolves outside.

    ``root`` must already be resolved. Absolute names, drive-qualified names,
    ``..`` segments, and symlinks inside ``root`` that point elsewhere all
    resolve outside and are rejected.
    """
    candidate = Path(relative_name)
    if candidate.is_absolute() or candidate.drive or candidate.root:
        return None
    try:
        resolved = (root / candidate).resolve()
    except (OSError, RuntimeError):
        return None
    try:
        resolved.relative_to(root)
    except ValueError:
        return None
    return resolved
