import os
import struct
import tempfile
import unittest
import zipfile
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

from arkctl.core.errors import (
    RestoreArchiveNotFound,
    RestoreArchiveUnreadable,
    RestorePartial,
    RestorePathEscape,
)
from arkctl.services import rollback
from arkctl.services.backup_manager import create_backup, exclude_suffixes


def _relative_tree(root):
    """Return {relative posix path: bytes or None for directories}."""
    tree = {}
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        for name in dirnames:
            tree[(current / name).relative_to(root).as_posix()] = None
        for name in filenames:
            tree[(current / name).relative_to(root).as_posix()] = (current / name).read_bytes()
    return tree


def _patch_entry_header(path, index, flag_bits=None, method=None):
    """Rewrite the flags or method of the ``index``-th member in both zip headers.

    Only valid for stored archives, whose data cannot contain a header signature.
    """
    data = bytearray(path.read_bytes())
    # (signature, offset of general purpose flags, offset of compression method)
    for signature, flag_offset, method_offset in ((b"PK\x03\x04", 6, 8), (b"PK\x01\x02", 8, 10)):
        pos = -1
        for _ in range(index + 1):
            pos = data.find(signature, pos + 1)
        if flag_bits is not None:
            struct.pack_into("<H", data, pos + flag_offset, flag_bits)
        if method is not None:
            struct.pack_into("<H", data, pos + method_offset, method)
    path.write_bytes(bytes(data))


class RollbackTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.root = Path(self._tmp.name)
        self.backups = self.root / "backups"
        self.dest = self.root / "restore"
        self.backups.mkdir()

    def _write_archive(self, name, entries):
        with zipfile.ZipFile(self.backups / name, "w") as zf:
            for entry_name, data in entries:
                zf.writestr(entry_name, data)
        return Path(name).stem


class ListBackupsTests(RollbackTestCase):
    def test_sorted_by_name(self):
        for name in ("2024-01-02_(00-00-00).zip", "2024-01-01_(00-00-00).zip", "2024-01-03_(00-00-00).zip"):
            (self.backups / name).write_bytes(b"")
        (self.backups / "notes.txt").write_text("ignored", encoding="utf-8")
        records = rollback.list_backups(self.backups)
        self.assertEqual(
            [record.identifier for record in records],
            ["2024-01-01_(00-00-00)", "2024-01-02_(00-00-00)", "2024-01-03_(00-00-00)"],
        )

    def test_missing_directory_is_empty(self):
        self.assertEqual(rollback.list_backups(self.root / "nope"), [])


class RestoreTests(RollbackTestCase):
    def test_parent_segment_escape_writes_nothing(self):
        archive_id = self._write_archive("evil.zip", [("ok.txt", b"fine"), ("../evil.txt", b"pwned")])
        with self.assertRaises(RestorePathEscape) as ctx:
            rollback.restore(self.backups, archive_id, self.dest)
        self.assertEqual(ctx.exception.entry_name, "../evil.txt")
        self.assertEqual(list(self.dest.iterdir()), [])
        self.assertFalse((self.root / "evil.txt").exists())

    def test_backslash_escape_is_rejected(self):
        archive_id = self._write_archive("evil.zip", [("..\\..\\evil.txt", b"pwned")])
        with self.assertRaises(RestorePathEscape):
            rollback.restore(self.backups, archive_id, self.dest)

    def test_symlink_escape_is_rejected(self):
        outside = self.root / "outside"
        outside.mkdir()
        self.dest.mkdir()
        (self.dest / "link").symlink_to(outside, target_is_directory=True)
        archive_id = self._write_archive("evil.zip", [("link/evil.txt", b"pwned")])
        with self.assertRaises(RestorePathEscape):
            rollback.restore(self.backups, archive_id, self.dest)
        self.assertEqual(list(outside.iterdir()), [])

    def test_overwrites_existing_files(self):
        self.dest.mkdir()
        (self.dest / "TheIsland.ark").write_bytes(b"current")
        archive_id = self._write_archive("2024-01-01_(00-00-00).zip", [("TheIsland.ark", b"restored")])
        applied = rollback.restore(self.backups, archive_id, self.dest)
        self.assertEqual(applied, 1)
        self.assertEqual((self.dest / "TheIsland.ark").read_bytes(), b"restored")

    def test_accepts_identifier_with_extension(self):
        self._write_archive("2024-01-01_(00-00-00).zip", [("a.txt", b"a")])
        rollback.restore(self.backups, "2024-01-01_(00-00-00).zip", self.dest)
        self.assertTrue((self.dest / "a.txt").exists())

    def test_missing_archive(self):
        with self.assertRaises(RestoreArchiveNotFound):
            rollback.restore(self.backups, "2099-01-01_(00-00-00)", self.dest)

    def test_archive_id_cannot_leave_backup_dir(self):
        (self.root / "secret.zip").write_bytes(b"")
        with self.assertRaises(RestoreArchiveNotFound):
            rollback.restore(self.backups, "../secret", self.dest)

    def test_corrupt_archive(self):
        (self.backups / "broken.zip").write_bytes(b"not a zip file")
        with self.assertRaises(RestoreArchiveUnreadable):
            rollback.restore(self.backups, "broken", self.dest)

    def test_write_failure_reports_applied_count(self):
        self.dest.mkdir()
        (self.dest / "b.txt").mkdir()
        archive_id = self._write_archive("partial.zip", [("a.txt", b"a"), ("b.txt", b"b"), ("c.txt", b"c")])
        with self.assertRaises(RestorePartial) as ctx:
            rollback.restore(self.backups, archive_id, self.dest)
        self.assertEqual(ctx.exception.applied_count, 1)
        self.assertTrue((self.dest / "a.txt").exists())
        self.assertFalse((self.dest / "c.txt").exists())

    def test_encrypted_entry_is_unreadable_and_writes_nothing(self):
        archive_id = self._write_archive("locked.zip", [("A/1.dat", b"one"), ("Fjordur.ark", b"map")])
        _patch_entry_header(self.backups / "locked.zip", 1, flag_bits=0x1)
        with self.assertRaises(RestoreArchiveUnreadable):
            rollback.restore(self.backups, archive_id, self.dest)
        self.assertEqual(_relative_tree(self.dest), {})

    def test_unsupported_compression_is_unreadable_and_writes_nothing(self):
        archive_id = self._write_archive("odd.zip", [("A/1.dat", b"one"), ("Fjordur.ark", b"map")])
        _patch_entry_header(self.backups / "odd.zip", 1, method=99)
        logged = []
        with self.assertRaises(RestoreArchiveUnreadable):
            rollback.restore(self.backups, archive_id, self.dest, log_action=lambda *a, **kw: logged.append(kw))
        self.assertEqual(_relative_tree(self.dest), {})
        self.assertIn("compression", logged[0]["rejection_message"])

    def test_extraction_errors_become_partial_restore(self):
        archive_id = self._write_archive("flaky.zip", [("a.txt", b"a"), ("b.txt", b"b")])
        for raised in (NotImplementedError("That compression method is not supported"), RuntimeError("encrypted")):
            with self.subTest(raised=type(raised).__name__):
                with patch.object(rollback, "_apply_entry", side_effect=[None, raised]):
                    with self.assertRaises(RestorePartial) as ctx:
                        rollback.restore(self.backups, archive_id, self.dest)
                self.assertEqual(ctx.exception.applied_count, 1)
                self.assertIs(ctx.exception.cause, raised)


class RoundTripTests(RollbackTestCase):
    def test_backup_then_restore_reproduces_tree(self):
        source = self.root / "SavedArks"
        (source / "A").mkdir(parents=True)
        (source / "A" / "1.dat").write_bytes(b"0123456789")
        (source / "A" / "1.dat.bak").write_bytes(b"stale")
        (source / "Tribes" / "empty").mkdir(parents=True)
        (source / "TheIsland.ark").write_bytes(os.urandom(4096))

        record = create_backup(source, self.backups, exclude=exclude_suffixes("bak"), now=datetime(2024, 1, 1))
        rollback.restore(self.backups, record.identifier, self.dest)

        expected = _relative_tree(source)
        del expected["A/1.dat.bak"]
        self.assertEqual(_relative_tree(self.dest), expected)

    def test_bak_scenario_restores_only_data_file(self):
        source = self.root / "SavedArks"
        (source / "A").mkdir(parents=True)
        (source / "A" / "1.dat").write_bytes(b"abcdefghij")
        (source / "A" / "1.dat.bak").write_bytes(b"old")

        record = create_backup(source, self.backups, exclude=exclude_suffixes("bak"), now=datetime(2024, 1, 1))
        rollback.restore(self.backups, record.identifier, self.dest)

        self.assertEqual(
            sorted(p.relative_to(self.dest).as_posix() for p in self.dest.rglob("*") if p.is_file()),
            ["A/1.dat"],
        )
        self.assertEqual((self.dest / "A" / "1.dat").read_bytes(), b"abcdefghij")


if __name__ == "__main__":
    unittest.main()
