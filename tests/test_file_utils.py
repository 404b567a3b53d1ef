import tempfile
import unittest
from pathlib import Path
from types import SimpleNamespace

from arkctl.core.filesystem_utils import (
    creation_time_ns,
    format_file_size,
    resolve_within_root,
    safe_filename_in_dir,
)


class FileUtilsTests(unittest.TestCase):
    def test_format_file_size(self):
        self.assertEqual(format_file_size(10), "10 B")
        self.assertEqual(format_file_size(1024), "1.0 KB")

    def test_safe_filename_in_dir(self):
        with tempfile.TemporaryDirectory() as tmp:
            base = Path(tmp)
            (base / "a.zip").write_text("a", encoding="utf-8")
            self.assertEqual(safe_filename_in_dir(base, "a.zip"), "a.zip")
            self.assertIsNone(safe_filename_in_dir(base, "missing.zip"))
            self.assertIsNone(safe_filename_in_dir(base, "../a.zip"))
            self.assertIsNone(safe_filename_in_dir(base, ""))

    def test_resolve_within_root(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            self.assertEqual(resolve_within_root(root, "A/1.dat"), root / "A" / "1.dat")
            self.assertIsNone(resolve_within_root(root, "../escape"))
            self.assertIsNone(resolve_within_root(root, "A/../../escape"))
            self.assertIsNone(resolve_within_root(root, "/etc/passwd"))

    def test_creation_time_prefers_birth_time(self):
        self.assertEqual(creation_time_ns(SimpleNamespace(st_birthtime_ns=5, st_ctime_ns=9)), 5)
        self.assertEqual(creation_time_ns(SimpleNamespace(st_birthtime=2.0, st_ctime_ns=9)), 2_000_000_000)
        self.assertEqual(creation_time_ns(SimpleNamespace(st_ctime_ns=9)), 9)


if __name__ == "__main__":
    unittest.main()
