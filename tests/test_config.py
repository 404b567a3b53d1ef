import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from arkctl.core.config import make_secret_reader, split_runner, trim_line_terminator
from arkctl.core.web_config import WebConfig
from arkctl.main import build_runtime


class WebConfigTests(unittest.TestCase):
    def test_reads_basic_values(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            conf = root / "arkctl.env"
            conf.write_text(
                "\n".join(
                    [
                        "RCON_HOST=10.0.0.5",
                        "RCON_PORT=27020",
                        "BACKUP_INTERVAL_MINUTES=30.5",
                        "START_SERVER_SCRIPT=./scripts/start_server.ps1",
                        "RCON_LEGACY_DIALECT=off",
                        "BACKUP_CANONICAL_FILES=Fjordur.ark, Ragnarok.ark",
                    ]
                ),
                encoding="utf-8",
            )
            cfg = WebConfig(conf, root)
            self.assertEqual(cfg.get_str("RCON_HOST", "x"), "10.0.0.5")
            self.assertEqual(cfg.get_int("RCON_PORT", 0), 27020)
            self.assertEqual(cfg.get_float("BACKUP_INTERVAL_MINUTES", 0.0), 30.5)
            self.assertEqual(cfg.get_path("START_SERVER_SCRIPT", root / "none.ps1"), root / "scripts" / "start_server.ps1")
            self.assertFalse(cfg.get_bool("RCON_LEGACY_DIALECT", True))
            self.assertEqual(cfg.get_list("BACKUP_CANONICAL_FILES"), ["Fjordur.ark", "Ragnarok.ark"])

    def test_invalid_and_blank_values_fall_back(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            conf = root / "arkctl.env"
            conf.write_text("RCON_PORT=abc\nSAVE_ATTEMPTS=0\nDATA_DIR=\nRCON_LEGACY_DIALECT=maybe\n", encoding="utf-8")
            cfg = WebConfig(conf, root)
            self.assertEqual(cfg.get_int("RCON_PORT", 32330), 32330)
            self.assertEqual(cfg.get_int("SAVE_ATTEMPTS", 3, minimum=1), 1)
            self.assertEqual(cfg.get_path("DATA_DIR", root / "data"), root / "data")
            self.assertTrue(cfg.get_bool("RCON_LEGACY_DIALECT", True))

    def test_missing_file_uses_defaults(self):
        cfg = WebConfig(Path("/nonexistent/arkctl.env"), Path("/nonexistent"))
        self.assertEqual(cfg.get_str("RCON_HOST", "127.0.0.1"), "127.0.0.1")


class SecretReaderTests(unittest.TestCase):
    def test_trims_one_line_terminator(self):
        self.assertEqual(trim_line_terminator("secret\r\n"), "secret")
        self.assertEqual(trim_line_terminator("secret\n\n"), "secret\n")

    def test_reads_file_on_each_call(self):
        with tempfile.TemporaryDirectory() as tmp:
            secret_file = Path(tmp) / "rcon_password"
            reader = make_secret_reader(secret_file, env_name="ARKCTL_TEST_UNSET_PASSWORD")
            self.assertIsNone(reader())
            secret_file.write_text("first\n", encoding="utf-8")
            self.assertEqual(reader(), "first")
            secret_file.write_text("second\n", encoding="utf-8")
            self.assertEqual(reader(), "second")

    def test_environment_wins(self):
        with tempfile.TemporaryDirectory() as tmp:
            secret_file = Path(tmp) / "rcon_password"
            secret_file.write_text("from-file", encoding="utf-8")
            reader = make_secret_reader(secret_file, env_name="ARKCTL_TEST_PASSWORD")
            with patch.dict(os.environ, {"ARKCTL_TEST_PASSWORD": "from-env"}):
                self.assertEqual(reader(), "from-env")


class RunnerTests(unittest.TestCase):
    def test_split_runner(self):
        self.assertEqual(split_runner(""), [])
        self.assertEqual(split_runner("bash -e"), ["bash", "-e"])


class BuildRuntimeTests(unittest.TestCase):
    def test_defaults_and_relative_paths(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            conf = root / "arkctl.env"
            conf.write_text("DATA_DIR=./SavedArks\nBACKUP_COMPRESSION=zstd\n", encoding="utf-8")
            state = build_runtime(conf)
            self.assertEqual(state.DATA_DIR, root / "SavedArks")
            self.assertEqual(state.BACKUP_DIR, root / "backups")
            self.assertEqual(state.MAX_BACKUP_COUNT, 10)
            self.assertEqual(state.SAVE_ATTEMPTS, 3)
            self.assertEqual(state.RCON_PORT, 32330)
            self.assertEqual(state.STATUS_COMMAND, "ListPlayers")
            self.assertTrue(state.RCON_LEGACY_DIALECT)
            self.assertEqual(state.BACKUP_INTERVAL_SECONDS, 3600)
            self.assertEqual(state.BACKUP_COMPRESSION, "deflate")
            self.assertIn("BACKUP_COMPRESSION", (root / "logs" / "arkctl.log").read_text(encoding="utf-8"))

    def test_config_path_from_environment(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            conf = root / "custom.env"
            conf.write_text("RCON_PORT=40000\n", encoding="utf-8")
            with patch.dict(os.environ, {"ARKCTL_CONFIG": str(conf)}):
                state = build_runtime()
            self.assertEqual(state.RCON_PORT, 40000)


if __name__ == "__main__":
    unittest.main()
