import json
import logging
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import run
from logging_utils import get_log_level, log_event, set_log_level


class TestBuildConfig(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.config_file = Path(self.tmpdir.name) / "config.json"

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_flags_override_file(self):
        self.config_file.write_text(json.dumps({
            "version": 1,
            "control": {"port": 9000},
            "connection": {"host": "10.0.0.2"},
        }), encoding="utf-8")
        args = run.build_parser().parse_args([
            "--config", str(self.config_file),
            "--renderer-port", "9100",
            "--dry-run",
            "--seed", "7",
            "--log-level", "DEBUG",
        ])
        config = run.build_config(args)

        self.assertEqual(config.control.port, 9000)
        self.assertEqual(config.connection.host, "10.0.0.2")
        self.assertEqual(config.connection.port, 9100)
        self.assertTrue(config.connection.dry_run)
        self.assertEqual(config.random_seed, 7)
        self.assertEqual(config.log_level, "DEBUG")

    def test_missing_file_gives_defaults(self):
        args = run.build_parser().parse_args(["--config", str(self.config_file)])
        config = run.build_config(args)
        self.assertEqual(config.control.port, 8765)
        self.assertFalse(config.connection.dry_run)
        self.assertIsNone(config.random_seed)

    def test_main_reports_startup_failure(self):
        async def boom(_config):
            raise OSError("address in use")

        with mock.patch.object(run, "run_service", boom), \
                mock.patch.object(run, "log_event") as log:
            with self.assertRaises(SystemExit) as ctx:
                run.main(["--config", str(self.config_file)])
        self.assertEqual(ctx.exception.code, 1)
        self.assertEqual(log.call_args[0][:2], ("ERROR", "FluidKeys"))


class TestLogging(unittest.TestCase):
    def tearDown(self):
        set_log_level("INFO")

    def test_warn_alias(self):
        set_log_level("WARN")
        self.assertEqual(get_log_level(), "WARNING")

    def test_fields_are_appended(self):
        with self.assertLogs("fluidkeys", level="INFO") as cm:
            log_event("INFO", "SessionManager", "Session opened", session=3)
        record = cm.records[0]
        self.assertEqual(record.getMessage(), "Session opened | session=3")
        self.assertEqual(record.tag, "SessionManager")
        self.assertEqual(record.levelno, logging.INFO)


if __name__ == "__main__":
    unittest.main()
