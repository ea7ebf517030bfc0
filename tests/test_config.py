"""
Tests for config loading and session backend resolution.
"""

import configparser
import unittest
import tempfile
from pathlib import Path

from wacli.core.configs import DEFAULT_STORE_DIR, get_settings, load_raw_config
from wacli.core.errors import ConfigError
from wacli.core.session import load_session_factory
from wacli.daemon.protocol import DIAL_TIMEOUT


class TestConfig(unittest.TestCase):
    """Test cases for configuration helpers."""

    def setUp(self):
        """Set up test environment with temporary directories."""
        self.temp_dir = tempfile.mkdtemp()
        self.config_file = Path(self.temp_dir) / "config.cfg"
        self.store_dir = Path(self.temp_dir) / "store"

    def tearDown(self):
        """Clean up temporary files."""
        import shutil

        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_config(self, defaults: dict[str, str]) -> None:
        cfg = configparser.ConfigParser()
        cfg["DEFAULT"] = defaults
        self.config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, "w") as handle:
            cfg.write(handle)

    def test_load_raw_config_lowercases_keys(self):
        self._write_config({"STORE_DIR": "/tmp/wa", "SESSION_BACKEND": "pkg.mod:Session"})

        raw = load_raw_config(self.config_file)
        self.assertEqual(raw["store_dir"], "/tmp/wa")
        self.assertEqual(raw["session_backend"], "pkg.mod:Session")

    def test_load_raw_config_missing_file_returns_empty_dict(self):
        self.assertFalse(self.config_file.exists())
        raw = load_raw_config(self.config_file)
        self.assertEqual(raw, {}, "Should return empty dict when config does not exist")

    def test_load_raw_config_rejects_garbage(self):
        self.config_file.write_text("this is not ini\n[[[\n")
        with self.assertRaises(ConfigError):
            load_raw_config(self.config_file)

    def test_defaults(self):
        settings = get_settings({}, environ={})

        self.assertEqual(settings.store_dir, DEFAULT_STORE_DIR.expanduser().resolve())
        self.assertEqual(settings.session_backend, "")
        self.assertEqual(settings.dial_timeout, DIAL_TIMEOUT)

    def test_priority_config_then_env_then_flag(self):
        raw = {"store_dir": "/from/config", "session_backend": "cfg:Session", "dial_timeout": "2"}

        settings = get_settings(raw, environ={})
        self.assertEqual(settings.store_dir, Path("/from/config").resolve())
        self.assertEqual(settings.dial_timeout, 2.0)

        env = {"WACLI_STORE_DIR": str(self.store_dir), "WACLI_DIAL_TIMEOUT_S": "0.5"}
        settings = get_settings(raw, environ=env)
        self.assertEqual(settings.store_dir, self.store_dir.resolve())
        self.assertEqual(settings.session_backend, "cfg:Session")
        self.assertEqual(settings.dial_timeout, 0.5)

        flag_dir = Path(self.temp_dir) / "flag"
        settings = get_settings(raw, store_dir=str(flag_dir), environ=env)
        self.assertEqual(settings.store_dir, flag_dir.resolve())

    def test_store_env_file_sits_between_config_and_environment(self):
        self.store_dir.mkdir()
        (self.store_dir / ".env").write_text(
            "WACLI_SESSION_BACKEND=envfile:Session\nWACLI_DIAL_TIMEOUT_S=3\n"
        )
        raw = {"session_backend": "cfg:Session"}

        settings = get_settings(raw, store_dir=str(self.store_dir), environ={})
        self.assertEqual(settings.session_backend, "envfile:Session")
        self.assertEqual(settings.dial_timeout, 3.0)

        settings = get_settings(
            raw,
            store_dir=str(self.store_dir),
            environ={"WACLI_SESSION_BACKEND": "env:Session"},
        )
        self.assertEqual(settings.session_backend, "env:Session")
        self.assertEqual(settings.dial_timeout, 3.0)

    def test_invalid_dial_timeout(self):
        for value in ("soon", "0", "-1"):
            with self.subTest(value=value):
                with self.assertRaises(ConfigError):
                    get_settings({"dial_timeout": value}, environ={})


class TestSessionBackend(unittest.TestCase):
    def test_loads_class_by_reference(self):
        from fakes import FakeSession

        self.assertIs(load_session_factory("fakes:FakeSession"), FakeSession)

    def test_missing_backend(self):
        with self.assertRaises(ConfigError) as context:
            load_session_factory("")
        self.assertIn("No session backend configured", str(context.exception))

    def test_bad_references(self):
        for backend in ("fakes", "fakes:", ":FakeSession", "no_such_module_xyz:Session", "fakes:Missing"):
            with self.subTest(backend=backend):
                with self.assertRaises(ConfigError):
                    load_session_factory(backend)

    def test_rejects_non_session_class(self):
        with self.assertRaises(ConfigError):
            load_session_factory("fakes:RecordingHandler")


if __name__ == "__main__":
    unittest.main()
