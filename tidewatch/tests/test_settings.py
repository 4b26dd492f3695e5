import json
import stat
import tempfile
import unittest
from pathlib import Path

from tidewatch.settings import DEFAULT_SETTINGS, SettingsError, load_settings, save_settings, validate_settings


class SettingsTests(unittest.TestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.path = Path(tmpdir.name) / "tide-watch" / "config.json"

    def test_defaults_without_file_or_environment(self) -> None:
        self.assertEqual(load_settings(path=self.path, environ={}), DEFAULT_SETTINGS)

    def test_precedence_file_then_environment_then_overrides(self) -> None:
        self.path.parent.mkdir(parents=True)
        self.path.write_text(json.dumps({"refreshInterval": 20, "gatewayInterval": 60}), encoding="utf-8")

        settings = load_settings(
            overrides={"gatewayTimeout": 5},
            path=self.path,
            environ={"TIDE_WATCH_GATEWAY_INTERVAL": "120"},
        )

        self.assertEqual(settings, {"refreshInterval": 20, "gatewayInterval": 120, "gatewayTimeout": 5})

    def test_range_boundaries(self) -> None:
        self.assertEqual(validate_settings({"refreshInterval": 1}), {"refreshInterval": 1})
        self.assertEqual(validate_settings({"refreshInterval": "300"}), {"refreshInterval": 300})
        for key, value in (
            ("refreshInterval", 0),
            ("refreshInterval", 301),
            ("gatewayInterval", 4),
            ("gatewayTimeout", 31),
            ("gatewayTimeout", "soon"),
            ("gatewayTimeout", True),
        ):
            with self.subTest(key=key, value=value):
                with self.assertRaises(SettingsError):
                    validate_settings({key: value})

    def test_unknown_key_is_rejected(self) -> None:
        with self.assertRaises(SettingsError) as ctx:
            validate_settings({"pollEvery": 5})
        self.assertIn("Unknown config key", str(ctx.exception))

    def test_invalid_file_is_ignored_with_warning(self) -> None:
        self.path.parent.mkdir(parents=True)
        self.path.write_text(json.dumps({"refreshInterval": 9999}), encoding="utf-8")
        with self.assertLogs("tidewatch", level="WARNING"):
            settings = load_settings(path=self.path, environ={})
        self.assertEqual(settings, DEFAULT_SETTINGS)

    def test_invalid_environment_value_raises(self) -> None:
        with self.assertRaises(SettingsError):
            load_settings(path=self.path, environ={"TIDE_WATCH_REFRESH_INTERVAL": "0"})

    def test_save_merges_and_restricts_permissions(self) -> None:
        save_settings({"refreshInterval": 15}, path=self.path)
        save_settings({"gatewayTimeout": 10}, path=self.path)

        stored = json.loads(self.path.read_text(encoding="utf-8"))
        self.assertEqual(stored, {"refreshInterval": 15, "gatewayTimeout": 10})
        self.assertEqual(stat.S_IMODE(self.path.stat().st_mode), 0o600)
        self.assertEqual(load_settings(path=self.path, environ={})["refreshInterval"], 15)

    def test_save_rejects_invalid_values_without_writing(self) -> None:
        with self.assertRaises(SettingsError):
            save_settings({"gatewayInterval": 1}, path=self.path)
        self.assertFalse(self.path.exists())


if __name__ == "__main__":
    unittest.main()
