"""Test configuration loading."""

import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from threshold_sweep.config import get_config, load_env_file, parse_number, parse_thresholds


class TestConfig(unittest.TestCase):

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())

    def tearDown(self):
        for f in self.temp_dir.iterdir():
            f.unlink()
        self.temp_dir.rmdir()

    def _write_env(self, text: str) -> Path:
        env_path = self.temp_dir / ".env"
        env_path.write_text(text, encoding="utf-8")
        return env_path

    def test_load_env_file(self):
        """Test loading environment variables from .env file."""
        env_path = self._write_env(
            "thresholds=0,10,20\n"
            "# This is a comment\n"
            "vmaf_threads = 4\n"
            "debug=true\n"
        )

        env_vars = load_env_file(env_path)

        self.assertEqual(env_vars['thresholds'], '0,10,20')
        self.assertEqual(env_vars['vmaf_threads'], '4')
        self.assertEqual(env_vars['debug'], 'true')
        self.assertNotIn('# This is a comment', env_vars)

    def test_load_env_file_missing(self):
        self.assertEqual(load_env_file(self.temp_dir / "absent.env"), {})

    def test_get_config_defaults(self):
        """Defaults apply when neither .env nor environment set a key."""
        env_path = self._write_env("")
        with patch.dict(os.environ, {}, clear=True):
            config = get_config(env_path)

        self.assertEqual(config['thresholds'], (0, 5, 10, 15, 20, 25, 30, 35, 40))
        self.assertIn('{threshold}', config['transcode_cmd'])
        self.assertEqual(config['ffmpeg_cmd'], 'ffmpeg')
        self.assertEqual(config['json_flush_every'], 1)
        self.assertFalse(config['keep_failed_scratch'])
        self.assertFalse(config['debug'])

    def test_env_file_overrides_environment(self):
        env_path = self._write_env("thresholds=5,1\n")
        with patch.dict(os.environ, {'THRESHOLDS': '7', 'JSON_FLUSH_EVERY': '10'}, clear=True):
            config = get_config(env_path)

        self.assertEqual(config['thresholds'], (5, 1))
        self.assertEqual(config['json_flush_every'], 10)

    def test_timeout_zero_disables(self):
        env_path = self._write_env("transcode_timeout=0\nvmaf_timeout=90\n")
        with patch.dict(os.environ, {}, clear=True):
            config = get_config(env_path)

        self.assertIsNone(config['transcode_timeout'])
        self.assertEqual(config['vmaf_timeout'], 90.0)


class TestThresholdParsing(unittest.TestCase):

    def test_order_preserved(self):
        self.assertEqual(parse_thresholds("40, 0,20"), (40, 0, 20))

    def test_integral_values_become_int(self):
        values = parse_thresholds("10.0,2.5")
        self.assertEqual(values, (10, 2.5))
        self.assertIsInstance(values[0], int)
        self.assertIsInstance(values[1], float)

    def test_invalid_threshold(self):
        with self.assertRaises(ValueError):
            parse_thresholds("10,abc")

    def test_empty_threshold_list(self):
        with self.assertRaises(ValueError):
            parse_thresholds(" , ")

    def test_parse_number_rejects_nan(self):
        with self.assertRaises(ValueError):
            parse_number("nan")


class TestPackageImport(unittest.TestCase):

    def test_package_imports(self):
        """Test that package imports work."""
        import threshold_sweep

        self.assertTrue(hasattr(threshold_sweep, 'get_config'))
        self.assertTrue(hasattr(threshold_sweep, 'SweepConfig'))
        self.assertEqual(threshold_sweep.__version__, "1.0.0")


if __name__ == '__main__':
    unittest.main()
