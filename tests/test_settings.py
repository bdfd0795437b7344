#!/usr/bin/env python3
"""
Tests for run-time settings and their YAML override file.
"""

import dataclasses
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from archpi.errors import ConfigError
from archpi.settings import ENV_CONFIG, ROOT_DIR, Settings, load_settings, read_config


class TestSettings(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def write(self, text):
        path = self.root / "archpi.yaml"
        path.write_text(text)
        return path

    def test_defaults(self):
        s = Settings()
        self.assertEqual(s.version, "3.0.0")
        self.assertEqual(s.dialog_height, 20)
        self.assertEqual(s.dialog_width, 70)
        self.assertEqual(s.boot_failure_threshold, 3)
        self.assertEqual(s.loader_conf, Path("/boot/loader/loader.conf"))
        self.assertEqual(s.loader_entries, Path("/boot/loader/entries"))

    def test_assets_next_to_installer(self):
        """The assets directory does not depend on the working directory."""
        s = Settings()
        self.assertTrue(s.assets_dir.is_absolute())
        self.assertEqual(s.assets_dir, ROOT_DIR.parent / "assets")

    def test_frozen(self):
        with self.assertRaises(dataclasses.FrozenInstanceError):
            Settings().mirror_country = "Germany"

    def test_no_override(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            self.assertEqual(load_settings(), Settings())

    def test_overrides_are_coerced(self):
        path = self.write(
            "mirror_country: Germany\nparallel_downloads: '5'\ntemp_dir: ~/archpi-tmp\n"
            "locales: en_GB.UTF-8 UTF-8\n"
        )
        s = load_settings(path)
        self.assertEqual(s.mirror_country, "Germany")
        self.assertEqual(s.parallel_downloads, 5)
        self.assertEqual(s.temp_dir, Path.home() / "archpi-tmp")
        self.assertEqual(s.locales, ("en_GB.UTF-8 UTF-8",))

    def test_override_from_environment(self):
        path = self.write("plymouth_theme: bgrt\n")
        with mock.patch.dict(os.environ, {ENV_CONFIG: str(path)}):
            self.assertEqual(load_settings().plymouth_theme, "bgrt")

    def test_unknown_key_rejected(self):
        with self.assertRaises(ConfigError) as caught:
            load_settings(self.write("mirror_contry: Germany\n"))
        self.assertIn("mirror_contry", str(caught.exception))

    def test_bad_integer(self):
        with self.assertRaises(ConfigError):
            load_settings(self.write("dialog_width: wide\n"))

    def test_not_a_mapping(self):
        with self.assertRaises(ConfigError):
            load_settings(self.write("- just\n- a list\n"))

    def test_missing_file(self):
        with self.assertRaises(ConfigError):
            load_settings(self.root / "absent.yaml")

    def test_empty_file(self):
        self.assertEqual(load_settings(self.write("")), Settings())

    def test_bundled_configs_exist(self):
        for name in ("dnsmasq.conf", "earlyoom", "zswap-modprobe.conf", "zswap.rules", "topgrade.toml",
                     "system-auto-update.sh", "snapper-root", "snap-pac.ini", "starship.toml",
                     "mise-config.toml", "gdm-custom-logo.css", "split-lock-mitigation.conf"):
            self.assertTrue(read_config(name).strip(), name)


if __name__ == "__main__":
    unittest.main()
