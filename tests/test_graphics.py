#!/usr/bin/env python3
"""
Tests for the graphics components.

Runs the driver installation end to end against a recorded command runner:
with nvidia-smi working, only the NVIDIA driver list may be installed.
"""

import tempfile
import unittest
from pathlib import Path
from unittest import mock

from archpi.graphics import (
    choose_hwaccel_variant,
    find_gdm_logo,
    hwaccel_environment,
    setup_graphics_drivers,
    setup_hardware_acceleration_flatpak,
)
from archpi.probe import GpuVariant
from tests.helpers import make_context, run_commands

LSPCI_NVIDIA = "01:00.0 VGA compatible controller: NVIDIA Corporation AD104 [GeForce RTX 4070]\n"
LSPCI_AMD = "03:00.0 VGA compatible controller: Advanced Micro Devices, Inc. [AMD/ATI] Navi 22\n"


def pacman_installs(runner):
    return [cmd[4:] for cmd in run_commands(runner) if cmd[:2] == ["pacman", "-S"]]


# ═══════════════════════════════════════════════════════════════════════════
# Driver installation end to end
# ═══════════════════════════════════════════════════════════════════════════
class TestGraphicsDrivers(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.ctx = make_context(Path(self._tmp.name))

    def tearDown(self):
        self._tmp.cleanup()

    def probe_outputs(self, outputs, tools):
        self.ctx.runner.output.side_effect = lambda cmd, timeout=10: outputs.get(cmd[0])
        return mock.patch("archpi.probe.command_exists", side_effect=lambda name: name in tools)

    def test_nvidia_smi_installs_only_nvidia_list(self):
        """nvidia-smi succeeds: exactly the NVIDIA list is installed, nothing else."""
        with self.probe_outputs({"nvidia-smi": "NVIDIA-SMI 550.78", "lspci": LSPCI_NVIDIA}, {"nvidia-smi"}):
            setup_graphics_drivers(self.ctx)

        expected = list(self.ctx.catalog.get_packages("graphics", "nvidia"))
        self.assertEqual(pacman_installs(self.ctx.runner), [expected])
        self.ctx.dialog.yesno.assert_not_called()

    def test_unknown_installs_basic_mesa(self):
        with self.probe_outputs({}, set()):
            setup_graphics_drivers(self.ctx)
        expected = list(self.ctx.catalog.get_packages("graphics", "unknown"))
        self.assertEqual(pacman_installs(self.ctx.runner), [expected])

    def test_mismatch_asks_and_can_cancel(self):
        """Active NVIDIA driver on AMD hardware: declining installs nothing."""
        self.ctx.dialog.yesno.return_value = False
        with self.probe_outputs({"nvidia-smi": "ok", "lspci": LSPCI_AMD}, {"nvidia-smi"}):
            setup_graphics_drivers(self.ctx)
        self.ctx.dialog.yesno.assert_called_once()
        self.assertEqual(pacman_installs(self.ctx.runner), [])

    def test_mismatch_confirmed_installs_active_variant(self):
        self.ctx.dialog.yesno.return_value = True
        with self.probe_outputs({"nvidia-smi": "ok", "lspci": LSPCI_AMD}, {"nvidia-smi"}):
            setup_graphics_drivers(self.ctx)
        expected = list(self.ctx.catalog.get_packages("graphics", "nvidia"))
        self.assertEqual(pacman_installs(self.ctx.runner), [expected])


# ═══════════════════════════════════════════════════════════════════════════
# Flatpak hardware acceleration
# ═══════════════════════════════════════════════════════════════════════════
class TestHardwareAcceleration(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.ctx = make_context(Path(self._tmp.name))

    def tearDown(self):
        self._tmp.cleanup()

    def test_environment_per_variant(self):
        self.assertIn("LIBVA_DRIVER_NAME=iHD\n", hwaccel_environment(GpuVariant.INTEL))
        self.assertIn("LIBVA_DRIVER_NAME=radeonsi\n", hwaccel_environment(GpuVariant.AMD))
        self.assertIn("LIBVA_DRIVER_NAME=nvidia\n", hwaccel_environment(GpuVariant.NVIDIA))
        self.assertIn("VDPAU_DRIVER=va_gl\n", hwaccel_environment(GpuVariant.UNKNOWN))

    def test_amd_needs_no_menu(self):
        self.assertIs(choose_hwaccel_variant(self.ctx, GpuVariant.AMD), GpuVariant.AMD)
        self.ctx.dialog.menu.assert_not_called()

    def test_menu_choices(self):
        self.ctx.dialog.menu.return_value = "auto"
        self.assertIs(choose_hwaccel_variant(self.ctx, GpuVariant.INTEL), GpuVariant.INTEL)
        self.ctx.dialog.menu.return_value = "nvidia"
        self.assertIs(choose_hwaccel_variant(self.ctx, GpuVariant.INTEL), GpuVariant.NVIDIA)
        self.ctx.dialog.menu.return_value = None
        self.assertIsNone(choose_hwaccel_variant(self.ctx, GpuVariant.INTEL))

    def test_cancel_is_noop(self):
        self.ctx.dialog.menu.return_value = None
        with mock.patch("archpi.probe.command_exists", return_value=False):
            setup_hardware_acceleration_flatpak(self.ctx)
        self.assertEqual(pacman_installs(self.ctx.runner), [])

    def test_writes_environment_file(self):
        self.ctx.dialog.menu.return_value = "intel"
        with mock.patch("archpi.probe.command_exists", return_value=False):
            setup_hardware_acceleration_flatpak(self.ctx)
        target = self.ctx.settings.environment_dir / "10-flatpak-hwaccel.conf"
        tee = [c for c in self.ctx.runner.run.call_args_list if c.args[0] == ["tee", str(target)]]
        self.assertEqual(len(tee), 1)
        self.assertIn("LIBVA_DRIVER_NAME=iHD", tee[0].kwargs["input"])
        self.assertEqual(pacman_installs(self.ctx.runner), [list(self.ctx.catalog.get_packages("hwaccel", "intel"))])


    def obs_override(self):
        return [cmd for cmd in run_commands(self.ctx.runner) if cmd[:2] == ["flatpak", "override"]]

    def test_obs_override_with_driver(self):
        self.ctx.dialog.menu.return_value = "intel"
        with mock.patch("archpi.probe.command_exists", return_value=False):
            setup_hardware_acceleration_flatpak(self.ctx)
        self.assertEqual(self.obs_override(), [[
            "flatpak", "override", "--system", "--device=dri", "--socket=wayland", "--share=ipc",
            "--env=LIBVA_DRIVER_NAME=iHD", "com.obsproject.Studio",
        ]])

    def test_obs_override_for_unknown_gpu(self):
        """Device access is granted even when no VA-API driver is known."""
        self.ctx.dialog.menu.return_value = "auto"
        with mock.patch("archpi.probe.command_exists", return_value=False):
            setup_hardware_acceleration_flatpak(self.ctx)
        self.assertEqual(self.obs_override(), [[
            "flatpak", "override", "--system", "--device=dri", "--socket=wayland", "--share=ipc",
            "com.obsproject.Studio",
        ]])

class TestGdmLogo(unittest.TestCase):

    def test_find_logo(self):
        with tempfile.TemporaryDirectory() as tmp:
            assets = Path(tmp)
            self.assertIsNone(find_gdm_logo(assets))
            gdm = assets / "logo" / "gdm"
            gdm.mkdir(parents=True)
            (gdm / "README").write_text("x")
            (gdm / "arch.svg").write_text("<svg/>")
            self.assertEqual(find_gdm_logo(assets), gdm / "arch.svg")


if __name__ == "__main__":
    unittest.main()
