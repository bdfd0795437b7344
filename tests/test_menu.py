#!/usr/bin/env python3
"""
Tests for menu dispatch.

Validates that every component has a handler, that checklist tags map back
to components, and the failure semantics: a skipped component lets the rest
run, a failed command halts the remaining selections.
"""

import tempfile
import unittest
from pathlib import Path
from unittest import mock

from archpi import menu
from archpi.errors import CommandError, StepSkipped
from archpi.menu import CHECKLISTS, COMPLETE_SETUP, HANDLERS, MAIN_MENU, Category, Component, MainMenu
from tests.helpers import make_context


# ═══════════════════════════════════════════════════════════════════════════
# Dispatch table
# ═══════════════════════════════════════════════════════════════════════════
class TestDispatchTable(unittest.TestCase):

    def test_every_component_has_handler(self):
        self.assertEqual(set(HANDLERS), set(Component))
        self.assertTrue(all(callable(h) for h in HANDLERS.values()))

    def test_every_category_has_checklist(self):
        self.assertEqual(set(CHECKLISTS), set(Category))

    def test_checklist_tags_unique(self):
        tags = [c.value for items in CHECKLISTS.values() for c, _, _ in items]
        self.assertEqual(len(tags), len(set(tags)))

    def test_default_selections(self):
        defaults = {c for c, _, on in CHECKLISTS[Category.SYSTEM] if on}
        self.assertEqual(defaults, {Component.PACMAN, Component.AUR, Component.LOCALES, Component.SERVICES})
        enhancements = {c for c, _, on in CHECKLISTS[Category.ENHANCEMENTS] if on}
        self.assertEqual(enhancements, {Component.ZSWAP})

    def test_main_menu_numbering(self):
        self.assertEqual([tag for tag, _, _ in MAIN_MENU], [str(i) for i in range(1, 12)])

    def test_complete_setup_order(self):
        self.assertEqual(COMPLETE_SETUP[0], Component.PACMAN)
        self.assertEqual(COMPLETE_SETUP[-1], Component.GNOME_EXTENSIONS)


# ═══════════════════════════════════════════════════════════════════════════
# Running components
# ═══════════════════════════════════════════════════════════════════════════
class TestRunComponents(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.ctx = make_context(Path(self._tmp.name))
        self.calls = []

    def tearDown(self):
        self._tmp.cleanup()

    def handler(self, name, error=None):
        def run(ctx):
            self.calls.append(name)
            if error is not None:
                raise error
        return run

    def test_runs_in_selection_order(self):
        handlers = {Component.LOCALES: self.handler("locales"), Component.PACMAN: self.handler("pacman")}
        with mock.patch.dict(HANDLERS, handlers):
            self.assertTrue(menu.run_components(self.ctx, [Component.LOCALES, Component.PACMAN]))
        self.assertEqual(self.calls, ["locales", "pacman"])

    def test_skip_continues(self):
        """A StepSkipped component is logged and the next one still runs."""
        handlers = {
            Component.SNAPPER: self.handler("snapper", StepSkipped("snapper not available")),
            Component.SERVICES: self.handler("services"),
        }
        with mock.patch.dict(HANDLERS, handlers):
            self.assertTrue(menu.run_components(self.ctx, [Component.SNAPPER, Component.SERVICES]))
        self.assertEqual(self.calls, ["snapper", "services"])

    def test_command_error_halts_queue(self):
        """A failed command stops every selection queued after it."""
        handlers = {
            Component.PACMAN: self.handler("pacman", CommandError(["pacman", "-Syuu"], 1)),
            Component.AUR: self.handler("aur"),
            Component.LOCALES: self.handler("locales"),
        }
        with mock.patch.dict(HANDLERS, handlers):
            ok = menu.run_components(self.ctx, [Component.PACMAN, Component.AUR, Component.LOCALES])
        self.assertFalse(ok)
        self.assertEqual(self.calls, ["pacman"])


# ═══════════════════════════════════════════════════════════════════════════
# MainMenu
# ═══════════════════════════════════════════════════════════════════════════
class TestMainMenu(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.ctx = make_context(Path(self._tmp.name))
        self.menu = MainMenu(self.ctx)

    def tearDown(self):
        self._tmp.cleanup()

    def test_select_maps_tags(self):
        self.ctx.dialog.checklist.return_value = ["drivers", "gdm"]
        self.assertEqual(self.menu.select(Category.GRAPHICS), [Component.DRIVERS, Component.GDM])

    def test_select_cancel(self):
        self.ctx.dialog.checklist.return_value = None
        self.assertEqual(self.menu.select(Category.GRAPHICS), [])

    def test_choose(self):
        self.ctx.dialog.menu.return_value = "5"
        self.assertIs(self.menu.choose(), Component.GAMING)
        self.ctx.dialog.menu.return_value = "7"
        self.assertIs(self.menu.choose(), Category.ENHANCEMENTS)
        self.ctx.dialog.menu.return_value = None
        self.assertIsNone(self.menu.choose())

    def test_complete_setup_declined(self):
        self.ctx.dialog.yesno.return_value = False
        with mock.patch.object(menu, "run_components") as run:
            self.menu.complete_setup()
        run.assert_not_called()

    def test_complete_setup_runs_all(self):
        self.ctx.dialog.yesno.return_value = True
        with mock.patch.object(menu, "run_components", return_value=True) as run:
            self.menu.complete_setup()
        run.assert_called_once_with(self.ctx, COMPLETE_SETUP)
        self.ctx.dialog.msgbox.assert_called_once()

    def test_loop_until_exit(self):
        """Menu loop dispatches choices, then cleans up and offers a reboot."""
        self.ctx.settings.temp_dir.mkdir(parents=True)
        self.ctx.dialog.menu.side_effect = ["6", "11"]
        self.ctx.dialog.yesno.return_value = False
        with mock.patch.object(menu, "run_components") as run:
            self.menu.run()
        run.assert_called_once_with(self.ctx, [Component.VIRTUALIZATION])
        self.assertFalse(self.ctx.settings.temp_dir.exists())
        self.ctx.runner.run.assert_not_called()

    def test_unexpected_error_keeps_menu_alive(self):
        self.ctx.dialog.menu.side_effect = ["8", "11"]
        self.ctx.dialog.yesno.return_value = False
        with mock.patch.object(menu, "run_components", side_effect=[RuntimeError("boom")]) as run:
            self.menu.run()
        self.assertEqual(run.call_count, 1)
        self.assertEqual(self.ctx.dialog.menu.call_count, 2)

    def test_reboot_confirmed(self):
        self.ctx.dialog.yesno.return_value = True
        self.menu.finish()
        self.assertEqual(self.ctx.runner.run.call_args.args[0], ["reboot"])


if __name__ == "__main__":
    unittest.main()
