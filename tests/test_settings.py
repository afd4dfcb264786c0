from __future__ import annotations

import unittest
from decimal import Decimal

from support import StoreTestCase

from flowforge.core.errors import InvalidArgument
from flowforge.repositories import settings
from flowforge.schemas.settings import AppSettings


class RawSettingTests(StoreTestCase):
    def test_upsert_and_delete(self) -> None:
        with self.store.session(write=True) as db:
            self.assertIsNone(settings.get_setting(db, "window"))
            settings.set_setting(db, "window", "compact")
            settings.set_setting(db, "window", "wide")
            self.assertEqual(settings.get_setting(db, "window"), "wide")
            self.assertEqual(settings.list_settings(db), {"window": "wide"})
            self.assertTrue(settings.delete_setting(db, "window"))
            self.assertFalse(settings.delete_setting(db, "window"))
            self.assertEqual(settings.get_setting(db, "window", "default"), "default")

    def test_empty_key(self) -> None:
        with self.store.session(write=True) as db:
            with self.assertRaises(InvalidArgument):
                settings.set_setting(db, " ", "x")


class AppSettingsTests(StoreTestCase):
    def test_defaults(self) -> None:
        with self.store.session() as db:
            loaded = settings.load_app_settings(db)
        self.assertEqual(loaded, AppSettings())
        self.assertEqual(loaded.idleThresholdMinutes, 5)
        self.assertEqual(loaded.theme, "system")

    def test_save_merges_and_persists(self) -> None:
        with self.store.session(write=True) as db:
            settings.save_app_settings(db, {"theme": "dark", "defaultTaxRate": "0.2"})
            settings.save_app_settings(db, {"idleThresholdMinutes": 10})
        with self.store.session() as db:
            loaded = settings.load_app_settings(db)
            raw = settings.list_settings(db)
        self.assertEqual(loaded.theme, "dark")
        self.assertEqual(loaded.defaultTaxRate, Decimal("0.2"))
        self.assertEqual(loaded.idleThresholdMinutes, 10)
        self.assertEqual(raw["theme"], '"dark"')
        self.assertNotIn("fontSize", raw)

    def test_invalid_values_are_rejected(self) -> None:
        with self.store.session(write=True) as db:
            with self.assertRaises(InvalidArgument):
                settings.save_app_settings(db, {"theme": "neon"})
            with self.assertRaises(InvalidArgument):
                settings.save_app_settings(db, {"noSuchSetting": True})

    def test_unreadable_rows_fall_back_to_defaults(self) -> None:
        with self.store.session(write=True) as db:
            settings.set_setting(db, "theme", "not json")
            settings.set_setting(db, "fontSize", '"gigantic"')
            settings.set_setting(db, "density", '"compact"')
            settings.set_setting(db, "legacyKey", '"whatever"')
        with self.store.session() as db:
            loaded = settings.load_app_settings(db)
        self.assertEqual(loaded.theme, "system")
        self.assertEqual(loaded.fontSize, "medium")
        self.assertEqual(loaded.density, "compact")

    def test_reset(self) -> None:
        with self.store.session(write=True) as db:
            settings.save_app_settings(db, {"theme": "dark"})
            settings.set_setting(db, "window", "wide")
            self.assertEqual(settings.reset_app_settings(db), AppSettings())
        with self.store.session() as db:
            self.assertEqual(settings.list_settings(db), {"window": "wide"})


if __name__ == "__main__":
    unittest.main()
