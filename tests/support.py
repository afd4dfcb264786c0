from __future__ import annotations

import tempfile
import unittest
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

from flowforge.repositories import clients, projects, time_entries
from flowforge.store import Store


def at(hour: int, minute: int = 0, day: int = 5) -> datetime:
    """An instant on Monday 2026-01-05 (UTC) unless ``day`` says otherwise."""
    return datetime(2026, 1, day, hour, minute, tzinfo=timezone.utc)


class StoreTestCase(unittest.TestCase):
    """Fresh, fully migrated store file per test."""

    def setUp(self) -> None:
        tmp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(tmp_dir.cleanup)
        self.tmp_path = Path(tmp_dir.name)
        self.db_path = self.tmp_path / "flowforge.db"
        self.store = Store.open(self.db_path)
        self.addCleanup(self.store.close)

    def make_client(self, name: str = "Acme", hourly_rate="80", **fields):
        with self.store.session(write=True) as db:
            data = {"name": name, "hourly_rate": Decimal(hourly_rate) if hourly_rate is not None else None}
            data.update(fields)
            return clients.create_client(db, data)

    def make_project(self, client_id=None, name: str = "Website", **fields):
        with self.store.session(write=True) as db:
            return projects.create_project(db, {"name": name, "client_id": client_id, **fields})

    def log_entry(self, project_id: str, start: datetime, end: datetime, pause: int = 0, **fields) -> str:
        with self.store.session(write=True) as db:
            return time_entries.log_time_entry(db, project_id, start, end, pause_duration=pause, **fields)
