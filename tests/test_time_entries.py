from __future__ import annotations

import unittest
from datetime import date

from sqlmodel import select

from support import StoreTestCase, at

from flowforge.core.errors import Conflict, InvalidArgument, InvalidState, NotFound
from flowforge.models import InvoiceStatus, TimeEntry
from flowforge.models.time_entry import format_duration, format_duration_short, time_entry_duration
from flowforge.repositories import clients, invoices, time_entries


class TimerTests(StoreTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.client = self.make_client("Acme", "80")
        self.project = self.make_project(self.client.id)

    def start(self, start=None, project_id=None) -> str:
        with self.store.session(write=True) as db:
            return time_entries.create_time_entry(db, project_id or self.project.id, start or at(9))

    def test_start_and_stop(self) -> None:
        entry_id = self.start()
        with self.store.session(write=True) as db:
            seconds = time_entries.stop_time_entry(db, entry_id, at(11, 30), pause_duration=900)
        self.assertEqual(seconds, 8100)

        with self.store.session() as db:
            entry = time_entries.get_time_entry(db, entry_id)
        self.assertEqual(entry.start_time, "2026-01-05T09:00:00.000Z")
        self.assertEqual(entry.end_time, "2026-01-05T11:30:00.000Z")
        self.assertEqual(time_entry_duration(entry), 8100)

    def test_start_unknown_project(self) -> None:
        with self.store.session(write=True) as db:
            with self.assertRaises(NotFound):
                time_entries.create_time_entry(db, "missing", at(9))

    def test_second_running_entry_is_rejected(self) -> None:
        first = self.start()
        with self.assertRaises(Conflict) as ctx:
            self.start(at(10))
        self.assertEqual(ctx.exception.detail["running_entry_id"], first)

        with self.store.session() as db:
            running = time_entries.get_running_time_entry(db, self.project.id)
        self.assertEqual(running.id, first)

    def test_other_project_may_run_concurrently(self) -> None:
        other = self.make_project(self.client.id, "Mobile")
        self.start()
        self.start(project_id=other.id)
        with self.store.session() as db:
            self.assertIsNotNone(time_entries.get_running_time_entry(db, other.id))

    def test_restart_after_stop(self) -> None:
        entry_id = self.start()
        with self.store.session(write=True) as db:
            time_entries.stop_time_entry(db, entry_id, at(10))
        self.start(at(10, 5))

    def test_stop_before_start_keeps_entry_running(self) -> None:
        entry_id = self.start(at(10))
        with self.store.session(write=True) as db:
            with self.assertRaises(InvalidArgument):
                time_entries.stop_time_entry(db, entry_id, at(9))
        with self.store.session() as db:
            self.assertIsNone(time_entries.get_time_entry(db, entry_id).end_time)

    def test_pause_longer_than_elapsed(self) -> None:
        entry_id = self.start()
        with self.store.session(write=True) as db:
            with self.assertRaises(InvalidArgument):
                time_entries.stop_time_entry(db, entry_id, at(9, 10), pause_duration=3600)

    def test_stop_twice(self) -> None:
        entry_id = self.start()
        with self.store.session(write=True) as db:
            time_entries.stop_time_entry(db, entry_id, at(10))
        with self.store.session(write=True) as db:
            with self.assertRaises(NotFound):
                time_entries.stop_time_entry(db, entry_id, at(11))

    def test_pauses_accumulate(self) -> None:
        entry_id = self.start()
        with self.store.session(write=True) as db:
            time_entries.add_pause(db, entry_id, 300)
            time_entries.add_pause(db, entry_id, 600)
        with self.store.session(write=True) as db:
            self.assertEqual(time_entries.stop_time_entry(db, entry_id, at(10)), 2700)

    def test_naive_times_are_utc(self) -> None:
        with self.store.session(write=True) as db:
            entry_id = time_entries.create_time_entry(db, self.project.id, "2026-01-05T09:00:00")
            self.assertEqual(time_entries.get_time_entry(db, entry_id).start_time, "2026-01-05T09:00:00.000Z")

    def test_log_validates_range(self) -> None:
        with self.assertRaises(InvalidArgument):
            self.log_entry(self.project.id, at(10), at(9))


class ListingTests(StoreTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.acme = self.make_client("Acme", "80")
        self.globex = self.make_client("Globex", "100")
        self.website = self.make_project(self.acme.id, "Website")
        self.app = self.make_project(self.globex.id, "App")
        self.monday = self.log_entry(self.website.id, at(9), at(10))
        self.tuesday = self.log_entry(self.website.id, at(9, day=6), at(12, day=6), is_billable=False)
        self.globex_entry = self.log_entry(self.app.id, at(14), at(15))

    def test_filters(self) -> None:
        with self.store.session() as db:
            by_client = time_entries.list_time_entries(db, {"client_id": self.acme.id})
            billable = time_entries.list_time_entries(db, {"is_billable": True})
            monday_only = time_entries.list_time_entries(db, {"start_date": "2026-01-05", "end_date": "2026-01-05"})
            from_tuesday = time_entries.list_time_entries(db, {"start_date": date(2026, 1, 6)})

        self.assertEqual([e.id for e in by_client], [self.tuesday, self.monday])
        self.assertEqual({e.id for e in billable}, {self.monday, self.globex_entry})
        self.assertEqual({e.id for e in monday_only}, {self.monday, self.globex_entry})
        self.assertEqual([e.id for e in from_tuesday], [self.tuesday])

    def test_rows_carry_project_and_client(self) -> None:
        with self.store.session() as db:
            (row,) = time_entries.list_time_entries(db, {"project_id": self.app.id})
        self.assertEqual(row.project_name, "App")
        self.assertEqual(row.client_name, "Globex")
        self.assertEqual(row.duration_seconds, 3600)

    def test_unbilled(self) -> None:
        with self.store.session() as db:
            unbilled = time_entries.list_unbilled_entries(db, client_id=self.acme.id)
        self.assertEqual([e.id for e in unbilled], [self.monday])


class BillingTests(StoreTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.acme = self.make_client("Acme", "80")
        self.project = self.make_project(self.acme.id)
        self.first = self.log_entry(self.project.id, at(9), at(10))
        self.second = self.log_entry(self.project.id, at(11), at(12))
        with self.store.session(write=True) as db:
            self.invoice = invoices.create_invoice(db, {"client_id": self.acme.id})

    def billed_flags(self):
        with self.store.session() as db:
            return {
                entry_id: db.get(TimeEntry, entry_id).is_billed for entry_id in (self.first, self.second)
            }

    def test_mark_billed(self) -> None:
        with self.store.session(write=True) as db:
            count = time_entries.mark_entries_billed(db, [self.first, self.second], self.invoice.id)
        self.assertEqual(count, 2)
        self.assertEqual(self.billed_flags(), {self.first: True, self.second: True})
        with self.store.session() as db:
            self.assertEqual(db.get(TimeEntry, self.first).invoice_id, self.invoice.id)

    def test_batch_is_all_or_nothing(self) -> None:
        with self.store.session(write=True) as db:
            time_entries.mark_entries_billed(db, [self.second], self.invoice.id)
        with self.store.session(write=True) as db:
            with self.assertRaises(Conflict):
                time_entries.mark_entries_billed(db, [self.first, self.second], self.invoice.id)
        self.assertEqual(self.billed_flags(), {self.first: False, self.second: True})

    def test_missing_entry(self) -> None:
        with self.store.session(write=True) as db:
            with self.assertRaises(NotFound):
                time_entries.mark_entries_billed(db, [self.first, "missing"], self.invoice.id)
        self.assertFalse(self.billed_flags()[self.first])

    def test_running_entry_cannot_be_billed(self) -> None:
        with self.store.session(write=True) as db:
            running = time_entries.create_time_entry(db, self.project.id, at(13))
        with self.store.session(write=True) as db:
            with self.assertRaises(Conflict):
                time_entries.mark_entries_billed(db, [running], self.invoice.id)

    def test_other_clients_time_cannot_be_billed(self) -> None:
        globex = self.make_client("Globex")
        other = self.make_project(globex.id, "App")
        entry_id = self.log_entry(other.id, at(9), at(10))
        with self.store.session(write=True) as db:
            with self.assertRaises(Conflict):
                time_entries.mark_entries_billed(db, [entry_id], self.invoice.id)

    def test_void_invoice_cannot_take_time(self) -> None:
        with self.store.session(write=True) as db:
            invoices.transition_invoice(db, self.invoice.id, InvoiceStatus.void)
        with self.store.session(write=True) as db:
            with self.assertRaises(InvalidState):
                time_entries.mark_entries_billed(db, [self.first], self.invoice.id)

    def test_billed_entries_are_immutable(self) -> None:
        with self.store.session(write=True) as db:
            time_entries.mark_entries_billed(db, [self.first], self.invoice.id)
        with self.store.session(write=True) as db:
            with self.assertRaises(InvalidState):
                time_entries.update_time_entry(db, self.first, {"notes": "changed"})
            with self.assertRaises(InvalidState):
                time_entries.delete_time_entry(db, self.first)

    def test_update_and_delete_unbilled(self) -> None:
        with self.store.session(write=True) as db:
            entry = time_entries.update_time_entry(db, self.first, {"end_time": at(10, 30), "notes": "review"})
            self.assertEqual(entry.end_time, "2026-01-05T10:30:00.000Z")
            time_entries.delete_time_entry(db, self.second)
        with self.store.session() as db:
            self.assertIsNone(db.get(TimeEntry, self.second))

    def test_reopening_respects_running_entry(self) -> None:
        with self.store.session(write=True) as db:
            time_entries.create_time_entry(db, self.project.id, at(13))
        with self.store.session(write=True) as db:
            with self.assertRaises(Conflict):
                time_entries.update_time_entry(db, self.first, {"end_time": None})

    def test_recreate_after_void(self) -> None:
        with self.store.session(write=True) as db:
            time_entries.mark_entries_billed(db, [self.first], self.invoice.id)
        with self.store.session(write=True) as db:
            with self.assertRaises(InvalidState):
                time_entries.recreate_time_entry(db, self.first)
            invoices.transition_invoice(db, self.invoice.id, "void")
            copy_id = time_entries.recreate_time_entry(db, self.first)

        with self.store.session() as db:
            copy = db.get(TimeEntry, copy_id)
            original = db.get(TimeEntry, self.first)
        self.assertFalse(copy.is_billed)
        self.assertIsNone(copy.invoice_id)
        self.assertEqual((copy.start_time, copy.end_time), (original.start_time, original.end_time))
        self.assertTrue(original.is_billed)
        self.assertEqual(copy.recreated_from, self.first)

    def void_billed_first(self) -> None:
        with self.store.session(write=True) as db:
            time_entries.mark_entries_billed(db, [self.first], self.invoice.id)
        with self.store.session(write=True) as db:
            invoices.transition_invoice(db, self.invoice.id, "void")

    def test_recreate_only_once(self) -> None:
        self.void_billed_first()
        with self.store.session(write=True) as db:
            copy_id = time_entries.recreate_time_entry(db, self.first)
        with self.store.session(write=True) as db:
            with self.assertRaises(Conflict) as ctx:
                time_entries.recreate_time_entry(db, self.first)
        self.assertEqual(ctx.exception.detail["recreated_as"], copy_id)

        with self.store.session() as db:
            unbilled = [e.id for e in time_entries.list_unbilled_entries(db, project_id=self.project.id)]
        self.assertEqual(sorted(unbilled), sorted([copy_id, self.second]))

    def test_cascade_delete_with_recreated_copy(self) -> None:
        self.void_billed_first()
        with self.store.session(write=True) as db:
            time_entries.recreate_time_entry(db, self.first)
        with self.store.session(write=True) as db:
            clients.delete_client(db, self.acme.id, cascade=True)
        with self.store.session() as db:
            self.assertEqual(db.exec(select(TimeEntry)).all(), [])


class DurationFormatTests(unittest.TestCase):
    def test_formats(self) -> None:
        self.assertEqual(format_duration(8100), "02:15:00")
        self.assertEqual(format_duration_short(8100), "2h 15m")
        self.assertEqual(format_duration_short(300), "5m")
        self.assertEqual(format_duration_short(20), "<1m")


if __name__ == "__main__":
    unittest.main()
