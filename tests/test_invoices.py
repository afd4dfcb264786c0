from __future__ import annotations

import unittest
from datetime import date
from decimal import Decimal

from sqlmodel import select

from support import StoreTestCase, at

from flowforge.core.errors import Conflict, InvalidArgument, InvalidState, NotFound
from flowforge.models import Invoice, InvoiceLineItem, TimeEntry
from flowforge.repositories import invoices, time_entries


class InvoiceRepositoryTests(StoreTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.client = self.make_client("Acme", "80", email="ap@acme.test")

    def create(self, line_items=(), **fields) -> Invoice:
        data = {"client_id": self.client.id, "issue_date": date(2026, 1, 5), **fields}
        with self.store.session(write=True) as db:
            return invoices.create_invoice(db, data, line_items)

    def test_numbers_are_generated_in_sequence(self) -> None:
        first = self.create()
        second = self.create()
        self.assertEqual(first.invoice_number, "INV-2026-0001")
        self.assertEqual(second.invoice_number, "INV-2026-0002")
        self.assertEqual(first.status, "draft")
        self.assertEqual(first.issue_date, "2026-01-05")

    def test_numbering_counts_all_clients(self) -> None:
        other = self.make_client("Globex")
        self.create()
        with self.store.session(write=True) as db:
            invoice = invoices.create_invoice(db, {"client_id": other.id, "issue_date": "2026-03-01"})
        self.assertEqual(invoice.invoice_number, "INV-2026-0002")

    def test_duplicate_number_for_client(self) -> None:
        self.create(invoice_number="A-1")
        with self.assertRaises(Conflict):
            self.create(invoice_number="A-1")

    def test_same_number_for_other_client(self) -> None:
        other = self.make_client("Globex")
        self.create(invoice_number="A-1")
        with self.store.session(write=True) as db:
            invoice = invoices.create_invoice(db, {"client_id": other.id, "invoice_number": "A-1"})
        self.assertEqual(invoice.invoice_number, "A-1")

    def test_unknown_client(self) -> None:
        with self.store.session(write=True) as db:
            with self.assertRaises(NotFound):
                invoices.create_invoice(db, {"client_id": "missing"})

    def test_due_before_issue(self) -> None:
        with self.assertRaises(InvalidArgument):
            self.create(due_date=date(2026, 1, 1))

    def test_bad_line_item_writes_nothing(self) -> None:
        with self.assertRaises(InvalidArgument):
            self.create([{"description": "Design", "quantity": "2", "unit_price": "50"},
                         {"description": "Oops", "quantity": "-1", "unit_price": "50"}])
        with self.store.session() as db:
            self.assertEqual(invoices.list_invoices(db), [])

    def test_totals_follow_line_items(self) -> None:
        invoice = self.create(
            [
                {"description": "Design", "quantity": "2", "unit_price": "50"},
                {"description": "Hosting", "quantity": "1", "unit_price": "19.99"},
            ],
            tax_rate="0.2",
        )
        with self.store.session() as db:
            totals = invoices.compute_invoice_total(db, invoice.id)
        self.assertEqual(totals.subtotal, Decimal("119.99"))
        self.assertEqual(totals.tax_amount, Decimal("24.00"))
        self.assertEqual(totals.total, Decimal("143.99"))

        with self.store.session(write=True) as db:
            item = invoices.list_line_items(db, invoice.id)[1]
            invoices.update_line_item(db, item.id, {"quantity": "2"})
        with self.store.session() as db:
            self.assertEqual(invoices.compute_invoice_total(db, invoice.id).subtotal, Decimal("139.98"))

    def test_details(self) -> None:
        invoice = self.create([{"description": "Design", "quantity": "1.5", "unit_price": "80"}])
        with self.store.session() as db:
            details = invoices.get_invoice_details(db, invoice.id)
        self.assertEqual(details.client_name, "Acme")
        self.assertEqual(details.client_email, "ap@acme.test")
        self.assertEqual([item.description for item in details.line_items], ["Design"])
        self.assertEqual(details.total, Decimal("120.00"))

    def test_state_machine(self) -> None:
        invoice = self.create()
        with self.store.session(write=True) as db:
            with self.assertRaises(InvalidState):
                invoices.transition_invoice(db, invoice.id, "paid")
            self.assertEqual(invoices.transition_invoice(db, invoice.id, "sent").status, "sent")
            with self.assertRaises(InvalidState):
                invoices.transition_invoice(db, invoice.id, "draft")
            self.assertEqual(invoices.transition_invoice(db, invoice.id, "paid").status, "paid")
            with self.assertRaises(InvalidState):
                invoices.transition_invoice(db, invoice.id, "void")
            with self.assertRaises(InvalidArgument):
                invoices.transition_invoice(db, invoice.id, "overdue")

    def test_void_from_sent(self) -> None:
        invoice = self.create()
        with self.store.session(write=True) as db:
            invoices.transition_invoice(db, invoice.id, "sent")
            self.assertEqual(invoices.transition_invoice(db, invoice.id, "void").status, "void")

    def test_only_drafts_are_editable(self) -> None:
        invoice = self.create([{"description": "Design", "quantity": "1", "unit_price": "80"}])
        with self.store.session(write=True) as db:
            updated = invoices.update_invoice(db, invoice.id, {"notes": "Thanks", "due_date": "2026-02-04"})
            self.assertEqual(updated.due_date, "2026-02-04")
            invoices.transition_invoice(db, invoice.id, "sent")
            with self.assertRaises(InvalidState):
                invoices.update_invoice(db, invoice.id, {"notes": "late edit"})
            with self.assertRaises(InvalidState):
                invoices.add_line_item(db, invoice.id, {"description": "Extra", "quantity": "1", "unit_price": "1"})

    def test_replace_line_items(self) -> None:
        invoice = self.create([{"description": "Old", "quantity": "1", "unit_price": "10"}])
        with self.store.session(write=True) as db:
            items = invoices.replace_line_items(
                db,
                invoice.id,
                [
                    {"description": "First", "quantity": "1", "unit_price": "5"},
                    {"description": "Second", "quantity": "3", "unit_price": "5"},
                ],
            )
        self.assertEqual([item.description for item in items], ["First", "Second"])
        with self.store.session(write=True) as db:
            invoices.delete_line_item(db, items[0].id)
            self.assertEqual(invoices.compute_invoice_total(db, invoice.id).total, Decimal("15.00"))

    def test_overdue(self) -> None:
        late = self.create(due_date=date(2026, 1, 20))
        self.create(due_date=date(2026, 3, 1))
        draft_late = self.create(due_date=date(2026, 1, 10))
        with self.store.session(write=True) as db:
            for invoice in invoices.list_invoices(db):
                if invoice.id != draft_late.id:
                    invoices.transition_invoice(db, invoice.id, "sent")
        with self.store.session() as db:
            overdue = invoices.list_overdue_invoices(db, date(2026, 2, 1))
        self.assertEqual([invoice.id for invoice in overdue], [late.id])

    def test_delete_draft(self) -> None:
        invoice = self.create([{"description": "Design", "quantity": "1", "unit_price": "80"}])
        with self.store.session(write=True) as db:
            invoices.delete_invoice(db, invoice.id)
        with self.store.session() as db:
            self.assertIsNone(db.get(Invoice, invoice.id))
            self.assertEqual(len(db.exec(select(InvoiceLineItem)).all()), 0)


class InvoiceFromTimeTests(StoreTestCase):
    def test_acme_website_scenario(self) -> None:
        acme = self.make_client("Acme", "80")
        website = self.make_project(acme.id, "Website")
        with self.store.session(write=True) as db:
            entry_id = time_entries.create_time_entry(db, website.id, at(9))
        with self.store.session(write=True) as db:
            self.assertEqual(time_entries.stop_time_entry(db, entry_id, at(11, 30), pause_duration=900), 8100)

        with self.store.session(write=True) as db:
            invoice = invoices.create_invoice_from_entries(db, acme.id, [entry_id], issue_date="2026-01-05")
        with self.store.session() as db:
            details = invoices.get_invoice_details(db, invoice.id)
            entry = db.get(TimeEntry, entry_id)

        (item,) = details.line_items
        self.assertEqual(item.quantity, Decimal("2.25"))
        self.assertEqual(item.unit_price, Decimal("80"))
        self.assertEqual(details.total, Decimal("180.00"))
        self.assertTrue(entry.is_billed)
        self.assertEqual(entry.invoice_id, invoice.id)

    def test_rejected_entries_leave_no_invoice(self) -> None:
        acme = self.make_client("Acme", "80")
        website = self.make_project(acme.id, "Website")
        entry_id = self.log_entry(website.id, at(9), at(10))
        with self.store.session(write=True) as db:
            invoices.create_invoice_from_entries(db, acme.id, [entry_id])

        with self.store.session(write=True) as db:
            with self.assertRaises(Conflict):
                invoices.create_invoice_from_entries(db, acme.id, [entry_id])
        with self.store.session() as db:
            self.assertEqual(len(invoices.list_invoices(db)), 1)

    def test_billed_invoice_cannot_be_deleted(self) -> None:
        acme = self.make_client("Acme", "80")
        website = self.make_project(acme.id, "Website")
        entry_id = self.log_entry(website.id, at(9), at(10))
        with self.store.session(write=True) as db:
            invoice = invoices.create_invoice_from_entries(db, acme.id, [entry_id])
        with self.store.session(write=True) as db:
            with self.assertRaises(Conflict):
                invoices.delete_invoice(db, invoice.id)


if __name__ == "__main__":
    unittest.main()
