"""
Invoice Repository Module

Invoices move forward through draft -> sent -> paid, with void reachable from
draft or sent. Only draft invoices can be edited or deleted. Totals are
derived from the line items on every read and never stored.
"""
import logging
import re
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, List, Optional, Sequence

from sqlalchemy import literal_column
from sqlmodel import Session, select

from flowforge.core.clock import CalendarDate, format_date, now_timestamp, parse_date, utc_now
from flowforge.core.errors import Conflict, InvalidArgument, InvalidState, StoreError
from flowforge.models.client import Client
from flowforge.models.invoice import (
    INVOICE_TRANSITIONS,
    Invoice,
    InvoiceLineItem,
    InvoiceLineItemRead,
    InvoiceStatus,
)
from flowforge.models.project import Project
from flowforge.models.time_entry import TimeEntry, time_entry_duration
from flowforge.repositories.common import (
    coerce_enum,
    get_or_raise,
    hours_from_seconds,
    quantize_money,
    validate_input,
)
from flowforge.repositories.time_entries import bill_entries
from flowforge.schemas.invoice import (
    InvoiceCreate,
    InvoiceTotals,
    InvoiceUpdate,
    InvoiceWithDetails,
    LineItemCreate,
    LineItemUpdate,
)

logger = logging.getLogger(__name__)

INVOICE_NUMBER_PATTERN = re.compile(r"^INV-(\d+)-(\d+)$")


def next_invoice_number(db: Session, year: Optional[int] = None) -> str:
    """Next free ``INV-<year>-<NNNN>`` number, counting across all clients."""
    year = year or utc_now().year
    numbers = db.exec(
        select(Invoice.invoice_number).where(Invoice.invoice_number.like(f"INV-{year}-%"))
    ).all()
    highest = 0
    for number in numbers:
        match = INVOICE_NUMBER_PATTERN.match(number or "")
        if match and int(match.group(1)) == year:
            highest = max(highest, int(match.group(2)))
    return f"INV-{year}-{highest + 1:04d}"


def _ensure_number_free(
    db: Session, client_id: str, invoice_number: str, exclude_id: Optional[str] = None
) -> None:
    statement = select(Invoice.id).where(
        Invoice.client_id == client_id, Invoice.invoice_number == invoice_number
    )
    if exclude_id is not None:
        statement = statement.where(Invoice.id != exclude_id)
    if db.exec(statement).first() is not None:
        raise Conflict(
            "Invoice number already used for this client",
            detail={"client_id": client_id, "invoice_number": invoice_number},
        )


def _new_invoice(db: Session, payload: InvoiceCreate) -> Invoice:
    get_or_raise(db, Client, payload.client_id, "Client")
    issue_date = payload.issue_date or utc_now().date()
    if payload.due_date is not None and payload.due_date < issue_date:
        raise InvalidArgument("due_date must not be before issue_date")

    number = payload.invoice_number or next_invoice_number(db, issue_date.year)
    _ensure_number_free(db, payload.client_id, number)

    now = now_timestamp()
    return Invoice(
        client_id=payload.client_id,
        invoice_number=number,
        issue_date=format_date(issue_date),
        due_date=format_date(payload.due_date) if payload.due_date else None,
        status=InvoiceStatus.draft.value,
        notes=payload.notes,
        tax_rate=payload.tax_rate,
        created_at=now,
        updated_at=now,
    )


def create_invoice(db: Session, data: Any, line_items: Iterable[Any] = ()) -> Invoice:
    """
    Create a draft invoice, optionally with its line items.

    Raises:
        NotFound: if the client does not exist
        Conflict: if the invoice number is already used for the client
        InvalidArgument: if the invoice or any line item is malformed
    """
    payload = validate_input(InvoiceCreate, data)
    items = [validate_input(LineItemCreate, item) for item in line_items]
    invoice = _new_invoice(db, payload)

    db.add(invoice)
    db.flush()
    for item in items:
        db.add(InvoiceLineItem(invoice_id=invoice.id, **item.model_dump()))
    db.commit()
    db.refresh(invoice)
    logger.info("Created invoice %s (%s) with %d items", invoice.id, invoice.invoice_number, len(items))
    return invoice


def get_invoice(db: Session, invoice_id: str) -> Invoice:
    return get_or_raise(db, Invoice, invoice_id, "Invoice")


def list_line_items(db: Session, invoice_id: str) -> List[InvoiceLineItem]:
    get_invoice(db, invoice_id)
    return list(
        db.exec(
            select(InvoiceLineItem)
            .where(InvoiceLineItem.invoice_id == invoice_id)
            .order_by(literal_column("rowid"))
        ).all()
    )


def _totals(items: Sequence[InvoiceLineItem], tax_rate: Optional[Decimal]) -> InvoiceTotals:
    subtotal = quantize_money(sum((item.line_total for item in items), Decimal(0)))
    tax_amount = quantize_money(subtotal * Decimal(tax_rate or 0))
    return InvoiceTotals(subtotal=subtotal, tax_amount=tax_amount, total=subtotal + tax_amount)


def compute_invoice_total(db: Session, invoice_id: str) -> InvoiceTotals:
    """Subtotal, tax and total of an invoice, computed from its current line items."""
    invoice = get_invoice(db, invoice_id)
    return _totals(list_line_items(db, invoice_id), invoice.tax_rate)


def get_invoice_details(db: Session, invoice_id: str) -> InvoiceWithDetails:
    invoice = get_invoice(db, invoice_id)
    client = db.get(Client, invoice.client_id)
    items = list_line_items(db, invoice_id)
    totals = _totals(items, invoice.tax_rate)
    return InvoiceWithDetails(
        **invoice.model_dump(),
        client_name=client.name if client is not None else "",
        client_email=client.email if client is not None else None,
        client_address=client.address if client is not None else None,
        client_vat_number=client.vat_number if client is not None else None,
        line_items=[InvoiceLineItemRead.model_validate(item, from_attributes=True) for item in items],
        **totals.model_dump(),
    )


def list_invoices(
    db: Session,
    client_id: Optional[str] = None,
    status: Optional[str] = None,
) -> List[Invoice]:
    """Invoices, most recently issued first."""
    statement = select(Invoice)
    if client_id is not None:
        statement = statement.where(Invoice.client_id == client_id)
    if status is not None:
        statement = statement.where(Invoice.status == coerce_enum(InvoiceStatus, status, "status").value)
    return list(db.exec(statement.order_by(Invoice.issue_date.desc(), Invoice.invoice_number.desc())).all())


def list_overdue_invoices(db: Session, today: Optional[CalendarDate] = None) -> List[Invoice]:
    """Sent invoices whose due date has passed."""
    cutoff = format_date(today) if today is not None else utc_now().date().isoformat()
    return list(
        db.exec(
            select(Invoice)
            .where(
                Invoice.status == InvoiceStatus.sent.value,
                Invoice.due_date.is_not(None),
                Invoice.due_date < cutoff,
            )
            .order_by(Invoice.due_date)
        ).all()
    )


def _ensure_draft(invoice: Invoice) -> None:
    status = InvoiceStatus(invoice.status)
    if status != InvoiceStatus.draft:
        raise InvalidState(
            f"Invoice is {status.value}; only draft invoices can be changed",
            detail={"id": invoice.id, "status": status.value},
        )


def update_invoice(db: Session, invoice_id: str, changes: Any) -> Invoice:
    invoice = get_invoice(db, invoice_id)
    _ensure_draft(invoice)
    updates = validate_input(InvoiceUpdate, changes).model_dump(exclude_unset=True)

    issue = updates.get("issue_date") or (parse_date(invoice.issue_date) if invoice.issue_date else None)
    if "due_date" in updates:
        due = updates["due_date"]
    else:
        due = parse_date(invoice.due_date) if invoice.due_date else None
    if issue is not None and due is not None and due < issue:
        raise InvalidArgument("due_date must not be before issue_date")
    if "invoice_number" in updates:
        _ensure_number_free(db, invoice.client_id, updates["invoice_number"], exclude_id=invoice.id)

    for key, value in updates.items():
        if isinstance(value, date):
            value = format_date(value)
        setattr(invoice, key, value)
    invoice.updated_at = now_timestamp()

    db.add(invoice)
    db.commit()
    db.refresh(invoice)
    logger.info("Updated invoice %s", invoice_id)
    return invoice


def transition_invoice(db: Session, invoice_id: str, status: Any) -> Invoice:
    """
    Move an invoice to ``status``.

    Raises:
        InvalidState: for any move other than draft -> sent, sent -> paid,
            or draft/sent -> void
    """
    invoice = get_invoice(db, invoice_id)
    current = InvoiceStatus(invoice.status)
    target = coerce_enum(InvoiceStatus, status, "status")
    if target not in INVOICE_TRANSITIONS[current]:
        logger.warning("Rejected invoice %s transition %s -> %s", invoice_id, current.value, target.value)
        raise InvalidState(
            f"Cannot move invoice from {current.value} to {target.value}",
            detail={"id": invoice_id, "from": current.value, "to": target.value},
        )

    invoice.status = target.value
    invoice.updated_at = now_timestamp()
    db.add(invoice)
    db.commit()
    db.refresh(invoice)
    logger.info("Invoice %s moved %s -> %s", invoice_id, current.value, target.value)
    return invoice


def _touch(invoice: Invoice) -> None:
    invoice.updated_at = now_timestamp()


def add_line_item(db: Session, invoice_id: str, data: Any) -> InvoiceLineItem:
    invoice = get_invoice(db, invoice_id)
    _ensure_draft(invoice)
    payload = validate_input(LineItemCreate, data)

    item = InvoiceLineItem(invoice_id=invoice_id, **payload.model_dump())
    _touch(invoice)
    db.add(item)
    db.add(invoice)
    db.commit()
    db.refresh(item)
    return item


def update_line_item(db: Session, item_id: str, changes: Any) -> InvoiceLineItem:
    item = get_or_raise(db, InvoiceLineItem, item_id, "Line item")
    invoice = get_invoice(db, item.invoice_id)
    _ensure_draft(invoice)
    updates = validate_input(LineItemUpdate, changes).model_dump(exclude_unset=True)

    for key, value in updates.items():
        setattr(item, key, value)
    _touch(invoice)
    db.add(item)
    db.add(invoice)
    db.commit()
    db.refresh(item)
    return item


def delete_line_item(db: Session, item_id: str) -> None:
    item = get_or_raise(db, InvoiceLineItem, item_id, "Line item")
    invoice = get_invoice(db, item.invoice_id)
    _ensure_draft(invoice)
    _touch(invoice)
    db.delete(item)
    db.add(invoice)
    db.commit()


def replace_line_items(db: Session, invoice_id: str, line_items: Iterable[Any]) -> List[InvoiceLineItem]:
    """Swap every line item of a draft invoice for ``line_items`` in one transaction."""
    invoice = get_invoice(db, invoice_id)
    _ensure_draft(invoice)
    items = [validate_input(LineItemCreate, item) for item in line_items]

    for old in db.exec(select(InvoiceLineItem).where(InvoiceLineItem.invoice_id == invoice_id)).all():
        db.delete(old)
    db.flush()
    for item in items:
        db.add(InvoiceLineItem(invoice_id=invoice_id, **item.model_dump()))
    _touch(invoice)
    db.add(invoice)
    db.commit()
    return list_line_items(db, invoice_id)


def create_invoice_from_entries(
    db: Session,
    client_id: str,
    entry_ids: Sequence[str],
    *,
    invoice_number: Optional[str] = None,
    issue_date: Optional[CalendarDate] = None,
    due_date: Optional[CalendarDate] = None,
    tax_rate: Optional[Decimal] = None,
    notes: Optional[str] = None,
    hourly_rate: Optional[Decimal] = None,
) -> Invoice:
    """
    Bill time entries on a new draft invoice.

    One line item per entry: worked hours rounded to 0.01 at the client's
    hourly rate (or ``hourly_rate``). The invoice, its line items and the
    billed flags are written together or not at all.
    """
    payload = validate_input(
        InvoiceCreate,
        {
            "client_id": client_id,
            "invoice_number": invoice_number,
            "issue_date": parse_date(issue_date) if issue_date is not None else None,
            "due_date": parse_date(due_date) if due_date is not None else None,
            "tax_rate": Decimal(0) if tax_rate is None else tax_rate,
            "notes": notes,
        },
    )
    invoice = _new_invoice(db, payload)
    client = get_or_raise(db, Client, client_id, "Client")
    rate = Decimal(hourly_rate if hourly_rate is not None else (client.hourly_rate or 0))
    if rate < 0:
        raise InvalidArgument("hourly_rate must not be negative")

    db.add(invoice)
    db.flush()
    try:
        entries = bill_entries(db, list(entry_ids), invoice)
        projects = {
            project.id: project
            for project in db.exec(
                select(Project).where(Project.id.in_({entry.project_id for entry in entries}))
            ).all()
        }
        for entry in entries:
            hours = quantize_money(hours_from_seconds(time_entry_duration(entry)))
            if hours <= 0:
                raise InvalidArgument("Time entry has no billable duration", detail={"id": entry.id})
            description = f"{projects[entry.project_id].name} ({entry.start_time[:10]})"
            if entry.notes:
                description = f"{description}: {entry.notes}"
            db.add(InvoiceLineItem(invoice_id=invoice.id, description=description, quantity=hours, unit_price=rate))
    except StoreError:
        # The invoice row is already flushed; drop it with the rest
        db.rollback()
        raise

    db.commit()
    db.refresh(invoice)
    logger.info("Created invoice %s from %d time entries", invoice.id, len(entries))
    return invoice


def delete_invoice(db: Session, invoice_id: str) -> None:
    """
    Delete a draft invoice and its line items.

    Raises:
        InvalidState: if the invoice is not a draft
        Conflict: if billed time entries still point at it
    """
    invoice = get_invoice(db, invoice_id)
    _ensure_draft(invoice)
    billed = db.exec(select(TimeEntry.id).where(TimeEntry.invoice_id == invoice_id)).all()
    if billed:
        raise Conflict("Invoice has billed time entries; void it instead", detail={"time_entries": len(billed)})

    for item in db.exec(select(InvoiceLineItem).where(InvoiceLineItem.invoice_id == invoice_id)).all():
        db.delete(item)
    db.flush()
    db.delete(invoice)
    db.commit()
    logger.info("Deleted invoice %s", invoice_id)
