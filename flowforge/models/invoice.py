"""
Invoice Models Module

This module defines two models:
1. Invoice: a bill issued to a client, moving draft -> sent -> paid (or void)
2. InvoiceLineItem: one billed line, quantity x unit price

Totals are never stored; they are derived from the line items and tax rate on
every read.
"""
from decimal import Decimal
from enum import Enum
from typing import Optional
import uuid

from sqlmodel import SQLModel, Field, AutoString

from flowforge.core.clock import now_timestamp
from flowforge.models.types import DecimalReal


class InvoiceStatus(str, Enum):
    draft = "draft"
    sent = "sent"
    paid = "paid"
    void = "void"


# Allowed forward moves; paid and void are terminal
INVOICE_TRANSITIONS = {
    InvoiceStatus.draft: frozenset({InvoiceStatus.sent, InvoiceStatus.void}),
    InvoiceStatus.sent: frozenset({InvoiceStatus.paid, InvoiceStatus.void}),
    InvoiceStatus.paid: frozenset(),
    InvoiceStatus.void: frozenset(),
}


class InvoiceBase(SQLModel):
    """
    Base properties for an Invoice.
    """
    client_id: str = Field(foreign_key="clients.id")

    # Human readable number, unique per client, e.g. INV-2026-0001
    invoice_number: str = Field(nullable=False)

    # Calendar dates as YYYY-MM-DD
    issue_date: Optional[str] = None
    due_date: Optional[str] = None

    status: InvoiceStatus = Field(default=InvoiceStatus.draft, sa_type=AutoString)
    notes: Optional[str] = None

    # Fraction applied to the subtotal, e.g. 0.20 for 20%
    tax_rate: Optional[Decimal] = Field(default=Decimal("0"), sa_type=DecimalReal)

    created_at: Optional[str] = Field(default_factory=now_timestamp)
    updated_at: Optional[str] = Field(default_factory=now_timestamp)


class Invoice(InvoiceBase, table=True):
    """
    Invoice table model.
    """
    __tablename__ = "invoices"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)


class InvoiceRead(InvoiceBase):
    """Schema for reading invoice data."""
    id: str


class InvoiceLineItemBase(SQLModel):
    invoice_id: str = Field(foreign_key="invoices.id")
    description: str = Field(nullable=False)
    quantity: Decimal = Field(sa_type=DecimalReal)
    unit_price: Decimal = Field(sa_type=DecimalReal)

    @property
    def line_total(self) -> Decimal:
        return Decimal(self.quantity) * Decimal(self.unit_price)


class InvoiceLineItem(InvoiceLineItemBase, table=True):
    """
    InvoiceLineItem table model.
    """
    __tablename__ = "invoice_line_items"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)


class InvoiceLineItemRead(InvoiceLineItemBase):
    """Schema for reading line item data."""
    id: str
