from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from flowforge.models.invoice import InvoiceLineItemRead, InvoiceRead


class LineItemCreate(BaseModel):
    description: str
    quantity: Decimal = Field(gt=0)
    unit_price: Decimal = Field(ge=0)

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("description must not be empty")
        return value


class LineItemUpdate(BaseModel):
    description: Optional[str] = None
    quantity: Optional[Decimal] = Field(default=None, gt=0)
    unit_price: Optional[Decimal] = Field(default=None, ge=0)

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            raise ValueError("description cannot be cleared")
        value = value.strip()
        if not value:
            raise ValueError("description must not be empty")
        return value


class InvoiceCreate(BaseModel):
    client_id: str
    invoice_number: Optional[str] = None  # generated as INV-<year>-<NNNN> when omitted
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None
    tax_rate: Decimal = Field(default=Decimal("0"), ge=0)

    @field_validator("invoice_number")
    @classmethod
    def number_or_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None

    @model_validator(mode="after")
    def due_after_issue(self):
        if self.issue_date and self.due_date and self.due_date < self.issue_date:
            raise ValueError("due_date must not be before issue_date")
        return self


class InvoiceUpdate(BaseModel):
    invoice_number: Optional[str] = None
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None
    tax_rate: Optional[Decimal] = Field(default=None, ge=0)

    @field_validator("invoice_number")
    @classmethod
    def number_not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            raise ValueError("invoice_number must not be empty")
        return value.strip()

    @field_validator("tax_rate")
    @classmethod
    def tax_rate_not_cleared(cls, value: Optional[Decimal]) -> Optional[Decimal]:
        if value is None:
            raise ValueError("tax_rate cannot be cleared")
        return value


class InvoiceTotals(BaseModel):
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal


class InvoiceWithDetails(InvoiceRead):
    client_name: str
    client_email: Optional[str] = None
    client_address: Optional[str] = None
    client_vat_number: Optional[str] = None
    line_items: List[InvoiceLineItemRead] = []
    subtotal: Decimal = Decimal("0")
    tax_amount: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
