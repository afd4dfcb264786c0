"""
Client Model Module

This module defines the Client model representing the people and companies
that time is tracked and invoiced for. Clients own projects and invoices.
"""
from decimal import Decimal
from typing import Optional
import uuid

from pydantic import field_validator
from sqlmodel import SQLModel, Field

from flowforge.core.clock import now_timestamp
from flowforge.models.types import DecimalReal


class ClientBase(SQLModel):
    """
    Base Client model containing the fields a caller may set.
    """
    # Display name - required, never blank
    name: str = Field(nullable=False)

    # Contact details
    email: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    vat_number: Optional[str] = None

    # Default rate used when billing this client's time (currency units per hour)
    hourly_rate: Optional[Decimal] = Field(default=None, ge=0, sa_type=DecimalReal)

    notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be empty")
        return value


class Client(ClientBase, table=True):
    """
    Client table model.

    Attributes:
        id: Unique identifier (UUID) generated before the row is written
        created_at: UTC ISO timestamp of when the client was created
        updated_at: UTC ISO timestamp of the last update
    """
    __tablename__ = "clients"

    # Primary key - generated client side so rows can be referenced before they exist
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)

    # Audit timestamps - maintained by the repository layer
    created_at: Optional[str] = Field(default_factory=now_timestamp)
    updated_at: Optional[str] = Field(default_factory=now_timestamp)


class ClientRead(ClientBase):
    """Schema for reading client data."""
    id: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
