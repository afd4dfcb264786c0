from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from flowforge.models.client import ClientBase, ClientRead


# Properties to receive on creation
class ClientCreate(ClientBase):
    pass


# Properties to receive on update - only fields that were set are applied
class ClientUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    vat_number: Optional[str] = None
    hourly_rate: Optional[Decimal] = Field(default=None, ge=0)
    notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            raise ValueError("name cannot be cleared")
        value = value.strip()
        if not value:
            raise ValueError("name must not be empty")
        return value


# Client row plus aggregates over its projects and time entries
class ClientWithStats(ClientRead):
    total_hours: Decimal = Decimal("0")
    total_billable: Decimal = Decimal("0")
    project_count: int = 0
