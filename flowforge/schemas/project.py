from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, field_validator

from flowforge.models.project import HEX_COLOR, ProjectBase, ProjectRead, ProjectStatus


class ProjectCreate(ProjectBase):
    pass


class ProjectUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    client_id: Optional[str] = None  # explicit None detaches the project from its client
    status: Optional[ProjectStatus] = None
    color: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            raise ValueError("name cannot be cleared")
        value = value.strip()
        if not value:
            raise ValueError("name must not be empty")
        return value

    @field_validator("status")
    @classmethod
    def status_not_cleared(cls, value: Optional[ProjectStatus]) -> Optional[ProjectStatus]:
        if value is None:
            raise ValueError("status cannot be cleared")
        return value

    @field_validator("color")
    @classmethod
    def color_is_hex(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not HEX_COLOR.match(value):
            raise ValueError("color must look like #RRGGBB")
        return value


class ProjectWithStats(ProjectRead):
    client_name: Optional[str] = None
    total_hours: Decimal = Decimal("0")
    total_billable: Decimal = Decimal("0")
