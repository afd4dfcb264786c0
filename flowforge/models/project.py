"""
Project Model Module

This module defines the Project model. A project groups time entries and may
belong to a client; projects without a client are internal work.
"""
from enum import Enum
from typing import Optional
import re
import uuid

from pydantic import field_validator
from sqlmodel import SQLModel, Field, AutoString

from flowforge.core.clock import now_timestamp

HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")

DEFAULT_PROJECT_COLORS = [
    "#007AFF",  # Blue
    "#34C759",  # Green
    "#FF9500",  # Orange
    "#FF3B30",  # Red
    "#AF52DE",  # Purple
    "#FF2D55",  # Pink
    "#5856D6",  # Indigo
    "#00C7BE",  # Teal
]


class ProjectStatus(str, Enum):
    active = "active"
    paused = "paused"
    completed = "completed"
    archived = "archived"


class ProjectBase(SQLModel):
    """
    Base Project model containing the fields a caller may set.
    """
    name: str = Field(nullable=False)
    description: Optional[str] = None

    # Owning client, None for internal projects
    client_id: Optional[str] = Field(default=None, foreign_key="clients.id")

    status: ProjectStatus = Field(default=ProjectStatus.active, sa_type=AutoString)

    # Display color as #RRGGBB
    color: Optional[str] = DEFAULT_PROJECT_COLORS[0]

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be empty")
        return value

    @field_validator("color")
    @classmethod
    def color_is_hex(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not HEX_COLOR.match(value):
            raise ValueError("color must look like #RRGGBB")
        return value


class Project(ProjectBase, table=True):
    """
    Project table model.
    """
    __tablename__ = "projects"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)

    created_at: Optional[str] = Field(default_factory=now_timestamp)
    updated_at: Optional[str] = Field(default_factory=now_timestamp)


class ProjectRead(ProjectBase):
    """Schema for reading project data."""
    id: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
