"""
Time Entry Model Module

This module defines the TimeEntry model. An entry without an end time is
"running"; at most one entry per project may be running at any time.

Billing state is carried by two flags:
- is_billable: caller's choice when the entry is created
- is_billed: set once the entry is attached to an invoice; billed entries are
  immutable and keep a reference to that invoice in invoice_id
"""
from datetime import datetime
from typing import Optional
import uuid

from sqlmodel import SQLModel, Field

from flowforge.core.clock import now_timestamp, parse_timestamp, utc_now


class TimeEntryBase(SQLModel):
    """
    Base TimeEntry model containing common fields.
    """
    project_id: str = Field(foreign_key="projects.id")

    # Time range - UTC ISO strings, end_time is None while the timer runs
    start_time: str = Field(nullable=False)
    end_time: Optional[str] = None

    # Seconds of pause inside the range, excluded from the duration
    pause_duration: int = 0

    notes: Optional[str] = None

    # Billing flags - stored as INTEGER 0/1
    is_billable: bool = True
    is_billed: bool = False

    # Invoice the entry was billed on
    invoice_id: Optional[str] = Field(default=None, foreign_key="invoices.id")

    # Billed entry this one re-enters after its invoice was voided
    recreated_from: Optional[str] = Field(default=None, foreign_key="time_entries.id")

    created_at: Optional[str] = Field(default_factory=now_timestamp)

    @property
    def is_running(self) -> bool:
        return self.end_time is None


class TimeEntry(TimeEntryBase, table=True):
    """
    TimeEntry table model.
    """
    __tablename__ = "time_entries"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)


class TimeEntryRead(TimeEntryBase):
    """Schema for reading basic time entry data."""
    id: str


def time_entry_duration(entry: TimeEntryBase, now: Optional[datetime] = None) -> int:
    """Worked seconds: end (or now, for a running entry) minus start minus pauses."""
    end = parse_timestamp(entry.end_time) if entry.end_time else (now or utc_now())
    elapsed = (end - parse_timestamp(entry.start_time)).total_seconds()
    return max(0, int(elapsed) - int(entry.pause_duration or 0))


def format_duration(seconds: int) -> str:
    hours, rem = divmod(max(0, int(seconds)), 3600)
    minutes, secs = divmod(rem, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_duration_short(seconds: int) -> str:
    hours, rem = divmod(max(0, int(seconds)), 3600)
    minutes = rem // 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m"
    return "<1m"
