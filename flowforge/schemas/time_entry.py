from datetime import date, datetime
from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from flowforge.core.clock import parse_date, parse_timestamp
from flowforge.models.time_entry import TimeEntryRead


class TimeEntryCreate(BaseModel):
    project_id: str
    start_time: datetime
    end_time: Optional[datetime] = None
    pause_duration: int = Field(default=0, ge=0)
    notes: Optional[str] = None
    is_billable: bool = True

    @field_validator("start_time", "end_time")
    @classmethod
    def as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return parse_timestamp(value) if value is not None else None

    @model_validator(mode="after")
    def end_after_start(self):
        if self.end_time is not None:
            if self.end_time < self.start_time:
                raise ValueError("end_time must not be before start_time")
            elapsed = (self.end_time - self.start_time).total_seconds()
            if self.pause_duration > elapsed:
                raise ValueError("pause_duration must not exceed the elapsed time")
        return self


class TimeEntryUpdate(BaseModel):
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    pause_duration: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None
    is_billable: Optional[bool] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return parse_timestamp(value) if value is not None else None


class TimeEntryFilters(BaseModel):
    project_id: Optional[str] = None
    client_id: Optional[str] = None
    # Range on start_time; a plain date as end_date includes that whole day
    start_date: Optional[Union[datetime, date]] = None
    end_date: Optional[Union[datetime, date]] = None
    is_billable: Optional[bool] = None
    is_billed: Optional[bool] = None
    invoice_id: Optional[str] = None

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def date_or_instant(cls, value):
        # "YYYY-MM-DD" is a calendar day, anything longer an instant
        if isinstance(value, str):
            text = value.strip()
            return parse_date(text) if len(text) == 10 else parse_timestamp(text)
        return value


class TimeEntryWithProject(TimeEntryRead):
    project_name: str
    project_color: Optional[str] = None
    client_id: Optional[str] = None
    client_name: Optional[str] = None
    duration_seconds: int = 0
