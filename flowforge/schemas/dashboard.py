from decimal import Decimal
from typing import List

from pydantic import BaseModel


class ProjectSummary(BaseModel):
    project_id: str
    project_name: str
    project_color: str
    total_seconds: int


class DaySummary(BaseModel):
    date: str  # YYYY-MM-DD
    day_of_week: str  # Mon, Tue, ...
    total_seconds: int


class TodaySummary(BaseModel):
    total_seconds: int
    projects: List[ProjectSummary]


class WeekSummary(BaseModel):
    total_seconds: int
    days: List[DaySummary]


class UnbilledSummary(BaseModel):
    total_amount: Decimal
    hours: Decimal


class DashboardData(BaseModel):
    today: TodaySummary
    week: WeekSummary
    unbilled: UnbilledSummary
