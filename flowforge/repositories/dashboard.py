"""
Dashboard Repository Module

Read-only aggregates for the dashboard. Days are UTC calendar days keyed on
an entry's start time; running entries count up to ``now``.
"""
from collections import defaultdict
from datetime import datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Dict, Optional

from sqlmodel import Session, select

from flowforge.core.clock import format_timestamp, parse_timestamp, utc_now
from flowforge.models.client import Client
from flowforge.models.project import Project
from flowforge.models.time_entry import TimeEntry, time_entry_duration
from flowforge.repositories.common import hours_from_seconds, quantize_money
from flowforge.schemas.dashboard import (
    DashboardData,
    DaySummary,
    ProjectSummary,
    TodaySummary,
    UnbilledSummary,
    WeekSummary,
)

FALLBACK_PROJECT_COLOR = "#6366f1"
DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


def _now(now: Optional[datetime]) -> datetime:
    return parse_timestamp(now) if now is not None else utc_now()


def _day_start(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.min, tzinfo=timezone.utc)


def today_summary(db: Session, now: Optional[datetime] = None) -> TodaySummary:
    """Seconds tracked today, per project, largest first."""
    now = _now(now)
    start = _day_start(now)
    rows = db.exec(
        select(TimeEntry, Project)
        .join(Project, Project.id == TimeEntry.project_id)
        .where(
            TimeEntry.start_time >= format_timestamp(start),
            TimeEntry.start_time < format_timestamp(start + timedelta(days=1)),
        )
    ).all()

    totals: Dict[str, int] = defaultdict(int)
    projects: Dict[str, Project] = {}
    for entry, project in rows:
        totals[project.id] += time_entry_duration(entry, now)
        projects[project.id] = project

    summaries = sorted(
        (
            ProjectSummary(
                project_id=project_id,
                project_name=projects[project_id].name,
                project_color=projects[project_id].color or FALLBACK_PROJECT_COLOR,
                total_seconds=seconds,
            )
            for project_id, seconds in totals.items()
        ),
        key=lambda summary: (-summary.total_seconds, summary.project_name),
    )
    return TodaySummary(total_seconds=sum(totals.values()), projects=summaries)


def week_summary(db: Session, now: Optional[datetime] = None) -> WeekSummary:
    """Seconds tracked on each day of the current Monday-based week."""
    now = _now(now)
    monday = _day_start(now) - timedelta(days=now.weekday())
    entries = db.exec(
        select(TimeEntry).where(
            TimeEntry.start_time >= format_timestamp(monday),
            TimeEntry.start_time < format_timestamp(monday + timedelta(days=7)),
        )
    ).all()

    per_day: Dict[str, int] = defaultdict(int)
    for entry in entries:
        per_day[entry.start_time[:10]] += time_entry_duration(entry, now)

    days = []
    for offset in range(7):
        day = (monday + timedelta(days=offset)).date().isoformat()
        days.append(DaySummary(date=day, day_of_week=DAY_NAMES[offset], total_seconds=per_day[day]))
    return WeekSummary(total_seconds=sum(day.total_seconds for day in days), days=days)


def unbilled_summary(db: Session, now: Optional[datetime] = None) -> UnbilledSummary:
    """Billable, not yet billed time and its value at each client's hourly rate."""
    now = _now(now)
    rows = db.exec(
        select(TimeEntry, Client.hourly_rate)
        .join(Project, Project.id == TimeEntry.project_id)
        .join(Client, Client.id == Project.client_id)
        .where(TimeEntry.is_billable == True, TimeEntry.is_billed == False)  # noqa: E712
    ).all()

    seconds = 0
    amount = Decimal(0)
    for entry, rate in rows:
        duration = time_entry_duration(entry, now)
        seconds += duration
        amount += hours_from_seconds(duration) * Decimal(rate or 0)
    return UnbilledSummary(total_amount=quantize_money(amount), hours=quantize_money(hours_from_seconds(seconds)))


def get_dashboard_data(db: Session, now: Optional[datetime] = None) -> DashboardData:
    now = _now(now)
    return DashboardData(
        today=today_summary(db, now),
        week=week_summary(db, now),
        unbilled=unbilled_summary(db, now),
    )
