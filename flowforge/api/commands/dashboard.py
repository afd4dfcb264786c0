from typing import Optional

from sqlmodel import Session

from flowforge.api.router import CommandRouter
from flowforge.repositories import dashboard as repo

router = CommandRouter()


@router.command()
def get_dashboard_data(db: Session, now: Optional[str] = None):
    """
    Today, this week and unbilled totals in one call.

    Args:
        db: Session supplied by the dispatcher
        now: UTC timestamp to summarize at; the current time when omitted
    """
    return repo.get_dashboard_data(db, now)


@router.command()
def get_today_summary(db: Session, now: Optional[str] = None):
    return repo.today_summary(db, now)


@router.command()
def get_week_summary(db: Session, now: Optional[str] = None):
    return repo.week_summary(db, now)


@router.command()
def get_unbilled_summary(db: Session, now: Optional[str] = None):
    return repo.unbilled_summary(db, now)
