"""
Time Entry Repository Module

Timer and billing operations over time entries.

Billing state machine:
- created as unbilled-billable or unbilled-nonbillable (caller's choice)
- either unbilled state -> billed, only through ``mark_entries_billed``
- billed entries are never edited or deleted; when their invoice is voided
  the work is re-entered with ``recreate_time_entry``

``create_time_entry`` checks for a running entry and inserts in the same
transaction; call it on a write session so that transaction holds the write
lock from its first read.
"""
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union

from sqlmodel import Session, select

from flowforge.core.clock import (
    Instant,
    format_timestamp,
    parse_timestamp,
    seconds_between,
)
from flowforge.core.errors import Conflict, InvalidArgument, InvalidState, NotFound
from flowforge.models.client import Client
from flowforge.models.invoice import Invoice, InvoiceStatus
from flowforge.models.project import Project
from flowforge.models.time_entry import TimeEntry, time_entry_duration
from flowforge.repositories.common import get_or_raise, validate_input
from flowforge.schemas.time_entry import (
    TimeEntryCreate,
    TimeEntryFilters,
    TimeEntryUpdate,
    TimeEntryWithProject,
)

logger = logging.getLogger(__name__)


def _running_entry(db: Session, project_id: str) -> Optional[TimeEntry]:
    return db.exec(
        select(TimeEntry)
        .where(TimeEntry.project_id == project_id, TimeEntry.end_time.is_(None))
        .order_by(TimeEntry.start_time.desc())
    ).first()


def _insert_entry(db: Session, payload: TimeEntryCreate) -> TimeEntry:
    get_or_raise(db, Project, payload.project_id, "Project")
    if payload.end_time is None:
        running = _running_entry(db, payload.project_id)
        if running is not None:
            logger.warning("Project %s already has running entry %s", payload.project_id, running.id)
            raise Conflict(
                "Project already has a running time entry",
                detail={"project_id": payload.project_id, "running_entry_id": running.id},
            )

    entry = TimeEntry(
        project_id=payload.project_id,
        start_time=format_timestamp(payload.start_time),
        end_time=format_timestamp(payload.end_time) if payload.end_time else None,
        pause_duration=payload.pause_duration,
        notes=payload.notes,
        is_billable=payload.is_billable,
        is_billed=False,
    )
    db.add(entry)
    db.commit()
    return entry


def create_time_entry(
    db: Session,
    project_id: str,
    start_time: Instant,
    *,
    notes: Optional[str] = None,
    is_billable: bool = True,
) -> str:
    """
    Start a timer on ``project_id`` and return the new entry id.

    Raises:
        NotFound: if the project does not exist
        Conflict: if the project already has a running entry
    """
    payload = validate_input(
        TimeEntryCreate,
        {
            "project_id": project_id,
            "start_time": start_time,
            "notes": notes,
            "is_billable": is_billable,
        },
    )
    entry = _insert_entry(db, payload)
    logger.info("Started time entry %s on project %s", entry.id, project_id)
    return entry.id


def log_time_entry(
    db: Session,
    project_id: str,
    start_time: Instant,
    end_time: Instant,
    *,
    pause_duration: int = 0,
    notes: Optional[str] = None,
    is_billable: bool = True,
) -> str:
    """Record a finished block of work and return the new entry id."""
    payload = validate_input(
        TimeEntryCreate,
        {
            "project_id": project_id,
            "start_time": start_time,
            "end_time": end_time,
            "pause_duration": pause_duration,
            "notes": notes,
            "is_billable": is_billable,
        },
    )
    entry = _insert_entry(db, payload)
    logger.info("Logged time entry %s on project %s", entry.id, project_id)
    return entry.id


def _get_running(db: Session, entry_id: str) -> TimeEntry:
    entry = db.get(TimeEntry, entry_id)
    if entry is None or entry.end_time is not None:
        raise NotFound("No running time entry with that id", detail={"id": entry_id})
    return entry


def stop_time_entry(
    db: Session,
    entry_id: str,
    end_time: Instant,
    *,
    pause_duration: Optional[int] = None,
) -> int:
    """
    Stop a running entry and return its worked seconds
    (end - start - pause_duration).

    Raises:
        NotFound: if no running entry has that id
        InvalidArgument: if end_time is before the start or the pause is
            longer than the elapsed time; the entry keeps running
    """
    entry = _get_running(db, entry_id)
    end_text = format_timestamp(end_time)
    if parse_timestamp(end_text) < parse_timestamp(entry.start_time):
        raise InvalidArgument(
            "end_time must not be before start_time",
            detail={"start_time": entry.start_time, "end_time": end_text},
        )
    elapsed = seconds_between(entry.start_time, end_text)

    if pause_duration is None:
        pause = entry.pause_duration or 0
    else:
        pause = int(pause_duration)
    if pause < 0:
        raise InvalidArgument("pause_duration must not be negative")
    if pause > elapsed:
        raise InvalidArgument(
            "pause_duration must not exceed the elapsed time",
            detail={"elapsed": elapsed, "pause_duration": pause},
        )

    entry.end_time = end_text
    entry.pause_duration = pause
    db.add(entry)
    db.commit()
    logger.info("Stopped time entry %s after %d seconds", entry_id, elapsed - pause)
    return elapsed - pause


def add_pause(db: Session, entry_id: str, seconds: int) -> TimeEntry:
    """Add ``seconds`` of pause to a running entry."""
    if int(seconds) <= 0:
        raise InvalidArgument("Pause must be a positive number of seconds")
    entry = _get_running(db, entry_id)
    entry.pause_duration = (entry.pause_duration or 0) + int(seconds)
    db.add(entry)
    db.commit()
    return entry


def get_time_entry(db: Session, entry_id: str) -> TimeEntry:
    return get_or_raise(db, TimeEntry, entry_id, "Time entry")


def get_running_time_entry(db: Session, project_id: Optional[str] = None) -> Optional[TimeEntry]:
    if project_id is not None:
        return _running_entry(db, project_id)
    return db.exec(
        select(TimeEntry).where(TimeEntry.end_time.is_(None)).order_by(TimeEntry.start_time.desc())
    ).first()


def _range_start(value: Union[datetime, date]) -> str:
    if isinstance(value, datetime):
        return format_timestamp(value)
    return format_timestamp(datetime.combine(value, time.min, tzinfo=timezone.utc))


def _range_end(value: Union[datetime, date]) -> Tuple[str, bool]:
    """Upper bound on start_time and whether it is inclusive."""
    if isinstance(value, datetime):
        return format_timestamp(value), True
    next_day = datetime.combine(value + timedelta(days=1), time.min, tzinfo=timezone.utc)
    return format_timestamp(next_day), False


def list_time_entries(db: Session, filters: Any = None) -> List[TimeEntryWithProject]:
    """Entries joined with their project and client, newest first."""
    criteria = validate_input(TimeEntryFilters, filters or {})
    statement = (
        select(TimeEntry, Project, Client)
        .join(Project, Project.id == TimeEntry.project_id)
        .join(Client, Client.id == Project.client_id, isouter=True)
    )
    if criteria.project_id is not None:
        statement = statement.where(TimeEntry.project_id == criteria.project_id)
    if criteria.client_id is not None:
        statement = statement.where(Project.client_id == criteria.client_id)
    if criteria.start_date is not None:
        statement = statement.where(TimeEntry.start_time >= _range_start(criteria.start_date))
    if criteria.end_date is not None:
        bound, inclusive = _range_end(criteria.end_date)
        if inclusive:
            statement = statement.where(TimeEntry.start_time <= bound)
        else:
            statement = statement.where(TimeEntry.start_time < bound)
    if criteria.is_billable is not None:
        statement = statement.where(TimeEntry.is_billable == criteria.is_billable)
    if criteria.is_billed is not None:
        statement = statement.where(TimeEntry.is_billed == criteria.is_billed)
    if criteria.invoice_id is not None:
        statement = statement.where(TimeEntry.invoice_id == criteria.invoice_id)

    rows = db.exec(statement.order_by(TimeEntry.start_time.desc())).all()
    return [
        TimeEntryWithProject(
            **entry.model_dump(),
            project_name=project.name,
            project_color=project.color,
            client_id=project.client_id,
            client_name=client.name if client is not None else None,
            duration_seconds=time_entry_duration(entry),
        )
        for entry, project, client in rows
    ]


def list_unbilled_entries(
    db: Session,
    project_id: Optional[str] = None,
    client_id: Optional[str] = None,
) -> List[TimeEntry]:
    """Finished, billable, not yet billed entries, oldest first."""
    statement = (
        select(TimeEntry)
        .join(Project, Project.id == TimeEntry.project_id)
        .where(
            TimeEntry.is_billable == True,  # noqa: E712
            TimeEntry.is_billed == False,  # noqa: E712
            TimeEntry.end_time.is_not(None),
        )
    )
    if project_id is not None:
        statement = statement.where(TimeEntry.project_id == project_id)
    if client_id is not None:
        statement = statement.where(Project.client_id == client_id)
    return list(db.exec(statement.order_by(TimeEntry.start_time)).all())


def _ensure_unbilled(entry: TimeEntry) -> None:
    if entry.is_billed:
        raise InvalidState(
            "Billed time entries cannot be changed",
            detail={"id": entry.id, "invoice_id": entry.invoice_id},
        )


def update_time_entry(db: Session, entry_id: str, changes: Any) -> TimeEntry:
    entry = get_time_entry(db, entry_id)
    _ensure_unbilled(entry)
    updates = validate_input(TimeEntryUpdate, changes).model_dump(exclude_unset=True)

    start = updates.get("start_time") or parse_timestamp(entry.start_time)
    if "end_time" in updates:
        end = updates["end_time"]
    else:
        end = parse_timestamp(entry.end_time) if entry.end_time else None
    pause = updates.get("pause_duration")
    if pause is None:
        pause = entry.pause_duration or 0

    if end is not None:
        if end < start:
            raise InvalidArgument("end_time must not be before start_time")
        if pause > (end - start).total_seconds():
            raise InvalidArgument("pause_duration must not exceed the elapsed time")
    elif entry.end_time is not None:
        # Reopening a finished entry makes it the project's running entry
        running = _running_entry(db, entry.project_id)
        if running is not None and running.id != entry.id:
            raise Conflict(
                "Project already has a running time entry",
                detail={"project_id": entry.project_id, "running_entry_id": running.id},
            )

    entry.start_time = format_timestamp(start)
    entry.end_time = format_timestamp(end) if end is not None else None
    entry.pause_duration = int(pause)
    if "notes" in updates:
        entry.notes = updates["notes"]
    if updates.get("is_billable") is not None:
        entry.is_billable = updates["is_billable"]

    db.add(entry)
    db.commit()
    logger.info("Updated time entry %s", entry_id)
    return entry


def delete_time_entry(db: Session, entry_id: str) -> None:
    entry = get_time_entry(db, entry_id)
    _ensure_unbilled(entry)
    db.delete(entry)
    db.commit()
    logger.info("Deleted time entry %s", entry_id)


def bill_entries(db: Session, entry_ids: Sequence[str], invoice: Invoice) -> List[TimeEntry]:
    """
    Attach entries to ``invoice`` without committing.

    Every entry is checked before any is changed, so a rejected batch leaves
    the session untouched.
    """
    ids = list(dict.fromkeys(entry_ids))
    if not ids:
        raise InvalidArgument("No time entries given")

    status = InvoiceStatus(invoice.status)
    if status not in (InvoiceStatus.draft, InvoiceStatus.sent):
        raise InvalidState(
            f"Cannot bill time on a {status.value} invoice",
            detail={"invoice_id": invoice.id, "status": status.value},
        )

    rows = db.exec(
        select(TimeEntry, Project)
        .join(Project, Project.id == TimeEntry.project_id)
        .where(TimeEntry.id.in_(ids))
    ).all()
    found = {entry.id: (entry, project) for entry, project in rows}
    missing = [entry_id for entry_id in ids if entry_id not in found]
    if missing:
        raise NotFound("Time entries not found", detail={"ids": missing})

    problems = []
    for entry_id in ids:
        entry, project = found[entry_id]
        if entry.is_billed:
            problems.append({"id": entry_id, "reason": "already billed"})
        elif entry.end_time is None:
            problems.append({"id": entry_id, "reason": "still running"})
        elif project.client_id != invoice.client_id:
            problems.append({"id": entry_id, "reason": "belongs to another client"})
    if problems:
        logger.warning("Refused to bill %d entries on invoice %s", len(ids), invoice.id)
        raise Conflict("Time entries cannot be billed on this invoice", detail={"entries": problems})

    entries = []
    for entry_id in ids:
        entry, _ = found[entry_id]
        entry.is_billed = True
        entry.invoice_id = invoice.id
        db.add(entry)
        entries.append(entry)
    return entries


def mark_entries_billed(db: Session, entry_ids: Iterable[str], invoice_id: str) -> int:
    """
    Mark a batch of entries as billed on ``invoice_id``, all or nothing.

    Raises:
        NotFound: if the invoice or any entry does not exist
        Conflict: if any entry is billed already, still running, or belongs
            to a client other than the invoice's
        InvalidState: if the invoice is paid or void
    """
    invoice = get_or_raise(db, Invoice, invoice_id, "Invoice")
    entries = bill_entries(db, list(entry_ids), invoice)
    db.commit()
    logger.info("Billed %d time entries on invoice %s", len(entries), invoice_id)
    return len(entries)


def recreate_time_entry(db: Session, entry_id: str) -> str:
    """
    Re-enter billed work whose invoice was voided.

    The billed entry stays attached to the void invoice; a fresh unbilled
    copy pointing back at it through ``recreated_from`` is created and its
    id returned. Each billed entry can be recreated once.

    Raises:
        NotFound: if the entry does not exist
        InvalidState: if the entry is not billed on a void invoice
        Conflict: if the entry was recreated already
    """
    entry = get_time_entry(db, entry_id)
    invoice = db.get(Invoice, entry.invoice_id) if entry.invoice_id else None
    if not entry.is_billed or invoice is None or InvoiceStatus(invoice.status) != InvoiceStatus.void:
        raise InvalidState(
            "Only time billed on a void invoice can be recreated",
            detail={"id": entry_id},
        )

    existing = db.exec(select(TimeEntry.id).where(TimeEntry.recreated_from == entry_id)).first()
    if existing is not None:
        raise Conflict(
            "Time entry was recreated already",
            detail={"id": entry_id, "recreated_as": existing},
        )

    copy = TimeEntry(
        project_id=entry.project_id,
        start_time=entry.start_time,
        end_time=entry.end_time,
        pause_duration=entry.pause_duration,
        notes=entry.notes,
        is_billable=entry.is_billable,
        is_billed=False,
        recreated_from=entry_id,
    )
    db.add(copy)
    db.commit()
    logger.info("Recreated time entry %s as %s", entry_id, copy.id)
    return copy.id
