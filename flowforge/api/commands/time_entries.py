"""
Time Entry Commands

Timer start/stop runs on write sessions: the running-entry check and the
insert must see the same snapshot.
"""
from typing import Any, Dict, List, Optional

from sqlmodel import Session

from flowforge.api.router import CommandRouter
from flowforge.repositories import time_entries as repo

router = CommandRouter()


@router.command(write=True)
def create_time_entry(
    db: Session,
    project_id: str,
    start_time: str,
    notes: Optional[str] = None,
    is_billable: bool = True,
) -> str:
    """
    Start a timer on a project.

    Args:
        db: Write session supplied by the dispatcher
        project_id: Project the time is tracked against
        start_time: UTC timestamp the timer started at
        notes: Optional description of the work
        is_billable: Whether the time may be invoiced

    Returns:
        str: Id of the new running entry

    Raises:
        NotFound: If the project doesn't exist
        Conflict: If the project already has a running entry
    """
    return repo.create_time_entry(db, project_id, start_time, notes=notes, is_billable=is_billable)


@router.command(write=True)
def log_time_entry(
    db: Session,
    project_id: str,
    start_time: str,
    end_time: str,
    pause_duration: int = 0,
    notes: Optional[str] = None,
    is_billable: bool = True,
) -> str:
    return repo.log_time_entry(
        db,
        project_id,
        start_time,
        end_time,
        pause_duration=pause_duration,
        notes=notes,
        is_billable=is_billable,
    )


@router.command(write=True)
def stop_time_entry(db: Session, entry_id: str, end_time: str, pause_duration: Optional[int] = None) -> int:
    """
    Stop a running timer.

    Returns:
        int: Worked seconds, pauses excluded
    """
    return repo.stop_time_entry(db, entry_id, end_time, pause_duration=pause_duration)


@router.command(write=True)
def add_pause(db: Session, entry_id: str, seconds: int):
    return repo.add_pause(db, entry_id, seconds)


@router.command()
def get_time_entry(db: Session, entry_id: str):
    return repo.get_time_entry(db, entry_id)


@router.command()
def get_running_time_entry(db: Session, project_id: Optional[str] = None):
    return repo.get_running_time_entry(db, project_id)


@router.command()
def list_time_entries(db: Session, filters: Optional[Dict[str, Any]] = None):
    return repo.list_time_entries(db, filters)


@router.command()
def list_unbilled_entries(db: Session, project_id: Optional[str] = None, client_id: Optional[str] = None):
    return repo.list_unbilled_entries(db, project_id=project_id, client_id=client_id)


@router.command(write=True)
def update_time_entry(db: Session, entry_id: str, changes: Dict[str, Any]):
    return repo.update_time_entry(db, entry_id, changes)


@router.command(write=True)
def delete_time_entry(db: Session, entry_id: str) -> None:
    repo.delete_time_entry(db, entry_id)


@router.command(write=True)
def mark_entries_billed(db: Session, entry_ids: List[str], invoice_id: str) -> int:
    """
    Bill a batch of entries on an invoice, all or nothing.

    Args:
        db: Write session supplied by the dispatcher
        entry_ids: Entries to bill
        invoice_id: Invoice they are billed on

    Returns:
        int: Number of entries billed
    """
    return repo.mark_entries_billed(db, entry_ids, invoice_id)


@router.command(write=True)
def recreate_time_entry(db: Session, entry_id: str) -> str:
    """
    Copy time billed on a void invoice into a fresh unbilled entry.

    Args:
        db: Write session supplied by the dispatcher
        entry_id: Billed entry on the void invoice

    Returns:
        str: Id of the copy

    Raises:
        InvalidState: If the entry is not billed on a void invoice
        Conflict: If the entry was recreated already
    """
    return repo.recreate_time_entry(db, entry_id)
