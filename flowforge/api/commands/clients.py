"""
Client Commands

Thin command wrappers over the client repository.
"""
from typing import Any, Dict

from sqlmodel import Session

from flowforge.api.router import CommandRouter
from flowforge.repositories import clients as repo

router = CommandRouter()


@router.command(write=True)
def create_client(db: Session, data: Dict[str, Any]):
    return repo.create_client(db, data)


@router.command()
def get_client(db: Session, client_id: str):
    return repo.get_client(db, client_id)


@router.command()
def list_clients(db: Session, with_stats: bool = False):
    """
    List clients by name.

    Args:
        db: Session supplied by the dispatcher
        with_stats: Add tracked hours, billable amount and project count
    """
    if with_stats:
        return repo.list_clients_with_stats(db)
    return repo.list_clients(db)


@router.command(write=True)
def update_client(db: Session, client_id: str, changes: Dict[str, Any]):
    return repo.update_client(db, client_id, changes)


@router.command(write=True)
def delete_client(db: Session, client_id: str, cascade: bool = False) -> None:
    """
    Delete a client.

    Args:
        db: Write session supplied by the dispatcher
        client_id: Client to delete
        cascade: Also delete its projects, time entries and invoices

    Raises:
        NotFound: If the client doesn't exist
        Conflict: If dependents exist and cascade is false
    """
    repo.delete_client(db, client_id, cascade=cascade)
