"""
Client Repository Module

CRUD over clients. Deleting a client never orphans rows: without ``cascade``
it is refused while projects or invoices still reference the client, with
``cascade`` every dependent row goes in the same transaction.
"""
import logging
from collections import defaultdict
from decimal import Decimal
from typing import Any, Dict, List

from sqlmodel import Session, select

from flowforge.core.clock import now_timestamp
from flowforge.core.errors import Conflict
from flowforge.models.client import Client
from flowforge.models.invoice import Invoice, InvoiceLineItem
from flowforge.models.project import Project
from flowforge.models.time_entry import TimeEntry, time_entry_duration
from flowforge.repositories.common import (
    get_or_raise,
    hours_from_seconds,
    validate_input,
)
from flowforge.schemas.client import ClientCreate, ClientUpdate, ClientWithStats

logger = logging.getLogger(__name__)


def create_client(db: Session, data: Any) -> Client:
    payload = validate_input(ClientCreate, data)
    now = now_timestamp()
    client = Client(**payload.model_dump(), created_at=now, updated_at=now)

    db.add(client)
    db.commit()
    db.refresh(client)
    logger.info("Created client %s", client.id)
    return client


def get_client(db: Session, client_id: str) -> Client:
    return get_or_raise(db, Client, client_id, "Client")


def list_clients(db: Session) -> List[Client]:
    return list(db.exec(select(Client).order_by(Client.name)).all())


def list_clients_with_stats(db: Session) -> List[ClientWithStats]:
    """
    Clients with their tracked hours, billable amount and project count.

    Only finished entries count; the billable amount uses the client's
    current hourly rate.
    """
    clients = list_clients(db)
    rows = db.exec(
        select(Project.client_id, Project.id, TimeEntry)
        .join(TimeEntry, TimeEntry.project_id == Project.id, isouter=True)
        .where(Project.client_id.is_not(None))
    ).all()

    projects: Dict[str, set] = defaultdict(set)
    seconds: Dict[str, int] = defaultdict(int)
    billable_seconds: Dict[str, int] = defaultdict(int)
    for client_id, project_id, entry in rows:
        projects[client_id].add(project_id)
        if entry is None or entry.end_time is None:
            continue
        duration = time_entry_duration(entry)
        seconds[client_id] += duration
        if entry.is_billable:
            billable_seconds[client_id] += duration

    result = []
    for client in clients:
        rate = Decimal(client.hourly_rate or 0)
        result.append(
            ClientWithStats(
                **client.model_dump(),
                total_hours=hours_from_seconds(seconds[client.id]),
                total_billable=hours_from_seconds(billable_seconds[client.id]) * rate,
                project_count=len(projects[client.id]),
            )
        )
    return result


def update_client(db: Session, client_id: str, changes: Any) -> Client:
    client = get_client(db, client_id)
    payload = validate_input(ClientUpdate, changes)

    # Apply updates to the client
    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(client, key, value)
    client.updated_at = now_timestamp()

    db.add(client)
    db.commit()
    db.refresh(client)
    logger.info("Updated client %s", client.id)
    return client


def delete_client(db: Session, client_id: str, cascade: bool = False) -> None:
    """
    Delete a client.

    Raises:
        NotFound: if the client does not exist
        Conflict: if ``cascade`` is false and projects or invoices reference it
    """
    client = get_client(db, client_id)
    projects = db.exec(select(Project).where(Project.client_id == client_id)).all()
    invoices = db.exec(select(Invoice).where(Invoice.client_id == client_id)).all()

    if not cascade and (projects or invoices):
        logger.warning("Refused to delete client %s with dependents", client_id)
        raise Conflict(
            "Client still has projects or invoices",
            detail={"projects": len(projects), "invoices": len(invoices)},
        )

    project_ids = [project.id for project in projects]
    invoice_ids = [invoice.id for invoice in invoices]

    # Children first: foreign keys are checked statement by statement
    if invoice_ids:
        for item in db.exec(select(InvoiceLineItem).where(InvoiceLineItem.invoice_id.in_(invoice_ids))):
            db.delete(item)
        db.flush()
    entry_filter = []
    if project_ids:
        entry_filter.append(TimeEntry.project_id.in_(project_ids))
    if invoice_ids:
        entry_filter.append(TimeEntry.invoice_id.in_(invoice_ids))
    for condition in entry_filter:
        for entry in db.exec(select(TimeEntry).where(condition)):
            db.delete(entry)
        db.flush()
    for invoice in invoices:
        db.delete(invoice)
    db.flush()
    for project in projects:
        db.delete(project)
    db.flush()

    db.delete(client)
    db.commit()
    logger.info(
        "Deleted client %s (%d projects, %d invoices)",
        client_id,
        len(project_ids),
        len(invoice_ids),
    )
