"""
Project Repository Module

CRUD over projects. A project's client reference is checked on every write;
billed time pins a project to its client, because the invoice it was billed
on belongs to that client.
"""
import logging
from collections import defaultdict
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlmodel import Session, select

from flowforge.core.clock import now_timestamp
from flowforge.core.errors import Conflict, InvalidState
from flowforge.models.client import Client
from flowforge.models.project import Project, ProjectStatus
from flowforge.models.time_entry import TimeEntry, time_entry_duration
from flowforge.repositories.common import (
    coerce_enum,
    get_or_raise,
    hours_from_seconds,
    validate_input,
)
from flowforge.schemas.project import ProjectCreate, ProjectUpdate, ProjectWithStats

logger = logging.getLogger(__name__)


def create_project(db: Session, data: Any) -> Project:
    payload = validate_input(ProjectCreate, data)
    if payload.client_id is not None:
        get_or_raise(db, Client, payload.client_id, "Client")

    now = now_timestamp()
    values = payload.model_dump()
    values["status"] = ProjectStatus(values["status"]).value
    project = Project(**values, created_at=now, updated_at=now)

    db.add(project)
    db.commit()
    db.refresh(project)
    logger.info("Created project %s", project.id)
    return project


def get_project(db: Session, project_id: str) -> Project:
    return get_or_raise(db, Project, project_id, "Project")


def list_projects(
    db: Session,
    client_id: Optional[str] = None,
    status: Optional[str] = None,
) -> List[Project]:
    statement = select(Project)
    if client_id is not None:
        statement = statement.where(Project.client_id == client_id)
    if status is not None:
        statement = statement.where(Project.status == coerce_enum(ProjectStatus, status, "status").value)
    return list(db.exec(statement.order_by(Project.name)).all())


def list_projects_with_stats(db: Session, client_id: Optional[str] = None) -> List[ProjectWithStats]:
    statement = select(Project, Client).join(Client, Client.id == Project.client_id, isouter=True)
    if client_id is not None:
        statement = statement.where(Project.client_id == client_id)
    projects = db.exec(statement.order_by(Project.name)).all()

    entries = db.exec(select(TimeEntry).where(TimeEntry.end_time.is_not(None))).all()
    seconds: Dict[str, int] = defaultdict(int)
    billable_seconds: Dict[str, int] = defaultdict(int)
    for entry in entries:
        duration = time_entry_duration(entry)
        seconds[entry.project_id] += duration
        if entry.is_billable:
            billable_seconds[entry.project_id] += duration

    result = []
    for project, client in projects:
        rate = Decimal(client.hourly_rate or 0) if client is not None else Decimal(0)
        result.append(
            ProjectWithStats(
                **project.model_dump(),
                client_name=client.name if client is not None else None,
                total_hours=hours_from_seconds(seconds[project.id]),
                total_billable=hours_from_seconds(billable_seconds[project.id]) * rate,
            )
        )
    return result


def update_project(db: Session, project_id: str, changes: Any) -> Project:
    project = get_project(db, project_id)
    updates = validate_input(ProjectUpdate, changes).model_dump(exclude_unset=True)

    if "client_id" in updates and updates["client_id"] != project.client_id:
        if updates["client_id"] is not None:
            get_or_raise(db, Client, updates["client_id"], "Client")
        billed = db.exec(
            select(TimeEntry.id).where(TimeEntry.project_id == project_id, TimeEntry.is_billed == True)  # noqa: E712
        ).first()
        if billed is not None:
            raise InvalidState("Cannot move a project with billed time to another client")
    if "status" in updates:
        updates["status"] = ProjectStatus(updates["status"]).value

    for key, value in updates.items():
        setattr(project, key, value)
    project.updated_at = now_timestamp()

    db.add(project)
    db.commit()
    db.refresh(project)
    logger.info("Updated project %s", project.id)
    return project


def delete_project(db: Session, project_id: str, cascade: bool = False) -> None:
    """
    Delete a project.

    Raises:
        NotFound: if the project does not exist
        Conflict: if ``cascade`` is false and time entries reference it
        InvalidState: if cascading would delete billed time
    """
    project = get_project(db, project_id)
    entries = db.exec(select(TimeEntry).where(TimeEntry.project_id == project_id)).all()

    if entries and not cascade:
        logger.warning("Refused to delete project %s with %d entries", project_id, len(entries))
        raise Conflict("Project still has time entries", detail={"time_entries": len(entries)})
    if any(entry.is_billed for entry in entries):
        raise InvalidState("Project has billed time entries; void their invoices instead")

    for entry in entries:
        db.delete(entry)
    db.flush()
    db.delete(project)
    db.commit()
    logger.info("Deleted project %s (%d entries)", project_id, len(entries))
