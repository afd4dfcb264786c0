from typing import Any, Dict, Optional

from sqlmodel import Session

from flowforge.api.router import CommandRouter
from flowforge.repositories import projects as repo

router = CommandRouter()


@router.command(write=True)
def create_project(db: Session, data: Dict[str, Any]):
    return repo.create_project(db, data)


@router.command()
def get_project(db: Session, project_id: str):
    return repo.get_project(db, project_id)


@router.command()
def list_projects(
    db: Session,
    client_id: Optional[str] = None,
    status: Optional[str] = None,
    with_stats: bool = False,
):
    if with_stats:
        return repo.list_projects_with_stats(db, client_id=client_id)
    return repo.list_projects(db, client_id=client_id, status=status)


@router.command(write=True)
def update_project(db: Session, project_id: str, changes: Dict[str, Any]):
    return repo.update_project(db, project_id, changes)


@router.command(write=True)
def delete_project(db: Session, project_id: str, cascade: bool = False) -> None:
    """
    Delete a project.

    Args:
        db: Write session supplied by the dispatcher
        project_id: Project to delete
        cascade: Also delete its time entries

    Raises:
        NotFound: If the project doesn't exist
        Conflict: If it has time entries and cascade is false
        InvalidState: If cascading would delete billed time
    """
    repo.delete_project(db, project_id, cascade=cascade)
