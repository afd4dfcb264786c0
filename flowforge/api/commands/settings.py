from typing import Any, Dict, Optional

from sqlmodel import Session

from flowforge.api.router import CommandRouter
from flowforge.repositories import settings as repo

router = CommandRouter()


@router.command()
def get_setting(db: Session, key: str) -> Optional[str]:
    return repo.get_setting(db, key)


@router.command(write=True)
def set_setting(db: Session, key: str, value: Optional[str]) -> None:
    repo.set_setting(db, key, value)


@router.command(write=True)
def delete_setting(db: Session, key: str) -> bool:
    return repo.delete_setting(db, key)


@router.command()
def get_app_settings(db: Session):
    return repo.load_app_settings(db)


@router.command(write=True)
def save_app_settings(db: Session, changes: Dict[str, Any]):
    return repo.save_app_settings(db, changes)


@router.command(write=True)
def reset_app_settings(db: Session):
    return repo.reset_app_settings(db)
