"""
Settings Repository Module

Key/value settings plus the typed ``AppSettings`` view over them. Each
``AppSettings`` field is one row whose value is JSON.
"""
import json
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError
from pydantic_core import to_jsonable_python
from sqlmodel import Session, select

from flowforge.core.errors import InvalidArgument
from flowforge.models.setting import Setting
from flowforge.repositories.common import validate_input
from flowforge.schemas.settings import AppSettings

logger = logging.getLogger(__name__)


def _check_key(key: str) -> str:
    if not isinstance(key, str) or not key.strip():
        raise InvalidArgument("Setting key must not be empty")
    return key


def get_setting(db: Session, key: str, default: Optional[str] = None) -> Optional[str]:
    row = db.get(Setting, _check_key(key))
    return row.value if row is not None else default


def set_setting(db: Session, key: str, value: Optional[str]) -> Setting:
    row = db.get(Setting, _check_key(key))
    if row is None:
        row = Setting(key=key, value=value)
    else:
        row.value = value
    db.add(row)
    db.commit()
    return row


def delete_setting(db: Session, key: str) -> bool:
    row = db.get(Setting, _check_key(key))
    if row is None:
        return False
    db.delete(row)
    db.commit()
    return True


def list_settings(db: Session) -> Dict[str, Optional[str]]:
    return {row.key: row.value for row in db.exec(select(Setting).order_by(Setting.key)).all()}


def load_app_settings(db: Session) -> AppSettings:
    """
    Read ``AppSettings`` from the settings table.

    Fields with no row, or whose stored value no longer parses or validates,
    take their defaults; rows for unknown keys are ignored.
    """
    stored = list_settings(db)
    values: Dict[str, Any] = {}
    for name in AppSettings.model_fields:
        raw = stored.get(name)
        if raw is None:
            continue
        try:
            candidate = json.loads(raw)
            AppSettings.model_validate({name: candidate})
        except (ValueError, ValidationError):
            logger.warning("Ignoring unreadable setting %s=%r", name, raw)
            continue
        values[name] = candidate
    return AppSettings.model_validate(values)


def _write_fields(db: Session, settings: AppSettings, fields) -> None:
    encoded = to_jsonable_python(settings)
    for name in fields:
        value = json.dumps(encoded[name])
        row = db.get(Setting, name)
        if row is None:
            db.add(Setting(key=name, value=value))
        else:
            row.value = value
            db.add(row)


def save_app_settings(db: Session, changes: Any) -> AppSettings:
    """Merge ``changes`` into the stored settings and write the changed fields."""
    if not isinstance(changes, dict):
        changes = validate_input(AppSettings, changes).model_dump(exclude_unset=True)
    unknown = sorted(set(changes) - set(AppSettings.model_fields))
    if unknown:
        raise InvalidArgument(f"Unknown settings: {', '.join(unknown)}", detail={"fields": unknown})

    current = load_app_settings(db)
    merged = validate_input(AppSettings, {**current.model_dump(), **changes})
    _write_fields(db, merged, changes.keys())
    db.commit()
    logger.info("Saved settings: %s", ", ".join(sorted(changes)))
    return merged


def reset_app_settings(db: Session) -> AppSettings:
    """Drop every stored ``AppSettings`` field so all of them read as defaults."""
    for row in db.exec(select(Setting).where(Setting.key.in_(list(AppSettings.model_fields)))).all():
        db.delete(row)
    db.commit()
    logger.info("Reset application settings to defaults")
    return AppSettings()
