import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError
from sqlmodel import Session, SQLModel

from flowforge.core.config import settings
from flowforge.core.errors import InvalidArgument, NotFound

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)
T = TypeVar("T", bound=SQLModel)

SECONDS_PER_HOUR = Decimal(3600)


def validate_input(schema: Type[M], data: Any) -> M:
    """Validate caller input against ``schema``, raising InvalidArgument on failure."""
    if isinstance(data, schema):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=True)
    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'input'}: {error['msg']}"
            for error in exc.errors()
        )
        raise InvalidArgument(
            f"Invalid {schema.__name__}: {problems}",
            detail={"fields": [".".join(str(part) for part in error["loc"]) for error in exc.errors()]},
        ) from None


def get_or_raise(db: Session, model: Type[T], id: str, label: Optional[str] = None) -> T:
    obj = db.get(model, id)
    if obj is None:
        raise NotFound(f"{label or model.__name__} not found", detail={"id": id})
    return obj


def quantize_money(value: Decimal, places: Optional[int] = None) -> Decimal:
    places = settings.DEFAULT_CURRENCY_PLACES if places is None else places
    return Decimal(value).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def hours_from_seconds(seconds: int) -> Decimal:
    return Decimal(int(seconds)) / SECONDS_PER_HOUR


def coerce_enum(enum_cls, value: Any, field: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise InvalidArgument(f"Invalid {field} {value!r}: expected one of {allowed}") from None
