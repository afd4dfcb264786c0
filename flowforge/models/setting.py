from typing import Optional

from sqlmodel import SQLModel, Field


class Setting(SQLModel, table=True):
    """Free-form key/value pair; values are opaque strings (JSON for typed settings)."""
    __tablename__ = "settings"

    key: str = Field(primary_key=True)
    value: Optional[str] = None
