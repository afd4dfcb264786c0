"""
Store Error Module

Every failure raised by the migration engine and the repository layer is a
``StoreError``. The ``kind`` attribute is the stable tag the command surface
hands back to the UI layer.
"""
from typing import Optional


class StoreError(Exception):
    """Base class for all store failures."""

    kind = "StoreError"

    def __init__(self, message: str, *, detail: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}

    def to_dict(self) -> dict:
        payload = {"kind": self.kind, "message": self.message}
        if self.detail:
            payload["detail"] = self.detail
        return payload


class NotFound(StoreError):
    """A referenced id does not exist."""

    kind = "NotFound"


class Conflict(StoreError):
    """An invariant would be violated by the requested change."""

    kind = "Conflict"


class InvalidArgument(StoreError):
    """An input value is malformed or out of range."""

    kind = "InvalidArgument"


class InvalidState(StoreError):
    """A state machine transition is not allowed."""

    kind = "InvalidState"


class StoreUnavailable(StoreError):
    """The underlying store failed (I/O, locking, corruption)."""

    kind = "StoreUnavailable"


class MigrationConflict(Conflict):
    """The migration list or the migration ledger is inconsistent."""


class UnsupportedSchemaVersion(MigrationConflict):
    """The store was written by a newer build than the running one."""

    def __init__(self, recorded: int, supported: int):
        super().__init__(
            f"Unsupported schema version {recorded}: this build supports up to {supported}",
            detail={"recorded": recorded, "supported": supported},
        )
        self.recorded = recorded
        self.supported = supported


class MigrationFailed(StoreUnavailable):
    """A migration script could not be applied; nothing from it was kept."""

    def __init__(self, version: int, description: str, reason: str):
        super().__init__(
            f"Migration {version} ({description}) failed: {reason}",
            detail={"version": version, "description": description},
        )
        self.version = version
