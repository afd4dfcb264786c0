"""
Command Router Module

The desktop shell talks to the store through named commands instead of HTTP
routes. ``CommandRouter`` collects command functions the way an API router
collects endpoints; ``CommandDispatcher`` runs them against a ``Store`` and
wraps every outcome in a ``CommandResult``:

    {"ok": true, "data": ...}
    {"ok": false, "error": {"kind": "NotFound", "message": "..."}}
"""
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel
from pydantic_core import to_jsonable_python

from flowforge.core.errors import InvalidArgument, NotFound, StoreError

logger = logging.getLogger(__name__)

INTERNAL_ERROR = "InternalError"


class CommandError(BaseModel):
    kind: str
    message: str
    detail: Dict[str, Any] = {}


class CommandResult(BaseModel):
    ok: bool
    data: Any = None
    error: Optional[CommandError] = None

    @classmethod
    def success(cls, data: Any) -> "CommandResult":
        return cls(ok=True, data=to_jsonable_python(data))

    @classmethod
    def failure(cls, kind: str, message: str, detail: Optional[dict] = None) -> "CommandResult":
        return cls(ok=False, error=CommandError(kind=kind, message=message, detail=detail or {}))


@dataclass(frozen=True)
class Command:
    name: str
    func: Callable[..., Any]
    write: bool
    signature: inspect.Signature

    @property
    def needs_db(self) -> bool:
        return "db" in self.signature.parameters


class CommandRouter:
    def __init__(self, prefix: str = ""):
        self.prefix = prefix
        self.commands: Dict[str, Command] = {}

    def command(self, name: Optional[str] = None, *, write: bool = False):
        """Register a function as a command; ``write`` gives it an IMMEDIATE session."""

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self._add(Command(self.prefix + (name or func.__name__), func, write, inspect.signature(func)))
            return func

        return decorator

    def include_router(self, router: "CommandRouter", prefix: str = "") -> None:
        for command in router.commands.values():
            self._add(
                Command(self.prefix + prefix + command.name, command.func, command.write, command.signature)
            )

    def _add(self, command: Command) -> None:
        if command.name in self.commands:
            raise ValueError(f"Command {command.name!r} is already registered")
        self.commands[command.name] = command


class CommandDispatcher:
    def __init__(self, store, router: CommandRouter):
        self.store = store
        self.router = router

    def invoke(self, name: str, /, **arguments: Any) -> CommandResult:
        command = self.router.commands.get(name)
        if command is None:
            return CommandResult.failure(NotFound.kind, f"Unknown command {name!r}")

        try:
            return CommandResult.success(self._run(command, arguments))
        except StoreError as exc:
            logger.info("Command %s failed: %s %s", name, exc.kind, exc.message)
            return CommandResult.failure(exc.kind, exc.message, exc.detail)
        except Exception as exc:
            logger.exception("Command %s crashed", name)
            return CommandResult.failure(INTERNAL_ERROR, str(exc) or exc.__class__.__name__)

    def _run(self, command: Command, arguments: Dict[str, Any]) -> Any:
        if "db" in arguments:
            raise InvalidArgument("'db' is supplied by the dispatcher")
        try:
            command.signature.bind(**({"db": None} if command.needs_db else {}), **arguments)
        except TypeError as exc:
            raise InvalidArgument(f"Bad arguments for {command.name}: {exc}") from None

        if not command.needs_db:
            return command.func(**arguments)
        with self.store.session(write=command.write) as db:
            # Serialize inside the session so lazy attributes are still loadable
            return to_jsonable_python(command.func(db=db, **arguments))
