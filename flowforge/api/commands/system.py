"""
System Commands

Commands that do not touch the store.
"""
from flowforge import __version__
from flowforge.api.router import CommandRouter
from flowforge.platform.idle import get_idle_time as system_idle_time

router = CommandRouter()


@router.command()
def greet(name: str) -> str:
    """
    Greeting used by the shell to check the command bridge is up.

    Args:
        name: Name to greet

    Returns:
        str: The greeting message
    """
    return f"Hello, {name}! You've been greeted from FlowForge!"


@router.command()
def get_idle_time() -> int:
    """Seconds since the last keyboard or mouse input, 0 if unknown."""
    return system_idle_time()


@router.command()
def get_version() -> str:
    return __version__
