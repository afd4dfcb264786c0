"""FlowForge local data store."""

__version__ = "1.0.0"


def open_store(path_or_url=None, **kwargs):
    """Configure logging from settings and open the store, as the desktop shell does at startup."""
    from .core.config import settings
    from .core.logging import setup_logging
    from .store import Store

    setup_logging(kwargs.get("settings", settings).LOG_LEVEL)
    return Store.open(path_or_url, **kwargs)


__all__ = ["open_store", "__version__"]
