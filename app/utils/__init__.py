"""Shared helpers for the admin backend."""
import logging

from app.core import config


_LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"
_configured = False


def _configure_root() -> None:
    global _configured
    if _configured:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    root = logging.getLogger("app")
    root.addHandler(handler)
    root.setLevel(config.LOG_LEVEL)
    root.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """
    Get a module logger.

    Loggers under the ``app`` namespace share one stream handler whose level
    comes from ``LOG_LEVEL``. Scripts outside the package get a child of
    ``app`` so they log the same way.
    """
    _configure_root()
    if name != "app" and not name.startswith("app."):
        name = f"app.{name}"
    return logging.getLogger(name)
