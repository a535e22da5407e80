"""Process-wide logging configuration."""

from __future__ import annotations

import logging

_CONFIGURED = False

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO", *, force: bool = False) -> None:
    """Install a single console handler on the root logger once per process."""
    global _CONFIGURED
    if _CONFIGURED and not force:
        return

    resolved = getattr(logging, level.strip().upper(), logging.INFO)
    if not isinstance(resolved, int):
        resolved = logging.INFO

    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z")
    )

    root = logging.getLogger()
    root.setLevel(resolved)
    root.handlers.clear()
    root.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    _CONFIGURED = True


__all__ = ["configure_logging"]
