"""Process-wide logging setup.

Stdlib logging carries uvicorn's and SQLAlchemy's records; our own code
logs through structlog with dotted event names. Both get the process
id, which is what tells workers apart in CLUSTER mode.
"""

import logging
import os
from typing import Optional

import structlog


def configure_logging(level: str = "INFO", role: Optional[str] = None) -> None:
    """Configure logging for the current process. Safe to call again after a fork."""
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO

    logging.basicConfig(
        level=numeric,
        format="%(asctime)s [%(process)d] [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
    )

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(pid=os.getpid())
    if role:
        structlog.contextvars.bind_contextvars(role=role)
