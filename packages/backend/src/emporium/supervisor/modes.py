"""Process topology modes and worker roles."""

import os
from enum import Enum
from typing import Optional

from emporium.errors import InvalidMode

# Set in every process the supervisor starts, read by /api/v1/info.
ROLE_ENV = "EMPORIUM_WORKER_ROLE"


class Mode(str, Enum):
    FORK = "FORK"
    CLUSTER = "CLUSTER"


class Role(str, Enum):
    SINGLETON = "singleton"  # the only process, FORK mode
    PRIMARY = "primary"  # CLUSTER mode, forks and re-forks workers
    WORKER = "worker"  # CLUSTER mode, serves requests


def parse_mode(value: Optional[str]) -> Mode:
    """Case-insensitive mode lookup. Missing means FORK; anything else unknown fails."""
    if value is None or not value.strip():
        return Mode.FORK
    try:
        return Mode(value.strip().upper())
    except ValueError:
        raise InvalidMode(value) from None


def current_role() -> Role:
    try:
        return Role(os.environ.get(ROLE_ENV, Role.SINGLETON.value))
    except ValueError:
        return Role.SINGLETON
