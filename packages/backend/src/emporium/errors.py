"""Error taxonomy shared by the store, broadcaster and supervisor."""

from dataclasses import dataclass
from typing import Optional


class EmporiumError(Exception):
    """Base class for all Emporium errors."""


class StoreUnavailable(EmporiumError):
    """The message store could not be read from or written to."""


class TransportError(EmporiumError):
    """The HTTP listener could not bind or accept."""


class InvalidMode(EmporiumError, ValueError):
    """Unknown process topology mode."""

    def __init__(self, mode: str):
        self.mode = mode
        super().__init__(
            f"Unknown mode {mode!r}: expected one of FORK, CLUSTER"
        )


@dataclass(frozen=True)
class WorkerExit:
    """A worker termination observed by the cluster primary."""

    pid: Optional[int]
    exitcode: Optional[int]

    @property
    def signal(self) -> Optional[int]:
        # multiprocessing reports death-by-signal as a negative exit code
        if self.exitcode is not None and self.exitcode < 0:
            return -self.exitcode
        return None

    @property
    def clean(self) -> bool:
        return self.exitcode == 0
