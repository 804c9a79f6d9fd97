"""
ECounter Output Files
One flat file per unit holding ``"<joules> Joules"``, rewritten in place.
"""

import logging
import math
from pathlib import Path
from typing import IO, Optional, Union

from ecounter.core.errors import OutputFileError

logger = logging.getLogger(__name__)


def format_energy(joules: float) -> str:
    """Render an accumulator as exposed to consumers (whole Joules)."""
    return f"{int(math.floor(joules))} Joules"


class EnergyFile:
    """
    Output file opened once and rewritten on every tick.

    Each write rewinds, writes and truncates, so a shorter value never leaves
    stale digits from the previous one.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._fp: Optional[IO[str]] = None

    def open(self) -> "EnergyFile":
        try:
            self._fp = open(self.path, "w")
        except OSError as e:
            raise OutputFileError(f"Failed to open output file {self.path}: {e.strerror}") from e
        logger.debug(f"Opened output file {self.path}")
        return self

    @property
    def is_open(self) -> bool:
        return self._fp is not None

    def write(self, joules: float) -> None:
        if self._fp is None:
            raise OutputFileError(f"Output file {self.path} is not open")
        try:
            self._fp.seek(0)
            self._fp.write(format_energy(joules))
            self._fp.truncate()
            self._fp.flush()
        except OSError as e:
            raise OutputFileError(f"Failed to write output file {self.path}: {e.strerror}") from e

    def close(self) -> None:
        if self._fp is not None:
            self._fp.close()
            self._fp = None
