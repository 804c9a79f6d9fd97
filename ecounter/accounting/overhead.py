"""
Overhead Estimator
Compares the power accounted for by monitored devices with an external
whole-node power reading (PSU loss, fans, NICs, unmonitored parts).
"""

import logging
from typing import Iterable, Optional

from ecounter.core.errors import NodePowerError
from ecounter.core.schema import OverheadStats
from ecounter.core.utils import run_command

logger = logging.getLogger(__name__)


def parse_node_power(output: Optional[str], command: str = "") -> int:
    """
    Parse the node power command output: the first line must be a positive
    base-10 integer number of watts.
    """
    if not output or not output.strip():
        raise NodePowerError(f"Command ({command}) does not return any output")

    first_line = output.splitlines()[0].strip()
    try:
        power = int(first_line, 10)
    except ValueError as e:
        raise NodePowerError(
            f"Command ({command}) returns an invalid value: {first_line!r}"
        ) from e

    if power <= 0:
        raise NodePowerError(f"Command ({command}) returns a non-positive value: {power}")

    return power


def fetch_node_power(command: str, timeout: Optional[int] = None) -> int:
    """Run the node power command through the shell and parse its output."""
    output = run_command(["/bin/sh", "-c", command], timeout=timeout)
    if output is None:
        raise NodePowerError(f"Failed to run command ({command})")
    return parse_node_power(output, command)


class OverheadEstimator:
    """
    Streaming min/max/moving-average of the node power overhead.

    Ticks where the monitored devices report no energy are discarded so the
    bootstrap tick does not drag the average down.
    """

    def __init__(self, command: Optional[str] = None, interval_s: float = 10.0):
        self.command = command
        self.interval_s = interval_s
        self.stats = OverheadStats()

    def update(self, node_power_w: float, interval_energies: Iterable[float]) -> Optional[float]:
        """
        Fold one tick into the statistics.

        Args:
            node_power_w: Instantaneous node power
            interval_energies: Last interval energy of every unit, in Joules

        Returns:
            The overhead sample in watts, or None when the tick was skipped
        """
        # Whole watts; sub-watt residue of the bootstrap tick counts as no power
        power_interval = int(sum(interval_energies) / self.interval_s)
        if power_interval == 0:
            logger.debug("Null device power over the last interval, overhead sample skipped")
            return None

        overhead = max(0.0, node_power_w - power_interval)
        self.stats.update(overhead)
        return overhead

    def sample(self, interval_energies: Iterable[float]) -> Optional[float]:
        """Fetch the node power with the configured command and update."""
        if not self.command:
            raise NodePowerError("No node power command configured")

        node_power = fetch_node_power(self.command)
        overhead = self.update(node_power, interval_energies)

        logger.info(f"Node instant. power: {node_power} W")
        if overhead is not None:
            logger.info(
                f"Power overhead - min: {self.stats.min:.0f} W, max: {self.stats.max:.0f} W, "
                f"avg: {self.stats.moving_average:.0f} W"
            )
        return overhead
