"""
ECounter Scheduler
Application state and the fixed-interval sampling loop.

One tick updates every component in registry order, then runs the overhead
estimator. Termination signals only raise a stop flag which is checked
between ticks, so backend handles are never released during a fetch.
"""

import logging
import signal
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ecounter.accounting.overhead import OverheadEstimator
from ecounter.collectors import build_components
from ecounter.collectors.base import EnergyComponent
from ecounter.core.config import EcounterConfig
from ecounter.core.schema import UnitReport

logger = logging.getLogger(__name__)

STOP_SIGNALS = (signal.SIGTERM, signal.SIGINT)


@dataclass
class Ecounter:
    """Everything a running instance owns, built once at startup."""

    config: EcounterConfig
    components: List[EnergyComponent] = field(default_factory=list)
    overhead: Optional[OverheadEstimator] = None
    stop: threading.Event = field(default_factory=threading.Event)
    tick_count: int = 0

    @classmethod
    def from_config(cls, config: EcounterConfig) -> "Ecounter":
        overhead = None
        if config.overhead_enabled:
            overhead = OverheadEstimator(config.overhead_command, config.interval_s)
        return cls(config=config, components=build_components(config), overhead=overhead)

    def interval_energies(self) -> List[float]:
        energies: List[float] = []
        for component in self.components:
            energies.extend(component.interval_energies())
        return energies

    def reports(self) -> List[UnitReport]:
        reports: List[UnitReport] = []
        for component in self.components:
            reports.extend(component.describe())
        return reports


class Scheduler:
    """Drives an :class:`Ecounter` through init, periodic ticks and teardown."""

    def __init__(self, state: Ecounter):
        self.state = state
        self._previous_handlers = {}

    @property
    def config(self) -> EcounterConfig:
        return self.state.config

    def init(self, open_files: bool = True) -> int:
        """
        Initialize every component in registry order. Returns the unit count.

        ``open_files=False`` discovers units without creating or truncating
        any output file.
        """
        total = 0
        for component in self.state.components:
            units = component.init(open_files=open_files)
            total += len(units)
        if open_files:
            logger.info(f"{total} unit(s) monitored, writing to {self.config.output_dir}")
        else:
            logger.info(f"{total} unit(s) discovered")
        return total

    def tick(self) -> None:
        """Update every component, then estimate the overhead."""
        for component in self.state.components:
            component.update()

        if self.state.overhead is not None:
            self.state.overhead.sample(self.state.interval_energies())

        self.state.tick_count += 1

    def fini(self) -> None:
        """Tear down every component, including partially initialized ones."""
        for component in self.state.components:
            component.fini()

    def request_stop(self, signum: Optional[int] = None, frame=None) -> None:
        if signum is not None:
            logger.info(f"Received {signal.Signals(signum).name}, stopping after the current tick")
        self.state.stop.set()

    def install_signal_handlers(self) -> None:
        for signum in STOP_SIGNALS:
            self._previous_handlers[signum] = signal.signal(signum, self.request_stop)

    def restore_signal_handlers(self) -> None:
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler)
        self._previous_handlers.clear()

    def run(
        self,
        max_ticks: Optional[int] = None,
        handle_signals: bool = True,
        on_tick: Optional[Callable[[Ecounter], None]] = None,
    ) -> int:
        """
        Run until stopped.

        Args:
            max_ticks: Stop after this many ticks (None or 0 runs forever)
            handle_signals: Install SIGTERM/SIGINT handlers for the duration of the run
            on_tick: Called with the state after each tick

        Returns:
            Number of ticks performed
        """
        if max_ticks is None:
            max_ticks = self.config.max_ticks

        if handle_signals:
            self.install_signal_handlers()

        try:
            self.init()

            while not self.state.stop.is_set():
                self.tick()
                if on_tick is not None:
                    on_tick(self.state)

                if max_ticks and self.state.tick_count >= max_ticks:
                    break
                if self.state.stop.wait(self.config.interval_s):
                    break
        finally:
            self.fini()
            if handle_signals:
                self.restore_signal_handlers()

        logger.info(f"Stopped after {self.state.tick_count} tick(s)")
        return self.state.tick_count
