"""
Mock Energy Collector
Synthetic units drawing a constant power, for testing without hardware.
"""

import logging
from typing import Dict, List, Sequence, Union

from ecounter.collectors.base import EnergyComponent
from ecounter.core.config import INTERVAL_DEFAULT_S
from ecounter.core.schema import ComponentKind, RawSample, Unit, UnitType
from ecounter.core.utils import get_monotonic_ns

logger = logging.getLogger(__name__)

# Synthetic counters use the usual RAPL energy unit
MOCK_RESOLUTION = 2 ** -14


class MockComponent(EnergyComponent):
    """
    One unit per power budget. Each read advances a synthetic counter by
    ``watts * interval`` so every tick credits exactly that energy.
    """

    kind = ComponentKind.MOCKS
    unit_type = UnitType.MOCK

    def __init__(
        self,
        *args,
        watts: Sequence[Union[int, float]] = (),
        interval_s: float = INTERVAL_DEFAULT_S,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self.watts = [float(w) for w in watts]
        self.interval_s = interval_s
        self._counters: Dict[int, int] = {}

    def discover(self) -> List[Unit]:
        return [
            Unit(id=index, output_name=f"mock_{index}_energy", fixed_watts=watts)
            for index, watts in enumerate(self.watts)
        ]

    def read_sample(self, unit: Unit) -> RawSample:
        if unit.id in self._counters:
            step = round(unit.fixed_watts * self.interval_s / MOCK_RESOLUTION)
            self._counters[unit.id] += step
        else:
            self._counters[unit.id] = 0

        return RawSample(
            raw_counter=self._counters[unit.id],
            timestamp_ns=get_monotonic_ns(),
            resolution=MOCK_RESOLUTION,
        )

    def unit_label(self, unit: Unit) -> str:
        return f"Mock {unit.id} ({unit.fixed_watts:g} W)"
