"""
ECounter Accounting Module - Counter accumulation, paired-die attribution and overhead estimation.
"""

from ecounter.accounting.accumulator import (
    MSR_COUNTER_WIDTH,
    accumulate,
    add_interval_energy,
    compute_interval_energy,
    counter_delta,
)
from ecounter.accounting.attribution import (
    DiePair,
    PairingTable,
    attribute_shared_sample,
    split_shared_energy,
    utilization_ratio,
)
from ecounter.accounting.overhead import OverheadEstimator, fetch_node_power, parse_node_power

__all__ = [
    "MSR_COUNTER_WIDTH",
    "accumulate",
    "add_interval_energy",
    "compute_interval_energy",
    "counter_delta",
    "DiePair",
    "PairingTable",
    "attribute_shared_sample",
    "split_shared_energy",
    "utilization_ratio",
    "OverheadEstimator",
    "fetch_node_power",
    "parse_node_power",
]
