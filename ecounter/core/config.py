"""
ECounter Configuration
Runtime settings with defaults, optional YAML file loading and validation.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

import yaml

from ecounter.core.errors import ConfigurationError
from ecounter.core.schema import ComponentKind

logger = logging.getLogger(__name__)

INTERVAL_DEFAULT_S = 10
DIR_PATH_DEFAULT = "/tmp/ecounter"
IDLE_POWER_PER_DIE_W = 40.0


@dataclass
class EcounterConfig:
    """Everything the scheduler and the backends need to run."""

    output_dir: Path = Path(DIR_PATH_DEFAULT)
    interval_s: int = INTERVAL_DEFAULT_S
    disabled: Set[ComponentKind] = field(default_factory=set)
    mock_watts: List[float] = field(default_factory=list)
    overhead_command: Optional[str] = None
    verbose: bool = False
    idle_power_w: float = IDLE_POWER_PER_DIE_W
    max_ticks: int = 0

    @property
    def overhead_enabled(self) -> bool:
        return bool(self.overhead_command)

    def is_disabled(self, kind: ComponentKind) -> bool:
        return kind in self.disabled

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EcounterConfig":
        """Build a config from the YAML mapping layout (``dir``, ``interval``, ...)."""
        config = cls()
        config.apply(data)
        return config

    @classmethod
    def from_yaml(cls, path: str) -> "EcounterConfig":
        """Load configuration from a YAML file."""
        config_path = Path(path)
        if not config_path.is_file():
            raise ConfigurationError(f"Config file not found: {path}")

        with open(config_path, "r") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")

        logger.debug(f"Loaded configuration from {path}")
        return cls.from_dict(data)

    def apply(self, data: Dict[str, Any]) -> None:
        """Override fields from a mapping; absent or None values are ignored."""
        if data.get("dir") is not None:
            self.output_dir = Path(data["dir"])
        if data.get("interval") is not None:
            self.interval_s = _as_int(data["interval"], "interval")
        if data.get("disable"):
            try:
                self.disabled |= {ComponentKind.from_name(str(n)) for n in data["disable"]}
            except ValueError as e:
                raise ConfigurationError(str(e)) from e
        if data.get("mock"):
            self.mock_watts.extend(_as_float(w, "mock") for w in data["mock"])
        if data.get("find_overhead"):
            self.overhead_command = str(data["find_overhead"])
        if data.get("verbose") is not None:
            self.verbose = bool(data["verbose"])
        if data.get("idle_power") is not None:
            self.idle_power_w = _as_float(data["idle_power"], "idle_power")
        if data.get("count") is not None:
            self.max_ticks = _as_int(data["count"], "count")

    def validate(self) -> None:
        """Raise ConfigurationError if the settings cannot be used."""
        if not self.output_dir.exists():
            raise ConfigurationError(f"Output directory {self.output_dir} does not exist")
        if not self.output_dir.is_dir():
            raise ConfigurationError(f"Output path {self.output_dir} is not a directory")
        if self.interval_s <= 0:
            raise ConfigurationError(
                f"Interval must be a positive number of seconds, got {self.interval_s}"
            )
        for watts in self.mock_watts:
            if watts < 0:
                raise ConfigurationError(f"Mock power budget cannot be negative: {watts} W")
        if self.idle_power_w < 0:
            raise ConfigurationError(f"Idle power cannot be negative: {self.idle_power_w} W")
        if self.max_ticks < 0:
            raise ConfigurationError(f"Collection count cannot be negative: {self.max_ticks}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dir": str(self.output_dir),
            "interval": self.interval_s,
            "disable": sorted(k.value for k in self.disabled),
            "mock": list(self.mock_watts),
            "find_overhead": self.overhead_command,
            "verbose": self.verbose,
            "idle_power": self.idle_power_w,
            "count": self.max_ticks,
        }


def _as_int(value: Any, key: str) -> int:
    try:
        return int(str(value), 10)
    except ValueError as e:
        raise ConfigurationError(f"Cannot parse '{key}' as an integer: {value!r}") from e


def _as_float(value: Any, key: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Cannot parse '{key}' as a number: {value!r}") from e
