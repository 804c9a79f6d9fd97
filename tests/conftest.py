"""
ECounter Test Configuration and Fixtures
========================================
Shared fixtures and configuration for all tests.
"""

import pytest
import tempfile
import shutil
from pathlib import Path
from typing import Callable, Dict, Generator, Optional


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    path = Path(tempfile.mkdtemp(prefix="ecounter_test_"))
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def output_dir(temp_dir) -> Path:
    """Existing directory receiving the energy files."""
    path = temp_dir / "out"
    path.mkdir()
    return path


@pytest.fixture
def sample_config(output_dir) -> dict:
    """Sample YAML configuration mapping."""
    return {
        "dir": str(output_dir),
        "interval": 5,
        "disable": ["gpu-amd", "gpu-intel", "gpu-nvidia", "cpu", "dram"],
        "mock": [100, 250.5],
        "verbose": False,
    }


@pytest.fixture
def make_config(output_dir) -> Callable:
    """Factory for configurations where only mocks are enabled by default."""
    from ecounter.core.config import EcounterConfig
    from ecounter.core.schema import ComponentKind

    def _make(**overrides):
        config = EcounterConfig(
            output_dir=output_dir,
            interval_s=1,
            disabled={k for k in ComponentKind if k is not ComponentKind.MOCKS},
        )
        for key, value in overrides.items():
            setattr(config, key, value)
        return config

    return _make


@pytest.fixture
def fake_cpu_sysfs(temp_dir) -> Path:
    """
    CPU topology with two packages: cpu0/cpu1 on package 0, cpu2/cpu3 on package 1.
    """
    root = temp_dir / "sys" / "devices" / "system" / "cpu"
    for cpu_id, package_id in enumerate([0, 0, 1, 1]):
        topology = root / f"cpu{cpu_id}" / "topology"
        topology.mkdir(parents=True)
        (topology / "physical_package_id").write_text(f"{package_id}\n")

    # Entries that are not CPUs
    (root / "cpufreq").mkdir()
    (root / "cpuidle").mkdir()
    return root


@pytest.fixture
def make_cpuinfo(temp_dir) -> Callable[[str], Path]:
    """Write a minimal /proc/cpuinfo with the given vendor_id."""

    def _make(vendor_id: str) -> Path:
        path = temp_dir / f"cpuinfo_{vendor_id}"
        path.write_text(
            "processor\t: 0\n"
            f"vendor_id\t: {vendor_id}\n"
            "cpu family\t: 6\n"
            "model name\t: Test CPU\n"
        )
        return path

    return _make


@pytest.fixture
def make_drm_card(temp_dir) -> Callable:
    """Create /sys/class/drm/cardN entries backed by a fake PCI device tree."""
    drm_root = temp_dir / "sys" / "class" / "drm"
    drm_root.mkdir(parents=True)
    pci_root = temp_dir / "sys" / "devices" / "pci0000:00"
    pci_root.mkdir(parents=True)

    def _make(
        index: int,
        pci_address: str,
        vendor: int = 0x8086,
        device: int = 0x56C0,
        energy_uj: Optional[int] = 0,
    ) -> Dict[str, Path]:
        device_dir = pci_root / pci_address
        device_dir.mkdir()
        (device_dir / "vendor").write_text(f"{vendor:#06x}\n")
        (device_dir / "device").write_text(f"{device:#06x}\n")

        energy_file = None
        if energy_uj is not None:
            hwmon = device_dir / "hwmon" / f"hwmon{index + 3}"
            hwmon.mkdir(parents=True)
            energy_file = hwmon / "energy1_input"
            energy_file.write_text(f"{energy_uj}\n")

        card = drm_root / f"card{index}"
        card.mkdir()
        (card / "device").symlink_to(device_dir)
        return {"root": drm_root, "energy": energy_file}

    _make.root = drm_root
    return _make


# =============================================================================
# Test Markers
# =============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow running")
    config.addinivalue_line("markers", "hardware: marks tests requiring real energy counters")


# =============================================================================
# Skip Conditions
# =============================================================================

def has_msr() -> bool:
    """Check if the msr driver exposes CPU 0."""
    return Path("/dev/cpu/0/msr").exists()


def has_rocm_smi() -> bool:
    """Check if rocm-smi is available."""
    return shutil.which("rocm-smi") is not None


skip_no_msr = pytest.mark.skipif(
    not has_msr(),
    reason="msr driver not loaded"
)

skip_no_rocm_smi = pytest.mark.skipif(
    not has_rocm_smi(),
    reason="rocm-smi not installed"
)
