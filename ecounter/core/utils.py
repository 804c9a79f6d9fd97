"""
ECounter Utilities
Common helpers for timing, subprocess management and /proc, /sys, /dev/cpu access.
"""

import logging
import os
import re
import struct
import subprocess
import time
from pathlib import Path
from typing import Dict, List, Optional, Union

from ecounter.core.errors import BackendError
from ecounter.core.schema import Vendor

logger = logging.getLogger(__name__)

CPU_SYSFS_ROOT = "/sys/devices/system/cpu"
MSR_DEVICE_TEMPLATE = "/dev/cpu/{core}/msr"

_cpu_dir_re = re.compile(r"^cpu(\d+)$")


def get_monotonic_ns() -> int:
    """Get monotonic clock time in nanoseconds."""
    return time.monotonic_ns()


def ns_to_s(ns: int) -> float:
    """Convert nanoseconds to seconds."""
    return ns / 1_000_000_000


def run_command(
    cmd: List[str],
    timeout: Optional[int] = 30,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    capture_stderr: bool = True,
) -> Optional[str]:
    """
    Run a command and return stdout.
    Returns None on failure.
    """
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
            cwd=cwd,
            env=env or os.environ.copy(),
        )
        if result.returncode == 0:
            return result.stdout
        else:
            if capture_stderr:
                logger.debug(f"Command failed: {cmd}\nstderr: {result.stderr}")
            return None
    except subprocess.TimeoutExpired:
        logger.warning(f"Command timed out: {cmd}")
        return None
    except FileNotFoundError:
        logger.debug(f"Command not found: {cmd[0]}")
        return None
    except OSError as e:
        logger.debug(f"Command error: {cmd}, {e}")
        return None


def read_proc_file(path: Union[str, Path]) -> Optional[str]:
    """Read a /proc or /sys file, return None on failure."""
    try:
        with open(path, "r") as f:
            return f.read()
    except OSError:
        return None


def read_sysfs_int(path: Union[str, Path], base: int = 10) -> Optional[int]:
    """Read a single integer from a sysfs attribute."""
    content = read_proc_file(path)
    if content is None:
        return None
    try:
        return int(content.strip(), base)
    except ValueError:
        return None


def read_msr(core_id: int, register: int) -> int:
    """
    Read a 64-bit model specific register through the msr driver.

    Raises BackendError when the device node cannot be opened or read.
    """
    path = MSR_DEVICE_TEMPLATE.format(core=core_id)
    try:
        fd = os.open(path, os.O_RDONLY)
    except OSError as e:
        raise BackendError(f"unable to open MSR file {path}: {e.strerror}") from e

    try:
        data = os.pread(fd, 8, register)
    except OSError as e:
        raise BackendError(f"unable to fetch MSR {register:#x} in {path}: {e.strerror}") from e
    finally:
        os.close(fd)

    if len(data) != 8:
        raise BackendError(f"short read of MSR {register:#x} in {path}")

    return struct.unpack("<Q", data)[0]


def detect_cpu_vendor(cpuinfo_path: str = "/proc/cpuinfo") -> Vendor:
    """Identify the CPU vendor from the first vendor_id line of /proc/cpuinfo."""
    content = read_proc_file(cpuinfo_path)
    if not content:
        return Vendor.UNKNOWN

    for line in content.split("\n"):
        if line.startswith("vendor_id"):
            vendor_id = line.split(":", 1)[1].strip()
            if vendor_id == "GenuineIntel":
                return Vendor.INTEL
            if vendor_id == "AuthenticAMD":
                return Vendor.AMD
            break

    return Vendor.UNKNOWN


def cpu_package_to_core(sysfs_root: str = CPU_SYSFS_ROOT) -> Dict[int, int]:
    """
    Map every physical package id to one logical CPU that lives on it.

    The highest-numbered CPU of each package is kept.
    """
    mapping: Dict[int, int] = {}
    root = Path(sysfs_root)

    cpu_ids = []
    for cpu_dir in root.glob("cpu[0-9]*"):
        match = _cpu_dir_re.match(cpu_dir.name)
        if match:
            cpu_ids.append(int(match.group(1)))

    for cpu_id in sorted(cpu_ids):
        package_id = read_sysfs_int(root / f"cpu{cpu_id}" / "topology" / "physical_package_id")
        if package_id is None:
            continue
        mapping[package_id] = cpu_id

    return mapping

