"""
ECounter Command Line Interface
Main entry point for the energy counter daemon.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from ecounter import __version__
from ecounter.core.config import DIR_PATH_DEFAULT, INTERVAL_DEFAULT_S, EcounterConfig
from ecounter.core.errors import EnergyCounterError
from ecounter.core.schema import ComponentKind
from ecounter.scheduler import Ecounter, Scheduler

DISABLE_FLAGS = {
    "disable_cpu": ComponentKind.CPUS,
    "disable_dram": ComponentKind.DRAMS,
    "disable_gpu_amd": ComponentKind.AMD_GPUS,
    "disable_gpu_intel": ComponentKind.INTEL_GPUS,
    "disable_gpu_nvidia": ComponentKind.NVIDIA_GPUS,
}


# Configure logging
def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%H:%M:%S",
    )


def build_config(
    config_file: Optional[str] = None,
    output_dir: Optional[str] = None,
    interval: Optional[int] = None,
    disabled: Tuple[ComponentKind, ...] = (),
    mock: Tuple[float, ...] = (),
    find_overhead: Optional[str] = None,
    count: Optional[int] = None,
    verbose: bool = False,
) -> EcounterConfig:
    """Defaults, then the YAML file, then command line options."""
    config = EcounterConfig.from_yaml(config_file) if config_file else EcounterConfig()
    config.apply(
        {
            "dir": output_dir,
            "interval": interval,
            "disable": [kind.value for kind in disabled],
            "mock": list(mock),
            "find_overhead": find_overhead,
            "count": count,
        }
    )
    config.verbose = config.verbose or verbose
    config.validate()
    return config


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.version_option(__version__, prog_name="ecounter")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """
    Energy Counter (ecounter)

    Samples CPU, DRAM and GPU energy counters at a fixed interval and keeps
    one "<N> Joules" file per device up to date.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose)


@cli.command()
@click.option("--dir", "-d", "output_dir", default=None,
              help=f"Output directory (default: {DIR_PATH_DEFAULT})")
@click.option("--interval", "-i", type=int, default=None,
              help=f"Seconds between two collections (default: {INTERVAL_DEFAULT_S})")
@click.option("--disable-cpu", is_flag=True, help="Disable CPU package energy")
@click.option("--disable-dram", is_flag=True, help="Disable DRAM energy")
@click.option("--disable-gpu-amd", is_flag=True, help="Disable AMD GPU energy")
@click.option("--disable-gpu-intel", is_flag=True, help="Disable Intel GPU energy")
@click.option("--disable-gpu-nvidia", is_flag=True, help="Disable NVIDIA GPU energy")
@click.option("--mock", "-m", type=float, multiple=True,
              help="Add a mock device drawing WATTS (repeatable)")
@click.option("--find-overhead", "-f", default=None, metavar="CMD",
              help="Command printing the node power in watts, enables overhead estimation")
@click.option("--config", "-c", "config_file", type=click.Path(exists=True), default=None,
              help="YAML configuration file")
@click.option("--count", "-n", type=int, default=None,
              help="Stop after N collections (default: run until signaled)")
@click.pass_context
def run(
    ctx: click.Context,
    output_dir: Optional[str],
    interval: Optional[int],
    mock: Tuple[float, ...],
    find_overhead: Optional[str],
    config_file: Optional[str],
    count: Optional[int],
    **disable_flags: bool,
) -> None:
    """
    Collect energy counters until SIGTERM/SIGINT.

    Every interval, each unit file is rewritten with its accumulated energy.
    """
    logger = logging.getLogger("ecounter.cli.run")
    verbose = ctx.obj.get("verbose", False)

    disabled = tuple(kind for flag, kind in DISABLE_FLAGS.items() if disable_flags.get(flag))

    try:
        config = build_config(
            config_file=config_file,
            output_dir=output_dir,
            interval=interval,
            disabled=disabled,
            mock=mock,
            find_overhead=find_overhead,
            count=count,
            verbose=verbose,
        )

        logger.info(f"Output directory: {config.output_dir}")
        logger.info(f"Interval: {config.interval_s} s")
        if config.disabled:
            logger.info(f"Disabled: {', '.join(sorted(k.value for k in config.disabled))}")
        if config.overhead_enabled:
            logger.info(f"Overhead estimation with: {config.overhead_command}")

        scheduler = Scheduler(Ecounter.from_config(config))
        ticks = scheduler.run()

    except EnergyCounterError as e:
        logger.error(f"ecounter failed: {e}", exc_info=verbose)
        click.echo(click.style(f"\n✗ Error: {e}", fg="red"), err=True)
        sys.exit(1)

    click.echo(click.style(f"✓ {ticks} collection(s) written to {config.output_dir}", fg="green"))


@cli.command()
@click.option("--dir", "-d", "output_dir", default=None,
              help=f"Output directory (default: {DIR_PATH_DEFAULT})")
@click.option("--mock", "-m", type=float, multiple=True, help="Add a mock device drawing WATTS")
@click.option("--config", "-c", "config_file", type=click.Path(exists=True), default=None,
              help="YAML configuration file")
@click.option("--json", "as_json", is_flag=True, help="Print the units as JSON")
@click.pass_context
def probe(
    ctx: click.Context,
    output_dir: Optional[str],
    mock: Tuple[float, ...],
    config_file: Optional[str],
    as_json: bool,
) -> None:
    """
    Discover every enabled backend and list its units without collecting.

    Output files are neither created nor truncated, so this is safe to run
    next to a live collector.
    """
    logger = logging.getLogger("ecounter.cli.probe")

    try:
        config = build_config(
            config_file=config_file,
            output_dir=output_dir,
            mock=mock,
            verbose=ctx.obj.get("verbose", False),
        )
        scheduler = Scheduler(Ecounter.from_config(config))
        try:
            scheduler.init(open_files=False)
            reports = scheduler.state.reports()
        finally:
            scheduler.fini()
    except EnergyCounterError as e:
        logger.error(f"Probe failed: {e}")
        click.echo(click.style(f"\n✗ Error: {e}", fg="red"), err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps([report.to_dict() for report in reports], indent=2))
        return

    click.echo(click.style("\n═══ Monitored Units ═══", fg="cyan", bold=True))
    if not reports:
        click.echo("No unit found.")
        return

    click.echo(f"{'Component':<14} {'ID':>4} {'Bus':>5} {'Peer':>5}  {'Model':<16} Output file")
    click.echo("-" * 78)
    for report in reports:
        bus = f"{report.bus_id:02x}" if report.bus_id is not None else "-"
        peer = str(report.peer_id) if report.peer_id is not None else "-"
        model = report.extras.get("model", "-")
        click.echo(
            f"{report.component:<14} {report.unit_id:>4} {bus:>5} {peer:>5}  {model:<16} "
            f"{Path(config.output_dir) / report.output_name}"
        )


@cli.command()
def info() -> None:
    """
    Display system information and backend availability.
    """
    import platform

    import pynvml

    from ecounter.collectors.intel_gpu import DRM_SYSFS_ROOT, INTEL_PCI_VENDOR_ID
    from ecounter.core.utils import MSR_DEVICE_TEMPLATE, detect_cpu_vendor, read_sysfs_int, run_command

    click.echo(click.style("\n═══ ECounter System Information ═══", fg="cyan", bold=True))

    click.echo(f"\nPython:    {platform.python_version()}")
    click.echo(f"Platform:  {platform.platform()}")
    click.echo(f"ecounter:  {__version__}")

    vendor = detect_cpu_vendor()
    click.echo(f"\nCPU vendor: {vendor.value}")
    if Path(MSR_DEVICE_TEMPLATE.format(core=0)).exists():
        click.echo("MSR:       Available")
    else:
        click.echo("MSR:       NOT AVAILABLE (modprobe msr)")

    if run_command(["rocm-smi", "--version"]):
        click.echo("rocm-smi:  Available")
    else:
        click.echo("rocm-smi:  NOT AVAILABLE")

    try:
        pynvml.nvmlInit()
        click.echo(f"NVML:      Available ({pynvml.nvmlDeviceGetCount()} GPU)")
        pynvml.nvmlShutdown()
    except pynvml.NVMLError as e:
        click.echo(f"NVML:      NOT AVAILABLE ({e})")

    intel_cards = [
        card for card in Path(DRM_SYSFS_ROOT).glob("card[0-9]*")
        if card.name[4:].isdigit()
        and read_sysfs_int(card / "device" / "vendor", 16) == INTEL_PCI_VENDOR_ID
    ]
    if intel_cards:
        click.echo(f"Intel GPU: {len(intel_cards)} card(s)")
    else:
        click.echo("Intel GPU: NOT DETECTED")


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
