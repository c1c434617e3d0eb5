"""
Sonar CLI
==========

Click-based command-line interface for the Sonar BLE device identity
resolver.

Commands:
    sonar scan [MINUTES]            Live BLE scan (0 / omitted = until Ctrl+C)
    sonar replay FILE               Replay a JSON-lines capture
    sonar vendors merge SOURCE      Merge a company-id export into the vendor table

Common options:
    --watch, -w         Only print new-device lines
    --debug, -d         Also print unnamed arrivals and repeat detections
    --output, -o PATH   Write the JSON report to PATH

Exit codes:
    0  success
    1  configuration, catalog or collector error
    2  internal correlation consistency fault

References:
    - Click Documentation: https://click.palletsprojects.com/
"""

from __future__ import annotations

import asyncio
import sys
from typing import Optional

import click

from shared.config import SonarConfig
from shared.console import SonarConsole
from shared.errors import CorrelationConsistencyError, SonarError
from shared.logger import configure_logging

from sonar import __description__, __tool__, __version__


# ---------------------------------------------------------------------------
# Async helper
# ---------------------------------------------------------------------------


def _run_async(coro):
    """Run an async coroutine from synchronous Click commands.

    Args:
        coro: Coroutine to execute.

    Returns:
        The coroutine's return value.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None

    if loop and loop.is_running():
        import concurrent.futures
        with concurrent.futures.ThreadPoolExecutor() as pool:
            future = pool.submit(asyncio.run, coro)
            return future.result()
    else:
        return asyncio.run(coro)


def _fail(console: SonarConsole, exc: Exception) -> None:
    console.error(str(exc))
    if isinstance(exc, CorrelationConsistencyError):
        sys.exit(2)
    sys.exit(1)


def _make_engine(ctx: click.Context):
    from sonar.core.engine import SonarEngine

    return SonarEngine(config=ctx.obj["config"], console=ctx.obj["console"])


# ---------------------------------------------------------------------------
# CLI Group
# ---------------------------------------------------------------------------


@click.group(
    name="sonar",
    help=(
        f"{__tool__.upper()} - {__description__}\n\n"
        "Tracks nearby Bluetooth Low Energy advertisements, decodes vendor "
        "and service data, and estimates how many physical devices hide "
        "behind rotating identifiers."
    ),
)
@click.version_option(__version__, prog_name="sonar")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to Sonar configuration file (TOML).",
)
@click.option(
    "--quiet",
    is_flag=True,
    default=False,
    help="Suppress console output (report only).",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Override the configured log level.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Optional[str],
    quiet: bool,
    log_level: Optional[str],
) -> None:
    """Sonar BLE device identity resolver - main CLI entry point."""
    ctx.ensure_object(dict)

    try:
        config = SonarConfig.load(config_path)
    except FileNotFoundError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    except SonarError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    settings = config.global_settings
    configure_logging(
        log_level=log_level or ("DEBUG" if settings.debug else settings.log_level),
        log_file=settings.log_file,
        json_logs=settings.log_json,
    )

    ctx.obj["config"] = config
    ctx.obj["console"] = SonarConsole(quiet=quiet)
    ctx.obj["quiet"] = quiet


# ---------------------------------------------------------------------------
# Live Scan Command
# ---------------------------------------------------------------------------


@cli.command(
    name="scan",
    help=(
        "Scan nearby BLE devices.\n\n"
        "MINUTES sets the scan length; omit it or pass 0 to scan until "
        "Ctrl+C. A summary with correlated physical devices is printed "
        "when the scan ends."
    ),
)
@click.argument("minutes", type=click.FloatRange(min=0), required=False)
@click.option("--watch", "-w", is_flag=True, default=False, help="Only print new devices.")
@click.option("--debug", "-d", is_flag=True, default=False, help="Print every detection.")
@click.option(
    "--output", "-o",
    type=click.Path(),
    default=None,
    help="Write the JSON report to this path.",
)
@click.pass_context
def scan(
    ctx: click.Context,
    minutes: Optional[float],
    watch: bool,
    debug: bool,
    output: Optional[str],
) -> None:
    """Run a live BLE scan."""
    console = ctx.obj["console"]
    config = ctx.obj["config"]
    try:
        engine = _make_engine(ctx)
        _run_async(
            engine.scan(
                duration_minutes=minutes,
                watch=watch or config.sonar.watch,
                debug=debug,
                output_path=output,
            )
        )
    except SonarError as exc:
        _fail(console, exc)


# ---------------------------------------------------------------------------
# Replay Command
# ---------------------------------------------------------------------------


@cli.command(
    name="replay",
    help=(
        "Replay a JSON-lines advertisement capture.\n\n"
        "Each line holds one advertisement: id, rssi and optionally "
        "address, name, manufacturer_data (hex) and service_uuids."
    ),
)
@click.argument("capture", type=click.Path(exists=True, dir_okay=False))
@click.option("--watch", "-w", is_flag=True, default=False, help="Only print new devices.")
@click.option("--debug", "-d", is_flag=True, default=False, help="Print every detection.")
@click.option(
    "--output", "-o",
    type=click.Path(),
    default=None,
    help="Write the JSON report to this path.",
)
@click.pass_context
def replay(
    ctx: click.Context,
    capture: str,
    watch: bool,
    debug: bool,
    output: Optional[str],
) -> None:
    """Replay a capture file through a scan session."""
    console = ctx.obj["console"]
    try:
        engine = _make_engine(ctx)
        engine.replay(capture, watch=watch, debug=debug, output_path=output)
    except SonarError as exc:
        _fail(console, exc)


# ---------------------------------------------------------------------------
# Vendor Table Commands
# ---------------------------------------------------------------------------


@cli.group(name="vendors", help="Manage the vendor-name table.")
def vendors() -> None:
    """Vendor table maintenance."""


@vendors.command(
    name="merge",
    help=(
        "Merge a Bluetooth SIG company-id export into the vendor table.\n\n"
        "SOURCE is a JSON array of {\"code\": int, \"name\": str} entries "
        "(the Nordic bluetooth-numbers-database format). Existing "
        "entries in the target are kept."
    ),
)
@click.argument("source", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--target", "-t",
    type=click.Path(dir_okay=False),
    default=None,
    help="Vendor table to update (defaults to the configured or packaged table).",
)
@click.pass_context
def vendors_merge(ctx: click.Context, source: str, target: Optional[str]) -> None:
    """Merge a local company-id export."""
    from sonar.core.catalog import DEFAULT_MANUFACTURERS_PATH, update_vendor_file

    console = ctx.obj["console"]
    config = ctx.obj["config"]
    target_path = target or config.sonar.manufacturers_path or DEFAULT_MANUFACTURERS_PATH
    try:
        total, added = update_vendor_file(source, target_path)
    except SonarError as exc:
        _fail(console, exc)
        return
    console.success(f"Vendor table updated: {total} vendors ({added} new) -> {target_path}")


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
