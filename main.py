"""Command-line entry point for the VPN status engine."""

from __future__ import annotations

import argparse
import asyncio
import sys

from config import ConfigController
from core.logging import console, enable_file_logging, logger, set_level
from core.status_view import StatusView


OPERATIONS = {
    "connect": "connect",
    "disconnect": "disconnect",
    "toggle": "toggle_connection",
    "reconnect": "reconnect",
    "fastest": "find_fastest_server",
    "killswitch": "toggle_killswitch",
}


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Raw command-line arguments.

    Returns:
        Parsed arguments namespace.
    """

    parser = argparse.ArgumentParser(
        description="Show VPN status and run connection lifecycle operations."
    )
    parser.add_argument(
        "--diagnostics",
        action="store_true",
        help="Run diagnostics probes and exit.",
    )
    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("status", help="Print one status snapshot.")
    subparsers.add_parser("watch", help="Follow status changes until interrupted.")
    subparsers.add_parser("regions", help="List regions from the server list.")
    for name in OPERATIONS:
        subparsers.add_parser(name, help=f"Run the {name} operation.")
    switch = subparsers.add_parser("switch-region", help="Switch to another region.")
    switch.add_argument("region_id", help="Region id from the server list, e.g. ca_toronto.")
    return parser.parse_args(argv)


def _print_label(name: str, text: str) -> None:
    console.print(f"[bold]{name:>10}[/bold]  {text}")


def _run_diagnostics(config: dict) -> int:
    from pathlib import Path

    from config.diagnostics import probe as config_probe
    from diagnostics.models import DiagnosticStatus, overall_status
    from diagnostics.runner import format_results, run_diagnostics
    from services.diagnostics import probe as services_probe
    from storage.diagnostics import probe as storage_probe

    state_dir = Path((config.get("paths") or {}).get("state_dir", "/var/lib/pia"))
    results = run_diagnostics(
        [
            config_probe,
            lambda: services_probe(state_dir=state_dir),
            storage_probe,
        ]
    )
    print(format_results(results))
    return 1 if overall_status(results) is DiagnosticStatus.FAIL else 0


async def _run_command(args: argparse.Namespace, config: dict) -> int:
    from core.app import VpnStatusApp
    from storage.controller import StorageController

    marker_path = StorageController.get_instance().get_carry_over_marker_path()
    app = VpnStatusApp(config, marker_path)
    view = StatusView(_print_label)

    if args.command == "watch":
        app.aggregator.register_listener(view)
        await app.run_forever()
        return 0

    await app.catalog.load()

    if args.command == "regions":
        catalog = app.catalog.catalog
        if catalog is None:
            logger.error("Server list unavailable")
            return 1
        for region in catalog.sorted_by_name():
            console.print(f"{region.id:<24} {region.name}")
        return 0

    if args.command == "status":
        view.render(await app.aggregator.aggregate())
        return 0

    if args.command == "switch-region":
        result = await app.orchestrator.switch_region(args.region_id)
    else:
        result = await getattr(app.orchestrator, OPERATIONS[args.command])()
    if app.aggregator.latest is not None:
        view.render(app.aggregator.latest)
    return 0 if result.ok else 1


def main(argv: list[str] | None = None) -> int:
    """Application entry point.

    Args:
        argv: Optional list of command-line arguments.

    Returns:
        Process exit code.
    """

    if argv is None:
        argv = sys.argv[1:]

    config = ConfigController.get_instance().get_config()
    set_level(config.get("logging_level", "INFO"))
    args = parse_args(argv)

    if args.diagnostics:
        return _run_diagnostics(config)

    if config.get("file_logging_enabled", False):
        from storage.controller import StorageController

        log_file_path = StorageController.get_instance().get_log_file_path()
        enable_file_logging(
            log_file_path,
            max_bytes=config["log_max_bytes"],
            backups=config["log_backups"],
        )
        logger.info("Writing logs to %s", log_file_path)

    command = args.command or "status"
    args.command = command
    try:
        return asyncio.run(_run_command(args, config))
    except KeyboardInterrupt:
        logger.info("Stopped by user")
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
