"""WiFi orchestration engine command line.

Usage:
    python -m wifiorch [options] <command> [args]

Options:
    --config PATH     Path to config file (default: ~/.wifiorch/config.yaml)
    --debug           Enable debug logging
    --json            Print results as JSON
    --events          Print engine events to stderr

Commands:
    scan                         Scan and list networks in range
    networks                     List networks in range
    saved                        List saved networks
    status                       Show connection and scan status
    connect TARGET [--password PW] [--no-save]
                                 Connect to a network by BSSID or SSID
    disconnect                   Disconnect the WiFi interface
    forget TARGET                Forget a saved network
    settings [KEY=VALUE ...]     Show or change runtime settings
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import yaml

from . import __version__
from .core.config import ConfigManager
from .core.errors import WiFiError
from .core.events import Event
from .core.logging import apply_log_settings, get_logger, setup_logging
from .engine import build_network_manager
from .network.manager import NetworkManager
from .network.models import WiFiNetwork, is_mac, normalize_bssid

logger = get_logger(__name__)

DEFAULT_CONFIG = Path("~/.wifiorch/config.yaml")


def _print(data: Any, as_json: bool) -> None:
    if as_json:
        print(json.dumps(data, indent=2, default=str))
    elif isinstance(data, dict):
        for key, value in data.items():
            print(f"{key}: {value}")
    else:
        print(data)


def _print_networks(networks: list[WiFiNetwork], as_json: bool) -> None:
    if as_json:
        _print([n.to_dict() for n in networks], True)
        return
    if not networks:
        print("No networks found")
        return
    print(f"{'SSID':<32} {'BSSID':<17} {'SIGNAL':>6}  {'SECURITY':<16} SAVED")
    for n in networks:
        saved = "yes" if n.saved else ""
        print(f"{n.ssid:<32} {n.bssid:<17} {n.signal_strength:>5}%  {n.security.value:<16} {saved}")


def _print_event(event: Event) -> None:
    print(json.dumps(event.to_dict(), default=str), file=sys.stderr)


def _parse_assignments(pairs: list[str]) -> dict[str, Any]:
    changes: dict[str, Any] = {}
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Expected KEY=VALUE, got {pair!r}")
        changes[key] = yaml.safe_load(raw) if raw else None
    return changes


async def _find_network(manager: NetworkManager, target: str) -> WiFiNetwork | None:
    """Resolve a BSSID or SSID, scanning once if it is not known yet."""

    def lookup() -> WiFiNetwork | None:
        if is_mac(normalize_bssid(target)):
            return manager.get_network_by_bssid(target)
        return manager.get_network_by_ssid(target)

    await manager.get_available_networks()
    network = lookup()
    if network is None:
        await manager.start_scan()
        await manager.wait_for_scan()
        network = lookup()
    return network


async def _ensure_scanned(manager: NetworkManager) -> list[WiFiNetwork]:
    networks = await manager.get_available_networks()
    if not networks:
        await manager.start_scan()
        await manager.wait_for_scan()
        networks = await manager.get_available_networks()
    return networks


async def run_command(manager: NetworkManager, args: argparse.Namespace) -> int:
    """Execute one CLI command against ``manager``.

    Returns:
        Process exit code
    """
    command = args.command

    if command == "scan":
        await manager.start_scan()
        state = await manager.wait_for_scan()
        if state.error:
            print(f"Scan failed: {state.error}", file=sys.stderr)
            return 1
        _print_networks(await manager.get_available_networks(), args.json)

    elif command == "networks":
        _print_networks(await _ensure_scanned(manager), args.json)

    elif command == "saved":
        _print_networks(await manager.get_saved_networks(), args.json)

    elif command == "status":
        _print(
            {
                **manager.service.get_platform_info(),
                "available": await manager.service.is_available(),
                "simulator": manager.simulator_mode,
                "connection": manager.get_connection_status(),
                "scan": manager.get_scan_status(),
                "internet": await manager.check_internet(),
            },
            args.json,
        )

    elif command == "connect":
        network = await _find_network(manager, args.target)
        if network is None:
            print(f"Network not found: {args.target}", file=sys.stderr)
            return 1
        try:
            connected = await manager.connect_to_network(
                network, password=args.password, save_network=not args.no_save
            )
        except WiFiError as e:
            print(f"Connection failed: {e.message} [{e.code}]", file=sys.stderr)
            if not manager.get_connection_status()["canRetry"]:
                return 1
            print("Retrying...", file=sys.stderr)
            await manager.wait_for_retry()
            connected = manager.get_current_network()
            if connected is None:
                return 1
        _print(manager.get_connection_status() if args.json else f"Connected to {connected.ssid}", args.json)

    elif command == "disconnect":
        # A fresh process has no session, so fall back to the platform call
        if not await manager.disconnect_from_network():
            if not await manager.service.disconnect_from_network():
                print("Disconnect failed", file=sys.stderr)
                return 1
        print("Disconnected")

    elif command == "forget":
        network = await _find_network(manager, args.target)
        if network is None:
            print(f"Network not found: {args.target}", file=sys.stderr)
            return 1
        removed = await manager.forget_network(network)
        print(f"Forgot {network.ssid}" if removed else f"{network.ssid} was not saved")

    elif command == "settings":
        if args.assignments:
            manager.update_settings(**_parse_assignments(args.assignments))
        _print(manager.get_settings().to_dict(), args.json)

    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wifiorch",
        description="WiFi orchestration engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG, help="Path to config file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--json", action="store_true", help="Print results as JSON")
    parser.add_argument("--events", action="store_true", help="Print engine events to stderr")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("scan", help="Scan and list networks in range")
    sub.add_parser("networks", help="List networks in range")
    sub.add_parser("saved", help="List saved networks")
    sub.add_parser("status", help="Show connection and scan status")

    connect = sub.add_parser("connect", help="Connect to a network")
    connect.add_argument("target", help="BSSID or SSID")
    connect.add_argument("--password", help="Network password")
    connect.add_argument("--no-save", action="store_true", help="Do not save the network")

    sub.add_parser("disconnect", help="Disconnect the WiFi interface")

    forget = sub.add_parser("forget", help="Forget a saved network")
    forget.add_argument("target", help="BSSID or SSID")

    settings = sub.add_parser("settings", help="Show or change runtime settings")
    settings.add_argument("assignments", nargs="*", metavar="KEY=VALUE")

    return parser


async def _run(args: argparse.Namespace) -> int:
    config = ConfigManager(args.config).get()
    if not args.debug:
        setup_logging(
            level=config.logging.level,
            log_format=config.logging.format,
            log_file=config.logging.file,
            max_size_mb=config.logging.max_size_mb,
            backup_count=config.logging.backup_count,
        )

    manager = build_network_manager(config)
    if not args.debug:
        settings = manager.get_settings()
        apply_log_settings(settings.enable_logging, settings.log_level)
    if args.events:
        manager.events.subscribe_all(_print_event)

    try:
        return await run_command(manager, args)
    finally:
        await manager.shutdown()


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    setup_logging(level="DEBUG" if args.debug else "WARNING")
    logger.debug("WiFi orchestration engine v%s", __version__)

    try:
        return asyncio.run(_run(args))
    except (WiFiError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
