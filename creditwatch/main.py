from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import Iterable, List, Optional

from .alerts.errors import AlertNotFoundError, CreditWatchError
from .alerts.models import Alert, AlertFilter, AlertType
from .config import app_config
from .environment import Environment, initialize_environment
from .logging_utils import configure_logging
from .scheduler import ScanScheduler


PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "config.yaml"


def resolve_config_path(cli_value: Optional[str]) -> Path:
    if cli_value:
        return Path(cli_value)
    override = os.getenv("CREDITWATCH_CONFIG")
    return Path(override) if override else DEFAULT_CONFIG_PATH


def format_alert_line(alert: Alert) -> str:
    entity = alert.entity_name or alert.entity_id or "-"
    return (
        f"{alert.id}  {alert.created_at:%Y-%m-%d %H:%M:%S}  "
        f"{alert.severity.value:<8} {alert.status.value:<9} {alert.type.value:<13} "
        f"{entity}: {alert.title}"
    )


def _print_alerts(alerts: Iterable[Alert]) -> None:
    for alert in alerts:
        print(format_alert_line(alert))


def run_watch(env: Environment, *, interval: float, duration: Optional[float]) -> int:
    async def _main() -> int:
        scheduler = ScanScheduler(env.monitor, interval_seconds=interval, on_scan=_print_alerts)
        scheduler.start()
        try:
            if duration is None:
                await scheduler.wait()
            else:
                await asyncio.sleep(duration)
        finally:
            await scheduler.stop()
        return scheduler.scans_completed

    try:
        scans = asyncio.run(_main())
    except KeyboardInterrupt:
        print("Interrupted; stopping scan loop.")
        return 0
    print(f"Completed {scans} scans.")
    return 0


def run_command(args: argparse.Namespace, env: Environment) -> int:
    store = env.store
    command = args.command

    if command == "scan":
        created = env.monitor.scan_once()
        _print_alerts(created)
        print(f"{len(created)} alerts created; {store.unread_count()} unread "
              f"({store.critical_unread_count()} critical).")
        return 0

    if command == "watch":
        interval = args.interval if args.interval is not None else env.config.creditwatch.monitor.interval_seconds
        return run_watch(env, interval=interval, duration=args.duration)

    if command == "list":
        alert_filter = AlertFilter(
            types=frozenset(args.type or ()),
            severities=frozenset(args.severity or ()),
            statuses=frozenset(args.status or ()),
            entity_id=args.entity,
        )
        _print_alerts(store.query(alert_filter))
        return 0

    if command == "read":
        if args.alert_id == "all":
            print(f"Marked {store.mark_all_as_read()} alerts as read.")
        else:
            print(format_alert_line(store.mark_as_read(args.alert_id)))
        return 0

    if command == "dismiss":
        print(format_alert_line(store.dismiss(args.alert_id)))
        return 0

    if command == "resolve":
        print(format_alert_line(store.resolve(args.alert_id, args.resolution)))
        return 0

    if command == "delete":
        store.delete(args.alert_id)
        print(f"Deleted {args.alert_id}.")
        return 0

    if command == "clear":
        store.clear_all()
        print("All alerts cleared.")
        return 0

    if command in ("mute", "unmute"):
        toggle = store.mute_alert_type if command == "mute" else store.unmute_alert_type
        preferences = toggle(AlertType(args.alert_type))
        muted = ", ".join(sorted(t.value for t in preferences.muted_types)) or "none"
        print(f"Muted alert types: {muted}")
        return 0

    raise ValueError(f"Unknown command '{command}'")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Portfolio alert scanner and alert store controller.")
    parser.add_argument("--config", default=None, help="Path to the YAML configuration file.")
    parser.add_argument("--verbose", action="store_true", help="Log at debug level.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("scan", help="Run one portfolio scan and ingest the alerts it raises.")

    watch = subparsers.add_parser("watch", help="Scan periodically until interrupted.")
    watch.add_argument("--interval", type=float, default=None, help="Seconds between scans.")
    watch.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Optional maximum runtime in seconds before exiting the loop.",
    )

    list_parser = subparsers.add_parser("list", help="List alerts, newest first.")
    list_parser.add_argument("--type", action="append", choices=[t.value for t in AlertType])
    list_parser.add_argument("--severity", action="append", choices=["critical", "high", "medium", "low"])
    list_parser.add_argument("--status", action="append", choices=["unread", "read", "dismissed", "resolved"])
    list_parser.add_argument("--entity", default=None, help="Only alerts for this entity id.")

    read = subparsers.add_parser("read", help="Mark an alert (or 'all') as read.")
    read.add_argument("alert_id")
    dismiss = subparsers.add_parser("dismiss", help="Dismiss an alert.")
    dismiss.add_argument("alert_id")
    resolve = subparsers.add_parser("resolve", help="Resolve an alert.")
    resolve.add_argument("alert_id")
    resolve.add_argument("--resolution", default=None, help="Resolution note stored with the alert.")
    delete = subparsers.add_parser("delete", help="Permanently delete an alert.")
    delete.add_argument("alert_id")
    subparsers.add_parser("clear", help="Delete every alert.")

    for name in ("mute", "unmute"):
        toggle = subparsers.add_parser(name, help=f"{name.capitalize()} notifications for an alert type.")
        toggle.add_argument("alert_type", choices=[t.value for t in AlertType])

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    config_path = resolve_config_path(args.config)
    configure_logging(config_path.resolve().parent, verbose=args.verbose)

    try:
        env = initialize_environment(app_config(config_path))
    except (OSError, ValueError, CreditWatchError) as exc:
        print(f"Failed to start: {exc}", file=sys.stderr)
        return 2

    try:
        return run_command(args, env)
    except AlertNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    finally:
        env.close()


if __name__ == "__main__":
    sys.exit(main())
