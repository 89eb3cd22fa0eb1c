from __future__ import annotations

import argparse
import logging
import sys

from visit_notifications.config import AppConfig, ConfigError, load_config
from visit_notifications.dispatcher import TickStats
from visit_notifications.logging_config import setup_logging
from visit_notifications.migrations import check_versions
from visit_notifications.models import PageKind, RequestContext, Schedule, Target
from visit_notifications.notifiers import NotifierRegistrationError
from visit_notifications.scheduler import clear_schedule
from visit_notifications.service import build_service, build_store
from visit_notifications.settings import BulkAction, SettingsStore
from visit_notifications.store import StorageError

logger = logging.getLogger(__name__)

_ENABLE_ACTIONS = {
    Schedule.ON_VISIT: BulkAction.ENABLE_ON_VISIT,
    Schedule.HOURLY: BulkAction.ENABLE_HOURLY,
    Schedule.DAILY: BulkAction.ENABLE_DAILY,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="visit-notifications",
        description="Record page and term visits and send visit notifications.",
    )
    parser.add_argument(
        "-c",
        "--config",
        default="config.yaml",
        help="Path to config YAML file (default: config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        help="Override config log level (e.g. INFO, DEBUG)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("init-db", help="Initialize storage and record the data version")

    visit = subparsers.add_parser("visit", help="Process one page view")
    visit.add_argument("--target", help="Visited object as kind:id[=title], e.g. post:12=About")
    visit.add_argument(
        "--page-kind",
        choices=[kind.value for kind in PageKind],
        default=PageKind.SINGULAR.value,
    )
    visit.add_argument("--user-agent")
    visit.add_argument("--ip", dest="raw_ip")
    visit.add_argument("--referer")
    visit.add_argument("--logged-in", action="store_true")
    visit.add_argument("--admin", action="store_true", help="Request comes from the admin area")

    tick = subparsers.add_parser("tick", help="Send the hourly or daily visitor reports now")
    tick.add_argument("frequency", choices=[Schedule.HOURLY.value, Schedule.DAILY.value])

    subparsers.add_parser("cron", help="Send any hourly/daily reports that are due")

    enable = subparsers.add_parser("enable", help="Enable notifications for targets")
    enable.add_argument("targets", nargs="+", help="kind:id[=title] references")
    enable.add_argument(
        "--schedule",
        choices=[schedule.value for schedule in Schedule],
        default=Schedule.ON_VISIT.value,
    )

    disable = subparsers.add_parser("disable", help="Disable notifications for targets")
    disable.add_argument("targets", nargs="+", help="kind:id references")

    status = subparsers.add_parser("status", help="Show notification status for targets")
    status.add_argument("targets", nargs="+", help="kind:id references")

    subparsers.add_parser("deactivate", help="Clear the scheduled report bookkeeping")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        app_config = load_config(args.config)
    except ConfigError as exc:
        print(f"Config error: {exc}", file=sys.stderr)
        return 2

    log_level = args.log_level or app_config.log_level
    setup_logging(log_level)

    try:
        targets = [_parse_target(value) for value in getattr(args, "targets", None) or []]
        visit_target = _parse_target(args.target) if getattr(args, "target", None) else None
    except ValueError as exc:
        parser.error(str(exc))

    try:
        if args.command in {"visit", "tick", "cron"}:
            return _run_service_command(args, app_config, visit_target)
        return _run_store_command(args, app_config, targets)
    except StorageError as exc:
        logger.error("Storage failure: %s", exc)
        return 1


def _run_store_command(args: argparse.Namespace, app_config: AppConfig, targets: list[Target]) -> int:
    store = build_store(app_config)
    store.init_db()
    settings = SettingsStore(app_config.settings, store)

    if args.command == "init-db":
        check_versions(store)
        logger.info("Initialized storage at %s", app_config.storage.path)
        return 0

    if args.command == "enable":
        action = _ENABLE_ACTIONS[Schedule(args.schedule)]
        count = settings.apply_bulk_action(targets, action)
        print(f"Enabled visit notifications for {count} targets")
        return 0

    if args.command == "disable":
        count = settings.apply_bulk_action(targets, BulkAction.DISABLE)
        print(f"Disabled visit notifications for {count} targets")
        return 0

    if args.command == "status":
        for target in targets:
            print(f"{target.key}\t{settings.describe(target)}")
        return 0

    if args.command == "deactivate":
        clear_schedule(store)
        return 0

    raise ValueError(f"Unhandled command: {args.command}")


def _run_service_command(
    args: argparse.Namespace,
    app_config: AppConfig,
    visit_target: Target | None,
) -> int:
    try:
        service = build_service(app_config)
    except NotifierRegistrationError as exc:
        logger.error("%s", exc)
        return 2

    if args.command == "visit":
        outcome = service.process_visit(
            RequestContext(
                target=visit_target,
                page_kind=PageKind(args.page_kind),
                is_admin_context=args.admin,
                user_agent=args.user_agent,
                is_logged_in=args.logged_in,
                raw_ip=args.raw_ip,
                referer=args.referer,
            )
        )
        if outcome.allowed and outcome.delivery is not None:
            print(f"Visit recorded ({outcome.delivery.value})")
        else:
            print(f"Visit ignored: {outcome.decision.reason_text()}")
        return 0

    if args.command == "tick":
        stats = service.run_tick(Schedule(args.frequency))
        _log_tick(stats)
        return 0 if stats.ok else 1

    results = service.run_pending_ticks()
    for stats in results:
        _log_tick(stats)
    return 0 if all(stats.ok for stats in results) else 1


def _parse_target(value: str) -> Target:
    reference, _, title = value.partition("=")
    return Target.parse(reference, title=title.strip())


def _log_tick(stats: TickStats) -> None:
    logger.info(
        "Run complete | frequency=%s checked=%d notified=%d visits=%d skipped_empty=%d errors=%d",
        stats.frequency.value,
        stats.checked,
        stats.notified,
        stats.visits_reported,
        stats.skipped_empty,
        len(stats.errors),
    )


if __name__ == "__main__":
    raise SystemExit(main())
