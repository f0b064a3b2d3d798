"""
Command line entry point.

    backup-status run              # one pass: fetch, merge, save, report
    backup-status serve            # run passes on the cron schedule
    backup-status status           # classify the saved ledger, no fetch or mail
    backup-status ignore "Laptop"  # exclude a plan from alerting
    backup-status unignore "Laptop"
"""

import argparse
import json
import sys

from backup_status.config import settings
from backup_status.core.errors import FatalConfigError
from backup_status.core.health import HealthEvaluator
from backup_status.core.logging import configure_logging, get_logger
from backup_status.core.store import LedgerStore
from backup_status.services.report import STATUS_MARKERS, format_elapsed

log = get_logger(__name__)


def _store() -> LedgerStore:
    return LedgerStore(settings.state_path, max_tracked_message_ids=settings.max_tracked_message_ids)


def cmd_run(args: argparse.Namespace) -> int:
    from backup_status.processors.status import StatusProcessor

    try:
        stats = StatusProcessor().process()
    except FatalConfigError as e:
        log.error("status_pass_aborted", error=str(e))
        return 2

    print(json.dumps(stats, indent=2))
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    from backup_status.scheduler import start_scheduler, stop_scheduler

    try:
        start_scheduler(cron_schedule=args.cron, blocking=True, run_on_start=not args.no_initial_run)
    except (KeyboardInterrupt, SystemExit):
        stop_scheduler()
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    state = _store().load()
    summary = HealthEvaluator().evaluate(state)

    print(f"{STATUS_MARKERS[summary.status]} overall: {summary.status.value}")
    for plan in summary.plans:
        print(
            f"{STATUS_MARKERS[plan.status]} {plan.plan_name}: {plan.status.value}, "
            f"last backup {format_elapsed(plan.elapsed)}, "
            f"recent errors {plan.most_recent_errors}, "
            f"{plan.cumulative_errors} errors / {plan.total_backups} backups"
        )
    return 1 if summary.errors else 0


def cmd_ignore(args: argparse.Namespace) -> int:
    from backup_status.processors.status import _pass_lock

    store = _store()
    # Waits for an in-process pass; separate processes are not coordinated
    with _pass_lock:
        state = store.load()
        if args.command == "ignore":
            if args.plan not in state.ignore_list:
                state.ignore_list.append(args.plan)
        elif args.plan in state.ignore_list:
            state.ignore_list.remove(args.plan)
        store.save(state)

    log.info("ignore_list_updated", action=args.command, plan=args.plan, ignore_list=state.ignore_list)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="backup-status",
        description="Aggregate Arq backup notification emails into a status report",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: LOG_LEVEL setting)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run a single status pass")
    run_parser.set_defaults(func=cmd_run)

    serve_parser = subparsers.add_parser("serve", help="Run status passes on a cron schedule")
    serve_parser.add_argument("--cron", default=None, help="Crontab expression (default: CRON_SCHEDULE setting)")
    serve_parser.add_argument(
        "--no-initial-run",
        action="store_true",
        help="Wait for the first scheduled tick instead of running immediately",
    )
    serve_parser.set_defaults(func=cmd_serve)

    status_parser = subparsers.add_parser("status", help="Classify the saved ledger without fetching")
    status_parser.set_defaults(func=cmd_status)

    for name, help_text in (
        ("ignore", "Exclude a plan from health alerting"),
        ("unignore", "Include a plan in health alerting again"),
    ):
        ignore_parser = subparsers.add_parser(name, help=help_text)
        ignore_parser.add_argument("plan", help="Exact backup plan name")
        ignore_parser.set_defaults(func=cmd_ignore)

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(log_level=args.log_level or settings.log_level, json_output=settings.log_json)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
