#!/usr/bin/env python3
"""
Command-line front end for the budget cycle service.

Configuration comes from get_active_config(): packaged defaults, then
--config (or BUDGET_CYCLE_CONFIG), then BUDGET_CYCLE_DATABASE_URL /
BUDGET_CYCLE_TIMEZONE.

Usage:
    python3 scripts/budget_cli.py [--config PATH] <command> [options]

Examples:
    # Create the schema
    python3 scripts/budget_cli.py init-db

    # Two-week budget starting Mondays
    python3 scripts/budget_cli.py create-budget --name Groceries --amount 400 \\
        --start-weekday 1 --duration 14

    # Retroactive budget covering an earlier date
    python3 scripts/budget_cli.py create-budget --name Groceries --amount 400 \\
        --start-weekday 1 --duration 14 --retroactive --target-date 2024-03-06

    # One sweep, or a single step of it
    python3 scripts/budget_cli.py sweep
    python3 scripts/budget_cli.py sweep --step reconcile

    # Run the periodic sweep until Ctrl-C
    python3 scripts/budget_cli.py serve
"""

from __future__ import annotations

import argparse
import signal
import sys
import threading
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from uuid import UUID

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

_STEPS = ("reclassify", "continue", "reconcile")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Manage recurring budgets and run the period sweep.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", type=Path, default=None, help="YAML configuration file.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create missing tables.")

    create = sub.add_parser("create-budget", help="Create a budget.")
    create.add_argument("--name", required=True)
    create.add_argument("--amount", required=True, type=Decimal)
    create.add_argument("--start-weekday", required=True, type=int, help="0=Sunday .. 6=Saturday.")
    create.add_argument("--duration", required=True, type=int, help="Days per period (7-28).")
    create.add_argument("--vacation", action="store_true", help="Start in vacation mode.")
    create.add_argument("--retroactive", action="store_true")
    create.add_argument(
        "--target-date",
        type=lambda s: date.fromisoformat(s),
        default=None,
        help="Local date (YYYY-MM-DD) the retroactive period must contain.",
    )

    for name, text in (
        ("activate", "Make a budget the active budget."),
        ("schedule", "Schedule a budget as the upcoming budget."),
        ("vacation", "Toggle vacation mode."),
    ):
        p = sub.add_parser(name, help=text)
        p.add_argument("budget_id", type=UUID)

    periods = sub.add_parser("periods", help="List periods (newest first).")
    periods.add_argument("--budget-id", type=UUID, default=None)

    sub.add_parser("current", help="Show the current period and its progress.")

    expense = sub.add_parser("add-expense", help="Record an expense.")
    expense.add_argument("--amount", required=True, type=Decimal)
    expense.add_argument(
        "--at",
        type=lambda s: datetime.fromisoformat(s),
        default=None,
        help="Aware ISO timestamp (default: now).",
    )
    expense.add_argument("--description", default=None)
    expense.add_argument("--category", default=None)

    tz = sub.add_parser("set-timezone", help="Set the IANA timezone used for dates.")
    tz.add_argument("timezone")

    sweep = sub.add_parser("sweep", help="Run one sweep now.")
    sweep.add_argument("--step", choices=_STEPS, default=None, help="Run a single step only.")

    sub.add_parser("serve", help="Run the periodic sweep until interrupted.")
    return parser.parse_args(argv)


def _print_report(report) -> None:
    print(f"Sweep {report.sweep_id} ({report.timezone_name})")
    for outcome in report.outcomes:
        state = "ok" if outcome.succeeded else f"FAILED [{outcome.error_code}]"
        counts = ", ".join(f"{k}={v}" for k, v in outcome.counts.items())
        print(f"  {outcome.step.value:<20} {state:<10} {counts}")


def _serve(orchestrator) -> int:
    scheduler = orchestrator.create_scheduler()
    stop = threading.Event()

    def _handle(signum, frame):
        stop.set()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)
    scheduler.start()
    print(f"Sweeping every {orchestrator.config.sweep_interval_seconds}s. Ctrl-C to stop.")
    stop.wait()
    orchestrator.shutdown()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    # Lazy imports so we fail fast on args first
    from budget_batch.orchestrator import BudgetCycleOrchestrator
    from budget_config import get_active_config
    from budget_kernel.domain.calendar import weekday_name
    from budget_kernel.exceptions import BudgetCycleError
    from budget_services import BudgetCycleFacade

    try:
        config = get_active_config(args.config)
    except (OSError, ValueError) as e:
        print(f"ERROR: Failed to load config: {e}", file=sys.stderr)
        return 1

    orchestrator = BudgetCycleOrchestrator.from_config(
        config, create_schema=args.command == "init-db"
    )
    if args.command == "init-db":
        print("Schema ready.")
        return 0
    if args.command == "serve":
        return _serve(orchestrator)

    facade = BudgetCycleFacade(
        orchestrator.session_factory,
        clock=orchestrator.clock,
        default_timezone=config.default_timezone,
        continuation=orchestrator.continuation_engine,
    )

    try:
        if args.command == "create-budget":
            created = facade.create_budget(
                args.name,
                args.amount,
                args.start_weekday,
                args.duration,
                vacation_mode=args.vacation,
                retroactive=args.retroactive,
                target_date=args.target_date,
            )
            b = created.budget
            print(f"Budget {b.id} {b.name!r} [{b.role.value}] "
                  f"{b.amount} every {b.duration_days}d from {weekday_name(b.start_weekday)}")
            if created.initial_period:
                p = created.initial_period
                print(f"  period {p.start_date} .. {p.end_date} [{p.status.value}]")
            if created.backfilled_expenses:
                print(f"  attached {created.backfilled_expenses} earlier expense(s)")
        elif args.command == "activate":
            print(f"Active: {facade.activate_budget(args.budget_id).name}")
        elif args.command == "schedule":
            print(f"Upcoming: {facade.schedule_upcoming_budget(args.budget_id).name}")
        elif args.command == "vacation":
            b = facade.toggle_vacation_mode(args.budget_id)
            print(f"{b.name}: vacation mode {'on' if b.vacation_mode else 'off'}")
        elif args.command == "periods":
            for p in facade.list_periods(args.budget_id):
                print(f"{p.start_date} .. {p.end_date}  {p.status.value:<9} "
                      f"{p.actual_spent}/{p.target_amount}  {p.budget_name}")
        elif args.command == "current":
            progress = facade.get_current_period_with_progress()
            if progress is None:
                print("No current period.")
            else:
                p = progress.period
                print(f"{p.budget_name}: {p.start_date} .. {p.end_date}")
                print(f"  spent {progress.spent} of {p.target_amount} ({progress.percent_spent}%), "
                      f"{progress.performance}")
                print(f"  day {progress.days_elapsed}/{progress.days_total}, "
                      f"{progress.days_remaining} remaining, projected {progress.projected_total}")
        elif args.command == "add-expense":
            e = facade.record_expense(
                args.amount, args.at, description=args.description, category=args.category
            )
            where = e.budget_period_id or "unattributed"
            print(f"Expense {e.id}: {e.amount} -> {where}")
        elif args.command == "set-timezone":
            print(f"Timezone: {facade.set_timezone(args.timezone)}")
        elif args.command == "sweep":
            engine = orchestrator.continuation_engine
            report = {
                None: engine.run_sweep,
                "reclassify": engine.force_reclassify,
                "continue": engine.force_auto_continue,
                "reconcile": engine.force_orphan_reconciliation,
            }[args.step]()
            if report is None:
                print("Sweep skipped: another sweep is in progress", file=sys.stderr)
                return 2
            _print_report(report)
            return 0 if report.succeeded else 2
    except BudgetCycleError as e:
        print(f"ERROR [{e.code}]: {e}", file=sys.stderr)
        return 1
    finally:
        orchestrator.shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())
