"""fundledger - Monthly Fund Accounting Entry Point."""

import argparse
import asyncio
import json
import sys
from datetime import datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path

from fundledger.accounting.period import Period
from fundledger.app import Application
from fundledger.config import Settings, load_settings
from fundledger.errors import AccountingError
from fundledger.money import as_utc


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="fundledger - monthly fund accounting and client reporting"
    )

    parser.add_argument(
        "--db",
        type=str,
        default=None,
        help="Database path (default: from config)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Log level (default: from config)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("monthly-report", help="Close a period and send statements")
    p.add_argument("--period", type=str, default=None, help="YYYY-MM (default: previous month)")
    p.add_argument("--force", action="store_true", help="Recompute and resend even if already sent")

    sub.add_parser("daily-snapshot", help="Record today's balance for every client")

    p = sub.add_parser("record-capital", help="Record a deposit or withdrawal")
    p.add_argument("--email", required=True)
    p.add_argument("--kind", required=True, choices=["deposit", "withdrawal"])
    p.add_argument("--amount", required=True, type=str)
    p.add_argument("--occurred-at", type=str, default=None, help="ISO timestamp (default: now)")
    p.add_argument("--notes", type=str, default=None)

    p = sub.add_parser("capital-events", help="List a client's capital events")
    p.add_argument("--email", required=True)
    p.add_argument("--limit", type=int, default=50)

    p = sub.add_parser("record-fee", help="Record a performance fee payment")
    p.add_argument("--email", required=True)
    p.add_argument("--period", required=True, type=str, help="YYYY-MM")
    p.add_argument("--amount", required=True, type=str)
    p.add_argument("--method", type=str, default=None)
    p.add_argument("--ref", type=str, default=None)

    p = sub.add_parser("fee-history", help="Show a client's fee history")
    p.add_argument("--email", required=True)

    p = sub.add_parser("reconciliation", help="Check month-to-month continuity")
    p.add_argument("--email", type=str, default=None, help="One client (default: whole fund)")

    p = sub.add_parser("mtd", help="Month-to-date view")
    p.add_argument("--email", type=str, default=None, help="One client (default: whole fund)")

    p = sub.add_parser("overview", help="Fund aggregates for a closed period")
    p.add_argument("--period", required=True, type=str, help="YYYY-MM")

    p = sub.add_parser("rebuild-carried-loss", help="Rebuild cached carried loss from snapshots")
    p.add_argument("--email", required=True)

    return parser.parse_args(argv)


def apply_args_to_settings(args: argparse.Namespace, settings: Settings) -> Settings:
    """Apply command line arguments to settings."""
    if args.db:
        settings.database.path = Path(args.db)

    if args.log_level:
        settings.logging.level = args.log_level

    return settings


def _json_default(value: object) -> object:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Not JSON serializable: {type(value).__name__}")


def _print(payload: dict) -> None:
    print(json.dumps(payload, indent=2, default=_json_default))


async def run_command(app: Application, args: argparse.Namespace) -> int:
    """Dispatch one subcommand. Returns the exit code."""
    cmd = args.command

    if cmd == "monthly-report":
        period = Period.parse(args.period) if args.period else None
        result = await app.pipeline.run(period, force=args.force)
        _print(result.to_dict())
        return 2 if result.errors or result.notification_failures else 0

    if cmd == "daily-snapshot":
        result = await app.daily_snapshots.run()
        _print(result.to_dict())
        return 2 if result.errors else 0

    if cmd == "record-capital":
        occurred_at = as_utc(datetime.fromisoformat(args.occurred_at)) if args.occurred_at else None
        _print(await app.admin.record_capital_event(
            args.email, args.kind, args.amount, occurred_at=occurred_at, notes=args.notes
        ))
    elif cmd == "capital-events":
        _print(await app.admin.list_capital_events(args.email, args.limit))
    elif cmd == "record-fee":
        period = Period.parse(args.period)
        _print(await app.admin.record_fee_payment(
            args.email, period.year, period.month, args.amount, method=args.method, ref=args.ref
        ))
    elif cmd == "fee-history":
        _print(await app.admin.fee_history(args.email))
    elif cmd == "reconciliation":
        report = await app.admin.reconciliation_report(args.email)
        _print(report)
        return 0 if report["ok"] else 3
    elif cmd == "mtd":
        if args.email:
            view = await app.month_to_date.client_view_for_email(args.email)
        else:
            view = await app.month_to_date.fund_view()
        _print(view.to_dict())
    elif cmd == "overview":
        _print(await app.admin.fund_overview(Period.parse(args.period)))
    elif cmd == "rebuild-carried-loss":
        _print(await app.admin.rebuild_carried_loss(args.email))

    return 0


async def async_main(settings: Settings, args: argparse.Namespace) -> int:
    """Async main entry point."""
    app = Application(settings)
    await app.start()
    try:
        return await run_command(app, args)
    except AccountingError as e:
        code = f" [{e.code}]" if e.code else ""
        print(f"Error{code}: {e}", file=sys.stderr)
        return 1
    finally:
        await app.stop()


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    settings = load_settings()
    settings = apply_args_to_settings(args, settings)

    try:
        return asyncio.run(async_main(settings, args))
    except ValueError as e:
        # Malformed --occurred-at and similar argument values
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
