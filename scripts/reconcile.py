"""Reconcile a user's hour entries into billable records.

Usage:
    # One day, as a table
    python scripts/reconcile.py --user-id 42 --day 2025-03-04

    # A whole month, as JSON lines
    python scripts/reconcile.py --user-id 42 --month 2025-03 --json
"""
import argparse
import asyncio
import json
import sys
from datetime import date
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.config import settings
from app.database import database
from app.logging_utils import setup_logging
from app.models.hour_entry import BillableEntry
from app.services.hour_entries import format_duration
from app.services.reconciliation import summarize
from app.services.reconciliation_service import ReconciliationService
from app.utils.timezones import to_local


def print_records(records: list[BillableEntry], zone: str) -> None:
    """Print records as a table in local time."""
    for record in records:
        start = to_local(record.start_time, zone)
        end = to_local(record.end_time, zone)
        print(
            f"{start:%Y-%m-%d %H:%M}-{end:%H:%M}  "
            f"{format_duration(int(record.duration_minutes)):>7}  "
            f"{record.source.value:<30} entry={record.original_hour_entry_id} "
            f"phase={record.phase_id or '-'}"
        )

    summary = summarize(records)
    print("\n=== Reconciliation Summary ===")
    print(f"Records: {summary.entry_count}")
    print(f"Billable: {format_duration(int(summary.billable_minutes))}")
    print(f"Overtime: {format_duration(int(summary.overtime_minutes))}")
    print(f"Minimum billable padding: {format_duration(int(summary.minimum_billable_minutes))}")
    print(f"Total: {format_duration(int(summary.total_minutes))}")


async def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Reconcile hour entries into billable records")
    parser.add_argument(
        "--user-id",
        required=True,
        help="User ID whose entries are reconciled",
    )
    period = parser.add_mutually_exclusive_group(required=True)
    period.add_argument(
        "--day",
        help="Local day to reconcile (YYYY-MM-DD)",
    )
    period.add_argument(
        "--month",
        help="Local month to reconcile (YYYY-MM)",
    )
    parser.add_argument(
        "--mongodb-url",
        default=settings.mongodb_url,
        help="MongoDB connection URL",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print one JSON object per record",
    )

    args = parser.parse_args()
    setup_logging(settings.log_level, settings.log_json)

    await database.connect(args.mongodb_url)
    try:
        service = ReconciliationService(database.db)
        if args.day:
            records = await service.reconcile_day(args.user_id, date.fromisoformat(args.day))
        else:
            year, month = (int(part) for part in args.month.split("-", 1))
            records = await service.reconcile_month(args.user_id, year, month)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        await database.disconnect()

    if args.json:
        for record in records:
            print(json.dumps(record.model_dump(mode="json")))
    else:
        print_records(records, service.zone)


if __name__ == "__main__":
    asyncio.run(main())
