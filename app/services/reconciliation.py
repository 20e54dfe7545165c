"""Hours reconciliation: rounding, overlap handling and minimum billing."""
import logging
from datetime import datetime, tzinfo
from typing import Iterable, Optional

from app.models.hour_entry import BillableEntry, EntrySource, HourEntry, ReconciliationSummary
from app.services.lookups import (
    CaseConfigLookup,
    CustomerLookup,
    NextEntryStartLookup,
    next_entry_start_lookup,
)
from app.services.minimum_billing import apply_minimum_billing, merge_with_rounded_entries
from app.services.rounding import apply_hours_balance_rounding

logger = logging.getLogger(__name__)


def reconcile(
    entries: Iterable[HourEntry],
    get_customer_id: CustomerLookup,
    get_case_config: CaseConfigLookup,
    get_next_entry_start: Optional[NextEntryStartLookup] = None,
    zone: str | tzinfo | None = None,
    blocking_starts: Iterable[tuple[str, datetime]] = (),
) -> list[BillableEntry]:
    """
    Turn raw hour entries into the time-ordered billable sequence.

    Stages run in a fixed order: precision rounding, same-customer overlap
    fixing, overtime marking, then minimum billing on the overlap-resolved
    entries. Unfinished entries are not billed.

    Args:
        entries: Raw hour entries of one user
        get_customer_id: Customer lookup by phase id
        get_case_config: Case configuration lookup by phase id
        get_next_entry_start: Next known entry start lookup; defaults to the
            starts of the overlap-resolved entries of this run
        zone: Local timezone for the end-of-day limit
        blocking_starts: Extra (entry id, start) pairs that padding must not
            run into, such as running entries; used with the default lookup

    Returns:
        Rounded, overtime and padding records sorted by start time
    """
    rounded = apply_hours_balance_rounding(entries, get_customer_id)

    if get_next_entry_start is None:
        known = [(entry.hour_entry_id, entry.start_time) for entry in rounded]
        known.extend(blocking_starts)
        get_next_entry_start = next_entry_start_lookup(known)

    padding = apply_minimum_billing(rounded, get_case_config, get_next_entry_start, zone)
    records = merge_with_rounded_entries(rounded, padding)

    logger.debug(
        "Reconciled %d rounded entries and %d padding entries",
        len(rounded),
        len(padding),
    )
    return records


def summarize(records: Iterable[BillableEntry]) -> ReconciliationSummary:
    """Sum reconciled minutes per provenance."""
    summary = ReconciliationSummary()
    for record in records:
        minutes = record.duration_minutes
        if record.source == EntrySource.ROUNDED_OVERLAPPING:
            summary.overtime_minutes += minutes
        elif record.source == EntrySource.MINIMUM_BILLABLE_TIME:
            summary.minimum_billable_minutes += minutes
        else:
            summary.billable_minutes += minutes
        summary.entry_count += 1
    return summary
