"""Minimum billable time: block combination and padding."""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo
from typing import Iterable, Optional, Sequence

from app.models.hour_entry import (
    BillableEntry,
    EntrySource,
    MinimumBillingEntry,
    PrecisionRounding,
    RoundedEntry,
)
from app.services.lookups import CaseConfigLookup, NextEntryStartLookup
from app.utils.timezones import end_of_day_limit, shift_time

logger = logging.getLogger(__name__)


@dataclass
class CombinedBlock:
    """Gapless run of entries of one case."""

    phase_id: Optional[str]
    start_time: datetime
    end_time: datetime
    entries: list[RoundedEntry] = field(default_factory=list)

    @property
    def duration_minutes(self) -> float:
        return (self.end_time - self.start_time).total_seconds() / 60

    @property
    def entry_ids(self) -> list[str]:
        return [entry.hour_entry_id for entry in self.entries]


def combine_into_blocks(entries: Iterable[RoundedEntry]) -> list[CombinedBlock]:
    """
    Combine overlapping or back-to-back entries into gapless blocks.

    An entry joins the current block when it starts at or before the block's
    end. The block takes the phase of its first entry.
    """
    blocks: list[CombinedBlock] = []
    current: Optional[CombinedBlock] = None

    for entry in sorted(entries, key=lambda e: e.start_time):
        if current is not None and entry.start_time <= current.end_time:
            current.end_time = max(current.end_time, entry.end_time)
            current.entries.append(entry)
            continue

        current = CombinedBlock(
            phase_id=entry.phase_id,
            start_time=entry.start_time,
            end_time=entry.end_time,
            entries=[entry],
        )
        blocks.append(current)

    return blocks


def _padding_for_block(
    block: CombinedBlock,
    min_minutes: int,
    get_next_entry_start: NextEntryStartLookup,
    zone: str | tzinfo | None,
) -> Optional[MinimumBillingEntry]:
    if block.duration_minutes >= min_minutes:
        return None

    padding_start = block.end_time
    desired_end = shift_time(padding_start, timedelta(minutes=min_minutes - block.duration_minutes))

    desired_end = min(desired_end, end_of_day_limit(padding_start, zone))

    next_start = get_next_entry_start(padding_start, block.entry_ids)
    if next_start is not None and desired_end > next_start:
        desired_end = next_start

    if desired_end <= padding_start:
        return None

    reference = block.entries[0]
    return MinimumBillingEntry(
        hour_entry_id=reference.hour_entry_id,
        phase_id=reference.phase_id,
        worktype_id=reference.worktype_id,
        start_time=padding_start,
        end_time=desired_end,
        original_hour_entry_id=reference.hour_entry_id,
    )


def apply_minimum_billing(
    entries: Iterable[RoundedEntry],
    get_case_config: CaseConfigLookup,
    get_next_entry_start: NextEntryStartLookup,
    zone: str | tzinfo | None = None,
) -> list[MinimumBillingEntry]:
    """
    Create padding entries so that each block meets its case minimum.

    Entries are grouped by case. Cases without configuration or with a
    minimum of zero are skipped. Padding starts at the end of a short block
    and stops at the earliest of: the minimum, 23:55 local time, or the next
    known entry that is not part of the block.

    Args:
        entries: Overlap-resolved rounded entries
        get_case_config: Case configuration lookup by phase id
        get_next_entry_start: Next known entry start lookup
        zone: Local timezone for the end-of-day limit

    Returns:
        Padding entries sorted by start time
    """
    entries_by_case: dict[str, list[RoundedEntry]] = {}
    min_minutes_by_case: dict[str, int] = {}

    for entry in entries:
        config = get_case_config(entry.phase_id)
        if config is None or config.min_billable_time_in_min <= 0:
            continue
        entries_by_case.setdefault(config.case_id, []).append(entry)
        min_minutes_by_case.setdefault(config.case_id, config.min_billable_time_in_min)

    padding: list[MinimumBillingEntry] = []
    for case_id, case_entries in entries_by_case.items():
        min_minutes = min_minutes_by_case[case_id]
        for block in combine_into_blocks(case_entries):
            padding_entry = _padding_for_block(block, min_minutes, get_next_entry_start, zone)
            if padding_entry is None:
                continue
            logger.debug(
                "Case %s: padded block ending %s until %s",
                case_id,
                padding_entry.start_time,
                padding_entry.end_time,
            )
            padding.append(padding_entry)

    return sorted(padding, key=lambda e: e.start_time)


def _rounded_to_billable(entry: RoundedEntry) -> BillableEntry:
    return BillableEntry(
        hour_entry_id=entry.hour_entry_id,
        phase_id=entry.phase_id,
        worktype_id=entry.worktype_id,
        start_time=entry.start_time,
        end_time=entry.end_time,
        description=entry.description,
        source=entry.source,
        original_start_time=entry.original_start_time,
        original_end_time=entry.original_end_time,
        precision_rounding=entry.precision_rounding,
        original_hour_entry_id=entry.hour_entry_id,
    )


def _padding_to_billable(entry: MinimumBillingEntry) -> BillableEntry:
    return BillableEntry(
        hour_entry_id=entry.hour_entry_id,
        phase_id=entry.phase_id,
        worktype_id=entry.worktype_id,
        start_time=entry.start_time,
        end_time=entry.end_time,
        description=None,
        source=EntrySource.MINIMUM_BILLABLE_TIME,
        original_start_time=entry.start_time,
        original_end_time=entry.end_time,
        precision_rounding=PrecisionRounding(),
        original_hour_entry_id=entry.original_hour_entry_id,
    )


def merge_with_rounded_entries(
    rounded_entries: Sequence[RoundedEntry],
    min_billing_entries: Sequence[MinimumBillingEntry],
) -> list[BillableEntry]:
    """
    Merge rounded and padding entries into one time-ordered sequence.

    Ties on start time keep rounded entries ahead of padding.
    """
    merged = [_rounded_to_billable(entry) for entry in rounded_entries]
    merged.extend(_padding_to_billable(entry) for entry in min_billing_entries)
    return sorted(merged, key=lambda e: e.start_time)


def min_billing_duration_minutes(entry: MinimumBillingEntry) -> float:
    """Calculate the duration in minutes of a padding entry."""
    return (entry.end_time - entry.start_time).total_seconds() / 60
