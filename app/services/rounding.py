"""Precision rounding and overlap handling for hour entries."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable

from app.models.hour_entry import EntrySource, HourEntry, PrecisionRounding, RoundedEntry
from app.services.lookups import CustomerLookup
from app.utils.timezones import shift_time

logger = logging.getLogger(__name__)

ROUNDING_INTERVAL = timedelta(minutes=5)

_EPOCH = datetime(1970, 1, 1)
_EPOCH_UTC = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _grid_offset(moment: datetime, interval: timedelta) -> timedelta:
    epoch = _EPOCH if moment.tzinfo is None else _EPOCH_UTC
    return (moment - epoch) % interval


def round_down(moment: datetime, interval: timedelta = ROUNDING_INTERVAL) -> datetime:
    """
    Round a time DOWN to the nearest grid line.

    Examples:
        >>> round_down(datetime(2025, 1, 6, 9, 3))
        datetime.datetime(2025, 1, 6, 9, 0)
    """
    return shift_time(moment, -_grid_offset(moment, interval))


def round_up(moment: datetime, interval: timedelta = ROUNDING_INTERVAL) -> datetime:
    """
    Round a time UP to the nearest grid line.

    Examples:
        >>> round_up(datetime(2025, 1, 6, 9, 58))
        datetime.datetime(2025, 1, 6, 10, 0)
    """
    offset = _grid_offset(moment, interval)
    if not offset:
        return moment
    return shift_time(moment, interval - offset)


def ranges_overlap(start1: datetime, end1: datetime, start2: datetime, end2: datetime) -> bool:
    """Check if two half-open time ranges overlap."""
    return start1 < end2 and start2 < end1


def overlap_duration(start1: datetime, end1: datetime, start2: datetime, end2: datetime) -> timedelta:
    """Get the length of the overlap of two time ranges (zero if disjoint)."""
    if not ranges_overlap(start1, end1, start2, end2):
        return timedelta(0)
    return min(end1, end2) - max(start1, start2)


class UnresolvedCustomer:
    """
    Customer identity of an entry whose phase does not resolve to a customer.

    Every instance is equal only to itself, so two entries without a
    customer are never treated as belonging to the same customer.
    """

    __slots__ = ()

    def __repr__(self) -> str:
        return "UnresolvedCustomer()"


def customer_identity(phase_id: str | None, get_customer_id: CustomerLookup) -> object:
    """Resolve the customer of a phase, or a fresh UnresolvedCustomer."""
    customer_id = get_customer_id(phase_id) if phase_id is not None else None
    if customer_id is None:
        return UnresolvedCustomer()
    return customer_id


def _by_start(entry: RoundedEntry) -> datetime:
    return entry.start_time


def apply_precision_rounding(entries: Iterable[HourEntry]) -> list[RoundedEntry]:
    """
    Round start times down and end times up to the rounding grid.

    Entries without an end time are still running and are left out.

    Args:
        entries: Raw hour entries

    Returns:
        Rounded entries sorted by rounded start time
    """
    rounded = []
    for entry in entries:
        if entry.end_time is None:
            continue

        start = round_down(entry.start_time)
        end = round_up(entry.end_time)
        if start >= end:
            continue

        rounded.append(
            RoundedEntry(
                hour_entry_id=entry.id,
                phase_id=entry.phase_id,
                worktype_id=entry.worktype_id,
                start_time=start,
                end_time=end,
                description=entry.description,
                source=EntrySource.ROUNDED,
                original_start_time=entry.start_time,
                original_end_time=entry.end_time,
                precision_rounding=PrecisionRounding(
                    start_rounded=start != entry.start_time,
                    end_rounded=end != entry.end_time,
                ),
            )
        )

    return sorted(rounded, key=_by_start)


def handle_precision_overlapping(
    entries: Iterable[RoundedEntry],
    get_customer_id: CustomerLookup,
) -> list[RoundedEntry]:
    """
    Undo overlaps that rounding introduced between entries of one customer.

    When an entry overlaps an earlier one by exactly one rounding interval
    and both belong to the same customer, its start is postponed by one
    interval. An entry that collapses to zero length is dropped. Larger
    overlaps are left for handle_overlapping.

    Args:
        entries: Rounded entries
        get_customer_id: Customer lookup by phase id

    Returns:
        Adjusted entries in processing order
    """
    result: list[RoundedEntry] = []
    identities: list[object] = []

    for current in sorted(entries, key=_by_start):
        identity = customer_identity(current.phase_id, get_customer_id)
        dropped = False

        for previous, previous_identity in zip(result, identities):
            overlap = overlap_duration(
                previous.start_time,
                previous.end_time,
                current.start_time,
                current.end_time,
            )
            if overlap != ROUNDING_INTERVAL or identity != previous_identity:
                continue

            current = current.model_copy(
                update={"start_time": shift_time(current.start_time, ROUNDING_INTERVAL)}
            )
            if current.start_time >= current.end_time:
                dropped = True
                break

        if dropped:
            logger.debug(
                "Entry %s absorbed by precision overlap", current.hour_entry_id
            )
            continue

        result.append(current)
        identities.append(identity)

    return result


def handle_overlapping(entries: Iterable[RoundedEntry]) -> list[RoundedEntry]:
    """
    Mark entries that overlap an earlier accepted entry as overtime.

    Entries are never moved or removed here, only re-tagged.
    """
    result: list[RoundedEntry] = []

    for current in sorted(entries, key=_by_start):
        overlapping = any(
            ranges_overlap(previous.start_time, previous.end_time, current.start_time, current.end_time)
            for previous in result
        )
        if overlapping:
            current = current.model_copy(update={"source": EntrySource.ROUNDED_OVERLAPPING})
            logger.debug("Entry %s marked as overtime", current.hour_entry_id)
        result.append(current)

    return result


def apply_hours_balance_rounding(
    entries: Iterable[HourEntry],
    get_customer_id: CustomerLookup,
) -> list[RoundedEntry]:
    """Run precision rounding, same-customer overlap fixing and overtime marking."""
    rounded = apply_precision_rounding(entries)
    rounded = handle_precision_overlapping(rounded, get_customer_id)
    return handle_overlapping(rounded)


def rounded_duration_minutes(entry: RoundedEntry) -> float:
    """Calculate the duration in minutes of a rounded entry."""
    return (entry.end_time - entry.start_time).total_seconds() / 60
