"""Hour entry validation and duration helpers.

These checks run before entries are stored, so reconciliation can rely on
finished entries having a valid, same-day time range.
"""
from datetime import date, datetime, tzinfo
from enum import IntEnum
from typing import Iterable, Mapping, Optional

from app.models.catalog import Worktype
from app.models.hour_entry import EntrySource, EntryStatus, HourEntry
from app.services.lookups import PhaseCatalog
from app.utils.timezones import END_OF_DAY_LIMIT, to_local


class ErrorCodes(IntEnum):
    """Error codes reported to callers of hour entry operations."""

    USER_NOT_LINKED = 1001
    ENTRY_NOT_FOUND = 1002
    NOT_OWNER = 1003
    NOT_DRAFT = 1004
    ALREADY_DELETED = 1005
    MISSING_REQUIRED_FIELD = 1006
    NO_ENTRIES_FOR_DAY = 1007
    UNSUPPORTED_TIME = 1010
    TOO_MANY_HOURS = 1011
    MISSING_END_TIME = 1012
    DAY_LOCKED = 1013
    INVALID_TIME_RANGE = 1014
    INVALID_PHASE = 1015
    INVALID_WORKTYPE = 1016
    DATE_OUT_OF_RANGE = 1017


class HourEntryError(ValueError):
    """Validation failure with an error code."""

    def __init__(self, message: str, code: ErrorCodes):
        super().__init__(message)
        self.code = code


def validate_time_range(moment: datetime, zone: str | tzinfo | None = None) -> None:
    """Reject times in the unsupported 23:55-00:00 local window."""
    local = to_local(moment, zone)
    if local.time() >= END_OF_DAY_LIMIT:
        raise HourEntryError(
            "Times between 23:55 and 00:00 are not supported",
            ErrorCodes.UNSUPPORTED_TIME,
        )


def validate_start_end(
    start_time: datetime,
    end_time: Optional[datetime],
    zone: str | tzinfo | None = None,
) -> None:
    """Require end after start, on the same local day. Open entries pass."""
    if end_time is None:
        return

    if end_time <= start_time:
        raise HourEntryError(
            "End time must be after start time",
            ErrorCodes.INVALID_TIME_RANGE,
        )

    if to_local(start_time, zone).date() != to_local(end_time, zone).date():
        raise HourEntryError(
            "Start and end must be on the same day",
            ErrorCodes.INVALID_TIME_RANGE,
        )


def validate_phase(phase_id: str, catalog: PhaseCatalog) -> None:
    """Require an open phase of an open case of an active customer."""
    phase = catalog.phases.get(phase_id)
    if phase is None:
        raise HourEntryError("Phase not found", ErrorCodes.INVALID_PHASE)

    case = catalog.case_for_phase(phase_id)
    customer = catalog.customers.get(case.customer_id) if case and case.customer_id else None
    if case is None or customer is None:
        raise HourEntryError("Phase not found", ErrorCodes.INVALID_PHASE)

    if phase.completed or phase.locked:
        raise HourEntryError("Phase is completed or locked", ErrorCodes.INVALID_PHASE)

    if case.closed:
        raise HourEntryError("Case is closed", ErrorCodes.INVALID_PHASE)

    if not customer.active:
        raise HourEntryError("Customer is inactive", ErrorCodes.INVALID_PHASE)


def validate_worktype(worktype_id: str, worktypes: Mapping[str, Worktype]) -> None:
    """Require an existing, active worktype."""
    worktype = worktypes.get(worktype_id)
    if worktype is None:
        raise HourEntryError("Worktype not found", ErrorCodes.INVALID_WORKTYPE)

    if not worktype.active:
        raise HourEntryError("Worktype is inactive", ErrorCodes.INVALID_WORKTYPE)


def is_day_locked(entries: Iterable[HourEntry], day: date, zone: str | tzinfo | None = None) -> bool:
    """A day is locked once any of its entries is confirmed."""
    return any(
        entry.status == EntryStatus.CONFIRMED and to_local(entry.start_time, zone).date() == day
        for entry in entries
    )


def validate_entry(
    entry: HourEntry,
    catalog: PhaseCatalog,
    worktypes: Mapping[str, Worktype],
    existing_entries: Iterable[HourEntry] = (),
    zone: str | tzinfo | None = None,
) -> None:
    """
    Run all checks for creating or updating an entry.

    Args:
        entry: Entry being saved
        catalog: Phase/case/customer catalog
        worktypes: Worktypes by id
        existing_entries: The user's other entries, used for day locking
        zone: Local timezone

    Raises:
        HourEntryError: On the first failed check
    """
    validate_time_range(entry.start_time, zone)
    if entry.end_time is not None:
        validate_time_range(entry.end_time, zone)
    validate_start_end(entry.start_time, entry.end_time, zone)

    others = [other for other in existing_entries if other.id != entry.id]
    if is_day_locked(others, to_local(entry.start_time, zone).date(), zone):
        raise HourEntryError("Cannot add entries to a confirmed day", ErrorCodes.DAY_LOCKED)

    if entry.phase_id:
        validate_phase(entry.phase_id, catalog)
    if entry.worktype_id:
        validate_worktype(entry.worktype_id, worktypes)


def validate_day_confirmable(
    entries: Iterable[HourEntry],
    day: date,
    zone: str | tzinfo | None = None,
) -> list[HourEntry]:
    """
    Check that a day's draft entries can be confirmed.

    Returns:
        The draft entries of the day

    Raises:
        HourEntryError: If there are no drafts or a draft is incomplete
    """
    drafts = [
        entry
        for entry in entries
        if entry.status == EntryStatus.DRAFT
        and entry.source == EntrySource.INSIDE
        and to_local(entry.start_time, zone).date() == day
    ]

    if not drafts:
        raise HourEntryError(
            "No draft entries found for this day",
            ErrorCodes.NO_ENTRIES_FOR_DAY,
        )

    for entry in drafts:
        if not entry.description or not entry.description.strip():
            raise HourEntryError(
                "All entries must have a description",
                ErrorCodes.MISSING_REQUIRED_FIELD,
            )
        if not entry.phase_id:
            raise HourEntryError(
                "All entries must have a phase selected",
                ErrorCodes.INVALID_PHASE,
            )
        if not entry.worktype_id:
            raise HourEntryError(
                "All entries must have a worktype selected",
                ErrorCodes.INVALID_WORKTYPE,
            )
        if entry.end_time is None:
            raise HourEntryError(
                "All entries must have an end time",
                ErrorCodes.MISSING_END_TIME,
            )

    return drafts


def calculate_total_minutes(entries: Iterable[HourEntry]) -> int:
    """Sum whole minutes of finished entries."""
    total = 0
    for entry in entries:
        if entry.end_time is None:
            continue
        total += int((entry.end_time - entry.start_time).total_seconds() // 60)
    return total


def format_duration(minutes: int) -> str:
    """
    Format minutes as hours and minutes.

    Examples:
        >>> format_duration(90)
        '1h 30m'
        >>> format_duration(120)
        '2h'
        >>> format_duration(45)
        '45m'
    """
    hours, mins = divmod(int(minutes), 60)
    if hours == 0:
        return f"{mins}m"
    if mins == 0:
        return f"{hours}h"
    return f"{hours}h {mins}m"
