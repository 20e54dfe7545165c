"""Lookup callbacks used by the reconciliation engine."""
from bisect import bisect_left
from datetime import datetime
from typing import Callable, Collection, Iterable, Optional

from app.models.catalog import Case, CaseConfig, Customer, Phase

CustomerLookup = Callable[[Optional[str]], Optional[str]]
CaseConfigLookup = Callable[[Optional[str]], Optional[CaseConfig]]
NextEntryStartLookup = Callable[[datetime, Collection[str]], Optional[datetime]]


class PhaseCatalog:
    """
    In-memory phase -> case -> customer chain.

    Answers the customer and case-config lookups. Any missing link in the
    chain resolves to None.
    """

    def __init__(
        self,
        phases: Iterable[Phase],
        cases: Iterable[Case],
        customers: Iterable[Customer] = (),
    ):
        self.phases = {phase.id: phase for phase in phases}
        self.cases = {case.id: case for case in cases}
        self.customers = {customer.id: customer for customer in customers}

    def case_for_phase(self, phase_id: Optional[str]) -> Optional[Case]:
        if phase_id is None:
            return None
        phase = self.phases.get(phase_id)
        if phase is None or phase.case_id is None:
            return None
        return self.cases.get(phase.case_id)

    def customer_id_for_phase(self, phase_id: Optional[str]) -> Optional[str]:
        """Get the customer id of a phase's case."""
        case = self.case_for_phase(phase_id)
        if case is None:
            return None
        return case.customer_id

    def case_config_for_phase(self, phase_id: Optional[str]) -> Optional[CaseConfig]:
        """Get the minimum billing configuration of a phase's case."""
        case = self.case_for_phase(phase_id)
        if case is None:
            return None
        return CaseConfig(
            case_id=case.id,
            min_billable_time_in_min=case.min_billable_time_in_min or 0,
        )


def next_entry_start_lookup(intervals: Iterable[tuple[str, datetime]]) -> NextEntryStartLookup:
    """
    Build a lookup for the earliest known start at or after a given time.

    Args:
        intervals: (entry id, start time) pairs of known entries

    Returns:
        Callable taking (after_time, exclude_ids) and returning the first
        start >= after_time whose entry id is not excluded, or None
    """
    known = sorted(intervals, key=lambda item: item[1])
    starts = [start for _, start in known]

    def get_next_entry_start(after_time: datetime, exclude_ids: Collection[str]) -> Optional[datetime]:
        excluded = set(exclude_ids)
        for entry_id, start in known[bisect_left(starts, after_time):]:
            if entry_id not in excluded:
                return start
        return None

    return get_next_entry_start
