"""Pytest configuration and fixtures."""
from datetime import datetime

import pytest

from app.models.catalog import Case, Customer, Phase
from app.models.hour_entry import HourEntry
from app.services.lookups import PhaseCatalog

DAY = (2025, 3, 4)


def _at(hour: int, minute: int = 0, second: int = 0) -> datetime:
    """Local wall-clock time on the test day."""
    return datetime(*DAY, hour, minute, second)


def _make_entry(
    entry_id: str,
    start: datetime,
    end: datetime | None,
    phase_id: str | None = "p1",
    **kwargs,
) -> HourEntry:
    """Build a raw hour entry."""
    return HourEntry(
        _id=entry_id,
        phase_id=phase_id,
        worktype_id=kwargs.pop("worktype_id", "w1"),
        description=kwargs.pop("description", f"Work {entry_id}"),
        start_time=start,
        end_time=end,
        **kwargs,
    )


@pytest.fixture
def at():
    """Factory for local wall-clock times on the test day."""
    return _at


@pytest.fixture
def make_entry():
    """Factory for raw hour entries."""
    return _make_entry


@pytest.fixture
def catalog() -> PhaseCatalog:
    """
    Catalog with two customers.

    - p1, p2: case c1 of customer acme, 30 minute minimum
    - p3: case c2 of customer globex, no minimum
    - p4: case c3 of customer acme, 60 minute minimum
    - p5: phase without a case
    """
    return PhaseCatalog(
        phases=[
            Phase(_id="p1", name="Design", case_id="c1"),
            Phase(_id="p2", name="Build", case_id="c1"),
            Phase(_id="p3", name="Support", case_id="c2"),
            Phase(_id="p4", name="Audit", case_id="c3"),
            Phase(_id="p5", name="Orphan"),
        ],
        cases=[
            Case(_id="c1", name="Website", customer_id="acme", min_billable_time_in_min=30),
            Case(_id="c2", name="Helpdesk", customer_id="globex", min_billable_time_in_min=0),
            Case(_id="c3", name="Security review", customer_id="acme", min_billable_time_in_min=60),
        ],
        customers=[
            Customer(_id="acme", name="Acme Oy"),
            Customer(_id="globex", name="Globex Ab"),
        ],
    )
