"""Hour entry and billable interval model definitions."""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class EntryStatus(str, Enum):
    """Lifecycle status of a logged hour entry."""

    DRAFT = "draft"
    CONFIRMED = "confirmed"


class EntrySource(str, Enum):
    """Provenance of a billable interval."""

    INSIDE = "inside"
    ROUNDED = "inside-rounded"
    ROUNDED_OVERLAPPING = "inside-rounded-overlapping"
    MINIMUM_BILLABLE_TIME = "inside-minimum-billable-time"


class HourEntry(BaseModel):
    """Raw hour entry as logged by a user. Read-only input to reconciliation."""

    id: str = Field(alias="_id", serialization_alias="id")
    user_id: Optional[str] = None
    phase_id: Optional[str] = None
    worktype_id: Optional[str] = None
    description: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    status: EntryStatus = EntryStatus.DRAFT
    source: EntrySource = EntrySource.INSIDE

    model_config = {"populate_by_name": True, "frozen": True}


class PrecisionRounding(BaseModel):
    """Which boundaries of an entry were moved by rounding."""

    start_rounded: bool = False
    end_rounded: bool = False


class RoundedEntry(BaseModel):
    """Hour entry aligned to the rounding grid, with its original times kept."""

    hour_entry_id: str
    phase_id: Optional[str] = None
    worktype_id: Optional[str] = None
    start_time: datetime
    end_time: datetime
    description: Optional[str] = None
    source: EntrySource = EntrySource.ROUNDED
    original_start_time: datetime
    original_end_time: datetime
    precision_rounding: PrecisionRounding = Field(default_factory=PrecisionRounding)


class MinimumBillingEntry(BaseModel):
    """Padding interval added after a block that is shorter than the case minimum."""

    hour_entry_id: str
    phase_id: Optional[str] = None
    worktype_id: Optional[str] = None
    start_time: datetime
    end_time: datetime
    source: EntrySource = EntrySource.MINIMUM_BILLABLE_TIME
    original_hour_entry_id: str


class BillableEntry(BaseModel):
    """Single record of the reconciled, time-ordered billable sequence."""

    hour_entry_id: str
    phase_id: Optional[str] = None
    worktype_id: Optional[str] = None
    start_time: datetime
    end_time: datetime
    description: Optional[str] = None
    source: EntrySource
    original_start_time: datetime
    original_end_time: datetime
    precision_rounding: PrecisionRounding = Field(default_factory=PrecisionRounding)
    original_hour_entry_id: str

    @property
    def duration_minutes(self) -> float:
        """Length of the interval in minutes."""
        return (self.end_time - self.start_time).total_seconds() / 60


class ReconciliationSummary(BaseModel):
    """Minutes per provenance over a reconciled sequence."""

    billable_minutes: float = 0
    overtime_minutes: float = 0
    minimum_billable_minutes: float = 0
    entry_count: int = 0

    @property
    def total_minutes(self) -> float:
        return self.billable_minutes + self.overtime_minutes + self.minimum_billable_minutes
