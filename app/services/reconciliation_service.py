"""Reconciliation service - loads hour entries and runs the billing engine."""
import logging
from datetime import date, datetime, timezone
from typing import Iterable, Optional

from bson import ObjectId

from app.config import settings
from app.models.catalog import Case, Customer, Phase
from app.models.hour_entry import BillableEntry, EntrySource, HourEntry
from app.services.hour_entries import ErrorCodes, HourEntryError
from app.services.lookups import PhaseCatalog
from app.services.reconciliation import reconcile
from app.services.rounding import round_down
from app.utils.timezones import local_day_bounds, local_month_bounds

logger = logging.getLogger(__name__)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """MongoDB returns naive UTC datetimes; make them aware."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _query_ids(ids: Iterable[str]) -> list:
    """Match ids stored either as ObjectId or as plain strings."""
    values: list = []
    for value in ids:
        values.append(value)
        if ObjectId.is_valid(value):
            values.append(ObjectId(value))
    return values


def _optional_str(value) -> Optional[str]:
    return str(value) if value is not None else None


class ReconciliationService:
    """Service for reconciling a user's hour entries into billable records."""

    def __init__(self, db, zone: Optional[str] = None):
        """Initialize service with database connection."""
        self.db = db
        self.zone = zone or settings.timezone
        self.hour_entries = db["hour_entries"]
        self.phases = db["phases"]
        self.cases = db["cases"]
        self.customers = db["customers"]

    def _doc_to_entry(self, doc: dict) -> HourEntry:
        """
        Convert database document to HourEntry model.
        """
        return HourEntry(
            _id=str(doc["_id"]),
            user_id=_optional_str(doc.get("user_id")),
            phase_id=_optional_str(doc.get("phase_id")),
            worktype_id=_optional_str(doc.get("worktype_id")),
            description=doc.get("description"),
            start_time=_as_utc(doc["start_time"]),
            end_time=_as_utc(doc.get("end_time")),
            status=doc.get("status", "draft"),
            source=doc.get("source", EntrySource.INSIDE.value),
        )

    async def load_entries(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
    ) -> list[HourEntry]:
        """
        Load a user's logged entries starting within [start, end).

        Soft-deleted entries and exported (non-inside) records are excluded.
        Running entries are included.

        Args:
            user_id: User ID
            start: Range start
            end: Range end (exclusive)

        Returns:
            Entries sorted by start time
        """
        query = {
            "user_id": user_id,
            "start_time": {
                "$gte": start.astimezone(timezone.utc),
                "$lt": end.astimezone(timezone.utc),
            },
            "deleted_at": None,
            "source": EntrySource.INSIDE.value,
        }

        cursor = self.hour_entries.find(query).sort("start_time", 1)
        entry_docs = await cursor.to_list(length=None)

        return [self._doc_to_entry(doc) for doc in entry_docs]

    async def load_catalog(self, phase_ids: Iterable[str]) -> PhaseCatalog:
        """
        Load the phases, cases and customers reachable from the given phases.

        Args:
            phase_ids: Phase IDs referenced by entries

        Returns:
            Catalog for customer and case-config lookups
        """
        wanted = sorted(set(phase_ids))
        if not wanted:
            return PhaseCatalog([], [])

        phase_docs = await self.phases.find({"_id": {"$in": _query_ids(wanted)}}).to_list(length=None)
        phases = [
            Phase(
                _id=str(doc["_id"]),
                name=doc.get("name", ""),
                case_id=_optional_str(doc.get("case_id")),
                completed=doc.get("completed", False),
                locked=doc.get("locked", False),
            )
            for doc in phase_docs
        ]

        case_ids = sorted({phase.case_id for phase in phases if phase.case_id})
        case_docs = []
        if case_ids:
            case_docs = await self.cases.find({"_id": {"$in": _query_ids(case_ids)}}).to_list(length=None)
        cases = [
            Case(
                _id=str(doc["_id"]),
                name=doc.get("name", ""),
                customer_id=_optional_str(doc.get("customer_id")),
                closed=doc.get("closed", False),
                min_billable_time_in_min=doc.get("min_billable_time_in_min") or 0,
            )
            for doc in case_docs
        ]

        customer_ids = sorted({case.customer_id for case in cases if case.customer_id})
        customer_docs = []
        if customer_ids:
            customer_docs = await self.customers.find(
                {"_id": {"$in": _query_ids(customer_ids)}}
            ).to_list(length=None)
        customers = [
            Customer(
                _id=str(doc["_id"]),
                name=doc.get("name", ""),
                active=doc.get("active", True),
            )
            for doc in customer_docs
        ]

        return PhaseCatalog(phases, cases, customers)

    async def reconcile_range(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
    ) -> list[BillableEntry]:
        """
        Reconcile a user's entries starting within [start, end).

        Args:
            user_id: User ID
            start: Range start
            end: Range end (exclusive)

        Returns:
            Billable records sorted by start time
        """
        entries = await self.load_entries(user_id, start, end)
        catalog = await self.load_catalog(
            entry.phase_id for entry in entries if entry.phase_id is not None
        )

        # Running entries are not billed but still block padding
        running_starts = [
            (entry.id, round_down(entry.start_time)) for entry in entries if entry.end_time is None
        ]

        records = reconcile(
            entries,
            catalog.customer_id_for_phase,
            catalog.case_config_for_phase,
            zone=self.zone,
            blocking_starts=running_starts,
        )

        logger.info(
            "Reconciled %d entries into %d billable records for user %s",
            len(entries),
            len(records),
            user_id,
        )
        return records

    async def reconcile_day(self, user_id: str, day: date) -> list[BillableEntry]:
        """Reconcile one local calendar day."""
        start, end = local_day_bounds(day, self.zone)
        return await self.reconcile_range(user_id, start, end)

    async def reconcile_month(self, user_id: str, year: int, month: int) -> list[BillableEntry]:
        """
        Reconcile one local calendar month.

        Raises:
            HourEntryError: If the month is out of range
        """
        if not 1 <= month <= 12:
            raise HourEntryError("Month must be between 1 and 12", ErrorCodes.DATE_OUT_OF_RANGE)

        start, end = local_month_bounds(year, month, self.zone)
        return await self.reconcile_range(user_id, start, end)
