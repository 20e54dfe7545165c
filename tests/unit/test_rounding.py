"""Tests for precision rounding and overlap handling."""
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from app.models.hour_entry import EntrySource
from app.services.rounding import (
    ROUNDING_INTERVAL,
    UnresolvedCustomer,
    apply_hours_balance_rounding,
    apply_precision_rounding,
    customer_identity,
    handle_overlapping,
    handle_precision_overlapping,
    overlap_duration,
    ranges_overlap,
    round_down,
    round_up,
    rounded_duration_minutes,
)


class TestRoundingHelpers:
    """Tests for grid rounding helpers."""

    def test_round_down(self, at):
        """Test start times are rounded down to the 5 minute grid."""
        assert round_down(at(9, 3)) == at(9, 0)
        assert round_down(at(9, 4, 59)) == at(9, 0)
        assert round_down(at(9, 5, 1)) == at(9, 5)

    def test_round_up(self, at):
        """Test end times are rounded up to the 5 minute grid."""
        assert round_up(at(9, 58)) == at(10, 0)
        assert round_up(at(9, 55, 1)) == at(10, 0)
        assert round_up(at(9, 50, 30)) == at(9, 55)

    def test_rounding_is_noop_on_grid(self, at):
        """Test already aligned times are unchanged."""
        for moment in (at(0, 0), at(9, 5), at(12, 30), at(23, 50)):
            assert round_down(moment) == moment
            assert round_up(moment) == moment
            assert round_down(round_down(moment)) == moment

    def test_rounding_aware_datetimes(self):
        """Test aware datetimes round on the same grid."""
        moment = datetime(2025, 3, 4, 7, 3, 20, tzinfo=timezone.utc)

        assert round_down(moment) == datetime(2025, 3, 4, 7, 0, tzinfo=timezone.utc)
        assert round_up(moment) == datetime(2025, 3, 4, 7, 5, tzinfo=timezone.utc)

    def test_rounding_keeps_dst_fold(self):
        """Test rounding inside the repeated fall-back hour stays in that hour."""
        helsinki = ZoneInfo("Europe/Helsinki")
        # Second 03:02 on 2025-10-26 is 01:02 UTC
        moment = datetime(2025, 10, 26, 3, 2, fold=1, tzinfo=helsinki)

        down = round_down(moment)
        up = round_up(moment)

        assert down.astimezone(timezone.utc) == datetime(2025, 10, 26, 1, 0, tzinfo=timezone.utc)
        assert up.astimezone(timezone.utc) == datetime(2025, 10, 26, 1, 5, tzinfo=timezone.utc)
        assert down.fold == 1

    def test_ranges_overlap(self, at):
        """Test half-open range overlap."""
        assert ranges_overlap(at(9), at(10), at(9, 30), at(11))
        assert not ranges_overlap(at(9), at(10), at(10), at(11))
        assert not ranges_overlap(at(9), at(10), at(11), at(12))

    def test_overlap_duration(self, at):
        """Test overlap length, zero for disjoint ranges."""
        assert overlap_duration(at(9), at(10, 5), at(10), at(11)) == timedelta(minutes=5)
        assert overlap_duration(at(9), at(12), at(10), at(11)) == timedelta(hours=1)
        assert overlap_duration(at(9), at(10), at(10), at(11)) == timedelta(0)


class TestCustomerIdentity:
    """Tests for customer identity resolution."""

    def test_resolved_customers_compare_by_id(self, catalog):
        """Test phases of one customer resolve to equal identities."""
        first = customer_identity("p1", catalog.customer_id_for_phase)
        second = customer_identity("p4", catalog.customer_id_for_phase)

        assert first == "acme"
        assert first == second

    def test_unresolved_customers_never_equal(self, catalog):
        """Test two entries without a customer are never the same customer."""
        first = customer_identity(None, catalog.customer_id_for_phase)
        second = customer_identity(None, catalog.customer_id_for_phase)
        orphan = customer_identity("p5", catalog.customer_id_for_phase)

        assert isinstance(first, UnresolvedCustomer)
        assert first != second
        assert first != orphan
        assert first == first

    def test_lookup_not_called_without_phase(self):
        """Test the lookup is skipped for entries without a phase."""
        calls = []

        def lookup(phase_id):
            calls.append(phase_id)
            return "acme"

        identity = customer_identity(None, lookup)

        assert isinstance(identity, UnresolvedCustomer)
        assert calls == []


class TestApplyPrecisionRounding:
    """Tests for precision rounding of raw entries."""

    def test_rounds_outwards_and_flags(self, at, make_entry):
        """Test 09:03-09:58 becomes 09:00-10:00 with both flags set."""
        entry = make_entry("e1", at(9, 3), at(9, 58))

        [rounded] = apply_precision_rounding([entry])

        assert rounded.start_time == at(9, 0)
        assert rounded.end_time == at(10, 0)
        assert rounded.original_start_time == at(9, 3)
        assert rounded.original_end_time == at(9, 58)
        assert rounded.precision_rounding.start_rounded is True
        assert rounded.precision_rounding.end_rounded is True
        assert rounded.source == EntrySource.ROUNDED
        assert rounded.hour_entry_id == "e1"
        assert rounded.phase_id == "p1"
        assert rounded.worktype_id == "w1"
        assert rounded.description == "Work e1"

    def test_aligned_entry_not_flagged(self, at, make_entry):
        """Test aligned entries keep their times and clear flags."""
        entry = make_entry("e1", at(9, 0), at(10, 0))

        [rounded] = apply_precision_rounding([entry])

        assert (rounded.start_time, rounded.end_time) == (at(9, 0), at(10, 0))
        assert rounded.precision_rounding.start_rounded is False
        assert rounded.precision_rounding.end_rounded is False

    def test_excludes_running_entries(self, at, make_entry):
        """Test entries without an end time are not billed."""
        entries = [
            make_entry("e1", at(9, 0), at(10, 0)),
            make_entry("e2", at(10, 0), None),
        ]

        rounded = apply_precision_rounding(entries)

        assert [entry.hour_entry_id for entry in rounded] == ["e1"]

    def test_sorted_by_rounded_start(self, at, make_entry):
        """Test output is ordered by rounded start time."""
        entries = [
            make_entry("late", at(13, 2), at(14, 0)),
            make_entry("early", at(8, 1), at(9, 0)),
            make_entry("middle", at(10, 4), at(11, 0)),
        ]

        rounded = apply_precision_rounding(entries)

        assert [entry.hour_entry_id for entry in rounded] == ["early", "middle", "late"]

    def test_rounded_contains_original(self, at, make_entry):
        """Test rounding never shrinks logged time."""
        entries = [
            make_entry("e1", at(8, 1, 15), at(8, 44, 59)),
            make_entry("e2", at(11, 59, 59), at(12, 0, 1)),
            make_entry("e3", at(15, 0), at(15, 5)),
        ]

        for rounded in apply_precision_rounding(entries):
            assert rounded.start_time <= rounded.original_start_time
            assert rounded.end_time >= rounded.original_end_time
            assert rounded.start_time < rounded.end_time

    def test_duration_minutes(self, at, make_entry):
        """Test duration of a rounded entry."""
        [rounded] = apply_precision_rounding([make_entry("e1", at(9, 3), at(9, 58))])

        assert rounded_duration_minutes(rounded) == 60


class TestHandlePrecisionOverlapping:
    """Tests for same-customer precision overlap handling."""

    def test_postpones_same_customer_entry(self, at, make_entry, catalog):
        """Test a 5 minute rounding overlap postpones the later entry."""
        entries = [
            make_entry("e1", at(9, 0), at(10, 2), phase_id="p1"),
            make_entry("e2", at(10, 0), at(11, 0), phase_id="p2"),
        ]
        rounded = apply_precision_rounding(entries)
        assert rounded[0].end_time == at(10, 5)
        assert rounded[1].start_time == at(10, 0)

        result = handle_precision_overlapping(rounded, catalog.customer_id_for_phase)

        assert [(e.hour_entry_id, e.start_time, e.end_time) for e in result] == [
            ("e1", at(9, 0), at(10, 5)),
            ("e2", at(10, 5), at(11, 0)),
        ]

    def test_same_customer_across_cases(self, at, make_entry, catalog):
        """Test postponement applies to different cases of one customer."""
        entries = [
            make_entry("e1", at(9, 0), at(10, 2), phase_id="p1"),
            make_entry("e2", at(10, 0), at(11, 0), phase_id="p4"),
        ]

        result = handle_precision_overlapping(
            apply_precision_rounding(entries), catalog.customer_id_for_phase
        )

        assert result[1].start_time == at(10, 5)

    def test_different_customer_untouched(self, at, make_entry, catalog):
        """Test overlaps across customers are left in place."""
        entries = [
            make_entry("e1", at(9, 0), at(10, 2), phase_id="p1"),
            make_entry("e2", at(10, 0), at(11, 0), phase_id="p3"),
        ]

        result = handle_precision_overlapping(
            apply_precision_rounding(entries), catalog.customer_id_for_phase
        )

        assert result[1].start_time == at(10, 0)

    def test_entries_without_customer_untouched(self, at, make_entry, catalog):
        """Test entries without a customer are never treated as the same customer."""
        entries = [
            make_entry("e1", at(9, 0), at(10, 2), phase_id=None),
            make_entry("e2", at(10, 0), at(11, 0), phase_id=None),
            make_entry("e3", at(10, 58), at(12, 0), phase_id="p5"),
        ]

        result = handle_precision_overlapping(
            apply_precision_rounding(entries), catalog.customer_id_for_phase
        )

        assert [e.start_time for e in result] == [at(9, 0), at(10, 0), at(10, 55)]

    def test_larger_overlap_untouched(self, at, make_entry, catalog):
        """Test genuine double booking is not treated as a rounding artifact."""
        entries = [
            make_entry("e1", at(9, 0), at(10, 10), phase_id="p1"),
            make_entry("e2", at(10, 0), at(11, 0), phase_id="p2"),
        ]

        result = handle_precision_overlapping(
            apply_precision_rounding(entries), catalog.customer_id_for_phase
        )

        assert result[1].start_time == at(10, 0)

    def test_drops_entry_collapsed_to_zero(self, at, make_entry, catalog):
        """Test an entry absorbed entirely by postponement is dropped."""
        entries = [
            make_entry("e1", at(9, 0), at(9, 7), phase_id="p1"),
            make_entry("e2", at(9, 6), at(9, 9), phase_id="p2"),
        ]
        rounded = apply_precision_rounding(entries)
        assert rounded[1].start_time == at(9, 5)
        assert rounded[1].end_time == at(9, 10)

        result = handle_precision_overlapping(rounded, catalog.customer_id_for_phase)

        assert [e.hour_entry_id for e in result] == ["e1"]

    def test_does_not_mutate_input(self, at, make_entry, catalog):
        """Test the input entries are left unchanged."""
        rounded = apply_precision_rounding([
            make_entry("e1", at(9, 0), at(10, 2)),
            make_entry("e2", at(10, 0), at(11, 0)),
        ])

        handle_precision_overlapping(rounded, catalog.customer_id_for_phase)

        assert rounded[1].start_time == at(10, 0)


class TestHandleOverlapping:
    """Tests for overtime marking."""

    def test_marks_later_overlapping_entry(self, at, make_entry):
        """Test the later of two overlapping entries becomes overtime."""
        rounded = apply_precision_rounding([
            make_entry("e1", at(9, 0), at(10, 0), phase_id="p1"),
            make_entry("e2", at(9, 30), at(10, 30), phase_id="p3"),
            make_entry("e3", at(10, 30), at(11, 0), phase_id="p3"),
        ])

        result = handle_overlapping(rounded)

        assert [e.source for e in result] == [
            EntrySource.ROUNDED,
            EntrySource.ROUNDED_OVERLAPPING,
            EntrySource.ROUNDED,
        ]
        assert result[1].start_time == at(9, 30)
        assert result[1].end_time == at(10, 30)

    def test_checks_all_accepted_entries(self, at, make_entry):
        """Test overlap is detected against any earlier entry, not just the previous."""
        rounded = apply_precision_rounding([
            make_entry("e1", at(9, 0), at(12, 0)),
            make_entry("e2", at(10, 0), at(11, 0)),
            make_entry("e3", at(11, 30), at(12, 30)),
        ])

        result = handle_overlapping(rounded)

        assert [e.source for e in result] == [
            EntrySource.ROUNDED,
            EntrySource.ROUNDED_OVERLAPPING,
            EntrySource.ROUNDED_OVERLAPPING,
        ]

    def test_keeps_every_entry(self, at, make_entry):
        """Test overlap is reported, never prevented."""
        rounded = apply_precision_rounding([
            make_entry("e1", at(9, 0), at(10, 0)),
            make_entry("e2", at(9, 0), at(10, 0)),
        ])

        result = handle_overlapping(rounded)

        assert len(result) == 2


class TestApplyHoursBalanceRounding:
    """Tests for the full rounding pipeline."""

    def test_precision_overlap_is_not_overtime(self, at, make_entry, catalog):
        """Test a postponed entry is no longer flagged as overtime."""
        entries = [
            make_entry("e1", at(9, 0), at(10, 2), phase_id="p1"),
            make_entry("e2", at(10, 0), at(11, 0), phase_id="p2"),
        ]

        result = apply_hours_balance_rounding(entries, catalog.customer_id_for_phase)

        assert [e.source for e in result] == [EntrySource.ROUNDED, EntrySource.ROUNDED]
        assert result[1].start_time == at(10, 5)

    def test_cross_customer_rounding_overlap_is_overtime(self, at, make_entry, catalog):
        """Test a rounding overlap between customers is reported as overtime."""
        entries = [
            make_entry("e1", at(9, 0), at(10, 2), phase_id="p1"),
            make_entry("e2", at(10, 0), at(11, 0), phase_id="p3"),
        ]

        result = apply_hours_balance_rounding(entries, catalog.customer_id_for_phase)

        assert result[1].source == EntrySource.ROUNDED_OVERLAPPING
        assert result[1].start_time == at(10, 0)

    def test_interval_constant(self):
        """Test the rounding grid is five minutes."""
        assert ROUNDING_INTERVAL == timedelta(minutes=5)
