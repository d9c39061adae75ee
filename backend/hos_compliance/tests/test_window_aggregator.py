"""
Tests for the Window Aggregator Service.

Entries are recorded through the in-memory ledger so every timeline obeys
the ledger's ordering rules.
"""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from eld_logs.services import DutyStatus
from hos_compliance.services import WindowAggregatorService
from hos_compliance.services.rule_set_registry import INTERSTATE_2013, INTERSTATE_2020

UTC = timezone.utc
CHICAGO = ZoneInfo("America/Chicago")


def at(day, hour, minute=0):
    return datetime(2024, 3, day, hour, minute, tzinfo=UTC)


def record(ledger, *changes, driver_id="D1"):
    for instant, status in changes:
        ledger.append(driver_id, status, instant)
    return list(ledger.list_entries(driver_id))


@pytest.fixture
def aggregator():
    return WindowAggregatorService()


class TestTimeline:
    """Test effective timeline construction."""

    def test_open_entry_runs_until_now(self, ledger, aggregator):
        entries = record(ledger, (at(4, 0), DutyStatus.OFF_DUTY), (at(4, 6), DutyStatus.ON_DUTY))

        timeline = aggregator.build_timeline(entries, at(4, 9))

        assert timeline[-1].end == at(4, 9)
        assert timeline[-1].duration == timedelta(hours=3)

    def test_nothing_after_now_is_counted(self, ledger, aggregator):
        entries = record(ledger, (at(4, 0), DutyStatus.OFF_DUTY), (at(4, 6), DutyStatus.ON_DUTY))

        timeline = aggregator.build_timeline(entries, at(4, 5))

        assert len(timeline) == 1
        assert timeline[0].end == at(4, 5)

    def test_horizon_clips_older_time(self, ledger, aggregator):
        entries = record(ledger, (at(1, 0), DutyStatus.OFF_DUTY), (at(4, 6), DutyStatus.ON_DUTY))

        timeline = aggregator.build_timeline(entries, at(4, 7), horizon_start=at(4, 0))

        assert timeline[0].start == at(4, 0)

    def test_edit_replaces_original(self, ledger, workflow, aggregator):
        entries = record(
            ledger,
            (at(3, 18), DutyStatus.OFF_DUTY),
            (at(4, 6), DutyStatus.ON_DUTY),
            (at(4, 10), DutyStatus.OFF_DUTY),
        )
        amendment = workflow.submit(
            entries[1].id, "clerk", "Was driving", proposed_status=DutyStatus.DRIVING
        )
        workflow.approve(amendment.id, "supervisor")

        all_entries = list(ledger.list_entries("D1"))
        now = at(4, 11)

        assert aggregator.daily_drive(all_entries, now, UTC) == timedelta(hours=4)
        assert aggregator.daily_on_duty(all_entries, now, UTC) == timedelta(hours=4)
        assert aggregator.daily_drive(ledger.effective_entries("D1"), now, UTC) == timedelta(hours=4)

    def test_current_entry_at_past_instant(self, ledger, workflow, aggregator):
        entries = record(
            ledger,
            (at(3, 18), DutyStatus.OFF_DUTY),
            (at(4, 6), DutyStatus.ON_DUTY),
            (at(4, 10), DutyStatus.OFF_DUTY),
        )
        amendment = workflow.submit(
            entries[1].id, "clerk", "Was driving", proposed_status=DutyStatus.DRIVING
        )
        edited_id = workflow.approve(amendment.id, "supervisor").resulting_entry_id
        all_entries = list(ledger.list_entries("D1"))

        totals = aggregator.aggregate(all_entries, at(4, 8), INTERSTATE_2020, UTC)

        assert totals.current_status == DutyStatus.DRIVING
        assert totals.current_entry_id == edited_id
        assert aggregator.current_entry(all_entries, at(4, 10)).id == entries[2].id
        assert aggregator.current_entry(all_entries, at(3, 12)) is None

    def test_shortened_edit_leaves_gap(self, ledger, workflow, aggregator):
        entries = record(
            ledger,
            (at(3, 18), DutyStatus.OFF_DUTY),
            (at(4, 6), DutyStatus.ON_DUTY),
            (at(4, 10), DutyStatus.OFF_DUTY),
        )
        amendment = workflow.submit(entries[1].id, "clerk", "Started late", proposed_start=at(4, 7))
        workflow.approve(amendment.id, "supervisor")

        totals = aggregator.per_day_totals(ledger.effective_entries("D1"), at(4, 11), UTC)

        assert totals[date(2024, 3, 4)].on_duty == timedelta(hours=3)
        assert totals[date(2024, 3, 4)].off_duty == timedelta(hours=7)


class TestDailyWindows:
    """Test daily totals and local day boundaries."""

    def test_scenario_a_drive_remaining(self, ledger, aggregator):
        entries = record(
            ledger,
            (at(4, 0), DutyStatus.OFF_DUTY),
            (at(4, 6), DutyStatus.DRIVING),
            (at(4, 12, 30), DutyStatus.OFF_DUTY),
        )

        totals = aggregator.aggregate(entries, at(4, 13), INTERSTATE_2020, UTC)

        assert totals.daily_drive.used == timedelta(hours=6, minutes=30)
        assert totals.daily_drive.remaining == timedelta(hours=4, minutes=30)
        assert not totals.daily_drive.exceeded
        assert totals.daily_drive.triggering_entry_id is None

    def test_segment_crossing_midnight_is_split(self, ledger, aggregator):
        entries = record(
            ledger,
            (at(4, 12), DutyStatus.OFF_DUTY),
            (at(4, 23, 50), DutyStatus.DRIVING),
            (at(5, 0, 10), DutyStatus.OFF_DUTY),
        )

        totals = aggregator.per_day_totals(entries, at(5, 1), UTC)

        assert totals[date(2024, 3, 4)].driving == timedelta(minutes=10)
        assert totals[date(2024, 3, 5)].driving == timedelta(minutes=10)
        assert aggregator.daily_drive(entries, at(5, 1), UTC) == timedelta(minutes=10)

    def test_local_day_boundary(self, ledger, aggregator):
        # 04:00-07:00 UTC straddles midnight in Chicago (UTC-6)
        entries = record(
            ledger,
            (at(4, 0), DutyStatus.OFF_DUTY),
            (at(4, 4), DutyStatus.ON_DUTY),
            (at(4, 7), DutyStatus.OFF_DUTY),
        )

        assert aggregator.daily_on_duty(entries, at(4, 8), CHICAGO) == timedelta(hours=1)
        assert aggregator.daily_on_duty(entries, at(4, 8), UTC) == timedelta(hours=3)

    def test_dst_day_has_23_hours(self, ledger, aggregator):
        entries = record(
            ledger,
            (datetime(2024, 3, 10, 6, 0, tzinfo=UTC), DutyStatus.OFF_DUTY),
            (datetime(2024, 3, 11, 5, 0, tzinfo=UTC), DutyStatus.ON_DUTY),
        )

        totals = aggregator.per_day_totals(
            entries, datetime(2024, 3, 11, 6, 0, tzinfo=UTC), CHICAGO
        )

        assert totals[date(2024, 3, 10)].off_duty == timedelta(hours=23)
        assert totals[date(2024, 3, 11)].on_duty_not_driving == timedelta(hours=1)

    def test_daily_on_duty_counts_driving(self, ledger, aggregator):
        entries = record(
            ledger,
            (at(4, 0), DutyStatus.OFF_DUTY),
            (at(4, 6), DutyStatus.ON_DUTY),
            (at(4, 7), DutyStatus.DRIVING),
            (at(4, 9), DutyStatus.SLEEPER_BERTH),
        )

        assert aggregator.daily_on_duty(entries, at(4, 10), UTC) == timedelta(hours=3)


class TestShiftAndCycle:
    """Test shift span and cycle totals."""

    def test_shift_starts_after_qualifying_rest(self, ledger, aggregator):
        entries = record(
            ledger,
            (at(3, 18), DutyStatus.OFF_DUTY),
            (at(4, 6), DutyStatus.ON_DUTY),
            (at(4, 7), DutyStatus.DRIVING),
        )

        assert aggregator.shift_span(entries, at(4, 13), INTERSTATE_2020) == timedelta(hours=7)

    def test_short_rest_does_not_reset_shift(self, ledger, aggregator):
        entries = record(
            ledger,
            (at(3, 18), DutyStatus.OFF_DUTY),
            (at(4, 6), DutyStatus.DRIVING),
            (at(4, 10), DutyStatus.OFF_DUTY),
            (at(4, 12), DutyStatus.DRIVING),
        )

        assert aggregator.shift_span(entries, at(4, 14), INTERSTATE_2020) == timedelta(hours=8)

    def test_no_shift_during_qualifying_rest(self, ledger, aggregator):
        entries = record(
            ledger,
            (at(3, 18), DutyStatus.OFF_DUTY),
            (at(4, 6), DutyStatus.DRIVING),
            (at(4, 12), DutyStatus.OFF_DUTY),
        )

        totals = aggregator.aggregate(entries, at(4, 23), INTERSTATE_2020, UTC)

        assert totals.shift.used == timedelta(0)
        assert totals.shift_started_at is None

    def test_shift_overrun_names_entry(self, ledger, aggregator):
        entries = record(
            ledger,
            (at(3, 18), DutyStatus.OFF_DUTY),
            (at(4, 6), DutyStatus.ON_DUTY),
            (at(4, 12), DutyStatus.OFF_DUTY),
            (at(4, 13), DutyStatus.ON_DUTY),
        )

        totals = aggregator.aggregate(entries, at(4, 21), INTERSTATE_2020, UTC)

        assert totals.shift.used == timedelta(hours=15)
        assert totals.shift.exceeded
        assert totals.shift.triggering_entry_id == entries[-1].id

    def test_cycle_sums_trailing_days(self, ledger, aggregator):
        entries = record(
            ledger,
            (at(1, 6), DutyStatus.ON_DUTY),
            (at(1, 18), DutyStatus.OFF_DUTY),
            (at(2, 14), DutyStatus.ON_DUTY),
        )

        used = aggregator.cycle_used(entries, at(2, 18), INTERSTATE_2020, UTC)

        assert used == timedelta(hours=16)

    def test_restart_resets_cycle(self, ledger, aggregator):
        entries = record(
            ledger,
            (at(1, 6), DutyStatus.ON_DUTY),
            (at(1, 18), DutyStatus.OFF_DUTY),
            (at(3, 6), DutyStatus.ON_DUTY),
        )

        used = aggregator.cycle_used(entries, at(3, 10), INTERSTATE_2020, UTC)

        assert used == timedelta(hours=4)

    def test_cycle_window_drops_old_days(self, ledger, aggregator):
        changes = []
        for day in range(1, 10):
            changes += [(at(day, 6), DutyStatus.ON_DUTY), (at(day, 18), DutyStatus.OFF_DUTY)]
        entries = record(ledger, *changes)

        totals = aggregator.aggregate(entries, at(9, 12), INTERSTATE_2020, UTC)

        # March 2nd through 8th in full plus six hours on the 9th
        assert totals.cycle.used == timedelta(hours=90)
        assert totals.cycle.exceeded
        crossing = next(e for e in entries if e.start_time == at(7, 6))
        assert totals.cycle.triggering_entry_id == crossing.id


class TestDrivingSinceBreak:
    """Test break tracking and rule set versions."""

    def _entries(self, ledger):
        return record(
            ledger,
            (at(3, 18), DutyStatus.OFF_DUTY),
            (at(4, 6), DutyStatus.DRIVING),
            (at(4, 10), DutyStatus.ON_DUTY),
            (at(4, 10, 30), DutyStatus.DRIVING),
        )

    def test_on_duty_break_counts_since_2020(self, ledger, aggregator):
        entries = self._entries(ledger)

        driven = aggregator.driving_since_break(entries, at(4, 12), INTERSTATE_2020)

        assert driven == timedelta(hours=1, minutes=30)

    def test_on_duty_break_did_not_count_before_2020(self, ledger, aggregator):
        entries = self._entries(ledger)

        driven = aggregator.driving_since_break(entries, at(4, 12), INTERSTATE_2013)

        assert driven == timedelta(hours=5, minutes=30)

    def test_break_window_reaches_trigger_inclusively(self, ledger, aggregator):
        entries = record(ledger, (at(3, 18), DutyStatus.OFF_DUTY), (at(4, 6), DutyStatus.DRIVING))

        totals = aggregator.aggregate(entries, at(4, 14), INTERSTATE_2020, UTC)

        assert totals.driving_since_break == timedelta(hours=8)
        assert totals.break_window.triggering_entry_id == entries[-1].id
        assert totals.break_escalated_entry_id is None
        assert totals.current_status == DutyStatus.DRIVING
