"""
Window Aggregator Service.

Computes the rolling Hours of Service totals for one driver from ledger
entries and the current instant:

- Daily drive and daily on-duty time (driver's local midnight to midnight)
- Shift span since the last qualifying rest
- 7/8-day cycle on-duty time, with restart
- Driving time since the last qualifying break

All calculations run over an effective timeline: edited entries replace the
originals they amend, open entries run until now, and nothing after now is
counted. Gaps between entries count as neither work nor rest.

Single Responsibility: Time window aggregation only.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone as dt_timezone
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from eld_logs.services.duty_status import (
    ON_DUTY_STATUSES,
    DutyStatus,
    DutyStatusEntry,
    local_day_bounds,
)

from .rule_set_registry import RuleSet

logger = logging.getLogger(__name__)

ZERO = timedelta(0)


def _utc(value: datetime) -> datetime:
    # Same-tzinfo subtraction ignores DST; keep every instant in UTC
    return value.astimezone(dt_timezone.utc)


@dataclass(frozen=True)
class Segment:
    """A stretch of the effective timeline with a single duty status."""

    status: DutyStatus
    start: datetime
    end: datetime
    entry_id: UUID

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def clipped(self, start: Optional[datetime], end: Optional[datetime]) -> Optional["Segment"]:
        new_start = max(self.start, start) if start is not None else self.start
        new_end = min(self.end, end) if end is not None else self.end
        if new_end <= new_start:
            return None
        return Segment(self.status, new_start, new_end, self.entry_id)


@dataclass(frozen=True)
class WindowUsage:
    """Time used against one limit and where the limit was first passed."""

    used: timedelta
    limit: timedelta
    triggering_entry_id: Optional[UUID] = None

    @property
    def remaining(self) -> timedelta:
        return max(ZERO, self.limit - self.used)

    @property
    def exceeded(self) -> bool:
        return self.used > self.limit


@dataclass(frozen=True)
class DayTotals:
    """Time per duty status within one local calendar day."""

    day: date
    off_duty: timedelta = ZERO
    sleeper_berth: timedelta = ZERO
    driving: timedelta = ZERO
    on_duty_not_driving: timedelta = ZERO

    @property
    def on_duty(self) -> timedelta:
        return self.driving + self.on_duty_not_driving


@dataclass(frozen=True)
class WindowTotals:
    """All rolling totals for a driver at one instant."""

    as_of: datetime
    daily_drive: WindowUsage
    daily_on_duty: WindowUsage
    shift: WindowUsage
    cycle: WindowUsage
    # used is driving since the last break, limit is the break trigger
    break_window: WindowUsage
    break_escalated_entry_id: Optional[UUID] = None
    shift_started_at: Optional[datetime] = None
    current_status: Optional[DutyStatus] = None
    current_entry_id: Optional[UUID] = None

    @property
    def driving_since_break(self) -> timedelta:
        return self.break_window.used


class WindowAggregatorService:
    """
    Service for aggregating duty status time into HOS windows.

    Stateless; every method takes the entries and "now" it works on.
    """

    def __init__(self):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def build_timeline(
        self,
        entries: Iterable[DutyStatusEntry],
        now: datetime,
        horizon_start: Optional[datetime] = None,
    ) -> List[Segment]:
        """
        Build the effective, non-overlapping timeline.

        Originals referenced by edited entries are dropped. Edited entries
        are laid over whatever they cover in sequence order, so a later edit
        wins over an earlier one. Open entries end at now.
        """
        now = _utc(now)
        horizon_start = _utc(horizon_start) if horizon_start is not None else None
        entries = list(entries)
        amended = {e.amends_entry_id for e in entries if e.amends_entry_id is not None}
        live = [e for e in entries if e.id not in amended]

        segments: List[Segment] = []
        for entry in sorted((e for e in live if not e.is_edited), key=lambda e: e.start_time):
            segment = self._to_segment(entry, now, horizon_start)
            if segment is not None:
                segments.append(segment)

        for edit in sorted((e for e in live if e.is_edited), key=lambda e: e.sequence):
            overlay = self._to_segment(edit, now, horizon_start)
            if overlay is None:
                continue
            segments = [
                piece
                for segment in segments
                for piece in self._subtract(segment, overlay.start, overlay.end)
            ]
            segments.append(overlay)

        segments.sort(key=lambda s: s.start)
        return segments

    def current_entry(
        self, entries: Iterable[DutyStatusEntry], now: datetime
    ) -> Optional[DutyStatusEntry]:
        """
        The entry in effect at now: started at or before it and not yet ended.

        Originals superseded by an edit never count. Where an edit overlaps
        another live entry the later sequence wins, as in the timeline.
        """
        now = _utc(now)
        entries = list(entries)
        amended = {e.amends_entry_id for e in entries if e.amends_entry_id is not None}
        covering = [
            e
            for e in entries
            if e.id not in amended
            and _utc(e.start_time) <= now
            and (e.end_time is None or _utc(e.end_time) > now)
        ]
        return max(covering, key=lambda e: e.sequence) if covering else None

    def daily_drive(self, entries, now: datetime, tz) -> timedelta:
        timeline = self.build_timeline(entries, now)
        return self._sum_in_day(timeline, now, tz, {DutyStatus.DRIVING})

    def daily_on_duty(self, entries, now: datetime, tz) -> timedelta:
        timeline = self.build_timeline(entries, now)
        return self._sum_in_day(timeline, now, tz, ON_DUTY_STATUSES)

    def per_day_totals(self, entries, now: datetime, tz) -> Dict[date, DayTotals]:
        """Split the timeline at local midnights and total each day."""
        totals: Dict[date, Dict[DutyStatus, timedelta]] = {}
        for segment in self.build_timeline(entries, now):
            for day, piece in self._split_by_day(segment, tz):
                day_totals = totals.setdefault(day, {})
                day_totals[piece.status] = day_totals.get(piece.status, ZERO) + piece.duration

        return {
            day: DayTotals(
                day=day,
                off_duty=by_status.get(DutyStatus.OFF_DUTY, ZERO),
                sleeper_berth=by_status.get(DutyStatus.SLEEPER_BERTH, ZERO),
                driving=by_status.get(DutyStatus.DRIVING, ZERO),
                on_duty_not_driving=by_status.get(DutyStatus.ON_DUTY, ZERO),
            )
            for day, by_status in sorted(totals.items())
        }

    def shift_span(self, entries, now: datetime, rule_set: RuleSet) -> timedelta:
        timeline = self.build_timeline(entries, now)
        shift_start = self._shift_start(timeline, _utc(now), rule_set)
        return _utc(now) - shift_start if shift_start is not None else ZERO

    def cycle_used(self, entries, now: datetime, rule_set: RuleSet, tz) -> timedelta:
        timeline = self.build_timeline(entries, now)
        cycle_start = self._cycle_start(timeline, _utc(now), rule_set, tz)
        return self._sum(timeline, ON_DUTY_STATUSES, cycle_start, _utc(now))

    def driving_since_break(self, entries, now: datetime, rule_set: RuleSet) -> timedelta:
        timeline = self.build_timeline(entries, now)
        break_end = self._last_break_end(timeline, rule_set)
        return self._sum(timeline, {DutyStatus.DRIVING}, break_end, _utc(now))

    def aggregate(
        self,
        entries: Iterable[DutyStatusEntry],
        now: datetime,
        rule_set: RuleSet,
        tz,
        horizon_start: Optional[datetime] = None,
    ) -> WindowTotals:
        """
        Compute every window for one driver at now.

        Args:
            entries: Effective ledger entries covering the horizon
            now: Instant of the calculation
            rule_set: Limits in force
            tz: Driver's home terminal time zone (day and cycle boundaries)
            horizon_start: Ignore time before this instant

        Returns:
            WindowTotals with, per window, the entry during which the limit
            was first exceeded
        """
        entries = list(entries)
        utc_now = _utc(now)
        timeline = self.build_timeline(entries, now, horizon_start)

        day_start = _utc(local_day_bounds(self._local_date(now, tz), tz)[0])
        driving = {DutyStatus.DRIVING}

        daily_drive = self._usage(timeline, driving, day_start, utc_now, rule_set.drive_limit)
        daily_on_duty = self._usage(
            timeline, ON_DUTY_STATUSES, day_start, utc_now, rule_set.on_duty_limit
        )

        shift_start = self._shift_start(timeline, utc_now, rule_set)
        if shift_start is None:
            shift = WindowUsage(ZERO, rule_set.shift_limit)
        else:
            used = utc_now - shift_start
            shift = WindowUsage(
                used,
                rule_set.shift_limit,
                self._entry_at(timeline, shift_start + rule_set.shift_limit)
                if used > rule_set.shift_limit
                else None,
            )

        cycle_start = self._cycle_start(timeline, utc_now, rule_set, tz)
        cycle = self._usage(timeline, ON_DUTY_STATUSES, cycle_start, utc_now, rule_set.cycle_limit)

        break_end = self._last_break_end(timeline, rule_set)
        break_used = self._sum(timeline, driving, break_end, utc_now)
        break_window = WindowUsage(
            break_used,
            rule_set.break_trigger_drive_time,
            self._first_crossing(
                timeline, driving, break_end, utc_now,
                rule_set.break_trigger_drive_time, inclusive=True,
            ),
        )
        escalated = self._first_crossing(
            timeline, driving, break_end, utc_now,
            rule_set.break_trigger_drive_time + rule_set.break_escalation_grace,
        )

        current = self.current_entry(entries, utc_now)

        totals = WindowTotals(
            as_of=now,
            daily_drive=daily_drive,
            daily_on_duty=daily_on_duty,
            shift=shift,
            cycle=cycle,
            break_window=break_window,
            break_escalated_entry_id=escalated,
            shift_started_at=shift_start,
            current_status=current.status if current else None,
            current_entry_id=current.id if current else None,
        )
        self.logger.debug(
            f"Aggregated {len(timeline)} segments: drive={daily_drive.used} "
            f"shift={shift.used} cycle={cycle.used}"
        )
        return totals

    # Timeline construction

    def _to_segment(self, entry, now, horizon_start) -> Optional[Segment]:
        end = _utc(entry.end_time) if entry.end_time is not None else now
        segment = Segment(entry.status, _utc(entry.start_time), end, entry.id)
        return segment.clipped(horizon_start, now)

    def _subtract(self, segment: Segment, start: datetime, end: datetime) -> List[Segment]:
        if end <= segment.start or start >= segment.end:
            return [segment]
        pieces = []
        if segment.start < start:
            pieces.append(Segment(segment.status, segment.start, start, segment.entry_id))
        if end < segment.end:
            pieces.append(Segment(segment.status, end, segment.end, segment.entry_id))
        return pieces

    # Windows

    def _local_date(self, instant: datetime, tz) -> date:
        return instant.astimezone(tz).date()

    def _split_by_day(self, segment: Segment, tz) -> Iterable[Tuple[date, Segment]]:
        cursor = segment.start
        while cursor < segment.end:
            day = self._local_date(cursor, tz)
            _, day_end = local_day_bounds(day, tz)
            piece_end = min(segment.end, _utc(day_end))
            yield day, Segment(segment.status, cursor, piece_end, segment.entry_id)
            cursor = piece_end

    def _sum_in_day(self, timeline, now, tz, statuses) -> timedelta:
        day_start, _ = local_day_bounds(self._local_date(now, tz), tz)
        return self._sum(timeline, statuses, _utc(day_start), _utc(now))

    def _rest_runs(self, timeline: List[Segment], statuses) -> List[Tuple[datetime, datetime]]:
        """Contiguous runs of the given statuses; a gap ends a run."""
        runs: List[Tuple[datetime, datetime]] = []
        run_start = run_end = None
        for segment in timeline:
            if segment.status in statuses:
                if run_end is not None and segment.start == run_end:
                    run_end = segment.end
                else:
                    if run_start is not None:
                        runs.append((run_start, run_end))
                    run_start, run_end = segment.start, segment.end
            elif run_start is not None:
                runs.append((run_start, run_end))
                run_start = run_end = None
        if run_start is not None:
            runs.append((run_start, run_end))
        return runs

    def _shift_start(self, timeline, now, rule_set: RuleSet) -> Optional[datetime]:
        """
        Start of the current shift, or None when no shift is running.

        The shift opens with the first on-duty segment after the latest
        qualifying rest. Without a qualifying rest in the timeline it opens
        at the earliest entry.
        """
        qualifying = [
            (start, end)
            for start, end in self._rest_runs(timeline, {DutyStatus.OFF_DUTY, DutyStatus.SLEEPER_BERTH})
            if end - start >= rule_set.min_off_duty_rest
        ]

        if qualifying:
            rest_end = qualifying[-1][1]
            if rest_end >= now:
                return None
            for segment in timeline:
                if segment.start >= rest_end and segment.status in ON_DUTY_STATUSES:
                    return segment.start
            return None

        if not any(s.status in ON_DUTY_STATUSES for s in timeline):
            return None
        return timeline[0].start

    def _cycle_start(self, timeline, now, rule_set: RuleSet, tz) -> datetime:
        """Start of the cycle window, moved forward past the latest restart."""
        first_day = self._local_date(now, tz) - timedelta(days=rule_set.cycle_window_days - 1)
        window_start, _ = local_day_bounds(first_day, tz)
        window_start = _utc(window_start)

        if rule_set.cycle_restart_duration is not None:
            restarts = [
                end
                for start, end in self._rest_runs(
                    timeline, {DutyStatus.OFF_DUTY, DutyStatus.SLEEPER_BERTH}
                )
                if end - start >= rule_set.cycle_restart_duration
            ]
            if restarts and restarts[-1] > window_start:
                return restarts[-1]
        return window_start

    def _last_break_end(self, timeline, rule_set: RuleSet) -> Optional[datetime]:
        breaks = [
            end
            for start, end in self._rest_runs(timeline, rule_set.break_qualifying_statuses)
            if end - start >= rule_set.required_break_duration
        ]
        return breaks[-1] if breaks else None

    # Summation

    def _sum(self, timeline, statuses, start, end) -> timedelta:
        total = ZERO
        for segment in timeline:
            if segment.status not in statuses:
                continue
            piece = segment.clipped(start, end)
            if piece is not None:
                total += piece.duration
        return total

    def _usage(self, timeline, statuses, start, end, limit) -> WindowUsage:
        return WindowUsage(
            self._sum(timeline, statuses, start, end),
            limit,
            self._first_crossing(timeline, statuses, start, end, limit),
        )

    def _first_crossing(
        self, timeline, statuses, start, end, limit, inclusive=False
    ) -> Optional[UUID]:
        """
        Entry during which accumulated time first passes limit.

        With inclusive=True reaching the limit exactly counts as passing it.
        """
        total = ZERO
        for segment in timeline:
            if segment.status not in statuses:
                continue
            piece = segment.clipped(start, end)
            if piece is None:
                continue
            total += piece.duration
            if total > limit or (inclusive and total == limit):
                return segment.entry_id
        return None

    def _entry_at(self, timeline, instant: datetime) -> Optional[UUID]:
        """Entry covering instant, or the next one after it."""
        for segment in timeline:
            if segment.end > instant:
                return segment.entry_id
        return timeline[-1].entry_id if timeline else None
