"""
Aggregation Engine — per-day and rolling statistics from the store.

Everything here is a pure read. Day boundaries follow the time zone in
Settings; sessions and usage records belong to the day they started on.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

import numpy as np

from focustracker.data.models import Session, UsageRecord
from focustracker.data.repository import Repository
from focustracker.services.tag_catalog import FALLBACK_COLOR
from focustracker.timeutil import DateLike, day_bounds, is_weekend, local_day, to_zone

logger = logging.getLogger(__name__)

TREND_DAYS = 7
COMPARISON_DAYS = 14
MAX_STREAK_DAYS = 30
PRODUCTIVE_TAG_RATIO = 0.3


@dataclass
class FocusStatistics:
    total_focus_time: float = 0.0
    session_count: int = 0
    longest_session: float = 0.0
    average_session: float = 0.0


@dataclass
class DailyFocusData:
    date: date
    total_focus_time: float
    session_count: int


@dataclass
class UsageStatistics:
    total_usage_time: float = 0.0
    activity_count: int = 0
    session_count: int = 0
    longest_session: float = 0.0
    average_session: float = 0.0
    most_used_activity: Optional[str] = None
    productive_time: float = 0.0
    productivity_ratio: float = 0.0


@dataclass
class ActivityUsage:
    activity_identifier: str
    activity_name: str
    total_time: float
    session_count: int
    average_session: float
    percentage: float


@dataclass
class TagDistribution:
    tag_name: str
    color: str
    total_time: float
    session_count: int
    percentage: float
    average_session: float


@dataclass
class TagTrend:
    date: date
    tag_name: str
    total_time: float
    session_count: int


@dataclass
class TagStatistics:
    total_usage_time: float = 0.0
    session_count: int = 0
    most_used_tag: Optional[str] = None
    tag_distribution: List[TagDistribution] = field(default_factory=list)


@dataclass
class TagShareChange:
    """Share of tagged time (percent) in a period and the one before it."""
    current: float
    previous: float
    change: float


@dataclass
class HourlyUsage:
    hour: int
    total_time: float
    session_count: int
    intensity: float


@dataclass
class WeekdayWeekendComparison:
    weekday_average: float
    weekend_average: float
    weekday_productivity: float
    weekend_productivity: float
    difference: float
    change_percent: float


class Aggregator:

    def __init__(self, repo: Repository) -> None:
        self.repo = repo

    def _tz(self):
        return self.repo.get_settings().tzinfo()

    def _today(self, tz) -> date:
        return datetime.now(tz).date()

    # ── Focus sessions ──────────────────────────────────────────────────────

    def valid_sessions(self, start: datetime, end: datetime) -> List[Session]:
        """Closed valid sessions starting in [start, end)."""
        sessions = self.repo.list_sessions(start_after=start, start_before=end, valid_only=True)
        for s in sessions:
            if s.duration < 0:
                logger.warning("Session %s has negative duration %.0fs; counting as 0.",
                               s.id, s.duration)
                s.duration = 0.0
        return sessions

    def daily_statistics(self, day: DateLike) -> FocusStatistics:
        start, end = day_bounds(day, self._tz())
        durations = np.array([s.duration for s in self.valid_sessions(start, end)], dtype=float)
        if durations.size == 0:
            return FocusStatistics()
        total = float(durations.sum())
        return FocusStatistics(
            total_focus_time=total,
            session_count=int(durations.size),
            longest_session=float(durations.max()),
            average_session=total / durations.size,
        )

    def daily_totals(self, first: date, last: date) -> Dict[date, List[float]]:
        """Valid session durations grouped by local day, first..last inclusive."""
        tz = self._tz()
        start, _ = day_bounds(first, tz)
        _, end = day_bounds(last, tz)
        grouped: Dict[date, List[float]] = defaultdict(list)
        for s in self.valid_sessions(start, end):
            grouped[local_day(s.start_time, tz)].append(s.duration)
        return grouped

    def rolling_trend(self, reference_date: Optional[DateLike] = None,
                      days: int = TREND_DAYS) -> List[DailyFocusData]:
        """Exactly `days` entries ending at the reference day, oldest first."""
        if days <= 0:
            return []
        tz = self._tz()
        ref = local_day(reference_date, tz) if reference_date is not None else self._today(tz)
        first = ref - timedelta(days=days - 1)
        grouped = self.daily_totals(first, ref)

        trend = []
        for offset in range(days):
            day = first + timedelta(days=offset)
            durations = grouped.get(day, [])
            trend.append(DailyFocusData(day, float(np.sum(durations)), len(durations)))
        return trend

    def current_streak(self, reference_date: Optional[DateLike] = None,
                       goal: Optional[float] = None,
                       max_days: int = MAX_STREAK_DAYS) -> int:
        """Consecutive days ending at the reference day that reached the goal."""
        tz = self._tz()
        ref = local_day(reference_date, tz) if reference_date is not None else self._today(tz)
        if goal is None:
            goal = self.repo.get_settings().daily_focus_goal
        grouped = self.daily_totals(ref - timedelta(days=max_days - 1), ref)

        streak = 0
        for offset in range(max_days):
            day = ref - timedelta(days=offset)
            if sum(grouped.get(day, [])) >= goal:
                streak += 1
            else:
                break
        return streak

    def day_over_day_decline(self, reference_date: Optional[DateLike] = None) -> float:
        """Fractional drop from yesterday to the reference day (0 if none)."""
        tz = self._tz()
        ref = local_day(reference_date, tz) if reference_date is not None else self._today(tz)
        grouped = self.daily_totals(ref - timedelta(days=1), ref)
        today = sum(grouped.get(ref, []))
        yesterday = sum(grouped.get(ref - timedelta(days=1), []))
        if yesterday <= 0 or today >= yesterday:
            return 0.0
        return (yesterday - today) / yesterday

    # ── Usage records ───────────────────────────────────────────────────────

    def _usage_for(self, day: DateLike, tagged_only: bool = False) -> List[UsageRecord]:
        return self._usage_between(day, day, tagged_only)

    def _usage_between(self, first: DateLike, last: DateLike,
                       tagged_only: bool = False) -> List[UsageRecord]:
        """Closed usage records starting on the local days first..last inclusive."""
        tz = self._tz()
        start, _ = day_bounds(first, tz)
        _, end = day_bounds(last, tz)
        records = self.repo.list_usage_records(
            start_after=start, start_before=end, tagged_only=tagged_only
        )
        closed = []
        for r in records:
            if r.end_time is None:
                continue
            if r.duration < 0:
                logger.warning("Usage record %s has negative duration; counting as 0.", r.id)
                r.duration = 0.0
            closed.append(r)
        return closed

    def usage_statistics(self, day: DateLike) -> UsageStatistics:
        records = self._usage_for(day)
        if not records:
            return UsageStatistics()

        durations = np.array([r.duration for r in records], dtype=float)
        total = float(durations.sum())
        productive = float(sum(r.duration for r in records if r.is_productive_time))

        per_activity: Dict[str, float] = defaultdict(float)
        for r in records:
            per_activity[r.activity_identifier] += r.duration
        most_used = min(per_activity, key=lambda k: (-per_activity[k], k))

        return UsageStatistics(
            total_usage_time=total,
            activity_count=len(per_activity),
            session_count=len(records),
            longest_session=float(durations.max()),
            average_session=float(durations.mean()),
            most_used_activity=most_used,
            productive_time=productive,
            productivity_ratio=productive / total if total > 0 else 0.0,
        )

    def activity_breakdown(self, day: DateLike) -> List[ActivityUsage]:
        records = self._usage_for(day)
        total = sum(r.duration for r in records)
        groups: Dict[str, List[UsageRecord]] = defaultdict(list)
        for r in records:
            groups[r.activity_identifier].append(r)

        breakdown = []
        for ident, items in groups.items():
            time_spent = float(sum(r.duration for r in items))
            breakdown.append(ActivityUsage(
                activity_identifier=ident,
                activity_name=items[-1].activity_name or ident,
                total_time=time_spent,
                session_count=len(items),
                average_session=time_spent / len(items),
                percentage=(time_spent / total * 100) if total > 0 else 0.0,
            ))
        breakdown.sort(key=lambda a: (-a.total_time, a.activity_identifier))
        return breakdown

    def tag_distribution(self, day: DateLike) -> List[TagDistribution]:
        """Time per scene tag. Untagged usage is left out."""
        return self._distribution(self._usage_for(day, tagged_only=True))

    def _distribution(self, records: List[UsageRecord]) -> List[TagDistribution]:
        total = sum(r.duration for r in records)
        colors = {t.name: t.color for t in self.repo.list_tags()}
        groups: Dict[str, List[float]] = defaultdict(list)
        for r in records:
            groups[r.scene_tag].append(r.duration)

        result = []
        for name, durations in groups.items():
            tag_time = float(np.sum(durations))
            result.append(TagDistribution(
                tag_name=name,
                color=colors.get(name, FALLBACK_COLOR),
                total_time=tag_time,
                session_count=len(durations),
                percentage=(tag_time / total * 100) if total > 0 else 0.0,
                average_session=tag_time / len(durations),
            ))
        result.sort(key=lambda d: (-d.total_time, d.tag_name))
        return result

    def tag_statistics(self, start: DateLike, end: DateLike) -> TagStatistics:
        """Tagged usage over the local days start..end inclusive."""
        distribution = self._distribution(self._usage_between(start, end, tagged_only=True))
        if not distribution:
            return TagStatistics()
        return TagStatistics(
            total_usage_time=float(sum(d.total_time for d in distribution)),
            session_count=sum(d.session_count for d in distribution),
            most_used_tag=distribution[0].tag_name,
            tag_distribution=distribution,
        )

    def tag_share_changes(self, start: DateLike, end: DateLike) -> Dict[str, TagShareChange]:
        """Each tag's share of tagged time against the previous period of equal length."""
        tz = self._tz()
        first, last = local_day(start, tz), local_day(end, tz)
        length = (last - first).days + 1
        current = {
            d.tag_name: d.percentage
            for d in self.tag_statistics(first, last).tag_distribution
        }
        previous = {
            d.tag_name: d.percentage
            for d in self.tag_statistics(first - timedelta(days=length),
                                         first - timedelta(days=1)).tag_distribution
        }
        changes = {}
        for name in sorted(set(current) | set(previous)):
            now, before = current.get(name, 0.0), previous.get(name, 0.0)
            changes[name] = TagShareChange(now, before, now - before)
        return changes

    def most_productive_tags(self, start: DateLike, end: DateLike,
                             limit: int = 5) -> List[TagDistribution]:
        """Tags whose productive share exceeds PRODUCTIVE_TAG_RATIO.

        `percentage` holds the productive share (0-100) rather than the
        share of total time.
        """
        colors = {t.name: t.color for t in self.repo.list_tags()}
        totals: Dict[str, float] = defaultdict(float)
        productive: Dict[str, float] = defaultdict(float)
        counts: Dict[str, int] = defaultdict(int)
        for r in self._usage_between(start, end, tagged_only=True):
            totals[r.scene_tag] += r.duration
            counts[r.scene_tag] += 1
            if r.is_productive_time:
                productive[r.scene_tag] += r.duration

        result = []
        for name, tag_time in totals.items():
            ratio = productive[name] / tag_time if tag_time > 0 else 0.0
            if ratio <= PRODUCTIVE_TAG_RATIO:
                continue
            result.append(TagDistribution(
                tag_name=name,
                color=colors.get(name, FALLBACK_COLOR),
                total_time=tag_time,
                session_count=counts[name],
                percentage=ratio * 100,
                average_session=tag_time / counts[name],
            ))
        result.sort(key=lambda d: (-d.percentage, d.tag_name))
        return result[:limit]

    def total_focus_time(self) -> float:
        """All-time valid focus, in seconds."""
        return self.repo.total_valid_focus_time()

    def tag_trends(self, start: DateLike, end: DateLike) -> List[TagTrend]:
        """Per-day, per-tag usage for the local days start..end inclusive."""
        tz = self._tz()
        range_start, _ = day_bounds(start, tz)
        _, range_end = day_bounds(end, tz)
        records = self.repo.list_usage_records(
            start_after=range_start, start_before=range_end, tagged_only=True
        )
        buckets: Dict[tuple, List[float]] = defaultdict(list)
        for r in records:
            if r.end_time is None:
                continue
            buckets[(local_day(r.start_time, tz), r.scene_tag)].append(max(0.0, r.duration))

        trends = [
            TagTrend(day, name, float(sum(durations)), len(durations))
            for (day, name), durations in buckets.items()
        ]
        trends.sort(key=lambda t: (t.date, t.tag_name))
        return trends

    def hourly_distribution(self, day: DateLike) -> List[HourlyUsage]:
        tz = self._tz()
        totals = np.zeros(24)
        counts = np.zeros(24, dtype=int)
        for r in self._usage_for(day):
            hour = to_zone(r.start_time, tz).hour
            totals[hour] += r.duration
            counts[hour] += 1

        peak = totals.max()
        intensity = totals / peak if peak > 0 else np.zeros(24)
        return [
            HourlyUsage(hour, float(totals[h]), int(counts[h]), float(intensity[h]))
            for h in range(24)
        ]

    def weekday_weekend_comparison(self, reference_date: Optional[DateLike] = None,
                                   days: int = COMPARISON_DAYS) -> WeekdayWeekendComparison:
        tz = self._tz()
        ref = local_day(reference_date, tz) if reference_date is not None else self._today(tz)

        weekday_totals: List[float] = []
        weekend_totals: List[float] = []
        weekday_productive: List[float] = []
        weekend_productive: List[float] = []
        for offset in range(days):
            day = ref - timedelta(days=offset)
            stats = self.usage_statistics(day)
            if is_weekend(day):
                weekend_totals.append(stats.total_usage_time)
                weekend_productive.append(stats.productive_time)
            else:
                weekday_totals.append(stats.total_usage_time)
                weekday_productive.append(stats.productive_time)

        weekday_avg = float(np.mean(weekday_totals)) if weekday_totals else 0.0
        weekend_avg = float(np.mean(weekend_totals)) if weekend_totals else 0.0
        weekday_prod = float(np.mean(weekday_productive)) if weekday_productive else 0.0
        weekend_prod = float(np.mean(weekend_productive)) if weekend_productive else 0.0

        difference = weekend_avg - weekday_avg
        return WeekdayWeekendComparison(
            weekday_average=weekday_avg,
            weekend_average=weekend_avg,
            weekday_productivity=weekday_prod / weekday_avg if weekday_avg > 0 else 0.0,
            weekend_productivity=weekend_prod / weekend_avg if weekend_avg > 0 else 0.0,
            difference=difference,
            change_percent=(difference / weekday_avg * 100) if weekday_avg > 0 else 0.0,
        )


# ---------------------------------------------------------------------------
# Explanation
# ---------------------------------------------------------------------------
# What this file does:
#   Turns stored sessions and usage records into the numbers the
#   presentation layer shows: daily totals, the weekly trend, streaks,
#   usage breakdowns, tag distributions and tag statistics over a period.
#
# Key pieces:
#   - Only is_valid sessions count toward focus statistics.
#   - rolling_trend() is always exactly `days` long and zero-filled.
#   - tag_share_changes() compares against the period of equal length just
#     before it; tags seen in only one of the two get 0 for the other.
#   - Corrupted rows are clamped (negative duration -> 0) and logged,
#     never raised.
#
# Data flow:
#   Repository range query -> group by local day / activity / tag -> numpy
#   sums and means -> dataclass results
