"""
Quality & Interruption Analyzer — how good a day's focus was, not just how
much of it there was.

Valid sessions are bucketed by depth, gaps between them are treated as
interruptions, and a 0–100 quality score combines the two.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from focustracker.data.models import Session
from focustracker.data.repository import Repository
from focustracker.timeutil import DateLike, day_bounds, local_day, to_zone

from .aggregator import Aggregator

logger = logging.getLogger(__name__)

# Depth buckets (seconds)
DEEP_FOCUS_SECONDS = 45 * 60
MEDIUM_FOCUS_SECONDS = 15 * 60

# Sessions closer than this are one streak, not an interruption
CONTIGUOUS_GAP_SECONDS = 5 * 60
RECOVERY_WINDOW_SECONDS = 2 * 3600

SHORT_INTERRUPTION_SECONDS = 10 * 60
MEDIUM_INTERRUPTION_SECONDS = 30 * 60

# Score weights
DEEP_WEIGHT = 0.8
MEDIUM_WEIGHT = 0.4
PENALTY_PER_INTERRUPTION = 5
MAX_INTERRUPTION_PENALTY = 30

# Time-of-day slots: [start_hour, end_hour)
TIME_SLOTS = {
    "morning": (6, 12),
    "afternoon": (12, 18),
    "evening": (18, 22),
}
RANKED_HOURS = 3


@dataclass
class FocusQualityMetrics:
    deep_focus_time: float = 0.0
    medium_focus_time: float = 0.0
    fragmented_time: float = 0.0
    interruption_count: int = 0
    longest_streak: float = 0.0
    focus_quality_score: float = 0.0
    average_recovery_time: float = 0.0


@dataclass
class InterruptionAnalysis:
    total_interruptions: int = 0
    recovery_rate: float = 0.0
    most_common_hour: Optional[int] = None
    by_type: Dict[str, int] = field(default_factory=dict)
    average_interruption_duration: float = 0.0


@dataclass
class FocusTimeSlotAnalysis:
    morning_score: float = 0.0
    afternoon_score: float = 0.0
    evening_score: float = 0.0
    best_hours: List[int] = field(default_factory=list)
    worst_hours: List[int] = field(default_factory=list)


@dataclass(frozen=True)
class Interruption:
    """The gap between one valid session ending and the next one starting."""
    session_end: datetime
    gap: float

    @property
    def kind(self) -> str:
        return interruption_type(self.gap)

    @property
    def recovered(self) -> bool:
        return self.gap <= RECOVERY_WINDOW_SECONDS


# ── Pure scoring functions ──────────────────────────────────────────────────

def bucket_durations(durations: Sequence[float]) -> Tuple[float, float, float]:
    """(deep, medium, fragmented) seconds."""
    arr = np.asarray(durations, dtype=float)
    if arr.size == 0:
        return 0.0, 0.0, 0.0
    deep = float(arr[arr >= DEEP_FOCUS_SECONDS].sum())
    medium = float(arr[(arr >= MEDIUM_FOCUS_SECONDS) & (arr < DEEP_FOCUS_SECONDS)].sum())
    fragmented = float(arr[arr < MEDIUM_FOCUS_SECONDS].sum())
    return deep, medium, fragmented


def quality_score(deep: float, medium: float, fragmented: float, interruptions: int) -> float:
    """
    0–100. Adding deep time never lowers the score; adding interruptions
    never raises it.
    """
    total = deep + medium + fragmented
    if total <= 0:
        return 0.0
    base = 100.0 * (DEEP_WEIGHT * deep / total + MEDIUM_WEIGHT * medium / total)
    penalty = min(interruptions * PENALTY_PER_INTERRUPTION, MAX_INTERRUPTION_PENALTY)
    return float(np.clip(base - penalty, 0.0, 100.0))


def interruption_type(gap: float) -> str:
    if gap < SHORT_INTERRUPTION_SECONDS:
        return "short"
    if gap < MEDIUM_INTERRUPTION_SECONDS:
        return "medium"
    return "long"


def find_interruptions(sessions: Sequence[Session]) -> List[Interruption]:
    """Gaps longer than CONTIGUOUS_GAP_SECONDS between consecutive sessions."""
    ordered = sorted(sessions, key=lambda s: s.start_time)
    found = []
    for prev, nxt in zip(ordered, ordered[1:]):
        prev_end = prev.end_time or prev.start_time
        gap = (nxt.start_time - prev_end).total_seconds()
        if gap > CONTIGUOUS_GAP_SECONDS:
            found.append(Interruption(prev_end, gap))
    return found


def longest_streak(sessions: Sequence[Session]) -> float:
    """Span in seconds of the longest run of contiguous sessions."""
    ordered = sorted(sessions, key=lambda s: s.start_time)
    if not ordered:
        return 0.0
    best = 0.0
    run_start = ordered[0].start_time
    run_end = ordered[0].end_time or ordered[0].start_time
    for s in ordered[1:]:
        end = s.end_time or s.start_time
        if (s.start_time - run_end).total_seconds() <= CONTIGUOUS_GAP_SECONDS:
            run_end = max(run_end, end)
            continue
        best = max(best, (run_end - run_start).total_seconds())
        run_start, run_end = s.start_time, end
    return max(best, (run_end - run_start).total_seconds())


# ── Analyzer ────────────────────────────────────────────────────────────────

class QualityAnalyzer:

    def __init__(self, repo: Repository, aggregator: Optional[Aggregator] = None) -> None:
        self.repo = repo
        self.aggregator = aggregator or Aggregator(repo)

    def _sessions_for(self, day: DateLike) -> List[Session]:
        start, end = day_bounds(day, self.repo.get_settings().tzinfo())
        return self.aggregator.valid_sessions(start, end)

    def quality_metrics(self, day: DateLike) -> FocusQualityMetrics:
        sessions = self._sessions_for(day)
        if not sessions:
            return FocusQualityMetrics()

        deep, medium, fragmented = bucket_durations([s.duration for s in sessions])
        interruptions = find_interruptions(sessions)
        recovered = [i.gap for i in interruptions if i.recovered]
        return FocusQualityMetrics(
            deep_focus_time=deep,
            medium_focus_time=medium,
            fragmented_time=fragmented,
            interruption_count=len(interruptions),
            longest_streak=longest_streak(sessions),
            focus_quality_score=quality_score(deep, medium, fragmented, len(interruptions)),
            average_recovery_time=float(np.mean(recovered)) if recovered else 0.0,
        )

    def interruption_analysis(self, day: DateLike) -> InterruptionAnalysis:
        tz = self.repo.get_settings().tzinfo()
        interruptions = find_interruptions(self._sessions_for(day))
        if not interruptions:
            return InterruptionAnalysis()

        hours = Counter(to_zone(i.session_end, tz).hour for i in interruptions)
        most_common = min(hours, key=lambda h: (-hours[h], h))
        recovered = sum(1 for i in interruptions if i.recovered)
        return InterruptionAnalysis(
            total_interruptions=len(interruptions),
            recovery_rate=recovered / len(interruptions),
            most_common_hour=most_common,
            by_type=dict(Counter(i.kind for i in interruptions)),
            average_interruption_duration=float(np.mean([i.gap for i in interruptions])),
        )

    def time_slot_analysis(self, start: DateLike, end: DateLike) -> FocusTimeSlotAnalysis:
        """Slot scores and ranked hours over the local days start..end inclusive."""
        tz = self.repo.get_settings().tzinfo()
        first, last = local_day(start, tz), local_day(end, tz)
        if last < first:
            return FocusTimeSlotAnalysis()

        slot_sessions: Dict[str, List[List[Session]]] = {name: [] for name in TIME_SLOTS}
        hourly = np.zeros(24)
        day = first
        while day <= last:
            sessions = self._sessions_for(day)
            for s in sessions:
                hourly[to_zone(s.start_time, tz).hour] += s.duration
            for name, (lo, hi) in TIME_SLOTS.items():
                in_slot = [s for s in sessions if lo <= to_zone(s.start_time, tz).hour < hi]
                slot_sessions[name].append(in_slot)
            day += timedelta(days=1)

        scores = {name: self._slot_score(days) for name, days in slot_sessions.items()}

        active = [h for h in range(24) if hourly[h] > 0]
        best = sorted(active, key=lambda h: (-hourly[h], h))[:RANKED_HOURS]
        worst = sorted(active, key=lambda h: (hourly[h], h))[:RANKED_HOURS]
        return FocusTimeSlotAnalysis(
            morning_score=scores["morning"],
            afternoon_score=scores["afternoon"],
            evening_score=scores["evening"],
            best_hours=best,
            worst_hours=worst,
        )

    @staticmethod
    def _slot_score(days: List[List[Session]]) -> float:
        """Same scoring function, with interruptions counted within each day."""
        all_sessions = [s for sessions in days for s in sessions]
        if not all_sessions:
            return 0.0
        deep, medium, fragmented = bucket_durations([s.duration for s in all_sessions])
        interruptions = sum(len(find_interruptions(sessions)) for sessions in days)
        return quality_score(deep, medium, fragmented, interruptions)


# ---------------------------------------------------------------------------
# Explanation
# ---------------------------------------------------------------------------
# What this file does:
#   Scores the depth of a day's focus and describes the interruptions
#   between sessions.
#
# Key pieces:
#   - bucket_durations(): deep (>= 45 min), medium (>= 15 min), fragmented.
#   - find_interruptions(): a gap longer than 5 minutes between consecutive
#     valid sessions. Shorter gaps merge the sessions into one streak.
#   - quality_score(): 100 * (0.8 * deep ratio + 0.4 * medium ratio) minus
#     5 points per interruption (at most 30), clamped to 0-100.
#   - An interruption counts as recovered when the next session starts
#     within RECOVERY_WINDOW_SECONDS.
#
# Data flow:
#   Aggregator.valid_sessions() -> buckets / gaps -> dataclass results
