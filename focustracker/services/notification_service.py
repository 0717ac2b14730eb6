"""
Notification Service — periodic check-ins on goal, streak, decline and
all-time focus milestones.

This service runs a timer that re-evaluates today's focus numbers and
calls the injected callbacks when something is worth telling the user.
Wording and delivery belong to whoever receives the callbacks.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

from PySide6.QtCore import QTimer

from focustracker.analytics.aggregator import Aggregator
from focustracker.data.models import Session
from focustracker.data.repository import Repository
from focustracker.timeutil import local_day

logger = logging.getLogger(__name__)

DEFAULT_CHECK_INTERVAL = 15  # minutes
STREAK_MILESTONES = (3, 7, 14, 30)
DECLINE_WARNING_RATIO = 0.3
# All-time valid focus, in hours
FOCUS_HOUR_MILESTONES = (10, 25, 50, 100, 200, 500, 1000)

GOAL = "goal"
STREAK = "streak"
DECLINE = "decline"
MILESTONE = "milestone"


def goal_just_reached(total: float, last_session: float, goal: float) -> bool:
    """True when the session that just finished carried the day over the goal."""
    if goal <= 0:
        return False
    return total >= goal and total - last_session < goal


def is_streak_milestone(days: int) -> bool:
    return days in STREAK_MILESTONES or (days > 0 and days % 30 == 0)


def should_warn_decline(decline: float) -> bool:
    return decline >= DECLINE_WARNING_RATIO


def next_focus_milestone(total_hours: float, notified: Iterable[int]) -> Optional[int]:
    """Smallest milestone already reached that has not been announced yet."""
    done = set(notified)
    for hours in FOCUS_HOUR_MILESTONES:
        if total_hours >= hours and hours not in done:
            return hours
    return None


class NotificationService:
    """
    Fires each kind of notification at most once per local day.

    Uses a QTimer so callbacks run on the Qt event loop.
    """

    def __init__(
        self,
        repo: Repository,
        aggregator: Optional[Aggregator] = None,
        on_goal_achieved: Optional[Callable[[float, float], None]] = None,
        on_streak: Optional[Callable[[int], None]] = None,
        on_decline: Optional[Callable[[float], None]] = None,
        on_milestone: Optional[Callable[[int], None]] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.repo = repo
        self.aggregator = aggregator or Aggregator(repo)
        self.clock = clock

        # Callbacks the caller will set
        self.on_goal_achieved = on_goal_achieved
        self.on_streak = on_streak
        self.on_decline = on_decline
        self.on_milestone = on_milestone

        self.check_interval = DEFAULT_CHECK_INTERVAL
        self._fired: Dict[str, date] = {}

        self._timer = QTimer()
        self._timer.timeout.connect(self.check_in)

    # ── Public API ──────────────────────────────────────────────────────────

    def start(self, interval_min: Optional[float] = None) -> None:
        if interval_min is not None:
            self.check_interval = interval_min
        self._timer.start(int(self.check_interval * 60 * 1000))
        logger.info("Notification check-ins started: every %.0f min", self.check_interval)

    def stop(self) -> None:
        self._timer.stop()

    def is_running(self) -> bool:
        return self._timer.isActive()

    def session_recorded(self, session: Session) -> None:
        """Hook for FocusService.on_session_recorded: goal check right away."""
        settings = self.repo.get_settings()
        if not settings.notifications_enabled:
            return
        today = local_day(session.start_time, settings.tzinfo())
        total = self.aggregator.daily_statistics(today).total_focus_time
        if goal_just_reached(total, session.duration, settings.daily_focus_goal):
            self._fire(GOAL, today, lambda: self._call(self.on_goal_achieved, total,
                                                        settings.daily_focus_goal))

    # ── Timer callback ──────────────────────────────────────────────────────

    def check_in(self, now: Optional[datetime] = None) -> List[str]:
        """Evaluate all checks. Returns the kinds that fired."""
        settings = self.repo.get_settings()
        if not settings.notifications_enabled:
            return []
        today = local_day(now or self.clock(), settings.tzinfo())
        goal = settings.daily_focus_goal
        fired: List[str] = []

        total = self.aggregator.daily_statistics(today).total_focus_time
        if total > 0 and total >= goal:
            if self._fire(GOAL, today, lambda: self._call(self.on_goal_achieved, total, goal)):
                fired.append(GOAL)

        streak = self.aggregator.current_streak(today, goal)
        if is_streak_milestone(streak):
            if self._fire(STREAK, today, lambda: self._call(self.on_streak, streak)):
                fired.append(STREAK)

        decline = self.aggregator.day_over_day_decline(today)
        if total > 0 and should_warn_decline(decline):
            if self._fire(DECLINE, today, lambda: self._call(self.on_decline, decline)):
                fired.append(DECLINE)

        milestone = next_focus_milestone(self.aggregator.total_focus_time() / 3600,
                                         self.repo.notified_milestones())
        if milestone is not None:
            # Persisted, so each milestone goes out once per installation
            self.repo.mark_milestone_notified(milestone, now or self.clock())
            logger.info("Focus milestone reached: %d hours", milestone)
            self._call(self.on_milestone, milestone)
            fired.append(MILESTONE)

        return fired

    # ── Helpers ─────────────────────────────────────────────────────────────

    def _fire(self, kind: str, today: date, send: Callable[[], None]) -> bool:
        if self._fired.get(kind) == today:
            return False
        self._fired[kind] = today
        logger.info("Notification '%s' triggered for %s", kind, today)
        send()
        return True

    @staticmethod
    def _call(callback: Optional[Callable], *args) -> None:
        if callback:
            callback(*args)


# ---------------------------------------------------------------------------
# Explanation
# ---------------------------------------------------------------------------
# What this file does:
#   Every DEFAULT_CHECK_INTERVAL minutes, looks at today's focus total, the
#   goal streak and the drop since yesterday, and calls back when one of
#   them is noteworthy.
#
# Key pieces:
#   - goal_just_reached / is_streak_milestone / should_warn_decline are plain
#     functions so the rules can be tested without a timer.
#   - _fired remembers the last day each kind went out: once per day each.
#   - Focus-hour milestones are stored in the database instead, at most one
#     per check-in, and never repeat.
#   - Nothing happens while Settings.notifications_enabled is False.
#
# Data flow:
#   QTimer fires -> check_in() -> Aggregator -> callback(s)
