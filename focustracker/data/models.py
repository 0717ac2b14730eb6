"""
Data models for FocusTracker.

Plain dataclasses that mirror database rows, plus the small amount of
behaviour that belongs to a single record (closing a session, window
checks on Settings). Every other layer speaks in these types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Optional, Set, Tuple

from focustracker.errors import ValidationError
from focustracker.timeutil import is_weekend, localize, minutes_of_day, to_zone

# Usage shorter than this never counts as productive time.
MIN_PRODUCTIVE_SECONDS = 5 * 60

PRODUCTIVE_TAGS = frozenset({"Work", "Study"})
PRODUCTIVE_CATEGORIES = frozenset(
    {"productivity", "education", "business", "developer", "reference"}
)

# Settings fields holding a time of day
CLOCK_FIELDS = ("sleep_start", "sleep_end", "lunch_start", "lunch_end")


@dataclass(frozen=True)
class Interval:
    """A candidate span of inactivity, not yet validated."""
    start: datetime
    end: datetime

    @property
    def duration(self) -> float:
        return (self.end - self.start).total_seconds()


@dataclass
class Session:
    """One detected (or manually started) focus interval."""
    id: Optional[int] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: float = 0.0
    is_valid: bool = False
    session_type: str = "focus"
    # Only filled in for manual sessions
    activity_label: Optional[str] = None
    category: Optional[str] = None
    target_duration: Optional[float] = None
    notes: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    def end_session(self, at: datetime) -> bool:
        """Close the session. Returns False (and changes nothing) if already closed."""
        if self.end_time is not None:
            return False
        end = at if at >= self.start_time else self.start_time
        self.end_time = end
        self.duration = (end - self.start_time).total_seconds()
        return True

    def as_interval(self) -> Interval:
        return Interval(self.start_time, self.end_time or self.start_time)


@dataclass
class UsageRecord:
    """One interval of measured activity on a named external activity ("app")."""
    id: Optional[int] = None
    activity_identifier: str = ""
    activity_name: str = ""
    category_hint: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: float = 0.0
    scene_tag: Optional[str] = None
    is_productive_time: bool = False
    interruption_count: int = 0

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    def close(self, at: datetime) -> bool:
        if self.end_time is not None:
            return False
        end = at if at >= self.start_time else self.start_time
        self.end_time = end
        self.duration = (end - self.start_time).total_seconds()
        self.update_productivity_status()
        return True

    def record_interruption(self) -> None:
        self.interruption_count += 1

    def evaluate_productivity(self) -> bool:
        flagged = (
            (self.scene_tag is not None and self.scene_tag in PRODUCTIVE_TAGS)
            or (self.category_hint is not None and self.category_hint in PRODUCTIVE_CATEGORIES)
        )
        return flagged and self.duration >= MIN_PRODUCTIVE_SECONDS

    def update_productivity_status(self) -> None:
        self.is_productive_time = self.evaluate_productivity()


@dataclass
class Tag:
    """A user-visible category applied to usage records."""
    id: Optional[int] = None
    name: str = ""
    color: str = "#007AFF"
    is_default: bool = False
    usage_count: int = 0
    associated_activities: Set[str] = field(default_factory=set)
    created_at: Optional[datetime] = None

    def add_activity(self, activity_identifier: str) -> bool:
        if activity_identifier in self.associated_activities:
            return False
        self.associated_activities.add(activity_identifier)
        return True

    def remove_activity(self, activity_identifier: str) -> bool:
        if activity_identifier not in self.associated_activities:
            return False
        self.associated_activities.discard(activity_identifier)
        return True

    def has_activity(self, activity_identifier: str) -> bool:
        return activity_identifier in self.associated_activities

    def increment_usage(self) -> None:
        self.usage_count += 1


@dataclass
class Settings:
    """User preferences. Exactly one row exists per installation."""
    daily_focus_goal: float = 2 * 3600
    daily_usage_goal: float = 4 * 3600
    sleep_start: time = time(23, 0)
    sleep_end: time = time(7, 0)
    lunch_enabled: bool = False
    lunch_start: time = time(12, 0)
    lunch_end: time = time(14, 0)
    flexible_weekend_sleep: bool = False
    use_local_time_zone: bool = True
    time_zone_offset_hours: float = 0.0
    notifications_enabled: bool = True

    # -- time zone -----------------------------------------------------------

    def tzinfo(self) -> Optional[tzinfo]:
        """Fixed offset zone, or None for the system zone (resolved per moment)."""
        if self.use_local_time_zone:
            return None
        return timezone(timedelta(hours=self.time_zone_offset_hours))

    # -- validity ------------------------------------------------------------

    def validate(self) -> None:
        for name in CLOCK_FIELDS:
            if not isinstance(getattr(self, name), time):
                raise ValidationError(f"{name} must be a time of day, got {getattr(self, name)!r}.")
        if self.daily_focus_goal < 0 or self.daily_usage_goal < 0:
            raise ValidationError("Daily goals must be non-negative.")
        if not -12 <= self.time_zone_offset_hours <= 14:
            raise ValidationError(
                f"Time zone offset {self.time_zone_offset_hours} is out of range."
            )

    def is_valid(self) -> bool:
        try:
            self.validate()
        except ValidationError:
            return False
        return True

    @property
    def sleep_duration_hours(self) -> float:
        minutes = minutes_of_day(self.sleep_end) - minutes_of_day(self.sleep_start)
        if minutes < 0:
            minutes += 24 * 60
        return minutes / 60.0

    # -- point checks (inclusive bounds) -------------------------------------

    def is_within_sleep_time(self, moment: datetime) -> bool:
        current = minutes_of_day(to_zone(moment, self.tzinfo()))
        start = minutes_of_day(self.sleep_start)
        end = minutes_of_day(self.sleep_end)
        if start <= end:
            return start <= current <= end
        return current >= start or current <= end

    def is_within_lunch_break(self, moment: datetime) -> bool:
        if not self.lunch_enabled:
            return False
        current = minutes_of_day(to_zone(moment, self.tzinfo()))
        return minutes_of_day(self.lunch_start) <= current <= minutes_of_day(self.lunch_end)

    # -- full-containment checks used by the validator -----------------------

    def sleep_window_contains(self, start: datetime, end: datetime) -> bool:
        tz = self.tzinfo()
        if self.flexible_weekend_sleep and is_weekend(to_zone(start, tz).date()):
            return False
        return _window_contains(start, end, self.sleep_start, self.sleep_end, tz)

    def lunch_window_contains(self, start: datetime, end: datetime) -> bool:
        if not self.lunch_enabled:
            return False
        return _window_contains(start, end, self.lunch_start, self.lunch_end, self.tzinfo())


def _window_contains(
    start: datetime, end: datetime, win_start: time, win_end: time, tz: Optional[tzinfo]
) -> bool:
    """True if [start, end] lies entirely inside one occurrence of a daily window.

    The window may wrap past midnight (23:00-07:00). A window whose start equals
    its end is empty.
    """
    if win_start == win_end:
        return False
    s = to_zone(start, tz)
    e = to_zone(end, tz)
    if e < s:
        return False
    for day in (s.date() - timedelta(days=1), s.date()):
        occ_start, occ_end = _occurrence(day, win_start, win_end, tz)
        if occ_start <= s and e <= occ_end:
            return True
    return False


def _occurrence(
    day: date, win_start: time, win_end: time, tz: Optional[tzinfo]
) -> Tuple[datetime, datetime]:
    # Built on wall-clock times, then localized, so a DST change inside the
    # window keeps both ends at their configured clock times
    occ_start = datetime.combine(day, win_start)
    occ_end = datetime.combine(day, win_end)
    if occ_end <= occ_start:
        occ_end += timedelta(days=1)
    return localize(occ_start, tz), localize(occ_end, tz)


# ---------------------------------------------------------------------------
# Explanation
# ---------------------------------------------------------------------------
# What this file does:
#   Defines the shape of every persisted object: Session, UsageRecord, Tag and
#   the Settings singleton, plus the Interval value passed from the detector
#   to the validator.
#
# Key pieces:
#   - Session.end_session(): closes exactly once; a second call is a no-op.
#   - Tag.associated_activities: a real set of identifiers. The repository
#     stores it in its own table, never as comma-joined text.
#   - Settings.*_window_contains(): full containment inside one occurrence of
#     a daily window, wraparound aware, evaluated in the configured zone.
#   - Settings.tzinfo(): None in local mode, so every conversion asks the
#     system zone for the offset valid at that moment.
#
# Data flow:
#   Detector -> Interval -> Validator -> Session -> Repository (sqlite rows)
#   Repository rows -> dataclasses -> analytics
