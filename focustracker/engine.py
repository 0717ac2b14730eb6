"""
FocusEngine — the one object the presentation layer and the activity
signal source talk to.

Wires the detector, validator, analytics and tag services around a single
Repository and exposes the inbound commands and outbound queries.
"""

from __future__ import annotations

import logging
from dataclasses import fields
from datetime import date, datetime, time
from pathlib import Path
from typing import Callable, Dict, List, Optional

from focustracker.analytics.aggregator import (
    Aggregator, DailyFocusData, FocusStatistics, TagDistribution, TagShareChange,
    TagStatistics, UsageStatistics,
)
from focustracker.analytics.quality import (
    FocusQualityMetrics, FocusTimeSlotAnalysis, InterruptionAnalysis, QualityAnalyzer,
)
from focustracker.data.database import Database
from focustracker.data.models import CLOCK_FIELDS, Session, Settings, Tag, UsageRecord
from focustracker.data.repository import Repository
from focustracker.errors import ValidationError
from focustracker.services.focus_service import FocusService
from focustracker.services.notification_service import NotificationService
from focustracker.services.tag_service import TagRecommendation, TagService

logger = logging.getLogger(__name__)

_SETTING_NAMES = {f.name for f in fields(Settings)}


class FocusEngine:

    def __init__(
        self,
        repo: Repository,
        enable_notifications: bool = False,
        on_goal_achieved: Optional[Callable[[float, float], None]] = None,
        on_streak: Optional[Callable[[int], None]] = None,
        on_decline: Optional[Callable[[float], None]] = None,
        on_milestone: Optional[Callable[[int], None]] = None,
        notification_interval_min: Optional[float] = None,
    ) -> None:
        self.repo = repo
        self.aggregator = Aggregator(repo)
        self.quality = QualityAnalyzer(repo, self.aggregator)
        self.tags = TagService(repo)
        self.tags.ensure_default_tags()

        self.notifications: Optional[NotificationService] = None
        if enable_notifications:
            self.notifications = NotificationService(
                repo, self.aggregator,
                on_goal_achieved=on_goal_achieved,
                on_streak=on_streak,
                on_decline=on_decline,
                on_milestone=on_milestone,
            )
            self.notifications.start(notification_interval_min)

        self.focus = FocusService(repo, on_session_recorded=self._session_recorded)
        self.detector = self.focus.detector
        self.detector.start()

    @classmethod
    def open(cls, db_path: Optional[Path] = None, **kwargs) -> "FocusEngine":
        db = Database(db_path)
        return cls(Repository(db.connect()), **kwargs)

    def shutdown(self) -> None:
        self.detector.stop()
        if self.notifications:
            self.notifications.stop()

    # ── Inbound ─────────────────────────────────────────────────────────────

    def activity_state_changed(self, timestamp: datetime, is_active: bool) -> None:
        self.detector.on_activity_state_change(timestamp, is_active)

    def start_manual_session(
        self,
        activity_label: str,
        category: Optional[str] = None,
        target_duration: Optional[float] = None,
        notes: Optional[str] = None,
    ) -> Session:
        return self.focus.start_manual_session(activity_label, category, target_duration, notes)

    def end_session(self, session_id: int) -> Session:
        return self.focus.end_session(session_id)

    def start_usage(self, activity_identifier: str, activity_name: str = "",
                    category_hint: Optional[str] = None) -> UsageRecord:
        return self.focus.start_usage(activity_identifier, activity_name, category_hint)

    def end_usage(self, usage_record_id: int) -> UsageRecord:
        return self.focus.end_usage(usage_record_id)

    def assign_tag(self, usage_record_id: int, tag_id: int) -> UsageRecord:
        return self.tags.assign(usage_record_id, tag_id)

    def create_custom_tag(self, name: str, color: str = "#007AFF") -> Tag:
        return self.tags.create_custom_tag(name, color)

    def delete_tag(self, tag_id: int) -> None:
        self.tags.delete_tag(tag_id)

    def update_settings(self, **changes) -> Settings:
        """Apply and persist changes. Nothing is saved if the result is invalid."""
        unknown = set(changes) - _SETTING_NAMES
        if unknown:
            raise ValueError(f"Unknown setting(s): {', '.join(sorted(unknown))}")
        settings = self.repo.get_settings()
        for name, value in changes.items():
            if name in CLOCK_FIELDS and isinstance(value, str):
                value = _parse_clock(name, value)
            setattr(settings, name, value)
        settings.validate()
        self.repo.save_settings(settings)
        logger.info("Settings updated: %s", ", ".join(sorted(changes)))
        return settings

    def retry_pending(self) -> List[Session]:
        return self.focus.retry_pending()

    # ── Outbound ────────────────────────────────────────────────────────────

    def get_settings(self) -> Settings:
        return self.repo.get_settings()

    def get_focus_statistics(self, day: Optional[date] = None) -> FocusStatistics:
        return self.aggregator.daily_statistics(day or self._today())

    def get_weekly_trend(self, reference_date: Optional[date] = None) -> List[DailyFocusData]:
        return self.aggregator.rolling_trend(reference_date, days=7)

    def get_quality_metrics(self, day: Optional[date] = None) -> FocusQualityMetrics:
        return self.quality.quality_metrics(day or self._today())

    def get_interruption_analysis(self, day: Optional[date] = None) -> InterruptionAnalysis:
        return self.quality.interruption_analysis(day or self._today())

    def get_time_slot_analysis(self, start: date, end: date) -> FocusTimeSlotAnalysis:
        return self.quality.time_slot_analysis(start, end)

    def get_tag_distribution(self, day: Optional[date] = None) -> List[TagDistribution]:
        return self.aggregator.tag_distribution(day or self._today())

    def get_tag_recommendations(self, activity_identifier: str,
                                limit: int = 3) -> List[TagRecommendation]:
        return self.tags.recommend(activity_identifier, limit)

    def get_usage_statistics(self, day: Optional[date] = None) -> UsageStatistics:
        return self.aggregator.usage_statistics(day or self._today())

    def get_tag_statistics(self, start: date, end: date) -> TagStatistics:
        return self.aggregator.tag_statistics(start, end)

    def get_tag_share_changes(self, start: date, end: date) -> Dict[str, TagShareChange]:
        return self.aggregator.tag_share_changes(start, end)

    def get_most_productive_tags(self, start: date, end: date,
                                 limit: int = 5) -> List[TagDistribution]:
        return self.aggregator.most_productive_tags(start, end, limit)

    def get_total_focus_time(self) -> float:
        return self.aggregator.total_focus_time()

    # ── Helpers ─────────────────────────────────────────────────────────────

    def _today(self) -> date:
        return datetime.now(self.repo.get_settings().tzinfo()).date()

    def _session_recorded(self, session: Session) -> None:
        if self.notifications:
            self.notifications.session_recorded(session)


def _parse_clock(name: str, value: str) -> time:
    """Accept "HH:MM" (or any ISO time) for a time-of-day setting."""
    try:
        return time.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError(f"{name} must be a time of day, got {value!r}.") from exc
