"""Unit tests for the quality & interruption analyzer."""

from datetime import date, datetime, timedelta, timezone

import pytest

from focustracker.analytics.quality import (
    MAX_INTERRUPTION_PENALTY, bucket_durations, interruption_type, quality_score,
)
from focustracker.data.models import Session

DAY = date(2025, 3, 3)


def at(hour: int, minute: int = 0, day: date = DAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=timezone.utc)


def add_session(repo, start: datetime, minutes: float, valid: bool = True) -> None:
    repo.create_session(Session(
        start_time=start,
        end_time=start + timedelta(minutes=minutes),
        duration=minutes * 60.0,
        is_valid=valid,
    ))


@pytest.fixture
def busy_day(repo):
    add_session(repo, at(9, 0), 50)     # 09:00-09:50
    add_session(repo, at(9, 53), 40)    # 3 min gap: contiguous
    add_session(repo, at(11, 0), 40)    # 27 min gap after 10:33
    add_session(repo, at(15, 0), 45)    # 3h20 gap after 11:40
    add_session(repo, at(17, 0), 20, valid=False)
    return repo


class TestScoring:
    def test_buckets(self):
        deep, medium, fragmented = bucket_durations([50 * 60, 45 * 60, 20 * 60, 10 * 60])
        assert deep == 95 * 60
        assert medium == 20 * 60
        assert fragmented == 10 * 60

    def test_single_deep_session(self):
        assert quality_score(3600, 0, 0, 0) == pytest.approx(80.0)

    def test_empty_is_zero(self):
        assert quality_score(0, 0, 0, 3) == 0.0

    def test_more_deep_time_never_lowers_score(self):
        base = (3600, 1200, 900)
        for interruptions in range(8):
            before = quality_score(*base, interruptions)
            after = quality_score(base[0] + 1800, base[1], base[2], interruptions)
            assert after >= before

    def test_more_interruptions_never_raise_score(self):
        scores = [quality_score(3600, 1200, 900, n) for n in range(10)]
        assert scores == sorted(scores, reverse=True)

    def test_penalty_is_capped(self):
        capped = quality_score(3600, 0, 0, 100)
        assert capped == pytest.approx(80.0 - MAX_INTERRUPTION_PENALTY)

    def test_interruption_types(self):
        assert interruption_type(6 * 60) == "short"
        assert interruption_type(10 * 60) == "medium"
        assert interruption_type(29 * 60) == "medium"
        assert interruption_type(30 * 60) == "long"


class TestQualityMetrics:
    def test_busy_day(self, busy_day, analyzer):
        m = analyzer.quality_metrics(DAY)
        assert m.deep_focus_time == 95 * 60
        assert m.medium_focus_time == 80 * 60
        assert m.fragmented_time == 0
        assert m.interruption_count == 2
        assert m.longest_streak == 93 * 60
        assert m.average_recovery_time == 27 * 60
        assert 0 < m.focus_quality_score < 100

    def test_empty_day(self, analyzer):
        m = analyzer.quality_metrics(DAY)
        assert m.focus_quality_score == 0
        assert m.interruption_count == 0
        assert m.longest_streak == 0


class TestInterruptionAnalysis:
    def test_busy_day(self, busy_day, analyzer):
        a = analyzer.interruption_analysis(DAY)
        assert a.total_interruptions == 2
        assert a.recovery_rate == pytest.approx(0.5)
        assert a.by_type == {"medium": 1, "long": 1}
        assert a.most_common_hour == 10
        assert a.average_interruption_duration == pytest.approx((27 + 200) * 60 / 2)

    def test_no_sessions(self, analyzer):
        a = analyzer.interruption_analysis(DAY)
        assert a.total_interruptions == 0
        assert a.recovery_rate == 0.0
        assert a.most_common_hour is None
        assert a.by_type == {}

    def test_contiguous_sessions_are_not_interruptions(self, repo, analyzer):
        add_session(repo, at(9), 40)
        add_session(repo, at(9, 42), 40)
        assert analyzer.interruption_analysis(DAY).total_interruptions == 0


class TestTimeSlots:
    def test_slots_and_ranked_hours(self, repo, analyzer):
        add_session(repo, at(9), 60)
        add_session(repo, at(14), 30)
        add_session(repo, at(19), 45)
        add_session(repo, at(19, 0, DAY + timedelta(days=1)), 45)

        slots = analyzer.time_slot_analysis(DAY, DAY + timedelta(days=1))
        assert slots.morning_score == pytest.approx(80.0)
        assert slots.afternoon_score == pytest.approx(40.0)
        assert slots.evening_score == pytest.approx(80.0)
        assert slots.best_hours == [19, 9, 14]
        assert slots.worst_hours == [14, 9, 19]

    def test_empty_period(self, analyzer):
        slots = analyzer.time_slot_analysis(DAY, DAY + timedelta(days=6))
        assert slots.morning_score == 0
        assert slots.best_hours == []
        assert slots.worst_hours == []

    def test_reversed_period(self, analyzer):
        assert analyzer.time_slot_analysis(DAY, DAY - timedelta(days=1)).best_hours == []
