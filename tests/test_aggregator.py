"""Unit tests for the aggregation engine."""

from datetime import date, datetime, timedelta, timezone

import pytest

from focustracker.analytics.aggregator import Aggregator
from focustracker.data.models import Session, Settings, UsageRecord
from focustracker.data.repository import Repository

DAY = date(2025, 3, 3)  # a Monday


def at(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=timezone.utc)


def add_session(repo: Repository, start: datetime, minutes: float, valid: bool = True) -> Session:
    return repo.create_session(Session(
        start_time=start,
        end_time=start + timedelta(minutes=minutes),
        duration=minutes * 60.0,
        is_valid=valid,
    ))


def add_usage(repo: Repository, ident: str, start: datetime, minutes: float,
              tag=None, category=None, name="") -> UsageRecord:
    rec = UsageRecord(activity_identifier=ident, activity_name=name, category_hint=category,
                      scene_tag=tag, start_time=start)
    rec.close(start + timedelta(minutes=minutes))
    return repo.create_usage_record(rec)


class TestDailyStatistics:
    def test_mixed_validity_day(self, repo, aggregator):
        add_session(repo, at(DAY, 9), 45)
        add_session(repo, at(DAY, 10), 60)
        add_session(repo, at(DAY, 12), 30)
        add_session(repo, at(DAY, 14), 15, valid=False)

        stats = aggregator.daily_statistics(DAY)
        assert stats.total_focus_time == 135 * 60
        assert stats.session_count == 3
        assert stats.longest_session == 60 * 60
        assert stats.average_session == 45 * 60

    def test_empty_day(self, aggregator):
        stats = aggregator.daily_statistics(DAY)
        assert stats.total_focus_time == 0
        assert stats.session_count == 0
        assert stats.average_session == 0

    def test_other_days_excluded(self, repo, aggregator):
        add_session(repo, at(DAY, 9), 40)
        add_session(repo, at(DAY + timedelta(days=1), 9), 50)
        assert aggregator.daily_statistics(DAY).total_focus_time == 40 * 60

    def test_day_boundary_follows_configured_zone(self, repo, aggregator):
        repo.save_settings(Settings(use_local_time_zone=False, time_zone_offset_hours=2))
        # 23:00 UTC on the 3rd is 01:00 on the 4th in UTC+2
        add_session(repo, at(DAY, 23), 40)
        assert aggregator.daily_statistics(DAY).session_count == 0
        assert aggregator.daily_statistics(DAY + timedelta(days=1)).session_count == 1

    def test_negative_duration_clamped(self, repo, aggregator):
        add_session(repo, at(DAY, 9), 40)
        repo.conn.execute("UPDATE sessions SET duration = -100")
        stats = aggregator.daily_statistics(DAY)
        assert stats.session_count == 1
        assert stats.total_focus_time == 0


class TestRollingTrend:
    def test_always_seven_days_oldest_first(self, repo, aggregator):
        add_session(repo, at(DAY, 9), 40)
        add_session(repo, at(DAY - timedelta(days=3), 9), 90)

        trend = aggregator.rolling_trend(DAY, 7)
        assert len(trend) == 7
        assert [d.date for d in trend] == [DAY - timedelta(days=6 - i) for i in range(7)]
        assert trend[-1].total_focus_time == aggregator.daily_statistics(DAY).total_focus_time
        assert trend[3].total_focus_time == 90 * 60
        assert trend[0].session_count == 0

    def test_empty_store_zero_filled(self, aggregator):
        trend = aggregator.rolling_trend(DAY, 7)
        assert len(trend) == 7
        assert all(d.total_focus_time == 0 for d in trend)


class TestStreakAndDecline:
    def test_streak_counts_consecutive_goal_days(self, repo, aggregator):
        for back in range(3):
            add_session(repo, at(DAY - timedelta(days=back), 9), 130)
        add_session(repo, at(DAY - timedelta(days=4), 9), 130)  # gap on day -3
        assert aggregator.current_streak(DAY, goal=7200) == 3

    def test_streak_broken_today(self, repo, aggregator):
        add_session(repo, at(DAY - timedelta(days=1), 9), 130)
        assert aggregator.current_streak(DAY, goal=7200) == 0

    def test_decline(self, repo, aggregator):
        add_session(repo, at(DAY - timedelta(days=1), 9), 100)
        add_session(repo, at(DAY, 9), 60)
        assert aggregator.day_over_day_decline(DAY) == pytest.approx(0.4)

    def test_no_decline_when_improving_or_no_history(self, repo, aggregator):
        assert aggregator.day_over_day_decline(DAY) == 0.0
        add_session(repo, at(DAY - timedelta(days=1), 9), 40)
        add_session(repo, at(DAY, 9), 60)
        assert aggregator.day_over_day_decline(DAY) == 0.0


class TestUsage:
    def test_usage_statistics(self, repo, aggregator):
        add_usage(repo, "com.apple.mail", at(DAY, 9), 30, category="productivity")
        add_usage(repo, "com.apple.mail", at(DAY, 11), 10, category="productivity")
        add_usage(repo, "com.netflix.Netflix", at(DAY, 20), 20, category="entertainment")

        stats = aggregator.usage_statistics(DAY)
        assert stats.total_usage_time == 60 * 60
        assert stats.activity_count == 2
        assert stats.session_count == 3
        assert stats.longest_session == 30 * 60
        assert stats.most_used_activity == "com.apple.mail"
        assert stats.productive_time == 40 * 60
        assert stats.productivity_ratio == pytest.approx(40 / 60)

    def test_usage_statistics_empty(self, aggregator):
        stats = aggregator.usage_statistics(DAY)
        assert stats.total_usage_time == 0
        assert stats.most_used_activity is None

    def test_activity_breakdown_sorted(self, repo, aggregator):
        add_usage(repo, "a", at(DAY, 9), 10, name="Alpha")
        add_usage(repo, "b", at(DAY, 10), 30, name="Beta")
        breakdown = aggregator.activity_breakdown(DAY)
        assert [a.activity_identifier for a in breakdown] == ["b", "a"]
        assert breakdown[0].activity_name == "Beta"
        assert breakdown[0].percentage == pytest.approx(75.0)

    def test_tag_distribution_excludes_untagged(self, repo, aggregator):
        add_usage(repo, "a", at(DAY, 9), 30, tag="Work")
        add_usage(repo, "b", at(DAY, 10), 10, tag="Social")
        add_usage(repo, "c", at(DAY, 11), 50)

        dist = aggregator.tag_distribution(DAY)
        assert [d.tag_name for d in dist] == ["Work", "Social"]
        assert dist[0].percentage == pytest.approx(75.0)
        assert sum(d.session_count for d in dist) == 2

    def test_tag_trends_chronological(self, repo, aggregator):
        add_usage(repo, "a", at(DAY, 9), 30, tag="Work")
        add_usage(repo, "a", at(DAY - timedelta(days=1), 9), 20, tag="Work")
        add_usage(repo, "b", at(DAY - timedelta(days=1), 10), 10, tag="Social")

        trends = aggregator.tag_trends(DAY - timedelta(days=1), DAY)
        assert [(t.date, t.tag_name) for t in trends] == [
            (DAY - timedelta(days=1), "Social"),
            (DAY - timedelta(days=1), "Work"),
            (DAY, "Work"),
        ]

    def test_hourly_distribution(self, repo, aggregator):
        add_usage(repo, "a", at(DAY, 9), 40)
        add_usage(repo, "b", at(DAY, 9, 45), 10)
        add_usage(repo, "c", at(DAY, 15), 25)

        hours = aggregator.hourly_distribution(DAY)
        assert len(hours) == 24
        assert hours[9].session_count == 2
        assert hours[9].intensity == 1.0
        assert hours[15].intensity == pytest.approx(0.5)
        assert hours[0].intensity == 0.0

    def test_weekday_weekend_comparison(self, repo, aggregator):
        sunday = DAY - timedelta(days=1)
        add_usage(repo, "a", at(DAY, 9), 60, category="developer")
        add_usage(repo, "b", at(sunday, 9), 140)

        cmp = aggregator.weekday_weekend_comparison(DAY, days=14)
        # 14 days back from a Monday: 10 weekdays, 4 weekend days
        assert cmp.weekday_average == pytest.approx(3600 / 10)
        assert cmp.weekend_average == pytest.approx(140 * 60 / 4)
        assert cmp.weekday_productivity == pytest.approx(1.0)
        assert cmp.weekend_productivity == 0.0
        assert cmp.difference == pytest.approx(cmp.weekend_average - cmp.weekday_average)


class TestTagPeriods:
    def test_tag_statistics_over_range(self, repo, aggregator):
        add_usage(repo, "a", at(DAY - timedelta(days=1), 9), 30, tag="Work")
        add_usage(repo, "b", at(DAY, 10), 10, tag="Social")
        add_usage(repo, "c", at(DAY, 11), 20, tag="Work")
        add_usage(repo, "d", at(DAY, 12), 50)
        add_usage(repo, "e", at(DAY + timedelta(days=1), 9), 90, tag="Social")

        stats = aggregator.tag_statistics(DAY - timedelta(days=1), DAY)
        assert stats.total_usage_time == 60 * 60
        assert stats.session_count == 3
        assert stats.most_used_tag == "Work"
        assert [d.tag_name for d in stats.tag_distribution] == ["Work", "Social"]
        # No tags stored, so the fallback colour is used
        assert stats.tag_distribution[0].color == "#999999"

    def test_tag_statistics_empty(self, aggregator):
        stats = aggregator.tag_statistics(DAY, DAY)
        assert stats.most_used_tag is None
        assert stats.tag_distribution == []

    def test_share_changes_against_previous_period(self, repo, aggregator):
        # previous period: DAY-3..DAY-2, current: DAY-1..DAY
        add_usage(repo, "a", at(DAY - timedelta(days=3), 9), 30, tag="Work")
        add_usage(repo, "b", at(DAY - timedelta(days=2), 9), 30, tag="Social")
        add_usage(repo, "a", at(DAY, 9), 45, tag="Work")
        add_usage(repo, "c", at(DAY, 10), 15, tag="Health")

        changes = aggregator.tag_share_changes(DAY - timedelta(days=1), DAY)
        assert set(changes) == {"Work", "Social", "Health"}
        assert changes["Work"].current == pytest.approx(75.0)
        assert changes["Work"].previous == pytest.approx(50.0)
        assert changes["Work"].change == pytest.approx(25.0)
        assert changes["Social"].current == 0.0
        assert changes["Social"].change == pytest.approx(-50.0)
        assert changes["Health"].previous == 0.0

    def test_most_productive_tags(self, repo, aggregator):
        add_usage(repo, "ide", at(DAY, 9), 60, tag="Work")
        add_usage(repo, "ide", at(DAY, 11), 20, tag="Work")
        add_usage(repo, "docs", at(DAY, 13), 30, tag="Reading", category="reference")
        add_usage(repo, "novel", at(DAY, 14), 40, tag="Reading")
        add_usage(repo, "shop", at(DAY, 15), 10, tag="Shopping", category="business")
        add_usage(repo, "shop", at(DAY, 16), 60, tag="Shopping")
        add_usage(repo, "feed", at(DAY, 20), 60, tag="Social")

        tags = aggregator.most_productive_tags(DAY, DAY)
        # Work 100%, Reading 30/70, Shopping 10/70 (below the cut), Social 0
        assert [t.tag_name for t in tags] == ["Work", "Reading"]
        assert tags[0].percentage == pytest.approx(100.0)
        assert tags[1].percentage == pytest.approx(30 / 70 * 100)
        assert tags[1].session_count == 2
        assert aggregator.most_productive_tags(DAY, DAY, limit=1)[0].tag_name == "Work"

    def test_total_focus_time_is_all_time(self, repo, aggregator):
        add_session(repo, at(DAY - timedelta(days=400), 9), 60)
        add_session(repo, at(DAY, 9), 30)
        add_session(repo, at(DAY, 14), 30, valid=False)
        assert aggregator.total_focus_time() == 90 * 60


class TestSystemZoneAcrossDst:
    CET = timezone(timedelta(hours=1))
    CEST = timezone(timedelta(hours=2))

    @pytest.fixture
    def local_aggregator(self, repo, berlin_tz):
        repo.save_settings(Settings())
        return Aggregator(repo)

    def test_late_winter_evening_stays_on_its_day(self, repo, local_aggregator):
        add_session(repo, datetime(2026, 1, 15, 23, 10, tzinfo=self.CET), 49)
        assert local_aggregator.daily_statistics(date(2026, 1, 15)).session_count == 1
        assert local_aggregator.daily_statistics(date(2026, 1, 16)).session_count == 0

    def test_late_summer_evening_stays_on_its_day(self, repo, local_aggregator):
        add_session(repo, datetime(2026, 7, 15, 23, 10, tzinfo=self.CEST), 49)
        assert local_aggregator.daily_statistics(date(2026, 7, 15)).session_count == 1
        assert local_aggregator.daily_statistics(date(2026, 7, 16)).session_count == 0

    def test_summer_night_after_midnight(self, repo, local_aggregator):
        add_session(repo, datetime(2026, 7, 16, 0, 30, tzinfo=self.CEST), 40)
        assert local_aggregator.daily_statistics(date(2026, 7, 15)).session_count == 0
        assert local_aggregator.daily_statistics(date(2026, 7, 16)).session_count == 1

    def test_trend_spans_clock_change(self, repo, local_aggregator):
        add_session(repo, datetime(2026, 3, 28, 23, 30, tzinfo=self.CET), 40)
        add_session(repo, datetime(2026, 3, 29, 23, 30, tzinfo=self.CEST), 50)
        trend = local_aggregator.rolling_trend(date(2026, 3, 29), days=2)
        assert [d.total_focus_time for d in trend] == [40 * 60, 50 * 60]
