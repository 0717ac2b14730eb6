"""Unit tests for the interval detector and the session validator."""

from datetime import datetime, time, timedelta, timezone

import pytest

from focustracker.data.models import Interval, Settings
from focustracker.services.interval_detector import MIN_SESSION_SECONDS, IntervalDetector
from focustracker.services.session_validator import SessionValidator

T0 = datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)  # a Monday


def utc(day, hour, minute=0):
    return datetime(2025, 3, day, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
def emitted():
    return []


@pytest.fixture
def detector(emitted):
    d = IntervalDetector(on_interval=emitted.append)
    d.start()
    return d


class TestIntervalDetector:
    def test_long_inactivity_emits_interval(self, detector, emitted):
        detector.on_activity_state_change(T0, False)
        detector.on_activity_state_change(T0 + timedelta(minutes=45), True)
        assert emitted == [Interval(T0, T0 + timedelta(minutes=45))]

    def test_short_inactivity_is_discarded(self, detector, emitted):
        detector.on_activity_state_change(T0, False)
        detector.on_activity_state_change(T0 + timedelta(minutes=20), True)
        assert emitted == []

    def test_exact_minimum_counts(self, detector, emitted):
        detector.on_activity_state_change(T0, False)
        detector.on_activity_state_change(T0 + timedelta(seconds=MIN_SESSION_SECONDS), True)
        assert len(emitted) == 1

    def test_no_upper_bound(self, detector, emitted):
        detector.on_activity_state_change(T0, False)
        detector.on_activity_state_change(T0 + timedelta(hours=4), True)
        assert emitted[0].duration == 14400

    def test_repeated_inactive_keeps_first_timestamp(self, detector, emitted):
        detector.on_activity_state_change(T0, False)
        detector.on_activity_state_change(T0 + timedelta(minutes=20), False)
        detector.on_activity_state_change(T0 + timedelta(minutes=35), True)
        assert emitted == [Interval(T0, T0 + timedelta(minutes=35))]

    def test_active_while_active_does_nothing(self, detector, emitted):
        detector.on_activity_state_change(T0, True)
        detector.on_activity_state_change(T0 + timedelta(hours=1), True)
        assert emitted == []

    def test_events_ignored_while_stopped(self, emitted):
        d = IntervalDetector(on_interval=emitted.append)
        d.on_activity_state_change(T0, False)
        d.on_activity_state_change(T0 + timedelta(hours=1), True)
        assert emitted == []
        assert d.inactive_since is None

    def test_start_and_stop_are_idempotent(self, detector):
        detector.start()
        assert detector.running
        detector.stop()
        detector.stop()
        assert not detector.running

    def test_restore_after_restart(self, detector, emitted):
        detector.restore_inactive_since(T0)
        detector.on_activity_state_change(T0 + timedelta(minutes=50), True)
        assert emitted == [Interval(T0, T0 + timedelta(minutes=50))]


class TestSessionValidator:
    @pytest.fixture
    def validator(self, repo):
        return SessionValidator(repo)

    @pytest.fixture
    def utc_settings(self):
        return Settings(use_local_time_zone=False)

    def test_long_daytime_interval_is_valid(self, validator, utc_settings):
        assert validator.validate(Interval(utc(3, 9), utc(3, 10)), utc_settings)

    def test_too_short(self, validator, utc_settings):
        reasons = validator.explain(Interval(utc(3, 9), utc(3, 9, 20)), utc_settings)
        assert reasons == ["too_short"]

    def test_entirely_inside_sleep_window_is_invalid(self, validator, utc_settings):
        candidate = Interval(utc(3, 23, 30), utc(4, 6, 30))
        assert validator.explain(candidate, utc_settings) == ["sleep_window"]

    def test_after_midnight_part_of_sleep_window(self, validator, utc_settings):
        assert not validator.validate(Interval(utc(4, 0, 30), utc(4, 6, 0)), utc_settings)

    def test_partial_sleep_overlap_stays_valid(self, validator, utc_settings):
        assert validator.validate(Interval(utc(3, 22, 30), utc(4, 6, 30)), utc_settings)
        assert validator.validate(Interval(utc(4, 6, 0), utc(4, 8, 0)), utc_settings)

    def test_flexible_weekend_skips_sleep_rule(self, validator):
        s = Settings(use_local_time_zone=False, flexible_weekend_sleep=True)
        saturday_night = Interval(utc(8, 23, 30), utc(9, 6, 30))
        monday_night = Interval(utc(3, 23, 30), utc(4, 6, 30))
        assert validator.validate(saturday_night, s)
        assert not validator.validate(monday_night, s)

    def test_lunch_only_when_enabled(self, validator, utc_settings):
        lunch = Interval(utc(3, 12, 10), utc(3, 13, 50))
        assert validator.validate(lunch, utc_settings)
        utc_settings.lunch_enabled = True
        assert validator.explain(lunch, utc_settings) == ["lunch_window"]

    def test_sleep_window_uses_configured_zone(self, validator):
        # 23:30-06:30 in UTC+2 is 21:30-04:30 UTC
        s = Settings(use_local_time_zone=False, time_zone_offset_hours=2)
        assert not validator.validate(Interval(utc(3, 21, 30), utc(4, 4, 30)), s)

    def test_empty_window_never_contains(self, validator):
        s = Settings(use_local_time_zone=False, sleep_start=time(0, 0), sleep_end=time(0, 0))
        assert validator.validate(Interval(utc(3, 1), utc(3, 3)), s)

    def test_invalid_interval_is_still_persisted(self, validator, utc_settings, repo):
        session = validator.persist(Interval(utc(3, 9), utc(3, 9, 10)), utc_settings)
        assert session.id is not None
        assert session.is_valid is False
        assert repo.get_session(session.id).is_valid is False


class TestSystemZoneAcrossDst:
    """Local-mode settings resolve the offset of each moment, not of today."""

    CET = timezone(timedelta(hours=1))
    CEST = timezone(timedelta(hours=2))

    @pytest.fixture
    def validator(self, repo):
        return SessionValidator(repo)

    @pytest.fixture
    def local_settings(self, berlin_tz):
        return Settings()

    def test_winter_morning_inside_sleep(self, validator, local_settings):
        candidate = Interval(datetime(2026, 1, 15, 6, 5, tzinfo=self.CET),
                             datetime(2026, 1, 15, 6, 55, tzinfo=self.CET))
        assert validator.explain(candidate, local_settings) == ["sleep_window"]

    def test_summer_morning_inside_sleep(self, validator, local_settings):
        candidate = Interval(datetime(2026, 7, 15, 6, 5, tzinfo=self.CEST),
                             datetime(2026, 7, 15, 6, 55, tzinfo=self.CEST))
        assert validator.explain(candidate, local_settings) == ["sleep_window"]

    def test_summer_morning_after_wake_up_is_valid(self, validator, local_settings):
        candidate = Interval(datetime(2026, 7, 15, 7, 5, tzinfo=self.CEST),
                             datetime(2026, 7, 15, 8, 0, tzinfo=self.CEST))
        assert validator.explain(candidate, local_settings) == []

    def test_night_of_clock_change(self, validator, local_settings):
        # Clocks go forward at 02:00 on Sunday 2026-03-29
        candidate = Interval(datetime(2026, 3, 28, 23, 30, tzinfo=self.CET),
                             datetime(2026, 3, 29, 6, 30, tzinfo=self.CEST))
        assert validator.explain(candidate, local_settings) == ["sleep_window"]

    def test_point_check_uses_offset_of_the_moment(self, local_settings):
        # 05:30 UTC is 06:30 in winter and 07:30 in summer
        assert local_settings.is_within_sleep_time(
            datetime(2026, 1, 15, 5, 30, tzinfo=timezone.utc))
        assert not local_settings.is_within_sleep_time(
            datetime(2026, 7, 15, 5, 30, tzinfo=timezone.utc))
