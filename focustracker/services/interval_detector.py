"""
Interval Detector — turns a stream of activity state changes into candidate
focus intervals.

The signal source (screen lock, idle timer, whatever the platform offers)
calls on_activity_state_change() in timestamp order. Whenever an inactive
stretch of at least MIN_SESSION_SECONDS ends, the registered listener gets
an Interval.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from focustracker.data.models import Interval

logger = logging.getLogger(__name__)

# Inactive stretches shorter than this are not worth recording.
MIN_SESSION_SECONDS = 30 * 60


class ActivityState:
    ACTIVE = "active"
    INACTIVE = "inactive"


class IntervalDetector:
    """Two-state machine: ACTIVE ↔ INACTIVE. Holds no persistent state."""

    def __init__(
        self,
        on_interval: Optional[Callable[[Interval], None]] = None,
        min_session_seconds: float = MIN_SESSION_SECONDS,
    ) -> None:
        self.on_interval = on_interval
        self.min_session_seconds = min_session_seconds

        self.state: str = ActivityState.ACTIVE
        self.inactive_since: Optional[datetime] = None
        self.running = False

    # ── Lifecycle ───────────────────────────────────────────────────────────

    def start(self) -> None:
        if self.running:
            return
        self.running = True
        logger.info("Interval detector started.")

    def stop(self) -> None:
        if not self.running:
            return
        self.running = False
        logger.info("Interval detector stopped.")

    def restore_inactive_since(self, timestamp: datetime) -> None:
        """Resume an inactive stretch that began before a restart."""
        self.state = ActivityState.INACTIVE
        self.inactive_since = timestamp

    # ── Events ──────────────────────────────────────────────────────────────

    def on_activity_state_change(self, timestamp: datetime, is_active: bool) -> None:
        if not self.running:
            logger.debug("Detector stopped; ignoring event at %s", timestamp)
            return

        if not is_active:
            if self.state == ActivityState.INACTIVE:
                return  # already counting from the first inactive event
            self.state = ActivityState.INACTIVE
            self.inactive_since = timestamp
            return

        if self.state == ActivityState.ACTIVE:
            return

        started = self.inactive_since
        self.state = ActivityState.ACTIVE
        self.inactive_since = None

        elapsed = (timestamp - started).total_seconds()
        if elapsed < self.min_session_seconds:
            logger.debug("Discarding %.0fs inactivity span starting %s", elapsed, started)
            return

        interval = Interval(started, timestamp)
        if self.on_interval:
            self.on_interval(interval)


# ---------------------------------------------------------------------------
# Explanation
# ---------------------------------------------------------------------------
# What this file does:
#   Watches ACTIVE/INACTIVE transitions and emits an Interval when a long
#   enough inactive stretch ends. No upper bound on the length.
#
# Key pieces:
#   - A second "inactive" event while already inactive does not move
#     inactive_since, so a noisy signal source cannot shorten a session.
#   - restore_inactive_since(): lets the caller replay the last known
#     inactive timestamp after a restart.
#   - Events arriving while stopped are dropped.
#
# Data flow:
#   signal source -> on_activity_state_change() -> on_interval(Interval)
#   -> FocusService (validate + persist)
