"""
Focus Service — the detection pipeline and the session lifecycle.

Wires IntervalDetector → SessionValidator → Repository, and owns the
manual-session and usage-record lifecycles that the facade exposes.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from focustracker.data.models import Interval, Session, UsageRecord
from focustracker.data.repository import Repository
from focustracker.errors import NotFoundError, StoreError

from .interval_detector import IntervalDetector
from .session_validator import SessionValidator

logger = logging.getLogger(__name__)

# A candidate that, widened by this much, contains a stored session is a replay.
DUPLICATE_BUFFER = timedelta(minutes=5)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FocusService:
    """
    Records detected and manual focus sessions.

    Only ONE manual session can be open at a time. Detected sessions are
    closed on arrival, so they never conflict with it.
    """

    def __init__(
        self,
        repo: Repository,
        validator: Optional[SessionValidator] = None,
        on_session_recorded: Optional[Callable[[Session], None]] = None,
        on_store_error: Optional[Callable[[Interval, StoreError], None]] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.repo = repo
        self.validator = validator or SessionValidator(repo)
        self.detector = IntervalDetector(on_interval=self.handle_interval)
        self.clock = clock

        # Callbacks the caller may set
        self.on_session_recorded = on_session_recorded
        self.on_store_error = on_store_error

        self.pending_intervals: List[Interval] = []

    # ── Detection pipeline ──────────────────────────────────────────────────

    def handle_interval(self, interval: Interval) -> Optional[Session]:
        """Validate and store a candidate. Never raises on store failure."""
        try:
            session = self._store_interval(interval)
        except StoreError as exc:
            logger.exception("Could not store interval %s - %s; queued for retry.",
                             interval.start, interval.end)
            self.pending_intervals.append(interval)
            if self.on_store_error:
                self.on_store_error(interval, exc)
            return None
        if session is not None:
            try:
                self._notify_recorded(session)
            except StoreError:
                logger.exception("Session %d stored but the recorded-session listener failed.",
                                 session.id)
        return session

    def retry_pending(self) -> List[Session]:
        """Re-attempt queued intervals. Ones that fail again stay queued."""
        queued, self.pending_intervals = self.pending_intervals, []
        stored: List[Session] = []
        for interval in queued:
            session = self.handle_interval(interval)
            if session is not None:
                stored.append(session)
        if queued:
            logger.info("Retried %d pending interval(s), %d still queued.",
                        len(queued), len(self.pending_intervals))
        return stored

    def is_duplicate(self, interval: Interval) -> bool:
        """True if a stored session lies inside the candidate widened by the buffer."""
        stored = self.repo.find_sessions_within(
            interval.start - DUPLICATE_BUFFER, interval.end + DUPLICATE_BUFFER
        )
        return bool(stored)

    def _store_interval(self, interval: Interval) -> Optional[Session]:
        if self.is_duplicate(interval):
            logger.info("Skipping duplicate interval %s - %s", interval.start, interval.end)
            return None
        settings = self.repo.get_settings()
        return self.validator.persist(interval, settings)

    # ── Manual sessions ─────────────────────────────────────────────────────

    def active_manual_session(self) -> Optional[Session]:
        open_sessions = self.repo.get_open_sessions(session_type="manual")
        return open_sessions[0] if open_sessions else None

    def start_manual_session(
        self,
        activity_label: str,
        category: Optional[str] = None,
        target_duration: Optional[float] = None,
        notes: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> Session:
        if self.active_manual_session() is not None:
            raise RuntimeError("A manual session is already active.")
        session = Session(
            start_time=at or self.clock(),
            session_type="manual",
            activity_label=activity_label,
            category=category,
            target_duration=target_duration,
            notes=notes,
        )
        self.repo.create_session(session)
        logger.info("Manual session %d started: %s", session.id, activity_label)
        return session

    def end_session(self, session_id: int, at: Optional[datetime] = None) -> Session:
        """Close a session. Ending an already closed session changes nothing."""
        session = self.repo.get_session(session_id)
        if session is None:
            raise NotFoundError("Session", session_id)
        if not session.end_session(at or self.clock()):
            logger.debug("Session %d already closed.", session_id)
            return session
        self.validator.revalidate(session, self.repo.get_settings())
        self._notify_recorded(session)
        return session

    def _notify_recorded(self, session: Session) -> None:
        if session.is_valid and self.on_session_recorded:
            self.on_session_recorded(session)

    # ── Usage records ───────────────────────────────────────────────────────

    def start_usage(
        self,
        activity_identifier: str,
        activity_name: str = "",
        category_hint: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> UsageRecord:
        record = UsageRecord(
            activity_identifier=activity_identifier,
            activity_name=activity_name or activity_identifier,
            category_hint=category_hint,
            start_time=at or self.clock(),
        )
        return self.repo.create_usage_record(record)

    def end_usage(self, record_id: int, at: Optional[datetime] = None) -> UsageRecord:
        record = self._require_usage(record_id)
        if record.close(at or self.clock()):
            self.repo.update_usage_record(record)
        return record

    def record_usage_interruption(self, record_id: int) -> UsageRecord:
        record = self._require_usage(record_id)
        record.record_interruption()
        self.repo.update_usage_record(record)
        return record

    def _require_usage(self, record_id: int) -> UsageRecord:
        record = self.repo.get_usage_record(record_id)
        if record is None:
            raise NotFoundError("Usage record", record_id)
        return record


# ---------------------------------------------------------------------------
# Explanation
# ---------------------------------------------------------------------------
# What this file does:
#   Connects the detector to the validator and the store, and manages the
#   lifecycle of manual sessions and usage records.
#
# Key pieces:
#   - handle_interval(): the detector's listener. A candidate that contains
#     an already stored session (with DUPLICATE_BUFFER slack on both sides)
#     is a replay and is skipped.
#   - A listener failure after a successful store is logged only; the
#     session is already saved, so it is neither queued nor reported.
#     A StoreError is logged, queued in pending_intervals and reported to
#     on_store_error; it never propagates into the signal source.
#   - retry_pending(): the caller decides when to try the queue again.
#   - end_session(): idempotent close, then the validator re-runs its rules
#     on the closed interval and updates is_valid.
#
# Data flow:
#   detector -> handle_interval() -> validator.persist() -> Repository
#   -> on_session_recorded(session) for valid sessions
