"""
Session Validator — decides whether a candidate interval is a real focus
session, and persists it either way with the verdict as a flag.
"""

from __future__ import annotations

import logging
from typing import List

from focustracker.data.models import Interval, Session, Settings
from focustracker.data.repository import Repository

from .interval_detector import MIN_SESSION_SECONDS

logger = logging.getLogger(__name__)

REASON_TOO_SHORT = "too_short"
REASON_SLEEP = "sleep_window"
REASON_LUNCH = "lunch_window"


class SessionValidator:

    def __init__(self, repo: Repository, min_session_seconds: float = MIN_SESSION_SECONDS) -> None:
        self.repo = repo
        self.min_session_seconds = min_session_seconds

    def explain(self, candidate: Interval, settings: Settings) -> List[str]:
        """Reasons the candidate would be rejected; empty when it is valid.

        Only full containment in a window rejects. An interval that merely
        overlaps sleep or lunch is still a session.
        """
        reasons: List[str] = []
        if candidate.duration < self.min_session_seconds:
            reasons.append(REASON_TOO_SHORT)
        if settings.sleep_window_contains(candidate.start, candidate.end):
            reasons.append(REASON_SLEEP)
        if settings.lunch_window_contains(candidate.start, candidate.end):
            reasons.append(REASON_LUNCH)
        return reasons

    def validate(self, candidate: Interval, settings: Settings) -> bool:
        return not self.explain(candidate, settings)

    def persist(self, candidate: Interval, settings: Settings,
                session_type: str = "focus") -> Session:
        """Store the candidate as a closed Session. Raises StoreError on failure."""
        reasons = self.explain(candidate, settings)
        session = Session(
            start_time=candidate.start,
            end_time=candidate.end,
            duration=max(0.0, candidate.duration),
            is_valid=not reasons,
            session_type=session_type,
        )
        self.repo.create_session(session)
        self._log_verdict(session, reasons)
        return session

    def revalidate(self, session: Session, settings: Settings) -> Session:
        """Re-run the rules on an already stored session that was just closed."""
        reasons = self.explain(session.as_interval(), settings)
        session.is_valid = not reasons
        self.repo.update_session(session)
        self._log_verdict(session, reasons)
        return session

    @staticmethod
    def _log_verdict(session: Session, reasons: List[str]) -> None:
        if reasons:
            logger.info(
                "Session %d rejected (%.0fs): %s",
                session.id, session.duration, ", ".join(reasons),
            )
        else:
            logger.info("Session %d recorded (%.0fs).", session.id, session.duration)
