"""
FocusTracker — focus detection and analytics engine.
Developer entry point: replays an activity log and logs a summary.

Run: python main.py [activity_log.jsonl]

Each line of the log is a JSON object such as
    {"timestamp": "2025-03-03T09:00:00+00:00", "active": false}
"""

import faulthandler
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

faulthandler.enable()

# Ensure focustracker is importable
sys.path.insert(0, str(Path(__file__).resolve().parent))

from focustracker.engine import FocusEngine


def setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler("focus_tracker.log", encoding="utf-8"),
        ],
    )


def replay(engine: FocusEngine, log_path: Path) -> int:
    """Feed every event in the log to the detector. Returns events read."""
    logger = logging.getLogger(__name__)
    count = 0
    with open(log_path, encoding="utf-8") as fh:
        for line_no, line in enumerate(fh, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                event = json.loads(line)
                timestamp = datetime.fromisoformat(event["timestamp"])
                active = bool(event["active"])
            except (ValueError, KeyError, TypeError) as exc:
                logger.warning("Skipping line %d of %s: %s", line_no, log_path, exc)
                continue
            engine.activity_state_changed(timestamp, active)
            count += 1
    return count


def log_summary(engine: FocusEngine) -> None:
    logger = logging.getLogger(__name__)
    stats = engine.get_focus_statistics()
    quality = engine.get_quality_metrics()
    logger.info(
        "Today: %.0f min focused over %d session(s), longest %.0f min, quality %.0f/100",
        stats.total_focus_time / 60, stats.session_count,
        stats.longest_session / 60, quality.focus_quality_score,
    )
    for day in engine.get_weekly_trend():
        logger.info("  %s  %6.0f min  (%d)", day.date.isoformat(),
                    day.total_focus_time / 60, day.session_count)


def main() -> None:
    setup_logging()
    logger = logging.getLogger(__name__)
    logger.info("Starting FocusTracker...")

    engine = FocusEngine.open()
    try:
        if len(sys.argv) > 1:
            path = Path(sys.argv[1])
            n = replay(engine, path)
            logger.info("Replayed %d event(s) from %s", n, path)
        log_summary(engine)
    finally:
        engine.shutdown()
        engine.repo.conn.close()


if __name__ == "__main__":
    main()


# ---------------------------------------------------------------------------
# Explanation
# ---------------------------------------------------------------------------
# What this file does:
#   The entry point. Sets up logging (console + focus_tracker.log), opens
#   the engine on the default database, optionally replays a JSON-lines
#   activity log through the detector, then logs today's numbers and the
#   weekly trend.
#
# Key points:
#   - Malformed log lines are skipped with a warning, not fatal.
#   - The engine is always shut down, even if the replay fails.
