"""
Seed Data Generator — creates realistic fake data for development and testing.

Run: python scripts/seed_data.py [days]
"""

import random
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from focustracker.data.database import Database
from focustracker.data.models import Interval
from focustracker.data.repository import Repository
from focustracker.services.focus_service import FocusService
from focustracker.services.tag_service import TagService

# (identifier, display name, platform category)
ACTIVITIES = [
    ("com.microsoft.Office.Word", "Word", "productivity"),
    ("com.slack.Slack", "Slack", "business"),
    ("com.apple.iBooks", "Books", "education"),
    ("com.netflix.Netflix", "Netflix", "entertainment"),
    ("com.instagram.Instagram", "Instagram", "social"),
    ("com.strava.stravarun", "Strava", "health"),
    ("com.apple.Maps", "Maps", "navigation"),
]


def seed(num_days: int = 30) -> None:
    db = Database()
    db.connect()
    repo = Repository(db.conn)
    focus = FocusService(repo)
    tags = TagService(repo)

    base_date = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    base_date -= timedelta(days=num_days)
    session_count = 0
    usage_count = 0

    for day in range(num_days):
        cursor = base_date + timedelta(days=day, hours=random.randint(7, 10),
                                       minutes=random.randint(0, 59))

        # ── Focus sessions: 1-5 inactive stretches of 10-120 min ───────────
        for _ in range(random.randint(1, 5)):
            length = timedelta(minutes=random.uniform(10, 120))
            if length >= timedelta(minutes=30):
                if focus.handle_interval(Interval(cursor, cursor + length)):
                    session_count += 1
            cursor += length + timedelta(minutes=random.uniform(2, 90))

        # ── Usage records, some of them tagged ─────────────────────────────
        cursor = base_date + timedelta(days=day, hours=random.randint(8, 20))
        for _ in range(random.randint(3, 10)):
            ident, name, category = random.choice(ACTIVITIES)
            record = focus.start_usage(ident, name, category, at=cursor)
            cursor += timedelta(minutes=random.uniform(1, 50))
            focus.end_usage(record.id, at=cursor)
            usage_count += 1

            if random.random() < 0.6:
                recs = tags.recommend(ident, limit=1)
                if recs:
                    tags.assign(record.id, recs[0].tag.id)
            cursor += timedelta(minutes=random.uniform(0, 20))

    db.close()
    print(f"Seeded {session_count} sessions and {usage_count} usage records "
          f"over {num_days} days.")


if __name__ == "__main__":
    count = int(sys.argv[1]) if len(sys.argv) > 1 else 30
    seed(count)


# ---------------------------------------------------------------------------
# Explanation
# ---------------------------------------------------------------------------
# What this script does:
#   Generates fake history so the analytics have something to chew on:
#   inactive stretches pushed through the real detection pipeline, plus
#   usage records for well-known activities, many of them tagged with the
#   recommender's top suggestion.
#
# Key points:
#   - Goes through FocusService and TagService, so validation rules and
#     tag learning apply exactly as in the app.
