"""
Repository — the single place where SQL lives.

Every other module talks to Repository, never to raw SQL. It plays the role
of both the Session Store and the Settings Store, and is injected into the
services so tests can hand them an in-memory database instead.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, time, timezone
from typing import Iterator, List, Optional, Set

from focustracker.errors import DuplicateNameError, StoreError
from focustracker.timeutil import ensure_aware

from .models import Session, Settings, Tag, UsageRecord

logger = logging.getLogger(__name__)

# Everything is stored as UTC text so lexical order == chronological order.
DATETIME_FMT = "%Y-%m-%dT%H:%M:%S.%f+00:00"


def _to_text(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return ensure_aware(value).astimezone(timezone.utc).strftime(DATETIME_FMT)


def _parse_dt(text: Optional[str]) -> Optional[datetime]:
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        logger.warning("Unparseable timestamp %r in store; ignoring.", text)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_time(text: str, fallback: time) -> time:
    try:
        return time.fromisoformat(text)
    except (TypeError, ValueError):
        logger.warning("Unparseable time-of-day %r in settings; using %s.", text, fallback)
        return fallback


class Repository:
    """Data-access layer wrapping a sqlite3 connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        """Translate driver failures into StoreError."""
        try:
            yield
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to {action}: {exc}") from exc

    # ── Sessions ────────────────────────────────────────────────────────────

    def create_session(self, session: Session) -> Session:
        with self._guard("create session"):
            cur = self.conn.execute(
                """INSERT INTO sessions (
                    start_time, end_time, duration, is_valid, session_type,
                    activity_label, category, target_duration, notes
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    _to_text(session.start_time),
                    _to_text(session.end_time),
                    session.duration,
                    1 if session.is_valid else 0,
                    session.session_type,
                    session.activity_label,
                    session.category,
                    session.target_duration,
                    session.notes,
                ),
            )
            self.conn.commit()
        session.id = cur.lastrowid
        return session

    def update_session(self, session: Session) -> None:
        with self._guard("update session"):
            self.conn.execute(
                """UPDATE sessions SET
                    end_time = ?, duration = ?, is_valid = ?, session_type = ?,
                    activity_label = ?, category = ?, target_duration = ?, notes = ?
                WHERE id = ?""",
                (
                    _to_text(session.end_time),
                    session.duration,
                    1 if session.is_valid else 0,
                    session.session_type,
                    session.activity_label,
                    session.category,
                    session.target_duration,
                    session.notes,
                    session.id,
                ),
            )
            self.conn.commit()

    def get_session(self, session_id: int) -> Optional[Session]:
        with self._guard("read session"):
            row = self.conn.execute(
                "SELECT * FROM sessions WHERE id = ?", (session_id,)
            ).fetchone()
        return self._row_to_session(row) if row else None

    def list_sessions(
        self,
        start_after: Optional[datetime] = None,
        start_before: Optional[datetime] = None,
        valid_only: bool = False,
        include_open: bool = False,
        limit: Optional[int] = None,
    ) -> List[Session]:
        """Sessions whose start is in [start_after, start_before), oldest first."""
        query = "SELECT * FROM sessions"
        conditions: List[str] = []
        params: list = []

        if start_after is not None:
            conditions.append("start_time >= ?")
            params.append(_to_text(start_after))
        if start_before is not None:
            conditions.append("start_time < ?")
            params.append(_to_text(start_before))
        if valid_only:
            conditions.append("is_valid = 1")
        if not include_open:
            conditions.append("end_time IS NOT NULL")

        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY start_time ASC, id ASC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        with self._guard("list sessions"):
            rows = self.conn.execute(query, params).fetchall()
        return self._map_rows(rows, self._row_to_session)

    def find_sessions_within(self, start: datetime, end: datetime) -> List[Session]:
        """Closed sessions lying entirely inside [start, end]."""
        with self._guard("search sessions"):
            rows = self.conn.execute(
                "SELECT * FROM sessions WHERE start_time >= ? AND end_time <= ? "
                "AND end_time IS NOT NULL ORDER BY start_time",
                (_to_text(start), _to_text(end)),
            ).fetchall()
        return self._map_rows(rows, self._row_to_session)

    def get_open_sessions(self, session_type: Optional[str] = None) -> List[Session]:
        query = "SELECT * FROM sessions WHERE end_time IS NULL"
        params: list = []
        if session_type is not None:
            query += " AND session_type = ?"
            params.append(session_type)
        with self._guard("list open sessions"):
            rows = self.conn.execute(query + " ORDER BY start_time", params).fetchall()
        return self._map_rows(rows, self._row_to_session)

    def count_sessions(self) -> int:
        with self._guard("count sessions"):
            row = self.conn.execute("SELECT COUNT(*) FROM sessions").fetchone()
        return row[0]

    def total_valid_focus_time(self) -> float:
        """All-time sum of closed valid session durations, negatives as 0."""
        with self._guard("sum focus time"):
            row = self.conn.execute(
                "SELECT COALESCE(SUM(MAX(duration, 0)), 0) FROM sessions "
                "WHERE is_valid = 1 AND end_time IS NOT NULL"
            ).fetchone()
        return float(row[0])

    # ── Usage records ───────────────────────────────────────────────────────

    def create_usage_record(self, record: UsageRecord) -> UsageRecord:
        with self._guard("create usage record"):
            cur = self.conn.execute(
                """INSERT INTO usage_records (
                    activity_identifier, activity_name, category_hint, start_time,
                    end_time, duration, scene_tag, is_productive_time, interruption_count
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    record.activity_identifier,
                    record.activity_name,
                    record.category_hint,
                    _to_text(record.start_time),
                    _to_text(record.end_time),
                    record.duration,
                    record.scene_tag,
                    1 if record.is_productive_time else 0,
                    record.interruption_count,
                ),
            )
            self.conn.commit()
        record.id = cur.lastrowid
        return record

    def update_usage_record(self, record: UsageRecord) -> None:
        with self._guard("update usage record"):
            self.conn.execute(
                """UPDATE usage_records SET
                    activity_name = ?, category_hint = ?, end_time = ?, duration = ?,
                    scene_tag = ?, is_productive_time = ?, interruption_count = ?
                WHERE id = ?""",
                (
                    record.activity_name,
                    record.category_hint,
                    _to_text(record.end_time),
                    record.duration,
                    record.scene_tag,
                    1 if record.is_productive_time else 0,
                    record.interruption_count,
                    record.id,
                ),
            )
            self.conn.commit()

    def get_usage_record(self, record_id: int) -> Optional[UsageRecord]:
        with self._guard("read usage record"):
            row = self.conn.execute(
                "SELECT * FROM usage_records WHERE id = ?", (record_id,)
            ).fetchone()
        return self._row_to_usage(row) if row else None

    def list_usage_records(
        self,
        start_after: Optional[datetime] = None,
        start_before: Optional[datetime] = None,
        activity_identifier: Optional[str] = None,
        tagged_only: bool = False,
        limit: Optional[int] = None,
    ) -> List[UsageRecord]:
        query = "SELECT * FROM usage_records"
        conditions: List[str] = []
        params: list = []

        if start_after is not None:
            conditions.append("start_time >= ?")
            params.append(_to_text(start_after))
        if start_before is not None:
            conditions.append("start_time < ?")
            params.append(_to_text(start_before))
        if activity_identifier is not None:
            conditions.append("activity_identifier = ?")
            params.append(activity_identifier)
        if tagged_only:
            conditions.append("scene_tag IS NOT NULL")

        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY start_time ASC, id ASC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        with self._guard("list usage records"):
            rows = self.conn.execute(query, params).fetchall()
        return self._map_rows(rows, self._row_to_usage)

    def latest_category_hint(self, activity_identifier: str) -> Optional[str]:
        with self._guard("read category hint"):
            row = self.conn.execute(
                "SELECT category_hint FROM usage_records "
                "WHERE activity_identifier = ? AND category_hint IS NOT NULL "
                "ORDER BY start_time DESC LIMIT 1",
                (activity_identifier,),
            ).fetchone()
        return row["category_hint"] if row else None

    def count_usage_with_tag(self, activity_identifier: str, tag_name: str) -> int:
        with self._guard("count tagged usage"):
            row = self.conn.execute(
                "SELECT COUNT(*) FROM usage_records "
                "WHERE activity_identifier = ? AND scene_tag = ?",
                (activity_identifier, tag_name),
            ).fetchone()
        return row[0]

    def rename_scene_tag(self, old_name: str, new_name: str) -> int:
        """Rewrite the denormalized tag name on usage records. Returns rows changed."""
        with self._guard("rename scene tag"):
            cur = self.conn.execute(
                "UPDATE usage_records SET scene_tag = ? WHERE scene_tag = ?",
                (new_name, old_name),
            )
            self.conn.commit()
        return cur.rowcount

    def activities_with_tag(self, tag_name: str) -> List[str]:
        with self._guard("list tagged activities"):
            rows = self.conn.execute(
                "SELECT DISTINCT activity_identifier FROM usage_records "
                "WHERE scene_tag = ? ORDER BY activity_identifier",
                (tag_name,),
            ).fetchall()
        return [r["activity_identifier"] for r in rows]

    # ── Tags ────────────────────────────────────────────────────────────────

    def create_tag(self, tag: Tag) -> Tag:
        created = tag.created_at or datetime.now(timezone.utc)
        try:
            cur = self.conn.execute(
                "INSERT INTO tags (name, color, is_default, usage_count, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (tag.name, tag.color, 1 if tag.is_default else 0,
                 tag.usage_count, _to_text(created)),
            )
            tag.id = cur.lastrowid
            self._write_tag_activities(tag)
            self.conn.commit()
        except sqlite3.IntegrityError as exc:
            self.conn.rollback()
            raise DuplicateNameError(tag.name) from exc
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to create tag: {exc}") from exc
        tag.created_at = created
        return tag

    def update_tag(self, tag: Tag) -> None:
        """Persist name, colour, usage count and the activity set."""
        try:
            self.conn.execute(
                "UPDATE tags SET name = ?, color = ?, usage_count = ? WHERE id = ?",
                (tag.name, tag.color, tag.usage_count, tag.id),
            )
            self._write_tag_activities(tag)
            self.conn.commit()
        except sqlite3.IntegrityError as exc:
            self.conn.rollback()
            raise DuplicateNameError(tag.name) from exc
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to update tag: {exc}") from exc

    def get_tag(self, tag_id: int) -> Optional[Tag]:
        with self._guard("read tag"):
            row = self.conn.execute("SELECT * FROM tags WHERE id = ?", (tag_id,)).fetchone()
            return self._row_to_tag(row) if row else None

    def get_tag_by_name(self, name: str) -> Optional[Tag]:
        # `=` on TEXT is case-sensitive in SQLite unless a NOCASE collation is used
        with self._guard("read tag"):
            row = self.conn.execute("SELECT * FROM tags WHERE name = ?", (name,)).fetchone()
            return self._row_to_tag(row) if row else None

    def list_tags(self, defaults_only: bool = False) -> List[Tag]:
        """Defaults first (seed order), then custom tags by creation."""
        query = "SELECT * FROM tags"
        if defaults_only:
            query += " WHERE is_default = 1"
        query += " ORDER BY is_default DESC, id ASC"
        with self._guard("list tags"):
            rows = self.conn.execute(query).fetchall()
            return [self._row_to_tag(r) for r in rows]

    def count_tags(self) -> int:
        with self._guard("count tags"):
            return self.conn.execute("SELECT COUNT(*) FROM tags").fetchone()[0]

    def delete_tag(self, tag_id: int) -> None:
        with self._guard("delete tag"):
            self.conn.execute("DELETE FROM tag_activities WHERE tag_id = ?", (tag_id,))
            self.conn.execute("DELETE FROM tags WHERE id = ?", (tag_id,))
            self.conn.commit()

    def _write_tag_activities(self, tag: Tag) -> None:
        stored = {
            r["activity_identifier"]
            for r in self.conn.execute(
                "SELECT activity_identifier FROM tag_activities WHERE tag_id = ?",
                (tag.id,),
            )
        }
        for ident in stored - tag.associated_activities:
            self.conn.execute(
                "DELETE FROM tag_activities WHERE tag_id = ? AND activity_identifier = ?",
                (tag.id, ident),
            )
        for ident in sorted(tag.associated_activities - stored):
            self.conn.execute(
                "INSERT INTO tag_activities (tag_id, activity_identifier) VALUES (?, ?)",
                (tag.id, ident),
            )

    # ── Settings ────────────────────────────────────────────────────────────

    def get_settings(self) -> Settings:
        """Return the singleton, creating it with defaults on first access."""
        with self._guard("read settings"):
            row = self.conn.execute("SELECT * FROM settings WHERE id = 1").fetchone()
        if row is None:
            settings = Settings()
            self.save_settings(settings)
            logger.info("Created default settings.")
            return settings
        return self._row_to_settings(row)

    def save_settings(self, settings: Settings) -> None:
        with self._guard("save settings"):
            self.conn.execute(
                """INSERT OR REPLACE INTO settings (
                    id, daily_focus_goal, daily_usage_goal, sleep_start, sleep_end,
                    lunch_enabled, lunch_start, lunch_end, flexible_weekend_sleep,
                    use_local_time_zone, time_zone_offset_hours, notifications_enabled
                ) VALUES (1, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    settings.daily_focus_goal,
                    settings.daily_usage_goal,
                    settings.sleep_start.isoformat("minutes"),
                    settings.sleep_end.isoformat("minutes"),
                    1 if settings.lunch_enabled else 0,
                    settings.lunch_start.isoformat("minutes"),
                    settings.lunch_end.isoformat("minutes"),
                    1 if settings.flexible_weekend_sleep else 0,
                    1 if settings.use_local_time_zone else 0,
                    settings.time_zone_offset_hours,
                    1 if settings.notifications_enabled else 0,
                ),
            )
            self.conn.commit()

    # ── Milestones ──────────────────────────────────────────────────────────

    def notified_milestones(self) -> Set[int]:
        with self._guard("read milestones"):
            rows = self.conn.execute("SELECT hours FROM notified_milestones").fetchall()
        return {r["hours"] for r in rows}

    def mark_milestone_notified(self, hours: int, at: Optional[datetime] = None) -> None:
        with self._guard("record milestone"):
            self.conn.execute(
                "INSERT OR IGNORE INTO notified_milestones (hours, notified_at) VALUES (?, ?)",
                (hours, _to_text(at or datetime.now(timezone.utc))),
            )
            self.conn.commit()

    # ── Row mappers ─────────────────────────────────────────────────────────

    @staticmethod
    def _map_rows(rows, mapper) -> list:
        """Map rows, skipping the ones too corrupted to use."""
        items = []
        for row in rows:
            item = mapper(row)
            if item.start_time is None:
                logger.warning("Skipping row %s with no usable start time.", row["id"])
                continue
            items.append(item)
        return items

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> Session:
        return Session(
            id=row["id"],
            start_time=_parse_dt(row["start_time"]),
            end_time=_parse_dt(row["end_time"]),
            duration=row["duration"] or 0.0,
            is_valid=bool(row["is_valid"]),
            session_type=row["session_type"] or "focus",
            activity_label=row["activity_label"],
            category=row["category"],
            target_duration=row["target_duration"],
            notes=row["notes"],
        )

    @staticmethod
    def _row_to_usage(row: sqlite3.Row) -> UsageRecord:
        return UsageRecord(
            id=row["id"],
            activity_identifier=row["activity_identifier"] or "",
            activity_name=row["activity_name"] or "",
            category_hint=row["category_hint"],
            start_time=_parse_dt(row["start_time"]),
            end_time=_parse_dt(row["end_time"]),
            duration=row["duration"] or 0.0,
            scene_tag=row["scene_tag"],
            is_productive_time=bool(row["is_productive_time"]),
            interruption_count=row["interruption_count"] or 0,
        )

    def _row_to_tag(self, row: sqlite3.Row) -> Tag:
        activities = {
            r["activity_identifier"]
            for r in self.conn.execute(
                "SELECT activity_identifier FROM tag_activities WHERE tag_id = ?",
                (row["id"],),
            )
        }
        return Tag(
            id=row["id"],
            name=row["name"],
            color=row["color"],
            is_default=bool(row["is_default"]),
            usage_count=row["usage_count"] or 0,
            associated_activities=activities,
            created_at=_parse_dt(row["created_at"]),
        )

    @staticmethod
    def _row_to_settings(row: sqlite3.Row) -> Settings:
        defaults = Settings()
        return Settings(
            daily_focus_goal=row["daily_focus_goal"],
            daily_usage_goal=row["daily_usage_goal"],
            sleep_start=_parse_time(row["sleep_start"], defaults.sleep_start),
            sleep_end=_parse_time(row["sleep_end"], defaults.sleep_end),
            lunch_enabled=bool(row["lunch_enabled"]),
            lunch_start=_parse_time(row["lunch_start"], defaults.lunch_start),
            lunch_end=_parse_time(row["lunch_end"], defaults.lunch_end),
            flexible_weekend_sleep=bool(row["flexible_weekend_sleep"]),
            use_local_time_zone=bool(row["use_local_time_zone"]),
            time_zone_offset_hours=row["time_zone_offset_hours"],
            notifications_enabled=bool(row["notifications_enabled"]),
        )


# ---------------------------------------------------------------------------
# Explanation
# ---------------------------------------------------------------------------
# What this file does:
#   The Repository is the ONLY place raw SQL queries live. Services call
#   repo.create_session(), repo.list_tags() and so on instead of writing SQL.
#
# Key methods:
#   - Sessions / usage records: create, update, range queries (oldest first).
#   - Tags: CRUD plus the tag_activities set, kept in sync on every update.
#   - Settings: get_settings() creates the singleton with defaults if absent.
#   - Milestones: which all-time focus-hour marks were already announced.
#
# Errors:
#   - sqlite3 failures are wrapped in StoreError (chained with `from`).
#   - A UNIQUE violation on tags.name becomes DuplicateNameError.
#   - Unparseable timestamps are logged and the row skipped on list reads.
