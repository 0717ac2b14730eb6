"""
Tag Service — the tag learner and recommender.

Learns activity → tag associations from explicit assignments and ranks
tag suggestions for an activity: what the user chose before, then the
curated catalog, then the platform category.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from focustracker.data.models import Tag, UsageRecord
from focustracker.data.repository import Repository
from focustracker.errors import DuplicateNameError, NotFoundError, ProtectedTagError

from . import tag_catalog

logger = logging.getLogger(__name__)

CONFIDENCE_PRIOR = 1.0
CONFIDENCE_KNOWN = 0.9
CONFIDENCE_CATEGORY = 0.7

REASON_PRIOR = "previously associated"
REASON_KNOWN = "category match"
REASON_CATEGORY = "system category match"


@dataclass
class TagRecommendation:
    tag: Tag
    confidence: float
    reason: str


class TagService:

    def __init__(self, repo: Repository) -> None:
        self.repo = repo
        self._seeded = False

    # ── Catalog ─────────────────────────────────────────────────────────────

    def ensure_default_tags(self) -> List[Tag]:
        """Create whichever built-in tags are missing. Safe to call repeatedly."""
        created = 0
        for entry in tag_catalog.DEFAULT_TAGS:
            if self.repo.get_tag_by_name(entry.name) is None:
                self.repo.create_tag(Tag(name=entry.name, color=entry.color, is_default=True))
                created += 1
        if created:
            logger.info("Seeded %d default tag(s).", created)
        self._seeded = True
        return self.repo.list_tags(defaults_only=True)

    def list_tags(self) -> List[Tag]:
        """Defaults first in seed order, then custom tags by creation."""
        if not self._seeded:
            self.ensure_default_tags()
        return self.repo.list_tags()

    def get_default_tags(self) -> List[Tag]:
        return [t for t in self.list_tags() if t.is_default]

    def get_tag(self, tag_id: int) -> Tag:
        tag = self.repo.get_tag(tag_id)
        if tag is None:
            raise NotFoundError("Tag", tag_id)
        return tag

    def create_custom_tag(self, name: str, color: str = "#007AFF") -> Tag:
        name = (name or "").strip()
        if not name:
            raise ValueError("Tag name cannot be empty.")
        if not self._seeded:
            self.ensure_default_tags()
        if self.repo.get_tag_by_name(name) is not None:
            raise DuplicateNameError(name)
        tag = self.repo.create_tag(Tag(name=name, color=color))
        logger.info("Created custom tag '%s'", name)
        return tag

    def rename_tag(self, tag_id: int, new_name: str) -> Tag:
        tag = self.get_tag(tag_id)
        if tag.is_default:
            logger.warning("Refusing to rename default tag '%s'", tag.name)
            raise ProtectedTagError(tag.name, action="rename")
        new_name = (new_name or "").strip()
        if not new_name:
            raise ValueError("Tag name cannot be empty.")
        if new_name == tag.name:
            return tag
        if self.repo.get_tag_by_name(new_name) is not None:
            raise DuplicateNameError(new_name)
        old_name = tag.name
        tag.name = new_name
        self.repo.update_tag(tag)
        moved = self.repo.rename_scene_tag(old_name, new_name)
        logger.info("Renamed tag '%s' to '%s' (%d record(s))", old_name, new_name, moved)
        return tag

    def delete_tag(self, tag_id: int) -> None:
        """Delete a custom tag. Usage records keep the orphaned tag name."""
        tag = self.get_tag(tag_id)
        if tag.is_default:
            logger.warning("Refusing to delete default tag '%s'", tag.name)
            raise ProtectedTagError(tag.name)
        self.repo.delete_tag(tag_id)
        logger.info("Deleted custom tag '%s'", tag.name)

    # ── Assignment / learning ───────────────────────────────────────────────

    def assign(self, usage_record_id: int, tag_id: int, user_confirmed: bool = True) -> UsageRecord:
        """Tag a usage record and remember the activity for next time."""
        record = self._require_record(usage_record_id)
        tag = self.get_tag(tag_id)

        record.scene_tag = tag.name
        record.update_productivity_status()
        self.repo.update_usage_record(record)

        tag.increment_usage()
        learned = tag.add_activity(record.activity_identifier)
        self.repo.update_tag(tag)

        logger.info("Tagged record %d (%s) as '%s'", record.id,
                    record.activity_identifier, tag.name)
        if user_confirmed and learned:
            logger.debug("Learned association %s -> %s", record.activity_identifier, tag.name)
        return record

    def assign_many(self, usage_record_ids: Iterable[int], tag_id: int) -> List[UsageRecord]:
        tag = self.get_tag(tag_id)
        records = [self._require_record(rid) for rid in usage_record_ids]
        for record in records:
            record.scene_tag = tag.name
            record.update_productivity_status()
            self.repo.update_usage_record(record)
            tag.add_activity(record.activity_identifier)
            tag.increment_usage()
        self.repo.update_tag(tag)
        logger.info("Applied tag '%s' to %d record(s)", tag.name, len(records))
        return records

    def unassign(self, usage_record_id: int) -> UsageRecord:
        """Clear a record's tag. The association goes once no record still carries it."""
        record = self._require_record(usage_record_id)
        old_name = record.scene_tag
        if old_name is None:
            return record

        record.scene_tag = None
        record.update_productivity_status()
        self.repo.update_usage_record(record)

        tag = self.repo.get_tag_by_name(old_name)
        if tag is not None and self.repo.count_usage_with_tag(record.activity_identifier, old_name) == 0:
            if tag.remove_activity(record.activity_identifier):
                self.repo.update_tag(tag)
        logger.info("Removed tag '%s' from record %d", old_name, record.id)
        return record

    # ── Recommendations ─────────────────────────────────────────────────────

    def recommend(
        self,
        activity_identifier: str,
        limit: int = 3,
        category_hint: Optional[str] = None,
    ) -> List[TagRecommendation]:
        """Ranked suggestions, highest confidence first, no tag twice."""
        if limit <= 0:
            return []
        tags = self.list_tags()
        by_name: Dict[str, Tag] = {t.name: t for t in tags}
        recs: List[TagRecommendation] = []
        seen = set()

        def add(tag: Optional[Tag], confidence: float, reason: str) -> None:
            if tag is None or tag.id in seen:
                return
            seen.add(tag.id)
            recs.append(TagRecommendation(tag, confidence, reason))

        for tag in tags:
            if tag.has_activity(activity_identifier):
                add(tag, CONFIDENCE_PRIOR, REASON_PRIOR)

        known = tag_catalog.known_tag_for(activity_identifier)
        if known:
            add(by_name.get(known), CONFIDENCE_KNOWN, REASON_KNOWN)

        hint = category_hint or self.repo.latest_category_hint(activity_identifier)
        by_category = tag_catalog.tag_for_category(hint)
        if by_category:
            add(by_name.get(by_category), CONFIDENCE_CATEGORY, REASON_CATEGORY)

        # Stable sort keeps tag order among equal confidences
        recs.sort(key=lambda r: r.confidence, reverse=True)
        logger.debug("Recommendations for %s: %s", activity_identifier,
                     [(r.tag.name, r.confidence) for r in recs])
        return recs[:limit]

    def find_similar_activities(self, activity_identifier: str) -> List[str]:
        """Other activities that carry the same tag as this one's latest tagged use."""
        tagged = self.repo.list_usage_records(
            activity_identifier=activity_identifier, tagged_only=True
        )
        if not tagged:
            return []
        tag_name = tagged[-1].scene_tag
        return [a for a in self.repo.activities_with_tag(tag_name) if a != activity_identifier]

    # ── Helpers ─────────────────────────────────────────────────────────────

    def _require_record(self, record_id: int) -> UsageRecord:
        record = self.repo.get_usage_record(record_id)
        if record is None:
            raise NotFoundError("Usage record", record_id)
        return record


# ---------------------------------------------------------------------------
# Explanation
# ---------------------------------------------------------------------------
# What this file does:
#   Manages tags and learns which activities belong to which tag.
#
# Key pieces:
#   - assign(): sets scene_tag on the record, bumps usage_count, adds the
#     activity to the tag's set and recomputes productivity.
#   - recommend(): prior association (1.0) > curated identifier (0.9) >
#     platform category (0.7). Nothing is guessed beyond that.
#   - Default tags cannot be deleted or renamed. Deleting a custom tag leaves
#     its name on old usage records so history stays intact.
#
# Data flow:
#   presentation layer -> assign()/create_custom_tag() -> Repository
#   recommend() <- tags + tag_activities + tag_catalog tables
