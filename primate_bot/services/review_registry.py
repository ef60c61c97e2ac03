"""Authoritative registry of tracked reviews.

Records are keyed by the timestamp of the Slack message that started
tracking. Every successful mutation writes the whole collection through
the backing store before returning.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import ValidationError

from ..models import TrackedReview

logger = logging.getLogger(__name__)

_LEGACY_REVIEW_FIELDS = {
    "prUrl": "reviewUrl",
    "mrIid": "reviewNumber",
}


class RegistryResult(Enum):
    """Outcome of a create call."""

    CREATED = "created"
    DUPLICATE_KEY = "duplicate_key"
    DUPLICATE_URL = "duplicate_url"


@dataclass
class ApplyResult:
    """Outcome of a read-modify-write call.

    ``value`` is whatever the mutator returned.
    """

    found: bool
    value: Any = None

    def __bool__(self) -> bool:
        return self.found


def migrate_tracked_reviews(records: dict[str, dict]) -> int:
    """Upgrade raw review records in place. Returns the number changed."""
    migrated = 0
    for key, record in records.items():
        needs_migration = False

        for old, new in _LEGACY_REVIEW_FIELDS.items():
            if old in record:
                record.setdefault(new, record[old])
                del record[old]
                needs_migration = True

        defaults = {
            "threadKey": key,
            "commenters": [],
            "approvalTimes": {},
            "merged": False,
            "firstApprovalAt": None,
        }
        for field, default in defaults.items():
            if field not in record:
                record[field] = default
                needs_migration = True

        if needs_migration:
            migrated += 1
    return migrated


class ReviewRegistry:
    """In-memory table of tracked reviews backed by a collection store."""

    def __init__(self, store):
        self.store = store
        self._reviews: dict[str, TrackedReview] = {}

    async def load(self) -> int:
        """Load persisted reviews, migrating legacy records. Returns count loaded."""
        raw = await self.store.load_all()
        migrated = migrate_tracked_reviews(raw)

        self._reviews = {}
        for key, record in raw.items():
            try:
                self._reviews[key] = TrackedReview.model_validate(record)
            except ValidationError as e:
                logger.error("Dropping unreadable tracked review %s: %s", key, e)

        if migrated:
            logger.info("Migrated %d tracked review(s) to new format", migrated)
            await self._persist()

        logger.info("Loaded %d tracked review(s)", len(self._reviews))
        return len(self._reviews)

    async def _persist(self) -> bool:
        return await self.store.save_all(
            {key: review.to_json_dict() for key, review in self._reviews.items()}
        )

    def __len__(self) -> int:
        return len(self._reviews)

    def __contains__(self, thread_key: str) -> bool:
        return thread_key in self._reviews

    def get(self, thread_key: str) -> Optional[TrackedReview]:
        """Return a copy of the review tracked in ``thread_key``, if any."""
        review = self._reviews.get(thread_key)
        return review.model_copy(deep=True) if review else None

    def find(self, predicate: Callable[[TrackedReview], bool]) -> list[TrackedReview]:
        """Return copies of all reviews matching ``predicate``."""
        return [
            review.model_copy(deep=True)
            for review in list(self._reviews.values())
            if predicate(review)
        ]

    def find_by_url(self, review_url: str) -> Optional[TrackedReview]:
        matches = self.find(lambda review: review.review_url == review_url)
        return matches[0] if matches else None

    def snapshot(self) -> list[TrackedReview]:
        """Copies of every live review, for sweeps over the whole registry."""
        return self.find(lambda review: True)

    async def create(self, review: TrackedReview) -> RegistryResult:
        """Start tracking ``review`` unless its thread or URL is already tracked."""
        if review.thread_key in self._reviews:
            return RegistryResult.DUPLICATE_KEY
        if self.find_by_url(review.review_url) is not None:
            return RegistryResult.DUPLICATE_URL

        self._reviews[review.thread_key] = review.model_copy(deep=True)
        await self._persist()
        logger.info("Tracking %s in thread %s", review.review_url, review.thread_key)
        return RegistryResult.CREATED

    async def apply(
        self, thread_key: str, mutator: Callable[[TrackedReview], Any]
    ) -> ApplyResult:
        """Atomically read, modify and write one review.

        The mutator receives a working copy; the copy replaces the stored
        record only if the mutator returns without raising.
        """
        current = self._reviews.get(thread_key)
        if current is None:
            return ApplyResult(found=False)

        working = current.model_copy(deep=True)
        value = mutator(working)
        self._reviews[thread_key] = working
        await self._persist()
        return ApplyResult(found=True, value=value)

    async def remove(self, thread_key: str) -> bool:
        """Stop tracking a review. Returns whether one existed."""
        if self._reviews.pop(thread_key, None) is None:
            return False
        await self._persist()
        logger.info("Stopped tracking thread %s", thread_key)
        return True
