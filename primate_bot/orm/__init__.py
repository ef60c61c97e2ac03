"""ORM models for database persistence."""

from .base import Base, KeyedDocument
from .tracked_review import TrackedReviewDocument
from .user_stats import UserStatsDocument

__all__ = [
    "Base",
    "KeyedDocument",
    "TrackedReviewDocument",
    "UserStatsDocument",
]
