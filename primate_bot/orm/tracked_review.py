"""TrackedReviewDocument model for the tracked review collection."""

from .base import KeyedDocument


class TrackedReviewDocument(KeyedDocument):
    """A tracked review, keyed by the timestamp of its root Slack message."""

    __tablename__ = "tracked_reviews"
