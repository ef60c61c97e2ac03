"""Reaction- and command-driven transitions of tracked reviews."""

import logging
from datetime import datetime
from typing import Callable, Optional

from .. import formatting
from ..command_router import CommandType
from ..config import Config
from ..models import TrackedReview, utcnow
from ..reactions import ReactionKind, classify_reaction
from ..review_links import LinkParseError, extract_user_mentions, find_review_link
from ..slack_client import MentionEvent, ReactionEvent
from .review_registry import RegistryResult

logger = logging.getLogger(__name__)

REACTION_ERROR = "Sorry, I couldn't process that reaction. Please try again."


class TransitionEngine:
    """Applies review transitions and posts the resulting thread notices."""

    def __init__(
        self,
        config: Config,
        registry,
        statistics,
        chat,
        gitlab,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.config = config
        self.registry = registry
        self.statistics = statistics
        self.chat = chat
        self.gitlab = gitlab
        self.clock = clock

    async def _reply(self, channel: str, thread_ts: str, text: str) -> None:
        await self.chat.post_message(channel=channel, text=text, thread_ts=thread_ts)

    async def _notify_failure(self, channel: str, thread_ts: str, text: str) -> None:
        try:
            await self._reply(channel, thread_ts, text)
        except Exception as e:
            logger.error("Failed to post error notice to %s: %s", channel, e)

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    async def track_review(self, event: MentionEvent) -> Optional[TrackedReview]:
        """Start tracking the merge request linked in a channel message.

        Returns:
            The new TrackedReview, or None if nothing was tracked.
        """
        try:
            return await self._track_review(event)
        except Exception as e:
            logger.error("Error processing PR message %s: %s", event.ts, e, exc_info=True)
            await self._notify_failure(event.channel, event.ts, formatting.GENERIC_ERROR)
            return None

    async def _track_review(self, event: MentionEvent) -> Optional[TrackedReview]:
        link = find_review_link(event.text, self.config.gitlab.host)
        if isinstance(link, LinkParseError):
            logger.info("No usable merge request link in %s: %s", event.ts, link.reason)
            hint = formatting.NO_LINK_HINT.format(host=self.config.gitlab.host)
            await self._reply(event.channel, event.ts, hint)
            return None

        if self.registry.find_by_url(link.url) is not None:
            await self._reply(event.channel, event.ts, formatting.ALREADY_TRACKED)
            return None

        reviewer_ids = extract_user_mentions(event.text, exclude=self.config.slack.bot_user_id)
        logger.debug("Extracted reviewer IDs: %s", reviewer_ids)
        if not reviewer_ids:
            await self._reply(event.channel, event.ts, formatting.NO_REVIEWERS_HINT)
            return None

        now = self.clock()
        review = TrackedReview(
            thread_key=event.ts,
            review_url=link.url,
            project_path=link.project_path,
            review_number=link.number,
            channel=event.channel,
            author_id=event.user,
            reviewers=reviewer_ids,
            created_at=now,
            last_updated=now,
        )
        result = await self.registry.create(review)
        if result is not RegistryResult.CREATED:
            logger.info("Not tracking %s: %s", link.url, result.value)
            await self._reply(event.channel, event.ts, formatting.ALREADY_TRACKED)
            return None

        await self.statistics.record_creation(event.user, now)

        names = [await self.chat.get_display_name(user_id) for user_id in reviewer_ids]
        await self._reply(event.channel, event.ts, formatting.tracking_confirmation(names))
        return review

    # ------------------------------------------------------------------
    # Thread commands
    # ------------------------------------------------------------------

    async def add_reviewer(self, thread_key: str, user_id: str) -> bool:
        """Add a pending reviewer. False if absent or already a reviewer."""

        def add(review: TrackedReview) -> bool:
            if user_id in review.reviewers:
                return False
            review.reviewers.append(user_id)
            review.approved = False
            return True

        outcome = await self.registry.apply(thread_key, add)
        return bool(outcome.value)

    async def remove_reviewer(self, thread_key: str, user_id: str) -> bool:
        """Drop a pending reviewer. False if absent or not a reviewer."""

        def remove(review: TrackedReview) -> bool:
            if user_id not in review.reviewers:
                return False
            review.reviewers.remove(user_id)
            if not review.reviewers:
                review.approved = True
            return True

        outcome = await self.registry.apply(thread_key, remove)
        return bool(outcome.value)

    async def handle_thread_command(self, event: MentionEvent, command: CommandType) -> None:
        """Run ``add-reviewer`` / ``remove-reviewer`` inside a tracked thread."""
        thread_key = event.thread_ts or event.ts
        try:
            user_ids = extract_user_mentions(event.text, exclude=self.config.slack.bot_user_id)
            if not user_ids:
                await self._reply(event.channel, thread_key, formatting.NO_USERS_HINT)
                return

            if thread_key not in self.registry:
                await self._reply(event.channel, thread_key, formatting.NO_TRACKED_PR)
                return

            results = []
            for user_id in user_ids:
                if command is CommandType.ADD_REVIEWER:
                    added = await self.add_reviewer(thread_key, user_id)
                    results.append(
                        f"<@{user_id}> has been added as a reviewer."
                        if added
                        else f"<@{user_id}> is already a reviewer."
                    )
                else:
                    removed = await self.remove_reviewer(thread_key, user_id)
                    results.append(
                        f"<@{user_id}> has been removed as a reviewer."
                        if removed
                        else f"<@{user_id}> was not a reviewer."
                    )

            await self._reply(event.channel, thread_key, "\n".join(results))
        except Exception as e:
            logger.error("Error handling %s in %s: %s", command.value, thread_key, e, exc_info=True)
            await self._notify_failure(event.channel, thread_key, formatting.GENERIC_ERROR)

    # ------------------------------------------------------------------
    # Reactions
    # ------------------------------------------------------------------

    async def handle_reaction(self, event: ReactionEvent) -> ReactionKind:
        """Apply the transition requested by a reaction on a tracked message.

        Returns:
            The transition that was dispatched, UNKNOWN if none applied.
        """
        if event.on_thread_reply:
            return ReactionKind.UNKNOWN

        review = self.registry.get(event.item_ts)
        if review is None:
            return ReactionKind.UNKNOWN

        kind = classify_reaction(
            event.reaction,
            is_reviewer=review.is_reviewer(event.user),
            comment_requires_reviewer=self.config.bot.comment_requires_reviewer,
        )
        if kind is ReactionKind.UNKNOWN:
            return kind

        handlers = {
            ReactionKind.APPROVE: self._approve,
            ReactionKind.COMMENT: self._comment,
            ReactionKind.MERGE: self._merge,
            ReactionKind.STOP: self._stop_tracking,
            ReactionKind.FIXED: self._mark_fixed,
        }
        logger.info("Reaction :%s: by %s on %s -> %s", event.reaction, event.user, event.item_ts, kind.value)
        try:
            await handlers[kind](review, event)
        except Exception as e:
            logger.error("Error handling reaction on %s: %s", event.item_ts, e, exc_info=True)
            await self._notify_failure(event.channel, event.item_ts, REACTION_ERROR)
        return kind

    async def _approve(self, review: TrackedReview, event: ReactionEvent) -> None:
        actor = event.user
        approved_at = self.clock()

        def approve(record: TrackedReview) -> Optional[bool]:
            if actor not in record.reviewers:
                return None
            record.reviewers.remove(actor)
            record.approval_times[actor] = approved_at
            if record.first_approval_at is None:
                record.first_approval_at = approved_at
            if not record.reviewers:
                record.approved = True
            return record.approved

        outcome = await self.registry.apply(review.thread_key, approve)
        if not outcome or outcome.value is None:
            logger.info("Ignoring approval by %s: not a pending reviewer", actor)
            return
        logger.info("Reviewer %s approved %s", actor, review.review_url)

        await self.statistics.record_approval(actor, review.author_id, review.created_at, approved_at)

        if outcome.value:
            await self._announce_merge_readiness(review, event.channel)
        else:
            name = await self.chat.get_display_name(actor)
            await self._reply(event.channel, review.thread_key, f"{name} has approved the PR! 👍")

    async def _announce_merge_readiness(self, review: TrackedReview, channel: str) -> None:
        try:
            status = await self.gitlab.query_review(review.project_path, review.review_number)
            mergeable = status.mergeable
        except Exception as e:
            logger.warning("Could not check mergeability of %s: %s", review.review_url, e)
            mergeable = False

        direct = self.config.gitlab.allows_direct_merge(review.project_path)
        await self._reply(channel, review.thread_key, formatting.merge_readiness(mergeable, direct))

    async def _comment(self, review: TrackedReview, event: ReactionEvent) -> None:
        actor = event.user
        now = self.clock()

        def comment(record: TrackedReview) -> None:
            if actor not in record.commenters:
                record.commenters.append(actor)
            record.last_updated = now

        await self.registry.apply(review.thread_key, comment)
        await self.statistics.record_comment(actor)

        name = await self.chat.get_display_name(actor)
        await self._reply(
            event.channel,
            review.thread_key,
            f"Hey <@{review.author_id}>, {name} has left some comments on your PR! 📝",
        )

    async def _mark_fixed(self, review: TrackedReview, event: ReactionEvent) -> None:
        if event.user != review.author_id or not review.commenters:
            return

        name = await self.chat.get_display_name(event.user)
        mentions = ", ".join(f"<@{user_id}>" for user_id in review.commenters)
        await self._reply(
            event.channel,
            review.thread_key,
            f"🔧 {name} has marked the issues as fixed! {mentions}, please review the updates.",
        )

    async def _merge(self, review: TrackedReview, event: ReactionEvent) -> None:
        if self.config.gitlab.merge_on_signal:
            merged = await self.gitlab.merge_review(review.project_path, review.review_number)
            if not merged:
                await self._reply(event.channel, review.thread_key, formatting.MERGE_FAILED)
                return

        merged_at = self.clock()
        if await self.registry.remove(review.thread_key):
            await self.statistics.record_merge(review.author_id, review.created_at, merged_at)
            await self._reply(event.channel, review.thread_key, formatting.MERGED)
        else:
            logger.error("There was an error removing %s from being tracked", review.thread_key)
            await self._reply(event.channel, review.thread_key, formatting.UNTRACK_ERROR)

    async def _stop_tracking(self, review: TrackedReview, event: ReactionEvent) -> None:
        if await self.registry.remove(review.thread_key):
            await self._reply(event.channel, review.thread_key, formatting.STOPPED_TRACKING)
        else:
            logger.error("There was an error removing %s from being tracked", review.thread_key)
            await self._reply(event.channel, review.thread_key, formatting.UNTRACK_ERROR)
