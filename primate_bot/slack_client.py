"""Slack client wrapper for bot operations."""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

logger = logging.getLogger(__name__)


@dataclass
class MentionEvent:
    """A message that mentions the bot."""

    text: str
    user: str
    channel: str
    ts: str
    thread_ts: Optional[str] = None

    @property
    def reply_thread(self) -> str:
        """Thread to answer in: the enclosing thread, or the message itself."""
        return self.thread_ts or self.ts

    @classmethod
    def from_payload(cls, event: dict[str, Any]) -> "MentionEvent":
        return cls(
            text=event.get("text", ""),
            user=event.get("user", ""),
            channel=event.get("channel", ""),
            ts=event["ts"],
            thread_ts=event.get("thread_ts"),
        )


@dataclass
class ReactionEvent:
    """A reaction added to a message."""

    reaction: str
    user: str
    item_ts: str
    channel: str
    item_thread_ts: Optional[str] = None

    @property
    def on_thread_reply(self) -> bool:
        return self.item_thread_ts is not None and self.item_thread_ts != self.item_ts

    @classmethod
    def from_payload(cls, event: dict[str, Any]) -> "ReactionEvent":
        item = event.get("item", {})
        return cls(
            reaction=event.get("reaction", ""),
            user=event.get("user", ""),
            item_ts=item.get("ts", ""),
            channel=item.get("channel", ""),
            item_thread_ts=item.get("thread_ts"),
        )


class SlackClient:
    """Outbound Slack operations used by the bot."""

    def __init__(self, client: AsyncWebClient) -> None:
        self.client = client

    async def post_message(
        self,
        channel: str,
        text: str,
        thread_ts: Optional[str] = None,
        blocks: Optional[list[dict[str, Any]]] = None,
    ) -> Optional[str]:
        """Post a message, optionally into a thread.

        Returns:
            Timestamp of the posted message.

        Raises:
            SlackApiError: If Slack rejects the message.
        """
        response = await self.client.chat_postMessage(
            channel=channel,
            text=text,
            thread_ts=thread_ts,
            blocks=blocks,
        )
        logger.debug("Posted message to %s (thread=%s): %s", channel, thread_ts, text[:50])
        return response.get("ts")

    async def get_display_name(self, user_id: str) -> str:
        """Real name of a user, or the raw user ID if the lookup fails."""
        try:
            response = await self.client.users_info(user=user_id)
            user = response["user"]
            return user.get("real_name") or user.get("name") or user_id
        except (SlackApiError, KeyError) as e:
            logger.warning("Error getting user info for %s: %s", user_id, e)
            return user_id
        except Exception as e:
            logger.error("User lookup for %s failed: %s", user_id, e, exc_info=True)
            return user_id
