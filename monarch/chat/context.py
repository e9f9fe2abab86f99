"""Dependencies handed to every chat event handler."""

import logging
from dataclasses import dataclass
from typing import Protocol

from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from monarch.config import Settings
from monarch.mailer import OutboundEmail
from monarch.token import TokenCodec


logger = logging.getLogger(__name__)


class EmailDispatcher(Protocol):
    async def send(self, email: OutboundEmail) -> None:
        ...


@dataclass(frozen=True)
class ChatContext:
    client: AsyncWebClient
    bot_user_id: str
    bot_id: str
    codec: TokenCodec
    mailer: EmailDispatcher
    settings: Settings

    def is_own(self, event: dict) -> bool:
        """True if the event was authored by this bot."""
        if event.get("user") and event.get("user") == self.bot_user_id:
            return True
        return bool(event.get("bot_id")) and event.get("bot_id") == self.bot_id

    async def reply(self, channel: str, text: str) -> bool:
        """Post to a channel. Failures are logged and reported as False."""
        try:
            await self.client.chat_postMessage(channel=channel, text=text)
            return True
        except SlackApiError as e:
            logger.warning("⚠️ Could not post to %s: %s", channel, e.response.get("error"))
            return False

    async def react(self, channel: str, timestamp: str, name: str) -> bool:
        try:
            await self.client.reactions_add(channel=channel, timestamp=timestamp, name=name)
            return True
        except SlackApiError as e:
            logger.warning("⚠️ Could not react in %s: %s", channel, e.response.get("error"))
            return False

    async def direct_message(self, user_id: str, text: str) -> bool:
        try:
            opened = await self.client.conversations_open(users=user_id)
        except SlackApiError as e:
            logger.error("DM error for %s: %s", user_id, e.response.get("error"))
            return False
        return await self.reply(opened["channel"]["id"], text)
