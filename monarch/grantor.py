"""Grant access by inviting a verified user into a restricted Slack channel."""

import logging
from typing import Protocol

import aiohttp
from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from monarch.errors import GrantError


logger = logging.getLogger(__name__)

# Errors meaning the user already has access
_ALREADY_GRANTED = {"already_in_channel"}


class AccessGrantor(Protocol):
    async def grant(self, identity: str) -> None:
        """Give `identity` access. Must be idempotent; raises GrantError."""
        ...


class SlackChannelGrantor:
    """Invites users to the channel reserved for verified members."""

    def __init__(self, client: AsyncWebClient, channel_id: str):
        self._client = client
        self._channel_id = channel_id

    async def grant(self, identity: str) -> None:
        try:
            await self._client.conversations_invite(channel=self._channel_id, users=identity)
        except SlackApiError as e:
            error = e.response.get("error", "unknown_error")
            if error in _ALREADY_GRANTED:
                logger.info("· %s already in %s, nothing to grant", identity, self._channel_id)
                return
            raise GrantError(f"Slack refused invite of {identity} to {self._channel_id}: {error}") from e
        except aiohttp.ClientError as e:
            raise GrantError(f"Slack unreachable while inviting {identity}: {e!r}") from e

        logger.info("✅ Invited %s to %s", identity, self._channel_id)
