"""The verification capability shared between the chat and web services."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

from monarch.errors import CryptoError, GrantError
from monarch.grantor import AccessGrantor
from monarch.token import TokenCodec


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Outcome:
    """Result of a verification attempt. `reason` is for logs only."""
    granted: bool
    reason: str = ""

    @classmethod
    def success(cls) -> "Outcome":
        return cls(granted=True)

    @classmethod
    def failure(cls, reason: str) -> "Outcome":
        return cls(granted=False, reason=reason)


class Verifier(Protocol):
    async def verify(self, token: bytes) -> Outcome:
        ...


class TokenVerifier:
    """Decodes a token and grants access to the identity inside it.

    Holds only immutable references, so one instance can serve any number of
    concurrent requests.
    """

    def __init__(self, codec: TokenCodec, grantor: AccessGrantor, timeout: float = 10.0):
        self._codec = codec
        self._grantor = grantor
        self._timeout = timeout

    async def verify(self, token: bytes) -> Outcome:
        try:
            identity = self._codec.decode(token)
        except CryptoError as e:
            logger.warning("⚠️ Rejected verification token: %s", e)
            return Outcome.failure("token rejected")

        try:
            await asyncio.wait_for(self._grantor.grant(identity), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.error("❌ Grant for %s timed out after %ss", identity, self._timeout)
            return Outcome.failure("grant timed out")
        except GrantError as e:
            logger.error("❌ Grant for %s failed: %s", identity, e)
            return Outcome.failure("grant failed")

        logger.info("✅ Verified %s", identity)
        return Outcome.success()
