"""Base chat event handler interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from monarch.chat.context import ChatContext


@dataclass
class RequestResult:
    """What a handler did with one event."""
    status: str  # "ignored", "prompted", "confirmed", "escalated", "welcomed"
    user_id: str = ""
    email: str | None = None
    message: str = ""


class EventHandler(ABC):
    """Base class for Slack event handlers.

    To handle a new event type:
    1. Subclass EventHandler
    2. Set `event_type` to the Slack event type (e.g., "message", "team_join")
    3. Implement `handle()`
    4. Register in registry.py
    """

    event_type: str = ""

    @abstractmethod
    async def handle(self, ctx: "ChatContext", event: dict) -> RequestResult:
        """Handle one event.

        Args:
            ctx: Explicit dependencies (Slack client, codec, mailer, settings)
            event: The inner Slack event payload

        Returns:
            RequestResult describing the outcome
        """
        pass
