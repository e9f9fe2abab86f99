"""Handler registry - routes Slack events to their handler."""

import logging

from monarch.chat.context import ChatContext
from monarch.chat.event import EventHandler, RequestResult
from monarch.chat.handlers import DirectMessageHandler, MemberJoinedHandler


logger = logging.getLogger(__name__)


def get_all_handlers() -> list[EventHandler]:
    """Get instances of all registered handlers."""
    return [
        DirectMessageHandler(),
        MemberJoinedHandler(),
    ]


def _get_handler_map() -> dict[str, EventHandler]:
    return {handler.event_type: handler for handler in get_all_handlers()}


async def dispatch_event(ctx: ChatContext, event: dict) -> RequestResult | None:
    """Run the handler registered for this event's type.

    Returns None for unhandled event types, or when the handler raised; in
    that case the error is logged and goes no further.
    """
    handler = _get_handler_map().get(event.get("type", ""))
    if handler is None:
        return None

    try:
        return await handler.handle(ctx, event)
    except Exception:
        logger.exception("❌ %s handler failed", handler.event_type)
        return None
