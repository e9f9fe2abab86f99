"""Chat side of the verification handshake."""

from .context import ChatContext
from .event import EventHandler, RequestResult
from .registry import dispatch_event, get_all_handlers
from .service import ChatService

__all__ = [
    "ChatContext",
    "ChatService",
    "EventHandler",
    "RequestResult",
    "dispatch_event",
    "get_all_handlers",
]
