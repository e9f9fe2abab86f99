"""Long-running Slack Socket Mode listener."""

import asyncio
import logging

from slack_sdk.errors import SlackApiError
from slack_sdk.socket_mode.aiohttp import SocketModeClient
from slack_sdk.socket_mode.request import SocketModeRequest
from slack_sdk.socket_mode.response import SocketModeResponse
from slack_sdk.web.async_client import AsyncWebClient

from monarch.chat.context import ChatContext, EmailDispatcher
from monarch.chat.registry import dispatch_event
from monarch.config import Settings
from monarch.errors import BindError, ServiceError
from monarch.token import TokenCodec


logger = logging.getLogger(__name__)

# How often the connection watchdog checks the socket
WATCHDOG_INTERVAL = 5.0


class ChatService:
    """Receives Slack events and handles each one in its own task."""

    name = "chat"

    def __init__(
        self,
        settings: Settings,
        codec: TokenCodec,
        mailer: EmailDispatcher,
        web_client: AsyncWebClient | None = None,
    ):
        self._settings = settings
        self._codec = codec
        self._mailer = mailer
        self._web_client = web_client or AsyncWebClient(token=settings.slack_bot_token)
        self._socket: SocketModeClient | None = None
        self._ctx: ChatContext | None = None
        self._tasks: set[asyncio.Task] = set()
        self._stopping = asyncio.Event()

    @property
    def context(self) -> ChatContext | None:
        return self._ctx

    async def start(self) -> None:
        """Authenticate and open the Socket Mode connection."""
        try:
            auth = await self._web_client.auth_test()
        except SlackApiError as e:
            raise BindError(f"Slack auth failed: {e.response.get('error')}") from e
        except Exception as e:
            raise BindError(f"Slack auth failed: {e!r}") from e

        self._ctx = ChatContext(
            client=self._web_client,
            bot_user_id=auth.get("user_id", ""),
            bot_id=auth.get("bot_id", ""),
            codec=self._codec,
            mailer=self._mailer,
            settings=self._settings,
        )
        logger.info("✓ Slack: connected as %s to %s", auth.get("user", "unknown"), auth.get("team", "unknown"))

        self._socket = SocketModeClient(
            app_token=self._settings.slack_app_token,
            web_client=self._web_client,
        )
        self._socket.socket_mode_request_listeners.append(self._on_request)
        try:
            await self._socket.connect()
        except Exception as e:
            await self._socket.close()
            raise BindError(f"Slack Socket Mode connection failed: {e!r}") from e

    async def serve(self) -> None:
        """Run until stop() is called or the connection is lost for good."""
        if self._socket is None:
            raise ServiceError("Chat service was not started")

        disconnected_for = 0.0
        try:
            while not self._stopping.is_set():
                try:
                    await asyncio.wait_for(self._stopping.wait(), timeout=WATCHDOG_INTERVAL)
                except asyncio.TimeoutError:
                    pass
                if self._stopping.is_set():
                    break

                if await self._socket.is_connected():
                    disconnected_for = 0.0
                    continue
                disconnected_for += WATCHDOG_INTERVAL
                logger.warning("⚠️ Slack socket disconnected for %.0fs", disconnected_for)
                if disconnected_for >= self._settings.reconnect_grace:
                    raise ServiceError(f"Slack connection lost for {disconnected_for:.0f}s")
        finally:
            await self._drain()
            await self._socket.close()
            logger.info("👋 Chat service stopped")

    def stop(self) -> None:
        self._stopping.set()

    async def handle_event(self, event: dict) -> None:
        if self._ctx is None:
            raise ServiceError("Chat service was not started")
        result = await dispatch_event(self._ctx, event)
        if result is not None and result.status != "ignored":
            logger.info("· %s from %s → %s", event.get("type"), result.user_id, result.status)

    async def _on_request(self, client: SocketModeClient, req: SocketModeRequest) -> None:
        """Acknowledge the envelope, then handle the event in its own task."""
        await client.send_socket_mode_response(SocketModeResponse(envelope_id=req.envelope_id))
        if req.type != "events_api" or self._stopping.is_set():
            return

        event = (req.payload or {}).get("event") or {}
        task = asyncio.create_task(self.handle_event(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _drain(self) -> None:
        """Give in-flight handlers the grace period, then cancel the rest."""
        if not self._tasks:
            return
        _, pending = await asyncio.wait(set(self._tasks), timeout=self._settings.shutdown_grace)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning("⚠️ Abandoned %d in-flight chat events", len(pending))
            await asyncio.gather(*pending, return_exceptions=True)
