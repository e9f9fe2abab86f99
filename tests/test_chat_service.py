"""Tests for the Slack Socket Mode listener service."""

import asyncio
from dataclasses import replace
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from slack_sdk.errors import SlackApiError

from monarch.chat.service import ChatService
from monarch.errors import BindError, ServiceError


def _socket_client():
    socket = MagicMock()
    socket.socket_mode_request_listeners = []
    socket.connect = AsyncMock()
    socket.close = AsyncMock()
    socket.is_connected = AsyncMock(return_value=True)
    socket.send_socket_mode_response = AsyncMock()
    return socket


def _request(event: dict, req_type: str = "events_api"):
    return SimpleNamespace(type=req_type, envelope_id="env-1", payload={"event": event})


class TestStart:

    @pytest.mark.asyncio
    async def test_auth_failure_is_bind_error(self, settings, codec, mailer, slack_client):
        slack_client.auth_test.side_effect = SlackApiError("failed", {"ok": False, "error": "invalid_auth"})
        service = ChatService(settings, codec, mailer, web_client=slack_client)

        with pytest.raises(BindError, match="invalid_auth"):
            await service.start()

    @pytest.mark.asyncio
    async def test_connection_failure_is_bind_error(self, settings, codec, mailer, slack_client):
        socket = _socket_client()
        socket.connect.side_effect = OSError("no route")
        service = ChatService(settings, codec, mailer, web_client=slack_client)

        with patch("monarch.chat.service.SocketModeClient", return_value=socket):
            with pytest.raises(BindError):
                await service.start()
        socket.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_start_builds_context_from_own_identity(self, settings, codec, mailer, slack_client):
        socket = _socket_client()
        service = ChatService(settings, codec, mailer, web_client=slack_client)

        with patch("monarch.chat.service.SocketModeClient", return_value=socket) as socket_cls:
            await service.start()

        socket_cls.assert_called_once_with(app_token="xapp-test-token", web_client=slack_client)
        assert service.context.bot_user_id == "UBOT0001"
        assert service.context.bot_id == "BBOT0001"
        assert len(socket.socket_mode_request_listeners) == 1
        socket.connect.assert_awaited_once()


class TestServe:

    async def _started(self, settings, codec, mailer, slack_client, socket):
        service = ChatService(settings, codec, mailer, web_client=slack_client)
        with patch("monarch.chat.service.SocketModeClient", return_value=socket):
            await service.start()
        return service

    @pytest.mark.asyncio
    async def test_events_are_acknowledged_and_handled(self, settings, codec, mailer, slack_client):
        socket = _socket_client()
        service = await self._started(settings, codec, mailer, slack_client, socket)
        listener = socket.socket_mode_request_listeners[0]

        serving = asyncio.create_task(service.serve())
        event = {"type": "message", "channel_type": "im", "channel": "D1", "user": "U0PERSON1", "text": "a@odu.edu"}
        await listener(socket, _request(event))
        await listener(socket, _request({}, req_type="hello"))
        service.stop()
        await asyncio.wait_for(serving, timeout=2)

        assert socket.send_socket_mode_response.await_count == 2
        assert [e.to for e in mailer.sent] == ["a@odu.edu"]
        socket.close.assert_awaited()

    @pytest.mark.asyncio
    async def test_in_flight_events_past_grace_are_abandoned(self, settings, codec, mailer, slack_client):
        socket = _socket_client()
        mailer.delay = 10
        settings = replace(settings, shutdown_grace=0.05, outbound_timeout=30)
        service = await self._started(settings, codec, mailer, slack_client, socket)
        listener = socket.socket_mode_request_listeners[0]

        serving = asyncio.create_task(service.serve())
        event = {"type": "message", "channel_type": "im", "channel": "D1", "user": "U0PERSON1", "text": "a@odu.edu"}
        await listener(socket, _request(event))
        service.stop()
        await asyncio.wait_for(serving, timeout=2)

        assert mailer.sent == []

    @pytest.mark.asyncio
    async def test_lost_connection_is_fatal(self, settings, codec, mailer, slack_client, monkeypatch):
        monkeypatch.setattr("monarch.chat.service.WATCHDOG_INTERVAL", 0.01)
        socket = _socket_client()
        socket.is_connected.return_value = False
        settings = replace(settings, reconnect_grace=0.03)
        service = await self._started(settings, codec, mailer, slack_client, socket)

        with pytest.raises(ServiceError, match="lost"):
            await asyncio.wait_for(service.serve(), timeout=2)
        socket.close.assert_awaited()

    @pytest.mark.asyncio
    async def test_serve_before_start_fails(self, settings, codec, mailer, slack_client):
        service = ChatService(settings, codec, mailer, web_client=slack_client)

        with pytest.raises(ServiceError):
            await service.serve()
