"""FastAPI server for email verification callbacks."""

import contextlib
import logging
import socket
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.responses import HTMLResponse

from monarch.errors import BindError, ParseError, ServiceError
from monarch.payload import BASE64URL, parse_payload
from monarch.verifier import Verifier


logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "static"


def _load_page(name: str) -> str:
    return (STATIC_DIR / name).read_text(encoding="utf-8")


def create_app(verifier: Verifier, payload_format: str = BASE64URL) -> FastAPI:
    """Build the web app around an injected verification capability."""
    app = FastAPI(
        title="Monarch Verify",
        description="Email verification callbacks for the Slack workspace",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.verifier = verifier
    app.state.payload_format = payload_format
    app.state.verified_page = _load_page("verified.html")
    app.state.failed_page = _load_page("failed.html")

    @app.get("/heartbeat")
    async def heartbeat():
        """Health check for remote monitoring."""
        return Response(status_code=200)

    @app.get("/verify/{payload}")
    async def verify(payload: str, request: Request):
        """Verify the token carried in an email link.

        Every failure gets the same page so callers learn nothing about why.
        """
        state = request.app.state
        try:
            token = parse_payload(payload, state.payload_format)
        except ParseError as e:
            logger.info("· [WEB] Unparseable verification payload: %s", e)
            return HTMLResponse(state.failed_page, status_code=400)

        try:
            outcome = await state.verifier.verify(token)
        except Exception:
            logger.exception("❌ [WEB] Verifier crashed")
            return HTMLResponse(state.failed_page, status_code=400)

        if outcome.granted:
            return HTMLResponse(state.verified_page, status_code=200)
        return HTMLResponse(state.failed_page, status_code=400)

    return app


class _Server(uvicorn.Server):
    """uvicorn server that leaves signal handling to the orchestrator."""

    @contextlib.contextmanager
    def capture_signals(self):
        yield


class WebService:
    """Serves the app on a socket bound up front."""

    name = "web"

    def __init__(self, app: FastAPI, host: str = "0.0.0.0", port: int = 8000, shutdown_grace: float = 5.0):
        self._host = host
        self._port = port
        self._sock: socket.socket | None = None
        self._serving = False
        config = uvicorn.Config(
            app,
            host=host,
            port=port,
            log_config=None,
            lifespan="off",
            timeout_graceful_shutdown=int(shutdown_grace) or None,
        )
        self._server = _Server(config)

    @property
    def port(self) -> int:
        """The bound port (useful when constructed with port 0)."""
        if self._sock is None:
            return self._port
        return self._sock.getsockname()[1]

    @property
    def started(self) -> bool:
        return self._server.started

    async def start(self) -> None:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self._host, self._port))
        except OSError as e:
            sock.close()
            raise BindError(f"Could not bind {self._host}:{self._port}: {e}") from e
        self._sock = sock
        logger.info("🚀 Web server bound to %s:%s", self._host, self.port)

    async def serve(self) -> None:
        if self._sock is None:
            raise ServiceError("Web service was not started")
        if self._server.should_exit:
            self._sock.close()
            return
        self._serving = True
        try:
            await self._server.serve(sockets=[self._sock])
        finally:
            self._sock.close()
        logger.info("👋 Web service stopped")

    def stop(self) -> None:
        self._server.should_exit = True
        # Not serving yet: release the socket now
        if self._sock is not None and not self._serving:
            self._sock.close()
