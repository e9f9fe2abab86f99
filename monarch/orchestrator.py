"""Run the chat listener and web server side by side, failing fast."""

import asyncio
import logging
import signal
from typing import Protocol, Sequence


logger = logging.getLogger(__name__)


class Service(Protocol):
    name: str

    async def start(self) -> None:
        """Acquire listening addresses / transport sessions. Raises BindError."""
        ...

    async def serve(self) -> None:
        """Run until stopped or a fatal error.

        Returns at once if stop() was already called, after releasing what
        start() acquired.
        """
        ...

    def stop(self) -> None:
        """Ask the service to shut down gracefully."""
        ...


async def run_services(
    services: Sequence[Service],
    install_signals: bool = True,
    shutdown_grace: float = 10.0,
) -> None:
    """Start every service, then run them all until the first one finishes.

    Services start in order, so put the cheapest to fail first. A startup
    failure aborts before any service serves traffic. Once running,
    the first service to fail (or exit) stops the others, which get
    `shutdown_grace` seconds before they are cancelled. The first error is
    re-raised as the terminal status.
    """
    started: list[Service] = []
    for service in services:
        try:
            await service.start()
        except BaseException:
            logger.critical("❌ %s service failed to start", service.name)
            await _release(started)
            raise
        started.append(service)

    loop = asyncio.get_running_loop()
    if install_signals:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _stop_all, services, sig)

    tasks = {asyncio.create_task(s.serve(), name=s.name): s for s in services}
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)

        error = _first_error(done, tasks)
        for service in services:
            service.stop()

        if pending:
            finished, stuck = await asyncio.wait(pending, timeout=shutdown_grace)
            for task in stuck:
                logger.warning("⚠️ %s service did not stop in %ss, cancelling", tasks[task].name, shutdown_grace)
                task.cancel()
            await asyncio.gather(*stuck, return_exceptions=True)
            if error is None:
                error = _first_error(finished, tasks)

        if error is not None:
            raise error
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        if install_signals:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)


async def _release(started: Sequence[Service]) -> None:
    """Stop services that started but never served, letting each free its resources."""
    for service in started:
        service.stop()
    # A stopped service returns from serve() at once after closing what start() opened
    await asyncio.gather(*(s.serve() for s in started), return_exceptions=True)


def _first_error(done, tasks) -> BaseException | None:
    for task in done:
        if task.cancelled():
            logger.info("%s service cancelled", tasks[task].name)
            continue
        if task.exception() is not None:
            logger.critical("❌ %s service failed: %r", tasks[task].name, task.exception())
            return task.exception()
        logger.info("%s service exited", tasks[task].name)
    return None


def _stop_all(services: Sequence[Service], sig: signal.Signals) -> None:
    logger.info("🛑 Received %s, shutting down...", sig.name)
    for service in services:
        service.stop()
