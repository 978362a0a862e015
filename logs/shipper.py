"""Fire-and-forget shipping of single log entries to a Loki push endpoint"""
import asyncio
from typing import Optional, Set
from .models import LogEvent
from config import Config
from logging_config import get_logger
from utils.http import HttpTransport, TransportError


logger = get_logger(__name__)


class LokiShipper:
    """Sends each LogEvent as soon as it is produced; failures are only logged"""

    def __init__(self, config: Config, transport: Optional[HttpTransport] = None):
        self.config = config
        self.transport = transport or HttpTransport.from_config(config)
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._pending: Set[asyncio.Task] = set()

        self.sent = 0
        self.failed = 0
        self.dropped = 0

    def start(self) -> None:
        """Remember the serving loop so worker threads can hand entries to it"""
        self._loop = asyncio.get_running_loop()

    def ship(self, event: LogEvent) -> None:
        """Schedule the send without waiting for it"""
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            if self._loop is not None and self._loop.is_running():
                self._loop.call_soon_threadsafe(self._schedule, event)
                return
            self.dropped += 1
            logger.warning(
                "No running event loop, dropping log entry",
                labels=event.labels,
                event_type="log_dropped"
            )
            return
        self._schedule(event)

    def _schedule(self, event: LogEvent) -> None:
        task = asyncio.get_running_loop().create_task(self.send(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def send(self, event: LogEvent) -> bool:
        """Push one entry; returns False when the endpoint could not be reached"""
        try:
            await self.transport.post_json(
                self.config.logging_url,
                event.to_push_body(),
                headers=self.config.logging_headers()
            )
        except TransportError as e:
            self.failed += 1
            logger.warning(
                "Failed to send log to Grafana",
                error=str(e),
                status_code=e.status_code,
                endpoint=e.url,
                event_type="loki_push_error"
            )
            return False
        self.sent += 1
        return True

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def shutdown(self, timeout: float = 2.0) -> None:
        """Give in-flight sends a moment to finish, then close the client"""
        if self._pending:
            done, not_done = await asyncio.wait(set(self._pending), timeout=timeout)
            for task in not_done:
                task.cancel()
            if not_done:
                logger.warning("Abandoned in-flight log sends", count=len(not_done), event_type="loki_shutdown")
        await self.transport.aclose()
        logger.info("Loki shipper shutdown")
