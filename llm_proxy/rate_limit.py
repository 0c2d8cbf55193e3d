"""Per-client request counter cleared on a fixed interval."""

import asyncio
import contextlib
import logging
import threading

from .constants import RATE_LIMIT_WINDOW_SECONDS, UNKNOWN_CLIENT_KEY

logger = logging.getLogger(__name__)


def client_key_from_forwarded(forwarded_for: str | None) -> str:
    """Derive the rate-limit key from an ``X-Forwarded-For`` header.

    With a comma-separated list the second entry is used: the deployment sits
    behind one known proxy hop that prepends its own address.
    """
    if forwarded_for and "," in forwarded_for:
        return forwarded_for.split(",")[1].strip()
    return forwarded_for or UNKNOWN_CLIENT_KEY


class RateLimiter:
    def __init__(
        self,
        max_requests: int,
        window_seconds: float = RATE_LIMIT_WINDOW_SECONDS,
        enabled: bool = True,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.enabled = enabled
        self._counts: dict[str, int] = {}
        self._lock = threading.Lock()
        self._reset_task: asyncio.Task[None] | None = None

    def allow(self, client_key: str) -> bool:
        if not self.enabled:
            return True
        with self._lock:
            count = self._counts.get(client_key, 0) + 1
            self._counts[client_key] = count
        if count > self.max_requests:
            logger.warning("Rate limit exceeded", extra={"client_key": client_key, "count": count})
            return False
        return True

    def count(self, client_key: str) -> int:
        with self._lock:
            return self._counts.get(client_key, 0)

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()

    def start(self) -> None:
        """Start clearing the counters every window on the running event loop."""
        if self._reset_task is None or self._reset_task.done():
            self._reset_task = asyncio.get_running_loop().create_task(self._reset_periodically())

    async def stop(self) -> None:
        task, self._reset_task = self._reset_task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _reset_periodically(self) -> None:
        while True:
            await asyncio.sleep(self.window_seconds)
            self.reset()
