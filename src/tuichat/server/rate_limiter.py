"""
Sliding-Window Rate Limiter

Each connection may send a limited number of chat messages within a
rolling window. Every attempt is recorded, including rejected ones, so
retrying quickly keeps a flooding client throttled instead of letting it
through as soon as an old entry expires.
"""

import logging
import time
from typing import Callable

from ..config import DEFAULT_RATE_LIMIT_MAX, DEFAULT_RATE_LIMIT_WINDOW
from .registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Per-connection send-rate guard.

    Timestamps live on the connection records held by the registry, so
    they disappear together with the connection.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        window: float = DEFAULT_RATE_LIMIT_WINDOW,
        max_messages: int = DEFAULT_RATE_LIMIT_MAX,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the rate limiter.

        Args:
            registry: Registry holding the connection records
            window: Window length in seconds
            max_messages: Attempts allowed within one window
            clock: Monotonic time source (injectable for tests)
        """
        self.registry = registry
        self.window = window
        self.max_messages = max_messages
        self._clock = clock

    def allow(self, conn_id: str) -> bool:
        """
        Record a send attempt and decide whether it may go through.

        Args:
            conn_id: Connection attempting to send

        Returns:
            bool: True if the attempt is within the limit
        """
        connection = self.registry.get(conn_id)
        if connection is None:
            logger.warning(f"Rate check for unknown connection {conn_id}")
            return False

        now = self._clock()
        send_times = connection.send_times
        while send_times and now - send_times[0] > self.window:
            send_times.popleft()

        send_times.append(now)
        # Only the newest max_messages + 1 entries matter for the decision
        while len(send_times) > self.max_messages + 1:
            send_times.popleft()

        allowed = len(send_times) <= self.max_messages
        if not allowed:
            logger.debug(
                f"Connection {conn_id} exceeded {self.max_messages} "
                f"messages per {self.window}s"
            )
        return allowed
