"""Correlation registry — outstanding request ids mapped to pending futures.

An entry is created when an outgoing unit needs a reply (profile query,
message echo) and removed exactly once, when a unit with the same id comes
back. Late or duplicate replies are ignored.

By default entries never expire: a reply that never arrives leaves its
entry behind. Pass `timeout` to bound that.
"""

import asyncio
import logging
import uuid
from typing import Any, Optional

from .errors import CorrelationError

logger = logging.getLogger("hipbot.correlation")


def new_id(prefix: str = "") -> str:
    """Fresh opaque correlation identifier."""
    return f"{prefix}{uuid.uuid4().hex}"


class CorrelationRegistry:
    """Explicit map from identifier to pending future.

    Usage:
        registry = CorrelationRegistry()
        future = registry.register(unit_id)
        ...
        registry.resolve(unit_id, value)   # from the inbound side
    """

    def __init__(self, timeout: Optional[float] = None):
        """
        Args:
            timeout: Seconds after which an unanswered entry is dropped and
                its future fails with asyncio.TimeoutError. None = never.
        """
        self.timeout = timeout
        self._pending: dict[str, asyncio.Future] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}

    def register(self, correlation_id: str) -> asyncio.Future:
        """Create the pending entry for `correlation_id` and return its future.

        Raises:
            CorrelationError: if the identifier is already live.
        """
        if correlation_id in self._pending:
            raise CorrelationError(f"Correlation id already pending: {correlation_id}")

        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._pending[correlation_id] = future
        if self.timeout is not None:
            self._timers[correlation_id] = loop.call_later(self.timeout, self._expire, correlation_id)
        return future

    def resolve(self, correlation_id: Optional[str], value: Any = None) -> bool:
        """Complete and remove the entry. Unknown ids are a no-op.

        Returns:
            True if a pending entry was resolved.
        """
        if not correlation_id:
            return False
        future = self._pending.pop(correlation_id, None)
        if future is None:
            logger.debug(f"Unmatched correlation id ignored: {correlation_id}")
            return False

        self._cancel_timer(correlation_id)
        if not future.done():
            future.set_result(value)
        return True

    def discard(self, correlation_id: str) -> bool:
        """Drop an entry without resolving it (e.g. transmit failed)."""
        future = self._pending.pop(correlation_id, None)
        self._cancel_timer(correlation_id)
        if future is not None and not future.done():
            future.cancel()
        return future is not None

    def _expire(self, correlation_id: str):
        self._timers.pop(correlation_id, None)
        future = self._pending.pop(correlation_id, None)
        if future is not None and not future.done():
            logger.warning(f"No reply for {correlation_id} after {self.timeout}s, expiring")
            future.set_exception(asyncio.TimeoutError(f"No reply for {correlation_id}"))

    def _cancel_timer(self, correlation_id: str):
        timer = self._timers.pop(correlation_id, None)
        if timer is not None:
            timer.cancel()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def __contains__(self, correlation_id) -> bool:
        return correlation_id in self._pending
