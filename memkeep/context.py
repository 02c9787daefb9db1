"""Cancellation and deadline signal passed to every operation."""

import threading
import time
from typing import Optional

from memkeep.exceptions import OperationCancelledError


class OperationContext:
    """Cancellation flag plus an optional deadline.

    Usage::

        ctx = OperationContext(timeout=5.0)
        client.search("coffee", SearchOptions(user_id="u1"), ctx=ctx)

        # from another thread
        ctx.cancel()
    """

    def __init__(self, timeout: Optional[float] = None):
        self._event = threading.Event()
        self.deadline: Optional[float] = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def done(self) -> bool:
        return self.cancelled or self.expired

    def remaining(self) -> Optional[float]:
        """Seconds until the deadline, ``None`` when there is no deadline."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self, op: Optional[str] = None) -> None:
        """Raise ``OperationCancelledError`` if cancelled or past the deadline."""
        if self.cancelled:
            raise OperationCancelledError("operation cancelled", op=op)
        if self.expired:
            raise OperationCancelledError("deadline exceeded", op=op)


def check_context(ctx: Optional[OperationContext], op: Optional[str] = None) -> None:
    """``ctx.check(op)`` that tolerates ``ctx=None``."""
    if ctx is not None:
        ctx.check(op)
