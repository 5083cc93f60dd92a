# Copyright (c) 2025 Luc Vincent. All Rights Reserved.
"""
Cancellation tokens.

A token is set either explicitly (``cancel()``), by an absolute deadline, or
by any of its ancestors. Blocking waits go through ``wait()`` so a shutdown
request interrupts them instead of sleeping out the full delay.
"""

import threading
import time
from typing import Optional

from .errors import OperationCancelled

# Granularity of interruptible waits when a token has ancestors
_WAIT_SLICE_SECONDS = 0.1


class CancellationToken:
    """Propagated cancellation signal with an optional deadline."""

    def __init__(
        self,
        event: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
        parent: Optional["CancellationToken"] = None
    ):
        """
        Args:
            event: Event that cancels this token when set. A new one is
                created if omitted.
            deadline: Absolute ``time.monotonic()`` value after which the
                token counts as cancelled.
            parent: Token whose cancellation also cancels this one.
        """
        self._event = event or threading.Event()
        self._deadline = deadline
        self._parent = parent

    @classmethod
    def none(cls) -> "CancellationToken":
        """A token that is never cancelled. Used for cleanup calls."""
        return cls()

    def linked(self, timeout: Optional[float]) -> "CancellationToken":
        """Child token cancelled by this token or after ``timeout`` seconds."""
        deadline = time.monotonic() + timeout if timeout is not None else None
        return CancellationToken(deadline=deadline, parent=self)

    def cancel(self) -> None:
        self._event.set()

    @property
    def deadline_exceeded(self) -> bool:
        """True if this token's own deadline (not an ancestor's) has passed."""
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def cancelled(self) -> bool:
        if self._event.is_set() or self.deadline_exceeded:
            return True
        return self._parent is not None and self._parent.cancelled

    def remaining(self) -> Optional[float]:
        """Seconds until the nearest deadline in the chain, or None if unbounded."""
        own = None
        if self._deadline is not None:
            own = max(0.0, self._deadline - time.monotonic())
        inherited = self._parent.remaining() if self._parent is not None else None
        if own is None:
            return inherited
        if inherited is None:
            return own
        return min(own, inherited)

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise OperationCancelled(deadline_exceeded=self._deadline_in_chain_exceeded())

    def _deadline_in_chain_exceeded(self) -> bool:
        if self.deadline_exceeded:
            return True
        return self._parent is not None and self._parent._deadline_in_chain_exceeded()

    def wait(self, seconds: float) -> None:
        """
        Sleep for ``seconds`` unless cancelled first.

        Raises:
            OperationCancelled: If the token is cancelled before or during the wait.
        """
        self.raise_if_cancelled()
        end = time.monotonic() + seconds
        while True:
            left = end - time.monotonic()
            if left <= 0:
                return
            step = left
            remaining = self.remaining()
            if remaining is not None:
                step = min(step, remaining)
            if self._parent is not None:
                step = min(step, _WAIT_SLICE_SECONDS)
            self._event.wait(step)
            self.raise_if_cancelled()
