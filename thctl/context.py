#!/usr/bin/env python3
"""
Call Context
Deadline and cancellation propagation for RPC calls running on worker threads
"""

import threading
import time
import weakref
from typing import Optional

from .exceptions import RPCTimeoutError, RequestCancelledError


class CallContext:
    """
    Cancellation/deadline scope shared by every call made on behalf of one operation

    - A child created with ``with_timeout`` never outlives its parent's deadline
    - Cancelling a context cancels all of its children
    """

    def __init__(self, deadline: Optional[float] = None, parent: Optional["CallContext"] = None):
        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self.deadline = deadline
        self.parent = parent
        self._cancelled = threading.Event()
        # Held weakly; a cancelled child also removes itself
        self._children: "weakref.WeakSet[CallContext]" = weakref.WeakSet()
        self.lock = threading.Lock()

        if parent is not None:
            parent._attach(self)

    @classmethod
    def background(cls) -> "CallContext":
        """Context that never expires unless cancelled"""
        return cls()

    def with_timeout(self, seconds: float) -> "CallContext":
        return CallContext(deadline=time.monotonic() + seconds, parent=self)

    def _attach(self, child: "CallContext"):
        with self.lock:
            self._children.add(child)
            cancelled = self._cancelled.is_set()
        if cancelled:
            child.cancel()

    def _detach(self, child: "CallContext"):
        with self.lock:
            self._children.discard(child)

    def cancel(self):
        self._cancelled.set()
        with self.lock:
            children = list(self._children)
        for child in children:
            child.cancel()
        if self.parent is not None:
            self.parent._detach(self)

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    @property
    def done(self) -> bool:
        return self.cancelled or self.expired

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, None when unbounded"""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def wait(self, seconds: float) -> bool:
        """
        Sleep for up to ``seconds``, waking early on cancellation or deadline

        Returns:
            True if the context finished before the sleep elapsed
        """
        remaining = self.remaining()
        if remaining is not None and remaining < seconds:
            self._cancelled.wait(remaining)
            return True
        return self._cancelled.wait(seconds)

    def error(self, partial=None):
        """Exception describing why this context finished"""
        if self.cancelled:
            return RequestCancelledError("operation cancelled", partial=partial)
        return RPCTimeoutError("deadline exceeded", partial=partial)

    def raise_if_done(self):
        if self.done:
            raise self.error()
