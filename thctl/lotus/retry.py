#!/usr/bin/env python3
"""
Retry Wrapper
Bounded retries for transient transport failures with cancellable backoff
"""

import logging
import random
from typing import Any, List

from ..context import CallContext
from ..exceptions import ClientError

logger = logging.getLogger(__name__)


class RetryingTransport:
    """
    Wraps a transport and retries Connection/RPCTimeout failures

    A call is attempted up to ``retry_count + 1`` times. Terminal failures
    (authentication, not found, bad params...) are raised on the first attempt.
    """

    def __init__(self, transport, retry_count: int = 3, base_delay: float = 0.5,
                 max_delay: float = 5.0, jitter: bool = True):
        if retry_count < 0:
            raise ValueError(f"retry_count must be >= 0, got {retry_count}")
        self.transport = transport
        self.retry_count = retry_count
        self.base_delay = base_delay  # Base 500ms backoff
        self.max_delay = max_delay  # Cap at 5s
        self.jitter = jitter

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (0-based): exponential, capped, with +/-25% jitter"""
        delay = min(self.base_delay * (2 ** attempt), self.max_delay)
        if self.jitter:
            delay = min(delay * random.uniform(0.75, 1.25), self.max_delay)
        return delay

    def call(self, ctx: CallContext, method: str, params: List[Any]) -> Any:
        last_error = None

        for attempt in range(self.retry_count + 1):
            ctx.raise_if_done()
            try:
                return self.transport.call(ctx, method, params)
            except ClientError as e:
                if not e.retryable:
                    raise
                last_error = e

            if attempt == self.retry_count:
                break

            delay = self.backoff_delay(attempt)
            logger.warning(f"RETRY: {method} attempt {attempt + 1}/{self.retry_count + 1} failed "
                           f"({last_error}), retrying in {delay:.3f}s")
            if ctx.wait(delay):
                raise ctx.error() from last_error

        logger.debug(f"FAILED: {method} after {self.retry_count + 1} attempts")
        raise last_error

    def close(self):
        close = getattr(self.transport, "close", None)
        if close is not None:
            close()
