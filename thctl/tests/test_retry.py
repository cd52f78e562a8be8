#!/usr/bin/env python3
"""
Tests for the retry wrapper
"""

import threading
import time

import pytest
from unittest.mock import Mock, patch

from thctl.context import CallContext
from thctl.exceptions import (
    AuthenticationError,
    InvalidParamsError,
    NodeConnectionError,
    NotFoundError,
    RequestCancelledError,
    RPCTimeoutError,
)
from thctl.lotus.retry import RetryingTransport


class CountingTransport:
    """Fails with the given errors in order, then returns ``result``"""

    def __init__(self, errors=None, result="ok", always=None):
        self.errors = list(errors or [])
        self.always = always
        self.result = result
        self.calls = 0

    def call(self, ctx, method, params):
        self.calls += 1
        if self.always is not None:
            raise self.always
        if self.errors:
            raise self.errors.pop(0)
        return self.result


def fast(transport, retry_count):
    return RetryingTransport(transport, retry_count=retry_count, base_delay=0.001, max_delay=0.002, jitter=False)


class TestRetryingTransport:
    """Test attempt counting, terminal errors and cancellable backoff"""

    @pytest.mark.parametrize("retry_count", [0, 1, 3, 5])
    def test_retryable_failure_runs_retry_count_plus_one_times(self, retry_count):
        transport = CountingTransport(always=NodeConnectionError("refused"))

        with pytest.raises(NodeConnectionError):
            fast(transport, retry_count).call(CallContext.background(), "Filecoin.Version", [])

        assert transport.calls == retry_count + 1

    def test_rpc_timeout_is_retried(self):
        transport = CountingTransport(always=RPCTimeoutError("slow"))

        with pytest.raises(RPCTimeoutError):
            fast(transport, 2).call(CallContext.background(), "Filecoin.Version", [])

        assert transport.calls == 3

    @pytest.mark.parametrize("error", [
        AuthenticationError("unauthorized"),
        NotFoundError("actor not found"),
        InvalidParamsError("bad params"),
    ])
    def test_terminal_errors_are_not_retried(self, error):
        transport = CountingTransport(always=error)

        with pytest.raises(type(error)):
            fast(transport, 5).call(CallContext.background(), "Filecoin.Version", [])

        assert transport.calls == 1

    def test_recovers_after_transient_failures(self):
        transport = CountingTransport(errors=[NodeConnectionError("reset"), RPCTimeoutError("slow")], result=7)

        assert fast(transport, 3).call(CallContext.background(), "Filecoin.Version", []) == 7
        assert transport.calls == 3

    def test_last_error_is_surfaced(self):
        transport = CountingTransport(errors=[RPCTimeoutError("first"), NodeConnectionError("second")])

        with pytest.raises(NodeConnectionError, match="second"):
            fast(transport, 1).call(CallContext.background(), "Filecoin.Version", [])

    def test_cancel_aborts_backoff(self):
        transport = CountingTransport(always=NodeConnectionError("refused"))
        retrying = RetryingTransport(transport, retry_count=3, base_delay=10.0, max_delay=10.0, jitter=False)
        ctx = CallContext.background()

        timer = threading.Timer(0.05, ctx.cancel)
        timer.start()
        start = time.monotonic()
        try:
            with pytest.raises(RequestCancelledError):
                retrying.call(ctx, "Filecoin.Version", [])
        finally:
            timer.cancel()

        assert time.monotonic() - start < 2.0
        assert transport.calls == 1

    def test_deadline_aborts_backoff(self):
        transport = CountingTransport(always=NodeConnectionError("refused"))
        retrying = RetryingTransport(transport, retry_count=3, base_delay=10.0, max_delay=10.0, jitter=False)

        start = time.monotonic()
        with pytest.raises(RPCTimeoutError):
            retrying.call(CallContext.background().with_timeout(0.05), "Filecoin.Version", [])

        assert time.monotonic() - start < 2.0
        assert transport.calls == 1

    def test_done_context_makes_no_attempt(self):
        transport = CountingTransport()
        ctx = CallContext.background()
        ctx.cancel()

        with pytest.raises(RequestCancelledError):
            fast(transport, 3).call(ctx, "Filecoin.Version", [])
        assert transport.calls == 0

    def test_negative_retry_count_rejected(self):
        with pytest.raises(ValueError):
            RetryingTransport(CountingTransport(), retry_count=-1)


class TestBackoffDelay:
    def test_exponential_and_capped(self):
        retrying = RetryingTransport(Mock(), retry_count=5, jitter=False)
        assert [retrying.backoff_delay(i) for i in range(5)] == [0.5, 1.0, 2.0, 4.0, 5.0]

    @patch('random.uniform', return_value=1.25)
    def test_jitter_never_exceeds_cap(self, mock_uniform):
        retrying = RetryingTransport(Mock(), retry_count=5)
        assert retrying.backoff_delay(0) == pytest.approx(0.625)
        assert retrying.backoff_delay(10) == 5.0

    def test_close_delegates(self):
        inner = Mock()
        RetryingTransport(inner, retry_count=1).close()
        inner.close.assert_called_once()
