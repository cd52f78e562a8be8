#!/usr/bin/env python3
"""
HTTP Transport
Single-shot JSON-RPC 2.0 calls against a Lotus node
"""

import logging
import time
from typing import Any, List, Optional

import requests

from .. import __version__
from ..context import CallContext
from ..exceptions import (
    InvalidRequestError,
    MalformedResponseError,
    NodeConnectionError,
    RPCTimeoutError,
    error_from_http_status,
    error_from_rpc_error,
)

logger = logging.getLogger(__name__)

REQUEST_ID = 1


class HttpTransport:
    """Posts JSON-RPC envelopes to one node URL and classifies every failure"""

    def __init__(self, url: str, auth_token: str = "", timeout: float = 30.0,
                 session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout

        # Session setup; the pool is shared by concurrent calls
        self.session = session or requests.Session()
        self.session.headers.update({
            'User-Agent': f'thctl/{__version__}',
            'Content-Type': 'application/json',
        })
        if auth_token:
            self.session.headers['Authorization'] = f'Bearer {auth_token}'

    def _request_timeout(self, ctx: CallContext) -> float:
        remaining = ctx.remaining()
        if remaining is None:
            return self.timeout
        # a zero timeout is rejected by the HTTP stack
        return max(0.001, min(self.timeout, remaining))

    def call(self, ctx: CallContext, method: str, params: List[Any]) -> Any:
        """
        Issue one JSON-RPC call

        Returns:
            The decoded ``result`` member (may be None)

        Raises:
            ClientError: classified transport, HTTP or RPC failure
        """
        ctx.raise_if_done()

        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": REQUEST_ID,
        }

        logger.debug(f"RPC {method} params={params}")
        start_time = time.time()
        try:
            response = self.session.post(self.url, json=payload, timeout=self._request_timeout(ctx))
        except requests.exceptions.ConnectTimeout as e:
            raise NodeConnectionError(f"timed out connecting to {self.url}", e)
        except requests.exceptions.Timeout as e:
            if ctx.done:
                raise ctx.error() from e
            raise RPCTimeoutError(f"{method} timed out", e)
        except (requests.exceptions.InvalidURL, requests.exceptions.MissingSchema) as e:
            raise InvalidRequestError(f"invalid node URL {self.url}", e)
        except requests.exceptions.RequestException as e:
            raise NodeConnectionError(f"failed to reach {self.url}", e)

        response_time = time.time() - start_time
        logger.debug(f"RPC {method} responded with status {response.status_code} in {response_time:.3f}s")

        if response.status_code != 200:
            raise error_from_http_status(response.status_code)

        try:
            envelope = response.json()
        except ValueError as e:
            raise MalformedResponseError(f"{method} returned non-JSON response: {response.text[:100]}", e)

        return self._unwrap(method, envelope)

    @staticmethod
    def _unwrap(method: str, envelope: Any) -> Any:
        if not isinstance(envelope, dict):
            raise MalformedResponseError(f"{method} returned a non-object envelope")

        if envelope.get("id") != REQUEST_ID:
            raise MalformedResponseError(f"{method} response id {envelope.get('id')!r} does not match request")

        error = envelope.get("error")
        if error is not None:
            if not isinstance(error, dict):
                raise MalformedResponseError(f"{method} returned malformed error: {error!r}")
            logger.debug(f"RPC {method} error: {error}")
            raise error_from_rpc_error(error.get("code"), str(error.get("message", "")))

        if "result" not in envelope:
            raise MalformedResponseError(f"{method} response has neither result nor error")
        return envelope["result"]

    def close(self):
        self.session.close()
