"""
Custom exceptions for the thctl library
"""

from enum import Enum
from typing import Any, Optional


class ThctlException(Exception):
    """Base exception for thctl library"""
    pass


class ConfigError(ThctlException):
    """Invalid or unreadable configuration"""
    pass


class ErrorKind(str, Enum):
    UNKNOWN = "unknown"
    CONNECTION = "connection"
    AUTHENTICATION = "authentication"
    INVALID_PARAMS = "invalid_params"
    NOT_FOUND = "not_found"
    RPC_TIMEOUT = "rpc_timeout"
    METHOD_NOT_FOUND = "method_not_found"
    INVALID_REQUEST = "invalid_request"
    MALFORMED_RESPONSE = "malformed_response"
    CANCELLED = "cancelled"


RETRYABLE_KINDS = frozenset({ErrorKind.CONNECTION, ErrorKind.RPC_TIMEOUT})


class ClientError(ThctlException):
    """Error raised by the Lotus RPC client layer"""

    kind = ErrorKind.UNKNOWN

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.message = message
        self.cause = cause
        if cause is not None:
            super().__init__(f"{message}: {cause}")
        else:
            super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS


class UnknownError(ClientError):
    kind = ErrorKind.UNKNOWN


class NodeConnectionError(ClientError):
    """The node could not be reached or answered with a server error"""
    kind = ErrorKind.CONNECTION


class AuthenticationError(ClientError):
    kind = ErrorKind.AUTHENTICATION


class InvalidParamsError(ClientError):
    kind = ErrorKind.INVALID_PARAMS


class NotFoundError(ClientError):
    kind = ErrorKind.NOT_FOUND


class MethodNotFoundError(ClientError):
    kind = ErrorKind.METHOD_NOT_FOUND


class InvalidRequestError(ClientError):
    kind = ErrorKind.INVALID_REQUEST


class MalformedResponseError(ClientError):
    """Response could not be decoded into the expected shape"""
    kind = ErrorKind.MALFORMED_RESPONSE


class RPCTimeoutError(ClientError):
    """Request or aggregate deadline expired

    ``partial`` holds whatever data had been collected when the deadline hit.
    """
    kind = ErrorKind.RPC_TIMEOUT

    def __init__(self, message: str, cause: Optional[BaseException] = None, partial: Any = None):
        super().__init__(message, cause)
        self.partial = partial


class RequestCancelledError(ClientError):
    kind = ErrorKind.CANCELLED

    def __init__(self, message: str, cause: Optional[BaseException] = None, partial: Any = None):
        super().__init__(message, cause)
        self.partial = partial


# Server-specific codes first, then the standard JSON-RPC 2.0 ones
_RPC_CODE_ERRORS = {
    -32001: InvalidParamsError,
    -32002: MethodNotFoundError,
    -32003: InvalidRequestError,
    -32602: InvalidParamsError,
    -32601: MethodNotFoundError,
    -32600: InvalidRequestError,
}


def error_from_http_status(status_code: int) -> ClientError:
    """Classify a non-200 HTTP response"""
    if status_code in (401, 403):
        return AuthenticationError(f"unauthorized (HTTP {status_code})")
    if status_code == 404:
        return NotFoundError("not found (HTTP 404)")
    if 500 <= status_code < 600:
        return NodeConnectionError(f"server error (HTTP {status_code})")
    return UnknownError(f"unexpected status code: {status_code}")


def error_from_rpc_error(code: Any, message: str) -> ClientError:
    """Classify the ``error`` member of a JSON-RPC response envelope"""
    error_class = _RPC_CODE_ERRORS.get(code)
    if error_class is not None:
        return error_class(message)
    if "actor not found" in (message or "").lower():
        return NotFoundError(message)
    return UnknownError(message or f"rpc error {code}")
