"""
Failure taxonomy for HTTP request execution.

Transport failures are reported as a closed set of exception kinds, each
refining HTTPRequestError. The transport reports a numeric error code and
classify() maps that code onto a kind.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import weakref
from enum import Enum, IntEnum
from typing import Any


class TransportErrorCode(IntEnum):
    """Transport error codes (libcurl-compatible numbering)."""
    OK = 0
    UNSUPPORTED_PROTOCOL = 1
    FAILED_INIT = 2
    URL_MALFORMAT = 3
    COULDNT_RESOLVE_PROXY = 5
    COULDNT_RESOLVE_HOST = 6
    COULDNT_CONNECT = 7
    WEIRD_SERVER_REPLY = 8
    HTTP_RETURNED_ERROR = 22
    WRITE_ERROR = 23
    READ_ERROR = 26
    OPERATION_TIMEDOUT = 28
    SSL_CONNECT_ERROR = 35
    TOO_MANY_REDIRECTS = 47
    PEER_FAILED_VERIFICATION = 51
    GOT_NOTHING = 52
    SSL_ENGINE_NOTFOUND = 53
    SSL_ENGINE_SETFAILED = 54
    SEND_ERROR = 55
    RECV_ERROR = 56
    SSL_CERTPROBLEM = 58
    SSL_CIPHER = 59
    SSL_CACERT = 60
    BAD_CONTENT_ENCODING = 61
    USE_SSL_FAILED = 64
    SSL_ENGINE_INITFAILED = 66
    SSL_CACERT_BADFILE = 77
    SSL_SHUTDOWN_FAILED = 80
    SSL_CRL_BADFILE = 82
    SSL_ISSUER_ERROR = 83


class ErrorKind(str, Enum):
    """Kinds of request failure."""
    BAD_URL = "bad_url"
    DNS_FAILURE = "dns_failure"
    CONNECT_FAILURE = "connect_failure"
    TIMEOUT = "timeout"
    SSL = "ssl"
    STATUS_CODE = "status_code"
    GENERIC = "generic"


_SSL_CODES = frozenset({
    TransportErrorCode.PEER_FAILED_VERIFICATION,
    TransportErrorCode.SSL_CACERT,
    TransportErrorCode.SSL_CACERT_BADFILE,
    TransportErrorCode.SSL_CERTPROBLEM,
    TransportErrorCode.SSL_CIPHER,
    TransportErrorCode.SSL_CONNECT_ERROR,
    TransportErrorCode.SSL_CRL_BADFILE,
    TransportErrorCode.SSL_ENGINE_INITFAILED,
    TransportErrorCode.SSL_ENGINE_NOTFOUND,
    TransportErrorCode.SSL_ENGINE_SETFAILED,
    TransportErrorCode.SSL_ISSUER_ERROR,
    TransportErrorCode.SSL_SHUTDOWN_FAILED,
    TransportErrorCode.USE_SSL_FAILED,
})

_KIND_BY_CODE: dict[int, ErrorKind] = {
    TransportErrorCode.UNSUPPORTED_PROTOCOL: ErrorKind.BAD_URL,
    TransportErrorCode.URL_MALFORMAT: ErrorKind.BAD_URL,
    TransportErrorCode.COULDNT_RESOLVE_HOST: ErrorKind.DNS_FAILURE,
    TransportErrorCode.COULDNT_CONNECT: ErrorKind.CONNECT_FAILURE,
    TransportErrorCode.HTTP_RETURNED_ERROR: ErrorKind.STATUS_CODE,
    TransportErrorCode.OPERATION_TIMEDOUT: ErrorKind.TIMEOUT,
    **{code: ErrorKind.SSL for code in _SSL_CODES},
}


def classify(code: int) -> ErrorKind:
    """Map a transport error code to a failure kind.

    Unknown codes map to ErrorKind.GENERIC.
    """
    return _KIND_BY_CODE.get(int(code), ErrorKind.GENERIC)


class HTTPRequestError(Exception):
    """Base exception for HTTP request failures.

    Also used directly for ErrorKind.GENERIC failures.
    """
    kind = ErrorKind.GENERIC

    def __init__(self, message: str, code: int = 0, request: Any = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self._request_ref = weakref.ref(request) if request is not None else None

    @property
    def request(self) -> Any:
        """Request that triggered this failure, if it is still alive."""
        if self._request_ref is None:
            return None
        return self._request_ref()


class BadURLError(HTTPRequestError):
    """URL was malformed or its scheme is not supported."""
    kind = ErrorKind.BAD_URL


class DNSFailureError(HTTPRequestError):
    """Host name could not be resolved."""
    kind = ErrorKind.DNS_FAILURE


class ConnectFailedError(HTTPRequestError):
    """Connection to the resolved host could not be established."""
    kind = ErrorKind.CONNECT_FAILURE


class RequestTimeoutError(HTTPRequestError):
    """Connect, TLS or transfer deadline exceeded."""
    kind = ErrorKind.TIMEOUT


class SSLFailureError(HTTPRequestError):
    """Certificate, handshake or cipher failure."""
    kind = ErrorKind.SSL


class StatusCodeError(HTTPRequestError):
    """Response status was outside 200-299 under strict checking."""
    kind = ErrorKind.STATUS_CODE


ERROR_TYPES: dict[ErrorKind, type[HTTPRequestError]] = {
    ErrorKind.BAD_URL: BadURLError,
    ErrorKind.DNS_FAILURE: DNSFailureError,
    ErrorKind.CONNECT_FAILURE: ConnectFailedError,
    ErrorKind.TIMEOUT: RequestTimeoutError,
    ErrorKind.SSL: SSLFailureError,
    ErrorKind.STATUS_CODE: StatusCodeError,
    ErrorKind.GENERIC: HTTPRequestError,
}


def error_for(code: int, message: str, request: Any = None) -> HTTPRequestError:
    """Build the classified exception for a transport error code."""
    return ERROR_TYPES[classify(code)](message, code, request)


class RequestStateError(RuntimeError):
    """Request used in a way its lifecycle does not allow."""


class NotSubmittedError(RequestStateError):
    """Response state was read before the request completed."""

    def __init__(self, message: str = "Request not submitted."):
        super().__init__(message)


class AlreadySubmittedError(RequestStateError):
    """Request was submitted a second time."""

    def __init__(self, message: str = "Request cannot be reused."):
        super().__init__(message)
