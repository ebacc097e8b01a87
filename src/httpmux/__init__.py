"""
httpmux - HTTP request engine

Issues single or many-in-parallel HTTP requests, captures status, headers
and body, and reports transport failures as a typed error taxonomy.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

from httpmux.api import get, parallel_submit, post, post_content, post_multipart
from httpmux.cookies import COOKIE_NAME, COOKIE_VALUE, parse_cookie_header
from httpmux.exceptions import (
    AlreadySubmittedError,
    BadURLError,
    ConnectFailedError,
    DNSFailureError,
    ErrorKind,
    HTTPRequestError,
    NotSubmittedError,
    RequestStateError,
    RequestTimeoutError,
    SSLFailureError,
    StatusCodeError,
    TransportErrorCode,
    classify,
)
from httpmux.executor import submit
from httpmux.options import DEFAULT_OPTIONS, AuthScheme, Option, merge_options
from httpmux.parallel import ParallelExecutor, submit_all, submit_all_async
from httpmux.request import Method, Request
from httpmux.transport import HttpxTransport

__version__ = "0.1.0"
__author__ = "DNS Science.io"
__copyright__ = "Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company"

__all__ = [
    "AlreadySubmittedError",
    "AuthScheme",
    "BadURLError",
    "COOKIE_NAME",
    "COOKIE_VALUE",
    "ConnectFailedError",
    "DEFAULT_OPTIONS",
    "DNSFailureError",
    "ErrorKind",
    "HTTPRequestError",
    "HttpxTransport",
    "Method",
    "NotSubmittedError",
    "Option",
    "ParallelExecutor",
    "Request",
    "RequestStateError",
    "RequestTimeoutError",
    "SSLFailureError",
    "StatusCodeError",
    "TransportErrorCode",
    "classify",
    "get",
    "merge_options",
    "parallel_submit",
    "parse_cookie_header",
    "post",
    "post_content",
    "post_multipart",
    "submit",
    "submit_all",
    "submit_all_async",
]
