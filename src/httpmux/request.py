"""
HTTP request entity.

A Request holds the configuration for one HTTP exchange and, once
submitted, the response state the executor wrote back. Setters return the
request so configuration can be chained:

    req = (Request("https://example.com/api")
           .set_method("POST")
           .set_post_body({"name": "test"})
           .set_timeout(2500))
    req.submit()
    print(req.status_code, req.response_headers)

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import math
import re
from collections.abc import Mapping
from enum import Enum
from typing import Any

from httpmux.exceptions import (
    AlreadySubmittedError,
    HTTPRequestError,
    NotSubmittedError,
    StatusCodeError,
    TransportErrorCode,
    error_for,
)
from httpmux.options import DEFAULT_USER_AGENT, AuthScheme, Option
from httpmux.parser import HeaderMap, ParsedResponse
from httpmux.util import add_query_data


class Method(str, Enum):
    """Common HTTP request verbs. Any other verb may be given as a string."""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


Body = str | bytes | Mapping[str, Any]

_CHARSET_RE = re.compile(r"charset=([\w.:-]+)", re.IGNORECASE)


class Request:
    """One single-use HTTP exchange."""

    DEFAULT_USER_AGENT = DEFAULT_USER_AGENT

    def __init__(
        self,
        url: str | None = None,
        method: Method | str = Method.GET,
        data: Body | None = None,
        headers: list[str] | None = None,
        options: Mapping[Option | str, Any] | None = None,
    ):
        self.url = url
        self.method = method.value if isinstance(method, Method) else method
        self.headers: list[str] = list(headers or [])
        self.post_body: Body | None = data
        self.multipart = False
        self.user_agent = self.DEFAULT_USER_AGENT
        self.options: dict[Option | str, Any] = dict(options or {})
        self.default_fail_if_not_2xx = True

        self._claimed = False
        self._submitted = False
        self._response = ParsedResponse()
        self._info: dict[str, Any] = {}
        self._error_code: int = TransportErrorCode.OK
        self._error_message = ""
        self._error: HTTPRequestError | None = None

    def __repr__(self) -> str:
        return f"<Request {self.method} {self.url}>"

    # -- configuration -----------------------------------------------------

    def set_url(self, url: str) -> "Request":
        self.url = url
        return self

    def set_method(self, method: Method | str) -> "Request":
        self.method = method.value if isinstance(method, Method) else method
        return self

    def set_headers(self, headers: list[str] | None) -> "Request":
        """Replace the raw header lines sent with the request."""
        self.headers = list(headers or [])
        return self

    def add_header(self, header: str) -> "Request":
        """Append a raw `Name: value` header line. Duplicates are kept."""
        self.headers.append(header)
        return self

    def set_post_body(self, body: Body | None) -> "Request":
        """Set the payload.

        A str/bytes payload is sent as-is with a Content-Length header; a
        mapping is form-encoded on submission.
        """
        self.post_body = body
        self.multipart = False
        return self

    def set_multipart_body(self, fields: Mapping[str, Any]) -> "Request":
        """Set a mapping to be sent as multipart/form-data."""
        self.post_body = fields
        self.multipart = True
        return self

    def add_query_data(self, params: Mapping[str, Any] | str | None) -> "Request":
        self.url = add_query_data(self.url or "", params)
        return self

    def set_options(self, options: Mapping[Option | str, Any] | None) -> "Request":
        """Replace the custom transport options."""
        self.options = dict(options or {})
        return self

    def add_option(self, key: Option | str, value: Any) -> "Request":
        self.options[key] = value
        return self

    def set_user_agent(self, user_agent: str) -> "Request":
        self.user_agent = user_agent
        return self

    def set_referrer(self, referrer: str) -> "Request":
        """Set the URL reported in the Referer header."""
        return self.add_option(Option.REFERER, referrer)

    set_referer = set_referrer

    def set_connect_timeout(self, ms: float) -> "Request":
        """Set the connect timeout in milliseconds (at least 1ms)."""
        return self.add_option(Option.CONNECT_TIMEOUT_MS, max(1, math.ceil(ms)))

    def set_timeout(self, ms: float) -> "Request":
        """Set the total timeout in milliseconds (at least 1ms)."""
        return self.add_option(Option.TIMEOUT_MS, max(1, math.ceil(ms)))

    def set_credentials(
        self,
        user: str,
        password: str,
        scheme: AuthScheme = AuthScheme.ANY_SAFE,
    ) -> "Request":
        """Authenticate to the remote host with a username/password pair."""
        self.add_option(Option.HTTP_AUTH, scheme)
        return self.add_option(Option.USERPWD, (user, password))

    def set_x509_credentials(
        self,
        cert: str,
        key: str | None = None,
        key_password: str | None = None,
    ) -> "Request":
        """Authenticate with a PEM client certificate and private key."""
        self.add_option(Option.CLIENT_CERT, cert)
        self.add_option(Option.CLIENT_KEY, key)
        return self.add_option(Option.CLIENT_KEY_PASSWORD, key_password)

    def set_cookie_jar(self, path: str | None) -> "Request":
        """Read cookies from and store cookies in the given file."""
        if path is not None:
            self.add_option(Option.COOKIE_FILE, path)
            self.add_option(Option.COOKIE_JAR, path)
        return self

    def fail_if_not_2xx(self, flag: bool) -> "Request":
        """Set whether a status outside 200-299 fails validation by default."""
        self.default_fail_if_not_2xx = bool(flag)
        return self

    # -- lifecycle ---------------------------------------------------------

    @property
    def was_submitted(self) -> bool:
        return self._submitted

    def _claim(self) -> None:
        """Mark the request as handed to an executor."""
        if self._claimed:
            raise AlreadySubmittedError()
        self._claimed = True

    def _complete(
        self,
        response: ParsedResponse,
        info: Mapping[str, Any],
        error_code: int,
        error_message: str,
    ) -> None:
        """Record the outcome of the exchange. Only ever done once."""
        if self._submitted:
            raise AlreadySubmittedError()
        self._response = response
        self._info = dict(info)
        self._error_code = error_code
        self._error_message = error_message
        self._submitted = True

    def _require_submitted(self) -> None:
        if not self._submitted:
            raise NotSubmittedError()

    # -- response state ----------------------------------------------------

    @property
    def status_code(self) -> int:
        self._require_submitted()
        return self._response.status_code

    @property
    def response_headers(self) -> HeaderMap:
        self._require_submitted()
        return self._response.headers

    def get_response_header(self, name: str) -> str | list[str] | None:
        """Get a response header by name.

        Exact match first, then case-insensitive. The value is a list if the
        header occurred more than once.
        """
        headers = self.response_headers
        if name in headers:
            return headers[name]
        lowered = name.lower()
        for key, value in headers.items():
            if key.lower() == lowered:
                return value
        return None

    @property
    def response_body(self) -> bytes:
        self._require_submitted()
        return self._response.body

    @property
    def response_text(self) -> str:
        """Response body decoded with the declared charset (utf-8 otherwise)."""
        body = self.response_body
        content_type = self.get_response_header("Content-Type")
        if isinstance(content_type, list):
            content_type = content_type[-1]
        charset = "utf-8"
        if content_type:
            match = _CHARSET_RE.search(content_type)
            if match:
                charset = match.group(1)
        try:
            return body.decode(charset, errors="replace")
        except LookupError:
            return body.decode("utf-8", errors="replace")

    @property
    def info(self) -> dict[str, Any]:
        """Transport diagnostics for the exchange."""
        self._require_submitted()
        return self._info

    @property
    def transport_error_code(self) -> int:
        self._require_submitted()
        return self._error_code

    @property
    def transport_error_message(self) -> str:
        self._require_submitted()
        return self._error_message

    @property
    def error(self) -> HTTPRequestError | None:
        """Failure recorded by the last validation, None on success."""
        self._require_submitted()
        return self._error

    # -- validation and submission -----------------------------------------

    def check_response(self, fail_if_not_2xx: bool | None = None) -> HTTPRequestError | None:
        """Classify the outcome; returns the failure instead of raising it."""
        self._require_submitted()
        if fail_if_not_2xx is None:
            fail_if_not_2xx = self.default_fail_if_not_2xx

        if self._error_code != TransportErrorCode.OK:
            error = error_for(self._error_code, self._error_message, self)
        elif fail_if_not_2xx and not 200 <= self._response.status_code <= 299:
            error = StatusCodeError(
                f"HTTP Error: ({self._response.status_code}) from {self.url}",
                TransportErrorCode.HTTP_RETURNED_ERROR,
                self,
            )
        else:
            error = None

        self._error = error
        return error

    def validate_response(self, fail_if_not_2xx: bool | None = None) -> None:
        """Raise the classified failure for this request, if any."""
        error = self.check_response(fail_if_not_2xx)
        if error is not None:
            raise error

    def submit(self, fail_if_not_2xx: bool | None = None, transport: Any = None) -> "Request":
        """Execute this request. See httpmux.executor.submit."""
        from httpmux.executor import submit

        return submit(self, fail_if_not_2xx, transport=transport)
