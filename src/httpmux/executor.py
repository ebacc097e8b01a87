"""
Single request execution.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import logging
from collections.abc import Mapping

from httpmux.options import DEFAULT_OPTIONS, Option, merge_options
from httpmux.parser import parse_response
from httpmux.request import Method, Request
from httpmux.transport import HttpxTransport, TransportHandle, TransportResult
from httpmux.util import url_encode


logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

_default_transport = HttpxTransport()


def default_transport() -> HttpxTransport:
    """Transport used when a caller does not supply one."""
    return _default_transport


def _has_header(headers: list[str], name: str) -> bool:
    prefix = name.lower() + ":"
    return any(h.lower().startswith(prefix) for h in headers)


def prepare(request: Request) -> TransportHandle:
    """Build the transport handle for a request without executing it.

    Engine defaults are merged with the request's options (request headers
    are appended to any header list in the options) and the merged set is
    written back to request.options.
    """
    headers = list(request.headers)
    content = None
    multipart = None
    body = request.post_body

    if body:
        if request.multipart and isinstance(body, Mapping):
            multipart = body
        else:
            if isinstance(body, Mapping):
                content = url_encode(body).encode("utf-8")
            elif isinstance(body, str):
                content = body.encode("utf-8")
            else:
                content = bytes(body)
            headers.append(f"Content-Length: {len(content)}")
            form = isinstance(body, Mapping) or request.method == Method.POST
            if form and not _has_header(headers, "Content-Type"):
                headers.append(f"Content-Type: {FORM_CONTENT_TYPE}")

    options = merge_options(DEFAULT_OPTIONS, request.options)
    options = merge_options(options, {Option.HTTP_HEADERS: headers})
    options[Option.USER_AGENT] = request.user_agent

    request._claim()

    # remember the options actually used
    request.set_options(options)

    return TransportHandle(
        method=request.method,
        url=request.url or "",
        headers=options[Option.HTTP_HEADERS],
        options=options,
        content=content,
        multipart=multipart,
    )


def complete(request: Request, result: TransportResult) -> None:
    """Parse a transport result into the request's response state."""
    response = parse_response(result.raw, result.info)
    request._complete(response, result.info, result.error_code, result.error_message)


def submit(
    request: Request,
    fail_if_not_2xx: bool | None = None,
    transport: HttpxTransport | None = None,
) -> Request:
    """Execute a request and validate the outcome.

    Args:
        request: Request to execute; it is updated in place
        fail_if_not_2xx: Treat a status outside 200-299 as a failure.
            Defaults to the request's own setting.
        transport: Transport to execute with

    Returns:
        The same request, with response state populated

    Raises:
        AlreadySubmittedError: If the request was submitted before
        HTTPRequestError: Classified transport or status failure
    """
    transport = transport or _default_transport
    handle = prepare(request)

    logger.debug(f"Submitting {handle.method} {handle.url}")
    result = transport.execute(handle)
    complete(request, result)
    logger.debug(
        f"{handle.method} {handle.url} -> {request.status_code} "
        f"(error {result.error_code})"
    )

    request.validate_response(fail_if_not_2xx)
    return request
