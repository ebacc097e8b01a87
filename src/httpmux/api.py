"""
Convenience entry points for common requests.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

from collections.abc import Iterable, Mapping
from typing import Any

from httpmux.options import Option
from httpmux.parallel import submit_all
from httpmux.request import Method, Request
from httpmux.util import add_query_data, url_encode

Options = Mapping[Option | str, Any]


def get(
    url: str,
    params: Mapping[str, Any] | str | None = None,
    options: Options | None = None,
) -> Request:
    """GET a URL with params form-encoded into its query string."""
    request = Request(add_query_data(url, params), Method.GET, options=options)
    return request.submit()


def post(url: str, params: Mapping[str, Any], options: Options | None = None) -> Request:
    """POST params as application/x-www-form-urlencoded."""
    request = Request(url, Method.POST, url_encode(params), options=options)
    return request.submit()


def post_content(
    url: str,
    content: str | bytes,
    content_type: str = "text/xml",
    options: Options | None = None,
) -> Request:
    """POST a raw document body (SOAP envelopes and the like)."""
    headers = [f"Content-Type: {content_type}"]
    request = Request(url, Method.POST, content, headers, options)
    return request.submit()


def post_multipart(url: str, fields: Mapping[str, Any], options: Options | None = None) -> Request:
    """POST fields as multipart/form-data."""
    request = Request(url, Method.POST, options=options).set_multipart_body(fields)
    return request.submit()


def parallel_submit(requests: Iterable[Request]) -> list[Request]:
    """Submit prepared requests in parallel and wait for all of them."""
    return submit_all(requests)
