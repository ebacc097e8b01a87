"""
URL and form-encoding helpers.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

from collections.abc import Mapping
from typing import Any
from urllib.parse import urlencode, urlsplit, urlunsplit


def url_encode(params: Mapping[str, Any]) -> str:
    """Form-encode a mapping; sequence values repeat the key."""
    return urlencode(list(params.items()), doseq=True)


def add_query_data(url: str, params: Mapping[str, Any] | str | None) -> str:
    """Append query data to a URL, keeping any existing query and fragment."""
    if params is None:
        return url
    payload = url_encode(params) if isinstance(params, Mapping) else str(params)
    if not payload:
        return url

    parts = urlsplit(url)
    query = f"{parts.query}&{payload}" if parts.query else payload
    return urlunsplit(parts._replace(query=query))


def parse_header_line(line: str) -> tuple[str, str]:
    """Split a raw `Name: value` header line."""
    if ":" not in line:
        return line.strip(), ""
    name, value = line.split(":", 1)
    return name.strip(), value.strip()
