"""
Raw transport response parsing.

The transport hands back the header blocks of every hop followed by the
final body. Only the final hop's headers are kept; repeated header names
fold into a list.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


HeaderMap = dict[str, str | list[str]]


@dataclass(frozen=True)
class ParsedResponse:
    """Structured form of a raw transport response."""
    status_code: int = 0
    headers: HeaderMap = field(default_factory=dict)
    body: bytes = b""


def select_header_block(raw_headers: str, redirect_count: int = 0) -> str:
    """Return the header block of the final hop.

    Earlier hops' blocks (redirect responses) are discarded.
    """
    normalized = raw_headers.replace("\r\n", "\n")
    blocks = [b for b in normalized.split("\n\n") if b.strip()]
    if not blocks:
        return ""
    index = min(max(redirect_count, 0), len(blocks) - 1)
    return blocks[index]


def parse_header_block(block: str) -> HeaderMap:
    """Parse a header block into a name -> value(s) map.

    A name seen once maps to its string value; a repeated name maps to a
    list of values in the order they occurred.
    """
    headers: HeaderMap = {}
    for line in block.replace("\r\n", "\n").split("\n"):
        if not line:
            continue
        if line.startswith("HTTP/"):
            # status line
            continue

        name, _, value = line.partition(": ")
        if name in headers:
            existing = headers[name]
            if isinstance(existing, list):
                existing.append(value)
            else:
                headers[name] = [existing, value]
        else:
            headers[name] = value
    return headers


def parse_response(raw: bytes | None, info: Mapping[str, Any]) -> ParsedResponse:
    """Split a raw response at the reported header size and parse it."""
    status_code = int(info.get("http_code") or 0)
    if not raw:
        return ParsedResponse(status_code=status_code)

    header_size = int(info.get("header_size") or 0)
    raw_headers = raw[:header_size].decode("latin-1")
    body = raw[header_size:]

    block = select_header_block(raw_headers, int(info.get("redirect_count") or 0))
    return ParsedResponse(
        status_code=status_code,
        headers=parse_header_block(block),
        body=body,
    )
