"""
Set-Cookie header tokenizer.

Splits a header into cookie elements on commas and each element into
attributes on semicolons, ignoring separators that appear inside double
quotes.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

COOKIE_NAME = "cookie-name"
COOKIE_VALUE = "cookie-value"

CookieElement = dict[str, str | bool]


def _split_unquoted(text: str, separator: str) -> list[str]:
    """Split text on separator characters that are not inside quotes."""
    chunks = []
    quoted = False
    start = 0
    for i, ch in enumerate(text):
        if ch == '"' and (i == 0 or text[i - 1] != "\\"):
            quoted = not quoted
        elif ch == separator and not quoted:
            chunks.append(text[start:i])
            start = i + 1
    chunks.append(text[start:])
    return chunks


def parse_cookie_element(element: str) -> CookieElement:
    """Parse one `name=value; attr=val; flag` segment.

    The first name=value pair becomes COOKIE_NAME / COOKIE_VALUE. Flags map
    to True. Later duplicate attributes overwrite earlier ones.
    """
    cookie: CookieElement = {}
    for chunk in _split_unquoted(element, ";"):
        chunk = chunk.strip()
        if not chunk:
            continue

        if "=" not in chunk:
            cookie[chunk] = True
            continue

        name, value = chunk.split("=", 1)
        name = name.strip()
        value = value.strip().strip('"')
        if COOKIE_NAME not in cookie:
            cookie[COOKIE_NAME] = name
            cookie[COOKIE_VALUE] = value
        else:
            cookie[name] = value

    return cookie


def parse_cookie_header(header: str) -> list[CookieElement]:
    """Parse a Set-Cookie header into its cookie elements.

    Elements without a name=value pair are dropped.
    """
    cookies = []
    if not header:
        return cookies

    for segment in _split_unquoted(header, ","):
        cookie = parse_cookie_element(segment)
        if COOKIE_NAME in cookie:
            cookies.append(cookie)
    return cookies
