"""
Transport option names, engine defaults and option merging.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType
from typing import Any


DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; httpmux)"
DEFAULT_MAX_REDIRECTS = 10


class Option(str, Enum):
    """Transport options understood by the engine."""
    VERIFY_PEER = "verify_peer"
    VERIFY_HOST = "verify_host"
    CA_BUNDLE = "ca_bundle"
    FOLLOW_REDIRECTS = "follow_redirects"
    MAX_REDIRECTS = "max_redirects"
    ENCODING = "encoding"  # "" = negotiate all, None = identity
    CONNECT_TIMEOUT_MS = "connect_timeout_ms"
    TIMEOUT_MS = "timeout_ms"
    CLIENT_CERT = "client_cert"
    CLIENT_KEY = "client_key"
    CLIENT_KEY_PASSWORD = "client_key_password"
    COOKIE_FILE = "cookie_file"  # read cookies from
    COOKIE_JAR = "cookie_jar"  # write cookies to
    HTTP_HEADERS = "http_headers"
    USER_AGENT = "user_agent"
    REFERER = "referer"
    USERPWD = "userpwd"  # (username, password)
    HTTP_AUTH = "http_auth"


class AuthScheme(str, Enum):
    """Credential schemes for Option.HTTP_AUTH."""
    BASIC = "basic"
    DIGEST = "digest"
    ANY_SAFE = "any_safe"


# TLS verification is off unless a caller opts in.
DEFAULT_OPTIONS: Mapping[Option, Any] = MappingProxyType({
    Option.VERIFY_PEER: False,
    Option.VERIFY_HOST: False,
    Option.FOLLOW_REDIRECTS: True,
    Option.MAX_REDIRECTS: DEFAULT_MAX_REDIRECTS,
    Option.ENCODING: "",
    Option.CONNECT_TIMEOUT_MS: 3000,
    Option.TIMEOUT_MS: 5000,
})


def resolve_option(key: Option | str) -> Option:
    """Resolve an option given as a member, a value or a member name."""
    if isinstance(key, Option):
        return key
    try:
        return Option(key)
    except ValueError:
        pass
    try:
        return Option[str(key).upper()]
    except KeyError:
        raise ValueError(f"Invalid transport option [{key}].") from None


def merge_options(
    base: Mapping[Option | str, Any],
    additional: Mapping[Option | str, Any] | None,
) -> dict[Option, Any]:
    """Merge two option sets into a new dict.

    Values in additional override values in base, except Option.HTTP_HEADERS
    which is concatenated (base entries first). Neither input is modified.
    """
    merged: dict[Option, Any] = {resolve_option(k): v for k, v in base.items()}
    if Option.HTTP_HEADERS in merged:
        merged[Option.HTTP_HEADERS] = list(merged[Option.HTTP_HEADERS])

    if not additional:
        return merged

    for key, value in additional.items():
        key = resolve_option(key)
        if key is Option.HTTP_HEADERS and key in merged:
            if isinstance(value, (list, tuple)):
                merged[key].extend(value)
            else:
                merged[key].append(value)
        elif key is Option.HTTP_HEADERS:
            merged[key] = list(value) if isinstance(value, (list, tuple)) else [value]
        else:
            merged[key] = value

    return merged
