"""
httpx-backed transport.

Executes prepared handles with httpx and reports the outcome the way the
engine expects it: the raw header blocks of every hop followed by the
final body, a diagnostics map, and a numeric error code instead of an
exception.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import asyncio
import logging
import socket
import ssl
import time
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from http.cookiejar import LoadError, MozillaCookieJar
from pathlib import Path
from typing import Any

import httpx

from httpmux.exceptions import TransportErrorCode
from httpmux.options import DEFAULT_USER_AGENT, AuthScheme, Option
from httpmux.util import parse_header_line


logger = logging.getLogger(__name__)

_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "no address associated with hostname",
)


@dataclass(eq=False)
class TransportHandle:
    """A prepared exchange, ready to be executed or multiplexed."""
    method: str
    url: str
    headers: list[str] = field(default_factory=list)
    options: dict[Option, Any] = field(default_factory=dict)
    content: bytes | None = None
    multipart: Mapping[str, Any] | None = None


@dataclass
class TransportResult:
    """Outcome of executing a handle."""
    raw: bytes = b""
    info: dict[str, Any] = field(default_factory=dict)
    error_code: int = TransportErrorCode.OK
    error_message: str = ""

    @property
    def ok(self) -> bool:
        return self.error_code == TransportErrorCode.OK


def _causes(exc: BaseException) -> Iterator[BaseException]:
    """Walk an exception and its chained causes."""
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def error_code_for(exc: BaseException) -> TransportErrorCode:
    """Map an exception raised while executing a request to an error code."""
    if isinstance(exc, httpx.InvalidURL):
        return TransportErrorCode.URL_MALFORMAT
    if isinstance(exc, httpx.UnsupportedProtocol):
        return TransportErrorCode.UNSUPPORTED_PROTOCOL
    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        return TransportErrorCode.OPERATION_TIMEDOUT

    causes = list(_causes(exc))
    if any(isinstance(c, ssl.SSLCertVerificationError) for c in causes):
        return TransportErrorCode.SSL_CACERT
    if any(isinstance(c, ssl.SSLError) for c in causes):
        return TransportErrorCode.SSL_CONNECT_ERROR

    if isinstance(exc, httpx.ProxyError):
        return TransportErrorCode.COULDNT_RESOLVE_PROXY
    if isinstance(exc, httpx.ConnectError):
        if any(isinstance(c, socket.gaierror) for c in causes):
            return TransportErrorCode.COULDNT_RESOLVE_HOST
        message = str(exc).lower()
        if any(marker in message for marker in _DNS_MARKERS):
            return TransportErrorCode.COULDNT_RESOLVE_HOST
        return TransportErrorCode.COULDNT_CONNECT
    if isinstance(exc, httpx.TooManyRedirects):
        return TransportErrorCode.TOO_MANY_REDIRECTS
    if isinstance(exc, httpx.WriteError):
        return TransportErrorCode.SEND_ERROR
    if isinstance(exc, httpx.ProtocolError):
        return TransportErrorCode.WEIRD_SERVER_REPLY
    if isinstance(exc, httpx.DecodingError):
        return TransportErrorCode.BAD_CONTENT_ENCODING
    return TransportErrorCode.RECV_ERROR


def _ssl_context(options: Mapping[Option, Any]) -> ssl.SSLContext:
    """Build the TLS context for the verification and client-cert options."""
    if options.get(Option.VERIFY_PEER):
        ctx = ssl.create_default_context(cafile=options.get(Option.CA_BUNDLE))
        ctx.check_hostname = bool(options.get(Option.VERIFY_HOST))
    else:
        ctx = ssl.create_default_context()
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE

    cert = options.get(Option.CLIENT_CERT)
    if cert:
        ctx.load_cert_chain(
            cert,
            keyfile=options.get(Option.CLIENT_KEY),
            password=options.get(Option.CLIENT_KEY_PASSWORD),
        )
    return ctx


def _auth(options: Mapping[Option, Any]) -> httpx.Auth | None:
    credentials = options.get(Option.USERPWD)
    if not credentials:
        return None
    if isinstance(credentials, str):
        user, _, password = credentials.partition(":")
    else:
        user, password = credentials

    scheme = AuthScheme(options.get(Option.HTTP_AUTH) or AuthScheme.ANY_SAFE)
    if scheme is AuthScheme.BASIC:
        return httpx.BasicAuth(user, password)
    return httpx.DigestAuth(user, password)


def _timeout(options: Mapping[Option, Any]) -> httpx.Timeout:
    total = options.get(Option.TIMEOUT_MS)
    connect = options.get(Option.CONNECT_TIMEOUT_MS)
    return httpx.Timeout(
        total / 1000.0 if total else None,
        connect=connect / 1000.0 if connect else None,
    )


def _load_cookie_jar(options: Mapping[Option, Any]) -> MozillaCookieJar | None:
    read_path = options.get(Option.COOKIE_FILE)
    write_path = options.get(Option.COOKIE_JAR)
    if not read_path and not write_path:
        return None

    jar = MozillaCookieJar(write_path or read_path)
    if read_path:
        path = Path(read_path)
        if path.is_file() and path.stat().st_size > 0:
            jar.load(str(path), ignore_discard=True, ignore_expires=True)
    return jar


def _save_cookie_jar(jar: MozillaCookieJar | None, options: Mapping[Option, Any]) -> None:
    write_path = options.get(Option.COOKIE_JAR)
    if jar is not None and write_path:
        jar.save(str(write_path), ignore_discard=True, ignore_expires=True)


def _store_cookies(
    jar: MozillaCookieJar | None,
    options: Mapping[Option, Any],
    result: TransportResult,
) -> TransportResult:
    """Save the jar; a failed save is reported on the otherwise complete result."""
    try:
        _save_cookie_jar(jar, options)
    except OSError as e:
        result.error_code = TransportErrorCode.WRITE_ERROR
        result.error_message = f"Cannot write cookie jar: {e}"
    return result


def _read_body(response: httpx.Response, deadline: float | None) -> bytes | None:
    """Read the streamed body, or return None once the deadline passes."""
    chunks = []
    if deadline is not None and time.monotonic() > deadline:
        return None
    for chunk in response.iter_bytes():
        chunks.append(chunk)
        if deadline is not None and time.monotonic() > deadline:
            return None
    return b"".join(chunks)


def _request_headers(handle: TransportHandle) -> list[tuple[str, str]]:
    headers = [parse_header_line(line) for line in handle.headers]
    names = {name.lower() for name, _ in headers}

    referer = handle.options.get(Option.REFERER)
    if referer and "referer" not in names:
        headers.append(("Referer", referer))

    encoding = handle.options.get(Option.ENCODING, "")
    if "accept-encoding" not in names:
        if encoding is None:
            headers.append(("Accept-Encoding", "identity"))
        elif encoding:
            headers.append(("Accept-Encoding", encoding))
    return headers


def _multipart_files(fields: Mapping[str, Any]) -> dict[str, Any]:
    files = {}
    for name, value in fields.items():
        if isinstance(value, tuple) or hasattr(value, "read"):
            files[name] = value
        elif isinstance(value, bytes):
            files[name] = (None, value)
        else:
            files[name] = (None, str(value))
    return files


def _raw_response(response: httpx.Response, body: bytes) -> tuple[bytes, int]:
    """Rebuild the header blocks of every hop followed by the final body."""
    blocks = []
    for hop in [*response.history, response]:
        lines = [f"{hop.http_version} {hop.status_code} {hop.reason_phrase}"]
        for name, value in hop.headers.raw:
            lines.append(f"{name.decode('latin-1')}: {value.decode('latin-1')}")
        blocks.append(("\r\n".join(lines) + "\r\n\r\n").encode("latin-1"))
    header_bytes = b"".join(blocks)
    return header_bytes + body, len(header_bytes)


def _success_result(
    response: httpx.Response,
    elapsed: float,
    body: bytes | None = None,
) -> TransportResult:
    if body is None:
        body = response.content
    raw, header_size = _raw_response(response, body)
    sent = response.request.headers.raw
    return TransportResult(
        raw=raw,
        info={
            "url": str(response.url),
            "effective_method": response.request.method,
            "http_code": response.status_code,
            "http_version": response.http_version,
            "header_size": header_size,
            "redirect_count": len(response.history),
            "redirect_chain": [str(hop.url) for hop in response.history],
            "total_time": elapsed,
            "content_type": response.headers.get("content-type"),
            "size_download": len(body),
            "request_header": "\r\n".join(
                f"{k.decode('latin-1')}: {v.decode('latin-1')}" for k, v in sent
            ),
        },
    )


def _failure_result(
    handle: TransportHandle,
    code: TransportErrorCode,
    message: str,
    elapsed: float,
) -> TransportResult:
    return TransportResult(
        info={
            "url": handle.url,
            "effective_method": handle.method,
            "http_code": 0,
            "header_size": 0,
            "redirect_count": 0,
            "total_time": elapsed,
        },
        error_code=code,
        error_message=message,
    )


def _timed_out_result(handle: TransportHandle, start: float) -> TransportResult:
    elapsed = time.monotonic() - start
    return _failure_result(
        handle,
        TransportErrorCode.OPERATION_TIMEDOUT,
        f"Operation timed out after {int(elapsed * 1000)} milliseconds",
        elapsed,
    )


def _cookie_failure_result(handle: TransportHandle, error: Exception, start: float) -> TransportResult:
    return _failure_result(
        handle,
        TransportErrorCode.READ_ERROR,
        f"Cannot read cookie file: {error}",
        time.monotonic() - start,
    )


class HttpxTransport:
    """Transport that executes handles with httpx.

    Each execution uses its own client, configured from the handle's
    options. An httpx transport (for example httpx.MockTransport) may be
    injected to replace the network layer.
    """

    def __init__(self, transport: httpx.BaseTransport | httpx.AsyncBaseTransport | None = None):
        self._transport = transport

    def _client_kwargs(
        self,
        handle: TransportHandle,
        ctx: ssl.SSLContext,
        jar: MozillaCookieJar | None,
    ) -> dict[str, Any]:
        options = handle.options
        kwargs: dict[str, Any] = {
            "verify": ctx,
            "timeout": _timeout(options),
            "follow_redirects": bool(options.get(Option.FOLLOW_REDIRECTS)),
            "max_redirects": int(options.get(Option.MAX_REDIRECTS) or 0),
            "headers": {"User-Agent": options.get(Option.USER_AGENT) or DEFAULT_USER_AGENT},
            "auth": _auth(options),
        }
        if jar is not None:
            kwargs["cookies"] = jar
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return kwargs

    def _build(self, client: httpx.Client | httpx.AsyncClient, handle: TransportHandle) -> httpx.Request:
        return client.build_request(
            handle.method,
            handle.url,
            headers=_request_headers(handle),
            content=handle.content,
            files=_multipart_files(handle.multipart) if handle.multipart else None,
        )

    def execute(self, handle: TransportHandle) -> TransportResult:
        """Execute a handle, blocking until the exchange completes.

        The total timeout bounds the whole exchange, redirects and body
        included.
        """
        start = time.monotonic()
        try:
            ctx = _ssl_context(handle.options)
        except (ssl.SSLError, OSError) as e:
            return _failure_result(
                handle, TransportErrorCode.SSL_CERTPROBLEM, str(e), time.monotonic() - start
            )
        try:
            jar = _load_cookie_jar(handle.options)
        except (LoadError, OSError, UnicodeDecodeError) as e:
            return _cookie_failure_result(handle, e, start)

        total_ms = handle.options.get(Option.TIMEOUT_MS)
        deadline = start + total_ms / 1000.0 if total_ms else None
        try:
            with httpx.Client(**self._client_kwargs(handle, ctx, jar)) as client:
                response = client.send(self._build(client, handle), stream=True)
                try:
                    body = _read_body(response, deadline)
                finally:
                    response.close()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            elapsed = time.monotonic() - start
            logger.debug(f"{handle.method} {handle.url} failed: {e!r}")
            return _failure_result(handle, error_code_for(e), str(e) or type(e).__name__, elapsed)

        if body is None:
            return _timed_out_result(handle, start)
        result = _success_result(response, time.monotonic() - start, body)
        return _store_cookies(jar, handle.options, result)

    async def execute_async(self, handle: TransportHandle) -> TransportResult:
        """Execute a handle on the running event loop.

        The total timeout bounds the whole exchange, redirects included.
        Cookie files are read and written in a worker thread; requests
        sharing one jar file each save their own view, the last save wins.
        """
        start = time.monotonic()
        try:
            ctx = _ssl_context(handle.options)
        except (ssl.SSLError, OSError) as e:
            return _failure_result(
                handle, TransportErrorCode.SSL_CERTPROBLEM, str(e), time.monotonic() - start
            )
        try:
            jar = await asyncio.to_thread(_load_cookie_jar, handle.options)
        except (LoadError, OSError, UnicodeDecodeError) as e:
            return _cookie_failure_result(handle, e, start)

        total_ms = handle.options.get(Option.TIMEOUT_MS)
        try:
            async with httpx.AsyncClient(**self._client_kwargs(handle, ctx, jar)) as client:
                response = await asyncio.wait_for(
                    client.send(self._build(client, handle)),
                    timeout=total_ms / 1000.0 if total_ms else None,
                )
        except asyncio.TimeoutError:
            return _timed_out_result(handle, start)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            elapsed = time.monotonic() - start
            logger.debug(f"{handle.method} {handle.url} failed: {e!r}")
            return _failure_result(handle, error_code_for(e), str(e) or type(e).__name__, elapsed)

        result = _success_result(response, time.monotonic() - start)
        return await asyncio.to_thread(_store_cookies, jar, handle.options, result)
