import httpx
import pytest

from httpmux.exceptions import (
    AlreadySubmittedError,
    ConnectFailedError,
    ErrorKind,
    NotSubmittedError,
    StatusCodeError,
)
from httpmux.options import AuthScheme, Option
from httpmux.request import Method, Request


class TestConfiguration:
    """Tests for builder-style configuration."""

    def test_setters_chain(self) -> None:
        req = Request()
        assert req.set_url("http://example.com/") is req
        assert req.set_method("PUT") is req
        assert req.add_header("A: 1") is req
        assert req.set_post_body("x") is req
        assert req.set_user_agent("ua") is req
        assert req.set_timeout(10) is req
        assert req.fail_if_not_2xx(False) is req

    def test_defaults(self) -> None:
        req = Request("http://example.com/")
        assert req.method == "GET"
        assert req.headers == []
        assert req.user_agent == Request.DEFAULT_USER_AGENT
        assert req.default_fail_if_not_2xx is True
        assert not req.was_submitted

    def test_method_enum_or_custom_verb(self) -> None:
        assert Request("http://x/", Method.POST).method == "POST"
        assert Request("http://x/", "PROPFIND").method == "PROPFIND"

    def test_add_header_keeps_duplicates(self) -> None:
        req = Request("http://x/").add_header("A: 1").add_header("A: 1")
        assert req.headers == ["A: 1", "A: 1"]

    def test_add_query_data(self) -> None:
        req = Request("http://example.com/p#f").add_query_data({"a": "b"})
        assert req.url == "http://example.com/p?a=b#f"

    @pytest.mark.parametrize("ms,expected", [(0, 1), (0.2, 1), (250, 250), (1500.5, 1501)])
    def test_timeouts_round_up(self, ms: float, expected: int) -> None:
        req = Request("http://x/").set_timeout(ms).set_connect_timeout(ms)
        assert req.options[Option.TIMEOUT_MS] == expected
        assert req.options[Option.CONNECT_TIMEOUT_MS] == expected

    def test_credentials(self) -> None:
        req = Request("http://x/").set_credentials("user", "pw", AuthScheme.BASIC)
        assert req.options[Option.USERPWD] == ("user", "pw")
        assert req.options[Option.HTTP_AUTH] is AuthScheme.BASIC

    def test_x509_credentials(self) -> None:
        req = Request("https://x/").set_x509_credentials("c.pem", "k.pem", "secret")
        assert req.options[Option.CLIENT_CERT] == "c.pem"
        assert req.options[Option.CLIENT_KEY] == "k.pem"
        assert req.options[Option.CLIENT_KEY_PASSWORD] == "secret"

    def test_cookie_jar(self) -> None:
        req = Request("http://x/").set_cookie_jar("/tmp/jar.txt")
        assert req.options[Option.COOKIE_FILE] == "/tmp/jar.txt"
        assert req.options[Option.COOKIE_JAR] == "/tmp/jar.txt"

    def test_cookie_jar_none_is_ignored(self) -> None:
        assert Request("http://x/").set_cookie_jar(None).options == {}

    def test_referer_alias(self) -> None:
        req = Request("http://x/").set_referer("http://ref/")
        assert req.options[Option.REFERER] == "http://ref/"

    def test_multipart_flag(self) -> None:
        req = Request("http://x/").set_multipart_body({"a": "1"})
        assert req.multipart
        req.set_post_body({"a": "1"})
        assert not req.multipart


class TestResponseState:
    """Tests for the request lifecycle."""

    @pytest.mark.parametrize(
        "attr",
        [
            "status_code",
            "response_headers",
            "response_body",
            "response_text",
            "info",
            "transport_error_code",
            "transport_error_message",
            "error",
        ],
    )
    def test_reading_before_submission_fails(self, attr: str) -> None:
        req = Request("http://example.com/")
        with pytest.raises(NotSubmittedError):
            getattr(req, attr)

    def test_header_lookup_before_submission_fails(self) -> None:
        with pytest.raises(NotSubmittedError):
            Request("http://example.com/").get_response_header("Server")

    def test_second_submission_fails(self, mock_transport) -> None:
        """Resubmitting fails and leaves the first response untouched."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, text=f"call {len(calls)}")

        transport = mock_transport(handler)
        req = Request("http://example.com/").submit(transport=transport)
        assert req.response_body == b"call 1"

        with pytest.raises(AlreadySubmittedError):
            req.submit(transport=transport)

        assert len(calls) == 1
        assert req.status_code == 200
        assert req.response_body == b"call 1"

    def test_response_readers(self, mock_transport) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                headers=[
                    ("Content-Type", "text/plain; charset=iso-8859-1"),
                    ("Set-Cookie", "a=1"),
                    ("Set-Cookie", "b=2"),
                ],
                content="café".encode("iso-8859-1"),
            )

        req = Request("http://example.com/").submit(transport=mock_transport(handler))
        assert req.get_response_header("Content-Type") == "text/plain; charset=iso-8859-1"
        assert req.get_response_header("content-type") == "text/plain; charset=iso-8859-1"
        assert req.get_response_header("Set-Cookie") == ["a=1", "b=2"]
        assert req.get_response_header("X-Missing") is None
        assert req.response_text == "café"
        assert req.transport_error_code == 0
        assert req.transport_error_message == ""
        assert req.error is None

    def test_utf8_header_value(self, mock_transport) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                headers=[
                    ("Content-Disposition", 'attachment; filename="Å.txt"'.encode("utf-8")),
                    ("X-A", "1"),
                ],
            )

        req = Request("http://example.com/").submit(transport=mock_transport(handler))
        value = req.get_response_header("Content-Disposition")
        assert value.encode("latin-1").decode("utf-8") == 'attachment; filename="Å.txt"'
        assert req.get_response_header("X-A") == "1"
        assert not any(".txt" in name for name in req.response_headers)


class TestValidation:
    """Tests for outcome validation."""

    def test_strict_status(self, mock_transport) -> None:
        transport = mock_transport(lambda request: httpx.Response(404))
        req = Request("http://example.com/missing")
        with pytest.raises(StatusCodeError) as exc_info:
            req.submit(transport=transport)

        assert exc_info.value.kind is ErrorKind.STATUS_CODE
        assert exc_info.value.request is req
        assert "404" in str(exc_info.value)
        assert req.status_code == 404
        assert req.error is exc_info.value

    def test_lenient_status(self, mock_transport) -> None:
        transport = mock_transport(lambda request: httpx.Response(500))
        req = Request("http://example.com/").fail_if_not_2xx(False).submit(transport=transport)
        assert req.status_code == 500
        assert req.error is None

    def test_explicit_argument_overrides_default(self, mock_transport) -> None:
        transport = mock_transport(lambda request: httpx.Response(503))
        req = Request("http://example.com/").submit(False, transport=transport)
        assert req.status_code == 503

        with pytest.raises(StatusCodeError):
            req.validate_response()
        req.validate_response(False)

    def test_transport_failure_is_classified(self, mock_transport) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("[Errno 111] Connection refused", request=request)

        req = Request("http://example.com/")
        with pytest.raises(ConnectFailedError):
            req.submit(transport=mock_transport(handler))

        assert req.was_submitted
        assert req.transport_error_code == 7
        assert "Connection refused" in req.transport_error_message
        assert req.status_code == 0
        assert req.response_headers == {}
        assert req.response_body == b""
        assert req.info["http_code"] == 0

    def test_transport_failure_ignores_lenient_status(self, mock_transport) -> None:
        """Transport errors fail even when status checking is off."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ConnectFailedError):
            Request("http://example.com/").submit(False, transport=mock_transport(handler))
