import asyncio

import httpx
import pytest

from httpmux.exceptions import (
    AlreadySubmittedError,
    ConnectFailedError,
    ErrorKind,
    HTTPRequestError,
    RequestTimeoutError,
    StatusCodeError,
    TransportErrorCode,
)
from httpmux.multiplexer import MultiStatus
from httpmux.options import Option
from httpmux.parallel import BatchState, ParallelExecutor, submit_all
from httpmux.request import Request
from httpmux.transport import HttpxTransport


def _router(request: httpx.Request) -> httpx.Response:
    if request.url.host == "down.example.com":
        raise httpx.ConnectError("[Errno 111] Connection refused", request=request)
    if request.url.path == "/missing":
        return httpx.Response(404, content=b"nope")
    return httpx.Response(200, content=request.url.path.encode())


class TestSubmitAll:
    """Tests for batch submission."""

    def test_all_succeed(self, mock_transport) -> None:
        requests = [Request(f"http://example.com/{i}") for i in range(5)]
        result = submit_all(requests, transport=mock_transport(_router))

        assert result == requests
        for i, req in enumerate(requests):
            assert req.status_code == 200
            assert req.response_body == f"/{i}".encode()
            assert req.error is None

    def test_failures_are_attached(self, mock_transport) -> None:
        """One failed request does not abort the others."""
        ok = Request("http://example.com/a")
        down = Request("http://down.example.com/")
        missing = Request("http://example.com/missing")

        submit_all([ok, down, missing], transport=mock_transport(_router))

        assert ok.status_code == 200
        assert ok.error is None

        assert isinstance(down.error, ConnectFailedError)
        assert down.error.request is down
        assert down.transport_error_code == 7
        assert down.status_code == 0

        assert isinstance(missing.error, StatusCodeError)
        assert missing.status_code == 404
        assert missing.response_body == b"nope"

    def test_lenient_requests(self, mock_transport) -> None:
        req = Request("http://example.com/missing").fail_if_not_2xx(False)
        submit_all([req], transport=mock_transport(_router))
        assert req.status_code == 404
        assert req.error is None

    def test_empty_batch(self, mock_transport) -> None:
        assert submit_all([], transport=mock_transport(_router)) == []

    def test_duplicate_request_rejected(self, mock_transport) -> None:
        req = Request("http://example.com/")
        with pytest.raises(AlreadySubmittedError):
            submit_all([req, req], transport=mock_transport(_router))
        assert not req.was_submitted

    def test_already_submitted_rejected(self, mock_transport) -> None:
        """Nothing in the batch is sent if one request was used before."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200)

        transport = mock_transport(handler)
        used = Request("http://example.com/used").submit(transport=transport)
        fresh = Request("http://example.com/fresh")

        with pytest.raises(AlreadySubmittedError):
            submit_all([fresh, used], transport=transport)

        assert len(calls) == 1
        assert not fresh.was_submitted

    def test_requests_run_concurrently(self, mock_transport) -> None:
        in_flight = 0
        peak = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.05)
            in_flight -= 1
            return httpx.Response(200)

        requests = [Request(f"http://example.com/{i}") for i in range(4)]
        submit_all(requests, transport=mock_transport(handler))

        assert peak == 4
        assert all(req.status_code == 200 for req in requests)

    def test_timeout_is_per_request(self, mock_transport) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/slow":
                await asyncio.sleep(5)
            return httpx.Response(200)

        slow = Request("http://example.com/slow").set_timeout(50)
        fast = Request("http://example.com/fast")
        submit_all([slow, fast], transport=mock_transport(handler), select_timeout=0.01)

        assert isinstance(slow.error, RequestTimeoutError)
        assert slow.error.kind is ErrorKind.TIMEOUT
        assert fast.status_code == 200

    def test_real_sockets(self, local_server: str, closed_port: int) -> None:
        ok = Request(f"{local_server}/ok")
        refused = Request(f"http://127.0.0.1:{closed_port}/")
        submit_all([ok, refused])

        assert ok.response_text == "hello"
        assert refused.error.kind is ErrorKind.CONNECT_FAILURE

    def test_broken_cookie_file_fails_only_its_request(self, mock_transport, tmp_path) -> None:
        jar = tmp_path / "cookies.txt"
        jar.write_text("not a cookie file\n")
        ok = Request("http://example.com/ok")
        broken = Request("http://example.com/jar").set_cookie_jar(str(jar))

        submit_all([ok, broken], transport=mock_transport(_router))

        assert ok.status_code == 200
        assert ok.error is None
        assert broken.error.kind is ErrorKind.GENERIC
        assert broken.transport_error_code == TransportErrorCode.READ_ERROR
        assert broken.status_code == 0

    def test_options_are_written_back(self, mock_transport) -> None:
        req = Request("http://example.com/", options={Option.TIMEOUT_MS: 700})
        submit_all([req], transport=mock_transport(_router))
        assert req.options[Option.TIMEOUT_MS] == 700
        assert req.options[Option.CONNECT_TIMEOUT_MS] == 3000


class _CrashingTransport(HttpxTransport):
    async def execute_async(self, handle):
        raise RuntimeError("transport bug")


class TestParallelExecutor:
    """Tests for batch lifecycle and fatal statuses."""

    def test_state_transitions(self, mock_transport) -> None:
        executor = ParallelExecutor(mock_transport(_router))
        assert executor.state is BatchState.NOT_STARTED

        asyncio.run(executor.submit_all_async([Request("http://example.com/")]))
        assert executor.state is BatchState.DONE

    def test_single_batch_per_executor(self, mock_transport) -> None:
        executor = ParallelExecutor(mock_transport(_router))
        asyncio.run(executor.submit_all_async([]))
        with pytest.raises(RuntimeError):
            asyncio.run(executor.submit_all_async([]))

    def test_fatal_status_aborts_batch(self) -> None:
        with pytest.raises(HTTPRequestError) as exc_info:
            submit_all([Request("http://example.com/")], transport=_CrashingTransport())

        error = exc_info.value
        assert type(error) is HTTPRequestError
        assert error.kind is ErrorKind.GENERIC
        assert error.code == MultiStatus.INTERNAL_ERROR
        assert "INTERNAL_ERROR" in error.message
        assert isinstance(error.__cause__, RuntimeError)
