"""Unit tests for familycal.calendar.fetcher."""

import httpx
import pytest

from familycal.calendar import fetcher as fetcher_module
from familycal.calendar.fetcher import (
    DEFAULT_FEED_HEADERS,
    MAX_BACKOFF_SECONDS,
    FeedFetcher,
    calculate_backoff,
    validate_feed_url,
)
from familycal.calendar.models import FeedSource
from familycal.core.exceptions import (
    FeedAuthError,
    FeedFetchError,
    FeedNetworkError,
    FeedTimeoutError,
)

pytestmark = pytest.mark.unit

FEED_BODY = b"BEGIN:VCALENDAR\r\nEND:VCALENDAR\r\n"


@pytest.fixture
def source():
    return FeedSource(id="family", url="https://calendars.example.com/family.ics")


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr(fetcher_module, "calculate_backoff", lambda attempt, factor: 0.0)


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestHelpers:
    """Tests for backoff and URL validation helpers."""

    def test_backoff_grows_with_attempt(self):
        first = calculate_backoff(0, 2.0)
        third = calculate_backoff(2, 2.0)
        assert 1.1 <= first <= 1.3
        assert 4.4 <= third <= 5.2

    def test_backoff_is_capped(self):
        assert calculate_backoff(20, 2.0) <= MAX_BACKOFF_SECONDS * 1.3

    @pytest.mark.parametrize(
        ("url", "valid"),
        [
            ("https://example.com/a.ics", True),
            ("http://example.com/a.ics", True),
            ("webcal://example.com/a.ics", False),
            ("file:///etc/passwd", False),
            ("https://", False),
        ],
    )
    def test_validate_feed_url(self, url, valid):
        assert validate_feed_url(url) is valid


class TestFeedFetcher:
    """Tests for FeedFetcher.fetch over a mock transport."""

    @pytest.mark.asyncio
    async def test_success_returns_body(self, simple_settings, source):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, content=FEED_BODY)

        async with _client(handler) as client:
            result = await FeedFetcher(simple_settings, client).fetch(source)

        assert result == FEED_BODY
        assert str(requests[0].url) == source.url

    @pytest.mark.asyncio
    async def test_server_error_is_retried(self, simple_settings, source):
        responses = iter([httpx.Response(503), httpx.Response(200, content=FEED_BODY)])

        async with _client(lambda request: next(responses)) as client:
            result = await FeedFetcher(simple_settings, client).fetch(source)

        assert result == FEED_BODY

    @pytest.mark.asyncio
    async def test_server_error_exhausts_retries(self, simple_settings, source):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        async with _client(handler) as client:
            with pytest.raises(FeedFetchError) as exc_info:
                await FeedFetcher(simple_settings, client).fetch(source)

        assert exc_info.value.status_code == 500
        assert len(calls) == simple_settings.max_retries + 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_auth_errors_not_retried(self, simple_settings, source, status):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(status)

        async with _client(handler) as client:
            with pytest.raises(FeedAuthError):
                await FeedFetcher(simple_settings, client).fetch(source)

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_not_found_not_retried(self, simple_settings, source):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404)

        async with _client(handler) as client:
            with pytest.raises(FeedFetchError) as exc_info:
                await FeedFetcher(simple_settings, client).fetch(source)

        assert exc_info.value.status_code == 404
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_timeout_maps_to_timeout_error(self, simple_settings, source):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        async with _client(handler) as client:
            with pytest.raises(FeedTimeoutError):
                await FeedFetcher(simple_settings, client).fetch(source)

    @pytest.mark.asyncio
    async def test_connect_error_maps_to_network_error(self, simple_settings, source):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(FeedNetworkError):
                await FeedFetcher(simple_settings, client).fetch(source)

    @pytest.mark.asyncio
    async def test_invalid_url_rejected_without_request(self, simple_settings):
        def handler(request):
            raise AssertionError("no request expected")

        async with _client(handler) as client:
            with pytest.raises(FeedFetchError):
                await FeedFetcher(simple_settings, client).fetch(
                    FeedSource(id="bad", url="ftp://example.com/feed.ics")
                )


class TestClientLifecycle:
    @pytest.mark.asyncio
    async def test_injected_client_not_closed(self, simple_settings):
        client = _client(lambda request: httpx.Response(200))
        fetcher = FeedFetcher(simple_settings, client)

        await fetcher.close()

        assert not client.is_closed
        await client.aclose()

    @pytest.mark.asyncio
    async def test_owned_client_created_and_closed(self, simple_settings):
        async with FeedFetcher(simple_settings) as fetcher:
            client = fetcher.client
            assert client is not None
            assert client.headers["User-Agent"] == DEFAULT_FEED_HEADERS["User-Agent"]

        assert client.is_closed
        assert fetcher.client is None
