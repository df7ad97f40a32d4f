import pytest
import requests
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from prometheus_client import REGISTRY

from pubscan.capture import SCAN_METHOD_STATIC, STATIC_FETCH_NOTE, CaptureResult, SiteCaptureAdapter, StaticCapture
from pubscan.capture.dynamic import DynamicCapture
from pubscan.capture.models import MAX_COOKIES, MAX_HTML_CHARS, MAX_URL_CHARS
from pubscan.exceptions import CaptureFailedError, CaptureTimeoutError

from helpers import FakeResponse, FakeSession


# ---- fake Playwright objects ----

class FakeRequest:
    def __init__(self, url, resource_type="script"):
        self.url = url
        self.resource_type = resource_type


class FakePage:
    def __init__(self, world):
        self.world = world
        self.handlers = {}

    def on(self, event, handler):
        self.handlers[event] = handler

    def goto(self, url, wait_until=None, timeout=None):
        self.world.visited = (url, wait_until, timeout)
        for u in self.world.urls:
            self.handlers["request"](FakeRequest(u))
        if self.world.nav_error is not None:
            raise self.world.nav_error

    def wait_for_timeout(self, ms):
        self.world.settled = ms

    def content(self):
        return self.world.html


class FakeContext:
    def __init__(self, world):
        self.world = world

    def new_page(self):
        return FakePage(self.world)

    def cookies(self):
        return self.world.cookies


class FakeBrowser:
    def __init__(self, world):
        self.world = world

    def new_context(self, user_agent=None):
        self.world.user_agent = user_agent
        return FakeContext(self.world)

    def close(self):
        self.world.closed = True


class FakeChromium:
    def __init__(self, world):
        self.world = world

    def connect_over_cdp(self, endpoint, timeout=None):
        if self.world.connect_error is not None:
            raise self.world.connect_error
        self.world.endpoint = endpoint
        return FakeBrowser(self.world)


class FakeWorld:
    """Everything one fake browser session will observe."""

    def __init__(self, urls=(), cookies=(), html="<html></html>", nav_error=None, connect_error=None):
        self.urls = list(urls)
        self.cookies = list(cookies)
        self.html = html
        self.nav_error = nav_error
        self.connect_error = connect_error
        self.closed = False
        self.visited = None

    def __call__(self):
        return self

    def __enter__(self):
        self.chromium = FakeChromium(self)
        return self

    def __exit__(self, *exc):
        return False


def _cookie(name, domain, expires=2_000_000_000):
    return {"name": name, "value": "v", "domain": domain, "path": "/", "expires": expires,
            "httpOnly": False, "secure": True, "sameSite": "Lax"}


def _dynamic(world):
    return DynamicCapture("ws://browser.test", timeout_ms=1000, settle_ms=10, playwright_factory=world)


class TestDynamicCapture:
    def test_records_requests_cookies_and_html(self):
        world = FakeWorld(
            urls=[
                "https://example.com/",
                "https://cdn.example.com/app.js",
                "https://www.google-analytics.com/g/collect",
                "https://match.adsrvr.org/track",
                "https://match.adsrvr.org/track?again=1",
                "data:image/png;base64,AAAA",
            ],
            cookies=[_cookie("_ga", ".example.com"), _cookie("TDID", ".adsrvr.org")],
            html="<html>page</html>",
        )
        result = _dynamic(world).capture("example.com")
        assert result.scan_method == "dynamic"
        assert result.measured
        assert world.visited == ("https://example.com", "networkidle", 1000)
        assert world.settled == 10
        assert world.closed
        assert len(result.requests) == 5
        assert result.third_party_domains == ["www.google-analytics.com", "match.adsrvr.org"]
        assert [r.vendor for r in result.ad_tech_requests] == ["google_analytics", "ttd", "ttd"]
        assert result.html == "<html>page</html>"
        assert result.cookie_analysis.total == 2
        assert result.cookie_analysis.third_party == 1
        assert result.note is None

    def test_payload_caps(self):
        long_url = "https://tracker.test/" + "x" * 500
        world = FakeWorld(
            urls=[long_url],
            cookies=[_cookie(f"c{i}", ".tracker.test") for i in range(MAX_COOKIES + 10)],
            html="a" * (MAX_HTML_CHARS + 100),
        )
        result = _dynamic(world).capture("example.com")
        assert len(result.cookies) == MAX_COOKIES
        # statistics are computed before truncation
        assert result.cookie_analysis.total == MAX_COOKIES + 10
        assert len(result.html) == MAX_HTML_CHARS
        assert len(result.requests[0].url) == MAX_URL_CHARS

    def test_navigation_timeout_keeps_partial_capture(self):
        world = FakeWorld(urls=["https://www.google-analytics.com/g/collect"],
                          nav_error=PlaywrightTimeoutError("Timeout 1000ms exceeded"))
        result = _dynamic(world).capture("example.com")
        assert result.scan_method == "dynamic"
        assert len(result.ad_tech_requests) == 1
        assert world.closed

    def test_navigation_error_raises(self):
        world = FakeWorld(nav_error=PlaywrightError("net::ERR_NAME_NOT_RESOLVED"))
        with pytest.raises(CaptureFailedError):
            _dynamic(world).capture("example.com")
        assert world.closed

    def test_connect_timeout(self):
        world = FakeWorld(connect_error=PlaywrightTimeoutError("Timeout 1000ms exceeded"))
        with pytest.raises(CaptureTimeoutError):
            _dynamic(world).capture("example.com")

    def test_connect_error(self):
        world = FakeWorld(connect_error=PlaywrightError("WebSocket error: 401"))
        with pytest.raises(CaptureFailedError):
            _dynamic(world).capture("example.com")


class TestStaticCapture:
    def test_success(self):
        session = FakeSession(FakeResponse(200, text="<html>ok</html>"))
        result = StaticCapture(timeout=5, session=session).capture("example.com")
        assert result.scan_method == SCAN_METHOD_STATIC
        assert result.note == STATIC_FETCH_NOTE
        assert result.html == "<html>ok</html>"
        assert result.cookies == []
        assert session.calls[0]["url"] == "https://example.com"
        assert session.calls[0]["timeout"] == 5

    def test_http_error(self):
        session = FakeSession(FakeResponse(503))
        with pytest.raises(CaptureFailedError) as ei:
            StaticCapture(timeout=5, session=session).capture("example.com")
        assert ei.value.reason == "HTTP 503"

    def test_timeout(self):
        session = FakeSession(exc=requests.Timeout("read timed out"))
        with pytest.raises(CaptureTimeoutError):
            StaticCapture(timeout=5, session=session).capture("example.com")

    def test_connection_error(self):
        session = FakeSession(exc=requests.ConnectionError("Connection refused"))
        with pytest.raises(CaptureFailedError):
            StaticCapture(timeout=5, session=session).capture("example.com")


class _StubStatic:
    def __init__(self, exc=None):
        self.exc = exc
        self.calls = 0

    def capture(self, domain):
        self.calls += 1
        if self.exc is not None:
            raise self.exc
        return CaptureResult(domain=domain, scan_method=SCAN_METHOD_STATIC, html="", note=STATIC_FETCH_NOTE)


class _StubDynamic:
    def __init__(self, exc=None):
        self.exc = exc

    def capture(self, domain):
        if self.exc is not None:
            raise self.exc
        return CaptureResult(domain=domain, scan_method="dynamic")


class TestSiteCaptureAdapter:
    def test_static_only_without_browser(self):
        static = _StubStatic()
        adapter = SiteCaptureAdapter(static=static)
        assert not adapter.browser_configured
        result = adapter.capture("example.com")
        assert result.scan_method == SCAN_METHOD_STATIC
        assert result.note == STATIC_FETCH_NOTE

    def test_dynamic_used_when_it_succeeds(self):
        static = _StubStatic()
        adapter = SiteCaptureAdapter(dynamic=_StubDynamic(), static=static)
        assert adapter.browser_configured
        assert adapter.capture("example.com").scan_method == "dynamic"
        assert static.calls == 0

    def test_dynamic_failure_falls_back_and_counts(self):
        labels = {"error_type": "timeout"}
        before = REGISTRY.get_sample_value("pubscan_capture_fallbacks_total", labels) or 0.0
        adapter = SiteCaptureAdapter(dynamic=_StubDynamic(CaptureTimeoutError("example.com", 45)),
                                     static=_StubStatic())
        result = adapter.capture("example.com")
        assert result.scan_method == SCAN_METHOD_STATIC
        assert REGISTRY.get_sample_value("pubscan_capture_fallbacks_total", labels) == before + 1

    def test_static_failure_is_terminal(self):
        adapter = SiteCaptureAdapter(dynamic=_StubDynamic(RuntimeError("browser gone")),
                                     static=_StubStatic(CaptureFailedError("example.com", "HTTP 500")))
        with pytest.raises(CaptureFailedError):
            adapter.capture("example.com")

    def test_unexpected_static_error_wrapped(self):
        adapter = SiteCaptureAdapter(static=_StubStatic(ValueError("bad body")))
        with pytest.raises(CaptureFailedError) as ei:
            adapter.capture("example.com")
        assert "bad body" in ei.value.reason

    def test_from_env(self, monkeypatch):
        monkeypatch.delenv("PUBSCAN_BROWSER_WS", raising=False)
        assert SiteCaptureAdapter.from_env().dynamic is None
        monkeypatch.setenv("PUBSCAN_BROWSER_WS", "ws://browser.test?token=x")
        adapter = SiteCaptureAdapter.from_env()
        assert isinstance(adapter.dynamic, DynamicCapture)
        assert adapter.dynamic.ws_endpoint == "ws://browser.test?token=x"
