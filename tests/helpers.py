"""Fakes shared by the test modules (no network, no browser)."""

from pubscan.capture.models import SCAN_METHOD_STATIC, STATIC_FETCH_NOTE, CaptureResult
from pubscan.exceptions import CaptureFailedError
from pubscan.traffic import TrafficEstimate

PIXEL_PAGE = (
    '<html><head>'
    '<script async src="https://www.googletagmanager.com/gtag/js?id=G-ABCDEFGHIJ"></script>'
    '<script>gtag("config", "G-ABCDEFGHIJ");</script>'
    '<script src="https://connect.facebook.net/en_US/fbevents.js"></script>'
    '</head><body>news</body></html>'
)
PLAIN_PAGE = '<html><body>hello</body></html>'


class FakeCapture:
    """Static-only capture returning canned HTML per domain."""

    browser_configured = False

    def __init__(self, pages=None, fail=()):
        self.pages = dict(pages or {})
        self.fail = set(fail)
        self.calls = []

    def capture(self, domain):
        self.calls.append(domain)
        if domain in self.fail:
            raise CaptureFailedError(domain, "HTTP 503")
        return CaptureResult(
            domain=domain,
            scan_method=SCAN_METHOD_STATIC,
            html=self.pages.get(domain, PLAIN_PAGE),
            note=STATIC_FETCH_NOTE,
        )


class FakeTraffic:
    def __init__(self, estimates=None):
        self.estimates = dict(estimates or {})
        self.calls = []

    def estimate(self, domain):
        self.calls.append(domain)
        return self.estimates.get(domain, TrafficEstimate())


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self.ok = 200 <= status_code < 400
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no JSON body")
        return self._payload


class FakeSession:
    """Records calls; returns a fixed response or raises a fixed exception."""

    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.calls = []

    def get(self, url, headers=None, timeout=None):
        self.calls.append({"url": url, "headers": headers or {}, "timeout": timeout})
        if self.exc is not None:
            raise self.exc
        return self.response
