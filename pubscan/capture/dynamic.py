"""Headless-browser capture over the Chrome DevTools Protocol.

The browser itself runs elsewhere (a Browserless-style service); this module
only connects to its CDP websocket, loads ``https://{domain}``, and records
outgoing requests, cookies and the rendered HTML.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Callable, List, Optional, Set
from urllib.parse import urlparse

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from ..analysis.cookies import analyze_cookies
from ..exceptions import CaptureFailedError, CaptureTimeoutError
from ..utils.domain import is_third_party_host
from ..vendors import VendorCatalog, default_catalog
from .models import (
    MAX_AD_TECH_REQUESTS,
    MAX_COOKIES,
    MAX_HTML_CHARS,
    MAX_REQUESTS,
    MAX_THIRD_PARTY_DOMAINS,
    MAX_URL_CHARS,
    SCAN_METHOD_DYNAMIC,
    AdTechRequest,
    CapturedCookie,
    CaptureResult,
    NetworkRequest,
)

_LOG = logging.getLogger('pubscan.capture')

BROWSER_USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/124.0 Safari/537.36'
)


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, str(default)))
    except ValueError:
        return default


class _RequestLog:
    """Collects outgoing requests for one page load."""

    def __init__(self, target_domain: str, catalog: VendorCatalog):
        self.target = target_domain
        self.catalog = catalog
        self.requests: List[NetworkRequest] = []
        self.third_party: List[str] = []
        self._third_party_seen: Set[str] = set()
        self.ad_tech: List[AdTechRequest] = []

    def on_request(self, request) -> None:
        url = request.url or ''
        if not url.startswith('http'):
            return
        host = (urlparse(url).hostname or '').lower()
        if not host:
            return
        third = is_third_party_host(host, self.target)
        self.requests.append(NetworkRequest(
            url=url[:MAX_URL_CHARS],
            resource_type=request.resource_type,
            domain=host,
            is_third_party=third,
        ))
        if third and host not in self._third_party_seen:
            self._third_party_seen.add(host)
            self.third_party.append(host)
        tag = self.catalog.tag_request(url, host)
        if tag:
            self.ad_tech.append(AdTechRequest(vendor=tag, url=url[:MAX_URL_CHARS], domain=host))


class DynamicCapture:
    def __init__(self, ws_endpoint: str, catalog: Optional[VendorCatalog] = None,
                 timeout_ms: Optional[int] = None, settle_ms: Optional[int] = None,
                 playwright_factory: Callable = sync_playwright):
        self.ws_endpoint = ws_endpoint
        self.catalog = catalog or default_catalog()
        self.timeout_ms = timeout_ms if timeout_ms is not None else _env_int('PUBSCAN_DYNAMIC_TIMEOUT_MS', 45000)
        self.settle_ms = settle_ms if settle_ms is not None else _env_int('PUBSCAN_SETTLE_MS', 3000)
        self._playwright_factory = playwright_factory

    def capture(self, domain: str) -> CaptureResult:
        started = time.time()
        url = f'https://{domain}'
        log = _RequestLog(domain, self.catalog)
        with self._playwright_factory() as pw:
            try:
                browser = pw.chromium.connect_over_cdp(self.ws_endpoint, timeout=self.timeout_ms)
            except PlaywrightTimeoutError as e:
                raise CaptureTimeoutError(domain, self.timeout_ms / 1000) from e
            except PlaywrightError as e:
                raise CaptureFailedError(domain, f'browser connect failed: {e}') from e
            try:
                context = browser.new_context(user_agent=BROWSER_USER_AGENT)
                page = context.new_page()
                page.on('request', log.on_request)
                try:
                    page.goto(url, wait_until='networkidle', timeout=self.timeout_ms)
                except PlaywrightTimeoutError:
                    # keep whatever loaded before the deadline
                    _LOG.info('navigation timeout domain=%s timeout_ms=%s continuing', domain, self.timeout_ms)
                except PlaywrightError as e:
                    raise CaptureFailedError(domain, f'navigation failed: {e}') from e
                page.wait_for_timeout(self.settle_ms)
                raw_cookies = context.cookies()
                html = page.content() or ''
            finally:
                browser.close()

        cookies = [CapturedCookie.from_browser(c) for c in raw_cookies]
        analysis = analyze_cookies(cookies, domain)
        duration = time.time() - started
        _LOG.debug('dynamic capture domain=%s requests=%d cookies=%d ad_tech=%d duration=%.2fs',
                   domain, len(log.requests), len(cookies), len(log.ad_tech), duration)
        return CaptureResult(
            domain=domain,
            scan_method=SCAN_METHOD_DYNAMIC,
            html=html[:MAX_HTML_CHARS],
            cookies=cookies[:MAX_COOKIES],
            requests=log.requests[:MAX_REQUESTS],
            third_party_domains=log.third_party[:MAX_THIRD_PARTY_DOMAINS],
            ad_tech_requests=log.ad_tech[:MAX_AD_TECH_REQUESTS],
            cookie_analysis=analysis,
            duration=duration,
        )
