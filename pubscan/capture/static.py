"""Plain HTTP fetch of the landing page (no script execution)."""

from __future__ import annotations

import logging
import os
import time
from typing import Optional

import requests

from ..exceptions import CaptureFailedError, CaptureTimeoutError
from .models import SCAN_METHOD_STATIC, STATIC_FETCH_NOTE, CaptureResult

_LOG = logging.getLogger('pubscan.capture')

STATIC_HEADERS = {
    'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36',
    'Accept': 'text/html,application/xhtml+xml',
}


class StaticCapture:
    def __init__(self, timeout: Optional[float] = None, session: Optional[requests.Session] = None):
        if timeout is None:
            try:
                timeout = float(os.environ.get('PUBSCAN_STATIC_TIMEOUT_S', '30'))
            except ValueError:
                timeout = 30.0
        self.timeout = timeout
        self._session = session

    def _get(self, url: str) -> requests.Response:
        if self._session is not None:
            return self._session.get(url, headers=STATIC_HEADERS, timeout=self.timeout)
        return requests.get(url, headers=STATIC_HEADERS, timeout=self.timeout)

    def capture(self, domain: str) -> CaptureResult:
        started = time.time()
        url = f'https://{domain}'
        try:
            resp = self._get(url)
        except requests.Timeout as e:
            raise CaptureTimeoutError(domain, self.timeout) from e
        except requests.RequestException as e:
            raise CaptureFailedError(domain, str(e)) from e
        if not resp.ok:
            raise CaptureFailedError(domain, f'HTTP {resp.status_code}')
        html = resp.text or ''
        duration = time.time() - started
        _LOG.debug('static capture domain=%s status=%s bytes=%d duration=%.2fs',
                   domain, resp.status_code, len(html), duration)
        return CaptureResult(
            domain=domain,
            scan_method=SCAN_METHOD_STATIC,
            html=html,
            note=STATIC_FETCH_NOTE,
            duration=duration,
        )
