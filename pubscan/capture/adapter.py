"""Strategy selection for site capture: dynamic first, static fallback."""

from __future__ import annotations

import logging
import os
from typing import Optional

from .. import metrics
from ..exceptions import CaptureFailedError, classify_error
from ..vendors import VendorCatalog
from .models import CaptureResult
from .static import StaticCapture

_LOG = logging.getLogger('pubscan.capture')


class SiteCaptureAdapter:
    """Capture one domain.

    ``dynamic`` is only present when a headless browser endpoint is
    configured. Any dynamic failure falls back to ``static``; a static failure
    is terminal for that domain and raises :class:`CaptureFailedError`.
    """

    def __init__(self, dynamic=None, static: Optional[StaticCapture] = None):
        self.dynamic = dynamic
        self.static = static or StaticCapture()

    @classmethod
    def from_env(cls, catalog: Optional[VendorCatalog] = None) -> 'SiteCaptureAdapter':
        ws = (os.environ.get('PUBSCAN_BROWSER_WS') or '').strip()
        dynamic = None
        if ws:
            # imported lazily so static-only deployments never load the driver
            from .dynamic import DynamicCapture
            dynamic = DynamicCapture(ws, catalog=catalog)
            _LOG.info('dynamic capture enabled endpoint=%s', ws.split('?', 1)[0])
        else:
            _LOG.info('PUBSCAN_BROWSER_WS not set; every domain uses static fetch')
        return cls(dynamic=dynamic)

    @property
    def browser_configured(self) -> bool:
        return self.dynamic is not None

    def capture(self, domain: str) -> CaptureResult:
        if self.dynamic is not None:
            try:
                result = self.dynamic.capture(domain)
                metrics.record_capture(result.scan_method, result.duration)
                return result
            except Exception as e:
                err_type = classify_error(e)
                metrics.record_capture_fallback(err_type)
                _LOG.warning('dynamic capture failed domain=%s type=%s err=%s; falling back to static fetch',
                             domain, err_type, e)
        try:
            result = self.static.capture(domain)
        except CaptureFailedError:
            raise
        except Exception as e:
            raise CaptureFailedError(domain, str(e)) from e
        metrics.record_capture(result.scan_method, result.duration)
        return result
