from .adapter import SiteCaptureAdapter
from .models import (
    SCAN_METHOD_DYNAMIC,
    SCAN_METHOD_NONE,
    SCAN_METHOD_STATIC,
    STATIC_FETCH_NOTE,
    AdTechRequest,
    CapturedCookie,
    CaptureResult,
    CookieAnalysis,
    NetworkRequest,
)
from .static import StaticCapture

__all__ = [
    'SCAN_METHOD_DYNAMIC',
    'SCAN_METHOD_NONE',
    'SCAN_METHOD_STATIC',
    'STATIC_FETCH_NOTE',
    'AdTechRequest',
    'CapturedCookie',
    'CaptureResult',
    'CookieAnalysis',
    'NetworkRequest',
    'SiteCaptureAdapter',
    'StaticCapture',
]
