"""HTML signal detection shared by both analyzers.

Consent management, IAB TCF/GPP presence and the tag-manager / conversion
API / publisher-ID markers that are only visible in page source.
"""

from __future__ import annotations

import re
from typing import Optional

from ..vendors import VendorCatalog

GTM_RE = re.compile(r'googletagmanager\.com|GTM-[A-Z0-9]{6,}', re.I)
GCM_RE = re.compile(r'gtag\([\'"]consent[\'"]|consent.*mode', re.I)
META_CAPI_RE = re.compile(r'graph\.facebook\.com.*events|facebook.*conversions|fbevents', re.I)
PPID_RE = re.compile(r'ppid|publisher.*id|first.*party.*id|__fpid', re.I)
TCF_RE = re.compile(r'__tcfapi|__cmp|__gpp', re.I)


def detect_cmp(html: str, catalog: VendorCatalog) -> Optional[str]:
    """First consent-management platform whose loader appears in the page."""
    h = (html or '').lower()
    for name, needles in catalog.cmp:
        if any(n in h for n in needles):
            return name
    return None


def detect_tcf(html: str) -> bool:
    return bool(TCF_RE.search(html or ''))


def loads_pre_consent(cmp_vendor: Optional[str], *, analytics: bool, pixel: bool,
                      criteo: bool, prebid: bool) -> bool:
    """Tracking fires with no consent manager present to gate it."""
    return cmp_vendor is None and (analytics or pixel or criteo or prebid)
