"""Heuristic analysis of a static fetch.

Without script execution no cookies are observable, so counts are estimated
from the vendor scripts referenced in the HTML. Results are labelled as such
and are never mixed with measured figures.
"""

from __future__ import annotations

import re
from typing import List, Optional, Tuple

from ..capture.models import STATIC_FETCH_NOTE, CaptureResult, CookieAnalysis
from ..utils.rounding import round_half_up
from ..vendors import VendorCatalog, default_catalog
from .base import Analysis, Analyzer
from .signals import GTM_RE, detect_cmp, detect_tcf, loads_pre_consent

GA_RE = re.compile(r'google-analytics\.com|gtag\(|G-[A-Z0-9]{10}', re.I)
META_PIXEL_RE = re.compile(r'connect\.facebook\.net|fbq\(|fbevents\.js', re.I)
TTD_RE = re.compile(r'thetradedesk\.com|adsrvr\.org', re.I)
LIVERAMP_RE = re.compile(r'rlcdn\.com|liveramp', re.I)
ID5_RE = re.compile(r'id5-sync\.com', re.I)
CRITEO_RE = re.compile(r'criteo\.net|criteo\.com', re.I)
PREBID_RE = re.compile(r'prebid\.js|pbjs\.que', re.I)
# Stricter than the measured path: page source alone is a weaker signal
GCM_STATIC_RE = re.compile(r'gtag\([\'"]consent[\'"]')
META_CAPI_STATIC_RE = re.compile(r'graph\.facebook\.com.*events', re.I)
PPID_STATIC_RE = re.compile(r'ppid|publisher.*id', re.I)

# Typical cookies dropped per vendor script
COOKIE_ESTIMATES: List[Tuple[str, int]] = [
    ('has_google_analytics', 3),
    ('has_gtm', 2),
    ('has_meta_pixel', 4),
    ('has_criteo', 5),
    ('has_liveramp', 3),
    ('has_ttd', 3),
]

THIRD_PARTY_SHARE = 0.7
FIRST_PARTY_SHARE = 0.3
SESSION_SHARE = 0.2
PERSISTENT_SHARE = 0.8
ASSUMED_MAX_DURATION_DAYS = 365


def estimate_cookies(total: int) -> CookieAnalysis:
    third = round_half_up(total * THIRD_PARTY_SHARE)
    return CookieAnalysis(
        total=total,
        first_party=round_half_up(total * FIRST_PARTY_SHARE),
        third_party=third,
        safari_blocked=third,
        safari_capped=0,
        max_duration_days=ASSUMED_MAX_DURATION_DAYS if total else 0,
        session=round_half_up(total * SESSION_SHARE),
        persistent=round_half_up(total * PERSISTENT_SHARE),
    )


class HtmlHeuristicAnalyzer(Analyzer):
    name = 'html_heuristic'

    def analyze(self, capture: CaptureResult, catalog: Optional[VendorCatalog] = None) -> Analysis:
        catalog = catalog or default_catalog()
        html = capture.html or ''
        a = Analysis(
            scan_method=capture.scan_method,
            has_google_analytics=bool(GA_RE.search(html)),
            has_gtm=bool(GTM_RE.search(html)),
            has_gcm=bool(GCM_STATIC_RE.search(html)),
            has_meta_pixel=bool(META_PIXEL_RE.search(html)),
            has_meta_capi=bool(META_CAPI_STATIC_RE.search(html)),
            has_ttd=bool(TTD_RE.search(html)),
            has_liveramp=bool(LIVERAMP_RE.search(html)),
            has_id5=bool(ID5_RE.search(html)),
            has_criteo=bool(CRITEO_RE.search(html)),
            has_prebid=bool(PREBID_RE.search(html)),
            has_ppid=bool(PPID_STATIC_RE.search(html)),
            note=capture.note or STATIC_FETCH_NOTE,
            heuristic=True,
        )
        estimated = sum(points for flag, points in COOKIE_ESTIMATES if getattr(a, flag))
        a.cookies = estimate_cookies(estimated)
        a.cmp_vendor = detect_cmp(html, catalog)
        a.tcf_compliant = detect_tcf(html)
        a.loads_pre_consent = loads_pre_consent(
            a.cmp_vendor,
            analytics=a.has_google_analytics,
            pixel=a.has_meta_pixel,
            criteo=a.has_criteo,
            prebid=a.has_prebid,
        )
        return a
