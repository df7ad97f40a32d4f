"""Measured analysis of a dynamic capture (real cookies and requests)."""

from __future__ import annotations

from typing import Optional

from ..capture.models import CaptureResult
from ..vendors import VendorCatalog, default_catalog
from .base import Analysis, Analyzer
from .cookies import analyze_cookies
from .signals import GCM_RE, GTM_RE, META_CAPI_RE, PPID_RE, detect_cmp, detect_tcf, loads_pre_consent


class NetworkAnalyzer(Analyzer):
    name = 'network'

    def analyze(self, capture: CaptureResult, catalog: Optional[VendorCatalog] = None) -> Analysis:
        catalog = catalog or default_catalog()
        html = capture.html or ''
        cookie_stats = capture.cookie_analysis or analyze_cookies(capture.cookies, capture.domain)
        tags = {r.vendor for r in capture.ad_tech_requests}

        a = Analysis(
            scan_method=capture.scan_method,
            cookies=cookie_stats,
            has_google_analytics='google_analytics' in tags or 'gam' in tags,
            has_meta_pixel='meta_pixel' in tags,
            has_ttd='ttd' in tags,
            has_liveramp='liveramp' in tags,
            has_id5='id5' in tags,
            has_criteo='criteo' in tags,
            has_prebid='prebid' in tags,
            has_gtm=bool(GTM_RE.search(html)),
            has_gcm=bool(GCM_RE.search(html)),
            has_meta_capi=bool(META_CAPI_RE.search(html)),
            has_ppid=bool(PPID_RE.search(html)),
            cookies_raw=[c.to_dict() for c in capture.cookies],
            total_requests=len(capture.requests),
            third_party_domains=len(capture.third_party_domains),
            ad_tech_requests=len(capture.ad_tech_requests),
            note=capture.note,
        )

        cookie_names = [c.name for c in capture.cookies]
        for pattern in catalog.match(cookie_names, capture.third_party_domains):
            if pattern.name not in a.detected_ssps:
                a.detected_ssps.append(pattern.name)
            if pattern.flag:
                setattr(a, f'has_{pattern.flag}', True)

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
