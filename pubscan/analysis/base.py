"""Common analyzer output."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..capture.models import CaptureResult, CookieAnalysis
from ..vendors import VendorCatalog

# Flags mirrored into ``vendors_raw`` and compared by change detection
VENDOR_FLAGS = (
    'google_analytics', 'gtm', 'gcm', 'meta_pixel', 'meta_capi',
    'ttd', 'liveramp', 'id5', 'criteo', 'prebid', 'ppid',
)


@dataclass
class Analysis:
    scan_method: str
    cookies: CookieAnalysis = field(default_factory=CookieAnalysis)
    has_google_analytics: bool = False
    has_gtm: bool = False
    has_gcm: bool = False
    has_meta_pixel: bool = False
    has_meta_capi: bool = False
    has_ttd: bool = False
    has_liveramp: bool = False
    has_id5: bool = False
    has_criteo: bool = False
    has_ppid: bool = False
    has_prebid: bool = False
    detected_ssps: List[str] = field(default_factory=list)
    cmp_vendor: Optional[str] = None
    tcf_compliant: bool = False
    loads_pre_consent: bool = False
    cookies_raw: List[Dict[str, Any]] = field(default_factory=list)
    total_requests: int = 0
    third_party_domains: int = 0
    ad_tech_requests: int = 0
    note: Optional[str] = None
    # True when cookie figures were estimated from script tags
    heuristic: bool = False

    @property
    def has_header_bidding(self) -> bool:
        return self.has_prebid or bool(self.detected_ssps)

    @property
    def has_conversion_api(self) -> bool:
        return self.has_meta_capi

    def vendors_raw(self) -> Dict[str, bool]:
        return {name: bool(getattr(self, f'has_{name}')) for name in VENDOR_FLAGS}

    def network_requests_summary(self) -> Dict[str, int]:
        return {
            'total_requests': self.total_requests,
            'third_party_domains': self.third_party_domains,
            'ad_tech_requests': self.ad_tech_requests,
            'total_vendors': len(self.detected_ssps) + int(self.has_google_analytics) + int(self.has_meta_pixel),
        }


class Analyzer:
    """Turns one :class:`CaptureResult` into an :class:`Analysis`."""

    name = 'base'

    def analyze(self, capture: CaptureResult, catalog: VendorCatalog) -> Analysis:
        raise NotImplementedError
