"""Data captured from a single publisher page load."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

SCAN_METHOD_DYNAMIC = 'dynamic'
SCAN_METHOD_STATIC = 'static_fetch'
SCAN_METHOD_NONE = 'none'

STATIC_FETCH_NOTE = 'Static fetch used - cookie data may be incomplete'

# Payload bounds for one dynamic capture
MAX_HTML_CHARS = 50000
MAX_COOKIES = 50
MAX_REQUESTS = 200
MAX_THIRD_PARTY_DOMAINS = 100
MAX_AD_TECH_REQUESTS = 100
MAX_URL_CHARS = 200


@dataclass
class CapturedCookie:
    name: str
    domain: str
    path: str = '/'
    # Seconds since epoch; -1 or 0 for session cookies
    expires: float = -1
    size: int = 0
    http_only: bool = False
    secure: bool = False
    same_site: Optional[str] = None

    @classmethod
    def from_browser(cls, raw: Dict[str, Any]) -> 'CapturedCookie':
        """Build from a Playwright ``context.cookies()`` entry."""
        name = raw.get('name') or ''
        value = raw.get('value') or ''
        return cls(
            name=name,
            domain=raw.get('domain') or '',
            path=raw.get('path') or '/',
            expires=float(raw.get('expires') if raw.get('expires') is not None else -1),
            size=len(name) + len(value),
            http_only=bool(raw.get('httpOnly')),
            secure=bool(raw.get('secure')),
            same_site=raw.get('sameSite'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'domain': self.domain,
            'path': self.path,
            'expires': self.expires,
            'size': self.size,
            'httpOnly': self.http_only,
            'secure': self.secure,
            'sameSite': self.same_site,
        }


@dataclass
class NetworkRequest:
    url: str
    resource_type: str
    domain: str
    is_third_party: bool


@dataclass
class AdTechRequest:
    vendor: str
    url: str
    domain: str


@dataclass
class CookieAnalysis:
    """Counts over every cookie the browser held, before the payload cap."""
    total: int = 0
    first_party: int = 0
    third_party: int = 0
    safari_blocked: int = 0
    safari_capped: int = 0
    max_duration_days: int = 0
    session: int = 0
    persistent: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class CaptureResult:
    domain: str
    scan_method: str
    html: str = ''
    cookies: List[CapturedCookie] = field(default_factory=list)
    requests: List[NetworkRequest] = field(default_factory=list)
    third_party_domains: List[str] = field(default_factory=list)
    ad_tech_requests: List[AdTechRequest] = field(default_factory=list)
    cookie_analysis: Optional[CookieAnalysis] = None
    note: Optional[str] = None
    duration: float = 0.0

    @property
    def measured(self) -> bool:
        return self.scan_method == SCAN_METHOD_DYNAMIC
