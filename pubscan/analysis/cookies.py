"""Cookie classification and Safari ITP estimate."""

from __future__ import annotations

import time
from typing import Iterable, Optional

from ..capture.models import CapturedCookie, CookieAnalysis
from ..utils.domain import is_first_party_cookie
from ..utils.rounding import round_half_up

ITP_CAP_DAYS = 7
_DAY = 86400


def is_session(cookie: CapturedCookie) -> bool:
    return cookie.expires in (-1, 0)


def analyze_cookies(cookies: Iterable[CapturedCookie], target_domain: str,
                    now: Optional[float] = None, itp_cap_days: int = ITP_CAP_DAYS) -> CookieAnalysis:
    """Count cookies by party, lifetime and Safari treatment.

    Every third-party cookie counts as blocked. First-party cookies whose
    remaining lifetime exceeds ``itp_cap_days`` count as capped.
    """
    now = time.time() if now is None else now
    cookies = list(cookies)
    first = [c for c in cookies if is_first_party_cookie(c.domain, target_domain)]
    third_count = len(cookies) - len(first)
    capped = sum(1 for c in first if c.expires > 0 and (c.expires - now) > itp_cap_days * _DAY)
    max_days = 0.0
    for c in cookies:
        if c.expires > 0:
            max_days = max(max_days, (c.expires - now) / _DAY)
    return CookieAnalysis(
        total=len(cookies),
        first_party=len(first),
        third_party=third_count,
        safari_blocked=third_count,
        safari_capped=capped,
        max_duration_days=round_half_up(max_days),
        session=sum(1 for c in cookies if is_session(c)),
        persistent=sum(1 for c in cookies if c.expires > now),
    )
