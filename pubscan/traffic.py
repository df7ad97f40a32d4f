"""Traffic estimate from the Tranco top-sites ranking.

Monthly pageviews follow a power law fitted to published traffic studies:
``annual = C * rank ** E``. Lookups are best-effort; any failure yields an
empty estimate and never propagates.
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

import requests

from . import metrics
from .utils.domain import canonicalize_domain
from .utils.rounding import round_half_up

_LOG = logging.getLogger('pubscan.traffic')

DEFAULT_TRANCO_URL = 'https://tranco-list.eu/api/ranks/domain/{domain}'

PAGEVIEW_COEFFICIENT = 7.73e12
PAGEVIEW_EXPONENT = -1.06
IMPRESSIONS_PER_PAGEVIEW = 4

HIGH_CONFIDENCE_MAX_RANK = 100_000
MEDIUM_CONFIDENCE_MAX_RANK = 1_000_000
TREND_THRESHOLD = 1000

TREND_GROWING = 'growing'
TREND_STABLE = 'stable'
TREND_DECLINING = 'declining'


@dataclass(frozen=True)
class RankSample:
    date: str
    rank: int


@dataclass
class TrafficEstimate:
    rank: Optional[int] = None
    monthly_pageviews: Optional[int] = None
    monthly_impressions: Optional[int] = None
    confidence: Optional[str] = None
    rank_history: Optional[List[RankSample]] = None
    rank_trend: Optional[str] = None
    rank_change_30d: Optional[int] = None

    @property
    def empty(self) -> bool:
        return self.rank is None

    def to_row(self) -> Dict[str, Any]:
        """Column names used on stored result rows."""
        return {
            'tranco_rank': self.rank,
            'estimated_monthly_pageviews': self.monthly_pageviews,
            'estimated_monthly_impressions': self.monthly_impressions,
            'traffic_confidence': self.confidence,
            'tranco_rank_history': [asdict(s) for s in self.rank_history] if self.rank_history is not None else None,
            'rank_trend': self.rank_trend,
            'rank_change_30d': self.rank_change_30d,
        }


def monthly_pageviews(rank: int) -> int:
    annual = round_half_up(PAGEVIEW_COEFFICIENT * rank ** PAGEVIEW_EXPONENT)
    return round_half_up(annual / 12)


def confidence_for(rank: int) -> str:
    if rank <= HIGH_CONFIDENCE_MAX_RANK:
        return 'high'
    if rank <= MEDIUM_CONFIDENCE_MAX_RANK:
        return 'medium'
    return 'low'


def rank_trend(history: List[RankSample], threshold: int = TREND_THRESHOLD):
    """Return ``(trend, change)``; ``history`` is newest first.

    A positive change means the rank number dropped, i.e. the site grew.
    """
    if len(history) < 2:
        return TREND_STABLE, 0
    change = history[-1].rank - history[0].rank
    if change > threshold:
        return TREND_GROWING, change
    if change < -threshold:
        return TREND_DECLINING, change
    return TREND_STABLE, change


def estimate_from_ranks(history: List[RankSample]) -> TrafficEstimate:
    if not history:
        return TrafficEstimate()
    rank = history[0].rank
    pageviews = monthly_pageviews(rank)
    trend, change = rank_trend(history)
    return TrafficEstimate(
        rank=rank,
        monthly_pageviews=pageviews,
        monthly_impressions=pageviews * IMPRESSIONS_PER_PAGEVIEW,
        confidence=confidence_for(rank),
        rank_history=list(history),
        rank_trend=trend,
        rank_change_30d=change,
    )


class TrafficEstimator:
    """Rank lookups for any number of worker threads.

    Without an injected ``session`` every lookup is a standalone
    ``requests.get``; a shared ``requests.Session`` is not thread-safe.
    """

    def __init__(self, session: Optional[requests.Session] = None, api_key: Optional[str] = None,
                 url_template: Optional[str] = None, timeout: float = 10.0):
        self.session = session
        self.api_key = api_key if api_key is not None else os.environ.get('PUBSCAN_TRANCO_API_KEY')
        self.url_template = url_template or os.environ.get('PUBSCAN_TRANCO_URL') or DEFAULT_TRANCO_URL
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        headers = {'Accept': 'application/json'}
        if self.api_key:
            headers['Authorization'] = f'Bearer {self.api_key}'
        return headers

    def estimate(self, domain: str) -> TrafficEstimate:
        clean = canonicalize_domain(domain)
        get = self.session.get if self.session is not None else requests.get
        try:
            resp = get(self.url_template.format(domain=clean), headers=self._headers(), timeout=self.timeout)
            if not resp.ok:
                _LOG.info('rank lookup domain=%s status=%s', clean, resp.status_code)
                metrics.record_rank_lookup('not_found' if resp.status_code == 404 else 'error')
                return TrafficEstimate()
            payload = resp.json() or {}
            history = [RankSample(date=str(r.get('date')), rank=int(r['rank']))
                       for r in (payload.get('ranks') or [])]
            # ranks start at 1; anything else is an unranked answer
            if any(s.rank < 1 for s in history):
                _LOG.info('rank lookup domain=%s non-positive rank in %s', clean, [s.rank for s in history])
                history = []
            if not history:
                metrics.record_rank_lookup('not_found')
                return TrafficEstimate()
            est = estimate_from_ranks(history)
        except (requests.RequestException, ValueError, KeyError, TypeError, AttributeError,
                ArithmeticError) as e:
            _LOG.warning('rank lookup failed domain=%s err=%s', clean, e)
            metrics.record_rank_lookup('error')
            return TrafficEstimate()
        metrics.record_rank_lookup('ranked')
        _LOG.info('rank lookup domain=%s rank=%s impressions=%s trend=%s',
                  clean, est.rank, est.monthly_impressions, est.rank_trend)
        return est
