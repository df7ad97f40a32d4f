"""Addressability, identity and privacy scoring.

Pure functions of analyzer output and a :class:`~pubscan.policy.ScoringPolicy`.
No I/O and no hidden state: identical input always yields identical scores.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from .analysis.base import Analysis
from .policy import DEFAULT_POLICY, Grades, Ladder, ScoringPolicy

# Values stored on failed rows so they never skew portfolio aggregates
NEUTRAL_ID_BLOAT = 'low'
NEUTRAL_PRIVACY_RISK = 'low'
NEUTRAL_POSITIONING = 'middle-pack'


@dataclass(frozen=True)
class Scores:
    addressability_gap_pct: Optional[float]
    estimated_safari_loss_pct: Optional[float]
    id_bloat_severity: str
    privacy_risk_level: str
    competitive_positioning: str
    scoring_policy_version: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def neutral_scores(policy: ScoringPolicy = DEFAULT_POLICY) -> Scores:
    return Scores(None, None, NEUTRAL_ID_BLOAT, NEUTRAL_PRIVACY_RISK, NEUTRAL_POSITIONING, policy.version)


def _ladder(value: float, ladder: Ladder) -> int:
    for threshold, points in ladder:
        if value > threshold:
            return points
    return 0


def _grade(points: int, grades: Grades, default: str) -> str:
    for minimum, label in grades:
        if points >= minimum:
            return label
    return default


def _blocked_share_pct(blocked: int, total: int, policy: ScoringPolicy) -> float:
    if total <= 0:
        return policy.safari_market_share * 100
    return blocked / total * policy.safari_market_share * 100


def addressability_gap(blocked: int, total: int, policy: ScoringPolicy = DEFAULT_POLICY) -> float:
    pct = _blocked_share_pct(blocked, total, policy)
    return max(policy.gap_floor, min(policy.gap_ceiling, pct))


def safari_loss(blocked: int, total: int, policy: ScoringPolicy = DEFAULT_POLICY) -> float:
    pct = _blocked_share_pct(blocked, total, policy)
    return max(0.0, min(policy.safari_loss_ceiling, pct))


def id_bloat_severity(*, liveramp: bool, id5: bool, criteo: bool, ttd: bool,
                      third_party_cookies: int, policy: ScoringPolicy = DEFAULT_POLICY) -> str:
    points = policy.id_vendor_points * sum((liveramp, id5, criteo, ttd))
    points += _ladder(third_party_cookies, policy.id_bloat_cookie_ladder)
    return _grade(points, policy.id_bloat_grades, 'low')


def privacy_risk_level(*, pre_consent: bool, tcf_compliant: bool, third_party_cookies: int,
                       max_duration_days: float, policy: ScoringPolicy = DEFAULT_POLICY) -> str:
    points = 0
    if pre_consent:
        points += policy.pre_consent_points
    if not tcf_compliant:
        points += policy.missing_tcf_points
    if third_party_cookies > policy.privacy_cookie_threshold:
        points += policy.privacy_cookie_points
    points += _ladder(max_duration_days, policy.privacy_duration_ladder)
    return _grade(points, policy.privacy_grades, 'low')


def competitive_positioning(*, conversion_api: bool, ppid: bool, header_bidding: bool,
                            gap_pct: float, policy: ScoringPolicy = DEFAULT_POLICY) -> str:
    points = 0
    if conversion_api:
        points += policy.conversion_api_points
    if ppid:
        points += policy.ppid_points
    if header_bidding:
        points += policy.header_bidding_points
    if gap_pct < policy.low_gap_threshold:
        points += policy.low_gap_points
    elif gap_pct > policy.high_gap_threshold:
        points -= policy.high_gap_penalty
    return _grade(points, policy.positioning_grades, 'commoditized')


def score(analysis: Analysis, policy: ScoringPolicy = DEFAULT_POLICY) -> Scores:
    c = analysis.cookies
    gap = addressability_gap(c.safari_blocked, c.total, policy)
    return Scores(
        addressability_gap_pct=gap,
        estimated_safari_loss_pct=safari_loss(c.safari_blocked, c.total, policy),
        id_bloat_severity=id_bloat_severity(
            liveramp=analysis.has_liveramp,
            id5=analysis.has_id5,
            criteo=analysis.has_criteo,
            ttd=analysis.has_ttd,
            third_party_cookies=c.third_party,
            policy=policy,
        ),
        privacy_risk_level=privacy_risk_level(
            pre_consent=analysis.loads_pre_consent,
            tcf_compliant=analysis.tcf_compliant,
            third_party_cookies=c.third_party,
            max_duration_days=c.max_duration_days,
            policy=policy,
        ),
        competitive_positioning=competitive_positioning(
            conversion_api=analysis.has_conversion_api,
            ppid=analysis.has_ppid,
            header_bidding=analysis.has_header_bidding,
            gap_pct=gap,
            policy=policy,
        ),
        scoring_policy_version=policy.version,
    )
