"""Scoring policy values.

All breakpoints used by :mod:`pubscan.scoring` live here as one frozen object
so the policy can be versioned and overridden from the environment without a
code change. Constructed once at process start and shared read-only.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from typing import Tuple

_LOG = logging.getLogger('pubscan.policy')

POLICY_VERSION = '2026.1'

# (threshold, points) pairs are evaluated top-down, first match wins.
Ladder = Tuple[Tuple[float, int], ...]
# (minimum score, label) pairs, evaluated top-down, first match wins.
Grades = Tuple[Tuple[int, str], ...]


@dataclass(frozen=True)
class ScoringPolicy:
    version: str = POLICY_VERSION
    safari_market_share: float = 0.35
    gap_floor: float = 10.0
    gap_ceiling: float = 80.0
    # First-party cookies living longer than this are capped by ITP
    itp_cap_days: int = 7

    # ID bloat
    id_vendor_points: int = 2
    id_bloat_cookie_ladder: Ladder = ((30, 3), (15, 2), (5, 1))
    id_bloat_grades: Grades = ((8, 'critical'), (5, 'high'), (2, 'medium'))

    # Privacy risk
    pre_consent_points: int = 3
    missing_tcf_points: int = 2
    privacy_cookie_threshold: int = 20
    privacy_cookie_points: int = 2
    privacy_duration_ladder: Ladder = ((365, 2), (180, 1))
    privacy_grades: Grades = ((6, 'critical'), (4, 'high'), (2, 'moderate'))

    # Competitive positioning
    conversion_api_points: int = 3
    ppid_points: int = 3
    header_bidding_points: int = 2
    low_gap_threshold: float = 30.0
    low_gap_points: int = 2
    high_gap_threshold: float = 50.0
    high_gap_penalty: int = 2
    positioning_grades: Grades = ((7, 'walled-garden-parity'), (4, 'middle-pack'), (1, 'at-risk'))

    @property
    def safari_loss_ceiling(self) -> float:
        return self.safari_market_share * 100


DEFAULT_POLICY = ScoringPolicy()


def load_policy() -> ScoringPolicy:
    """Build the policy, honouring PUBSCAN_SAFARI_MARKET_SHARE when valid."""
    raw = os.environ.get('PUBSCAN_SAFARI_MARKET_SHARE')
    if not raw:
        return DEFAULT_POLICY
    try:
        share = float(raw)
    except ValueError:
        _LOG.warning('ignoring invalid PUBSCAN_SAFARI_MARKET_SHARE=%r', raw)
        return DEFAULT_POLICY
    if not 0 < share <= 1:
        _LOG.warning('ignoring out-of-range PUBSCAN_SAFARI_MARKET_SHARE=%r', raw)
        return DEFAULT_POLICY
    return replace(DEFAULT_POLICY, safari_market_share=share, version=f'{POLICY_VERSION}+share={share:g}')
