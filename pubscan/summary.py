"""Portfolio-level aggregation over one scan job's result rows.

Failed rows are excluded from every average and worst-case pick; they only
show up in the ``failed_domains`` count.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

ID_BLOAT_ORDER = ('low', 'medium', 'high', 'critical')
PRIVACY_RISK_ORDER = ('low', 'moderate', 'high', 'critical')
# best to worst
POSITIONING_ORDER = ('walled-garden-parity', 'middle-pack', 'at-risk', 'commoditized')


def _worst(values: Iterable[Optional[str]], order) -> Optional[str]:
    worst = None
    for v in values:
        if v not in order:
            continue
        if worst is None or order.index(v) > order.index(worst):
            worst = v
    return worst


def _mean(values: List[float]) -> Optional[float]:
    if not values:
        return None
    return round(sum(values) / len(values), 2)


def portfolio_trend(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    trends = [r.get('rank_trend') for r in rows]
    changes = [r['rank_change_30d'] for r in rows if r.get('rank_change_30d') is not None]
    return {
        'growing_domains': trends.count('growing'),
        'stable_domains': trends.count('stable'),
        'declining_domains': trends.count('declining'),
        'avg_rank_change': _mean([float(c) for c in changes]),
        'total_monthly_impressions': sum(r.get('estimated_monthly_impressions') or 0 for r in rows),
        'ranked_domains': sum(1 for r in rows if r.get('tranco_rank') is not None),
    }


def summarize(rows: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    rows = list(rows)
    ok = [r for r in rows if r.get('status') == 'success']
    gaps = [float(r['addressability_gap_pct']) for r in ok if r.get('addressability_gap_pct') is not None]
    losses = [float(r['estimated_safari_loss_pct']) for r in ok if r.get('estimated_safari_loss_pct') is not None]
    vendors: List[str] = []
    for r in ok:
        for name in r.get('detected_ssps') or []:
            if name not in vendors:
                vendors.append(name)
    return {
        'total_domains': len(rows),
        'successful_domains': len(ok),
        'failed_domains': len(rows) - len(ok),
        'heuristic_domains': sum(1 for r in ok if r.get('scan_method') == 'static_fetch'),
        'avg_addressability_gap_pct': _mean(gaps),
        'avg_safari_loss_pct': _mean(losses),
        'worst_id_bloat_severity': _worst((r.get('id_bloat_severity') for r in ok), ID_BLOAT_ORDER),
        'worst_privacy_risk_level': _worst((r.get('privacy_risk_level') for r in ok), PRIVACY_RISK_ORDER),
        'worst_competitive_positioning': _worst((r.get('competitive_positioning') for r in ok), POSITIONING_ORDER),
        'domains_with_conversion_api': sum(1 for r in ok if r.get('has_conversion_api')),
        'domains_with_ppid': sum(1 for r in ok if r.get('has_ppid')),
        'domains_loading_pre_consent': sum(1 for r in ok if r.get('loads_pre_consent')),
        'detected_vendors': vendors,
        'portfolio_trend': portfolio_trend(ok),
    }
