"""Change detection between two successful scans of the same domain."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

CHANGE_VENDOR_ADDED = 'vendor_added'
CHANGE_VENDOR_REMOVED = 'vendor_removed'
CHANGE_SSP = 'ssp_changed'
CHANGE_COOKIE = 'cookie_changed'

VENDOR_FIELDS = (
    'has_google_analytics', 'has_gtm', 'has_meta_pixel', 'has_meta_capi',
    'has_ttd', 'has_liveramp', 'has_id5', 'has_criteo', 'has_ppid',
)
# Smaller swings in cookie count are normal page-to-page noise
COOKIE_COUNT_THRESHOLD = 5


def diff_results(baseline: Dict[str, Any], current: Dict[str, Any]) -> List[Dict[str, Any]]:
    changes: List[Dict[str, Any]] = []
    for field in VENDOR_FIELDS:
        old = bool(baseline.get(field))
        new = bool(current.get(field))
        if old != new:
            changes.append({
                'change_type': CHANGE_VENDOR_ADDED if new else CHANGE_VENDOR_REMOVED,
                'field': field,
                'old_value': old,
                'new_value': new,
                'description': f"{field} {'added' if new else 'removed'}",
            })

    old_ssps = list(baseline.get('detected_ssps') or [])
    new_ssps = list(current.get('detected_ssps') or [])
    added = [s for s in new_ssps if s not in old_ssps]
    removed = [s for s in old_ssps if s not in new_ssps]
    if added or removed:
        changes.append({
            'change_type': CHANGE_SSP,
            'field': 'detected_ssps',
            'old_value': old_ssps,
            'new_value': new_ssps,
            'added': added,
            'removed': removed,
            'description': f'SSPs changed: {len(added)} added, {len(removed)} removed',
        })

    old_count = baseline.get('total_cookies') or 0
    new_count = current.get('total_cookies') or 0
    if abs(old_count - new_count) > COOKIE_COUNT_THRESHOLD:
        changes.append({
            'change_type': CHANGE_COOKIE,
            'field': 'total_cookies',
            'old_value': old_count,
            'new_value': new_count,
            'description': f'Cookie count changed from {old_count} to {new_count}',
        })
    return changes


def domain_changes(store, domain: str) -> Dict[str, Any]:
    """Compare the two newest successful rows stored for ``domain``."""
    rows = store.recent_results_for_domain(domain, limit=2)
    current: Optional[Dict[str, Any]] = rows[0] if rows else None
    baseline: Optional[Dict[str, Any]] = rows[1] if len(rows) > 1 else None
    return {
        'domain': domain,
        'current_scan_id': current.get('scan_id') if current else None,
        'baseline_scan_id': baseline.get('scan_id') if baseline else None,
        'changes': diff_results(baseline, current) if baseline and current else [],
    }
