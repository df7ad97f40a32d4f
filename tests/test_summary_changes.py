from pubscan.changes import diff_results, domain_changes
from pubscan.db import MemoryStore
from pubscan.summary import portfolio_trend, summarize


def _ok(domain, gap, loss, bloat="low", privacy="low", pos="middle-pack", **kw):
    row = {"domain": domain, "status": "success", "scan_method": "dynamic",
           "addressability_gap_pct": gap, "estimated_safari_loss_pct": loss,
           "id_bloat_severity": bloat, "privacy_risk_level": privacy, "competitive_positioning": pos}
    row.update(kw)
    return row


def _failed(domain):
    return {"domain": domain, "status": "failed", "scan_method": "none",
            "addressability_gap_pct": None, "estimated_safari_loss_pct": None,
            "id_bloat_severity": "low", "privacy_risk_level": "low", "competitive_positioning": "middle-pack",
            "tranco_rank": 10, "estimated_monthly_impressions": 10 ** 9, "rank_trend": "declining"}


class TestSummarize:
    def test_failed_rows_excluded(self):
        rows = [
            _ok("a.com", 20.0, 10.0, bloat="high", privacy="moderate", pos="walled-garden-parity",
                detected_ssps=["PubMatic"], has_ppid=True, tranco_rank=1000,
                estimated_monthly_impressions=400, rank_trend="growing", rank_change_30d=2000),
            _ok("b.com", 40.0, 30.0, bloat="medium", privacy="critical", pos="at-risk",
                detected_ssps=["PubMatic", "OpenX"], scan_method="static_fetch", loads_pre_consent=True,
                tranco_rank=5000, estimated_monthly_impressions=100, rank_trend="stable", rank_change_30d=0),
            _failed("c.com"),
        ]
        s = summarize(rows)
        assert s["total_domains"] == 3
        assert s["successful_domains"] == 2
        assert s["failed_domains"] == 1
        assert s["heuristic_domains"] == 1
        assert s["avg_addressability_gap_pct"] == 30.0
        assert s["avg_safari_loss_pct"] == 20.0
        assert s["worst_id_bloat_severity"] == "high"
        assert s["worst_privacy_risk_level"] == "critical"
        assert s["worst_competitive_positioning"] == "at-risk"
        assert s["domains_with_ppid"] == 1
        assert s["domains_loading_pre_consent"] == 1
        assert s["detected_vendors"] == ["PubMatic", "OpenX"]
        trend = s["portfolio_trend"]
        assert trend["growing_domains"] == 1
        assert trend["declining_domains"] == 0
        assert trend["total_monthly_impressions"] == 500
        assert trend["avg_rank_change"] == 1000.0
        assert trend["ranked_domains"] == 2

    def test_only_failures(self):
        s = summarize([_failed("a.com")])
        assert s["avg_addressability_gap_pct"] is None
        assert s["worst_id_bloat_severity"] is None
        assert s["portfolio_trend"]["total_monthly_impressions"] == 0

    def test_empty_trend(self):
        assert portfolio_trend([])["avg_rank_change"] is None


class TestDiffResults:
    def test_vendor_added_and_removed(self):
        old = {"has_meta_pixel": True, "has_ttd": False}
        new = {"has_meta_pixel": False, "has_ttd": True}
        changes = {c["field"]: c["change_type"] for c in diff_results(old, new)}
        assert changes == {"has_meta_pixel": "vendor_removed", "has_ttd": "vendor_added"}

    def test_ssp_change(self):
        changes = diff_results({"detected_ssps": ["PubMatic", "OpenX"]}, {"detected_ssps": ["PubMatic", "Sovrn"]})
        assert len(changes) == 1
        assert changes[0]["change_type"] == "ssp_changed"
        assert changes[0]["added"] == ["Sovrn"]
        assert changes[0]["removed"] == ["OpenX"]

    def test_cookie_threshold(self):
        assert diff_results({"total_cookies": 10}, {"total_cookies": 15}) == []
        changes = diff_results({"total_cookies": 10}, {"total_cookies": 16})
        assert changes[0]["change_type"] == "cookie_changed"
        assert (changes[0]["old_value"], changes[0]["new_value"]) == (10, 16)

    def test_identical_rows(self):
        row = {"has_gtm": True, "detected_ssps": ["PubMatic"], "total_cookies": 12}
        assert diff_results(row, dict(row)) == []


def test_domain_changes_uses_two_newest_successes():
    store = MemoryStore()
    store.insert_result({"scan_id": "s1", "seq": 1, "domain": "a.com", "status": "success", "has_gtm": False})
    store.insert_result({"scan_id": "s2", "seq": 1, "domain": "a.com", "status": "success", "has_gtm": True})
    store.insert_result({"scan_id": "s3", "seq": 1, "domain": "a.com", "status": "failed"})
    out = domain_changes(store, "a.com")
    assert out["current_scan_id"] == "s2"
    assert out["baseline_scan_id"] == "s1"
    assert [c["change_type"] for c in out["changes"]] == ["vendor_added"]


def test_domain_changes_single_scan():
    store = MemoryStore()
    store.insert_result({"scan_id": "s1", "seq": 1, "domain": "a.com", "status": "success"})
    out = domain_changes(store, "a.com")
    assert out["baseline_scan_id"] is None
    assert out["changes"] == []
