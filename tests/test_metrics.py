"""Tests for pubscan.metrics: Prometheus counters and exposition."""
from prometheus_client import REGISTRY


def _value(name, labels=None):
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


class TestMetricHelpers:
    def test_rank_lookup_counter(self):
        from pubscan.metrics import record_rank_lookup

        before = _value("pubscan_rank_lookups_total", {"outcome": "not_found"})
        record_rank_lookup("not_found")
        assert _value("pubscan_rank_lookups_total", {"outcome": "not_found"}) == before + 1

    def test_domain_result_without_method(self):
        from pubscan.metrics import record_domain_result

        before = _value("pubscan_domain_results_total", {"status": "failed", "scan_method": "none"})
        record_domain_result("failed", None)
        assert _value("pubscan_domain_results_total", {"status": "failed", "scan_method": "none"}) == before + 1

    def test_job_gauge_balances(self):
        from pubscan.metrics import record_job_finished, record_job_started

        before = _value("pubscan_active_jobs")
        record_job_started()
        assert _value("pubscan_active_jobs") == before + 1
        record_job_finished("completed")
        assert _value("pubscan_active_jobs") == before

    def test_get_metrics_returns_bytes(self):
        from pubscan.metrics import get_metrics

        result = get_metrics()
        assert isinstance(result, bytes)
        assert b"pubscan_jobs_started_total" in result

    def test_get_content_type_returns_string(self):
        from pubscan.metrics import get_content_type

        assert get_content_type().startswith("text/plain")


def test_prometheus_endpoint(client):
    r = client.get("/metrics/prometheus")
    assert r.status_code == 200
    assert b"pubscan_capture_fallbacks_total" in r.data
