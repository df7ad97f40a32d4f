"""HTTP surface: submission, progress polling, incremental results, summary, changes, health."""
from helpers import PIXEL_PAGE, PLAIN_PAGE


def _submit(client, app, domains, **extra):
    body = {"domains": domains}
    body.update(extra)
    r = client.post("/scan", json=body)
    assert r.status_code == 202, r.get_json()
    scan_id = r.get_json()["scan_id"]
    assert app.extensions["pubscan_queue"].wait(scan_id, timeout=10)
    return scan_id


def test_scan_accepted(client, app):
    r = client.post("/scan", json={"domains": ["a.com", "a.com", "https://www.b.com/"]})
    assert r.status_code == 202
    data = r.get_json()
    assert data["scan_id"].startswith("scan_")
    assert data["total_domains"] == 2
    assert data["message"] == "Scan started"
    assert app.extensions["pubscan_queue"].wait(data["scan_id"], timeout=10)


def test_newline_separated_string_accepted(client, app):
    r = client.post("/scan", json={"domains": "a.com\nb.com, c.com"})
    assert r.status_code == 202
    data = r.get_json()
    assert data["total_domains"] == 3
    assert app.extensions["pubscan_queue"].wait(data["scan_id"], timeout=10)


def test_rejections(client):
    r = client.post("/scan", json={"domains": []})
    assert r.status_code == 400
    assert r.get_json()["error_code"] == "NO_DOMAINS"

    r = client.post("/scan", json={"domains": [f"d{i}.com" for i in range(21)]})
    assert r.status_code == 400
    assert r.get_json()["error_code"] == "TOO_MANY_DOMAINS"

    r = client.post("/scan", json={"domains": ["localhost"]})
    assert r.status_code == 400
    assert r.get_json()["error_code"] == "INVALID_DOMAIN"

    r = client.post("/scan", data="not json", content_type="text/plain")
    assert r.status_code == 400
    assert r.get_json()["error_code"] == "VALIDATION_ERROR"

    r = client.post("/scan", json={"domains": ["a.com"], "context": "x"})
    assert r.status_code == 400


def test_progress_and_incremental_results(client, app):
    scan_id = _submit(client, app, ["a.com", "b.com", "c.com"])
    job = client.get(f"/scan/{scan_id}").get_json()
    assert job["status"] == "completed"
    assert job["completed_domains"] == job["total_domains"] == 3

    first = client.get(f"/scan/{scan_id}/results").get_json()
    assert [r["seq"] for r in first["results"]] == [1, 2, 3]
    assert first["next_since"] == 4
    assert first["job"]["status"] == "completed"

    page = client.get(f"/scan/{scan_id}/results?since=2").get_json()
    assert [r["domain"] for r in page["results"]] == ["b.com", "c.com"]

    empty = client.get(f"/scan/{scan_id}/results?since=4").get_json()
    assert empty["results"] == []
    assert empty["next_since"] == 4


def test_bad_since(client, app):
    scan_id = _submit(client, app, ["a.com"])
    r = client.get(f"/scan/{scan_id}/results?since=abc")
    assert r.status_code == 400
    assert r.get_json()["error_code"] == "VALIDATION_ERROR"


def test_unknown_scan(client):
    for path in ("/scan/scan_missing", "/scan/scan_missing/results", "/scan/scan_missing/summary"):
        r = client.get(path)
        assert r.status_code == 404
        assert r.get_json()["error_code"] == "SCAN_NOT_FOUND"


def test_summary_excludes_failures(client, app):
    app.extensions["pubscan_orchestrator"].capture_adapter.fail.add("b.com")
    scan_id = _submit(client, app, ["a.com", "b.com"], context={"monthly_impressions": 5000000})
    data = client.get(f"/scan/{scan_id}/summary").get_json()
    assert data["context"] == {"monthly_impressions": 5000000}
    s = data["summary"]
    assert s["successful_domains"] == 1
    assert s["failed_domains"] == 1
    assert s["heuristic_domains"] == 1


def test_domain_changes_between_scans(client, app):
    adapter = app.extensions["pubscan_orchestrator"].capture_adapter
    adapter.pages["a.com"] = PIXEL_PAGE
    _submit(client, app, ["a.com"])
    adapter.pages["a.com"] = PLAIN_PAGE
    _submit(client, app, ["a.com"])
    data = client.get("/domains/a.com/changes").get_json()
    assert data["domain"] == "a.com"
    removed = {c["field"] for c in data["changes"] if c["change_type"] == "vendor_removed"}
    assert "has_meta_pixel" in removed
    assert any(c["change_type"] == "cookie_changed" for c in data["changes"])


def test_domain_changes_rejects_internal_hosts(client):
    r = client.get("/domains/localhost/changes")
    assert r.status_code == 400


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    data = r.get_json()
    assert data["status"] == "ok"
    assert data["browser_configured"] is False
    assert data["db_enabled"] is False
