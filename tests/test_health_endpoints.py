def test_health_check(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"


def test_health_ready(client):
    resp = client.get("/health/ready")
    assert resp.status_code == 200
    checks = resp.json()
    assert checks["database"] is True
    assert checks["ready"] is True
    assert checks["twilio"] == "not_configured"


def test_health_info(client):
    resp = client.get("/health/info")
    assert resp.status_code == 200
    data = resp.json()
    assert data["service"] == "salesops"
    assert "configuration" in data
    assert data["features"]["in_app"] is True


def test_metrics_endpoint(client):
    client.get("/health")
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "text/plain" in resp.headers.get("content-type", "")
    assert "api_requests_total" in resp.text
    assert "automation_dispatches_total" in resp.text
