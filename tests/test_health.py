"""
Health, error-format and middleware tests.
"""


def test_ready(client):
    res = client.get("/api/health/ready")
    assert res.status_code == 200
    assert res.get_json() == {"status": "ok"}


def test_live_checks_database(client):
    res = client.get("/api/health/live")
    assert res.status_code == 200
    data = res.get_json()
    assert data["status"] == "healthy"
    assert data["checks"]["database"]["status"] == "ok"


def test_request_id_and_duration_headers(client):
    res = client.get("/api/health/ready", headers={"X-Request-ID": "abc123"})
    assert res.headers["X-Request-ID"] == "abc123"
    assert float(res.headers["X-Request-Duration-Ms"]) >= 0


def test_unknown_api_route_is_json_404(client):
    res = client.get("/api/nope")
    assert res.status_code == 404
    assert res.get_json()["code"] == "ERR_NOT_FOUND"


def test_method_not_allowed(client):
    res = client.delete("/api/health/ready")
    assert res.status_code == 405
    assert res.get_json()["error"] == "Method not allowed"
