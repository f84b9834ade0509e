def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert r.headers["X-Request-Id"] == r.json()["request_id"]


def test_request_id_is_echoed(client):
    r = client.get("/api/ping", headers={"X-Request-Id": "req-123"})
    assert r.status_code == 200
    assert r.json() == {"message": "pong", "status": "success"}
    assert r.headers["X-Request-Id"] == "req-123"
