def test_preflight_short_circuits(client, verdict, sent_mail):
    for path in ("/api/whitelist-apply", "/api/send-code", "/anything/else"):
        resp = client.options(path)

        assert resp.status_code == 200
        assert resp.content == b""
        assert resp.headers["access-control-allow-origin"] == "*"
        assert resp.headers["access-control-allow-methods"] == "POST, GET, OPTIONS"
        assert resp.headers["access-control-allow-headers"] == "Content-Type"

    assert verdict["calls"] == []
    assert sent_mail == []


def test_success_response_has_origin_header(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.text == "OK"
    assert resp.headers["access-control-allow-origin"] == "*"


def test_error_responses_have_origin_header(client, verdict):
    resp = client.post("/api/whitelist-apply", json={})
    assert resp.status_code == 400
    assert resp.headers["access-control-allow-origin"] == "*"

    resp = client.post("/api/send-code", json={})
    assert resp.status_code == 400
    assert resp.headers["access-control-allow-origin"] == "*"


def test_unknown_route_has_origin_header(client):
    resp = client.get("/api/nope")
    assert resp.status_code == 404
    assert resp.headers["access-control-allow-origin"] == "*"
