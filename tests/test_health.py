from nano_remove.handler import health_response


def test_health_defaults(client):
    r = client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["ok"] is True
    assert isinstance(body["ts"], int) and body["ts"] > 0
    assert body["env"] == "prod"
    assert body["version"] == "0.1.0"
    assert r.headers["cache-control"] == "no-store"
    assert r.headers["access-control-allow-origin"] == "*"
    assert r.headers["content-type"] == "application/json"


def test_health_reports_env_and_version(make_client):
    client = make_client(context="deploy-preview", app_version="1.4.2", allow_origin="https://only.example")
    body = client.get("/.netlify/functions/health").json()
    assert body["env"] == "deploy-preview"
    assert body["version"] == "1.4.2"


def test_health_response_timestamp(make_settings):
    res = health_response(make_settings(), now_ms=1700000000000)
    assert res.status == 200
    assert '"ts":1700000000000' in res.body


def test_settings_read_environment(monkeypatch, make_settings):
    monkeypatch.setenv("APP_VERSION", "2.0.0")
    monkeypatch.setenv("CONTEXT", "branch-deploy")
    settings = make_settings()
    assert settings.app_version == "2.0.0"
    assert settings.context == "branch-deploy"


def test_health_answers_head_and_preflight(client):
    assert client.head("/health").status_code == 200
    r = client.options("/health")
    assert r.status_code == 200
    assert r.json()["ok"] is True
    assert r.headers["access-control-allow-origin"] == "*"
