import pytest
from flask import render_template

from app.studio import create_app
from app.studio.backend import BackendConfigError
from conftest import login, studio_env


@pytest.fixture()
def client(supabase_store, monkeypatch):
    studio_env(monkeypatch)
    app = create_app()
    return app.test_client()


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True
    assert client.get("/healthz").data == b"ok"


def test_security_headers(client):
    r = client.get("/health")
    assert r.headers["X-Frame-Options"] == "DENY"
    assert r.headers["X-Content-Type-Options"] == "nosniff"
    assert "connect-src" in r.headers["Content-Security-Policy"]


def test_missing_backend_config_fails_fast(supabase_store, monkeypatch):
    studio_env(monkeypatch)
    monkeypatch.delenv("SUPABASE_ANON_KEY")
    with pytest.raises(BackendConfigError) as exc:
        create_app()
    assert "SUPABASE_ANON_KEY" in str(exc.value)


def test_vite_variable_names_accepted(supabase_store, monkeypatch):
    studio_env(monkeypatch)
    monkeypatch.delenv("SUPABASE_URL")
    monkeypatch.setenv("VITE_SUPABASE_URL", "https://vite.supabase.co")
    app = create_app()
    assert app.extensions["backend"].url == "https://vite.supabase.co"


def test_production_rejects_default_secret(supabase_store, monkeypatch):
    studio_env(monkeypatch)
    monkeypatch.setenv("ENV", "production")
    monkeypatch.delenv("SECRET_KEY")
    with pytest.raises(RuntimeError):
        create_app()


def test_shell_nav_follows_permissions(client, supabase_store):
    r = client.get("/")
    assert r.status_code == 200
    assert b"#/dashboard" not in r.data

    supabase_store.add_account("member@example.com", permissions=["Dashboard", "Clients"])
    login(client, "member@example.com")
    r = client.get("/")
    assert b"#/dashboard" in r.data
    assert b"#/clients" in r.data
    assert b"#/finance" not in r.data


def test_access_denied_page(client):
    with client.application.test_request_context():
        html = render_template("errors/403.html")
    assert "Akses Ditolak" in html
    assert "Kembali ke Dashboard" in html
