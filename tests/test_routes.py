"""Tests for the Bitbucket login routes."""
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from fastapi.testclient import TestClient

from ally_bitbucket import config, routes
from ally_bitbucket.errors import MissingConfigError
from ally_bitbucket.main import create_app


@pytest.fixture
def app():
    app = create_app()
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client_for(app, make_provider):
    """TestClient whose driver talks to the given fake Bitbucket."""

    def _client(fake):
        provider = make_provider(fake)
        app.dependency_overrides[routes.provider_dependency] = lambda: provider
        return TestClient(app)

    return _client


def test_health(app):
    response = TestClient(app).get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_login_redirects_with_state_cookie(client_for, fake_bitbucket):
    client = client_for(fake_bitbucket)

    response = client.get("/auth/bitbucket/login", follow_redirects=False)

    assert response.status_code == 307
    location = urlparse(response.headers["location"])
    assert f"{location.scheme}://{location.netloc}{location.path}" == (
        "https://bitbucket.org/site/oauth2/authorize"
    )
    query = parse_qs(location.query)
    assert query["response_type"] == ["code"]
    assert query["scope"] == ["account email"]
    state_cookie = response.headers["set-cookie"]
    assert state_cookie.startswith(f"{routes.STATE_COOKIE}={query['state'][0]};")
    assert "httponly" in state_cookie.lower()
    assert "secure" in state_cookie.lower()


def test_callback_returns_user(client_for, fake_bitbucket):
    client = client_for(fake_bitbucket)
    client.cookies.set(routes.STATE_COOKIE, "abc")

    response = client.get("/auth/bitbucket/callback", params={"code": "c", "state": "abc"})

    assert response.status_code == 200
    body = response.json()
    assert body["nickname"] == "ada"
    assert body["email"] == "ada@work.example"
    assert body["access_token"] == "at-123"


def test_callback_state_mismatch(client_for, fake_bitbucket):
    client = client_for(fake_bitbucket)
    client.cookies.set(routes.STATE_COOKIE, "xyz")

    response = client.get("/auth/bitbucket/callback", params={"code": "c", "state": "abc"})

    assert response.status_code == 400
    assert fake_bitbucket.requests == []


def test_callback_provider_error(client_for, fake_bitbucket):
    client = client_for(fake_bitbucket)

    response = client.get(
        "/auth/bitbucket/callback",
        params={"error": "access_denied", "error_description": "User denied access"},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "User denied access"


def test_callback_profile_failure(client_for, bitbucket_factory):
    client = client_for(bitbucket_factory(profile=httpx.Response(500, text="boom")))

    response = client.get("/auth/bitbucket/callback", params={"code": "c"})

    assert response.status_code == 502


def test_missing_config(app, monkeypatch):
    def unconfigured():
        raise MissingConfigError("bitbucket")

    monkeypatch.setattr(routes, "get_provider", unconfigured)

    response = TestClient(app).get("/auth/bitbucket/login", follow_redirects=False)

    assert response.status_code == 503


def test_state_cookie_secure_flag_follows_config(client_for, fake_bitbucket, monkeypatch):
    monkeypatch.setattr(config, "OAUTH_COOKIE_SECURE", False)
    client = client_for(fake_bitbucket)

    response = client.get("/auth/bitbucket/login", follow_redirects=False)

    assert "secure" not in response.headers["set-cookie"].lower()


def test_cors_allows_configured_origin_only():
    client = TestClient(create_app(cors_origins=["https://app.example"]))
    preflight = {
        "Access-Control-Request-Method": "GET",
    }

    allowed = client.options(
        "/health", headers={"Origin": "https://app.example", **preflight}
    )
    denied = client.options(
        "/health", headers={"Origin": "https://evil.example", **preflight}
    )

    assert allowed.headers["access-control-allow-origin"] == "https://app.example"
    assert allowed.headers["access-control-allow-credentials"] == "true"
    assert "access-control-allow-origin" not in denied.headers
