import json
import time

import pytest
import requests

from backoffice.api import auth as auth_module
from backoffice.api.auth import SupabaseAuth
from conftest import make_response

AUTH_URL = "http://supabase.test"


@pytest.fixture(autouse=True)
def no_env_tokens(monkeypatch):
    monkeypatch.setattr(auth_module, "SUPABASE_ACCESS_TOKEN", None)
    monkeypatch.setattr(auth_module, "SUPABASE_REFRESH_TOKEN", None)


@pytest.fixture
def token_file(tmp_path):
    return str(tmp_path / "token.json")


@pytest.fixture
def posts(monkeypatch):
    """Registra los POST a GoTrue y responde con un token nuevo."""
    calls = []

    def fake_post(url, params=None, headers=None, json=None, timeout=None):
        calls.append({"url": url, "params": params, "json": json})
        return make_response(200, {
            "access_token": f"access-{len(calls)}",
            "refresh_token": f"refresh-{len(calls)}",
            "expires_in": 3600,
            "user": {"id": "user-42"},
        })

    monkeypatch.setattr(requests, "post", fake_post)
    return calls


def _auth(token_file, **kwargs):
    return SupabaseAuth(url=AUTH_URL, api_key="anon-key", token_file=token_file, **kwargs)


def test_requires_url_and_key(monkeypatch):
    monkeypatch.setattr(auth_module, "SUPABASE_URL", None)
    monkeypatch.setattr(auth_module, "SUPABASE_ANON_KEY", None)
    with pytest.raises(ValueError):
        SupabaseAuth()


def test_without_session_falls_back_to_anon_key(token_file, posts):
    auth = _auth(token_file)

    assert auth.get_access_token() == "anon-key"
    assert not auth.has_session()
    assert posts == []


def test_configured_access_token_is_used_as_is(token_file, posts):
    auth = _auth(token_file, access_token="from-config")
    assert auth.get_access_token() == "from-config"
    assert auth.has_session()
    assert posts == []


def test_refresh_saves_token_with_expiry_margin(token_file, posts):
    auth = _auth(token_file, refresh_token="old-refresh")
    before = time.time()

    assert auth.get_access_token() == "access-1"

    [call] = posts
    assert call["url"] == f"{AUTH_URL}/auth/v1/token"
    assert call["params"] == {"grant_type": "refresh_token"}
    assert call["json"] == {"refresh_token": "old-refresh"}
    assert auth.refresh_token == "refresh-1"
    assert auth.user_id == "user-42"
    assert before + 3600 - 60 <= auth.expires_at <= time.time() + 3600 - 60

    with open(token_file) as f:
        saved = json.load(f)
    assert saved["access_token"] == "access-1"
    assert saved["refresh_token"] == "refresh-1"
    assert saved["user_id"] == "user-42"

    # Vigente: no vuelve a pedir token
    assert auth.get_access_token() == "access-1"
    assert len(posts) == 1


def test_refresh_without_refresh_token_fails(token_file):
    with pytest.raises(ValueError):
        _auth(token_file).refresh()


def test_loads_valid_token_from_file(token_file, posts):
    with open(token_file, "w") as f:
        json.dump({
            "access_token": "stored",
            "refresh_token": "stored-refresh",
            "expires_at": time.time() + 600,
            "user_id": "user-7",
        }, f)

    auth = _auth(token_file)

    assert auth.get_access_token() == "stored"
    assert auth.user_id == "user-7"
    assert posts == []


def test_expired_token_in_file_is_refreshed(token_file, posts):
    with open(token_file, "w") as f:
        json.dump({
            "access_token": "stale",
            "refresh_token": "stored-refresh",
            "expires_at": time.time() - 10,
        }, f)

    auth = _auth(token_file)

    assert auth.get_access_token() == "access-1"
    assert posts[0]["json"] == {"refresh_token": "stored-refresh"}


def test_sign_in_uses_password_grant(token_file, posts):
    auth = _auth(token_file)

    auth.sign_in("caja@example.com", "secreto")

    assert posts[0]["params"] == {"grant_type": "password"}
    assert posts[0]["json"] == {"email": "caja@example.com", "password": "secreto"}
    assert auth.get_access_token() == "access-1"


def test_get_user_sends_bearer_and_sets_user_id(token_file, monkeypatch):
    seen = {}

    def fake_get(url, headers=None, timeout=None):
        seen.update(url=url, headers=headers)
        return make_response(200, {"id": "user-99", "email": "caja@example.com"})

    monkeypatch.setattr(requests, "get", fake_get)
    auth = _auth(token_file, access_token="tok")

    user = auth.get_user()

    assert user["id"] == "user-99"
    assert auth.user_id == "user-99"
    assert seen["url"] == f"{AUTH_URL}/auth/v1/user"
    assert seen["headers"]["Authorization"] == "Bearer tok"
    assert seen["headers"]["apikey"] == "anon-key"
