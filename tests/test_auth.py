"""Tests for the admin login session and auth-error channel."""

from __future__ import annotations

import json

import requests

from checkup_admin.auth import AuthEvents, AuthSession


def _response(status, payload=None):
    response = requests.Response()
    response.status_code = status
    response._content = json.dumps(payload).encode("utf-8") if payload is not None else b""
    return response


class FakeHttp:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def post(self, url, json=None, timeout=None):
        self.calls.append((url, json))
        return self.responses.pop(0)


def test_login_stores_tokens_and_user() -> None:
    http = FakeHttp(
        _response(200, {"access_token": "a", "refresh_token": "r", "user": {"email": "admin@x.kz", "role": "admin"}})
    )
    auth = AuthSession(base_url="http://api/api/", http=http)

    assert auth.login("admin@x.kz", "secret") is True

    assert http.calls == [("http://api/api/auth/login", {"email": "admin@x.kz", "password": "secret"})]
    assert auth.is_authenticated
    assert auth.user["role"] == "admin"


def test_login_failure_leaves_session_signed_out() -> None:
    auth = AuthSession(base_url="http://api", http=FakeHttp(_response(401, {"message": "Unauthorized"})))

    assert auth.login("admin@x.kz", "wrong") is False
    assert not auth.is_authenticated


def test_login_with_incomplete_response_fails() -> None:
    auth = AuthSession(base_url="http://api", http=FakeHttp(_response(200, {"access_token": "a"})))

    assert auth.login("admin@x.kz", "secret") is False


def test_refresh_without_token_does_not_call_api() -> None:
    http = FakeHttp()
    auth = AuthSession(base_url="http://api", http=http)

    assert auth.refresh() is False
    assert http.calls == []


def test_logout_clears_everything() -> None:
    auth = AuthSession(base_url="http://api", user={"email": "a"}, access_token="a", refresh_token="r")

    auth.logout()

    assert (auth.user, auth.access_token, auth.refresh_token) == (None, None, None)


def test_events_unsubscribe_and_isolate_failures() -> None:
    events = AuthEvents()
    calls = []

    def broken():
        raise RuntimeError("boom")

    events.subscribe(broken)
    unsubscribe = events.subscribe(lambda: calls.append("second"))
    events.emit()
    unsubscribe()
    unsubscribe()
    events.emit()

    assert calls == ["second"]
    assert len(events) == 1
