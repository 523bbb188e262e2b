"""Per-browser-session objects shared by the Streamlit pages."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Dict

import streamlit as st

from checkup_admin.api_client import AdminApiClient, SessionExpiredError
from checkup_admin.auth import AuthEvents, AuthSession
from checkup_admin.log import setup_logging
from checkup_admin.settings import Settings, load_settings

SETTINGS_STATE_KEY = "app_settings"
AUTH_STATE_KEY = "app_auth"
AUTH_EVENTS_STATE_KEY = "app_auth_events"
CLIENT_STATE_KEY = "app_api_client"
SESSION_EXPIRED_STATE_KEY = "app_session_expired"
EDITOR_DRAFT_SESSIONS_STATE_KEY = "editor_draft_sessions"


def _secrets_dict() -> Dict[str, Any]:
    """Return Streamlit secrets as a plain dict, or an empty one when unset."""

    try:
        return {key: st.secrets[key] for key in st.secrets.keys()}
    except FileNotFoundError:
        return {}


def get_settings() -> Settings:
    """Return the settings for this session, loading them once."""

    settings = st.session_state.get(SETTINGS_STATE_KEY)
    if not isinstance(settings, Settings):
        secrets = _secrets_dict()
        settings = load_settings({k: dict(v) if isinstance(v, Mapping) else v for k, v in secrets.items()})
        setup_logging(settings.log_level)
        st.session_state[SETTINGS_STATE_KEY] = settings
    return settings


def get_auth_events() -> AuthEvents:
    events = st.session_state.get(AUTH_EVENTS_STATE_KEY)
    if not isinstance(events, AuthEvents):
        events = AuthEvents()
        st.session_state[AUTH_EVENTS_STATE_KEY] = events
    return events


def get_auth() -> AuthSession:
    auth = st.session_state.get(AUTH_STATE_KEY)
    if not isinstance(auth, AuthSession):
        auth = AuthSession(base_url=get_settings().api_base_url)
        st.session_state[AUTH_STATE_KEY] = auth
    return auth


def get_client() -> AdminApiClient:
    """Return the API client bound to this session's auth state."""

    client = st.session_state.get(CLIENT_STATE_KEY)
    if not isinstance(client, AdminApiClient):
        client = AdminApiClient(get_auth(), get_auth_events())
        st.session_state[CLIENT_STATE_KEY] = client
    return client


def require_login() -> None:
    """Show the sign-in form and stop the page until the admin is signed in."""

    auth = get_auth()
    if auth.is_authenticated:
        return

    if st.session_state.get(SESSION_EXPIRED_STATE_KEY):
        st.warning("Your session has expired. Please sign in again; unsaved edits were backed up.")

    with st.form("login_form"):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Sign in", type="primary")

    if not submitted:
        st.stop()
    if auth.login(email.strip(), password):
        st.session_state.pop(SESSION_EXPIRED_STATE_KEY, None)
        st.rerun()
    st.error("Incorrect email or password.")
    st.stop()


def handle_session_expired(error: SessionExpiredError) -> None:
    """Remember why the admin was signed out and show the login form."""

    st.session_state[SESSION_EXPIRED_STATE_KEY] = str(error)
    st.rerun()


def stop_editor_sessions() -> None:
    """Snapshot and stop the autosave of every template left open in the editor."""

    for session in st.session_state.get(EDITOR_DRAFT_SESSIONS_STATE_KEY, {}).values():
        if session.is_autosaving:
            session.on_unload()
            session.stop()


def logout() -> None:
    stop_editor_sessions()
    get_auth().logout()
    st.session_state.pop(SESSION_EXPIRED_STATE_KEY, None)
