"""Browse registered users and their checkup history."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List

import pandas as pd
import streamlit as st

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from checkup_admin.api_client import ApiError, SessionExpiredError, error_message
from checkup_admin.app_session import (
    get_client,
    handle_session_expired,
    require_login,
    stop_editor_sessions,
)
from checkup_admin.ui_theme import apply_app_theme, page_header

PAGE_SIZE = 20
PAGE_STATE_KEY = "users_page"
SELECTED_USER_STATE_KEY = "users_selected_id"


def users_dataframe(users: List[Dict[str, Any]]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "ID": str(user.get("id") or user.get("_id") or ""),
                "Email": user.get("email", ""),
                "Name": user.get("name") or "-",
                "Checkapp ID": user.get("checkappId") or "-",
                "Role": user.get("role", ""),
                "Verified": bool(user.get("isVerified")),
                "Tests": user.get("totalTests", 0),
                "Paid tests": user.get("paidTests", 0),
            }
            for user in users
        ]
    )


def _render_user_details(user_id: str) -> None:
    user = get_client().get_user(user_id) or {}
    st.subheader(user.get("email") or user_id)
    details = {key: value for key, value in user.items() if not isinstance(value, (list, dict))}
    st.json(details, expanded=False)
    for key, value in user.items():
        if isinstance(value, list) and value and all(isinstance(row, dict) for row in value):
            st.markdown(f"**{key}**")
            st.dataframe(pd.DataFrame(value), hide_index=True, use_container_width=True)


def main() -> None:
    apply_app_theme(page_title="Users", page_icon="👥")
    stop_editor_sessions()
    require_login()
    page_header("Users", "Registered users of the checkup service.", icon="👥")

    email = st.text_input("Search by email").strip()
    if st.session_state.get("users_last_search") != email:
        st.session_state["users_last_search"] = email
        st.session_state[PAGE_STATE_KEY] = 1
    page = st.session_state.get(PAGE_STATE_KEY, 1)

    try:
        data = get_client().list_users(email or None, page=page, limit=PAGE_SIZE) or {}
        users = data.get("users") or []
        st.caption(f"Total: {data.get('total', len(users))} users")
        if not users:
            st.info("No users found.")
            return

        frame = users_dataframe(users)
        st.dataframe(frame, hide_index=True, use_container_width=True)

        total_pages = int(data.get("totalPages") or 1)
        col_prev, col_info, col_next = st.columns([1, 2, 1])
        with col_prev:
            if st.button("Previous", disabled=page <= 1):
                st.session_state[PAGE_STATE_KEY] = page - 1
                st.rerun()
        with col_info:
            st.caption(f"Page {page} of {total_pages}")
        with col_next:
            if st.button("Next", disabled=page >= total_pages):
                st.session_state[PAGE_STATE_KEY] = page + 1
                st.rerun()

        selected = st.selectbox(
            "User details",
            [""] + frame["ID"].tolist(),
            format_func=lambda user_id: dict(zip(frame["ID"], frame["Email"])).get(user_id, "Select a user"),
            key=SELECTED_USER_STATE_KEY,
        )
        if selected:
            _render_user_details(selected)
    except SessionExpiredError as exc:
        handle_session_expired(exc)
    except ApiError as exc:
        st.error(error_message(exc, "Could not load users."))


if __name__ == "__main__":
    main()
