"""Review doctor applications and toggle their verification."""

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

STATUS_FILTERS = {"All": None, "Pending": "pending", "Approved": "approved", "Rejected": "rejected"}
PAGE_SIZE = 20
PAGE_STATE_KEY = "doctors_page"
STATUS_STATE_KEY = "doctors_last_status"


def applications_dataframe(applications: List[Dict[str, Any]]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "Name": doctor.get("name", ""),
                "Email": doctor.get("email", ""),
                "Specialization": doctor.get("specialization", ""),
                "Experience (years)": doctor.get("experience"),
                "Workplace": doctor.get("workplace", ""),
                "Status": doctor.get("verificationStatus", ""),
                "Verified": bool(doctor.get("isDoctorVerified")),
                "Applied": doctor.get("createdAt", ""),
            }
            for doctor in applications
        ]
    )


def current_page(status_label: str) -> int:
    """Return the page to show, starting over at page 1 when the status filter changes."""

    if st.session_state.get(STATUS_STATE_KEY) != status_label:
        st.session_state[STATUS_STATE_KEY] = status_label
        st.session_state[PAGE_STATE_KEY] = 1
    return st.session_state.get(PAGE_STATE_KEY, 1)


def main() -> None:
    apply_app_theme(page_title="Doctor verification", page_icon="🩻")
    stop_editor_sessions()
    require_login()
    page_header("Doctor verification", "Approve specialists who applied to consult users.", icon="🩻")

    client = get_client()
    try:
        stats = client.doctor_application_stats()
        col_pending, col_approved = st.columns(2)
        col_pending.metric("Pending", stats.get("pending", 0))
        col_approved.metric("Approved", stats.get("approved", 0))

        status_label = st.radio("Status", list(STATUS_FILTERS), horizontal=True)
        page = current_page(status_label)
        data = client.list_doctor_applications(STATUS_FILTERS[status_label], page=page, limit=PAGE_SIZE) or {}
        applications = data.get("applications") or []
        if not applications:
            st.info("No applications found.")
            return

        st.dataframe(applications_dataframe(applications), hide_index=True, use_container_width=True)
        for doctor in applications:
            doctor_id = str(doctor.get("id") or doctor.get("_id"))
            verified = bool(doctor.get("isDoctorVerified"))
            toggled = st.toggle(
                f"{doctor.get('name', doctor_id)} verified",
                value=verified,
                key=f"doctor_verified_{doctor_id}",
            )
            if toggled != verified:
                client.set_doctor_verified(doctor_id, toggled)
                st.toast("Doctor verified." if toggled else "Verification removed.")
                st.rerun()

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
    except SessionExpiredError as exc:
        handle_session_expired(exc)
    except ApiError as exc:
        st.error(error_message(exc, "Could not load doctor applications."))


if __name__ == "__main__":
    main()
