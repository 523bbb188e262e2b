"""List checkup templates and manage their lifecycle."""

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

EDITOR_PAGE = "pages/02_Template_Editor.py"
EDITOR_TEMPLATE_STATE_KEY = "editor_template_id"
PENDING_DELETE_STATE_KEY = "templates_pending_delete"


def templates_dataframe(templates: List[Dict[str, Any]]) -> pd.DataFrame:
    """Return the summary table shown for ``templates``."""

    rows = []
    for template in templates:
        price = "Free" if template.get("free") else template.get("price")
        rows.append(
            {
                "Test key": template.get("testKey", ""),
                "Title": template.get("title", ""),
                "Price": price,
                "Questions": len(template.get("questions") or []),
                "Active": bool(template.get("isActive")),
                "Updated": template.get("updatedAt", ""),
            }
        )
    return pd.DataFrame(rows, columns=["Test key", "Title", "Price", "Questions", "Active", "Updated"])


def _open_editor(template_id: str | None) -> None:
    if template_id:
        st.session_state[EDITOR_TEMPLATE_STATE_KEY] = template_id
    else:
        st.session_state.pop(EDITOR_TEMPLATE_STATE_KEY, None)
    st.switch_page(EDITOR_PAGE)


def _render_actions(template: Dict[str, Any]) -> None:
    client = get_client()
    template_id = str(template.get("_id") or template.get("id"))
    col_title, col_edit, col_toggle, col_delete = st.columns([4, 1, 1, 1])
    with col_title:
        status = "🟢" if template.get("isActive") else "⚪"
        st.markdown(f"{status} **{template.get('title') or template.get('testKey')}**")
    with col_edit:
        if st.button("Edit", key=f"edit_{template_id}"):
            _open_editor(template_id)
    with col_toggle:
        label = "Deactivate" if template.get("isActive") else "Activate"
        if st.button(label, key=f"toggle_{template_id}"):
            client.toggle_checkup_template_active(template_id)
            st.toast("Status updated.")
            st.rerun()
    with col_delete:
        if st.button("Delete", key=f"delete_{template_id}"):
            st.session_state[PENDING_DELETE_STATE_KEY] = template_id

    if st.session_state.get(PENDING_DELETE_STATE_KEY) == template_id:
        st.warning(f"Delete “{template.get('title')}”? This cannot be undone.")
        col_confirm, col_cancel = st.columns(2)
        with col_confirm:
            if st.button("Confirm delete", key=f"confirm_delete_{template_id}", type="primary"):
                client.delete_checkup_template(template_id)
                st.session_state.pop(PENDING_DELETE_STATE_KEY, None)
                st.toast("Template deleted.")
                st.rerun()
        with col_cancel:
            if st.button("Cancel", key=f"cancel_delete_{template_id}"):
                st.session_state.pop(PENDING_DELETE_STATE_KEY, None)
                st.rerun()


def main() -> None:
    apply_app_theme(page_title="Checkup templates", page_icon="🗂️")
    stop_editor_sessions()
    require_login()
    page_header("Checkup templates", "Questionnaires offered to users.", icon="🗂️")

    if st.button("New template", type="primary"):
        _open_editor(None)

    active_only = st.toggle("Active only", value=False)
    try:
        templates = get_client().list_checkup_templates(active_only=active_only) or []
        if not templates:
            st.info("No checkup templates yet.")
            return
        st.dataframe(templates_dataframe(templates), hide_index=True, use_container_width=True)
        st.divider()
        for template in templates:
            _render_actions(template)
    except SessionExpiredError as exc:
        handle_session_expired(exc)
    except ApiError as exc:
        st.error(error_message(exc, "Could not load checkup templates."))


if __name__ == "__main__":
    main()
