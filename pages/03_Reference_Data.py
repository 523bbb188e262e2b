"""Manage analyses, specialists, diagnostics and recommendations per test type."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

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
from checkup_admin.reference_data import (
    REFERENCE_FIELDS,
    REFERENCE_LABELS,
    available_test_types,
    format_combinations,
    reference_payload,
)
from checkup_admin.ui_theme import apply_app_theme, page_header, section_card

EDITING_STATE_KEY = "reference_editing"


def _item_id(item: Dict[str, Any]) -> str:
    return str(item.get("_id") or item.get("id"))


def _test_types() -> Dict[str, str]:
    return dict(available_test_types(get_client().list_checkup_templates()))


def _format_codes(value: Any) -> str:
    if not isinstance(value, list) or not value:
        return ""
    if isinstance(value[0], list):
        return format_combinations(value).replace("\n", " | ")
    return ", ".join(value)


def _items_dataframe(kind: str, items: List[Dict[str, Any]]) -> pd.DataFrame:
    columns = ["orderIndex"] + [name for name, _ in REFERENCE_FIELDS[kind]] + ["isActive"]
    frame = pd.DataFrame(items)
    for column in columns:
        if column not in frame.columns:
            frame[column] = None
    frame = frame[columns]
    for column in ("codes", "codesUnionCombinations"):
        if column in frame.columns:
            frame[column] = frame[column].apply(_format_codes)
    return frame


def _render_form(kind: str, test_type: str, item: Optional[Dict[str, Any]]) -> None:
    item = item or {}
    form_key = f"reference_form_{kind}_{_item_id(item) if item else 'new'}"
    with st.form(form_key, clear_on_submit=not item):
        values: Dict[str, Any] = {}
        for name, input_kind in REFERENCE_FIELDS[kind]:
            label = name[:1].upper() + name[1:]
            if input_kind == "textarea":
                values[name] = st.text_area(label, value=item.get(name) or "")
            elif input_kind == "codes":
                values[name] = st.text_input(label, value=", ".join(item.get(name) or []),
                                             help="Comma separated codes.")
            elif input_kind == "combinations":
                values[name] = st.text_area(label, value=format_combinations(item.get(name)),
                                            help="One combination of codes per line.")
            elif input_kind == "number":
                values[name] = st.number_input(label, min_value=0, value=item.get(name), step=100)
            else:
                values[name] = st.text_input(label, value=item.get(name) or "")
        col_order, col_active = st.columns(2)
        with col_order:
            values["orderIndex"] = st.number_input("Order", min_value=0, value=item.get("orderIndex"), step=1)
        with col_active:
            values["isActive"] = st.checkbox("Active", value=bool(item.get("isActive", True)))
        submitted = st.form_submit_button("Save" if item else "Create", type="primary")

    if not submitted:
        return
    payload, errors = reference_payload(kind, values, test_type)
    if errors:
        for error in errors:
            st.error(error)
        return
    client = get_client()
    if item:
        client.update_reference(kind, _item_id(item), payload)
        st.session_state.pop(EDITING_STATE_KEY, None)
    else:
        client.create_reference(kind, payload)
    st.toast("Saved.")
    st.rerun()


def render_kind(kind: str, test_type: str) -> None:
    client = get_client()
    items = client.list_reference(kind, test_type)
    items = sorted(items, key=lambda item: (item.get("orderIndex") is None, item.get("orderIndex") or 0))

    if items:
        st.dataframe(_items_dataframe(kind, items), hide_index=True, use_container_width=True)
    else:
        st.info(f"No {REFERENCE_LABELS[kind].lower()} for this test type yet.")

    editing = st.session_state.get(EDITING_STATE_KEY)
    for item in items:
        item_id = _item_id(item)
        col_name, col_edit, col_delete = st.columns([5, 1, 1])
        with col_name:
            st.markdown(f"**{item.get('name', '')}**")
        with col_edit:
            if st.button("Edit", key=f"edit_{kind}_{item_id}"):
                st.session_state[EDITING_STATE_KEY] = (kind, item_id)
                st.rerun()
        with col_delete:
            if st.button("Delete", key=f"delete_{kind}_{item_id}"):
                client.delete_reference(kind, item_id)
                st.toast("Deleted.")
                st.rerun()
        if editing == (kind, item_id):
            _render_form(kind, test_type, item)
            if st.button("Cancel", key=f"cancel_{kind}_{item_id}"):
                st.session_state.pop(EDITING_STATE_KEY, None)
                st.rerun()

    with section_card(f"Add {REFERENCE_LABELS[kind].lower()}"):
        _render_form(kind, test_type, None)


def main() -> None:
    apply_app_theme(page_title="Reference data", page_icon="🧪")
    stop_editor_sessions()
    require_login()
    page_header("Reference data", "Analyses, specialists, diagnostics and recommendations.", icon="🧪")

    try:
        test_types = _test_types()
        test_type = st.selectbox("Test type", list(test_types), format_func=test_types.get)
        tabs = st.tabs([REFERENCE_LABELS[kind] for kind in REFERENCE_FIELDS])
        for tab, kind in zip(tabs, REFERENCE_FIELDS):
            with tab:
                render_kind(kind, test_type)
    except SessionExpiredError as exc:
        handle_session_expired(exc)
    except ApiError as exc:
        st.error(error_message(exc, "Could not load reference data."))


if __name__ == "__main__":
    main()
