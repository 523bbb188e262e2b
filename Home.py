"""Streamlit home screen with the admin dashboard statistics."""

from __future__ import annotations

from numbers import Number
from typing import Any, Dict, List, Tuple

import pandas as pd
import streamlit as st

from checkup_admin.api_client import ApiError, SessionExpiredError, error_message
from checkup_admin.app_session import (
    get_auth,
    get_client,
    handle_session_expired,
    logout,
    require_login,
    stop_editor_sessions,
)
from checkup_admin.ui_theme import apply_app_theme, page_header

METRICS_PER_ROW = 4


def _humanize(key: str) -> str:
    """Turn ``totalUsers`` or ``paid_tests`` into ``Total users`` / ``Paid tests``."""

    words: List[str] = []
    current = ""
    for char in key.replace("_", " "):
        if char.isupper() and current and not current.endswith(" "):
            words.append(current)
            current = char.lower()
        else:
            current += char
    words.append(current)
    text = " ".join(part.strip() for part in words if part.strip())
    return text[:1].upper() + text[1:]


def split_statistics(stats: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, pd.DataFrame]]:
    """Split a statistics payload into headline numbers and tabular series."""

    metrics: Dict[str, Any] = {}
    tables: Dict[str, pd.DataFrame] = {}
    for key, value in stats.items():
        if isinstance(value, bool):
            continue
        if isinstance(value, Number):
            metrics[_humanize(key)] = value
        elif isinstance(value, list) and value and all(isinstance(row, dict) for row in value):
            tables[_humanize(key)] = pd.DataFrame(value)
        elif isinstance(value, dict):
            nested_metrics, nested_tables = split_statistics(value)
            metrics.update({f"{_humanize(key)}: {name}": number for name, number in nested_metrics.items()})
            tables.update(nested_tables)
    return metrics, tables


def _render_table(title: str, frame: pd.DataFrame) -> None:
    st.subheader(title)
    label_columns = [column for column in frame.columns if not pd.api.types.is_numeric_dtype(frame[column])]
    value_columns = [column for column in frame.columns if pd.api.types.is_numeric_dtype(frame[column])]
    if label_columns and value_columns:
        st.bar_chart(frame.set_index(label_columns[0])[value_columns])
    st.dataframe(frame, hide_index=True, use_container_width=True)


def main() -> None:
    apply_app_theme(page_title="Checkup admin", page_icon="📊")
    stop_editor_sessions()
    require_login()

    user = get_auth().user or {}
    page_header("Dashboard", f"Signed in as {user.get('email', 'admin')}", icon="📊")
    with st.sidebar:
        if st.button("Sign out"):
            logout()
            st.rerun()

    try:
        stats = get_client().get_statistics() or {}
    except SessionExpiredError as exc:
        handle_session_expired(exc)
        return
    except ApiError as exc:
        st.error(error_message(exc, "Could not load statistics."))
        return

    metrics, tables = split_statistics(stats)
    if not metrics and not tables:
        st.info("No statistics available yet.")
        return

    items = list(metrics.items())
    for start in range(0, len(items), METRICS_PER_ROW):
        columns = st.columns(METRICS_PER_ROW)
        for column, (label, value) in zip(columns, items[start:start + METRICS_PER_ROW]):
            column.metric(label, f"{value:,}" if isinstance(value, int) else value)

    for title, frame in tables.items():
        _render_table(title, frame)


if __name__ == "__main__":
    main()
