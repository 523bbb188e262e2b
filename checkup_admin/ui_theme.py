"""Shared page setup and layout helpers for the dashboard's Streamlit pages."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Optional

import streamlit as st


_THEME_CSS = """
<style>
:root {
    --app-accent: #0F766E;
    --app-accent-dark: #115E59;
    --app-accent-soft: #DDF4F1;
    --app-surface: rgba(255, 255, 255, 0.94);
    --app-text: #1F2933;
    --app-muted: #52606D;
    --app-shadow: 0 14px 32px rgba(15, 23, 42, 0.07);
}

html, body {
    font-family: "Inter", "Segoe UI", system-ui, -apple-system, sans-serif;
    color: var(--app-text);
}

[data-testid="stAppViewContainer"] {
    background: linear-gradient(180deg, #F0FBF9 0%, #FFFFFF 60%);
}

.block-container {
    padding-top: 2rem;
    padding-bottom: 4rem;
}

.app-header {
    display: flex;
    align-items: center;
    gap: 1.25rem;
    padding: 1.5rem 1.75rem;
    background: var(--app-surface);
    border-radius: 1.25rem;
    border: 1px solid rgba(15, 118, 110, 0.18);
    box-shadow: var(--app-shadow);
    margin-bottom: 1.75rem;
}

.app-header__icon {
    font-size: 2.4rem;
    line-height: 1;
}

.app-header__title {
    margin: 0;
    font-size: 2rem;
    font-weight: 700;
}

.app-header__subtitle {
    margin: 0.25rem 0 0 0;
    color: var(--app-muted);
}

.app-section-card {
    padding: 1.25rem 1.5rem;
    border-radius: 1.25rem;
    border: 1px solid rgba(15, 118, 110, 0.12);
    background: var(--app-surface);
    box-shadow: var(--app-shadow);
    margin-bottom: 1.25rem;
}

.app-section-card > h3 {
    margin-top: 0;
    margin-bottom: 0.75rem;
    font-size: 1.1rem;
}

.app-section-card__description {
    margin-top: -0.35rem;
    margin-bottom: 1rem;
    color: var(--app-muted);
}

.app-badge {
    display: inline-block;
    padding: 0.1rem 0.6rem;
    border-radius: 999px;
    background: var(--app-accent-soft);
    color: var(--app-accent-dark);
    font-size: 0.8rem;
    font-weight: 600;
}

.stMetric {
    background: var(--app-surface);
    border-radius: 1rem;
    padding: 1rem 1.2rem;
    border: 1px solid rgba(15, 118, 110, 0.1);
}
</style>
"""


def apply_app_theme(page_title: str, page_icon: Optional[str] = None) -> None:
    """Set up consistent page configuration and inject the shared CSS theme."""

    st.set_page_config(
        page_title=page_title,
        page_icon=page_icon,
        layout="wide",
        initial_sidebar_state="expanded",
    )
    st.markdown(_THEME_CSS, unsafe_allow_html=True)


def page_header(title: str, subtitle: Optional[str] = None, icon: Optional[str] = None) -> None:
    """Render the page title block."""

    icon_markup = f"<span class='app-header__icon'>{icon}</span>" if icon else ""
    subtitle_markup = f"<p class='app-header__subtitle'>{subtitle}</p>" if subtitle else ""
    st.markdown(
        f"""
        <div class="app-header">
            {icon_markup}
            <div>
                <h1 class="app-header__title">{title}</h1>
                {subtitle_markup}
            </div>
        </div>
        """,
        unsafe_allow_html=True,
    )


@contextmanager
def section_card(
    title: Optional[str] = None,
    description: Optional[str] = None,
) -> Iterator[Any]:
    """Render a styled container with optional title and description."""

    container = st.container()
    container.markdown("<div class='app-section-card'>", unsafe_allow_html=True)
    if title:
        container.markdown(f"<h3>{title}</h3>", unsafe_allow_html=True)
    if description:
        container.markdown(
            f"<p class='app-section-card__description'>{description}</p>",
            unsafe_allow_html=True,
        )
    try:
        yield container
    finally:
        container.markdown("</div>", unsafe_allow_html=True)


def badge(text: str) -> str:
    """Return inline badge markup for ``text``."""

    return f"<span class='app-badge'>{text}</span>"
