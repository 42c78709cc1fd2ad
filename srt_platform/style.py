"""
Theme for the SRT workbench: palette plus the few CSS classes the
components in ui_components.py emit.
"""
import streamlit as st


COLORS = {
    "pass": "#10B981",
    "warning": "#F59E0B",
    "breach": "#EF4444",
    "primary": "#3B82F6",
    "secondary": "#6366F1",
    "card": "#1E293B",
    "surface": "#0F172A",
    "text": "#F1F5F9",
    "muted": "#94A3B8",
    "border": "#334155",
}

# Overall RiskAssessment status -> accent colour
STATUS_COLORS = {
    "acceptable": COLORS["pass"],
    "elevated": COLORS["warning"],
    "breach": COLORS["breach"],
}


def _banner_rule(status: str, color: str) -> str:
    return (
        f".risk-banner-{status} {{"
        f" background: {color}1A; border: 1px solid {color}55;"
        f" border-left: 4px solid {color}; border-radius: 6px;"
        f" padding: 12px 18px; margin-bottom: 14px; }}\n"
        f".risk-banner-{status} h4 {{ color: {color}; margin: 0 0 2px 0; font-size: 0.95rem; }}\n"
    )


def _theme_css() -> str:
    c = COLORS
    banners = "".join(_banner_rule(s, col) for s, col in STATUS_COLORS.items())
    return f"""
<style>
div[data-testid="stMetric"] {{
    background: {c["card"]};
    border: 1px solid {c["border"]};
    border-left: 3px solid {c["primary"]};
    border-radius: 6px;
    padding: 10px 14px;
}}
div[data-testid="stMetric"] label {{
    color: {c["muted"]};
    font-size: 0.72rem;
    text-transform: uppercase;
}}
section[data-testid="stSidebar"] div[data-testid="stMetric"] {{
    border-left-color: {c["secondary"]};
}}
button[data-baseweb="tab"] {{
    font-weight: 600;
}}
{banners}
div[class^="risk-banner-"] p {{ margin: 0; font-size: 0.82rem; color: {c["muted"]}; }}
.section-header {{
    border-bottom: 2px solid {c["primary"]};
    margin-bottom: 16px;
    padding-bottom: 6px;
}}
.section-header h3 {{ margin: 0; color: {c["text"]}; }}
.section-header p {{ margin: 2px 0 0 0; font-size: 0.78rem; color: {c["muted"]}; }}
.thickness-ok {{ color: {c["pass"]}; font-weight: 600; }}
.thickness-bad {{ color: {c["breach"]}; font-weight: 600; }}
</style>
"""


def inject_custom_css() -> None:
    st.markdown(_theme_css(), unsafe_allow_html=True)
