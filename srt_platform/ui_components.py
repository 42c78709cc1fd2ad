"""
Reusable styled Streamlit components for the SRT workbench.

Risk banners, section headers, validation issue lists and the risk
check table.
"""
import streamlit as st
import pandas as pd
from typing import List, Optional
from srt_platform.models import RiskAssessment, RiskStatus, ValidationIssue
from srt_platform.style import COLORS, STATUS_COLORS


# ── Risk Banner ───────────────────────────────────────────────────────

def render_risk_banner(assessment: RiskAssessment) -> None:
    """Render the overall risk validation outcome at the top of a tab."""
    status = assessment.overall_status
    n_breach = sum(1 for m in assessment.metrics if m.status == RiskStatus.BREACH)
    n_warning = sum(1 for m in assessment.metrics if m.status == RiskStatus.WARNING)

    if n_breach:
        top = next(m for m in assessment.metrics if m.status == RiskStatus.BREACH)
        detail = f"{top.name}: {top.current_value:.2f}{top.unit} vs limit {top.limit_value:.2f}{top.unit}"
    elif n_warning:
        top = next(m for m in assessment.metrics if m.status == RiskStatus.WARNING)
        detail = f"{top.name} is within the warning band of its limit"
    else:
        detail = "All checks within limits"

    color = STATUS_COLORS.get(status, COLORS["muted"])
    st.markdown(
        f'<div class="risk-banner-{status}">'
        f'<h4>{status.title()} | Score <span style="color:{color}">{assessment.risk_score:.0f}</span> | '
        f'{n_breach} Breach | {n_warning} Warning</h4>'
        f'<p>{detail}</p>'
        f'</div>',
        unsafe_allow_html=True,
    )


# ── Section Header ────────────────────────────────────────────────────

def section_header(title: str, subtitle: Optional[str] = None) -> None:
    """Render a visually distinct section header."""
    html = f'<div class="section-header"><h3>{title}</h3>'
    if subtitle:
        html += f'<p>{subtitle}</p>'
    html += '</div>'
    st.markdown(html, unsafe_allow_html=True)


# ── Validation Issues ─────────────────────────────────────────────────

def render_validation_issues(issues: List[ValidationIssue]) -> None:
    """HARD issues as errors, SOFT issues as warnings."""
    for issue in issues:
        if issue.severity == "HARD":
            st.error(issue.message)
        else:
            st.warning(issue.message)


def render_thickness_gauge(total: float, target: float = 100.0, tolerance: float = 1e-6) -> None:
    css = "thickness-ok" if abs(total - target) < tolerance else "thickness-bad"
    st.markdown(
        f'Total thickness: <span class="{css}">{total:.2f}% / {target:.0f}%</span>',
        unsafe_allow_html=True,
    )


# ── Risk Check Table ──────────────────────────────────────────────────

def _status_icon(status: RiskStatus) -> str:
    if status == RiskStatus.BREACH:
        return ":red_circle:"
    if status == RiskStatus.WARNING:
        return ":large_orange_circle:"
    return ":white_check_mark:"


def render_risk_table(assessment: RiskAssessment) -> None:
    if not assessment.metrics:
        st.info("No risk checks applicable.")
        return

    for category, metrics in assessment.by_category().items():
        st.markdown(f"**{category.title()}**")
        for m in metrics:
            st.markdown(
                f"{_status_icon(m.status)} {m.name}: {m.current_value:.2f}{m.unit} "
                f"(limit {m.limit_value:.2f}{m.unit})"
            )


def risk_table_frame(assessment: RiskAssessment) -> pd.DataFrame:
    rows = []
    for m in assessment.metrics:
        rows.append({
            "Status": m.status.value.upper(),
            "Category": m.category,
            "Check": m.name,
            "Current": round(m.current_value, 2),
            "Limit": m.limit_value,
            "Description": m.description,
        })
    return pd.DataFrame(rows)
