"""
Plotly chart factory for the SRT workbench.

All charts share the dark theme and brand palette so the tabs read
as one application.
"""
import plotly.graph_objects as go
import pandas as pd
from typing import Optional, List, Dict, Sequence

from srt_platform.models import TrancheAllocation, InvestorRollup, ScenarioAnalytics

# Passed to every st.plotly_chart() call; hides the floating toolbar.
PLOTLY_CONFIG = {"displayModeBar": False}

# ── Brand palette ────────────────────────────────────────────────────

BRAND = {
    "primary":   "#3B82F6",   # bright blue
    "secondary": "#6366F1",   # indigo
    "accent":    "#22D3EE",   # cyan
    "positive":  "#10B981",   # emerald
    "warning":   "#F59E0B",   # amber
    "negative":  "#EF4444",   # red
    "muted":     "#64748B",   # slate
    "bg":        "#0E1117",
    "card":      "#1E293B",
    "grid":      "#1E293B",
    "text":      "#E2E8F0",
    "text_muted":"#94A3B8",
}

SERIES_COLORS = [
    "#3B82F6", "#22D3EE", "#A78BFA", "#F472B6",
    "#34D399", "#FBBF24", "#FB923C", "#E879F9",
]

RATING_COLORS = {
    "AAA": "#3B82F6", "AA": "#60A5FA", "A": "#22D3EE",
    "BBB": "#34D399", "BB": "#FBBF24", "B": "#FB923C",
    "CCC": "#F87171", "CC": "#EF4444", "C": "#DC2626",
    "Unrated": "#64748B",
}

SCENARIO_LABELS = {
    "current": "Current",
    "postHedge": "Post Hedge",
    "futureUpsize": "Future Upsize",
}


def _base_layout(**overrides) -> dict:
    """Common layout settings for every chart."""
    layout = dict(
        autosize=True,
        paper_bgcolor="rgba(0,0,0,0)",
        plot_bgcolor="rgba(0,0,0,0)",
        font=dict(family="Inter, -apple-system, sans-serif", color=BRAND["text"], size=12),
        margin=dict(l=0, r=10, t=28, b=8),
        xaxis=dict(
            gridcolor=BRAND["grid"],
            zerolinecolor=BRAND["grid"],
            tickfont=dict(size=10, color=BRAND["text_muted"]),
        ),
        yaxis=dict(
            gridcolor=BRAND["grid"],
            zerolinecolor=BRAND["grid"],
            tickfont=dict(size=10, color=BRAND["text_muted"]),
        ),
        legend=dict(
            bgcolor="rgba(0,0,0,0)",
            font=dict(size=11, color=BRAND["text_muted"]),
            orientation="h",
            yanchor="bottom",
            y=1.02,
            xanchor="left",
            x=0,
        ),
        hoverlabel=dict(
            bgcolor=BRAND["card"],
            font_size=12,
            font_color=BRAND["text"],
            bordercolor=BRAND["primary"],
        ),
    )
    layout.update(overrides)
    return layout


def _rgba(hex_color: str, alpha: float) -> str:
    return f"rgba({int(hex_color[1:3],16)},{int(hex_color[3:5],16)},{int(hex_color[5:7],16)},{alpha})"


# ═══════════════════════════════════════════════════════════════════
# GENERIC
# ═══════════════════════════════════════════════════════════════════

def bar_chart(
    data: pd.Series,
    title: str = "",
    color: str = "",
    height: int = 300,
    y_format: str = "",
    color_map: Optional[Dict[str, str]] = None,
) -> go.Figure:
    """Styled bar chart from a Series (index = categories)."""
    if color_map:
        colors = [color_map.get(idx, color or BRAND["primary"]) for idx in data.index]
    else:
        colors = color or BRAND["primary"]

    fig = go.Figure(go.Bar(
        x=data.index,
        y=data.values,
        marker_color=colors,
        marker_line=dict(width=0),
        hovertemplate="<b>%{x}</b><br>%{y:,.0f}<extra></extra>",
    ))
    layout_opts = _base_layout(
        height=height,
        title=dict(text=title, font=dict(size=13)),
    )
    layout_opts["margin"]["b"] = 40
    layout_opts["xaxis"]["tickangle"] = -35 if len(data) > 8 else 0
    fig.update_layout(**layout_opts)
    if y_format:
        fig.update_yaxes(tickformat=y_format)
    return fig


def donut_chart(
    data: pd.Series,
    title: str = "",
    height: int = 300,
    color_map: Optional[Dict[str, str]] = None,
) -> go.Figure:
    """Donut chart from a Series (index = labels, values = sizes)."""
    if color_map:
        clrs = [color_map.get(idx, BRAND["muted"]) for idx in data.index]
    else:
        clrs = [SERIES_COLORS[i % len(SERIES_COLORS)] for i in range(len(data))]

    fig = go.Figure(go.Pie(
        labels=data.index,
        values=data.values,
        hole=0.55,
        marker=dict(colors=clrs, line=dict(color=BRAND["bg"], width=2)),
        textinfo="label+percent",
        textfont=dict(size=11, color=BRAND["text"]),
        hovertemplate="<b>%{label}</b><br>%{value:,.0f}<br>%{percent}<extra></extra>",
    ))
    fig.update_layout(**_base_layout(
        height=height,
        title=dict(text=title, font=dict(size=13)),
        showlegend=False,
        margin=dict(l=0, r=0, t=32, b=0),
    ))
    return fig


# ═══════════════════════════════════════════════════════════════════
# STRUCTURE CHARTS
# ═══════════════════════════════════════════════════════════════════

def capital_stack_chart(
    allocations: Sequence[TrancheAllocation],
    title: str = "Capital Stack",
    height: int = 380,
) -> go.Figure:
    """Stacked column with the first-loss tranche at the bottom."""
    fig = go.Figure()
    for a in sorted(allocations, key=lambda x: x.seniority, reverse=True):
        fig.add_trace(go.Bar(
            x=["Structure"],
            y=[a.thickness_percent],
            name=f"{a.name} ({a.rating})",
            marker_color=RATING_COLORS.get(a.rating, BRAND["muted"]),
            marker_line=dict(color=BRAND["bg"], width=1),
            text=f"{a.name}<br>{a.attachment_point:.1f}% - {a.detachment_point:.1f}%",
            textposition="inside",
            hovertemplate=(
                f"<b>{a.name}</b><br>Size: {a.size:,.0f}<br>"
                f"Attach {a.attachment_point:.2f}% / Detach {a.detachment_point:.2f}%<br>"
                f"Cost: {a.cost_bps:.0f} bps<extra></extra>"
            ),
        ))
    layout_opts = _base_layout(
        height=height,
        title=dict(text=title, font=dict(size=13)),
        barmode="stack",
        showlegend=True,
    )
    layout_opts["yaxis"]["ticksuffix"] = "%"
    layout_opts["yaxis"]["range"] = [0, 100]
    fig.update_layout(**layout_opts)
    return fig


def tranche_cost_chart(allocations: Sequence[TrancheAllocation], height: int = 300) -> go.Figure:
    """Annual coupon cost per tranche (size x bps)."""
    data = pd.Series(
        [a.size * a.cost_bps / 10000 for a in allocations],
        index=[a.name for a in allocations],
    )
    return bar_chart(data, title="Annual Tranche Cost", color=BRAND["secondary"], height=height)


def investor_distribution_chart(
    investors: Sequence[InvestorRollup],
    title: str = "Investor Distribution",
    height: int = 320,
) -> go.Figure:
    data = pd.Series(
        [r.total_exposure for r in investors],
        index=[r.investor_id for r in investors],
    )
    return donut_chart(data, title=title, height=height)


def scenario_comparison_chart(
    scenarios: Dict[str, ScenarioAnalytics],
    height: int = 340,
) -> go.Figure:
    """Revenue, cost and net earnings per scenario, with ROE on a secondary axis."""
    labels = [SCENARIO_LABELS.get(k, k) for k in scenarios]
    rows = list(scenarios.values())

    fig = go.Figure()
    for i, (name, attr) in enumerate([
        ("Revenue", "revenue"),
        ("Trade Costs", "adjusted_trade_costs"),
        ("Net Earnings", "net_earnings"),
    ]):
        fig.add_trace(go.Bar(
            name=name,
            x=labels,
            y=[getattr(s, attr) for s in rows],
            marker_color=SERIES_COLORS[i],
            hovertemplate=f"<b>{name}</b><br>%{{x}}<br>%{{y:,.0f}}<extra></extra>",
        ))
    fig.add_trace(go.Scatter(
        name="ROE %",
        x=labels,
        y=[s.roe for s in rows],
        mode="lines+markers",
        yaxis="y2",
        line=dict(color=BRAND["warning"], width=2.5),
        marker=dict(size=8),
        hovertemplate="<b>ROE</b><br>%{x}<br>%{y:.2f}%<extra></extra>",
    ))
    fig.update_layout(**_base_layout(
        height=height,
        title=dict(text="Scenario Comparison", font=dict(size=13)),
        barmode="group",
        yaxis2=dict(
            overlaying="y", side="right", showgrid=False, ticksuffix="%",
            tickfont=dict(size=10, color=BRAND["warning"]),
        ),
    ))
    return fig


# ═══════════════════════════════════════════════════════════════════
# CASHFLOW CHARTS
# ═══════════════════════════════════════════════════════════════════

def cashflow_chart(monthly: pd.DataFrame, height: int = 340) -> go.Figure:
    """Stacked monthly cash components with the outstanding balance as a line."""
    fig = go.Figure()
    components = [
        ("Interest", "interest_collected"),
        ("Scheduled Principal", "scheduled_principal"),
        ("Prepayments", "prepayments"),
        ("Recoveries", "recoveries"),
    ]
    for i, (name, col) in enumerate(components):
        fig.add_trace(go.Bar(
            name=name,
            x=monthly["month"],
            y=monthly[col],
            marker_color=SERIES_COLORS[i],
            hovertemplate=f"<b>{name}</b><br>Month %{{x}}<br>%{{y:,.0f}}<extra></extra>",
        ))
    fig.add_trace(go.Scatter(
        name="Balance",
        x=monthly["month"],
        y=monthly["ending_balance"],
        mode="lines",
        yaxis="y2",
        line=dict(color=BRAND["text_muted"], width=2, dash="dash"),
        fill="tozeroy",
        fillcolor=_rgba(BRAND["muted"], 0.06),
        hovertemplate="<b>Balance</b><br>Month %{x}<br>%{y:,.0f}<extra></extra>",
    ))
    fig.update_layout(**_base_layout(
        height=height,
        title=dict(text="Projected Cashflows", font=dict(size=13)),
        barmode="stack",
        yaxis2=dict(overlaying="y", side="right", showgrid=False,
                    tickfont=dict(size=10, color=BRAND["text_muted"])),
    ))
    return fig


def loss_chart(monthly: pd.DataFrame, height: int = 280) -> go.Figure:
    """Cumulative defaults against cumulative recoveries."""
    fig = go.Figure()
    for name, col, color in [
        ("Cumulative Defaults", "defaults", BRAND["negative"]),
        ("Cumulative Recoveries", "recoveries", BRAND["positive"]),
    ]:
        fig.add_trace(go.Scatter(
            name=name,
            x=monthly["month"],
            y=monthly[col].cumsum(),
            mode="lines",
            line=dict(color=color, width=2.5),
            hovertemplate=f"<b>{name}</b><br>Month %{{x}}<br>%{{y:,.0f}}<extra></extra>",
        ))
    fig.update_layout(**_base_layout(
        height=height,
        title=dict(text="Credit Losses", font=dict(size=13)),
    ))
    return fig
