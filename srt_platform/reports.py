"""
Excel / CSV / JSON exports for structure analyses, using openpyxl and pandas.
"""
import io
import json
import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment
from openpyxl.utils.dataframe import dataframe_to_rows
from datetime import datetime
from typing import Dict, List, Sequence

from srt_platform.models import (
    StructureAnalysis, TrancheAllocation, InvestorRollup,
    ScenarioAnalytics, HedgedRwaLine,
)


# ── Styling Constants ─────────────────────────────────────────────────

HEADER_FONT = Font(bold=True, color="FFFFFF", size=11)
HEADER_FILL = PatternFill(start_color="1F4E79", end_color="1F4E79", fill_type="solid")
TITLE_FONT = Font(bold=True, size=14)
SUBTITLE_FONT = Font(bold=True, size=12)

SCENARIO_LABELS = {
    "current": "Current",
    "postHedge": "Post Hedge",
    "futureUpsize": "Future Upsize",
}


def _style_header_row(ws, row_num, max_col):
    """Apply header styling to a row."""
    for col in range(1, max_col + 1):
        cell = ws.cell(row=row_num, column=col)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = Alignment(horizontal="center")


def _write_df_to_sheet(ws, df, start_row=1):
    """Write a DataFrame to a worksheet with header styling."""
    for r_idx, row in enumerate(dataframe_to_rows(df, index=False, header=True), start=start_row):
        for c_idx, value in enumerate(row, start=1):
            ws.cell(row=r_idx, column=c_idx, value=value)
    _style_header_row(ws, start_row, len(df.columns))
    for col_idx, col_name in enumerate(df.columns, start=1):
        ws.column_dimensions[ws.cell(row=start_row, column=col_idx).column_letter].width = max(
            len(str(col_name)) + 4, 14
        )
    return start_row + len(df) + 1


def _write_metric(ws, row, label, value):
    """Write a label-value pair."""
    ws.cell(row=row, column=1, value=label).font = Font(bold=True)
    ws.cell(row=row, column=2, value=value)


# ── Tables ────────────────────────────────────────────────────────────

def allocations_to_frame(allocations: Sequence[TrancheAllocation]) -> pd.DataFrame:
    rows = [{
        "Seniority": a.seniority,
        "Tranche": a.name,
        "Rating": a.rating,
        "Thickness %": a.thickness_percent,
        "Attachment %": a.attachment_point,
        "Detachment %": a.detachment_point,
        "Size": round(a.size, 2),
        "Cost (bps)": a.cost_bps,
        "Hedged %": a.hedged_percent,
        "For Sale": a.is_for_sale,
        "Investor": a.assigned_investor or "",
    } for a in allocations]
    return pd.DataFrame(rows, columns=[
        "Seniority", "Tranche", "Rating", "Thickness %", "Attachment %", "Detachment %",
        "Size", "Cost (bps)", "Hedged %", "For Sale", "Investor",
    ])


def rollup_to_frame(investors: Sequence[InvestorRollup]) -> pd.DataFrame:
    rows = [{
        "Investor": r.investor_id,
        "Total Exposure": round(r.total_exposure, 2),
        "Total %": r.total_percent,
        "W.Avg Cost (bps)": round(r.weighted_cost_bps, 2),
        "Tranches": r.tranche_count,
    } for r in investors]
    return pd.DataFrame(rows, columns=["Investor", "Total Exposure", "Total %", "W.Avg Cost (bps)", "Tranches"])


def scenarios_to_frame(scenarios: Dict[str, ScenarioAnalytics]) -> pd.DataFrame:
    """One column per scenario, one row per metric."""
    metrics = [
        ("Risk Ratio %", "risk_ratio"),
        ("Notional Lent", "adjusted_notional"),
        ("Net Yield %", "adjusted_yield"),
        ("Risk Weighted Assets", "risk_weighted_assets"),
        ("Internal Capital Required", "internal_capital_required"),
        ("Revenue", "revenue"),
        ("Trade Costs", "adjusted_trade_costs"),
        ("Net Earnings", "net_earnings"),
        ("ROE %", "roe"),
    ]
    data = {"Metric": [label for label, _ in metrics]}
    for name, s in scenarios.items():
        data[SCENARIO_LABELS.get(name, name)] = [round(getattr(s, attr), 2) for _, attr in metrics]
    return pd.DataFrame(data)


def hedged_rwa_to_frame(lines: Sequence[HedgedRwaLine]) -> pd.DataFrame:
    rows = [{
        "Tranche": l.tranche_name,
        "Amount": round(l.amount, 2),
        "Thickness %": l.thickness_percent,
        "Initial RW %": l.initial_rw,
        "Adjusted RW %": round(l.adjusted_rw, 2),
        "RWEA Before Sharing": round(l.rwea_before_sharing, 2),
        "Shared %": l.shared_percent,
        "Final RWEA": round(l.final_rwea, 2),
    } for l in lines]
    return pd.DataFrame(rows)


def export_csv(df: pd.DataFrame) -> str:
    return df.to_csv(index=False)


def export_json(analysis: StructureAnalysis) -> str:
    payload = analysis.model_dump(mode="json")
    payload["generated_at"] = datetime.now().isoformat(timespec="seconds")
    return json.dumps(payload, indent=2)


# ── Report Generators ─────────────────────────────────────────────────

def generate_structure_report(analysis: StructureAnalysis) -> bytes:
    """
    Generate Excel workbook for one structure analysis.

    Sheets: Summary, Allocation, Investors (if any are assigned),
    Scenarios, Hedged RWA, Risk.
    Returns:
        bytes of the Excel workbook
    """
    wb = Workbook()
    s = analysis.structure
    agg = analysis.aggregate
    m = analysis.metrics

    # Sheet 1: Summary
    ws = wb.active
    ws.title = "Summary"
    ws.cell(row=1, column=1, value=f"Structure Report: {s.name}").font = TITLE_FONT
    ws.cell(row=2, column=1, value=f"Generated: {datetime.now():%Y-%m-%d %H:%M}")
    ws.cell(row=3, column=1, value=f"Dataset: {s.dataset_name}")

    row_num = 5
    _write_metric(ws, row_num, "Portfolio Value", agg.total_value); row_num += 1
    _write_metric(ws, row_num, "Loan Count", agg.record_count); row_num += 1
    _write_metric(ws, row_num, "W.Avg Interest Rate %", round(agg.avg_interest_rate, 2)); row_num += 1
    _write_metric(ws, row_num, "High Risk Loans", agg.high_risk_count); row_num += 1

    row_num += 1
    ws.cell(row=row_num, column=1, value="Structure Metrics").font = SUBTITLE_FONT; row_num += 1
    _write_metric(ws, row_num, "Tranches", m.tranche_count); row_num += 1
    _write_metric(ws, row_num, "W.Avg Cost (bps)", round(m.weighted_avg_cost_bps, 2)); row_num += 1
    _write_metric(ws, row_num, "Total Tranche Cost", round(m.total_cost, 2)); row_num += 1
    _write_metric(ws, row_num, "Cost % of Portfolio", round(m.cost_percentage, 4)); row_num += 1
    _write_metric(ws, row_num, "Additional Costs", s.additional_transaction_costs); row_num += 1

    row_num += 1
    ws.cell(row=row_num, column=1, value="Distribution").font = SUBTITLE_FONT; row_num += 1
    c = analysis.concentration
    _write_metric(ws, row_num, "Investors", c.num_investors); row_num += 1
    _write_metric(ws, row_num, "HHI", round(c.hhi, 0)); row_num += 1
    _write_metric(ws, row_num, "Max Single Investor %", round(c.max_concentration_percent, 1)); row_num += 1

    row_num += 1
    ws.cell(row=row_num, column=1, value="Headline").font = SUBTITLE_FONT; row_num += 1
    summ = analysis.summary
    _write_metric(ws, row_num, "Capital Released", round(summ.initial_capital_released.original, 2)); row_num += 1
    _write_metric(ws, row_num, "New Loan Amount", round(summ.new_loan_amount.original, 2)); row_num += 1
    _write_metric(ws, row_num, "New Revenue", round(summ.new_revenue.original, 2)); row_num += 1
    _write_metric(ws, row_num, "New ROE %", round(summ.new_roe.original, 2)); row_num += 1

    # Sheet 2: Allocation
    ws2 = wb.create_sheet("Allocation")
    _write_df_to_sheet(ws2, allocations_to_frame(analysis.allocations))

    # Sheet 3: Investors
    if analysis.investors:
        ws3 = wb.create_sheet("Investors")
        _write_df_to_sheet(ws3, rollup_to_frame(analysis.investors))

    # Sheet 4: Scenarios
    if analysis.scenarios:
        ws4 = wb.create_sheet("Scenarios")
        _write_df_to_sheet(ws4, scenarios_to_frame(analysis.scenarios))

    # Sheet 5: Hedged RWA
    if analysis.hedged_rwa:
        ws5 = wb.create_sheet("Hedged RWA")
        _write_df_to_sheet(ws5, hedged_rwa_to_frame(analysis.hedged_rwa))

    # Sheet 6: Risk
    if analysis.risk.metrics:
        ws6 = wb.create_sheet("Risk")
        risk_rows: List[dict] = []
        for r in analysis.risk.metrics:
            risk_rows.append({
                "Check": r.name,
                "Category": r.category,
                "Current": round(r.current_value, 2),
                "Limit": r.limit_value,
                "Unit": r.unit,
                "Status": r.status.value,
            })
        _write_df_to_sheet(ws6, pd.DataFrame(risk_rows))

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()
