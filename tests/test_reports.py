"""
End-to-end analysis and its exports.
"""
import io
import json

import pytest
from openpyxl import load_workbook

from srt_platform.analysis import analyze_structure, transaction_cost
from srt_platform.config import AnalyticsConfig, PlatformConfig, ScenarioMultipliers
from srt_platform.reports import (
    allocations_to_frame, rollup_to_frame, scenarios_to_frame, hedged_rwa_to_frame,
    export_csv, export_json, generate_structure_report,
)


@pytest.fixture
def analysis(structure, aggregate):
    return analyze_structure(structure, aggregate, {"mez": "Fund A", "sub": "Fund B"})


class TestAnalysis:
    def test_components(self, analysis):
        assert [a.assigned_investor for a in analysis.allocations] == [None, "Fund A", "Fund B"]
        assert analysis.concentration.num_investors == 2
        assert list(analysis.scenarios) == ["current", "postHedge", "futureUpsize"]
        assert analysis.scenarios["current"].roe == pytest.approx(520.8333, rel=1e-5)
        assert len(analysis.hedged_rwa) == 3

    def test_additional_costs_reach_scenarios(self, structure, aggregate):
        priced = structure.model_copy(update={"additional_transaction_costs": 5_000})
        assert transaction_cost(priced, 20_000) == 25_000
        result = analyze_structure(priced, aggregate)
        assert result.scenarios["current"].adjusted_trade_costs == pytest.approx(25_000)
        assert result.metrics.total_cost == pytest.approx(20_000)
        assert result.summary.total_cost_of_transaction == pytest.approx(25_000)

    def test_partial_scenario_override(self, structure, aggregate):
        cfg = PlatformConfig(analytics=AnalyticsConfig(
            scenarios={"futureUpsize": ScenarioMultipliers(notional=2.0, cost=1.0, yield_=1.0)},
        ))
        result = analyze_structure(structure, aggregate, config=cfg)
        assert list(result.scenarios) == ["current", "postHedge", "futureUpsize"]
        assert result.summary.new_loan_amount.original == pytest.approx(2_000_000)
        assert result.summary.new_loan_amount.improvement == pytest.approx(1_000_000)


class TestFrames:
    def test_allocation_frame(self, analysis):
        df = allocations_to_frame(analysis.allocations)
        assert df["Tranche"].tolist() == ["Senior", "Mezz", "Sub"]
        assert df["Size"].sum() == pytest.approx(1_000_000)

    def test_rollup_frame(self, analysis):
        df = rollup_to_frame(analysis.investors)
        assert df["Investor"].tolist() == ["Fund A", "Fund B"]

    def test_scenario_frame(self, analysis):
        df = scenarios_to_frame(analysis.scenarios)
        assert list(df.columns) == ["Metric", "Current", "Post Hedge", "Future Upsize"]
        row = df.set_index("Metric").loc["Net Earnings"]
        assert row["Current"] == pytest.approx(40_000)

    def test_empty_frames_keep_columns(self):
        assert "Investor" in rollup_to_frame([]).columns
        assert "Tranche" in allocations_to_frame([]).columns

    def test_csv(self, analysis):
        text = export_csv(allocations_to_frame(analysis.allocations))
        assert text.splitlines()[0].startswith("Seniority,Tranche,Rating")
        assert len(text.splitlines()) == 4


class TestDocuments:
    def test_json(self, analysis):
        payload = json.loads(export_json(analysis))
        assert payload["metrics"]["total_cost"] == pytest.approx(20_000)
        assert payload["structure"]["id"] == "s1"
        assert "generated_at" in payload

    def test_excel(self, analysis):
        wb = load_workbook(io.BytesIO(generate_structure_report(analysis)))
        assert wb.sheetnames[:4] == ["Summary", "Allocation", "Investors", "Scenarios"]
        assert "Hedged RWA" in wb.sheetnames
        assert wb["Allocation"].cell(row=1, column=2).value == "Tranche"
        assert wb["Allocation"].max_row == 4

    def test_excel_without_investors(self, structure, aggregate):
        wb = load_workbook(io.BytesIO(generate_structure_report(analyze_structure(structure, aggregate))))
        assert "Investors" not in wb.sheetnames

    def test_hedged_frame(self, analysis):
        assert len(hedged_rwa_to_frame(analysis.hedged_rwa)) == 3
