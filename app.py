import logging
import os

import streamlit as st
import pandas as pd
from pydantic import ValidationError

from srt_platform.config import (
    get_platform_config, save_platform_config, configure_logging,
    PlatformConfig, StructureRules, AnalyticsConfig, RiskLimits, CashflowAssumptions,
    ScenarioMultipliers, SCENARIO_ORDER, EXPOSURE_DIMENSIONS,
)
from srt_platform.store import LocalStore, DatasetRejected
from srt_platform.structure import StructureEditor, StructureError, InvalidStructure
from srt_platform.analysis import analyze_structure
from srt_platform.distribution import assignment_map
from srt_platform.portfolio import (
    PortfolioFilter, apply_filters, compute_risk_buckets,
    compute_borrower_concentration, compute_exposure_by_dimension, summarize_by_loan_type,
)
from srt_platform.cashflows import project_cashflows, summarize_projection
from srt_platform.reports import (
    allocations_to_frame, rollup_to_frame, scenarios_to_frame, hedged_rwa_to_frame,
    export_csv, export_json, generate_structure_report,
)
from srt_platform.charts import (
    PLOTLY_CONFIG, capital_stack_chart, tranche_cost_chart,
    investor_distribution_chart, scenario_comparison_chart, cashflow_chart,
    loss_chart, bar_chart, donut_chart,
)
from srt_platform.style import inject_custom_css
from srt_platform.ui_components import (
    render_risk_banner, section_header, render_validation_issues,
    render_thickness_gauge, render_risk_table, risk_table_frame,
)

configure_logging(os.environ.get("SRT_LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

st.set_page_config(page_title="SRT Structuring Platform", layout="wide")
inject_custom_css()

store = LocalStore()
datasets = store.list_datasets()


# ── Session State ─────────────────────────────────────────────────────

def _load_editor(dataset_name: str, config: PlatformConfig) -> StructureEditor:
    """Latest saved structure for the dataset, or the default template."""
    saved = store.list_structures(dataset_name)
    if saved:
        return StructureEditor.from_structure(saved[-1], config.structure_rules)
    return StructureEditor("New Structure", dataset_name, rules=config.structure_rules)


# ── Sidebar ───────────────────────────────────────────────────────────

with st.sidebar:
    st.markdown("### SRT Structuring Platform")

    if not datasets:
        st.warning("No datasets found. Run scripts/generate_demo.py or upload a tape.")
        selected_ds = None
    else:
        selected_ds = st.selectbox("Dataset", datasets, key="dataset_select")

    if selected_ds:
        platform_cfg = get_platform_config(selected_ds)
        aggregate = store.get_aggregate(selected_ds)

        st.caption("Portfolio Snapshot")
        st.metric("Total Value", f"{aggregate.total_value:,.0f}")
        st.metric("Loans", f"{aggregate.record_count:,}")
        st.metric("W.Avg Rate", f"{aggregate.avg_interest_rate:.2f}%")
        st.metric("High Risk Loans", aggregate.high_risk_count)

        if st.session_state.get("editor_dataset") != selected_ds:
            st.session_state["editor"] = _load_editor(selected_ds, platform_cfg)
            st.session_state["editor_dataset"] = selected_ds
            st.session_state["assignments"] = {}

    st.divider()
    st.caption("Upload Loan Tape")
    uploaded = st.file_uploader("Parquet or CSV", type=["parquet", "csv"])
    new_name = st.text_input("Dataset name", key="upload_name")
    if uploaded is not None and new_name and st.button("Save Dataset"):
        df_up = pd.read_parquet(uploaded) if uploaded.name.endswith(".parquet") else pd.read_csv(uploaded)
        try:
            soft = store.save_dataset(new_name, df_up)
        except DatasetRejected as e:
            render_validation_issues(e.issues)
        else:
            render_validation_issues(soft)
            st.success(f"Saved {new_name} ({len(df_up)} loans)")
            st.rerun()


if not selected_ds:
    st.title("SRT Structuring Platform")
    st.info("Load a dataset to begin.")
    st.stop()

editor: StructureEditor = st.session_state["editor"]
assignments = st.session_state["assignments"]

analysis = None
if editor.is_valid():
    analysis = analyze_structure(editor.to_structure(), aggregate, assignments, platform_cfg)

tabs = st.tabs([
    "Portfolio",
    "Structure Designer",
    "Tranche Analytics",
    "Distribution",
    "Pre-Trade",
    "Settings",
])


# ── Tab 1: Portfolio ──────────────────────────────────────────────────

with tabs[0]:
    section_header(f"Portfolio: {selected_ds}", "Loan tape composition and credit profile")
    df_tape = store.load_dataset(selected_ds)

    with st.expander("Filters"):
        f1, f2, f3 = st.columns(3)
        types = sorted(df_tape["loan_type"].dropna().unique()) if "loan_type" in df_tape.columns else []
        with f1:
            f_type = st.selectbox("Loan Type", ["All"] + list(types))
        with f2:
            f_max_pd = st.number_input("Max PD", value=1.0, step=0.01, format="%.2f")
        with f3:
            f_min_bal = st.number_input("Min Balance", value=0.0, step=1000.0)
        flt = PortfolioFilter(
            loan_type=None if f_type == "All" else f_type,
            max_pd=f_max_pd if f_max_pd < 1.0 else None,
            min_balance=f_min_bal if f_min_bal > 0 else None,
        )

    df_view = apply_filters(df_tape, flt)
    agg_view = store.get_aggregate(selected_ds, None if flt.is_empty() else flt)

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Total Value", f"{agg_view.total_value:,.0f}")
    c2.metric("Loans", f"{agg_view.record_count:,}")
    c3.metric("W.Avg PD", f"{(agg_view.avg_pd or 0) * 100:.2f}%")
    c4.metric("W.Avg LGD", f"{(agg_view.avg_lgd or 0) * 100:.1f}%")

    col_a, col_b = st.columns(2)
    with col_a:
        buckets = compute_risk_buckets(df_view)
        st.plotly_chart(
            bar_chart(buckets.set_index("Bucket")["Value"], title="Exposure by PD Bucket"),
            use_container_width=True, config=PLOTLY_CONFIG,
        )
    with col_b:
        by_type = summarize_by_loan_type(df_view)
        if by_type:
            st.plotly_chart(
                donut_chart(pd.Series({k: v["value"] for k, v in by_type.items()}), title="Loan Type Mix"),
                use_container_width=True, config=PLOTLY_CONFIG,
            )

    st.subheader("Top Borrowers")
    st.dataframe(compute_borrower_concentration(df_view), use_container_width=True, hide_index=True)

    st.subheader("Exposure Limits")
    dim_labels = {"sector": "Industry Sector", "borrower": "Borrower", "country": "Country", "rating": "Credit Rating"}
    dimension = st.selectbox("Group By", list(EXPOSURE_DIMENSIONS), format_func=dim_labels.get)
    dim_limits = platform_cfg.exposure_limits.get(dimension, {})
    exposure = compute_exposure_by_dimension(df_tape, dimension, dim_limits)
    if exposure.empty:
        st.info(f"No {dim_labels[dimension].lower()} data in this dataset.")
    else:
        n_breach = int(exposure["Breach"].sum())
        e1, e2 = st.columns(2)
        e1.metric("Limits Set", len(dim_limits))
        e2.metric("Breaches", n_breach)
        if n_breach:
            st.error(f"{n_breach} {dim_labels[dimension].lower()} value(s) above their exposure limit")
        st.dataframe(exposure, use_container_width=True, hide_index=True)

        with st.form("exposure_limit_form"):
            l1, l2 = st.columns(2)
            limit_key = l1.selectbox("Key", exposure["Key"].tolist())
            limit_amount = l2.number_input("Limit amount (0 removes)", min_value=0.0, step=10_000.0)
            if st.form_submit_button("Apply Limit"):
                if limit_amount > 0:
                    platform_cfg.set_exposure_limit(dimension, limit_key, limit_amount)
                else:
                    platform_cfg.remove_exposure_limit(dimension, limit_key)
                save_platform_config(selected_ds, platform_cfg)
                st.rerun()


# ── Tab 2: Structure Designer ─────────────────────────────────────────

with tabs[1]:
    section_header("Structure Designer", "Tranches are ordered by thickness, thickest most senior")

    saved = store.list_structures(selected_ds)
    if saved:
        labels = {s.id: f"{s.name} ({s.updated_at:%Y-%m-%d %H:%M})" for s in saved}
        pick = st.selectbox("Saved structures", list(labels), format_func=labels.get, key="saved_pick")
        b1, b2, b3 = st.columns(3)
        if b1.button("Load"):
            st.session_state["editor"] = StructureEditor.from_structure(store.get_structure(pick), platform_cfg.structure_rules)
            st.session_state["assignments"] = {}
            st.rerun()
        if b2.button("New from template"):
            st.session_state["editor"] = StructureEditor("New Structure", selected_ds, rules=platform_cfg.structure_rules)
            st.session_state["assignments"] = {}
            st.rerun()
        if b3.button("Delete"):
            store.delete_structure(pick)
            st.rerun()

    editor.name = st.text_input("Structure name", value=editor.name)
    editor.additional_transaction_costs = st.number_input(
        "Additional transaction costs", value=float(editor.additional_transaction_costs), min_value=0.0, step=1000.0,
    )

    for t in list(editor.tranches):
        cols = st.columns([3, 2, 2, 2, 1])
        new_vals = {
            "name": cols[0].text_input("Name", value=t.name, key=f"name_{t.id}"),
            "thickness_percent": cols[1].number_input("Thickness %", value=float(t.thickness_percent), key=f"th_{t.id}"),
            "cost_bps": cols[2].number_input("Cost (bps)", value=float(t.cost_bps), key=f"bps_{t.id}"),
            "hedged_percent": cols[3].number_input("Hedged %", value=float(t.hedged_percent), key=f"hg_{t.id}"),
        }
        for field, value in new_vals.items():
            if getattr(t, field) != value:
                try:
                    editor.update_tranche(t.id, field, value)
                except ValidationError as e:
                    st.error(f"{t.name}: {e.errors()[0]['msg']}")
        if cols[4].button("Remove", key=f"rm_{t.id}"):
            try:
                editor.remove_tranche(t.id)
                st.rerun()
            except StructureError as e:
                st.error(str(e))

    if st.button("Add Tranche"):
        try:
            editor.add_tranche()
            st.rerun()
        except StructureError as e:
            st.error(str(e))

    rules = editor.rules
    render_thickness_gauge(editor.total_thickness(), rules.target_thickness, rules.thickness_tolerance)
    render_validation_issues(editor.issues())

    if st.button("Save Structure", type="primary"):
        try:
            sid = editor.save(store)
            st.success(f"Saved structure {editor.name} ({sid})")
        except InvalidStructure as e:
            render_validation_issues(e.issues)


# ── Tab 3: Tranche Analytics ──────────────────────────────────────────

with tabs[2]:
    section_header("Tranche Analytics", "Allocation, cost and scenario capital analytics")
    if analysis is None:
        st.warning("Fix the structure in the designer to see analytics.")
    else:
        m = analysis.metrics
        c1, c2, c3, c4 = st.columns(4)
        c1.metric("Tranches", m.tranche_count)
        c2.metric("W.Avg Cost", f"{m.weighted_avg_cost_bps:.1f} bps")
        c3.metric("Total Cost", f"{m.total_cost:,.0f}")
        c4.metric("Cost % of Portfolio", f"{m.cost_percentage:.2f}%")

        col_a, col_b = st.columns([1, 2])
        with col_a:
            st.plotly_chart(capital_stack_chart(analysis.allocations), use_container_width=True, config=PLOTLY_CONFIG)
        with col_b:
            st.dataframe(allocations_to_frame(analysis.allocations), use_container_width=True, hide_index=True)
            st.plotly_chart(tranche_cost_chart(analysis.allocations), use_container_width=True, config=PLOTLY_CONFIG)

        st.subheader("Scenarios")
        st.plotly_chart(scenario_comparison_chart(analysis.scenarios), use_container_width=True, config=PLOTLY_CONFIG)
        st.dataframe(scenarios_to_frame(analysis.scenarios), use_container_width=True, hide_index=True)

        summ = analysis.summary
        s1, s2, s3, s4 = st.columns(4)
        s1.metric("Capital Released", f"{summ.initial_capital_released.original:,.0f}")
        s2.metric("New Loan Amount", f"{summ.new_loan_amount.original:,.0f}",
                  f"{summ.new_loan_amount.improvement:+,.0f}")
        s3.metric("New Revenue", f"{summ.new_revenue.original:,.0f}",
                  f"{summ.new_revenue.improvement:+,.0f}")
        s4.metric("New ROE", f"{summ.new_roe.original:.2f}%", f"{summ.new_roe.improvement:+.1f}%")

        with st.expander("Hedged RWA breakdown"):
            st.dataframe(hedged_rwa_to_frame(analysis.hedged_rwa), use_container_width=True, hide_index=True)

        st.divider()
        d1, d2, d3 = st.columns(3)
        d1.download_button(
            "Excel Report", generate_structure_report(analysis),
            file_name=f"{editor.name}_report.xlsx",
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )
        d2.download_button(
            "Allocation CSV", export_csv(allocations_to_frame(analysis.allocations)),
            file_name=f"{editor.name}_allocation.csv", mime="text/csv",
        )
        d3.download_button(
            "Analysis JSON", export_json(analysis),
            file_name=f"{editor.name}_analysis.json", mime="application/json",
        )


# ── Tab 4: Distribution ───────────────────────────────────────────────

with tabs[3]:
    section_header("Distribution", "Assign tranches to investors and review concentration")
    if analysis is None:
        st.warning("Fix the structure in the designer to distribute it.")
    else:
        for a in analysis.allocations:
            cols = st.columns([3, 2, 3])
            cols[0].markdown(f"**{a.name}** ({a.rating}){' · for sale' if a.is_for_sale else ''}")
            cols[1].markdown(f"{a.size:,.0f}")
            investor = cols[2].text_input(
                "Investor", value=assignments.get(a.id) or "", key=f"inv_{a.id}", label_visibility="collapsed",
            )
            assignments[a.id] = investor.strip() or None

        if st.button("Apply Assignments"):
            st.session_state["assignments"] = dict(assignments)
            st.rerun()

        conc = analysis.concentration
        c1, c2, c3 = st.columns(3)
        c1.metric("Investors", conc.num_investors)
        c2.metric("HHI", f"{conc.hhi:,.0f}", conc.hhi_band, delta_color="off")
        c3.metric("Max Single Investor", f"{conc.max_concentration_percent:.1f}%",
                  conc.max_concentration_band, delta_color="off")

        if analysis.investors:
            col_a, col_b = st.columns(2)
            with col_a:
                st.plotly_chart(investor_distribution_chart(analysis.investors), use_container_width=True, config=PLOTLY_CONFIG)
            with col_b:
                st.dataframe(rollup_to_frame(analysis.investors), use_container_width=True, hide_index=True)
        else:
            st.info("No tranches assigned yet.")

        st.subheader("Risk Validation")
        render_risk_banner(analysis.risk)
        render_risk_table(analysis.risk)
        with st.expander("Check detail"):
            st.dataframe(risk_table_frame(analysis.risk), use_container_width=True, hide_index=True)

        current = assignment_map(analysis.allocations)
        if current:
            st.caption(f"{len(current)} of {len(analysis.allocations)} tranches assigned")


# ── Tab 5: Pre-Trade ──────────────────────────────────────────────────

with tabs[4]:
    section_header("Pre-Trade Cashflows", "Monthly projection under the dataset's assumptions")
    ca = platform_cfg.cashflow
    st.caption(
        f"{ca.months} months | PD {ca.pd_annual:.1%} | LGD {ca.lgd:.1%} | CPR {ca.cpr_annual:.0%} | "
        f"servicing {ca.servicing_bps_pa:.0f} bps | recovery lag {ca.recovery_lag_months}m"
    )
    if st.button("Run Projection"):
        monthly, by_loan = project_cashflows(store.load_dataset(selected_ds), ca)
        st.session_state["projection"] = (selected_ds, monthly, by_loan)

    proj = st.session_state.get("projection")
    if proj and proj[0] == selected_ds:
        _, monthly, by_loan = proj
        totals = summarize_projection(monthly)
        c1, c2, c3, c4 = st.columns(4)
        c1.metric("Interest", f"{totals['interest_collected']:,.0f}")
        c2.metric("Defaults", f"{totals['defaults']:,.0f}")
        c3.metric("Recoveries", f"{totals['recoveries']:,.0f}")
        c4.metric("Net Cash", f"{totals['net_cash_to_bank']:,.0f}")
        st.plotly_chart(cashflow_chart(monthly), use_container_width=True, config=PLOTLY_CONFIG)
        st.plotly_chart(loss_chart(monthly), use_container_width=True, config=PLOTLY_CONFIG)
        st.download_button("Monthly CSV", export_csv(monthly), file_name=f"{selected_ds}_cashflows.csv", mime="text/csv")
        with st.expander("Loan-level detail"):
            st.dataframe(by_loan, use_container_width=True, hide_index=True)


# ── Tab 6: Settings ───────────────────────────────────────────────────

with tabs[5]:
    st.header("Settings")
    st.info(f"Structure rules, capital parameters and risk limits for {selected_ds}.")
    cfg = platform_cfg

    with st.form("platform_config_form"):
        st.subheader("Structure Rules")
        r1, r2 = st.columns(2)
        new_min = r1.number_input("Min tranches", value=int(cfg.structure_rules.min_tranches), step=1)
        new_max = r2.number_input("Max tranches", value=int(cfg.structure_rules.max_tranches), step=1)

        st.divider()
        st.subheader("Capital")
        k1, k2, k3 = st.columns(3)
        new_rr = k1.number_input("Risk ratio", value=float(cfg.analytics.risk_ratio), step=0.01, format="%.3f")
        new_rwf = k2.number_input("Risk weighting factor", value=float(cfg.analytics.risk_weighting_factor), step=0.1)
        new_cr = k3.number_input("Capital ratio", value=float(cfg.analytics.capital_ratio), step=0.01, format="%.3f")

        st.markdown("**Scenario multipliers (notional / cost / yield)**")
        new_scen = {}
        for name in SCENARIO_ORDER:
            sm = cfg.analytics.scenarios.get(name, ScenarioMultipliers())
            s1, s2, s3 = st.columns(3)
            new_scen[name] = ScenarioMultipliers(
                notional=s1.number_input(f"{name} notional", value=float(sm.notional), step=0.05),
                cost=s2.number_input(f"{name} cost", value=float(sm.cost), step=0.05),
                yield_=s3.number_input(f"{name} yield", value=float(sm.yield_), step=0.05),
            )

        st.divider()
        st.subheader("Risk Limits")
        rl = cfg.risk_limits
        l1, l2, l3 = st.columns(3)
        with l1:
            new_prox = st.number_input("Proximity margin", value=float(rl.proximity_margin), step=0.05, format="%.2f")
            new_single = st.number_input("Max single investor %", value=float(rl.max_single_investor_pct))
            new_hhi = st.number_input("Max investor HHI", value=float(rl.max_investor_hhi), step=100.0)
        with l2:
            new_pd = st.number_input("Max W.Avg PD %", value=float(rl.max_wa_pd_pct), step=0.1)
            new_lgd = st.number_input("Max W.Avg LGD %", value=float(rl.max_wa_lgd_pct))
            new_el = st.number_input("Max expected loss %", value=float(rl.max_expected_loss_pct), step=0.1)
        with l3:
            new_hr = st.number_input("Max high-risk share %", value=float(rl.max_high_risk_share_pct))
            new_sub = st.number_input("Min subordination %", value=float(rl.min_subordination_pct))

        st.divider()
        st.subheader("Cashflow Assumptions")
        ca = cfg.cashflow
        a1, a2, a3 = st.columns(3)
        new_months = a1.number_input("Months", value=int(ca.months), step=12)
        new_pda = a1.number_input("Annual PD", value=float(ca.pd_annual), step=0.005, format="%.3f")
        new_lgda = a2.number_input("LGD", value=float(ca.lgd), step=0.05, format="%.3f")
        new_cpr = a2.number_input("CPR", value=float(ca.cpr_annual), step=0.01, format="%.2f")
        new_serv = a3.number_input("Servicing (bps p.a.)", value=float(ca.servicing_bps_pa), step=10.0)
        new_lag = a3.number_input("Recovery lag (months)", value=int(ca.recovery_lag_months), step=1)

        if st.form_submit_button("Save Configuration"):
            new_cfg = PlatformConfig(
                structure_rules=StructureRules(min_tranches=int(new_min), max_tranches=int(new_max)),
                analytics=AnalyticsConfig(
                    risk_ratio=new_rr, risk_weighting_factor=new_rwf, capital_ratio=new_cr, scenarios=new_scen,
                ),
                risk_limits=RiskLimits(
                    proximity_margin=new_prox, max_single_investor_pct=new_single, max_investor_hhi=new_hhi,
                    max_wa_pd_pct=new_pd, max_wa_lgd_pct=new_lgd, max_expected_loss_pct=new_el,
                    max_high_risk_share_pct=new_hr, min_subordination_pct=new_sub,
                    disabled_checks=rl.disabled_checks,
                ),
                cashflow=CashflowAssumptions(
                    months=int(new_months), pd_annual=new_pda, lgd=new_lgda, cpr_annual=new_cpr,
                    servicing_bps_pa=new_serv, recovery_lag_months=int(new_lag),
                ),
                exposure_limits=cfg.exposure_limits,
            )
            save_platform_config(selected_ds, new_cfg)
            st.session_state.pop("editor_dataset", None)
            st.success(f"Settings saved for {selected_ds}")
            st.rerun()

    with st.expander("Danger zone"):
        if st.button(f"Delete dataset {selected_ds}"):
            n = store.delete_dataset(selected_ds)
            st.session_state.pop("editor_dataset", None)
            st.warning(f"Deleted {selected_ds} and {n} structure(s)")
            st.rerun()
