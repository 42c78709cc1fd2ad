"""
Scenario analytics for a tranche structure.

Three fixed-multiplier projections of capital and earnings:
1. current       notional x1.0, cost x1.00, yield x1.00
2. postHedge     notional x1.0, cost x1.15, yield x0.95
3. futureUpsize  notional x1.5, cost x0.90, yield x1.10

This is a sensitivity view, not a risk model. The multipliers and the
capital constants come from AnalyticsConfig.
"""
import logging
from typing import Dict, List, Optional, Sequence

from srt_platform.config import AnalyticsConfig, SCENARIO_ORDER
from srt_platform.models import (
    PortfolioAggregate, TrancheAllocation, ScenarioAnalytics,
    HedgedRwaLine, ScenarioSummary, SummaryLine,
)

logger = logging.getLogger(__name__)


# ── Single Scenario ───────────────────────────────────────────────────

def run_scenario(
    aggregate: PortfolioAggregate,
    structure_total_cost: float,
    scenario: str,
    config: Optional[AnalyticsConfig] = None,
) -> ScenarioAnalytics:
    """Project notional, capital and earnings under one named scenario.

    adjusted_notional = total_value * notional_mult
    adjusted_yield    = avg_interest_rate * yield_mult
    RWA               = adjusted_notional * risk_ratio * risk_weighting_factor
    capital           = RWA * capital_ratio
    revenue           = adjusted_notional * adjusted_yield / 100
    trade_costs       = structure_total_cost * cost_mult
    ROE               = (revenue - trade_costs) / capital * 100, or 0 without capital
    """
    config = config or AnalyticsConfig()
    mult = config.scenarios.get(scenario)
    if mult is None:
        raise ValueError(f"Unknown scenario {scenario!r}; expected one of {list(config.scenarios)}")

    adjusted_notional = aggregate.total_value * mult.notional
    adjusted_yield = aggregate.avg_interest_rate * mult.yield_
    rwa = adjusted_notional * config.risk_ratio * config.risk_weighting_factor
    capital = rwa * config.capital_ratio
    revenue = adjusted_notional * adjusted_yield / 100
    trade_costs = structure_total_cost * mult.cost
    net_earnings = revenue - trade_costs
    roe = net_earnings / capital * 100 if capital > 0 else 0.0

    return ScenarioAnalytics(
        scenario=scenario,
        notional_multiplier=mult.notional,
        cost_multiplier=mult.cost,
        yield_multiplier=mult.yield_,
        risk_ratio=config.risk_ratio * 100,
        adjusted_notional=adjusted_notional,
        adjusted_yield=adjusted_yield,
        risk_weighted_assets=rwa,
        internal_capital_required=capital,
        revenue=revenue,
        adjusted_trade_costs=trade_costs,
        net_earnings=net_earnings,
        roe=roe,
    )


def run_all_scenarios(
    aggregate: PortfolioAggregate,
    structure_total_cost: float,
    config: Optional[AnalyticsConfig] = None,
) -> Dict[str, ScenarioAnalytics]:
    config = config or AnalyticsConfig()
    names = [s for s in SCENARIO_ORDER if s in config.scenarios]
    names += [s for s in config.scenarios if s not in names]
    results = {name: run_scenario(aggregate, structure_total_cost, name, config) for name in names}
    logger.debug("Ran %d scenarios for %s", len(results), aggregate.dataset_name)
    return results


# ── Hedged RWA Breakdown ──────────────────────────────────────────────

# (initial risk weight, floor) by seniority: senior, second, everything below
_RW_BY_SENIORITY = [(20.0, 20.0), (90.0, 15.0)]
_RW_JUNIOR = (1250.0, 15.0)


def compute_hedged_rwa(allocations: Sequence[TrancheAllocation]) -> List[HedgedRwaLine]:
    """Per-tranche RWEA after the hedged share is transferred.

    adjusted_rw = max(initial_rw * (1 - min(thickness/100, 0.5)), floor)
    rwea        = amount * adjusted_rw / 100
    final_rwea  = (1 - hedged/100) * rwea
    """
    lines = []
    for a in allocations:
        initial_rw, floor = _RW_BY_SENIORITY[a.seniority] if a.seniority < len(_RW_BY_SENIORITY) else _RW_JUNIOR
        adjusted_rw = max(initial_rw * (1 - min(a.thickness_percent / 100, 0.5)), floor)
        rwea = a.size * adjusted_rw / 100
        lines.append(HedgedRwaLine(
            tranche_id=a.id,
            tranche_name=a.name,
            amount=a.size,
            thickness_percent=a.thickness_percent,
            initial_rw=initial_rw,
            adjusted_rw=adjusted_rw,
            rwea_before_sharing=rwea,
            shared_percent=a.hedged_percent,
            final_rwea=(1 - a.hedged_percent / 100) * rwea,
        ))
    return lines


# ── Summary ───────────────────────────────────────────────────────────

def summarize_scenarios(
    aggregate: PortfolioAggregate,
    scenarios: Dict[str, ScenarioAnalytics],
    total_cost_of_transaction: float,
) -> ScenarioSummary:
    """Headline comparison of the upsized book against today's."""
    current = scenarios["current"]
    post_hedge = scenarios["postHedge"]
    future = scenarios["futureUpsize"]

    released = current.internal_capital_required - post_hedge.internal_capital_required
    roe_improvement = (future.roe / current.roe - 1) * 100 if current.roe > 0 else 0.0

    return ScenarioSummary(
        portfolio_protected=aggregate.total_value,
        total_cost_of_transaction=total_cost_of_transaction,
        initial_capital_released=SummaryLine(original=released, improvement=released),
        new_loan_amount=SummaryLine(
            original=future.adjusted_notional,
            improvement=future.adjusted_notional - current.adjusted_notional,
        ),
        new_revenue=SummaryLine(original=future.revenue, improvement=future.revenue - current.revenue),
        new_roe=SummaryLine(original=future.roe, improvement=roe_improvement),
    )
