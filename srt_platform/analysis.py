"""
One-call analysis of a tranche structure: allocation, distribution,
scenarios and risk validation, in that order.
"""
from typing import Dict, Optional

from srt_platform.allocation import allocate
from srt_platform.config import PlatformConfig
from srt_platform.distribution import apply_assignments, investor_rollup, concentration
from srt_platform.models import TrancheStructure, PortfolioAggregate, StructureAnalysis
from srt_platform.risk_checks import evaluate_structure_risk
from srt_platform.scenarios import run_all_scenarios, summarize_scenarios, compute_hedged_rwa


def transaction_cost(structure: TrancheStructure, tranche_cost: float) -> float:
    """Coupon cost of the stack plus the structure's fixed costs."""
    return tranche_cost + structure.additional_transaction_costs


def analyze_structure(
    structure: TrancheStructure,
    aggregate: PortfolioAggregate,
    assignments: Optional[Dict[str, Optional[str]]] = None,
    config: Optional[PlatformConfig] = None,
) -> StructureAnalysis:
    config = config or PlatformConfig()

    result = allocate(structure, aggregate)
    allocations = result.allocations
    if assignments:
        allocations = apply_assignments(allocations, assignments)

    conc = concentration(allocations)
    total_cost = transaction_cost(structure, result.metrics.total_cost)
    scenarios = run_all_scenarios(aggregate, total_cost, config.analytics)

    return StructureAnalysis(
        structure=structure,
        aggregate=aggregate,
        allocations=allocations,
        metrics=result.metrics,
        investors=investor_rollup(allocations),
        concentration=conc,
        scenarios=scenarios,
        summary=summarize_scenarios(aggregate, scenarios, total_cost),
        hedged_rwa=compute_hedged_rwa(allocations),
        risk=evaluate_structure_risk(aggregate, allocations, conc, config.risk_limits),
    )
