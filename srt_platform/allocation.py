"""
Allocation engine for tranche structures.

Turns a tranche stack plus a portfolio aggregate into sized, rated tranches
with attachment/detachment points, and the structure-level cost metrics.
Everything here is pure: no I/O, identical inputs give identical outputs.
"""
import logging
import re
from typing import List, Sequence

from srt_platform.models import (
    TrancheDefinition, TrancheStructure, TrancheAllocation,
    StructureMetrics, AllocationResult, PortfolioAggregate,
)

logger = logging.getLogger(__name__)


# ── Ratings ───────────────────────────────────────────────────────────

RATING_TOKENS = ["AAA", "BBB", "CCC", "AA", "BB", "CC", "A", "B", "C"]

# Longer tokens first, whole words only, so "AAA" never reads as "A"
_RATING_RE = re.compile(r"\b(" + "|".join(RATING_TOKENS) + r")\b", re.IGNORECASE)

UNRATED = "Unrated"

# Mezzanine band that is offered to investors by default
FOR_SALE_RATINGS = {"A", "BBB", "BB", "B"}


def parse_rating(name: str) -> str:
    """First rating token in a tranche name, e.g. "Senior AAA" -> "AAA"."""
    if not name:
        return UNRATED
    match = _RATING_RE.search(name)
    return match.group(1).upper() if match else UNRATED


# ── Allocation ────────────────────────────────────────────────────────

def sort_by_seniority(tranches: Sequence[TrancheDefinition]) -> List[TrancheDefinition]:
    """Thickest tranche is most senior. Ties keep their input order."""
    return sorted(tranches, key=lambda t: t.thickness_percent, reverse=True)


def allocate_tranches(
    tranches: Sequence[TrancheDefinition],
    total_value: float,
) -> List[TrancheAllocation]:
    """Place each tranche in the capital stack and size it against total_value.

    Attachment points accumulate from 0 down the sorted stack:
        attach_i = sum(thickness of more senior tranches)
        detach_i = attach_i + thickness_i
        size_i   = total_value * thickness_i / 100

    A non-positive total_value gives zero sizes; the percentage math still runs.
    """
    if not tranches:
        return []

    value = total_value if total_value > 0 else 0.0
    if value == 0.0:
        logger.debug("Allocating against zero total value; sizes will be 0")

    allocations = []
    cumulative = 0.0
    for seniority, t in enumerate(sort_by_seniority(tranches)):
        size = value * t.thickness_percent / 100
        detachment = cumulative + t.thickness_percent
        rating = parse_rating(t.name)
        allocations.append(TrancheAllocation(
            id=t.id,
            name=t.name,
            thickness_percent=t.thickness_percent,
            size=size,
            rating=rating,
            cost_bps=t.cost_bps,
            hedged_percent=t.hedged_percent,
            attachment_point=cumulative,
            detachment_point=detachment,
            seniority=seniority,
            is_for_sale=rating in FOR_SALE_RATINGS,
            hedged_amount=size * t.hedged_percent / 100,
            protection_cost=size * t.cost_bps / 10000 * t.hedged_percent / 100,
        ))
        cumulative = detachment
    return allocations


def compute_structure_metrics(
    allocations: Sequence[TrancheAllocation],
    total_value: float,
) -> StructureMetrics:
    """Weighted average cost and total coupon cost of the stack.

    WAC (bps)  = sum(size_i * bps_i) / total_value
    Total cost = sum(size_i * bps_i / 10000)
    Cost %     = total_cost / total_value * 100
    """
    result = StructureMetrics(
        total_value=max(total_value, 0.0),
        total_thickness=sum(a.thickness_percent for a in allocations),
        tranche_count=len(allocations),
    )
    if not allocations:
        return result

    result.total_cost = sum(a.size * a.cost_bps / 10000 for a in allocations)
    if total_value > 0:
        weighted_sum = sum(a.size * a.cost_bps for a in allocations)
        result.weighted_avg_cost_bps = weighted_sum / total_value
        result.cost_percentage = result.total_cost / total_value * 100
    return result


def allocate(structure: TrancheStructure, aggregate: PortfolioAggregate) -> AllocationResult:
    allocations = allocate_tranches(structure.tranches, aggregate.total_value)
    metrics = compute_structure_metrics(allocations, aggregate.total_value)
    logger.debug(
        "Allocated %s over %s: %d tranches, WAC %.2f bps",
        structure.name, aggregate.dataset_name, len(allocations), metrics.weighted_avg_cost_bps,
    )
    return AllocationResult(allocations=allocations, metrics=metrics)
