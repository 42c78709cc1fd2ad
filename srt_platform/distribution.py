"""
Investor distribution analytics.

Tracks which investor holds each tranche and derives per-investor rollups
and concentration (HHI over investor shares of assigned exposure).
"""
import logging
from typing import Dict, List, Optional, Sequence

from srt_platform.models import TrancheAllocation, InvestorRollup, ConcentrationSummary

logger = logging.getLogger(__name__)


# ── Assignment ────────────────────────────────────────────────────────

def assign_investor(
    allocations: Sequence[TrancheAllocation],
    allocation_id: str,
    investor_id: Optional[str],
) -> List[TrancheAllocation]:
    """Return a new allocation list with one tranche (re)assigned.

    A tranche has at most one investor; the last assignment wins.
    Passing None clears the assignment.
    """
    if not any(a.id == allocation_id for a in allocations):
        raise KeyError(f"No allocation with id {allocation_id!r}")
    return [
        a.model_copy(update={"assigned_investor": investor_id}) if a.id == allocation_id else a
        for a in allocations
    ]


def assignment_map(allocations: Sequence[TrancheAllocation]) -> Dict[str, str]:
    return {a.id: a.assigned_investor for a in allocations if a.assigned_investor}


def apply_assignments(
    allocations: Sequence[TrancheAllocation],
    assignments: Dict[str, Optional[str]],
) -> List[TrancheAllocation]:
    """Re-apply a saved assignment map, e.g. after sizes were recomputed."""
    return [
        a.model_copy(update={"assigned_investor": assignments.get(a.id)})
        for a in allocations
    ]


# ── Rollups ───────────────────────────────────────────────────────────

def _group_by_investor(allocations: Sequence[TrancheAllocation]) -> Dict[str, List[TrancheAllocation]]:
    grouped: Dict[str, List[TrancheAllocation]] = {}
    for a in allocations:
        if a.assigned_investor:
            grouped.setdefault(a.assigned_investor, []).append(a)
    return grouped


def investor_rollup(allocations: Sequence[TrancheAllocation]) -> List[InvestorRollup]:
    """Per-investor exposure summary, largest exposure first."""
    rows = []
    for investor_id, held in _group_by_investor(allocations).items():
        exposure = sum(a.size for a in held)
        weighted = sum(a.size * a.cost_bps for a in held)
        rows.append(InvestorRollup(
            investor_id=investor_id,
            total_exposure=exposure,
            total_percent=sum(a.thickness_percent for a in held),
            weighted_cost_bps=weighted / exposure if exposure > 0 else 0.0,
            tranche_count=len(held),
            tranche_ids=[a.id for a in held],
        ))
    return sorted(rows, key=lambda r: r.total_exposure, reverse=True)


# ── Concentration ─────────────────────────────────────────────────────

def classify_hhi(hhi: float) -> str:
    if hhi < 1500:
        return "low"
    if hhi < 2500:
        return "moderate"
    return "high"


def classify_max_concentration(pct: float) -> str:
    if pct < 30:
        return "well diversified"
    if pct < 50:
        return "moderate"
    return "high"


def concentration(allocations: Sequence[TrancheAllocation]) -> ConcentrationSummary:
    """HHI and top-holder share over investors' assigned exposure.

    share_i = exposure_i / total_assigned * 100
    HHI     = sum(share_i ^ 2), so a single holder scores 10,000.
    """
    exposures = {k: sum(a.size for a in v) for k, v in _group_by_investor(allocations).items()}
    if not exposures:
        return ConcentrationSummary()

    total = sum(exposures.values())
    if total <= 0:
        logger.debug("Assigned exposure is zero; concentration reported as 0")
        return ConcentrationSummary(num_investors=len(exposures))

    shares = [exp / total * 100 for exp in exposures.values()]
    hhi = sum(s * s for s in shares)
    max_pct = max(shares)
    return ConcentrationSummary(
        hhi=hhi,
        max_concentration_percent=max_pct,
        num_investors=len(exposures),
        hhi_band=classify_hhi(hhi),
        max_concentration_band=classify_max_concentration(max_pct),
    )
