"""
Risk validation layer for a structured offer.

Scores a structure and its investor distribution against configurable
limits and rolls the individual checks up into an overall status.
"""
import logging
from typing import List, Optional, Sequence

from srt_platform.config import RiskLimits
from srt_platform.models import (
    PortfolioAggregate, TrancheAllocation, ConcentrationSummary,
    RiskMetric, RiskStatus, RiskAssessment,
)

logger = logging.getLogger(__name__)


# ── Status Helpers ────────────────────────────────────────────────────

def _is_enabled(check_id: str, limits: RiskLimits) -> bool:
    return check_id not in limits.disabled_checks


def _status_upper(value: float, limit: float, margin: float) -> RiskStatus:
    """Status for a metric that must stay below its limit."""
    if value > limit:
        return RiskStatus.BREACH
    if value > limit * (1 - margin):
        return RiskStatus.WARNING
    return RiskStatus.PASS


def _status_lower(value: float, limit: float, margin: float) -> RiskStatus:
    """Status for a metric that must stay above its limit."""
    if value < limit:
        return RiskStatus.BREACH
    if value < limit * (1 + margin):
        return RiskStatus.WARNING
    return RiskStatus.PASS


# ── Individual Checks ─────────────────────────────────────────────────

def _check_concentration(conc: ConcentrationSummary, limits: RiskLimits) -> List[RiskMetric]:
    metrics = []
    if conc.num_investors == 0:
        return metrics

    m = limits.proximity_margin
    if _is_enabled("single_investor", limits):
        metrics.append(RiskMetric(
            name="Single Investor Concentration", category="concentration",
            current_value=conc.max_concentration_percent, limit_value=limits.max_single_investor_pct,
            status=_status_upper(conc.max_concentration_percent, limits.max_single_investor_pct, m),
            description="Largest investor's share of distributed exposure",
        ))
    if _is_enabled("investor_hhi", limits):
        metrics.append(RiskMetric(
            name="Investor HHI", category="concentration", unit="pts",
            current_value=conc.hhi, limit_value=limits.max_investor_hhi,
            status=_status_upper(conc.hhi, limits.max_investor_hhi, m),
            description="Herfindahl-Hirschman Index over investor shares",
        ))
    return metrics


def _check_credit(aggregate: PortfolioAggregate, limits: RiskLimits) -> List[RiskMetric]:
    metrics = []
    m = limits.proximity_margin

    if aggregate.avg_pd is not None and _is_enabled("wa_pd", limits):
        wa_pd = aggregate.avg_pd * 100
        metrics.append(RiskMetric(
            name="Weighted Average PD", category="credit",
            current_value=wa_pd, limit_value=limits.max_wa_pd_pct,
            status=_status_upper(wa_pd, limits.max_wa_pd_pct, m),
            description="Portfolio probability of default",
        ))
    if aggregate.avg_lgd is not None and _is_enabled("wa_lgd", limits):
        wa_lgd = aggregate.avg_lgd * 100
        metrics.append(RiskMetric(
            name="Weighted Average LGD", category="credit",
            current_value=wa_lgd, limit_value=limits.max_wa_lgd_pct,
            status=_status_upper(wa_lgd, limits.max_wa_lgd_pct, m),
            description="Portfolio loss given default",
        ))
    if aggregate.avg_pd is not None and aggregate.avg_lgd is not None and _is_enabled("expected_loss", limits):
        el = aggregate.avg_pd * aggregate.avg_lgd * 100
        metrics.append(RiskMetric(
            name="Expected Loss", category="credit",
            current_value=el, limit_value=limits.max_expected_loss_pct,
            status=_status_upper(el, limits.max_expected_loss_pct, m),
            description="Calculated as PD x LGD",
        ))
    if aggregate.record_count > 0 and _is_enabled("high_risk_share", limits):
        share = aggregate.high_risk_count / aggregate.record_count * 100
        metrics.append(RiskMetric(
            name="High Risk Loan Share", category="credit",
            current_value=share, limit_value=limits.max_high_risk_share_pct,
            status=_status_upper(share, limits.max_high_risk_share_pct, m),
            description="Share of loans with PD above 5%",
        ))
    return metrics


def _check_structural(allocations: Sequence[TrancheAllocation], limits: RiskLimits) -> List[RiskMetric]:
    if not allocations or not _is_enabled("subordination", limits):
        return []
    senior = min(allocations, key=lambda a: a.seniority)
    subordination = 100 - senior.thickness_percent
    return [RiskMetric(
        name="Subordination Level", category="structural",
        current_value=subordination, limit_value=limits.min_subordination_pct,
        status=_status_lower(subordination, limits.min_subordination_pct, limits.proximity_margin),
        description="Credit enhancement beneath the senior tranche",
    )]


# ── Aggregation ───────────────────────────────────────────────────────

def score_metrics(metrics: Sequence[RiskMetric]) -> RiskAssessment:
    breaches = sum(1 for m in metrics if m.status == RiskStatus.BREACH)
    warnings = sum(1 for m in metrics if m.status == RiskStatus.WARNING)

    if breaches > 0:
        status, score = "breach", max(0, 100 - breaches * 20 - warnings * 10)
    elif warnings > 2:
        status, score = "elevated", max(60, 100 - warnings * 10)
    else:
        status, score = "acceptable", max(70, 100 - warnings * 5)
    return RiskAssessment(overall_status=status, risk_score=score, metrics=list(metrics))


def evaluate_structure_risk(
    aggregate: PortfolioAggregate,
    allocations: Sequence[TrancheAllocation],
    conc: Optional[ConcentrationSummary] = None,
    limits: Optional[RiskLimits] = None,
) -> RiskAssessment:
    limits = limits or RiskLimits()
    conc = conc or ConcentrationSummary()

    metrics: List[RiskMetric] = []
    metrics.extend(_check_concentration(conc, limits))
    metrics.extend(_check_credit(aggregate, limits))
    metrics.extend(_check_structural(allocations, limits))

    assessment = score_metrics(metrics)
    if assessment.overall_status != "acceptable":
        logger.warning(
            "Risk validation for %s: %s (score %.0f)",
            aggregate.dataset_name, assessment.overall_status, assessment.risk_score,
        )
    return assessment
