from datetime import datetime
from typing import Optional, List, Dict, Any, Union, Literal, Annotated
from enum import Enum
from pydantic import BaseModel, Field, field_validator


# ── Portfolio ─────────────────────────────────────────────────────────

class PortfolioAggregate(BaseModel):
    """
    Reduced view of a loan dataset. The allocation engine only ever reads this,
    never the raw loan records.
    """
    dataset_name: str = ""
    total_value: float = Field(0.0, ge=0, description="Sum of opening balances")
    record_count: int = Field(0, ge=0)
    avg_interest_rate: float = Field(0.0, description="Percentage, e.g. 5.5 means 5.5%")
    high_risk_count: int = Field(0, ge=0, description="Records with PD > 0.05")

    # Balance-weighted credit inputs (decimals); None when the tape lacks them
    avg_pd: Optional[float] = None
    avg_lgd: Optional[float] = None


# ── Loan Records ──────────────────────────────────────────────────────

class ConsumerLoan(BaseModel):
    """
    Consumer finance loan as it appears on a retail loan tape.
    """
    loan_type: Literal["consumer"] = "consumer"
    loan_id: str
    loan_amount: float = 0.0
    opening_balance: float
    interest_rate: float = Field(0.0, description="Annual rate, percent")
    term: int = 60
    remaining_term: Optional[int] = None
    pd: float = 0.0
    lgd: float = 0.0
    ltv: Optional[float] = None
    credit_score: Optional[int] = None

    @field_validator("loan_id", mode="before")
    def coerce_loan_id(cls, v):
        return str(v)


class CorporateTermLoan(BaseModel):
    """
    Corporate term loan (CTL) with borrower and credit attributes.
    """
    loan_type: Literal["corporate_term_loan"] = "corporate_term_loan"
    loan_id: str
    borrower_name: str
    loan_amount: float = 0.0
    opening_balance: float
    current_balance: Optional[float] = None
    interest_rate: float = Field(0.0, description="Annual rate, percent")
    margin: Optional[float] = None
    credit_rating: Optional[str] = None
    pd: float = 0.0
    lgd: float = 0.0
    secured_unsecured: Optional[str] = None
    industry_sector: Optional[str] = None
    country: Optional[str] = None
    leverage_ratio: Optional[float] = None

    @field_validator("loan_id", mode="before")
    def coerce_loan_id(cls, v):
        return str(v)


LoanRecord = Annotated[Union[ConsumerLoan, CorporateTermLoan], Field(discriminator="loan_type")]


class LoanTape(BaseModel):
    """Wrapper used to validate a heterogeneous list of loan records."""
    records: List[LoanRecord] = Field(default_factory=list)


# ── Tranche Structures ────────────────────────────────────────────────

class TrancheDefinition(BaseModel):
    id: str
    name: str
    thickness_percent: float = Field(0.0, ge=0, le=100)
    cost_bps: float = Field(0.0, ge=0, description="Coupon cost in basis points")
    hedged_percent: float = Field(0.0, ge=0, le=100)

    @field_validator("name", mode="before")
    def coerce_name(cls, v):
        if v is None:
            return ""
        return str(v)


class TrancheStructure(BaseModel):
    """
    A named tranche stack over one dataset. Replaced as a whole on save.
    """
    id: str
    name: str
    dataset_name: str
    tranches: List[TrancheDefinition] = Field(default_factory=list)
    additional_transaction_costs: float = Field(0.0, ge=0)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class TrancheAllocation(BaseModel):
    """One tranche placed in the capital stack. Derived, never persisted."""
    id: str
    name: str
    thickness_percent: float
    size: float
    rating: str
    cost_bps: float
    hedged_percent: float = 0.0
    attachment_point: float
    detachment_point: float
    seniority: int  # 0 = most senior
    is_for_sale: bool = False
    hedged_amount: float = 0.0
    protection_cost: float = 0.0
    assigned_investor: Optional[str] = None


class StructureMetrics(BaseModel):
    total_value: float = 0.0
    total_thickness: float = 0.0
    weighted_avg_cost_bps: float = 0.0
    total_cost: float = 0.0
    cost_percentage: float = 0.0
    tranche_count: int = 0


class AllocationResult(BaseModel):
    allocations: List[TrancheAllocation] = Field(default_factory=list)
    metrics: StructureMetrics = Field(default_factory=StructureMetrics)


# ── Distribution ──────────────────────────────────────────────────────

class InvestorRollup(BaseModel):
    investor_id: str
    total_exposure: float = 0.0
    total_percent: float = 0.0
    weighted_cost_bps: float = 0.0
    tranche_count: int = 0
    tranche_ids: List[str] = Field(default_factory=list)


class ConcentrationSummary(BaseModel):
    hhi: float = 0.0  # 0 - 10,000
    max_concentration_percent: float = 0.0
    num_investors: int = 0
    hhi_band: str = "n/a"
    max_concentration_band: str = "n/a"


# ── Scenario Analytics ────────────────────────────────────────────────

class ScenarioAnalytics(BaseModel):
    scenario: str
    notional_multiplier: float
    cost_multiplier: float
    yield_multiplier: float
    risk_ratio: float
    adjusted_notional: float = 0.0
    adjusted_yield: float = 0.0
    risk_weighted_assets: float = 0.0
    internal_capital_required: float = 0.0
    revenue: float = 0.0
    adjusted_trade_costs: float = 0.0
    net_earnings: float = 0.0
    roe: float = 0.0


class HedgedRwaLine(BaseModel):
    """Risk weight build-up for one tranche after protection is bought."""
    tranche_id: str
    tranche_name: str
    amount: float
    thickness_percent: float
    initial_rw: float
    adjusted_rw: float
    rwea_before_sharing: float
    shared_percent: float
    final_rwea: float


class SummaryLine(BaseModel):
    original: float = 0.0
    improvement: float = 0.0


class ScenarioSummary(BaseModel):
    portfolio_protected: float = 0.0
    total_cost_of_transaction: float = 0.0
    initial_capital_released: SummaryLine = Field(default_factory=SummaryLine)
    new_loan_amount: SummaryLine = Field(default_factory=SummaryLine)
    new_revenue: SummaryLine = Field(default_factory=SummaryLine)
    new_roe: SummaryLine = Field(default_factory=SummaryLine)


# ── Validation & Risk ─────────────────────────────────────────────────

class ValidationIssue(BaseModel):
    severity: str  # "HARD", "SOFT"
    message: str
    field: Optional[str] = None
    value: Any = None


class RiskStatus(str, Enum):
    PASS = "pass"
    WARNING = "warning"
    BREACH = "breach"


class RiskMetric(BaseModel):
    name: str
    category: str  # "concentration", "credit", "structural"
    current_value: float
    limit_value: float
    unit: str = "%"
    status: RiskStatus = RiskStatus.PASS
    description: str = ""


class RiskAssessment(BaseModel):
    overall_status: str = "acceptable"  # "acceptable", "elevated", "breach"
    risk_score: float = 100.0
    metrics: List[RiskMetric] = Field(default_factory=list)

    def by_category(self) -> Dict[str, List[RiskMetric]]:
        grouped: Dict[str, List[RiskMetric]] = {}
        for m in self.metrics:
            grouped.setdefault(m.category, []).append(m)
        return grouped


# ── Unified Analysis ──────────────────────────────────────────────────

class StructureAnalysis(BaseModel):
    """Everything derived for one structure over one aggregate."""
    structure: TrancheStructure
    aggregate: PortfolioAggregate
    allocations: List[TrancheAllocation] = Field(default_factory=list)
    metrics: StructureMetrics = Field(default_factory=StructureMetrics)
    investors: List[InvestorRollup] = Field(default_factory=list)
    concentration: ConcentrationSummary = Field(default_factory=ConcentrationSummary)
    scenarios: Dict[str, ScenarioAnalytics] = Field(default_factory=dict)
    summary: ScenarioSummary = Field(default_factory=ScenarioSummary)
    hedged_rwa: List[HedgedRwaLine] = Field(default_factory=list)
    risk: RiskAssessment = Field(default_factory=RiskAssessment)
