import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional, List
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

CONFIG_PATH = Path(os.environ.get("SRT_CONFIG_PATH", "data/platform_config.json"))

SCENARIO_ORDER: List[str] = ["current", "postHedge", "futureUpsize"]


class StructureRules(BaseModel):
    """Save-time rules for tranche structures."""
    min_tranches: int = 3
    max_tranches: int = 10
    target_thickness: float = 100.0
    # Thicknesses come from repeated decimal edits; compare with a tolerance
    thickness_tolerance: float = 1e-6


class ScenarioMultipliers(BaseModel):
    notional: float = 1.0
    cost: float = 1.0
    yield_: float = Field(1.0, alias="yield")

    model_config = {"populate_by_name": True}


def _default_scenarios() -> Dict[str, ScenarioMultipliers]:
    return {
        "current": ScenarioMultipliers(notional=1.0, cost=1.0, yield_=1.0),
        "postHedge": ScenarioMultipliers(notional=1.0, cost=1.15, yield_=0.95),
        "futureUpsize": ScenarioMultipliers(notional=1.5, cost=0.9, yield_=1.1),
    }


class AnalyticsConfig(BaseModel):
    """Capital and scenario parameters. Defaults reproduce the desk's existing tool."""
    risk_ratio: float = 0.08             # 8% risk ratio
    risk_weighting_factor: float = 1.2
    capital_ratio: float = 0.08          # 8% capital requirement on RWA
    scenarios: Dict[str, ScenarioMultipliers] = Field(default_factory=_default_scenarios)

    @field_validator("scenarios", mode="after")
    @classmethod
    def fill_missing_scenarios(cls, v: Dict[str, ScenarioMultipliers]) -> Dict[str, ScenarioMultipliers]:
        # All three presets always present; overrides replace by name
        merged = _default_scenarios()
        merged.update(v)
        return merged


class RiskLimits(BaseModel):
    """Thresholds for the risk validation layer."""
    proximity_margin: float = 0.20       # warning band as fraction of limit
    max_single_investor_pct: float = 50.0
    max_investor_hhi: float = 2500.0
    max_wa_pd_pct: float = 3.5
    max_wa_lgd_pct: float = 45.0
    max_expected_loss_pct: float = 1.5
    max_high_risk_share_pct: float = 10.0
    min_subordination_pct: float = 5.0

    # Disabled checks (list of check_id strings)
    disabled_checks: List[str] = Field(default_factory=list)


class CashflowAssumptions(BaseModel):
    months: int = 60
    pd_annual: float = 0.025
    lgd: float = 0.725
    cpr_annual: float = 0.22
    servicing_bps_pa: float = 100.0
    recovery_lag_months: int = 12


EXPOSURE_DIMENSIONS: Dict[str, str] = {
    "sector": "industry_sector",
    "borrower": "borrower_name",
    "country": "country",
    "rating": "credit_rating",
}


class PlatformConfig(BaseModel):
    structure_rules: StructureRules = StructureRules()
    analytics: AnalyticsConfig = AnalyticsConfig()
    risk_limits: RiskLimits = RiskLimits()
    cashflow: CashflowAssumptions = CashflowAssumptions()
    # dimension -> key -> limit amount, e.g. {"sector": {"Energy": 250000}}
    exposure_limits: Dict[str, Dict[str, float]] = Field(default_factory=dict)

    def set_exposure_limit(self, dimension: str, key: str, amount: float) -> None:
        if dimension not in EXPOSURE_DIMENSIONS:
            raise ValueError(f"Unknown exposure dimension {dimension!r}")
        if amount <= 0:
            raise ValueError("Exposure limit must be positive")
        self.exposure_limits.setdefault(dimension, {})[key] = float(amount)

    def remove_exposure_limit(self, dimension: str, key: str) -> None:
        limits = self.exposure_limits.get(dimension, {})
        limits.pop(key, None)
        if not limits:
            self.exposure_limits.pop(dimension, None)

    def to_dict(self):
        return self.model_dump(by_alias=True)


def load_config(path: Optional[Path] = None) -> Dict[str, dict]:
    path = path or CONFIG_PATH
    if not path.exists():
        return {}
    try:
        with open(path, "r") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Could not read config %s (%s); using defaults", path, e)
        return {}


def get_platform_config(dataset_name: str, path: Optional[Path] = None) -> PlatformConfig:
    data = load_config(path)
    cfg = data.get(dataset_name, {})
    return PlatformConfig(**cfg)


def save_platform_config(dataset_name: str, config: PlatformConfig, path: Optional[Path] = None):
    path = path or CONFIG_PATH
    data = load_config(path)
    data[dataset_name] = config.to_dict()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(data, f, indent=2)
    logger.info("Saved platform config for %s", dataset_name)


def list_configured_datasets(path: Optional[Path] = None):
    return list(load_config(path).keys())


def configure_logging(level: str = "INFO") -> None:
    """Root logger setup for the app and scripts."""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
