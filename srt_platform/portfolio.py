"""
Portfolio aggregates over loan tapes.

Reduces a loan-level DataFrame (any mix of consumer and corporate records)
to the PortfolioAggregate the structuring core consumes, plus the
composition breakdowns shown next to it.
"""
import logging
from typing import Dict, Optional, Sequence

import numpy as np
import pandas as pd
from pydantic import BaseModel

from srt_platform.config import EXPOSURE_DIMENSIONS
from srt_platform.models import PortfolioAggregate, ConsumerLoan, CorporateTermLoan

logger = logging.getLogger(__name__)

HIGH_RISK_PD = 0.05


class PortfolioFilter(BaseModel):
    loan_type: Optional[str] = None
    min_balance: Optional[float] = None
    max_balance: Optional[float] = None
    min_interest_rate: Optional[float] = None
    max_interest_rate: Optional[float] = None
    max_pd: Optional[float] = None
    industry_sector: Optional[str] = None
    country: Optional[str] = None
    credit_rating: Optional[str] = None

    def is_empty(self) -> bool:
        return all(v is None for v in self.model_dump().values())


def records_to_frame(records: Sequence) -> pd.DataFrame:
    """Flatten loan records (ConsumerLoan / CorporateTermLoan) into one frame."""
    rows = [r.model_dump() for r in records]
    return pd.DataFrame(rows)


def frame_to_records(df: pd.DataFrame) -> list:
    """Inverse of records_to_frame; rows are dispatched on loan_type."""
    records = []
    for row in df.to_dict(orient="records"):
        clean = {k: v for k, v in row.items() if not (isinstance(v, float) and np.isnan(v))}
        if clean.get("loan_type") == "corporate_term_loan":
            records.append(CorporateTermLoan(**clean))
        else:
            records.append(ConsumerLoan(**clean))
    return records


def apply_filters(df: pd.DataFrame, flt: Optional[PortfolioFilter] = None) -> pd.DataFrame:
    if flt is None or flt.is_empty() or df.empty:
        return df

    mask = pd.Series(True, index=df.index)
    if flt.loan_type is not None and "loan_type" in df.columns:
        mask &= df["loan_type"] == flt.loan_type
    if flt.min_balance is not None:
        mask &= df["opening_balance"] >= flt.min_balance
    if flt.max_balance is not None:
        mask &= df["opening_balance"] <= flt.max_balance
    if flt.min_interest_rate is not None:
        mask &= df["interest_rate"] >= flt.min_interest_rate
    if flt.max_interest_rate is not None:
        mask &= df["interest_rate"] <= flt.max_interest_rate
    if flt.max_pd is not None and "pd" in df.columns:
        mask &= df["pd"].fillna(0) <= flt.max_pd
    for col in ("industry_sector", "country", "credit_rating"):
        value = getattr(flt, col)
        if value is not None and col in df.columns:
            mask &= df[col] == value
    return df[mask]


# ── Aggregate ─────────────────────────────────────────────────────────

def compute_portfolio_aggregate(
    df: pd.DataFrame,
    dataset_name: str = "",
    flt: Optional[PortfolioFilter] = None,
) -> PortfolioAggregate:
    """Reduce a loan tape to totals.

    avg_interest_rate = sum(balance_i * rate_i) / sum(balance_i)
    high_risk_count   = #loans with PD > 5%
    """
    result = PortfolioAggregate(dataset_name=dataset_name)
    if df.empty or "opening_balance" not in df.columns:
        return result

    df = apply_filters(df, flt)
    result.record_count = len(df)
    if df.empty:
        return result

    balances = df["opening_balance"].fillna(0)
    total = float(balances.sum())
    result.total_value = max(total, 0.0)

    if "pd" in df.columns:
        result.high_risk_count = int((df["pd"].fillna(0) > HIGH_RISK_PD).sum())

    if total <= 0:
        logger.warning("Dataset %s has no positive balance; rates left at 0", dataset_name)
        return result

    if "interest_rate" in df.columns:
        result.avg_interest_rate = float((balances * df["interest_rate"].fillna(0)).sum() / total)
    if "pd" in df.columns:
        result.avg_pd = float((balances * df["pd"].fillna(0)).sum() / total)
    if "lgd" in df.columns:
        result.avg_lgd = float((balances * df["lgd"].fillna(0)).sum() / total)
    return result


# ── Composition ───────────────────────────────────────────────────────

RISK_BUCKETS = [
    ("Low Risk (0-1%)", 0.0, 0.01),
    ("Medium Risk (1-5%)", 0.01, 0.05),
    ("High Risk (>5%)", 0.05, np.inf),
]


def compute_risk_buckets(df: pd.DataFrame) -> pd.DataFrame:
    """Count and balance of loans per PD bucket; empty buckets are dropped."""
    if df.empty or "pd" not in df.columns:
        return pd.DataFrame(columns=["Bucket", "Count", "Value"])

    pds = df["pd"].fillna(0)
    rows = []
    for name, lo, hi in RISK_BUCKETS:
        in_bucket = (pds >= lo) & (pds < hi)
        if in_bucket.any():
            rows.append({
                "Bucket": name,
                "Count": int(in_bucket.sum()),
                "Value": float(df.loc[in_bucket, "opening_balance"].sum()),
            })
    return pd.DataFrame(rows, columns=["Bucket", "Count", "Value"])


def compute_borrower_concentration(df: pd.DataFrame, top_n: int = 10) -> pd.DataFrame:
    """Largest borrowers by exposure (corporate tapes only)."""
    columns = ["Borrower", "Total Exposure", "Loan Count", "Portfolio Share %", "Avg Interest Rate"]
    if df.empty or "borrower_name" not in df.columns:
        return pd.DataFrame(columns=columns)

    named = df[df["borrower_name"].notna()]
    total = named["opening_balance"].sum()
    if named.empty or total <= 0:
        return pd.DataFrame(columns=columns)

    grouped = named.groupby("borrower_name").agg(
        exposure=("opening_balance", "sum"),
        loans=("loan_id", "count"),
        rate=("interest_rate", "mean"),
    ).sort_values("exposure", ascending=False).head(top_n)

    result = pd.DataFrame({
        "Borrower": grouped.index,
        "Total Exposure": grouped["exposure"].values,
        "Loan Count": grouped["loans"].values,
        "Portfolio Share %": (grouped["exposure"].values / total * 100).round(2),
        "Avg Interest Rate": grouped["rate"].values.round(2),
    }).reset_index(drop=True)
    return result


def summarize_by_loan_type(df: pd.DataFrame) -> Dict[str, Dict[str, float]]:
    if df.empty or "loan_type" not in df.columns:
        return {}
    grouped = df.groupby("loan_type")["opening_balance"].agg(["count", "sum"])
    return {k: {"count": int(v["count"]), "value": float(v["sum"])} for k, v in grouped.iterrows()}


# ── Exposure Limits ───────────────────────────────────────────────────

EXPOSURE_COLUMNS = ["Key", "Loan Count", "Exposure", "Share %", "Limit", "Headroom", "Breach"]


def compute_exposure_by_dimension(
    df: pd.DataFrame,
    dimension: str,
    limits: Optional[Dict[str, float]] = None,
) -> pd.DataFrame:
    """Exposure per sector / borrower / country / rating against its limit.

    Keys without a limit carry NaN Limit and Headroom and never breach.
    A key breaches when its exposure is strictly above the limit.
    """
    if dimension not in EXPOSURE_DIMENSIONS:
        raise ValueError(f"Unknown exposure dimension {dimension!r}")
    column = EXPOSURE_DIMENSIONS[dimension]
    if df.empty or column not in df.columns:
        return pd.DataFrame(columns=EXPOSURE_COLUMNS)

    keyed = df[df[column].notna()]
    if keyed.empty:
        return pd.DataFrame(columns=EXPOSURE_COLUMNS)

    grouped = keyed.groupby(column).agg(
        loans=("opening_balance", "size"),
        exposure=("opening_balance", "sum"),
    ).sort_values("exposure", ascending=False, kind="stable")

    total = float(df["opening_balance"].sum())
    limits = limits or {}
    result = pd.DataFrame({
        "Key": grouped.index.astype(str),
        "Loan Count": grouped["loans"].values,
        "Exposure": grouped["exposure"].values,
    })
    result["Share %"] = (result["Exposure"] / total * 100).round(2) if total > 0 else 0.0
    result["Limit"] = result["Key"].map(limits).astype(float)
    result["Headroom"] = result["Limit"] - result["Exposure"]
    result["Breach"] = (result["Exposure"] > result["Limit"]).fillna(False).astype(bool)

    n_breach = int(result["Breach"].sum())
    if n_breach:
        logger.warning("%d %s exposure limit breach(es)", n_breach, dimension)
    return result[EXPOSURE_COLUMNS].reset_index(drop=True)
