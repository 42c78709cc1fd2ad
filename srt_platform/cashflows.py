"""
Pre-trade cashflow projection for a loan tape.

Runs each loan forward month by month: annuity amortisation, then defaults
(monthly PD from annual), then prepayments (SMM from CPR), with recoveries
on defaulted principal arriving after a fixed lag. Servicing is charged on
the opening balance.
"""
import logging
from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd

from srt_platform.config import CashflowAssumptions

logger = logging.getLogger(__name__)

_BALANCE_EPS = 1e-8

MONTHLY_COLUMNS = [
    "month", "interest_collected", "scheduled_principal", "prepayments",
    "defaults", "recoveries", "servicing_fee", "net_cash_to_bank", "ending_balance",
]


# ── Rate Helpers ──────────────────────────────────────────────────────

def pmt(rate: float, nper: int, pv: float) -> float:
    """Level annuity payment; straight-line when the rate is zero."""
    if rate == 0:
        return pv / max(nper, 1)
    growth = (1 + rate) ** nper
    return pv * (rate * growth) / (growth - 1)


def annual_to_monthly_pd(pd_annual: float) -> float:
    return 1 - (1 - pd_annual) ** (1 / 12)


def cpr_to_smm(cpr: float) -> float:
    return 1 - (1 - cpr) ** (1 / 12)


def _to_decimal(value) -> float:
    """Rates above 1 are read as percentages."""
    v = pd.to_numeric(value, errors="coerce")
    if pd.isna(v) or not np.isfinite(v):
        return 0.0
    return v / 100 if v > 1 else float(v)


# ── Normalisation ─────────────────────────────────────────────────────

def normalize_loans(df: pd.DataFrame) -> pd.DataFrame:
    """Fill monthly_rate, remaining_term and monthly_payment where missing."""
    out = df.copy()
    out["opening_balance"] = pd.to_numeric(out["opening_balance"], errors="coerce").fillna(0.0)

    if "monthly_rate" not in out.columns:
        out["monthly_rate"] = np.nan
    rate_col = "interest_rate (annual)" if "interest_rate (annual)" in out.columns else "interest_rate"
    if rate_col in out.columns:
        derived = out[rate_col].apply(_to_decimal) / 12
    else:
        derived = pd.Series(0.0, index=out.index)
    out["monthly_rate"] = out["monthly_rate"].fillna(derived)

    if "remaining_term" not in out.columns:
        out["remaining_term"] = np.nan
    maturity = pd.to_numeric(out.get("maturity_months", pd.Series(60, index=out.index)), errors="coerce").fillna(60)
    elapsed = pd.to_numeric(out.get("months_elapsed", pd.Series(0, index=out.index)), errors="coerce").fillna(0)
    default_term = (maturity - elapsed).round().clip(lower=1)
    out["remaining_term"] = pd.to_numeric(out["remaining_term"], errors="coerce").fillna(default_term)

    if "monthly_payment" not in out.columns:
        out["monthly_payment"] = np.nan
    missing = out["monthly_payment"].isna()
    out.loc[missing, "monthly_payment"] = [
        pmt(r, int(max(n, 1)), b)
        for r, n, b in zip(
            out.loc[missing, "monthly_rate"],
            out.loc[missing, "remaining_term"],
            out.loc[missing, "opening_balance"],
        )
    ]
    return out


# ── Projection ────────────────────────────────────────────────────────

def project_cashflows(
    loans: pd.DataFrame,
    assumptions: Optional[CashflowAssumptions] = None,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Project the tape forward.

    Returns (monthly, by_loan): the portfolio totals per month, and the
    loan-level rows keyed by loan_id and month.
    """
    a = assumptions or CashflowAssumptions()
    months = a.months
    if loans.empty or months <= 0:
        return pd.DataFrame(columns=MONTHLY_COLUMNS), pd.DataFrame()

    norm = normalize_loans(loans)
    n = len(norm)
    ids = norm["loan_id"].astype(str).values if "loan_id" in norm.columns else np.arange(n).astype(str)

    pd_m = annual_to_monthly_pd(a.pd_annual)
    smm = cpr_to_smm(a.cpr_annual)
    serv_m = a.servicing_bps_pa / 10000 / 12
    lag = max(int(a.recovery_lag_months), 0)

    bal = norm["opening_balance"].to_numpy(dtype=float)
    rate = norm["monthly_rate"].to_numpy(dtype=float)
    payment = norm["monthly_payment"].to_numpy(dtype=float)
    mrem = norm["remaining_term"].to_numpy(dtype=float).clip(min=0)
    # recoveries[:, t] = amount collected in month t
    recoveries = np.zeros((n, months + lag + 2))

    monthly_rows = []
    loan_frames = []
    for t in range(1, months + 1):
        active = (bal > _BALANCE_EPS) & (mrem > 0)
        ob = np.where(active, bal, 0.0)

        pay = np.minimum(payment, ob * (1 + rate) + 1e-9)
        interest = ob * rate
        sched = np.minimum(np.maximum(pay - interest, 0.0), ob)
        after_sched = ob - sched
        default = np.minimum(after_sched * pd_m, after_sched)
        after_default = after_sched - default
        prepay = np.minimum(after_default * smm, after_default)
        ending = after_default - prepay
        servicing = ob * serv_m

        interest, sched, default, prepay, servicing = (
            np.where(active, x, 0.0) for x in (interest, sched, default, prepay, servicing)
        )

        recoveries[:, t + lag] += default * (1 - a.lgd)
        recovered = recoveries[:, t].copy()

        bal = np.where(active, ending, bal)
        mrem = np.where(active, np.maximum(mrem - 1, 0), mrem)

        loan_frames.append(pd.DataFrame({
            "loan_id": ids,
            "month": t,
            "opening_balance": ob,
            "interest": interest,
            "scheduled_principal": sched,
            "prepayment": prepay,
            "default": default,
            "recovery": recovered,
            "servicing_fee": servicing,
            "ending_balance": np.where(active, ending, 0.0),
        }))

        tot_int, tot_sched, tot_prepay = interest.sum(), sched.sum(), prepay.sum()
        tot_rec, tot_serv = recovered.sum(), servicing.sum()
        monthly_rows.append({
            "month": t,
            "interest_collected": tot_int,
            "scheduled_principal": tot_sched,
            "prepayments": tot_prepay,
            "defaults": default.sum(),
            "recoveries": tot_rec,
            "servicing_fee": tot_serv,
            "net_cash_to_bank": tot_int + tot_sched + tot_prepay + tot_rec - tot_serv,
            "ending_balance": float(bal.sum()),
        })

    monthly = pd.DataFrame(monthly_rows, columns=MONTHLY_COLUMNS)
    by_loan = pd.concat(loan_frames, ignore_index=True)
    logger.debug("Projected %d loans over %d months", n, months)
    return monthly, by_loan


def summarize_projection(monthly: pd.DataFrame) -> Dict[str, float]:
    """Lifetime totals of a monthly projection."""
    keys = ["interest_collected", "scheduled_principal", "prepayments",
            "defaults", "recoveries", "servicing_fee", "net_cash_to_bank"]
    if monthly.empty:
        return {k: 0.0 for k in keys}
    return {k: float(monthly[k].sum()) for k in keys}
