import pandas as pd
import pytest

from srt_platform.models import (
    PortfolioAggregate, TrancheDefinition, TrancheStructure, ConsumerLoan, CorporateTermLoan,
)
from srt_platform.portfolio import records_to_frame


@pytest.fixture
def aggregate():
    """1,000,000 book at a 6% weighted rate."""
    return PortfolioAggregate(
        dataset_name="demo",
        total_value=1_000_000,
        record_count=100,
        avg_interest_rate=6.0,
        high_risk_count=4,
        avg_pd=0.02,
        avg_lgd=0.40,
    )


@pytest.fixture
def tranches():
    return [
        TrancheDefinition(id="sen", name="Senior", thickness_percent=70, cost_bps=150),
        TrancheDefinition(id="mez", name="Mezz", thickness_percent=20, cost_bps=250),
        TrancheDefinition(id="sub", name="Sub", thickness_percent=10, cost_bps=450),
    ]


@pytest.fixture
def structure(tranches):
    return TrancheStructure(id="s1", name="Deal 1", dataset_name="demo", tranches=tranches)


@pytest.fixture
def loan_tape():
    records = [
        ConsumerLoan(loan_id="C1", opening_balance=10_000, interest_rate=5.0, pd=0.01, lgd=0.6, term=36),
        ConsumerLoan(loan_id="C2", opening_balance=30_000, interest_rate=7.0, pd=0.08, lgd=0.7, term=48),
        CorporateTermLoan(loan_id="T1", borrower_name="Acme", opening_balance=60_000,
                          interest_rate=4.0, pd=0.02, lgd=0.4, country="NL", credit_rating="BB"),
    ]
    return records_to_frame(records)


@pytest.fixture
def empty_tape():
    return pd.DataFrame(columns=["loan_id", "opening_balance", "interest_rate"])
