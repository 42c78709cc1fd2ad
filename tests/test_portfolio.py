"""
Portfolio aggregate provider over loan tapes.
"""
import pandas as pd
import pytest

from srt_platform.models import ConsumerLoan, CorporateTermLoan, LoanTape
from srt_platform.portfolio import (
    PortfolioFilter, apply_filters, compute_portfolio_aggregate, compute_risk_buckets,
    compute_borrower_concentration, compute_exposure_by_dimension, summarize_by_loan_type,
    frame_to_records, records_to_frame,
)


class TestAggregate:
    def test_weighted_rate(self, loan_tape):
        agg = compute_portfolio_aggregate(loan_tape, "demo")
        assert agg.total_value == pytest.approx(100_000)
        assert agg.record_count == 3
        # (10000*5 + 30000*7 + 60000*4) / 100000
        assert agg.avg_interest_rate == pytest.approx(5.0)
        assert agg.high_risk_count == 1
        assert agg.avg_pd == pytest.approx((10_000 * 0.01 + 30_000 * 0.08 + 60_000 * 0.02) / 100_000)
        assert agg.dataset_name == "demo"

    def test_empty_tape(self, empty_tape):
        agg = compute_portfolio_aggregate(empty_tape, "empty")
        assert agg.total_value == 0
        assert agg.record_count == 0
        assert agg.avg_interest_rate == 0
        assert agg.avg_pd is None

    def test_zero_balance(self):
        df = pd.DataFrame({"loan_id": ["a"], "opening_balance": [0.0], "interest_rate": [5.0]})
        agg = compute_portfolio_aggregate(df, "zero")
        assert agg.record_count == 1
        assert agg.avg_interest_rate == 0

    def test_filtered(self, loan_tape):
        agg = compute_portfolio_aggregate(loan_tape, "demo", PortfolioFilter(loan_type="consumer"))
        assert agg.record_count == 2
        assert agg.total_value == pytest.approx(40_000)


class TestFilters:
    def test_empty_filter_is_identity(self, loan_tape):
        assert PortfolioFilter().is_empty()
        assert len(apply_filters(loan_tape, PortfolioFilter())) == 3

    def test_bounds(self, loan_tape):
        out = apply_filters(loan_tape, PortfolioFilter(max_pd=0.05, min_balance=20_000))
        assert out["loan_id"].tolist() == ["T1"]

    def test_categorical(self, loan_tape):
        assert apply_filters(loan_tape, PortfolioFilter(country="NL"))["loan_id"].tolist() == ["T1"]
        assert apply_filters(loan_tape, PortfolioFilter(credit_rating="AAA")).empty


class TestComposition:
    def test_risk_buckets(self, loan_tape):
        buckets = compute_risk_buckets(loan_tape).set_index("Bucket")
        assert buckets.loc["Medium Risk (1-5%)", "Count"] == 2
        assert buckets.loc["High Risk (>5%)", "Value"] == pytest.approx(30_000)

    def test_borrower_concentration(self, loan_tape):
        top = compute_borrower_concentration(loan_tape)
        assert top["Borrower"].tolist() == ["Acme"]
        assert top["Portfolio Share %"].iloc[0] == pytest.approx(100)

    def test_by_loan_type(self, loan_tape):
        summary = summarize_by_loan_type(loan_tape)
        assert summary["consumer"] == {"count": 2, "value": pytest.approx(40_000)}
        assert summary["corporate_term_loan"]["count"] == 1


class TestLoanRecords:
    def test_discriminated_union(self):
        tape = LoanTape.model_validate({"records": [
            {"loan_type": "consumer", "loan_id": 1, "opening_balance": 100},
            {"loan_type": "corporate_term_loan", "loan_id": "X", "borrower_name": "Acme", "opening_balance": 50},
        ]})
        assert isinstance(tape.records[0], ConsumerLoan)
        assert tape.records[0].loan_id == "1"
        assert isinstance(tape.records[1], CorporateTermLoan)

    def test_frame_round_trip(self, loan_tape):
        records = frame_to_records(loan_tape)
        assert [type(r).__name__ for r in records] == ["ConsumerLoan", "ConsumerLoan", "CorporateTermLoan"]
        assert records[2].borrower_name == "Acme"


@pytest.fixture
def corporate_tape():
    loans = [
        ("A1", "Acme", 400_000, "Energy", "NL", "BB"),
        ("A2", "Acme", 100_000, "Energy", "NL", "BB"),
        ("B1", "Brio", 300_000, "Retail", "DE", "BBB"),
        ("C1", "Cato", 200_000, "Retail", "DE", None),
    ]
    return records_to_frame([
        CorporateTermLoan(loan_id=lid, borrower_name=b, opening_balance=bal,
                          industry_sector=sector, country=country, credit_rating=rating)
        for lid, b, bal, sector, country, rating in loans
    ])


class TestExposureLimits:
    def test_grouped_by_sector(self, corporate_tape):
        df = compute_exposure_by_dimension(corporate_tape, "sector")
        assert df["Key"].tolist() == ["Energy", "Retail"]
        assert df["Loan Count"].tolist() == [2, 2]
        assert df["Exposure"].tolist() == [500_000, 500_000]
        assert df["Share %"].tolist() == [50.0, 50.0]
        assert df["Limit"].isna().all()
        assert not df["Breach"].any()

    def test_breach_only_above_limit(self, corporate_tape):
        df = compute_exposure_by_dimension(
            corporate_tape, "borrower", {"Acme": 450_000, "Brio": 300_000},
        ).set_index("Key")
        assert bool(df.loc["Acme", "Breach"]) is True
        assert df.loc["Acme", "Headroom"] == pytest.approx(-50_000)
        assert bool(df.loc["Brio", "Breach"]) is False
        assert pd.isna(df.loc["Cato", "Limit"])
        assert int(df["Breach"].sum()) == 1

    def test_missing_keys_skipped_but_share_uses_whole_book(self, corporate_tape):
        df = compute_exposure_by_dimension(corporate_tape, "rating")
        assert set(df["Key"]) == {"BB", "BBB"}
        assert df.set_index("Key").loc["BBB", "Share %"] == pytest.approx(30.0)

    def test_consumer_tape_has_no_sector(self, loan_tape):
        df = compute_exposure_by_dimension(loan_tape[loan_tape["loan_type"] == "consumer"], "sector")
        assert df.empty
        assert "Breach" in df.columns

    def test_unknown_dimension(self, corporate_tape):
        with pytest.raises(ValueError):
            compute_exposure_by_dimension(corporate_tape, "vintage")
