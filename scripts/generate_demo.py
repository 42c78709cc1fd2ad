import logging
import random
import sys
from pathlib import Path

# Add project root to path to import srt_platform
sys.path.append(str(Path(__file__).parent.parent))
from srt_platform.config import save_platform_config, PlatformConfig, RiskLimits, configure_logging
from srt_platform.models import ConsumerLoan, CorporateTermLoan
from srt_platform.portfolio import records_to_frame
from srt_platform.store import LocalStore
from srt_platform.structure import StructureEditor

logger = logging.getLogger(__name__)

# We assume we run this from the project root
DATA_DIR = Path("data")

# Constants
INDUSTRIES = [
    "Software", "Healthcare Providers", "Chemicals", "Food Products",
    "Building Products", "Specialty Retail", "Media & Entertainment",
    "IT Services", "Hotels, Restaurants & Leisure", "Logistics",
]

BORROWERS = [f"Company {i}" for i in range(101, 141)]

COUNTRIES = ["NL", "NL", "NL", "DE", "DE", "BE", "FR", "UK", "ES", "IT"]

CORPORATE_RATINGS = ["BBB", "BBB", "BB", "BB", "BB", "B", "B", "B", "CCC"]

# Annual PD by rating grade
RATING_PD = {"BBB": 0.004, "BB": 0.012, "B": 0.035, "CCC": 0.12}


def generate_consumer_tape(num_loans=400, seed=7):
    rng = random.Random(seed)
    records = []
    for i in range(num_loans):
        amount = round(rng.uniform(5_000, 45_000), 2)
        term = rng.choice([24, 36, 48, 60, 72])
        elapsed = rng.randint(0, term // 2)
        score = rng.randint(560, 820)
        # Lower scores carry higher PD and rate
        pd_ = round(max(0.002, (820 - score) / 260 * 0.09 + rng.uniform(-0.005, 0.005)), 4)
        records.append(ConsumerLoan(
            loan_id=f"CL-{i + 1:05d}",
            loan_amount=amount,
            opening_balance=round(amount * (1 - elapsed / term) * rng.uniform(0.95, 1.0), 2),
            interest_rate=round(4.5 + pd_ * 60 + rng.uniform(-0.5, 0.5), 2),
            term=term,
            remaining_term=term - elapsed,
            pd=pd_,
            lgd=round(rng.uniform(0.55, 0.85), 3),
            credit_score=score,
        ))
    return records_to_frame(records)


def generate_corporate_tape(num_loans=80, seed=11):
    rng = random.Random(seed)
    records = []
    for i in range(num_loans):
        rating = rng.choice(CORPORATE_RATINGS)
        amount = round(rng.uniform(1_000_000, 12_000_000), 2)
        margin = round(rng.uniform(1.75, 5.5) + (1.5 if rating == "CCC" else 0), 2)
        secured = rng.random() < 0.75
        records.append(CorporateTermLoan(
            loan_id=f"CT-{i + 1:04d}",
            borrower_name=rng.choice(BORROWERS),
            loan_amount=amount,
            opening_balance=round(amount * rng.uniform(0.6, 1.0), 2),
            interest_rate=round(3.2 + margin, 2),
            margin=margin,
            credit_rating=rating,
            pd=RATING_PD[rating],
            lgd=round(rng.uniform(0.25, 0.45) if secured else rng.uniform(0.55, 0.75), 3),
            secured_unsecured="Secured" if secured else "Unsecured",
            industry_sector=rng.choice(INDUSTRIES),
            country=rng.choice(COUNTRIES),
            leverage_ratio=round(rng.uniform(2.0, 6.5), 2),
        ))
    return records_to_frame(records)


def setup_configs():
    """Corporate book gets tighter credit limits than the consumer book."""
    save_platform_config("Consumer_Book", PlatformConfig())
    save_platform_config("Corporate_Book", PlatformConfig(
        risk_limits=RiskLimits(max_wa_pd_pct=3.0, max_wa_lgd_pct=40.0, max_single_investor_pct=40.0),
        exposure_limits={"country": {"DE": 2_000_000, "UK": 1_000_000}},
    ))


if __name__ == "__main__":
    configure_logging()
    store = LocalStore(DATA_DIR)
    setup_configs()

    for name, df in [
        ("Consumer_Book", generate_consumer_tape()),
        ("Corporate_Book", generate_corporate_tape()),
    ]:
        soft = store.save_dataset(name, df)
        for issue in soft:
            logger.warning("%s: %s", name, issue.message)

        editor = StructureEditor(f"{name} Default", name)
        editor.save(store)
        logger.info("Generated %s with default structure", name)
