"""
data_generator.py — Synthetic repair-order labor issue generator.

Populates ro_issues (see database.py) with realistic-looking review data
for development, testing and demos. All data is fake.

Usage:
    python src/data_generator.py
"""

import random
import sys
from datetime import date, timedelta
from pathlib import Path
from typing import Optional

from faker import Faker

# Allow direct execution from either the project root or src/
sys.path.insert(0, str(Path(__file__).parent))

from classifier import IssueRecord, to_frame
from database import DB_PATH, HighCostFlag, IssueSeverity, get_engine, init_db
from loader import clear_issues, insert_frame

# ---------------------------------------------------------------------------
# Reproducibility & globals
# ---------------------------------------------------------------------------

SEED = 42
DEFAULT_ISSUE_COUNT = 420
REVIEW_START = date(2025, 1, 6)   # Monday of week 1
WEEKS = 12

# ---------------------------------------------------------------------------
# CATALOGS
# ---------------------------------------------------------------------------

# Technician initials with a relative tendency to over-bill
TECHNICIANS = {
    "RL": 1.6,
    "AD": 1.0,
    "FF": 0.8,
    "KG": 1.2,
    "JM": 0.9,
    "TS": 0.7,
    "BW": 1.1,
    "CP": 0.6,
}

CATEGORIES = {
    "Incorrect Labor Time": 0.34,
    "Overlapping Labor":    0.22,
    "Duplicate Operation":  0.14,
    "Missing Diagnosis":    0.12,
    "Unapproved Add-On":    0.10,
    "Wrong Op Code":        0.08,
}

OPERATION_GROUPS = [
    "Brakes", "Electrical", "Engine", "HVAC",
    "Maintenance", "Suspension", "Transmission",
]

BUILD_TYPES = {"Gas": 0.55, "Diesel": 0.15, "Hybrid": 0.20, "EV": 0.10}

# Free-text phrasing as it appears in the review log, including entries that
# match none of the action-quality prefixes.
ACTIONS = {
    "Adjusted labor time":            0.30,
    "Adjusted - removed duplicate op": 0.10,
    "adjusted per warranty guide":    0.04,
    "Declined by advisor":            0.14,
    "Decline - customer pay":         0.06,
    "No Action taken":                0.12,
    "No action - within tolerance":   0.05,
    "None":                           0.07,
    "Pending review":                 0.07,
    "Escalated to service manager":   0.05,
}

LABOR_RATES = [145.0, 165.0, 185.0]
HIGH_COST_THRESHOLD = 1_000.0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _weighted(rng: random.Random, weights: dict):
    return rng.choices(list(weights), weights=list(weights.values()), k=1)[0]


def _severity(overcharge: float) -> IssueSeverity:
    if overcharge >= 150:
        return IssueSeverity.HIGH
    if overcharge >= 60:
        return IssueSeverity.MEDIUM
    return IssueSeverity.LOW


def _maybe(rng: random.Random, value, null_rate: float):
    """Return *value*, or None with probability *null_rate*."""
    return None if rng.random() < null_rate else value


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


def generate_issue(rng: random.Random, fake: Faker, issue_id: int) -> IssueRecord:
    tech = rng.choice(list(TECHNICIANS))
    week = rng.randint(1, WEEKS)
    reviewed = REVIEW_START + timedelta(weeks=week - 1, days=rng.randint(0, 4))

    rate = rng.choice(LABOR_RATES)
    hours_correct = round(rng.uniform(0.3, 4.0), 1)
    # Mostly over-billed, sometimes exact, occasionally under-billed
    delta = rng.choice([-0.3, 0.0, 0.2, 0.3, 0.5, 0.8, 1.0, 1.5]) * TECHNICIANS[tech]
    hours_billed = max(round(hours_correct + delta, 1), 0.1)

    cost_billed = round(hours_billed * rate, 2)
    cost_correct = round(hours_correct * rate, 2)
    overcharge = round(cost_billed - cost_correct, 2)
    parts = round(rng.uniform(0, 900), 2)
    total_estimated = round(parts + cost_billed, 2)
    high_cost = HighCostFlag.YES if total_estimated >= HIGH_COST_THRESHOLD else HighCostFlag.NO

    severity = _maybe(rng, _severity(overcharge).value, 0.04)

    return IssueRecord(
        id=issue_id,
        week=week,
        ro_number=rng.randint(100_000, 199_999),
        tech_initials=tech,
        category=_weighted(rng, CATEGORIES),
        action_taken=_maybe(rng, _weighted(rng, ACTIONS), 0.03),
        operation_group=rng.choice(OPERATION_GROUPS),
        build_type=_weighted(rng, BUILD_TYPES),
        date_reviewed=reviewed,
        labor_hours_billed=hours_billed,
        labor_hours_correct=hours_correct,
        parts_cost=parts,
        total_estimated_cost=total_estimated,
        high_cost_flag=high_cost.value,
        notes=fake.sentence(nb_words=8),
        labor_rate=rate,
        labor_cost_billed=cost_billed,
        labor_cost_correct=cost_correct,
        cost_overcharge=_maybe(rng, overcharge, 0.02),
        issue_severity=severity,
    )


def generate_issues(n: int = DEFAULT_ISSUE_COUNT, seed: Optional[int] = SEED) -> list:
    """Return *n* reproducible IssueRecords with ids 1..n."""
    rng = random.Random(seed)
    fake = Faker("en_US")
    fake.seed_instance(seed)
    return [generate_issue(rng, fake, i) for i in range(1, n + 1)]


def seed_database(engine, n: int = DEFAULT_ISSUE_COUNT, seed: Optional[int] = SEED) -> int:
    """Replace the contents of ro_issues with *n* synthetic issues."""
    init_db(engine)
    clear_issues(engine)
    return insert_frame(engine, to_frame(generate_issues(n, seed)))


def main() -> None:
    print("=" * 65)
    print("  Ops Labor Analytics — Data Generator")
    print("=" * 65)

    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    engine = get_engine()

    print(f"  Generating {DEFAULT_ISSUE_COUNT} issues ...", end=" ", flush=True)
    count = seed_database(engine)
    print(f"{count:,} rows inserted.")
    print(f"\n  Database: {DB_PATH}")


if __name__ == "__main__":
    main()
