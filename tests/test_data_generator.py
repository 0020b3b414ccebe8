"""
test_data_generator.py — Synthetic data in src/data_generator.py.

Test scenarios
--------------
1. test_generation_is_reproducible     — same seed, same issues
2. test_generated_fields_are_consistent — catalog values and labor arithmetic
3. test_seed_database_round_trip       — seeding, SQL vs pandas TPI, reseeding
"""

from __future__ import annotations

import pytest
from sqlalchemy import create_engine

from analytics import get_row_count, get_technician_performance_index
from data_generator import ACTIONS, TECHNICIANS, generate_issues, seed_database
from rollups import technician_performance_index


def test_generation_is_reproducible():
    """The same seed yields identical issues; a different seed does not."""
    assert generate_issues(40, seed=7) == generate_issues(40, seed=7)
    assert generate_issues(40, seed=7) != generate_issues(40, seed=8)


def test_generated_fields_are_consistent():
    """Catalog values only, and labor costs agree with hours x rate."""
    issues = generate_issues(200, seed=3)

    assert [i.id for i in issues] == list(range(1, 201))
    for issue in issues:
        assert issue.tech_initials in TECHNICIANS
        assert issue.action_taken is None or issue.action_taken in ACTIONS
        assert issue.issue_severity in (None, "High", "Medium", "Low")
        assert issue.high_cost_flag in ("Yes", "No")
        assert issue.labor_cost_billed == pytest.approx(
            issue.labor_hours_billed * issue.labor_rate, abs=0.01
        )
        if issue.cost_overcharge is not None:
            assert issue.cost_overcharge == pytest.approx(
                issue.labor_cost_billed - issue.labor_cost_correct, abs=0.01
            )


def test_seed_database_round_trip():
    """Seeding fills the table; SQL and pandas TPI agree on the generated data."""
    engine = create_engine("sqlite:///:memory:", echo=False)
    issues = generate_issues(120, seed=11)

    assert seed_database(engine, n=120, seed=11) == 120
    assert get_row_count(engine) == 120

    sql_tpi = get_technician_performance_index(engine).set_index("tech_initials")["tpi"]
    pandas_tpi = technician_performance_index(issues).set_index("tech_initials")["tpi"]
    assert sorted(sql_tpi.index) == sorted(pandas_tpi.index)
    for tech in pandas_tpi.index:
        assert sql_tpi[tech] == pytest.approx(pandas_tpi[tech], abs=0.011), tech

    # Reseeding replaces rather than appends
    seed_database(engine, n=50, seed=11)
    assert get_row_count(engine) == 50
