"""
conftest.py — Shared pytest fixtures for the ops labor analytics test suite.

Fixture dependency graph
------------------------
  issue_records  — eight hand-built IssueRecords with known derived values
       ├─► issues_df  — the same records as a DataFrame
       └─► db_engine  (session) — in-memory SQLite seeded with the records

  null_key_records — six IssueRecords with null group keys and tied totals
       └─► null_key_engine  (session) — in-memory SQLite seeded with them

Expected values for the records
-------------------------------
  id tech cat                action             sev     flag cost   quality      score risk
   1 RL   Incorrect Labor    Adjusted labor..   High    No   120    Corrected    3     High-Risk
   2 RL   Incorrect Labor    declined by cust.. Medium  No    40    Declined     2     Medium-Risk
   3 RL   Overlapping Labor  No Action          Low     No    75    Uncorrected  1     Medium-Risk
   4 AD   Incorrect Labor    None - advisor..   High    Yes   10    Uncorrected  3     High-Risk
   5 AD   Overlapping Labor  Pending review     High    No    40    Other        3     Medium-Risk
   6 FF   Incorrect Labor    (null)             (null)  No   (null) Other        0     Low-Risk
   7 FF   Missing Diagnosis  ADJUSTED op code   Low     No   -20    Corrected    1     Low-Risk
   8 KG   Incorrect Labor    Adjusted           Medium  No   99.5   Corrected    2     Medium-Risk

Null-key records
----------------
  id tech   cat                action     sev     flag cost   week   op_group
   1 RL     Incorrect Labor    Adjusted   High    Yes   60    1      Brakes
   2 AD     Incorrect Labor    Declined   Low     No    30    1      Engine
   3 (null) Overlapping Labor  No Action  Low     No    30    (null) Brakes
   4 KG     (null)             Pending    Medium  No    30    2      (null)
   5 (null) (null)             (null)     High    Yes    0    (null) Engine
   6 AD     Overlapping Labor  Adjusted   High    No   (null) 2      Brakes

  Totals by tech: RL 60, then AD / KG / null tied at 30.
  TPI: RL 180, KG 60, then AD / null tied at 15.
  Totals by week: 1 → 90, 2 → 30, null → 30.
"""

from __future__ import annotations

import sys
from datetime import date
from pathlib import Path

import pytest
from sqlalchemy import create_engine

# ---------------------------------------------------------------------------
# Make src/ importable regardless of how pytest is invoked.
# ---------------------------------------------------------------------------

SRC_DIR = Path(__file__).resolve().parent.parent / "src"
sys.path.insert(0, str(SRC_DIR))

from classifier import IssueRecord, to_frame  # noqa: E402  (after sys.path insert)
from database import init_db                  # noqa: E402
from loader import insert_frame               # noqa: E402


def _issue(id, tech, category, action, severity, flag, cost, week, op_group):
    return IssueRecord(
        id=id,
        week=week,
        ro_number=150_000 + id,
        tech_initials=tech,
        category=category,
        action_taken=action,
        operation_group=op_group,
        build_type="Gas",
        date_reviewed=date(2025, 1, 6 + id),
        labor_rate=165.0,
        high_cost_flag=flag,
        cost_overcharge=cost,
        issue_severity=severity,
    )


ISSUES = [
    _issue(1, "RL", "Incorrect Labor",   "Adjusted labor time",     "High",   "No",  120.0, 1, "Brakes"),
    _issue(2, "RL", "Incorrect Labor",   "declined by customer",    "Medium", "No",   40.0, 1, "Electrical"),
    _issue(3, "RL", "Overlapping Labor", "No Action",               "Low",    "No",   75.0, 2, "Brakes"),
    _issue(4, "AD", "Incorrect Labor",   "None - advisor notified", "High",   "Yes",  10.0, 2, "Engine"),
    _issue(5, "AD", "Overlapping Labor", "Pending review",          "High",   "No",   40.0, 1, "Brakes"),
    _issue(6, "FF", "Incorrect Labor",   None,                      None,     "No",   None, 2, "Electrical"),
    _issue(7, "FF", "Missing Diagnosis", "ADJUSTED op code",        "Low",    "No",  -20.0, 3, "Engine"),
    _issue(8, "KG", "Incorrect Labor",   "Adjusted",                "Medium", "No",   99.5, 3, "Brakes"),
]


# ===========================================================================
# Fixtures
# ===========================================================================


@pytest.fixture
def issue_records() -> list[IssueRecord]:
    return list(ISSUES)


@pytest.fixture
def issues_df(issue_records):
    return to_frame(issue_records)


@pytest.fixture(scope="session")
def db_engine():
    """Session-scoped in-memory SQLite engine holding ISSUES and the clean view."""
    engine = create_engine("sqlite:///:memory:", echo=False)
    init_db(engine)
    insert_frame(engine, to_frame(ISSUES))
    return engine


NULL_KEY_ISSUES = [
    _issue(1, "RL", "Incorrect Labor",   "Adjusted",  "High",   "Yes", 60.0, 1,    "Brakes"),
    _issue(2, "AD", "Incorrect Labor",   "Declined",  "Low",    "No",  30.0, 1,    "Engine"),
    _issue(3, None, "Overlapping Labor", "No Action", "Low",    "No",  30.0, None, "Brakes"),
    _issue(4, "KG", None,                "Pending",   "Medium", "No",  30.0, 2,    None),
    _issue(5, None, None,                None,        "High",   "Yes",  0.0, None, "Engine"),
    _issue(6, "AD", "Overlapping Labor", "Adjusted",  "High",   "No",  None, 2,    "Brakes"),
]


@pytest.fixture
def null_key_records() -> list[IssueRecord]:
    return list(NULL_KEY_ISSUES)


@pytest.fixture(scope="session")
def null_key_engine():
    """In-memory SQLite holding NULL_KEY_ISSUES, kept apart from db_engine."""
    engine = create_engine("sqlite:///:memory:", echo=False)
    init_db(engine)
    insert_frame(engine, to_frame(NULL_KEY_ISSUES))
    return engine
