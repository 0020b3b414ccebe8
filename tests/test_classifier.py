"""
test_classifier.py — Unit tests for src/classifier.py.

Covers the three derived fields, the ordered risk-bucket cascade, null and
malformed inputs, rule-table overrides and DataFrame classification.

Test scenarios
--------------
1. action_quality   — prefix rules, case, nulls, replaced rule table
2. severity_score   — label mapping, enum members, unknown labels
3. op_risk_bucket   — cascade order, closed cost window, null costs
4. classify         — fixture records, mappings, missing fields
5. DataFrame helpers — classify_frame without mutation, to_frame nulls
"""

from __future__ import annotations

import math

import pandas as pd
import pytest

from classifier import (
    DERIVED_COLUMNS,
    DerivedFields,
    IssueRecord,
    classify,
    classify_action,
    classify_frame,
    risk_bucket,
    severity_score,
    to_frame,
)
from database import IssueSeverity

EXPECTED = {
    1: DerivedFields("Corrected",   3, "High-Risk"),
    2: DerivedFields("Declined",    2, "Medium-Risk"),
    3: DerivedFields("Uncorrected", 1, "Medium-Risk"),
    4: DerivedFields("Uncorrected", 3, "High-Risk"),
    5: DerivedFields("Other",       3, "Medium-Risk"),
    6: DerivedFields("Other",       0, "Low-Risk"),
    7: DerivedFields("Corrected",   1, "Low-Risk"),
    8: DerivedFields("Corrected",   2, "Medium-Risk"),
}


# ===========================================================================
# action_quality
# ===========================================================================


@pytest.mark.parametrize("action, expected", [
    ("Adjusted labor time",       "Corrected"),
    ("adjusted per guide",        "Corrected"),
    ("ADJUSTED",                  "Corrected"),
    ("Decline - customer pay",    "Declined"),
    ("Declined by advisor",       "Declined"),
    ("No Action taken",           "Uncorrected"),
    ("no action",                 "Uncorrected"),
    ("None",                      "Uncorrected"),
    ("Nonetheless adjusted",      "Uncorrected"),
    ("Labor adjusted",            "Other"),
    (" Adjusted",                 "Other"),
    ("",                          "Other"),
    (None,                        "Other"),
    (float("nan"),                "Other"),
    (42,                          "Other"),
])
def test_action_quality_prefix_rules(action, expected):
    """Prefixes match case-insensitively at the start only; nulls and non-strings are Other."""
    assert classify_action(action) == expected


def test_action_quality_custom_rule_table():
    """A replacement rule table drops the default prefixes entirely."""
    rules = ((("Fixed",), "Corrected"),)
    assert classify_action("fixed op code", rules=rules) == "Corrected"
    # Default prefixes are gone with a replaced table
    assert classify_action("Adjusted labor time", rules=rules) == "Other"


# ===========================================================================
# severity_score
# ===========================================================================


@pytest.mark.parametrize("severity, expected", [
    ("High", 3), ("Medium", 2), ("Low", 1),
    ("high", 0), ("Critical", 0), ("", 0), (None, 0), (float("nan"), 0),
    (IssueSeverity.HIGH, 3), (IssueSeverity.LOW, 1),
])
def test_severity_score_mapping(severity, expected):
    """Exact labels score 3 / 2 / 1; any other value, including case variants, scores 0."""
    assert severity_score(severity) == expected


# ===========================================================================
# op_risk_bucket
# ===========================================================================


def test_high_severity_without_cost_condition_cascades_to_medium():
    """High severity without the flag or a 100+ overcharge still lands in Medium-Risk."""
    assert risk_bucket("High", "No", 40) == "Medium-Risk"


def test_high_severity_with_high_cost_flag_is_high_risk():
    """The high-cost flag alone lifts a High-severity issue to High-Risk."""
    assert risk_bucket("High", "Yes", 10) == "High-Risk"


def test_high_severity_with_large_overcharge_is_high_risk():
    """An overcharge of 100 or more lifts a High-severity issue to High-Risk."""
    assert risk_bucket("High", "No", 100) == "High-Risk"
    assert risk_bucket("High", None, 250.75) == "High-Risk"


def test_low_severity_inside_cost_window_is_medium_risk():
    """Any severity with an overcharge inside the window is Medium-Risk."""
    assert risk_bucket("Low", "No", 75) == "Medium-Risk"


@pytest.mark.parametrize("cost, expected", [
    (49.99, "Low-Risk"),
    (50,    "Medium-Risk"),
    (99,    "Medium-Risk"),
    (99.5,  "Low-Risk"),
    (100,   "Low-Risk"),
    (-75,   "Low-Risk"),
])
def test_cost_window_is_closed_50_to_99(cost, expected):
    """Both ends of the 50..99 window count; 99.5 falls between the two rules."""
    assert risk_bucket("Low", "Yes", cost) == expected


def test_high_cost_flag_alone_does_not_raise_risk():
    """The flag only matters for High severity."""
    assert risk_bucket("Medium", "Yes", 10) == "Medium-Risk"
    assert risk_bucket(None, "Yes", 10) == "Low-Risk"


def test_null_overcharge_never_matches_a_cost_rule():
    """None and NaN fail every cost comparison, as NULL does in SQL."""
    assert risk_bucket("High", "No", None) == "Medium-Risk"
    assert risk_bucket("High", "No", float("nan")) == "Medium-Risk"
    assert risk_bucket("Low", "No", None) == "Low-Risk"


def test_malformed_inputs_default_to_low_risk():
    """Unknown labels and unparseable costs match no rule."""
    assert risk_bucket("Severe", "Y", "abc") == "Low-Risk"
    assert risk_bucket(None, None, None) == "Low-Risk"


def test_custom_risk_rules_replace_defaults():
    """A supplied rule list is used instead of the default cascade."""
    rules = (("High-Risk", lambda sev, flag, cost: cost is not None and cost > 0),)
    assert risk_bucket("Low", "No", 1, rules=rules) == "High-Risk"
    assert risk_bucket("High", "Yes", 0, rules=rules) == "Low-Risk"


# ===========================================================================
# classify
# ===========================================================================


def test_classify_fixture_records(issue_records):
    """Every fixture record classifies to its row in the conftest table."""
    for record in issue_records:
        assert classify(record) == EXPECTED[record.id], f"record {record.id}"


def test_classify_accepts_mappings():
    """A plain dict with the column names classifies like an IssueRecord."""
    row = {"action_taken": "Decline", "issue_severity": "High",
           "high_cost_flag": "No", "cost_overcharge": 150}
    assert classify(row) == DerivedFields("Declined", 3, "High-Risk")


def test_classify_missing_fields_degrade_to_defaults():
    """Empty records classify as Other / 0 / Low-Risk rather than raising."""
    assert classify({}) == DerivedFields("Other", 0, "Low-Risk")
    assert classify(IssueRecord(id=99)) == DerivedFields("Other", 0, "Low-Risk")


def test_classify_is_idempotent(issue_records):
    """Repeated calls agree and nothing is written back to the record."""
    for record in issue_records:
        first = classify(record)
        assert all(classify(record) == first for _ in range(3))
    # The record itself carries no derived fields afterwards
    assert not hasattr(issue_records[0], "op_risk_bucket")


# ===========================================================================
# DataFrame helpers
# ===========================================================================


def test_classify_frame_appends_columns_without_mutating(issues_df):
    """classify_frame() returns a new frame; the input keeps its columns and values."""
    before = issues_df.copy()
    out = classify_frame(issues_df)

    pd.testing.assert_frame_equal(issues_df, before)
    for col in DERIVED_COLUMNS:
        assert col in out.columns and col not in issues_df.columns

    by_id = out.set_index("id")
    for issue_id, expected in EXPECTED.items():
        row = by_id.loc[issue_id]
        assert row["action_quality"] == expected.action_quality
        assert row["severity_score"] == expected.severity_score
        assert row["op_risk_bucket"] == expected.op_risk_bucket


def test_classify_frame_empty_input():
    """Empty input still yields the derived columns."""
    out = classify_frame([])
    assert out.empty
    for col in DERIVED_COLUMNS:
        assert col in out.columns


def test_to_frame_keeps_missing_numbers_null():
    """Unparseable and missing numbers become NaN, never 0."""
    df = to_frame([{"id": 1, "cost_overcharge": "n/a", "parts_cost": None},
                   {"id": 2, "cost_overcharge": "12.5"}])
    assert math.isnan(df.loc[0, "cost_overcharge"])
    assert math.isnan(df.loc[0, "parts_cost"])
    assert df.loc[1, "cost_overcharge"] == 12.5
    assert df["tech_initials"].isna().all()
