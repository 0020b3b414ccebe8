"""
classifier.py — Per-record classification of repair-order labor issues.

Derives three fields from a raw issue record:

  action_quality  — Corrected / Declined / Uncorrected / Other, from the
                    free-text action_taken column (case-insensitive prefix)
  severity_score  — 3 / 2 / 1 / 0 for High / Medium / Low / anything else
  op_risk_bucket  — High-Risk / Medium-Risk / Low-Risk, ordered rules,
                    first match wins

The derived fields are never written back to a record; classify() returns
them separately and classify_frame() returns a new DataFrame.
"""

from __future__ import annotations

import enum
import math
from dataclasses import asdict, dataclass, fields, is_dataclass
from datetime import date
from typing import Callable, Optional

import pandas as pd

from database import ActionQuality, HighCostFlag, IssueSeverity, RiskBucket

# ---------------------------------------------------------------------------
# Record types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IssueRecord:
    """One row of ro_issues. Everything but id may be missing."""

    id: int
    week: Optional[int] = None
    ro_number: Optional[int] = None
    tech_initials: Optional[str] = None
    category: Optional[str] = None
    action_taken: Optional[str] = None
    operation_group: Optional[str] = None
    build_type: Optional[str] = None
    date_reviewed: Optional[date] = None
    labor_hours_billed: Optional[float] = None
    labor_hours_correct: Optional[float] = None
    parts_cost: Optional[float] = None
    total_estimated_cost: Optional[float] = None
    high_cost_flag: Optional[str] = None
    notes: Optional[str] = None
    labor_rate: Optional[float] = None
    labor_cost_billed: Optional[float] = None
    labor_cost_correct: Optional[float] = None
    cost_overcharge: Optional[float] = None
    issue_severity: Optional[str] = None


@dataclass(frozen=True)
class DerivedFields:
    action_quality: str
    severity_score: int
    op_risk_bucket: str


ISSUE_COLUMNS = tuple(f.name for f in fields(IssueRecord))
DERIVED_COLUMNS = tuple(f.name for f in fields(DerivedFields))

INTEGER_COLUMNS = ("id", "week", "ro_number")
NUMERIC_COLUMNS = (
    "labor_hours_billed",
    "labor_hours_correct",
    "parts_cost",
    "total_estimated_cost",
    "labor_rate",
    "labor_cost_billed",
    "labor_cost_correct",
    "cost_overcharge",
)

# ---------------------------------------------------------------------------
# Rule tables
# ---------------------------------------------------------------------------

# (prefixes, quality), checked in order against action_taken, case-insensitive
ACTION_QUALITY_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("Adjusted",),           ActionQuality.CORRECTED.value),
    (("Decline",),            ActionQuality.DECLINED.value),
    (("No Action", "None"),   ActionQuality.UNCORRECTED.value),
)

SEVERITY_SCORES = {
    IssueSeverity.HIGH.value:   3,
    IssueSeverity.MEDIUM.value: 2,
    IssueSeverity.LOW.value:    1,
}

HIGH_RISK_COST_THRESHOLD = 100
MEDIUM_RISK_COST_WINDOW = (50, 99)   # closed interval


def _is_high_risk(severity: Optional[str], flag: Optional[str], cost: Optional[float]) -> bool:
    if severity != IssueSeverity.HIGH.value:
        return False
    return flag == HighCostFlag.YES.value or (
        cost is not None and cost >= HIGH_RISK_COST_THRESHOLD
    )


def _is_medium_risk(severity: Optional[str], flag: Optional[str], cost: Optional[float]) -> bool:
    low, high = MEDIUM_RISK_COST_WINDOW
    return severity in (IssueSeverity.HIGH.value, IssueSeverity.MEDIUM.value) or (
        cost is not None and low <= cost <= high
    )


RiskRule = Callable[[Optional[str], Optional[str], Optional[float]], bool]

# Evaluated top to bottom; rules overlap on purpose (a High-severity issue
# that misses the cost/flag test still lands in Medium-Risk).
RISK_BUCKET_RULES: tuple[tuple[str, RiskRule], ...] = (
    (RiskBucket.HIGH.value,   _is_high_risk),
    (RiskBucket.MEDIUM.value, _is_medium_risk),
)
DEFAULT_RISK_BUCKET = RiskBucket.LOW.value

# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------


def _text(value) -> Optional[str]:
    """Return *value* as a plain string, or None for nulls and non-strings."""
    if isinstance(value, enum.Enum):
        value = value.value
    return value if isinstance(value, str) else None


def _number(value) -> Optional[float]:
    """Return *value* as a float, or None for nulls (None, NaN, pd.NA)."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(number) else number


def _get(record, name: str):
    if hasattr(record, "get"):
        return record.get(name)
    return getattr(record, name, None)


# ---------------------------------------------------------------------------
# Field derivations
# ---------------------------------------------------------------------------


def classify_action(action_taken, rules=ACTION_QUALITY_RULES) -> str:
    text = _text(action_taken)
    if text is None:
        return ActionQuality.OTHER.value
    lowered = text.lower()
    for prefixes, quality in rules:
        if lowered.startswith(tuple(p.lower() for p in prefixes)):
            return quality
    return ActionQuality.OTHER.value


def severity_score(issue_severity) -> int:
    return SEVERITY_SCORES.get(_text(issue_severity), 0)


def risk_bucket(issue_severity, high_cost_flag, cost_overcharge,
                rules=RISK_BUCKET_RULES) -> str:
    """
    First rule whose predicate holds wins; Low-Risk when none does.

    A null cost_overcharge never satisfies a cost comparison, the same way
    NULL >= 100 is not true in SQL.
    """
    severity = _text(issue_severity)
    flag = _text(high_cost_flag)
    cost = _number(cost_overcharge)
    for bucket, predicate in rules:
        if predicate(severity, flag, cost):
            return bucket
    return DEFAULT_RISK_BUCKET


def classify(record, action_rules=ACTION_QUALITY_RULES,
             risk_rules=RISK_BUCKET_RULES) -> DerivedFields:
    """
    Derive action_quality, severity_score and op_risk_bucket for one record.

    *record* may be an IssueRecord, a mapping / pandas row with the same
    column names, or any object exposing them as attributes.
    """
    return DerivedFields(
        action_quality=classify_action(_get(record, "action_taken"), action_rules),
        severity_score=severity_score(_get(record, "issue_severity")),
        op_risk_bucket=risk_bucket(
            _get(record, "issue_severity"),
            _get(record, "high_cost_flag"),
            _get(record, "cost_overcharge"),
            risk_rules,
        ),
    )


# ---------------------------------------------------------------------------
# Tabular helpers
# ---------------------------------------------------------------------------


def to_frame(records) -> pd.DataFrame:
    """
    Build a DataFrame with every ISSUE_COLUMNS column from *records*.

    Accepts a DataFrame (copied, never modified) or an iterable of
    IssueRecord / mappings. Numeric columns are coerced to numbers with
    unparseable values becoming NaN; they are never filled with zero.
    """
    if isinstance(records, pd.DataFrame):
        df = records.copy()
    else:
        rows = [asdict(r) if is_dataclass(r) else dict(r) for r in records]
        df = pd.DataFrame(rows)

    for col in ISSUE_COLUMNS:
        if col not in df.columns:
            df[col] = None

    for col in (*INTEGER_COLUMNS, *NUMERIC_COLUMNS):
        df[col] = pd.to_numeric(df[col], errors="coerce")
    for col in NUMERIC_COLUMNS:
        df[col] = df[col].astype("float64")

    return df


def classify_frame(records, action_rules=ACTION_QUALITY_RULES,
                   risk_rules=RISK_BUCKET_RULES) -> pd.DataFrame:
    """Return a copy of *records* with the three derived columns appended."""
    df = to_frame(records)
    derived = [
        classify(row, action_rules, risk_rules)
        for row in df[["action_taken", "issue_severity",
                       "high_cost_flag", "cost_overcharge"]].to_dict("records")
    ]
    df["action_quality"] = [d.action_quality for d in derived]
    df["severity_score"] = pd.Series([d.severity_score for d in derived],
                                     index=df.index, dtype="int64")
    df["op_risk_bucket"] = [d.op_risk_bucket for d in derived]
    return df
