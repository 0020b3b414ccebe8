"""
rollups.py — Grouped summaries over classified RO labor issues.

Every function takes an in-memory collection of issues (DataFrame, or an
iterable of IssueRecord / mappings), classifies it on the fly and returns a
new pandas DataFrame. Nothing here touches the database; see analytics.py
for the same numbers computed in SQL against ro_issues_clean.

Null conventions
----------------
  total_* columns   — nulls count as 0 in sums
  avg_* columns     — mean of non-null values, NaN when there are none
  tpi / ratio       — NaN whenever the denominator is zero or null
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal

import numpy as np
import pandas as pd

from classifier import INTEGER_COLUMNS, classify_frame, to_frame
from database import RiskBucket

ROLLUP_DIMENSIONS = (
    "tech_initials",
    "category",
    "operation_group",
    "week",
    "op_risk_bucket",
    "issue_severity",
    "action_quality",
)

PROFILE_COLUMNS = (
    "category",
    "action_taken",
    "tech_initials",
    "operation_group",
    "issue_severity",
)

_SUMMARY_COLUMNS = ["incident_count", "total_cost_overcharge", "avg_cost_overcharge"]
_TPI_COLUMNS = [
    "tech_initials",
    "incident_count",
    "total_cost_overcharge",
    "total_severity_score",
    "tpi",
]
_RATIO_COLUMNS = ["category", "tech_total", "shop_avg", "ratio"]


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def round_half_up(value, places: int = 2) -> float:
    """Round like SQL ROUND(numeric, n): halves go away from zero."""
    if value is None or pd.isna(value):
        return np.nan
    value = float(value)
    if not math.isfinite(value):
        return value
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def _safe_ratio(numerator, denominator) -> float:
    """numerator / denominator rounded to 2 places, NaN on a null or zero side."""
    if numerator is None or denominator is None:
        return np.nan
    if pd.isna(numerator) or pd.isna(denominator) or denominator == 0:
        return np.nan
    return round_half_up(numerator / denominator)


def tpi_score(severity_cost_product, incident_count) -> float:
    """Severity-weighted overcharge per incident; NaN for an empty group."""
    return _safe_ratio(severity_cost_product, incident_count)


def _group_keys(group_keys) -> list[str]:
    keys = [group_keys] if isinstance(group_keys, str) else list(group_keys)
    if not keys:
        raise ValueError("At least one group key is required.")
    unknown = [k for k in keys if k not in ROLLUP_DIMENSIONS]
    if unknown:
        raise ValueError(
            f"Unknown rollup dimension(s) {unknown}; "
            f"choose from {list(ROLLUP_DIMENSIONS)}."
        )
    if len(set(keys)) != len(keys):
        raise ValueError(f"Group keys must not repeat: {keys}.")
    return keys


def _sorted(df: pd.DataFrame, by: list[str], ascending: list[bool]) -> pd.DataFrame:
    return (
        df.sort_values(by, ascending=ascending, na_position="last", kind="mergesort")
          .reset_index(drop=True)
    )


# ---------------------------------------------------------------------------
# Core rollups
# ---------------------------------------------------------------------------


def rollup(records, group_keys, sort_by: str | None = "total_cost_overcharge",
           ascending: bool = False) -> pd.DataFrame:
    """
    Incident count, total and average cost_overcharge per group.

    *group_keys* is one dimension name or a list of them (see
    ROLLUP_DIMENSIONS). Rows with a null key form their own group.
    Results are sorted by *sort_by* (ties broken by the keys ascending);
    pass sort_by=None to keep key order, e.g. for a weekly trend.
    """
    keys = _group_keys(group_keys)
    columns = [*keys, *_SUMMARY_COLUMNS]
    df = classify_frame(records)
    if df.empty:
        return pd.DataFrame(columns=columns)

    out = (
        df.groupby(keys, dropna=False, sort=True)
          .agg(incident_count=("cost_overcharge", "size"),
               total_cost_overcharge=("cost_overcharge", "sum"),
               avg_cost_overcharge=("cost_overcharge", "mean"))
          .reset_index()
    )[columns]
    # a null week leaves the column float64 after to_frame
    out = out.astype({k: "Int64" for k in keys if k in INTEGER_COLUMNS})

    if sort_by is None:
        return out.reset_index(drop=True)
    if sort_by not in out.columns:
        raise ValueError(f"Cannot sort rollup by '{sort_by}'.")
    tie_breakers = [k for k in keys if k != sort_by]
    return _sorted(out, [sort_by, *tie_breakers], [ascending] + [True] * len(tie_breakers))


def technician_performance_index(records) -> pd.DataFrame:
    """
    Technician ranking by TPI — severity-weighted overcharge per incident:

        tpi = round( Σ(severity_score × cost_overcharge) / incident_count, 2 )

    Records with a null cost_overcharge add nothing to the numerator but
    still count as incidents. A technician whose costs are all null gets a
    NaN tpi. Sorted by tpi descending, then tech_initials.
    """
    df = classify_frame(records)
    if df.empty:
        return pd.DataFrame(columns=_TPI_COLUMNS)

    df["severity_cost"] = df["severity_score"] * df["cost_overcharge"]
    stats = (
        df.groupby("tech_initials", dropna=False, sort=True)
          .agg(incident_count=("severity_score", "size"),
               total_cost_overcharge=("cost_overcharge", "sum"),
               total_severity_score=("severity_score", "sum"),
               severity_cost_product=("severity_cost", lambda s: s.sum(min_count=1)))
          .reset_index()
    )
    stats["tpi"] = [
        tpi_score(product, count)
        for product, count in zip(stats["severity_cost_product"], stats["incident_count"])
    ]
    return _sorted(stats[_TPI_COLUMNS], ["tpi", "tech_initials"], [False, True])


def category_ratio(records, target_tech: str) -> pd.DataFrame:
    """
    Compare one technician's overcharge per category against the shop.

    tech_total — sum of the target tech's cost_overcharge in the category
    shop_avg   — mean cost_overcharge of every other (known) technician
    ratio      — tech_total / shop_avg rounded to 2 places

    Categories seen on either side are all reported (outer join); missing
    sides and zero averages give NaN rather than an error.
    """
    df = to_frame(records)
    if df.empty:
        return pd.DataFrame(columns=_RATIO_COLUMNS)

    is_tech = df["tech_initials"] == target_tech
    is_shop = df["tech_initials"].notna() & ~is_tech

    tech_cat = (
        df[is_tech].groupby("category", dropna=False)["cost_overcharge"]
                   .sum(min_count=1)
                   .rename("tech_total")
                   .reset_index()
    )
    shop_cat = (
        df[is_shop].groupby("category", dropna=False)["cost_overcharge"]
                   .mean()
                   .rename("shop_avg")
                   .reset_index()
    )

    # An empty side comes back with a non-object key dtype; merge needs them equal
    tech_cat["category"] = tech_cat["category"].astype(object)
    shop_cat["category"] = shop_cat["category"].astype(object)
    out = tech_cat.merge(shop_cat, on="category", how="outer")
    out["tech_total"] = out["tech_total"].astype("float64")
    out["shop_avg"] = out["shop_avg"].astype("float64")
    out["ratio"] = [
        _safe_ratio(t, s) for t, s in zip(out["tech_total"], out["shop_avg"])
    ]
    return _sorted(out[_RATIO_COLUMNS], ["category"], [True])


# ---------------------------------------------------------------------------
# Supplementary rollups
# ---------------------------------------------------------------------------


def data_profile(records) -> dict:
    """Row count, distinct categorical values and cost_overcharge stats."""
    df = to_frame(records)
    cost = df["cost_overcharge"].dropna()
    has_cost = not cost.empty
    return {
        "row_count": int(len(df)),
        "distinct": {
            col: sorted({str(v) for v in df[col].dropna()})
            for col in PROFILE_COLUMNS
        },
        "cost_overcharge": {
            "min":   float(cost.min()) if has_cost else None,
            "max":   float(cost.max()) if has_cost else None,
            "avg":   float(cost.mean()) if has_cost else None,
            "total": float(cost.sum()) if has_cost else None,
        },
    }


def total_cost_overcharge(records) -> float:
    return float(to_frame(records)["cost_overcharge"].sum())


def top_technicians(records, n: int = 10) -> pd.DataFrame:
    return rollup(records, "tech_initials").head(n).reset_index(drop=True)


def technician_cost_rank(records) -> pd.DataFrame:
    """Dense rank of technicians by total overcharge (1 = highest)."""
    columns = ["tech_initials", "incident_count", "total_cost_overcharge", "cost_rank"]
    ranked = rollup(records, "tech_initials").drop(columns="avg_cost_overcharge")
    if ranked.empty:
        return pd.DataFrame(columns=columns)
    ranked["cost_rank"] = (
        ranked["total_cost_overcharge"].rank(method="dense", ascending=False).astype(int)
    )
    return _sorted(ranked[columns], ["cost_rank", "tech_initials"], [True, True])


def category_by_technician(records) -> pd.DataFrame:
    out = rollup(records, ["category", "tech_initials"], sort_by=None)
    out = out.drop(columns="avg_cost_overcharge")
    if out.empty:
        return out
    return _sorted(out, ["category", "total_cost_overcharge", "tech_initials"],
                   [True, False, True])


def high_risk_summary(records, by: str = "tech_initials") -> pd.DataFrame:
    """High-Risk incidents and their overcharge per technician or category."""
    if by not in ("tech_initials", "category"):
        raise ValueError(f"high_risk_summary groups by tech_initials or category, not '{by}'.")
    columns = [by, "high_risk_incidents", "high_risk_cost"]

    df = classify_frame(records)
    high = df[df["op_risk_bucket"] == RiskBucket.HIGH.value]
    if high.empty:
        return pd.DataFrame(columns=columns)

    out = (
        high.groupby(by, dropna=False, sort=True)
            .agg(high_risk_incidents=("cost_overcharge", "size"),
                 high_risk_cost=("cost_overcharge", "sum"))
            .reset_index()
    )
    return _sorted(out[columns], ["high_risk_cost", by], [False, True])
