"""
analytics.py — SQL analyses over the ro_issues_clean view.

Each function executes parameterised SQL against the SQLite database and
returns a pandas DataFrame ready for dashboarding or export. The numbers
match the in-memory rollups in rollups.py for the same data, row order
included: SQLite sorts NULL first, so every key in an ORDER BY is preceded
by `<key> IS NULL` to put null groups last.

Run directly to execute every analysis and print sample results:
    python src/analytics.py
"""

import sys
from pathlib import Path

import pandas as pd
from sqlalchemy import text

sys.path.insert(0, str(Path(__file__).parent))
from database import CLEAN_VIEW, get_engine
from rollups import PROFILE_COLUMNS, ROLLUP_DIMENSIONS

pd.set_option("display.max_columns", None)
pd.set_option("display.width", 200)
pd.set_option("display.float_format", "{:,.2f}".format)

DEFAULT_TARGET_TECH = "RL"
HIGH_RISK_DIMENSIONS = ("tech_initials", "category")


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _query(engine, sql: str, params: dict = None) -> pd.DataFrame:
    """Execute *sql* with optional bound *params* and return a DataFrame."""
    with engine.connect() as conn:
        result = conn.execute(text(sql), params or {})
        return pd.DataFrame(result.fetchall(), columns=list(result.keys()))


def _checked(column: str, allowed) -> str:
    """Column names can't be bound parameters; only whitelisted ones reach SQL."""
    if column not in allowed:
        raise ValueError(f"Unsupported column '{column}'; choose from {list(allowed)}.")
    return column


def _as_float(df: pd.DataFrame, columns: list) -> pd.DataFrame:
    # NULLs come back as None in object columns
    return df.astype({col: "float64" for col in columns})


# ---------------------------------------------------------------------------
# 1. Data quality & exploration
# ---------------------------------------------------------------------------


def get_row_count(engine) -> int:
    with engine.connect() as conn:
        return int(conn.execute(text(f"SELECT COUNT(*) FROM {CLEAN_VIEW}")).scalar_one())


def get_sample_rows(engine, limit: int = 10) -> pd.DataFrame:
    return _query(
        engine,
        f"SELECT * FROM {CLEAN_VIEW} ORDER BY id LIMIT :limit",
        {"limit": limit},
    )


def get_distinct_values(engine, column: str) -> list:
    """Sorted distinct non-null values of a categorical column."""
    column = _checked(column, PROFILE_COLUMNS)
    df = _query(engine, f"""
        SELECT DISTINCT {column} AS value
        FROM {CLEAN_VIEW}
        WHERE {column} IS NOT NULL
        ORDER BY value
    """)
    return df["value"].tolist()


def get_overcharge_summary(engine) -> pd.DataFrame:
    """Min / max / average / total cost_overcharge across all issues."""
    df = _query(engine, f"""
        SELECT
            MIN(cost_overcharge) AS min_cost_overcharge,
            MAX(cost_overcharge) AS max_cost_overcharge,
            AVG(cost_overcharge) AS avg_cost_overcharge,
            SUM(cost_overcharge) AS total_cost_overcharge
        FROM {CLEAN_VIEW}
    """)
    return _as_float(df, list(df.columns))


# ---------------------------------------------------------------------------
# 2. Core rollups
# ---------------------------------------------------------------------------


def get_overcharge_by(engine, dimension: str) -> pd.DataFrame:
    """
    Incident count, total and average overcharge per *dimension* value.

    Weekly output is ordered by week (a trend); every other dimension is
    ordered by total overcharge, highest first.
    """
    dimension = _checked(dimension, ROLLUP_DIMENSIONS)
    if dimension == "week":
        order_by = "week IS NULL, week"
    else:
        order_by = f"total_cost_overcharge DESC, {dimension} IS NULL, {dimension}"
    df = _query(engine, f"""
        SELECT
            {dimension},
            COUNT(*)                           AS incident_count,
            COALESCE(SUM(cost_overcharge), 0)  AS total_cost_overcharge,
            AVG(cost_overcharge)               AS avg_cost_overcharge
        FROM {CLEAN_VIEW}
        GROUP BY {dimension}
        ORDER BY {order_by}
    """)
    if dimension == "week":
        df = df.astype({"week": "Int64"})
    return _as_float(df, ["total_cost_overcharge", "avg_cost_overcharge"])


def get_top_technicians(engine, limit: int = 10) -> pd.DataFrame:
    df = _query(engine, f"""
        SELECT
            tech_initials,
            COUNT(*)                           AS incident_count,
            COALESCE(SUM(cost_overcharge), 0)  AS total_cost_overcharge,
            AVG(cost_overcharge)               AS avg_cost_overcharge
        FROM {CLEAN_VIEW}
        GROUP BY tech_initials
        ORDER BY total_cost_overcharge DESC, tech_initials IS NULL, tech_initials
        LIMIT :limit
    """, {"limit": limit})
    return _as_float(df, ["total_cost_overcharge", "avg_cost_overcharge"])


# ---------------------------------------------------------------------------
# 3. Technician-level analysis
# ---------------------------------------------------------------------------


def get_technician_performance_index(engine) -> pd.DataFrame:
    """
    Tech Performance Index (TPI): severity-weighted overcharge per incident.

        tpi = ROUND( SUM(severity_score * cost_overcharge) / incident_count, 2 )

    Highest TPI first; technicians without a computable TPI sort last.
    """
    sql = f"""
    WITH tech_stats AS (
        SELECT
            tech_initials,
            COUNT(*)                               AS incident_count,
            COALESCE(SUM(cost_overcharge), 0)      AS total_cost_overcharge,
            SUM(severity_score)                    AS total_severity_score,
            SUM(severity_score * cost_overcharge)  AS severity_cost_product
        FROM {CLEAN_VIEW}
        GROUP BY tech_initials
    )
    SELECT
        tech_initials,
        incident_count,
        total_cost_overcharge,
        total_severity_score,
        ROUND(
            CAST(severity_cost_product AS REAL)
            / NULLIF(incident_count, 0),
            2
        ) AS tpi
    FROM tech_stats
    ORDER BY tpi IS NULL, tpi DESC, tech_initials IS NULL, tech_initials
    """
    return _as_float(_query(engine, sql), ["total_cost_overcharge", "tpi"])


def get_technician_cost_rank(engine) -> pd.DataFrame:
    """Dense rank of technicians by total overcharge (1 = highest)."""
    sql = f"""
    WITH tech_scores AS (
        SELECT
            tech_initials,
            COUNT(*)                           AS incident_count,
            COALESCE(SUM(cost_overcharge), 0)  AS total_cost_overcharge
        FROM {CLEAN_VIEW}
        GROUP BY tech_initials
    )
    SELECT
        tech_initials,
        incident_count,
        total_cost_overcharge,
        DENSE_RANK() OVER (ORDER BY total_cost_overcharge DESC) AS cost_rank
    FROM tech_scores
    ORDER BY cost_rank, tech_initials IS NULL, tech_initials
    """
    return _as_float(_query(engine, sql), ["total_cost_overcharge"])


# ---------------------------------------------------------------------------
# 4. Category x technician (coaching focus)
# ---------------------------------------------------------------------------


def get_category_by_technician(engine) -> pd.DataFrame:
    df = _query(engine, f"""
        SELECT
            category,
            tech_initials,
            COUNT(*)                           AS incident_count,
            COALESCE(SUM(cost_overcharge), 0)  AS total_cost_overcharge
        FROM {CLEAN_VIEW}
        GROUP BY category, tech_initials
        ORDER BY category IS NULL, category,
                 total_cost_overcharge DESC,
                 tech_initials IS NULL, tech_initials
    """)
    return _as_float(df, ["total_cost_overcharge"])


def get_category_ratio(engine, tech: str = DEFAULT_TARGET_TECH) -> pd.DataFrame:
    """
    Category totals for one technician against the shop average.

    Every category seen for the tech or the shop is listed. ratio is NULL
    when either side is missing or the shop average is zero.
    """
    sql = f"""
    WITH tech_cat AS (
        SELECT
            category,
            SUM(cost_overcharge) AS tech_total
        FROM {CLEAN_VIEW}
        WHERE tech_initials = :tech
        GROUP BY category
    ),
    shop_cat AS (
        SELECT
            category,
            AVG(cost_overcharge) AS shop_avg
        FROM {CLEAN_VIEW}
        WHERE tech_initials <> :tech
        GROUP BY category
    ),
    categories AS (
        -- SQLite has no FULL OUTER JOIN before 3.39; union the keys instead
        SELECT category FROM tech_cat
        UNION
        SELECT category FROM shop_cat
    )
    SELECT
        c.category,
        t.tech_total,
        s.shop_avg,
        CASE
            WHEN s.shop_avg IS NULL OR s.shop_avg = 0 OR t.tech_total IS NULL THEN NULL
            ELSE ROUND(t.tech_total / s.shop_avg, 2)
        END AS ratio
    FROM categories c
    LEFT JOIN tech_cat t ON t.category IS c.category
    LEFT JOIN shop_cat s ON s.category IS c.category
    ORDER BY c.category IS NULL, c.category
    """
    return _as_float(_query(engine, sql, {"tech": tech}), ["tech_total", "shop_avg", "ratio"])


# ---------------------------------------------------------------------------
# 5. Risk bucket analysis
# ---------------------------------------------------------------------------


def get_high_risk_by(engine, dimension: str = "tech_initials") -> pd.DataFrame:
    dimension = _checked(dimension, HIGH_RISK_DIMENSIONS)
    df = _query(engine, f"""
        SELECT
            {dimension},
            COUNT(*)                           AS high_risk_incidents,
            COALESCE(SUM(cost_overcharge), 0)  AS high_risk_cost
        FROM {CLEAN_VIEW}
        WHERE op_risk_bucket = 'High-Risk'
        GROUP BY {dimension}
        ORDER BY high_risk_cost DESC, {dimension} IS NULL, {dimension}
    """)
    return _as_float(df, ["high_risk_cost"])


# ---------------------------------------------------------------------------
# CLI test runner
# ---------------------------------------------------------------------------


def main() -> None:
    BAR = "=" * 70

    def section(title: str) -> None:
        print(f"\n{BAR}\n  {title}\n{BAR}")

    def show(df: pd.DataFrame, n: int = 10) -> None:
        print(f"  Rows: {len(df):,}  |  Columns: {df.shape[1]}\n")
        print(df.head(n).to_string(index=False))

    engine = get_engine()

    try:
        row_count = get_row_count(engine)
    except Exception as exc:
        print(f"Could not read {CLEAN_VIEW}: {exc}")
        print("Initialise the database with `python src/database.py` first.")
        sys.exit(1)

    if not row_count:
        print("No issue data found — run data_generator.py or loader.py first.")
        sys.exit(1)

    # ── 1. Data quality ──────────────────────────────────────────────
    section(f"1. Data Quality  ({row_count:,} issues)")
    for column in PROFILE_COLUMNS:
        values = get_distinct_values(engine, column)
        print(f"  {column:16s} {len(values):3d} distinct  {values[:6]}")
    print()
    print(get_overcharge_summary(engine).to_string(index=False))

    # ── 2. Rollups ───────────────────────────────────────────────────
    for i, dimension in enumerate(
        ("issue_severity", "category", "operation_group", "week", "op_risk_bucket"), start=2
    ):
        section(f"{i}. Overcharge by {dimension}")
        show(get_overcharge_by(engine, dimension), n=15)

    # ── 7. Technicians ───────────────────────────────────────────────
    section("7. Technician Performance Index")
    tpi = get_technician_performance_index(engine)
    show(tpi)
    if not tpi.empty:
        top = tpi.iloc[0]
        print(f"\n  Highest TPI: {top['tech_initials']}  (tpi={top['tpi']:,.2f}, "
              f"{int(top['incident_count'])} incidents)")

    section("8. Technician Cost Rank")
    show(get_technician_cost_rank(engine))

    # ── 9. Coaching focus ────────────────────────────────────────────
    section(f"9. Category Ratio — {DEFAULT_TARGET_TECH} vs shop")
    show(get_category_ratio(engine, DEFAULT_TARGET_TECH))

    # ── 10. Risk ─────────────────────────────────────────────────────
    section("10. High-Risk Incidents by Technician")
    show(get_high_risk_by(engine, "tech_initials"))
    section("11. High-Risk Incidents by Category")
    show(get_high_risk_by(engine, "category"))

    print(f"\n{BAR}")
    print("  All analyses completed successfully.")
    print(f"{BAR}\n")


if __name__ == "__main__":
    main()
