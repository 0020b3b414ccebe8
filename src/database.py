"""
database.py — SQLite database setup for the Ops Labor Analytics toolkit.

One flat fact table (ro_issues) of repair-order labor issues plus the
ro_issues_clean view that layers the derived classification fields on top.
Built with SQLAlchemy 2.0+.

Run directly to initialise the database: python src/database.py
"""

from __future__ import annotations

import enum
from datetime import date
from pathlib import Path
from typing import Optional

from sqlalchemy import (
    Date,
    Float,
    Index,
    Integer,
    String,
    Text,
    create_engine,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# ---------------------------------------------------------------------------
# Engine & database path
# ---------------------------------------------------------------------------

DB_PATH = Path(__file__).resolve().parent.parent / "data" / "ops_labor.db"
_DATABASE_URL = f"sqlite:///{DB_PATH}"

CLEAN_VIEW = "ro_issues_clean"


def get_engine(database_url: str = _DATABASE_URL):
    """Return a SQLAlchemy engine connected to the SQLite database."""
    return create_engine(database_url, echo=False)


# ---------------------------------------------------------------------------
# ORM base
# ---------------------------------------------------------------------------


class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class IssueSeverity(str, enum.Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class HighCostFlag(str, enum.Enum):
    YES = "Yes"
    NO = "No"


class ActionQuality(str, enum.Enum):
    CORRECTED = "Corrected"
    DECLINED = "Declined"
    UNCORRECTED = "Uncorrected"
    OTHER = "Other"


class RiskBucket(str, enum.Enum):
    HIGH = "High-Risk"
    MEDIUM = "Medium-Risk"
    LOW = "Low-Risk"


# ---------------------------------------------------------------------------
# FACT TABLE
# ---------------------------------------------------------------------------


class RoIssue(Base):
    """
    One reviewed labor issue on a repair order.

    Categorical columns are plain strings rather than SQL enums: the raw
    export carries free text and stray values, and those must reach the
    classification step intact (they degrade to Other / 0 / Low-Risk there).
    """

    __tablename__ = "ro_issues"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    week: Mapped[Optional[int]] = mapped_column(Integer)
    ro_number: Mapped[Optional[int]] = mapped_column(Integer)
    tech_initials: Mapped[Optional[str]] = mapped_column(String(10))
    category: Mapped[Optional[str]] = mapped_column(String(100))
    action_taken: Mapped[Optional[str]] = mapped_column(String(200))
    operation_group: Mapped[Optional[str]] = mapped_column(String(100))
    build_type: Mapped[Optional[str]] = mapped_column(String(50))
    date_reviewed: Mapped[Optional[date]] = mapped_column(Date)
    labor_hours_billed: Mapped[Optional[float]] = mapped_column(Float)
    labor_hours_correct: Mapped[Optional[float]] = mapped_column(Float)
    parts_cost: Mapped[Optional[float]] = mapped_column(Float)
    total_estimated_cost: Mapped[Optional[float]] = mapped_column(Float)
    high_cost_flag: Mapped[Optional[str]] = mapped_column(String(10))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    labor_rate: Mapped[Optional[float]] = mapped_column(Float)
    labor_cost_billed: Mapped[Optional[float]] = mapped_column(Float)
    labor_cost_correct: Mapped[Optional[float]] = mapped_column(Float)
    cost_overcharge: Mapped[Optional[float]] = mapped_column(Float)
    issue_severity: Mapped[Optional[str]] = mapped_column(String(20))

    __table_args__ = (
        Index("ix_ro_issues_tech_initials", "tech_initials"),
        Index("ix_ro_issues_category", "category"),
        Index("ix_ro_issues_week", "week"),
    )


# ---------------------------------------------------------------------------
# ANALYSIS VIEW
# ---------------------------------------------------------------------------

# SQLite LIKE is case-insensitive for ASCII, matching the prefix rules in
# classifier.ACTION_QUALITY_RULES.
_CLEAN_VIEW_SQL = f"""
CREATE VIEW {CLEAN_VIEW} AS
SELECT
    id,
    week,
    ro_number,
    tech_initials,
    category,
    action_taken,
    operation_group,
    build_type,
    date_reviewed,
    labor_hours_billed,
    labor_hours_correct,
    parts_cost,
    total_estimated_cost,
    high_cost_flag,
    notes,
    labor_rate,
    labor_cost_billed,
    labor_cost_correct,
    cost_overcharge,
    issue_severity,

    CASE
        WHEN action_taken LIKE 'Adjusted%'  THEN 'Corrected'
        WHEN action_taken LIKE 'Decline%'   THEN 'Declined'
        WHEN action_taken LIKE 'No Action%'
          OR action_taken LIKE 'None%'      THEN 'Uncorrected'
        ELSE 'Other'
    END AS action_quality,

    CASE
        WHEN issue_severity = 'High'   THEN 3
        WHEN issue_severity = 'Medium' THEN 2
        WHEN issue_severity = 'Low'    THEN 1
        ELSE 0
    END AS severity_score,

    -- First match wins: High severity without the cost condition falls
    -- through to Medium-Risk.
    CASE
        WHEN issue_severity = 'High'
             AND (high_cost_flag = 'Yes' OR cost_overcharge >= 100)
            THEN 'High-Risk'
        WHEN issue_severity IN ('High', 'Medium')
             OR cost_overcharge BETWEEN 50 AND 99
            THEN 'Medium-Risk'
        ELSE 'Low-Risk'
    END AS op_risk_bucket

FROM ro_issues
"""


def create_clean_view(engine) -> None:
    """(Re)create the ro_issues_clean view with the derived fields."""
    with engine.begin() as conn:
        conn.execute(text(f"DROP VIEW IF EXISTS {CLEAN_VIEW}"))
        conn.execute(text(_CLEAN_VIEW_SQL))


# ---------------------------------------------------------------------------
# init_db
# ---------------------------------------------------------------------------


def init_db(engine=None) -> None:
    """Create the table and view. Safe to call multiple times."""
    if engine is None:
        DB_PATH.parent.mkdir(parents=True, exist_ok=True)
        engine = get_engine()
    Base.metadata.create_all(engine)
    create_clean_view(engine)


if __name__ == "__main__":
    init_db()
    print(f"Database initialised at: {DB_PATH}")
