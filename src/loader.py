"""
loader.py — CSV import into ro_issues and export of the ro_issues_clean view.

Usage:
    python src/loader.py data/ro_issues_clean.csv
    python src/loader.py data/ro_issues_clean.csv --replace --export data/ro_issues_for_python.csv
"""

import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd
from sqlalchemy import delete, insert, select, text
from sqlalchemy.orm import Session

sys.path.insert(0, str(Path(__file__).parent))
from classifier import INTEGER_COLUMNS, ISSUE_COLUMNS, to_frame
from database import CLEAN_VIEW, DB_PATH, RoIssue, get_engine, init_db


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------


def _normalise_header(name) -> str:
    return str(name).strip().lower().replace(" ", "_")


def read_csv(path) -> pd.DataFrame:
    """
    Read a raw RO issue export into a DataFrame with exactly ISSUE_COLUMNS.

    Headers are matched case-insensitively, blank cells become null,
    unparseable numbers become NaN and missing columns are added as null.
    Rows get ids 1..n when the file has no id column.
    """
    df = pd.read_csv(path, skipinitialspace=True)
    df.columns = [_normalise_header(c) for c in df.columns]
    df = df.replace(r"^\s*$", np.nan, regex=True)

    if "id" not in df.columns or df["id"].isna().all():
        df["id"] = range(1, len(df) + 1)

    df = to_frame(df)[list(ISSUE_COLUMNS)].copy()
    parsed = pd.to_datetime(df["date_reviewed"], errors="coerce")
    df["date_reviewed"] = [None if pd.isna(d) else d.date() for d in parsed]
    return df


def read_issues(engine) -> pd.DataFrame:
    """All rows of ro_issues, ordered by id."""
    with engine.connect() as conn:
        result = conn.execute(select(RoIssue.__table__).order_by(RoIssue.id))
        df = pd.DataFrame(result.fetchall(), columns=list(result.keys()))
    return to_frame(df)


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


def _to_row(record: dict) -> dict:
    """Plain Python values for the DB driver: NaN → None, integral ids → int."""
    row = {}
    for col in ISSUE_COLUMNS:
        value = record.get(col)
        if value is not None and not isinstance(value, str) and pd.isna(value):
            value = None
        elif col in INTEGER_COLUMNS and value is not None:
            value = int(value)
        row[col] = value
    return row


def insert_frame(engine, df: pd.DataFrame, batch_size: int = 2_000) -> int:
    """Insert issue rows into ro_issues. Returns the number of rows written."""
    rows = [_to_row(r) for r in df.astype(object).to_dict("records")]
    with Session(engine) as session:
        for i in range(0, len(rows), batch_size):
            session.execute(insert(RoIssue), rows[i: i + batch_size])
        session.commit()
    return len(rows)


def clear_issues(engine) -> None:
    with Session(engine) as session:
        session.execute(delete(RoIssue))
        session.commit()


def load_csv(engine, path, replace: bool = False) -> int:
    """Import a CSV export into ro_issues, creating the schema if needed."""
    df = read_csv(path)
    init_db(engine)
    if replace:
        clear_issues(engine)
    return insert_frame(engine, df)


def export_clean_view(engine, path) -> int:
    """Write ro_issues_clean (raw columns + derived fields) to CSV."""
    with engine.connect() as conn:
        result = conn.execute(text(f"SELECT * FROM {CLEAN_VIEW} ORDER BY id"))
        df = pd.DataFrame(result.fetchall(), columns=list(result.keys()))
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    return len(df)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def main():
    parser = argparse.ArgumentParser(description="Load RO issue CSV exports into SQLite.")
    parser.add_argument("csv", help="CSV export of ro_issues")
    parser.add_argument("--replace", action="store_true",
                        help="Delete existing issues before loading")
    parser.add_argument("--export", metavar="PATH",
                        help="Also write ro_issues_clean to this CSV path")
    args = parser.parse_args()

    engine = get_engine()
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)

    count = load_csv(engine, args.csv, replace=args.replace)
    print(f"Loaded {count:,} issues from {args.csv}")

    if args.export:
        exported = export_clean_view(engine, args.export)
        print(f"Exported {exported:,} rows of {CLEAN_VIEW} → {args.export}")


if __name__ == "__main__":
    main()
