"""
app.py — Streamlit dashboard for the Ops Labor Analytics toolkit.

Run with:
    streamlit run src/app.py
"""

import sys
from pathlib import Path

import pandas as pd
import plotly.express as px
import streamlit as st

sys.path.insert(0, str(Path(__file__).parent))

from analytics import DEFAULT_TARGET_TECH
from classifier import classify_frame
from database import get_engine, init_db
from loader import read_issues
from rollups import (
    category_ratio,
    data_profile,
    high_risk_summary,
    rollup,
    technician_cost_rank,
    technician_performance_index,
)

# ---------------------------------------------------------------------------
# App-wide config
# ---------------------------------------------------------------------------

st.set_page_config(
    page_title="Ops Labor Analytics",
    page_icon="🔧",
    layout="wide",
    initial_sidebar_state="expanded",
)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

GOOD    = "#71717a"      # Medium gray
WARNING = "#ca8a04"      # Muted gold/yellow
BAD     = "#52525b"      # Dark gray
PRIMARY = "#27272a"      # Almost black
THEME   = "plotly"

RISK_COLORS = {
    "High-Risk":   "#27272a",
    "Medium-Risk": "#ca8a04",
    "Low-Risk":    "#d4d4d8",
}

DIMENSION_LABELS = {
    "category":        "Category",
    "operation_group": "Operation Group",
    "issue_severity":  "Severity",
    "tech_initials":   "Technician",
    "action_quality":  "Action Quality",
}

# ---------------------------------------------------------------------------
# Cached data loaders  (_engine prefix skips hashing the engine object)
# ---------------------------------------------------------------------------


@st.cache_resource
def get_engine_cached():
    engine = get_engine()
    init_db(engine)
    return engine


@st.cache_data(ttl=300)
def load_issues(_engine) -> pd.DataFrame:
    return classify_frame(read_issues(_engine))


# ---------------------------------------------------------------------------
# Styling helpers
# ---------------------------------------------------------------------------


def _ratio_color(val):
    if pd.isna(val):
        return ""
    if val >= 1.5:
        return f"color: {BAD}; font-weight:600"
    if val >= 1.0:
        return f"color: {WARNING}"
    return f"color: {GOOD}"


def fmt_currency(val):
    if pd.isna(val):
        return "—"
    if abs(val) >= 1_000:
        return f"${val/1_000:.1f}K"
    return f"${val:,.0f}"


# ---------------------------------------------------------------------------
# PAGE 1 — Overview
# ---------------------------------------------------------------------------


def page_overview(df: pd.DataFrame):
    st.title("📊 Labor Overcharge Overview")

    profile = data_profile(df)
    stats = profile["cost_overcharge"]

    c1, c2, c3, c4 = st.columns(4)
    with c1:
        st.metric("Issues Reviewed", f"{profile['row_count']:,}")
    with c2:
        st.metric("Total Overcharge", fmt_currency(stats["total"]))
    with c3:
        st.metric("Avg Overcharge", fmt_currency(stats["avg"]))
    with c4:
        high = int((df["op_risk_bucket"] == "High-Risk").sum())
        st.metric("High-Risk Issues", high)

    st.divider()
    col_left, col_right = st.columns(2)

    with col_left:
        st.subheader("Risk Bucket Distribution")
        risk = rollup(df, "op_risk_bucket")
        fig = px.pie(
            risk, values="incident_count", names="op_risk_bucket",
            color="op_risk_bucket", color_discrete_map=RISK_COLORS,
            template=THEME, hole=0.45,
        )
        fig.update_traces(textposition="inside", textinfo="percent+label")
        fig.update_layout(margin=dict(t=10, b=40))
        st.plotly_chart(fig, use_container_width=True)

    with col_right:
        st.subheader("Weekly Trend")
        weekly = rollup(df, "week", sort_by=None)
        fig = px.bar(
            weekly, x="week", y="total_cost_overcharge",
            template=THEME, color_discrete_sequence=[PRIMARY],
            labels={"week": "Week", "total_cost_overcharge": "Overcharge $"},
        )
        fig.update_layout(margin=dict(t=10, b=10))
        st.plotly_chart(fig, use_container_width=True)


# ---------------------------------------------------------------------------
# PAGE 2 — Rollups
# ---------------------------------------------------------------------------


def page_rollups(df: pd.DataFrame):
    st.title("🧮 Overcharge Rollups")

    dimension = st.selectbox(
        "Group by", list(DIMENSION_LABELS),
        format_func=DIMENSION_LABELS.get,
    )
    summary = rollup(df, dimension)

    fig = px.bar(
        summary, x=dimension, y="total_cost_overcharge",
        text=summary["total_cost_overcharge"].apply(fmt_currency),
        template=THEME, color_discrete_sequence=[PRIMARY],
        labels={dimension: DIMENSION_LABELS[dimension],
                "total_cost_overcharge": "Overcharge $"},
    )
    fig.update_traces(textposition="outside")
    fig.update_layout(margin=dict(t=10, b=10))
    st.plotly_chart(fig, use_container_width=True)
    st.dataframe(summary, use_container_width=True, hide_index=True)


# ---------------------------------------------------------------------------
# PAGE 3 — Technicians
# ---------------------------------------------------------------------------


def page_technicians(df: pd.DataFrame):
    st.title("👷 Technician Performance")

    col_l, col_r = st.columns([3, 2])
    with col_l:
        st.subheader("Tech Performance Index")
        st.caption("Severity-weighted overcharge per incident")
        tpi = technician_performance_index(df)
        fig = px.bar(
            tpi, x="tech_initials", y="tpi", template=THEME,
            color_discrete_sequence=[PRIMARY],
            labels={"tech_initials": "Technician", "tpi": "TPI"},
        )
        fig.update_layout(margin=dict(t=10, b=10))
        st.plotly_chart(fig, use_container_width=True)
        st.dataframe(tpi, use_container_width=True, hide_index=True)

    with col_r:
        st.subheader("Cost Rank")
        st.dataframe(technician_cost_rank(df), use_container_width=True, hide_index=True)
        st.subheader("🔴 High-Risk by Technician")
        st.dataframe(high_risk_summary(df, "tech_initials"),
                     use_container_width=True, hide_index=True)


# ---------------------------------------------------------------------------
# PAGE 4 — Coaching focus
# ---------------------------------------------------------------------------


def page_coaching(df: pd.DataFrame):
    st.title("🎯 Coaching Focus")

    techs = sorted(df["tech_initials"].dropna().unique().tolist())
    default = techs.index(DEFAULT_TARGET_TECH) if DEFAULT_TARGET_TECH in techs else 0
    tech = st.selectbox("Technician", techs, index=default)

    ratio = category_ratio(df, tech)
    styled = (
        ratio.rename(columns={
            "category": "Category", "tech_total": "Tech Total",
            "shop_avg": "Shop Avg", "ratio": "Tech / Shop",
        })
        .style
        .map(_ratio_color, subset=["Tech / Shop"])
        .format({"Tech Total": fmt_currency, "Shop Avg": fmt_currency,
                 "Tech / Shop": "{:.2f}"}, na_rep="—")
    )
    st.dataframe(styled, use_container_width=True, hide_index=True)


def main():
    engine = get_engine_cached()

    with st.sidebar:
        st.markdown("## 🔧 Ops Labor Analytics")
        st.divider()
        page = st.radio(
            "Navigate",
            ["Overview", "Rollups", "Technicians", "Coaching Focus"],
            label_visibility="collapsed",
        )
        st.divider()
        if st.button("🔄 Clear Cache", use_container_width=True):
            st.cache_data.clear()
            st.success("Cache cleared!")
        st.caption("SQLite · SQLAlchemy · Plotly · Streamlit")

    df = load_issues(engine)
    if df.empty:
        st.warning("No data found. Run `python src/data_generator.py` to seed the database.")
        return

    if page == "Overview":
        page_overview(df)
    elif page == "Rollups":
        page_rollups(df)
    elif page == "Technicians":
        page_technicians(df)
    else:
        page_coaching(df)


if __name__ == "__main__":
    main()
