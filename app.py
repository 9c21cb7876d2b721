"""
GridScout: Energy Storage Opportunity Dashboard
Main Streamlit entry point.

Run:  streamlit run app.py
"""

from __future__ import annotations

import os
import sys

import pandas as pd
import streamlit as st
from dotenv import load_dotenv
from loguru import logger

from eia.ranking import RankingResult, fetch_storage_rankings

# ---------------------------------------------------------------------------
# Bootstrap
# ---------------------------------------------------------------------------

load_dotenv()

# loguru to stderr so it stays out of Streamlit's stdout
logger.remove()
logger.add(sys.stderr, level=os.getenv("LOG_LEVEL", "INFO"))

US_STATES = [
    "AK", "AL", "AR", "AZ", "CA", "CO", "CT", "DC", "DE", "FL", "GA", "HI", "IA",
    "ID", "IL", "IN", "KS", "KY", "LA", "MA", "MD", "ME", "MI", "MN", "MO", "MS",
    "MT", "NC", "ND", "NE", "NH", "NJ", "NM", "NV", "NY", "OH", "OK", "OR", "PA",
    "RI", "SC", "SD", "TN", "TX", "UT", "VA", "VT", "WA", "WI", "WV", "WY",
]

# ---------------------------------------------------------------------------
# Page configuration (must be the first Streamlit call)
# ---------------------------------------------------------------------------

st.set_page_config(
    page_title="GridScout | Storage Opportunities",
    page_icon="🔋",
    layout="wide",
    initial_sidebar_state="expanded",
)


def ranking_frame(result: RankingResult) -> pd.DataFrame:
    """One row per scored region, best first."""
    rows = []
    for rank, m in enumerate(result.detailed_results, start=1):
        s = m.storage_opportunity_score
        rows.append(
            {
                "rank":                  rank,
                "region":                m.region,
                "overall":               s.overall,
                "peak_shaving":          s.peak_shaving,
                "renewable_integration": s.renewable_integration,
                "grid_services":         s.grid_services,
                "economic":              s.economic,
                "renewable_pct":         m.grid_capacity.renewable_penetration_pct,
                "avg_price_c_kwh":       m.economic_opportunity.average_price_cents_per_kwh,
                "est_revenue_usd_yr":    m.economic_opportunity.estimated_arbitrage_revenue_per_year,
            }
        )
    return pd.DataFrame(rows)


# ---------------------------------------------------------------------------
# Sidebar: configuration
# ---------------------------------------------------------------------------

with st.sidebar:
    st.title("🔋 GridScout")
    st.caption("Energy storage opportunity scoring · EIA Open Data")
    st.divider()

    api_key = st.text_input(
        "EIA API key",
        value=os.getenv("EIA_API_KEY", ""),
        type="password",
        help="Free key from eia.gov/opendata. Defaults to EIA_API_KEY.",
    )

    regions = st.multiselect(
        "States",
        options=US_STATES,
        default=["TX", "CA", "NY"],
        help="Two-letter state codes to score and rank.",
    )

    include_hourly = st.toggle(
        "Include hourly RTO demand",
        value=False,
        help="Fetch 30 days of hourly demand for mapped states. Slower, better stability metrics.",
    )

    st.divider()
    st.caption("Data source: EIA Open Data API v2")

# ---------------------------------------------------------------------------
# Main content area
# ---------------------------------------------------------------------------

st.title("🔋 GridScout: Storage Opportunity Ranking")
st.markdown(
    "Scores each state 0–100 on peak shaving, renewable integration, grid "
    "services and economic arbitrage, then ranks them by the weighted overall score."
)

run_btn = st.button("Run analysis", type="primary", disabled=not regions)

if run_btn:
    if not api_key:
        st.error("An EIA API key is required.")
        st.stop()

    with st.spinner(f"Scoring {len(regions)} state(s)…"):
        try:
            result = fetch_storage_rankings(regions, api_key=api_key, include_hourly=include_hourly)
        except Exception as exc:
            st.error(f"Analysis failed: {exc}")
            logger.exception("Storage ranking error")
            st.stop()

    summary = result.summary
    c1, c2, c3 = st.columns(3)
    c1.metric("States analyzed", summary.regions_analyzed)
    c2.metric("Scored", summary.successful_analyses)
    c3.metric(
        "Top opportunity",
        summary.top_opportunities[0].region if summary.top_opportunities else "N/A",
    )

    if summary.top_opportunities:
        st.subheader("Top Opportunities")
        st.dataframe(
            pd.DataFrame([t.to_dict() for t in summary.top_opportunities]),
            use_container_width=True,
            hide_index=True,
        )

    frame = ranking_frame(result)
    if not frame.empty:
        st.subheader("Scores by State")
        st.bar_chart(
            frame.set_index("region")[
                ["peak_shaving", "renewable_integration", "grid_services", "economic"]
            ]
        )
        st.dataframe(frame, use_container_width=True, hide_index=True)

    if result.failed_regions:
        st.subheader("Failed States")
        for f in result.failed_regions:
            st.warning(f"{f.region}: {f.error}")

# ---------------------------------------------------------------------------
# Footer
# ---------------------------------------------------------------------------

st.divider()
st.caption("GridScout v0.1 · Data © U.S. Energy Information Administration")
