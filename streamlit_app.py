"""
Streamlit application for the velock treasury workbench.

Interactive controls for the deposit router, the reward accumulator fee split
and the simulated demand, with charts of the lock, the pending pool and where
harvested rewards end up.

Run locally with: streamlit run streamlit_app.py
"""

import pandas as pd
import streamlit as st

from velock.config.loader import load_config
from velock.config.schema import FEE_DENOMINATOR
from velock.reporting.charts import (
    create_harvest_split_chart,
    create_lock_chart,
    create_pending_pool_chart,
)
from velock.reporting.export import snapshots_frame
from velock.simulation.runner import SimulationRunner

st.set_page_config(
    page_title="velock Treasury Workbench",
    page_icon="🔒",
    layout="wide",
    initial_sidebar_state="expanded"
)


@st.cache_data(show_spinner=False)
def run_scenario(config_json: str):
    """Run one scenario; cached on the serialized config."""
    from velock.config.schema import Config
    config = Config.model_validate_json(config_json)
    return SimulationRunner(config).run()


config = load_config()

with st.sidebar:
    st.header("Deposit router")
    config.depositor.lock_incentive_percent = st.slider(
        "Lock incentive (bps of 10 000)", 0, 30, config.depositor.lock_incentive_percent
    )
    config.simulation.lock_probability = st.slider(
        "Share of deposits locked immediately", 0.0, 1.0, config.simulation.lock_probability, 0.05
    )
    config.simulation.sweep_threshold = st.number_input(
        "Keeper sweep threshold (tokens)", min_value=0.0, value=config.simulation.sweep_threshold, step=5_000.0
    )

    st.header("Reward accumulator")
    claimer_pct = st.slider("Claimer fee (%)", 0.0, 5.0, config.accumulator.claimer_fee / FEE_DENOMINATOR * 100, 0.1)
    config.accumulator.claimer_fee = int(claimer_pct / 100 * FEE_DENOMINATOR)
    for entry in config.accumulator.fee_split:
        pct = st.slider(f"{entry.receiver} fee (%)", 0.0, 50.0, entry.fee / FEE_DENOMINATOR * 100, 0.5)
        entry.fee = int(pct / 100 * FEE_DENOMINATOR)

    st.header("Scenario")
    config.simulation.epochs = st.slider("Epochs (weeks)", 4, 208, config.simulation.epochs)
    config.simulation.deposits_per_epoch = st.slider(
        "Deposits per epoch", 0.0, 100.0, config.simulation.deposits_per_epoch
    )
    config.simulation.random_seed = int(st.number_input("Random seed", value=config.simulation.random_seed, step=1))

st.title("Liquid Locker Treasury")
st.caption(f"Config hash `{config.compute_hash()}`")

fee_total = sum(e.fee for e in config.accumulator.fee_split) + config.accumulator.claimer_fee
if fee_total > FEE_DENOMINATOR:
    st.error("Fee split plus claimer fee exceeds 100%; lower a fee to run the scenario.")
    st.stop()

result = run_scenario(config.model_dump_json())
decimals = config.tokens.decimals
final = result.final_metrics

cols = st.columns(4)
cols[0].metric("Locked", f"{final['final_locked']:,.0f}")
cols[1].metric("Pending", f"{final['final_pending']:,.0f}")
cols[2].metric("Receipt supply", f"{final['final_receipt_supply']:,.0f}")
cols[3].metric("Forwarded to gauge", f"{final['forwarded_share']:.1%}")

left, right = st.columns(2)
left.plotly_chart(create_lock_chart(result.snapshots, decimals), use_container_width=True)
right.plotly_chart(create_pending_pool_chart(result.snapshots, decimals), use_container_width=True)
st.plotly_chart(create_harvest_split_chart(result.harvests, decimals), use_container_width=True)

for warning in result.warnings:
    (st.error if warning.severity == "error" else st.warning)(f"{warning.category}: {warning.message}")

with st.expander("Snapshots"):
    frame: pd.DataFrame = snapshots_frame(result)
    st.dataframe(frame, use_container_width=True)
    st.download_button("Download CSV", frame.to_csv(index=False), file_name="velock_snapshots.csv")
