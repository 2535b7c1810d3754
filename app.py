"""
Cache Replacement Visualizer — FIFO, LRU & LFU side by side

This application runs several cache replacement policies against the same
memory reference trace and shows, step by step, how each one fills its
cache, which references hit, and which references get evicted:
    - FIFO (First In, First Out)
    - LRU  (Least Recently Used)
    - LFU  (Least Frequently Used, ties broken by recency)

The simulation can be stepped forward and backward or played back at a
chosen speed. Stepping backward only moves through recorded history; the
caches themselves are never rolled back.

Built with Streamlit for the web interface and Plotly for visualizations.
Run with:  streamlit run app.py
"""

# =============================================================================
# IMPORTS
# =============================================================================

import time                                  # For pacing playback

import plotly.graph_objects as go            # Interactive plotting library
import streamlit as st                       # Web application framework

from analytics import best_policy, comparison_rows, step_rows, theoretical_metrics
from config import (DEFAULT_CAPACITY, DEFAULT_SPEED_MS, MAX_CAPACITY, MAX_SPEED_MS,
                    MIN_CAPACITY, MIN_SPEED_MS, SimulationConfig)
from engine import SimulationDriver
from errors import SimulatorError
from registry import POLICY_DESCRIPTIONS, available_policies
from traces import (PRESET_TRACES, format_trace, generate_locality_trace,
                    generate_random_trace, parse_trace)
from utils import get_color, get_policy_color


# =============================================================================
# RENDERING HELPERS
# =============================================================================

def render_cache_slots(state, result):
    """
    Draw one policy's cache as a row of slots.

    Occupied slots show their reference; the slot holding the reference
    just accessed is colored by outcome (green=hit, red=miss).
    """
    fig = go.Figure()

    x, y, text, colors = [], [], [], []
    resident = list(state.resident)
    for slot in range(state.capacity):
        ref = resident[slot] if slot < len(resident) else None
        text.append(str(ref) if ref is not None else "Empty")
        if ref is None:
            colors.append("lightgray")
        elif result is not None and ref == result.reference:
            colors.append(get_color(result.outcome))
        else:
            colors.append("lightblue")
        x.append(slot)
        y.append(1)

    fig.add_trace(go.Bar(x=x, y=y, text=text, marker_color=colors,
                         hovertext=text, hoverinfo="text"))
    fig.update_layout(height=130, showlegend=False, margin=dict(l=10, r=10, t=10, b=10),
                      yaxis=dict(showticklabels=False), xaxis=dict(showticklabels=False))
    return fig


def render_comparison_chart(rows):
    """Grouped bar chart of hits, misses and evictions per policy."""
    fig = go.Figure()
    names = [r["algorithm"] for r in rows]
    for metric in ("hits", "misses", "evictions"):
        fig.add_trace(go.Bar(name=metric.title(), x=names, y=[r[metric] for r in rows]))
    fig.update_layout(barmode="group", height=300, title="Performance Comparison")
    return fig


def render_hit_rate_chart(history, policy_ids):
    """Running hit rate of every policy across the displayed steps."""
    fig = go.Figure()
    for pid in policy_ids:
        steps = [s.step_index + 1 for s in history]
        rates = [s.states[pid].hit_rate for s in history]
        fig.add_trace(go.Scatter(x=steps, y=rates, mode="lines+markers", name=pid,
                                 line=dict(color=get_policy_color(pid))))
    fig.update_layout(height=300, title="Hit Rate over Time",
                      xaxis_title="Step", yaxis=dict(range=[0, 1], title="Hit rate"))
    return fig


# =============================================================================
# PAGE SETUP
# =============================================================================

st.set_page_config(page_title="Cache Replacement Visualizer", layout="wide")

page = st.sidebar.radio("Choose View", ["Simulator", "Concepts"])

st.title("Cache Replacement Visualizer — FIFO, LRU & LFU")

# =============================================================================
# CONCEPTS PAGE - Educational Content
# =============================================================================

if page == "Concepts":
    st.header("Cache Replacement Policies")
    st.markdown(
        """
        When a cache is full and a new item must be loaded, a **replacement
        policy** decides which resident item to give up.

        ### **FIFO (First In, First Out)**
        - Evicts the item that was loaded earliest.
        - A hit does not change the order.

        ### **LRU (Least Recently Used)**
        - Evicts the item that has not been accessed for the longest time.
        - Every access, hits included, makes an item the most recent.

        ### **LFU (Least Frequently Used)**
        - Evicts the item with the fewest accesses.
        - Among equally frequent items, the one touched longest ago goes first.

        ### **Terms**
        - **Hit**: the referenced item is already in the cache.
        - **Miss**: the item has to be loaded.
        - **Eviction**: an item is removed to make room; only on a miss with a full cache.
        """
    )
    st.stop()

# -----------------------------------------------------------------------------
# SESSION STATE - Driver Persistence
# -----------------------------------------------------------------------------

if "driver" not in st.session_state:
    st.session_state.driver = SimulationDriver()
    st.session_state.trace_text = format_trace(PRESET_TRACES["Locality"])

driver: SimulationDriver = st.session_state.driver

# -----------------------------------------------------------------------------
# SIDEBAR - Memory Trace
# -----------------------------------------------------------------------------

st.sidebar.header("Memory Trace")

preset = st.sidebar.selectbox("Preset traces", options=["(custom)"] + list(PRESET_TRACES))
if preset != "(custom)" and st.sidebar.button("Use Preset"):
    st.session_state.trace_text = format_trace(PRESET_TRACES[preset])

col_len, col_kind = st.sidebar.columns(2)
gen_length = col_len.number_input("Length", min_value=1, max_value=200, value=20)
gen_kind = col_kind.selectbox("Pattern", options=["Random", "Locality"])
if st.sidebar.button("Generate Trace"):
    generated = (generate_random_trace(int(gen_length)) if gen_kind == "Random"
                 else generate_locality_trace(int(gen_length)))
    st.session_state.trace_text = format_trace(generated)

trace_text = st.sidebar.text_area(
    "Memory references (comma or space separated)",
    value=st.session_state.trace_text,
)
st.session_state.trace_text = trace_text

if st.sidebar.button("Load Trace"):
    try:
        st.session_state.playing = False
        driver.load_trace(parse_trace(trace_text))
        st.sidebar.success(f"Loaded {driver.total_steps} references")
    except SimulatorError as e:
        st.sidebar.error(str(e))

st.sidebar.markdown("---")

# -----------------------------------------------------------------------------
# SIDEBAR - Cache Configuration
# -----------------------------------------------------------------------------

st.sidebar.header("Cache Configuration")

selected = [pid for pid in available_policies()
            if st.sidebar.checkbox(f"{pid} ({POLICY_DESCRIPTIONS[pid]})", value=True)]

capacity = st.sidebar.slider("Cache capacity", min_value=MIN_CAPACITY,
                             max_value=MAX_CAPACITY, value=DEFAULT_CAPACITY)
speed_ms = st.sidebar.slider("Animation speed (ms per step)", min_value=MIN_SPEED_MS,
                             max_value=MAX_SPEED_MS, value=DEFAULT_SPEED_MS, step=100)

if st.sidebar.button("Initialize Caches", disabled=not selected):
    try:
        config = SimulationConfig(policies=tuple(selected), capacity=capacity,
                                  speed_ms=speed_ms).validate()
        st.session_state.playing = False
        driver.initialize(config.policies, config.capacity)
        st.sidebar.success("Caches initialized")
    except SimulatorError as e:
        st.sidebar.error(str(e))

# =============================================================================
# MAIN CONTENT AREA
# =============================================================================

if driver.total_steps:
    st.caption(f"Trace ({driver.total_steps} references): {format_trace(driver.trace, limit=30)}")

if not driver.policy_ids:
    st.info("Select policies and click **Initialize Caches** to start.")
    st.stop()

# -----------------------------------------------------------------------------
# Controls
# -----------------------------------------------------------------------------

if "playing" not in st.session_state:
    st.session_state.playing = False

c_back, c_fwd, c_play, c_stop, c_reset = st.columns(5)
at_end = driver.current_step >= driver.total_steps
playing = st.session_state.playing

try:
    if c_back.button("← Step Back", disabled=driver.current_step == 0 or playing):
        driver.step_backward()
    if c_fwd.button("Step Forward →", disabled=at_end or playing):
        driver.step_forward()
    if c_play.button("▶ Play", disabled=at_end or playing):
        st.session_state.playing = True
    # Clicking Stop interrupts the pending sleep and reruns the page
    if c_stop.button("■ Stop", disabled=not playing):
        st.session_state.playing = False
    if c_reset.button("Reset Simulation"):
        st.session_state.playing = False
        driver.reset()
except SimulatorError as e:
    st.session_state.playing = False
    st.error(str(e))

if driver.total_steps:
    st.progress(driver.current_step / driver.total_steps,
                text=f"Step {driver.current_step} / {driver.total_steps}")

current = driver.current_result()
if current is not None:
    st.subheader(f"Step {driver.current_step}: reference {current.reference}")

# -----------------------------------------------------------------------------
# Per-policy caches
# -----------------------------------------------------------------------------

states = driver.displayed_states()
columns = st.columns(len(states))

for column, (pid, state) in zip(columns, states.items()):
    result = current.results[pid] if current is not None else None
    with column:
        st.markdown(f"#### {pid}")
        st.plotly_chart(render_cache_slots(state, result), use_container_width=True)

        if result is not None:
            label = "HIT" if result.is_hit else "MISS"
            if result.evicted is not None:
                label += f" (evicted {result.evicted})"
            st.write(label)

        m1, m2, m3 = st.columns(3)
        m1.metric("Hits", state.hits)
        m2.metric("Misses", state.misses)
        m3.metric("Hit Rate", f"{state.hit_rate:.1%}")

        # Event log for the displayed position, newest first
        ops = [op for op in driver.policy(pid).operations if op.seq <= driver.current_step]
        with st.expander("Event Log"):
            for op in ops[-20:][::-1]:
                st.write(op.describe())

# -----------------------------------------------------------------------------
# Analytics
# -----------------------------------------------------------------------------

st.markdown("---")
st.subheader("Analytics")

shown = driver.history[:driver.current_step]
rows = comparison_rows(states)

a1, a2 = st.columns(2)
with a1:
    st.plotly_chart(render_comparison_chart(rows), use_container_width=True)
with a2:
    if shown:
        st.plotly_chart(render_hit_rate_chart(shown, driver.policy_ids), use_container_width=True)

if driver.current_step:
    st.write(f"Best hit rate so far: **{best_policy(states)}**")

if driver.total_steps:
    st.table([theoretical_metrics(driver.trace, driver.capacity)])

st.subheader("Step-by-step Results")
if shown:
    st.table(step_rows(shown))
else:
    st.write("No steps yet. Step forward or press Play")

# -----------------------------------------------------------------------------
# Playback: one step per rerun, so every step is drawn and Stop is honored
# -----------------------------------------------------------------------------

if st.session_state.playing:
    time.sleep(speed_ms / 1000.0)
    try:
        st.session_state.playing = driver.play_step()
    except SimulatorError as e:
        st.session_state.playing = False
        st.error(str(e))
    else:
        st.rerun()
