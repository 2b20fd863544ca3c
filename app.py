"""
Quadratic Voting Console - Main Application

Multi-page Streamlit application for running quadratic voting projects.
"""

import logging
import time
from datetime import datetime, timedelta

import streamlit as st

# ═══════════════════════════════════════════════════════════════════════════
# PAGE CONFIG
# ═══════════════════════════════════════════════════════════════════════════
from voting.console import get_page_config, inject_theme, get_factory, projects_frame

st.set_page_config(**get_page_config("Projects"), initial_sidebar_state="expanded")
inject_theme()

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s │ %(name)-20s │ %(levelname)-8s │ %(message)s',
    datefmt='%H:%M:%S',
)

# ═══════════════════════════════════════════════════════════════════════════
# IMPORTS
# ═══════════════════════════════════════════════════════════════════════════
from voting.errors import VotingError

factory = get_factory()

# ═══════════════════════════════════════════════════════════════════════════
# SIDEBAR
# ═══════════════════════════════════════════════════════════════════════════
st.sidebar.title("🗳️ Quadratic Voting")
st.sidebar.markdown("---")
operator = st.sidebar.text_input("Acting as", value=st.session_state.get("operator", "admin"))
st.session_state.operator = operator

stats = factory.events.get_stats()
st.sidebar.metric("Projects", factory.project_count)
st.sidebar.metric("Events", stats['total_events'])

# ═══════════════════════════════════════════════════════════════════════════
# MAIN PAGE
# ═══════════════════════════════════════════════════════════════════════════
st.title("🗳️ Quadratic Voting Console")
st.markdown("Identity-gated projects where every extra vote costs quadratically more.")

tab_projects, tab_new = st.tabs(["📁 Projects", "➕ New Project"])

with tab_projects:
    frame = projects_frame(factory)
    if frame.empty:
        st.info("No projects yet. Create one in the 'New Project' tab.")
    else:
        st.dataframe(frame, hide_index=True, width="stretch")
        selected = st.selectbox("Open project", frame['address'], format_func=lambda a: factory.get_project(a).config.name)
        if st.button("Open"):
            st.session_state.selected_project = selected
            st.switch_page("pages/1_Projects.py")

with tab_new:
    with st.form("new_project_form"):
        name = st.text_input("Project Name", placeholder="e.g., Neighbourhood Budget 2025")
        description = st.text_area("Description (optional)")
        metadata_hash = st.text_input("Metadata hash (optional)", placeholder="ipfs CID")

        col1, col2 = st.columns(2)
        with col1:
            tokens_per_user = st.number_input("Tokens per regular member", value=100, min_value=1)
            min_score_to_join = st.number_input("Score to join", value=5000, min_value=0)
        with col2:
            tokens_per_verified_user = st.number_input("Tokens per verified member", value=1000, min_value=2)
            min_score_to_verify = st.number_input("Score to verify", value=15000, min_value=1)

        end_date = st.date_input("Voting ends", value=datetime.now().date() + timedelta(days=14))
        submitted = st.form_submit_button("Create Project", width="stretch")

        if submitted:
            end_time = datetime.combine(end_date, datetime.max.time()).timestamp()
            try:
                engine = factory.create_project(
                    operator,
                    name=name,
                    description=description,
                    metadata_hash=metadata_hash,
                    tokens_per_user=int(tokens_per_user),
                    tokens_per_verified_user=int(tokens_per_verified_user),
                    min_score_to_join=int(min_score_to_join),
                    min_score_to_verify=int(min_score_to_verify),
                    end_time=end_time,
                )
            except VotingError as e:
                st.error(str(e))
            else:
                st.session_state.selected_project = engine.address
                st.success(f"Created {name} at {engine.address}")
                st.rerun()

# ═══════════════════════════════════════════════════════════════════════════
# AUTO REFRESH
# ═══════════════════════════════════════════════════════════════════════════
if st.sidebar.checkbox("🔄 Auto-refresh", value=False):
    time.sleep(5)
    st.rerun()
