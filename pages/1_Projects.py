"""
Project Members

Identity scores, joining, and the member ledger of one project.
"""

import streamlit as st
from voting.console import get_page_config, inject_theme, get_factory, members_frame

st.set_page_config(**get_page_config("Members"))
inject_theme()

from voting.errors import VotingError
from oracles.static import StaticScoreOracle

factory = get_factory()
oracle = st.session_state.oracle

st.title("Project Members")

addresses = factory.list_projects()
if not addresses:
    st.info("No projects yet. Create one from the main page.")
    st.stop()

default = addresses.index(st.session_state.get("selected_project", addresses[0])) \
    if st.session_state.get("selected_project") in addresses else 0
address = st.selectbox("Project", addresses, index=default,
                       format_func=lambda a: factory.get_project(a).config.name)
st.session_state.selected_project = address
engine = factory.get_project(address)
info = engine.project_info()

col1, col2, col3, col4 = st.columns(4)
col1.metric("Members", info['participants'])
col2.metric("Polls", info['polls'])
col3.metric("Token supply", info['token_supply'])
col4.metric("Status", "Active" if info['is_active'] else "Inactive")
st.caption(f"Join at score {info['min_score_to_join']}, verified at {info['min_score_to_verify']}. "
           f"Regular members get {info['tokens_per_user']} tokens, verified members {info['tokens_per_verified_user']}.")

col_left, col_right = st.columns([1, 2])

with col_left:
    st.subheader("Join")
    user = st.text_input("Address", value=st.session_state.get("operator", ""))
    manual_scores = isinstance(oracle, StaticScoreOracle)
    if manual_scores:
        score = st.number_input("Identity score", value=int(oracle.scores.get(user, 0)), min_value=0, step=1000)
        if st.button("Set score"):
            oracle.set_score(user, int(score))
            st.success(f"Score for {user} set to {int(score)}")
    else:
        st.caption("Scores are read from Gitcoin Passport.")
    if st.button("Join project", type="primary"):
        if manual_scores:
            oracle.set_score(user, int(score))
        try:
            member = engine.join_project(user)
        except VotingError as e:
            st.error(str(e))
        else:
            st.success(f"{user} joined as {member.tier.value} with {member.tokens_left} tokens")
            st.rerun()

    st.divider()
    st.subheader("Admin")
    operator = st.session_state.get("operator", "")
    label = "Deactivate project" if info['is_active'] else "Activate project"
    if st.button(label):
        try:
            engine.set_project_active(operator, not info['is_active'])
        except VotingError as e:
            st.error(str(e))
        else:
            st.rerun()

with col_right:
    st.subheader("Member Ledger")
    members = members_frame(engine)
    if members.empty:
        st.info("Nobody has joined yet.")
    else:
        st.dataframe(members, hide_index=True, width="stretch")
