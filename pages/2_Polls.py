"""
Polls

Create polls, cast quadratic votes, and follow the tally.
"""

import streamlit as st
import plotly.express as px
from voting.console import (
    get_page_config, inject_theme, get_factory, results_frame, max_affordable_votes, COLORS
)

st.set_page_config(**get_page_config("Polls"))
inject_theme()

from voting.errors import VotingError

factory = get_factory()

st.title("Polls")
st.caption("Regular members cast exactly one vote for one token. Verified members pay votes² tokens.")

addresses = factory.list_projects()
if not addresses:
    st.info("No projects yet. Create one from the main page.")
    st.stop()

address = st.selectbox(
    "Project", addresses,
    index=addresses.index(st.session_state.selected_project)
    if st.session_state.get("selected_project") in addresses else 0,
    format_func=lambda a: factory.get_project(a).config.name,
)
engine = factory.get_project(address)
operator = st.session_state.get("operator", "")

col1, col2 = st.columns([1, 2])

with col1:
    st.subheader("New Poll")
    name = st.text_input("Poll name", "Fund the community garden")
    description = st.text_area("Description", "")
    if st.button("Create Poll", type="primary"):
        try:
            poll = engine.create_poll(operator, name, description)
        except VotingError as e:
            st.error(str(e))
        else:
            st.success(f"Created poll #{poll.id}")
            st.rerun()

with col2:
    st.subheader("Cast Your Vote")
    polls = engine.get_polls()
    member = engine.get_membership(operator)

    if not polls:
        st.info("No polls yet.")
    elif member is None:
        st.warning(f"{operator} is not a member of this project. Join on the Members page.")
    else:
        poll = st.selectbox("Poll", polls, format_func=lambda p: f"#{p.id} {p.name}{'' if p.is_active else ' (inactive)'}")
        current = engine.get_vote(poll.id, operator)
        st.metric("Tokens left", member.tokens_left)

        max_votes = max_affordable_votes(engine, poll.id, operator)
        if member.is_verified and max_votes > 1:
            votes = st.slider("Votes", 1, max_votes, min(max(current.voting_power, 1), max_votes))
            cost = votes * votes
        elif member.is_verified:
            votes, cost = 1, 1
            st.caption("Your balance covers a single vote.")
        else:
            votes, cost = 1, 1
            st.caption("Unverified members cast a single vote.")
        refund = current.tokens_cost if current.has_voted else 0
        st.caption(f"Cost: {cost} tokens (refund of current vote: {refund})")

        c1, c2, c3 = st.columns(3)
        if c1.button("Submit Vote"):
            try:
                engine.cast_vote(operator, poll.id, votes)
            except VotingError as e:
                st.error(str(e))
            else:
                st.rerun()
        if c2.button("Remove Vote", disabled=not current.has_voted):
            try:
                engine.remove_vote(operator, poll.id)
            except VotingError as e:
                st.error(str(e))
            else:
                st.rerun()
        if c3.button("Toggle Poll (admin)"):
            try:
                engine.toggle_poll_status(operator, poll.id)
            except VotingError as e:
                st.error(str(e))
            else:
                st.rerun()

st.divider()
st.subheader("Results")
results = results_frame(engine)
if results.empty:
    st.info("Nothing to tally yet.")
else:
    fig = px.bar(
        results, x="name", y="total_voting_power",
        hover_data=["total_participants", "tokens_spent"],
        color_discrete_sequence=[COLORS['primary']],
    )
    fig.update_layout(xaxis_title="", yaxis_title="Voting power", height=360)
    st.plotly_chart(fig, width="stretch")
    st.dataframe(results, hide_index=True, width="stretch")
