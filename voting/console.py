"""
Shared theme, session bootstrap and table helpers for the Streamlit console.

The pages keep one ProjectFactory per browser session. Scores come from
Gitcoin Passport when it is configured, and are typed in by hand otherwise.
"""

import logging
import math
import os
import time
from typing import Dict, Optional

import pandas as pd

from voting.engine import VotingEngine
from voting.factory import ProjectFactory
from voting.settings import EngineSettings

log = logging.getLogger(__name__)

COLORS = {
    'primary': '#4f46e5',      # Indigo
    'verified': '#059669',     # Emerald
    'regular': '#64748b',      # Slate
    'danger': '#dc2626',       # Red
    'text': '#1e293b',
}

SHARED_CSS = """
<style>
    #MainMenu, header, footer, .stDeployButton {
        visibility: hidden;
        display: none;
    }
    .block-container {
        padding: 1.5rem 2rem;
        max-width: 1200px;
    }
    h1 {
        font-weight: 600;
        color: #1e293b;
        letter-spacing: -0.025em;
    }
    [data-testid="stMetricValue"] {
        font-weight: 600;
    }
</style>
"""


def get_page_config(title: str) -> Dict:
    """Get consistent page configuration."""
    return {
        'page_title': f"{title} | Quadratic Voting Console",
        'page_icon': "🗳️",
        'layout': "wide",
    }


def inject_theme():
    """Inject shared CSS into the page."""
    import streamlit as st
    st.markdown(SHARED_CSS, unsafe_allow_html=True)


def build_oracle(environ: Optional[Dict[str, str]] = None):
    """
    Score oracle for the console.

    Uses Gitcoin Passport when PASSPORT_SCORER_ID is set, otherwise a
    StaticScoreOracle whose scores operators type in by hand.
    """
    from oracles.passport import get_passport_oracle
    from oracles.static import StaticScoreOracle

    environ = os.environ if environ is None else environ
    if environ.get("PASSPORT_SCORER_ID"):
        log.info("Console using Gitcoin Passport scores")
        return get_passport_oracle()
    return StaticScoreOracle()


def get_factory():
    """The session's ProjectFactory, created on first use."""
    import streamlit as st

    if 'factory' not in st.session_state:
        st.session_state.oracle = build_oracle()
        st.session_state.factory = ProjectFactory(
            st.session_state.oracle,
            settings=EngineSettings.from_env(),
        )
        log.info("Console factory created")
    return st.session_state.factory


def projects_frame(factory: ProjectFactory) -> pd.DataFrame:
    """One row per project, newest last."""
    rows = []
    for address in factory.list_projects():
        info = factory.get_project(address).project_info()
        rows.append({
            'address': address,
            'name': info['name'],
            'admin': info['admin'],
            'participants': info['participants'],
            'polls': info['polls'],
            'active': info['is_active'],
            'ends': pd.to_datetime(info['end_time'], unit='s'),
            'open': info['is_active'] and time.time() <= info['end_time'],
        })
    return pd.DataFrame(rows, columns=['address', 'name', 'admin', 'participants', 'polls', 'active', 'ends', 'open'])


def results_frame(engine: VotingEngine) -> pd.DataFrame:
    """Ranked poll tally of one project."""
    columns = ['rank', 'poll_id', 'name', 'total_voting_power', 'total_participants', 'tokens_spent', 'is_active']
    results = [r.to_dict() for r in engine.get_poll_results()]
    return pd.DataFrame(results, columns=columns)


def members_frame(engine: VotingEngine) -> pd.DataFrame:
    """Tier and balance of every member, in join order."""
    rows = []
    for member in engine.get_members():
        rows.append({
            'user': member.user,
            'tier': member.tier.value,
            'tokens_left': member.tokens_left,
            'polls_voted': len(member.voted_polls),
        })
    return pd.DataFrame(rows, columns=['user', 'tier', 'tokens_left', 'polls_voted'])


def max_affordable_votes(engine: VotingEngine, poll_id: int, user: str) -> int:
    """Most votes `user` can put on a poll, counting the refund of their current vote."""
    member = engine.get_membership(user)
    if member is None:
        return 0
    budget = member.tokens_left + engine.get_vote(poll_id, user).tokens_cost
    if not member.is_verified:
        return min(1, budget)
    return min(engine.settings.max_voting_power, math.isqrt(budget))
