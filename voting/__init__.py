"""
Voting module for the quadratic voting platform.
Contains the project factory, per-project engines, ledgers and events.
"""

from voting.models import (
    ProjectConfig, Membership, MembershipTier, Poll, Vote, PollResult, AttestationRequest
)
from voting.settings import EngineSettings, DecrementPolicy
from voting.token import VotingToken
from voting.membership import MembershipRegistry
from voting.polls import PollStore
from voting.events import Event, EventKind, EventLog
from voting.engine import VotingEngine
from voting.factory import ProjectFactory
from voting import errors

__all__ = [
    # Models
    "ProjectConfig",
    "Membership",
    "MembershipTier",
    "Poll",
    "Vote",
    "PollResult",
    "AttestationRequest",
    # Configuration
    "EngineSettings",
    "DecrementPolicy",
    # Ledgers
    "VotingToken",
    "MembershipRegistry",
    "PollStore",
    # Events
    "Event",
    "EventKind",
    "EventLog",
    # Orchestration
    "VotingEngine",
    "ProjectFactory",
    "errors",
]
