"""
Voting Models - Project configuration, memberships, polls and votes.

All records are plain dataclasses. A Vote stores the voter as a plain id,
never as a reference to the Membership.
"""

from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional, Any, Set
from enum import Enum

from voting.errors import ConfigInvalid


class MembershipTier(Enum):
    """Membership class, decided by identity score."""
    REGULAR = "regular"
    VERIFIED = "verified"


# ═══════════════════════════════════════════════════════════════════════════
# PROJECT CONFIG
# ═══════════════════════════════════════════════════════════════════════════
@dataclass(frozen=True)
class ProjectConfig:
    """
    Immutable configuration of one voting project.

    Created once by the ProjectFactory and never mutated afterwards.
    """

    name: str
    """Human-readable project name. Must not be empty."""

    description: str
    """Longer description of what members decide on."""

    metadata_hash: str
    """Content hash of off-chain metadata (e.g. an IPFS CID)."""

    tokens_per_user: int
    """Tokens minted to a regular member on join."""

    tokens_per_verified_user: int
    """Tokens minted to a verified member on join. Must exceed tokens_per_user."""

    min_score_to_join: int
    """Identity score needed to join at all."""

    min_score_to_verify: int
    """Identity score needed for the verified tier. Must exceed min_score_to_join."""

    end_time: float
    """UNIX timestamp after which joins, polls and votes are rejected."""

    admin: str
    """Identity allowed to toggle polls and the project itself."""

    @property
    def verification_bonus(self) -> int:
        """Tokens added when a regular member is promoted to verified."""
        return self.tokens_per_verified_user - self.tokens_per_user

    def allotment(self, is_verified: bool) -> int:
        """Tokens granted on join for the given tier."""
        return self.tokens_per_verified_user if is_verified else self.tokens_per_user

    def validate(self, now: float):
        """Raise ConfigInvalid if the configuration cannot create a project."""
        if not self.name or not self.name.strip():
            raise ConfigInvalid("Project name cannot be empty")
        if self.tokens_per_user <= 0:
            raise ConfigInvalid("tokens_per_user must be positive")
        if self.tokens_per_verified_user <= self.tokens_per_user:
            raise ConfigInvalid("tokens_per_verified_user must exceed tokens_per_user")
        if self.min_score_to_join < 0:
            raise ConfigInvalid("min_score_to_join cannot be negative")
        if self.min_score_to_verify <= self.min_score_to_join:
            raise ConfigInvalid("min_score_to_verify must exceed min_score_to_join")
        if self.end_time <= now:
            raise ConfigInvalid("end_time must be in the future")
        if not self.admin:
            raise ConfigInvalid("Project admin is required")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ═══════════════════════════════════════════════════════════════════════════
# MEMBERSHIP
# ═══════════════════════════════════════════════════════════════════════════
@dataclass
class Membership:
    """One user's membership in one project. Never deleted."""
    user: str
    is_registered: bool = True
    is_verified: bool = False
    tokens_left: int = 0
    voted_polls: Set[int] = field(default_factory=set)
    last_score_check: float = 0.0
    joined_at: float = 0.0
    attestation_id: Optional[str] = None

    @property
    def tier(self) -> MembershipTier:
        return MembershipTier.VERIFIED if self.is_verified else MembershipTier.REGULAR

    def to_dict(self) -> Dict[str, Any]:
        return {
            'user': self.user,
            'is_registered': self.is_registered,
            'is_verified': self.is_verified,
            'tier': self.tier.value,
            'tokens_left': self.tokens_left,
            'voted_polls': sorted(self.voted_polls),
            'last_score_check': self.last_score_check,
            'joined_at': self.joined_at,
            'attestation_id': self.attestation_id,
        }


# ═══════════════════════════════════════════════════════════════════════════
# VOTE
# ═══════════════════════════════════════════════════════════════════════════
@dataclass
class Vote:
    """A user's vote on a poll. The default instance means "no vote"."""
    user: str = ""
    poll_id: int = 0
    voting_power: int = 0
    tokens_cost: int = 0
    is_verified: bool = False  # tier at time of casting
    has_voted: bool = False
    timestamp: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ═══════════════════════════════════════════════════════════════════════════
# POLL
# ═══════════════════════════════════════════════════════════════════════════
@dataclass
class Poll:
    """A single question inside a project."""
    id: int
    name: str
    description: str
    metadata_hash: str
    creator: str
    created_at: float = 0.0
    is_active: bool = True
    total_voting_power_cast: int = 0
    total_participants: int = 0
    votes: Dict[str, Vote] = field(default_factory=dict)  # user -> vote

    def voters(self) -> List[str]:
        return [user for user, vote in self.votes.items() if vote.has_voted]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'metadata_hash': self.metadata_hash,
            'creator': self.creator,
            'created_at': self.created_at,
            'is_active': self.is_active,
            'total_voting_power_cast': self.total_voting_power_cast,
            'total_participants': self.total_participants,
        }


@dataclass
class AttestationRequest:
    """What an attestation issuer is asked to sign when a member joins."""
    schema: str
    recipient: str
    project: str
    data: Dict[str, Any] = field(default_factory=dict)
    expiration_time: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PollResult:
    """Tally of one poll, ranked against the other polls of its project."""
    poll_id: int
    name: str
    total_voting_power: int
    total_participants: int
    tokens_spent: int
    is_active: bool
    rank: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
