"""
Engine Settings - Policy knobs shared by every project a factory creates.

Contract variants disagree on a few behaviours (self-voting, how the
participant counter is decremented, whether a zero vote withdraws). Each of
those is a setting here rather than a hard-coded choice.
"""

import os
from dataclasses import dataclass, asdict, fields
from typing import Dict, Optional
import logging

log = logging.getLogger(__name__)


class DecrementPolicy:
    """How a poll's participant counter is decremented on vote removal."""
    SATURATING = "saturating"  # Clamp at zero
    CHECKED = "checked"        # Raise CounterUnderflow instead of going negative


@dataclass
class EngineSettings:
    """
    All configurable policy for a voting engine.

    IMPORTANT: Every value has an explicit meaning. No magic numbers.
    """

    reverification_cooldown_seconds: float = 3600.0
    """Minimum seconds between identity score re-checks for an unverified member."""

    max_voting_power: int = 1000
    """Largest number of votes a single cast may request."""

    max_polls_per_member: int = 100
    """How many different polls one member may hold votes on at the same time."""

    allow_self_vote: bool = True
    """If False, a poll's creator cannot vote on it."""

    zero_vote_withdraws: bool = True
    """If True, casting 0 votes withdraws the existing vote. If False, 0 is rejected."""

    participant_decrement: str = DecrementPolicy.SATURATING
    """DecrementPolicy used when a vote is removed."""

    require_attestation: bool = False
    """If True, joining also mints an attestation and fails if that fails."""

    def __post_init__(self):
        if self.participant_decrement not in (DecrementPolicy.SATURATING, DecrementPolicy.CHECKED):
            raise ValueError(f"Unknown participant_decrement policy: {self.participant_decrement}")
        if self.max_voting_power < 1:
            raise ValueError("max_voting_power must be at least 1")
        if self.max_polls_per_member < 1:
            raise ValueError("max_polls_per_member must be at least 1")

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> "EngineSettings":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def from_env(cls, prefix: str = "QUADVOTE_", environ: Optional[Dict[str, str]] = None) -> "EngineSettings":
        """
        Build settings from environment variables.

        QUADVOTE_MAX_VOTING_POWER=500 overrides max_voting_power, and so on.
        Unset variables keep their defaults.
        """
        environ = os.environ if environ is None else environ
        values = {}
        for f in fields(cls):
            raw = environ.get(prefix + f.name.upper())
            if raw is None:
                continue
            if f.type in (bool, "bool"):
                values[f.name] = raw.strip().lower() in ("1", "true", "yes", "on")
            elif f.type in (int, "int"):
                values[f.name] = int(raw)
            elif f.type in (float, "float"):
                values[f.name] = float(raw)
            else:
                values[f.name] = raw.strip()
            log.debug(f"Setting {f.name} overridden from environment")
        return cls(**values)
