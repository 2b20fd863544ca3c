"""
Membership Registry - Who joined a project, at which tier, with how many tokens.

The registry only records state. Minting the matching tokens and emitting
events is the engine's job, inside the same transaction.
"""

from dataclasses import replace
from typing import Dict, List, Optional
import logging

from voting.errors import AlreadyJoined, ScoreTooLow, NotAMember, TooManyVotes
from voting.models import Membership, ProjectConfig

log = logging.getLogger(__name__)


class MembershipRegistry:
    """Append-only membership table for a single project."""

    def __init__(self, config: ProjectConfig, max_polls_per_member: int = 100):
        self.config = config
        self.max_polls_per_member = max_polls_per_member
        self.members: Dict[str, Membership] = {}
        self.participant_count = 0
        self._journal: Optional[Dict[str, Optional[Membership]]] = None
        self._count_before = 0

    def is_member(self, user: str) -> bool:
        return user in self.members

    def get(self, user: str) -> Optional[Membership]:
        return self.members.get(user)

    def require(self, user: str) -> Membership:
        """Return the membership or raise NotAMember."""
        member = self.members.get(user)
        if member is None:
            raise NotAMember(f"{user} has not joined {self.config.name}")
        return member

    def join(self, user: str, score: int, now: float) -> Membership:
        """
        Register a new member.

        Args:
            user: Joining identity
            score: Identity score at join time
            now: Current timestamp

        Returns:
            The new Membership, already credited with its allotment
        """
        if user in self.members:
            raise AlreadyJoined(f"{user} already joined {self.config.name}")
        if score < self.config.min_score_to_join:
            raise ScoreTooLow(f"Score {score} below {self.config.min_score_to_join}")

        is_verified = score >= self.config.min_score_to_verify
        member = Membership(
            user=user,
            is_verified=is_verified,
            tokens_left=self.config.allotment(is_verified),
            last_score_check=now,
            joined_at=now,
        )
        self._touch(user)
        self.members[user] = member
        self.participant_count += 1
        return member

    def needs_reverification(self, user: str, now: float, cooldown: float) -> bool:
        member = self.require(user)
        return not member.is_verified and now - member.last_score_check >= cooldown

    def refresh_verification(self, user: str, score: int, now: float, cooldown: float) -> int:
        """
        Promote an unverified member if their score now qualifies.

        No-op for verified members and while the cooldown is running.

        Returns:
            Tokens added to tokens_left (0 when nothing changed)
        """
        if not self.needs_reverification(user, now, cooldown):
            return 0

        self._touch(user)
        member = self.members[user]
        member.last_score_check = now
        if score < self.config.min_score_to_verify:
            return 0

        bonus = self.config.verification_bonus
        member.is_verified = True
        member.tokens_left += bonus
        return bonus

    def credit(self, user: str, amount: int):
        member = self.require(user)
        self._touch(user)
        member.tokens_left += amount

    def debit(self, user: str, amount: int):
        member = self.require(user)
        if amount > member.tokens_left:
            # Engine checks first; this is the ledger's own floor.
            raise ValueError(f"Debit of {amount} exceeds {member.tokens_left} tokens left")
        self._touch(user)
        member.tokens_left -= amount

    def track_poll(self, user: str, poll_id: int):
        """Add a poll to the member's voted set, bounded by max_polls_per_member."""
        member = self.require(user)
        if poll_id in member.voted_polls:
            return
        if len(member.voted_polls) >= self.max_polls_per_member:
            raise TooManyVotes(f"{user} already holds votes on {len(member.voted_polls)} polls")
        self._touch(user)
        member.voted_polls.add(poll_id)

    def untrack_poll(self, user: str, poll_id: int):
        member = self.require(user)
        self._touch(user)
        member.voted_polls.discard(poll_id)

    def all_members(self) -> List[Membership]:
        return sorted(self.members.values(), key=lambda m: m.joined_at)

    # Undo journal: pre-transaction copy of each member touched since begin(),
    # or None for members that joined inside the transaction.
    def begin(self):
        self._journal = {}
        self._count_before = self.participant_count

    def _touch(self, user: str):
        if self._journal is None or user in self._journal:
            return
        member = self.members.get(user)
        self._journal[user] = replace(member, voted_polls=set(member.voted_polls)) if member else None

    def commit(self):
        self._journal = None

    def rollback(self):
        """Put back every membership touched since begin()."""
        if self._journal is None:
            return
        for user, saved in self._journal.items():
            if saved is None:
                self.members.pop(user, None)
            else:
                self.members[user] = saved
        self.participant_count = self._count_before
        self._journal = None
