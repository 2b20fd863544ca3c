"""
Poll Store - The polls of one project and their vote records.

Poll ids are dense and start at 0. Aggregates (total voting power,
participant count) are kept in step with the vote records on every write.
"""

from typing import Dict, List, Optional
import logging

from voting.errors import PollNotFound, CounterUnderflow, ConfigInvalid
from voting.models import Poll, Vote, PollResult
from voting.settings import DecrementPolicy

log = logging.getLogger(__name__)


class PollStore:
    """Owns every Poll of a single project."""

    def __init__(self, participant_decrement: str = DecrementPolicy.SATURATING):
        self.participant_decrement = participant_decrement
        self.polls: List[Poll] = []
        self._journal: Optional[Dict] = None

    def __len__(self) -> int:
        return len(self.polls)

    def create(
        self,
        creator: str,
        name: str,
        description: str = "",
        metadata_hash: str = "",
        now: float = 0.0
    ) -> Poll:
        """Append an active poll with zero aggregates and return it."""
        if not name or not name.strip():
            raise ConfigInvalid("Poll name cannot be empty")
        poll = Poll(
            id=len(self.polls),
            name=name,
            description=description,
            metadata_hash=metadata_hash,
            creator=creator,
            created_at=now,
        )
        self.polls.append(poll)
        return poll

    def get(self, poll_id: int) -> Poll:
        if isinstance(poll_id, bool) or not isinstance(poll_id, int):
            raise PollNotFound(f"Poll id must be an integer, got {poll_id!r}")
        if poll_id < 0 or poll_id >= len(self.polls):
            raise PollNotFound(f"Poll {poll_id} does not exist")
        return self.polls[poll_id]

    def toggle_active(self, poll_id: int) -> bool:
        """Flip is_active and return the new value. Existing votes are untouched."""
        poll = self.get(poll_id)
        self._touch(poll)
        poll.is_active = not poll.is_active
        return poll.is_active

    def get_vote(self, poll_id: int, user: str) -> Vote:
        """The user's vote, or a zero-value Vote if they have none."""
        poll = self.get(poll_id)
        vote = poll.votes.get(user)
        if vote is None or not vote.has_voted:
            return Vote(user=user, poll_id=poll_id)
        return vote

    def has_vote(self, poll_id: int, user: str) -> bool:
        return self.get_vote(poll_id, user).has_voted

    def record_vote(self, vote: Vote, first_vote: bool):
        """Store a vote whose previous record (if any) was already released."""
        poll = self.get(vote.poll_id)
        self._touch(poll, vote.user)
        poll.votes[vote.user] = vote
        poll.total_voting_power_cast += vote.voting_power
        if first_vote:
            poll.total_participants += 1

    def release_vote(self, poll_id: int, user: str) -> Vote:
        """
        Take back the voting power of a user's current vote.

        The record stays in place until it is overwritten or deleted, so the
        caller decides between replacing and removing it.
        """
        poll = self.get(poll_id)
        self._touch(poll)
        vote = poll.votes[user]
        poll.total_voting_power_cast -= vote.voting_power
        return vote

    def delete_vote(self, poll_id: int, user: str):
        """Remove a released vote record and decrement the participant count."""
        poll = self.get(poll_id)
        self._touch(poll, user)
        del poll.votes[user]
        if poll.total_participants > 0:
            poll.total_participants -= 1
        elif self.participant_decrement == DecrementPolicy.CHECKED:
            raise CounterUnderflow(f"Poll {poll_id} has no participants to remove")
        else:
            log.warning(f"Poll {poll_id} participant count already zero; clamped")

    def results(self) -> List[PollResult]:
        """Tally of every poll, ranked by total voting power (ties by id)."""
        ordered = sorted(self.polls, key=lambda p: (-p.total_voting_power_cast, p.id))
        return [
            PollResult(
                poll_id=poll.id,
                name=poll.name,
                total_voting_power=poll.total_voting_power_cast,
                total_participants=poll.total_participants,
                tokens_spent=sum(v.tokens_cost for v in poll.votes.values() if v.has_voted),
                is_active=poll.is_active,
                rank=rank,
            )
            for rank, poll in enumerate(ordered, start=1)
        ]

    # Undo journal: polls created since begin() are truncated on rollback;
    # older polls keep their aggregates and the vote entries touched.
    def begin(self):
        self._journal = {"count": len(self.polls), "polls": {}, "votes": {}}

    def _touch(self, poll: Poll, user: Optional[str] = None):
        journal = self._journal
        if journal is None or poll.id >= journal["count"]:
            return
        if poll.id not in journal["polls"]:
            journal["polls"][poll.id] = (poll.is_active, poll.total_voting_power_cast, poll.total_participants)
        if user is not None and (poll.id, user) not in journal["votes"]:
            journal["votes"][(poll.id, user)] = poll.votes.get(user)

    def commit(self):
        self._journal = None

    def rollback(self):
        """Put back every poll aggregate and vote entry touched since begin()."""
        journal = self._journal
        if journal is None:
            return
        del self.polls[journal["count"]:]
        for poll_id, (is_active, power, participants) in journal["polls"].items():
            poll = self.polls[poll_id]
            poll.is_active = is_active
            poll.total_voting_power_cast = power
            poll.total_participants = participants
        for (poll_id, user), vote in journal["votes"].items():
            if vote is None:
                self.polls[poll_id].votes.pop(user, None)
            else:
                self.polls[poll_id].votes[user] = vote
        self._journal = None
