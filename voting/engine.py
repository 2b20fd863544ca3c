"""
Voting Engine - Token-weighted quadratic voting for one project.

The engine is the only writer of its project's token ledger, membership
registry and poll store. Every state-changing call is one transaction:
calls are serialised by a per-engine lock, each ledger journals the records
it changes, and any failure rolls those records back before the error
reaches the caller.
Events of a transaction are emitted only after it commits.

Vote pricing:
    regular member   -> exactly 1 vote, costs 1 token
    verified member  -> n votes (1..max_voting_power), costs n*n tokens

Changing a vote refunds the old cost in full before charging the new one.
"""

import copy
import threading
import time
from contextlib import contextmanager
from typing import Callable, Dict, List, Optional, Any
import logging

from voting.errors import (
    VotingError, AlreadyJoined, ScoreTooLow, ProjectInactive, PollInactive,
    Expired, NotStarted, InvalidVoteCount, InsufficientTokens, NoVoteToRemove,
    SelfVoteNotAllowed, Unauthorized, AttestationFailed, ReentrantCall, ConfigInvalid,
)
from voting.events import Event, EventKind, EventLog
from voting.membership import MembershipRegistry
from voting.models import ProjectConfig, Membership, Poll, Vote, PollResult, AttestationRequest
from voting.polls import PollStore
from voting.settings import EngineSettings
from voting.token import VotingToken

log = logging.getLogger(__name__)

MEMBERSHIP_SCHEMA = "quadvote.membership.v1"


class VotingEngine:
    """
    Engine for one isolated voting project.

    Usage:
        engine = VotingEngine("0xproj", config, oracle)
        engine.join_project("alice")
        poll = engine.create_poll("alice", "Fund the community garden")
        engine.cast_vote("bob", poll.id, 3)
        engine.remove_vote("bob", poll.id)
    """

    def __init__(
        self,
        address: str,
        config: ProjectConfig,
        oracle,
        settings: Optional[EngineSettings] = None,
        event_log: Optional[EventLog] = None,
        clock: Callable[[], float] = time.time,
        attestation_issuer=None
    ):
        """
        Args:
            address: Identity of this engine; owns the project's token
            config: Immutable project configuration (validated here)
            oracle: Anything with get_score(address) -> int
            settings: Policy settings. Defaults to EngineSettings()
            event_log: Where committed events go. Defaults to a private in-memory log
            clock: Returns the current UNIX time
            attestation_issuer: Anything with attest(AttestationRequest) -> str
        """
        self.settings = settings or EngineSettings()
        self.clock = clock
        self.created_at = clock()
        config.validate(self.created_at)
        if self.settings.require_attestation and attestation_issuer is None:
            raise ConfigInvalid("Attestation-gated projects need an attestation issuer")

        self.address = address
        self.config = config
        self.oracle = oracle
        self.attestation_issuer = attestation_issuer
        self.events = event_log if event_log is not None else EventLog()
        self.is_active = True

        self.token = VotingToken(f"{config.name} Votes", "VOTE", owner=address)
        self.registry = MembershipRegistry(config, self.settings.max_polls_per_member)
        self.polls = PollStore(self.settings.participant_decrement)

        self._lock = threading.RLock()
        self._pending: Optional[List[Event]] = None
        self._now = self.created_at

    # ═══════════════════════════════════════════════════════════════════════
    # TRANSACTIONS
    # ═══════════════════════════════════════════════════════════════════════
    def _ledgers(self):
        return (self.token, self.registry, self.polls)

    @contextmanager
    def _transaction(self, action: str, sender: str):
        """All-or-nothing execution of one state-changing call."""
        with self._lock:
            if self._pending is not None:
                raise ReentrantCall(f"{action} by {sender} while {self.address} is mid-transaction")
            was_active = self.is_active
            for ledger in self._ledgers():
                ledger.begin()
            self._pending = []
            self._now = self.clock()
            try:
                yield self._now
                if self._pending:
                    self.events.append_many(self._pending)
            except BaseException as e:
                self.is_active = was_active
                for ledger in self._ledgers():
                    ledger.rollback()
                if isinstance(e, VotingError):
                    log.warning(f"{action} by {sender} on {self.address} rejected: {e}")
                else:
                    log.error(f"{action} by {sender} on {self.address} failed, state restored: {e}")
                raise
            else:
                for ledger in self._ledgers():
                    ledger.commit()
            finally:
                self._pending = None

    def _emit(self, kind: EventKind, **payload):
        self._pending.append(Event(kind=kind, project=self.address, payload=payload, timestamp=self._now))

    # ═══════════════════════════════════════════════════════════════════════
    # GUARDS
    # ═══════════════════════════════════════════════════════════════════════
    def _only_admin(self, sender: str):
        if sender != self.config.admin:
            raise Unauthorized(f"{sender} is not the admin of {self.config.name}")

    def _require_open(self, now: float):
        """Project is active and inside its [created_at, end_time] window."""
        if not self.is_active:
            raise ProjectInactive(f"{self.config.name} is not active")
        if now < self.created_at:
            raise NotStarted(f"{self.config.name} starts at {self.created_at}")
        if now > self.config.end_time:
            raise Expired(f"{self.config.name} ended at {self.config.end_time}")

    def _validate_vote_count(self, votes) -> int:
        if isinstance(votes, bool) or not isinstance(votes, int):
            raise InvalidVoteCount(f"Vote count must be an integer, got {votes!r}")
        if votes < 0 or votes > self.settings.max_voting_power:
            raise InvalidVoteCount(f"Vote count must be within [0, {self.settings.max_voting_power}]")
        if votes == 0 and not self.settings.zero_vote_withdraws:
            raise InvalidVoteCount("Vote count must be at least 1")
        return votes

    # ═══════════════════════════════════════════════════════════════════════
    # EXTERNAL SUB-CALLS
    # ═══════════════════════════════════════════════════════════════════════
    def _fetch_score(self, user: str) -> Optional[int]:
        """Identity score of `user`, or None if the oracle call failed."""
        try:
            return int(self.oracle.get_score(user))
        except ReentrantCall:
            raise
        except Exception as e:
            log.warning(f"Score lookup for {user} failed: {e}")
            return None

    def _attest(self, member: Membership, now: float) -> str:
        request = AttestationRequest(
            schema=MEMBERSHIP_SCHEMA,
            recipient=member.user,
            project=self.address,
            data={
                "project_name": self.config.name,
                "metadata_hash": self.config.metadata_hash,
                "is_verified": member.is_verified,
                "joined_at": now,
            },
        )
        try:
            return self.attestation_issuer.attest(request)
        except ReentrantCall:
            raise
        except Exception as e:
            raise AttestationFailed(f"Attestation for {member.user} failed: {e}") from e

    def _refresh_verification(self, user: str, now: float):
        """Promote an unverified member whose score has caught up, minting the bonus."""
        cooldown = self.settings.reverification_cooldown_seconds
        if not self.registry.needs_reverification(user, now, cooldown):
            return
        score = self._fetch_score(user)
        if score is None:
            return
        bonus = self.registry.refresh_verification(user, score, now, cooldown)
        if bonus:
            self.token.mint(self.address, user, bonus)
            self._emit(EventKind.USER_VERIFICATION_UPDATED, user=user, is_verified=True, additional_tokens=bonus)
            log.info(f"{user} verified on {self.config.name}, +{bonus} tokens")

    # ═══════════════════════════════════════════════════════════════════════
    # MEMBERSHIP
    # ═══════════════════════════════════════════════════════════════════════
    def join_project(self, sender: str) -> Membership:
        """
        Join the project, minting the tier's token allotment.

        Raises:
            ProjectInactive, NotStarted, Expired: project not open
            AlreadyJoined: sender is already a member
            ScoreTooLow: score below min_score_to_join, or oracle unavailable
            AttestationFailed: attestation-gated project and the issuer failed
        """
        with self._transaction("join_project", sender) as now:
            self._require_open(now)
            if self.registry.is_member(sender):
                raise AlreadyJoined(f"{sender} already joined {self.config.name}")

            score = self._fetch_score(sender)
            if score is None:
                raise ScoreTooLow(f"Identity score for {sender} is unavailable")
            member = self.registry.join(sender, score, now)
            self.token.mint(self.address, sender, member.tokens_left)

            if self.settings.require_attestation:
                member.attestation_id = self._attest(member, now)

            self._emit(
                EventKind.USER_JOINED,
                user=sender,
                is_verified=member.is_verified,
                tokens_granted=member.tokens_left,
            )
            result = copy.deepcopy(member)

        log.info(f"{sender} joined {self.config.name} ({result.tier.value}, {result.tokens_left} tokens)")
        return result

    def set_project_active(self, sender: str, active: bool) -> bool:
        """Admin-only switch that gates joins, poll creation and voting."""
        with self._transaction("set_project_active", sender):
            self._only_admin(sender)
            self.is_active = bool(active)
            self._emit(EventKind.PROJECT_STATUS_CHANGED, is_active=self.is_active)
        log.info(f"{self.config.name} is now {'active' if active else 'inactive'}")
        return self.is_active

    # ═══════════════════════════════════════════════════════════════════════
    # POLLS
    # ═══════════════════════════════════════════════════════════════════════
    def create_poll(self, sender: str, name: str, description: str = "", metadata_hash: str = "") -> Poll:
        """Create an active poll. Only members may create polls."""
        with self._transaction("create_poll", sender) as now:
            self.registry.require(sender)
            self._require_open(now)
            poll = self.polls.create(sender, name, description, metadata_hash, now)
            self._emit(EventKind.POLL_CREATED, poll_id=poll.id, creator=sender, name=name)
            result = copy.deepcopy(poll)

        log.info(f"Poll {result.id} '{name}' created on {self.config.name} by {sender}")
        return result

    def toggle_poll_status(self, sender: str, poll_id: int) -> bool:
        """Admin-only. Flips a poll between active and inactive; returns the new state."""
        with self._transaction("toggle_poll_status", sender):
            self._only_admin(sender)
            is_active = self.polls.toggle_active(poll_id)
            self._emit(EventKind.POLL_STATUS_CHANGED, poll_id=poll_id, is_active=is_active)
        log.info(f"Poll {poll_id} on {self.config.name} is now {'active' if is_active else 'inactive'}")
        return is_active

    # ═══════════════════════════════════════════════════════════════════════
    # VOTING
    # ═══════════════════════════════════════════════════════════════════════
    def _refund(self, user: str, poll_id: int) -> Vote:
        """Return the full cost of the user's current vote and release its power."""
        vote = self.polls.release_vote(poll_id, user)
        self.registry.credit(user, vote.tokens_cost)
        self.token.mint(self.address, user, vote.tokens_cost)
        return vote

    def _drop(self, user: str, poll_id: int, refunded: Vote):
        self.polls.delete_vote(poll_id, user)
        self.registry.untrack_poll(user, poll_id)
        self._emit(EventKind.VOTE_REMOVED, user=user, poll_id=poll_id, tokens_returned=refunded.tokens_cost)

    def cast_vote(self, sender: str, poll_id: int, votes: int) -> Vote:
        """
        Cast, change or (with votes == 0) withdraw a vote.

        Args:
            sender: Voting member
            poll_id: Target poll
            votes: Requested voting power. Regular members may only request 1;
                verified members pay votes**2 tokens.

        Returns:
            The stored Vote, or a zero-value Vote after a withdrawal
        """
        with self._transaction("cast_vote", sender) as now:
            self._require_open(now)
            poll = self.polls.get(poll_id)
            if not poll.is_active:
                raise PollInactive(f"Poll {poll_id} is not active")
            self.registry.require(sender)
            if not self.settings.allow_self_vote and poll.creator == sender:
                raise SelfVoteNotAllowed(f"{sender} created poll {poll_id}")
            votes = self._validate_vote_count(votes)

            self._refresh_verification(sender, now)

            previous = self.polls.get_vote(poll_id, sender)
            if votes == 0 and not previous.has_voted:
                raise NoVoteToRemove(f"{sender} has no vote on poll {poll_id}")
            if previous.has_voted:
                self._refund(sender, poll_id)

            if votes == 0:
                self._drop(sender, poll_id, previous)
                result = Vote(user=sender, poll_id=poll_id)
            else:
                result = self._charge(sender, poll_id, votes, first_vote=not previous.has_voted, now=now)

        if votes == 0:
            log.info(f"{sender} withdrew from poll {poll_id}, {previous.tokens_cost} tokens returned")
        else:
            log.info(f"{sender} cast {result.voting_power} vote(s) on poll {poll_id} for {result.tokens_cost} tokens")
        return result

    def _charge(self, user: str, poll_id: int, votes: int, first_vote: bool, now: float) -> Vote:
        member = self.registry.require(user)
        if member.is_verified:
            power, cost = votes, votes * votes
        elif votes != 1:
            raise InvalidVoteCount(f"Unverified members can only cast 1 vote, requested {votes}")
        else:
            power, cost = 1, 1

        if cost > member.tokens_left:
            raise InsufficientTokens(f"{votes} vote(s) cost {cost} tokens, {user} has {member.tokens_left}")

        if first_vote:
            self.registry.track_poll(user, poll_id)
        vote = Vote(
            user=user,
            poll_id=poll_id,
            voting_power=power,
            tokens_cost=cost,
            is_verified=member.is_verified,
            has_voted=True,
            timestamp=now,
        )
        self.polls.record_vote(vote, first_vote=first_vote)
        self.registry.debit(user, cost)
        self.token.burn(self.address, user, cost)
        self._emit(
            EventKind.VOTE_CAST,
            user=user,
            poll_id=poll_id,
            voting_power=power,
            is_verified=member.is_verified,
            tokens_cost=cost,
        )
        return copy.deepcopy(vote)

    def remove_vote(self, sender: str, poll_id: int) -> int:
        """
        Withdraw the sender's vote on a poll, refunding its full cost.

        Allowed on inactive polls; the poll toggle only gates casting.

        Returns:
            Tokens returned
        """
        with self._transaction("remove_vote", sender) as now:
            self._require_open(now)
            self.polls.get(poll_id)
            self.registry.require(sender)
            if not self.polls.has_vote(poll_id, sender):
                raise NoVoteToRemove(f"{sender} has no vote on poll {poll_id}")
            refunded = self._refund(sender, poll_id)
            self._drop(sender, poll_id, refunded)

        log.info(f"{sender} removed vote on poll {poll_id}, {refunded.tokens_cost} tokens returned")
        return refunded.tokens_cost

    # ═══════════════════════════════════════════════════════════════════════
    # READS
    # ═══════════════════════════════════════════════════════════════════════
    def get_poll(self, poll_id: int) -> Poll:
        with self._lock:
            return copy.deepcopy(self.polls.get(poll_id))

    def get_polls(self) -> List[Poll]:
        with self._lock:
            return copy.deepcopy(self.polls.polls)

    def get_vote(self, poll_id: int, user: str) -> Vote:
        """The user's vote, or a zero-value Vote. Raises PollNotFound for unknown polls."""
        with self._lock:
            return copy.deepcopy(self.polls.get_vote(poll_id, user))

    def get_membership(self, user: str) -> Optional[Membership]:
        with self._lock:
            member = self.registry.get(user)
            return copy.deepcopy(member) if member else None

    def get_members(self) -> List[Membership]:
        with self._lock:
            return copy.deepcopy(self.registry.all_members())

    def tokens_left(self, user: str) -> int:
        with self._lock:
            member = self.registry.get(user)
            return member.tokens_left if member else 0

    def get_poll_results(self) -> List[PollResult]:
        with self._lock:
            return self.polls.results()

    def project_info(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'address': self.address,
                **self.config.to_dict(),
                'created_at': self.created_at,
                'is_active': self.is_active,
                'participants': self.registry.participant_count,
                'polls': len(self.polls),
                'token_supply': self.token.total_supply,
            }

    def audit(self) -> List[str]:
        """
        Check the ledger invariants and describe every violation found.

        An empty list means token balances, memberships and poll aggregates
        all agree with each other.
        """
        problems = []
        with self._lock:
            spent: Dict[str, int] = {}
            for poll in self.polls.polls:
                live = [v for v in poll.votes.values() if v.has_voted]
                power = sum(v.voting_power for v in live)
                if power != poll.total_voting_power_cast:
                    problems.append(f"poll {poll.id}: power {poll.total_voting_power_cast} != sum {power}")
                if len(live) != poll.total_participants:
                    problems.append(f"poll {poll.id}: participants {poll.total_participants} != {len(live)}")
                for vote in live:
                    spent[vote.user] = spent.get(vote.user, 0) + vote.tokens_cost
                    if not vote.is_verified and (vote.voting_power, vote.tokens_cost) != (1, 1):
                        problems.append(f"poll {poll.id}: regular vote by {vote.user} is not 1 for 1")
                    if vote.is_verified and vote.tokens_cost != vote.voting_power ** 2:
                        problems.append(f"poll {poll.id}: verified vote by {vote.user} not quadratic")

            for member in self.registry.members.values():
                allotment = self.config.allotment(member.is_verified)
                if member.tokens_left < 0:
                    problems.append(f"{member.user}: negative tokens_left")
                if member.tokens_left + spent.get(member.user, 0) != allotment:
                    problems.append(
                        f"{member.user}: tokens_left {member.tokens_left} + spent "
                        f"{spent.get(member.user, 0)} != allotment {allotment}"
                    )
                if self.token.balance_of(member.user) != member.tokens_left:
                    problems.append(f"{member.user}: token balance differs from tokens_left")
        return problems
