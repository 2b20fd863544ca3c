"""Tests for the membership registry."""

import pytest
from voting.membership import MembershipRegistry
from voting.models import ProjectConfig, MembershipTier
from voting.errors import AlreadyJoined, ScoreTooLow, NotAMember, TooManyVotes


@pytest.fixture
def config():
    return ProjectConfig(
        name="Budget",
        description="",
        metadata_hash="",
        tokens_per_user=100,
        tokens_per_verified_user=1000,
        min_score_to_join=50,
        min_score_to_verify=150,
        end_time=10_000.0,
        admin="admin",
    )


@pytest.fixture
def registry(config):
    return MembershipRegistry(config, max_polls_per_member=2)


class TestJoin:

    def test_regular_join(self, registry):
        member = registry.join("alice", 100, now=10.0)
        assert member.tier == MembershipTier.REGULAR
        assert member.tokens_left == 100
        assert member.joined_at == 10.0
        assert registry.participant_count == 1

    def test_verified_join(self, registry):
        member = registry.join("bob", 150, now=10.0)
        assert member.is_verified
        assert member.tokens_left == 1000

    def test_score_exactly_at_join_threshold(self, registry):
        assert registry.join("carol", 50, now=0.0).tokens_left == 100

    def test_score_below_threshold(self, registry):
        with pytest.raises(ScoreTooLow):
            registry.join("dave", 49, now=0.0)
        assert not registry.is_member("dave")
        assert registry.participant_count == 0

    def test_double_join(self, registry):
        registry.join("alice", 100, now=0.0)
        with pytest.raises(AlreadyJoined):
            registry.join("alice", 200, now=1.0)
        assert registry.participant_count == 1

    def test_require_unknown_user(self, registry):
        with pytest.raises(NotAMember) as exc:
            registry.require("ghost")
        assert exc.value.code == "MUST_JOIN_FIRST"


class TestReverification:

    def test_promotes_after_cooldown(self, registry):
        registry.join("alice", 100, now=0.0)
        bonus = registry.refresh_verification("alice", 200, now=3600.0, cooldown=3600.0)
        assert bonus == 900
        member = registry.get("alice")
        assert member.is_verified
        assert member.tokens_left == 1000
        assert member.last_score_check == 3600.0

    def test_noop_inside_cooldown(self, registry):
        registry.join("alice", 100, now=0.0)
        assert registry.refresh_verification("alice", 200, now=3599.0, cooldown=3600.0) == 0
        assert not registry.get("alice").is_verified
        assert registry.get("alice").last_score_check == 0.0

    def test_low_score_still_resets_cooldown(self, registry):
        registry.join("alice", 100, now=0.0)
        assert registry.refresh_verification("alice", 100, now=4000.0, cooldown=3600.0) == 0
        assert registry.get("alice").last_score_check == 4000.0

    def test_verified_members_never_rechecked(self, registry):
        registry.join("bob", 500, now=0.0)
        assert not registry.needs_reverification("bob", now=1e9, cooldown=1.0)


class TestBalances:

    def test_credit_and_debit(self, registry):
        registry.join("alice", 100, now=0.0)
        registry.debit("alice", 30)
        registry.credit("alice", 10)
        assert registry.get("alice").tokens_left == 80

    def test_debit_floor(self, registry):
        registry.join("alice", 100, now=0.0)
        with pytest.raises(ValueError):
            registry.debit("alice", 101)

    def test_track_poll_bound(self, registry):
        registry.join("alice", 100, now=0.0)
        registry.track_poll("alice", 0)
        registry.track_poll("alice", 1)
        registry.track_poll("alice", 1)  # already tracked
        with pytest.raises(TooManyVotes):
            registry.track_poll("alice", 2)
        registry.untrack_poll("alice", 0)
        registry.track_poll("alice", 2)
        assert registry.get("alice").voted_polls == {1, 2}


def test_all_members_in_join_order(registry):
    registry.join("bob", 100, now=5.0)
    registry.join("alice", 100, now=1.0)
    assert [m.user for m in registry.all_members()] == ["alice", "bob"]


class TestJournal:

    def test_rollback_removes_new_members(self, registry):
        registry.join("alice", 100, now=0.0)
        registry.begin()
        registry.join("bob", 200, now=1.0)
        registry.rollback()
        assert not registry.is_member("bob")
        assert registry.participant_count == 1

    def test_rollback_restores_touched_member(self, registry):
        registry.join("alice", 100, now=0.0)
        registry.begin()
        registry.debit("alice", 40)
        registry.track_poll("alice", 3)
        registry.refresh_verification("alice", 500, now=3600.0, cooldown=3600.0)
        registry.rollback()

        member = registry.get("alice")
        assert member.tokens_left == 100
        assert member.voted_polls == set()
        assert not member.is_verified
        assert member.last_score_check == 0.0

    def test_untouched_members_keep_identity(self, registry):
        registry.join("alice", 100, now=0.0)
        registry.join("bob", 100, now=0.0)
        bob = registry.get("bob")
        registry.begin()
        registry.credit("alice", 5)
        registry.rollback()
        assert registry.get("bob") is bob
