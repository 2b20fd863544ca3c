"""End-to-end voting scenarios and ledger properties over random activity."""

import random
import pytest

from voting.factory import ProjectFactory
from voting.events import EventKind
from voting.errors import VotingError, InvalidVoteCount, ScoreTooLow, AlreadyJoined, Expired
from oracles.static import StaticScoreOracle

START = 10_000.0
END = START + 7 * 86_400


class Clock:
    def __init__(self):
        self.now = START

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def oracle():
    return StaticScoreOracle({"admin": 20_000, "regular": 8_000, "verified": 20_000})


@pytest.fixture
def engine(oracle, clock):
    factory = ProjectFactory(oracle, clock=clock)
    engine = factory.create_project(
        "admin",
        name="Neighbourhood Budget",
        description="How should the park fund be spent?",
        metadata_hash="QmBudget",
        tokens_per_user=100,
        tokens_per_verified_user=1000,
        min_score_to_join=5_000,
        min_score_to_verify=15_000,
        end_time=END,
    )
    engine.join_project("admin")
    engine.create_poll("admin", "Playground")
    return engine


def test_regular_member_scenario(engine):
    member = engine.join_project("regular")
    assert not member.is_verified
    assert member.tokens_left == 100

    vote = engine.cast_vote("regular", 0, 1)
    assert vote.tokens_cost == 1
    assert engine.tokens_left("regular") == 99

    with pytest.raises(InvalidVoteCount):
        engine.cast_vote("regular", 0, 2)
    assert engine.tokens_left("regular") == 99


def test_verified_member_scenario(engine):
    assert engine.join_project("verified").tokens_left == 1000

    engine.cast_vote("verified", 0, 4)
    assert engine.tokens_left("verified") == 984

    engine.cast_vote("verified", 0, 2)
    assert engine.tokens_left("verified") == 996

    assert engine.remove_vote("verified", 0) == 4
    assert engine.tokens_left("verified") == 1000

    kinds = [e.kind for e in engine.events.get_events(project=engine.address)]
    assert kinds[-4:] == [EventKind.USER_JOINED, EventKind.VOTE_CAST, EventKind.VOTE_CAST, EventKind.VOTE_REMOVED]


@pytest.mark.parametrize("score,joined,verified", [
    (0, False, False),
    (4_999, False, False),
    (5_000, True, False),
    (14_999, True, False),
    (15_000, True, True),
    (90_000, True, True),
])
def test_join_gating(engine, oracle, score, joined, verified):
    oracle.set_score("user", score)
    if not joined:
        with pytest.raises(ScoreTooLow):
            engine.join_project("user")
        return
    assert engine.join_project("user").is_verified is verified


def test_no_double_join_after_activity(engine):
    engine.join_project("verified")
    engine.cast_vote("verified", 0, 3)
    engine.remove_vote("verified", 0)
    with pytest.raises(AlreadyJoined):
        engine.join_project("verified")


def test_expiry_enforced_everywhere(engine, clock):
    engine.join_project("verified")
    clock.now = END + 1
    with pytest.raises(Expired):
        engine.join_project("regular")
    with pytest.raises(Expired):
        engine.create_poll("verified", "Too late")
    with pytest.raises(Expired):
        engine.cast_vote("verified", 0, 1)


@pytest.mark.parametrize("n", [1, 2, 7, 31])
def test_quadratic_pricing(engine, n):
    engine.join_project("verified")
    assert engine.cast_vote("verified", 0, n).tokens_cost == n * n


@pytest.mark.parametrize("first,second", [(1, 5), (5, 1), (10, 20), (3, 3)])
def test_refund_replace_matches_direct_cast(engine, oracle, first, second):
    oracle.set_score("direct", 20_000)
    engine.join_project("verified")
    engine.join_project("direct")

    engine.cast_vote("verified", 0, first)
    engine.cast_vote("verified", 0, second)
    engine.cast_vote("direct", 0, second)
    assert engine.tokens_left("verified") == engine.tokens_left("direct")


@pytest.mark.parametrize("seed", range(5))
def test_random_activity_conserves_tokens(oracle, clock, seed):
    rng = random.Random(seed)
    users = [f"user{i}" for i in range(8)]
    for user in users:
        oracle.set_score(user, rng.choice([6_000, 10_000, 16_000, 30_000]))

    factory = ProjectFactory(oracle, clock=clock)
    engine = factory.create_project(
        "admin", name="Random", description="", metadata_hash="",
        tokens_per_user=100, tokens_per_verified_user=1000,
        min_score_to_join=5_000, min_score_to_verify=15_000, end_time=END,
    )
    for user in users:
        engine.join_project(user)
    for i in range(4):
        engine.create_poll(users[i], f"Poll {i}")

    rejected = 0
    for _ in range(300):
        user = rng.choice(users)
        poll_id = rng.randrange(4)
        action = rng.random()
        try:
            if action < 0.7:
                engine.cast_vote(user, poll_id, rng.randint(0, 35))
            elif action < 0.9:
                engine.remove_vote(user, poll_id)
            else:
                oracle.set_score(user, 30_000)
                clock.now += 1_800
        except VotingError:
            rejected += 1
        assert engine.audit() == []

    for poll in engine.get_polls():
        live = [v for v in poll.votes.values() if v.has_voted]
        assert poll.total_voting_power_cast == sum(v.voting_power for v in live)
        assert poll.total_participants == len(live)
    assert rejected > 0
