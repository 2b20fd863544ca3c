"""Tests for the console's table helpers."""

import time
import pytest
from voting.console import (
    get_page_config, projects_frame, results_frame, members_frame, build_oracle, max_affordable_votes,
)
from voting.settings import EngineSettings
from oracles import passport
from oracles.passport import PassportScoreOracle
from voting.factory import ProjectFactory
from oracles.static import StaticScoreOracle


@pytest.fixture
def factory():
    oracle = StaticScoreOracle({"alice": 20_000, "bob": 10_000})
    return ProjectFactory(oracle)


@pytest.fixture
def engine(factory):
    engine = factory.create_project(
        "alice", name="Budget", description="", metadata_hash="",
        tokens_per_user=100, tokens_per_verified_user=1000,
        min_score_to_join=5_000, min_score_to_verify=15_000,
        end_time=time.time() + 3600,
    )
    engine.join_project("alice")
    engine.join_project("bob")
    engine.create_poll("alice", "Garden")
    engine.create_poll("alice", "Library")
    engine.cast_vote("alice", 1, 4)
    engine.cast_vote("bob", 0, 1)
    return engine


def test_page_config():
    config = get_page_config("Polls")
    assert config["page_title"] == "Polls | Quadratic Voting Console"
    assert config["layout"] == "wide"


def test_projects_frame(factory, engine):
    frame = projects_frame(factory)
    assert list(frame["address"]) == [engine.address]
    row = frame.iloc[0]
    assert row["participants"] == 2
    assert row["polls"] == 2
    assert bool(row["open"])


def test_projects_frame_empty():
    frame = projects_frame(ProjectFactory(StaticScoreOracle()))
    assert frame.empty
    assert "address" in frame.columns


def test_results_frame(engine):
    frame = results_frame(engine)
    assert list(frame["poll_id"]) == [1, 0]
    assert list(frame["total_voting_power"]) == [4, 1]
    assert list(frame["tokens_spent"]) == [16, 1]
    assert list(frame["rank"]) == [1, 2]


def test_members_frame(engine):
    frame = members_frame(engine)
    assert list(frame["user"]) == ["alice", "bob"]
    assert list(frame["tier"]) == ["verified", "regular"]
    assert list(frame["tokens_left"]) == [984, 99]
    assert list(frame["polls_voted"]) == [1, 1]


class TestBuildOracle:

    def test_static_without_passport(self):
        assert isinstance(build_oracle(environ={}), StaticScoreOracle)

    def test_passport_when_scorer_configured(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(passport, "_oracle", None)
        monkeypatch.setenv("PASSPORT_SCORER_ID", "42")

        oracle = build_oracle(environ={"PASSPORT_SCORER_ID": "42"})
        assert isinstance(oracle, PassportScoreOracle)
        assert oracle.scorer_id == "42"
        assert build_oracle(environ={"PASSPORT_SCORER_ID": "42"}) is oracle


class TestMaxAffordableVotes:

    def test_verified_counts_refund(self, engine):
        # alice holds 984 tokens plus a 16 token vote on poll 1
        assert max_affordable_votes(engine, 1, "alice") == 31
        assert max_affordable_votes(engine, 0, "alice") == 31

    def test_bounded_by_max_voting_power(self):
        factory = ProjectFactory(StaticScoreOracle(default_score=20_000),
                                 settings=EngineSettings(max_voting_power=5))
        engine = factory.create_project(
            "alice", name="Capped", description="", metadata_hash="",
            tokens_per_user=100, tokens_per_verified_user=1000,
            min_score_to_join=5_000, min_score_to_verify=15_000,
            end_time=time.time() + 3600,
        )
        engine.join_project("alice")
        engine.create_poll("alice", "Garden")
        assert max_affordable_votes(engine, 0, "alice") == 5

    def test_regular_and_non_member(self, engine):
        assert max_affordable_votes(engine, 1, "bob") == 1
        assert max_affordable_votes(engine, 1, "stranger") == 0
