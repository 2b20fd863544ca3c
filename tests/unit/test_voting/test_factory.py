"""Tests for the project factory."""

import pytest
from voting.factory import ProjectFactory
from voting.events import EventKind, EventLog
from voting.errors import ConfigInvalid, ProjectNotFound, Unauthorized
from oracles.static import StaticScoreOracle

NOW = 5_000.0


@pytest.fixture
def factory():
    return ProjectFactory(StaticScoreOracle(default_score=20_000), clock=lambda: NOW, address="0xfactory")


def _params(**overrides):
    params = dict(
        name="Budget",
        description="Neighbourhood budget",
        metadata_hash="QmHash",
        tokens_per_user=100,
        tokens_per_verified_user=1000,
        min_score_to_join=5_000,
        min_score_to_verify=15_000,
        end_time=NOW + 3600,
    )
    params.update(overrides)
    return params


class TestCreateProject:

    def test_creates_engine_with_sender_as_admin(self, factory):
        engine = factory.create_project("alice", **_params())
        assert engine.config.admin == "alice"
        assert engine.created_at == NOW
        assert factory.get_project(engine.address) is engine
        assert factory.project_count == 1

    def test_explicit_admin(self, factory):
        engine = factory.create_project("alice", admin="dao", **_params())
        assert engine.config.admin == "dao"
        assert factory.projects_for_admin("dao") == [engine]
        assert factory.projects_for_admin("alice") == []

    def test_addresses_unique_and_deterministic(self, factory):
        a = factory.create_project("alice", **_params())
        b = factory.create_project("alice", **_params(name="Second"))
        assert a.address != b.address
        assert factory.list_projects() == [a.address, b.address]

        other = ProjectFactory(StaticScoreOracle(), clock=lambda: NOW, address="0xfactory")
        assert other.create_project("bob", **_params()).address == a.address

    def test_project_created_event(self, factory):
        engine = factory.create_project("alice", **_params())
        event = factory.events.get_events(kind=EventKind.PROJECT_CREATED)[0]
        assert event.project == engine.address
        assert event.payload["factory"] == "0xfactory"
        assert event.payload["creator"] == "alice"
        assert event.payload["name"] == "Budget"

    @pytest.mark.parametrize("overrides", [
        {"name": ""},
        {"tokens_per_user": 0},
        {"tokens_per_verified_user": 100},
        {"min_score_to_join": -1},
        {"min_score_to_verify": 5_000},
        {"end_time": NOW},
    ])
    def test_invalid_config(self, factory, overrides):
        with pytest.raises(ConfigInvalid):
            factory.create_project("alice", **_params(**overrides))
        assert factory.project_count == 0
        assert factory.events.count() == 0

    def test_unknown_project(self, factory):
        with pytest.raises(ProjectNotFound):
            factory.get_project("0xnope")


class TestRestricted:

    def test_needs_owner(self):
        with pytest.raises(ValueError):
            ProjectFactory(StaticScoreOracle(), restricted=True)

    def test_only_owner_creates(self):
        factory = ProjectFactory(StaticScoreOracle(), owner="root", restricted=True, clock=lambda: NOW)
        with pytest.raises(Unauthorized):
            factory.create_project("alice", **_params())
        assert factory.create_project("root", admin="alice", **_params()).config.admin == "alice"


def test_projects_are_isolated(factory):
    first = factory.create_project("alice", **_params())
    second = factory.create_project("alice", **_params(name="Other"))
    first.join_project("bob")
    first.create_poll("bob", "Garden")
    first.cast_vote("bob", 0, 3)

    assert second.get_membership("bob") is None
    assert second.get_polls() == []
    assert second.token.balance_of("bob") == 0
    assert first.token is not second.token


def test_engines_share_event_log(tmp_path):
    log = EventLog(str(tmp_path / "events.db"))
    factory = ProjectFactory(StaticScoreOracle(default_score=20_000), event_log=log, clock=lambda: NOW)
    engine = factory.create_project("alice", **_params())
    engine.join_project("alice")
    assert engine.events is log
    assert [e.kind for e in log.get_events(project=engine.address)] == [
        EventKind.PROJECT_CREATED, EventKind.USER_JOINED,
    ]
    log.close()
