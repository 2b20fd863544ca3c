"""
Project Factory - Creates isolated voting engines and remembers where they are.

Each project gets its own engine, token, registry and poll store. The only
things projects share are the identity oracle, the policy settings and the
event log the factory hands them.
"""

import hashlib
import threading
import time
import uuid
from typing import Callable, Dict, List, Optional
import logging

from voting.engine import VotingEngine
from voting.errors import ProjectNotFound, Unauthorized
from voting.events import Event, EventKind, EventLog
from voting.models import ProjectConfig
from voting.settings import EngineSettings

log = logging.getLogger(__name__)


class ProjectFactory:
    """
    Append-only registry of deployed projects.

    Usage:
        factory = ProjectFactory(oracle)
        engine = factory.create_project(
            "alice", name="Budget 2025", description="...", metadata_hash="Qm...",
            tokens_per_user=100, tokens_per_verified_user=1000,
            min_score_to_join=5000, min_score_to_verify=15000,
            end_time=time.time() + 7 * 86400,
        )
        factory.get_project(engine.address)
    """

    def __init__(
        self,
        oracle,
        owner: Optional[str] = None,
        settings: Optional[EngineSettings] = None,
        event_log: Optional[EventLog] = None,
        clock: Callable[[], float] = time.time,
        attestation_issuer=None,
        restricted: bool = False,
        address: Optional[str] = None
    ):
        """
        Args:
            oracle: Identity score oracle shared by all projects
            owner: Factory owner; the only creator allowed when restricted
            settings: Policy settings passed to every engine
            event_log: Shared event log. Defaults to an in-memory log
            clock: Returns the current UNIX time
            attestation_issuer: Passed to engines for attestation-gated joins
            restricted: If True, only `owner` may create projects
            address: Identity of the factory. Random if not given
        """
        if restricted and not owner:
            raise ValueError("A restricted factory needs an owner")
        self.oracle = oracle
        self.owner = owner
        self.settings = settings or EngineSettings()
        self.events = event_log if event_log is not None else EventLog()
        self.clock = clock
        self.attestation_issuer = attestation_issuer
        self.restricted = restricted
        self.address = address or "0x" + hashlib.sha256(uuid.uuid4().bytes).hexdigest()[:40]

        self._projects: List[str] = []
        self._engines: Dict[str, VotingEngine] = {}
        self._lock = threading.Lock()

    def _derive_address(self, nonce: int) -> str:
        """Deterministic project address from factory address and creation nonce."""
        digest = hashlib.sha256(f"{self.address}:{nonce}".encode()).hexdigest()
        return "0x" + digest[:40]

    def create_project(
        self,
        sender: str,
        name: str,
        description: str,
        metadata_hash: str,
        tokens_per_user: int,
        tokens_per_verified_user: int,
        min_score_to_join: int,
        min_score_to_verify: int,
        end_time: float,
        admin: Optional[str] = None
    ) -> VotingEngine:
        """
        Deploy a new project.

        Args:
            sender: Caller; becomes the admin unless `admin` is given
            end_time: UNIX time after which the project closes; must be in the future

        Returns:
            The new project's VotingEngine

        Raises:
            Unauthorized: restricted factory and sender is not the owner
            ConfigInvalid: malformed parameters
        """
        if self.restricted and sender != self.owner:
            raise Unauthorized(f"Only {self.owner} may create projects")

        config = ProjectConfig(
            name=name,
            description=description,
            metadata_hash=metadata_hash,
            tokens_per_user=tokens_per_user,
            tokens_per_verified_user=tokens_per_verified_user,
            min_score_to_join=min_score_to_join,
            min_score_to_verify=min_score_to_verify,
            end_time=end_time,
            admin=admin or sender,
        )
        config.validate(self.clock())

        with self._lock:
            address = self._derive_address(len(self._projects))
            engine = VotingEngine(
                address=address,
                config=config,
                oracle=self.oracle,
                settings=self.settings,
                event_log=self.events,
                clock=self.clock,
                attestation_issuer=self.attestation_issuer,
            )
            self.events.append(Event(
                kind=EventKind.PROJECT_CREATED,
                project=address,
                payload={
                    'factory': self.address,
                    'creator': sender,
                    'admin': config.admin,
                    'name': name,
                    'end_time': end_time,
                },
                timestamp=engine.created_at,
            ))
            self._projects.append(address)
            self._engines[address] = engine

        log.info(f"Created project '{name}' at {address} (admin {config.admin})")
        return engine

    def get_project(self, address: str) -> VotingEngine:
        engine = self._engines.get(address)
        if engine is None:
            raise ProjectNotFound(f"No project at {address}")
        return engine

    def list_projects(self) -> List[str]:
        """Project addresses in creation order."""
        with self._lock:
            return list(self._projects)

    @property
    def project_count(self) -> int:
        return len(self._projects)

    def projects_for_admin(self, admin: str) -> List[VotingEngine]:
        return [self._engines[a] for a in self.list_projects() if self._engines[a].config.admin == admin]
