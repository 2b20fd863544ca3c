"""
Static Score Oracle - In-memory identity scores for development and tests.
"""

from typing import Dict, Optional, Set
import logging

log = logging.getLogger(__name__)


class OracleUnavailable(RuntimeError):
    """The oracle could not produce a score."""


class StaticScoreOracle:
    """
    Address -> score table.

    Unknown addresses score `default_score`. Addresses passed to
    `fail_for` raise OracleUnavailable, which engines treat as "score too low".
    """

    def __init__(self, scores: Optional[Dict[str, int]] = None, default_score: int = 0):
        self.scores: Dict[str, int] = dict(scores or {})
        self.default_score = default_score
        self.calls: Dict[str, int] = {}
        self._failing: Set[str] = set()

    def set_score(self, address: str, score: int):
        self.scores[address] = score

    def fail_for(self, address: str, failing: bool = True):
        if failing:
            self._failing.add(address)
        else:
            self._failing.discard(address)

    def get_score(self, address: str) -> int:
        self.calls[address] = self.calls.get(address, 0) + 1
        if address in self._failing:
            raise OracleUnavailable(f"No score available for {address}")
        score = self.scores.get(address, self.default_score)
        log.debug(f"Score for {address}: {score}")
        return score
