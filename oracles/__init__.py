"""
External collaborators for the voting engine.

Includes:
- Identity scores (static table, Gitcoin Passport)
- Attestation issuers (in-memory, HTTP service)
"""

from oracles.static import StaticScoreOracle, OracleUnavailable
from oracles.passport import PassportScoreOracle, PassportError, ScoreCache, get_passport_oracle, SCORE_SCALE
from oracles.attestation import InMemoryAttestationIssuer, HttpAttestationIssuer, AttestationError

__all__ = [
    # Scores
    "StaticScoreOracle",
    "OracleUnavailable",
    "PassportScoreOracle",
    "PassportError",
    "ScoreCache",
    "get_passport_oracle",
    "SCORE_SCALE",
    # Attestations
    "InMemoryAttestationIssuer",
    "HttpAttestationIssuer",
    "AttestationError",
]
