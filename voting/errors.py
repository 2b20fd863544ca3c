"""
Voting Errors - Reason codes for rejected transactions.

Every state-changing engine call either commits all of its writes or raises
one of these. The `code` attribute is stable and machine-checkable; the
message is for humans.
"""


class VotingError(Exception):
    """Base class for every rejected voting transaction."""
    code = "VOTING_ERROR"
    default_message = "Transaction rejected"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class ConfigInvalid(VotingError):
    code = "CONFIG_INVALID"
    default_message = "Invalid project configuration"


# ═══════════════════════════════════════════════════════════════════════════
# LOOKUPS
# ═══════════════════════════════════════════════════════════════════════════
class NotFound(VotingError):
    code = "NOT_FOUND"
    default_message = "Not found"


class ProjectNotFound(NotFound):
    code = "PROJECT_NOT_FOUND"
    default_message = "Project does not exist"


class PollNotFound(NotFound):
    code = "POLL_NOT_FOUND"
    default_message = "Poll does not exist"


class NoVoteToRemove(NotFound):
    code = "NO_VOTE_TO_REMOVE"
    default_message = "No vote to remove"


# ═══════════════════════════════════════════════════════════════════════════
# MEMBERSHIP
# ═══════════════════════════════════════════════════════════════════════════
class AlreadyJoined(VotingError):
    code = "ALREADY_JOINED"
    default_message = "Already joined this project"


class ScoreTooLow(VotingError):
    code = "SCORE_TOO_LOW"
    default_message = "Identity score too low"


class NotAMember(VotingError):
    code = "MUST_JOIN_FIRST"
    default_message = "Must join project first"


class AttestationFailed(VotingError):
    code = "ATTESTATION_FAILED"
    default_message = "Attestation could not be issued"


# ═══════════════════════════════════════════════════════════════════════════
# LIFECYCLE
# ═══════════════════════════════════════════════════════════════════════════
class Inactive(VotingError):
    code = "INACTIVE"
    default_message = "Inactive"


class ProjectInactive(Inactive):
    code = "PROJECT_INACTIVE"
    default_message = "Project is not active"


class PollInactive(Inactive):
    code = "POLL_INACTIVE"
    default_message = "Poll is not active"


class Expired(VotingError):
    code = "EXPIRED"
    default_message = "Project has ended"


class NotStarted(VotingError):
    code = "NOT_STARTED"
    default_message = "Project has not started"


# ═══════════════════════════════════════════════════════════════════════════
# VOTING
# ═══════════════════════════════════════════════════════════════════════════
class InvalidVoteCount(VotingError):
    code = "INVALID_VOTE_COUNT"
    default_message = "Invalid number of votes"


class InsufficientTokens(VotingError):
    code = "INSUFFICIENT_TOKENS"
    default_message = "Not enough tokens"


class TooManyVotes(VotingError):
    code = "TOO_MANY_VOTES"
    default_message = "Voted on too many polls"


class SelfVoteNotAllowed(VotingError):
    code = "SELF_VOTE_NOT_ALLOWED"
    default_message = "Poll creators cannot vote on their own poll"


class CounterUnderflow(VotingError):
    code = "COUNTER_UNDERFLOW"
    default_message = "Participant counter would go below zero"


# ═══════════════════════════════════════════════════════════════════════════
# ACCESS
# ═══════════════════════════════════════════════════════════════════════════
class Unauthorized(VotingError):
    code = "UNAUTHORIZED"
    default_message = "Caller is not authorized"


class ReentrantCall(VotingError):
    code = "REENTRANT_CALL"
    default_message = "Engine re-entered during a transaction"
