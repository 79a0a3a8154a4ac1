"""
Error Taxonomy for SplitMate

DESIGN DECISION: Write paths raise one of these at the point of detection
and let it propagate unchanged. No retries, no silent recovery.

The only place that swallows errors is the read side of the balance
display (see LedgerEngine.get_all / get_current_user_balance).

The HTTP layer maps each category to a status code and a corrective
message; nothing here knows about HTTP.
"""

from typing import Optional


class SplitMateError(Exception):
    """Base exception for all domain errors."""
    pass


class ValidationError(SplitMateError):
    """
    Bad input shape or range.

    Examples: non-positive amount, splits not adding up to the total,
    removing the group creator.
    """

    def __init__(self, message: str, issues: Optional[list] = None):
        self.issues = issues or []
        super().__init__(message)


class NotFoundError(SplitMateError):
    """A referenced user, group, expense or settlement does not exist."""
    pass


class UnresolvedMembersError(NotFoundError):
    """
    One or more member names could not be matched to a user.

    Carries the unresolved names and every known display name so the
    caller can suggest a correction.
    """

    def __init__(self, unresolved: list[str], available: list[str]):
        self.unresolved = unresolved
        self.available = available
        super().__init__(
            f"Users not found: {', '.join(unresolved)}. "
            f"Available users: {', '.join(available)}. "
            "Try using exact names or email addresses."
        )


class ForbiddenError(SplitMateError):
    """Authorization failure: not a member, not an admin, not creator/payer."""
    pass


class ExternalServiceError(SplitMateError):
    """The command interpreter failed."""

    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(message)


class InterpreterUnavailableError(ExternalServiceError):
    """Interpreter unreachable, timed out, or returned an HTTP error."""
    pass


class InterpreterResponseError(ExternalServiceError):
    """Interpreter replied, but with missing, malformed or invalid JSON."""
    pass


class ConsistencyError(SplitMateError):
    """
    Stored state violates a ledger invariant.

    Only expected if the storage layer fails to serialize writes.
    """
    pass
