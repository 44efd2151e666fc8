"""
Error kinds raised by the storage layer and the services.

Each kind carries the HTTP status the API reports it with:
- ValidationError: malformed or missing input
- NotFoundError: a referenced event/question/user/team/participant is absent
- ConflictError: capacity, duplicates, resubmission, outside the event window
- AuthorizationError: the actor lacks the required capability
- TransactionFailure: the atomic commit was aborted; nothing was written
"""


class TournamentError(Exception):
    """Base class for every error the services report to callers."""
    status_code = 500
    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TournamentError):
    status_code = 400
    kind = "validation_error"


class NotFoundError(TournamentError):
    status_code = 404
    kind = "not_found"


class ConflictError(TournamentError):
    status_code = 409
    kind = "conflict"


class AuthorizationError(TournamentError):
    status_code = 403
    kind = "forbidden"


class TransactionFailure(TournamentError):
    """The unit of work could not commit. Safe to retry the whole operation."""
    status_code = 503
    kind = "transaction_failed"
