"""
exceptions.py

Error taxonomy for the LearnLink core. Every error carries a human-readable
message that is safe to show to the caller; main.py maps them onto the
``{"success": false, "detail": ...}`` JSON envelope.
"""


class LearnLinkError(Exception):
    """Base class for all domain errors raised by the core modules."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LearnLinkError):
    """Missing required field, out-of-range value, or disallowed transition."""

    status_code = 400


class NotFoundError(LearnLinkError):
    """Referenced resource, user, or content does not exist."""

    status_code = 404


class AuthorizationError(LearnLinkError):
    """Role mismatch or acting on content owned by someone else."""

    status_code = 403


class StorageError(LearnLinkError):
    """Object storage upload, fetch, or destroy failed."""

    status_code = 502


class TransactionError(LearnLinkError):
    """A database transaction failed and was rolled back."""

    status_code = 500
