"""
Errors raised by the lifecycle engines.

Interactive operations raise these to their immediate caller; the API layer maps
them to HTTP responses in `main.py`.
"""


class LifecycleError(Exception):
    """Base class for lifecycle engine failures."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LifecycleError):
    """Malformed or missing input, e.g. a non-sequential meeting number."""

    status_code = 400


class StateConflictError(LifecycleError):
    """The entity's current status forbids the requested operation."""

    status_code = 409


class NotFoundError(LifecycleError):
    status_code = 404


class PersistenceError(LifecycleError):
    """The database could not complete a read or write."""

    status_code = 503
