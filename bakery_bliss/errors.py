# bakery_bliss/errors.py

"""
Why an order request was refused.
Every error is local to one request; nothing here is retried automatically.
"""


class WorkflowError(Exception):
    """Base class. `kind` is the machine-readable name sent back to clients."""

    kind = "workflow_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthorized(WorkflowError):
    """The actor's role or assignment does not allow this action."""

    kind = "unauthorized"
    status_code = 403


class InvalidTransition(WorkflowError):
    """The (current status, target status) pair is not a legal edge."""

    kind = "invalid_transition"
    status_code = 409


class AlreadyAssigned(InvalidTransition):
    kind = "already_assigned"


class MissingFeedback(WorkflowError):
    """A quality check was rejected without saying what to fix."""

    kind = "missing_feedback"
    status_code = 422


class NotFound(WorkflowError):
    kind = "not_found"
    status_code = 404


class ConcurrentModification(WorkflowError):
    """Someone else changed the order first. Refetch and try again."""

    kind = "concurrent_modification"
    status_code = 409
