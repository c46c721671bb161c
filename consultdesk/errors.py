"""
Error taxonomy for the order and assignment lifecycle.

Every domain failure is a LifecycleError carrying the HTTP status it maps to
and a short machine-readable code. Single-target operations raise them; the
API layer turns them into JSON results and batch operations record them per
target.
"""


class LifecycleError(Exception):
    """Base class for all lifecycle failures."""
    status_code = 500
    code = "lifecycle_error"

    def __init__(self, message: str = None):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__

    def to_dict(self) -> dict:
        return {"success": False, "error": self.code, "message": self.message}


class ValidationError(LifecycleError):
    """A required field is missing or malformed."""
    status_code = 400
    code = "validation_error"


class NotFound(LifecycleError):
    """The referenced entity does not exist."""
    status_code = 404
    code = "not_found"


class OrderNotFound(NotFound):
    """The customer exists but holds no matching order."""
    code = "order_not_found"


class Forbidden(LifecycleError):
    """The entity exists but the caller does not own it."""
    status_code = 403
    code = "forbidden"


class InvalidTransition(LifecycleError):
    """A state-machine precondition was violated."""
    status_code = 400
    code = "invalid_transition"

    def __init__(self, message: str = None, current: str = None, required=None):
        if message is None and current is not None:
            if isinstance(required, (list, tuple, set, frozenset)):
                required = ", ".join(sorted(str(r) for r in required))
            message = f"Invalid transition: current state is '{current}', requires '{required}'"
        super().__init__(message)
        self.current = current
        self.required = required


class InvalidStatus(LifecycleError):
    """A status value outside the closed set."""
    status_code = 400
    code = "invalid_status"


class OrderClosed(LifecycleError):
    """Mutation attempted on a completed or cancelled order."""
    status_code = 400
    code = "order_closed"


class ConcurrentModification(LifecycleError):
    """The document changed between read and write."""
    status_code = 409
    code = "concurrent_modification"
