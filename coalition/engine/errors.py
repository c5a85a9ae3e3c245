"""
Typed rejections raised by the reducer.
All are ValueError subclasses: a rejected intent never mutates state.
"""


class EngineError(ValueError):
    """Base class for recoverable intent rejections."""
    code = "engine_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class ValidationError(EngineError):
    """Malformed or out-of-range intent payload."""
    code = "validation_error"


class AuthorizationError(EngineError):
    """Wrong player acting out of turn or on someone else's resource."""
    code = "authorization_error"


class StateConflictError(EngineError):
    """Intent is valid in isolation but not in the current phase."""
    code = "state_conflict"


class ResourceExhaustedError(EngineError):
    """Not enough influence or tokens for the requested action."""
    code = "resource_exhausted"


class EngineHaltedError(Exception):
    """
    Internal inconsistency detected after an action was applied.
    The session must stop accepting intents; this is not a rejection.
    """
    code = "session_failed"
