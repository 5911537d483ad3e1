# Core module - Control settings and error taxonomy
# Control data is only trusted after the secure walk has checked it

from .errors import (
    ErrorCategory, ErrorHandler, NarrowSSHError, ContextError,
    SecurityCheck, SecurityViolation,
    ControlParseError, ControlSchemaError, ControlValidationError,
    UnknownUserError, AmbiguousUserError, UsageError,
    error_chain, find_cause, classify,
)

__all__ = [
    "ErrorCategory", "ErrorHandler", "NarrowSSHError", "ContextError",
    "SecurityCheck", "SecurityViolation",
    "ControlParseError", "ControlSchemaError", "ControlValidationError",
    "UnknownUserError", "AmbiguousUserError", "UsageError",
    "error_chain", "find_cause", "classify",
]
