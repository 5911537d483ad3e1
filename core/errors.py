"""
Error Handling Module
---------------------
Typed errors with classification and chain rendering.
Configuration errors are never retried: a bad control file stays bad.

Every error raised while loading control files is wrapped with the stage
it happened in (``raise ContextError(...) from err``), so the top-level
caller can print the whole chain, outermost first.
"""

from enum import Enum, auto
from typing import Any, Dict, List, Optional, Type, TypeVar
import logging


class ErrorCategory(Enum):
    """Categories of errors for handling decisions."""
    IO_ERROR = auto()            # Path missing, unreadable or unlistable
    SECURITY_VIOLATION = auto()  # Wrong type, loose permissions or owner
    PARSE_ERROR = auto()         # Not a valid TOML document
    SCHEMA_ERROR = auto()        # Unknown field or wrong value type
    VALIDATION_ERROR = auto()    # Field value breaks an extra constraint
    UNKNOWN_USER = auto()        # Table key matches no user
    AMBIGUOUS_USER = auto()      # Table key matches several users
    USAGE_ERROR = auto()         # Bad command-line or runtime settings
    SYSTEM_ERROR = auto()        # Anything else


class NarrowSSHError(Exception):
    """Base class for all errors raised by narrowssh."""

    category: ErrorCategory = ErrorCategory.SYSTEM_ERROR

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.category.name}: {self.message})"


class ContextError(NarrowSSHError):
    """
    Describes what was being done when the chained cause was raised.

    Carries no category of its own; classification looks through it.
    """


class SecurityCheck(Enum):
    """Which safety check a filesystem object failed."""
    FILE_TYPE = auto()
    PERMISSIONS = auto()
    OWNER = auto()


class SecurityViolation(NarrowSSHError):
    """A filesystem object cannot be trusted."""

    category = ErrorCategory.SECURITY_VIOLATION

    def __init__(
        self,
        message: str,
        path: str,
        check: SecurityCheck,
        suggested_mode: Optional[int] = None,
    ):
        super().__init__(
            f"{message} [security; refusing to proceed]",
            details={"path": path, "check": check.name},
        )
        self.path = path
        self.check = check
        self.suggested_mode = suggested_mode


class ControlParseError(NarrowSSHError):
    """Control file content is not valid TOML."""
    category = ErrorCategory.PARSE_ERROR


class ControlSchemaError(NarrowSSHError):
    """A control table has an unknown field or a field of the wrong type."""
    category = ErrorCategory.SCHEMA_ERROR


class ControlValidationError(NarrowSSHError):
    """A control field value violates a constraint beyond its type."""
    category = ErrorCategory.VALIDATION_ERROR


class UnknownUserError(NarrowSSHError):
    """A username does not belong to any known user."""
    category = ErrorCategory.UNKNOWN_USER


class AmbiguousUserError(NarrowSSHError):
    """A username is shared by more than one user."""
    category = ErrorCategory.AMBIGUOUS_USER


class UsageError(NarrowSSHError):
    """Invalid command-line arguments or runtime settings."""
    category = ErrorCategory.USAGE_ERROR


E = TypeVar("E", bound=BaseException)


def error_chain(error: BaseException) -> List[BaseException]:
    """Return ``error`` followed by its causes, outermost first."""
    chain = []
    seen = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        chain.append(current)
        seen.add(id(current))
        current = current.__cause__
    return chain


def find_cause(error: BaseException, error_type: Type[E]) -> Optional[E]:
    """Return the first link of the chain that is an ``error_type``."""
    for link in error_chain(error):
        if isinstance(link, error_type):
            return link
    return None


def classify(error: BaseException) -> ErrorCategory:
    """Category of the innermost categorized error in the chain."""
    category = ErrorCategory.SYSTEM_ERROR
    for link in error_chain(error):
        if isinstance(link, ContextError):
            continue
        if isinstance(link, NarrowSSHError):
            category = link.category
        elif isinstance(link, OSError):
            category = ErrorCategory.IO_ERROR
    return category


def describe(error: BaseException) -> str:
    """One-line description of a single chain link."""
    if isinstance(error, NarrowSSHError):
        return error.message
    if isinstance(error, OSError) and error.strerror:
        if error.filename is not None:
            return f"{error.strerror}: {error.filename}"
        return error.strerror
    return str(error) or type(error).__name__


class ErrorHandler:
    """
    Central error handler with logging and rendering.
    """

    LEVELS: Dict[ErrorCategory, int] = {
        ErrorCategory.USAGE_ERROR: logging.INFO,
        ErrorCategory.VALIDATION_ERROR: logging.ERROR,
        ErrorCategory.SCHEMA_ERROR: logging.ERROR,
        ErrorCategory.PARSE_ERROR: logging.ERROR,
        ErrorCategory.UNKNOWN_USER: logging.ERROR,
        ErrorCategory.AMBIGUOUS_USER: logging.ERROR,
        ErrorCategory.IO_ERROR: logging.ERROR,
        ErrorCategory.SECURITY_VIOLATION: logging.CRITICAL,
        ErrorCategory.SYSTEM_ERROR: logging.CRITICAL,
    }

    def __init__(self, program: str = "narrowssh"):
        self.program = program
        self._logger = logging.getLogger("narrowssh.errors")

    def handle(self, error: BaseException) -> List[str]:
        """
        Log an error and return the lines to show the operator.

        The first line names the program and the outermost error; every
        cause follows on its own indented line.
        """
        category = classify(error)
        lines = self.render(error)

        self._logger.log(
            self.LEVELS.get(category, logging.ERROR),
            f"{category.name}: {' / '.join(describe(e) for e in error_chain(error))}",
        )
        if category == ErrorCategory.SYSTEM_ERROR:
            self._logger.debug("Unexpected error", exc_info=error)

        return lines

    def render(self, error: BaseException) -> List[str]:
        """Render the error chain without logging it."""
        chain = error_chain(error)
        lines = [f"{self.program}: {describe(chain[0])}"]
        lines.extend(f"  - {describe(cause)}" for cause in chain[1:])
        return lines
