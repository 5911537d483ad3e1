# Infrastructure module - Logging, runtime settings and the user directory

from .logging import get_logger, configure_logging
from .settings import RuntimeSettings, MAIN_CONTROL_FILE
from .users import User, UserMap

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    # Settings
    "RuntimeSettings",
    "MAIN_CONTROL_FILE",
    # Users
    "User",
    "UserMap",
]
