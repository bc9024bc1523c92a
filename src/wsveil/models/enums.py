"""
Enumeration types for wsveil.
"""

from enum import Enum


class LogLevel(str, Enum):
    """
    Logging verbosity levels.

    Levels (from most to least verbose):
        - FULL: Complete trace with detailed stack information
        - DEBUG: Debug messages and above (includes every skipped packet)
        - INFO: Informational messages and above
        - WARNING: Only warnings and errors
    """

    FULL = "full"
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"


class PumpDirection(str, Enum):
    """Direction of a relay pump, used as the log tag for its messages."""

    CLIENT_TO_BACKEND = "CLIENT->BACKEND"
    BACKEND_TO_CLIENT = "BACKEND->CLIENT"
