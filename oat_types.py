# File: oat_types.py
"""Minimal type definitions for the OAT safe time flip trigger."""

from enum import Enum, IntEnum


class TriggerPhase(IntEnum):
    """Safe time trigger states."""
    IDLE = 0
    POLLING = 1
    THRESHOLD_REACHED = 2   # Momentary, same tick as firing
    FLIPPING = 3


class CommandFamily(Enum):
    """Command execution capability exposed by a mount device handle."""
    COMMAND_STRING = "CommandString"
    SEND_COMMAND_STRING = "SendCommandString"
    SEND_STRING = "SendString"
    COMMAND = "Command"


class Severity(Enum):
    """User notification severity levels."""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class Epoch(Enum):
    """Coordinate epoch."""
    J2000 = "J2000"
    JNOW = "JNOW"
