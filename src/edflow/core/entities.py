"""Core entity definitions for the input analysis pipeline.

This module contains enums and basic types that are used across
the codebase, placed here to avoid circular imports.
"""

from enum import Enum, IntEnum


class Priority(IntEnum):
    """Triage priority levels. Lower value = more urgent."""
    P1_IMMEDIATE = 1
    P2_VERY_URGENT = 2
    P3_URGENT = 3
    P4_STANDARD = 4


class Timestamp(Enum):
    """Visit timestamps in real-world order."""
    COUNTER_EXIT = "counter_exit"    # Leaves the admission counter
    TRIAGE_ENTRY = "triage_entry"
    TRIAGE_EXIT = "triage_exit"
    SERVICE_ENTRY = "service_entry"
    SERVICE_EXIT = "service_exit"


class DurationType(Enum):
    """Derived per-visit duration variables (seconds).

    Each duration is the difference between two adjacent timestamps.
    """
    TRIAGE_QUEUE = "triage_queue"
    TRIAGE_DURATION = "triage_duration"
    SERVICE_QUEUE = "service_queue"
    SERVICE_DURATION = "service_duration"

    @property
    def bounds(self) -> tuple:
        """(start, end) timestamps the duration is measured between."""
        return DURATION_BOUNDS[self]


DURATION_BOUNDS = {
    DurationType.TRIAGE_QUEUE: (Timestamp.COUNTER_EXIT, Timestamp.TRIAGE_ENTRY),
    DurationType.TRIAGE_DURATION: (Timestamp.TRIAGE_ENTRY, Timestamp.TRIAGE_EXIT),
    DurationType.SERVICE_QUEUE: (Timestamp.TRIAGE_EXIT, Timestamp.SERVICE_ENTRY),
    DurationType.SERVICE_DURATION: (Timestamp.SERVICE_ENTRY, Timestamp.SERVICE_EXIT),
}

DURATION_COLUMNS = [d.value for d in DurationType]

# Name of the pseudo-variable holding inter-arrival gaps
INTERARRIVAL = "interarrival"


class Family(Enum):
    """Candidate parametric families for duration fitting."""
    EXPONENTIAL = "exponential"
    GAMMA = "gamma"
    LOGNORMAL = "lognormal"
    WEIBULL = "weibull"

    @classmethod
    def parse(cls, value) -> "Family":
        """Accept a Family or its name, case-insensitive."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = ", ".join(f.value for f in cls)
            raise ValueError(f"Unknown family '{value}'. Expected one of: {valid}")


class Criterion(Enum):
    """Information criteria used to rank converged fits."""
    AIC = "aic"
    BIC = "bic"
