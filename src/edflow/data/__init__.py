"""Data layer: loading, cleaning and cohort segmentation."""

from edflow.data.loader import LoadResult, load_visits, join_priority
from edflow.data.cleaner import (
    CleanResult,
    clean_visits,
    derive_durations,
    interarrival_times,
)
from edflow.data.cohorts import (
    Cohort,
    CohortRegistry,
    default_cohorts,
    cohorts_from_config,
    segment,
    to_long,
    describe_cohorts,
)

__all__ = [
    "LoadResult",
    "load_visits",
    "join_priority",
    "CleanResult",
    "clean_visits",
    "derive_durations",
    "interarrival_times",
    "Cohort",
    "CohortRegistry",
    "default_cohorts",
    "cohorts_from_config",
    "segment",
    "to_long",
    "describe_cohorts",
]
