"""Duration derivation and threshold cleaning."""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

import numpy as np
import pandas as pd

from edflow.core.config import Thresholds
from edflow.core.entities import DURATION_COLUMNS, DurationType, Timestamp
from edflow.core.errors import InputMalformedError

logger = logging.getLogger(__name__)

STAGE = "cleaner"

# Exclusion reasons, in the order they are checked
DUPLICATE = "duplicate_counter_exit"
MISSING = "missing_timestamp"
BELOW_FLOOR = "below_floor"
ABOVE_CAP = "above_cap"
EXCLUSION_REASONS = (DUPLICATE, MISSING, BELOW_FLOOR, ABOVE_CAP)


@dataclass(frozen=True, eq=False)
class CleanResult:
    """Output of the cleaner stage.

    Attributes:
        visits: Retained rows with the four duration columns (seconds).
        n_input: Rows received.
        exclusions: Rows dropped per reason. Each dropped row is counted
            once, under the first reason it matched.
    """

    visits: pd.DataFrame
    n_input: int
    exclusions: Dict[str, int] = field(default_factory=dict)

    @property
    def n_excluded(self) -> int:
        return sum(self.exclusions.values())


def derive_durations(visits: pd.DataFrame) -> pd.DataFrame:
    """Add the four duration columns in seconds.

    Each duration is ``end - start`` for its adjacent timestamp pair; a
    missing timestamp gives a missing duration. The input frame is not
    modified.
    """
    missing = [t.value for t in Timestamp if t.value not in visits.columns]
    if missing:
        raise InputMalformedError(
            f"Missing timestamp column(s): {', '.join(missing)}", STAGE
        )

    df = visits.copy()
    for duration in DurationType:
        start, end = duration.bounds
        delta = df[end.value] - df[start.value]
        df[duration.value] = delta.dt.total_seconds().astype(float)
    return df


def _floor_mask(df: pd.DataFrame, thresholds: Thresholds) -> pd.Series:
    """True where any duration is at or below its floor."""
    mask = pd.Series(False, index=df.index)
    for duration in DurationType:
        mask |= df[duration.value] <= thresholds.floor(duration)
    return mask


def _cap_mask(df: pd.DataFrame, thresholds: Thresholds) -> pd.Series:
    """True where a capped duration exceeds its cap."""
    mask = pd.Series(False, index=df.index)
    for duration, cap in thresholds.caps().items():
        mask |= df[duration.value] > cap
    return mask


def clean_visits(
    visits: pd.DataFrame, thresholds: Optional[Thresholds] = None
) -> CleanResult:
    """Deduplicate, derive durations and drop rows outside the bounds.

    Steps:
    1. Keep the first row for each counter-exit timestamp.
    2. Derive the four durations.
    3. Drop rows with a missing duration.
    4. Drop rows where any duration is <= its floor.
    5. Drop rows where triage_queue or service_queue exceeds its cap.

    Running this on its own output returns an identical table.

    Args:
        visits: Loaded visit table with parsed timestamps.
        thresholds: Cleaning bounds (defaults: 10 s floor, 4 h / 12 h caps).

    Returns:
        CleanResult with the retained rows and exclusion counts.
    """
    thresholds = thresholds or Thresholds()
    n_input = len(visits)
    exclusions = {reason: 0 for reason in EXCLUSION_REASONS}

    # Rows without a counter-exit are not duplicates of each other
    counter_exit = visits[Timestamp.COUNTER_EXIT.value]
    duplicate = counter_exit.notna() & counter_exit.duplicated(keep="first")
    deduped = visits[~duplicate]
    exclusions[DUPLICATE] = int(duplicate.sum())

    df = derive_durations(deduped)

    missing = df[DURATION_COLUMNS].isna().any(axis=1)
    exclusions[MISSING] = int(missing.sum())
    df = df[~missing]

    below = _floor_mask(df, thresholds)
    exclusions[BELOW_FLOOR] = int(below.sum())
    df = df[~below]

    above = _cap_mask(df, thresholds)
    exclusions[ABOVE_CAP] = int(above.sum())
    df = df[~above].reset_index(drop=True)

    logger.info(
        f"Cleaned {n_input} rows: kept {len(df)}, "
        + ", ".join(f"{reason}={count}" for reason, count in exclusions.items())
    )
    return CleanResult(visits=df, n_input=n_input, exclusions=exclusions)


def interarrival_times(visits: pd.DataFrame) -> np.ndarray:
    """Gaps in seconds between consecutive distinct counter-exit timestamps.

    Missing timestamps are ignored. The result has one fewer element than
    the number of distinct timestamps (empty if fewer than two).
    """
    stamps = visits[Timestamp.COUNTER_EXIT.value].dropna()
    distinct = np.sort(pd.unique(stamps.to_numpy()))
    if len(distinct) < 2:
        return np.array([], dtype=float)
    gaps = np.diff(distinct) / np.timedelta64(1, "s")
    return gaps.astype(float)
