"""Cohort definitions and segmentation of cleaned visits.

A cohort is a named predicate over the visit table plus the duration
variables fitted for it. Cohorts are held in a registry so new ones can
be added without repeating filter logic.

Clinical cohorts are defined by a top-level service category and either
an explicit list of sub-services or, for "general" rooms, the complement
of the named specialty sub-services within the same category. Cohorts
sharing a category are therefore mutually exclusive, but not exhaustive:
rows matching no cohort are simply not fitted.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import stats

from edflow.core.entities import DURATION_COLUMNS, INTERARRIVAL, DurationType
from edflow.core.errors import ConfigError

logger = logging.getLogger(__name__)

Predicate = Callable[[pd.DataFrame], pd.Series]

QUEUE_AND_SERVICE = ("service_queue", "service_duration")

# Built-in cohorts. Category labels are matched case-insensitively.
DEFAULT_COHORTS: List[Dict[str, Any]] = [
    {
        "name": "triage",
        "variables": ["triage_queue", "triage_duration"],
    },
    {
        "name": "adult_short_stay",
        "service": "ADULT",
        "sub_services": ["SHORT_STAY"],
        "variables": list(QUEUE_AND_SERVICE),
    },
    {
        "name": "adult_trauma",
        "service": "ADULT",
        "sub_services": ["TRAUMA"],
        "variables": list(QUEUE_AND_SERVICE),
    },
    {
        "name": "adult_consult",
        "service": "ADULT",
        "exclude_sub_services": ["SHORT_STAY", "TRAUMA"],
        "variables": list(QUEUE_AND_SERVICE),
    },
    {
        "name": "paediatric_respiratory",
        "service": "PAEDIATRIC",
        "sub_services": ["RESPIRATORY"],
        "variables": list(QUEUE_AND_SERVICE),
    },
    {
        "name": "paediatric_consult",
        "service": "PAEDIATRIC",
        "exclude_sub_services": ["RESPIRATORY"],
        "variables": list(QUEUE_AND_SERVICE),
    },
]


def _normalise(series: pd.Series) -> pd.Series:
    return series.astype("string").str.strip().str.upper()


def category_predicate(
    service: Optional[str] = None,
    sub_services: Optional[Sequence[str]] = None,
    exclude_sub_services: Optional[Sequence[str]] = None,
) -> Predicate:
    """Build a row predicate from category labels.

    Args:
        service: Top-level category the row must belong to (any if None).
        sub_services: Sub-categories to include (any if None).
        exclude_sub_services: Sub-categories to leave out.

    Returns:
        Function mapping a visit table to a boolean Series.
    """
    if sub_services is not None and exclude_sub_services is not None:
        raise ConfigError("Use either sub_services or exclude_sub_services, not both")

    include = {s.strip().upper() for s in sub_services} if sub_services is not None else None
    exclude = {s.strip().upper() for s in exclude_sub_services or []}
    wanted_service = service.strip().upper() if service is not None else None

    def predicate(df: pd.DataFrame) -> pd.Series:
        mask = pd.Series(True, index=df.index)
        if wanted_service is not None:
            mask &= (_normalise(df["service"]) == wanted_service).fillna(False)
        if include is not None or exclude:
            sub = _normalise(df["sub_service"])
            if include is not None:
                mask &= sub.isin(include).fillna(False)
            if exclude:
                # Rows without a sub-service are not "general" rooms
                mask &= (~sub.isin(exclude) & sub.notna()).fillna(False)
        return mask.astype(bool)

    return predicate


@dataclass(frozen=True)
class Cohort:
    """Named subset of visits and the durations fitted for it.

    Attributes:
        name: Unique cohort name.
        predicate: Row selector over the cleaned visit table.
        variables: Duration variables of interest.
        service: Top-level category, used to check exclusivity.
        description: Free text for reports.
    """

    name: str
    predicate: Predicate = field(compare=False)
    variables: Tuple[DurationType, ...]
    service: Optional[str] = None
    description: str = ""

    def select(self, visits: pd.DataFrame) -> pd.DataFrame:
        """Rows of ``visits`` belonging to this cohort, order preserved."""
        mask = self.predicate(visits)
        return visits[mask.to_numpy()].reset_index(drop=True)

    @classmethod
    def from_definition(cls, definition: Dict[str, Any]) -> "Cohort":
        """Build a cohort from a config mapping.

        Keys: name, variables, and optionally service, sub_services,
        exclude_sub_services, description.
        """
        if not isinstance(definition, dict):
            raise ConfigError(f"Cohort definition must be a mapping: {definition!r}")
        definition = dict(definition)
        try:
            name = definition.pop("name")
            variables = definition.pop("variables")
        except KeyError as e:
            raise ConfigError(f"Cohort definition missing key {e}: {definition}") from e
        if not variables:
            raise ConfigError(f"Cohort '{name}' declares no variables")

        try:
            parsed = tuple(DurationType(v) for v in variables)
        except ValueError as e:
            raise ConfigError(f"Cohort '{name}': {e}") from e

        service = definition.pop("service", None)
        predicate = category_predicate(
            service=service,
            sub_services=definition.pop("sub_services", None),
            exclude_sub_services=definition.pop("exclude_sub_services", None),
        )
        description = definition.pop("description", "")
        if definition:
            raise ConfigError(
                f"Cohort '{name}' has unknown keys: {', '.join(sorted(definition))}"
            )
        return cls(
            name=name,
            predicate=predicate,
            variables=parsed,
            service=service.strip().upper() if service else None,
            description=description,
        )


class CohortRegistry:
    """Ordered name -> Cohort mapping."""

    def __init__(self, cohorts: Optional[Sequence[Cohort]] = None):
        self._cohorts: Dict[str, Cohort] = {}
        for cohort in cohorts or []:
            self.register(cohort)

    def register(self, cohort: Cohort) -> None:
        """Add a cohort.

        Raises:
            ValueError: If a cohort with the same name is registered, or the
                name clashes with the inter-arrival sample.
        """
        if cohort.name == INTERARRIVAL:
            raise ValueError(f"'{INTERARRIVAL}' is reserved for inter-arrival times")
        if cohort.name in self._cohorts:
            raise ValueError(f"Cohort '{cohort.name}' already registered")
        self._cohorts[cohort.name] = cohort
        logger.debug(f"Registered cohort: {cohort.name}")

    def unregister(self, name: str) -> None:
        self._cohorts.pop(name, None)

    def __getitem__(self, name: str) -> Cohort:
        return self._cohorts[name]

    def __contains__(self, name: object) -> bool:
        return name in self._cohorts

    def __iter__(self) -> Iterator[Cohort]:
        return iter(self._cohorts.values())

    def __len__(self) -> int:
        return len(self._cohorts)

    @property
    def names(self) -> List[str]:
        return list(self._cohorts)


def cohorts_from_config(definitions: Optional[List[Dict[str, Any]]]) -> CohortRegistry:
    """Registry from config definitions; the built-in cohorts when None."""
    if definitions is None:
        definitions = DEFAULT_COHORTS
    try:
        return CohortRegistry([Cohort.from_definition(d) for d in definitions])
    except ValueError as e:
        raise ConfigError(str(e)) from e


def default_cohorts() -> CohortRegistry:
    """Registry holding the built-in cohorts."""
    return cohorts_from_config(DEFAULT_COHORTS)


def segment(visits: pd.DataFrame, registry: CohortRegistry) -> Dict[str, pd.DataFrame]:
    """Split cleaned visits into cohorts.

    Membership depends only on each row's own values, never on row order.
    A row may appear in cohorts from different categories (e.g. triage and
    a clinical cohort) but in at most one clinical cohort per category;
    overlaps within a category are logged.

    Returns:
        Cohort name -> member rows.
    """
    segments = {}
    claimed: Dict[str, np.ndarray] = {}
    for cohort in registry:
        mask = cohort.predicate(visits).to_numpy()
        if cohort.service is not None:
            previous = claimed.get(cohort.service)
            if previous is not None:
                overlap = int((previous & mask).sum())
                if overlap:
                    logger.warning(
                        f"Cohort {cohort.name} overlaps {overlap} row(s) with "
                        f"another {cohort.service} cohort"
                    )
                claimed[cohort.service] = previous | mask
            else:
                claimed[cohort.service] = mask
        segments[cohort.name] = visits[mask].reset_index(drop=True)
        logger.info(f"Cohort {cohort.name}: {int(mask.sum())} visits")
    return segments


def to_long(
    frame: pd.DataFrame,
    variables: Optional[Sequence] = None,
    id_column: str = "visit_id",
) -> pd.DataFrame:
    """Reshape wide duration columns into (duration_type, value) rows.

    Args:
        frame: Table holding duration columns.
        variables: Durations to keep (all four when None).
        id_column: Identifier column carried into the result, if present.

    Returns:
        Long table with columns [id_column,] duration_type, value.
    """
    if variables is None:
        columns = list(DURATION_COLUMNS)
    else:
        columns = [DurationType(v).value for v in variables]
    id_vars = [id_column] if id_column in frame.columns else []
    long = frame.melt(
        id_vars=id_vars,
        value_vars=columns,
        var_name="duration_type",
        value_name="value",
    )
    return long


def cohorts_to_long(
    segments: Dict[str, pd.DataFrame], registry: CohortRegistry
) -> pd.DataFrame:
    """Long form of every cohort's declared variables, with a cohort column."""
    parts = []
    for cohort in registry:
        frame = segments.get(cohort.name)
        if frame is None:
            continue
        long = to_long(frame, cohort.variables)
        long.insert(0, "cohort", cohort.name)
        parts.append(long)
    if not parts:
        return pd.DataFrame(columns=["cohort", "visit_id", "duration_type", "value"])
    return pd.concat(parts, ignore_index=True)


def cohort_samples(
    segments: Dict[str, pd.DataFrame], registry: CohortRegistry
) -> Iterator[Tuple[str, str, np.ndarray]]:
    """Yield (cohort, variable, values) for every declared cohort variable."""
    for cohort in registry:
        frame = segments.get(cohort.name)
        if frame is None:
            continue
        for variable in cohort.variables:
            values = frame[variable.value].dropna().to_numpy(dtype=float)
            yield cohort.name, variable.value, values


def describe_sample(values: np.ndarray) -> Dict[str, float]:
    """Descriptive statistics for one sample (seconds)."""
    values = np.asarray(values, dtype=float)
    n = len(values)
    if n == 0:
        return {"n": 0}
    q1, median, q3 = np.percentile(values, [25, 50, 75])
    summary = {
        "n": n,
        "mean": float(np.mean(values)),
        "std": float(np.std(values, ddof=1)) if n > 1 else 0.0,
        "min": float(np.min(values)),
        "q1": float(q1),
        "median": float(median),
        "q3": float(q3),
        "max": float(np.max(values)),
        "skewness": np.nan,
        "kurtosis": np.nan,
    }
    if n > 3 and np.ptp(values) > 0:
        summary["skewness"] = float(stats.skew(values, bias=False))
        summary["kurtosis"] = float(stats.kurtosis(values, fisher=False, bias=False))
    return summary


def describe_cohorts(
    segments: Dict[str, pd.DataFrame],
    registry: CohortRegistry,
    interarrival: Optional[np.ndarray] = None,
) -> pd.DataFrame:
    """Descriptive statistics per cohort and variable.

    Kurtosis is reported on the Pearson scale (normal = 3).

    Returns:
        DataFrame with one row per (cohort, variable).
    """
    rows = []
    for name, variable, values in cohort_samples(segments, registry):
        rows.append({"cohort": name, "variable": variable, **describe_sample(values)})
    if interarrival is not None:
        rows.append({
            "cohort": INTERARRIVAL,
            "variable": INTERARRIVAL,
            **describe_sample(interarrival),
        })
    return pd.DataFrame(rows)


def check_overrides(registry: CohortRegistry, overrides: Dict[str, Dict[str, Any]]) -> None:
    """Raise ConfigError for overrides naming no known cohort/variable pair.

    A misspelt override would otherwise be ignored and leave the pair
    unresolved.
    """
    for cohort_name, variables in overrides.items():
        if cohort_name == INTERARRIVAL:
            known = {INTERARRIVAL}
        elif cohort_name in registry:
            known = {v.value for v in registry[cohort_name].variables}
        else:
            raise ConfigError(
                f"Override names unknown cohort '{cohort_name}'. "
                f"Known cohorts: {', '.join(registry.names + [INTERARRIVAL])}"
            )
        unknown = sorted(set(variables) - known)
        if unknown:
            raise ConfigError(
                f"Override for cohort '{cohort_name}' names unknown variable(s) "
                f"{', '.join(unknown)}; expected one of {', '.join(sorted(known))}"
            )
