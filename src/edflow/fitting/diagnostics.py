"""Cullen-and-Frey skewness/kurtosis diagnostics.

The observed sample is placed in the (skewness^2, kurtosis) plane next to
the theoretical locations of the candidate families: a point for the
exponential, curves traced over the shape parameter for gamma, lognormal
and Weibull. The distance to each family is used only to shortlist
candidates before fitting; the final choice is made on the fits
themselves.

Kurtosis is on the Pearson scale throughout (normal = 3).
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np
from scipy import stats

from edflow.core.entities import Family
from edflow.fitting.families import FAMILIES, get_spec

# Reference points drawn on the plot but never fitted
REFERENCE_POINTS: Dict[str, Tuple[float, float]] = {
    "normal": (0.0, 3.0),
    "uniform": (0.0, 1.8),
}


@dataclass(frozen=True)
class CullenFreyResult:
    """Sample moments for the Cullen-and-Frey plot.

    Attributes:
        n: Sample size.
        skewness: Unbiased sample skewness.
        kurtosis: Unbiased sample kurtosis (Pearson).
        bootstrap: Optional (n_bootstrap, 2) array of
            (skewness^2, kurtosis) from resampled data.
    """

    n: int
    skewness: float
    kurtosis: float
    bootstrap: Optional[np.ndarray] = None

    @property
    def square_skewness(self) -> float:
        return self.skewness ** 2

    @property
    def point(self) -> Tuple[float, float]:
        """Observed (skewness^2, kurtosis)."""
        return (self.square_skewness, self.kurtosis)


def _moments(values: np.ndarray) -> Tuple[float, float]:
    skew = float(stats.skew(values, bias=False))
    kurt = float(stats.kurtosis(values, fisher=False, bias=False))
    return skew, kurt


def cullen_frey(
    sample: Iterable[float],
    n_bootstrap: int = 0,
    rng: Optional[np.random.Generator] = None,
) -> CullenFreyResult:
    """Skewness and kurtosis of a sample, optionally bootstrapped.

    Args:
        sample: Observations.
        n_bootstrap: Number of bootstrap resamples (0 for none).
        rng: Random generator for the bootstrap.

    Returns:
        CullenFreyResult.

    Raises:
        ValueError: If the sample has fewer than 4 values or no spread.
    """
    values = np.asarray(list(sample), dtype=float)
    n = len(values)
    if n < 4:
        raise ValueError("Cullen-and-Frey diagnostics need at least 4 values")
    if np.ptp(values) == 0:
        raise ValueError("Cullen-and-Frey diagnostics need a sample with spread")

    skew, kurt = _moments(values)

    boot = None
    if n_bootstrap > 0:
        rng = rng or np.random.default_rng()
        points = []
        for _ in range(n_bootstrap):
            resample = rng.choice(values, size=n, replace=True)
            if np.ptp(resample) == 0:
                continue
            b_skew, b_kurt = _moments(resample)
            points.append((b_skew ** 2, b_kurt))
        boot = np.array(points).reshape(-1, 2)

    return CullenFreyResult(n=n, skewness=skew, kurtosis=kurt, bootstrap=boot)


def family_curve(family) -> np.ndarray:
    """Theoretical (skewness^2, kurtosis) locations of a family.

    Returns:
        (k, 2) array; a single row for families without a shape parameter.
    """
    spec = get_spec(family)
    if not spec.shape_grid:
        skew, excess = spec.dist.stats(moments="sk")
        return np.array([[float(skew) ** 2, float(excess) + 3.0]])

    shapes = np.asarray(spec.shape_grid)
    skew, excess = spec.dist.stats(shapes, moments="sk")
    curve = np.column_stack([np.asarray(skew) ** 2, np.asarray(excess) + 3.0])
    return curve[np.all(np.isfinite(curve), axis=1)]


def family_distances(
    result: CullenFreyResult, families: Optional[Iterable] = None
) -> Dict[Family, float]:
    """Distance from the observed point to each family's location."""
    if families is None:
        families = list(FAMILIES)
    observed = np.array(result.point)
    distances = {}
    for family in families:
        family = Family.parse(family)
        curve = family_curve(family)
        distances[family] = float(np.min(np.linalg.norm(curve - observed, axis=1)))
    return distances


def shortlist_families(
    result: CullenFreyResult,
    families: Optional[Iterable] = None,
    tolerance: float = 2.0,
) -> List[Family]:
    """Families close enough to the observed point to be worth fitting.

    Families are ordered nearest first. The nearest family is always kept,
    whatever its distance.

    Args:
        result: Sample diagnostics.
        families: Candidates (all families when None).
        tolerance: Maximum distance in the (skewness^2, kurtosis) plane.

    Returns:
        Non-empty list of families.
    """
    distances = family_distances(result, families)
    ranked = sorted(distances, key=distances.get)
    if not ranked:
        return []
    return [ranked[0]] + [f for f in ranked[1:] if distances[f] <= tolerance]
