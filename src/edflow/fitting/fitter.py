"""Maximum likelihood fitting of duration samples.

Each call to ``fit_distribution`` is stateless: one sample, one family,
one new ``FitResult``. Batch helpers treat every cohort/variable/family
combination as an independent unit of work, so a non-convergent fit is
recorded as a ``FitFailure`` and the remaining fits carry on.
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import stats

from edflow.core.config import FitSettings
from edflow.core.entities import Family
from edflow.core.errors import FitError
from edflow.fitting.diagnostics import cullen_frey, shortlist_families
from edflow.fitting.families import FamilySpec, get_spec

logger = logging.getLogger(__name__)

# CDF values are clipped away from 0 and 1 before taking logs
_CDF_EPS = 1e-12


@dataclass(frozen=True)
class GoodnessOfFit:
    """Goodness-of-fit statistics against the fitted CDF.

    p-values assume fully specified parameters, so with estimated
    parameters they are optimistic and best used for ranking.
    """

    ks_statistic: float
    ks_pvalue: float
    cvm_statistic: float
    cvm_pvalue: float
    ad_statistic: float


@dataclass(frozen=True)
class FitResult:
    """One fitted family for one sample.

    Attributes:
        cohort: Cohort name (or "interarrival").
        variable: Duration variable fitted.
        family: Fitted family.
        params: Named parameter estimates (read-only mapping).
        n: Sample size.
        loglik: Maximised log-likelihood.
        aic: Akaike information criterion.
        bic: Bayesian information criterion.
        gof: Goodness-of-fit statistics, if requested.
    """

    cohort: str
    variable: str
    family: Family
    params: Mapping[str, float]
    n: int
    loglik: float
    aic: float
    bic: float
    gof: Optional[GoodnessOfFit] = None

    def __post_init__(self) -> None:
        # Read-only view so the estimates cannot change after fitting
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))

    @property
    def spec(self) -> FamilySpec:
        return get_spec(self.family)

    def frozen(self):
        """Frozen scipy distribution with the fitted parameters."""
        return self.spec.frozen(self.params)

    def criterion(self, name: str) -> float:
        return {"aic": self.aic, "bic": self.bic}[name.lower()]

    def to_dict(self) -> Dict:
        """Flat record for tabular output."""
        record = {
            "cohort": self.cohort,
            "variable": self.variable,
            "family": self.family.value,
            "n": self.n,
            "loglik": self.loglik,
            "aic": self.aic,
            "bic": self.bic,
        }
        for name, value in self.params.items():
            record[f"param_{name}"] = value
        if self.gof is not None:
            record.update({
                "ks_statistic": self.gof.ks_statistic,
                "ks_pvalue": self.gof.ks_pvalue,
                "cvm_statistic": self.gof.cvm_statistic,
                "cvm_pvalue": self.gof.cvm_pvalue,
                "ad_statistic": self.gof.ad_statistic,
            })
        return record


@dataclass(frozen=True)
class FitFailure:
    """A cohort/variable/family combination that could not be fitted."""

    cohort: str
    variable: str
    family: Family
    message: str


@dataclass
class FitBatch:
    """Fits and failures from a batch of independent fits."""

    fits: List[FitResult] = field(default_factory=list)
    failures: List[FitFailure] = field(default_factory=list)
    attempted: List[Tuple[str, str]] = field(default_factory=list)

    def extend(self, other: "FitBatch") -> None:
        self.fits.extend(other.fits)
        self.failures.extend(other.failures)
        self.attempted.extend(other.attempted)

    def for_pair(self, cohort: str, variable: str) -> List[FitResult]:
        """Converged fits for one cohort/variable pair."""
        return [f for f in self.fits if f.cohort == cohort and f.variable == variable]

    def pairs(self) -> List[Tuple[str, str]]:
        """Distinct (cohort, variable) pairs in the order they were attempted."""
        seen = dict.fromkeys(self.attempted)
        for item in [*self.fits, *self.failures]:
            seen.setdefault((item.cohort, item.variable), None)
        return list(seen)

    def to_dataframe(self) -> pd.DataFrame:
        """All converged fits as one row each."""
        return pd.DataFrame([f.to_dict() for f in self.fits])

    def failures_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(
            [
                {
                    "cohort": f.cohort,
                    "variable": f.variable,
                    "family": f.family.value,
                    "message": f.message,
                }
                for f in self.failures
            ],
            columns=["cohort", "variable", "family", "message"],
        )


def anderson_darling(sample: np.ndarray, cdf) -> float:
    """Anderson-Darling A^2 statistic of ``sample`` against ``cdf``."""
    x = np.sort(np.asarray(sample, dtype=float))
    n = len(x)
    u = np.clip(cdf(x), _CDF_EPS, 1 - _CDF_EPS)
    i = np.arange(1, n + 1)
    return float(-n - np.mean((2 * i - 1) * (np.log(u) + np.log1p(-u[::-1]))))


def goodness_of_fit(sample: np.ndarray, frozen) -> GoodnessOfFit:
    """KS, Cramer-von Mises and Anderson-Darling statistics for a fit."""
    sample = np.asarray(sample, dtype=float)
    ks = stats.kstest(sample, frozen.cdf)
    cvm = stats.cramervonmises(sample, frozen.cdf)
    return GoodnessOfFit(
        ks_statistic=float(ks.statistic),
        ks_pvalue=float(ks.pvalue),
        cvm_statistic=float(cvm.statistic),
        cvm_pvalue=float(cvm.pvalue),
        ad_statistic=anderson_darling(sample, frozen.cdf),
    )


def _check_sample(sample: np.ndarray, spec: FamilySpec, min_sample_size: int) -> None:
    """Raise FitError for samples the family cannot be fitted to."""
    n = len(sample)
    if n < min_sample_size:
        raise FitError(f"sample size {n} below minimum {min_sample_size}")
    if not np.all(np.isfinite(sample)):
        raise FitError("sample contains non-finite values")
    if spec.positive_support and np.any(sample <= 0):
        raise FitError(f"{spec.family.value} requires strictly positive values")
    if np.any(sample < 0):
        raise FitError("sample contains negative values")
    if np.ptp(sample) == 0:
        raise FitError("sample has zero variance")


def fit_distribution(
    sample: Sequence[float],
    family,
    cohort: str = "",
    variable: str = "",
    with_gof: bool = True,
    min_sample_size: int = 2,
) -> FitResult:
    """Fit one family to one sample by maximum likelihood.

    Args:
        sample: Durations in seconds.
        family: Family or family name.
        cohort: Cohort label carried into the result.
        variable: Variable label carried into the result.
        with_gof: Compute goodness-of-fit statistics.
        min_sample_size: Smallest sample accepted.

    Returns:
        A new FitResult.

    Raises:
        FitError: If the sample is unsuitable, the optimiser fails, or the
            estimates are not finite and positive.
    """
    spec = get_spec(family)
    x = np.asarray(sample, dtype=float)
    _check_sample(x, spec, min_sample_size)

    try:
        with np.errstate(all="ignore"):
            params = {k: float(v) for k, v in spec.fit(x).items()}
    except (RuntimeError, ValueError, FloatingPointError, ZeroDivisionError) as e:
        raise FitError(f"{spec.family.value} fit did not converge: {e}") from e

    for name, value in params.items():
        if not np.isfinite(value):
            raise FitError(f"{spec.family.value} estimate {name} is not finite")
        if name not in spec.signed_params and value <= 0:
            raise FitError(f"{spec.family.value} estimate {name}={value} is not positive")

    frozen = spec.frozen(params)
    with np.errstate(all="ignore"):
        loglik = float(np.sum(frozen.logpdf(x)))
    if not np.isfinite(loglik):
        raise FitError(f"{spec.family.value} log-likelihood is not finite")

    n = len(x)
    k = spec.n_params
    gof = goodness_of_fit(x, frozen) if with_gof else None

    result = FitResult(
        cohort=cohort,
        variable=variable,
        family=spec.family,
        params=params,
        n=n,
        loglik=loglik,
        aic=2 * k - 2 * loglik,
        bic=k * np.log(n) - 2 * loglik,
        gof=gof,
    )
    logger.debug(
        f"Fitted {spec.family.value} to {cohort}/{variable} (n={n}): "
        f"{params}, AIC={result.aic:.1f}"
    )
    return result


def fit_families(
    sample: Sequence[float],
    families: Iterable,
    cohort: str = "",
    variable: str = "",
    with_gof: bool = True,
    min_sample_size: int = 2,
) -> FitBatch:
    """Fit several families to one sample, recording failures.

    Returns:
        FitBatch with one fit or one failure per family.
    """
    batch = FitBatch(attempted=[(cohort, variable)])
    for family in families:
        family = Family.parse(family)
        try:
            batch.fits.append(
                fit_distribution(
                    sample,
                    family,
                    cohort=cohort,
                    variable=variable,
                    with_gof=with_gof,
                    min_sample_size=min_sample_size,
                )
            )
        except FitError as e:
            logger.warning(f"Fit failed for {cohort}/{variable}/{family.value}: {e}")
            batch.failures.append(FitFailure(cohort, variable, family, str(e)))
    return batch


def fit_cohorts(
    samples: Iterable[Tuple[str, str, np.ndarray]],
    settings: Optional[FitSettings] = None,
    with_gof: bool = True,
) -> FitBatch:
    """Fit candidate families to every (cohort, variable, sample) triple.

    Candidates are the configured families, narrowed to the
    Cullen-and-Frey shortlist when ``settings.narrow_candidates`` is set,
    plus any family named as a manual override for the pair.

    Args:
        samples: Iterable of (cohort, variable, values).
        settings: Fitting settings (defaults when None).
        with_gof: Compute goodness-of-fit statistics.

    Returns:
        FitBatch covering all pairs.
    """
    settings = settings or FitSettings()
    configured = settings.family_list()
    batch = FitBatch()

    for cohort, variable, values in samples:
        candidates: List[Family] = list(configured)
        if settings.narrow_candidates and len(values) > 3 and np.ptp(values) > 0:
            diagnostic = cullen_frey(values)
            candidates = shortlist_families(
                diagnostic, configured, tolerance=settings.shortlist_tolerance
            )
            logger.info(
                f"{cohort}/{variable}: shortlisted "
                f"{', '.join(f.value for f in candidates)}"
            )
        override = settings.overrides.get(cohort, {}).get(variable)
        if override is not None and Family.parse(override) not in candidates:
            candidates.append(Family.parse(override))

        batch.extend(
            fit_families(
                values,
                candidates,
                cohort=cohort,
                variable=variable,
                with_gof=with_gof,
                min_sample_size=settings.min_sample_size,
            )
        )

    logger.info(f"Completed {len(batch.fits)} fits with {len(batch.failures)} failures")
    return batch
