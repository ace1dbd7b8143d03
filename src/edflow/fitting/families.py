"""Parametric families and their mapping onto scipy.stats.

Every family is fitted with the location fixed at zero, so durations are
modelled on [0, inf) and all estimated parameters are positive. Parameters
are reported in the parameterisation the simulation tool expects:

- exponential: rate
- gamma: shape, rate
- lognormal: meanlog, sdlog (of the underlying normal)
- weibull: shape, scale
"""

from dataclasses import dataclass
from typing import Callable, Dict, Tuple

import numpy as np
from scipy import stats

from edflow.core.entities import Family


@dataclass(frozen=True)
class FamilySpec:
    """How one family is fitted and frozen.

    Attributes:
        family: Family identifier.
        dist: scipy.stats continuous distribution.
        param_names: Reported parameter names.
        positive_support: Sample values must be strictly positive.
        to_params: scipy fit tuple (shape..., loc, scale) -> named params.
        to_scipy: Named params -> (shape args, scale).
        shape_grid: Shape values tracing the family in the Cullen-and-Frey
            plane (empty for one-point families).
        signed_params: Parameters allowed to be zero or negative.
    """

    family: Family
    dist: stats.rv_continuous
    param_names: Tuple[str, ...]
    positive_support: bool
    to_params: Callable[[tuple], Dict[str, float]]
    to_scipy: Callable[[Dict[str, float]], Tuple[tuple, float]]
    shape_grid: Tuple[float, ...] = ()
    signed_params: Tuple[str, ...] = ()

    @property
    def n_params(self) -> int:
        return len(self.param_names)

    def fit(self, sample: np.ndarray) -> Dict[str, float]:
        """Maximum likelihood estimates with location fixed at zero."""
        return self.to_params(self.dist.fit(sample, floc=0))

    def frozen(self, params: Dict[str, float]):
        """Frozen scipy distribution for the given parameters."""
        args, scale = self.to_scipy(params)
        return self.dist(*args, loc=0, scale=scale)


FAMILIES: Dict[Family, FamilySpec] = {
    Family.EXPONENTIAL: FamilySpec(
        family=Family.EXPONENTIAL,
        dist=stats.expon,
        param_names=("rate",),
        positive_support=False,
        to_params=lambda fit: {"rate": 1.0 / fit[1]},
        to_scipy=lambda p: ((), 1.0 / p["rate"]),
    ),
    Family.GAMMA: FamilySpec(
        family=Family.GAMMA,
        dist=stats.gamma,
        param_names=("shape", "rate"),
        positive_support=True,
        to_params=lambda fit: {"shape": fit[0], "rate": 1.0 / fit[2]},
        to_scipy=lambda p: ((p["shape"],), 1.0 / p["rate"]),
        shape_grid=tuple(np.logspace(-1.5, 3, 200)),
    ),
    Family.LOGNORMAL: FamilySpec(
        family=Family.LOGNORMAL,
        dist=stats.lognorm,
        param_names=("meanlog", "sdlog"),
        positive_support=True,
        to_params=lambda fit: {"meanlog": float(np.log(fit[2])), "sdlog": fit[0]},
        to_scipy=lambda p: ((p["sdlog"],), float(np.exp(p["meanlog"]))),
        shape_grid=tuple(np.logspace(-2, 0.1, 200)),
        signed_params=("meanlog",),
    ),
    Family.WEIBULL: FamilySpec(
        family=Family.WEIBULL,
        dist=stats.weibull_min,
        param_names=("shape", "scale"),
        positive_support=True,
        to_params=lambda fit: {"shape": fit[0], "scale": fit[2]},
        to_scipy=lambda p: ((p["shape"],), p["scale"]),
        shape_grid=tuple(np.logspace(np.log10(0.3), np.log10(20), 200)),
    ),
}


def get_spec(family) -> FamilySpec:
    """FamilySpec for a Family or family name."""
    return FAMILIES[Family.parse(family)]
