"""Fitting layer: MLE fits, Cullen-and-Frey diagnostics, family selection."""

from edflow.fitting.diagnostics import cullen_frey, shortlist_families
from edflow.fitting.fitter import (
    FitBatch,
    FitFailure,
    FitResult,
    fit_cohorts,
    fit_distribution,
    fit_families,
    goodness_of_fit,
)
from edflow.fitting.selection import FamilySelection, select_all, select_family

__all__ = [
    "cullen_frey",
    "shortlist_families",
    "FitBatch",
    "FitFailure",
    "FitResult",
    "fit_cohorts",
    "fit_distribution",
    "fit_families",
    "goodness_of_fit",
    "FamilySelection",
    "select_all",
    "select_family",
]
