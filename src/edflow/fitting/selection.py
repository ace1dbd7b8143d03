"""Choose one family per cohort/variable pair.

The converged fit with the lowest information criterion is chosen. When
another fit lies within ``tie_tolerance`` of it the pair is flagged
ambiguous and nothing is chosen automatically; a manual override from
the configuration settles it. There is no implicit tie-break.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from edflow.core.config import FitSettings
from edflow.core.entities import Criterion, Family
from edflow.fitting.fitter import FitBatch, FitResult

logger = logging.getLogger(__name__)

SELECTED = "selected"
OVERRIDE = "override"
AMBIGUOUS = "ambiguous"
NO_FIT = "no_fit"


@dataclass(frozen=True)
class FamilySelection:
    """Selection outcome for one cohort/variable pair.

    Attributes:
        cohort: Cohort name.
        variable: Variable name.
        criterion: Criterion used to rank fits.
        status: "selected", "override", "ambiguous" or "no_fit".
        chosen: The chosen fit, None unless status is selected/override.
        ranked: Converged fits, best first.
        tied: Families within the tie tolerance of the best (including it)
            when the status is ambiguous.
    """

    cohort: str
    variable: str
    criterion: Criterion
    status: str
    chosen: Optional[FitResult] = None
    ranked: Tuple[FitResult, ...] = ()
    tied: Tuple[Family, ...] = ()

    @property
    def resolved(self) -> bool:
        return self.chosen is not None

    def describe(self) -> str:
        """One-line description for the run summary."""
        label = f"{self.cohort}/{self.variable}"
        if self.status == NO_FIT:
            return f"{label}: no converged fit"
        if self.status == AMBIGUOUS:
            families = ", ".join(f.value for f in self.tied)
            return (
                f"{label}: ambiguous ({families} within tolerance on "
                f"{self.criterion.value.upper()}); set an override"
            )
        suffix = " (manual override)" if self.status == OVERRIDE else ""
        return f"{label}: {self.chosen.family.value}{suffix}"


def select_family(
    fits: Sequence[FitResult],
    criterion="aic",
    tie_tolerance: float = 2.0,
    override=None,
    cohort: str = "",
    variable: str = "",
) -> FamilySelection:
    """Rank converged fits and choose one family.

    Args:
        fits: Converged fits for a single cohort/variable pair.
        criterion: "aic" or "bic".
        tie_tolerance: Criterion difference below which fits are comparable.
        override: Family to choose regardless of ranking, if it converged.
        cohort: Cohort label (taken from the fits when empty).
        variable: Variable label (taken from the fits when empty).

    Returns:
        FamilySelection.
    """
    criterion = Criterion(str(getattr(criterion, "value", criterion)).lower())
    if fits:
        cohort = cohort or fits[0].cohort
        variable = variable or fits[0].variable

    ranked = tuple(sorted(fits, key=lambda f: f.criterion(criterion.value)))
    if not ranked:
        return FamilySelection(cohort, variable, criterion, NO_FIT)

    if override is not None:
        family = Family.parse(override)
        for fit in ranked:
            if fit.family == family:
                return FamilySelection(
                    cohort, variable, criterion, OVERRIDE, chosen=fit, ranked=ranked
                )
        logger.warning(
            f"Override {family.value} for {cohort}/{variable} did not converge; "
            "falling back to ranking"
        )

    best = ranked[0].criterion(criterion.value)
    tied = tuple(
        f.family for f in ranked
        if f.criterion(criterion.value) - best <= tie_tolerance
    )
    if len(tied) > 1:
        return FamilySelection(
            cohort, variable, criterion, AMBIGUOUS, ranked=ranked, tied=tied
        )
    return FamilySelection(
        cohort, variable, criterion, SELECTED, chosen=ranked[0], ranked=ranked
    )


def select_all(
    batch: FitBatch, settings: Optional[FitSettings] = None
) -> List[FamilySelection]:
    """Select a family for every pair attempted in ``batch``."""
    settings = settings or FitSettings()
    selections = []
    for cohort, variable in batch.pairs():
        override = settings.overrides.get(cohort, {}).get(variable)
        selection = select_family(
            batch.for_pair(cohort, variable),
            criterion=settings.criterion,
            tie_tolerance=settings.tie_tolerance,
            override=override,
            cohort=cohort,
            variable=variable,
        )
        if selection.status in (AMBIGUOUS, NO_FIT):
            logger.warning(selection.describe())
        else:
            logger.info(selection.describe())
        selections.append(selection)
    return selections


def selections_dataframe(selections: Sequence[FamilySelection]) -> pd.DataFrame:
    """One row per pair: status, chosen family and its parameters."""
    rows = []
    for s in selections:
        row: Dict = {
            "cohort": s.cohort,
            "variable": s.variable,
            "status": s.status,
            "family": s.chosen.family.value if s.chosen else None,
            "criterion": s.criterion.value,
        }
        if s.chosen is not None:
            row["criterion_value"] = s.chosen.criterion(s.criterion.value)
            for name, value in s.chosen.params.items():
                row[f"param_{name}"] = value
        rows.append(row)
    return pd.DataFrame(rows)
