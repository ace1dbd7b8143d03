"""End-of-run summary of non-fatal issues.

Data-quality notes, exclusion counts, fit failures and unresolved
selections are accumulated here instead of interrupting the run.
"""

from dataclasses import dataclass, field
from typing import Dict, List

from edflow.fitting.fitter import FitFailure
from edflow.fitting.selection import FamilySelection


@dataclass
class RunSummary:
    """Counts and notes collected across pipeline stages.

    Attributes:
        load_counts: Loader counts (rows, duplicates, unmatched ids...).
        notes: Data-quality notes (join duplicates, invalid priorities).
        exclusions: Cleaner exclusion counts by reason.
        n_cleaned: Rows retained by the cleaner.
        n_interarrival: Number of inter-arrival gaps.
        cohort_sizes: Visits per cohort.
        fit_failures: Non-convergent cohort/variable/family fits.
        selections: Family selection per cohort/variable.
    """

    load_counts: Dict[str, int] = field(default_factory=dict)
    notes: List[str] = field(default_factory=list)
    exclusions: Dict[str, int] = field(default_factory=dict)
    n_cleaned: int = 0
    n_interarrival: int = 0
    cohort_sizes: Dict[str, int] = field(default_factory=dict)
    fit_failures: List[FitFailure] = field(default_factory=list)
    selections: List[FamilySelection] = field(default_factory=list)

    @property
    def n_excluded(self) -> int:
        return sum(self.exclusions.values())

    @property
    def unresolved(self) -> List[FamilySelection]:
        """Selections with no chosen family."""
        return [s for s in self.selections if not s.resolved]

    def format(self) -> str:
        """Human-readable multi-line summary."""
        lines = ["Run summary", "==========="]

        if self.load_counts:
            lines.append(
                "Loaded: " + ", ".join(f"{k}={v}" for k, v in self.load_counts.items())
            )
        for note in self.notes:
            lines.append(f"  note: {note}")

        lines.append(f"Cleaned rows retained: {self.n_cleaned}")
        lines.append(f"Rows excluded: {self.n_excluded}")
        for reason, count in self.exclusions.items():
            if count:
                lines.append(f"  {reason}: {count}")

        lines.append(f"Inter-arrival gaps: {self.n_interarrival}")

        if self.cohort_sizes:
            lines.append("Cohorts:")
            for name, size in self.cohort_sizes.items():
                lines.append(f"  {name}: {size}")

        if self.fit_failures:
            lines.append(f"Fit failures: {len(self.fit_failures)}")
            for f in self.fit_failures:
                lines.append(f"  {f.cohort}/{f.variable}/{f.family.value}: {f.message}")

        if self.selections:
            lines.append("Selections:")
            for s in self.selections:
                lines.append(f"  {s.describe()}")

        return "\n".join(lines)
