"""Write pipeline outputs.

- cleaned_visits.csv: one row per retained visit with its durations
- interarrival_times.txt: one gap in seconds per line
- fit_summary.csv: every converged fit with its statistics
- fitted_parameters.yaml: chosen family and parameters per cohort and
  variable, the input of the simulation model
"""

import logging
from pathlib import Path
from typing import Dict, Sequence

import numpy as np
import pandas as pd
import yaml

from edflow.core.entities import DURATION_COLUMNS, Timestamp
from edflow.core.errors import PipelineError
from edflow.fitting.fitter import FitBatch
from edflow.fitting.selection import FamilySelection

logger = logging.getLogger(__name__)

STAGE = "export"

CLEANED_FILE = "cleaned_visits.csv"
INTERARRIVAL_FILE = "interarrival_times.txt"
FIT_SUMMARY_FILE = "fit_summary.csv"
PARAMETERS_FILE = "fitted_parameters.yaml"

CLEANED_COLUMNS = (
    ["visit_id", "service", "sub_service", "priority"]
    + [t.value for t in Timestamp]
    + DURATION_COLUMNS
)


def _ensure_dir(path: Path) -> Path:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise PipelineError(f"Cannot create output directory: {e}", STAGE, path) from e
    return path


def write_cleaned(visits: pd.DataFrame, output_dir: Path) -> Path:
    """Write the cleaned visit table."""
    path = _ensure_dir(Path(output_dir)) / CLEANED_FILE
    columns = [c for c in CLEANED_COLUMNS if c in visits.columns]
    visits[columns].to_csv(path, index=False)
    logger.info(f"Wrote {len(visits)} cleaned rows to {path}")
    return path


def write_interarrival(gaps: np.ndarray, output_dir: Path) -> Path:
    """Write inter-arrival gaps, one value per line."""
    path = _ensure_dir(Path(output_dir)) / INTERARRIVAL_FILE
    np.savetxt(path, np.asarray(gaps, dtype=float), fmt="%.10g")
    logger.info(f"Wrote {len(gaps)} inter-arrival gaps to {path}")
    return path


def read_interarrival(path: Path) -> np.ndarray:
    """Read a file written by ``write_interarrival``."""
    return np.loadtxt(path, dtype=float, ndmin=1)


def write_fit_summary(batch: FitBatch, output_dir: Path) -> Path:
    """Write every converged fit as one CSV row."""
    path = _ensure_dir(Path(output_dir)) / FIT_SUMMARY_FILE
    batch.to_dataframe().to_csv(path, index=False)
    return path


def parameter_table(selections: Sequence[FamilySelection]) -> Dict:
    """Nested mapping cohort -> variable -> {family, parameters}.

    Only resolved selections are included, so each exported pair maps to
    exactly one family and parameter vector.
    """
    table: Dict = {}
    for s in selections:
        if not s.resolved:
            continue
        table.setdefault(s.cohort, {})[s.variable] = {
            "family": s.chosen.family.value,
            "parameters": {k: float(v) for k, v in s.chosen.params.items()},
            "n": int(s.chosen.n),
        }
    return table


def write_parameters(selections: Sequence[FamilySelection], output_dir: Path) -> Path:
    """Write the chosen distributions as YAML."""
    path = _ensure_dir(Path(output_dir)) / PARAMETERS_FILE
    table = parameter_table(selections)
    with open(path, "w") as f:
        yaml.safe_dump(table, f, default_flow_style=False, sort_keys=False)
    skipped = sum(1 for s in selections if not s.resolved)
    logger.info(
        f"Wrote parameters for {len(selections) - skipped} pair(s) to {path}"
        + (f"; {skipped} unresolved pair(s) left out" if skipped else "")
    )
    return path


def load_parameters(path: Path) -> Dict:
    """Read a parameter file written by ``write_parameters``."""
    with open(path) as f:
        return yaml.safe_load(f) or {}
