"""End-to-end pipeline: load, clean, segment, fit, select, export.

Each stage receives the previous stage's result and returns a new one;
nothing is shared or modified in place. Fatal input errors propagate as
``PipelineError``; everything else is collected in the ``RunSummary``.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from edflow.core.config import PipelineConfig
from edflow.core.entities import INTERARRIVAL
from edflow.data.cleaner import CleanResult, clean_visits, interarrival_times
from edflow.data.cohorts import (
    CohortRegistry,
    check_overrides,
    cohort_samples,
    cohorts_from_config,
    describe_cohorts,
    segment,
)
from edflow.data.loader import LoadResult, load_visits, summarise_load
from edflow.fitting.fitter import FitBatch, fit_cohorts
from edflow.fitting.selection import FamilySelection, select_all
from edflow.results import export
from edflow.results.summary import RunSummary

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class PipelineResult:
    """Everything produced by one run.

    Attributes:
        load: Loader output.
        clean: Cleaner output.
        interarrival: Inter-arrival gaps (seconds).
        segments: Cohort name -> member rows.
        descriptives: Descriptive statistics per cohort/variable.
        fits: All fits and failures.
        selections: Chosen family per cohort/variable.
        summary: Non-fatal issues and counts.
        outputs: Output name -> written file path.
    """

    load: LoadResult
    clean: CleanResult
    interarrival: np.ndarray
    segments: Dict[str, pd.DataFrame]
    descriptives: pd.DataFrame
    fits: FitBatch
    selections: List[FamilySelection]
    summary: RunSummary
    outputs: Dict[str, Path] = field(default_factory=dict)


def run_pipeline(
    config: PipelineConfig,
    registry: Optional[CohortRegistry] = None,
    write_outputs: bool = True,
) -> PipelineResult:
    """Run every stage for one configuration.

    Args:
        config: Paths, encodings, thresholds and fitting settings.
        registry: Cohorts to fit; built from ``config.cohorts`` when None.
        write_outputs: Write the output files to ``config.output_dir``.

    Returns:
        PipelineResult.

    Raises:
        ConfigError: If a cohort definition or override is invalid.
        PipelineError: If an input is missing or malformed.
    """
    registry = registry or cohorts_from_config(config.cohorts)
    check_overrides(registry, config.fitting.overrides)

    logger.info("Stage 1/4: loading extracts")
    load = load_visits(config)

    logger.info("Stage 2/4: cleaning visits")
    clean = clean_visits(load.visits, config.thresholds)
    gaps = interarrival_times(load.visits)

    logger.info("Stage 3/4: segmenting cohorts")
    segments = segment(clean.visits, registry)
    descriptives = describe_cohorts(segments, registry, interarrival=gaps)

    logger.info("Stage 4/4: fitting distributions")
    samples = list(cohort_samples(segments, registry))
    samples.append((INTERARRIVAL, INTERARRIVAL, gaps))
    fits = fit_cohorts(samples, config.fitting)
    selections = select_all(fits, config.fitting)

    summary = RunSummary(
        load_counts=summarise_load(load),
        notes=list(load.notes),
        exclusions=dict(clean.exclusions),
        n_cleaned=len(clean.visits),
        n_interarrival=len(gaps),
        cohort_sizes={name: len(frame) for name, frame in segments.items()},
        fit_failures=list(fits.failures),
        selections=list(selections),
    )

    result = PipelineResult(
        load=load,
        clean=clean,
        interarrival=gaps,
        segments=segments,
        descriptives=descriptives,
        fits=fits,
        selections=selections,
        summary=summary,
    )

    if write_outputs:
        out = config.output_dir
        result.outputs = {
            "cleaned": export.write_cleaned(clean.visits, out),
            "interarrival": export.write_interarrival(gaps, out),
            "fit_summary": export.write_fit_summary(fits, out),
            "parameters": export.write_parameters(selections, out),
        }

    logger.info(summary.format())
    return result
