"""Builders for synthetic visit rows, extracts and fit results used by the tests."""

from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pandas as pd

from edflow.core.config import PipelineConfig
from edflow.core.entities import Family
from edflow.fitting.fitter import FitResult

BASE_TIME = datetime(2024, 3, 1, 8, 0, 0)
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
TIMESTAMP_COLUMNS = [
    "counter_exit", "triage_entry", "triage_exit", "service_entry", "service_exit",
]


def visit_row(
    visit_id: str,
    offsets: Sequence[Optional[float]],
    service: str = "ADULT",
    sub_service: str = "CONSULT_1",
    start: float = 0.0,
) -> Dict[str, str]:
    """Primary row whose timestamps are ``start + offset`` seconds from BASE_TIME.

    An offset of None leaves the timestamp blank.
    """
    row = {"visit_id": visit_id, "service": service, "sub_service": sub_service}
    for column, offset in zip(TIMESTAMP_COLUMNS, offsets):
        if offset is None:
            row[column] = ""
        else:
            stamp = BASE_TIME + timedelta(seconds=start + offset)
            row[column] = stamp.strftime(TIMESTAMP_FORMAT)
    return row


def write_extracts(
    directory: Path,
    primary_rows: List[Dict],
    supplementary_rows: List[Dict],
    supplementary_encoding: str = "latin-1",
) -> PipelineConfig:
    """Write both extracts as CSV and return a config pointing at them."""
    primary_path = directory / "visits.csv"
    supplementary_path = directory / "priorities.csv"
    pd.DataFrame(primary_rows).to_csv(primary_path, index=False, encoding="utf-8")
    pd.DataFrame(supplementary_rows).to_csv(
        supplementary_path, index=False, encoding=supplementary_encoding
    )
    return PipelineConfig(
        primary_path=primary_path,
        supplementary_path=supplementary_path,
        output_dir=directory / "output",
        supplementary_encoding=supplementary_encoding,
        timestamp_format=TIMESTAMP_FORMAT,
    )


def make_fit(family, aic, bic=None, cohort="c", variable="v"):
    """FitResult with fixed criteria; parameters are placeholders."""
    params = {
        Family.EXPONENTIAL: {"rate": 0.01},
        Family.GAMMA: {"shape": 2.0, "rate": 0.02},
        Family.LOGNORMAL: {"meanlog": 4.0, "sdlog": 0.5},
        Family.WEIBULL: {"shape": 1.2, "scale": 100.0},
    }[family]
    return FitResult(
        cohort=cohort,
        variable=variable,
        family=family,
        params=params,
        n=100,
        loglik=-aic / 2,
        aic=aic,
        bic=aic if bic is None else bic,
    )


def visits_frame(rows: List[Dict]) -> pd.DataFrame:
    """Loaded-style visit table (parsed timestamps) built from visit_row dicts."""
    df = pd.DataFrame(rows)
    for column in TIMESTAMP_COLUMNS:
        raw = df[column].where(df[column] != "", None)
        df[column] = pd.to_datetime(raw, format=TIMESTAMP_FORMAT)
    return df

