"""Read the visit extracts and attach the priority level.

The primary extract holds one row per visit with service categories and
the five stage timestamps. The supplementary extract holds the triage
priority keyed by the same visit id, possibly in a different text
encoding and possibly with repeated ids.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from edflow.core.config import ColumnMap, PipelineConfig
from edflow.core.entities import Priority, Timestamp
from edflow.core.errors import InputMalformedError, PipelineError

logger = logging.getLogger(__name__)

STAGE = "loader"

PRIMARY_FIELDS = ["visit_id", "service", "sub_service"] + [t.value for t in Timestamp]
SUPPLEMENTARY_FIELDS = ["visit_id", "priority"]

_VALID_PRIORITIES = [int(p) for p in Priority]


@dataclass(frozen=True, eq=False)
class LoadResult:
    """Output of the loader stage.

    Attributes:
        visits: Primary rows with canonical column names and a nullable
            integer ``priority`` column.
        n_primary: Rows read from the primary extract.
        n_supplementary_duplicates: Supplementary rows dropped because their
            visit id had already been seen.
        n_unmatched: Primary rows with no supplementary match.
        n_invalid_priority: Supplementary priority values outside 1-4.
        notes: Data-quality notes for the run summary.
    """

    visits: pd.DataFrame
    n_primary: int
    n_supplementary_duplicates: int = 0
    n_unmatched: int = 0
    n_invalid_priority: int = 0
    notes: List[str] = field(default_factory=list)


def _read_table(path: Optional[Path], encoding: str, delimiter: str) -> pd.DataFrame:
    """Read a delimited file as strings, mapping failures to InputMalformedError."""
    if path is None:
        raise InputMalformedError("No input path configured", STAGE)
    path = Path(path)
    if not path.exists():
        raise InputMalformedError("File not found", STAGE, path)

    try:
        return pd.read_csv(path, sep=delimiter, encoding=encoding, dtype=str)
    except UnicodeDecodeError as e:
        raise InputMalformedError(
            f"Cannot decode file as {encoding}: {e}", STAGE, path
        ) from e
    except LookupError as e:
        raise InputMalformedError(f"Unknown encoding '{encoding}'", STAGE, path) from e
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise InputMalformedError(f"Cannot parse file: {e}", STAGE, path) from e


def _canonicalise(
    df: pd.DataFrame, columns: ColumnMap, required: List[str], path: Path
) -> pd.DataFrame:
    """Rename source columns to canonical names and check required ones exist."""
    source_names = {name: getattr(columns, name) for name in required}
    missing = [src for src in source_names.values() if src not in df.columns]
    if missing:
        raise InputMalformedError(
            f"Missing required column(s): {', '.join(missing)}", STAGE, path
        )
    renamed = df.rename(columns={src: name for name, src in source_names.items()})
    return renamed[required]


def _parse_timestamps(
    df: pd.DataFrame, timestamp_format: Optional[str], path: Path
) -> pd.DataFrame:
    """Parse the five timestamp columns. Blank cells become NaT."""
    df = df.copy()
    for column in [t.value for t in Timestamp]:
        try:
            df[column] = pd.to_datetime(df[column], format=timestamp_format)
        except (ValueError, TypeError) as e:
            raise InputMalformedError(
                f"Unparseable timestamp in column '{column}': {e}", STAGE, path
            ) from e
    return df


def _coerce_priority(raw: pd.Series) -> pd.Series:
    """Extract the ordinal 1-4 from values such as '3', 'P3' or 'Level 3'."""
    digits = raw.astype("string").str.extract(r"(\d+)", expand=False)
    values = pd.to_numeric(digits, errors="coerce").astype("Int64")
    return values.where(values.isin(_VALID_PRIORITIES))


def load_primary(config: PipelineConfig) -> pd.DataFrame:
    """Read the primary extract with canonical columns and parsed timestamps.

    Raises:
        InputMalformedError: If the file is missing, undecodable, lacks a
            required column or holds an unparseable timestamp.
    """
    path = config.primary_path
    raw = _read_table(path, config.primary_encoding, config.delimiter)
    df = _canonicalise(raw, config.columns, PRIMARY_FIELDS, path)
    df = _parse_timestamps(df, config.timestamp_format, path)
    logger.info(f"Read {len(df)} primary rows from {path}")
    return df


def load_supplementary(config: PipelineConfig) -> pd.DataFrame:
    """Read the supplementary extract: visit id and raw priority.

    Raises:
        InputMalformedError: If the file is missing, undecodable or lacks
            the visit id or priority column.
    """
    path = config.supplementary_path
    raw = _read_table(path, config.supplementary_encoding, config.delimiter)
    df = _canonicalise(raw, config.columns, SUPPLEMENTARY_FIELDS, path)
    logger.info(f"Read {len(df)} supplementary rows from {path}")
    return df


def join_priority(primary: pd.DataFrame, supplementary: pd.DataFrame) -> LoadResult:
    """Attach priority to each primary row via the visit id.

    Supplementary rows are collapsed to the first occurrence of each visit
    id before joining, so the result has exactly as many rows as
    ``primary`` in the same order.

    Args:
        primary: Canonical primary table.
        supplementary: Canonical table with ``visit_id`` and ``priority``.

    Returns:
        LoadResult with the augmented table and data-quality counts.
    """
    notes = []

    keyed = supplementary.dropna(subset=["visit_id"])
    deduped = keyed.drop_duplicates(subset="visit_id", keep="first")
    n_duplicates = len(keyed) - len(deduped)
    if n_duplicates:
        note = (
            f"{n_duplicates} duplicate visit id(s) in supplementary extract; "
            "kept first occurrence"
        )
        logger.warning(note)
        notes.append(note)

    priority = _coerce_priority(deduped["priority"])
    n_invalid = int((priority.isna() & deduped["priority"].notna()).sum())
    if n_invalid:
        note = f"{n_invalid} supplementary priority value(s) outside 1-4 set to missing"
        logger.warning(note)
        notes.append(note)
    lookup = pd.DataFrame({"visit_id": deduped["visit_id"], "priority": priority})

    base = primary.drop(columns=["priority"], errors="ignore")
    try:
        joined = base.merge(lookup, on="visit_id", how="left", validate="many_to_one")
    except pd.errors.MergeError as e:
        raise PipelineError(f"Ambiguous join on visit_id: {e}", STAGE) from e

    if len(joined) != len(primary):
        raise PipelineError(
            f"Join changed row count from {len(primary)} to {len(joined)}", STAGE
        )

    n_unmatched = int((~joined["visit_id"].isin(lookup["visit_id"])).sum())
    if n_unmatched:
        note = f"{n_unmatched} primary row(s) have no supplementary match"
        logger.warning(note)
        notes.append(note)

    return LoadResult(
        visits=joined,
        n_primary=len(primary),
        n_supplementary_duplicates=n_duplicates,
        n_unmatched=n_unmatched,
        n_invalid_priority=n_invalid,
        notes=notes,
    )


def load_visits(config: PipelineConfig) -> LoadResult:
    """Read both extracts and join them.

    Args:
        config: Pipeline configuration with both input paths.

    Returns:
        LoadResult with one row per primary row.
    """
    primary = load_primary(config)
    supplementary = load_supplementary(config)
    result = join_priority(primary, supplementary)
    logger.info(
        f"Loaded {len(result.visits)} visits "
        f"({result.n_supplementary_duplicates} supplementary duplicates collapsed)"
    )
    return result


def summarise_load(result: LoadResult) -> Dict[str, int]:
    """Counts from a LoadResult as a flat dictionary."""
    return {
        "primary_rows": result.n_primary,
        "supplementary_duplicates": result.n_supplementary_duplicates,
        "unmatched": result.n_unmatched,
        "invalid_priority": result.n_invalid_priority,
    }
