"""Pipeline configuration.

All file paths, encodings, column names and cleaning thresholds live here
rather than as literals in the stage code. Configuration can be loaded
from YAML or JSON files.

Example usage:
    from edflow.core.config import load_config

    config = load_config(Path("config/default.yaml"))
    result = run_pipeline(config)
"""

import json
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from edflow.core.entities import Criterion, DurationType, Family
from edflow.core.errors import ConfigError


def _require_number(value: Any, name: str) -> None:
    """Raise ConfigError unless value is an int or float (bools rejected)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{name} must be a number, got {value!r}")


@dataclass
class ColumnMap:
    """Source column names for each visit field.

    The same visit id column name is expected in both extracts.
    """

    visit_id: str = "visit_id"
    service: str = "service"
    sub_service: str = "sub_service"
    priority: str = "priority"
    counter_exit: str = "counter_exit"
    triage_entry: str = "triage_entry"
    triage_exit: str = "triage_exit"
    service_entry: str = "service_entry"
    service_exit: str = "service_exit"


@dataclass
class Thresholds:
    """Validity bounds for derived durations (seconds).

    A row is kept only if every duration is strictly above its floor and
    the two queue durations do not exceed their caps.

    Attributes:
        min_duration: Data-quality floor applied to every duration.
        floor_overrides: Per-duration floors replacing min_duration,
            keyed by duration name (e.g. {"triage_queue": 0}).
        max_triage_queue: Cap on triage_queue.
        max_service_queue: Cap on service_queue.
    """

    min_duration: float = 10.0
    floor_overrides: Dict[str, float] = field(default_factory=dict)
    max_triage_queue: float = 14400.0   # 4 hours
    max_service_queue: float = 43200.0  # 12 hours

    def floor(self, duration: DurationType) -> float:
        """Floor for a single duration variable."""
        return float(self.floor_overrides.get(duration.value, self.min_duration))

    def caps(self) -> Dict[DurationType, float]:
        """Upper bounds by duration variable."""
        return {
            DurationType.TRIAGE_QUEUE: float(self.max_triage_queue),
            DurationType.SERVICE_QUEUE: float(self.max_service_queue),
        }


@dataclass
class FitSettings:
    """Distribution fitting and selection settings.

    Attributes:
        families: Candidate families fitted for every sample.
        criterion: Information criterion used for selection ("aic" | "bic").
        tie_tolerance: Fits whose criterion is within this distance of the
            best are treated as comparable, leaving the choice ambiguous.
        narrow_candidates: Fit only the Cullen-and-Frey shortlist.
        shortlist_tolerance: Distance in the (skewness^2, kurtosis) plane
            within which a family stays on the shortlist.
        min_sample_size: Samples smaller than this are not fitted.
        overrides: Manual family choice per cohort and variable,
            {cohort: {variable: family}}.
    """

    families: List[str] = field(default_factory=lambda: [f.value for f in Family])
    criterion: str = "aic"
    tie_tolerance: float = 2.0
    narrow_candidates: bool = False
    shortlist_tolerance: float = 2.0
    min_sample_size: int = 10
    overrides: Dict[str, Dict[str, str]] = field(default_factory=dict)

    def family_list(self) -> List[Family]:
        return [Family.parse(f) for f in self.families]


@dataclass
class PipelineConfig:
    """Complete configuration for a pipeline run.

    Attributes:
        primary_path: Extract with visit categories and timestamps.
        supplementary_path: Extract with the priority level per visit.
        output_dir: Directory receiving cleaned data and fit outputs.
        primary_encoding: Text encoding of the primary extract.
        supplementary_encoding: Text encoding of the supplementary extract.
        delimiter: Field delimiter shared by both extracts.
        timestamp_format: strptime format; inferred when None.
        columns: Source column names.
        thresholds: Cleaning thresholds.
        fitting: Fitting and selection settings.
        cohorts: Cohort definitions; the built-in cohorts when None.
    """

    primary_path: Optional[Path] = None
    supplementary_path: Optional[Path] = None
    output_dir: Path = Path("output")
    primary_encoding: str = "utf-8"
    supplementary_encoding: str = "latin-1"
    delimiter: str = ","
    timestamp_format: Optional[str] = None
    columns: ColumnMap = field(default_factory=ColumnMap)
    thresholds: Thresholds = field(default_factory=Thresholds)
    fitting: FitSettings = field(default_factory=FitSettings)
    cohorts: Optional[List[Dict[str, Any]]] = None

    def __post_init__(self) -> None:
        """Coerce paths and validate values."""
        if self.primary_path is not None:
            self.primary_path = Path(self.primary_path)
        if self.supplementary_path is not None:
            self.supplementary_path = Path(self.supplementary_path)
        self.output_dir = Path(self.output_dir)
        self._validate()

    def _validate(self) -> None:
        t = self.thresholds
        for name in ("min_duration", "max_triage_queue", "max_service_queue"):
            _require_number(getattr(t, name), f"thresholds.{name}")
        if t.min_duration < 0:
            raise ConfigError("thresholds.min_duration must be non-negative")
        if not isinstance(t.floor_overrides, dict):
            raise ConfigError("thresholds.floor_overrides must be a mapping")
        for name, value in t.floor_overrides.items():
            try:
                DurationType(name)
            except ValueError:
                raise ConfigError(f"Unknown duration in floor_overrides: '{name}'")
            _require_number(value, f"thresholds.floor_overrides.{name}")
            if value < 0:
                raise ConfigError(f"Floor for {name} must be non-negative")
        if t.max_triage_queue <= 0 or t.max_service_queue <= 0:
            raise ConfigError("Queue caps must be positive")

        f = self.fitting
        for name in ("tie_tolerance", "shortlist_tolerance", "min_sample_size"):
            _require_number(getattr(f, name), f"fitting.{name}")
        if not isinstance(f.families, list) or not f.families:
            raise ConfigError("fitting.families must list at least one family")
        if not isinstance(f.overrides, dict) or not all(
            isinstance(v, dict) for v in f.overrides.values()
        ):
            raise ConfigError("fitting.overrides must map cohort -> variable -> family")
        try:
            f.family_list()
            for variables in f.overrides.values():
                for family in variables.values():
                    Family.parse(family)
        except ValueError as e:
            raise ConfigError(str(e)) from e
        try:
            Criterion(str(f.criterion).lower())
        except ValueError:
            raise ConfigError(f"Unknown criterion '{f.criterion}'. Use 'aic' or 'bic'")
        if f.tie_tolerance < 0:
            raise ConfigError("fitting.tie_tolerance must be non-negative")
        if f.min_sample_size < 2:
            raise ConfigError("fitting.min_sample_size must be at least 2")

        if self.cohorts is not None and not isinstance(self.cohorts, list):
            raise ConfigError("cohorts must be a list of cohort definitions")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PipelineConfig":
        """Build a config from plain nested dictionaries."""
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        try:
            if "columns" in data:
                data["columns"] = ColumnMap(**(data["columns"] or {}))
            if "thresholds" in data:
                data["thresholds"] = Thresholds(**(data["thresholds"] or {}))
            if "fitting" in data:
                data["fitting"] = FitSettings(**(data["fitting"] or {}))
        except TypeError as e:
            raise ConfigError(f"Invalid config section: {e}") from e
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        """Plain dictionary suitable for YAML or JSON output."""
        data = asdict(self)
        for key in ("primary_path", "supplementary_path", "output_dir"):
            if data[key] is not None:
                data[key] = str(data[key])
        return data


def load_config(config_path: Path) -> PipelineConfig:
    """Load pipeline configuration from YAML or JSON file.

    Relative input and output paths are resolved against the directory
    containing the config file.

    Args:
        config_path: Path to configuration file (.yaml, .yml, or .json)

    Returns:
        PipelineConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigError: If the format is unsupported or values are invalid
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        try:
            if config_path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            elif config_path.suffix == ".json":
                data = json.load(f)
            else:
                raise ConfigError(
                    f"Unsupported config format: {config_path.suffix}. "
                    "Use .yaml, .yml, or .json"
                )
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigError(f"Cannot parse config file {config_path}: {e}") from e

    if data is not None and not isinstance(data, dict):
        raise ConfigError(f"Config root must be a mapping: {config_path}")
    data = dict(data or {})

    base = config_path.parent
    for key in ("primary_path", "supplementary_path", "output_dir"):
        if data.get(key) is not None and not Path(data[key]).is_absolute():
            data[key] = base / data[key]

    return PipelineConfig.from_dict(data)


def save_config(config: PipelineConfig, config_path: Path) -> None:
    """Save pipeline configuration to YAML or JSON file.

    Args:
        config: Configuration to save
        config_path: Path to save to (.yaml, .yml, or .json)

    Raises:
        ConfigError: If file format is not supported
    """
    config_path = Path(config_path)
    data = config.to_dict()

    with open(config_path, "w") as f:
        if config_path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
        elif config_path.suffix == ".json":
            json.dump(data, f, indent=2)
        else:
            raise ConfigError(
                f"Unsupported config format: {config_path.suffix}. "
                "Use .yaml, .yml, or .json"
            )
