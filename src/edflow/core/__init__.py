"""Core foundation layer: entities, configuration, errors."""

from edflow.core.config import (
    ColumnMap,
    FitSettings,
    PipelineConfig,
    Thresholds,
    load_config,
    save_config,
)
from edflow.core.entities import DurationType, Family, Priority, Timestamp
from edflow.core.errors import (
    ConfigError,
    EdflowError,
    FitError,
    InputMalformedError,
    PipelineError,
)

__all__ = [
    "ColumnMap",
    "FitSettings",
    "PipelineConfig",
    "Thresholds",
    "load_config",
    "save_config",
    "DurationType",
    "Family",
    "Priority",
    "Timestamp",
    "ConfigError",
    "EdflowError",
    "FitError",
    "InputMalformedError",
    "PipelineError",
]
