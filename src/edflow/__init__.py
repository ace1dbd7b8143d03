"""
edflow - Emergency department input analysis.

Cleans ED visit-time extracts, derives queue and service durations, and
fits candidate distributions per cohort to parameterise a discrete-event
simulation model.
"""

__version__ = "0.1.0"

from edflow.core.config import PipelineConfig, load_config
from edflow.pipeline import run_pipeline

__all__ = ["PipelineConfig", "load_config", "run_pipeline", "__version__"]
