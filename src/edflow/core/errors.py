"""Exception hierarchy.

Fatal errors (``PipelineError`` and subclasses) abort a run and name the
stage and file involved. ``FitError`` is raised for a single
cohort/family fit and is converted into a recorded failure by the batch
fitting functions.
"""

from pathlib import Path
from typing import Optional, Union


class EdflowError(Exception):
    """Base class for all edflow errors."""


class ConfigError(EdflowError):
    """Configuration is missing or invalid."""


class PipelineError(EdflowError):
    """Fatal error in a pipeline stage.

    Attributes:
        stage: Pipeline stage name ("loader", "cleaner", ...).
        path: File being processed when the error occurred, if any.
    """

    def __init__(
        self,
        message: str,
        stage: str,
        path: Optional[Union[str, Path]] = None,
    ):
        self.stage = stage
        self.path = Path(path) if path is not None else None
        self.detail = message
        location = f" ({self.path})" if self.path is not None else ""
        super().__init__(f"[{stage}]{location} {message}")


class InputMalformedError(PipelineError):
    """Unreadable file, missing column, bad encoding or unparseable timestamp."""


class FitError(EdflowError):
    """A distribution fit failed to converge or produced invalid estimates."""
