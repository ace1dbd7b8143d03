"""Results layer: run summary, output files and figures."""

from edflow.results.summary import RunSummary

__all__ = ["RunSummary"]
