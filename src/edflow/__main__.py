"""Command-line entry point: ``python -m edflow CONFIG``."""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from edflow.core.config import load_config
from edflow.core.errors import ConfigError, PipelineError
from edflow.pipeline import run_pipeline

logger = logging.getLogger("edflow")


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="edflow",
        description="Clean ED visit extracts and fit duration distributions.",
    )
    p.add_argument("config", type=Path, help="Pipeline config (.yaml, .yml or .json)")
    p.add_argument(
        "-o", "--output-dir", type=Path, default=None,
        help="Override the configured output directory",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config)
    except (FileNotFoundError, ConfigError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 2
    if args.output_dir is not None:
        config.output_dir = args.output_dir

    try:
        result = run_pipeline(config)
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2
    except PipelineError as e:
        logger.error(f"Pipeline aborted: {e}")
        return 1

    unresolved = result.summary.unresolved
    if unresolved:
        logger.warning(f"{len(unresolved)} cohort/variable pair(s) need a manual family choice")
    return 0


if __name__ == "__main__":
    sys.exit(main())
