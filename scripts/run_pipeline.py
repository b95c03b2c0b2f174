"""CLI entry point to execute the communication graph analytics pipeline."""
from __future__ import annotations

# ruff: noqa: E402

import argparse
from pathlib import Path
import sys

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from commgraph.pipelines.analyze import run_pipeline
from commgraph.utils.logging import set_log_level


def main() -> None:
    parser = argparse.ArgumentParser(description="Build the annotated communication graph")
    parser.add_argument(
        "--config",
        default="config/pipeline.yaml",
        help="Path to the YAML configuration file",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Root log level (DEBUG shows per-pass community detection detail)",
    )
    args = parser.parse_args()
    set_log_level(args.log_level)
    run_pipeline(args.config)


if __name__ == "__main__":
    main()
