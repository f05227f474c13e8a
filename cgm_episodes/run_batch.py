"""Command-line utility for detecting glucose episodes in a CSV of readings.

The input CSV holds one reading per row with ``id``, ``time`` and ``value``
columns (``gl`` or ``glucose_mg_dL`` are accepted for the value). Optional
columns are ``tz`` (display timezone) and ``reading_minutes`` (sampling
interval)::

    id,time,value
    A,2024-01-01T00:00:00Z,80
    A,2024-01-01T00:05:00Z,75
    ...

Choose how level-1-only bands are derived with ``--exclusive-mode`` or in the
``--config`` file. The summary table is written as CSV to stdout unless
``--summary-out`` is given; ``--episodes-out`` writes the detailed episodes.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import pandas as pd

from cgm_episodes.config import RunConfig, load_run_config
from cgm_episodes.exceptions import ConfigurationError
from cgm_episodes.models import ExclusiveMode


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Detect hypo- and hyperglycemic episodes in CGM readings")
    parser.add_argument("input", type=Path, help="CSV file of readings (id, time, value)")
    parser.add_argument("--config", type=Path, help="JSON configuration file")
    parser.add_argument(
        "--exclusive-mode",
        choices=[mode.value for mode in ExclusiveMode],
        help="How level-1-only bands are derived (overrides the config file)",
    )
    parser.add_argument("--reading-minutes", type=float, help="Sampling interval in minutes for every subject")
    parser.add_argument("--workers", type=int, help="Number of concurrent worker threads")
    parser.add_argument("--episodes-out", type=Path, help="Optional CSV path for the detailed episodes table")
    parser.add_argument("--summary-out", type=Path, help="Optional CSV path for the summary table")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: INFO)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(message)s")

    if not args.input.is_file():
        raise SystemExit(f"Input file not found: {args.input}")

    try:
        run_config = load_run_config(args.config) if args.config else RunConfig()
        mode = ExclusiveMode(args.exclusive_mode) if args.exclusive_mode else None
        engine = run_config.build_engine(exclusive_mode=mode, workers=args.workers)
        readings = pd.read_csv(args.input)
        logging.info(f"Loaded {len(readings)} reading(s) from {args.input}")
        report = engine.run(readings, args.reading_minutes)
    except ConfigurationError as exc:
        raise SystemExit(f"Configuration error: {exc}") from exc

    if args.episodes_out:
        report.episodes.to_csv(args.episodes_out, index=False)
        logging.info(f"Wrote {len(report.episodes)} episode(s) to {args.episodes_out}")
    if args.summary_out:
        report.summary.to_csv(args.summary_out, index=False)
        logging.info(f"Wrote {len(report.summary)} summary row(s) to {args.summary_out}")
    else:
        report.summary.to_csv(sys.stdout, index=False)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
