"""
Agent Matrix - Main Entry Point

Runs the compatibility matrix: every (runtime image, agent variant)
scenario is staged, launched in Docker, scraped and checked, and one
pass/fail result per scenario is printed at the end.

Usage:
    agent-matrix                                  # full built-in matrix
    agent-matrix --image openjdk:11 --workers 4   # subset, in parallel
    agent-matrix --matrix matrix.yaml --report results.jsonl
    agent-matrix --list

Exit status is 0 when every scenario passes, 1 when any fails and 2 when
the configuration or matrix file is invalid.
"""

import argparse
import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import Config
from .matrix import SCENARIOS, MatrixRunner, ScenarioRunner, load_matrix, select
from .matrix.scenarios import MatrixFileError
from .report import ResultRecorder, format_summary

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INVALID = 2


def setup_logging(level: str = "INFO", log_dir: str = "") -> logging.Logger:
    """
    Set up console and optional file logging.

    Console output goes to stderr so the summary on stdout stays clean.
    When ``log_dir`` is set, a rotating file receives DEBUG output,
    including container logs.

    Returns:
        Logger instance for the main module
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if log_dir else log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    root_logger.addHandler(console_handler)

    if log_dir:
        try:
            Path(log_dir).mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                os.path.join(log_dir, "agent-matrix.log"),
                maxBytes=10 * 1024 * 1024,
                backupCount=5,
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(
                logging.Formatter(
                    "%(asctime)s - %(name)s - %(levelname)s - %(threadName)s - "
                    "%(funcName)s:%(lineno)d - %(message)s"
                )
            )
            root_logger.addHandler(file_handler)
        except OSError as e:
            root_logger.warning(f"Could not set up file logging in {log_dir}: {e}")

    # urllib3 and docker are chatty at DEBUG
    for noisy in ("urllib3", "docker"):
        logging.getLogger(noisy).setLevel(logging.INFO)

    return logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agent-matrix",
        description="Verify the metrics agent across runtime images and agent variants",
    )
    parser.add_argument("--matrix", type=Path, help="YAML file replacing the built-in scenario table")
    parser.add_argument("--image", help="Only run scenarios whose image contains this text")
    parser.add_argument("--variant", help="Only run scenarios for this agent variant")
    parser.add_argument("--workers", type=int, help="Parallel scenario slots")
    parser.add_argument("--report", help="Append results to this JSON Lines file")
    parser.add_argument("--project-root", help="Root of the agent build tree")
    parser.add_argument("--list", action="store_true", help="List the selected scenarios and exit")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = Config.load_runtime_config()
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return EXIT_INVALID

    overrides = {}
    if args.workers is not None:
        overrides["max_workers"] = args.workers
    if args.report:
        overrides["report_path"] = args.report
    if args.project_root:
        overrides["project_root"] = args.project_root
    if overrides:
        config = config.replace(**overrides)

    logger = setup_logging(config.log_level, config.log_dir)

    try:
        scenarios = load_matrix(args.matrix) if args.matrix else list(SCENARIOS)
    except MatrixFileError as e:
        logger.error(str(e))
        return EXIT_INVALID
    scenarios = select(scenarios, image=args.image, variant=args.variant)

    if args.list:
        for scenario in scenarios:
            print(scenario.id)
        return EXIT_OK

    if not scenarios:
        logger.error("No scenarios selected")
        return EXIT_INVALID

    errors = config.validate()
    if errors:
        logger.error("Configuration validation failed:")
        for error in errors:
            logger.error(f"  - {error}")
        return EXIT_INVALID

    logger.info(f"Starting agent-matrix v{__version__}")
    for key, value in config.get_startup_summary().items():
        logger.info(f"  {key}: {value}")

    recorder = ResultRecorder(config.report_path) if config.report_path else None
    runner = MatrixRunner(
        ScenarioRunner(config),
        max_workers=config.max_workers,
        on_result=recorder.record if recorder else None,
    )
    results = runner.run(scenarios)

    print(format_summary(results))
    return EXIT_OK if all(r.passed for r in results) else EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
