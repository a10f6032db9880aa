"""
Result Reporting for Matrix Runs

This module records scenario outcomes as JSON Lines so a run can be
inspected or compared after the fact, and renders the pass/fail summary
printed at the end of a run.

Record Format:
- ts: ISO-8601 UTC timestamp of the record
- scenario: "<runtime image>-<agent variant>"
- runtime_image / agent_variant: the scenario pair
- status: passed|failed
- phase: phase the outcome was decided in
- elapsed_ms: scenario wall time in milliseconds
- error_type / error: triggering harness error, if any
- checks: per-check name, passed flag and message
"""

import json
import logging
import os
import threading
from datetime import UTC, datetime
from typing import Iterable, List

from .matrix.runner import ScenarioResult

logger = logging.getLogger(__name__)


class ResultRecorder:
    """Append scenario results to a JSON Lines file. Safe to share across worker threads."""

    def __init__(self, report_path: str):
        self.report_path = report_path
        self._lock = threading.Lock()

        report_dir = os.path.dirname(self.report_path)
        if report_dir:
            os.makedirs(report_dir, exist_ok=True)

        logger.info(f"Recording scenario results to {self.report_path}")

    def record(self, result: ScenarioResult) -> None:
        """
        Write one scenario result.

        Args:
            result: Finished scenario result
        """
        record = {"ts": datetime.now(UTC).isoformat()}
        record.update(result.to_dict())
        json_line = json.dumps(record, separators=(",", ":"))

        with self._lock:
            try:
                with open(self.report_path, "a", encoding="utf-8") as f:
                    f.write(json_line + "\n")
                    f.flush()
            except OSError as e:
                logger.error(f"Failed to write result to {self.report_path}: {e}")
                raise

        logger.debug(f"Result recorded: {result.scenario.id} -> {record['status']}")


def read_report(report_path: str) -> List[dict]:
    """Load every record of a JSON Lines report."""
    with open(report_path, "r", encoding="utf-8") as f:
        return [json.loads(line) for line in f if line.strip()]


def format_summary(results: Iterable[ScenarioResult]) -> str:
    """Render one line per scenario plus totals."""
    results = list(results)
    lines = []
    for result in results:
        symbol = "+" if result.passed else "-"
        lines.append(f"  [{symbol}] {result.scenario.id} ({result.elapsed_ms}ms): {result.message}")

    passed = sum(1 for r in results if r.passed)
    failed = len(results) - passed
    lines.append("")
    lines.append(f"Total: {passed} passed, {failed} failed of {len(results)}")
    return "\n".join(lines)
