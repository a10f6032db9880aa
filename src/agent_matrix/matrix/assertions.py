"""
Assertion battery applied to every scenario.

Each check receives a ``scrape`` callable instead of a captured result and
scrapes fresh. Checks are independent: the endpoint may still be settling
right after readiness, and one early capture must not fail all checks at
once.

Checks raise AssertionFailure; run_check() turns the outcome of one check
into a CheckResult so the runner can record every check of a scenario.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from ..errors import AgentMatrixError, AssertionFailure
from ..metrics import parse_sample
from .scenarios import JAVAAGENT, JAVAAGENT_JAVA6, Scenario

logger = logging.getLogger(__name__)

ScrapeFn = Callable[[], List[str]]

POSITIVE_METRIC = "java_lang_Memory_NonHeapMemoryUsage_committed"

# Served by the example workload from its tabular MBean: two servers, two disks each.
TABULAR_LINES = (
    'io_prometheus_jmx_tabularData_Server_1_Disk_Usage_Table_size{source="/dev/sda1"} 7.516192768E9',
    'io_prometheus_jmx_tabularData_Server_1_Disk_Usage_Table_size{source="/dev/sda2"} 1.5032385536E10',
    'io_prometheus_jmx_tabularData_Server_2_Disk_Usage_Table_size{source="/dev/sda1"} 2.5769803776E10',
    'io_prometheus_jmx_tabularData_Server_2_Disk_Usage_Table_size{source="/dev/sda2"} 1.073741824E11',
)

BUILD_INFO_METRIC = "jmx_exporter_build_info"
UNKNOWN_SENTINEL = '"unknown"'


@dataclass(frozen=True)
class IdentifierRule:
    """Variants whose id ends with ``suffix`` report ``identifier`` in build info."""

    suffix: str
    identifier: str


VARIANT_IDENTIFIERS = (IdentifierRule("_java6", f'"{JAVAAGENT_JAVA6}"'),)
DEFAULT_IDENTIFIER = f'"{JAVAAGENT}"'


def expected_identifier(
    agent_variant: str,
    rules: Sequence[IdentifierRule] = VARIANT_IDENTIFIERS,
    default: str = DEFAULT_IDENTIFIER,
) -> str:
    """Return the build-info identifier for a variant; first matching rule wins."""
    for rule in rules:
        if agent_variant.endswith(rule.suffix):
            return rule.identifier
    return default


def _first_line(lines: List[str], prefix: str) -> Optional[str]:
    return next((line for line in lines if line.startswith(prefix)), None)


def check_positive_value(scrape: ScrapeFn, metric_name: str = POSITIVE_METRIC) -> None:
    """A line for ``metric_name`` exists and its value is strictly positive."""
    line = _first_line(scrape(), metric_name)
    if line is None:
        raise AssertionFailure(f"Metric {metric_name} not found.")
    value = parse_sample(line).value
    if not value > 0:
        raise AssertionFailure(f"{metric_name} should be > 0, got {value}")


def check_expected_lines(scrape: ScrapeFn, expected: Sequence[str] = TABULAR_LINES) -> None:
    """Every expected line prefix matches at least one scraped line, in any order."""
    lines = scrape()
    missing = [prefix for prefix in expected if _first_line(lines, prefix) is None]
    if missing:
        raise AssertionFailure("Metrics not found: " + "; ".join(missing))


def check_build_info_identifier(
    scrape: ScrapeFn,
    agent_variant: str,
    metric_name: str = BUILD_INFO_METRIC,
    rules: Sequence[IdentifierRule] = VARIANT_IDENTIFIERS,
) -> None:
    """The build-info line, if present, names the variant that was attached."""
    identifier = expected_identifier(agent_variant, rules)
    line = _first_line(scrape(), metric_name)
    if line is None:
        logger.debug(f"{metric_name} not exposed, identifier check skipped")
        return
    if identifier not in line:
        raise AssertionFailure(f"{metric_name} should contain {identifier}: {line}")


def check_build_info_not_unknown(
    scrape: ScrapeFn,
    metric_name: str = BUILD_INFO_METRIC,
    sentinel: str = UNKNOWN_SENTINEL,
) -> None:
    """The build-info line, if present, has no unresolved value."""
    line = _first_line(scrape(), metric_name)
    if line is not None and sentinel in line:
        raise AssertionFailure(f"{metric_name} should not contain {sentinel}: {line}")


@dataclass(frozen=True)
class Check:
    name: str
    run: Callable[[ScrapeFn, Scenario], None]


@dataclass
class CheckResult:
    """Outcome of one check against one scenario."""

    name: str
    passed: bool
    message: str
    error_type: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "passed": self.passed,
            "message": self.message,
            "error_type": self.error_type,
        }


def default_battery() -> List[Check]:
    """The four checks every scenario runs."""
    return [
        Check("jvm_metric", lambda scrape, scenario: check_positive_value(scrape)),
        Check("tabular_metric", lambda scrape, scenario: check_expected_lines(scrape)),
        Check(
            "build_info_name",
            lambda scrape, scenario: check_build_info_identifier(scrape, scenario.agent_variant),
        ),
        Check("build_info_version", lambda scrape, scenario: check_build_info_not_unknown(scrape)),
    ]


def run_check(check: Check, scrape: ScrapeFn, scenario: Scenario) -> CheckResult:
    """Run one check and record its outcome; harness errors fail the check."""
    try:
        check.run(scrape, scenario)
    except AgentMatrixError as e:
        logger.info(f"[{scenario.id}] {check.name} failed: {e}")
        return CheckResult(check.name, False, str(e), type(e).__name__)
    logger.debug(f"[{scenario.id}] {check.name} passed")
    return CheckResult(check.name, True, "ok")
