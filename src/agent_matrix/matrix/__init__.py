"""
Matrix Module

The scenario table, the assertion battery and the runner that drives each
scenario through staging, launch, verification and teardown.
"""

from .assertions import Check, CheckResult, default_battery, expected_identifier
from .runner import (
    MatrixRunner,
    ScenarioPhase,
    ScenarioResult,
    ScenarioRunner,
    ScenarioSession,
)
from .scenarios import SCENARIOS, Scenario, load_matrix, select

__all__ = [
    "Check",
    "CheckResult",
    "default_battery",
    "expected_identifier",
    "MatrixRunner",
    "ScenarioPhase",
    "ScenarioResult",
    "ScenarioRunner",
    "ScenarioSession",
    "SCENARIOS",
    "Scenario",
    "load_matrix",
    "select",
]
