"""
Verification Matrix Runner

Drives each scenario through a fixed phase sequence and records one
result per scenario:

    PENDING -> STAGING -> LAUNCHING -> VERIFYING -> TEARDOWN -> DONE

Resources are acquired in a ScenarioSession backed by an ExitStack, so the
environment is stopped and the volume removed in reverse order on every
exit path: success, failed assertions, or an infrastructure error in any
phase. A failed scenario never stops the matrix; nothing is retried.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import ExitStack
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from ..config import Config
from ..environment import Environment, EnvironmentLauncher
from ..errors import AgentMatrixError
from ..scraper import Scraper
from ..staging import ArtifactResolver, Volume
from .assertions import Check, CheckResult, default_battery, run_check
from .scenarios import Scenario

logger = logging.getLogger(__name__)


class ScenarioPhase(Enum):
    PENDING = "pending"
    STAGING = "staging"
    LAUNCHING = "launching"
    VERIFYING = "verifying"
    TEARDOWN = "teardown"
    DONE = "done"


@dataclass
class ScenarioResult:
    """
    Outcome of one scenario.

    ``phase`` is the phase the scenario was in when its outcome was decided:
    DONE when every check ran, otherwise the phase that raised.
    """

    scenario: Scenario
    passed: bool
    phase: ScenarioPhase
    checks: List[CheckResult] = field(default_factory=list)
    error_type: Optional[str] = None
    error: Optional[str] = None
    elapsed_ms: int = 0

    @property
    def failed_checks(self) -> List[CheckResult]:
        return [c for c in self.checks if not c.passed]

    @property
    def message(self) -> str:
        if self.error:
            return f"{self.error_type}: {self.error}"
        if self.failed_checks:
            return "; ".join(f"{c.name}: {c.message}" for c in self.failed_checks)
        return "ok"

    def to_dict(self) -> dict:
        return {
            "scenario": self.scenario.id,
            "runtime_image": self.scenario.runtime_image,
            "agent_variant": self.scenario.agent_variant,
            "status": "passed" if self.passed else "failed",
            "phase": self.phase.value,
            "elapsed_ms": self.elapsed_ms,
            "error_type": self.error_type,
            "error": self.error,
            "checks": [c.to_dict() for c in self.checks],
        }


class ScenarioSession:
    """
    Scoped resources of one scenario: staged volume, ready environment, scraper.

    Entering stages the volume and launches the environment; if either
    step fails, whatever was already acquired is released before the error
    propagates. Leaving releases everything.
    """

    def __init__(
        self,
        scenario: Scenario,
        config: Config,
        launcher: EnvironmentLauncher,
        resolver: ArtifactResolver,
    ):
        self.scenario = scenario
        self.config = config
        self.launcher = launcher
        self.resolver = resolver
        self.phase = ScenarioPhase.PENDING
        self.volume: Optional[Volume] = None
        self.environment: Optional[Environment] = None
        self.scraper: Optional[Scraper] = None
        self._stack = ExitStack()

    def enter_phase(self, phase: ScenarioPhase) -> None:
        logger.debug(f"[{self.scenario.id}] {self.phase.value} -> {phase.value}")
        self.phase = phase

    def scrape(self) -> List[str]:
        """Scrape the environment once with the configured timeout."""
        if self.scraper is None:
            raise RuntimeError("Session is not open")
        return self.scraper.scrape(self.config.scrape_timeout_ms)

    def __enter__(self) -> "ScenarioSession":
        try:
            self.enter_phase(ScenarioPhase.STAGING)
            volume = self._stack.enter_context(
                Volume.create(self.config.staging_prefix, self.resolver)
            )
            volume.copy_agent_artifact(self.scenario.agent_variant)
            volume.copy_config(self.config.config_fixture)
            volume.copy_workload_artifact()
            self.volume = volume

            self.enter_phase(ScenarioPhase.LAUNCHING)
            environment = self._stack.enter_context(
                self.launcher.launch(
                    volume,
                    self.scenario.runtime_image,
                    self.config.command(),
                    self.config.agent_port,
                    self.config.readiness_pattern,
                    self.config.startup_timeout,
                    ulimits=self.config.ulimits(),
                )
            )
            self.environment = environment
            self.scraper = Scraper(environment.host, environment.mapped_port(self.config.agent_port))
        except BaseException:
            self._stack.close()
            raise
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._stack.close()
        self.scraper = None


class ScenarioRunner:
    """Run single scenarios against Docker with a fixed assertion battery."""

    def __init__(
        self,
        config: Config,
        launcher: Optional[EnvironmentLauncher] = None,
        battery: Optional[Sequence[Check]] = None,
    ):
        self.config = config
        self.launcher = launcher or EnvironmentLauncher()
        self.battery = list(battery) if battery is not None else default_battery()
        self.resolver = ArtifactResolver(Path(config.project_root), Path(config.fixtures_dir))

    def session(self, scenario: Scenario) -> ScenarioSession:
        return ScenarioSession(scenario, self.config, self.launcher, self.resolver)

    def run(self, scenario: Scenario) -> ScenarioResult:
        """Run one scenario to completion; never raises for harness errors."""
        logger.info(f"[{scenario.id}] starting")
        started = time.monotonic()
        session = self.session(scenario)
        checks: List[CheckResult] = []
        error: Optional[BaseException] = None

        try:
            with session:
                session.enter_phase(ScenarioPhase.VERIFYING)
                checks = [run_check(check, session.scrape, scenario) for check in self.battery]
                session.enter_phase(ScenarioPhase.TEARDOWN)
        except AgentMatrixError as e:
            error = e
        except Exception as e:
            logger.exception(f"[{scenario.id}] unexpected error during {session.phase.value}")
            error = e

        elapsed_ms = int((time.monotonic() - started) * 1000)
        if error is None:
            session.enter_phase(ScenarioPhase.DONE)
            result = ScenarioResult(
                scenario=scenario,
                passed=all(c.passed for c in checks),
                phase=ScenarioPhase.DONE,
                checks=checks,
                elapsed_ms=elapsed_ms,
            )
        else:
            result = ScenarioResult(
                scenario=scenario,
                passed=False,
                phase=session.phase,
                checks=checks,
                error_type=type(error).__name__,
                error=str(error),
                elapsed_ms=elapsed_ms,
            )

        status = "passed" if result.passed else "FAILED"
        logger.info(f"[{scenario.id}] {status} in {elapsed_ms}ms: {result.message}")
        return result


class MatrixRunner:
    """Run every scenario of a matrix, sequentially or in parallel worker slots."""

    def __init__(
        self,
        scenario_runner: ScenarioRunner,
        max_workers: int = 1,
        on_result: Optional[Callable[[ScenarioResult], None]] = None,
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.scenario_runner = scenario_runner
        self.max_workers = max_workers
        self.on_result = on_result

    def run(self, scenarios: Sequence[Scenario]) -> List[ScenarioResult]:
        """Run all scenarios; results come back in table order."""
        scenarios = list(scenarios)
        logger.info(f"Running {len(scenarios)} scenarios with {self.max_workers} worker(s)")

        if self.max_workers == 1:
            results = []
            for scenario in scenarios:
                result = self.scenario_runner.run(scenario)
                self._emit(result)
                results.append(result)
            return results

        ordered: List[Optional[ScenarioResult]] = [None] * len(scenarios)
        with ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="scenario"
        ) as pool:
            futures = {
                pool.submit(self.scenario_runner.run, scenario): index
                for index, scenario in enumerate(scenarios)
            }
            for future in as_completed(futures):
                result = future.result()
                self._emit(result)
                ordered[futures[future]] = result
        return [r for r in ordered if r is not None]

    def _emit(self, result: ScenarioResult) -> None:
        if self.on_result is not None:
            self.on_result(result)
