"""
Agent Matrix - compatibility matrix for the JMX metrics agent

This package stages the agent, its configuration and an example workload
into a volume, runs the workload with the agent attached on a matrix of
Docker runtime images, scrapes the metrics endpoint and checks the output.
"""

__version__ = "1.0.0"
__description__ = "Compatibility matrix for the JMX metrics agent"

from .config import Config
from .environment import Environment, EnvironmentLauncher, UlimitOverride
from .errors import (
    AgentMatrixError,
    ArtifactNotFoundError,
    AssertionFailure,
    EnvironmentStartupError,
    MetricParseError,
    ScrapeConnectionError,
    ScrapeError,
    ScrapeProtocolError,
    ScrapeTimeoutError,
    StagingError,
)
from .matrix import SCENARIOS, MatrixRunner, Scenario, ScenarioResult, ScenarioRunner
from .metrics import MetricSample, ScrapeResult
from .scraper import Scraper
from .staging import ArtifactResolver, Volume

__all__ = [
    "AgentMatrixError",
    "ArtifactNotFoundError",
    "ArtifactResolver",
    "AssertionFailure",
    "Config",
    "Environment",
    "EnvironmentLauncher",
    "EnvironmentStartupError",
    "MatrixRunner",
    "MetricParseError",
    "MetricSample",
    "SCENARIOS",
    "Scenario",
    "ScenarioResult",
    "ScenarioRunner",
    "ScrapeConnectionError",
    "ScrapeError",
    "ScrapeProtocolError",
    "ScrapeResult",
    "ScrapeTimeoutError",
    "Scraper",
    "StagingError",
    "UlimitOverride",
    "Volume",
    "__version__",
]
