"""
Error taxonomy for the verification harness.

Every error raised by the harness derives from AgentMatrixError so the
scenario runner can stop it at the scenario boundary. Nothing here is
retried: a flaky environment is a signal to fix the harness or the image.

Hierarchy:
- StagingError: the host filesystem could not be prepared
- ArtifactNotFoundError: a build output is missing (upstream packaging problem)
- EnvironmentStartupError: the container failed to start or never became ready
- ScrapeError: the metrics endpoint could not be read
- AssertionFailure: the scraped data did not satisfy an expected property
"""

from typing import Optional


class AgentMatrixError(Exception):
    """Base class for all harness errors."""

    pass


class StagingError(AgentMatrixError):
    """Exception raised when a staging volume cannot be created or populated."""

    pass


class ArtifactNotFoundError(AgentMatrixError):
    """Exception raised when a build artifact cannot be resolved to exactly one file."""

    pass


class EnvironmentStartupError(AgentMatrixError):
    """Exception raised when a runtime environment fails to reach readiness."""

    def __init__(self, message: str, logs: str = ""):
        super().__init__(message)
        self.logs = logs


class ScrapeError(AgentMatrixError):
    """Base class for metrics endpoint failures."""

    def __init__(self, message: str, url: str = ""):
        super().__init__(message)
        self.url = url


class ScrapeTimeoutError(ScrapeError):
    """Exception raised when a scrape exceeds its deadline."""

    pass


class ScrapeConnectionError(ScrapeError):
    """Exception raised when the metrics endpoint is unreachable."""

    pass


class ScrapeProtocolError(ScrapeError):
    """Exception raised when the metrics endpoint answers with a non-2xx status."""

    def __init__(self, message: str, url: str = "", status_code: Optional[int] = None):
        super().__init__(message, url)
        self.status_code = status_code


class AssertionFailure(AgentMatrixError, AssertionError):
    """Exception raised when scraped metrics do not satisfy an expected property."""

    pass


class MetricParseError(AssertionFailure):
    """Exception raised when a scraped line is not a valid metric sample."""

    def __init__(self, message: str, line: str = ""):
        super().__init__(message)
        self.line = line
