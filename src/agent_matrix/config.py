"""Configuration management for the agent verification matrix."""

import os
import re
from pathlib import Path
from typing import Any, Dict, List

from .environment import UlimitOverride

PACKAGED_FIXTURES_DIR = Path(__file__).parent / "fixtures"

# Fixed names inside the staged volume; the command line refers to them.
AGENT_FILENAME = "agent.jar"
CONFIG_FILENAME = "config.yaml"
WORKLOAD_FILENAME = "jmx_example_application.jar"


class Config:
    """Configuration manager for the harness with environment variable overrides."""

    def __init__(self, project_root: str | None = None):
        """Initialize configuration.

        Args:
            project_root: Optional root of the agent build tree. Overrides
                AGENT_MATRIX_PROJECT_ROOT when given.
        """
        root = project_root or os.environ.get("AGENT_MATRIX_PROJECT_ROOT", ".")
        self.project_root = Path(root).resolve()

        self._defaults = {
            # Artifact and fixture locations
            "project_root": str(self.project_root),
            "fixtures_dir": os.environ.get(
                "AGENT_MATRIX_FIXTURES_DIR", str(PACKAGED_FIXTURES_DIR)
            ),
            "config_fixture": os.environ.get("AGENT_MATRIX_CONFIG_FIXTURE", "config.yml"),
            "staging_prefix": os.environ.get(
                "AGENT_MATRIX_STAGING_PREFIX", "agent-integration-test-"
            ),

            # Environment launch
            "agent_port": _int_env("AGENT_MATRIX_AGENT_PORT", 9000),
            "readiness_pattern": os.environ.get(
                "AGENT_MATRIX_READINESS_PATTERN", ".*registered.*"
            ),
            "startup_timeout": _int_env("AGENT_MATRIX_STARTUP_TIMEOUT", 120),
            "nofile_limit": _int_env("AGENT_MATRIX_NOFILE_LIMIT", 65536),

            # Scraping
            "scrape_timeout_ms": _int_env("AGENT_MATRIX_SCRAPE_TIMEOUT_MS", 10000),

            # Runner
            "max_workers": _int_env("AGENT_MATRIX_MAX_WORKERS", 1),
            "report_path": os.environ.get("AGENT_MATRIX_REPORT_PATH", ""),

            # Logging
            "log_level": os.environ.get("LOG_LEVEL", "INFO"),
            "log_dir": os.environ.get("LOG_DIR", ""),
        }

    def __getattr__(self, name: str) -> Any:
        """Get configuration value."""
        if name in self._defaults:
            return self._defaults[name]
        raise AttributeError(f"'{self.__class__.__name__}' object has no attribute '{name}'")

    def __setattr__(self, name: str, value: Any) -> None:
        """Prevent modification of configuration after initialization."""
        try:
            defaults = object.__getattribute__(self, "_defaults")
            if name in defaults:
                raise AttributeError(f"Configuration is immutable: cannot set '{name}'")
        except AttributeError as e:
            if "immutable" in str(e):
                raise
        super().__setattr__(name, value)

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value with optional default."""
        return self._defaults.get(key, default)

    def replace(self, **overrides: Any) -> "Config":
        """Return a copy of this configuration with some values overridden.

        Used by the command line to apply flags on top of the environment.
        """
        unknown = set(overrides) - set(self._defaults)
        if unknown:
            raise KeyError(f"Unknown configuration keys: {sorted(unknown)}")
        clone = Config(project_root=str(overrides.get("project_root", self.project_root)))
        merged = self._defaults.copy()
        merged.update(overrides)
        merged["project_root"] = str(clone.project_root)
        object.__setattr__(clone, "_defaults", merged)
        return clone

    def command(self) -> str:
        """Build the workload command line with the agent attached."""
        return (
            f"java -javaagent:{AGENT_FILENAME}={self.agent_port}:{CONFIG_FILENAME}"
            f" -jar {WORKLOAD_FILENAME}"
        )

    def ulimits(self) -> List[UlimitOverride]:
        """Return the ulimit overrides applied when containers are created."""
        if self.nofile_limit <= 0:
            return []
        return [UlimitOverride("nofile", self.nofile_limit, self.nofile_limit)]

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors.

        Returns:
            List of validation error messages. Empty list means valid.
        """
        errors = []

        if not self.project_root.is_dir():
            errors.append(f"Project root not found: {self.project_root}")

        fixtures_dir = Path(self.fixtures_dir)
        if not fixtures_dir.is_dir():
            errors.append(f"Fixtures directory not found: {fixtures_dir}")
        elif not (fixtures_dir / self.config_fixture).is_file():
            errors.append(
                f"Config fixture not found: {fixtures_dir / self.config_fixture}"
            )

        if not 0 < self.agent_port < 65536:
            errors.append(f"Agent port out of range: {self.agent_port}")

        if self.startup_timeout <= 0:
            errors.append("AGENT_MATRIX_STARTUP_TIMEOUT must be positive")

        if self.scrape_timeout_ms <= 0:
            errors.append("AGENT_MATRIX_SCRAPE_TIMEOUT_MS must be positive")

        if self.max_workers < 1:
            errors.append("AGENT_MATRIX_MAX_WORKERS must be at least 1")

        try:
            re.compile(self.readiness_pattern)
        except re.error as e:
            errors.append(f"Invalid readiness pattern {self.readiness_pattern!r}: {e}")

        if self.report_path:
            report_dir = Path(self.report_path).parent
            if report_dir.exists() and not os.access(report_dir, os.W_OK):
                errors.append(f"Report directory not writable: {report_dir}")

        return errors

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary."""
        return self._defaults.copy()

    def __str__(self) -> str:
        return f"Config(project_root={self.project_root})"

    def __repr__(self) -> str:
        return f"Config(project_root={self.project_root}, fixtures_dir={self.fixtures_dir})"

    def get_startup_summary(self) -> Dict[str, Any]:
        """Get startup configuration summary for logging."""
        return {
            "project_root": str(self.project_root),
            "config_fixture": self.config_fixture,
            "agent_port": self.agent_port,
            "readiness_pattern": self.readiness_pattern,
            "startup_timeout": self.startup_timeout,
            "scrape_timeout_ms": self.scrape_timeout_ms,
            "nofile_limit": self.nofile_limit or "unchanged",
            "max_workers": self.max_workers,
            "report_path": self.report_path or "disabled",
            "log_level": self.log_level,
        }

    @classmethod
    def load_runtime_config(cls) -> "Config":
        """Load configuration from the process environment."""
        return cls()


def _int_env(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Invalid integer value for {name}: {value}") from None
