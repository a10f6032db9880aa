"""
Runtime Environment Launcher

This module starts the workload with the agent attached inside a Docker
container and hands back an Environment only once it is ready to be
scraped. Containers are driven through testcontainers, which owns image
pulls, port mapping and the log stream.

Lifecycle:
- STARTING: container created, waiting for the readiness line in its logs
- READY: readiness line observed, the exporter port can be scraped
- FAILED: start failed or the readiness wait timed out, container removed
- STOPPED: container removed after use

An Environment is never returned to a caller in any state but READY.
"""

import logging
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional, Sequence

from docker.errors import DockerException, NotFound
from docker.types import Ulimit
from requests.exceptions import RequestException
from testcontainers.core.container import DockerContainer
from testcontainers.core.wait_strategies import LogMessageWaitStrategy

from .errors import EnvironmentStartupError

if TYPE_CHECKING:
    from .staging.volume import Volume

logger = logging.getLogger(__name__)
container_logger = logging.getLogger(__name__ + ".container")

CONTAINER_MOUNT_POINT = "/app"
LOG_TAIL_LINES = 40


class EnvironmentState(Enum):
    STARTING = "starting"
    READY = "ready"
    FAILED = "failed"
    STOPPED = "stopped"


@dataclass(frozen=True)
class UlimitOverride:
    """A resource limit applied when the container is created, e.g. nofile."""

    name: str
    soft: int
    hard: int

    def to_docker(self) -> Ulimit:
        return Ulimit(name=self.name, soft=self.soft, hard=self.hard)


class Environment:
    """A running workload container bound to one staged volume."""

    def __init__(self, container: DockerContainer, runtime_image: str, exposed_port: int):
        self.container = container
        self.runtime_image = runtime_image
        self.exposed_port = exposed_port
        self.state = EnvironmentState.STARTING
        self._removed = False

    @property
    def host(self) -> str:
        return self.container.get_container_host_ip()

    def mapped_port(self, internal_port: Optional[int] = None) -> int:
        """Return the host port Docker assigned to an internal container port."""
        port = self.exposed_port if internal_port is None else internal_port
        return int(self.container.get_exposed_port(port))

    def logs(self) -> str:
        """Return the combined stdout and stderr of the container so far."""
        stdout, stderr = self.container.get_logs()
        return _decode(stdout) + _decode(stderr)

    def stop(self) -> None:
        """Remove the container. Calling stop() again is a no-op."""
        if self._removed:
            return
        self._removed = True

        try:
            if self.container.get_wrapped_container() is not None:
                self._forward_logs()
        except (DockerException, RequestException) as e:
            logger.debug(f"Could not read logs of {self.runtime_image} container: {e}")

        try:
            self.container.stop()
        except NotFound:
            logger.debug(f"Container for {self.runtime_image} was already removed")
        except (DockerException, RequestException) as e:
            logger.warning(f"Failed to stop container for {self.runtime_image}: {e}")
        finally:
            if self.state is not EnvironmentState.FAILED:
                self.state = EnvironmentState.STOPPED

    def _forward_logs(self) -> None:
        if not container_logger.isEnabledFor(logging.DEBUG):
            return
        for line in self.logs().splitlines():
            container_logger.debug(f"[{self.runtime_image}] {line}")

    def __enter__(self) -> "Environment":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def __repr__(self) -> str:
        return f"Environment(image={self.runtime_image}, state={self.state.value})"


class EnvironmentLauncher:
    """Start workload containers and wait for them to become ready."""

    def __init__(self, mount_point: str = CONTAINER_MOUNT_POINT, poll_interval: float = 0.5):
        self.mount_point = mount_point
        self.poll_interval = poll_interval

    def launch(
        self,
        volume: "Volume",
        runtime_image: str,
        command: str,
        exposed_port: int,
        readiness_pattern: str,
        startup_timeout: float,
        ulimits: Optional[Sequence[UlimitOverride]] = None,
    ) -> Environment:
        """
        Start the workload and block until it is ready.

        The volume is bound read-only at the mount point, which is also the
        working directory, so the command refers to staged files by name.

        Args:
            volume: Fully staged volume
            runtime_image: Docker image to run
            command: Complete command line with the agent attached
            exposed_port: Container port the exporter listens on
            readiness_pattern: Regex searched for in the container logs
            startup_timeout: Seconds to wait for the readiness line
            ulimits: Resource limit overrides applied at creation

        Returns:
            Environment in the READY state

        Raises:
            StagingError: If the volume is incomplete
            EnvironmentStartupError: If the container fails to start or
                the readiness line does not appear in time
        """
        volume.require_complete()

        readiness = LogMessageWaitStrategy(re.compile(readiness_pattern))
        readiness.with_startup_timeout(startup_timeout)
        readiness.with_poll_interval(self.poll_interval)

        logger.info(f"Starting {runtime_image}: {command}")
        started = time.monotonic()
        environment: Optional[Environment] = None

        try:
            container = DockerContainer(runtime_image)
            container.with_volume_mapping(str(volume.host_path), self.mount_point, "ro")
            container.with_exposed_ports(exposed_port)
            container.with_command(command)
            create_kwargs = {"working_dir": self.mount_point}
            if ulimits:
                create_kwargs["ulimits"] = [u.to_docker() for u in ulimits]
            container.with_kwargs(**create_kwargs)

            environment = Environment(container, runtime_image, exposed_port)
            container.start()
        except Exception as e:
            if environment is not None:
                self._fail(environment)
            raise EnvironmentStartupError(
                f"Failed to start container from {runtime_image}: {e}"
            ) from e
        except BaseException:
            if environment is not None:
                self._fail(environment)
            raise

        try:
            readiness.wait_until_ready(container)
        except Exception as e:
            logs = self._safe_logs(environment)
            self._fail(environment)
            raise EnvironmentStartupError(
                f"{runtime_image} did not log {readiness_pattern!r} within "
                f"{startup_timeout}s: {e}\n{_tail(logs)}",
                logs=logs,
            ) from e
        except BaseException:
            self._fail(environment)
            raise

        environment.state = EnvironmentState.READY
        elapsed = time.monotonic() - started
        logger.info(f"{runtime_image} ready after {elapsed:.1f}s")
        return environment

    @staticmethod
    def _safe_logs(environment: Environment) -> str:
        try:
            return environment.logs()
        except (DockerException, RequestException) as e:
            return f"<logs unavailable: {e}>"

    @staticmethod
    def _fail(environment: Environment) -> None:
        environment.state = EnvironmentState.FAILED
        environment.stop()


def _decode(data: Optional[bytes]) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


def _tail(logs: str, lines: int = LOG_TAIL_LINES) -> str:
    return "\n".join(logs.splitlines()[-lines:])


__all__ = [
    "CONTAINER_MOUNT_POINT",
    "Environment",
    "EnvironmentLauncher",
    "EnvironmentState",
    "UlimitOverride",
]
