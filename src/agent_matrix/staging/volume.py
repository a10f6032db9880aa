"""
Staging volume for one scenario.

A Volume is a fresh temporary directory that is bind-mounted read-only into
the runtime container. It holds exactly three files under fixed names: the
agent jar, the agent configuration and the example workload jar. The
directory is removed when the volume is closed, whatever happened before.
"""

import logging
import os
import shutil
import stat
import tempfile
from enum import Enum
from pathlib import Path
from typing import Optional, Set

from ..config import AGENT_FILENAME, CONFIG_FILENAME, WORKLOAD_FILENAME
from ..errors import StagingError
from .artifacts import ArtifactResolver, ResolvedArtifact

logger = logging.getLogger(__name__)

_READABLE_DIR = stat.S_IRWXU | stat.S_IRGRP | stat.S_IXGRP | stat.S_IROTH | stat.S_IXOTH
_READABLE_FILE = stat.S_IRUSR | stat.S_IWUSR | stat.S_IRGRP | stat.S_IROTH


class StagedRole(Enum):
    """Files a volume must hold before an environment can use it."""

    AGENT_ARTIFACT = AGENT_FILENAME
    CONFIG = CONFIG_FILENAME
    WORKLOAD_ARTIFACT = WORKLOAD_FILENAME


class Volume:
    """
    Exclusive staging directory for one scenario.

    Use as a context manager, or call close() explicitly. close() is
    idempotent and tolerates a partially staged or already deleted directory.
    """

    def __init__(self, host_path: Path, resolver: ArtifactResolver):
        self.host_path = Path(host_path)
        self.resolver = resolver
        self.agent_artifact: Optional[ResolvedArtifact] = None
        self._staged: Set[StagedRole] = set()
        self._closed = False

    @classmethod
    def create(
        cls, prefix: str, resolver: ArtifactResolver, base_dir: Optional[str] = None
    ) -> "Volume":
        """
        Allocate a fresh, uniquely named staging directory.

        Args:
            prefix: Directory name prefix
            resolver: Resolver used to locate the files to stage
            base_dir: Parent directory, defaults to the system temp directory

        Raises:
            StagingError: If the directory cannot be created
        """
        try:
            path = tempfile.mkdtemp(prefix=prefix, dir=base_dir)
            # mkdtemp creates 0700; images that run as non-root must still read the bind
            os.chmod(path, _READABLE_DIR)
        except OSError as e:
            raise StagingError(f"Cannot create staging directory with prefix '{prefix}': {e}") from e

        logger.debug(f"Created staging volume {path}")
        return cls(Path(path), resolver)

    @property
    def staged_roles(self) -> Set[StagedRole]:
        return set(self._staged)

    @property
    def is_complete(self) -> bool:
        return self._staged == set(StagedRole)

    def copy_agent_artifact(self, variant_id: str) -> Path:
        """Copy the agent jar for ``variant_id`` into the volume as agent.jar."""
        artifact = self.resolver.agent_artifact(variant_id)
        target = self._copy(artifact.path, StagedRole.AGENT_ARTIFACT)
        self.agent_artifact = artifact
        return target

    def copy_config(self, name: str) -> Path:
        """Copy the named configuration fixture into the volume as config.yaml."""
        return self._copy(self.resolver.config_fixture(name), StagedRole.CONFIG)

    def copy_workload_artifact(self) -> Path:
        """Copy the example workload jar into the volume."""
        artifact = self.resolver.workload_artifact()
        return self._copy(artifact.path, StagedRole.WORKLOAD_ARTIFACT)

    def require_complete(self) -> None:
        """
        Check that every role is staged.

        Raises:
            StagingError: If the volume is closed or a role is missing
        """
        if self._closed:
            raise StagingError(f"Volume {self.host_path} is already closed")
        missing = sorted(role.value for role in set(StagedRole) - self._staged)
        if missing:
            raise StagingError(
                f"Volume {self.host_path} is incomplete, missing: {', '.join(missing)}"
            )

    def close(self) -> None:
        """Remove the staging directory and everything in it."""
        if self._closed:
            return
        self._closed = True
        self._staged.clear()
        shutil.rmtree(self.host_path, ignore_errors=True)
        if self.host_path.exists():
            logger.warning(f"Staging volume {self.host_path} could not be fully removed")
        else:
            logger.debug(f"Removed staging volume {self.host_path}")

    def _copy(self, source: Path, role: StagedRole) -> Path:
        if self._closed:
            raise StagingError(f"Volume {self.host_path} is already closed")
        target = self.host_path / role.value
        try:
            shutil.copyfile(source, target)
            os.chmod(target, _READABLE_FILE)
        except OSError as e:
            raise StagingError(f"Cannot stage {source} as {target}: {e}") from e
        self._staged.add(role)
        logger.debug(f"Staged {role.name.lower()} {source.name} -> {target}")
        return target

    def __enter__(self) -> "Volume":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Volume(host_path={self.host_path}, staged={sorted(r.name for r in self._staged)})"
