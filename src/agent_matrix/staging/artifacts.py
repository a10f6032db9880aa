"""
Artifact resolution over the Maven build output layout.

The agent build places one jar per module under ``<module>/target``. A
variant id is the module name, so resolving ``jmx_prometheus_javaagent``
looks for ``jmx_prometheus_javaagent/target/jmx_prometheus_javaagent-1.2.3.jar``
(optionally ``-SNAPSHOT``). Sources and javadoc jars never match.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List

from ..errors import ArtifactNotFoundError, StagingError

logger = logging.getLogger(__name__)

WORKLOAD_MODULE = "jmx_example_application"
_VERSION_SUFFIX = r"-\d+\.\d+\.\d+(-SNAPSHOT)?\.jar"


@dataclass(frozen=True)
class ResolvedArtifact:
    """A build artifact on disk and the human-readable name it was resolved from."""

    path: Path
    name: str


class ArtifactResolver:
    """Resolve agent variants, the example workload and config fixtures to files."""

    def __init__(self, project_root: Path, fixtures_dir: Path):
        self.project_root = Path(project_root)
        self.fixtures_dir = Path(fixtures_dir)

    def agent_artifact(self, variant_id: str) -> ResolvedArtifact:
        """
        Resolve the packaged agent jar for a variant.

        Raises:
            ArtifactNotFoundError: If zero or more than one jar matches
        """
        target_dir = self.project_root / variant_id / "target"
        pattern = re.compile(re.escape(variant_id) + _VERSION_SUFFIX)
        candidates = self._matching(target_dir, pattern)

        if not candidates:
            raise ArtifactNotFoundError(
                f"No agent artifact for variant '{variant_id}' in {target_dir}. "
                f"Build the agent before running the matrix."
            )
        if len(candidates) > 1:
            names = ", ".join(p.name for p in candidates)
            raise ArtifactNotFoundError(
                f"Ambiguous agent artifact for variant '{variant_id}': {names}"
            )

        logger.debug(f"Resolved agent variant {variant_id} to {candidates[0]}")
        return ResolvedArtifact(path=candidates[0], name=variant_id)

    def workload_artifact(self) -> ResolvedArtifact:
        """Resolve the example workload jar."""
        path = self.project_root / WORKLOAD_MODULE / "target" / f"{WORKLOAD_MODULE}.jar"
        if not path.is_file():
            raise ArtifactNotFoundError(f"Example workload artifact not found: {path}")
        return ResolvedArtifact(path=path, name=WORKLOAD_MODULE)

    def config_fixture(self, name: str) -> Path:
        """Resolve a named configuration fixture."""
        path = (self.fixtures_dir / name).resolve()
        if not path.is_relative_to(self.fixtures_dir.resolve()):
            raise StagingError(f"Config fixture escapes fixtures directory: {name}")
        if not path.is_file():
            raise StagingError(f"Config fixture not found: {path}")
        return path

    @staticmethod
    def _matching(directory: Path, pattern: "re.Pattern[str]") -> List[Path]:
        if not directory.is_dir():
            return []
        return sorted(
            p for p in directory.iterdir() if p.is_file() and pattern.fullmatch(p.name)
        )

