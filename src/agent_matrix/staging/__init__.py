"""
Staging Module

Builds the per-scenario volume that is bind-mounted into the runtime
container: artifact resolution over the build output layout and the
Volume that owns the temporary directory.
"""

from .artifacts import ArtifactResolver, ResolvedArtifact
from .volume import StagedRole, Volume

__all__ = [
    "ArtifactResolver",
    "ResolvedArtifact",
    "StagedRole",
    "Volume",
]
