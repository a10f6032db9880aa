"""
Integration test configuration and fixtures.

These tests start real containers. They need a Docker daemon and a built
agent tree; point AGENT_MATRIX_PROJECT_ROOT at the build root. Missing
prerequisites skip the tests instead of failing them.
"""

import pytest

import docker

from agent_matrix.config import Config
from agent_matrix.errors import ArtifactNotFoundError
from agent_matrix.matrix import SCENARIOS, ScenarioRunner


@pytest.fixture(scope="session")
def docker_available():
    """Check if Docker is available for testing."""
    try:
        client = docker.from_env()
        client.ping()
        return True
    except Exception:
        return False


@pytest.fixture(scope="session")
def matrix_config(docker_available):
    """Runtime configuration, validated against the local build tree."""
    if not docker_available:
        pytest.skip("Docker not available")

    config = Config.load_runtime_config()
    errors = config.validate()
    if errors:
        pytest.skip(f"Build tree not usable: {'; '.join(errors)}")
    return config


@pytest.fixture(scope="session")
def scenario_runner(matrix_config):
    return ScenarioRunner(matrix_config)


@pytest.fixture(scope="module", params=SCENARIOS, ids=lambda s: s.id)
def scenario_session(request, scenario_runner):
    """One running environment per scenario, shared by that scenario's tests."""
    session = scenario_runner.session(request.param)
    try:
        session.__enter__()
    except ArtifactNotFoundError as e:
        pytest.skip(str(e))
    try:
        yield session
    finally:
        session.__exit__(None, None, None)
