"""
Test Suite for agent-matrix

Test Structure:
- unit/: staging, launcher, scraper, metrics, assertions and runner tests.
  Docker is mocked; a local HTTP server stands in for the exporter.
- integration/: the real matrix against Docker. Requires a Docker daemon
  and a built agent tree (AGENT_MATRIX_PROJECT_ROOT).

Running Tests:
    pytest tests/unit             # Fast tests
    pytest -m integration         # Real containers
    pytest --cov=agent_matrix     # With coverage report
"""
