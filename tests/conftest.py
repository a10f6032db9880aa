"""
Pytest configuration and shared fixtures for agent-matrix tests.

This module provides a fake agent build tree, a local HTTP server standing
in for the exporter endpoint, and environment isolation for unit tests.
"""

import os
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
import pytest

from agent_matrix.config import PACKAGED_FIXTURES_DIR
from agent_matrix.matrix.scenarios import JAVAAGENT, JAVAAGENT_JAVA6

AGENT_VERSION = "0.16.2-SNAPSHOT"


def exposition(agent_name: str = JAVAAGENT, version: str = "0.16.2-SNAPSHOT") -> str:
    """Exporter output as served by the example workload with the agent attached."""
    return f"""# HELP jmx_exporter_build_info A metric with a constant '1' value labeled with the version of the JMX exporter.
# TYPE jmx_exporter_build_info gauge
jmx_exporter_build_info{{version="{version}",name="{agent_name}",}} 1.0
# HELP java_lang_Memory_NonHeapMemoryUsage_committed java.lang.management.MemoryUsage (java.lang<type=Memory><NonHeapMemoryUsage>committed)
# TYPE java_lang_Memory_NonHeapMemoryUsage_committed untyped
java_lang_Memory_NonHeapMemoryUsage_committed 2.1495808E7

# HELP io_prometheus_jmx_tabularData_Server_1_Disk_Usage_Table_size Example tabular data
# TYPE io_prometheus_jmx_tabularData_Server_1_Disk_Usage_Table_size untyped
io_prometheus_jmx_tabularData_Server_1_Disk_Usage_Table_size{{source="/dev/sda2"}} 1.5032385536E10
io_prometheus_jmx_tabularData_Server_1_Disk_Usage_Table_size{{source="/dev/sda1"}} 7.516192768E9
# HELP io_prometheus_jmx_tabularData_Server_2_Disk_Usage_Table_size Example tabular data
# TYPE io_prometheus_jmx_tabularData_Server_2_Disk_Usage_Table_size untyped
io_prometheus_jmx_tabularData_Server_2_Disk_Usage_Table_size{{source="/dev/sda1"}} 2.5769803776E10
io_prometheus_jmx_tabularData_Server_2_Disk_Usage_Table_size{{source="/dev/sda2"}} 1.073741824E11
"""


class MockExporterHandler(BaseHTTPRequestHandler):
    """Serves the configured exposition text on /metrics."""

    def do_GET(self):
        server = self.server
        server.requests += 1
        if server.delay:
            time.sleep(server.delay)

        if self.path != "/metrics":
            self._send(404, "not found\n")
            return
        self._send(server.status, server.body)

    def _send(self, status, body):
        payload = body.encode("utf-8")
        try:
            self.send_response(status)
            self.send_header("Content-Type", "text/plain; version=0.0.4; charset=utf-8")
            self.send_header("Content-Length", str(len(payload)))
            self.end_headers()
            self.wfile.write(payload)
        except (BrokenPipeError, ConnectionResetError):
            pass  # client gave up, e.g. after a scrape timeout

    def log_message(self, format, *args):
        """Suppress default request logging."""
        pass


class MockExporterServer:
    """Threaded HTTP server standing in for the agent's metrics endpoint."""

    def __init__(self, host="127.0.0.1"):
        self.host = host
        self.server = None
        self.thread = None

    @property
    def port(self):
        return self.server.server_address[1]

    def configure(self, body=None, status=200, delay=0.0):
        self.server.body = exposition() if body is None else body
        self.server.status = status
        self.server.delay = delay

    @property
    def requests(self):
        return self.server.requests

    def start(self):
        self.server = ThreadingHTTPServer((self.host, 0), MockExporterHandler)
        self.server.daemon_threads = True
        self.server.requests = 0
        self.configure()
        self.thread = threading.Thread(target=self.server.serve_forever, daemon=True)
        self.thread.start()

    def stop(self):
        if self.server:
            self.server.shutdown()
            self.server.server_close()
        if self.thread:
            self.thread.join(timeout=1)


@pytest.fixture
def exporter_server():
    """Provide a running mock exporter; configure() changes what it serves."""
    server = MockExporterServer()
    server.start()
    try:
        yield server
    finally:
        server.stop()


@pytest.fixture
def make_exposition():
    """Provide the exposition builder to tests that shape their own bodies."""
    return exposition


@pytest.fixture
def project_root(tmp_path):
    """Create a build tree with both agent variants and the example workload."""
    root = tmp_path / "project"
    for variant in (JAVAAGENT, JAVAAGENT_JAVA6):
        target = root / variant / "target"
        target.mkdir(parents=True)
        (target / f"{variant}-{AGENT_VERSION}.jar").write_bytes(f"agent {variant}".encode())
        (target / f"{variant}-{AGENT_VERSION}-sources.jar").write_bytes(b"sources")
        (target / "original-classes.jar").write_bytes(b"shaded input")

    workload = root / "jmx_example_application" / "target"
    workload.mkdir(parents=True)
    (workload / "jmx_example_application.jar").write_bytes(b"example workload")
    return root


@pytest.fixture
def fixtures_dir():
    return PACKAGED_FIXTURES_DIR


@pytest.fixture
def resolver(project_root, fixtures_dir):
    from agent_matrix.staging import ArtifactResolver

    return ArtifactResolver(project_root, fixtures_dir)


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
            item.add_marker(pytest.mark.slow)

        if "docker" in str(item.fspath) or "docker" in item.name.lower():
            item.add_marker(pytest.mark.docker)


@pytest.fixture(autouse=True)
def _stable_env(request, monkeypatch):
    """
    Isolate unit tests from the caller's environment.

    Integration tests keep AGENT_MATRIX_* variables so they can point at a
    real build tree.
    """
    is_integration_test = any(
        mark.name == "integration" for mark in request.node.iter_markers()
    )
    if is_integration_test:
        return

    for name in list(os.environ):
        if name.startswith("AGENT_MATRIX_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("LOG_DIR", raising=False)
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
