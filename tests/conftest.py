"""Pytest configuration and fixtures for jsonpost tests.

This file provides:
- PortReservation: Race-free port allocation for test servers
- MockRemote: Subprocess management for the mock remote server
- Fixtures: Shared test infrastructure (records, servers, CLI runner)
"""

from __future__ import annotations

import socket
import subprocess
import sys
import time
import traceback
from dataclasses import dataclass
from io import StringIO
from pathlib import Path
from typing import Any, Callable, Generator

import pytest

from jsonpost.models import ResponseRecord

# Project root for fixture paths
PROJECT_ROOT = Path(__file__).parent.parent
MOCK_SERVER_SCRIPT = PROJECT_ROOT / "tests" / "integration" / "mock_server.py"


def make_response_record(
    status_code: int = 200,
    status_message: str = "OK",
    content_type: str | None = "application/json",
    body: str = "",
    headers: dict[str, str] | None = None,
    host_url: str = "api.example.test",
) -> ResponseRecord:
    """Create a ResponseRecord for testing routing.

    Prefer this over constructing ResponseRecord directly - it provides
    sensible defaults and documents which fields are typically varied in tests.
    """
    return ResponseRecord(
        status_code=status_code,
        status_message=status_message,
        content_type=content_type,
        body=body,
        headers=headers or {},
        host_url=host_url,
    )


@pytest.fixture
def response_record() -> Callable[..., ResponseRecord]:
    """Factory fixture wrapping make_response_record."""
    return make_response_record


class PortReservation:
    """Holds a reserved port with socket kept open to prevent races.

    The port is held exclusively until release(), so no other process can
    grab it between allocation and the server binding it.
    """

    def __init__(self) -> None:
        self._socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._socket.bind(("127.0.0.1", 0))  # Port 0 = OS assigns ephemeral port
        self._port = self._socket.getsockname()[1]
        self._released = False

    @property
    def port(self) -> int:
        return self._port

    def release(self) -> int:
        """Release the socket and return the port for server use.

        Safe to call multiple times - subsequent calls are no-ops.
        """
        if not self._released:
            self._socket.close()
            self._released = True
        return self._port

    def __enter__(self) -> PortReservation:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.release()


def find_free_port() -> int:
    """Find a port on localhost that nothing is listening on (right now)."""
    with PortReservation() as reservation:
        return reservation.port


def wait_for_server_ready(host: str, port: int, timeout: float = 10.0) -> bool:
    """Block until server accepts TCP connections, or timeout expires."""
    start = time.time()
    while time.time() - start < timeout:
        try:
            with socket.create_connection((host, port), timeout=1.0):
                return True
        except OSError:
            time.sleep(0.1)
    return False


class MockRemote:
    """Manages the mock remote server subprocess for integration tests.

    Runs tests/integration/mock_server.py as a subprocess.
    """

    def __init__(self, port: int | PortReservation) -> None:
        if isinstance(port, PortReservation):
            self._reservation = port
            self.port = port.port
        else:
            self._reservation = None
            self.port = port
        self.host = "127.0.0.1"
        self.base_url = f"http://{self.host}:{self.port}"
        self._process: subprocess.Popen | None = None

    def start(self) -> None:
        """Start the mock server subprocess.

        Raises:
            RuntimeError: If server fails to start within 10 seconds.
        """
        if self._reservation:
            self._reservation.release()

        self._process = subprocess.Popen(
            [
                sys.executable, str(MOCK_SERVER_SCRIPT),
                "--host", self.host,
                "--port", str(self.port),
            ],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            cwd=PROJECT_ROOT,
        )

        if not wait_for_server_ready(self.host, self.port):
            self._process.terminate()
            _, stderr = self._process.communicate(timeout=5)
            self._process = None
            raise RuntimeError(
                f"MockRemote failed to start on port {self.port}. "
                f"stderr: {stderr.decode(errors='replace') or '(empty)'}"
            )

    def stop(self) -> None:
        """Stop the mock server subprocess with graceful shutdown.

        Uses SIGTERM first, then SIGKILL after 5s if process doesn't exit.
        Safe to call multiple times or if server was never started.
        """
        if self._process:
            self._process.terminate()
            try:
                self._process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                # Process ignored SIGTERM, escalate to SIGKILL
                self._process.kill()
                self._process.wait(timeout=5)
            self._process = None

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def __enter__(self) -> MockRemote:
        self.start()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.stop()


@dataclass
class CLIResult:
    """Result of an in-process CLI invocation, matching subprocess interface."""

    returncode: int
    stdout: str
    stderr: str


def run_cli(*args: str) -> CLIResult:
    """Run the jsonpost CLI in-process, capturing stdout/stderr."""
    from jsonpost.cli import dispatch, parse_args

    old_stdout = sys.stdout
    old_stderr = sys.stderr

    captured_stdout = StringIO()
    captured_stderr = StringIO()

    sys.stdout = captured_stdout
    sys.stderr = captured_stderr

    try:
        parsed = parse_args(list(args))
        returncode = dispatch(parsed)
    except SystemExit as e:
        # argparse calls sys.exit on parse errors
        returncode = e.code if isinstance(e.code, int) else 1
    except Exception as e:
        captured_stderr.write(f"Unexpected error: {e}\n")
        captured_stderr.write(traceback.format_exc())
        returncode = 1
    finally:
        stdout_val = captured_stdout.getvalue()
        stderr_val = captured_stderr.getvalue()
        sys.stdout = old_stdout
        sys.stderr = old_stderr

    return CLIResult(returncode=returncode, stdout=stdout_val, stderr=stderr_val)


# =============================================================================
# Pytest Fixtures
# =============================================================================


@pytest.fixture
def cli() -> Callable[..., CLIResult]:
    """In-process CLI runner: cli("post", "--config", ...)."""
    return run_cli


@pytest.fixture(scope="session")
def mock_remote() -> Generator[MockRemote, None, None]:
    """Mock remote server, started once per test session."""
    with MockRemote(PortReservation()) as server:
        yield server


@pytest.fixture
def closed_port_url() -> str:
    """URL on localhost where nothing listens (connection refused)."""
    return f"http://127.0.0.1:{find_free_port()}/items"


@pytest.fixture
def write_config(tmp_path: Path) -> Callable[[str], Path]:
    """Write YAML config text to a temp file and return its path."""

    def _write(text: str) -> Path:
        config_path = tmp_path / "jsonpost.yaml"
        config_path.write_text(text, encoding="utf-8")
        return config_path

    return _write


# =============================================================================
# Pytest Hooks
# =============================================================================


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Automatically apply markers based on test location.

    Enables running subsets via:
        pytest -m integration  # only integration tests
        pytest -m unit         # only unit tests
    """
    for item in items:
        test_path = Path(item.fspath)
        if "integration" in test_path.parts:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
