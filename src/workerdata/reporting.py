"""
Console reporter that tags every test result with the xdist worker that ran it.

Enabled with ``--worker-report``. Output looks like:

    [Worker 1] PASSED: tests/test_register.py::test_register[row3] (1.42s)
    [Worker 0] FAILED: tests/test_login.py::test_login (0.87s)
    [Worker 0] Error: AssertionError: Dashboard should be visible
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

import pytest
import structlog

from workerdata.partition.workers import get_worker_id, parse_worker_index

if TYPE_CHECKING:
    from _pytest.reports import TestReport
    from _pytest.terminal import TerminalReporter

logger = structlog.get_logger(__name__)

BANNER_WIDTH = 80

STATUS_MARKUP: dict[str, dict[str, bool]] = {
    "passed": {"green": True},
    "failed": {"red": True},
    "skipped": {"yellow": True},
}


def report_worker_label(report: Any) -> str:
    """
    Worker index of a test report as a string.

    On the xdist controller reports carry the worker node; inside a worker or
    without xdist the current process' worker id is used.
    """
    node = getattr(report, "node", None)
    workerinput = getattr(node, "workerinput", None)
    if isinstance(workerinput, dict) and "workerid" in workerinput:
        return str(parse_worker_index(workerinput["workerid"]))
    return str(parse_worker_index(get_worker_id()))


def failure_message(report: Any) -> str | None:
    """First line of the exception that failed a test, if any."""
    crash = getattr(getattr(report, "longrepr", None), "reprcrash", None)
    if crash is not None and crash.message:
        return crash.message.splitlines()[0].strip()

    text = getattr(report, "longreprtext", "") or ""
    lines = [line for line in text.strip().splitlines() if line.strip()]
    errors = [line[1:].strip() for line in lines if line.startswith("E ")]
    if errors:
        return errors[0]
    return lines[-1].strip() if lines else None


class WorkerReporter:
    """Prints one line per finished test, prefixed with its worker index."""

    def __init__(self, config: pytest.Config) -> None:
        self._config = config
        self._started_at = time.monotonic()
        self._counts = {"passed": 0, "failed": 0, "skipped": 0}

    @property
    def counts(self) -> dict[str, int]:
        return dict(self._counts)

    def _terminal(self) -> TerminalReporter | None:
        return self._config.pluginmanager.get_plugin("terminalreporter")

    def _write_line(self, line: str, **markup: bool) -> None:
        terminal = self._terminal()
        if terminal is not None:
            terminal.write_line(line, **markup)
        else:
            logger.info(line)

    def pytest_sessionstart(self, session: pytest.Session) -> None:
        workers = getattr(self._config.option, "numprocesses", None) or 1
        self._started_at = time.monotonic()
        self._write_line("=" * BANNER_WIDTH)
        self._write_line(f"Starting test run with {workers} worker(s)")
        self._write_line("=" * BANNER_WIDTH)

    def pytest_runtest_logreport(self, report: TestReport) -> None:
        # A test ends in the call phase, or in setup when it is skipped or errors.
        if report.when == "call" or (report.when == "setup" and not report.passed):
            self._record(report)

    def _record(self, report: TestReport) -> None:
        status = report.outcome
        self._counts[status] = self._counts.get(status, 0) + 1
        worker = report_worker_label(report)

        self._write_line(
            f"[Worker {worker}] {status.upper()}: {report.nodeid} ({report.duration:.2f}s)",
            **STATUS_MARKUP.get(status, {}),
        )
        if report.failed:
            message = failure_message(report)
            if message:
                self._write_line(f"[Worker {worker}] Error: {message}")

    def pytest_sessionfinish(self, session: pytest.Session, exitstatus: int) -> None:
        duration = time.monotonic() - self._started_at
        status = "PASSED" if exitstatus == pytest.ExitCode.OK else "FAILED"
        self._write_line("=" * BANNER_WIDTH)
        self._write_line("Test run finished!")
        self._write_line(f"Duration: {duration:.2f}s")
        self._write_line(
            f"Status: {status} "
            f"(passed={self._counts['passed']}, failed={self._counts['failed']}, "
            f"skipped={self._counts['skipped']})"
        )
        self._write_line("=" * BANNER_WIDTH)
