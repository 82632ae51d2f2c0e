"""
Tests for the pytest plugin: datafile parametrization, fixtures and the
worker reporter.
"""

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from workerdata.pytest_plugin import resolve_data_path
from workerdata.reporting import failure_message, report_worker_label

USERS_CSV = "email,status\na@shop.test,active\nb@shop.test,inactive\nc@shop.test,active\n"


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Run inner sessions as a plain, unconfigured, non-xdist process."""
    for name in (
        "PYTEST_XDIST_WORKER",
        "PYTEST_XDIST_WORKER_COUNT",
        "WORKERDATA_SLICE_SIZE",
        "WORKERDATA_SHEET_NAME",
        "WORKERDATA_DELIMITER",
        "WORKERDATA_SOURCE_TYPE",
        "WORKERDATA_ENCODING",
    ):
        monkeypatch.delenv(name, raising=False)


class TestDatafileMarker:
    """Tests for @pytest.mark.datafile parametrization."""

    def test_parametrizes_row_fixture(self, pytester: pytest.Pytester) -> None:
        """Test one test case per data row."""
        pytester.makefile(".csv", users=USERS_CSV)
        pytester.makepyfile(
            """
            import pytest

            @pytest.mark.datafile("users.csv")
            def test_user(row):
                assert row["email"].endswith("@shop.test")
            """
        )

        result = pytester.runpytest("-v")

        result.assert_outcomes(passed=3)
        result.stdout.fnmatch_lines(
            [
                "*test_user[[]row0[]] PASSED*",
                "*test_user[[]row1[]] PASSED*",
                "*test_user[[]row2[]] PASSED*",
            ]
        )

    def test_excel_sheet(self, pytester: pytest.Pytester, users_xlsx: Path) -> None:
        """Test the sheet keyword selects an Excel sheet."""
        pytester.makepyfile(
            f"""
            import pytest

            @pytest.mark.datafile({str(users_xlsx)!r}, sheet="Products")
            def test_product(row):
                assert row["sku"]
            """
        )

        result = pytester.runpytest()

        result.assert_outcomes(passed=2)

    def test_missing_file_is_collection_error(self, pytester: pytest.Pytester) -> None:
        """Test an unreadable data file fails collection with the reason."""
        pytester.makepyfile(
            """
            import pytest

            @pytest.mark.datafile("missing.csv")
            def test_user(row):
                pass
            """
        )

        result = pytester.runpytest()

        result.assert_outcomes(errors=1)
        result.stdout.fnmatch_lines(["*File not found*"])

    def test_invalid_delimiter_is_collection_error(self, pytester: pytest.Pytester) -> None:
        """Test a bad marker delimiter fails collection with a clear message."""
        pytester.makefile(".csv", users=USERS_CSV)
        pytester.makepyfile(
            """
            import pytest

            @pytest.mark.datafile("users.csv", delimiter=";;")
            def test_user(row):
                pass
            """
        )

        result = pytester.runpytest()

        result.assert_outcomes(errors=1)
        result.stdout.fnmatch_lines(["*single character*"])

    def test_marker_without_row_fixture_is_ignored(self, pytester: pytest.Pytester) -> None:
        """Test tests that do not request 'row' are left alone."""
        pytester.makepyfile(
            """
            import pytest

            @pytest.mark.datafile("missing.csv")
            def test_plain():
                pass
            """
        )

        result = pytester.runpytest()

        result.assert_outcomes(passed=1)


class TestFixtures:
    """Tests for the worker_index and data_manager fixtures."""

    def test_data_manager_allocates_worker_slice(self, pytester: pytest.Pytester) -> None:
        """Test the factory returns one loaded manager per file."""
        pytester.makefile(".csv", users=USERS_CSV)
        pytester.makepyfile(
            """
            def test_allocate(data_manager, worker_index):
                manager = data_manager("users.csv")
                assert worker_index == 0
                assert manager.total_count == 3
                user = manager.allocate(worker_index)
                assert user["email"] == "a@shop.test"

            def test_same_manager(data_manager, worker_index):
                manager = data_manager("users.csv")
                assert data_manager("users.csv") is manager
                user = manager.allocate(worker_index)
                assert user.index == 1
            """
        )

        result = pytester.runpytest("-p", "no:randomly")

        result.assert_outcomes(passed=2)

    def test_slice_size_option(self, pytester: pytest.Pytester) -> None:
        """Test --data-slice-size overrides the default."""
        pytester.makefile(".csv", users=USERS_CSV)
        pytester.makepyfile(
            """
            def test_slice(data_manager, partition_config):
                assert partition_config.slice_size == 2
                manager = data_manager("users.csv")
                assert manager.allocate(1).index == 2
                assert manager.allocate(1, 1) is None
            """
        )

        result = pytester.runpytest("--data-slice-size=2")

        result.assert_outcomes(passed=1)

    def test_config_file_option(self, pytester: pytest.Pytester) -> None:
        """Test --data-config reads a YAML file."""
        pytester.makefile(".yaml", partition="slice_size: 1\n")
        pytester.makepyfile(
            """
            def test_config(partition_config):
                assert partition_config.slice_size == 1
            """
        )

        result = pytester.runpytest("--data-config=partition.yaml")

        result.assert_outcomes(passed=1)

    def test_factory_overrides(self, pytester: pytest.Pytester) -> None:
        """Test per-call overrides create a separate manager."""
        pytester.makefile(".csv", users="email;status\na@shop.test;active\n")
        pytester.makepyfile(
            """
            def test_delimiter(data_manager):
                manager = data_manager("users.csv", delimiter=";")
                assert manager.filter({"status": "active"}) == [
                    {"email": "a@shop.test", "status": "active"}
                ]
                assert data_manager("users.csv") is not manager
            """
        )

        result = pytester.runpytest()

        result.assert_outcomes(passed=1)


class TestWorkerReporter:
    """Tests for the --worker-report console output."""

    def test_reports_each_test(self, pytester: pytest.Pytester) -> None:
        """Test result lines are tagged with the worker index."""
        pytester.makepyfile(
            """
            import pytest

            def test_ok():
                pass

            def test_bad():
                assert 1 == 2, "totals differ"

            @pytest.mark.skip(reason="not today")
            def test_skipped():
                pass
            """
        )

        result = pytester.runpytest("--worker-report")

        result.assert_outcomes(passed=1, failed=1, skipped=1)
        result.stdout.fnmatch_lines(
            [
                "*Starting test run with 1 worker(s)*",
                "[[]Worker 0[]] PASSED: test_reports_each_test.py::test_ok (*s)",
                "[[]Worker 0[]] FAILED: test_reports_each_test.py::test_bad (*s)",
                "[[]Worker 0[]] Error: *totals differ*",
                "[[]Worker 0[]] SKIPPED: test_reports_each_test.py::test_skipped (*s)",
                "*Status: FAILED (passed=1, failed=1, skipped=1)*",
            ]
        )

    def test_disabled_by_default(self, pytester: pytest.Pytester) -> None:
        """Test no worker lines are printed without the option."""
        pytester.makepyfile("def test_ok():\n    pass\n")

        result = pytester.runpytest()

        result.assert_outcomes(passed=1)
        result.stdout.no_fnmatch_line("*[[]Worker 0[]]*")

    def test_worker_label_from_node(self) -> None:
        """Test the controller reads the worker id from the report's node."""
        report = SimpleNamespace(node=SimpleNamespace(workerinput={"workerid": "gw5"}))

        assert report_worker_label(report) == "5"

    def test_worker_label_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test a worker process falls back to its own id."""
        monkeypatch.setenv("PYTEST_XDIST_WORKER", "gw2")

        assert report_worker_label(SimpleNamespace()) == "2"

    def test_failure_message_from_crash(self) -> None:
        """Test the crash message is preferred."""
        crash = SimpleNamespace(message="AssertionError: boom\nassert 1 == 2")
        report = SimpleNamespace(longrepr=SimpleNamespace(reprcrash=crash), longreprtext="")

        assert failure_message(report) == "AssertionError: boom"

    def test_failure_message_from_text(self) -> None:
        """Test the first 'E' line is picked from plain failure text."""
        report = SimpleNamespace(
            longreprtext="def test():\n>   assert x\nE   AssertionError: boom\nE   more\n\ntest_a.py:3: AssertionError\n"
        )

        assert failure_message(report) == "AssertionError: boom"
        assert failure_message(SimpleNamespace(longreprtext="")) is None


class TestResolveDataPath:
    """Tests for data file path resolution."""

    def test_absolute_path(self, tmp_path: Path) -> None:
        """Test absolute paths are kept."""
        path = tmp_path / "users.csv"

        assert resolve_data_path(path, None, Path("/elsewhere")) == path

    def test_next_to_test_module(self, tmp_path: Path) -> None:
        """Test files beside the test module win."""
        (tmp_path / "tests").mkdir()
        (tmp_path / "tests" / "users.csv").write_text("a\n")

        resolved = resolve_data_path("users.csv", tmp_path / "tests" / "test_x.py", tmp_path)

        assert resolved == tmp_path / "tests" / "users.csv"

    def test_falls_back_to_rootdir(self, tmp_path: Path) -> None:
        """Test relative paths resolve against the root directory otherwise."""
        resolved = resolve_data_path("data/users.csv", tmp_path / "tests" / "test_x.py", tmp_path)

        assert resolved == tmp_path / "data" / "users.csv"
