"""
pytest plugin for worker-partitioned, data-driven tests.

Registered through the ``pytest11`` entry point. Provides:

- ``@pytest.mark.datafile("users.csv")``: parametrize the ``row`` fixture
  with every record of a CSV/Excel file
- ``worker_index``: xdist worker index of the running test (0 without xdist)
- ``partition_config``: session configuration from file, env and options
- ``data_manager``: session factory returning one loaded
  DataPartitionManager per data file
- ``--worker-report``: console lines tagged with the worker index

Usage:
    def test_register(page, data_manager, worker_index):
        user = data_manager("testdata/users.csv").allocate(worker_index)
        if user is None:
            pytest.skip("No test data left for this worker")
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest
import structlog

from workerdata.loaders.base import DataSourceError, LoaderOptions, load_records
from workerdata.partition.config import PartitionConfig, load_partition_config
from workerdata.partition.manager import DataPartitionManager
from workerdata.partition.workers import get_worker_index
from workerdata.reporting import WorkerReporter

logger = structlog.get_logger(__name__)

DATAFILE_MARKER = "datafile"
ROW_FIXTURE = "row"

ManagerFactory = Callable[..., DataPartitionManager]


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("workerdata", "Worker data partitioning")
    group.addoption(
        "--data-slice-size",
        action="store",
        type=int,
        dest="data_slice_size",
        default=None,
        help="Records reserved per xdist worker (default: config or 10)",
    )
    group.addoption(
        "--data-config",
        action="store",
        dest="data_config",
        default=None,
        help="YAML file with partition settings",
    )
    group.addoption(
        "--worker-report",
        action="store_true",
        dest="worker_report",
        default=False,
        help="Print each test result tagged with its worker index",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        f"{DATAFILE_MARKER}(path, sheet=None, delimiter=None): "
        f"parametrize the '{ROW_FIXTURE}' fixture with every record of a CSV/Excel file",
    )
    # Results of xdist workers are relayed to the controller, which reports them.
    if config.getoption("worker_report") and not hasattr(config, "workerinput"):
        config.pluginmanager.register(WorkerReporter(config), "workerdata-worker-reporter")


def resolve_data_path(source: str | Path, test_path: Path | None, rootpath: Path) -> Path:
    """
    Resolve a data file path.

    Relative paths are looked up next to the test module first, then
    against the pytest root directory.
    """
    path = Path(source)
    if path.is_absolute():
        return path
    if test_path is not None:
        candidate = test_path.parent / path
        if candidate.exists():
            return candidate
    return rootpath / path


def pytest_generate_tests(metafunc: pytest.Metafunc) -> None:
    marker = metafunc.definition.get_closest_marker(DATAFILE_MARKER)
    if marker is None or ROW_FIXTURE not in metafunc.fixturenames:
        return
    if not marker.args:
        pytest.fail(f"{DATAFILE_MARKER} marker needs a file path", pytrace=False)

    path = resolve_data_path(
        marker.args[0], metafunc.definition.path, metafunc.config.rootpath
    )
    try:
        options = LoaderOptions(
            sheet_name=marker.kwargs.get("sheet"),
            delimiter=marker.kwargs.get("delimiter"),
        )
        rows = load_records(path, options)
    except (DataSourceError, ValueError) as e:
        pytest.fail(str(e), pytrace=False)

    logger.debug("Parametrizing from data file", test=metafunc.definition.nodeid, rows=len(rows))
    metafunc.parametrize(
        ROW_FIXTURE, rows, ids=[f"row{i}" for i in range(len(rows))]
    )


@pytest.fixture(scope="session")
def worker_index() -> int:
    """xdist worker index of this process, 0 when running without xdist."""
    return get_worker_index()


@pytest.fixture(scope="session")
def partition_config(pytestconfig: pytest.Config) -> PartitionConfig:
    """Partition settings from the config file, WORKERDATA_* env and options."""
    config = load_partition_config(pytestconfig.getoption("data_config"))
    slice_size = pytestconfig.getoption("data_slice_size")
    if slice_size is not None:
        config = config.with_overrides(slice_size=slice_size)
    return config


@pytest.fixture(scope="session")
def data_manager(
    pytestconfig: pytest.Config, partition_config: PartitionConfig
) -> Iterator[ManagerFactory]:
    """
    Factory for loaded data managers, one per file and settings per session.

    Each xdist worker is its own process and therefore holds its own
    managers; disjoint slices keep the workers apart.
    """
    managers: dict[tuple[Path, tuple[tuple[str, Any], ...]], DataPartitionManager] = {}

    def factory(source: str | Path, **overrides: Any) -> DataPartitionManager:
        path = resolve_data_path(source, None, pytestconfig.rootpath).resolve()
        key = (path, tuple(sorted(overrides.items())))
        if key not in managers:
            config = partition_config.with_overrides(**overrides) if overrides else partition_config
            manager = DataPartitionManager(path, config)
            manager.load()
            managers[key] = manager
        return managers[key]

    yield factory

    for manager in managers.values():
        manager.log_statistics()
