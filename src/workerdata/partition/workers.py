"""
Worker index helpers for pytest-xdist runs.

xdist names its workers ``gw0``, ``gw1``, ... and exports the name of the
current one in ``PYTEST_XDIST_WORKER``. A run without xdist behaves as a
single worker with index 0.
"""

from __future__ import annotations

import math
import os
import re
from dataclasses import dataclass

WORKER_ENV = "PYTEST_XDIST_WORKER"
WORKER_COUNT_ENV = "PYTEST_XDIST_WORKER_COUNT"

DEFAULT_CPU_RATIO = 0.75

_WORKER_ID_PATTERN = re.compile(r"^gw(\d+)$")


def parse_worker_index(worker_id: str | None) -> int:
    """
    Convert an xdist worker id to its integer index.

    ``None``, ``"master"`` and unrecognised ids map to 0.
    """
    if not worker_id:
        return 0
    match = _WORKER_ID_PATTERN.match(worker_id.strip())
    return int(match.group(1)) if match else 0


def get_worker_id() -> str:
    return os.environ.get(WORKER_ENV, "master")


def get_worker_index() -> int:
    """Index of the current xdist worker, 0 outside xdist."""
    return parse_worker_index(os.environ.get(WORKER_ENV))


def get_worker_count() -> int:
    """Number of xdist workers in this run, 1 outside xdist."""
    try:
        return max(1, int(os.environ.get(WORKER_COUNT_ENV, "1")))
    except ValueError:
        return 1


def partition_range(partition_id: int, slice_size: int) -> range:
    """Dataset indices reserved for a partition."""
    if partition_id < 0:
        raise ValueError(f"partition_id must be non-negative, got {partition_id}")
    if slice_size < 1:
        raise ValueError(f"slice_size must be at least 1, got {slice_size}")
    start = partition_id * slice_size
    return range(start, start + slice_size)


def required_records(worker_count: int, slice_size: int) -> int:
    """Records needed so that every worker gets a full slice."""
    return max(0, worker_count) * slice_size


def recommended_worker_count(cpu_cores: int | None = None, ratio: float = DEFAULT_CPU_RATIO) -> int:
    """
    Suggested number of parallel workers for this machine.

    Uses ``floor(cores * ratio)`` with a floor of one worker, leaving headroom
    for the browsers the tests drive.
    """
    cores = cpu_cores if cpu_cores is not None else (os.cpu_count() or 1)
    return max(1, math.floor(cores * ratio))


@dataclass(frozen=True)
class WorkerSlice:
    """Planned allocation for one worker."""

    worker_index: int
    start: int
    stop: int
    available: int

    @property
    def shortfall(self) -> int:
        return (self.stop - self.start) - self.available

    @property
    def is_complete(self) -> bool:
        return self.shortfall == 0


def build_partition_plan(total_records: int, worker_count: int, slice_size: int) -> list[WorkerSlice]:
    """Describe which indices each worker owns and how many of them exist."""
    plan = []
    for worker in range(worker_count):
        reserved = partition_range(worker, slice_size)
        available = max(0, min(reserved.stop, total_records) - reserved.start)
        plan.append(
            WorkerSlice(
                worker_index=worker,
                start=reserved.start,
                stop=reserved.stop,
                available=available,
            )
        )
    return plan
