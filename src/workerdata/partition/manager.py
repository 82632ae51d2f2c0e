"""
Worker-partitioned test data allocation.

Gives each pytest-xdist worker its own slice of a loaded dataset so parallel
tests never register the same user, email or order twice:

    Worker 0: indices 0-9   (slice_size=10)
    Worker 1: indices 10-19
    Worker 2: indices 20-29

Used indices are tracked per manager instance. When a requested index was
already handed out, the rest of the worker's own slice is searched for an
unused one; other workers' slices are never touched.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from pathlib import Path
from typing import Any

import structlog

from workerdata.loaders.base import LoaderOptions, Record, load_records, match_criteria
from workerdata.partition.config import PartitionConfig
from workerdata.partition.workers import partition_range

logger = structlog.get_logger(__name__)

Loader = Callable[[Path, LoaderOptions], list[Record]]


class AllocatedRecord(Mapping[str, str]):
    """
    Read-only copy of a dataset record handed out by the manager.

    Behaves as a mapping of the record's fields and carries the dataset index
    it came from plus the partition that requested it.
    """

    __slots__ = ("_data", "index", "partition_id")

    def __init__(self, data: Record, index: int, partition_id: int | None = None) -> None:
        self._data = dict(data)
        self.index = index
        self.partition_id = partition_id

    def __getitem__(self, key: str) -> str:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, AllocatedRecord):
            return (
                self._data == other._data
                and self.index == other.index
                and self.partition_id == other.partition_id
            )
        return super().__eq__(other)

    def __repr__(self) -> str:
        return (
            f"AllocatedRecord(index={self.index}, partition_id={self.partition_id}, "
            f"data={self._data!r})"
        )

    def as_dict(self) -> Record:
        """Plain dict copy of the record fields."""
        return dict(self._data)


class DataPartitionManager:
    """
    Hands out dataset records to parallel workers without overlap.

    Each worker passes its own stable index (``worker_index`` fixture or
    :func:`workerdata.partition.workers.get_worker_index`) and increasing
    offsets. Ranges are disjoint by construction, so no locking is involved;
    a single instance shared between threads must be guarded by the caller.

    Usage:
        manager = DataPartitionManager("testdata/users.csv", PartitionConfig(slice_size=5))
        manager.load()

        user = manager.allocate(worker_index)
        if user is None:
            pytest.skip("No test data left for this worker")
    """

    def __init__(
        self,
        source: str | Path,
        config: PartitionConfig | None = None,
        *,
        loader: Loader | None = None,
    ) -> None:
        """
        Initialize the manager. No data is read until :meth:`load`.

        Args:
            source: Path to a CSV, TSV or Excel file
            config: Partition configuration (slice size and loader options)
            loader: Callable used to read the source, defaults to load_records
        """
        self._source = Path(source)
        self._config = config or PartitionConfig()
        self._loader = loader or load_records

        self._dataset: list[Record] = []
        self._used: set[int] = set()
        self._loaded = False

        self._log = logger.bind(component="data_manager", source=str(self._source))
        self._log.debug(
            "Data manager initialized",
            slice_size=self._config.slice_size,
            source_type=self._config.source_type,
        )

    @property
    def source(self) -> Path:
        return self._source

    @property
    def config(self) -> PartitionConfig:
        return self._config

    @property
    def slice_size(self) -> int:
        """Number of dataset indices reserved per worker."""
        return self._config.slice_size

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def dataset(self) -> tuple[Record, ...]:
        """Copies of all loaded records in order."""
        return tuple(dict(r) for r in self._dataset)

    @property
    def total_count(self) -> int:
        return len(self._dataset)

    @property
    def used_count(self) -> int:
        """Used indices that exist in the current dataset."""
        total = len(self._dataset)
        return sum(1 for index in self._used if index < total)

    @property
    def available_count(self) -> int:
        return self.total_count - self.used_count

    @property
    def usage_percent(self) -> float:
        """Share of the dataset already handed out, 0-100."""
        if not self._dataset:
            return 0.0
        return round(self.used_count / self.total_count * 100, 2)

    @property
    def statistics(self) -> dict[str, Any]:
        return {
            "total": self.total_count,
            "used": self.used_count,
            "available": self.available_count,
            "usage_percent": self.usage_percent,
        }

    def load(self) -> list[Record]:
        """
        Read the source and replace the dataset.

        Reloading does not clear usage tracking; call :meth:`reset_usage`
        as well when the new data should be handed out from scratch. Used
        indices beyond a smaller reloaded dataset are kept but not counted.

        Returns:
            Copies of the loaded records

        Raises:
            DataSourceError: If the source cannot be read or parsed
        """
        self._log.info("Loading test data")
        try:
            records = self._loader(self._source, self._config.loader_options())
        except Exception as e:
            self._log.error("Failed to load test data", error=str(e))
            raise

        self._dataset = [dict(r) for r in records]
        self._loaded = True
        self._log.info("Loaded test data", records=len(self._dataset))
        return [dict(r) for r in self._dataset]

    def partition_range(self, partition_id: int) -> range:
        """Dataset indices reserved for ``partition_id``."""
        return partition_range(partition_id, self.slice_size)

    def allocate(self, partition_id: int, offset: int = 0) -> AllocatedRecord | None:
        """
        Hand out a record from the partition's own slice.

        Args:
            partition_id: Worker index of the caller
            offset: Position within the worker's slice (default: 0)

        Returns:
            The allocated record, or None when the slice has no unused data

        Raises:
            ValueError: If ``partition_id`` or ``offset`` is negative
        """
        if partition_id < 0 or offset < 0:
            raise ValueError(
                f"partition_id and offset must be non-negative, got {partition_id}, {offset}"
            )

        reserved = self.partition_range(partition_id)
        candidate = reserved.start + offset

        if candidate >= len(self._dataset):
            self._log.warning(
                "No data at index",
                partition_id=partition_id, index=candidate, total=len(self._dataset),
            )
            return None

        if candidate in self._used:
            self._log.warning(
                "Data already used, searching worker range",
                partition_id=partition_id, index=candidate,
            )
            for index in reserved:
                if index >= len(self._dataset):
                    break
                if index not in self._used:
                    self._log.info(
                        "Using alternative index", partition_id=partition_id, index=index
                    )
                    return self._take(index, partition_id)
            self._log.warning("Worker range exhausted", partition_id=partition_id)
            return None

        record = self._take(candidate, partition_id)
        self._log.debug("Allocated record", partition_id=partition_id, index=candidate)
        return record

    def allocate_many(self, partition_id: int, count: int) -> list[AllocatedRecord]:
        """
        Allocate up to ``count`` records for one test.

        Stops at the first offset with no data, so the result may be shorter.
        """
        results: list[AllocatedRecord] = []
        for offset in range(count):
            record = self.allocate(partition_id, offset)
            if record is None:
                self._log.warning(
                    "Could only allocate part of the request",
                    partition_id=partition_id, requested=count, allocated=len(results),
                )
                break
            results.append(record)
        return results

    def filter(self, criteria: Mapping[str, str]) -> list[Record]:
        """
        Records whose fields equal every entry of ``criteria``.

        Does not consult or change usage tracking. Unknown field names match
        nothing.
        """
        wanted = dict(criteria)
        return [dict(r) for r in self._dataset if match_criteria(r, wanted)]

    def get_by_index(self, index: int, mark_used: bool = True) -> AllocatedRecord | None:
        """
        Direct access by dataset index.

        Args:
            index: Dataset index
            mark_used: Record the index as used (default: True)

        Returns:
            The record, or None if ``index`` is out of bounds
        """
        if index < 0 or index >= len(self._dataset):
            self._log.warning("Invalid index", index=index, total=len(self._dataset))
            return None

        if mark_used:
            self._used.add(index)
        return AllocatedRecord(self._dataset[index], index)

    def is_used(self, index: int) -> bool:
        return index in self._used

    def reset_usage(self) -> None:
        """Forget which records were handed out. The dataset is kept."""
        self._log.info("Resetting usage tracking", used=len(self._used))
        self._used.clear()

    def log_statistics(self) -> dict[str, Any]:
        stats = self.statistics
        self._log.info("Test data usage", **stats)
        return stats

    def _take(self, index: int, partition_id: int) -> AllocatedRecord:
        self._used.add(index)
        return AllocatedRecord(self._dataset[index], index, partition_id)
