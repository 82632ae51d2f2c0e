"""
workerdata: worker-partitioned test data for parallel browser test suites.

Loads CSV/Excel test data once and hands each pytest-xdist worker its own
slice of records, so parallel tests never collide on the same user, email or
order.
"""

__version__ = "1.0.0"

from workerdata.loaders import (
    ColumnNotFoundError,
    DataSourceError,
    LoaderOptions,
    Record,
    SheetNotFoundError,
    SourceType,
    load_records,
)
from workerdata.partition import (
    AllocatedRecord,
    DataPartitionManager,
    PartitionConfig,
    WorkerSlice,
    build_partition_plan,
    get_worker_count,
    get_worker_index,
    load_partition_config,
    partition_range,
    recommended_worker_count,
)
from workerdata.steps import log_step, retry_action

__all__ = [
    # Loaders
    "ColumnNotFoundError",
    "DataSourceError",
    "LoaderOptions",
    "Record",
    "SheetNotFoundError",
    "SourceType",
    "load_records",
    # Partitioning
    "AllocatedRecord",
    "DataPartitionManager",
    "PartitionConfig",
    "WorkerSlice",
    "build_partition_plan",
    "get_worker_count",
    "get_worker_index",
    "load_partition_config",
    "partition_range",
    "recommended_worker_count",
    # Steps
    "log_step",
    "retry_action",
    "__version__",
]
