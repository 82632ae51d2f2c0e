"""
Worker data partitioning.

Provides:
- DataPartitionManager for overlap-free record allocation across workers
- PartitionConfig and load_partition_config for file/env configuration
- xdist worker index helpers and partition planning
"""

from workerdata.partition.config import (
    DEFAULT_SLICE_SIZE,
    PartitionConfig,
    load_partition_config,
)
from workerdata.partition.manager import AllocatedRecord, DataPartitionManager
from workerdata.partition.workers import (
    WorkerSlice,
    build_partition_plan,
    get_worker_count,
    get_worker_index,
    parse_worker_index,
    partition_range,
    recommended_worker_count,
    required_records,
)

__all__ = [
    # Manager
    "AllocatedRecord",
    "DataPartitionManager",
    # Configuration
    "DEFAULT_SLICE_SIZE",
    "PartitionConfig",
    "load_partition_config",
    # Workers
    "WorkerSlice",
    "build_partition_plan",
    "get_worker_count",
    "get_worker_index",
    "parse_worker_index",
    "partition_range",
    "recommended_worker_count",
    "required_records",
]
