"""
Configuration for worker data partitioning.

Settings are layered, lowest to highest priority:
1. Defaults
2. YAML config file
3. Environment variables (WORKERDATA_*)
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Self

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from workerdata.loaders.base import LoaderOptions, SourceType, check_delimiter

logger = structlog.get_logger(__name__)

DEFAULT_SLICE_SIZE = 10

STANDARD_CONFIG_PATHS = (
    Path(".workerdata.yaml"),
    Path(".workerdata.yml"),
    Path("workerdata.yaml"),
)

ENV_PREFIX = "WORKERDATA_"


class PartitionConfig(BaseModel):
    """Configuration of a data partition manager and its source."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    slice_size: int = Field(
        default=DEFAULT_SLICE_SIZE,
        ge=1,
        description="Consecutive dataset indices reserved per worker",
    )
    sheet_name: str | None = Field(
        default=None,
        description="Sheet to read from Excel sources (default: first sheet)",
    )
    delimiter: str | None = Field(
        default=None,
        description="Column separator for delimited sources (default: detected)",
    )
    source_type: SourceType | None = None
    encoding: str = "utf-8"

    @field_validator("delimiter")
    @classmethod
    def validate_delimiter(cls, v: str | None) -> str | None:
        """Delimiters are single characters."""
        return check_delimiter(v)

    def with_overrides(self, **overrides: Any) -> Self:
        """Return a copy with the given fields replaced and revalidated."""
        return type(self).model_validate({**self.model_dump(), **overrides})

    def loader_options(self) -> LoaderOptions:
        return LoaderOptions(
            delimiter=self.delimiter,
            sheet_name=self.sheet_name,
            source_type=self.source_type,
            encoding=self.encoding,
        )


def _read_config_file(config_file: Path | str | None) -> dict[str, Any]:
    if config_file:
        path = Path(config_file)
        if not path.is_file():
            raise ValueError(f"Config file not found: {path}")
        paths = [path]
    else:
        paths = [p for p in STANDARD_CONFIG_PATHS if p.is_file()]

    for path in paths:
        with path.open() as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        # Allow the settings to live under a top-level "workerdata" key.
        return dict(data.get("workerdata", data))
    return {}


def _read_env() -> dict[str, Any]:
    values: dict[str, Any] = {}

    raw_slice = os.environ.get(f"{ENV_PREFIX}SLICE_SIZE")
    if raw_slice:
        try:
            slice_size = int(raw_slice)
            if slice_size < 1:
                raise ValueError("must be at least 1")
            values["slice_size"] = slice_size
        except ValueError as e:
            logger.warning(
                "Ignoring invalid environment value",
                variable=f"{ENV_PREFIX}SLICE_SIZE", value=raw_slice, error=str(e),
            )

    raw_type = os.environ.get(f"{ENV_PREFIX}SOURCE_TYPE")
    if raw_type:
        try:
            values["source_type"] = SourceType(raw_type.lower())
        except ValueError:
            logger.warning(
                "Ignoring invalid environment value",
                variable=f"{ENV_PREFIX}SOURCE_TYPE", value=raw_type,
            )

    raw_delimiter = os.environ.get(f"{ENV_PREFIX}DELIMITER")
    if raw_delimiter:
        delimiter = "\t" if raw_delimiter == "\\t" else raw_delimiter
        try:
            values["delimiter"] = check_delimiter(delimiter)
        except ValueError as e:
            logger.warning(
                "Ignoring invalid environment value",
                variable=f"{ENV_PREFIX}DELIMITER", value=raw_delimiter, error=str(e),
            )

    for key in ("sheet_name", "encoding"):
        value = os.environ.get(f"{ENV_PREFIX}{key.upper()}")
        if value:
            values[key] = value

    return values


def load_partition_config(config_file: Path | str | None = None) -> PartitionConfig:
    """
    Load partition configuration from file and environment.

    Args:
        config_file: Optional YAML file. When omitted the standard locations
            (.workerdata.yaml, .workerdata.yml, workerdata.yaml) are tried.

    Returns:
        Validated PartitionConfig

    Raises:
        ValueError: If an explicit config file is missing or its content is invalid
    """
    file_values = _read_config_file(config_file)
    try:
        base = PartitionConfig(**file_values)
    except ValidationError as e:
        raise ValueError(f"Invalid partition configuration: {e}") from e

    env_values = _read_env()
    if not env_values:
        return base

    try:
        return base.with_overrides(**env_values)
    except ValidationError as e:
        logger.warning("Ignoring invalid environment configuration", error=str(e))
        return base
