"""Data source connectors."""

from typing import TYPE_CHECKING

from .base import (
    CancelToken,
    ColumnMetadata,
    DataSource,
    QueryCancelledError,
    QueryResult,
)
from .postgresql import PostgreSQLDataSource
from .duckdb import DuckDBDataSource

if TYPE_CHECKING:
    from ..config import DataSourceConfig


def create_datasource(ds_config: "DataSourceConfig") -> DataSource:
    """Instantiate the data source named by a config entry."""
    if ds_config.type == "duckdb":
        return DuckDBDataSource(ds_config.name, ds_config.config)
    if ds_config.type == "postgresql":
        return PostgreSQLDataSource(ds_config.name, ds_config.config)
    raise ValueError(f"Unsupported data source type: {ds_config.type}")


__all__ = [
    "CancelToken",
    "ColumnMetadata",
    "DataSource",
    "QueryCancelledError",
    "QueryResult",
    "PostgreSQLDataSource",
    "DuckDBDataSource",
    "create_datasource",
]
