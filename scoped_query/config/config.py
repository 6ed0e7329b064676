"""Configuration management for the scoped query layer."""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List
import yaml
from pathlib import Path

from ..catalog.attributes import AttributeRegistry


class ConfigError(ValueError):
    """Raised when a configuration file is well-formed YAML but invalid."""


@dataclass
class DataSourceConfig:
    """Configuration for the data source holding the application schema."""

    name: str = "default"
    type: str = "duckdb"  # "postgresql" or "duckdb"
    config: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CacheConfig:
    """Configuration for the metadata cache."""

    enabled: bool = True


@dataclass
class ScopeConfig:
    """Configuration for scope resolution."""

    manager_includes_branch: bool = False


@dataclass
class LoggingConfig:
    """Configuration for log output."""

    level: str = "INFO"
    structured: bool = False


@dataclass
class Config:
    """Main configuration class."""

    datasource: DataSourceConfig = field(default_factory=DataSourceConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    scope: ScopeConfig = field(default_factory=ScopeConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    attributes: Dict[str, List[str]] = field(default_factory=dict)
    tables: Dict[str, List[str]] = field(default_factory=dict)


def _section(data: Dict[str, Any], name: str, cls):
    """Build a section dataclass, rejecting keys it does not define."""
    values = data.get(name) or {}
    if not isinstance(values, dict):
        raise ConfigError(f"Section '{name}' must be a mapping")
    allowed = set()
    for f in fields(cls):
        allowed.add(f.name)
    for key in values:
        if key not in allowed:
            raise ConfigError(f"Unknown key '{key}' in section '{name}'")
    return cls(**values)


def _candidate_lists(data: Dict[str, Any], name: str, dotted: bool) -> Dict[str, List[str]]:
    values = data.get(name) or {}
    if not isinstance(values, dict):
        raise ConfigError(f"Section '{name}' must be a mapping")
    result = {}
    for key, candidates in values.items():
        if dotted and (not isinstance(key, str) or key.count(".") != 1):
            raise ConfigError(f"Attribute key must look like table.logical_name: {key!r}")
        if isinstance(candidates, str):
            candidates = [candidates]
        if not candidates:
            raise ConfigError(f"Candidate list for '{key}' must not be empty")
        names = []
        for candidate in candidates:
            names.append(str(candidate))
        result[str(key)] = names
    return result


def load_config(config_path: str) -> Config:
    """Load configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Parsed configuration

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigError: If a section holds unknown keys or empty candidate lists

    Example YAML format:
        datasource:
          name: admin_db
          type: postgresql
          host: localhost
          port: 5432
          database: hotel_admin
          user: app
          password: secret
          min_connections: 1
          max_connections: 10

        cache:
          enabled: true

        scope:
          manager_includes_branch: false

        attributes:
          users.hotel: [hotel_id, hotelId, hotel, hotelid]

        tables:
          hotel: [hotels, properties]

        logging:
          level: INFO
          structured: false
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a mapping: {config_path}")

    # Data source: name and type are lifted out, the rest is driver config
    ds_data = dict(data.get("datasource") or {})
    datasource = DataSourceConfig(
        name=ds_data.pop("name", "default"),
        type=ds_data.pop("type", "duckdb"),
        config=ds_data,
    )

    return Config(
        datasource=datasource,
        cache=_section(data, "cache", CacheConfig),
        scope=_section(data, "scope", ScopeConfig),
        logging=_section(data, "logging", LoggingConfig),
        attributes=_candidate_lists(data, "attributes", dotted=True),
        tables=_candidate_lists(data, "tables", dotted=False),
    )


def build_registry(config: Config) -> AttributeRegistry:
    """Default attribute registry with the configured overrides applied."""
    registry = AttributeRegistry()
    for key, candidates in config.attributes.items():
        registry.override(key, candidates)
    for logical_name, candidates in config.tables.items():
        registry.override_tables(logical_name, candidates)
    return registry
