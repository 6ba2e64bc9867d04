"""Configuration objects for collection thresholds and detector heuristics."""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

from dotenv import load_dotenv


class ConfigurationError(ValueError):
    """Raised when a configuration value is invalid."""


@dataclass(frozen=True)
class Thresholds:
    """Per-operation thresholds used by the slow-operation and capacity checks."""

    slow_query_ms: float = 1000
    high_read_units: float = 100
    high_write_units: float = 100


@dataclass(frozen=True)
class DetectionLimits:
    """Heuristic cut-offs used by the detectors.

    The defaults reproduce the stock behavior; override individual fields to
    tune a detector without touching its code.
    """

    # Hot partitions
    hot_partition_share: float = 0.10
    hot_partition_warning_share: float = 0.30
    hot_partition_error_share: float = 0.50

    # Scans and indexes
    inefficient_scan_efficiency: float = 0.20
    scan_warning_efficiency: float = 0.10
    scan_error_efficiency: float = 0.05
    unused_index_age: timedelta = timedelta(days=7)
    key_design_min_index_operations: int = 10
    missing_index_min_total_scans: int = 10
    missing_index_min_table_scans: int = 5

    # Item sizes
    large_item_bytes: int = 100 * 1024
    very_large_item_bytes: int = 300 * 1024

    # Read-before-write
    read_before_write_window: timedelta = timedelta(seconds=5)
    read_before_write_min_occurrences: int = 3

    # Batching
    batch_window: timedelta = timedelta(seconds=1)
    batch_read_min_cluster: int = 5
    batch_write_min_cluster: int = 3
    read_batch_size: int = 100
    write_batch_size: int = 25

    # Projection
    projection_usage_rate: float = 0.5
    projection_min_unprojected: int = 10

    # Fetching to filter
    fetch_filter_efficiency: float = 0.5
    fetch_filter_warning_efficiency: float = 0.2
    fetch_filter_min_operations: int = 3

    # Capacity mode
    capacity_high_variability_cv: float = 0.5
    capacity_idle_ratio: float = 0.2
    capacity_steady_cv: float = 0.3
    capacity_steady_min_ops_per_hour: float = 10

    # Partition key distribution
    uniform_key_min_samples: int = 20
    sequential_key_ratio: float = 0.5
    timestamp_key_ratio: float = 0.5


@dataclass(frozen=True)
class StatsConfig:
    """Collector configuration. Invalid values fail at construction."""

    enabled: bool = True
    sample_rate: float = 1.0
    thresholds: Thresholds = field(default_factory=Thresholds)
    limits: DetectionLimits = field(default_factory=DetectionLimits)

    def __post_init__(self):
        if isinstance(self.sample_rate, bool) or not isinstance(self.sample_rate, (int, float)):
            raise ConfigurationError(f"sample_rate must be a number, got {self.sample_rate!r}")
        if not 0 <= self.sample_rate <= 1:
            raise ConfigurationError(f"sample_rate must be between 0 and 1, got {self.sample_rate}")


def load_config(dotenv_path: Optional[str] = None) -> StatsConfig:
    """
    Build a StatsConfig from environment variables / .env file.

    Recognized variables: KVSTATS_ENABLED, KVSTATS_SAMPLE_RATE,
    KVSTATS_SLOW_QUERY_MS, KVSTATS_HIGH_READ_UNITS, KVSTATS_HIGH_WRITE_UNITS.
    Unset variables fall back to the dataclass defaults.
    """
    load_dotenv(dotenv_path=dotenv_path)

    defaults = Thresholds()
    thresholds = Thresholds(
        slow_query_ms=_env_float("KVSTATS_SLOW_QUERY_MS", defaults.slow_query_ms),
        high_read_units=_env_float("KVSTATS_HIGH_READ_UNITS", defaults.high_read_units),
        high_write_units=_env_float("KVSTATS_HIGH_WRITE_UNITS", defaults.high_write_units),
    )

    return StatsConfig(
        enabled=_env_bool("KVSTATS_ENABLED", True),
        sample_rate=_env_float("KVSTATS_SAMPLE_RATE", 1.0),
        thresholds=thresholds,
    )


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")
