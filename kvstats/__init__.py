"""kvstats - operation statistics and access-pattern recommendations for key-value stores."""

from .collector import StatsCollector
from .config import ConfigurationError, DetectionLimits, StatsConfig, Thresholds, load_config
from .models import (
    CapacityMode,
    CapacityRecommendation,
    Category,
    HotPartitionReport,
    IndexReport,
    OperationEvent,
    OperationKind,
    Recommendation,
    ScanReport,
    Severity,
)
from .patterns import AntiPatternDetector
from .recommendations import RecommendationEngine
from .report import build_report
from .service import StatsService

__all__ = [
    "StatsCollector",
    "StatsConfig",
    "Thresholds",
    "DetectionLimits",
    "ConfigurationError",
    "load_config",
    "OperationEvent",
    "OperationKind",
    "Recommendation",
    "Severity",
    "Category",
    "HotPartitionReport",
    "ScanReport",
    "IndexReport",
    "CapacityMode",
    "CapacityRecommendation",
    "AntiPatternDetector",
    "RecommendationEngine",
    "build_report",
    "StatsService",
]

__version__ = "0.1.0"
