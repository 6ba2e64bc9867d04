"""Core domain models used by the statistics and recommendation engine."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class OperationKind(str, Enum):
    """Kind of data-access operation observed against the store."""

    GET = "get"
    PUT = "put"
    UPDATE = "update"
    DELETE = "delete"
    QUERY = "query"
    SCAN = "scan"
    BATCH_GET = "batch_get"
    BATCH_WRITE = "batch_write"
    TRANSACT_WRITE = "transact_write"
    TRANSACT_GET = "transact_get"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class Category(str, Enum):
    PERFORMANCE = "performance"
    COST = "cost"
    BEST_PRACTICE = "best-practice"
    HOT_PARTITION = "hot-partition"
    CAPACITY = "capacity"


class CapacityMode(str, Enum):
    PROVISIONED = "provisioned"
    ON_DEMAND = "on-demand"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class OperationEvent:
    """A single completed operation, as reported by the instrumented client.

    Optional numeric fields use ``None`` for "not reported" so that an absent
    figure is never confused with a real zero.
    """

    kind: OperationKind
    timestamp: datetime
    latency_ms: float
    read_units: Optional[float] = None
    write_units: Optional[float] = None
    item_count: Optional[int] = None
    scanned_count: Optional[int] = None
    index_name: Optional[str] = None
    access_pattern: Optional[str] = None
    partition_key: Optional[str] = None
    sort_key: Optional[str] = None
    item_size_bytes: Optional[int] = None
    used_projection: Optional[bool] = None
    table_name: str = "default"
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def epoch_ms(self) -> float:
        return self.timestamp.timestamp() * 1000

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["kind"] = _enum_value(self.kind)
        data["timestamp"] = self.timestamp.isoformat()
        return data


@dataclass(frozen=True)
class HotPartitionReport:
    partition_key: str
    access_count: int
    percentage_of_total: float
    recommendation: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ScanReport:
    operation: str
    scanned_count: int
    returned_count: int
    efficiency: float
    recommendation: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class IndexReport:
    index_name: str
    usage_count: int
    last_used: Optional[datetime]
    recommendation: str

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["last_used"] = self.last_used.isoformat() if self.last_used else None
        return data


@dataclass(frozen=True)
class Recommendation:
    """An actionable finding produced by a detector."""

    severity: Severity
    category: Category
    message: str
    details: str
    suggested_action: Optional[str] = None
    affected_operations: List[str] = field(default_factory=list)
    estimated_impact: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["severity"] = self.severity.value
        data["category"] = self.category.value
        return data


@dataclass(frozen=True)
class CapacityRecommendation:
    """Capacity-mode decision derived from hourly traffic variability."""

    current_mode: CapacityMode
    recommended_mode: CapacityMode
    reasoning: str
    coefficient_of_variation: float = 0.0
    avg_ops_per_hour: float = 0.0
    min_ops_per_hour: int = 0
    hours_observed: int = 0
    estimated_monthly_cost: Dict[str, float] = field(
        default_factory=lambda: {"current": 0.0, "recommended": 0.0, "savings": 0.0}
    )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["current_mode"] = self.current_mode.value
        data["recommended_mode"] = self.recommended_mode.value
        return data


SEVERITY_ORDER = {Severity.ERROR: 0, Severity.WARNING: 1, Severity.INFO: 2}


def sort_by_severity(recommendations: List[Recommendation]) -> List[Recommendation]:
    """Stable sort putting errors first, then warnings, then info."""
    return sorted(recommendations, key=lambda rec: SEVERITY_ORDER[rec.severity])


def is_number(value: Any) -> bool:
    """True for int and float values, excluding bools."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value
