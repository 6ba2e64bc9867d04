"""Opportunity and cost recommendations derived from recorded operations."""

import logging
from math import ceil, floor, sqrt
from typing import Dict, Iterable, List, Optional, Sequence

from .collector import StatsCollector
from .config import DetectionLimits, Thresholds
from .models import (
    CapacityMode,
    CapacityRecommendation,
    Category,
    OperationEvent,
    OperationKind,
    Recommendation,
    Severity,
    is_number,
    sort_by_severity,
)
from .patterns import detect_read_before_write

logger = logging.getLogger(__name__)

MS_PER_HOUR = 60 * 60 * 1000

READ_KINDS = (
    OperationKind.GET,
    OperationKind.QUERY,
    OperationKind.SCAN,
    OperationKind.BATCH_GET,
)
WRITE_KINDS = (OperationKind.PUT, OperationKind.DELETE)


def find_operation_cluster(
    sorted_events: Sequence[OperationEvent],
    window_ms: float,
    min_size: int,
) -> Optional[int]:
    """
    Size of the first cluster with at least ``min_size`` events.

    A cluster starts at some event and extends while the next event is within
    ``window_ms`` of that first event. Events must be sorted by time.
    """
    total = len(sorted_events)
    for start in range(total):
        start_ms = sorted_events[start].epoch_ms
        end = start
        while end < total - 1 and sorted_events[end + 1].epoch_ms - start_ms <= window_ms:
            end += 1

        size = end - start + 1
        if size >= min_size:
            return size
    return None


def find_all_operation_clusters(
    sorted_events: Sequence[OperationEvent],
    window_ms: float,
    min_size: int,
) -> List[List[OperationEvent]]:
    """Split time-sorted events into contiguous clusters, keeping those of ``min_size`` or more."""
    clusters: List[List[OperationEvent]] = []
    current: List[OperationEvent] = []

    for event in sorted_events:
        if current and event.epoch_ms - current[0].epoch_ms > window_ms:
            if len(current) >= min_size:
                clusters.append(current)
            current = []
        current.append(event)

    if len(current) >= min_size:
        clusters.append(current)
    return clusters


def detect_batch_opportunities(
    events: Iterable[OperationEvent],
    limits: Optional[DetectionLimits] = None,
) -> List[Recommendation]:
    """Bursts of single-item reads or writes that a batch call could replace."""
    limits = limits or DetectionLimits()
    window_ms = limits.batch_window.total_seconds() * 1000
    events_list = list(events)
    recommendations = []

    reads = _sorted_by_time(event for event in events_list if event.kind == OperationKind.GET)
    if len(reads) >= limits.batch_read_min_cluster:
        cluster = find_operation_cluster(reads, window_ms, limits.batch_read_min_cluster)
        if cluster:
            batches = ceil(cluster / limits.read_batch_size)
            recommendations.append(
                Recommendation(
                    severity=Severity.INFO,
                    category=Category.PERFORMANCE,
                    message="Batch get opportunity detected",
                    details=(
                        f"Detected {cluster} individual get operations within a {window_ms:g}ms "
                        "window. These could be combined into a single batch_get operation."
                    ),
                    suggested_action=(
                        "Use batch_get() to retrieve multiple items in a single request. This "
                        "reduces network overhead and can improve throughput."
                    ),
                    affected_operations=[OperationKind.GET.value],
                    estimated_impact={
                        "performance_improvement": f"Reduce {cluster} requests to {batches} batch requests",
                        "cost_reduction": "Lower network overhead and improved latency",
                    },
                )
            )

    writes = _sorted_by_time(event for event in events_list if event.kind in WRITE_KINDS)
    if len(writes) >= limits.batch_write_min_cluster:
        cluster = find_operation_cluster(writes, window_ms, limits.batch_write_min_cluster)
        if cluster:
            batches = ceil(cluster / limits.write_batch_size)
            put_count = sum(1 for event in writes if event.kind == OperationKind.PUT)
            delete_count = len(writes) - put_count
            recommendations.append(
                Recommendation(
                    severity=Severity.INFO,
                    category=Category.PERFORMANCE,
                    message="Batch write opportunity detected",
                    details=(
                        f"Detected {cluster} individual write operations ({put_count} puts, "
                        f"{delete_count} deletes) within a {window_ms:g}ms window."
                    ),
                    suggested_action=(
                        "Use batch_write() to write multiple items in a single request. This "
                        "reduces network overhead and can improve throughput."
                    ),
                    affected_operations=[OperationKind.PUT.value, OperationKind.DELETE.value],
                    estimated_impact={
                        "performance_improvement": f"Reduce {cluster} requests to {batches} batch requests",
                        "cost_reduction": "Lower network overhead and improved latency",
                    },
                )
            )

    return recommendations


def detect_sequential_writes(
    events: Iterable[OperationEvent],
    limits: Optional[DetectionLimits] = None,
) -> List[Recommendation]:
    """Every burst of put/delete calls large enough to batch."""
    limits = limits or DetectionLimits()
    window_ms = limits.batch_window.total_seconds() * 1000

    writes = _sorted_by_time(event for event in events if event.kind in WRITE_KINDS)
    if len(writes) < limits.batch_write_min_cluster:
        return []

    recommendations = []
    for cluster in find_all_operation_clusters(writes, window_ms, limits.batch_write_min_cluster):
        put_count = sum(1 for event in cluster if event.kind == OperationKind.PUT)
        delete_count = len(cluster) - put_count
        batches = ceil(len(cluster) / limits.write_batch_size)
        recommendations.append(
            Recommendation(
                severity=Severity.INFO,
                category=Category.PERFORMANCE,
                message="Sequential write operations detected",
                details=(
                    f"Detected {len(cluster)} sequential write operations ({put_count} puts, "
                    f"{delete_count} deletes) within a {window_ms:g}ms window."
                ),
                suggested_action="Use batch_write() to combine multiple put and delete operations into a single request.",
                affected_operations=[OperationKind.PUT.value, OperationKind.DELETE.value],
                estimated_impact={
                    "performance_improvement": f"Reduce {len(cluster)} requests to {batches} batch requests",
                    "cost_reduction": "Lower network overhead and improved latency",
                },
            )
        )
    return recommendations


def detect_projection_opportunities(
    events: Iterable[OperationEvent],
    limits: Optional[DetectionLimits] = None,
) -> List[Recommendation]:
    """Read kinds that mostly fetch whole items instead of projecting attributes."""
    limits = limits or DetectionLimits()

    by_kind: Dict[OperationKind, List[OperationEvent]] = {}
    for event in events:
        if event.kind in READ_KINDS:
            by_kind.setdefault(event.kind, []).append(event)

    recommendations = []
    for kind in READ_KINDS:
        kind_events = by_kind.get(kind)
        if not kind_events:
            continue

        unprojected = sum(1 for event in kind_events if not event.used_projection)
        usage_rate = 1 - unprojected / len(kind_events)
        if usage_rate < limits.projection_usage_rate and unprojected > limits.projection_min_unprojected:
            recommendations.append(
                Recommendation(
                    severity=Severity.INFO,
                    category=Category.PERFORMANCE,
                    message=f"Consider using projection expressions for {kind.value} operations",
                    details=(
                        f"Only {usage_rate * 100:.1f}% of {kind.value} operations use projection "
                        f"expressions. {unprojected} operations fetch full items."
                    ),
                    suggested_action=(
                        f"Add a projection to {kind.value} operations to fetch only needed "
                        "attributes. This reduces data transfer and can lower read capacity use."
                    ),
                    affected_operations=[kind.value],
                    estimated_impact={
                        "performance_improvement": "Reduced data transfer and read capacity consumption",
                        "cost_reduction": "Lower read capacity costs",
                    },
                )
            )
    return recommendations


def detect_fetching_to_filter(
    events: Iterable[OperationEvent],
    limits: Optional[DetectionLimits] = None,
) -> List[Recommendation]:
    """Query patterns that examine far more items than they return."""
    limits = limits or DetectionLimits()

    groups: Dict[str, List[OperationEvent]] = {}
    for event in events:
        if event.kind != OperationKind.QUERY or not event.scanned_count:
            continue
        groups.setdefault(event.access_pattern or "default", []).append(event)

    findings = []
    for group, group_events in groups.items():
        if len(group_events) < limits.fetch_filter_min_operations:
            continue

        efficiencies = [
            event.item_count / event.scanned_count if event.item_count is not None else 1.0
            for event in group_events
        ]
        avg_efficiency = sum(efficiencies) / len(efficiencies)
        low_count = sum(1 for value in efficiencies if value < limits.fetch_filter_efficiency)

        if avg_efficiency < limits.fetch_filter_efficiency:
            severity = (
                Severity.WARNING
                if avg_efficiency < limits.fetch_filter_warning_efficiency
                else Severity.INFO
            )
            findings.append(
                (
                    avg_efficiency,
                    Recommendation(
                        severity=severity,
                        category=Category.PERFORMANCE,
                        message=f"Potential client-side filtering detected in {group}",
                        details=(
                            f"Query operations have {avg_efficiency * 100:.1f}% efficiency "
                            f"({len(group_events)} operations, {low_count} with low efficiency)."
                        ),
                        suggested_action=(
                            "Add a filter expression to your query to filter items on the server "
                            "side. This reduces data transfer and consumed capacity."
                        ),
                        affected_operations=[OperationKind.QUERY.value],
                        estimated_impact={
                            "performance_improvement": "Reduced data transfer and faster response times",
                            "cost_reduction": f"Up to {(1 - avg_efficiency) * 100:.0f}% reduction in read capacity",
                        },
                    ),
                )
            )

    findings.sort(key=lambda item: item[0])
    return [recommendation for _, recommendation in findings]


def detect_slow_operations(
    events: Iterable[OperationEvent],
    thresholds: Optional[Thresholds] = None,
) -> List[Recommendation]:
    thresholds = thresholds or Thresholds()

    slow = [
        event.latency_ms
        for event in events
        if is_number(event.latency_ms) and event.latency_ms > thresholds.slow_query_ms
    ]
    if not slow:
        return []

    avg_latency = sum(slow) / len(slow)
    return [
        Recommendation(
            severity=Severity.WARNING,
            category=Category.PERFORMANCE,
            message=f"{len(slow)} slow operations detected",
            details=(
                f"Found {len(slow)} operations exceeding {thresholds.slow_query_ms:g}ms threshold "
                f"(avg: {avg_latency:.0f}ms)."
            ),
            suggested_action=(
                "Review slow operations for optimization opportunities: add indexes, use "
                "projections, or optimize key conditions."
            ),
            estimated_impact={"performance_improvement": "Improved response times"},
        )
    ]


def detect_high_capacity_usage(
    events: Iterable[OperationEvent],
    thresholds: Optional[Thresholds] = None,
) -> List[Recommendation]:
    thresholds = thresholds or Thresholds()
    events_list = list(events)

    high_read = [
        event for event in events_list
        if event.read_units is not None and event.read_units > thresholds.high_read_units
    ]
    high_write = [
        event for event in events_list
        if event.write_units is not None and event.write_units > thresholds.high_write_units
    ]

    recommendations = []
    if high_read:
        recommendations.append(
            Recommendation(
                severity=Severity.WARNING,
                category=Category.COST,
                message=f"{len(high_read)} operations with high read capacity consumption",
                details=(
                    f"Found {len(high_read)} operations exceeding "
                    f"{thresholds.high_read_units:g} read unit threshold."
                ),
                suggested_action=(
                    "Use projections to reduce data transfer, or consider caching frequently "
                    "accessed items."
                ),
                estimated_impact={"cost_reduction": "Lower read capacity costs"},
            )
        )
    if high_write:
        recommendations.append(
            Recommendation(
                severity=Severity.WARNING,
                category=Category.COST,
                message=f"{len(high_write)} operations with high write capacity consumption",
                details=(
                    f"Found {len(high_write)} operations exceeding "
                    f"{thresholds.high_write_units:g} write unit threshold."
                ),
                suggested_action=(
                    "Review item sizes and consider breaking large items into smaller ones, or "
                    "use batch operations."
                ),
                estimated_impact={"cost_reduction": "Lower write capacity costs"},
            )
        )
    return recommendations


def suggest_capacity_mode(
    events: Iterable[OperationEvent],
    limits: Optional[DetectionLimits] = None,
) -> CapacityRecommendation:
    """
    Recommend a capacity mode from the variability of hourly traffic.

    Events are binned by hour; the decision uses the coefficient of variation
    (population standard deviation over mean) of the per-hour counts, checked
    in order: no data, highly variable, idle periods, steady, otherwise.
    """
    limits = limits or DetectionLimits()

    by_hour: Dict[int, int] = {}
    for event in events:
        hour = floor(event.epoch_ms / MS_PER_HOUR)
        by_hour[hour] = by_hour.get(hour, 0) + 1

    if not by_hour:
        return CapacityRecommendation(
            current_mode=CapacityMode.UNKNOWN,
            recommended_mode=CapacityMode.ON_DEMAND,
            reasoning="No operations recorded. On-demand mode is recommended for unpredictable workloads.",
        )

    hour_counts = list(by_hour.values())
    avg_per_hour = sum(hour_counts) / len(hour_counts)
    min_per_hour = min(hour_counts)
    variance = sum((count - avg_per_hour) ** 2 for count in hour_counts) / len(hour_counts)
    cv = sqrt(variance) / avg_per_hour if avg_per_hour > 0 else 0.0

    if cv > limits.capacity_high_variability_cv:
        mode = CapacityMode.ON_DEMAND
        reasoning = (
            f"Traffic is highly variable (CV: {cv:.2f}). "
            "On-demand mode handles spiky workloads more cost-effectively."
        )
    elif min_per_hour < avg_per_hour * limits.capacity_idle_ratio:
        mode = CapacityMode.ON_DEMAND
        reasoning = (
            "Traffic has significant idle periods. "
            "On-demand mode avoids paying for unused provisioned capacity."
        )
    elif cv < limits.capacity_steady_cv and avg_per_hour > limits.capacity_steady_min_ops_per_hour:
        mode = CapacityMode.PROVISIONED
        reasoning = (
            f"Traffic is steady and predictable (CV: {cv:.2f}). "
            "Provisioned mode offers better cost efficiency."
        )
    else:
        mode = CapacityMode.ON_DEMAND
        reasoning = (
            "Traffic patterns are moderate. "
            "On-demand mode provides flexibility without capacity planning."
        )

    return CapacityRecommendation(
        current_mode=CapacityMode.UNKNOWN,
        recommended_mode=mode,
        reasoning=reasoning,
        coefficient_of_variation=cv,
        avg_ops_per_hour=avg_per_hour,
        min_ops_per_hour=min_per_hour,
        hours_observed=len(hour_counts),
    )


class RecommendationEngine:
    """Facade running every opportunity and cost check against a collector."""

    def __init__(self, collector: StatsCollector, limits: Optional[DetectionLimits] = None):
        self.collector = collector
        self.limits = limits or collector.limits()

    def recommend(self) -> List[Recommendation]:
        """All engine checks in one list, errors first, then warnings, then info."""
        events = self.collector.snapshot()
        thresholds = self.collector.thresholds()

        recommendations: List[Recommendation] = []
        recommendations.extend(detect_batch_opportunities(events, self.limits))
        recommendations.extend(detect_projection_opportunities(events, self.limits))
        recommendations.extend(detect_fetching_to_filter(events, self.limits))
        recommendations.extend(detect_sequential_writes(events, self.limits))
        recommendations.extend(detect_read_before_write(events, self.limits))
        recommendations.extend(detect_slow_operations(events, thresholds))
        recommendations.extend(detect_high_capacity_usage(events, thresholds))

        logger.debug(
            "Recommendation engine over %d events produced %d recommendations",
            len(events),
            len(recommendations),
        )
        return sort_by_severity(recommendations)

    def detect_batch_opportunities(self) -> List[Recommendation]:
        return detect_batch_opportunities(self.collector.snapshot(), self.limits)

    def detect_sequential_writes(self) -> List[Recommendation]:
        return detect_sequential_writes(self.collector.snapshot(), self.limits)

    def detect_projection_opportunities(self) -> List[Recommendation]:
        return detect_projection_opportunities(self.collector.snapshot(), self.limits)

    def detect_fetching_to_filter(self) -> List[Recommendation]:
        return detect_fetching_to_filter(self.collector.snapshot(), self.limits)

    def detect_read_before_write(self) -> List[Recommendation]:
        return detect_read_before_write(self.collector.snapshot(), self.limits)

    def detect_slow_operations(self) -> List[Recommendation]:
        return detect_slow_operations(self.collector.snapshot(), self.collector.thresholds())

    def detect_high_capacity_usage(self) -> List[Recommendation]:
        return detect_high_capacity_usage(self.collector.snapshot(), self.collector.thresholds())

    def suggest_capacity_mode(self) -> CapacityRecommendation:
        return suggest_capacity_mode(self.collector.snapshot(), self.limits)


def _sorted_by_time(events: Iterable[OperationEvent]) -> List[OperationEvent]:
    return sorted(events, key=lambda event: event.epoch_ms)
