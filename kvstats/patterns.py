"""Anti-pattern detectors that work on recorded operation events."""

import logging
import re
from bisect import bisect_right
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from .collector import StatsCollector
from .config import DetectionLimits
from .models import (
    Category,
    HotPartitionReport,
    IndexReport,
    OperationEvent,
    OperationKind,
    Recommendation,
    ScanReport,
    Severity,
    sort_by_severity,
)

logger = logging.getLogger(__name__)

_TIMESTAMP_KEY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}|^\d{10,13}$")
_NUMERIC_PART = re.compile(r"(\d+)")


def detect_hot_partitions(
    events: Iterable[OperationEvent],
    limits: Optional[DetectionLimits] = None,
) -> List[HotPartitionReport]:
    """Partitions receiving more than the configured share of traffic."""
    limits = limits or DetectionLimits()

    counts: Dict[str, int] = {}
    total = 0
    for event in events:
        if event.partition_key:
            key = event.partition_key
        elif event.index_name:
            key = _index_key(event)
        else:
            continue
        counts[key] = counts.get(key, 0) + 1
        total += 1

    if total == 0:
        return []

    reports = []
    for key, count in counts.items():
        share = count / total
        if share > limits.hot_partition_share:
            reports.append(
                HotPartitionReport(
                    partition_key=key,
                    access_count=count,
                    percentage_of_total=share,
                    recommendation=(
                        f"Partition key '{key}' receives {share * 100:.1f}% of all requests. "
                        "Consider write sharding or better key distribution to prevent throttling."
                    ),
                )
            )

    reports.sort(key=lambda report: report.percentage_of_total, reverse=True)
    return reports


def detect_inefficient_scans(
    events: Iterable[OperationEvent],
    limits: Optional[DetectionLimits] = None,
) -> List[ScanReport]:
    """Scans returning only a small fraction of the items they examined."""
    limits = limits or DetectionLimits()

    reports = []
    for event in events:
        if event.kind != OperationKind.SCAN:
            continue
        if not event.scanned_count or event.item_count is None:
            continue

        efficiency = event.item_count / event.scanned_count
        if efficiency < limits.inefficient_scan_efficiency:
            operation = f"scan on {event.table_name}"
            if event.index_name:
                operation += f":{event.index_name}"
            reports.append(
                ScanReport(
                    operation=operation,
                    scanned_count=event.scanned_count,
                    returned_count=event.item_count,
                    efficiency=efficiency,
                    recommendation=(
                        f"Scan operation has {efficiency * 100:.1f}% efficiency "
                        f"({event.item_count} returned / {event.scanned_count} scanned). "
                        "Consider using a query with an appropriate index or adding a filter expression."
                    ),
                )
            )

    reports.sort(key=lambda report: report.efficiency)
    return reports


def detect_unused_indexes(
    events: Iterable[OperationEvent],
    limits: Optional[DetectionLimits] = None,
    reference_time: Optional[datetime] = None,
) -> List[IndexReport]:
    """Indexes whose most recent use is older than the configured age."""
    limits = limits or DetectionLimits()
    if reference_time is None:
        reference_time = datetime.now(timezone.utc)
    cutoff_ms = reference_time.timestamp() * 1000 - limits.unused_index_age.total_seconds() * 1000

    usage: Dict[str, Dict] = {}
    for event in events:
        if not event.index_name:
            continue
        key = _index_key(event)
        if key not in usage:
            usage[key] = {"count": 0, "last_used": event}
        usage[key]["count"] += 1
        if event.epoch_ms > usage[key]["last_used"].epoch_ms:
            usage[key]["last_used"] = event

    stale = []
    for key, data in usage.items():
        last_event = data["last_used"]
        if last_event.epoch_ms < cutoff_ms:
            stale.append((last_event.epoch_ms, key, data["count"], last_event.timestamp))

    stale.sort(key=lambda item: item[0])
    age_days = limits.unused_index_age.total_seconds() / 86400
    return [
        IndexReport(
            index_name=key,
            usage_count=count,
            last_used=last_used,
            recommendation=(
                f"Index '{key}' has not been used in the last {age_days:g} days "
                f"(last used: {last_used.isoformat()}). "
                "Consider removing this index to reduce storage costs."
            ),
        )
        for _, key, count, last_used in stale
    ]


def detect_key_design_hints(
    events: Iterable[OperationEvent],
    limits: Optional[DetectionLimits] = None,
) -> List[Recommendation]:
    """Suggest multi-attribute keys for heavily used indexes."""
    limits = limits or DetectionLimits()

    counts: Dict[str, int] = {}
    for event in events:
        if event.index_name:
            key = _index_key(event)
            counts[key] = counts.get(key, 0) + 1

    recommendations = []
    for key, count in sorted(counts.items(), key=lambda item: item[1], reverse=True):
        if count > limits.key_design_min_index_operations:
            recommendations.append(
                Recommendation(
                    severity=Severity.INFO,
                    category=Category.BEST_PRACTICE,
                    message=f"Consider multi-attribute keys for {key}",
                    details=(
                        f"This index has {count} operations. If you are using concatenated strings "
                        'for keys (e.g., "TENANT#123#CUSTOMER#456"), consider migrating to '
                        "multi-attribute composite keys."
                    ),
                    suggested_action=(
                        "Use multi-attribute keys to preserve native data types, improve type "
                        "safety, and enable more flexible querying patterns."
                    ),
                    estimated_impact={
                        "performance_improvement": "Better type safety and query flexibility",
                    },
                )
            )
    return recommendations


def detect_large_items(
    events: Iterable[OperationEvent],
    limits: Optional[DetectionLimits] = None,
) -> List[Recommendation]:
    """One aggregate finding for items above the large-item size."""
    limits = limits or DetectionLimits()

    large = [
        event.item_size_bytes
        for event in events
        if event.item_size_bytes is not None and event.item_size_bytes > limits.large_item_bytes
    ]
    if not large:
        return []

    very_large = [size for size in large if size > limits.very_large_item_bytes]
    avg_size = sum(large) / len(large)
    large_kib = limits.large_item_bytes / 1024
    very_large_kib = limits.very_large_item_bytes / 1024

    return [
        Recommendation(
            severity=Severity.WARNING if very_large else Severity.INFO,
            category=Category.BEST_PRACTICE,
            message=f"{len(large)} operations with large items detected",
            details=(
                f"Found {len(large)} operations with items exceeding {large_kib:g}KB "
                f"(avg: {avg_size / 1024:.1f}KB). {len(very_large)} exceed {very_large_kib:g}KB."
            ),
            suggested_action=(
                "Consider storing large attributes in object storage and keeping only "
                "references in the table. This reduces costs and improves performance."
            ),
            estimated_impact={
                "cost_reduction": "Lower storage and capacity costs",
                "performance_improvement": "Faster operations with smaller items",
            },
        )
    ]


def detect_missing_indexes(
    events: Iterable[OperationEvent],
    limits: Optional[DetectionLimits] = None,
) -> List[Recommendation]:
    """Tables scanned often enough that a secondary index is likely missing."""
    limits = limits or DetectionLimits()

    scans = [event for event in events if event.kind == OperationKind.SCAN]
    if len(scans) <= limits.missing_index_min_total_scans:
        return []

    by_table: Dict[str, int] = {}
    for event in scans:
        by_table[event.table_name] = by_table.get(event.table_name, 0) + 1

    recommendations = []
    for table_name, count in sorted(by_table.items(), key=lambda item: item[1], reverse=True):
        if count > limits.missing_index_min_table_scans:
            recommendations.append(
                Recommendation(
                    severity=Severity.WARNING,
                    category=Category.PERFORMANCE,
                    message=f"Frequent scans detected on {table_name}",
                    details=(
                        f"Found {count} scan operations on {table_name}. "
                        "Scans are inefficient and expensive for large tables."
                    ),
                    suggested_action=(
                        "Consider adding a secondary index to support your query patterns. "
                        "Analyze your access patterns and create appropriate indexes."
                    ),
                    affected_operations=[OperationKind.SCAN.value],
                    estimated_impact={
                        "performance_improvement": "Significantly faster queries",
                        "cost_reduction": "Lower capacity consumption",
                    },
                )
            )
    return recommendations


def detect_read_before_write(
    events: Iterable[OperationEvent],
    limits: Optional[DetectionLimits] = None,
) -> List[Recommendation]:
    """
    Keys repeatedly read and then written shortly after.

    A read counts once when at least one write on the same key lands within
    the window after it. Writes per key are kept sorted, so each read is a
    binary search instead of a scan over every write.
    """
    limits = limits or DetectionLimits()
    window_ms = limits.read_before_write_window.total_seconds() * 1000

    reads: Dict[str, List[float]] = {}
    writes: Dict[str, List[float]] = {}
    for event in events:
        if not event.partition_key:
            continue
        if event.kind == OperationKind.GET:
            reads.setdefault(_item_key(event), []).append(event.epoch_ms)
        elif event.kind == OperationKind.PUT:
            writes.setdefault(_item_key(event), []).append(event.epoch_ms)

    matches: Dict[str, int] = {}
    for key, read_times in reads.items():
        write_times = writes.get(key)
        if not write_times:
            continue
        write_times.sort()
        for read_ms in read_times:
            position = bisect_right(write_times, read_ms)
            if position < len(write_times) and write_times[position] - read_ms <= window_ms:
                matches[key] = matches.get(key, 0) + 1

    recommendations = []
    for key, count in sorted(matches.items(), key=lambda item: item[1], reverse=True):
        if count >= limits.read_before_write_min_occurrences:
            recommendations.append(
                Recommendation(
                    severity=Severity.INFO,
                    category=Category.PERFORMANCE,
                    message="Read-before-write pattern detected",
                    details=(
                        f"Detected {count} instances of get followed by put on key '{key}'. "
                        "This suggests reading an item to modify it, then writing it back."
                    ),
                    suggested_action=(
                        "Use update() instead of get() + put(). The update operation modifies "
                        "items in place without requiring a read first, reducing latency and "
                        "consumed capacity."
                    ),
                    affected_operations=[OperationKind.GET.value, OperationKind.PUT.value],
                    estimated_impact={
                        "performance_improvement": "Reduced latency by eliminating read operation",
                        "cost_reduction": "50% reduction in operations (eliminate get)",
                    },
                )
            )
    return recommendations


def detect_uniform_partition_keys(
    events: Iterable[OperationEvent],
    limits: Optional[DetectionLimits] = None,
) -> List[Recommendation]:
    """Sequential or timestamp-shaped partition keys on the write path."""
    limits = limits or DetectionLimits()

    partition_keys = [
        event.partition_key
        for event in events
        if event.kind in (OperationKind.PUT, OperationKind.UPDATE) and event.partition_key
    ]
    if len(partition_keys) < limits.uniform_key_min_samples:
        return []

    recommendations = []
    write_kinds = [OperationKind.PUT.value, OperationKind.UPDATE.value]

    numeric_keys = []
    for key in partition_keys:
        match = _NUMERIC_PART.search(key)
        if match:
            numeric_keys.append(int(match.group(1)))

    if len(numeric_keys) >= limits.uniform_key_min_samples:
        numeric_keys.sort()
        sequential = sum(
            1 for previous, current in zip(numeric_keys, numeric_keys[1:]) if current == previous + 1
        )
        sequential_ratio = sequential / (len(numeric_keys) - 1)
        if sequential_ratio > limits.sequential_key_ratio:
            recommendations.append(
                Recommendation(
                    severity=Severity.WARNING,
                    category=Category.BEST_PRACTICE,
                    message="Sequential partition key pattern detected",
                    details=(
                        f"Detected {sequential_ratio * 100:.0f}% of partition keys follow a sequential "
                        "numeric pattern. Sequential keys can lead to hot partitions and uneven "
                        "data distribution."
                    ),
                    suggested_action=(
                        "Use a hash-based or random component in partition keys to ensure even "
                        "distribution across partitions."
                    ),
                    affected_operations=write_kinds,
                    estimated_impact={
                        "performance_improvement": "Better partition distribution reduces throttling",
                        "cost_reduction": "More efficient capacity utilization",
                    },
                )
            )

    timestamp_keys = [key for key in partition_keys if _TIMESTAMP_KEY_PATTERN.search(key)]
    if (
        len(timestamp_keys) >= limits.uniform_key_min_samples
        and len(timestamp_keys) / len(partition_keys) > limits.timestamp_key_ratio
    ):
        recommendations.append(
            Recommendation(
                severity=Severity.WARNING,
                category=Category.BEST_PRACTICE,
                message="Timestamp-based partition keys detected",
                details=(
                    f"Detected {len(timestamp_keys)} partition keys that appear to be timestamps. "
                    "All writes go to the current time period, creating hot partitions."
                ),
                suggested_action=(
                    "Keep timestamps in the sort key and use a distributed partition key "
                    "(user ID, category, or a shard prefix)."
                ),
                affected_operations=write_kinds,
                estimated_impact={
                    "performance_improvement": "Eliminate hot partition bottlenecks",
                    "cost_reduction": "Better capacity utilization and reduced throttling",
                },
            )
        )

    return recommendations


class AntiPatternDetector:
    """Runs the anti-pattern detectors against a collector's current buffer."""

    def __init__(self, collector: StatsCollector, limits: Optional[DetectionLimits] = None):
        self.collector = collector
        self.limits = limits or collector.limits()

    def detect_hot_partitions(self) -> List[HotPartitionReport]:
        return detect_hot_partitions(self.collector.snapshot(), self.limits)

    def detect_inefficient_scans(self) -> List[ScanReport]:
        return detect_inefficient_scans(self.collector.snapshot(), self.limits)

    def detect_unused_indexes(self, reference_time: Optional[datetime] = None) -> List[IndexReport]:
        return detect_unused_indexes(self.collector.snapshot(), self.limits, reference_time)

    def detect_key_design_hints(self) -> List[Recommendation]:
        return detect_key_design_hints(self.collector.snapshot(), self.limits)

    def detect_large_items(self) -> List[Recommendation]:
        return detect_large_items(self.collector.snapshot(), self.limits)

    def detect_missing_indexes(self) -> List[Recommendation]:
        return detect_missing_indexes(self.collector.snapshot(), self.limits)

    def detect_read_before_write(self) -> List[Recommendation]:
        return detect_read_before_write(self.collector.snapshot(), self.limits)

    def detect_uniform_partition_keys(self) -> List[Recommendation]:
        return detect_uniform_partition_keys(self.collector.snapshot(), self.limits)

    def generate_recommendations(self) -> List[Recommendation]:
        events = self.collector.snapshot()
        recommendations: List[Recommendation] = []
        recommendations.extend(detect_key_design_hints(events, self.limits))
        recommendations.extend(detect_large_items(events, self.limits))
        recommendations.extend(detect_missing_indexes(events, self.limits))
        recommendations.extend(detect_read_before_write(events, self.limits))
        recommendations.extend(detect_uniform_partition_keys(events, self.limits))
        logger.debug(
            "Anti-pattern detection over %d events produced %d recommendations",
            len(events),
            len(recommendations),
        )
        return sort_by_severity(recommendations)


def _index_key(event: OperationEvent) -> str:
    return f"{event.table_name}:{event.index_name}"


def _item_key(event: OperationEvent) -> str:
    if event.sort_key:
        return f"{event.partition_key}#{event.sort_key}"
    return event.partition_key
