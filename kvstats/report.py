"""Full analysis report combining statistics and every finding."""

from datetime import datetime
from typing import Dict, List, Optional

from .collector import StatsCollector
from .config import DetectionLimits
from .models import (
    Category,
    HotPartitionReport,
    IndexReport,
    Recommendation,
    ScanReport,
    Severity,
    sort_by_severity,
)
from .patterns import (
    detect_hot_partitions,
    detect_inefficient_scans,
    detect_key_design_hints,
    detect_large_items,
    detect_missing_indexes,
    detect_uniform_partition_keys,
    detect_unused_indexes,
)
from .recommendations import RecommendationEngine, suggest_capacity_mode


def build_report(collector: StatsCollector, reference_time: Optional[datetime] = None) -> Dict:
    """
    Build a JSON-ready report of the collector's current buffer.

    ``recommendations`` merges the detector and engine findings with
    severity-graded entries for hot partitions, inefficient scans, unused
    indexes and the capacity mode, ordered errors first.
    """
    events = collector.snapshot()
    limits = collector.limits()

    hot_partitions = detect_hot_partitions(events, limits)
    inefficient_scans = detect_inefficient_scans(events, limits)
    unused_indexes = detect_unused_indexes(events, limits, reference_time)
    capacity = suggest_capacity_mode(events, limits)

    recommendations: List[Recommendation] = []
    recommendations.extend(hot_partition_recommendations(hot_partitions, limits))
    recommendations.extend(scan_recommendations(inefficient_scans, limits))
    recommendations.extend(unused_index_recommendations(unused_indexes))
    if events:
        recommendations.append(
            Recommendation(
                severity=Severity.INFO,
                category=Category.CAPACITY,
                message=f"Consider {capacity.recommended_mode.value} capacity mode",
                details=capacity.reasoning,
                suggested_action=(
                    f"Switch to {capacity.recommended_mode.value} mode for better cost efficiency."
                ),
            )
        )
    # Read-before-write comes from the engine; the detector's copy is skipped.
    recommendations.extend(detect_key_design_hints(events, limits))
    recommendations.extend(detect_large_items(events, limits))
    recommendations.extend(detect_missing_indexes(events, limits))
    recommendations.extend(detect_uniform_partition_keys(events, limits))
    recommendations.extend(RecommendationEngine(collector, limits).recommend())

    return {
        "stats": collector.stats(),
        "operation_count": len(events),
        "hot_partitions": [report.to_dict() for report in hot_partitions],
        "inefficient_scans": [report.to_dict() for report in inefficient_scans],
        "unused_indexes": [report.to_dict() for report in unused_indexes],
        "capacity": capacity.to_dict(),
        "recommendations": [rec.to_dict() for rec in sort_by_severity(recommendations)],
    }


def hot_partition_recommendations(
    reports: List[HotPartitionReport],
    limits: Optional[DetectionLimits] = None,
) -> List[Recommendation]:
    limits = limits or DetectionLimits()

    recommendations = []
    for report in reports:
        if report.percentage_of_total > limits.hot_partition_error_share:
            severity = Severity.ERROR
        elif report.percentage_of_total > limits.hot_partition_warning_share:
            severity = Severity.WARNING
        else:
            severity = Severity.INFO

        action = "Consider implementing write sharding or redesigning your partition key for better distribution."
        is_index = ":" in report.partition_key and not report.partition_key.endswith(":primary")
        if is_index:
            action += (
                " For index partition keys, consider multi-attribute composite keys that add "
                "attributes such as tenant, region, or category for better distribution."
            )

        recommendations.append(
            Recommendation(
                severity=severity,
                category=Category.HOT_PARTITION,
                message=f"Hot partition detected: {report.partition_key}",
                details=(
                    f"This partition receives {report.percentage_of_total * 100:.1f}% of all "
                    f"traffic ({report.access_count} operations)."
                ),
                suggested_action=action,
                estimated_impact={"performance_improvement": "Reduced throttling and improved latency"},
            )
        )
    return recommendations


def scan_recommendations(
    reports: List[ScanReport],
    limits: Optional[DetectionLimits] = None,
) -> List[Recommendation]:
    limits = limits or DetectionLimits()

    recommendations = []
    for report in reports:
        if report.efficiency < limits.scan_error_efficiency:
            severity = Severity.ERROR
        elif report.efficiency < limits.scan_warning_efficiency:
            severity = Severity.WARNING
        else:
            severity = Severity.INFO

        recommendations.append(
            Recommendation(
                severity=severity,
                category=Category.PERFORMANCE,
                message="Inefficient scan operation detected",
                details=(
                    f"{report.operation} has {report.efficiency * 100:.1f}% efficiency "
                    f"({report.returned_count} items returned out of {report.scanned_count} scanned)."
                ),
                suggested_action=(
                    "Replace scan with a query using an appropriate index, or add a more "
                    "selective filter expression."
                ),
                affected_operations=[report.operation],
                estimated_impact={
                    "cost_reduction": "Up to 95% reduction in consumed capacity",
                    "performance_improvement": "Significantly faster query times",
                },
            )
        )
    return recommendations


def unused_index_recommendations(reports: List[IndexReport]) -> List[Recommendation]:
    return [
        Recommendation(
            severity=Severity.INFO,
            category=Category.COST,
            message=f"Unused index detected: {report.index_name}",
            details=report.recommendation,
            suggested_action=(
                "Consider removing this index to reduce storage costs and write capacity consumption."
            ),
            estimated_impact={"cost_reduction": "Reduced storage and write capacity costs"},
        )
        for report in reports
    ]
