import json
from datetime import datetime, timedelta, timezone

from kvstats.collector import StatsCollector
from kvstats.models import HotPartitionReport, OperationEvent, OperationKind, ScanReport, Severity
from kvstats.report import build_report, hot_partition_recommendations, scan_recommendations

BASE = datetime(2026, 1, 8, 12, 0, tzinfo=timezone.utc)


def _event(kind=OperationKind.GET, offset_ms=0, **kwargs):
    kwargs.setdefault("latency_ms", 10)
    return OperationEvent(kind=kind, timestamp=BASE + timedelta(milliseconds=offset_ms), **kwargs)


def test_build_report_on_empty_collector():
    report = build_report(StatsCollector())

    assert report["stats"] == {"operations": {}, "access_patterns": {}}
    assert report["operation_count"] == 0
    assert report["hot_partitions"] == []
    assert report["recommendations"] == []
    assert report["capacity"]["recommended_mode"] == "on-demand"


def test_build_report_merges_findings_sorted_by_severity():
    collector = StatsCollector()
    for idx in range(5):
        collector.record(_event(OperationKind.GET, idx * 10_000, partition_key="CART#1"))
        collector.record(_event(OperationKind.PUT, idx * 10_000 + 400, partition_key="CART#1"))
    collector.record(
        _event(OperationKind.SCAN, 60_000, item_count=1, scanned_count=100, index_name="GSI1")
    )
    collector.record(_event(OperationKind.QUERY, 70_000, index_name="GSI1"))

    report = build_report(collector, reference_time=BASE + timedelta(days=30))

    assert report["operation_count"] == 12
    assert report["hot_partitions"][0]["partition_key"] == "CART#1"
    assert report["inefficient_scans"][0]["efficiency"] == 0.01
    assert report["unused_indexes"][0]["index_name"] == "default:GSI1"
    assert report["capacity"]["hours_observed"] == 1

    severities = [rec["severity"] for rec in report["recommendations"]]
    order = {"error": 0, "warning": 1, "info": 2}
    assert severities == sorted(severities, key=order.get)
    assert severities[0] == "error"

    messages = [rec["message"] for rec in report["recommendations"]]
    assert messages.count("Read-before-write pattern detected") == 1
    assert "Inefficient scan operation detected" in messages
    assert "Unused index detected: default:GSI1" in messages
    assert any(message.startswith("Consider ") and "capacity mode" in message for message in messages)

    json.dumps(report)


def test_hot_partition_severity_grades():
    reports = [
        HotPartitionReport("a", 60, 0.6, ""),
        HotPartitionReport("users:GSI1", 35, 0.35, ""),
        HotPartitionReport("c", 12, 0.12, ""),
    ]

    recs = hot_partition_recommendations(reports)

    assert [rec.severity for rec in recs] == [Severity.ERROR, Severity.WARNING, Severity.INFO]
    assert "multi-attribute composite keys" in recs[1].suggested_action
    assert "multi-attribute" not in recs[0].suggested_action


def test_scan_severity_grades():
    reports = [
        ScanReport("scan on t", 100, 1, 0.01, ""),
        ScanReport("scan on t", 100, 8, 0.08, ""),
        ScanReport("scan on t", 100, 15, 0.15, ""),
    ]

    recs = scan_recommendations(reports)

    assert [rec.severity for rec in recs] == [Severity.ERROR, Severity.WARNING, Severity.INFO]
    assert recs[0].affected_operations == ["scan on t"]
