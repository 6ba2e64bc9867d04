from datetime import datetime, timedelta, timezone

from kvstats.collector import StatsCollector
from kvstats.config import DetectionLimits
from kvstats.models import OperationEvent, OperationKind, Severity
from kvstats.patterns import (
    AntiPatternDetector,
    detect_hot_partitions,
    detect_inefficient_scans,
    detect_key_design_hints,
    detect_large_items,
    detect_missing_indexes,
    detect_read_before_write,
    detect_uniform_partition_keys,
    detect_unused_indexes,
)

BASE = datetime(2026, 1, 8, 12, 0, tzinfo=timezone.utc)


def _event(kind=OperationKind.GET, offset_ms=0, **kwargs):
    kwargs.setdefault("latency_ms", 10)
    return OperationEvent(kind=kind, timestamp=BASE + timedelta(milliseconds=offset_ms), **kwargs)


def test_hot_partition_flags_only_dominant_key():
    events = [_event(partition_key="USER#hot") for _ in range(40)]
    events += [_event(partition_key=f"USER#{idx}") for idx in range(60)]

    reports = detect_hot_partitions(events)

    assert len(reports) == 1
    assert reports[0].partition_key == "USER#hot"
    assert reports[0].access_count == 40
    assert reports[0].percentage_of_total == 0.4


def test_hot_partition_falls_back_to_index_and_sorts_by_share():
    events = [_event(OperationKind.QUERY, index_name="GSI1", table_name="orders") for _ in range(6)]
    events += [_event(partition_key="A") for _ in range(3)]
    events += [_event(partition_key=f"K{idx}") for idx in range(11)]
    events += [_event()]  # no key and no index: not grouped

    reports = detect_hot_partitions(events)

    assert [report.partition_key for report in reports] == ["orders:GSI1", "A"]
    assert reports[0].percentage_of_total == 0.3


def test_hot_partition_empty_input():
    assert detect_hot_partitions([]) == []


def test_inefficient_scan_detection():
    events = [
        _event(OperationKind.SCAN, item_count=2, scanned_count=100, table_name="orders"),
        _event(OperationKind.SCAN, item_count=90, scanned_count=100, table_name="orders"),
        _event(OperationKind.SCAN, item_count=10, scanned_count=100, index_name="GSI2", table_name="orders"),
        _event(OperationKind.SCAN, item_count=0, scanned_count=0),
        _event(OperationKind.QUERY, item_count=1, scanned_count=100),
    ]

    reports = detect_inefficient_scans(events)

    assert [report.efficiency for report in reports] == [0.02, 0.1]
    assert reports[0].operation == "scan on orders"
    assert reports[1].operation == "scan on orders:GSI2"
    assert reports[0].returned_count == 2
    assert reports[0].scanned_count == 100


def test_unused_indexes_reports_stale_first():
    reference = BASE + timedelta(days=30)
    events = [
        _event(OperationKind.QUERY, index_name="GSI1", table_name="orders"),
        _event(OperationKind.QUERY, offset_ms=60_000, index_name="GSI1", table_name="orders"),
        _event(OperationKind.QUERY, offset_ms=86_400_000 * 5, index_name="GSI2", table_name="orders"),
        _event(OperationKind.QUERY, offset_ms=86_400_000 * 29, index_name="GSI3", table_name="orders"),
    ]

    reports = detect_unused_indexes(events, reference_time=reference)

    assert [report.index_name for report in reports] == ["orders:GSI1", "orders:GSI2"]
    assert reports[0].usage_count == 2
    assert reports[0].last_used == BASE + timedelta(minutes=1)


def test_unused_indexes_respects_configured_age():
    reference = BASE + timedelta(days=3)
    events = [_event(OperationKind.QUERY, index_name="GSI1")]

    assert detect_unused_indexes(events, reference_time=reference) == []
    limits = DetectionLimits(unused_index_age=timedelta(days=1))
    assert len(detect_unused_indexes(events, limits, reference_time=reference)) == 1


def test_key_design_hint_needs_more_than_ten_index_operations():
    ten = [_event(OperationKind.QUERY, index_name="GSI1") for _ in range(10)]
    assert detect_key_design_hints(ten) == []

    eleven = ten + [_event(OperationKind.QUERY, index_name="GSI1")]
    hints = detect_key_design_hints(eleven)

    assert len(hints) == 1
    assert hints[0].severity == Severity.INFO
    assert "default:GSI1" in hints[0].message


def test_large_items_severity():
    info_only = [_event(item_size_bytes=120 * 1024), _event(item_size_bytes=1024)]
    [finding] = detect_large_items(info_only)
    assert finding.severity == Severity.INFO
    assert finding.message.startswith("1 operations")

    with_huge = info_only + [_event(item_size_bytes=400 * 1024)]
    [finding] = detect_large_items(with_huge)
    assert finding.severity == Severity.WARNING
    assert "avg: 260.0KB" in finding.details

    assert detect_large_items([_event(item_size_bytes=1024)]) == []


def test_missing_indexes_requires_frequent_scans():
    ten_scans = [_event(OperationKind.SCAN, table_name="orders") for _ in range(10)]
    assert detect_missing_indexes(ten_scans) == []

    scans = ten_scans + [_event(OperationKind.SCAN, table_name="orders")]
    scans += [_event(OperationKind.SCAN, table_name="users") for _ in range(3)]
    findings = detect_missing_indexes(scans)

    assert len(findings) == 1
    assert findings[0].message == "Frequent scans detected on orders"
    assert findings[0].severity == Severity.WARNING


def test_read_before_write_on_same_key():
    events = []
    for idx in range(5):
        events.append(_event(OperationKind.GET, idx * 10_000, partition_key="K"))
        events.append(_event(OperationKind.PUT, idx * 10_000 + 500, partition_key="K"))

    findings = detect_read_before_write(events)

    assert len(findings) == 1
    assert "'K'" in findings[0].details
    assert "Detected 5 instances" in findings[0].details


def test_read_before_write_ignores_different_keys():
    events = []
    for idx in range(5):
        events.append(_event(OperationKind.GET, idx * 10_000, partition_key="K1"))
        events.append(_event(OperationKind.PUT, idx * 10_000 + 500, partition_key="K2"))

    assert detect_read_before_write(events) == []


def test_read_before_write_uses_sort_key_and_window():
    events = []
    for idx in range(3):
        events.append(_event(OperationKind.GET, idx * 60_000, partition_key="U", sort_key="P"))
        events.append(_event(OperationKind.PUT, idx * 60_000 + 4_000, partition_key="U", sort_key="P"))
    # Write outside the window and a write before the read do not count.
    events.append(_event(OperationKind.GET, 500_000, partition_key="U", sort_key="P"))
    events.append(_event(OperationKind.PUT, 506_000, partition_key="U", sort_key="P"))
    events.append(_event(OperationKind.PUT, 599_000, partition_key="U", sort_key="P"))
    events.append(_event(OperationKind.GET, 600_000, partition_key="U", sort_key="P"))

    findings = detect_read_before_write(events)

    assert len(findings) == 1
    assert "Detected 3 instances" in findings[0].details
    assert "'U#P'" in findings[0].details


def test_read_before_write_below_minimum():
    events = [
        _event(OperationKind.GET, 0, partition_key="K"),
        _event(OperationKind.PUT, 100, partition_key="K"),
        _event(OperationKind.GET, 10_000, partition_key="K"),
        _event(OperationKind.PUT, 10_100, partition_key="K"),
    ]

    assert detect_read_before_write(events) == []


def test_uniform_partition_keys_sequential_and_timestamp():
    sequential = [_event(OperationKind.PUT, partition_key=f"ORDER#{idx}") for idx in range(1, 26)]
    [finding] = detect_uniform_partition_keys(sequential)
    assert finding.message == "Sequential partition key pattern detected"

    dated = [
        _event(OperationKind.UPDATE, partition_key=(BASE + timedelta(days=idx * 3)).strftime("%Y-%m-%d"))
        for idx in range(25)
    ]
    messages = [finding.message for finding in detect_uniform_partition_keys(dated)]
    assert "Timestamp-based partition keys detected" in messages

    assert detect_uniform_partition_keys(sequential[:10]) == []


def test_detector_facade_uses_collector_buffer():
    collector = StatsCollector()
    for _ in range(5):
        collector.record(_event(partition_key="hot"))
    for idx in range(20):
        collector.record(_event(partition_key=f"cold{idx}"))
    for idx in range(4):
        collector.record(_event(OperationKind.GET, idx * 10_000, partition_key="K"))
        collector.record(_event(OperationKind.PUT, idx * 10_000 + 200, partition_key="K"))

    detector = AntiPatternDetector(collector)

    assert [report.partition_key for report in detector.detect_hot_partitions()] == ["K", "hot"]
    assert detector.detect_inefficient_scans() == []
    messages = [rec.message for rec in detector.generate_recommendations()]
    assert messages == ["Read-before-write pattern detected"]


def test_detectors_on_empty_collector_return_empty_lists():
    detector = AntiPatternDetector(StatsCollector())

    assert detector.detect_hot_partitions() == []
    assert detector.detect_inefficient_scans() == []
    assert detector.detect_unused_indexes() == []
    assert detector.detect_key_design_hints() == []
    assert detector.detect_large_items() == []
    assert detector.detect_missing_indexes() == []
    assert detector.detect_read_before_write() == []
    assert detector.detect_uniform_partition_keys() == []
    assert detector.generate_recommendations() == []


def test_generate_recommendations_lists_worst_first():
    collector = StatsCollector()
    for idx in range(11):
        collector.record(_event(OperationKind.QUERY, idx * 100, index_name="GSI1"))
    collector.record(_event(OperationKind.PUT, 5000, item_size_bytes=400 * 1024))

    findings = AntiPatternDetector(collector).generate_recommendations()

    assert [finding.severity for finding in findings] == [Severity.WARNING, Severity.INFO]
    assert findings[0].message == "1 operations with large items detected"
    assert findings[1].message == "Consider multi-attribute keys for default:GSI1"
