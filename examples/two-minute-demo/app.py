"""Two-minute kvstats demo: FastAPI backend over synthetic table traffic."""

from datetime import datetime, timedelta, timezone
from random import Random

from fastapi import FastAPI

from kvstats import (
    AntiPatternDetector,
    OperationEvent,
    OperationKind,
    RecommendationEngine,
    StatsCollector,
    StatsConfig,
    Thresholds,
    build_report,
)

RNG = Random(42)

app = FastAPI(title="kvstats Two-Minute Demo", version="0.1.0")


def _build_demo_collector() -> StatsCollector:
    collector = StatsCollector(
        StatsConfig(thresholds=Thresholds(slow_query_ms=250)),
        rng=Random(7),
    )
    now = datetime.now(timezone.utc)
    start = now - timedelta(hours=6)

    # Steady profile reads with one celebrity user taking a large share.
    for idx in range(600):
        user = "USER#celebrity" if idx % 4 == 0 else f"USER#{RNG.randint(1, 400)}"
        collector.record(
            OperationEvent(
                kind=OperationKind.GET,
                timestamp=start + timedelta(seconds=idx * 36),
                latency_ms=max(2.0, RNG.gauss(12, 4)),
                read_units=1,
                item_count=1,
                partition_key=user,
                sort_key="PROFILE",
                access_pattern="getUserProfile",
                item_size_bytes=RNG.randint(400, 4000),
                used_projection=idx % 5 == 0,
                table_name="users",
            )
        )

    # Order lookups that filter most of what they read.
    for idx in range(40):
        scanned = RNG.randint(80, 120)
        collector.record(
            OperationEvent(
                kind=OperationKind.QUERY,
                timestamp=start + timedelta(minutes=idx * 9),
                latency_ms=max(5.0, RNG.gauss(40, 10)),
                read_units=scanned / 4,
                item_count=RNG.randint(2, 10),
                scanned_count=scanned,
                index_name="GSI1",
                access_pattern="ordersByStatus",
                partition_key=f"STATUS#{RNG.choice(['open', 'shipped'])}",
                table_name="orders",
            )
        )

    # Nightly report scans.
    for idx in range(12):
        collector.record(
            OperationEvent(
                kind=OperationKind.SCAN,
                timestamp=start + timedelta(minutes=idx * 30),
                latency_ms=max(100.0, RNG.gauss(400, 80)),
                read_units=RNG.randint(80, 160),
                item_count=RNG.randint(1, 8),
                scanned_count=1000,
                table_name="orders",
            )
        )

    # Cart checkout: read then write back the same item.
    for idx in range(6):
        at = start + timedelta(minutes=idx * 20)
        key = "CART#42"
        collector.record(
            OperationEvent(
                kind=OperationKind.GET,
                timestamp=at,
                latency_ms=8,
                item_count=1,
                partition_key=key,
                table_name="carts",
            )
        )
        collector.record(
            OperationEvent(
                kind=OperationKind.PUT,
                timestamp=at + timedelta(milliseconds=300),
                latency_ms=11,
                write_units=2,
                partition_key=key,
                item_size_bytes=150 * 1024 if idx == 0 else 2048,
                table_name="carts",
            )
        )

    return collector


COLLECTOR = _build_demo_collector()


@app.get("/health")
def health() -> dict:
    return {"status": "ok", "demo": "kvstats-two-minute"}


@app.get("/api/stats")
def stats() -> dict:
    return COLLECTOR.stats()


@app.get("/api/anti-patterns")
def anti_patterns() -> dict:
    detector = AntiPatternDetector(COLLECTOR)
    return {
        "hot_partitions": [report.to_dict() for report in detector.detect_hot_partitions()],
        "inefficient_scans": [report.to_dict() for report in detector.detect_inefficient_scans()],
        "recommendations": [rec.to_dict() for rec in detector.generate_recommendations()],
    }


@app.get("/api/recommendations")
def recommendations() -> dict:
    engine = RecommendationEngine(COLLECTOR)
    return {
        "recommendations": [rec.to_dict() for rec in engine.recommend()],
        "capacity": engine.suggest_capacity_mode().to_dict(),
    }


@app.get("/api/report")
def report() -> dict:
    return build_report(COLLECTOR)
