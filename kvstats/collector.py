"""Sampling event collector with on-demand aggregation."""

import logging
import threading
from dataclasses import replace
from datetime import datetime
from random import Random
from typing import Dict, List, Optional

from .config import DetectionLimits, StatsConfig, Thresholds
from .models import OperationEvent, OperationKind, is_number

logger = logging.getLogger(__name__)


class StatsCollector:
    """
    Collects operation events and aggregates them on demand.

    The buffer is append-only between resets and is guarded by a single lock,
    so ``record`` may be called from any thread that completed an operation.
    Aggregates are recomputed from the buffer on every call.
    """

    def __init__(self, config: Optional[StatsConfig] = None, rng: Optional[Random] = None):
        self.config = config or StatsConfig()
        self._rng = rng or Random()
        self._operations: List[OperationEvent] = []
        self._lock = threading.Lock()

    def record(self, event: OperationEvent) -> None:
        """Admit ``event`` subject to sampling. Never raises."""
        if not self.config.enabled:
            return

        with self._lock:
            if self._rng.random() > self.config.sample_rate:
                return
            self._operations.append(_normalize(event))

    def stats(self) -> Dict:
        """Aggregate the buffer by operation kind and by access pattern."""
        operations = self.snapshot()

        by_kind: Dict[str, Dict] = {}
        latency_samples: Dict[str, int] = {}
        for op in operations:
            kind = _kind_label(op.kind)
            if kind not in by_kind:
                by_kind[kind] = {
                    "count": 0,
                    "total_latency_ms": 0.0,
                    "avg_latency_ms": 0.0,
                    "total_read_units": 0.0,
                    "total_write_units": 0.0,
                }
                latency_samples[kind] = 0

            kind_data = by_kind[kind]
            kind_data["count"] += 1
            if is_number(op.latency_ms):
                kind_data["total_latency_ms"] += op.latency_ms
                latency_samples[kind] += 1
            if is_number(op.read_units):
                kind_data["total_read_units"] += op.read_units
            if is_number(op.write_units):
                kind_data["total_write_units"] += op.write_units

        for kind, kind_data in by_kind.items():
            if latency_samples[kind]:
                kind_data["avg_latency_ms"] = kind_data["total_latency_ms"] / latency_samples[kind]

        by_pattern: Dict[str, Dict] = {}
        pattern_latency_samples: Dict[str, int] = {}
        for op in operations:
            if not op.access_pattern:
                continue
            if op.access_pattern not in by_pattern:
                by_pattern[op.access_pattern] = {
                    "count": 0,
                    "avg_latency_ms": 0.0,
                    "avg_items_returned": 0.0,
                }
                pattern_latency_samples[op.access_pattern] = 0

            pattern_data = by_pattern[op.access_pattern]
            previous = pattern_data["count"]
            pattern_data["count"] += 1
            count = pattern_data["count"]
            # running means, no per-pattern lists retained
            if is_number(op.latency_ms):
                samples = pattern_latency_samples[op.access_pattern]
                pattern_data["avg_latency_ms"] = (
                    pattern_data["avg_latency_ms"] * samples + op.latency_ms
                ) / (samples + 1)
                pattern_latency_samples[op.access_pattern] = samples + 1
            items = op.item_count if is_number(op.item_count) else 0
            pattern_data["avg_items_returned"] = (
                pattern_data["avg_items_returned"] * previous + items
            ) / count

        return {
            "operations": by_kind,
            "access_patterns": by_pattern,
        }

    def export(self) -> List[OperationEvent]:
        """Return a copy of every retained event in insertion order."""
        return [_copy(op) for op in self._snapshot()]

    def drain(self) -> List[OperationEvent]:
        """Export and reset in one step, so no event is lost in between."""
        with self._lock:
            drained = self._operations
            self._operations = []
        logger.debug("Drained %d operation events", len(drained))
        return drained

    def reset(self) -> None:
        with self._lock:
            dropped = len(self._operations)
            self._operations = []
        logger.debug("Reset collector, dropped %d operation events", dropped)

    def is_enabled(self) -> bool:
        return self.config.enabled

    def thresholds(self) -> Thresholds:
        return self.config.thresholds

    def limits(self) -> DetectionLimits:
        return self.config.limits

    def operation_count(self) -> int:
        with self._lock:
            return len(self._operations)

    def operations_in_range(self, start: datetime, end: datetime) -> List[OperationEvent]:
        """Events whose timestamp lies within ``[start, end]``."""
        start_ms = start.timestamp() * 1000
        end_ms = end.timestamp() * 1000
        return [op for op in self.snapshot() if start_ms <= op.epoch_ms <= end_ms]

    def operations_by_kind(self, kind: OperationKind) -> List[OperationEvent]:
        return [op for op in self.snapshot() if op.kind == kind]

    def operations_by_pattern(self, pattern_name: str) -> List[OperationEvent]:
        return [op for op in self.snapshot() if op.access_pattern == pattern_name]

    def snapshot(self) -> List[OperationEvent]:
        """Read-only view of the buffer for detectors; entries that are not events are left out."""
        return [op for op in self._snapshot() if isinstance(op, OperationEvent)]

    def _snapshot(self) -> List[OperationEvent]:
        with self._lock:
            return list(self._operations)


def _normalize(event: OperationEvent) -> OperationEvent:
    if not isinstance(event, OperationEvent):
        logger.debug("Admitting non-event entry of type %s as given", type(event).__name__)
        return event
    try:
        return replace(
            event,
            item_count=event.item_count if event.item_count is not None else 0,
            metadata=dict(event.metadata or {}),
        )
    except (TypeError, ValueError):
        # Not a well-formed event; keep it as given.
        return event


def _copy(event: OperationEvent) -> OperationEvent:
    if not isinstance(event, OperationEvent):
        return event
    try:
        return replace(event, metadata=dict(event.metadata or {}))
    except (TypeError, ValueError):
        return event


def _kind_label(kind) -> str:
    return kind.value if isinstance(kind, OperationKind) else str(kind)
