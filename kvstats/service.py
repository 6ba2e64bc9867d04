"""Application service orchestrating repositories, the collector and the detectors."""

import logging
from datetime import datetime, timedelta, timezone
from random import Random
from typing import Dict, Optional

from .collector import StatsCollector
from .config import StatsConfig
from .ports import OperationEventRepository
from .report import build_report

logger = logging.getLogger(__name__)


class StatsService:
    """Facade that replays a stored period through a fresh collector and reports on it."""

    def __init__(
        self,
        repo: OperationEventRepository,
        config: Optional[StatsConfig] = None,
        rng: Optional[Random] = None,
    ):
        self.repo = repo
        self.config = config or StatsConfig()
        self.rng = rng

    def load_collector(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> StatsCollector:
        start, end = _normalize_period(start_date, end_date)
        events = self.repo.fetch_operation_events(start, end)

        collector = StatsCollector(self.config, rng=self.rng)
        for event in events:
            collector.record(event)
        logger.debug(
            "Loaded %d of %d events for %s..%s",
            collector.operation_count(),
            len(events),
            start.isoformat(),
            end.isoformat(),
        )
        return collector

    def get_report(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Dict:
        start, end = _normalize_period(start_date, end_date)
        collector = self.load_collector(start, end)
        report = build_report(collector, reference_time=end)
        report["period"] = {"start": start.isoformat(), "end": end.isoformat()}
        return report


def _normalize_period(
    start_date: Optional[datetime],
    end_date: Optional[datetime],
) -> tuple[datetime, datetime]:
    if end_date is None:
        end_date = datetime.now(timezone.utc)
    if start_date is None:
        start_date = end_date - timedelta(days=7)
    return start_date, end_date
