"""SQLAlchemy repository adapter for kvstats."""

import json
import logging
from datetime import datetime
from typing import Any, Dict, Sequence

from sqlalchemy import text
from sqlalchemy.orm import Session

from ..models import OperationEvent, OperationKind

logger = logging.getLogger(__name__)


class SQLAlchemyOperationRepository:
    """Fetches logged operations from a relational table and maps them to domain models."""

    def __init__(self, db: Session):
        self.db = db

    def fetch_operation_events(
        self,
        start_date: datetime,
        end_date: datetime,
    ) -> Sequence[OperationEvent]:
        rows = self.db.execute(
            text(
                """
                SELECT kind, occurred_at, latency_ms, read_units, write_units,
                       item_count, scanned_count, index_name, access_pattern,
                       partition_key, sort_key, item_size_bytes, used_projection,
                       table_name, metadata
                FROM operation_logs
                WHERE occurred_at >= :start_date AND occurred_at <= :end_date
                ORDER BY occurred_at
                """
            ),
            {"start_date": start_date, "end_date": end_date},
        ).fetchall()

        result: list[OperationEvent] = []
        for row in rows:
            try:
                kind = OperationKind(row.kind)
            except ValueError:
                logger.warning("Skipping operation log row with unknown kind %r", row.kind)
                continue

            result.append(
                OperationEvent(
                    kind=kind,
                    timestamp=_parse_timestamp(row.occurred_at),
                    latency_ms=float(row.latency_ms or 0),
                    read_units=row.read_units,
                    write_units=row.write_units,
                    item_count=row.item_count,
                    scanned_count=row.scanned_count,
                    index_name=row.index_name,
                    access_pattern=row.access_pattern,
                    partition_key=row.partition_key,
                    sort_key=row.sort_key,
                    item_size_bytes=row.item_size_bytes,
                    used_projection=None if row.used_projection is None else bool(row.used_projection),
                    table_name=row.table_name or "default",
                    metadata=_parse_metadata(row.metadata),
                )
            )
        return result


def _parse_timestamp(raw_value) -> datetime:
    # SQLite hands back text for DATETIME columns queried through text().
    if isinstance(raw_value, str):
        return datetime.fromisoformat(raw_value)
    return raw_value


def _parse_metadata(raw_metadata) -> Dict[str, Any]:
    if raw_metadata is None:
        return {}
    if isinstance(raw_metadata, str):
        try:
            raw_metadata = json.loads(raw_metadata)
        except json.JSONDecodeError:
            return {}
    if isinstance(raw_metadata, dict):
        return dict(raw_metadata)
    return {}
