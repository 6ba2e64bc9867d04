"""Port definitions for loading recorded operation events from any source."""

from datetime import datetime
from typing import Protocol, Sequence

from .models import OperationEvent


class OperationEventRepository(Protocol):
    """Repository interface that adapters can implement for any backend."""

    def fetch_operation_events(
        self,
        start_date: datetime,
        end_date: datetime,
    ) -> Sequence[OperationEvent]:
        """Return operation events for a period, oldest first."""
