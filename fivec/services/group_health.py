"""
Group health reporting on top of the pure 5C scoring functions.
"""
from datetime import datetime, timezone
from typing import Optional

import structlog

from fivec.core.logging import performance_timing
from fivec.models.five_c import GroupConfig, GroupHealthReport
from fivec.services.store import EventAccessor
from fivec.utils.five_c_scoring import (
    compute_status,
    health_score,
    inactive_dimensions,
    next_action,
)

logger = structlog.get_logger(__name__)


class GroupHealthService:
    """Loads a group's event log and scores it."""

    def __init__(self, events: EventAccessor):
        self.events = events

    async def get_group_health(
        self,
        group_id: str,
        config: Optional[GroupConfig] = None,
        now: Optional[datetime] = None,
    ) -> GroupHealthReport:
        """
        Score a group's 5C health.

        An event log that cannot be loaded scores as empty so the health
        surface always renders.
        """
        now = now or datetime.now(timezone.utc)

        try:
            events = await self.events.list_events(group_id)
        except Exception as e:
            logger.error("Failed to load 5C events, scoring as empty", group_id=group_id, error=str(e))
            events = []

        with performance_timing("compute_status", group_id=group_id):
            status = compute_status(events, config, now)
            score = health_score(status)

        logger.info("Group health computed", group_id=group_id, score=score, event_count=len(events))

        return GroupHealthReport(
            group_id=group_id,
            status=status,
            score=score,
            suggestions={dimension: next_action(dimension) for dimension in inactive_dimensions(status)},
            computed_at=now,
        )
