"""
Tests for group health reporting.
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest

from fivec.models.five_c import Dimension, FiveCEvent, GroupConfig
from fivec.services.group_health import GroupHealthService

NOW = datetime(2025, 3, 1, tzinfo=timezone.utc)


class TestGroupHealthService:

    @pytest.fixture
    def service(self, store):
        return GroupHealthService(store)

    @pytest.mark.asyncio
    async def test_report_scores_and_suggests(self, service, store):
        store.add_events(
            "g1",
            [
                FiveCEvent(id="e1", dimension=Dimension.CONNECTION, occurred_at=NOW - timedelta(days=3)),
                FiveCEvent(id="e2", dimension=Dimension.CARE, occurred_at=NOW - timedelta(days=10)),
                FiveCEvent(id="e3", dimension=Dimension.CONTRIBUTION, occurred_at=NOW - timedelta(days=90)),
            ],
        )

        report = await service.get_group_health("g1", now=NOW)

        assert report.group_id == "g1"
        assert report.score == 40
        assert report.computed_at == NOW
        assert list(report.suggestions) == [
            Dimension.CONTRIBUTION,
            Dimension.CELEBRATION,
            Dimension.CONSISTENCY,
        ]
        assert report.suggestions[Dimension.CONSISTENCY].title == "Schedule your next gathering"

    @pytest.mark.asyncio
    async def test_cadence_config_is_applied(self, service):
        config = GroupConfig(last_meeting_date=NOW - timedelta(days=5), target_cadence_days=7)

        report = await service.get_group_health("g1", config=config, now=NOW)

        assert report.status.consistency.active is True
        assert report.score == 20
        assert Dimension.CONSISTENCY not in report.suggestions

    @pytest.mark.asyncio
    async def test_event_load_failure_scores_as_empty(self, service, store):
        with patch.object(store, "list_events", new_callable=AsyncMock, side_effect=RuntimeError("db down")):
            report = await service.get_group_health("g1", now=NOW)

        assert report.score == 0
        assert len(report.suggestions) == 5
