"""
Tests for the group matching workflow.
"""
import asyncio
from typing import List, Tuple

import pytest

from conftest import FakeExportCompute, FakeMatchCompute, make_group
from fivec.core.cancellation import CancellationToken
from fivec.core.exceptions import (
    CommandValidationError,
    ComputeError,
    ConflictError,
    ExportError,
    NotFoundError,
    OperationCancelledError,
)
from fivec.models.group import GroupStatus
from fivec.services.match_orchestrator import MatchOrchestrator


class RecordingSink:
    def __init__(self):
        self.messages: List[Tuple[str, str, str]] = []

    def info(self, title: str, description: str) -> None:
        self.messages.append(("info", title, description))

    def error(self, title: str, description: str) -> None:
        self.messages.append(("error", title, description))


class SlowMatchCompute:
    def __init__(self):
        self.started = asyncio.Event()

    async def compute(self, criteria_weights=None):
        self.started.set()
        await asyncio.sleep(10)


class TestMatchOrchestrator:
    """Test cases for MatchOrchestrator."""

    @pytest.fixture
    def sink(self):
        return RecordingSink()

    @pytest.fixture
    def orchestrator(self, store, dispatcher, gateways, sink):
        return MatchOrchestrator(store, dispatcher, gateways, sink=sink)

    @pytest.mark.asyncio
    async def test_generate_matches(self, orchestrator, match_compute, sink):
        result = await orchestrator.generate_matches({"location": 2.0, "interests": 1.0})

        assert result.groups_created == 4
        assert result.members_matched == 16
        assert match_compute.calls == [{"location": 2.0, "interests": 1.0}]
        assert sink.messages[-1] == (
            "info",
            "Matches generated",
            "Generated 4 potential groups with 16 members.",
        )

    @pytest.mark.asyncio
    async def test_generate_matches_service_failure(self, orchestrator, gateways, sink):
        gateways.match_compute = FakeMatchCompute(
            error=ComputeError("Match Service", "Request timeout after 120 seconds")
        )

        with pytest.raises(ComputeError):
            await orchestrator.generate_matches()

        assert sink.messages[-1][0] == "error"
        assert "timeout" in sink.messages[-1][2]

    @pytest.mark.asyncio
    async def test_generate_matches_wraps_unexpected_errors(self, orchestrator, gateways):
        gateways.match_compute = FakeMatchCompute(error=ValueError("bad payload"))

        with pytest.raises(ComputeError) as exc_info:
            await orchestrator.generate_matches()

        assert exc_info.value.service_name == "Match Service"

    @pytest.mark.asyncio
    async def test_generate_matches_rejects_negative_weights(self, orchestrator, match_compute):
        with pytest.raises(CommandValidationError):
            await orchestrator.generate_matches({"location": -1.0})

        assert match_compute.calls == []

    @pytest.mark.asyncio
    async def test_generate_matches_cancelled_in_flight(self, orchestrator, gateways):
        slow = SlowMatchCompute()
        gateways.match_compute = slow
        token = CancellationToken()

        async def cancel_when_started():
            await slow.started.wait()
            token.cancel("admin navigated away")

        canceller = asyncio.create_task(cancel_when_started())
        with pytest.raises(OperationCancelledError):
            await orchestrator.generate_matches(cancel_token=token)
        await canceller

    @pytest.mark.asyncio
    async def test_approve_pending_group(self, orchestrator, store, sink):
        store.add_group(make_group("g1", status=GroupStatus.PENDING))

        await orchestrator.approve_group("g1", "admin-1")

        assert store.groups["g1"].status == GroupStatus.APPROVED
        assert store.groups["g1"].approved_by == "admin-1"
        assert sink.messages[-1][1] == "Group approved"

    @pytest.mark.asyncio
    async def test_second_approval_conflicts(self, orchestrator, store):
        store.add_group(make_group("g1", status=GroupStatus.PENDING))
        await orchestrator.approve_group("g1", "admin-1")

        with pytest.raises(ConflictError) as exc_info:
            await orchestrator.approve_group("g1", "admin-2")

        assert exc_info.value.current_status == "approved"
        assert store.groups["g1"].approved_by == "admin-1"

    @pytest.mark.asyncio
    async def test_concurrent_approvals_only_one_wins(self, orchestrator, store):
        store.add_group(make_group("g1", status=GroupStatus.PENDING))

        outcomes = await asyncio.gather(
            orchestrator.approve_group("g1", "admin-1"),
            orchestrator.approve_group("g1", "admin-2"),
            return_exceptions=True,
        )

        assert sum(1 for o in outcomes if o is None) == 1
        assert sum(1 for o in outcomes if isinstance(o, ConflictError)) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [GroupStatus.DRAFT, GroupStatus.ACTIVE, GroupStatus.FULL])
    async def test_approve_requires_pending(self, orchestrator, store, status):
        store.add_group(make_group("g1", status=status))

        with pytest.raises(ConflictError):
            await orchestrator.approve_group("g1", "admin-1")

        assert store.groups["g1"].status == status

    @pytest.mark.asyncio
    async def test_approve_missing_group(self, orchestrator):
        with pytest.raises(NotFoundError):
            await orchestrator.approve_group("nope", "admin-1")

    @pytest.mark.asyncio
    async def test_export_pdf(self, orchestrator, export_compute):
        payload = await orchestrator.export_groups("PDF", ["g1", "g2"])

        assert payload.format == "pdf"
        assert payload.content == b"%PDF-1.4 groups"
        assert payload.filename == "groups.pdf"
        assert payload.media_type == "application/pdf"
        assert export_compute.calls == [("pdf", ["g1", "g2"])]

    @pytest.mark.asyncio
    async def test_export_excel_filename(self, orchestrator):
        payload = await orchestrator.export_groups("excel")

        assert payload.filename == "groups.xlsx"

    @pytest.mark.asyncio
    async def test_export_unknown_format(self, orchestrator, export_compute):
        with pytest.raises(CommandValidationError):
            await orchestrator.export_groups("csv")

        assert export_compute.calls == []

    @pytest.mark.asyncio
    async def test_export_failure_is_export_error(self, orchestrator, gateways):
        gateways.export_compute = FakeExportCompute(error=ComputeError("Export Service", "HTTP 500"))

        with pytest.raises(ExportError):
            await orchestrator.export_groups("pdf")

    @pytest.mark.asyncio
    async def test_export_cancelled_before_start(self, orchestrator, export_compute):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationCancelledError):
            await orchestrator.export_groups("pdf", cancel_token=token)

        assert export_compute.calls == []

    @pytest.mark.asyncio
    async def test_notify_groups_delegates_to_dispatcher(self, orchestrator, store, sink):
        store.add_group(make_group("g1", member_count=2))
        store.add_group(make_group("g2", member_count=3))

        result = await orchestrator.notify_groups(["g1", "g2"])

        assert result.emails_sent == 5
        assert result.groups_processed == 2
        assert sink.messages[-1][2] == "Sent notifications to 5 members across 2 groups."

    @pytest.mark.asyncio
    async def test_full_workflow(self, orchestrator, store):
        """generate -> approve -> export -> notify, each step caller-invoked."""
        store.add_group(make_group("g1", member_count=4, status=GroupStatus.PENDING))

        await orchestrator.generate_matches()
        await orchestrator.approve_group("g1", "admin-1")
        payload = await orchestrator.export_groups("pdf", ["g1"])
        result = await orchestrator.notify_groups(["g1"])

        assert payload.content
        assert result.emails_sent == 4
        assert store.groups["g1"].status == GroupStatus.ACTIVE
