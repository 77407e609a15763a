"""
Tests for structured logging helpers.
"""
import uuid

from fivec.core.logging import (
    add_correlation_id,
    add_request_context,
    add_service_context,
    correlation_context,
    get_correlation_id,
    get_logger,
    group_id_var,
    performance_timing,
    user_id_var,
)


class TestLoggingContext:

    def test_logger_initialization(self):
        logger = get_logger("test_logger")

        assert hasattr(logger, "info")
        assert hasattr(logger, "error")

    def test_correlation_context_sets_and_restores(self):
        correlation_id = str(uuid.uuid4())
        before = get_correlation_id()

        with correlation_context(correlation_id, group_id="g1", user_id="admin-1"):
            assert get_correlation_id() == correlation_id
            assert group_id_var.get() == "g1"
            assert user_id_var.get() == "admin-1"

        assert get_correlation_id() == before
        assert group_id_var.get() is None
        assert user_id_var.get() is None

    def test_processors_enrich_event(self):
        with correlation_context("corr-1", group_id="g1"):
            event = {"event": "Group approved"}
            event = add_correlation_id(None, "info", event)
            event = add_request_context(None, "info", event)
            event = add_service_context(None, "info", event)

        assert event["correlation_id"] == "corr-1"
        assert event["group_id"] == "g1"
        assert "user_id" not in event
        assert event["service"] == "fivec-orchestrator"

    def test_performance_timing_runs_block(self):
        ran = False

        with performance_timing("compute_status", group_id="g1"):
            ran = True

        assert ran is True
