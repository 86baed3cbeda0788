"""
Tests for the logging module.
"""

import structlog

from email_deal_sync.logging import (
    PipelineTimer,
    get_batch_id,
    get_email_id,
    logging_context,
)


class TestLoggingContext:
    """Test logging context management."""

    def test_logging_context_sets_values(self):
        """Test that logging context sets values correctly."""
        with logging_context(batch_id="batch_123", email_id="987"):
            assert get_batch_id() == "batch_123"
            assert get_email_id() == "987"

    def test_logging_context_restores_values(self):
        """Test that context is restored after exiting."""
        with logging_context(batch_id="batch_123", email_id="outer"):
            assert get_email_id() == "outer"

            # Nested context
            with logging_context(email_id="inner"):
                assert get_email_id() == "inner"
                assert get_batch_id() == "batch_123"

            # Should be restored
            assert get_email_id() == "outer"

        # Should be None outside
        assert get_email_id() is None
        assert get_batch_id() is None

    def test_restored_after_exception(self):
        try:
            with logging_context(batch_id="b1"):
                raise RuntimeError("boom")
        except RuntimeError:
            pass

        assert get_batch_id() is None

    def test_context_merged_into_events(self):
        with logging_context(batch_id="b1", email_id="e1"):
            event = structlog.contextvars.merge_contextvars(
                None, "info", {"event": "pipeline.parsed"}
            )
        assert event["batch_id"] == "b1"
        assert event["email_id"] == "e1"

    def test_explicit_email_id_wins(self):
        with logging_context(email_id="e1"):
            event = structlog.contextvars.merge_contextvars(
                None, "info", {"event": "x", "email_id": "e2"}
            )
        assert event["email_id"] == "e2"


class TestPipelineTimer:
    """Test pipeline timing functionality."""

    def test_timer_records_stages(self):
        """Test that timer records stage durations."""
        timer = PipelineTimer()

        with timer.stage("fetch"):
            pass

        with timer.stage("match"):
            pass

        assert timer.stages["fetch"] >= 0
        assert timer.stages["match"] >= 0

    def test_timer_records_failed_stage(self):
        timer = PipelineTimer()

        try:
            with timer.stage("commit"):
                raise RuntimeError("boom")
        except RuntimeError:
            pass

        assert "commit" in timer.stages

    def test_timer_summary(self):
        """Test summary dictionary format."""
        timer = PipelineTimer()
        timer.stages = {"fetch": 100.004, "match": 50.0}

        summary = timer.summary()

        assert summary["total_ms"] >= 0
        assert summary["stages"] == {"fetch": 100.0, "match": 50.0}
