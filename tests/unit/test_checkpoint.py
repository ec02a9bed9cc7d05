"""Tests for the resumable checkpoint and post-phase cleanup."""

from __future__ import annotations

import pytest

from approval_gate.checkpoint import COMPLETED_KEY, REQUEST_KEY, run_cleanup
from approval_gate.exceptions import CheckpointError
from approval_gate.models import CloseReason


class TestApprovalCheckpoint:
    def test_load_without_save(self, checkpoint):
        assert checkpoint.load() is None
        assert checkpoint.is_completed() is False

    def test_save_then_load(self, checkpoint, store, sample_request):
        checkpoint.save(sample_request)
        assert checkpoint.load() == sample_request
        assert store.values[COMPLETED_KEY] == "false"

    def test_mark_completed(self, checkpoint, sample_request):
        checkpoint.save(sample_request)
        checkpoint.mark_completed()
        assert checkpoint.is_completed() is True

    def test_corrupt_state(self, checkpoint, store):
        store.values[REQUEST_KEY] = "{not json"
        with pytest.raises(CheckpointError):
            checkpoint.load()


class TestRunCleanup:
    def test_no_checkpoint_is_noop(self, tracker, checkpoint):
        run_cleanup(tracker, checkpoint)
        assert tracker.calls == []

    def test_closes_open_request_as_not_planned(self, tracker, checkpoint, sample_request):
        checkpoint.save(sample_request)
        run_cleanup(tracker, checkpoint)
        assert tracker.calls == [("close_ticket", (42, CloseReason.NOT_PLANNED))]
        assert tracker.count("add_comment") == 0

    def test_finalized_request_is_left_alone(self, tracker, checkpoint, sample_request):
        checkpoint.save(sample_request)
        checkpoint.mark_completed()
        run_cleanup(tracker, checkpoint)
        assert tracker.calls == []

    def test_close_failure_is_swallowed(self, tracker, checkpoint, sample_request, caplog):
        tracker.fail("close_ticket")
        checkpoint.save(sample_request)
        run_cleanup(tracker, checkpoint)
        assert "Failed to close issue #42 during cleanup" in caplog.text
