"""Tests for the action dispatcher."""

from unittest.mock import MagicMock

import pytest

from gittree.errors import BackendMutationFailed, DispatcherBusy, FailureReason
from gittree.git_backend.actions import ActionKind, ActionRequest
from gittree.ui.dispatcher import ActionDispatcher

CHECKOUT = ActionRequest(ActionKind.CHECKOUT, "a" * 40)
REVERT = ActionRequest(ActionKind.REVERT, "b" * 40)


class TestActionDispatcher:
    """One mutation at a time, outcomes delivered through the callback."""

    def test_success(self, inline_runner):
        backend = MagicMock()
        backend.perform.return_value = "Checked out aaaaaaa"
        results = []
        dispatcher = ActionDispatcher(backend, inline_runner)

        dispatcher.submit(CHECKOUT, results.append)

        backend.perform.assert_called_once_with(CHECKOUT)
        assert results[0].succeeded
        assert results[0].message == "Checked out aaaaaaa"
        # Busy until the UI loop acknowledges the result
        assert dispatcher.busy
        dispatcher.complete(CHECKOUT)
        assert not dispatcher.busy

    def test_second_submit_while_outstanding(self, deferred_runner):
        dispatcher = ActionDispatcher(MagicMock(), deferred_runner)
        dispatcher.submit(CHECKOUT, lambda result: None)

        with pytest.raises(DispatcherBusy):
            dispatcher.submit(REVERT, lambda result: None)
        assert dispatcher.outstanding == CHECKOUT

    def test_backend_failure(self, inline_runner):
        backend = MagicMock()
        backend.perform.side_effect = BackendMutationFailed(FailureReason.CONFLICT, "Conflicts in: a.txt")
        results = []
        ActionDispatcher(backend, inline_runner).submit(REVERT, results.append)

        assert not results[0].succeeded
        assert results[0].error.reason is FailureReason.CONFLICT

    def test_unexpected_error_becomes_failure(self, inline_runner):
        backend = MagicMock()
        backend.perform.side_effect = RuntimeError("boom")
        results = []
        ActionDispatcher(backend, inline_runner).submit(REVERT, results.append)

        assert results[0].error.reason is FailureReason.OTHER
        assert "boom" in str(results[0].error)

    def test_complete_ignores_other_requests(self, deferred_runner):
        dispatcher = ActionDispatcher(MagicMock(), deferred_runner)
        dispatcher.submit(CHECKOUT, lambda result: None)
        dispatcher.complete(REVERT)

        assert dispatcher.busy
