"""Tests for spine_orm.execution: cancellation and deadlines."""

import threading
import time

import pytest

from spine_orm.errors import DeadlineExceededError, OperationCancelledError
from spine_orm.execution import ExecutionContext, background, new_context


class TestExecutionContext:
    def test_defaults(self):
        ctx = ExecutionContext()
        assert ctx.execution_id
        assert ctx.parent_execution_id is None
        assert ctx.deadline is None
        assert ctx.remaining() is None
        assert not ctx.done

    def test_unique_ids(self):
        assert new_context().execution_id != new_context().execution_id

    def test_check_passes(self):
        new_context().check()

    def test_cancel(self):
        ctx = new_context()
        ctx.cancel()
        assert ctx.cancelled
        assert ctx.done
        with pytest.raises(OperationCancelledError, match="cancelled") as exc_info:
            ctx.check()
        assert exc_info.value.context.execution_id == ctx.execution_id
        assert not exc_info.value.retryable

    def test_deadline(self):
        ctx = new_context(timeout=0.01)
        time.sleep(0.02)
        assert ctx.expired
        assert ctx.remaining() == 0.0
        with pytest.raises(DeadlineExceededError) as exc_info:
            ctx.check()
        assert exc_info.value.retryable

    def test_deadline_is_a_cancellation(self):
        ctx = new_context(timeout=0)
        with pytest.raises(OperationCancelledError):
            ctx.check()

    def test_background_never_expires(self):
        ctx = background()
        assert ctx.deadline is None
        assert not ctx.done


class TestDerivedContexts:
    def test_child_shares_cancellation(self):
        parent = new_context()
        child = parent.child()
        assert child.parent_execution_id == parent.execution_id
        parent.cancel()
        assert child.cancelled

    def test_cancelling_child_cancels_parent_event(self):
        """Children share the parent's event, so cancellation is visible both ways."""
        parent = new_context()
        parent.child().cancel()
        assert parent.cancelled

    def test_with_timeout_never_extends_parent(self):
        parent = new_context(timeout=1)
        child = parent.with_timeout(60)
        assert child.deadline == parent.deadline

    def test_with_timeout_tightens(self):
        parent = new_context(timeout=60)
        child = parent.with_timeout(1)
        assert child.deadline < parent.deadline

    def test_cancel_from_other_thread(self):
        ctx = new_context()
        thread = threading.Thread(target=ctx.cancel)
        thread.start()
        thread.join()
        assert ctx.cancelled
