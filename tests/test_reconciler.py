"""Tests for optimistic status transitions."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
import requests

from services.reconciler import (
    NOT_FOUND,
    OK,
    ROLLED_BACK,
    SUPERSEDED,
    TRANSPORT,
    StatusReconciler,
)

TIMEOUT = 5


def status_of(board, objective_id, task_id):
    return board.find_task(objective_id, task_id).status


class GatedConfirm:
    """Confirm callable whose answers are held back until released per (task, status)."""

    def __init__(self):
        self.gates = {}
        self.answers = {}
        self.calls = []

    def hold(self, task_id, new_status, answer):
        gate = threading.Event()
        self.gates[(task_id, new_status)] = gate
        self.answers[(task_id, new_status)] = answer
        return gate

    def __call__(self, task_id, new_status, objective_id):
        self.calls.append((task_id, new_status, objective_id))
        gate = self.gates[(task_id, new_status)]
        answer = self.answers[(task_id, new_status)]
        assert gate.wait(TIMEOUT)
        if isinstance(answer, Exception):
            raise answer
        return answer


@pytest.fixture
def pool():
    executor = ThreadPoolExecutor(max_workers=4)
    yield executor
    executor.shutdown(wait=True)


class TestOptimisticApply:
    """The new status is visible before the store answers."""

    def test_applied_before_confirmation(self, board, pool):
        confirm = GatedConfirm()
        gate = confirm.hold("t1", "Done", {"success": True})
        reconciler = StatusReconciler(board, confirm, executor=pool)

        future = reconciler.transition("t1", "Done", "To Do", "o1")

        assert status_of(board, "o1", "t1") == "Done"
        assert not future.done()
        assert reconciler.pending() == 1
        gate.set()
        assert future.result(TIMEOUT).outcome == OK
        assert reconciler.pending() == 0

    def test_same_status_is_a_no_op(self, board, inline_executor):
        calls, notices = [], []
        reconciler = StatusReconciler(board, lambda *a: calls.append(a) or {"success": True},
                                      notify=lambda *n: notices.append(n), executor=inline_executor)
        before = board.objectives()

        assert reconciler.transition("t1", "To Do", "To Do", "o1") is None
        assert calls == []
        assert notices == []
        assert board.objectives() == before
        assert reconciler.pending() == 0

    def test_unknown_status_rejected(self, board, inline_executor):
        reconciler = StatusReconciler(board, lambda *a: {"success": True}, executor=inline_executor)

        with pytest.raises(ValueError):
            reconciler.transition("t1", "Archived", "To Do", "o1")
        assert status_of(board, "o1", "t1") == "To Do"

    def test_confirm_receives_task_status_and_objective(self, board, inline_executor):
        calls = []

        def confirm(task_id, new_status, objective_id):
            calls.append((task_id, new_status, objective_id))
            return {"success": True}

        StatusReconciler(board, confirm, executor=inline_executor).transition("t3", "Done", "Blocked", "o2")

        assert calls == [("t3", "Done", "o2")]


class TestSettlement:
    """What happens once the store answers."""

    def test_success_keeps_new_status(self, board, inline_executor):
        reconciler = StatusReconciler(board, lambda *a: {"success": True}, executor=inline_executor)

        result = reconciler.transition("t1", "In Progress", "To Do", "o1").result(TIMEOUT)

        assert result.ok
        assert result.reason is None
        assert status_of(board, "o1", "t1") == "In Progress"

    def test_refusal_rolls_back_only_that_task(self, board, two_objectives, inline_executor):
        before = {(o.id, t.id): t.status for o in two_objectives for t in o.tasks}
        reconciler = StatusReconciler(
            board, lambda *a: {"success": False, "error": "Task not found."}, executor=inline_executor)

        result = reconciler.transition("t2", "Done", "In Progress", "o1").result(TIMEOUT)

        assert result.outcome == ROLLED_BACK
        assert result.reason == NOT_FOUND
        assert result.error == "Task not found."
        after = {(o.id, t.id): t.status for o in board.objectives() for t in o.tasks}
        assert after == before

    def test_transport_error_rolls_back(self, board, inline_executor):
        def confirm(*args):
            raise requests.ConnectionError("connection refused")

        reconciler = StatusReconciler(board, confirm, executor=inline_executor)
        result = reconciler.transition("t4", "Blocked", "Done", "o2").result(TIMEOUT)

        assert result.outcome == ROLLED_BACK
        assert result.reason == TRANSPORT
        assert "connection refused" in result.error
        assert status_of(board, "o2", "t4") == "Done"

    def test_rollback_after_objective_vanished_is_silent(self, board, inline_executor):
        def confirm(*args):
            board.clear()
            return {"success": False}

        reconciler = StatusReconciler(board, confirm, executor=inline_executor)
        result = reconciler.transition("t1", "Done", "To Do", "o1").result(TIMEOUT)

        assert result.outcome == ROLLED_BACK
        assert board.objectives() == []

    def test_settles_through_dispatch(self, board, inline_executor):
        queued = []
        reconciler = StatusReconciler(board, lambda *a: {"success": False}, executor=inline_executor,
                                      dispatch=queued.append)

        future = reconciler.transition("t1", "Done", "To Do", "o1")

        assert not future.done()
        assert status_of(board, "o1", "t1") == "Done"
        queued.pop()()
        assert future.result(TIMEOUT).outcome == ROLLED_BACK
        assert status_of(board, "o1", "t1") == "To Do"


class TestIsolation:
    """Concurrent transitions on different tasks settle independently."""

    def test_out_of_order_answers_across_objectives(self, board, pool):
        confirm = GatedConfirm()
        gate_a = confirm.hold("t1", "Done", {"success": True})
        gate_b = confirm.hold("t3", "In Progress", {"success": False, "error": "Task not found."})
        reconciler = StatusReconciler(board, confirm, executor=pool)

        first = reconciler.transition("t1", "Done", "To Do", "o1")
        second = reconciler.transition("t3", "In Progress", "Blocked", "o2")
        assert status_of(board, "o1", "t1") == "Done"
        assert status_of(board, "o2", "t3") == "In Progress"

        # answer the second one first
        gate_b.set()
        assert second.result(TIMEOUT).outcome == ROLLED_BACK
        assert status_of(board, "o2", "t3") == "Blocked"
        assert status_of(board, "o1", "t1") == "Done"

        gate_a.set()
        assert first.result(TIMEOUT).outcome == OK
        assert status_of(board, "o1", "t1") == "Done"
        assert status_of(board, "o1", "t2") == "In Progress"
        assert status_of(board, "o2", "t4") == "Done"

    def test_two_tasks_in_one_objective(self, board, pool):
        confirm = GatedConfirm()
        gate_1 = confirm.hold("t1", "Blocked", requests.Timeout("slow"))
        gate_2 = confirm.hold("t2", "Done", {"success": True})
        reconciler = StatusReconciler(board, confirm, executor=pool)

        f1 = reconciler.transition("t1", "Blocked", "To Do", "o1")
        f2 = reconciler.transition("t2", "Done", "In Progress", "o1")
        gate_1.set()
        gate_2.set()

        assert f1.result(TIMEOUT).outcome == ROLLED_BACK
        assert f2.result(TIMEOUT).outcome == OK
        assert status_of(board, "o1", "t1") == "To Do"
        assert status_of(board, "o1", "t2") == "Done"


class TestSameTask:
    """Several moves on one task in flight at once."""

    def test_older_failure_is_superseded(self, board, pool):
        confirm = GatedConfirm()
        gate_old = confirm.hold("t1", "In Progress", {"success": False})
        gate_new = confirm.hold("t1", "Done", {"success": True})
        reconciler = StatusReconciler(board, confirm, executor=pool)

        old = reconciler.transition("t1", "In Progress", "To Do", "o1")
        new = reconciler.transition("t1", "Done", "In Progress", "o1")
        assert status_of(board, "o1", "t1") == "Done"

        gate_new.set()
        assert new.result(TIMEOUT).outcome == OK
        gate_old.set()
        assert old.result(TIMEOUT).outcome == SUPERSEDED
        assert status_of(board, "o1", "t1") == "Done"

    def test_latest_failure_rolls_back_to_its_own_previous(self, board, pool):
        confirm = GatedConfirm()
        gate_old = confirm.hold("t1", "In Progress", {"success": True})
        gate_new = confirm.hold("t1", "Done", {"success": False})
        reconciler = StatusReconciler(board, confirm, executor=pool)

        old = reconciler.transition("t1", "In Progress", "To Do", "o1")
        new = reconciler.transition("t1", "Done", "In Progress", "o1")
        gate_old.set()
        assert old.result(TIMEOUT).outcome == OK
        gate_new.set()

        assert new.result(TIMEOUT).outcome == ROLLED_BACK
        assert status_of(board, "o1", "t1") == "In Progress"
        assert reconciler.pending() == 0

    def test_both_fail_newest_answers_first(self, board, pool):
        """The older failure still rolls the task back to where it started."""
        confirm = GatedConfirm()
        gate_old = confirm.hold("t1", "In Progress", {"success": False})
        gate_new = confirm.hold("t1", "Done", {"success": False})
        reconciler = StatusReconciler(board, confirm, executor=pool)

        old = reconciler.transition("t1", "In Progress", "To Do", "o1")
        new = reconciler.transition("t1", "Done", "In Progress", "o1")
        assert reconciler.pending() == 2

        gate_new.set()
        assert new.result(TIMEOUT).outcome == ROLLED_BACK
        assert status_of(board, "o1", "t1") == "In Progress"
        assert reconciler.pending() == 1

        gate_old.set()
        assert old.result(TIMEOUT).outcome == ROLLED_BACK
        assert status_of(board, "o1", "t1") == "To Do"
        assert reconciler.pending() == 0

    def test_both_fail_oldest_answers_first(self, board, pool):
        confirm = GatedConfirm()
        gate_old = confirm.hold("t1", "In Progress", {"success": False})
        gate_new = confirm.hold("t1", "Done", requests.ConnectionError("down"))
        reconciler = StatusReconciler(board, confirm, executor=pool)

        old = reconciler.transition("t1", "In Progress", "To Do", "o1")
        new = reconciler.transition("t1", "Done", "In Progress", "o1")

        gate_old.set()
        assert old.result(TIMEOUT).outcome == SUPERSEDED
        assert status_of(board, "o1", "t1") == "Done"
        assert reconciler.pending() == 1

        gate_new.set()
        assert new.result(TIMEOUT).outcome == ROLLED_BACK
        assert status_of(board, "o1", "t1") == "To Do"
        assert reconciler.pending() == 0

    def test_pending_counts_every_move(self, board, pool):
        confirm = GatedConfirm()
        gates = [confirm.hold("t1", "In Progress", {"success": True}),
                 confirm.hold("t1", "Done", {"success": True}),
                 confirm.hold("t3", "Done", {"success": True})]
        reconciler = StatusReconciler(board, confirm, executor=pool)

        futures = [reconciler.transition("t1", "In Progress", "To Do", "o1"),
                   reconciler.transition("t1", "Done", "In Progress", "o1"),
                   reconciler.transition("t3", "Done", "Blocked", "o2")]
        assert reconciler.pending() == 3

        gates[1].set()
        futures[1].result(TIMEOUT)
        assert reconciler.pending() == 2

        gates[0].set()
        gates[2].set()
        assert all(f.result(TIMEOUT).ok for f in futures)
        assert reconciler.pending() == 0
        assert status_of(board, "o1", "t1") == "Done"


class TestNotifications:

    def test_success_notice(self, board, inline_executor):
        notices = []
        reconciler = StatusReconciler(board, lambda *a: {"success": True},
                                      notify=lambda *n: notices.append(n), executor=inline_executor)

        reconciler.transition("t1", "Blocked", "To Do", "o1").result(TIMEOUT)

        assert notices == [("Task Updated", "Task moved to Blocked.", False)]

    def test_refusal_notice(self, board, inline_executor):
        notices = []
        reconciler = StatusReconciler(board, lambda *a: {"success": False},
                                      notify=lambda *n: notices.append(n), executor=inline_executor)

        reconciler.transition("t1", "Blocked", "To Do", "o1").result(TIMEOUT)

        assert notices == [("Update Failed", "Could not update task status.", True)]

    def test_transport_notice(self, board, inline_executor):
        notices = []

        def confirm(*args):
            raise requests.ConnectionError("down")

        reconciler = StatusReconciler(board, confirm, notify=lambda *n: notices.append(n),
                                      executor=inline_executor)
        reconciler.transition("t1", "Blocked", "To Do", "o1").result(TIMEOUT)

        assert notices == [("Error", "An error occurred while updating task status.", True)]

    def test_broken_notifier_does_not_break_settlement(self, board, inline_executor):
        def notify(*args):
            raise RuntimeError("window closed")

        reconciler = StatusReconciler(board, lambda *a: {"success": False}, notify=notify,
                                      executor=inline_executor)
        result = reconciler.transition("t1", "Blocked", "To Do", "o1").result(TIMEOUT)

        assert result.outcome == ROLLED_BACK
        assert status_of(board, "o1", "t1") == "To Do"


class TestShutdown:

    def test_answers_after_shutdown_are_dropped(self, board, pool):
        confirm = GatedConfirm()
        gate = confirm.hold("t1", "Done", {"success": False})
        dispatched = []
        reconciler = StatusReconciler(board, confirm, executor=pool, dispatch=dispatched.append)

        future = reconciler.transition("t1", "Done", "To Do", "o1")
        reconciler.shutdown(wait=False)
        gate.set()
        pool.shutdown(wait=True)

        assert dispatched == []
        assert not future.done()
        assert status_of(board, "o1", "t1") == "Done"
