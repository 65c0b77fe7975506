"""Optimistic task status transitions.

A transition is applied to the BoardState right away, then confirmed
against the store on a worker thread. When the store refuses (or the call
blows up) the task goes back to the status it had before, and only that
task.

Several transitions on the same task can be in flight at once. Each one
gets a sequence number and stays registered until it settles. A failed
transition that still has a newer one in flight hands its previous status
down to that newer one and leaves the board alone (superseded); the newest
in-flight transition is the one that rolls the task back. A failure older
than a transition the store already accepted changes nothing.
"""
from __future__ import annotations
import itertools
import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from core.models import TASK_STATUSES
from services.state import BoardState

logger = logging.getLogger(__name__)

OK = "ok"
ROLLED_BACK = "rolled_back"
SUPERSEDED = "superseded"

NOT_FOUND = "not_found"
TRANSPORT = "transport"

# confirm(task_id, new_status, objective_id) -> {"success": bool, "error": str?}
Confirm = Callable[[str, str, str], Dict[str, Any]]
# notify(title, message, is_error)
Notify = Callable[[str, str, bool], None]
Dispatch = Callable[[Callable[[], None]], None]


@dataclass(frozen=True)
class TransitionResult:
    task_id: str
    objective_id: str
    new_status: str
    old_status: str
    outcome: str
    reason: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome == OK


@dataclass
class _InFlight:
    seq: int
    # status to restore if this move ends up being the one that rolls back
    restore: str


def _run_inline(fn: Callable[[], None]) -> None:
    fn()


class StatusReconciler:
    def __init__(self, state: BoardState, confirm: Confirm, notify: Optional[Notify] = None,
                 executor: Optional[Executor] = None, dispatch: Optional[Dispatch] = None):
        self.state = state
        self._confirm = confirm
        self.notify = notify
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=4, thread_name_prefix="status-confirm")
        self.dispatch = dispatch or _run_inline
        self._seq = itertools.count(1)
        self._inflight: Dict[Tuple[str, str], List[_InFlight]] = {}
        # highest accepted sequence per pair while moves on it are still in flight
        self._accepted: Dict[Tuple[str, str], int] = {}
        self._closed = False
        self._lock = threading.Lock()

    def transition(self, task_id: str, new_status: str, old_status: str,
                   objective_id: str) -> Optional["Future[TransitionResult]"]:
        """Move a task to new_status now and confirm it in the background.

        Returns None when there is nothing to do (same status), otherwise a
        Future that resolves to a TransitionResult once the store answered
        and the state was reconciled.
        """
        if new_status == old_status:
            return None
        if new_status not in TASK_STATUSES:
            raise ValueError(f"unknown task status: {new_status!r}")

        key = (objective_id, task_id)
        with self._lock:
            seq = next(self._seq)
            self._inflight.setdefault(key, []).append(_InFlight(seq, old_status))
            self.state.set_task_status(objective_id, task_id, new_status)
        logger.debug("task %s/%s -> %s (optimistic, seq=%d)", objective_id, task_id, new_status, seq)

        done: "Future[TransitionResult]" = Future()
        pending = self._executor.submit(self._confirm, task_id, new_status, objective_id)
        pending.add_done_callback(lambda f: self._deliver(f, done, key, seq, new_status, old_status))
        return done

    def pending(self) -> int:
        """Number of transitions still waiting on the store."""
        with self._lock:
            return sum(len(moves) for moves in self._inflight.values())

    def shutdown(self, wait: bool = True) -> None:
        # answers arriving after this point are dropped, the UI may be gone
        self._closed = True
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    # ---------- settlement ----------
    def _deliver(self, confirmation: Future, done: Future, key: Tuple[str, str], seq: int,
                 new_status: str, old_status: str) -> None:
        if self._closed:
            logger.debug("dropping answer for task %s/%s after shutdown", *key)
            return
        self.dispatch(lambda: self._settle(confirmation, done, key, seq, new_status, old_status))

    def _settle(self, confirmation: Future, done: Future, key: Tuple[str, str], seq: int,
                new_status: str, old_status: str) -> None:
        objective_id, task_id = key
        try:
            reason, error = self._read(confirmation)
            with self._lock:
                outcome, restore = self._resolve(key, seq, accepted=reason is None)
                if restore is not None:
                    # a lookup miss (objective reloaded, task gone) is fine here
                    self.state.set_task_status(objective_id, task_id, restore)

            if reason is None:
                self._emit("Task Updated", f"Task moved to {new_status}.", False)
            else:
                logger.info("task %s/%s -> %s failed (%s: %s), %s",
                            objective_id, task_id, new_status, reason, error, outcome)
                if reason == NOT_FOUND:
                    self._emit("Update Failed", "Could not update task status.", True)
                else:
                    self._emit("Error", "An error occurred while updating task status.", True)

            done.set_result(TransitionResult(task_id, objective_id, new_status, old_status,
                                             outcome, reason, error))
        except Exception as e:
            logger.exception("settling task %s/%s failed", objective_id, task_id)
            if not done.done():
                done.set_exception(e)

    def _resolve(self, key: Tuple[str, str], seq: int, accepted: bool) -> Tuple[str, Optional[str]]:
        """Unregister one move; returns (outcome, status to restore or None). Lock held."""
        moves = self._inflight.get(key, [])
        idx = next((i for i, m in enumerate(moves) if m.seq == seq), None)
        if idx is None:
            return (OK if accepted else SUPERSEDED), None
        move = moves.pop(idx)
        newer = moves[idx:]

        if accepted:
            outcome, restore = OK, None
            self._accepted[key] = max(self._accepted.get(key, 0), seq)
        elif self._accepted.get(key, 0) > seq:
            outcome, restore = SUPERSEDED, None
        elif newer:
            newer[0].restore = move.restore
            outcome, restore = SUPERSEDED, None
        else:
            outcome, restore = ROLLED_BACK, move.restore

        if not moves:
            del self._inflight[key]
            self._accepted.pop(key, None)
        return outcome, restore

    @staticmethod
    def _read(confirmation: Future) -> Tuple[Optional[str], Optional[str]]:
        try:
            response = confirmation.result()
        except Exception as e:
            logger.warning("status confirmation raised: %s", e)
            return TRANSPORT, str(e)
        if response and response.get("success"):
            return None, None
        return NOT_FOUND, (response or {}).get("error")

    def _emit(self, title: str, message: str, is_error: bool) -> None:
        if self.notify is None:
            return
        try:
            self.notify(title, message, is_error)
        except Exception:
            logger.exception("status notification failed")
