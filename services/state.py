"""In-memory view state: the objectives (and their tasks) the views render.

The GUI owns one BoardState and hands it to the controller and the status
reconciler. Every mutation looks the target up by id and replaces it in
place; a lookup miss is not an error.
"""
from __future__ import annotations
import logging
import threading
from dataclasses import replace
from typing import Callable, List, Optional, Tuple

from core.models import Objective, Task

logger = logging.getLogger(__name__)

Listener = Callable[[List[Objective]], None]


class BoardState:
    def __init__(self, objectives: Optional[List[Objective]] = None):
        self._lock = threading.Lock()
        self._objectives: List[Objective] = list(objectives or [])
        self._listeners: List[Listener] = []

    # ---------- reads ----------
    def objectives(self) -> List[Objective]:
        with self._lock:
            return list(self._objectives)

    def find_objective(self, objective_id: str) -> Optional[Objective]:
        with self._lock:
            return self._find_objective(objective_id)[1]

    def find_task(self, objective_id: str, task_id: str) -> Optional[Task]:
        with self._lock:
            _, obj = self._find_objective(objective_id)
            return obj.task(task_id) if obj else None

    # ---------- subscriptions ----------
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.objectives()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("board listener failed")

    # ---------- writes ----------
    def load(self, objectives: List[Objective]) -> None:
        with self._lock:
            self._objectives = list(objectives)
        self._notify()

    def clear(self) -> None:
        self.load([])

    def set_task_status(self, objective_id: str, task_id: str, status: str) -> Optional[str]:
        """Set one task's status; returns the previous status or None when the pair is gone."""
        with self._lock:
            found = self._find_task(objective_id, task_id)
            if found is None:
                return None
            obj_idx, task_idx = found
            obj = self._objectives[obj_idx]
            previous = obj.tasks[task_idx].status
            tasks = list(obj.tasks)
            tasks[task_idx] = tasks[task_idx].with_status(status)
            self._objectives[obj_idx] = replace(obj, tasks=tasks)
        self._notify()
        return previous

    def replace_task(self, task: Task) -> bool:
        with self._lock:
            found = self._find_task(task.objective_id, task.id)
            if found is None:
                return False
            obj_idx, task_idx = found
            obj = self._objectives[obj_idx]
            tasks = list(obj.tasks)
            tasks[task_idx] = task
            self._objectives[obj_idx] = replace(obj, tasks=tasks)
        self._notify()
        return True

    def upsert_objective(self, objective: Objective) -> None:
        with self._lock:
            idx, _ = self._find_objective(objective.id)
            if idx is None:
                self._objectives.append(objective)
            else:
                self._objectives[idx] = objective
        self._notify()

    def remove_objective(self, objective_id: str) -> bool:
        with self._lock:
            idx, _ = self._find_objective(objective_id)
            if idx is None:
                return False
            del self._objectives[idx]
        self._notify()
        return True

    # ---------- lookups (lock held) ----------
    def _find_objective(self, objective_id: str) -> Tuple[Optional[int], Optional[Objective]]:
        for i, obj in enumerate(self._objectives):
            if obj.id == objective_id:
                return i, obj
        return None, None

    def _find_task(self, objective_id: str, task_id: str) -> Optional[Tuple[int, int]]:
        obj_idx, obj = self._find_objective(objective_id)
        if obj is None:
            return None
        for j, t in enumerate(obj.tasks):
            if t.id == task_id:
                return obj_idx, j
        return None
