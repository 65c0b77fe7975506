"""Shared fixtures for the tracker tests."""

from concurrent.futures import Executor, Future
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from core.models import Objective, Task
from services.state import BoardState


class InlineExecutor(Executor):
    """Runs submitted work immediately on the calling thread."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


def utc(year, month, day, hour=0, minute=0):
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


def make_task(task_id, objective_id="o1", status="To Do", priority="Medium",
              start=None, due=None, created=None, description=None):
    return Task(
        id=task_id,
        description=description or f"task {task_id}",
        objective_id=objective_id,
        created_at=created or utc(2024, 7, 1, 9),
        status=status,
        priority=priority,
        start_date=start,
        due_date=due,
    )


@pytest.fixture
def two_objectives():
    """Two objectives with two tasks each."""
    return [
        Objective(id="o1", description="Launch", workspace_id="w1",
                  tasks=[make_task("t1", "o1"), make_task("t2", "o1", status="In Progress")]),
        Objective(id="o2", description="Hiring", workspace_id="w1",
                  tasks=[make_task("t3", "o2", status="Blocked"), make_task("t4", "o2", status="Done")]),
    ]


@pytest.fixture
def board(two_objectives):
    return BoardState(two_objectives)


@pytest.fixture
def inline_executor():
    return InlineExecutor()


def response(payload=None, status_code=200, text=""):
    """A requests.Response stand-in."""
    r = MagicMock()
    r.ok = 200 <= status_code < 400
    r.status_code = status_code
    r.text = text or ("" if payload is None else str(payload))
    r.json.return_value = payload if payload is not None else {}
    return r
