from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from core.models import TASK_STATUSES, Objective, Task


@dataclass
class Summary:
    total_objectives: int = 0
    total_tasks: int = 0
    by_status: Dict[str, int] = field(default_factory=lambda: {s: 0 for s in TASK_STATUSES})
    progress: float = 0.0


def objective_progress(tasks: List[Task]) -> float:
    """Percent of tasks in Done (0 when there are none)."""
    if not tasks:
        return 0.0
    done = sum(1 for t in tasks if t.status == "Done")
    return done / len(tasks) * 100


def count_by_status(objectives: Iterable[Objective]) -> Dict[str, int]:
    counts = {s: 0 for s in TASK_STATUSES}
    for obj in objectives:
        for task in obj.tasks:
            counts[task.status] = counts.get(task.status, 0) + 1
    return counts


def overall_progress(objectives: Iterable[Objective]) -> float:
    tasks = [t for obj in objectives for t in obj.tasks]
    return objective_progress(tasks)


def summarize(objectives: Iterable[Objective]) -> Summary:
    objectives = list(objectives)
    return Summary(
        total_objectives=len(objectives),
        total_tasks=sum(len(o.tasks) for o in objectives),
        by_status=count_by_status(objectives),
        progress=overall_progress(objectives),
    )
