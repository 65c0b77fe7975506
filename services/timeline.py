"""Gantt layout: turns an objective's tasks into day-indexed bars.

A task shows up on the chart when it has a start (its start date, or its
creation time) and a due date, and its due day is not before its start
day. All instants are cut down to UTC calendar days before any math.
Pure functions only, nothing here touches state.
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List, Optional, Tuple, Union

from core.models import Objective, Task

DAY_WIDTH = 40
# pixels shaved off each bar so neighbouring bars don't touch
BAR_GAP = 2

NO_VALID_DATES = "This objective has no tasks with valid start and due dates for Gantt view."


def day_of(value: Union[datetime, date]) -> date:
    """Truncate an instant to its UTC calendar day; naive datetimes count as UTC."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def task_span(task: Task) -> Optional[Tuple[date, date]]:
    """(start day, end day) for an eligible task, None otherwise."""
    start = task.start_date or task.created_at
    if start is None or task.due_date is None:
        return None
    start_day = day_of(start)
    end_day = day_of(task.due_date)
    if end_day < start_day:
        return None
    return start_day, end_day


@dataclass(frozen=True)
class TimelineBar:
    task_id: str
    description: str
    priority: str
    status: str
    start: date
    end: date
    start_offset_days: int
    duration_days: int

    def offset_pixels(self, day_width: int = DAY_WIDTH) -> int:
        return self.start_offset_days * day_width

    def width_pixels(self, day_width: int = DAY_WIDTH, gap: int = BAR_GAP) -> int:
        if day_width <= gap:
            gap = 0
        return max(0, self.duration_days * day_width - gap)


@dataclass(frozen=True)
class Timeline:
    objective_id: str
    description: str
    window_start: date
    window_end: date
    bars: Tuple[TimelineBar, ...]

    @property
    def day_count(self) -> int:
        return (self.window_end - self.window_start).days + 1

    @property
    def days(self) -> List[date]:
        return [self.window_start + timedelta(days=i) for i in range(self.day_count)]

    def width_pixels(self, day_width: int = DAY_WIDTH) -> int:
        return self.day_count * day_width


@dataclass(frozen=True)
class TimelineNotice:
    """Per-objective message shown instead of a chart."""
    objective_id: str
    description: str
    message: str = NO_VALID_DATES


def layout_tasks(tasks: Iterable[Task]) -> Optional[Tuple[date, date, Tuple[TimelineBar, ...]]]:
    spans = []
    for task in tasks:
        span = task_span(task)
        if span is not None:
            spans.append((task, span))
    if not spans:
        return None

    window_start = min(start for _, (start, _) in spans)
    window_end = max(end for _, (_, end) in spans)
    if window_end < window_start:
        window_end = window_start

    bars = []
    for task, (start, end) in spans:
        end = max(end, start)
        bars.append(TimelineBar(
            task_id=task.id,
            description=task.description,
            priority=task.priority,
            status=task.status,
            start=start,
            end=end,
            start_offset_days=(start - window_start).days,
            duration_days=max(0, (end - start).days) + 1,
        ))
    return window_start, window_end, tuple(bars)


def layout_objective(objective: Objective) -> Union[Timeline, TimelineNotice]:
    laid_out = layout_tasks(objective.tasks)
    if laid_out is None:
        return TimelineNotice(objective.id, objective.description)
    window_start, window_end, bars = laid_out
    return Timeline(objective.id, objective.description, window_start, window_end, bars)


def layout_objectives(objectives: Iterable[Objective]) -> List[Union[Timeline, TimelineNotice]]:
    return [layout_objective(o) for o in objectives]
