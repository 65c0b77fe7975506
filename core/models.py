from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional


TASK_STATUSES = ("To Do", "In Progress", "Blocked", "Done")
TASK_PRIORITIES = ("Low", "Medium", "High")
DEFAULT_STATUS = "To Do"
DEFAULT_PRIORITY = "Medium"

# PocketBase back-relation expand keys (new and legacy syntax)
_TASKS_EXPAND_KEYS = ("tasks_via_objective", "tasks(objective)")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a PocketBase date field ('2024-07-01 10:00:00.123Z').

    Empty strings mean "unset". Naive values are taken as UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    else:
        text = str(value).strip().replace(" ", "T", 1)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: Optional[datetime]) -> str:
    """Inverse of parse_timestamp; None becomes '' which clears the field."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.strftime("%Y-%m-%d %H:%M:%S.000Z")
    return f"{value.isoformat()} 00:00:00.000Z"


@dataclass
class User:
    id: str
    email: str

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "User":
        return cls(id=record["id"], email=(record.get("email") or ""))


@dataclass
class Workspace:
    id: str
    name: str
    owner_id: str
    member_ids: List[str] = field(default_factory=list)

    def __post_init__(self):
        # the owner always counts as a member
        if self.owner_id and self.owner_id not in self.member_ids:
            self.member_ids = [self.owner_id] + list(self.member_ids)

    def is_member(self, user_id: Optional[str]) -> bool:
        return bool(user_id) and user_id in self.member_ids

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Workspace":
        return cls(
            id=record["id"],
            name=record.get("name") or "",
            owner_id=record.get("owner") or "",
            member_ids=list(record.get("members") or []),
        )


@dataclass
class Task:
    id: str
    description: str
    objective_id: str
    created_at: datetime
    status: str = DEFAULT_STATUS
    priority: str = DEFAULT_PRIORITY
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    assignee_id: Optional[str] = None
    assignee_email: Optional[str] = None

    def with_status(self, status: str) -> "Task":
        return replace(self, status=status)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Task":
        status = record.get("status") or DEFAULT_STATUS
        priority = record.get("priority") or DEFAULT_PRIORITY
        assignee = (record.get("expand") or {}).get("assignee") or {}
        return cls(
            id=record["id"],
            description=record.get("description") or "",
            objective_id=record.get("objective") or "",
            created_at=parse_timestamp(record.get("created")) or datetime.now(timezone.utc),
            status=status if status in TASK_STATUSES else DEFAULT_STATUS,
            priority=priority if priority in TASK_PRIORITIES else DEFAULT_PRIORITY,
            start_date=parse_timestamp(record.get("start_date")),
            due_date=parse_timestamp(record.get("due_date")),
            assignee_id=record.get("assignee") or None,
            assignee_email=assignee.get("email") or None,
        )


@dataclass
class Objective:
    id: str
    description: str
    tasks: List[Task] = field(default_factory=list)
    owner_id: Optional[str] = None
    workspace_id: Optional[str] = None
    archived: bool = False

    def task(self, task_id: str) -> Optional[Task]:
        for t in self.tasks:
            if t.id == task_id:
                return t
        return None

    @classmethod
    def from_record(cls, record: Dict[str, Any], tasks: Optional[Iterable[Dict[str, Any]]] = None) -> "Objective":
        if tasks is None:
            expand = record.get("expand") or {}
            tasks = []
            for key in _TASKS_EXPAND_KEYS:
                if expand.get(key):
                    tasks = expand[key]
                    break
        parsed = [Task.from_record(t) for t in tasks]
        # a task only belongs here if it points back at this objective
        parsed = [t for t in parsed if t.objective_id == record["id"]]
        parsed.sort(key=lambda t: t.created_at)
        return cls(
            id=record["id"],
            description=record.get("description") or "",
            tasks=parsed,
            owner_id=record.get("owner") or None,
            workspace_id=record.get("workspace") or None,
            archived=bool(record.get("archived")),
        )


@dataclass
class TaskDraft:
    """A task typed into the objective dialog, not saved yet."""
    description: str
    assignee_id: Optional[str] = None
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None


@dataclass
class SuggestedTask:
    description: str
    assignee: str = ""


@dataclass
class Suggestions:
    objective_description: str
    tasks: List[SuggestedTask] = field(default_factory=list)
