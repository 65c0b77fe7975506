import datetime as dt
import logging
import tkinter as tk
from tkinter import ttk, messagebox as mb
from typing import Dict, List, Optional

import requests

from core.exceptions import TrackerError
from core.models import TASK_PRIORITIES, TASK_STATUSES, Objective, Task, TaskDraft, User

logger = logging.getLogger(__name__)

UNASSIGNED = "(unassigned)"


def parse_day(text: str, label: str) -> Optional[dt.datetime]:
    """'YYYY-MM-DD' -> midnight UTC; blank -> None."""
    text = (text or "").strip()
    if not text:
        return None
    try:
        d = dt.date.fromisoformat(text)
    except ValueError:
        raise ValueError(f"{label}: use YYYY-MM-DD (got {text!r})") from None
    return dt.datetime(d.year, d.month, d.day, tzinfo=dt.timezone.utc)


def format_day(value: Optional[dt.datetime]) -> str:
    return value.date().isoformat() if value else ""


class _Modal(tk.Toplevel):
    def __init__(self, parent, title: str):
        super().__init__(parent)
        self.title(title)
        self.transient(parent)
        self.resizable(True, False)
        self.configure(padx=10, pady=10)
        self.result = None

    def run(self):
        self.grab_set()
        self.wait_window(self)
        return self.result

    def _fail(self, title: str, e: Exception):
        logger.warning("%s: %s", title, e)
        mb.showerror(title, str(e), parent=self)


class LoginDialog(_Modal):
    def __init__(self, parent, controller):
        super().__init__(parent, "Sign in")
        self.controller = controller
        ttk.Label(self, text="Email").grid(row=0, column=0, sticky="w")
        self.email = ttk.Entry(self, width=32)
        self.email.grid(row=0, column=1, pady=2)
        ttk.Label(self, text="Password").grid(row=1, column=0, sticky="w")
        self.password = ttk.Entry(self, width=32, show="•")
        self.password.grid(row=1, column=1, pady=2)
        btns = ttk.Frame(self)
        btns.grid(row=2, column=0, columnspan=2, sticky="e", pady=(8, 0))
        ttk.Button(btns, text="Create account", command=self._sign_up).pack(side="right")
        ttk.Button(btns, text="Sign in", command=self._sign_in).pack(side="right", padx=6)
        self.password.bind("<Return>", lambda _e: self._sign_in())
        self.email.focus_set()

    def _sign_in(self):
        try:
            self.result = self.controller.sign_in(self.email.get(), self.password.get())
        except (TrackerError, requests.RequestException) as e:
            self._fail("Sign in", e)
            return
        self.destroy()

    def _sign_up(self):
        try:
            self.result = self.controller.sign_up(self.email.get(), self.password.get())
        except (TrackerError, requests.RequestException) as e:
            self._fail("Create account", e)
            return
        self.destroy()


class _TaskRowEditor:
    """Entry widgets for one task inside the objective dialog."""
    def __init__(self, master, row: int, members: List[User], task: Optional[Task] = None):
        self.task = task
        self._by_email = {m.email: m.id for m in members}
        self.desc = ttk.Entry(master, width=40)
        if task:
            self.desc.insert(0, task.description)
        self.assignee = ttk.Combobox(master, values=[UNASSIGNED] + list(self._by_email), width=22, state="readonly")
        current = (task.assignee_email if task else "") or ""
        self.assignee.set(current if current in self._by_email else UNASSIGNED)
        self.start = ttk.Entry(master, width=11)
        self.start.insert(0, format_day(task.start_date) if task else "")
        self.due = ttk.Entry(master, width=11)
        self.due.insert(0, format_day(task.due_date) if task else "")
        self.remove = tk.BooleanVar(value=False)
        widgets = [self.desc, self.assignee, self.start, self.due]
        if task is not None:
            widgets.append(ttk.Checkbutton(master, text="remove", variable=self.remove))
        for col, w in enumerate(widgets):
            w.grid(row=row, column=col, padx=2, pady=1, sticky="we")

    def fill(self, description: str, assignee: str = ""):
        """Put a suggested task into this row; the assignee only sticks when it is a member."""
        self.desc.delete(0, "end")
        self.desc.insert(0, description)
        wanted = (assignee or "").strip().lower()
        for email in self._by_email:
            if email.lower() == wanted:
                self.assignee.set(email)
                break

    def assignee_id(self) -> Optional[str]:
        return self._by_email.get(self.assignee.get())

    def draft(self) -> TaskDraft:
        return TaskDraft(self.desc.get(), self.assignee_id(),
                         parse_day(self.start.get(), "Start"), parse_day(self.due.get(), "Due"))

    def changes(self) -> Dict:
        """Fields that differ from the saved task."""
        t = self.task
        out = {}
        if self.desc.get().strip() != t.description:
            out["description"] = self.desc.get()
        if (self.assignee_id() or None) != (t.assignee_id or None):
            out["assignee_id"] = self.assignee_id()
        start = parse_day(self.start.get(), "Start")
        if format_day(start) != format_day(t.start_date):
            out["start_date"] = start
        due = parse_day(self.due.get(), "Due")
        if format_day(due) != format_day(t.due_date):
            out["due_date"] = due
        return out


class ObjectiveDialog(_Modal):
    """Create an objective with its first tasks, or edit one."""
    def __init__(self, parent, controller, objective: Optional[Objective] = None):
        super().__init__(parent, "Edit objective" if objective else "New objective")
        self.controller = controller
        self.objective = objective
        try:
            self.members = controller.list_members(controller.workspace.id)
        except (TrackerError, requests.RequestException) as e:
            logger.warning("could not load members: %s", e)
            self.members = []

        ttk.Label(self, text="Objective").grid(row=0, column=0, sticky="w")
        self.desc = ttk.Entry(self, width=60)
        self.desc.grid(row=0, column=1, sticky="we", pady=2)
        if objective:
            self.desc.insert(0, objective.description)
        ttk.Button(self, text="Suggest tasks", command=self._suggest).grid(row=0, column=2, padx=(6, 0))

        self.rows_frame = ttk.Frame(self)
        self.rows_frame.grid(row=1, column=0, columnspan=3, sticky="we", pady=(8, 4))
        for col, text in enumerate(("Task", "Assignee", "Start", "Due")):
            ttk.Label(self.rows_frame, text=text, foreground="#64748B").grid(row=0, column=col, sticky="w")
        self.rows: List[_TaskRowEditor] = []
        for t in (objective.tasks if objective else []):
            self._add_row(task=t)
        self._add_row()

        btns = ttk.Frame(self)
        btns.grid(row=2, column=0, columnspan=3, sticky="we", pady=(6, 0))
        ttk.Button(btns, text="+ Task", command=self._add_row).pack(side="left")
        ttk.Button(btns, text="Save", command=self._save).pack(side="right")
        ttk.Button(btns, text="Cancel", command=self.destroy).pack(side="right", padx=6)

    def _add_row(self, task: Optional[Task] = None) -> _TaskRowEditor:
        row = _TaskRowEditor(self.rows_frame, len(self.rows) + 1, self.members, task)
        self.rows.append(row)
        return row

    def _suggest(self):
        try:
            suggestions = self.controller.suggest_tasks(self.desc.get())
        except (TrackerError, requests.RequestException) as e:
            self._fail("Suggestions", e)
            return
        if not self.desc.get().strip():
            self.desc.insert(0, suggestions.objective_description)
        # fill blank new rows first, then append
        blanks = [r for r in self.rows if r.task is None and not r.desc.get().strip()]
        for s in suggestions.tasks:
            row = blanks.pop(0) if blanks else self._add_row()
            row.fill(s.description, s.assignee)

    def _save(self):
        try:
            new_tasks = [r.draft() for r in self.rows if r.task is None]
            if self.objective is None:
                self.result = self.controller.add_objective(self.desc.get(), new_tasks)
            else:
                delete_ids = [r.task.id for r in self.rows if r.task is not None and r.remove.get()]
                updates = []
                for r in self.rows:
                    if r.task is None or r.remove.get():
                        continue
                    changes = r.changes()
                    if changes:
                        updates.append({"id": r.task.id, **changes})
                self.result = self.controller.update_objective(
                    self.objective.id, self.desc.get(), new_tasks, delete_ids, updates)
        except (ValueError, TrackerError, requests.RequestException) as e:
            self._fail("Save objective", e)
            return
        self.destroy()


class TaskDialog(_Modal):
    def __init__(self, parent, controller, task: Task, objective: Objective):
        super().__init__(parent, "Edit task")
        self.controller = controller
        self.task = task
        self.objective = objective
        try:
            members = controller.list_members(objective.workspace_id or controller.workspace.id)
        except (TrackerError, requests.RequestException) as e:
            logger.warning("could not load members: %s", e)
            members = []
        self._by_email = {m.email: m.id for m in members}

        def field(row, label, widget):
            ttk.Label(self, text=label).grid(row=row, column=0, sticky="w", pady=2)
            widget.grid(row=row, column=1, sticky="we", pady=2)
            return widget

        self.desc = field(0, "Description", ttk.Entry(self, width=48))
        self.desc.insert(0, task.description)
        self.status = field(1, "Status", ttk.Combobox(self, values=TASK_STATUSES, state="readonly"))
        self.status.set(task.status)
        self.priority = field(2, "Priority", ttk.Combobox(self, values=TASK_PRIORITIES, state="readonly"))
        self.priority.set(task.priority)
        self.assignee = field(3, "Assignee", ttk.Combobox(self, values=[UNASSIGNED] + list(self._by_email),
                                                          state="readonly"))
        self.assignee.set(task.assignee_email if task.assignee_email in self._by_email else UNASSIGNED)
        self.start = field(4, "Start (YYYY-MM-DD)", ttk.Entry(self))
        self.start.insert(0, format_day(task.start_date))
        self.due = field(5, "Due (YYYY-MM-DD)", ttk.Entry(self))
        self.due.insert(0, format_day(task.due_date))

        btns = ttk.Frame(self)
        btns.grid(row=6, column=0, columnspan=2, sticky="e", pady=(8, 0))
        ttk.Button(btns, text="Save", command=self._save).pack(side="right")
        ttk.Button(btns, text="Cancel", command=self.destroy).pack(side="right", padx=6)

    def _save(self):
        t = self.task
        try:
            fields = {}
            if self.desc.get().strip() != t.description:
                fields["description"] = self.desc.get()
            if self.priority.get() != t.priority:
                fields["priority"] = self.priority.get()
            assignee_id = self._by_email.get(self.assignee.get())
            if (assignee_id or None) != (t.assignee_id or None):
                fields["assignee_id"] = assignee_id
            start = parse_day(self.start.get(), "Start")
            if format_day(start) != format_day(t.start_date):
                fields["start_date"] = start
            due = parse_day(self.due.get(), "Due")
            if format_day(due) != format_day(t.due_date):
                fields["due_date"] = due
            if fields:
                self.result = self.controller.update_task(t.id, t.objective_id, **fields)
        except (ValueError, TrackerError, requests.RequestException) as e:
            self._fail("Save task", e)
            return
        # status goes through the optimistic path like a board move
        if self.status.get() != t.status:
            self.controller.change_task_status(t.id, self.status.get(), t.status, t.objective_id)
        self.destroy()


class MembersDialog(_Modal):
    def __init__(self, parent, controller, workspace):
        super().__init__(parent, f"Members · {workspace.name}")
        self.controller = controller
        self.workspace = workspace
        self.members: List[User] = []
        owner = controller.is_owner(workspace)

        self.listbox = tk.Listbox(self, height=8, width=40)
        self.listbox.grid(row=0, column=0, columnspan=2, sticky="we")
        self.email = ttk.Entry(self, width=30)
        self.email.grid(row=1, column=0, sticky="we", pady=(6, 0))
        add = ttk.Button(self, text="Add", command=self._add)
        add.grid(row=1, column=1, padx=(6, 0), pady=(6, 0))
        remove = ttk.Button(self, text="Remove selected", command=self._remove)
        remove.grid(row=2, column=0, sticky="w", pady=(6, 0))
        ttk.Button(self, text="Close", command=self.destroy).grid(row=2, column=1, pady=(6, 0))
        if not owner:
            for w in (self.email, add, remove):
                w.state(["disabled"])
            ttk.Label(self, text="Only the workspace owner can manage members.",
                      foreground="#64748B").grid(row=3, column=0, columnspan=2, sticky="w")
        self._reload()

    def _reload(self):
        try:
            self.members = self.controller.list_members(self.workspace.id)
        except (TrackerError, requests.RequestException) as e:
            self._fail("Members", e)
            return
        self.listbox.delete(0, "end")
        for m in self.members:
            suffix = " (owner)" if m.id == self.workspace.owner_id else ""
            self.listbox.insert("end", m.email + suffix)

    def _add(self):
        try:
            self.workspace = self.controller.add_member(self.workspace.id, self.email.get())
        except (TrackerError, requests.RequestException) as e:
            self._fail("Add member", e)
            return
        self.email.delete(0, "end")
        self.result = self.workspace
        self._reload()

    def _remove(self):
        sel = self.listbox.curselection()
        if not sel:
            return
        member = self.members[sel[0]]
        if not mb.askyesno("Remove member", f"Remove {member.email}?\nTheir tasks will be unassigned.", parent=self):
            return
        try:
            self.workspace = self.controller.remove_member(self.workspace.id, member.id)
        except (TrackerError, requests.RequestException) as e:
            self._fail("Remove member", e)
            return
        self.result = self.workspace
        self._reload()
