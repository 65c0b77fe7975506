from tkinter import ttk, messagebox as mb
from typing import Callable, Dict, List, Optional

from core.models import TASK_STATUSES, Objective, Task
from gui.widgets import ScrollableFrame, TaskCard, STATUS_COLORS, tag_label
from services.metrics import objective_progress


class ObjectivePanel(ttk.LabelFrame):
    """Header with progress + one column per status for a single objective."""
    def __init__(self, master, objective: Objective, archived: bool,
                 on_status: Callable[[Task, str], None],
                 on_edit_task: Callable[[Task], None],
                 on_edit_objective: Callable[[Objective], None],
                 on_archive: Callable[[Objective], None],
                 collapsed: bool = False,
                 on_toggle: Optional[Callable[[str], None]] = None):
        super().__init__(master, text=objective.description, padding=(8, 4))
        self.objective = objective
        self._on_status = on_status

        header = ttk.Frame(self)
        header.pack(fill="x")
        pct = objective_progress(objective.tasks)
        bar = ttk.Progressbar(header, length=240, maximum=100, value=pct)
        bar.pack(side="left")
        ttk.Label(header, text=f"{pct:.0f}%").pack(side="left", padx=6)

        ttk.Button(header, text="Restore" if archived else "Archive",
                   command=lambda: on_archive(objective)).pack(side="right")
        edit = ttk.Button(header, text="Edit", command=lambda: on_edit_objective(objective))
        edit.pack(side="right", padx=4)
        if archived:
            edit.state(["disabled"])
            ttk.Label(self, text="Tasks are hidden for archived objectives. Restore it to see and edit its tasks.",
                      foreground="#64748B").pack(anchor="w", pady=4)
            return

        if on_toggle:
            ttk.Button(header, text="▸" if collapsed else "▾", width=2,
                       command=lambda: on_toggle(objective.id)).pack(side="right")
        if collapsed:
            ttk.Label(self, text="Objective collapsed.", foreground="#64748B").pack(anchor="w", pady=4)
            return

        cols = ttk.Frame(self)
        cols.pack(fill="x", pady=(6, 2))
        for i, status in enumerate(TASK_STATUSES):
            cols.columnconfigure(i, weight=1, uniform="status")
            col = ttk.Frame(cols, padding=4, relief="groove", borderwidth=1)
            col.grid(row=0, column=i, sticky="nsew", padx=3)
            col.drop_status = status
            head = ttk.Frame(col)
            head.pack(fill="x")
            tag_label(head, status, STATUS_COLORS[status]).pack(side="left")
            tasks = [t for t in objective.tasks if t.status == status]
            ttk.Label(head, text=str(len(tasks))).pack(side="right")
            for task in tasks:
                card = TaskCard(col, task, on_status=on_status, on_edit=on_edit_task, on_drop=self._on_drop)
                card.pack(fill="x", pady=3)

    def _on_drop(self, task: Task, x_root: int, y_root: int):
        target = self.winfo_containing(x_root, y_root)
        while target is not None and not hasattr(target, "drop_status"):
            target = target.master
        if target is None:
            return
        # dropping onto another objective's board does not move tasks across objectives
        if not str(target).startswith(str(self) + "."):
            return
        self._on_status(task, target.drop_status)


class BoardView(ttk.Frame):
    """Kanban board: one panel per objective."""
    def __init__(self, master, controller, on_edit_objective, on_edit_task):
        super().__init__(master)
        self.controller = controller
        self._on_edit_objective = on_edit_objective
        self._on_edit_task = on_edit_task
        self._collapsed: Dict[str, bool] = {}
        self.scroll = ScrollableFrame(self)
        self.scroll.pack(fill="both", expand=True)

    def render(self, objectives: List[Objective]):
        self.scroll.clear()
        if not objectives:
            ttk.Label(self.scroll.interior,
                      text="No objectives yet. Click \"Add objective\" to get started.").pack(pady=30)
            return
        archived = self.controller.show_archived
        for obj in objectives:
            panel = ObjectivePanel(
                self.scroll.interior, obj, archived,
                on_status=self._change_status,
                on_edit_task=lambda t, o=obj: self._on_edit_task(t, o),
                on_edit_objective=self._on_edit_objective,
                on_archive=self._toggle_archive,
                collapsed=self._collapsed.get(obj.id, False),
                on_toggle=self._toggle_collapse,
            )
            panel.pack(fill="x", padx=6, pady=6)
        self.scroll.update_scrollregion()

    def _change_status(self, task: Task, status: str):
        self.controller.change_task_status(task.id, status, task.status, task.objective_id)

    def _toggle_collapse(self, objective_id: str):
        self._collapsed[objective_id] = not self._collapsed.get(objective_id, False)
        self.render(self.controller.state.objectives())

    def _toggle_archive(self, objective: Objective):
        if self.controller.show_archived:
            if not mb.askyesno("Restore", f"Move \"{objective.description}\" back to the active objectives?"):
                return
            action = self.controller.unarchive_objective
        else:
            if not mb.askyesno("Archive", f"Archive \"{objective.description}\"?\n\n"
                                          "It will be hidden from the main view."):
                return
            action = self.controller.archive_objective
        try:
            action(objective.id)
        except Exception as e:
            mb.showerror("Archive", f"Could not update the objective:\n{e}")
