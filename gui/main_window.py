import logging
import tkinter as tk
from tkinter import ttk, messagebox as mb, simpledialog
import datetime as dt

import requests

from core.config import SYNC_INTERVAL_MS, TOPMOST, WINDOW_GEOMETRY
from core.exceptions import TrackerError
from controller.app_controller import AppController
from gui.board import BoardView
from gui.dialogs import LoginDialog, MembersDialog, ObjectiveDialog, TaskDialog
from gui.gantt_view import GanttView
from gui.table_view import TableView

logger = logging.getLogger(__name__)


class MainWindow(tk.Tk):
    def __init__(self, controller: AppController):
        super().__init__()
        self.controller = controller
        self.title("Objectives · PB")
        self.geometry(WINDOW_GEOMETRY)
        self.configure(padx=8, pady=8)
        if TOPMOST:
            self.attributes("-topmost", True)

        # status moves are confirmed on worker threads; settle them on the Tk loop
        controller.bind_ui(notify=self._notify, dispatch=lambda fn: self.after(0, fn))
        self._unsubscribe = controller.state.subscribe(lambda _objs: self.after(0, self._render))

        # Top bar
        top = ttk.Frame(self)
        top.pack(fill="x", pady=(0, 6))
        ttk.Label(top, text="Workspace:").pack(side="left")
        self.ws_var = tk.StringVar()
        self.ws_combo = ttk.Combobox(top, textvariable=self.ws_var, state="readonly", width=28)
        self.ws_combo.pack(side="left", padx=(4, 6))
        self.ws_combo.bind("<<ComboboxSelected>>", self._on_workspace_selected)
        ttk.Button(top, text="New workspace", command=self._on_new_workspace).pack(side="left")
        ttk.Button(top, text="Members", command=self._on_members).pack(side="left", padx=(6, 0))

        ttk.Button(top, text="Sync", command=self._sync_all).pack(side="right")
        ttk.Button(top, text="Add objective", command=self._on_add_objective).pack(side="right", padx=(0, 6))
        self.archived_var = tk.BooleanVar(value=False)
        ttk.Checkbutton(top, text="Archived", variable=self.archived_var,
                        command=self._on_toggle_archived).pack(side="right", padx=(0, 6))

        # Summary
        self.summary_var = tk.StringVar(value="")
        summary = ttk.Frame(self)
        summary.pack(fill="x", pady=(0, 6))
        ttk.Label(summary, textvariable=self.summary_var).pack(side="left")
        self.progress = ttk.Progressbar(summary, length=200, maximum=100)
        self.progress.pack(side="right")

        # Notebook
        self.nb = ttk.Notebook(self)
        self.nb.pack(fill="both", expand=True)
        self.board = BoardView(self.nb, controller, self._on_edit_objective, self._on_edit_task)
        self.table = TableView(self.nb)
        self.gantt = GanttView(self.nb)
        self.nb.add(self.board, text="Board")
        self.nb.add(self.table, text="Table")
        self.nb.add(self.gantt, text="Gantt")

        self.status_var = tk.StringVar(value="Ready")
        ttk.Label(self, textvariable=self.status_var, foreground="#475569").pack(fill="x", pady=(6, 0))

        # timers / binds
        self.bind("<F5>", lambda e: self._sync_all())
        self.protocol("WM_DELETE_WINDOW", self._on_close)
        self.after(0, self._start)

    # ---------- startup ----------
    def _start(self):
        if not self.controller.user_id:
            user = LoginDialog(self, self.controller).run()
            if user is None:
                self._on_close()
                return
        self._load_workspaces()
        self.after(SYNC_INTERVAL_MS, self._auto_sync)

    def _load_workspaces(self, select_id=None):
        try:
            workspaces = self.controller.load_workspaces()
        except (TrackerError, requests.RequestException) as e:
            mb.showerror("Workspaces", f"Could not load workspaces: {e}")
            return
        self.ws_combo["values"] = [w.name for w in workspaces]
        if not workspaces:
            return
        index = 0
        for i, w in enumerate(workspaces):
            if w.id == select_id or (select_id is None and self.controller.workspace
                                     and w.id == self.controller.workspace.id):
                index = i
        self.ws_combo.current(index)
        self._select_workspace(workspaces[index].id)

    def _select_workspace(self, workspace_id):
        try:
            self.controller.select_workspace(workspace_id)
        except (TrackerError, requests.RequestException) as e:
            mb.showerror("Workspace", f"Could not load objectives: {e}")
            return
        self._stamp()

    # ---------- sync ----------
    def _sync_all(self):
        try:
            total = self.controller.refresh()
        except (TrackerError, requests.RequestException) as e:
            logger.warning("sync error: %s", e)
            self.status_var.set(f"Sync failed: {e}")
            return
        self._stamp(total)

    def _stamp(self, total=None):
        if total is None:
            total = sum(len(o.tasks) for o in self.controller.state.objectives())
        self.status_var.set(f"Synced {dt.datetime.now().strftime('%H:%M:%S')} · {total} tasks")

    def _auto_sync(self):
        try:
            # don't pull over an optimistic move that is still being confirmed
            if not self.controller.reconciler.pending():
                self._sync_all()
        finally:
            self.after(SYNC_INTERVAL_MS, self._auto_sync)

    # ---------- rendering ----------
    def _render(self):
        objectives = self.controller.state.objectives()
        s = self.controller.summary()
        counts = " · ".join(f"{k}: {v}" for k, v in s.by_status.items())
        self.summary_var.set(f"Objectives: {s.total_objectives} · Tasks: {s.total_tasks} · {counts} · "
                             f"{s.progress:.0f}% done")
        self.progress["value"] = s.progress
        self.board.render(objectives)
        self.table.render(objectives)
        self.gantt.render(self.controller.timelines())

    def _notify(self, title, message, is_error):
        self.status_var.set(f"{title}: {message}")
        if is_error:
            mb.showerror(title, message)

    # ---------- actions ----------
    def _on_workspace_selected(self, _event=None):
        index = self.ws_combo.current()
        if 0 <= index < len(self.controller.workspaces):
            self._select_workspace(self.controller.workspaces[index].id)

    def _on_new_workspace(self):
        name = simpledialog.askstring("New workspace", "Workspace name:", parent=self)
        if name is None:
            return
        try:
            ws = self.controller.create_workspace(name)
        except (TrackerError, requests.RequestException) as e:
            mb.showerror("New workspace", str(e))
            return
        self._load_workspaces(select_id=ws.id)

    def _on_members(self):
        if not self.controller.workspace:
            return
        MembersDialog(self, self.controller, self.controller.workspace).run()

    def _on_toggle_archived(self):
        try:
            self.controller.set_show_archived(self.archived_var.get())
        except (TrackerError, requests.RequestException) as e:
            mb.showerror("Archived", str(e))

    def _on_add_objective(self):
        if not self.controller.workspace:
            return
        if self.controller.show_archived:
            self.archived_var.set(False)
            self._on_toggle_archived()
        ObjectiveDialog(self, self.controller).run()

    def _on_edit_objective(self, objective):
        ObjectiveDialog(self, self.controller, objective).run()

    def _on_edit_task(self, task, objective):
        TaskDialog(self, self.controller, task, objective).run()

    def _on_close(self):
        self._unsubscribe()
        self.controller.shutdown()
        self.destroy()
