from tkinter import ttk
from typing import List

from core.models import Objective
from services.metrics import objective_progress


class TableView(ttk.Frame):
    """Objectives as expandable rows, their tasks underneath."""
    def __init__(self, master):
        super().__init__(master)
        cols = ("status", "priority", "assignee", "due", "progress")
        self.tree = ttk.Treeview(self, columns=cols, show="tree headings")
        self.tree.heading("#0", text="Objective / task")
        self.tree.heading("status", text="Status")
        self.tree.heading("priority", text="Priority")
        self.tree.heading("assignee", text="Assignee")
        self.tree.heading("due", text="Due")
        self.tree.heading("progress", text="Progress")
        self.tree.column("#0", anchor="w", width=420)
        self.tree.column("status", anchor="center", width=100)
        self.tree.column("priority", anchor="center", width=80)
        self.tree.column("assignee", anchor="w", width=180)
        self.tree.column("due", anchor="center", width=110)
        self.tree.column("progress", anchor="center", width=80)
        self.tree.tag_configure("objective", font=("TkDefaultFont", 10, "bold"))
        self.tree.tag_configure("blocked", foreground="#B00020")
        self.tree.tag_configure("done", foreground="#888888")

        vbar = ttk.Scrollbar(self, orient="vertical", command=self.tree.yview)
        self.tree.configure(yscrollcommand=vbar.set)
        self.tree.grid(row=0, column=0, sticky="nsew")
        vbar.grid(row=0, column=1, sticky="ns")
        self.rowconfigure(0, weight=1)
        self.columnconfigure(0, weight=1)

    def render(self, objectives: List[Objective]):
        opened = {iid for iid in self.tree.get_children("") if self.tree.item(iid, "open")}
        self.tree.delete(*self.tree.get_children(""))
        if not objectives:
            self.tree.insert("", "end", text="No objectives to display.")
            return
        for obj in objectives:
            self.tree.insert("", "end", iid=obj.id, text=obj.description, open=obj.id in opened,
                             values=("", "", "", "", f"{objective_progress(obj.tasks):.0f}%"),
                             tags=("objective",))
            if not obj.tasks:
                self.tree.insert(obj.id, "end", text="No tasks for this objective.")
            for t in obj.tasks:
                tags = ("blocked",) if t.status == "Blocked" else ("done",) if t.status == "Done" else ()
                due = t.due_date.strftime("%b %d, %Y") if t.due_date else ""
                self.tree.insert(obj.id, "end", iid=f"{obj.id}:{t.id}", text=t.description, tags=tags,
                                 values=(t.status, t.priority, t.assignee_email or "", due, ""))
