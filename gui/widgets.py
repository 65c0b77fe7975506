"""
Shared Tkinter widgets
----------------------
- ScrollableFrame: Canvas + interior Frame with mousewheel support; the
  board and the Gantt rows live inside one.
- TaskCard: one kanban card (description, status/priority tags, due date,
  assignee) with a status menu and drag support.

The widgets hold view-only state. Every change is reported through the
callbacks passed in the constructor; the controller decides what happens.
"""
from __future__ import annotations
import datetime as dt
from typing import Callable, List, Optional, Tuple
import tkinter as tk
from tkinter import ttk

from core.models import TASK_STATUSES, Task

PRIORITY_COLORS = {"Low": "#22C55E", "Medium": "#EAB308", "High": "#EF4444"}
STATUS_COLORS = {"To Do": "#CBD5E1", "In Progress": "#3B82F6", "Blocked": "#F97316", "Done": "#10B981"}
OVERDUE_COLOR = "#B00020"


def ideal_text_color(bg_hex: str) -> str:
    """Return black or white depending on background brightness."""
    bg_hex = bg_hex.strip().lstrip('#')
    if len(bg_hex) == 3:
        bg_hex = ''.join(c*2 for c in bg_hex)
    try:
        r = int(bg_hex[0:2], 16)
        g = int(bg_hex[2:4], 16)
        b = int(bg_hex[4:6], 16)
    except ValueError:
        return "black"
    # perceived luminance
    luminance = 0.299*r + 0.587*g + 0.114*b
    return "black" if luminance > 186 else "white"


def tag_label(master, text: str, color: str) -> tk.Label:
    # tk.Label so the background can be colored without ttk style plumbing
    return tk.Label(master, text=text, bg=color, fg=ideal_text_color(color),
                    padx=4, pady=1, borderwidth=0, relief="flat")


class ScrollableFrame(ttk.Frame):
    """Canvas + interior Frame pattern with proper mousewheel support."""
    def __init__(self, master, horizontal: bool = False, **kwargs):
        super().__init__(master, **kwargs)
        self.canvas = tk.Canvas(self, highlightthickness=0)
        self.vbar = ttk.Scrollbar(self, orient="vertical", command=self.canvas.yview)
        self.canvas.configure(yscrollcommand=self.vbar.set)
        self.canvas.grid(row=0, column=0, sticky="nsew")
        self.vbar.grid(row=0, column=1, sticky="ns")
        self._horizontal = horizontal
        if horizontal:
            self.hbar = ttk.Scrollbar(self, orient="horizontal", command=self.canvas.xview)
            self.canvas.configure(xscrollcommand=self.hbar.set)
            self.hbar.grid(row=1, column=0, sticky="ew")
        self.rowconfigure(0, weight=1)
        self.columnconfigure(0, weight=1)

        self.interior = ttk.Frame(self.canvas)
        self._win_id = self.canvas.create_window(0, 0, window=self.interior, anchor="nw")
        self.interior.bind("<Configure>", lambda _e: self.update_scrollregion())
        self.canvas.bind("<Configure>", self._on_canvas_configure)

        self.canvas.bind("<Enter>", lambda _e: self._bind_mousewheel())
        self.canvas.bind("<Leave>", lambda _e: self._unbind_mousewheel())

    def clear(self):
        for child in self.interior.winfo_children():
            child.destroy()
        self.update_scrollregion()

    def update_scrollregion(self):
        self.canvas.configure(scrollregion=self.canvas.bbox("all"))

    def _on_canvas_configure(self, event):
        # keep the interior as wide as the canvas unless we scroll sideways
        if not self._horizontal:
            self.canvas.itemconfigure(self._win_id, width=event.width)

    # mousewheel helpers (Windows/macOS/Linux)
    def _bind_mousewheel(self):
        self.canvas.bind_all("<MouseWheel>", self._on_mousewheel_windows_mac)
        self.canvas.bind_all("<Button-4>", self._on_mousewheel_linux)
        self.canvas.bind_all("<Button-5>", self._on_mousewheel_linux)

    def _unbind_mousewheel(self):
        self.canvas.unbind_all("<MouseWheel>")
        self.canvas.unbind_all("<Button-4>")
        self.canvas.unbind_all("<Button-5>")

    def _on_mousewheel_windows_mac(self, event):
        # on Windows event.delta is usually +/-120; macOS reports smaller steps
        delta = int(-1 * (event.delta / 120)) or (-1 if event.delta > 0 else 1)
        self.canvas.yview_scroll(delta, "units")

    def _on_mousewheel_linux(self, event):
        if event.num == 4:
            self.canvas.yview_scroll(-1, "units")
        elif event.num == 5:
            self.canvas.yview_scroll(1, "units")


class TaskCard(ttk.Frame):
    """A kanban card. Drag it onto another column or use the status menu."""
    def __init__(
        self,
        master,
        task: Task,
        on_status: Optional[Callable[[Task, str], None]] = None,
        on_edit: Optional[Callable[[Task], None]] = None,
        on_drop: Optional[Callable[[Task, int, int], None]] = None,
        wrap: int = 180,
    ):
        super().__init__(master, padding=(6, 4), relief="ridge", borderwidth=1)
        self.task = task
        self._on_status = on_status
        self._on_edit = on_edit
        self._on_drop = on_drop
        self._dragging = False

        self.columnconfigure(0, weight=1)
        self.lbl = ttk.Label(self, text=task.description, wraplength=wrap, anchor="w", justify="left")
        self.lbl.grid(row=0, column=0, sticky="we")

        self.menu_btn = ttk.Menubutton(self, text="⋮", width=2)
        menu = tk.Menu(self.menu_btn, tearoff=False)
        for status in TASK_STATUSES:
            menu.add_command(label=f"Move to {status}", command=lambda s=status: self._status(s),
                             state="disabled" if status == task.status else "normal")
        menu.add_separator()
        menu.add_command(label="Edit…", command=self._edit)
        self.menu_btn["menu"] = menu
        self.menu_btn.grid(row=0, column=1, sticky="ne", padx=(4, 0))

        tags = ttk.Frame(self)
        tags.grid(row=1, column=0, columnspan=2, sticky="w", pady=(2, 0))
        for text, color in self._tags():
            tag_label(tags, text, color).pack(side="left", padx=(0, 4))

        for widget in (self, self.lbl):
            widget.bind("<ButtonPress-1>", self._drag_start)
            widget.bind("<B1-Motion>", self._drag_motion)
            widget.bind("<ButtonRelease-1>", self._drag_release)
            widget.bind("<Double-1>", lambda _e: self._edit())

    def _tags(self) -> List[Tuple[str, str]]:
        t = self.task
        tags = [(t.priority, PRIORITY_COLORS.get(t.priority, "#CBD5E1"))]
        if t.due_date:
            due = t.due_date.date()
            if due < dt.date.today() and t.status != "Done":
                tags.append((f"Overdue {due:%b %d}", OVERDUE_COLOR))
            else:
                tags.append((f"Due {due:%b %d}", "#E2E8F0"))
        if t.assignee_email:
            tags.append((t.assignee_email, "#A78BFA"))
        return tags

    def _status(self, status: str):
        if self._on_status:
            self._on_status(self.task, status)

    def _edit(self):
        if self._on_edit:
            self._on_edit(self.task)

    # --- drag & drop ---
    def _drag_start(self, _event):
        self._dragging = False

    def _drag_motion(self, _event):
        if not self._dragging:
            self._dragging = True
            self.configure(cursor="fleur")

    def _drag_release(self, event):
        if not self._dragging:
            return
        self._dragging = False
        self.configure(cursor="")
        if self._on_drop:
            self._on_drop(self.task, event.x_root, event.y_root)
