import tkinter as tk
from tkinter import ttk
from typing import List, Union

from gui.widgets import PRIORITY_COLORS, ScrollableFrame, ideal_text_color
from services.timeline import DAY_WIDTH, Timeline, TimelineNotice

LABEL_WIDTH = 200
ROW_HEIGHT = 28
HEADER_HEIGHT = 34
BAR_HEIGHT = 18


class GanttView(ttk.Frame):
    """One chart per objective, drawn from the timeline layout."""
    def __init__(self, master, day_width: int = DAY_WIDTH):
        super().__init__(master)
        self.day_width = day_width
        self.scroll = ScrollableFrame(self, horizontal=True)
        self.scroll.pack(fill="both", expand=True)

    def render(self, timelines: List[Union[Timeline, TimelineNotice]]):
        self.scroll.clear()
        if not timelines:
            ttk.Label(self.scroll.interior, text="No objectives to display in Gantt chart.").pack(pady=30)
            return
        for item in timelines:
            box = ttk.LabelFrame(self.scroll.interior, text=item.description, padding=6)
            box.pack(fill="x", anchor="w", padx=6, pady=6)
            if isinstance(item, TimelineNotice):
                ttk.Label(box, text=item.message, foreground="#64748B").pack(anchor="w")
            else:
                self._draw(box, item)
        self.scroll.update_scrollregion()

    def _draw(self, master, timeline: Timeline):
        dw = self.day_width
        width = LABEL_WIDTH + timeline.width_pixels(dw)
        height = HEADER_HEIGHT + ROW_HEIGHT * len(timeline.bars)
        c = tk.Canvas(master, width=width, height=height, highlightthickness=0, background="white")
        c.pack(anchor="w")

        # day headers + grid
        for i, day in enumerate(timeline.days):
            x = LABEL_WIDTH + i * dw
            c.create_line(x, 0, x, height, fill="#E2E8F0")
            c.create_text(x + dw / 2, 10, text=day.strftime("%d"), fill="#475569")
            c.create_text(x + dw / 2, 24, text=day.strftime("%b"), fill="#94A3B8", font=("TkDefaultFont", 7))
        c.create_line(0, HEADER_HEIGHT, width, HEADER_HEIGHT, fill="#CBD5E1")
        c.create_line(LABEL_WIDTH, 0, LABEL_WIDTH, height, fill="#CBD5E1")

        for row, bar in enumerate(timeline.bars):
            top = HEADER_HEIGHT + row * ROW_HEIGHT
            mid = top + ROW_HEIGHT / 2
            c.create_text(6, mid, text=_clip(bar.description, 30), anchor="w")
            c.create_line(0, top + ROW_HEIGHT, width, top + ROW_HEIGHT, fill="#F1F5F9")

            x0 = LABEL_WIDTH + bar.offset_pixels(dw)
            x1 = x0 + bar.width_pixels(dw)
            color = PRIORITY_COLORS.get(bar.priority, "#38BDF8")
            c.create_rectangle(x0, mid - BAR_HEIGHT / 2, x1, mid + BAR_HEIGHT / 2, fill=color, outline="")
            label = f"{bar.start:%b %d} - {bar.end:%b %d}" if bar.duration_days > 1 else f"{bar.start:%b %d}"
            if x1 - x0 > 60:
                c.create_text(x0 + 4, mid, text=label, anchor="w", fill=ideal_text_color(color),
                              font=("TkDefaultFont", 8))


def _clip(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit - 1] + "…"
