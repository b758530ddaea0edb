from __future__ import annotations

from typing import List, Sequence

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .models import Event, EventKind, group_events

COLORS = ["red", "green", "yellow", "blue", "magenta", "cyan"]
CONTEXT_SWITCH_STYLE = "black on bright_white"


def pid_color(pid: int) -> str:
    """Same pid, same colour, whichever chart it appears in."""
    return COLORS[(pid - 1) % len(COLORS)]


def render_gantt(events: Sequence[Event]) -> str:
    """
    Plain-text Gantt chart: ``=`` for a process, ``.`` for idle, ``x`` for
    a context switch.
    """
    if not events:
        return "(no execution)"

    line = "|"
    labels = ""
    time_marks = "0"

    for sl in group_events(events):
        width = sl.length
        if sl.label == EventKind.IDLE.value:
            line += "." * width
            labels += " " * width
        elif sl.label == EventKind.CONTEXT_SWITCH.value:
            line += "x" * width
            labels += " " * width
        else:
            line += "=" * width
            labels += sl.label[:width].ljust(width)
        time_marks += f"{sl.end_time:>{max(width, len(str(sl.end_time)))}}"

    line += "|"

    return "\n".join(
        [
            "Gantt Chart:",
            line,
            " " + labels,
            time_marks,
        ]
    )


def build_rich_gantt(events: Sequence[Event], title: str = "Gantt Chart") -> tuple[Panel, str]:
    """
    Build a Rich Panel containing a colored Gantt chart and a string with time marks.
    """
    if not events:
        panel = Panel("No execution", title=title)
        return panel, ""

    timeline = Text()
    labels = Text()
    time_marks: List[str] = ["0"]
    slices = group_events(events)

    for sl in slices:
        width = sl.length
        if sl.label == EventKind.IDLE.value:
            timeline.append(" " * width)
            labels.append(" " * width)
        elif sl.label == EventKind.CONTEXT_SWITCH.value:
            timeline.append("/" * width, style=CONTEXT_SWITCH_STYLE)
            labels.append(" " * width)
        else:
            pid = Event.from_token(sl.label).pid
            timeline.append(" " * width, style=f"on {pid_color(pid)}")
            labels.append(sl.label.upper()[:width].ljust(width), style="bold")
        time_marks.append(f"{sl.end_time:>{max(width, len(str(sl.end_time)))}}")

    table = Table.grid(padding=(0, 0))
    table.add_row(timeline)
    table.add_row(labels)

    panel = Panel.fit(table, title=title)
    return panel, "".join(time_marks)
