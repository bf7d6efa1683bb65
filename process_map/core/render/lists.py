from __future__ import annotations

import calendar
from datetime import date

from process_map.core.model import ProcessState


STATUS_LABELS: dict[str, str] = {
    "pending": "Pending",
    "in-progress": "In Progress",
    "completed": "Completed",
}


def format_day(iso: str) -> str:
    """'2024-03-15' -> 'Mar 15, 2024'; unparseable input is returned as-is."""
    try:
        d = date.fromisoformat(iso)
    except ValueError:
        return iso
    return f"{calendar.month_abbr[d.month]} {d.day}, {d.year}"


def render_stakeholders(state: ProcessState) -> str:
    if not state.stakeholders:
        return "No stakeholders yet"

    lines: list[str] = []
    for s in state.stakeholders:
        lines.append(f"{s.name} [{s.color}] ({s.id})")
        if s.description:
            lines.append(f"  {s.description}")
        lines.append(f"  Entities: {len(s.entities)}")
        for e in s.entities:
            lines.append(f"  - {e.name} [{e.color}] ({e.id})")
            if e.description:
                lines.append(f"      {e.description}")
    return "\n".join(lines)


def render_activities(state: ProcessState) -> str:
    if not state.stakeholders:
        return "No stakeholders yet"

    lines: list[str] = []
    for s in state.stakeholders:
        lines.append(f"{s.name}")
        for e in s.entities:
            lines.append(f"  {e.name}")
            if not e.activities:
                lines.append("    No activities yet")
                continue
            rows = [("Activity", "Timeline", "Status", "Deliverables")]
            for a in e.activities:
                rows.append(
                    (
                        a.name,
                        f"{format_day(a.start_date)} to {format_day(a.deadline)}",
                        STATUS_LABELS.get(a.status, a.status),
                        f"{len(a.deliverables)} deliverables",
                    )
                )
            widths = [max(len(r[i]) for r in rows) for i in range(4)]
            for r in rows:
                lines.append("    " + "  ".join(cell.ljust(widths[i]) for i, cell in enumerate(r)).rstrip())
    return "\n".join(lines)
