"""Timeline projection: hierarchy snapshot -> positioned process-map geometry.

Pure and recomputed from scratch on every call. Nothing here raises for bad
data: activities whose deadline falls outside the window (or does not parse)
get no node, and dependencies that do not resolve to a placed node get no
connector. Each omission is recorded in ``diagnostics`` for callers that
want to report it.
"""
from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from typing import Any, Literal, Optional

from process_map.core.config.layout_config import DEFAULT_LAYOUT
from process_map.core.model import Stakeholder


OmissionCode = Literal[
    "D_OUT_OF_WINDOW",
    "D_INVALID_DEADLINE",
    "D_DANGLING_DEPENDENCY",
    "D_TARGET_NOT_PLACED",
]


@dataclass(frozen=True)
class MonthColumn:
    index: int
    start: date
    days: int

    @property
    def label(self) -> str:
        return f"{calendar.month_name[self.start.month]} {self.start.year}"


@dataclass(frozen=True)
class EntityRow:
    entity_id: str
    stakeholder_id: str
    name: str
    color: str
    row: int


@dataclass(frozen=True)
class StakeholderBlock:
    stakeholder_id: str
    name: str
    color: str
    start_row: int
    row_span: int


@dataclass(frozen=True)
class ActivityNode:
    activity_id: str
    entity_id: str
    stakeholder_id: str
    name: str
    deadline: date
    color: str
    row: int
    month_index: int
    day_offset: float
    x: float
    y: float


@dataclass(frozen=True)
class Connector:
    id: str
    source_id: str
    target_id: str
    color: str
    points: tuple[tuple[float, float], ...]

    @property
    def path(self) -> str:
        (sx, sy), (mid, _), (_, ty), (tx, _) = self.points
        return f"M {_num(sx)} {_num(sy)} H {_num(mid)} V {_num(ty)} H {_num(tx)}"


@dataclass(frozen=True)
class Omission:
    code: OmissionCode
    activity_id: str
    detail: str


@dataclass(frozen=True)
class TimelineProjection:
    window_start: date
    months: tuple[MonthColumn, ...]
    entity_rows: tuple[EntityRow, ...]
    stakeholder_blocks: tuple[StakeholderBlock, ...]
    nodes: tuple[ActivityNode, ...]
    connectors: tuple[Connector, ...]
    width: float
    height: float
    diagnostics: tuple[Omission, ...] = ()

    def node(self, activity_id: str) -> Optional[ActivityNode]:
        for n in self.nodes:
            if n.activity_id == activity_id:
                return n
        return None

    def row_of(self, entity_id: str) -> Optional[int]:
        for r in self.entity_rows:
            if r.entity_id == entity_id:
                return r.row
        return None


def month_window(window_start: date, count: int) -> tuple[MonthColumn, ...]:
    first = window_start.replace(day=1)
    out: list[MonthColumn] = []
    for i in range(count):
        start = _add_months(first, i)
        out.append(MonthColumn(index=i, start=start, days=calendar.monthrange(start.year, start.month)[1]))
    return tuple(out)


def project_timeline(
    stakeholders: tuple[Stakeholder, ...] | list[Stakeholder],
    window_start: date,
    layout: Optional[dict[str, Any]] = None,
) -> TimelineProjection:
    lay = dict(DEFAULT_LAYOUT)
    if layout:
        lay.update(layout)
    cell_h = lay["cell_height"]
    cell_w = lay["cell_width"]
    fixed_w = lay["fixed_col_width"]
    half_node = lay["node_size"] / 2

    months = month_window(window_start, int(lay["months"]))
    first = months[0].start if months else window_start.replace(day=1)

    # 1. rows: stakeholder order, then entity order
    entity_rows: list[EntityRow] = []
    blocks: list[StakeholderBlock] = []
    for s in stakeholders:
        blocks.append(
            StakeholderBlock(
                stakeholder_id=s.id,
                name=s.name,
                color=s.color,
                start_row=len(entity_rows),
                row_span=len(s.entities),
            )
        )
        for e in s.entities:
            entity_rows.append(
                EntityRow(entity_id=e.id, stakeholder_id=s.id, name=e.name, color=e.color, row=len(entity_rows))
            )

    # 2. nodes keyed by deadline month
    nodes: list[ActivityNode] = []
    omitted: list[Omission] = []
    known_ids: set[str] = set()
    dependencies: dict[str, tuple[str, ...]] = {}
    row = 0
    for s in stakeholders:
        for e in s.entities:
            for a in e.activities:
                known_ids.add(a.id)
                deadline = _parse_date(a.deadline)
                if deadline is None:
                    omitted.append(Omission("D_INVALID_DEADLINE", a.id, f"deadline {a.deadline!r} is not an ISO date"))
                    continue
                m = (deadline.year - first.year) * 12 + (deadline.month - first.month)
                if m < 0 or m >= len(months):
                    omitted.append(Omission("D_OUT_OF_WINDOW", a.id, f"deadline {a.deadline} is outside the window"))
                    continue
                offset = deadline.day / months[m].days * cell_w
                nodes.append(
                    ActivityNode(
                        activity_id=a.id,
                        entity_id=e.id,
                        stakeholder_id=s.id,
                        name=a.name,
                        deadline=deadline,
                        color=e.color,
                        row=row,
                        month_index=m,
                        day_offset=offset,
                        x=2 * fixed_w + m * cell_w + offset,
                        y=row * cell_h + cell_h / 2,
                    )
                )
                dependencies[a.id] = a.dependencies
            row += 1

    # 3. orthogonal connectors from each node to the nodes it names
    placed = {n.activity_id: n for n in nodes}
    connectors: list[Connector] = []
    for source in nodes:
        for target_id in dependencies.get(source.activity_id, ()):
            target = placed.get(target_id)
            if target is None:
                code: OmissionCode = "D_TARGET_NOT_PLACED" if target_id in known_ids else "D_DANGLING_DEPENDENCY"
                omitted.append(Omission(code, source.activity_id, f"dependency {target_id} has no node"))
                continue
            sx = source.x + half_node
            tx = target.x - half_node
            mid = sx + (tx - sx) / 2
            connectors.append(
                Connector(
                    id=f"{source.activity_id}-{target.activity_id}",
                    source_id=source.activity_id,
                    target_id=target.activity_id,
                    color=source.color,
                    points=((sx, source.y), (mid, source.y), (mid, target.y), (tx, target.y)),
                )
            )

    # 4. canvas
    width = 2 * fixed_w + len(months) * cell_w
    height = max(len(entity_rows) * cell_h + lay["header_height"], lay["min_height"])

    return TimelineProjection(
        window_start=first,
        months=months,
        entity_rows=tuple(entity_rows),
        stakeholder_blocks=tuple(blocks),
        nodes=tuple(nodes),
        connectors=tuple(connectors),
        width=width,
        height=height,
        diagnostics=tuple(omitted),
    )


def projection_to_dict(p: TimelineProjection) -> dict[str, Any]:
    return {
        "windowStart": p.window_start.isoformat(),
        "width": p.width,
        "height": p.height,
        "months": [{"index": m.index, "label": m.label, "days": m.days} for m in p.months],
        "stakeholders": [
            {"id": b.stakeholder_id, "name": b.name, "startRow": b.start_row, "rowSpan": b.row_span}
            for b in p.stakeholder_blocks
        ],
        "entities": [{"id": r.entity_id, "name": r.name, "row": r.row} for r in p.entity_rows],
        "nodes": [
            {
                "id": n.activity_id,
                "name": n.name,
                "deadline": n.deadline.isoformat(),
                "row": n.row,
                "monthIndex": n.month_index,
                "x": n.x,
                "y": n.y,
            }
            for n in p.nodes
        ],
        "connectors": [
            {"id": c.id, "source": c.source_id, "target": c.target_id, "path": c.path} for c in p.connectors
        ],
        "omitted": [{"code": o.code, "activity": o.activity_id, "detail": o.detail} for o in p.diagnostics],
    }


def _add_months(d: date, n: int) -> date:
    y, m = divmod(d.month - 1 + n, 12)
    return date(d.year + y, m + 1, 1)


def _parse_date(v: str) -> Optional[date]:
    try:
        return date.fromisoformat(v)
    except (TypeError, ValueError):
        return None


def _num(v: float) -> str:
    return f"{v:.2f}".rstrip("0").rstrip(".")
