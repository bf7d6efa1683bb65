from __future__ import annotations

from typing import Any, Optional
from xml.sax.saxutils import escape, quoteattr

from process_map.core.config.layout_config import DEFAULT_LAYOUT
from process_map.core.project.timeline import TimelineProjection
from process_map.core.render.lists import format_day


def render_svg(p: TimelineProjection, layout: Optional[dict[str, Any]] = None) -> str:
    """Standalone SVG of a projection: header, label columns, grid, connectors, nodes.

    Node and connector coordinates are relative to the grid body, so the body
    group is shifted down by the header height.
    """
    lay = dict(DEFAULT_LAYOUT)
    if layout:
        lay.update(layout)
    cell_h = lay["cell_height"]
    cell_w = lay["cell_width"]
    head_h = lay["header_height"]
    fixed_w = lay["fixed_col_width"]
    radius = lay["node_size"] / 2

    out: list[str] = [
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{p.width}" height="{p.height}" '
        f'viewBox="0 0 {p.width} {p.height}" font-family="sans-serif" font-size="14">',
        f'<rect width="{p.width}" height="{p.height}" fill="white"/>',
        '<g class="header">',
        f'<text x="16" y="{head_h / 2}">Stakeholder</text>',
        f'<text x="{fixed_w + 16}" y="{head_h / 2}">Entity</text>',
    ]
    for m in p.months:
        x = 2 * fixed_w + m.index * cell_w
        out.append(f'<line x1="{x}" y1="0" x2="{x}" y2="{p.height}" stroke="#e5e7eb"/>')
        out.append(f'<text x="{x + 16}" y="{head_h / 2}">{escape(m.label)}</text>')
    out.append(f'<line x1="0" y1="{head_h}" x2="{p.width}" y2="{head_h}" stroke="#e5e7eb"/>')
    out.append("</g>")

    out.append(f'<g class="body" transform="translate(0 {head_h})">')
    for b in p.stakeholder_blocks:
        if b.row_span == 0:
            continue
        top = b.start_row * cell_h
        out.append(
            f'<rect x="0" y="{top}" width="4" height="{b.row_span * cell_h}" fill={quoteattr(b.color)}/>'
        )
        out.append(f'<text x="16" y="{top + 24}">{escape(b.name)}</text>')
    for r in p.entity_rows:
        top = r.row * cell_h
        out.append(f'<rect x="{fixed_w}" y="{top}" width="2" height="{cell_h}" fill={quoteattr(r.color)}/>')
        out.append(f'<text x="{fixed_w + 16}" y="{top + 24}">{escape(r.name)}</text>')
        out.append(
            f'<line x1="{fixed_w}" y1="{top + cell_h}" x2="{p.width}" y2="{top + cell_h}" stroke="#e5e7eb"/>'
        )

    # connectors first so nodes sit on top
    for c in p.connectors:
        out.append(
            f'<path d="{c.path}" stroke={quoteattr(c.color)} stroke-width="2" fill="none" opacity="0.6"/>'
        )
    for n in p.nodes:
        title = f"{n.name} ({format_day(n.deadline.isoformat())})"
        out.append(
            f'<circle cx="{n.x}" cy="{n.y}" r="{radius}" fill={quoteattr(n.color)} stroke="white" stroke-width="2">'
            f"<title>{escape(title)}</title></circle>"
        )
    out.append("</g>")
    out.append("</svg>")
    return "\n".join(out)


def render_text(p: TimelineProjection) -> str:
    """Compact text listing of a projection, one line per row/node/connector."""
    lines = [
        f"Window: {p.months[0].label} - {p.months[-1].label}" if p.months else "Window: (empty)",
        f"Canvas: {p.width:g} x {p.height:g}",
    ]
    for b in p.stakeholder_blocks:
        if b.row_span == 0:
            lines.append(f"Stakeholder {b.name}: no rows (at row {b.start_row})")
            continue
        lines.append(f"Stakeholder {b.name}: rows {b.start_row}..{b.start_row + b.row_span - 1} (span {b.row_span})")
    for r in p.entity_rows:
        lines.append(f"  row {r.row}: {r.name}")
    for n in p.nodes:
        lines.append(f"Node {n.name} @ row {n.row}, month {n.month_index} ({n.x:.1f}, {n.y:.1f})")
    for c in p.connectors:
        lines.append(f"Connector {c.id}: {c.path}")
    for o in p.diagnostics:
        lines.append(f"Omitted {o.activity_id}: {o.code}: {o.detail}")
    return "\n".join(lines)
