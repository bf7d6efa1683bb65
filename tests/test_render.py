from datetime import date

from process_map.core.io.storage import load_state_file
from process_map.core.model import ProcessState
from process_map.core.project.timeline import project_timeline
from process_map.core.render.lists import format_day, render_activities, render_stakeholders
from process_map.core.render.svg import render_svg, render_text
from process_map.core.validate.validate_state import validate_state


def _sample():
    state, _ = validate_state(load_state_file("examples/sample-state.json"))
    return state


def test_format_day():
    assert format_day("2024-03-15") == "Mar 15, 2024"
    assert format_day("not a date") == "not a date"


def test_render_stakeholders_lists_entities():
    text = render_stakeholders(_sample())
    assert "Operations [#EF4444] (STK-OPS)" in text
    assert "  - Logistics [#22C55E] (ENT-LOGISTICS)" in text
    assert render_stakeholders(ProcessState()) == "No stakeholders yet"


def test_render_activities_table():
    text = render_activities(_sample())
    assert "Jan 8, 2024 to Mar 15, 2024" in text
    assert "In Progress" in text
    assert "2 deliverables" in text
    assert "No activities yet" in text


def test_render_svg_contains_nodes_and_connectors():
    p = project_timeline(_sample().stakeholders, date(2024, 1, 1))
    svg = render_svg(p)
    assert svg.startswith("<svg")
    assert svg.count("<circle") == 2
    assert svg.count("<path") == 1
    assert "March 2024" in svg
    assert "Demand forecast (Mar 15, 2024)" in svg


def test_render_text_lists_omissions():
    p = project_timeline(_sample().stakeholders, date(2024, 5, 1))
    text = render_text(p)
    assert "Window: May 2024 - April 2025" in text
    assert "Omitted ACT-FORECAST: D_OUT_OF_WINDOW" in text
