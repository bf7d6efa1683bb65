from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Any, NoReturn, Optional

import typer

from process_map.core.config.layout_config import LayoutConfigError, load_and_merge
from process_map.core.errors import ProcessMapError, StateLoadError, StateValidationError, sort_errors
from process_map.core.io.codec import state_to_dict
from process_map.core.io.storage import JsonFileStorage, load_state_file, resolve_home
from process_map.core.lint.lint_state import lint_state
from process_map.core.model import DEFAULT_COLOR, RACI_ROLES, VIEWS, RaciAssignment
from process_map.core.project.timeline import project_timeline, projection_to_dict
from process_map.core.render.lists import render_activities, render_stakeholders
from process_map.core.render.svg import render_svg, render_text
from process_map.core.store.contracts import (
    ActivityFields,
    ActivityPatch,
    EntityFields,
    EntityPatch,
    StakeholderFields,
    StakeholderPatch,
)
from process_map.core.store.process_store import ProcessStore
from process_map.core.validate.validate_state import (
    summarize_state,
    validate_date_fields,
    validate_required_fields,
    validate_state,
)

app = typer.Typer(add_completion=False, no_args_is_help=True)


@app.callback()
def _callback(
    ctx: typer.Context,
    home: str | None = typer.Option(
        None,
        "--home",
        help="Directory holding the persisted state (default: $PROCESS_MAP_HOME or ~/.process-map)",
    ),
) -> None:
    """Process map CLI."""
    ctx.obj = {"home": home}


def _open_store(ctx: typer.Context) -> ProcessStore:
    home = (ctx.obj or {}).get("home")
    return ProcessStore(JsonFileStorage(resolve_home(home)))


@app.command("view")
def view(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="stakeholders|activities|process-map"),
) -> None:
    """Switch the current view."""
    if name not in VIEWS:
        _fail(
            StateValidationError(
                code="E_UNKNOWN_VIEW",
                message=f"unknown view: {name} (choose one of: {', '.join(sorted(VIEWS))})",
                path="view",
            )
        )
    store = _open_store(ctx)
    store.set_view(name)  # type: ignore[arg-type]
    typer.echo(f"OK: view is now {name}")


@app.command("add-stakeholder")
def add_stakeholder(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name"),
    description: str = typer.Option("", "--description"),
    color: str = typer.Option(DEFAULT_COLOR, "--color"),
) -> None:
    """Add a stakeholder; prints its id."""
    _check(validate_required_fields("stakeholder", {"name": name}))
    store = _open_store(ctx)
    sid = store.add_stakeholder(StakeholderFields(name=name, description=description, color=color))
    typer.echo(sid)


@app.command("update-stakeholder")
def update_stakeholder(
    ctx: typer.Context,
    stakeholder_id: str = typer.Argument(...),
    name: str | None = typer.Option(None, "--name"),
    description: str | None = typer.Option(None, "--description"),
    color: str | None = typer.Option(None, "--color"),
) -> None:
    """Update fields of a stakeholder."""
    _check_optional_name("stakeholder", name)
    store = _open_store(ctx)
    found = store.update_stakeholder(
        stakeholder_id, StakeholderPatch(name=name, description=description, color=color)
    )
    _report_update("stakeholder", stakeholder_id, found)


@app.command("add-entity")
def add_entity(
    ctx: typer.Context,
    stakeholder_id: str = typer.Argument(..., help="Owning stakeholder id"),
    name: str = typer.Option(..., "--name"),
    description: str = typer.Option("", "--description"),
    color: str = typer.Option(DEFAULT_COLOR, "--color"),
) -> None:
    """Add an entity to a stakeholder; prints its id."""
    _check(validate_required_fields("entity", {"name": name}))
    store = _open_store(ctx)
    eid = store.add_entity(stakeholder_id, EntityFields(name=name, description=description, color=color))
    if eid is None:
        _fail(_unknown_id("stakeholder", stakeholder_id))
    typer.echo(eid)


@app.command("update-entity")
def update_entity(
    ctx: typer.Context,
    entity_id: str = typer.Argument(...),
    name: str | None = typer.Option(None, "--name"),
    description: str | None = typer.Option(None, "--description"),
    color: str | None = typer.Option(None, "--color"),
) -> None:
    """Update fields of an entity."""
    _check_optional_name("entity", name)
    store = _open_store(ctx)
    found = store.update_entity(entity_id, EntityPatch(name=name, description=description, color=color))
    _report_update("entity", entity_id, found)


@app.command("add-activity")
def add_activity(
    ctx: typer.Context,
    entity_id: str = typer.Argument(..., help="Owning entity id"),
    name: str = typer.Option(..., "--name"),
    start: str = typer.Option(..., "--start", help="Start date (YYYY-MM-DD)"),
    deadline: str = typer.Option(..., "--deadline", help="Deadline (YYYY-MM-DD)"),
    description: str = typer.Option("", "--description"),
    status: str = typer.Option("pending", "--status", help="pending|in-progress|completed"),
    deliverable: list[str] | None = typer.Option(None, "--deliverable", help="Repeatable"),
    depends_on: list[str] | None = typer.Option(None, "--depends-on", help="Activity id (repeatable)"),
    responsible: list[str] | None = typer.Option(None, "--responsible"),
    accountable: list[str] | None = typer.Option(None, "--accountable"),
    consulted: list[str] | None = typer.Option(None, "--consulted"),
    informed: list[str] | None = typer.Option(None, "--informed"),
) -> None:
    """Add an activity to an entity; prints its id."""
    _check(
        validate_required_fields("activity", {"name": name, "startDate": start, "deadline": deadline})
    )
    raci = _raci_from_options(responsible, accountable, consulted, informed) or RaciAssignment()
    try:
        fields = ActivityFields(
            name=name,
            description=description,
            start_date=start,
            deadline=deadline,
            status=status,  # type: ignore[arg-type]
            deliverables=tuple(d.strip() for d in (deliverable or []) if d.strip()),
            dependencies=tuple(depends_on or []),
            raci=raci,
        )
    except ValueError as e:
        _fail(StateValidationError(code="E_INVALID_ENUM", message=str(e), path="activity.status"))

    store = _open_store(ctx)
    aid = store.add_activity(entity_id, fields)
    if aid is None:
        _fail(_unknown_id("entity", entity_id))
    typer.echo(aid)


@app.command("update-activity")
def update_activity(
    ctx: typer.Context,
    activity_id: str = typer.Argument(...),
    name: str | None = typer.Option(None, "--name"),
    start: str | None = typer.Option(None, "--start"),
    deadline: str | None = typer.Option(None, "--deadline"),
    description: str | None = typer.Option(None, "--description"),
    status: str | None = typer.Option(None, "--status"),
    deliverable: list[str] | None = typer.Option(None, "--deliverable", help="Replaces the list"),
    depends_on: list[str] | None = typer.Option(None, "--depends-on", help="Replaces the list"),
    responsible: list[str] | None = typer.Option(None, "--responsible"),
    accountable: list[str] | None = typer.Option(None, "--accountable"),
    consulted: list[str] | None = typer.Option(None, "--consulted"),
    informed: list[str] | None = typer.Option(None, "--informed"),
) -> None:
    """Update fields of an activity. List options replace the stored list when given."""
    _check_optional_name("activity", name)
    _check(validate_date_fields("activity", {"startDate": start, "deadline": deadline}))

    store = _open_store(ctx)
    raci = _raci_from_options(responsible, accountable, consulted, informed)
    if raci is not None:
        current = store.find_activity(activity_id)
        if current is not None:
            # Roles not mentioned keep their holders.
            raci = RaciAssignment(
                **{
                    role: raci.holders(role) or current.raci.holders(role)  # type: ignore[arg-type]
                    for role in RACI_ROLES
                }
            )
    try:
        patch = ActivityPatch(
            name=name,
            description=description,
            start_date=start,
            deadline=deadline,
            status=status,  # type: ignore[arg-type]
            deliverables=tuple(deliverable) if deliverable else None,
            dependencies=tuple(depends_on) if depends_on else None,
            raci=raci,
        )
    except ValueError as e:
        _fail(StateValidationError(code="E_INVALID_ENUM", message=str(e), path="activity.status"))

    found = store.update_activity(activity_id, patch)
    _report_update("activity", activity_id, found)


@app.command("show")
def show(
    ctx: typer.Context,
    view_name: str | None = typer.Option(None, "--view", help="Override the current view"),
    start: str | None = typer.Option(None, "--start", help="Process-map window start (YYYY-MM[-DD])"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Render the current view (stakeholders, activities or process-map)."""
    if format not in ("text", "json"):
        _fail(_unknown_format(format, ("text", "json")))
    store = _open_store(ctx)
    selected = view_name or store.current_view
    if selected not in VIEWS:
        _fail(
            StateValidationError(
                code="E_UNKNOWN_VIEW",
                message=f"unknown view: {selected} (choose one of: {', '.join(sorted(VIEWS))})",
                path="view",
            )
        )

    if selected == "process-map":
        projection = project_timeline(store.stakeholders, _window_start(start))
        if format == "json":
            typer.echo(json.dumps(projection_to_dict(projection), indent=2, sort_keys=True))
        else:
            typer.echo(render_text(projection))
        return

    if format == "json":
        typer.echo(json.dumps(state_to_dict(store.state), indent=2, sort_keys=True))
    elif selected == "stakeholders":
        typer.echo(render_stakeholders(store.state))
    else:
        typer.echo(render_activities(store.state))


@app.command("map")
def map_cmd(
    ctx: typer.Context,
    start: str | None = typer.Option(None, "--start", help="Window start (YYYY-MM[-DD]); default: this month"),
    format: str = typer.Option("text", "--format", help="Output format: text|json|svg"),
    out: str | None = typer.Option(None, "--out", help="Write output to this file instead of stdout"),
    layout_file: str | None = typer.Option(
        None,
        "--layout-file",
        help="Optional YAML file overriding grid geometry",
    ),
) -> None:
    """Project activities onto the 12-month timeline."""
    if format not in ("text", "json", "svg"):
        _fail(_unknown_format(format, ("text", "json", "svg")))

    try:
        layout = load_and_merge(layout_file)
    except FileNotFoundError:
        _fail(
            StateLoadError(
                code="E_LAYOUT_FILE_NOT_FOUND",
                message=f"layout file not found: {layout_file}",
                path="layout_file",
            ),
            exit_code=1,
        )
    except LayoutConfigError as e:
        _fail(StateValidationError(code="E_LAYOUT_FILE_INVALID", message=str(e), path="layout_file"))

    store = _open_store(ctx)
    projection = project_timeline(store.stakeholders, _window_start(start), layout)

    if format == "svg":
        text = render_svg(projection, layout)
    elif format == "json":
        text = json.dumps(projection_to_dict(projection), indent=2, sort_keys=True)
    else:
        text = render_text(projection)

    if out is None:
        typer.echo(text)
        return
    p = Path(out)
    if str(p.parent) not in (".", ""):
        p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(text + "\n", encoding="utf-8")
    typer.echo(f"OK: wrote {format} process map to {out}")


@app.command("lint")
def lint(
    ctx: typer.Context,
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Advisory checks on the stored state (dangling dependencies, dates, RACI ids)."""
    if format not in ("text", "json"):
        _fail(_unknown_format(format, ("text", "json")))

    store = _open_store(ctx)
    errors = lint_state(store.state)

    if format == "json":
        payload = {
            "tool": "process-map",
            "command": "lint",
            "ok": not errors,
            "error_count": len(errors),
            "errors": [_to_item(e, "lint") for e in errors],
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        raise typer.Exit(code=2 if errors else 0)

    if errors:
        _print_errors(list(errors))
        raise typer.Exit(code=2)
    typer.echo("OK: lint passed")


@app.command("validate")
def validate(
    path: str = typer.Argument(..., help="Path to a state file (.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Validate a process-map state document."""
    if format not in ("text", "json"):
        _fail(_unknown_format(format, ("text", "json")))

    def _emit_json(ok: bool, *, exit_code: int, errors: list[ProcessMapError], summary: dict | None) -> None:
        payload = {
            "tool": "process-map",
            "command": "validate",
            "ok": ok,
            "error_count": len(errors),
            "errors": [_to_item(e, "load" if isinstance(e, StateLoadError) else "validate") for e in errors],
            "summary": summary,
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        raise typer.Exit(code=exit_code)

    try:
        raw = load_state_file(path)
    except StateLoadError as e:
        if format == "json":
            _emit_json(False, exit_code=1, errors=[e], summary=None)
        _print_errors([e])
        raise typer.Exit(code=1)

    state, errors = validate_state(raw)
    if errors or state is None:
        if format == "json":
            _emit_json(False, exit_code=2, errors=list(errors), summary=None)
        _print_errors(list(errors))
        raise typer.Exit(code=2)

    if format == "text":
        typer.echo(summarize_state(state))
        return

    entities = [e for s in state.stakeholders for e in s.entities]
    summary = {
        "stakeholder_count": len(state.stakeholders),
        "entity_count": len(entities),
        "activity_count": sum(len(e.activities) for e in entities),
        "current_view": state.current_view,
    }
    _emit_json(True, exit_code=0, errors=[], summary=summary)


@app.command("reset")
def reset(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", help="Confirm clearing all stakeholders, entities and activities"),
) -> None:
    """Clear the whole store."""
    if not yes:
        _fail(
            StateValidationError(
                code="E_RESET_NOT_CONFIRMED",
                message="refusing to clear the store without --yes",
                path="yes",
            )
        )
    _open_store(ctx).reset()
    typer.echo("OK: store cleared")


def _raci_from_options(
    responsible: list[str] | None,
    accountable: list[str] | None,
    consulted: list[str] | None,
    informed: list[str] | None,
) -> Optional[RaciAssignment]:
    if not any((responsible, accountable, consulted, informed)):
        return None
    return RaciAssignment(
        responsible=tuple(responsible or []),
        accountable=tuple(accountable or []),
        consulted=tuple(consulted or []),
        informed=tuple(informed or []),
    )


def _window_start(value: str | None) -> date:
    if value is None:
        return date.today().replace(day=1)
    text = value if len(value) > 7 else f"{value}-01"
    try:
        return date.fromisoformat(text).replace(day=1)
    except ValueError:
        _fail(
            StateValidationError(
                code="E_INVALID_DATE",
                message=f"--start must be YYYY-MM or YYYY-MM-DD, got {value!r}",
                path="start",
            )
        )


def _check_optional_name(kind: str, name: str | None) -> None:
    if name is not None and not name.strip():
        _fail(
            StateValidationError(
                code="E_REQUIRED_FIELD",
                message="name must be a non-empty string",
                path=f"{kind}.name",
            )
        )


def _check(errors: list[StateValidationError]) -> None:
    if errors:
        _print_errors(list(errors))
        raise typer.Exit(code=2)


def _report_update(kind: str, record_id: str, found: bool) -> None:
    if not found:
        _fail(_unknown_id(kind, record_id))
    typer.echo(f"OK: updated {kind} {record_id}")


def _unknown_id(kind: str, record_id: str) -> StateValidationError:
    return StateValidationError(
        code="E_UNKNOWN_ID",
        message=f"no {kind} with id: {record_id}",
        path=f"{kind}.id",
    )


def _unknown_format(format: str, choices: tuple[str, ...]) -> StateValidationError:
    return StateValidationError(
        code="E_UNKNOWN_FORMAT",
        message=f"unknown format: {format} (choose one of: {', '.join(choices)})",
        path="format",
    )


def _to_item(e: ProcessMapError, source: str) -> dict[str, Any]:
    return {
        "code": e.code,
        "message": e.message,
        "file": e.file,
        "path": e.path,
        "severity": "warning" if e.code.startswith("L_") else "error",
        "source": source,
    }


def _fail(err: ProcessMapError, exit_code: int = 2) -> NoReturn:
    _print_errors([err])
    raise typer.Exit(code=exit_code)


def _print_errors(errors: list[ProcessMapError]) -> None:
    for e in sort_errors(errors):
        typer.echo(str(e), err=True)


def main() -> None:
    app(prog_name="process-map")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
