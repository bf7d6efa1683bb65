from __future__ import annotations

from collections import Counter
from datetime import date
from typing import Any, Optional, cast

from process_map.core.errors import StateValidationError, sort_errors
from process_map.core.model import (
    ACTIVITY_STATUSES,
    DEFAULT_COLOR,
    DEFAULT_VIEW,
    RACI_ROLES,
    VIEWS,
    Activity,
    ActivityStatus,
    Entity,
    ProcessState,
    RaciAssignment,
    Stakeholder,
    View,
)


def _is_list_of_str(v: Any) -> bool:
    return isinstance(v, list) and all(isinstance(x, str) for x in v)


def _is_iso_date(v: Any) -> bool:
    if not isinstance(v, str):
        return False
    try:
        date.fromisoformat(v)
    except ValueError:
        return False
    return True


class _Collector:
    def __init__(self, file: Optional[str], strict: bool = True) -> None:
        self.file = file
        self.strict = strict
        self.errors: list[StateValidationError] = []
        self.seen_ids: dict[str, str] = {}

    def add(self, code: str, message: str, path: str) -> None:
        self.errors.append(StateValidationError(code=code, message=message, file=self.file, path=path))

    def required_str(self, raw: dict[str, Any], key: str, path: str) -> Optional[str]:
        v = raw.get(key)
        if not self.strict and key == "name" and isinstance(v, str):
            # The store never checks names, so persisted names may be blank.
            return v
        if not isinstance(v, str) or not v.strip():
            self.add("E_REQUIRED_FIELD", f"{key} is required and must be a non-empty string", f"{path}.{key}")
            return None
        return v

    def optional_str(self, raw: dict[str, Any], key: str, path: str, default: str) -> str:
        v = raw.get(key)
        if v is None:
            return default
        if not isinstance(v, str):
            self.add("E_INVALID_TYPE", f"{key} must be a string", f"{path}.{key}")
            return default
        return v

    def str_list(self, raw: dict[str, Any], key: str, path: str) -> tuple[str, ...]:
        v = raw.get(key)
        if v is None:
            return ()
        if not _is_list_of_str(v):
            self.add("E_INVALID_TYPE", f"{key} must be an array of strings", f"{path}.{key}")
            return ()
        return tuple(v)

    def claim_id(self, nid: str, path: str) -> bool:
        if nid in self.seen_ids:
            self.add("E_DUPLICATE_ID", f"duplicate id: {nid} (first seen at {self.seen_ids[nid]})", f"{path}.id")
            return False
        self.seen_ids[nid] = path
        return True


def validate_state(
    raw: dict[str, Any], *, strict: bool = True
) -> tuple[Optional[ProcessState], list[StateValidationError]]:
    """Validate a decoded state document (camelCase keys).

    Returns (state, errors). State is None when errors exist.
    Optional display fields default; ids, names and dates are required.
    With strict=False names only need to be strings, matching what the
    store itself accepts, so anything the store persisted decodes again.
    """

    c = _Collector(cast(Optional[str], raw.get("__file__")), strict)

    view = raw.get("currentView")
    if view is None:
        view = DEFAULT_VIEW
    elif not isinstance(view, str) or view not in VIEWS:
        c.add("E_INVALID_ENUM", f"currentView must be one of {sorted(VIEWS)}", "currentView")
        view = DEFAULT_VIEW

    stakeholders_raw = raw.get("stakeholders")
    if stakeholders_raw is None:
        stakeholders_raw = []
    if not isinstance(stakeholders_raw, list):
        c.add("E_INVALID_TYPE", "stakeholders must be an array", "stakeholders")
        return None, sort_errors(c.errors)

    stakeholders: list[Stakeholder] = []
    for si, s_raw in enumerate(stakeholders_raw):
        s = _stakeholder(c, s_raw, f"stakeholders[{si}]")
        if s is not None:
            stakeholders.append(s)

    if c.errors:
        return None, sort_errors(c.errors)
    return ProcessState(current_view=cast(View, view), stakeholders=tuple(stakeholders)), []


def _stakeholder(c: _Collector, raw: Any, path: str) -> Optional[Stakeholder]:
    if not isinstance(raw, dict):
        c.add("E_INVALID_TYPE", "stakeholder must be an object", path)
        return None
    sid = c.required_str(raw, "id", path)
    name = c.required_str(raw, "name", path)
    if sid is None or name is None or not c.claim_id(sid, path):
        return None

    entities_raw = raw.get("entities") or []
    if not isinstance(entities_raw, list):
        c.add("E_INVALID_TYPE", "entities must be an array", f"{path}.entities")
        entities_raw = []

    entities: list[Entity] = []
    for ei, e_raw in enumerate(entities_raw):
        e = _entity(c, e_raw, sid, f"{path}.entities[{ei}]")
        if e is not None:
            entities.append(e)

    return Stakeholder(
        id=sid,
        name=name,
        description=c.optional_str(raw, "description", path, ""),
        color=c.optional_str(raw, "color", path, DEFAULT_COLOR),
        entities=tuple(entities),
    )


def _entity(c: _Collector, raw: Any, stakeholder_id: str, path: str) -> Optional[Entity]:
    if not isinstance(raw, dict):
        c.add("E_INVALID_TYPE", "entity must be an object", path)
        return None
    eid = c.required_str(raw, "id", path)
    name = c.required_str(raw, "name", path)
    if eid is None or name is None or not c.claim_id(eid, path):
        return None

    backref = raw.get("stakeholderId", stakeholder_id)
    if backref != stakeholder_id:
        c.add(
            "E_BACKREF_MISMATCH",
            f"stakeholderId {backref!r} does not match owning stakeholder {stakeholder_id!r}",
            f"{path}.stakeholderId",
        )

    activities_raw = raw.get("activities") or []
    if not isinstance(activities_raw, list):
        c.add("E_INVALID_TYPE", "activities must be an array", f"{path}.activities")
        activities_raw = []

    activities: list[Activity] = []
    for ai, a_raw in enumerate(activities_raw):
        a = _activity(c, a_raw, eid, f"{path}.activities[{ai}]")
        if a is not None:
            activities.append(a)

    return Entity(
        id=eid,
        stakeholder_id=stakeholder_id,
        name=name,
        description=c.optional_str(raw, "description", path, ""),
        color=c.optional_str(raw, "color", path, DEFAULT_COLOR),
        activities=tuple(activities),
    )


def _activity(c: _Collector, raw: Any, entity_id: str, path: str) -> Optional[Activity]:
    if not isinstance(raw, dict):
        c.add("E_INVALID_TYPE", "activity must be an object", path)
        return None
    aid = c.required_str(raw, "id", path)
    name = c.required_str(raw, "name", path)
    start_date = raw.get("startDate")
    deadline = raw.get("deadline")
    for key, v in (("startDate", start_date), ("deadline", deadline)):
        if not isinstance(v, str):
            c.add("E_REQUIRED_FIELD", f"{key} is required and must be a string", f"{path}.{key}")
    if aid is None or name is None or not c.claim_id(aid, path):
        return None

    backref = raw.get("entityId", entity_id)
    if backref != entity_id:
        c.add(
            "E_BACKREF_MISMATCH",
            f"entityId {backref!r} does not match owning entity {entity_id!r}",
            f"{path}.entityId",
        )

    status = raw.get("status", "pending")
    if not isinstance(status, str) or status not in ACTIVITY_STATUSES:
        c.add("E_INVALID_ENUM", f"status must be one of {sorted(ACTIVITY_STATUSES)}", f"{path}.status")
        status = "pending"

    raci_raw = raw.get("raci") or {}
    raci = RaciAssignment()
    if not isinstance(raci_raw, dict):
        c.add("E_INVALID_TYPE", "raci must be an object", f"{path}.raci")
    else:
        for role in raci_raw:
            if role not in RACI_ROLES:
                c.add("E_INVALID_ENUM", f"raci role must be one of {list(RACI_ROLES)}", f"{path}.raci.{role}")
        raci = RaciAssignment(**{role: c.str_list(raci_raw, role, f"{path}.raci") for role in RACI_ROLES})

    return Activity(
        id=aid,
        entity_id=entity_id,
        name=name,
        description=c.optional_str(raw, "description", path, ""),
        start_date=start_date if isinstance(start_date, str) else "",
        deadline=deadline if isinstance(deadline, str) else "",
        status=cast(ActivityStatus, status),
        deliverables=c.str_list(raw, "deliverables", path),
        dependencies=c.str_list(raw, "dependencies", path),
        raci=raci,
    )


# Form-layer checks: run by callers before anything reaches the store.
_REQUIRED_BY_KIND: dict[str, tuple[str, ...]] = {
    "stakeholder": ("name",),
    "entity": ("name",),
    "activity": ("name", "startDate", "deadline"),
}


def validate_required_fields(kind: str, fields: dict[str, Any]) -> list[StateValidationError]:
    """Reject empty required fields and non-ISO dates for a record about to be created."""
    if kind not in _REQUIRED_BY_KIND:
        raise ValueError(f"unknown record kind: {kind}")

    errors: list[StateValidationError] = []
    for key in _REQUIRED_BY_KIND[kind]:
        v = fields.get(key)
        if not isinstance(v, str) or not v.strip():
            errors.append(
                StateValidationError(
                    code="E_REQUIRED_FIELD",
                    message=f"{key} is required and must be a non-empty string",
                    path=f"{kind}.{key}",
                )
            )
    errors.extend(validate_date_fields(kind, fields))
    return sort_errors(errors)


def validate_date_fields(kind: str, fields: dict[str, Any]) -> list[StateValidationError]:
    errors: list[StateValidationError] = []
    for key in ("startDate", "deadline"):
        v = fields.get(key)
        if isinstance(v, str) and v.strip() and not _is_iso_date(v):
            errors.append(
                StateValidationError(
                    code="E_INVALID_DATE",
                    message=f"{key} must be an ISO date (YYYY-MM-DD), got {v!r}",
                    path=f"{kind}.{key}",
                )
            )
    return errors


def summarize_state(state: ProcessState) -> str:
    entities = [e for s in state.stakeholders for e in s.entities]
    activities = [a for e in entities for a in e.activities]
    counts = Counter([a.status for a in activities])
    parts = [f"{st}={counts.get(st, 0)}" for st in ("pending", "in-progress", "completed")]
    return (
        f"OK: {len(state.stakeholders)} stakeholders, {len(entities)} entities, "
        f"{len(activities)} activities ("
        + ", ".join(parts)
        + f")\nView: {state.current_view}"
    )
