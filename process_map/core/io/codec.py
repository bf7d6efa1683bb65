from __future__ import annotations

from typing import Any, Optional

from process_map.core.errors import ProcessMapError, StateLoadError
from process_map.core.model import RACI_ROLES, Activity, Entity, ProcessState, Stakeholder
from process_map.core.validate.validate_state import validate_state


SCHEMA_VERSION = 1


def state_to_dict(state: ProcessState) -> dict[str, Any]:
    """Plain JSON-ready document: {currentView, stakeholders} with camelCase keys."""
    return {
        "currentView": state.current_view,
        "stakeholders": [_stakeholder_to_dict(s) for s in state.stakeholders],
    }


def wrap_record(state: ProcessState) -> dict[str, Any]:
    return {"state": state_to_dict(state), "version": SCHEMA_VERSION}


def unwrap_record(doc: Any, file: Optional[str] = None) -> dict[str, Any]:
    """Return the raw state document inside a persisted record.

    Accepts the versioned envelope {state, version} (version 0 or 1) and the
    bare unversioned {currentView, stakeholders} document.
    """

    if not isinstance(doc, dict):
        raise StateLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="top-level document must be a mapping/object",
            file=file,
        )

    if "state" not in doc:
        return doc

    version = doc.get("version", 0)
    if not isinstance(version, int) or version < 0 or version > SCHEMA_VERSION:
        raise StateLoadError(
            code="E_UNSUPPORTED_VERSION",
            message=f"unsupported record version: {version!r} (max {SCHEMA_VERSION})",
            file=file,
            path="version",
        )

    state = doc.get("state")
    if not isinstance(state, dict):
        raise StateLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="state must be a mapping/object",
            file=file,
            path="state",
        )
    return state


def decode_record(doc: Any, file: Optional[str] = None) -> tuple[Optional[ProcessState], list[ProcessMapError]]:
    try:
        raw = unwrap_record(doc, file)
    except StateLoadError as e:
        return None, [e]
    raw = dict(raw)
    if file is not None:
        raw["__file__"] = file
    state, errors = validate_state(raw, strict=False)
    return state, list(errors)


def _stakeholder_to_dict(s: Stakeholder) -> dict[str, Any]:
    return {
        "id": s.id,
        "name": s.name,
        "description": s.description,
        "color": s.color,
        "entities": [_entity_to_dict(e) for e in s.entities],
    }


def _entity_to_dict(e: Entity) -> dict[str, Any]:
    return {
        "id": e.id,
        "stakeholderId": e.stakeholder_id,
        "name": e.name,
        "description": e.description,
        "color": e.color,
        "activities": [activity_to_dict(a) for a in e.activities],
    }


def activity_to_dict(a: Activity) -> dict[str, Any]:
    return {
        "id": a.id,
        "entityId": a.entity_id,
        "name": a.name,
        "description": a.description,
        "startDate": a.start_date,
        "deadline": a.deadline,
        "status": a.status,
        "deliverables": list(a.deliverables),
        "dependencies": list(a.dependencies),
        "raci": {role: list(a.raci.holders(role)) for role in RACI_ROLES},
    }
