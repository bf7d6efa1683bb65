from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Optional

from process_map.core.model import (
    ACTIVITY_STATUSES,
    DEFAULT_COLOR,
    RACI_ROLES,
    ActivityStatus,
    RaciAssignment,
)


def _check_status(status: Optional[str]) -> None:
    if status is not None and status not in ACTIVITY_STATUSES:
        raise ValueError(f"status must be one of {sorted(ACTIVITY_STATUSES)}, got {status!r}")


@dataclass(frozen=True)
class StakeholderFields:
    name: str
    description: str = ""
    color: str = DEFAULT_COLOR


@dataclass(frozen=True)
class StakeholderPatch:
    name: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None


@dataclass(frozen=True)
class EntityFields:
    name: str
    description: str = ""
    color: str = DEFAULT_COLOR


@dataclass(frozen=True)
class EntityPatch:
    name: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None


@dataclass(frozen=True)
class ActivityFields:
    name: str
    start_date: str
    deadline: str
    description: str = ""
    status: ActivityStatus = "pending"
    deliverables: tuple[str, ...] = ()
    dependencies: tuple[str, ...] = ()
    raci: RaciAssignment = field(default_factory=RaciAssignment)

    def __post_init__(self) -> None:
        _check_status(self.status)


@dataclass(frozen=True)
class ActivityPatch:
    name: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[str] = None
    deadline: Optional[str] = None
    status: Optional[ActivityStatus] = None
    deliverables: Optional[tuple[str, ...]] = None
    dependencies: Optional[tuple[str, ...]] = None
    raci: Optional[RaciAssignment] = None

    def __post_init__(self) -> None:
        _check_status(self.status)


def changes(patch: Any) -> dict[str, Any]:
    """Fields a patch actually sets (None means "leave unchanged")."""
    return {f.name: getattr(patch, f.name) for f in fields(patch) if getattr(patch, f.name) is not None}


# camelCase document keys -> record attribute names
_ACTIVITY_KEYS: dict[str, str] = {
    "name": "name",
    "description": "description",
    "startDate": "start_date",
    "deadline": "deadline",
    "status": "status",
    "deliverables": "deliverables",
    "dependencies": "dependencies",
    "raci": "raci",
}


def parse_raci(obj: Any) -> RaciAssignment:
    if not isinstance(obj, dict):
        raise ValueError("raci must be an object")
    unknown = sorted(k for k in obj if k not in RACI_ROLES)
    if unknown:
        raise ValueError(f"raci roles must be among {list(RACI_ROLES)}, got {unknown}")
    kwargs: dict[str, tuple[str, ...]] = {}
    for role in RACI_ROLES:
        kwargs[role] = _str_tuple(obj.get(role, []), f"raci.{role}")
    return RaciAssignment(**kwargs)


def parse_stakeholder_fields(obj: dict[str, Any]) -> StakeholderFields:
    return StakeholderFields(**_parse_display_fields(obj, require_name=True))


def parse_stakeholder_patch(obj: dict[str, Any]) -> StakeholderPatch:
    return StakeholderPatch(**_parse_display_fields(obj, require_name=False))


def parse_entity_fields(obj: dict[str, Any]) -> EntityFields:
    return EntityFields(**_parse_display_fields(obj, require_name=True))


def parse_entity_patch(obj: dict[str, Any]) -> EntityPatch:
    return EntityPatch(**_parse_display_fields(obj, require_name=False))


def parse_activity_fields(obj: dict[str, Any]) -> ActivityFields:
    kwargs = _parse_activity_kwargs(obj)
    for key in ("name", "start_date", "deadline"):
        if key not in kwargs:
            raise ValueError(f"{key} is required")
    return ActivityFields(**kwargs)


def parse_activity_patch(obj: dict[str, Any]) -> ActivityPatch:
    return ActivityPatch(**_parse_activity_kwargs(obj))


def _parse_display_fields(obj: dict[str, Any], *, require_name: bool) -> dict[str, Any]:
    if not isinstance(obj, dict):
        raise ValueError("fields must be an object")
    out: dict[str, Any] = {}
    for key in ("name", "description", "color"):
        if key not in obj or obj[key] is None:
            continue
        if not isinstance(obj[key], str):
            raise ValueError(f"{key} must be a string")
        out[key] = obj[key]
    if require_name and "name" not in out:
        raise ValueError("name is required")
    return out


def _parse_activity_kwargs(obj: dict[str, Any]) -> dict[str, Any]:
    if not isinstance(obj, dict):
        raise ValueError("fields must be an object")
    out: dict[str, Any] = {}
    for key, attr in _ACTIVITY_KEYS.items():
        v = obj.get(key)
        if v is None:
            continue
        if attr in ("deliverables", "dependencies"):
            out[attr] = _str_tuple(v, key)
        elif attr == "raci":
            out[attr] = parse_raci(v)
        elif not isinstance(v, str):
            raise ValueError(f"{key} must be a string")
        else:
            out[attr] = v
    return out


def _str_tuple(v: Any, where: str) -> tuple[str, ...]:
    if not isinstance(v, (list, tuple)) or any(not isinstance(x, str) for x in v):
        raise ValueError(f"{where} must be a list[str]")
    return tuple(v)
