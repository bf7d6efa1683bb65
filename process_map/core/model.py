from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal


ActivityStatus = Literal["pending", "in-progress", "completed"]
RaciRole = Literal["responsible", "accountable", "consulted", "informed"]
View = Literal["stakeholders", "activities", "process-map"]

ACTIVITY_STATUSES: set[str] = {"pending", "in-progress", "completed"}
RACI_ROLES: tuple[str, ...] = ("responsible", "accountable", "consulted", "informed")
VIEWS: set[str] = {"stakeholders", "activities", "process-map"}

DEFAULT_VIEW: View = "stakeholders"
DEFAULT_COLOR = "#3B82F6"


@dataclass(frozen=True)
class RaciAssignment:
    # Each role holds stakeholder or entity ids.
    responsible: tuple[str, ...] = ()
    accountable: tuple[str, ...] = ()
    consulted: tuple[str, ...] = ()
    informed: tuple[str, ...] = ()

    def holders(self, role: RaciRole) -> tuple[str, ...]:
        return getattr(self, role)


@dataclass(frozen=True)
class Activity:
    id: str
    entity_id: str
    name: str
    description: str
    start_date: str
    deadline: str
    status: ActivityStatus = "pending"
    deliverables: tuple[str, ...] = ()
    dependencies: tuple[str, ...] = ()
    raci: RaciAssignment = field(default_factory=RaciAssignment)


@dataclass(frozen=True)
class Entity:
    id: str
    stakeholder_id: str
    name: str
    description: str = ""
    color: str = DEFAULT_COLOR
    activities: tuple[Activity, ...] = ()


@dataclass(frozen=True)
class Stakeholder:
    id: str
    name: str
    description: str = ""
    color: str = DEFAULT_COLOR
    entities: tuple[Entity, ...] = ()


@dataclass(frozen=True)
class ProcessState:
    current_view: View = DEFAULT_VIEW
    stakeholders: tuple[Stakeholder, ...] = ()
