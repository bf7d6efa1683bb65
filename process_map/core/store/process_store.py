from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, replace
from typing import Callable, Iterator, Optional, Union, cast

from process_map.core.io.storage import KeyValueStorage, load_state, save_state
from process_map.core.model import VIEWS, Activity, Entity, ProcessState, Stakeholder, View
from process_map.core.store.contracts import (
    ActivityFields,
    ActivityPatch,
    EntityFields,
    EntityPatch,
    StakeholderFields,
    StakeholderPatch,
    changes,
)


logger = logging.getLogger(__name__)

Listener = Callable[[ProcessState], None]


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class _Location:
    # Positions into the snapshot tuples; entity/activity are None for shallower kinds.
    stakeholder: int
    entity: Optional[int] = None
    activity: Optional[int] = None


def _build_index(stakeholders: tuple[Stakeholder, ...]) -> dict[str, _Location]:
    index: dict[str, _Location] = {}
    for si, s in enumerate(stakeholders):
        index[s.id] = _Location(si)
        for ei, e in enumerate(s.entities):
            index[e.id] = _Location(si, ei)
            for ai, a in enumerate(e.activities):
                index[a.id] = _Location(si, ei, ai)
    return index


class ProcessStore:
    """Single source of truth for the stakeholder -> entity -> activity tree.

    Every mutation swaps in a brand-new immutable snapshot, persists it and
    then notifies subscribers. Missing references are silent no-ops: add_*
    returns None and update_* returns False.
    """

    def __init__(
        self,
        storage: Optional[KeyValueStorage] = None,
        *,
        id_factory: Callable[[], str] = _new_id,
        initial: Optional[ProcessState] = None,
    ) -> None:
        self._storage = storage
        self._id_factory = id_factory
        self._lock = threading.RLock()
        self._listeners: list[Listener] = []

        if initial is not None:
            state = initial
        elif storage is not None:
            state = load_state(storage)
        else:
            state = ProcessState()
        self._current = (state, _build_index(state.stakeholders))

    # -- queries -----------------------------------------------------------

    @property
    def state(self) -> ProcessState:
        return self._current[0]

    @property
    def _state(self) -> ProcessState:
        return self._current[0]

    @property
    def _index(self) -> dict[str, _Location]:
        return self._current[1]

    @property
    def current_view(self) -> View:
        return self._state.current_view

    @property
    def stakeholders(self) -> tuple[Stakeholder, ...]:
        return self._state.stakeholders

    def find_stakeholder(self, stakeholder_id: str) -> Optional[Stakeholder]:
        found = self._lookup(stakeholder_id)
        return found if isinstance(found, Stakeholder) else None

    def find_entity(self, entity_id: str) -> Optional[Entity]:
        found = self._lookup(entity_id)
        return found if isinstance(found, Entity) else None

    def find_activity(self, activity_id: str) -> Optional[Activity]:
        found = self._lookup(activity_id)
        return found if isinstance(found, Activity) else None

    def iter_entities(self) -> Iterator[Entity]:
        for s in self._state.stakeholders:
            yield from s.entities

    def iter_activities(self) -> Iterator[Activity]:
        for e in self.iter_entities():
            yield from e.activities

    def owner_name(self, holder_id: str) -> Optional[str]:
        """Name of the stakeholder or entity a RACI holder id refers to."""
        found = self._lookup(holder_id)
        if isinstance(found, (Stakeholder, Entity)):
            return found.name
        return None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    # -- mutations ---------------------------------------------------------

    def set_view(self, view: View) -> None:
        if view not in VIEWS:
            raise ValueError(f"view must be one of {sorted(VIEWS)}, got {view!r}")
        with self._lock:
            self._publish(replace(self._state, current_view=view))

    def add_stakeholder(self, fields: StakeholderFields) -> str:
        with self._lock:
            stakeholder = Stakeholder(
                id=self._id_factory(),
                name=fields.name,
                description=fields.description,
                color=fields.color,
            )
            self._publish(replace(self._state, stakeholders=self._state.stakeholders + (stakeholder,)))
            return stakeholder.id

    def update_stakeholder(self, stakeholder_id: str, patch: StakeholderPatch) -> bool:
        with self._lock:
            loc = self._index.get(stakeholder_id)
            if loc is None or loc.entity is not None:
                logger.debug("update_stakeholder: no stakeholder %s", stakeholder_id)
                return False
            current = self._state.stakeholders[loc.stakeholder]
            self._publish(self._with_stakeholder(loc.stakeholder, replace(current, **changes(patch))))
            return True

    def add_entity(self, stakeholder_id: str, fields: EntityFields) -> Optional[str]:
        with self._lock:
            loc = self._index.get(stakeholder_id)
            if loc is None or loc.entity is not None:
                logger.debug("add_entity: no stakeholder %s", stakeholder_id)
                return None
            owner = self._state.stakeholders[loc.stakeholder]
            entity = Entity(
                id=self._id_factory(),
                stakeholder_id=owner.id,
                name=fields.name,
                description=fields.description,
                color=fields.color,
            )
            updated = replace(owner, entities=owner.entities + (entity,))
            self._publish(self._with_stakeholder(loc.stakeholder, updated))
            return entity.id

    def update_entity(self, entity_id: str, patch: EntityPatch) -> bool:
        with self._lock:
            loc = self._index.get(entity_id)
            if loc is None or loc.entity is None or loc.activity is not None:
                logger.debug("update_entity: no entity %s", entity_id)
                return False
            owner = self._state.stakeholders[loc.stakeholder]
            entity = replace(owner.entities[loc.entity], **changes(patch))
            self._publish(self._with_entity(loc.stakeholder, loc.entity, entity))
            return True

    def add_activity(self, entity_id: str, fields: ActivityFields) -> Optional[str]:
        with self._lock:
            loc = self._index.get(entity_id)
            if loc is None or loc.entity is None or loc.activity is not None:
                logger.debug("add_activity: no entity %s", entity_id)
                return None
            entity = self._state.stakeholders[loc.stakeholder].entities[loc.entity]
            activity = Activity(
                id=self._id_factory(),
                entity_id=entity.id,
                name=fields.name,
                description=fields.description,
                start_date=fields.start_date,
                deadline=fields.deadline,
                status=fields.status,
                deliverables=tuple(fields.deliverables),
                dependencies=tuple(fields.dependencies),
                raci=fields.raci,
            )
            updated = replace(entity, activities=entity.activities + (activity,))
            self._publish(self._with_entity(loc.stakeholder, loc.entity, updated))
            return activity.id

    def update_activity(self, activity_id: str, patch: ActivityPatch) -> bool:
        with self._lock:
            loc = self._index.get(activity_id)
            if loc is None or loc.activity is None:
                logger.debug("update_activity: no activity %s", activity_id)
                return False
            entity_pos = cast(int, loc.entity)
            entity = self._state.stakeholders[loc.stakeholder].entities[entity_pos]
            activities = list(entity.activities)
            activities[loc.activity] = replace(activities[loc.activity], **changes(patch))
            updated = replace(entity, activities=tuple(activities))
            self._publish(self._with_entity(loc.stakeholder, entity_pos, updated))
            return True

    def reset(self) -> None:
        """Clear the whole store back to the empty initial state."""
        with self._lock:
            self._publish(ProcessState())

    # -- internals ---------------------------------------------------------

    def _lookup(self, record_id: str) -> Union[Stakeholder, Entity, Activity, None]:
        state, index = self._current
        loc = index.get(record_id)
        if loc is None:
            return None
        s = state.stakeholders[loc.stakeholder]
        if loc.entity is None:
            return s
        e = s.entities[loc.entity]
        if loc.activity is None:
            return e
        return e.activities[loc.activity]

    def _with_stakeholder(self, position: int, stakeholder: Stakeholder) -> ProcessState:
        stakeholders = list(self._state.stakeholders)
        stakeholders[position] = stakeholder
        return replace(self._state, stakeholders=tuple(stakeholders))

    def _with_entity(self, s_pos: int, e_pos: int, entity: Entity) -> ProcessState:
        owner = self._state.stakeholders[s_pos]
        entities = list(owner.entities)
        entities[e_pos] = entity
        return self._with_stakeholder(s_pos, replace(owner, entities=tuple(entities)))

    def _publish(self, state: ProcessState) -> None:
        # Swap state and index together so unlocked readers stay consistent.
        self._current = (state, _build_index(state.stakeholders))
        if self._storage is not None:
            try:
                save_state(self._storage, state)
            except OSError:
                logger.exception("Failed to persist process state")
        for listener in list(self._listeners):
            listener(state)
