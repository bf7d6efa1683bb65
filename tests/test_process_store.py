from dataclasses import replace

import pytest

from process_map.core.io.storage import MemoryStorage, STORAGE_KEY, load_state
from process_map.core.model import RaciAssignment
from process_map.core.store.contracts import (
    ActivityFields,
    ActivityPatch,
    EntityFields,
    EntityPatch,
    StakeholderFields,
    StakeholderPatch,
)
from process_map.core.store.process_store import ProcessStore


def _activity(name="Forecast", **kw) -> ActivityFields:
    return ActivityFields(name=name, start_date="2024-01-01", deadline="2024-03-15", **kw)


def _populated():
    store = ProcessStore()
    s1 = store.add_stakeholder(StakeholderFields(name="Ops"))
    s2 = store.add_stakeholder(StakeholderFields(name="Finance"))
    e1 = store.add_entity(s1, EntityFields(name="Planning"))
    e2 = store.add_entity(s1, EntityFields(name="Logistics"))
    e3 = store.add_entity(s2, EntityFields(name="Controlling"))
    a1 = store.add_activity(e1, _activity("Forecast"))
    a2 = store.add_activity(e3, _activity("Budget"))
    return store, (s1, s2), (e1, e2, e3), (a1, a2)


def test_ids_are_unique_across_all_kinds():
    store, stakeholders, entities, activities = _populated()
    ids = list(stakeholders) + list(entities) + list(activities)
    assert all(isinstance(i, str) and i for i in ids)
    assert len(set(ids)) == len(ids)


def test_hierarchy_containment_and_backrefs():
    store, (s1, s2), (e1, e2, e3), (a1, a2) = _populated()

    owners = {}
    for s in store.stakeholders:
        for e in s.entities:
            assert e.stakeholder_id == s.id
            owners.setdefault(e.id, []).append(s.id)
            for a in e.activities:
                assert a.entity_id == e.id
                owners.setdefault(a.id, []).append(e.id)

    assert owners[e1] == [s1] and owners[e2] == [s1] and owners[e3] == [s2]
    assert owners[a1] == [e1] and owners[a2] == [e3]


def test_insertion_order_is_display_order():
    store, _, _, _ = _populated()
    assert [s.name for s in store.stakeholders] == ["Ops", "Finance"]
    assert [e.name for e in store.stakeholders[0].entities] == ["Planning", "Logistics"]


def test_new_records_start_with_empty_children():
    store = ProcessStore()
    sid = store.add_stakeholder(StakeholderFields(name="Ops"))
    assert store.find_stakeholder(sid).entities == ()
    eid = store.add_entity(sid, EntityFields(name="Planning"))
    assert store.find_entity(eid).activities == ()


def test_update_activity_merges_only_given_fields():
    store = ProcessStore()
    sid = store.add_stakeholder(StakeholderFields(name="Ops"))
    eid = store.add_entity(sid, EntityFields(name="Planning"))
    raci = RaciAssignment(responsible=(eid,), accountable=(sid,))
    aid = store.add_activity(
        eid,
        _activity(deliverables=("Deck",), dependencies=("other",), raci=raci, description="d"),
    )
    before = store.find_activity(aid)

    assert store.update_activity(aid, ActivityPatch(status="completed")) is True

    after = store.find_activity(aid)
    assert after.status == "completed"
    assert after == replace(before, status="completed")


def test_update_stakeholder_keeps_id_and_entities():
    store, (s1, _), (e1, e2, _), _ = _populated()
    store.update_stakeholder(s1, StakeholderPatch(name="Operations", color="#000000"))
    s = store.find_stakeholder(s1)
    assert s.id == s1
    assert s.name == "Operations"
    assert s.color == "#000000"
    assert s.description == ""
    assert [e.id for e in s.entities] == [e1, e2]


def test_update_entity_found_across_stakeholders():
    store, _, (_, _, e3), (_, a2) = _populated()
    assert store.update_entity(e3, EntityPatch(description="Money")) is True
    e = store.find_entity(e3)
    assert e.description == "Money"
    assert e.name == "Controlling"
    assert [a.id for a in e.activities] == [a2]


def test_missing_references_are_noops():
    store, _, _, _ = _populated()
    before = store.state

    assert store.update_entity("nonexistent-id", EntityPatch(name="X")) is False
    assert store.update_stakeholder("nonexistent-id", StakeholderPatch(name="X")) is False
    assert store.update_activity("nonexistent-id", ActivityPatch(name="X")) is False
    assert store.add_entity("nonexistent-id", EntityFields(name="X")) is None
    assert store.add_activity("nonexistent-id", _activity()) is None

    assert store.state == before


def test_ids_of_the_wrong_kind_do_not_resolve():
    store, (s1, _), (e1, _, _), (a1, _) = _populated()
    before = store.state
    assert store.add_entity(e1, EntityFields(name="X")) is None
    assert store.add_activity(s1, _activity()) is None
    assert store.add_activity(a1, _activity()) is None
    assert store.update_entity(s1, EntityPatch(name="X")) is False
    assert store.update_stakeholder(e1, StakeholderPatch(name="X")) is False
    assert store.state == before


def test_every_mutation_publishes_a_new_snapshot():
    store = ProcessStore()
    seen = []
    unsubscribe = store.subscribe(seen.append)

    first = store.state
    sid = store.add_stakeholder(StakeholderFields(name="Ops"))
    store.set_view("activities")

    assert len(seen) == 2
    assert seen[-1] is store.state
    assert seen[0] is not first
    assert seen[0].stakeholders[0].id == sid
    assert first.stakeholders == ()

    unsubscribe()
    store.add_stakeholder(StakeholderFields(name="Finance"))
    assert len(seen) == 2


def test_listeners_see_fully_updated_snapshot():
    store = ProcessStore()
    sid = store.add_stakeholder(StakeholderFields(name="Ops"))
    observed = []
    store.subscribe(lambda state: observed.append(store.find_entity(state.stakeholders[0].entities[0].id)))
    eid = store.add_entity(sid, EntityFields(name="Planning"))
    assert observed[0].id == eid


def test_set_view_rejects_unknown_view():
    store = ProcessStore()
    with pytest.raises(ValueError):
        store.set_view("timeline")
    assert store.current_view == "stakeholders"


def test_owner_name_resolves_raci_holders():
    store, (s1, _), (e1, _, _), (a1, _) = _populated()
    assert store.owner_name(s1) == "Ops"
    assert store.owner_name(e1) == "Planning"
    assert store.owner_name(a1) is None
    assert store.owner_name("missing") is None


def test_iterators_follow_display_order():
    store, _, (e1, e2, e3), (a1, a2) = _populated()
    assert [e.id for e in store.iter_entities()] == [e1, e2, e3]
    assert [a.id for a in store.iter_activities()] == [a1, a2]


def test_reset_clears_everything():
    store, _, _, _ = _populated()
    store.set_view("process-map")
    store.reset()
    assert store.stakeholders == ()
    assert store.current_view == "stakeholders"


def test_mutations_are_persisted_and_restored():
    storage = MemoryStorage()
    store = ProcessStore(storage)
    sid = store.add_stakeholder(StakeholderFields(name="Ops"))
    eid = store.add_entity(sid, EntityFields(name="Planning"))
    store.add_activity(eid, _activity())
    store.set_view("process-map")

    assert storage.get(STORAGE_KEY) is not None
    assert load_state(storage) == store.state

    reopened = ProcessStore(storage)
    assert reopened.state == store.state


def test_custom_id_factory():
    counter = iter(range(100))
    store = ProcessStore(id_factory=lambda: f"id-{next(counter)}")
    sid = store.add_stakeholder(StakeholderFields(name="Ops"))
    eid = store.add_entity(sid, EntityFields(name="Planning"))
    assert (sid, eid) == ("id-0", "id-1")


class _BrokenStorage(MemoryStorage):
    def set(self, key, value):
        raise OSError("disk full")


def test_failed_write_is_logged_and_state_still_published(caplog):
    store = ProcessStore(_BrokenStorage())
    sid = store.add_stakeholder(StakeholderFields(name="Ops"))
    assert store.find_stakeholder(sid) is not None
    assert "Failed to persist process state" in caplog.text


def test_blank_names_written_by_the_store_survive_reload():
    storage = MemoryStorage()
    store = ProcessStore(storage)
    sid = store.add_stakeholder(StakeholderFields(name="Ops"))
    eid = store.add_entity(sid, EntityFields(name="Planning"))
    aid = store.add_activity(eid, _activity())
    store.update_stakeholder(sid, StakeholderPatch(name=""))
    store.update_entity(eid, EntityPatch(name="   "))
    store.update_activity(aid, ActivityPatch(name=""))

    reloaded = ProcessStore(storage)
    assert reloaded.state == store.state
    assert reloaded.find_stakeholder(sid).name == ""
