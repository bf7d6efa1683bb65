from process_map.core.lint.lint_state import lint_state
from process_map.core.model import Activity, Entity, ProcessState, RaciAssignment, Stakeholder


def _state(*activities):
    entity = Entity(id="E", stakeholder_id="S", name="Planning", activities=tuple(activities))
    return ProcessState(stakeholders=(Stakeholder(id="S", name="Ops", entities=(entity,)),))


def _activity(aid, **kw):
    base = dict(id=aid, entity_id="E", name=aid, description="", start_date="2024-01-01", deadline="2024-02-01")
    base.update(kw)
    return Activity(**base)


def test_clean_state_has_no_diagnostics():
    a = _activity("A", raci=RaciAssignment(responsible=("E",), accountable=("S",)))
    b = _activity("B", dependencies=("A",))
    assert lint_state(_state(a, b)) == []


def test_dependency_rules():
    a = _activity("A", dependencies=("A", "GHOST"))
    codes = [e.code for e in lint_state(_state(a))]
    assert codes == ["L_SELF_DEPENDENCY", "L_DANGLING_DEPENDENCY"]


def test_unknown_raci_holder():
    a = _activity("A", raci=RaciAssignment(informed=("NOBODY",)))
    (err,) = lint_state(_state(a))
    assert err.code == "L_UNKNOWN_RACI_ID"
    assert err.path.endswith("raci.informed[0]")


def test_date_rules_are_advisory():
    late_start = _activity("A", start_date="2024-05-01", deadline="2024-02-01")
    garbage = _activity("B", start_date="soon", deadline="2024-02-01")
    codes = {e.code for e in lint_state(_state(late_start, garbage))}
    assert codes == {"L_START_AFTER_DEADLINE", "L_INVALID_DATE"}
