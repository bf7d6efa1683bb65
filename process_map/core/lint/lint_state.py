from __future__ import annotations

from datetime import date
from typing import Optional

from process_map.core.errors import StateValidationError, sort_errors
from process_map.core.model import RACI_ROLES, ProcessState


# Advisory rules. Dependencies and dates stay descriptive, so nothing here
# ever blocks a mutation:
# - L_DANGLING_DEPENDENCY: dependency id matches no activity
# - L_SELF_DEPENDENCY: activity lists itself as a dependency
# - L_UNKNOWN_RACI_ID: RACI holder is neither a stakeholder nor an entity
# - L_INVALID_DATE: startDate/deadline is not an ISO date
# - L_START_AFTER_DEADLINE: startDate is later than deadline


def lint_state(state: ProcessState, file: Optional[str] = None) -> list[StateValidationError]:
    """Lint a snapshot. Returns diagnostics sorted by path."""

    holder_ids: set[str] = set()
    activity_ids: set[str] = set()
    for s in state.stakeholders:
        holder_ids.add(s.id)
        for e in s.entities:
            holder_ids.add(e.id)
            activity_ids.update(a.id for a in e.activities)

    errors: list[StateValidationError] = []

    def add(code: str, message: str, path: str) -> None:
        errors.append(StateValidationError(code=code, message=message, file=file, path=path))

    for si, s in enumerate(state.stakeholders):
        for ei, e in enumerate(s.entities):
            for ai, a in enumerate(e.activities):
                path = f"stakeholders[{si}].entities[{ei}].activities[{ai}]"

                for di, dep in enumerate(a.dependencies):
                    if dep == a.id:
                        add("L_SELF_DEPENDENCY", f"activity {a.name!r} depends on itself", f"{path}.dependencies[{di}]")
                    elif dep not in activity_ids:
                        add(
                            "L_DANGLING_DEPENDENCY",
                            f"dependency references unknown activity: {dep}",
                            f"{path}.dependencies[{di}]",
                        )

                for role in RACI_ROLES:
                    for hi, holder in enumerate(a.raci.holders(role)):
                        if holder not in holder_ids:
                            add(
                                "L_UNKNOWN_RACI_ID",
                                f"{role} references unknown stakeholder/entity: {holder}",
                                f"{path}.raci.{role}[{hi}]",
                            )

                start = _parse(a.start_date)
                deadline = _parse(a.deadline)
                if start is None:
                    add("L_INVALID_DATE", f"startDate is not an ISO date: {a.start_date!r}", f"{path}.startDate")
                if deadline is None:
                    add("L_INVALID_DATE", f"deadline is not an ISO date: {a.deadline!r}", f"{path}.deadline")
                if start is not None and deadline is not None and start > deadline:
                    add(
                        "L_START_AFTER_DEADLINE",
                        f"startDate {a.start_date} is after deadline {a.deadline}",
                        f"{path}.startDate",
                    )

    return sort_errors(errors)


def _parse(v: str) -> Optional[date]:
    try:
        return date.fromisoformat(v)
    except ValueError:
        return None
