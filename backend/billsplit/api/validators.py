from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

from billsplit.domain.assignment_store import AssignmentInvariantError, SplitState, check_invariants
from billsplit.domain.models import (
    AddPersonPlaceholder,
    Item,
    ModelValidationError,
    Person,
    RealPerson,
)
from billsplit.services.bill_loader import BillPayloadError, find_by_id, load_bill

ADD_PERSON_TARGET = "add_person"


class ApiValidationError(ValueError):
    """Raised when request payload validation fails."""


@dataclass(frozen=True)
class SessionPayload:
    items: Tuple[Item, ...]
    people: Tuple[Person, ...]
    state: SplitState


def parse_session(data: object) -> SessionPayload:
    """
    Every split request carries the bill (items + people) and the client's
    current state. A missing state means a fresh session.
    """
    if not isinstance(data, Mapping):
        raise ApiValidationError("Request body must be a JSON object.")

    try:
        bill = load_bill(data)
    except BillPayloadError as e:
        raise ApiValidationError(str(e)) from e

    raw_state = data.get("state")
    if raw_state is None:
        state = SplitState.empty()
    else:
        try:
            state = SplitState.from_dict(raw_state, items=bill.items, people=bill.people)
            check_invariants(state, bill.items)
        except (ModelValidationError, AssignmentInvariantError) as e:
            raise ApiValidationError(str(e)) from e

    return SessionPayload(items=bill.items, people=bill.people, state=state)


def require_item(session: SessionPayload, raw_id: object) -> Item:
    item = find_by_id(session.items, raw_id)
    if item is None:
        raise ApiValidationError(f"Unknown item id: {raw_id}")
    return item


def require_person(session: SessionPayload, raw_id: object, *, field: str = "person_id") -> RealPerson:
    person = find_by_id(session.people, raw_id)
    if person is None:
        raise ApiValidationError(f"'{field}' must reference a person on the bill: {raw_id}")
    return person


def parse_drop_target(session: SessionPayload, raw_intent: Mapping[str, Any]) -> Optional[Person]:
    """
    "target_id" names a person card; "target": "add_person" names the
    Add Person card; neither means the item was released outside any card.
    """
    if raw_intent.get("target") == ADD_PERSON_TARGET:
        for p in session.people:
            if isinstance(p, AddPersonPlaceholder):
                return p
        return AddPersonPlaceholder()

    raw_target = raw_intent.get("target_id")
    if raw_target is None:
        return None
    return require_person(session, raw_target, field="target_id")


def parse_quantity(raw: object) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ApiValidationError("'quantity' must be an integer.")
    return raw
