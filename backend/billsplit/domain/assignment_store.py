# backend/billsplit/domain/assignment_store.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple, Union

from billsplit.domain.models import (
    Item,
    ItemId,
    ModelValidationError,
    Person,
    PersonId,
    RealPerson,
    index_items,
    is_assignable,
)

logger = logging.getLogger(__name__)


class AssignmentInvariantError(ValueError):
    """Raised when a SplitState's holdings and quantity claims disagree."""


@dataclass(frozen=True, eq=False)
class SplitState:
    """
    Who holds what during one split session.

    assignments: person_id -> item ids held by that person (display order).
    quantities:  item_id -> {person_id: claimed units} for multi-unit items.
                 Sparse: zero claims are removed, never stored.

    Operations below never mutate a state; they return a new one.
    Equality ignores holding order, which is only kept for display.
    """
    assignments: Mapping[PersonId, Tuple[ItemId, ...]] = field(default_factory=dict)
    quantities: Mapping[ItemId, Mapping[PersonId, int]] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "SplitState":
        return cls()

    def items_of(self, person_id: PersonId) -> Tuple[ItemId, ...]:
        return tuple(self.assignments.get(person_id, ()))

    def holds(self, person_id: PersonId, item_id: ItemId) -> bool:
        return item_id in self.assignments.get(person_id, ())

    def claimed(self, item_id: ItemId, person_id: PersonId) -> Optional[int]:
        return self.quantities.get(item_id, {}).get(person_id)

    def _comparable(self):
        return (
            {pid: frozenset(iids) for pid, iids in self.assignments.items() if iids},
            {iid: dict(claims) for iid, claims in self.quantities.items() if claims},
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SplitState):
            return NotImplemented
        return self._comparable() == other._comparable()

    def to_dict(self) -> Dict[str, Any]:
        """
        JSON-friendly form. Mapping keys become strings; ids inside lists
        keep their type.
        """
        return {
            "assignments": {str(pid): list(iids) for pid, iids in self.assignments.items()},
            "quantities": {
                str(iid): {str(pid): n for pid, n in claims.items()}
                for iid, claims in self.quantities.items()
            },
        }

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        *,
        items: Iterable[Item],
        people: Iterable[Person],
    ) -> "SplitState":
        """
        Rebuild a state from to_dict() output. Ids are matched against the
        catalog and people list by their string form, so "2" and 2 resolve to
        the same item.
        """
        if not isinstance(data, Mapping):
            raise ModelValidationError("state must be an object")

        item_ids = {str(it.id): it.id for it in items}
        person_ids = {str(p.id): p.id for p in people if isinstance(p, RealPerson)}

        def resolve(lookup: Dict[str, Any], raw: object, kind: str):
            key = str(raw)
            if isinstance(raw, bool) or key not in lookup:
                raise ModelValidationError(f"state references unknown {kind} id: {raw}")
            return lookup[key]

        raw_assignments = data.get("assignments") or {}
        raw_quantities = data.get("quantities") or {}
        if not isinstance(raw_assignments, Mapping) or not isinstance(raw_quantities, Mapping):
            raise ModelValidationError("state.assignments and state.quantities must be objects")

        assignments: Dict[PersonId, Tuple[ItemId, ...]] = {}
        for raw_pid, raw_iids in raw_assignments.items():
            if not isinstance(raw_iids, list):
                raise ModelValidationError("state.assignments values must be lists")
            pid = resolve(person_ids, raw_pid, "person")
            held = []
            for raw_iid in raw_iids:
                iid = resolve(item_ids, raw_iid, "item")
                if iid in held:
                    raise ModelValidationError(f"person {raw_pid} holds item {raw_iid} twice")
                held.append(iid)
            if held:
                assignments[pid] = tuple(held)

        quantities: Dict[ItemId, Dict[PersonId, int]] = {}
        for raw_iid, raw_claims in raw_quantities.items():
            if not isinstance(raw_claims, Mapping):
                raise ModelValidationError("state.quantities values must be objects")
            iid = resolve(item_ids, raw_iid, "item")
            claims: Dict[PersonId, int] = {}
            for raw_pid, n in raw_claims.items():
                if isinstance(n, bool) or not isinstance(n, int) or n < 1:
                    raise ModelValidationError("claimed quantities must be ints >= 1")
                claims[resolve(person_ids, raw_pid, "person")] = n
            if claims:
                quantities[iid] = claims

        return cls(assignments=assignments, quantities=quantities)


class RejectReason(str, Enum):
    ALREADY_ASSIGNED = "already_assigned"
    NO_REMAINING_QUANTITY = "no_remaining_quantity"
    INVALID_QUANTITY = "invalid_quantity"
    NOOP_SAME_TARGET = "noop_same_target"
    INVALID_TARGET = "invalid_target"
    NOT_HELD = "not_held"


@dataclass(frozen=True)
class Applied:
    state: SplitState


@dataclass(frozen=True)
class Rejected:
    """An expected refusal. The caller keeps its current state."""
    reason: RejectReason
    message: str = ""


@dataclass(frozen=True)
class QuantityChoiceRequired:
    """
    Not a failure: the caller must ask how many units `person` takes
    (1..max_quantity) and then call confirm_quantity_assignment().
    Dropping this object without confirming leaves the state untouched.
    """
    item: Item
    person: RealPerson
    max_quantity: int


Outcome = Union[Applied, Rejected, QuantityChoiceRequired]


@dataclass(frozen=True)
class AssignmentInfo:
    count: int
    people: Tuple[PersonId, ...]
    is_assigned: bool
    is_shared: bool


@dataclass(frozen=True)
class DropIntent:
    """
    What the UI reports when a dragged item is released.

    source_person is set when the item was picked up from a person card;
    target_person is None when it was released outside every card.
    """
    dragged_item: Item
    target_person: Optional[Person]
    source_person: Optional[Person] = None


# --- copy-on-write helpers ---------------------------------------------------

def _add_holding(
    assignments: Mapping[PersonId, Tuple[ItemId, ...]], person_id: PersonId, item_id: ItemId
) -> Dict[PersonId, Tuple[ItemId, ...]]:
    out = dict(assignments)
    held = out.get(person_id, ())
    if item_id not in held:
        out[person_id] = tuple(held) + (item_id,)
    return out


def _remove_holding(
    assignments: Mapping[PersonId, Tuple[ItemId, ...]], person_id: PersonId, item_id: ItemId
) -> Dict[PersonId, Tuple[ItemId, ...]]:
    out = dict(assignments)
    held = tuple(i for i in out.get(person_id, ()) if i != item_id)
    if held:
        out[person_id] = held
    else:
        out.pop(person_id, None)
    return out


def _set_claim(
    quantities: Mapping[ItemId, Mapping[PersonId, int]],
    item_id: ItemId,
    person_id: PersonId,
    units: int,
) -> Dict[ItemId, Dict[PersonId, int]]:
    out = {iid: dict(claims) for iid, claims in quantities.items()}
    claims = out.get(item_id, {})
    if units > 0:
        claims[person_id] = units
    else:
        claims.pop(person_id, None)

    if claims:
        out[item_id] = claims
    else:
        out.pop(item_id, None)
    return out


# --- queries -----------------------------------------------------------------

def remaining_quantity(state: SplitState, item: Item) -> int:
    """Units of `item` nobody has claimed yet."""
    return item.quantity - sum(state.quantities.get(item.id, {}).values())


def get_assignment_info(state: SplitState, item_id: ItemId) -> AssignmentInfo:
    people = tuple(pid for pid, held in state.assignments.items() if item_id in held)
    return AssignmentInfo(
        count=len(people),
        people=people,
        is_assigned=len(people) >= 1,
        is_shared=len(people) > 1,
    )


# --- intents -----------------------------------------------------------------

def assign_item_to_person(state: SplitState, item: Item, person: Person) -> Outcome:
    """
    Handle an item dragged from the bill onto a person card.

    Single-unit items are added straight away (several people may share one).
    Multi-unit items only produce a QuantityChoiceRequired; nothing changes
    until confirm_quantity_assignment().
    """
    if not is_assignable(person):
        logger.debug("Rejected assign of %s: target is not a person", item.id)
        return Rejected(RejectReason.INVALID_TARGET, "Items can only be assigned to people.")

    if state.holds(person.id, item.id):
        logger.debug("Rejected assign of %s to %s: already held", item.id, person.id)
        return Rejected(RejectReason.ALREADY_ASSIGNED, f"{person.name} already has {item.name}.")

    if not item.is_multi_unit:
        logger.debug("Assigned %s to %s", item.id, person.id)
        return Applied(SplitState(
            assignments=_add_holding(state.assignments, person.id, item.id),
            quantities=state.quantities,
        ))

    remaining = remaining_quantity(state, item)
    if remaining <= 0:
        logger.debug("Rejected assign of %s to %s: fully claimed", item.id, person.id)
        return Rejected(RejectReason.NO_REMAINING_QUANTITY, f"All {item.name} are assigned.")

    return QuantityChoiceRequired(item=item, person=person, max_quantity=remaining)


def confirm_quantity_assignment(
    state: SplitState, item: Item, person: Person, quantity: int
) -> Outcome:
    """
    Record that `person` takes `quantity` units of a multi-unit item.

    The remaining count is recomputed from `state`, so a prompt answered
    against an older state cannot over-claim. Confirming for someone who
    already holds part of the item adds to their claim instead of replacing
    it, the same way reassign_item merges claims; drops never get here for
    an existing holder because assign_item_to_person refuses them first.
    """
    if not is_assignable(person):
        return Rejected(RejectReason.INVALID_TARGET, "Items can only be assigned to people.")

    if not item.is_multi_unit:
        # single-unit items have no ledger entry; only "take it" makes sense
        if quantity == 1 and not isinstance(quantity, bool):
            return assign_item_to_person(state, item, person)
        return Rejected(RejectReason.INVALID_QUANTITY, f"{item.name} has a single unit.")

    remaining = remaining_quantity(state, item)
    if isinstance(quantity, bool) or not isinstance(quantity, int) or not 1 <= quantity <= remaining:
        logger.debug(
            "Rejected quantity %r of %s for %s (remaining %d)", quantity, item.id, person.id, remaining
        )
        return Rejected(
            RejectReason.INVALID_QUANTITY,
            f"Quantity must be between 1 and {remaining}." if remaining > 0 else f"All {item.name} are assigned.",
        )

    claimed = (state.claimed(item.id, person.id) or 0) + quantity
    logger.debug("Assigned %d x %s to %s", quantity, item.id, person.id)
    return Applied(SplitState(
        assignments=_add_holding(state.assignments, person.id, item.id),
        quantities=_set_claim(state.quantities, item.id, person.id, claimed),
    ))


def reassign_item(
    state: SplitState, item: Item, from_person: Person, to_person: Person
) -> Outcome:
    """
    Move an item (and any claimed units) from one person card to another.

    If the target already has a claim on the same item the two claims are
    added together.
    """
    if not is_assignable(to_person):
        logger.debug("Rejected move of %s: target is not a person", item.id)
        return Rejected(RejectReason.INVALID_TARGET, "Items can only be moved to people.")
    if is_assignable(from_person) and from_person.id == to_person.id:
        return Rejected(RejectReason.NOOP_SAME_TARGET)
    if not is_assignable(from_person) or not state.holds(from_person.id, item.id):
        return Rejected(RejectReason.NOT_HELD, f"{item.name} is not held by the source card.")
    if state.holds(to_person.id, item.id):
        logger.debug("Rejected move of %s to %s: already held", item.id, to_person.id)
        return Rejected(RejectReason.ALREADY_ASSIGNED, f"{to_person.name} already has {item.name}.")

    assignments = _remove_holding(state.assignments, from_person.id, item.id)
    assignments = _add_holding(assignments, to_person.id, item.id)

    quantities = state.quantities
    moved = state.claimed(item.id, from_person.id)
    if moved is not None:
        # the target has no claim of its own while holders and claimants agree
        merged = (state.claimed(item.id, to_person.id) or 0) + moved
        quantities = _set_claim(quantities, item.id, from_person.id, 0)
        quantities = _set_claim(quantities, item.id, to_person.id, merged)

    logger.debug("Moved %s from %s to %s", item.id, from_person.id, to_person.id)
    return Applied(SplitState(assignments=assignments, quantities=quantities))


def unassign_item(state: SplitState, person: Person, item: Item) -> SplitState:
    """Drop `person`'s holding and claim on `item`. Idempotent; never fails."""
    if not is_assignable(person):
        return state
    if not state.holds(person.id, item.id) and state.claimed(item.id, person.id) is None:
        return state

    logger.debug("Unassigned %s from %s", item.id, person.id)
    return SplitState(
        assignments=_remove_holding(state.assignments, person.id, item.id),
        quantities=_set_claim(state.quantities, item.id, person.id, 0),
    )


def handle_drop(state: SplitState, intent: DropIntent) -> Outcome:
    """
    Route a drag release to the matching operation.

    - from the bill onto a card      -> assign_item_to_person
    - from one card onto another     -> reassign_item
    - from a card onto nothing       -> unassign_item
    - anything onto the "Add Person" card is rejected
    """
    item = intent.dragged_item
    source = intent.source_person
    target = intent.target_person

    if source is None:
        if target is None:
            return Rejected(RejectReason.INVALID_TARGET, "Item was not dropped on a person.")
        return assign_item_to_person(state, item, target)

    if target is None:
        return Applied(unassign_item(state, source, item))
    return reassign_item(state, item, source, target)


def check_invariants(state: SplitState, catalog: Union[Mapping[ItemId, Item], Sequence[Item]]) -> None:
    """
    Raise AssignmentInvariantError unless:
    - every held and claimed item exists in the catalog
    - each person holds an item at most once
    - claims are positive and never exceed the item's quantity
    - multi-unit holders and claimants are the same people
    """
    items = index_items(catalog)

    for pid, held in state.assignments.items():
        if len(set(held)) != len(held):
            raise AssignmentInvariantError(f"person {pid} holds an item twice")
        for iid in held:
            if iid not in items:
                raise AssignmentInvariantError(f"person {pid} holds unknown item {iid}")

    for iid, claims in state.quantities.items():
        item = items.get(iid)
        if item is None:
            raise AssignmentInvariantError(f"claims on unknown item {iid}")
        if not claims:
            raise AssignmentInvariantError(f"empty claim entry for item {iid}")
        if any(n < 1 for n in claims.values()):
            raise AssignmentInvariantError(f"non-positive claim on item {iid}")
        if sum(claims.values()) > item.quantity:
            raise AssignmentInvariantError(f"item {iid} claimed beyond its quantity")

    for iid, item in items.items():
        if not item.is_multi_unit:
            if iid in state.quantities:
                raise AssignmentInvariantError(f"single-unit item {iid} has quantity claims")
            continue
        holders = set(get_assignment_info(state, iid).people)
        claimants = set(state.quantities.get(iid, {}))
        if holders != claimants:
            raise AssignmentInvariantError(f"holders and claimants of item {iid} differ")
