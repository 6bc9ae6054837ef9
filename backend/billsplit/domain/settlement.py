# backend/billsplit/domain/settlement.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, Mapping, Sequence, Union

from billsplit.domain.assignment_store import SplitState, get_assignment_info
from billsplit.domain.models import Item, ItemId, Person, PersonId, RealPerson, index_items
from billsplit.domain.money import price_to_decimal, round_currency

Catalog = Union[Mapping[ItemId, Item], Sequence[Item]]


def item_contribution(state: SplitState, person_id: PersonId, item: Item) -> Decimal:
    """
    Unrounded share of `item` owed by `person_id`.

    Two rules, depending on how the item was shared:
    - with a quantity claim: price * claimed_units / item.quantity
    - otherwise: price divided evenly between everyone holding the item

    The rules can disagree for the same bill (a 2-unit item held by two
    people through plain assignment splits by holders, not by units); both
    are kept until the product settles on one.
    """
    price = price_to_decimal(item.price)

    claimed = state.claimed(item.id, person_id)
    if claimed is not None:
        return price * Decimal(claimed) / Decimal(item.quantity)

    holders = get_assignment_info(state, item.id).count
    if holders == 0:
        return Decimal("0")
    return price / Decimal(holders)


def compute_person_total(state: SplitState, person: Person, catalog: Catalog) -> Decimal:
    """
    Total owed by `person`, rounded to cents: their share of every held item
    plus any flat base amount. Never raises; unknown items and unreadable
    prices contribute 0.
    """
    if not isinstance(person, RealPerson):
        return Decimal("0.00")

    items = index_items(catalog)
    total = Decimal("0")
    for item_id in state.items_of(person.id):
        item = items.get(item_id)
        if item is None:
            continue
        total += item_contribution(state, person.id, item)

    if person.base_amount is not None:
        total += price_to_decimal(person.base_amount, allow_negative=True)

    return round_currency(total)


def compute_totals(state: SplitState, people: Iterable[Person], catalog: Catalog) -> Dict[PersonId, Decimal]:
    items = index_items(catalog)
    return {
        p.id: compute_person_total(state, p, items)
        for p in people
        if isinstance(p, RealPerson)
    }


@dataclass(frozen=True)
class SettlementSummary:
    """
    totals_by_person_id: rounded per-person totals (base amounts included)
    bill_total: sum of all catalog line prices
    assigned_total: bill value covered by assignments, rounded
    unassigned_total: bill_total - assigned_total
    """
    totals_by_person_id: Dict[PersonId, Decimal]
    bill_total: Decimal
    assigned_total: Decimal
    unassigned_total: Decimal


def summarize(state: SplitState, people: Iterable[Person], catalog: Catalog) -> SettlementSummary:
    items = index_items(catalog)
    people = list(people)

    bill_total = Decimal("0")
    assigned = Decimal("0")
    for item in items.values():
        price = price_to_decimal(item.price)
        bill_total += price

        info = get_assignment_info(state, item.id)
        if not info.is_assigned:
            continue
        claims = state.quantities.get(item.id)
        if claims:
            assigned += price * Decimal(sum(claims.values())) / Decimal(item.quantity)
        else:
            assigned += price

    bill_total = round_currency(bill_total)
    assigned = round_currency(assigned)
    return SettlementSummary(
        totals_by_person_id=compute_totals(state, people, items),
        bill_total=bill_total,
        assigned_total=assigned,
        unassigned_total=bill_total - assigned,
    )
