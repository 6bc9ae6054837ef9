# backend/tests/test_settlement.py
import logging
from decimal import Decimal

from billsplit.domain.assignment_store import (
    SplitState,
    assign_item_to_person,
    confirm_quantity_assignment,
)
from billsplit.domain.models import AddPersonPlaceholder, Item, RealPerson
from billsplit.domain.settlement import (
    compute_person_total,
    compute_totals,
    item_contribution,
    summarize,
)

BURRITO = Item(id=4, name="Hot Cheese Burrito", price="$8.00")
OJ = Item(id=2, name="Orange Juice", price="$8.00", quantity=3)
POTATO = Item(id=1, name="Roasted Potato Salad", price="$15.00")
CATALOG = [POTATO, OJ, BURRITO]

ALEX = RealPerson(id=1, name="You")
SAM = RealPerson(id=2, name="Sam", base_amount="9.50")
JO = RealPerson(id=3, name="Jo")
ADD = AddPersonPlaceholder()


def _assign(state, item, person):
    return assign_item_to_person(state, item, person).state


def _claim(state, item, person, qty):
    return confirm_quantity_assignment(state, item, person, qty).state


def test_shared_item_is_split_between_holders():
    state = _assign(SplitState.empty(), BURRITO, ALEX)
    state = _assign(state, BURRITO, JO)

    assert compute_person_total(state, ALEX, CATALOG) == Decimal("4.00")
    assert compute_person_total(state, JO, CATALOG) == Decimal("4.00")


def test_quantity_claims_split_by_units():
    state = _claim(SplitState.empty(), OJ, ALEX, 2)
    state = _claim(state, OJ, JO, 1)

    assert compute_person_total(state, ALEX, CATALOG) == Decimal("5.33")
    assert compute_person_total(state, JO, CATALOG) == Decimal("2.67")
    assert item_contribution(state, ALEX.id, OJ) == Decimal(8) * 2 / 3


def test_base_amount_is_added():
    state = _assign(SplitState.empty(), POTATO, SAM)
    assert compute_person_total(state, SAM, CATALOG) == Decimal("24.50")
    assert compute_person_total(SplitState.empty(), SAM, CATALOG) == Decimal("9.50")


def test_total_rounds_the_sum_not_each_item():
    third = Item(id=7, name="Tapas", price="$1.00")
    state = SplitState.empty()
    for person in (ALEX, SAM, JO):
        state = _assign(state, third, person)
    state = _assign(state, BURRITO, ALEX)

    # 1/3 + 8.00 = 8.333.. -> 8.33
    assert compute_person_total(state, ALEX, [third, BURRITO]) == Decimal("8.33")


def test_placeholder_total_is_zero():
    assert compute_person_total(SplitState.empty(), ADD, CATALOG) == Decimal("0.00")


def test_unreadable_price_counts_as_zero_and_warns(caplog):
    mystery = Item(id=9, name="Mystery Dish", price="market price")
    state = _assign(SplitState.empty(), mystery, ALEX)
    state = _assign(state, BURRITO, ALEX)

    with caplog.at_level(logging.WARNING, logger="billsplit.domain.money"):
        total = compute_person_total(state, ALEX, [mystery, BURRITO])

    assert total == Decimal("8.00")
    assert "market price" in caplog.text


def test_items_missing_from_catalog_are_ignored():
    state = SplitState(assignments={ALEX.id: (404, BURRITO.id)})
    assert compute_person_total(state, ALEX, CATALOG) == Decimal("8.00")


def test_numeric_prices_and_mapping_catalog():
    pizza = Item(id="pz", name="Margherita Pizza", price=16.5)
    state = _assign(SplitState.empty(), pizza, ALEX)
    assert compute_person_total(state, ALEX, {pizza.id: pizza}) == Decimal("16.50")


def test_compute_totals_skips_placeholder():
    state = _assign(SplitState.empty(), POTATO, ALEX)
    totals = compute_totals(state, [ALEX, SAM, JO, ADD], CATALOG)
    assert totals == {
        ALEX.id: Decimal("15.00"),
        SAM.id: Decimal("9.50"),
        JO.id: Decimal("0.00"),
    }


def test_summarize_reports_unassigned_remainder():
    state = _assign(SplitState.empty(), POTATO, ALEX)
    state = _claim(state, OJ, JO, 2)

    summary = summarize(state, [ALEX, SAM, JO, ADD], CATALOG)
    assert summary.bill_total == Decimal("31.00")
    assert summary.assigned_total == Decimal("20.33")
    assert summary.unassigned_total == Decimal("10.67")
    assert summary.totals_by_person_id[JO.id] == Decimal("5.33")


def test_negative_base_amount_is_a_discount():
    voucher = RealPerson(id=5, name="Kim", base_amount="-$2.00")
    state = _assign(SplitState.empty(), POTATO, voucher)
    assert compute_person_total(state, voucher, CATALOG) == Decimal("13.00")
