# backend/tests/test_bill_loader.py
import pytest

from billsplit.domain.models import AddPersonPlaceholder, Item, RealPerson
from billsplit.services.bill_loader import (
    BillPayloadError,
    find_by_id,
    load_bill,
    parse_items,
    parse_people,
)


def test_load_bill_builds_items_and_people():
    bill = load_bill(
        {
            "items": [
                {"id": 1, "name": "Roasted Potato Salad", "price": "$15.00", "quantity": 1, "image": "x.jpg"},
                {"id": 2, "name": "Orange Juice", "price": "$8.00", "quantity": 3},
                {"id": 3, "name": "Croissant", "price": 7.5},
            ],
            "people": [
                {"id": 1, "name": "You"},
                {"id": 2, "name": "Tom", "amount": "9.50"},
                {"id": "add", "name": "Add Person", "isAddButton": True},
            ],
        }
    )

    assert bill.items == (
        Item(id=1, name="Roasted Potato Salad", price="$15.00", quantity=1),
        Item(id=2, name="Orange Juice", price="$8.00", quantity=3),
        Item(id=3, name="Croissant", price=7.5, quantity=1),
    )
    assert bill.people == (
        RealPerson(id=1, name="You"),
        RealPerson(id=2, name="Tom", base_amount="9.50"),
        AddPersonPlaceholder(label="Add Person"),
    )


def test_load_bill_accepts_participants_key():
    bill = load_bill({"items": [], "participants": [{"id": "u1", "name": "Ana"}]})
    assert bill.people == (RealPerson(id="u1", name="Ana"),)


def test_load_bill_requires_people():
    with pytest.raises(BillPayloadError):
        load_bill({"items": []})


def test_parse_items_rejects_duplicate_ids_by_string_form():
    with pytest.raises(BillPayloadError):
        parse_items([
            {"id": 1, "name": "Tea", "price": "$2.00"},
            {"id": "1", "name": "Coffee", "price": "$3.00"},
        ])


@pytest.mark.parametrize(
    "raw",
    [
        {"name": "Tea", "price": "$2.00"},
        {"id": 1, "price": "$2.00"},
        {"id": 1, "name": "Tea"},
        {"id": 1, "name": "  ", "price": "$2.00"},
        {"id": 1, "name": "Tea", "price": "$2.00", "quantity": 0},
        {"id": True, "name": "Tea", "price": "$2.00"},
        "Tea 2.00",
    ],
)
def test_parse_items_rejects_malformed_entries(raw):
    with pytest.raises(BillPayloadError):
        parse_items([raw])


def test_parse_people_treats_blank_amount_as_none():
    assert parse_people([{"id": 1, "name": "You", "amount": ""}]) == [RealPerson(id=1, name="You")]


def test_parse_people_rejects_duplicates():
    with pytest.raises(BillPayloadError):
        parse_people([{"id": 1, "name": "You"}, {"id": 1, "name": "Also you"}])


def test_find_by_id_matches_string_form_and_skips_placeholder():
    people = parse_people([{"id": 7, "name": "Zoe"}, {"name": "Add Person", "isAddButton": True}])
    assert find_by_id(people, "7") == RealPerson(id=7, name="Zoe")
    assert find_by_id(people, None) is None
    assert find_by_id(people, "Add Person") is None
