# backend/billsplit/services/bill_loader.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Sequence, Tuple

from billsplit.domain.models import (
    AddPersonPlaceholder,
    Item,
    ModelValidationError,
    Person,
    RealPerson,
)

logger = logging.getLogger(__name__)


class BillPayloadError(ValueError):
    """Raised when a fetched bill payload cannot be turned into items/people."""


@dataclass(frozen=True)
class LoadedBill:
    items: Tuple[Item, ...]
    people: Tuple[Person, ...]


def _require(raw: Mapping[str, Any], key: str, where: str) -> Any:
    if key not in raw:
        raise BillPayloadError(f"{where} is missing '{key}'")
    return raw[key]


def parse_items(raw_items: object) -> List[Item]:
    """
    Build catalog items from the bills API shape:
      [{"id": 2, "name": "Orange Juice", "price": "$8.00", "quantity": 3}, ...]
    quantity defaults to 1. Extra keys (image, menuItemId, ...) are ignored.
    """
    if not isinstance(raw_items, (list, tuple)):
        raise BillPayloadError("'items' must be a list")

    items: List[Item] = []
    seen = set()
    for idx, raw in enumerate(raw_items):
        where = f"item at index {idx}"
        if not isinstance(raw, Mapping):
            raise BillPayloadError(f"{where} must be an object")

        try:
            item = Item(
                id=_require(raw, "id", where),
                name=_require(raw, "name", where),
                price=_require(raw, "price", where),
                quantity=raw.get("quantity", 1),
            )
        except ModelValidationError as e:
            raise BillPayloadError(f"{where}: {e}") from e

        if str(item.id) in seen:
            raise BillPayloadError(f"duplicate item id: {item.id}")
        seen.add(str(item.id))
        items.append(item)

    return items


def parse_people(raw_people: object) -> List[Person]:
    """
    Build the people list. Entries flagged "isAddButton" become the
    AddPersonPlaceholder; "amount" is carried as the person's flat charge.
    """
    if not isinstance(raw_people, (list, tuple)):
        raise BillPayloadError("'people' must be a list")

    people: List[Person] = []
    seen = set()
    for idx, raw in enumerate(raw_people):
        where = f"person at index {idx}"
        if not isinstance(raw, Mapping):
            raise BillPayloadError(f"{where} must be an object")

        if raw.get("isAddButton"):
            people.append(AddPersonPlaceholder(label=str(raw.get("name") or "Add Person")))
            continue

        amount = raw.get("amount")
        if amount == "":
            amount = None
        try:
            person = RealPerson(
                id=_require(raw, "id", where),
                name=_require(raw, "name", where),
                base_amount=amount,
            )
        except ModelValidationError as e:
            raise BillPayloadError(f"{where}: {e}") from e

        if str(person.id) in seen:
            raise BillPayloadError(f"duplicate person id: {person.id}")
        seen.add(str(person.id))
        people.append(person)

    return people


def load_bill(payload: object) -> LoadedBill:
    """
    Convenience: parse {"items": [...], "people": [...]} in one go.
    "participants" is accepted in place of "people".
    """
    if not isinstance(payload, Mapping):
        raise BillPayloadError("bill payload must be an object")

    raw_people = payload.get("people", payload.get("participants"))
    if raw_people is None:
        raise BillPayloadError("bill payload is missing 'people'")

    bill = LoadedBill(
        items=tuple(parse_items(_require(payload, "items", "bill payload"))),
        people=tuple(parse_people(raw_people)),
    )
    logger.debug("Loaded bill with %d items and %d people", len(bill.items), len(bill.people))
    return bill


def find_by_id(entries: Sequence[Any], raw_id: object) -> Any:
    """Look up an item or real person by id, matching on string form."""
    if raw_id is None or isinstance(raw_id, bool):
        return None
    key = str(raw_id)
    for entry in entries:
        if isinstance(entry, (Item, RealPerson)) and str(entry.id) == key:
            return entry
    return None
