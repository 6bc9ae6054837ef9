# backend/billsplit/domain/models.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, Mapping, Optional, Union

ItemId = Union[int, str]
PersonId = Union[int, str]


class ModelValidationError(ValueError):
    """Raised when catalog/people models fail basic validation."""


def _valid_id(value: object) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, str) and bool(value.strip())


@dataclass(frozen=True)
class Item:
    """
    A bill line item.

    price is the line price as received from the bill (text like "$8.00" or a
    number) and covers all `quantity` units. Settlement parses it lazily.
    """
    id: ItemId
    name: str
    price: Union[str, int, float, Decimal]
    quantity: int = 1

    def __post_init__(self) -> None:
        if not _valid_id(self.id):
            raise ModelValidationError("Item.id must be a non-empty string or an int")
        if not isinstance(self.name, str) or not self.name.strip():
            raise ModelValidationError("Item.name must be a non-empty string")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int) or self.quantity < 1:
            raise ModelValidationError("Item.quantity must be an int >= 1")

    @property
    def is_multi_unit(self) -> bool:
        return self.quantity > 1


@dataclass(frozen=True)
class RealPerson:
    """
    A participant who can be charged for items.
    base_amount is a flat charge carried in from the bill (delivery fee etc,
    negative for a discount).
    """
    id: PersonId
    name: str
    base_amount: Optional[Union[str, int, float, Decimal]] = None

    def __post_init__(self) -> None:
        if not _valid_id(self.id):
            raise ModelValidationError("RealPerson.id must be a non-empty string or an int")
        if not isinstance(self.name, str) or not self.name.strip():
            raise ModelValidationError("RealPerson.name must be a non-empty string")


@dataclass(frozen=True)
class AddPersonPlaceholder:
    """The "Add Person" card shown at the end of the people list. Never a target."""
    label: str = "Add Person"


Person = Union[RealPerson, AddPersonPlaceholder]


def is_assignable(person: object) -> bool:
    return isinstance(person, RealPerson)


def index_items(catalog: Union[Mapping[ItemId, Item], Iterable[Item]]) -> Dict[ItemId, Item]:
    """
    Accept either an id -> Item mapping or an ordered sequence of items.
    Duplicate ids in a sequence are rejected.
    """
    if isinstance(catalog, Mapping):
        return dict(catalog)

    by_id: Dict[ItemId, Item] = {}
    for item in catalog:
        if item.id in by_id:
            raise ModelValidationError(f"duplicate item id: {item.id}")
        by_id[item.id] = item
    return by_id
