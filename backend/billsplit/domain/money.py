# backend/billsplit/domain/money.py
from __future__ import annotations

import logging
import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


class MoneyError(ValueError):
    """Raised when currency/money parsing fails."""


# Bill price text as served by the bills API / menu data:
# - optional leading "-" (flat charges only), then optional currency symbol
# - optional "," thousands grouping (only in proper groups of 3)
# - "." decimal point with 1-2 digits
_PRICE_TEXT_RE = re.compile(
    r"""
    ^\s*
    (?P<minus>-)?\s*
    [$€£]?\s*
    (?P<whole>\d{1,3}(?:,\d{3})+|\d{1,9})
    (?:\.(?P<frac>\d{1,2}))?
    \s*$
    """,
    re.VERBOSE,
)


def parse_price_to_cents(
    text: str,
    *,
    allow_negative: bool = False,
    max_cents: int = 10_000_000_00,  # $10,000,000.00 safety bound
) -> int:
    """
    Parse a bill price string into integer cents.

    Accepts examples:
      "8" -> 800
      "8.5" -> 850
      "$8.00" -> 800
      "€ 12.50" -> 1250
      "1,234.56" -> 123456
      "-$2.00" -> -200 (only with allow_negative=True)

    Rejects:
      "abc", "$", "12.345", "12,34", "-3.00" (by default)
    """
    if not isinstance(text, str):
        raise MoneyError("price text must be a string")

    m = _PRICE_TEXT_RE.match(text)
    if not m:
        raise MoneyError(f"invalid price text: {text!r}")
    if m.group("minus") and not allow_negative:
        raise MoneyError("negative amounts are not allowed")

    dollars = int(m.group("whole").replace(",", ""))
    frac = m.group("frac")
    cents = 0
    if frac is not None:
        cents = int(frac) * 10 if len(frac) == 1 else int(frac)

    total = dollars * 100 + cents
    if total > max_cents:
        raise MoneyError("amount exceeds safety limit")
    return -total if m.group("minus") else total


def price_to_decimal(
    value: Union[str, int, float, Decimal, None],
    *,
    allow_negative: bool = False,
) -> Decimal:
    """
    Convert a catalog price (or a person's flat charge) to a Decimal amount.

    Never raises: anything unreadable counts as 0, and so does a negative
    amount unless allow_negative is set (flat charges may be discounts,
    item prices may not). Each fallback is logged at WARNING so bad bill data
    shows up in the logs instead of quietly shrinking someone's total.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        result = None
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(parse_price_to_cents(value, allow_negative=allow_negative)) / Decimal(100)
        except MoneyError:
            result = None
    else:
        result = None

    if result is None or not result.is_finite() or (result < 0 and not allow_negative):
        logger.warning("Unreadable price %r; counting it as 0", value)
        return Decimal("0")
    return result


def round_currency(amount: Decimal) -> Decimal:
    """Round to whole cents, half-up."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)
