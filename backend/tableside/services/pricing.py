"""Order item pricing.

Pure functions: no database access, no side effects. Prices are computed
from the option snapshot stored on the draft item, so a menu edit or a
deleted menu item never changes what an already-added item costs.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Mapping, Optional

from tableside.core.errors import InvalidFlavorSplit

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def to_decimal(value: Any) -> Decimal:
    """Convert a stored money value (float, int, str, Decimal, None) to Decimal."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def _option_price(option: Optional[Mapping]) -> Decimal:
    if not option:
        return Decimal("0")
    return to_decimal(option.get("price"))


def unit_price(base: Any, selections: Mapping[str, Any]) -> Decimal:
    """Effective unit price of one item given its base price and selected options.

    ``base`` is the item's base price with any promotion already applied.
    A selected size replaces it entirely. Stuffed crust and add-ons are added
    on top. A flavor combination's fixed price replaces the whole total;
    otherwise each custom flavor adds ``additional_price * percentage / 100``.
    """
    size = selections.get("selected_size")
    if size and size.get("price") is not None:
        total = to_decimal(size["price"])
    else:
        total = to_decimal(base)

    total += _option_price(selections.get("selected_stuffed_crust"))
    for addon in selections.get("selected_addons") or []:
        total += _option_price(addon)

    combination = selections.get("selected_flavor_combination")
    if combination:
        total = _option_price(combination)
    else:
        for flavor in selections.get("selected_flavors") or []:
            total += to_decimal(flavor.get("additional_price")) * to_decimal(flavor.get("percentage")) / HUNDRED

    return quantize(total)


def unit_price_for_item(item: Mapping[str, Any]) -> Decimal:
    """Unit price of a stored draft item."""
    base = item.get("promo_price")
    if base is None:
        base = item.get("price")
    return unit_price(base, item)


def line_total(unit: Any, quantity: int) -> Decimal:
    return quantize(to_decimal(unit) * quantity)


def validate_flavor_split(flavors: Iterable[Mapping[str, Any]], max_flavors: int = 4) -> None:
    """Check a custom flavor split before it reaches pricing.

    Raises:
        InvalidFlavorSplit: percentages outside 0-100, a sum other than 100,
            or more flavors than the item allows.
    """
    flavors = list(flavors)
    if not flavors:
        return
    if len(flavors) > max_flavors:
        raise InvalidFlavorSplit(f"At most {max_flavors} flavors can be selected")
    total = Decimal("0")
    for flavor in flavors:
        pct = to_decimal(flavor.get("percentage"))
        if pct < 0 or pct > HUNDRED:
            raise InvalidFlavorSplit(f"Flavor percentage must be between 0 and 100, got {pct}")
        total += pct
    if total != HUNDRED:
        raise InvalidFlavorSplit(f"Flavor percentages must add up to 100, got {total}")
