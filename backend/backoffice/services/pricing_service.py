# Overview: Pure price and discount computation for meal orders.

"""
Pricing engine.

All amounts are integer cents. The only rounding step is the discount,
rounded half-up to the cent; the grand total is derived from it so that
meals + extras - discount == grand total always holds exactly.

Invalid input is rejected, never clamped:
- negative quantities, unit prices or discounts
- discounts above 100%
- unknown meal sizes
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Mapping

from ..models import MealSize
from ..validation import MAX_PRICE_CENTS, ValidationError, coerce_int


DEFAULT_UNIT_PRICES_CENTS = {
    MealSize.SMALL: 1500,
    MealSize.MEDIUM: 1800,
    MealSize.LARGE: 2200,
}


class PricingError(ValidationError):
    """Raised when an order cannot be priced."""


@dataclass(frozen=True)
class PriceTable:
    """Unit price per meal size, in cents."""
    small_cents: int
    medium_cents: int
    large_cents: int

    @classmethod
    def default(cls) -> "PriceTable":
        return cls(
            small_cents=DEFAULT_UNIT_PRICES_CENTS[MealSize.SMALL],
            medium_cents=DEFAULT_UNIT_PRICES_CENTS[MealSize.MEDIUM],
            large_cents=DEFAULT_UNIT_PRICES_CENTS[MealSize.LARGE],
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "PriceTable":
        """
        Build from {"P": cents, "M": cents, "G": cents}.

        Missing sizes fall back to the default table.
        """
        base = cls.default()
        if not data:
            return base
        values = {}
        for size, attr in ((MealSize.SMALL, "small_cents"),
                           (MealSize.MEDIUM, "medium_cents"),
                           (MealSize.LARGE, "large_cents")):
            raw = data.get(size.value)
            if raw is None:
                values[attr] = getattr(base, attr)
                continue
            cents = coerce_int(f"price {size.value}", raw)
            if cents < 0 or cents > MAX_PRICE_CENTS:
                raise PricingError(f"price {size.value} must be between 0 and {MAX_PRICE_CENTS} cents")
            values[attr] = cents
        return cls(**values)

    def unit_price(self, size: MealSize | str) -> int:
        size = parse_size(size)
        if size is MealSize.SMALL:
            return self.small_cents
        if size is MealSize.MEDIUM:
            return self.medium_cents
        return self.large_cents

    def to_dict(self) -> dict:
        return {
            MealSize.SMALL.value: self.small_cents,
            MealSize.MEDIUM.value: self.medium_cents,
            MealSize.LARGE.value: self.large_cents,
        }


@dataclass(frozen=True)
class ExtraItem:
    name: str
    unit_price_cents: int
    quantity: int

    @property
    def total_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "unit_price_cents": self.unit_price_cents,
            "quantity": self.quantity,
        }


@dataclass(frozen=True)
class OrderTotal:
    unit_price_cents: int
    meals_subtotal_cents: int
    extras_cents: int
    discount_cents: int
    grand_total_cents: int

    def to_dict(self) -> dict:
        return {
            "unit_price_cents": self.unit_price_cents,
            "meals_subtotal_cents": self.meals_subtotal_cents,
            "extras_cents": self.extras_cents,
            "discount_cents": self.discount_cents,
            "grand_total_cents": self.grand_total_cents,
        }


def parse_size(value: MealSize | str) -> MealSize:
    if isinstance(value, MealSize):
        return value
    try:
        return MealSize(str(value).strip().upper())
    except ValueError:
        allowed = ", ".join(s.value for s in MealSize)
        raise PricingError(f"size must be one of: {allowed}")


def parse_discount_percent(value: Any) -> Decimal:
    """Accepts int, float, Decimal or numeric string. Rejects values outside [0, 100]."""
    if value is None:
        return Decimal(0)
    if isinstance(value, bool):
        raise PricingError("discount_percent must be a number")
    try:
        percent = Decimal(str(value).strip())
    except InvalidOperation:
        raise PricingError("discount_percent must be a number")
    if not percent.is_finite():
        raise PricingError("discount_percent must be a number")
    if percent < 0:
        raise PricingError("discount_percent cannot be negative")
    if percent > 100:
        raise PricingError("discount_percent cannot exceed 100")
    return percent


def percent_to_bps(value: Any) -> int:
    """10 -> 1000, 12.5 -> 1250. At most two decimal places are kept."""
    percent = parse_discount_percent(value)
    return int((percent * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def bps_to_percent(bps: int) -> Decimal:
    return Decimal(bps or 0) / Decimal(100)


def normalize_extra_items(items: Iterable[Any] | None) -> list[ExtraItem]:
    """
    Validate raw extra items ({"name", "unit_price_cents", "quantity"}).

    Accepts ExtraItem instances as well.
    """
    if items is None:
        return []
    if isinstance(items, (str, bytes, Mapping)):
        raise PricingError("extra_items must be a list")

    result: list[ExtraItem] = []
    for index, item in enumerate(items):
        if isinstance(item, ExtraItem):
            data = item.to_dict()
        elif isinstance(item, Mapping):
            data = item
        else:
            raise PricingError(f"extra_items[{index}] must be an object")

        name = str(data.get("name") or "").strip()
        if not name:
            raise PricingError(f"extra_items[{index}].name is required")
        try:
            unit_price = coerce_int(f"extra_items[{index}].unit_price_cents", data.get("unit_price_cents"))
            quantity = coerce_int(f"extra_items[{index}].quantity", data.get("quantity", 1))
        except ValidationError as exc:
            raise PricingError(str(exc))
        if unit_price < 0:
            raise PricingError(f"extra_items[{index}].unit_price_cents cannot be negative")
        if quantity < 0:
            raise PricingError(f"extra_items[{index}].quantity cannot be negative")
        result.append(ExtraItem(name=name, unit_price_cents=unit_price, quantity=quantity))
    return result


def compute_order_total(
    size: MealSize | str,
    quantity: int,
    extra_items: Iterable[Any] | None,
    discount_percent: Any,
    price_table: PriceTable | None = None,
) -> OrderTotal:
    """
    Price a meal order.

        meals    = unit_price[size] * quantity
        extras   = sum(item.unit_price * item.quantity)
        discount = round_half_up((meals + extras) * discount_percent / 100)
        total    = meals + extras - discount

    Pure function; safe to call for live previews.
    """
    table = price_table or PriceTable.default()
    meal_size = parse_size(size)

    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise PricingError("quantity must be an integer")
    if quantity < 0:
        raise PricingError("quantity cannot be negative")

    percent = parse_discount_percent(discount_percent)
    extras = normalize_extra_items(extra_items)

    unit_price = table.unit_price(meal_size)
    meals_subtotal = unit_price * quantity
    extras_total = sum(item.total_cents for item in extras)
    subtotal = meals_subtotal + extras_total

    discount = int(
        (Decimal(subtotal) * percent / Decimal(100)).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    )

    return OrderTotal(
        unit_price_cents=unit_price,
        meals_subtotal_cents=meals_subtotal,
        extras_cents=extras_total,
        discount_cents=discount,
        grand_total_cents=subtotal - discount,
    )


def format_brl(cents: int) -> str:
    """5310 -> "R$ 53,10"; 123456 -> "R$ 1.234,56"."""
    sign = "-" if cents < 0 else ""
    reais, centavos = divmod(abs(int(cents)), 100)
    grouped = f"{reais:,}".replace(",", ".")
    return f"{sign}R$ {grouped},{centavos:02d}"
