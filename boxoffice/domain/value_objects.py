"""Domain primitives that enforce validity at creation time."""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Self, Union

BASE_CATEGORY_KEY = "base"

CENTS = Decimal("0.01")


def quantize_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class ExplicitCategory:
    """A ticket category row that already exists."""

    id: int

    def to_json(self) -> int:
        return self.id


@dataclass(frozen=True)
class SyntheticCategory:
    """The implicit flat-price category of an event with no explicit categories.

    Materialized into a real row on first issuance.
    """

    event_id: int

    def to_json(self) -> str:
        return BASE_CATEGORY_KEY


CategoryRef = Union[ExplicitCategory, SyntheticCategory]


def parse_category_ref(raw: Any, event_id: int) -> CategoryRef:
    """Turn a client or stored category key into a CategoryRef.

    Raises:
        ValueError: If the key is neither ``"base"`` nor an integer id.
    """
    if isinstance(raw, str) and raw.strip().lower() == BASE_CATEGORY_KEY:
        return SyntheticCategory(event_id=event_id)
    if isinstance(raw, bool):
        raise ValueError(f"Invalid ticket category {raw!r}")
    try:
        return ExplicitCategory(id=int(raw))
    except (TypeError, ValueError):
        raise ValueError(f"Invalid ticket category {raw!r}") from None


@dataclass(frozen=True)
class SelectionLine:
    """One priced line of an order, frozen at order creation."""

    category: CategoryRef
    quantity: int
    unit_price: Decimal
    name: str

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValueError("Quantity must be a positive integer")
        if self.unit_price < 0:
            raise ValueError("Unit price cannot be negative")

    @property
    def subtotal(self) -> Decimal:
        return quantize_money(self.unit_price * self.quantity)

    def to_json(self) -> dict:
        return {
            "category": self.category.to_json(),
            "quantity": self.quantity,
            "unitPrice": str(quantize_money(self.unit_price)),
            "name": self.name,
        }

    @classmethod
    def from_json(cls, data: dict, event_id: int) -> Self:
        return cls(
            category=parse_category_ref(data["category"], event_id),
            quantity=int(data["quantity"]),
            unit_price=quantize_money(data["unitPrice"]),
            name=data["name"],
        )


@dataclass(frozen=True)
class CustomerSnapshot:
    """Customer identity copied onto the order at purchase time."""

    name: str
    email: str
    phone: str | None = None
