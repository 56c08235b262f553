"""
Order -- Inputs consumed at order-close time.

These are owned by the order-processing collaborator; the engine only reads
them.  All amounts are int minor units.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from tax_kernel.domain.money import line_base_cents
from tax_kernel.domain.rules import normalize_order_type


@dataclass(frozen=True)
class OrderLine:
    """
    One line of a closed order.

    ``addons_cents`` is the per-unit sum of addon/option deltas, so it is
    multiplied by ``quantity`` together with the unit price.
    """

    quantity: int
    unit_price_cents: int
    addons_cents: int = 0
    category_id: str | None = None
    tags: tuple[str, ...] = ()
    line_id: str = ""
    tax_exempt: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise TypeError(f"quantity must be int, got {type(self.quantity).__name__}")
        if self.quantity < 0:
            raise ValueError(f"quantity cannot be negative: {self.quantity}")
        object.__setattr__(self, "tags", tuple(self.tags or ()))

    @property
    def base_cents(self) -> int:
        return line_base_cents(self.quantity, self.unit_price_cents, self.addons_cents)


@dataclass(frozen=True)
class Customer:
    tax_id: str | None = None
    name: str | None = None
    tax_exempt: bool = False

    @property
    def has_tax_id(self) -> bool:
        return bool(self.tax_id and self.tax_id.strip())


@dataclass(frozen=True)
class Locality:
    """Delivery locality used for jurisdiction matching. Every field optional."""

    country: str | None = None
    state: str | None = None
    city: str | None = None
    zip: str | None = None


@dataclass(frozen=True)
class OrderContext:
    """
    Everything the snapshot calculator needs about one order.

    ``currency`` is the order's effective currency and defaults to the
    profile currency when left empty.  Amounts are never converted.
    """

    lines: tuple[OrderLine, ...]
    order_type: str = ""
    customer: Customer = field(default_factory=Customer)
    locality: Locality = field(default_factory=Locality)
    delivery_fee_cents: int = 0
    currency: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "lines", tuple(self.lines))
        object.__setattr__(self, "order_type", normalize_order_type(self.order_type))
        if isinstance(self.delivery_fee_cents, bool) or not isinstance(self.delivery_fee_cents, int):
            raise TypeError("delivery_fee_cents must be int minor units")
